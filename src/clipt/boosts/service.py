"""Boost lifecycle: apply, extend, cancel, track and finalize.

Token debits and boost state changes always happen in the same store
transaction. A boost moves ``active -> expired`` only through
``finalize_expired`` (which also sends the result notification exactly once)
and ``active -> cancelled`` only through ``cancel_boost``.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime

from clipt.boosts.simulator import SPREAD_PER_ENGAGEMENT, MetricsSimulator
from clipt.boosts.types import (
    BoostStatus,
    BoostType,
    ContentType,
    get_spec,
    validate_content_type,
    validate_transition,
)
from clipt.errors import CliptError, ConflictError, NotFoundError, ValidationError
from clipt.notifications.kinds import (
    BoostAppliedPayload,
    BoostExtendedPayload,
    BoostResultPayload,
    ChainReactionGrowingPayload,
    NotificationKind,
)
from clipt.notifications.service import Notifier
from clipt.records import BoostMetrics, BoostRecord, ContentStats
from clipt.store.base import ProgressStore
from clipt.time_utils import Clock, utc_now

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BoostAnalytics:
    boost: BoostRecord
    baseline: ContentStats
    metrics: BoostMetrics
    progress_percent: int
    seconds_remaining: int

    @property
    def is_active(self) -> bool:
        return self.boost.status == BoostStatus.ACTIVE and self.seconds_remaining > 0


def _content_type(value: ContentType | str) -> ContentType:
    try:
        return ContentType(value)
    except ValueError as exc:
        raise ValidationError(f"Unknown content type: {value}") from exc


class BoostService:
    def __init__(
        self,
        store: ProgressStore,
        notifier: Notifier,
        simulator: MetricsSimulator | None = None,
        clock: Clock = utc_now,
        batch_size: int = 100,
    ) -> None:
        self.store = store
        self.notifier = notifier
        self.simulator = simulator or MetricsSimulator()
        self._clock = clock
        self.batch_size = batch_size

    # --- Commands ---

    async def apply_boost(
        self,
        user_id: str,
        content_id: str,
        content_type: ContentType | str,
        boost_type: BoostType | str,
    ) -> BoostRecord:
        """Debit the boost cost and start the boost.

        Raises ValidationError for a boost type that cannot target this content
        and InsufficientTokensError when the balance is short; nothing is
        written in either case.
        """
        spec = get_spec(boost_type)
        content_type = _content_type(content_type)
        validate_content_type(spec, content_type)

        profile = await self.store.get_profile(user_id)
        stats = await self.store.get_content_stats(content_id, content_type)
        baseline = self.simulator.baseline(content_type, stats)
        metrics = self.simulator.snapshot(
            spec.boost_type, content_type, baseline, current=baseline, follower_count=profile.follower_count
        )

        now = self._clock()
        boost = BoostRecord(
            id=str(uuid.uuid4()),
            user_id=user_id,
            content_id=content_id,
            content_type=content_type,
            boost_type=spec.boost_type,
            status=BoostStatus.ACTIVE,
            cost=spec.cost,
            created_at=now,
            expires_at=now + spec.duration,
        )
        notification = self.notifier.build(
            user_id,
            NotificationKind.BOOST_APPLIED,
            BoostAppliedPayload(
                boost_id=boost.id,
                boost_type=spec.boost_type,
                content_id=content_id,
                content_type=content_type,
                content_title=stats.title if stats else None,
                cost=spec.cost,
            ),
            now,
        )
        created = await self.store.create_boost(boost, baseline, metrics, notification)
        logger.info(
            "User %s applied %s to %s %s for %d tokens",
            user_id, spec.boost_type.value, content_type.value, content_id, spec.cost,
        )
        await self.notifier.publish(notification)
        return created

    async def extend_boost(self, boost_id: str, user_id: str) -> BoostRecord:
        """Add one more duration to an active boost, charging its cost again."""
        boost = await self.get_boost(boost_id, user_id)
        now = self._clock()
        if boost.status != BoostStatus.ACTIVE or boost.expires_at <= now:
            raise ConflictError("Only active boosts can be extended", boost_id=boost_id, status=boost.status.value)

        spec = get_spec(boost.boost_type)
        new_expires_at = boost.expires_at + spec.duration
        notification = self.notifier.build(
            user_id,
            NotificationKind.BOOST_EXTENDED,
            BoostExtendedPayload(
                boost_id=boost_id,
                boost_type=boost.boost_type,
                expires_at=new_expires_at,
                cost=spec.cost,
            ),
            now,
        )
        extended = await self.store.extend_boost(
            boost_id,
            previous_expires_at=boost.expires_at,
            new_expires_at=new_expires_at,
            cost=spec.cost,
            notification=notification,
            now=now,
        )
        logger.info("Boost %s extended to %s", boost_id, new_expires_at.isoformat())
        await self.notifier.publish(notification)
        return extended

    async def cancel_boost(self, boost_id: str, user_id: str) -> BoostRecord:
        """Cancel an active boost. No refund, no result notification.

        A boost whose window has already closed is waiting for finalization
        and can no longer be cancelled.
        """
        boost = await self.get_boost(boost_id, user_id)
        validate_transition(boost.status, BoostStatus.CANCELLED)
        now = self._clock()
        if boost.expires_at <= now:
            raise ConflictError("Boost has already expired", boost_id=boost_id)
        cancelled = await self.store.cancel_boost(boost_id, now=now)
        logger.info("Boost %s cancelled by %s", boost_id, user_id)
        return cancelled

    # --- Queries ---

    async def get_boost(self, boost_id: str, user_id: str | None = None) -> BoostRecord:
        """Fetch a boost; when ``user_id`` is given, other users' boosts read as missing."""
        boost = await self.store.get_boost(boost_id)
        if user_id is not None and boost.user_id != user_id:
            raise NotFoundError("boost", boost_id)
        return boost

    async def list_boosts(self, user_id: str, active_only: bool = False) -> list[BoostRecord]:
        return await self.store.list_boosts(user_id, active_only=active_only)

    async def _snapshot(self, boost: BoostRecord) -> tuple[ContentStats, BoostMetrics]:
        record = await self.store.get_boost_metrics(boost.id)
        current = await self.store.get_content_stats(boost.content_id, boost.content_type)
        if record is not None:
            baseline = record.baseline
            previous = record.metrics
        else:
            baseline = self.simulator.baseline(boost.content_type, current)
            previous = None
        profile = await self.store.get_profile(boost.user_id)
        metrics = self.simulator.snapshot(
            boost.boost_type,
            boost.content_type,
            baseline,
            current=current,
            follower_count=profile.follower_count,
            previous=previous,
        )
        return baseline, metrics

    async def refresh_metrics(self, boost_id: str) -> BoostMetrics:
        """Take and persist a fresh snapshot while the boost is running.

        Raises ConflictError once the window has closed or the boost was
        cancelled; the last snapshot is what the result reports.
        """
        boost = await self.store.get_boost(boost_id)
        if boost.status != BoostStatus.ACTIVE or boost.finalized or boost.expires_at <= self._clock():
            raise ConflictError("Boost is no longer running", boost_id=boost_id, status=boost.status.value)
        _, metrics = await self._snapshot(boost)
        await self.store.save_boost_metrics(boost_id, metrics, self._clock())
        return metrics

    async def get_analytics(self, boost_id: str, user_id: str | None = None) -> BoostAnalytics:
        boost = await self.get_boost(boost_id, user_id)
        record = await self.store.get_boost_metrics(boost_id)
        if record is None:
            baseline, metrics = await self._snapshot(boost)
        else:
            baseline, metrics = record.baseline, record.metrics

        now = self._clock()
        total = (boost.expires_at - boost.created_at).total_seconds()
        elapsed = (now - boost.created_at).total_seconds()
        if boost.status == BoostStatus.ACTIVE and total > 0:
            progress = int(min(max(elapsed / total * 100, 0), 100))
            remaining = max(int((boost.expires_at - now).total_seconds()), 0)
        else:
            progress, remaining = 100, 0
        return BoostAnalytics(
            boost=boost,
            baseline=baseline,
            metrics=metrics,
            progress_percent=progress,
            seconds_remaining=remaining,
        )

    async def record_engagement(self, content_id: str) -> list[BoostMetrics]:
        """Refresh active Chain Reaction boosts on ``content_id`` after a like/comment/share.

        Sends a ``chain_reaction_growing`` notification each time the total
        engagement count passes another multiple of 5.
        """
        refreshed = []
        now = self._clock()
        for boost in await self.store.list_active_boosts_for_content(content_id):
            if boost.boost_type != BoostType.CHAIN_REACTION or boost.expires_at <= now:
                continue
            record = await self.store.get_boost_metrics(boost.id)
            previous_total = (
                record.metrics.likes + record.metrics.comments + record.metrics.shares if record else 0
            )
            metrics = await self.refresh_metrics(boost.id)
            total = metrics.likes + metrics.comments + metrics.shares
            refreshed.append(metrics)

            if total > 0 and total // SPREAD_PER_ENGAGEMENT > previous_total // SPREAD_PER_ENGAGEMENT:
                await self.notifier.emit(
                    boost.user_id,
                    NotificationKind.CHAIN_REACTION_GROWING,
                    ChainReactionGrowingPayload(
                        boost_id=boost.id,
                        engagements=total,
                        chain_multiplier=metrics.chain_multiplier or 1.0,
                        chain_spread=metrics.chain_spread or 0,
                    ),
                )
        return refreshed

    # --- Expiry ---

    async def finalize_expired(self, now: datetime | None = None) -> int:
        """Finalize every due boost. Returns how many were finalized by this call."""
        now = now or self._clock()
        due = await self.store.due_boosts(now, self.batch_size)
        finalized = 0
        for boost in due:
            try:
                if await self._finalize(boost, now):
                    finalized += 1
            except CliptError:
                logger.error("Failed to finalize boost %s", boost.id, exc_info=True)
        if finalized:
            logger.info("Finalized %d expired boosts", finalized)
        return finalized

    async def _finalize(self, boost: BoostRecord, now: datetime) -> bool:
        record = await self.store.get_boost_metrics(boost.id)
        if record is not None:
            metrics = record.metrics
        else:
            _, metrics = await self._snapshot(boost)

        stats = await self.store.get_content_stats(boost.content_id, boost.content_type)
        summary = self.simulator.summarize(boost.boost_type, metrics, stats.title if stats else None)
        notification = self.notifier.build(
            boost.user_id,
            NotificationKind.BOOST_RESULT,
            BoostResultPayload(
                boost_id=boost.id,
                boost_type=boost.boost_type,
                content_id=boost.content_id,
                summary=summary,
                views_from_boost=metrics.views_from_boost,
                reached_users=metrics.reached_users,
            ),
            now,
        )
        done = await self.store.finalize_boost(boost.id, metrics=metrics, notification=notification, now=now)
        if not done:
            logger.debug("Boost %s already finalized", boost.id)
            return False
        logger.info("Boost %s finalized: %s", boost.id, summary)
        await self.notifier.publish(notification)
        return True
