"""SQLAlchemy 2.0 async store.

Every public method runs in its own transaction, bounded by the configured
timeout. Invariants are enforced with conditional ``UPDATE ... WHERE``
statements and their row counts rather than read-then-write in Python.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from datetime import datetime
from typing import TypeVar

from sqlalchemy import case, func, select, text, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from clipt.boosts.types import BoostStatus, ContentType
from clipt.db.models import (
    Achievement,
    AchievementProgress,
    Boost,
    BoostMetricsRow,
    Notification,
    Post,
    Profile,
    Stream,
    TokenTransaction,
)
from clipt.errors import CliptError, ConflictError, InsufficientTokensError, NotFoundError, StoreError, ValidationError
from clipt.progression.leveling import level_from_xp
from clipt.records import (
    AchievementDefinition,
    AchievementProgressRecord,
    BoostMetrics,
    BoostMetricsRecord,
    BoostRecord,
    ContentStats,
    NotificationRecord,
    ProfileRecord,
    TokenTransactionRecord,
    TokenTransactionType,
)
from clipt.store.base import ProgressStore
from clipt.time_utils import Clock, utc_now

logger = logging.getLogger(__name__)

T = TypeVar("T")

_NO_SYNC = {"synchronize_session": False}


def _notification_record(row: Notification) -> NotificationRecord:
    return NotificationRecord(
        id=row.id,
        user_id=row.user_id,
        type=row.type,
        title=row.title,
        message=row.message,
        reference_id=row.reference_id,
        reference_type=row.reference_type,
        read=row.read,
        metadata=row.notification_metadata or {},
        created_at=row.created_at,
    )


def _notification_row(record: NotificationRecord) -> Notification:
    return Notification(
        id=record.id,
        user_id=record.user_id,
        type=record.type,
        title=record.title,
        message=record.message,
        reference_id=record.reference_id,
        reference_type=record.reference_type,
        read=record.read,
        notification_metadata=record.metadata,
        created_at=record.created_at,
    )


def _metrics_record(row: BoostMetricsRow) -> BoostMetricsRecord:
    return BoostMetricsRecord(
        boost_id=row.boost_id,
        baseline=ContentStats.model_validate(row.baseline or {}),
        metrics=BoostMetrics.model_validate(row.metrics or {}),
        updated_at=row.updated_at,
    )


def _dump_metrics(metrics: BoostMetrics) -> dict:
    return metrics.model_dump(mode="json", exclude_none=True)


class SqlAlchemyStore(ProgressStore):
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        timeout_seconds: float = 10.0,
        clock: Clock = utc_now,
    ) -> None:
        self._session_factory = session_factory
        self._timeout = timeout_seconds
        self._clock = clock

    async def _run(self, operation: str, work: Callable[[AsyncSession], Awaitable[T]]) -> T:
        """Run ``work`` in a transaction; map backend failures to StoreError."""

        async def _in_transaction() -> T:
            async with self._session_factory() as session, session.begin():
                return await work(session)

        try:
            return await asyncio.wait_for(_in_transaction(), timeout=self._timeout)
        except CliptError:
            raise
        except asyncio.TimeoutError as exc:
            logger.error("Store operation %s timed out after %.1fs", operation, self._timeout)
            raise StoreError(operation, "timed out") from exc
        except SQLAlchemyError as exc:
            logger.error("Store operation %s failed", operation, exc_info=True)
            raise StoreError(operation, type(exc).__name__) from exc

    # --- Lifecycle ---

    async def ping(self) -> None:
        async def work(session: AsyncSession) -> None:
            await session.execute(text("SELECT 1"))

        await self._run("ping", work)

    # --- Helpers ---

    @staticmethod
    async def _load_profile(session: AsyncSession, user_id: str, *, lock: bool = False) -> Profile:
        stmt = select(Profile).where(Profile.id == user_id).execution_options(populate_existing=True)
        if lock:
            stmt = stmt.with_for_update()
        profile = (await session.execute(stmt)).scalar_one_or_none()
        if profile is None:
            raise NotFoundError("profile", user_id)
        return profile

    @staticmethod
    async def _load_boost(session: AsyncSession, boost_id: str, *, lock: bool = False) -> Boost:
        stmt = select(Boost).where(Boost.id == boost_id).execution_options(populate_existing=True)
        if lock:
            stmt = stmt.with_for_update()
        boost = (await session.execute(stmt)).scalar_one_or_none()
        if boost is None:
            raise NotFoundError("boost", boost_id)
        return boost

    @staticmethod
    async def _load_progress(session: AsyncSession, user_id: str, achievement_id: str) -> AchievementProgress | None:
        stmt = (
            select(AchievementProgress)
            .where(
                AchievementProgress.user_id == user_id,
                AchievementProgress.achievement_id == achievement_id,
            )
            .execution_options(populate_existing=True)
        )
        return (await session.execute(stmt)).scalar_one_or_none()

    async def _debit(self, session: AsyncSession, user_id: str, amount: int, now: datetime) -> None:
        result = await session.execute(
            update(Profile)
            .where(Profile.id == user_id, Profile.tokens >= amount)
            .values(tokens=Profile.tokens - amount, updated_at=now)
            .execution_options(**_NO_SYNC)
        )
        if result.rowcount == 0:
            profile = await self._load_profile(session, user_id)
            raise InsufficientTokensError(required=amount, balance=profile.tokens)

    @staticmethod
    def _add_transaction(
        session: AsyncSession,
        user_id: str,
        amount: int,
        kind: TokenTransactionType,
        description: str | None,
        reference_id: str | None,
        now: datetime,
    ) -> None:
        session.add(
            TokenTransaction(
                user_id=user_id,
                amount=amount,
                type=kind.value,
                description=description,
                reference_id=reference_id,
                created_at=now,
            )
        )

    async def _ensure_progress(
        self, session: AsyncSession, user_id: str, achievement_id: str, now: datetime
    ) -> bool:
        """Create the progress row if missing. Returns True if this call created it."""
        if await self._load_progress(session, user_id, achievement_id) is not None:
            return False
        if await session.get(Achievement, achievement_id) is None:
            raise NotFoundError("achievement", achievement_id)
        await self._load_profile(session, user_id)
        try:
            async with session.begin_nested():
                session.add(
                    AchievementProgress(
                        user_id=user_id,
                        achievement_id=achievement_id,
                        current_value=0,
                        completed=False,
                        created_at=now,
                        updated_at=now,
                    )
                )
        except IntegrityError:
            return False  # Race condition: a concurrent update created the row
        return True

    # --- Profiles ---

    async def get_profile(self, user_id: str) -> ProfileRecord:
        async def work(session: AsyncSession) -> ProfileRecord:
            return ProfileRecord.model_validate(await self._load_profile(session, user_id))

        return await self._run("get_profile", work)

    async def ensure_profile(
        self,
        user_id: str,
        *,
        username: str | None = None,
        tokens: int = 0,
        follower_count: int = 0,
    ) -> ProfileRecord:
        async def work(session: AsyncSession) -> ProfileRecord:
            existing = await session.get(Profile, user_id)
            if existing is not None:
                return ProfileRecord.model_validate(existing)
            now = self._clock()
            profile = Profile(
                id=user_id,
                username=username,
                xp=0,
                level=0,
                prestige=0,
                tokens=tokens,
                unlocked_themes=[],
                follower_count=follower_count,
                created_at=now,
                updated_at=now,
            )
            session.add(profile)
            await session.flush()
            return ProfileRecord.model_validate(profile)

        return await self._run("ensure_profile", work)

    async def add_xp(self, user_id: str, amount: int) -> tuple[ProfileRecord, ProfileRecord]:
        async def work(session: AsyncSession) -> tuple[ProfileRecord, ProfileRecord]:
            before = ProfileRecord.model_validate(await self._load_profile(session, user_id, lock=True))
            new_xp = before.xp + amount
            await session.execute(
                update(Profile)
                .where(Profile.id == user_id)
                .values(xp=new_xp, level=level_from_xp(new_xp), updated_at=self._clock())
                .execution_options(**_NO_SYNC)
            )
            after = ProfileRecord.model_validate(await self._load_profile(session, user_id))
            return before, after

        return await self._run("add_xp", work)

    async def credit_tokens(
        self,
        user_id: str,
        amount: int,
        *,
        description: str | None = None,
        reference_id: str | None = None,
    ) -> ProfileRecord:
        async def work(session: AsyncSession) -> ProfileRecord:
            now = self._clock()
            result = await session.execute(
                update(Profile)
                .where(Profile.id == user_id)
                .values(tokens=Profile.tokens + amount, updated_at=now)
                .execution_options(**_NO_SYNC)
            )
            if result.rowcount == 0:
                raise NotFoundError("profile", user_id)
            self._add_transaction(
                session, user_id, amount, TokenTransactionType.CREDIT, description, reference_id, now
            )
            await session.flush()
            return ProfileRecord.model_validate(await self._load_profile(session, user_id))

        return await self._run("credit_tokens", work)

    async def debit_tokens(
        self,
        user_id: str,
        amount: int,
        *,
        description: str | None = None,
        reference_id: str | None = None,
    ) -> ProfileRecord:
        async def work(session: AsyncSession) -> ProfileRecord:
            now = self._clock()
            await self._debit(session, user_id, amount, now)
            self._add_transaction(
                session, user_id, -amount, TokenTransactionType.SPEND, description, reference_id, now
            )
            await session.flush()
            return ProfileRecord.model_validate(await self._load_profile(session, user_id))

        return await self._run("debit_tokens", work)

    async def list_token_transactions(
        self,
        user_id: str,
        *,
        limit: int = 20,
        offset: int = 0,
    ) -> list[TokenTransactionRecord]:
        async def work(session: AsyncSession) -> list[TokenTransactionRecord]:
            result = await session.execute(
                select(TokenTransaction)
                .where(TokenTransaction.user_id == user_id)
                .order_by(TokenTransaction.created_at.desc(), TokenTransaction.id.desc())
                .offset(offset)
                .limit(limit)
            )
            return [TokenTransactionRecord.model_validate(row) for row in result.scalars()]

        return await self._run("list_token_transactions", work)

    async def apply_prestige(
        self,
        user_id: str,
        *,
        min_xp: int,
        expected_prestige: int,
        unlock_theme: str | None,
        notification: NotificationRecord,
    ) -> ProfileRecord:
        async def work(session: AsyncSession) -> ProfileRecord:
            result = await session.execute(
                update(Profile)
                .where(
                    Profile.id == user_id,
                    Profile.xp >= min_xp,
                    Profile.prestige == expected_prestige,
                )
                .values(xp=0, level=0, prestige=expected_prestige + 1, updated_at=self._clock())
                .execution_options(**_NO_SYNC)
            )
            profile = await self._load_profile(session, user_id)
            if result.rowcount == 0:
                if profile.xp < min_xp:
                    raise ValidationError("You need to reach level 30 before you can prestige")
                raise ConflictError("Prestige already applied", user_id=user_id)
            if unlock_theme and unlock_theme not in (profile.unlocked_themes or []):
                profile.unlocked_themes = [*(profile.unlocked_themes or []), unlock_theme]
            session.add(_notification_row(notification))
            await session.flush()
            return ProfileRecord.model_validate(profile)

        return await self._run("apply_prestige", work)

    # --- Achievements ---

    async def upsert_achievements(self, definitions: Sequence[AchievementDefinition]) -> int:
        async def work(session: AsyncSession) -> int:
            for definition in definitions:
                await session.merge(Achievement(**definition.model_dump(mode="json")))
            await session.flush()
            return len(definitions)

        return await self._run("upsert_achievements", work)

    async def list_achievements(self) -> list[AchievementDefinition]:
        async def work(session: AsyncSession) -> list[AchievementDefinition]:
            result = await session.execute(select(Achievement).order_by(Achievement.sort_order, Achievement.id))
            return [AchievementDefinition.model_validate(row) for row in result.scalars()]

        return await self._run("list_achievements", work)

    async def get_achievement(self, achievement_id: str) -> AchievementDefinition:
        async def work(session: AsyncSession) -> AchievementDefinition:
            row = await session.get(Achievement, achievement_id)
            if row is None:
                raise NotFoundError("achievement", achievement_id)
            return AchievementDefinition.model_validate(row)

        return await self._run("get_achievement", work)

    async def get_progress(self, user_id: str, achievement_id: str) -> AchievementProgressRecord | None:
        async def work(session: AsyncSession) -> AchievementProgressRecord | None:
            row = await self._load_progress(session, user_id, achievement_id)
            return AchievementProgressRecord.model_validate(row) if row is not None else None

        return await self._run("get_progress", work)

    async def list_progress(self, user_id: str) -> list[AchievementProgressRecord]:
        async def work(session: AsyncSession) -> list[AchievementProgressRecord]:
            result = await session.execute(
                select(AchievementProgress).where(AchievementProgress.user_id == user_id)
            )
            return [AchievementProgressRecord.model_validate(row) for row in result.scalars()]

        return await self._run("list_progress", work)

    async def ensure_progress_rows(self, user_id: str, achievement_ids: Sequence[str], now: datetime) -> int:
        async def work(session: AsyncSession) -> int:
            created = 0
            for achievement_id in achievement_ids:
                if await self._ensure_progress(session, user_id, achievement_id, now):
                    created += 1
            return created

        return await self._run("ensure_progress_rows", work)

    async def raise_progress(
        self,
        user_id: str,
        achievement_id: str,
        value: int,
        cap: int,
        now: datetime,
    ) -> AchievementProgressRecord:
        target = max(min(value, cap), 0)

        async def work(session: AsyncSession) -> AchievementProgressRecord:
            await self._ensure_progress(session, user_id, achievement_id, now)
            await session.execute(
                update(AchievementProgress)
                .where(
                    AchievementProgress.user_id == user_id,
                    AchievementProgress.achievement_id == achievement_id,
                    AchievementProgress.current_value < target,
                )
                .values(current_value=target, updated_at=now)
                .execution_options(**_NO_SYNC)
            )
            row = await self._load_progress(session, user_id, achievement_id)
            return AchievementProgressRecord.model_validate(row)

        return await self._run("raise_progress", work)

    async def increment_progress(
        self,
        user_id: str,
        achievement_id: str,
        delta: int,
        cap: int,
        now: datetime,
    ) -> AchievementProgressRecord:
        async def work(session: AsyncSession) -> AchievementProgressRecord:
            await self._ensure_progress(session, user_id, achievement_id, now)
            incremented = AchievementProgress.current_value + delta
            await session.execute(
                update(AchievementProgress)
                .where(
                    AchievementProgress.user_id == user_id,
                    AchievementProgress.achievement_id == achievement_id,
                    AchievementProgress.current_value < cap,
                )
                .values(current_value=case((incremented > cap, cap), else_=incremented), updated_at=now)
                .execution_options(**_NO_SYNC)
            )
            row = await self._load_progress(session, user_id, achievement_id)
            return AchievementProgressRecord.model_validate(row)

        return await self._run("increment_progress", work)

    async def complete_achievement(
        self,
        user_id: str,
        achievement_id: str,
        *,
        target_value: int,
        xp_reward: int,
        token_reward: int,
        notification: NotificationRecord,
        now: datetime,
    ) -> tuple[ProfileRecord, ProfileRecord]:
        async def work(session: AsyncSession) -> tuple[ProfileRecord, ProfileRecord]:
            result = await session.execute(
                update(AchievementProgress)
                .where(
                    AchievementProgress.user_id == user_id,
                    AchievementProgress.achievement_id == achievement_id,
                    AchievementProgress.completed.is_(False),
                    AchievementProgress.current_value >= target_value,
                )
                .values(completed=True, completed_at=now, updated_at=now)
                .execution_options(**_NO_SYNC)
            )
            if result.rowcount == 0:
                raise ConflictError(
                    "Achievement already completed or below target",
                    user_id=user_id,
                    achievement_id=achievement_id,
                )
            before = ProfileRecord.model_validate(await self._load_profile(session, user_id, lock=True))
            new_xp = before.xp + xp_reward
            await session.execute(
                update(Profile)
                .where(Profile.id == user_id)
                .values(
                    xp=new_xp,
                    level=level_from_xp(new_xp),
                    tokens=Profile.tokens + token_reward,
                    updated_at=now,
                )
                .execution_options(**_NO_SYNC)
            )
            if token_reward > 0:
                definition = await session.get(Achievement, achievement_id)
                name = definition.name if definition is not None else achievement_id
                self._add_transaction(
                    session,
                    user_id,
                    token_reward,
                    TokenTransactionType.ACHIEVEMENT_REWARD,
                    f"Unlocked {name}",
                    achievement_id,
                    now,
                )
            session.add(_notification_row(notification))
            await session.flush()
            after = ProfileRecord.model_validate(await self._load_profile(session, user_id))
            return before, after

        return await self._run("complete_achievement", work)

    # --- Content ---

    async def get_content_stats(self, content_id: str, content_type: ContentType) -> ContentStats | None:
        content_type = ContentType(content_type)

        async def work(session: AsyncSession) -> ContentStats | None:
            if content_type == ContentType.STREAM:
                row = await session.get(Stream, content_id)
                if row is None:
                    return None
                return ContentStats(
                    content_id=row.id,
                    content_type=content_type,
                    user_id=row.user_id,
                    title=row.title,
                    views=row.views,
                    likes=row.likes,
                    shares=row.shares,
                    comments=row.comments,
                    engagement=row.engagement,
                    viewers=row.viewers,
                    rank=row.rank,
                )
            row = await session.get(Post, content_id)
            if row is None:
                return None
            return ContentStats(
                content_id=row.id,
                content_type=content_type,
                user_id=row.user_id,
                title=row.title,
                views=row.views,
                likes=row.likes,
                shares=row.shares,
                comments=row.comments,
                engagement=row.engagement,
            )

        return await self._run("get_content_stats", work)

    # --- Boosts ---

    async def create_boost(
        self,
        boost: BoostRecord,
        baseline: ContentStats,
        metrics: BoostMetrics,
        notification: NotificationRecord,
    ) -> BoostRecord:
        async def work(session: AsyncSession) -> BoostRecord:
            await self._debit(session, boost.user_id, boost.cost, boost.created_at)
            self._add_transaction(
                session,
                boost.user_id,
                -boost.cost,
                TokenTransactionType.BOOST,
                f"Applied {boost.boost_type.value} boost",
                boost.id,
                boost.created_at,
            )
            session.add(
                Boost(
                    id=boost.id,
                    user_id=boost.user_id,
                    content_id=boost.content_id,
                    content_type=boost.content_type.value,
                    boost_type=boost.boost_type.value,
                    status=boost.status.value,
                    cost=boost.cost,
                    finalized=boost.finalized,
                    created_at=boost.created_at,
                    expires_at=boost.expires_at,
                )
            )
            session.add(
                BoostMetricsRow(
                    boost_id=boost.id,
                    baseline=baseline.model_dump(mode="json", exclude_none=True),
                    metrics=_dump_metrics(metrics),
                    updated_at=boost.created_at,
                )
            )
            session.add(_notification_row(notification))
            await session.flush()
            return boost

        return await self._run("create_boost", work)

    async def get_boost(self, boost_id: str) -> BoostRecord:
        async def work(session: AsyncSession) -> BoostRecord:
            return BoostRecord.model_validate(await self._load_boost(session, boost_id))

        return await self._run("get_boost", work)

    async def list_boosts(self, user_id: str, *, active_only: bool = False) -> list[BoostRecord]:
        async def work(session: AsyncSession) -> list[BoostRecord]:
            stmt = select(Boost).where(Boost.user_id == user_id)
            if active_only:
                stmt = stmt.where(Boost.status == BoostStatus.ACTIVE.value)
            result = await session.execute(stmt.order_by(Boost.created_at.desc()))
            return [BoostRecord.model_validate(row) for row in result.scalars()]

        return await self._run("list_boosts", work)

    async def list_active_boosts_for_content(self, content_id: str) -> list[BoostRecord]:
        async def work(session: AsyncSession) -> list[BoostRecord]:
            result = await session.execute(
                select(Boost).where(
                    Boost.content_id == content_id,
                    Boost.status == BoostStatus.ACTIVE.value,
                )
            )
            return [BoostRecord.model_validate(row) for row in result.scalars()]

        return await self._run("list_active_boosts_for_content", work)

    async def extend_boost(
        self,
        boost_id: str,
        *,
        previous_expires_at: datetime,
        new_expires_at: datetime,
        cost: int,
        notification: NotificationRecord,
        now: datetime,
    ) -> BoostRecord:
        async def work(session: AsyncSession) -> BoostRecord:
            boost = await self._load_boost(session, boost_id)
            result = await session.execute(
                update(Boost)
                .where(
                    Boost.id == boost_id,
                    Boost.status == BoostStatus.ACTIVE.value,
                    Boost.expires_at == previous_expires_at,
                    Boost.expires_at > now,
                )
                .values(expires_at=new_expires_at)
                .execution_options(**_NO_SYNC)
            )
            if result.rowcount == 0:
                raise ConflictError(
                    "Boost is no longer active or was changed concurrently",
                    boost_id=boost_id,
                )
            await self._debit(session, boost.user_id, cost, now)
            self._add_transaction(
                session,
                boost.user_id,
                -cost,
                TokenTransactionType.BOOST_EXTENSION,
                f"Extended {boost.boost_type} boost",
                boost_id,
                now,
            )
            session.add(_notification_row(notification))
            await session.flush()
            return BoostRecord.model_validate(await self._load_boost(session, boost_id))

        return await self._run("extend_boost", work)

    async def cancel_boost(self, boost_id: str, *, now: datetime) -> BoostRecord:
        async def work(session: AsyncSession) -> BoostRecord:
            result = await session.execute(
                update(Boost)
                .where(
                    Boost.id == boost_id,
                    Boost.status == BoostStatus.ACTIVE.value,
                    Boost.expires_at > now,
                )
                .values(status=BoostStatus.CANCELLED.value)
                .execution_options(**_NO_SYNC)
            )
            boost = await self._load_boost(session, boost_id)
            if result.rowcount == 0:
                if boost.status == BoostStatus.ACTIVE.value:
                    raise ConflictError("Boost has already expired", boost_id=boost_id)
                raise ConflictError(f"Boost is {boost.status}", boost_id=boost_id)
            return BoostRecord.model_validate(boost)

        return await self._run("cancel_boost", work)

    async def due_boosts(self, now: datetime, limit: int) -> list[BoostRecord]:
        async def work(session: AsyncSession) -> list[BoostRecord]:
            result = await session.execute(
                select(Boost)
                .where(
                    Boost.status == BoostStatus.ACTIVE.value,
                    Boost.finalized.is_(False),
                    Boost.expires_at <= now,
                )
                .order_by(Boost.expires_at)
                .limit(limit)
            )
            return [BoostRecord.model_validate(row) for row in result.scalars()]

        return await self._run("due_boosts", work)

    async def get_boost_metrics(self, boost_id: str) -> BoostMetricsRecord | None:
        async def work(session: AsyncSession) -> BoostMetricsRecord | None:
            row = await session.get(BoostMetricsRow, boost_id)
            return _metrics_record(row) if row is not None else None

        return await self._run("get_boost_metrics", work)

    async def _write_metrics(
        self, session: AsyncSession, boost_id: str, metrics: BoostMetrics, now: datetime
    ) -> BoostMetricsRow:
        row = await session.get(BoostMetricsRow, boost_id, populate_existing=True)
        if row is None:
            row = BoostMetricsRow(boost_id=boost_id, baseline={}, metrics={}, updated_at=now)
            session.add(row)
        row.metrics = _dump_metrics(metrics)
        row.updated_at = now
        await session.flush()
        return row

    async def save_boost_metrics(self, boost_id: str, metrics: BoostMetrics, now: datetime) -> BoostMetricsRecord:
        async def work(session: AsyncSession) -> BoostMetricsRecord:
            boost = await self._load_boost(session, boost_id, lock=True)
            if boost.status != BoostStatus.ACTIVE.value or boost.finalized:
                raise ConflictError(f"Boost is {boost.status}", boost_id=boost_id)
            return _metrics_record(await self._write_metrics(session, boost_id, metrics, now))

        return await self._run("save_boost_metrics", work)

    async def finalize_boost(
        self,
        boost_id: str,
        *,
        metrics: BoostMetrics,
        notification: NotificationRecord,
        now: datetime,
    ) -> bool:
        async def work(session: AsyncSession) -> bool:
            result = await session.execute(
                update(Boost)
                .where(
                    Boost.id == boost_id,
                    Boost.status == BoostStatus.ACTIVE.value,
                    Boost.finalized.is_(False),
                )
                .values(status=BoostStatus.EXPIRED.value, finalized=True)
                .execution_options(**_NO_SYNC)
            )
            if result.rowcount == 0:
                return False
            await self._write_metrics(session, boost_id, metrics, now)
            session.add(_notification_row(notification))
            await session.flush()
            return True

        return await self._run("finalize_boost", work)

    # --- Notifications ---

    async def add_notification(self, notification: NotificationRecord) -> NotificationRecord:
        async def work(session: AsyncSession) -> NotificationRecord:
            session.add(_notification_row(notification))
            await session.flush()
            return notification

        return await self._run("add_notification", work)

    async def list_notifications(
        self,
        user_id: str,
        *,
        unread_only: bool = False,
        limit: int = 20,
        offset: int = 0,
    ) -> list[NotificationRecord]:
        async def work(session: AsyncSession) -> list[NotificationRecord]:
            stmt = select(Notification).where(Notification.user_id == user_id)
            if unread_only:
                stmt = stmt.where(Notification.read.is_(False))
            result = await session.execute(
                stmt.order_by(Notification.created_at.desc()).offset(offset).limit(limit)
            )
            return [_notification_record(row) for row in result.scalars()]

        return await self._run("list_notifications", work)

    async def count_unread(self, user_id: str) -> int:
        async def work(session: AsyncSession) -> int:
            result = await session.execute(
                select(func.count())
                .select_from(Notification)
                .where(Notification.user_id == user_id, Notification.read.is_(False))
            )
            return result.scalar_one()

        return await self._run("count_unread", work)

    async def mark_notification_read(self, user_id: str, notification_id: str) -> bool:
        async def work(session: AsyncSession) -> bool:
            result = await session.execute(
                update(Notification)
                .where(Notification.id == notification_id, Notification.user_id == user_id)
                .values(read=True)
                .execution_options(**_NO_SYNC)
            )
            return result.rowcount > 0

        return await self._run("mark_notification_read", work)

    async def mark_all_notifications_read(self, user_id: str) -> int:
        async def work(session: AsyncSession) -> int:
            result = await session.execute(
                update(Notification)
                .where(Notification.user_id == user_id, Notification.read.is_(False))
                .values(read=True)
                .execution_options(**_NO_SYNC)
            )
            return result.rowcount

        return await self._run("mark_all_notifications_read", work)
