"""In-process store for tests and offline demos.

Same semantics as the SQL store. A single ``asyncio.Lock`` serializes every
operation, so each method is atomic with respect to other coroutines.
"""

from __future__ import annotations

import asyncio
from collections.abc import Sequence
from datetime import datetime

from clipt.boosts.types import BoostStatus, ContentType
from clipt.errors import ConflictError, InsufficientTokensError, NotFoundError, ValidationError
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


class InMemoryStore(ProgressStore):
    def __init__(self, clock: Clock = utc_now) -> None:
        self._clock = clock
        self._lock = asyncio.Lock()
        self.profiles: dict[str, ProfileRecord] = {}
        self.achievements: dict[str, AchievementDefinition] = {}
        self.progress: dict[tuple[str, str], AchievementProgressRecord] = {}
        self.content: dict[tuple[ContentType, str], ContentStats] = {}
        self.boosts: dict[str, BoostRecord] = {}
        self.boost_metrics: dict[str, BoostMetricsRecord] = {}
        self.notifications: dict[str, NotificationRecord] = {}
        self.token_transactions: list[TokenTransactionRecord] = []

    # --- Helpers ---

    def _profile(self, user_id: str) -> ProfileRecord:
        try:
            return self.profiles[user_id]
        except KeyError:
            raise NotFoundError("profile", user_id) from None

    def _boost(self, boost_id: str) -> BoostRecord:
        try:
            return self.boosts[boost_id]
        except KeyError:
            raise NotFoundError("boost", boost_id) from None

    def _update_profile(self, profile: ProfileRecord, **changes) -> ProfileRecord:
        updated = profile.model_copy(update={**changes, "updated_at": self._clock()})
        self.profiles[profile.id] = updated
        return updated

    def _progress_row(self, user_id: str, achievement_id: str, now: datetime) -> AchievementProgressRecord:
        if achievement_id not in self.achievements:
            raise NotFoundError("achievement", achievement_id)
        key = (user_id, achievement_id)
        row = self.progress.get(key)
        if row is None:
            self._profile(user_id)
            row = AchievementProgressRecord(
                user_id=user_id,
                achievement_id=achievement_id,
                current_value=0,
                created_at=now,
                updated_at=now,
            )
            self.progress[key] = row
        return row

    def _record_transaction(
        self,
        user_id: str,
        amount: int,
        kind: TokenTransactionType,
        description: str | None,
        reference_id: str | None,
        now: datetime,
    ) -> None:
        self.token_transactions.append(
            TokenTransactionRecord(
                id=len(self.token_transactions) + 1,
                user_id=user_id,
                amount=amount,
                type=kind,
                description=description,
                reference_id=reference_id,
                created_at=now,
            )
        )

    def put_content(self, stats: ContentStats) -> None:
        """Register a post or stream (content rows are owned elsewhere)."""
        if stats.content_id is None:
            raise ValidationError("content_id is required")
        self.content[(stats.content_type, stats.content_id)] = stats

    # --- Profiles ---

    async def get_profile(self, user_id: str) -> ProfileRecord:
        async with self._lock:
            return self._profile(user_id)

    async def ensure_profile(
        self,
        user_id: str,
        *,
        username: str | None = None,
        tokens: int = 0,
        follower_count: int = 0,
    ) -> ProfileRecord:
        async with self._lock:
            existing = self.profiles.get(user_id)
            if existing is not None:
                return existing
            now = self._clock()
            profile = ProfileRecord(
                id=user_id,
                username=username,
                xp=0,
                tokens=tokens,
                follower_count=follower_count,
                created_at=now,
                updated_at=now,
            )
            self.profiles[user_id] = profile
            return profile

    async def add_xp(self, user_id: str, amount: int) -> tuple[ProfileRecord, ProfileRecord]:
        async with self._lock:
            before = self._profile(user_id)
            return before, self._update_profile(before, xp=before.xp + amount)

    async def credit_tokens(
        self,
        user_id: str,
        amount: int,
        *,
        description: str | None = None,
        reference_id: str | None = None,
    ) -> ProfileRecord:
        async with self._lock:
            profile = self._profile(user_id)
            updated = self._update_profile(profile, tokens=profile.tokens + amount)
            self._record_transaction(
                user_id, amount, TokenTransactionType.CREDIT, description, reference_id, updated.updated_at
            )
            return updated

    async def debit_tokens(
        self,
        user_id: str,
        amount: int,
        *,
        description: str | None = None,
        reference_id: str | None = None,
    ) -> ProfileRecord:
        async with self._lock:
            updated = self._debit(user_id, amount)
            self._record_transaction(
                user_id, -amount, TokenTransactionType.SPEND, description, reference_id, updated.updated_at
            )
            return updated

    async def list_token_transactions(
        self,
        user_id: str,
        *,
        limit: int = 20,
        offset: int = 0,
    ) -> list[TokenTransactionRecord]:
        async with self._lock:
            rows = [t for t in reversed(self.token_transactions) if t.user_id == user_id]
            return rows[offset : offset + limit]

    def _debit(self, user_id: str, amount: int) -> ProfileRecord:
        profile = self._profile(user_id)
        if profile.tokens < amount:
            raise InsufficientTokensError(required=amount, balance=profile.tokens)
        return self._update_profile(profile, tokens=profile.tokens - amount)

    async def apply_prestige(
        self,
        user_id: str,
        *,
        min_xp: int,
        expected_prestige: int,
        unlock_theme: str | None,
        notification: NotificationRecord,
    ) -> ProfileRecord:
        async with self._lock:
            profile = self._profile(user_id)
            if profile.xp < min_xp:
                raise ValidationError("You need to reach level 30 before you can prestige")
            if profile.prestige != expected_prestige:
                raise ConflictError("Prestige already applied", user_id=user_id)
            themes = list(profile.unlocked_themes)
            if unlock_theme and unlock_theme not in themes:
                themes.append(unlock_theme)
            updated = self._update_profile(
                profile,
                xp=0,
                prestige=profile.prestige + 1,
                unlocked_themes=themes,
            )
            self.notifications[notification.id] = notification
            return updated

    # --- Achievements ---

    async def upsert_achievements(self, definitions: Sequence[AchievementDefinition]) -> int:
        async with self._lock:
            for definition in definitions:
                self.achievements[definition.id] = definition
            return len(definitions)

    async def list_achievements(self) -> list[AchievementDefinition]:
        async with self._lock:
            return sorted(self.achievements.values(), key=lambda d: (d.sort_order, d.id))

    async def get_achievement(self, achievement_id: str) -> AchievementDefinition:
        async with self._lock:
            try:
                return self.achievements[achievement_id]
            except KeyError:
                raise NotFoundError("achievement", achievement_id) from None

    async def get_progress(self, user_id: str, achievement_id: str) -> AchievementProgressRecord | None:
        async with self._lock:
            return self.progress.get((user_id, achievement_id))

    async def list_progress(self, user_id: str) -> list[AchievementProgressRecord]:
        async with self._lock:
            return [row for (uid, _), row in self.progress.items() if uid == user_id]

    async def ensure_progress_rows(self, user_id: str, achievement_ids: Sequence[str], now: datetime) -> int:
        async with self._lock:
            self._profile(user_id)
            created = 0
            for achievement_id in achievement_ids:
                if (user_id, achievement_id) not in self.progress:
                    self._progress_row(user_id, achievement_id, now)
                    created += 1
            return created

    async def raise_progress(
        self,
        user_id: str,
        achievement_id: str,
        value: int,
        cap: int,
        now: datetime,
    ) -> AchievementProgressRecord:
        async with self._lock:
            row = self._progress_row(user_id, achievement_id, now)
            target = min(max(row.current_value, value), cap)
            if target == row.current_value:
                return row
            row = row.model_copy(update={"current_value": target, "updated_at": now})
            self.progress[(user_id, achievement_id)] = row
            return row

    async def increment_progress(
        self,
        user_id: str,
        achievement_id: str,
        delta: int,
        cap: int,
        now: datetime,
    ) -> AchievementProgressRecord:
        async with self._lock:
            row = self._progress_row(user_id, achievement_id, now)
            target = min(row.current_value + delta, cap)
            if target <= row.current_value:
                return row
            row = row.model_copy(update={"current_value": target, "updated_at": now})
            self.progress[(user_id, achievement_id)] = row
            return row

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
        async with self._lock:
            row = self.progress.get((user_id, achievement_id))
            if row is None or row.completed or row.current_value < target_value:
                raise ConflictError(
                    "Achievement already completed or below target",
                    user_id=user_id,
                    achievement_id=achievement_id,
                )
            before = self._profile(user_id)
            self.progress[(user_id, achievement_id)] = row.model_copy(
                update={"completed": True, "completed_at": now, "updated_at": now}
            )
            after = self._update_profile(
                before,
                xp=before.xp + xp_reward,
                tokens=before.tokens + token_reward,
            )
            if token_reward > 0:
                self._record_transaction(
                    user_id,
                    token_reward,
                    TokenTransactionType.ACHIEVEMENT_REWARD,
                    f"Unlocked {self.achievements[achievement_id].name}",
                    achievement_id,
                    now,
                )
            self.notifications[notification.id] = notification
            return before, after

    # --- Content ---

    async def get_content_stats(self, content_id: str, content_type: ContentType) -> ContentStats | None:
        async with self._lock:
            return self.content.get((ContentType(content_type), content_id))

    # --- Boosts ---

    async def create_boost(
        self,
        boost: BoostRecord,
        baseline: ContentStats,
        metrics: BoostMetrics,
        notification: NotificationRecord,
    ) -> BoostRecord:
        async with self._lock:
            if boost.id in self.boosts:
                raise ConflictError("Boost already exists", boost_id=boost.id)
            self._debit(boost.user_id, boost.cost)
            self._record_transaction(
                boost.user_id,
                -boost.cost,
                TokenTransactionType.BOOST,
                f"Applied {boost.boost_type.value} boost",
                boost.id,
                boost.created_at,
            )
            self.boosts[boost.id] = boost
            self.boost_metrics[boost.id] = BoostMetricsRecord(
                boost_id=boost.id,
                baseline=baseline,
                metrics=metrics,
                updated_at=boost.created_at,
            )
            self.notifications[notification.id] = notification
            return boost

    async def get_boost(self, boost_id: str) -> BoostRecord:
        async with self._lock:
            return self._boost(boost_id)

    async def list_boosts(self, user_id: str, *, active_only: bool = False) -> list[BoostRecord]:
        async with self._lock:
            boosts = [
                b
                for b in self.boosts.values()
                if b.user_id == user_id and (not active_only or b.status == BoostStatus.ACTIVE)
            ]
            return sorted(boosts, key=lambda b: b.created_at, reverse=True)

    async def list_active_boosts_for_content(self, content_id: str) -> list[BoostRecord]:
        async with self._lock:
            return [
                b for b in self.boosts.values()
                if b.content_id == content_id and b.status == BoostStatus.ACTIVE
            ]

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
        async with self._lock:
            boost = self._boost(boost_id)
            if (
                boost.status != BoostStatus.ACTIVE
                or boost.expires_at <= now
                or boost.expires_at != previous_expires_at
            ):
                raise ConflictError("Boost is no longer active or was changed concurrently", boost_id=boost_id)
            self._debit(boost.user_id, cost)
            self._record_transaction(
                boost.user_id,
                -cost,
                TokenTransactionType.BOOST_EXTENSION,
                f"Extended {boost.boost_type.value} boost",
                boost_id,
                now,
            )
            updated = boost.model_copy(update={"expires_at": new_expires_at})
            self.boosts[boost_id] = updated
            self.notifications[notification.id] = notification
            return updated

    async def cancel_boost(self, boost_id: str, *, now: datetime) -> BoostRecord:
        async with self._lock:
            boost = self._boost(boost_id)
            if boost.status != BoostStatus.ACTIVE:
                raise ConflictError(f"Boost is {boost.status.value}", boost_id=boost_id)
            if boost.expires_at <= now:
                raise ConflictError("Boost has already expired", boost_id=boost_id)
            updated = boost.model_copy(update={"status": BoostStatus.CANCELLED})
            self.boosts[boost_id] = updated
            return updated

    async def due_boosts(self, now: datetime, limit: int) -> list[BoostRecord]:
        async with self._lock:
            due = [
                b for b in self.boosts.values()
                if b.status == BoostStatus.ACTIVE and not b.finalized and b.expires_at <= now
            ]
            return sorted(due, key=lambda b: b.expires_at)[:limit]

    async def get_boost_metrics(self, boost_id: str) -> BoostMetricsRecord | None:
        async with self._lock:
            return self.boost_metrics.get(boost_id)

    async def save_boost_metrics(self, boost_id: str, metrics: BoostMetrics, now: datetime) -> BoostMetricsRecord:
        async with self._lock:
            boost = self._boost(boost_id)
            if boost.status != BoostStatus.ACTIVE or boost.finalized:
                raise ConflictError(f"Boost is {boost.status.value}", boost_id=boost_id)
            existing = self.boost_metrics.get(boost_id)
            baseline = existing.baseline if existing else ContentStats()
            record = BoostMetricsRecord(boost_id=boost_id, baseline=baseline, metrics=metrics, updated_at=now)
            self.boost_metrics[boost_id] = record
            return record

    async def finalize_boost(
        self,
        boost_id: str,
        *,
        metrics: BoostMetrics,
        notification: NotificationRecord,
        now: datetime,
    ) -> bool:
        async with self._lock:
            boost = self._boost(boost_id)
            if boost.status != BoostStatus.ACTIVE or boost.finalized:
                return False
            self.boosts[boost_id] = boost.model_copy(update={"status": BoostStatus.EXPIRED, "finalized": True})
            existing = self.boost_metrics.get(boost_id)
            self.boost_metrics[boost_id] = BoostMetricsRecord(
                boost_id=boost_id,
                baseline=existing.baseline if existing else ContentStats(),
                metrics=metrics,
                updated_at=now,
            )
            self.notifications[notification.id] = notification
            return True

    # --- Notifications ---

    async def add_notification(self, notification: NotificationRecord) -> NotificationRecord:
        async with self._lock:
            self.notifications[notification.id] = notification
            return notification

    async def list_notifications(
        self,
        user_id: str,
        *,
        unread_only: bool = False,
        limit: int = 20,
        offset: int = 0,
    ) -> list[NotificationRecord]:
        async with self._lock:
            rows = [
                n for n in self.notifications.values()
                if n.user_id == user_id and (not unread_only or not n.read)
            ]
            rows.sort(key=lambda n: n.created_at, reverse=True)
            return rows[offset : offset + limit]

    async def count_unread(self, user_id: str) -> int:
        async with self._lock:
            return sum(1 for n in self.notifications.values() if n.user_id == user_id and not n.read)

    async def mark_notification_read(self, user_id: str, notification_id: str) -> bool:
        async with self._lock:
            notification = self.notifications.get(notification_id)
            if notification is None or notification.user_id != user_id:
                return False
            self.notifications[notification_id] = notification.model_copy(update={"read": True})
            return True

    async def mark_all_notifications_read(self, user_id: str) -> int:
        async with self._lock:
            count = 0
            for notification_id, notification in list(self.notifications.items()):
                if notification.user_id == user_id and not notification.read:
                    self.notifications[notification_id] = notification.model_copy(update={"read": True})
                    count += 1
            return count
