"""Persistence interface used by every service.

Each method is one store operation: it runs in a single transaction and either
fully applies or leaves nothing behind. Operations that change more than one
row (token debit plus boost insert, completion plus reward, ...) are exposed as
one method so the invariants hold without cooperation from the caller.

Errors:
    NotFoundError   referenced row does not exist
    ConflictError   a conditional write's precondition no longer holds
    InsufficientTokensError   a debit would go below zero
    StoreError      the backend failed or timed out
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence
from datetime import datetime

from clipt.boosts.types import ContentType
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
)


class ProgressStore(ABC):
    """Async store for profiles, achievements, boosts and notifications."""

    # --- Lifecycle ---

    async def ping(self) -> None:
        """Raise StoreError if the backend is unreachable."""

    async def close(self) -> None:
        """Release backend resources."""

    # --- Profiles ---

    @abstractmethod
    async def get_profile(self, user_id: str) -> ProfileRecord: ...

    @abstractmethod
    async def ensure_profile(
        self,
        user_id: str,
        *,
        username: str | None = None,
        tokens: int = 0,
        follower_count: int = 0,
    ) -> ProfileRecord:
        """Return the profile, creating it with the given starting values if missing."""

    @abstractmethod
    async def add_xp(self, user_id: str, amount: int) -> tuple[ProfileRecord, ProfileRecord]:
        """Atomically add ``amount`` XP. Returns (before, after)."""

    @abstractmethod
    async def credit_tokens(
        self,
        user_id: str,
        amount: int,
        *,
        description: str | None = None,
        reference_id: str | None = None,
    ) -> ProfileRecord:
        """Credit tokens and append a ``credit`` ledger entry."""

    @abstractmethod
    async def debit_tokens(
        self,
        user_id: str,
        amount: int,
        *,
        description: str | None = None,
        reference_id: str | None = None,
    ) -> ProfileRecord:
        """Conditional debit plus a ``spend`` ledger entry.

        Raises InsufficientTokensError with the balance unchanged and no entry.
        """

    @abstractmethod
    async def list_token_transactions(
        self,
        user_id: str,
        *,
        limit: int = 20,
        offset: int = 0,
    ) -> list[TokenTransactionRecord]:
        """Ledger entries of a user, newest first."""

    @abstractmethod
    async def apply_prestige(
        self,
        user_id: str,
        *,
        min_xp: int,
        expected_prestige: int,
        unlock_theme: str | None,
        notification: NotificationRecord,
    ) -> ProfileRecord:
        """Reset xp, bump prestige and record the notification in one transaction.

        The write is conditional on ``xp >= min_xp`` and on the prestige count
        still being ``expected_prestige``. Raises ValidationError when the xp
        condition fails and ConflictError when a concurrent prestige won.
        """

    # --- Achievements ---

    @abstractmethod
    async def upsert_achievements(self, definitions: Sequence[AchievementDefinition]) -> int:
        """Insert or update definitions by id. Returns the number written."""

    @abstractmethod
    async def list_achievements(self) -> list[AchievementDefinition]: ...

    @abstractmethod
    async def get_achievement(self, achievement_id: str) -> AchievementDefinition: ...

    @abstractmethod
    async def get_progress(self, user_id: str, achievement_id: str) -> AchievementProgressRecord | None: ...

    @abstractmethod
    async def list_progress(self, user_id: str) -> list[AchievementProgressRecord]: ...

    @abstractmethod
    async def ensure_progress_rows(self, user_id: str, achievement_ids: Sequence[str], now: datetime) -> int:
        """Create zero rows for any missing achievements. Returns rows created."""

    @abstractmethod
    async def raise_progress(
        self,
        user_id: str,
        achievement_id: str,
        value: int,
        cap: int,
        now: datetime,
    ) -> AchievementProgressRecord:
        """Fetch-or-create the row and set ``current = min(max(current, value), cap)``."""

    @abstractmethod
    async def increment_progress(
        self,
        user_id: str,
        achievement_id: str,
        delta: int,
        cap: int,
        now: datetime,
    ) -> AchievementProgressRecord:
        """Fetch-or-create the row and atomically set ``current = min(current + delta, cap)``."""

    @abstractmethod
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
        """Flip ``completed`` false -> true and grant the reward in one transaction.

        Conditional on the row being incomplete with ``current_value >=
        target_value``; raises ConflictError otherwise. Returns the profile
        (before, after) the reward. A positive ``token_reward`` also appends an
        ``achievement_reward`` ledger entry.
        """

    # --- Content ---

    @abstractmethod
    async def get_content_stats(self, content_id: str, content_type: ContentType) -> ContentStats | None: ...

    # --- Boosts ---

    @abstractmethod
    async def create_boost(
        self,
        boost: BoostRecord,
        baseline: ContentStats,
        metrics: BoostMetrics,
        notification: NotificationRecord,
    ) -> BoostRecord:
        """Debit ``boost.cost`` and insert the boost, its metrics, a ``boost``
        ledger entry and the notification."""

    @abstractmethod
    async def get_boost(self, boost_id: str) -> BoostRecord: ...

    @abstractmethod
    async def list_boosts(self, user_id: str, *, active_only: bool = False) -> list[BoostRecord]:
        """Boosts of a user, newest first."""

    @abstractmethod
    async def list_active_boosts_for_content(self, content_id: str) -> list[BoostRecord]: ...

    @abstractmethod
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
        """Push ``expires_at`` and debit the owner in one transaction, with a
        ``boost_extension`` ledger entry.

        Conditional on the boost being active, unexpired at ``now`` and still
        expiring at ``previous_expires_at``; raises ConflictError otherwise.
        """

    @abstractmethod
    async def cancel_boost(self, boost_id: str, *, now: datetime) -> BoostRecord:
        """Conditional ``active -> cancelled``.

        Raises ConflictError if the boost is not active or its window closed
        before ``now``; an expired boost is left for finalization.
        """

    @abstractmethod
    async def due_boosts(self, now: datetime, limit: int) -> list[BoostRecord]:
        """Active, unfinalized boosts with ``expires_at <= now``, oldest first."""

    @abstractmethod
    async def get_boost_metrics(self, boost_id: str) -> BoostMetricsRecord | None: ...

    @abstractmethod
    async def save_boost_metrics(self, boost_id: str, metrics: BoostMetrics, now: datetime) -> BoostMetricsRecord:
        """Replace the latest snapshot of an active, unfinalized boost.

        Raises ConflictError once the boost is cancelled or finalized, so the
        final snapshot is never overwritten.
        """

    @abstractmethod
    async def finalize_boost(
        self,
        boost_id: str,
        *,
        metrics: BoostMetrics,
        notification: NotificationRecord,
        now: datetime,
    ) -> bool:
        """Mark the boost expired and finalized and record the result notification.

        Returns False, writing nothing, when the boost was already finalized
        or is no longer active.
        """

    # --- Notifications ---

    @abstractmethod
    async def add_notification(self, notification: NotificationRecord) -> NotificationRecord: ...

    @abstractmethod
    async def list_notifications(
        self,
        user_id: str,
        *,
        unread_only: bool = False,
        limit: int = 20,
        offset: int = 0,
    ) -> list[NotificationRecord]:
        """Newest first."""

    @abstractmethod
    async def count_unread(self, user_id: str) -> int: ...

    @abstractmethod
    async def mark_notification_read(self, user_id: str, notification_id: str) -> bool: ...

    @abstractmethod
    async def mark_all_notifications_read(self, user_id: str) -> int: ...
