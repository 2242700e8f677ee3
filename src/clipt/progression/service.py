"""XP, token and prestige operations on a user's profile.

All writes go through single store operations:
1. ``add_xp`` increments atomically and returns the before/after profile
2. Level changes are derived from the XP delta, never read from a cached column
3. Token debits are conditional and never go below zero; every balance
   change is recorded in the token ledger in the same transaction
4. Prestige is conditional on reaching the level cap
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from clipt.errors import StoreError, ValidationError
from clipt.notifications.kinds import LevelUpPayload, NotificationKind, PrestigePayload
from clipt.notifications.service import Notifier
from clipt.progression.leveling import MAX_LEVEL, MAX_LEVEL_XP, compute_level, level_from_xp
from clipt.records import NotificationRecord, ProfileRecord, TokenTransactionRecord
from clipt.store.base import ProgressStore

logger = logging.getLogger(__name__)

MILESTONE_EVERY = 5


@dataclass(frozen=True)
class UserProgress:
    user_id: str
    xp: int
    level: int
    progress: int
    xp_into_level: int
    xp_to_next_level: int
    is_max_level: bool
    prestige: int
    tokens: int
    unlocked_themes: list[str] = field(default_factory=list)

    @property
    def can_prestige(self) -> bool:
        return self.level >= MAX_LEVEL

    @classmethod
    def from_profile(cls, profile: ProfileRecord) -> UserProgress:
        info = compute_level(profile.xp)
        return cls(
            user_id=profile.id,
            xp=profile.xp,
            level=info["level"],
            progress=info["progress"],
            xp_into_level=info["xp_into_level"],
            xp_to_next_level=info["xp_to_next_level"],
            is_max_level=info["is_max_level"],
            prestige=profile.prestige,
            tokens=profile.tokens,
            unlocked_themes=list(profile.unlocked_themes),
        )


@dataclass(frozen=True)
class XpAward:
    user_id: str
    amount: int
    reason: str
    old_xp: int
    new_xp: int
    old_level: int
    new_level: int

    @property
    def leveled_up(self) -> bool:
        return self.new_level > self.old_level


def _require_positive(amount: int, what: str) -> None:
    if amount <= 0:
        raise ValidationError(f"{what} amount must be positive, got {amount}", amount=amount)


def prestige_theme(prestige: int) -> str | None:
    """Theme unlocked on reaching ``prestige``; every second prestige unlocks one."""
    if prestige > 0 and prestige % 2 == 0:
        return f"prestige_theme_{prestige}"
    return None


class ProgressionService:
    def __init__(self, store: ProgressStore, notifier: Notifier) -> None:
        self.store = store
        self.notifier = notifier

    async def ensure_profile(
        self,
        user_id: str,
        *,
        username: str | None = None,
        tokens: int = 0,
        follower_count: int = 0,
    ) -> UserProgress:
        """Create the profile if missing (account-creation hook)."""
        profile = await self.store.ensure_profile(
            user_id, username=username, tokens=tokens, follower_count=follower_count
        )
        return UserProgress.from_profile(profile)

    async def get_progress(self, user_id: str) -> UserProgress:
        return UserProgress.from_profile(await self.store.get_profile(user_id))

    async def award_xp(self, user_id: str, amount: int, reason: str) -> XpAward:
        """Add XP and announce a level-up if the derived level increased."""
        _require_positive(amount, "XP")
        before, after = await self.store.add_xp(user_id, amount)
        award = XpAward(
            user_id=user_id,
            amount=amount,
            reason=reason,
            old_xp=before.xp,
            new_xp=after.xp,
            old_level=before.level,
            new_level=after.level,
        )
        logger.info(
            "Awarded %d XP to %s (%s): level %d -> %d",
            amount, user_id, reason, award.old_level, award.new_level,
        )
        await self.announce_level_change(user_id, before.xp, after.xp)
        return award

    async def award_tokens(self, user_id: str, amount: int, reason: str) -> int:
        """Credit tokens. Returns the new balance."""
        _require_positive(amount, "Token")
        profile = await self.store.credit_tokens(user_id, amount, description=reason)
        logger.info("Awarded %d tokens to %s (%s)", amount, user_id, reason)
        return profile.tokens

    async def spend_tokens(self, user_id: str, amount: int, purpose: str) -> int:
        """Debit tokens. Raises InsufficientTokensError without touching the balance."""
        _require_positive(amount, "Token")
        profile = await self.store.debit_tokens(user_id, amount, description=purpose)
        logger.info("User %s spent %d tokens on %s", user_id, amount, purpose)
        return profile.tokens

    async def token_history(self, user_id: str, limit: int = 20, offset: int = 0) -> list[TokenTransactionRecord]:
        """Ledger of token credits and debits, newest first."""
        await self.store.get_profile(user_id)
        return await self.store.list_token_transactions(user_id, limit=limit, offset=offset)

    async def apply_prestige(self, user_id: str) -> UserProgress:
        """Reset XP at the level cap and bump prestige."""
        profile = await self.store.get_profile(user_id)
        if profile.level < MAX_LEVEL:
            raise ValidationError(
                f"You need to reach level {MAX_LEVEL} before you can prestige",
                level=profile.level,
            )
        new_prestige = profile.prestige + 1
        theme = prestige_theme(new_prestige)
        notification = self.notifier.build(
            user_id,
            NotificationKind.PRESTIGE,
            PrestigePayload(prestige=new_prestige, unlocked_theme=theme),
        )
        updated = await self.store.apply_prestige(
            user_id,
            min_xp=MAX_LEVEL_XP,
            expected_prestige=profile.prestige,
            unlock_theme=theme,
            notification=notification,
        )
        logger.info("User %s reached prestige %d", user_id, updated.prestige)
        await self.notifier.publish(notification)
        return UserProgress.from_profile(updated)

    async def announce_level_change(self, user_id: str, old_xp: int, new_xp: int) -> NotificationRecord | None:
        """Emit a level_up notification if ``new_xp`` crosses into a higher level.

        Called after the XP write has committed. A failure to record the
        notification is logged and does not undo the XP.
        """
        old_level = level_from_xp(old_xp)
        new_level = level_from_xp(new_xp)
        if new_level <= old_level:
            return None
        payload = LevelUpPayload(
            old_level=old_level,
            new_level=new_level,
            milestone=any(n % MILESTONE_EVERY == 0 for n in range(old_level + 1, new_level + 1)),
        )
        try:
            return await self.notifier.emit(user_id, NotificationKind.LEVEL_UP, payload)
        except StoreError:
            logger.warning("Failed to record level-up notification for %s", user_id, exc_info=True)
            return None
