"""Progression service tests: XP awards, tokens and prestige."""

from __future__ import annotations

import json

import pytest

from clipt.errors import ConflictError, InsufficientTokensError, NotFoundError, ValidationError
from clipt.progression.leveling import MAX_LEVEL, MAX_LEVEL_XP
from clipt.progression.service import UserProgress, prestige_theme


def _notifications(store, user_id, kind):
    return [n for n in store.notifications.values() if n.user_id == user_id and n.type == kind]


class TestAwardXp:
    """XP awards and level-up notifications."""

    @pytest.mark.asyncio
    async def test_award_without_level_change(self, progression, store):
        award = await progression.award_xp("alice", 50, "daily_login")
        assert award.old_xp == 0
        assert award.new_xp == 50
        assert award.leveled_up is False
        assert _notifications(store, "alice", "level_up") == []

    @pytest.mark.asyncio
    async def test_level_up_emits_notification(self, progression, store, redis):
        award = await progression.award_xp("alice", 260, "clip_upload")
        assert award.old_level == 0
        assert award.new_level == 2
        assert award.leveled_up is True

        [notification] = _notifications(store, "alice", "level_up")
        assert notification.title == "Level Up!"
        assert notification.metadata == {"old_level": 0, "new_level": 2, "milestone": False}

        channel, message = redis.published[-1]
        assert channel == "ws:user:alice"
        assert json.loads(message)["data"]["type"] == "level_up"

    @pytest.mark.asyncio
    async def test_milestone_level(self, progression, store):
        """Crossing a multiple of five sends the milestone variant."""
        await progression.award_xp("alice", 1000, "bulk")  # exactly level 5
        [notification] = _notifications(store, "alice", "level_up")
        assert notification.title == "Reached Level 5!"
        assert notification.metadata["milestone"] is True

    @pytest.mark.asyncio
    async def test_level_persisted_matches_xp(self, progression, store):
        await progression.award_xp("alice", 450, "test")
        profile = await store.get_profile("alice")
        assert profile.level == 3

    @pytest.mark.asyncio
    @pytest.mark.parametrize("amount", [0, -5])
    async def test_non_positive_rejected(self, progression, store, amount):
        with pytest.raises(ValidationError):
            await progression.award_xp("alice", amount, "bad")
        assert (await store.get_profile("alice")).xp == 0

    @pytest.mark.asyncio
    async def test_unknown_user(self, progression):
        with pytest.raises(NotFoundError):
            await progression.award_xp("nobody", 10, "test")

    @pytest.mark.asyncio
    async def test_redis_failure_does_not_fail_award(self, progression, notifier, store):
        notifier.redis.fail = True
        award = await progression.award_xp("alice", 300, "test")
        assert award.leveled_up is True
        assert len(_notifications(store, "alice", "level_up")) == 1


class TestTokens:
    """Token credits and debits."""

    @pytest.mark.asyncio
    async def test_award_tokens(self, progression):
        balance = await progression.award_tokens("bob", 25, "gift")
        assert balance == 25

    @pytest.mark.asyncio
    async def test_spend_tokens(self, progression):
        balance = await progression.spend_tokens("alice", 30, "theme")
        assert balance == 70

    @pytest.mark.asyncio
    async def test_spend_more_than_balance(self, progression, store):
        """Insufficient funds leave the balance unchanged."""
        with pytest.raises(InsufficientTokensError) as exc_info:
            await progression.spend_tokens("alice", 101, "theme")
        assert exc_info.value.required == 101
        assert exc_info.value.balance == 100
        assert (await store.get_profile("alice")).tokens == 100

    @pytest.mark.asyncio
    async def test_spend_exact_balance(self, progression):
        assert await progression.spend_tokens("alice", 100, "everything") == 0

    @pytest.mark.asyncio
    async def test_negative_amount_rejected(self, progression):
        with pytest.raises(ValidationError):
            await progression.spend_tokens("alice", -1, "refund")


class TestPrestige:
    """Prestige at the level cap."""

    @pytest.mark.asyncio
    async def test_below_cap_rejected(self, progression, store):
        await progression.award_xp("alice", MAX_LEVEL_XP - 1, "grind")
        with pytest.raises(ValidationError):
            await progression.apply_prestige("alice")
        profile = await store.get_profile("alice")
        assert profile.prestige == 0
        assert profile.xp == MAX_LEVEL_XP - 1

    @pytest.mark.asyncio
    async def test_prestige_resets_xp(self, progression, store):
        await progression.award_xp("alice", MAX_LEVEL_XP, "grind")
        progress = await progression.apply_prestige("alice")
        assert progress.prestige == 1
        assert progress.xp == 0
        assert progress.level == 0
        assert progress.unlocked_themes == []

        [notification] = _notifications(store, "alice", "prestige")
        assert notification.title == "Prestige 1 Achieved!"

    @pytest.mark.asyncio
    async def test_second_prestige_unlocks_theme(self, progression):
        await progression.award_xp("alice", MAX_LEVEL_XP, "grind")
        await progression.apply_prestige("alice")
        await progression.award_xp("alice", MAX_LEVEL_XP, "grind again")
        progress = await progression.apply_prestige("alice")
        assert progress.prestige == 2
        assert progress.unlocked_themes == ["prestige_theme_2"]

    @pytest.mark.asyncio
    async def test_stale_prestige_conflicts(self, store, notifier):
        """A prestige guarded by an outdated count is rejected by the store."""
        from clipt.notifications.kinds import NotificationKind, PrestigePayload

        await store.add_xp("alice", MAX_LEVEL_XP)
        notification = notifier.build("alice", NotificationKind.PRESTIGE, PrestigePayload(prestige=1))
        await store.apply_prestige(
            "alice", min_xp=MAX_LEVEL_XP, expected_prestige=0, unlock_theme=None, notification=notification
        )
        await store.add_xp("alice", MAX_LEVEL_XP)
        with pytest.raises(ConflictError):
            await store.apply_prestige(
                "alice", min_xp=MAX_LEVEL_XP, expected_prestige=0, unlock_theme=None, notification=notification
            )

    def test_prestige_theme(self):
        assert prestige_theme(1) is None
        assert prestige_theme(2) == "prestige_theme_2"
        assert prestige_theme(3) is None
        assert prestige_theme(4) == "prestige_theme_4"


class TestUserProgress:
    """Progress view built from a profile."""

    @pytest.mark.asyncio
    async def test_from_profile(self, progression):
        await progression.award_xp("alice", 249, "test")
        progress = await progression.get_progress("alice")
        assert isinstance(progress, UserProgress)
        assert progress.level == 1
        assert progress.progress == 99
        assert progress.xp_to_next_level == 1
        assert progress.can_prestige is False

    @pytest.mark.asyncio
    async def test_can_prestige_at_cap(self, progression):
        await progression.award_xp("alice", MAX_LEVEL_XP, "test")
        progress = await progression.get_progress("alice")
        assert progress.level == MAX_LEVEL
        assert progress.is_max_level is True
        assert progress.can_prestige is True

    @pytest.mark.asyncio
    async def test_ensure_profile_is_idempotent(self, progression):
        first = await progression.ensure_profile("carol", username="carol", tokens=10)
        second = await progression.ensure_profile("carol", tokens=999)
        assert first.tokens == 10
        assert second.tokens == 10
