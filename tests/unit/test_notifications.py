"""Notification building, delivery and inbox tests."""

from __future__ import annotations

import json

import pytest

from clipt.errors import NotFoundError, ValidationError
from clipt.notifications.kinds import (
    AchievementUnlockedPayload,
    BoostResultPayload,
    LevelUpPayload,
    NotificationKind,
    PrestigePayload,
    build_notification,
)
from clipt.notifications.service import Notifier, user_channel


class TestBuildNotification:
    """Payload checking and rendering."""

    def test_level_up(self, clock):
        note = build_notification("alice", NotificationKind.LEVEL_UP, LevelUpPayload(old_level=1, new_level=2), clock())
        assert note.type == "level_up"
        assert note.title == "Level Up!"
        assert note.message == "You're now level 2."
        assert note.read is False
        assert note.created_at == clock()

    def test_prestige_with_theme(self, clock):
        note = build_notification(
            "alice", "prestige", PrestigePayload(prestige=2, unlocked_theme="prestige_theme_2"), clock()
        )
        assert note.title == "Prestige 2 Achieved!"
        assert "prestige_theme_2" in note.message

    def test_achievement_without_tokens(self, clock):
        payload = AchievementUnlockedPayload(achievement_id="dead_space", name="Dead Space", xp_reward=25, token_reward=0)
        note = build_notification("alice", NotificationKind.ACHIEVEMENT_UNLOCKED, payload, clock())
        assert note.message == "Dead Space (+25 XP)"
        assert note.reference_type == "achievement"

    def test_metadata_is_json_payload(self, clock):
        payload = BoostResultPayload(
            boost_id="b1",
            boost_type="king",
            content_id="s1",
            summary="done",
            views_from_boost=10,
            reached_users=20,
        )
        note = build_notification("alice", NotificationKind.BOOST_RESULT, payload, clock())
        assert note.title == "I'm the King Now Results"
        assert note.metadata["boost_type"] == "king"
        json.dumps(note.metadata)

    def test_mismatched_payload(self, clock):
        with pytest.raises(ValidationError):
            build_notification("alice", NotificationKind.PRESTIGE, LevelUpPayload(old_level=1, new_level=2), clock())

    def test_unknown_kind(self, clock):
        with pytest.raises(ValidationError):
            build_notification("alice", "friend_request", LevelUpPayload(old_level=1, new_level=2), clock())

    def test_unique_ids(self, clock):
        payload = LevelUpPayload(old_level=1, new_level=2)
        first = build_notification("alice", NotificationKind.LEVEL_UP, payload, clock())
        second = build_notification("alice", NotificationKind.LEVEL_UP, payload, clock())
        assert first.id != second.id


class TestNotifier:
    """Persistence, push and the inbox."""

    @pytest.mark.asyncio
    async def test_emit_persists_and_publishes(self, notifier, store, redis):
        note = await notifier.emit("alice", NotificationKind.LEVEL_UP, LevelUpPayload(old_level=0, new_level=1))
        assert store.notifications[note.id] == note
        channel, message = redis.published[0]
        assert channel == user_channel("alice") == "ws:user:alice"
        body = json.loads(message)
        assert body["event"] == "notification"
        assert body["data"]["id"] == note.id
        assert body["data"]["read"] is False

    @pytest.mark.asyncio
    async def test_emit_without_redis(self, store, clock):
        notifier = Notifier(store, redis=None, clock=clock)
        note = await notifier.emit("alice", NotificationKind.LEVEL_UP, LevelUpPayload(old_level=0, new_level=1))
        assert note.id in store.notifications

    @pytest.mark.asyncio
    async def test_list_newest_first_with_unread_count(self, notifier, clock):
        for level in range(1, 4):
            await notifier.emit("alice", NotificationKind.LEVEL_UP, LevelUpPayload(old_level=level - 1, new_level=level))
            clock.advance(minutes=1)
        items, unread = await notifier.list_for_user("alice")
        assert unread == 3
        assert [n.metadata["new_level"] for n in items] == [3, 2, 1]

    @pytest.mark.asyncio
    async def test_pagination(self, notifier, clock):
        for level in range(1, 6):
            await notifier.emit("alice", NotificationKind.LEVEL_UP, LevelUpPayload(old_level=level - 1, new_level=level))
            clock.advance(seconds=1)
        page_two, _ = await notifier.list_for_user("alice", page=2, per_page=2)
        assert [n.metadata["new_level"] for n in page_two] == [3, 2]

    @pytest.mark.asyncio
    async def test_mark_read(self, notifier):
        note = await notifier.emit("alice", NotificationKind.LEVEL_UP, LevelUpPayload(old_level=0, new_level=1))
        await notifier.mark_read("alice", note.id)
        items, unread = await notifier.list_for_user("alice", unread_only=True)
        assert items == []
        assert unread == 0

    @pytest.mark.asyncio
    async def test_mark_read_of_other_user(self, notifier):
        note = await notifier.emit("alice", NotificationKind.LEVEL_UP, LevelUpPayload(old_level=0, new_level=1))
        with pytest.raises(NotFoundError):
            await notifier.mark_read("bob", note.id)

    @pytest.mark.asyncio
    async def test_mark_all_read(self, notifier):
        for level in (1, 2):
            await notifier.emit("alice", NotificationKind.LEVEL_UP, LevelUpPayload(old_level=level - 1, new_level=level))
        assert await notifier.mark_all_read("alice") == 2
        assert await notifier.mark_all_read("alice") == 0
