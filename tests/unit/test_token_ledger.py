"""Token ledger: one entry per balance change, none when a debit is refused."""

from __future__ import annotations

import pytest

from clipt.boosts.types import ContentType
from clipt.errors import InsufficientTokensError, NotFoundError
from clipt.records import ContentStats, TokenTransactionType


def _entries(store, user_id):
    return [t for t in store.token_transactions if t.user_id == user_id]


@pytest.fixture
def post(store):
    store.put_content(ContentStats(content_id="p1", content_type=ContentType.POST, title="Epic Clutch", views=100))
    return "p1"


class TestProfileTokens:
    """Direct credits and spends."""

    @pytest.mark.asyncio
    async def test_credit_recorded(self, progression, store):
        await progression.award_tokens("alice", 25, "daily login")
        [entry] = _entries(store, "alice")
        assert entry.type == TokenTransactionType.CREDIT
        assert entry.amount == 25
        assert entry.description == "daily login"

    @pytest.mark.asyncio
    async def test_spend_recorded_as_negative(self, progression, store):
        await progression.spend_tokens("alice", 30, "profile frame")
        [entry] = _entries(store, "alice")
        assert entry.type == TokenTransactionType.SPEND
        assert entry.amount == -30
        assert entry.description == "profile frame"

    @pytest.mark.asyncio
    async def test_refused_spend_not_recorded(self, progression, store):
        with pytest.raises(InsufficientTokensError):
            await progression.spend_tokens("bob", 5, "profile frame")
        assert _entries(store, "bob") == []

    @pytest.mark.asyncio
    async def test_history_newest_first(self, progression):
        await progression.award_tokens("alice", 10, "first")
        await progression.spend_tokens("alice", 5, "second")
        history = await progression.token_history("alice")
        assert [t.description for t in history] == ["second", "first"]
        assert sum(t.amount for t in history) == 5

    @pytest.mark.asyncio
    async def test_history_paging(self, progression):
        for n in range(3):
            await progression.award_tokens("alice", 1, f"grant {n}")
        page = await progression.token_history("alice", limit=1, offset=1)
        assert [t.description for t in page] == ["grant 1"]

    @pytest.mark.asyncio
    async def test_history_unknown_user(self, progression):
        with pytest.raises(NotFoundError):
            await progression.token_history("nobody")


class TestBoostTokens:
    """Boost purchases and extensions."""

    @pytest.mark.asyncio
    async def test_apply_recorded(self, boosts, store, post):
        boost = await boosts.apply_boost("alice", post, "post", "squad_blast")
        [entry] = _entries(store, "alice")
        assert entry.type == TokenTransactionType.BOOST
        assert entry.amount == -40
        assert entry.reference_id == boost.id
        assert entry.description == "Applied squad_blast boost"

    @pytest.mark.asyncio
    async def test_refused_apply_not_recorded(self, boosts, store, post):
        with pytest.raises(InsufficientTokensError):
            await boosts.apply_boost("bob", post, "post", "squad_blast")
        assert _entries(store, "bob") == []

    @pytest.mark.asyncio
    async def test_extension_recorded(self, boosts, store, post):
        boost = await boosts.apply_boost("alice", post, "post", "squad_blast")
        await boosts.extend_boost(boost.id, "alice")
        entries = _entries(store, "alice")
        assert [e.type for e in entries] == [TokenTransactionType.BOOST, TokenTransactionType.BOOST_EXTENSION]
        assert entries[1].amount == -40
        assert entries[1].reference_id == boost.id

        with pytest.raises(InsufficientTokensError):
            await boosts.extend_boost(boost.id, "alice")
        assert len(_entries(store, "alice")) == 2

    @pytest.mark.asyncio
    async def test_balance_matches_ledger(self, boosts, progression, store, post):
        boost = await boosts.apply_boost("alice", post, "post", "chain_reaction")
        await boosts.cancel_boost(boost.id, "alice")
        await progression.award_tokens("alice", 15, "event")
        profile = await store.get_profile("alice")
        assert profile.tokens == 100 + sum(e.amount for e in _entries(store, "alice"))


class TestAchievementTokens:
    """Achievement token rewards."""

    @pytest.mark.asyncio
    async def test_reward_recorded_once(self, achievements, store):
        await achievements.update_progress("alice", "trophy_hunter", 5)
        await achievements.update_progress("alice", "trophy_hunter", 5)
        [entry] = _entries(store, "alice")
        assert entry.type == TokenTransactionType.ACHIEVEMENT_REWARD
        assert entry.amount == 10
        assert entry.reference_id == "trophy_hunter"
        assert entry.description == "Unlocked Trophy Hunter"

    @pytest.mark.asyncio
    async def test_xp_only_reward_not_recorded(self, achievements, store):
        result = await achievements.update_progress("alice", "the_long_dark", 2)
        assert result.reward_granted is True
        assert _entries(store, "alice") == []
