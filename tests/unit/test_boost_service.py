"""Boost lifecycle tests: apply, extend, cancel, analytics and finalization."""

from __future__ import annotations

import asyncio
from datetime import timedelta

import pytest

from clipt.boosts.types import BoostStatus, BoostType, ContentType
from clipt.errors import ConflictError, InsufficientTokensError, NotFoundError, ValidationError
from clipt.notifications.kinds import BoostExtendedPayload, NotificationKind
from clipt.records import ContentStats


def _notes(store, kind):
    return [n for n in store.notifications.values() if n.type == kind]


@pytest.fixture
def content(store):
    store.put_content(
        ContentStats(content_id="p1", content_type=ContentType.POST, user_id="alice", title="Epic Clutch", views=100)
    )
    store.put_content(
        ContentStats(
            content_id="s1", content_type=ContentType.STREAM, user_id="alice", title="Late Night Ranked", viewers=30
        )
    )
    return store


class TestApplyBoost:
    """Starting a boost debits tokens and records everything together."""

    @pytest.mark.asyncio
    async def test_apply_squad_blast(self, boosts, content, clock):
        boost = await boosts.apply_boost("alice", "p1", "post", "squad_blast")
        assert boost.status == BoostStatus.ACTIVE
        assert boost.cost == 40
        assert boost.expires_at == clock.now + timedelta(hours=24)

        assert (await content.get_profile("alice")).tokens == 60
        assert boost.id in content.boost_metrics
        [applied] = _notes(content, "boost_applied")
        assert applied.title == "Squad Blast Applied"
        assert applied.reference_id == "p1"
        assert "Epic Clutch" in applied.message

    @pytest.mark.asyncio
    async def test_stream_only_boost_on_post(self, boosts, content):
        with pytest.raises(ValidationError):
            await boosts.apply_boost("alice", "p1", ContentType.POST, BoostType.KING)
        assert (await content.get_profile("alice")).tokens == 100
        assert content.boosts == {}

    @pytest.mark.asyncio
    async def test_insufficient_tokens(self, boosts, content):
        """A short balance writes nothing: no boost, no debit, no notification."""
        with pytest.raises(InsufficientTokensError):
            await boosts.apply_boost("bob", "p1", "post", "squad_blast")
        assert (await content.get_profile("bob")).tokens == 0
        assert content.boosts == {}
        assert content.notifications == {}

    @pytest.mark.asyncio
    async def test_unknown_content_type(self, boosts, content):
        with pytest.raises(ValidationError):
            await boosts.apply_boost("alice", "p1", "podcast", "squad_blast")

    @pytest.mark.asyncio
    async def test_missing_content_gets_synthesized_baseline(self, boosts, store):
        boost = await boosts.apply_boost("alice", "ghost", "post", "chain_reaction")
        record = await store.get_boost_metrics(boost.id)
        assert record.baseline.views >= 20


class TestExtendBoost:
    """Extending charges the cost again and pushes expiry by one duration."""

    @pytest.mark.asyncio
    async def test_extend(self, boosts, content):
        boost = await boosts.apply_boost("alice", "s1", "stream", "stream_surge")
        extended = await boosts.extend_boost(boost.id, "alice")
        assert extended.expires_at == boost.expires_at + timedelta(minutes=30)
        assert (await content.get_profile("alice")).tokens == 0
        assert len(_notes(content, "boost_extended")) == 1

    @pytest.mark.asyncio
    async def test_extend_without_tokens(self, boosts, content):
        boost = await boosts.apply_boost("alice", "s1", "stream", "king")
        with pytest.raises(InsufficientTokensError):
            await boosts.extend_boost(boost.id, "alice")
        current = await content.get_boost(boost.id)
        assert current.expires_at == boost.expires_at
        assert (await content.get_profile("alice")).tokens == 20

    @pytest.mark.asyncio
    async def test_extend_after_expiry(self, boosts, content, clock):
        boost = await boosts.apply_boost("alice", "s1", "stream", "stream_surge")
        clock.advance(minutes=31)
        with pytest.raises(ConflictError):
            await boosts.extend_boost(boost.id, "alice")

    @pytest.mark.asyncio
    async def test_extend_someone_elses_boost(self, boosts, content):
        boost = await boosts.apply_boost("alice", "p1", "post", "squad_blast")
        with pytest.raises(NotFoundError):
            await boosts.extend_boost(boost.id, "bob")

    @pytest.mark.asyncio
    async def test_stale_expiry_guard(self, boosts, content, clock):
        """The store rejects an extension computed from an outdated expiry."""
        boost = await boosts.apply_boost("alice", "p1", "post", "squad_blast")
        await boosts.extend_boost(boost.id, "alice")
        notification = boosts.notifier.build(
            "alice",
            NotificationKind.BOOST_EXTENDED,
            BoostExtendedPayload(boost_id=boost.id, boost_type=boost.boost_type, expires_at=boost.expires_at, cost=40),
        )
        with pytest.raises(ConflictError):
            await content.extend_boost(
                boost.id,
                previous_expires_at=boost.expires_at,
                new_expires_at=boost.expires_at + timedelta(hours=24),
                cost=0,
                notification=notification,
                now=clock.now,
            )


class TestCancelBoost:
    """Cancellation is terminal and not refunded."""

    @pytest.mark.asyncio
    async def test_cancel(self, boosts, content):
        boost = await boosts.apply_boost("alice", "p1", "post", "squad_blast")
        cancelled = await boosts.cancel_boost(boost.id, "alice")
        assert cancelled.status == BoostStatus.CANCELLED
        assert (await content.get_profile("alice")).tokens == 60

    @pytest.mark.asyncio
    async def test_cancel_twice(self, boosts, content):
        boost = await boosts.apply_boost("alice", "p1", "post", "squad_blast")
        await boosts.cancel_boost(boost.id, "alice")
        with pytest.raises(ConflictError):
            await boosts.cancel_boost(boost.id, "alice")

    @pytest.mark.asyncio
    async def test_cancelled_boost_is_never_finalized(self, boosts, content, clock):
        boost = await boosts.apply_boost("alice", "p1", "post", "squad_blast")
        await boosts.cancel_boost(boost.id, "alice")
        clock.advance(hours=25)
        assert await boosts.finalize_expired() == 0
        assert _notes(content, "boost_result") == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize("elapsed", [timedelta(hours=6), timedelta(hours=7)])
    async def test_expired_boost_cannot_be_cancelled(self, boosts, content, clock, elapsed):
        """Once the window closes the boost is left for finalization."""
        boost = await boosts.apply_boost("alice", "p1", "post", "chain_reaction")
        clock.advance(seconds=elapsed.total_seconds())
        with pytest.raises(ConflictError):
            await boosts.cancel_boost(boost.id, "alice")

        assert await boosts.finalize_expired() == 1
        current = await content.get_boost(boost.id)
        assert current.status == BoostStatus.EXPIRED
        assert len(_notes(content, "boost_result")) == 1

    @pytest.mark.asyncio
    async def test_store_refuses_cancel_after_expiry(self, boosts, content, clock):
        boost = await boosts.apply_boost("alice", "p1", "post", "chain_reaction")
        with pytest.raises(ConflictError):
            await content.cancel_boost(boost.id, now=clock.now + timedelta(hours=6))
        assert (await content.get_boost(boost.id)).status == BoostStatus.ACTIVE


class TestRefreshMetrics:
    """Snapshots change only while the boost is running."""

    @pytest.mark.asyncio
    async def test_refresh_while_running(self, boosts, content, clock):
        boost = await boosts.apply_boost("alice", "p1", "post", "squad_blast")
        clock.advance(hours=1)
        metrics = await boosts.refresh_metrics(boost.id)
        record = await content.get_boost_metrics(boost.id)
        assert record.metrics == metrics
        assert record.updated_at == clock.now

    @pytest.mark.asyncio
    async def test_final_snapshot_is_frozen(self, boosts, content, clock):
        boost = await boosts.apply_boost("alice", "p1", "post", "squad_blast")
        clock.advance(hours=25)
        assert await boosts.finalize_expired() == 1
        final = (await content.get_boost_metrics(boost.id)).metrics
        [result] = _notes(content, "boost_result")

        with pytest.raises(ConflictError):
            await boosts.refresh_metrics(boost.id)
        assert (await content.get_boost_metrics(boost.id)).metrics == final
        assert result.metadata["views_from_boost"] == final.views_from_boost

    @pytest.mark.asyncio
    async def test_refresh_after_cancel(self, boosts, content):
        boost = await boosts.apply_boost("alice", "p1", "post", "squad_blast")
        await boosts.cancel_boost(boost.id, "alice")
        with pytest.raises(ConflictError):
            await boosts.refresh_metrics(boost.id)

    @pytest.mark.asyncio
    async def test_refresh_after_window_closed(self, boosts, content, clock):
        """Between expiry and finalization the snapshot no longer moves."""
        boost = await boosts.apply_boost("alice", "p1", "post", "squad_blast")
        clock.advance(hours=24)
        with pytest.raises(ConflictError):
            await boosts.refresh_metrics(boost.id)

    @pytest.mark.asyncio
    async def test_store_refuses_write_after_finalize(self, boosts, content, clock):
        boost = await boosts.apply_boost("alice", "p1", "post", "squad_blast")
        clock.advance(hours=25)
        await boosts.finalize_expired()
        record = await content.get_boost_metrics(boost.id)
        with pytest.raises(ConflictError):
            await content.save_boost_metrics(boost.id, record.metrics, clock.now)


class TestFinalizeExpired:
    """Expired boosts are finalized exactly once."""

    @pytest.mark.asyncio
    async def test_not_due_yet(self, boosts, content, clock):
        await boosts.apply_boost("alice", "p1", "post", "squad_blast")
        clock.advance(hours=23)
        assert await boosts.finalize_expired() == 0

    @pytest.mark.asyncio
    async def test_finalize(self, boosts, content, clock):
        boost = await boosts.apply_boost("alice", "p1", "post", "squad_blast")
        clock.advance(hours=24)
        assert await boosts.finalize_expired() == 1

        current = await content.get_boost(boost.id)
        assert current.status == BoostStatus.EXPIRED
        assert current.finalized is True
        [result] = _notes(content, "boost_result")
        assert result.title == "Squad Blast Results"
        assert result.reference_id == boost.id

    @pytest.mark.asyncio
    async def test_finalize_twice(self, boosts, content, clock):
        await boosts.apply_boost("alice", "p1", "post", "squad_blast")
        clock.advance(hours=25)
        assert await boosts.finalize_expired() == 1
        assert await boosts.finalize_expired() == 0
        assert len(_notes(content, "boost_result")) == 1

    @pytest.mark.asyncio
    async def test_concurrent_passes_finalize_once(self, boosts, content, clock):
        await boosts.apply_boost("alice", "p1", "post", "squad_blast")
        clock.advance(hours=25)
        counts = await asyncio.gather(boosts.finalize_expired(), boosts.finalize_expired())
        assert sum(counts) == 1
        assert len(_notes(content, "boost_result")) == 1

    @pytest.mark.asyncio
    async def test_finalize_without_metrics(self, boosts, content, clock):
        """A boost with no stored snapshot gets one synthesized at finalization."""
        boost = await boosts.apply_boost("alice", "s1", "stream", "stream_surge")
        del content.boost_metrics[boost.id]
        clock.advance(hours=1)
        assert await boosts.finalize_expired() == 1
        record = await content.get_boost_metrics(boost.id)
        assert record.metrics.viewers_peak is not None


class TestAnalytics:
    """Progress and remaining time."""

    @pytest.mark.asyncio
    async def test_halfway(self, boosts, content, clock):
        boost = await boosts.apply_boost("alice", "p1", "post", "squad_blast")
        clock.advance(hours=12)
        analytics = await boosts.get_analytics(boost.id, "alice")
        assert analytics.progress_percent == 50
        assert analytics.seconds_remaining == 12 * 3600
        assert analytics.is_active is True
        assert analytics.baseline.views == 100

    @pytest.mark.asyncio
    async def test_cancelled_reports_complete(self, boosts, content):
        boost = await boosts.apply_boost("alice", "p1", "post", "squad_blast")
        await boosts.cancel_boost(boost.id, "alice")
        analytics = await boosts.get_analytics(boost.id)
        assert analytics.progress_percent == 100
        assert analytics.seconds_remaining == 0
        assert analytics.is_active is False

    @pytest.mark.asyncio
    async def test_list_active_only(self, boosts, content):
        first = await boosts.apply_boost("alice", "p1", "post", "squad_blast")
        await boosts.apply_boost("alice", "s1", "stream", "stream_surge")
        await boosts.cancel_boost(first.id, "alice")
        assert len(await boosts.list_boosts("alice")) == 2
        active = await boosts.list_boosts("alice", active_only=True)
        assert [b.boost_type for b in active] == [BoostType.STREAM_SURGE]


class TestChainReaction:
    """Engagement refreshes chain reaction metrics."""

    @pytest.mark.asyncio
    async def test_growing_notification(self, boosts, content):
        boost = await boosts.apply_boost("alice", "p1", "post", "chain_reaction")
        content.put_content(
            ContentStats(content_id="p1", content_type=ContentType.POST, user_id="alice", likes=3, comments=1, shares=1)
        )
        [metrics] = await boosts.record_engagement("p1")
        assert metrics.chain_spread == 25
        [growing] = _notes(content, "chain_reaction_growing")
        assert growing.reference_id == boost.id
        assert growing.metadata["engagements"] == 5

    @pytest.mark.asyncio
    async def test_no_repeat_without_new_threshold(self, boosts, content):
        await boosts.apply_boost("alice", "p1", "post", "chain_reaction")
        content.put_content(ContentStats(content_id="p1", content_type=ContentType.POST, likes=6))
        await boosts.record_engagement("p1")
        content.put_content(ContentStats(content_id="p1", content_type=ContentType.POST, likes=8))
        await boosts.record_engagement("p1")
        assert len(_notes(content, "chain_reaction_growing")) == 1

    @pytest.mark.asyncio
    async def test_closed_window_ignored(self, boosts, content, clock):
        await boosts.apply_boost("alice", "p1", "post", "chain_reaction")
        clock.advance(hours=6)
        content.put_content(ContentStats(content_id="p1", content_type=ContentType.POST, likes=10))
        assert await boosts.record_engagement("p1") == []
        assert _notes(content, "chain_reaction_growing") == []

    @pytest.mark.asyncio
    async def test_other_boost_types_ignored(self, boosts, content):
        await boosts.apply_boost("alice", "p1", "post", "squad_blast")
        assert await boosts.record_engagement("p1") == []


class TestExpiry:
    """Expiry is creation time plus the type's duration."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("boost_type", "duration"),
        [
            ("squad_blast", timedelta(hours=24)),
            ("chain_reaction", timedelta(hours=6)),
            ("king", timedelta(hours=2)),
            ("stream_surge", timedelta(minutes=30)),
        ],
    )
    async def test_expires_at(self, boosts, content, boost_type, duration):
        boost = await boosts.apply_boost("alice", "s1", "stream", boost_type)
        assert boost.expires_at - boost.created_at == duration
