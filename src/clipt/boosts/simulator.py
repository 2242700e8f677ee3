"""Boost metrics simulator.

Produces plausible engagement snapshots for a boosted post or stream. Real
counters are used when the content row exists; anything missing is
synthesized from the injected ``random.Random`` so tests can seed it.
"""

from __future__ import annotations

import random

from clipt.boosts.types import BoostType, ContentType
from clipt.records import BoostMetrics, ContentStats

# (low, high) inclusive ranges for synthesized baselines
_STREAM_BASELINE = {"views": (10, 59), "engagement": (5, 34), "likes": (3, 22), "shares": (1, 5)}
_POST_BASELINE = {"views": (20, 119), "engagement": (10, 59), "likes": (5, 44), "shares": (2, 11)}

# Growth added to the baseline when the current record is missing
_GROWTH = {"views": (50, 249), "likes": (10, 39), "shares": (2, 11), "engagement": (15, 64)}

SPREAD_PER_ENGAGEMENT = 5
SURGE_MIN_VIEWERS = 200
SURGE_MINUTES = 30
KING_TOP_RANKS = 10


class MetricsSimulator:
    def __init__(self, rng: random.Random | None = None) -> None:
        self.rng = rng or random.Random()

    def _pick(self, bounds: tuple[int, int]) -> int:
        return self.rng.randint(*bounds)

    def baseline(self, content_type: ContentType, stats: ContentStats | None) -> ContentStats:
        """Counters at boost creation, synthesized when the content row is missing."""
        if stats is not None:
            return stats
        ranges = _STREAM_BASELINE if content_type == ContentType.STREAM else _POST_BASELINE
        return ContentStats(
            content_type=content_type,
            views=self._pick(ranges["views"]),
            engagement=self._pick(ranges["engagement"]),
            likes=self._pick(ranges["likes"]),
            shares=self._pick(ranges["shares"]),
        )

    def _grow(self, baseline: ContentStats) -> ContentStats:
        return baseline.model_copy(
            update={
                "views": baseline.views + self._pick(_GROWTH["views"]),
                "likes": baseline.likes + self._pick(_GROWTH["likes"]),
                "shares": baseline.shares + self._pick(_GROWTH["shares"]),
                "engagement": baseline.engagement + self._pick(_GROWTH["engagement"]),
            }
        )

    def snapshot(
        self,
        boost_type: BoostType,
        content_type: ContentType,
        baseline: ContentStats,
        current: ContentStats | None = None,
        follower_count: int = 0,
        previous: BoostMetrics | None = None,
    ) -> BoostMetrics:
        """Current metrics of a boost, with the boost type's derived fields."""
        if current is None:
            current = self._grow(baseline)

        fields = {
            "views": current.views,
            "views_from_boost": max(current.views - baseline.views, 0),
            "engagement": current.engagement,
            "engagement_from_boost": max(current.engagement - baseline.engagement, 0),
            "likes": current.likes,
            "likes_from_boost": max(current.likes - baseline.likes, 0),
            "comments": current.comments,
            "shares": current.shares,
            "shares_from_boost": max(current.shares - baseline.shares, 0),
            "new_followers": self._pick((1, 5)),
            "reached_users": self._pick((100, 399)),
        }

        boost_type = BoostType(boost_type)
        if boost_type == BoostType.SQUAD_BLAST:
            fields["reached_users"] = follower_count if follower_count > 0 else self._pick((50, 149))
            fields["views_from_boost"] += follower_count * 7 // 10

        elif boost_type == BoostType.CHAIN_REACTION:
            engagements = current.interactions
            spread = engagements * SPREAD_PER_ENGAGEMENT
            fields["chain_spread"] = spread
            fields["chain_multiplier"] = round(1 + 0.2 * engagements, 2)
            fields["views_from_boost"] += spread * 3 // 5
            fields["reached_users"] = spread

        elif boost_type == BoostType.KING:
            if previous is not None and previous.rank_during is not None:
                rank_before = previous.rank_before
                rank_during = previous.rank_during
            else:
                rank_before = baseline.rank or self._pick((10, 99))
                # never worse than where the stream already was
                rank_during = self._pick((1, min(KING_TOP_RANKS, rank_before)))
            multiplier = KING_TOP_RANKS + 1 - rank_during
            fields["rank_before"] = rank_before
            fields["rank_during"] = rank_during
            fields["views_from_boost"] *= multiplier
            fields["reached_users"] *= multiplier

        elif boost_type == BoostType.STREAM_SURGE:
            if previous is not None and previous.viewers_before is not None:
                before = previous.viewers_before
            else:
                before = baseline.viewers or self._pick((10, 59))
            peak = max(SURGE_MIN_VIEWERS, before * 3)
            fields["viewers_before"] = before
            fields["viewers_peak"] = peak
            fields["minutes_watched"] = peak * SURGE_MINUTES
            fields["views_from_boost"] = peak - before
            fields["reached_users"] = peak * 6 // 5

        return BoostMetrics(**fields)

    def summarize(self, boost_type: BoostType, metrics: BoostMetrics, title: str | None = None) -> str:
        """One-sentence result for the boost_result notification."""
        title = title or "Your content"
        boost_type = BoostType(boost_type)
        if boost_type == BoostType.SQUAD_BLAST:
            return (
                f'Squad Blast on "{title}" reached {metrics.reached_users} friends '
                f"and brought {metrics.views_from_boost} extra views."
            )
        if boost_type == BoostType.CHAIN_REACTION:
            return (
                f'Chain Reaction on "{title}" spread to {metrics.chain_spread or 0} users '
                f"at {metrics.chain_multiplier or 1.0:.1f}x and brought {metrics.views_from_boost} extra views."
            )
        if boost_type == BoostType.KING:
            return (
                f'"{title}" climbed from rank #{metrics.rank_before} to #{metrics.rank_during} '
                f"and reached {metrics.reached_users} viewers."
            )
        return (
            f'Stream Surge took "{title}" from {metrics.viewers_before} to {metrics.viewers_peak} viewers '
            f"for {metrics.minutes_watched} minutes watched."
        )
