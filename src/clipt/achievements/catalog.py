"""Achievement catalog: the one list of definitions every user progresses against.

Seed data mirrors the client's default achievement lists. Each entry names the
tracker metric that feeds it; entries without a metric are updated directly
through ``AchievementService.update_progress``.
"""

from __future__ import annotations

import logging

from clipt.errors import NotFoundError
from clipt.records import AchievementCategory, AchievementDefinition, TrackerMetric
from clipt.store.base import ProgressStore

logger = logging.getLogger(__name__)

__all__ = [
    "ACHIEVEMENT_CATALOG",
    "AchievementCategory",
    "TrackerMetric",
    "by_metric",
    "get_definition",
    "seed_catalog",
]

ACHIEVEMENT_SEED_DATA: list[dict] = [
    # Daily
    {
        "id": "daily_quests_4",
        "name": "Complete 4 Daily Quests",
        "description": "Complete 4 daily quests this week",
        "category": "daily",
        "target_value": 4,
        "xp_reward": 10,
        "token_reward": 5,
        "metric": "daily_quests",
        "sort_order": 1,
    },
    {
        "id": "earn_your_way",
        "name": "Earn Your Way",
        "description": "Play 3 different games",
        "category": "daily",
        "target_value": 3,
        "xp_reward": 10,
        "token_reward": 5,
        "metric": "games_played",
        "sort_order": 2,
    },
    # Gaming
    {
        "id": "dead_space",
        "name": "Dead Space",
        "description": "Play Dead Space and earn 100 points",
        "category": "gaming",
        "target_value": 1,
        "xp_reward": 25,
        "token_reward": 0,
        "metric": None,
        "sort_order": 10,
    },
    {
        "id": "the_long_dark",
        "name": "The Long Dark",
        "description": "Travel 10 km in The Long Dark and earn 50 points",
        "category": "gaming",
        "target_value": 2,
        "xp_reward": 50,
        "token_reward": 0,
        "metric": None,
        "sort_order": 11,
    },
    # Trophies
    {
        "id": "trophy_collector",
        "name": "Trophy Collector",
        "description": "Earn your first trophy",
        "category": "trophy",
        "target_value": 1,
        "xp_reward": 25,
        "token_reward": 5,
        "metric": "trophies_earned",
        "sort_order": 20,
    },
    {
        "id": "trophy_hunter",
        "name": "Trophy Hunter",
        "description": "Earn 5 trophies across all categories",
        "category": "trophy",
        "target_value": 5,
        "xp_reward": 50,
        "token_reward": 10,
        "metric": "trophies_earned",
        "sort_order": 21,
    },
    {
        "id": "trophy_master",
        "name": "Trophy Master",
        "description": "Earn 25 trophies across all categories",
        "category": "trophy",
        "target_value": 25,
        "xp_reward": 100,
        "token_reward": 25,
        "metric": "trophies_earned",
        "sort_order": 22,
    },
    {
        "id": "first_taste_of_gold",
        "name": "First Taste of Gold",
        "description": "Get 10 trophies on a single post",
        "category": "trophy",
        "target_value": 10,
        "xp_reward": 30,
        "token_reward": 5,
        "metric": "post_trophies",
        "sort_order": 23,
    },
    {
        "id": "crowd_favorite",
        "name": "Crowd Favorite",
        "description": "Get 50 trophies on a single post",
        "category": "trophy",
        "target_value": 50,
        "xp_reward": 60,
        "token_reward": 10,
        "metric": "post_trophies",
        "sort_order": 24,
    },
    {
        "id": "viral_sensation",
        "name": "Viral Sensation",
        "description": "Get 100 trophies on a single post",
        "category": "trophy",
        "target_value": 100,
        "xp_reward": 100,
        "token_reward": 20,
        "metric": "post_trophies",
        "sort_order": 25,
    },
    # Social
    {
        "id": "first_comment",
        "name": "First Comment",
        "description": "Leave your first comment on a clip",
        "category": "social",
        "target_value": 1,
        "xp_reward": 15,
        "token_reward": 0,
        "metric": "comments_posted",
        "sort_order": 30,
    },
    {
        "id": "active_commenter",
        "name": "Active Commenter",
        "description": "Leave 10 comments on clips",
        "category": "social",
        "target_value": 10,
        "xp_reward": 30,
        "token_reward": 5,
        "metric": "comments_posted",
        "sort_order": 31,
    },
    {
        "id": "hype_squad",
        "name": "Hype Squad",
        "description": "Leave 50 comments on clips",
        "category": "social",
        "target_value": 50,
        "xp_reward": 60,
        "token_reward": 10,
        "metric": "comments_posted",
        "sort_order": 32,
    },
    {
        "id": "community_influencer",
        "name": "Community Influencer",
        "description": "Get 25 likes on your comments",
        "category": "social",
        "target_value": 25,
        "xp_reward": 50,
        "token_reward": 10,
        "metric": "comment_likes",
        "sort_order": 33,
    },
    {
        "id": "first_follower",
        "name": "First Follower",
        "description": "Get your first follower",
        "category": "social",
        "target_value": 1,
        "xp_reward": 20,
        "token_reward": 5,
        "metric": "followers",
        "sort_order": 34,
    },
    {
        "id": "rising_star",
        "name": "Rising Star",
        "description": "Reach 10 followers",
        "category": "social",
        "target_value": 10,
        "xp_reward": 30,
        "token_reward": 10,
        "metric": "followers",
        "sort_order": 35,
    },
    {
        "id": "influencer",
        "name": "Influencer",
        "description": "Reach 100 followers",
        "category": "social",
        "target_value": 100,
        "xp_reward": 75,
        "token_reward": 25,
        "metric": "followers",
        "sort_order": 36,
    },
    # Streaming
    {
        "id": "first_supporter",
        "name": "First Supporter",
        "description": "Get your first subscriber",
        "category": "streaming",
        "target_value": 1,
        "xp_reward": 25,
        "token_reward": 5,
        "metric": "subscribers",
        "sort_order": 40,
    },
    {
        "id": "small_but_mighty",
        "name": "Small but Mighty",
        "description": "Reach 10 subscribers",
        "category": "streaming",
        "target_value": 10,
        "xp_reward": 50,
        "token_reward": 10,
        "metric": "subscribers",
        "sort_order": 41,
    },
    {
        "id": "first_stream",
        "name": "Going Live",
        "description": "Host your first stream",
        "category": "streaming",
        "target_value": 1,
        "xp_reward": 20,
        "token_reward": 5,
        "metric": "streams_hosted",
        "sort_order": 42,
    },
    {
        "id": "first_blood",
        "name": "First Blood",
        "description": "Upload your first clip",
        "category": "streaming",
        "target_value": 1,
        "xp_reward": 20,
        "token_reward": 0,
        "metric": "clips_uploaded",
        "sort_order": 43,
    },
    {
        "id": "content_creator",
        "name": "Content Creator",
        "description": "Upload 10 clips",
        "category": "streaming",
        "target_value": 10,
        "xp_reward": 40,
        "token_reward": 10,
        "metric": "clips_uploaded",
        "sort_order": 44,
    },
    {
        "id": "viral_hit",
        "name": "Viral Hit",
        "description": "Get 1000 views on a single clip",
        "category": "streaming",
        "target_value": 1000,
        "xp_reward": 60,
        "token_reward": 20,
        "metric": "clip_views",
        "sort_order": 45,
    },
    {
        "id": "weekly_top_10",
        "name": "Weekly Top 10",
        "description": "Get into the weekly top 10 for the first time",
        "category": "streaming",
        "target_value": 1,
        "xp_reward": 50,
        "token_reward": 10,
        "metric": "weekly_top10",
        "sort_order": 46,
    },
    {
        "id": "consistent_performer",
        "name": "Consistent Performer",
        "description": "Get into the weekly top 10 three times",
        "category": "streaming",
        "target_value": 3,
        "xp_reward": 100,
        "token_reward": 20,
        "metric": "weekly_top10",
        "sort_order": 47,
    },
    {
        "id": "weekly_champion",
        "name": "Weekly Champion",
        "description": "Reach the #1 spot in the weekly top 10",
        "category": "streaming",
        "target_value": 1,
        "xp_reward": 150,
        "token_reward": 30,
        "metric": "weekly_first_place",
        "sort_order": 48,
    },
    # Special (leaderboard streaks)
    {
        "id": "breaking_in",
        "name": "Breaking In",
        "description": "Make the leaderboard for the first time",
        "category": "special",
        "target_value": 1,
        "xp_reward": 25,
        "token_reward": 5,
        "metric": "leaderboard_weeks",
        "sort_order": 50,
    },
    {
        "id": "back_to_back",
        "name": "Back-to-Back",
        "description": "Make the leaderboard 2 weeks in a row",
        "category": "special",
        "target_value": 2,
        "xp_reward": 50,
        "token_reward": 10,
        "metric": "leaderboard_streak",
        "sort_order": 51,
    },
    {
        "id": "hot_streak",
        "name": "Hot Streak",
        "description": "Make the leaderboard 5 weeks in a row",
        "category": "special",
        "target_value": 5,
        "xp_reward": 100,
        "token_reward": 25,
        "metric": "leaderboard_streak",
        "sort_order": 52,
    },
    {
        "id": "unstoppable",
        "name": "Unstoppable",
        "description": "Make the leaderboard 10 weeks in a row",
        "category": "special",
        "target_value": 10,
        "xp_reward": 200,
        "token_reward": 50,
        "metric": "leaderboard_streak",
        "sort_order": 53,
    },
    {
        "id": "hall_of_fame",
        "name": "Clipt Hall of Fame",
        "description": "Make the leaderboard 25 weeks in total",
        "category": "special",
        "target_value": 25,
        "xp_reward": 300,
        "token_reward": 100,
        "metric": "leaderboard_weeks",
        "sort_order": 54,
    },
]

ACHIEVEMENT_CATALOG: list[AchievementDefinition] = [
    AchievementDefinition(**data) for data in ACHIEVEMENT_SEED_DATA
]

_BY_ID: dict[str, AchievementDefinition] = {d.id: d for d in ACHIEVEMENT_CATALOG}


def get_definition(achievement_id: str) -> AchievementDefinition:
    """Look up a catalog entry. Raises NotFoundError."""
    try:
        return _BY_ID[achievement_id]
    except KeyError:
        raise NotFoundError("achievement", achievement_id) from None


def by_metric(metric: TrackerMetric | str) -> list[AchievementDefinition]:
    """Catalog entries fed by ``metric``, lowest target first."""
    metric = TrackerMetric(metric)
    return sorted(
        (d for d in ACHIEVEMENT_CATALOG if d.metric == metric),
        key=lambda d: d.target_value,
    )


async def seed_catalog(store: ProgressStore) -> int:
    """Upsert every catalog definition. Returns the number seeded."""
    seeded = await store.upsert_achievements(ACHIEVEMENT_CATALOG)
    logger.info("Seeded %d achievement definitions", seeded)
    return seeded
