"""Typed records passed between the store and the services.

Records are immutable pydantic models. ORM rows convert through
``model_validate(row)`` (``from_attributes``); datetimes are normalized to UTC
on the way in.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Annotated, Any

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, computed_field

from clipt.boosts.types import BoostStatus, BoostType, ContentType
from clipt.progression.leveling import level_from_xp
from clipt.time_utils import ensure_utc

UtcDatetime = Annotated[datetime, AfterValidator(ensure_utc)]


class Record(BaseModel):
    model_config = ConfigDict(from_attributes=True, frozen=True)


# --- Profiles ---


class ProfileRecord(Record):
    id: str
    username: str | None = None
    xp: int = Field(ge=0)
    prestige: int = Field(default=0, ge=0)
    tokens: int = Field(default=0, ge=0)
    unlocked_themes: list[str] = []
    follower_count: int = Field(default=0, ge=0)
    created_at: UtcDatetime
    updated_at: UtcDatetime

    @computed_field  # type: ignore[prop-decorator]
    @property
    def level(self) -> int:
        """Always derived from xp; any persisted level is only a cache."""
        return level_from_xp(self.xp)


class TokenTransactionType(str, Enum):
    CREDIT = "credit"
    SPEND = "spend"
    BOOST = "boost"
    BOOST_EXTENSION = "boost_extension"
    ACHIEVEMENT_REWARD = "achievement_reward"


class TokenTransactionRecord(Record):
    """One entry of the token ledger. ``amount`` is negative for debits."""

    id: int | None = None
    user_id: str
    amount: int
    type: TokenTransactionType
    description: str | None = None
    reference_id: str | None = None
    created_at: UtcDatetime


# --- Achievements ---


class AchievementCategory(str, Enum):
    GENERAL = "general"
    DAILY = "daily"
    TROPHY = "trophy"
    STREAMING = "streaming"
    SOCIAL = "social"
    SPECIAL = "special"
    GAMING = "gaming"


class TrackerMetric(str, Enum):
    """Observed counters that feed achievement progress."""

    FOLLOWERS = "followers"
    SUBSCRIBERS = "subscribers"
    COMMENTS_POSTED = "comments_posted"
    COMMENT_LIKES = "comment_likes"
    CLIPS_UPLOADED = "clips_uploaded"
    CLIP_VIEWS = "clip_views"
    TROPHIES_EARNED = "trophies_earned"
    POST_TROPHIES = "post_trophies"
    WEEKLY_TOP10 = "weekly_top10"
    WEEKLY_FIRST_PLACE = "weekly_first_place"
    DAILY_QUESTS = "daily_quests"
    GAMES_PLAYED = "games_played"
    LEADERBOARD_STREAK = "leaderboard_streak"
    LEADERBOARD_WEEKS = "leaderboard_weeks"
    STREAMS_HOSTED = "streams_hosted"


class AchievementDefinition(Record):
    id: str = Field(min_length=1, max_length=64)
    name: str
    description: str
    category: AchievementCategory
    target_value: int = Field(gt=0)
    xp_reward: int = Field(default=0, ge=0)
    token_reward: int = Field(default=0, ge=0)
    metric: TrackerMetric | None = None
    sort_order: int = 0


class AchievementProgressRecord(Record):
    user_id: str
    achievement_id: str
    current_value: int = Field(ge=0)
    completed: bool = False
    completed_at: UtcDatetime | None = None
    created_at: UtcDatetime
    updated_at: UtcDatetime


# --- Content and boosts ---


class ContentStats(Record):
    """Engagement counters of a post or stream at one point in time."""

    content_id: str | None = None
    content_type: ContentType = ContentType.POST
    user_id: str | None = None
    title: str | None = None
    views: int = 0
    likes: int = 0
    shares: int = 0
    comments: int = 0
    engagement: int = 0
    viewers: int | None = None
    rank: int | None = None

    @property
    def interactions(self) -> int:
        return self.likes + self.comments + self.shares


class BoostMetrics(Record):
    """One engagement snapshot of a boosted item."""

    views: int = 0
    views_from_boost: int = 0
    engagement: int = 0
    engagement_from_boost: int = 0
    likes: int = 0
    likes_from_boost: int = 0
    comments: int = 0
    shares: int = 0
    shares_from_boost: int = 0
    new_followers: int = 0
    reached_users: int = 0
    # chain_reaction
    chain_multiplier: float | None = None
    chain_spread: int | None = None
    # king
    rank_before: int | None = None
    rank_during: int | None = None
    # stream_surge
    viewers_before: int | None = None
    viewers_peak: int | None = None
    minutes_watched: int | None = None


class BoostRecord(Record):
    id: str
    user_id: str
    content_id: str
    content_type: ContentType
    boost_type: BoostType
    status: BoostStatus = BoostStatus.ACTIVE
    cost: int = Field(ge=0)
    finalized: bool = False
    created_at: UtcDatetime
    expires_at: UtcDatetime


class BoostMetricsRecord(Record):
    boost_id: str
    baseline: ContentStats
    metrics: BoostMetrics
    updated_at: UtcDatetime


# --- Notifications ---


class NotificationRecord(Record):
    id: str
    user_id: str
    type: str
    title: str
    message: str
    reference_id: str | None = None
    reference_type: str | None = None
    read: bool = False
    metadata: dict[str, Any] = {}
    created_at: UtcDatetime
