"""Pydantic request/response models for achievement endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel


class AchievementDefinitionResponse(BaseModel):
    id: str
    name: str
    description: str
    category: str
    target_value: int
    xp_reward: int
    token_reward: int
    metric: str | None = None


class AllAchievementsResponse(BaseModel):
    achievements: list[AchievementDefinitionResponse]


class UserAchievementResponse(AchievementDefinitionResponse):
    current_value: int
    completed: bool
    completed_at: datetime | None = None
    progress_percent: int


class UserAchievementsResponse(BaseModel):
    achievements: list[UserAchievementResponse]
    total: int
    completed: int


class ProgressRequest(BaseModel):
    value: int


class IncrementRequest(BaseModel):
    delta: int = 1


class ProgressUpdateResponse(BaseModel):
    achievement_id: str
    current_value: int
    target_value: int
    completed: bool
    reward_granted: bool
    xp_awarded: int = 0
    tokens_awarded: int = 0
    progress_percent: int


class MetricRequest(BaseModel):
    value: int | None = None
    delta: int | None = None


class MetricUpdateResponse(BaseModel):
    metric: str
    updates: list[ProgressUpdateResponse]
