"""Pydantic request/response models for progression endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict

from clipt.records import TokenTransactionType


# --- Levels ---


class LevelEntry(BaseModel):
    level: int
    xp_required: int
    cumulative: int


class AllLevelsResponse(BaseModel):
    max_level: int
    levels: list[LevelEntry]


# --- Progress ---


class ProgressResponse(BaseModel):
    user_id: str
    xp: int
    level: int
    progress: int
    xp_into_level: int
    xp_to_next_level: int
    is_max_level: bool
    can_prestige: bool
    prestige: int
    tokens: int
    unlocked_themes: list[str] = []


class EnsureProfileRequest(BaseModel):
    username: str | None = None
    tokens: int = 0
    follower_count: int = 0


# --- XP / tokens ---


class AwardXPRequest(BaseModel):
    amount: int
    reason: str = "manual"


class XPAwardResponse(BaseModel):
    old_xp: int
    new_xp: int
    old_level: int
    new_level: int
    leveled_up: bool


class TokenRequest(BaseModel):
    amount: int
    reason: str = "manual"


class TokenBalanceResponse(BaseModel):
    user_id: str
    tokens: int


class TokenTransactionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int | None = None
    amount: int
    type: TokenTransactionType
    description: str | None = None
    reference_id: str | None = None
    created_at: datetime


class TokenTransactionsResponse(BaseModel):
    user_id: str
    transactions: list[TokenTransactionResponse]
