"""Pydantic request/response models for boost endpoints."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel

from clipt.boosts.types import BoostStatus, BoostType, ContentType
from clipt.records import BoostMetrics, ContentStats


class BoostTypeResponse(BaseModel):
    boost_type: BoostType
    title: str
    description: str
    duration_seconds: int
    cost: int
    content_types: list[ContentType]


class BoostCatalogResponse(BaseModel):
    boosts: list[BoostTypeResponse]


class ApplyBoostRequest(BaseModel):
    content_id: str
    content_type: str
    boost_type: str


class BoostResponse(BaseModel):
    id: str
    user_id: str
    content_id: str
    content_type: ContentType
    boost_type: BoostType
    status: BoostStatus
    cost: int
    finalized: bool
    created_at: datetime
    expires_at: datetime


class BoostListResponse(BaseModel):
    boosts: list[BoostResponse]


class BoostAnalyticsResponse(BaseModel):
    boost: BoostResponse
    baseline: ContentStats
    metrics: BoostMetrics
    progress_percent: int
    seconds_remaining: int
    is_active: bool


class FinalizeResponse(BaseModel):
    finalized: int
