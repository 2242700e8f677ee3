"""Boost API endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status

from clipt.boosts.schemas import (
    ApplyBoostRequest,
    BoostAnalyticsResponse,
    BoostCatalogResponse,
    BoostListResponse,
    BoostResponse,
    BoostTypeResponse,
    FinalizeResponse,
)
from clipt.boosts.service import BoostService
from clipt.boosts.types import BOOST_SPECS
from clipt.dependencies import get_boosts
from clipt.records import BoostMetrics, BoostRecord

router = APIRouter(prefix="/api/v1", tags=["Boosts"])


def _boost_response(boost: BoostRecord) -> BoostResponse:
    return BoostResponse(**boost.model_dump())


@router.get("/boosts/types", response_model=BoostCatalogResponse)
async def list_boost_types():
    """Boost types with their duration, cost and eligible content."""
    return BoostCatalogResponse(
        boosts=[
            BoostTypeResponse(
                boost_type=spec.boost_type,
                title=spec.title,
                description=spec.description,
                duration_seconds=int(spec.duration.total_seconds()),
                cost=spec.cost,
                content_types=sorted(spec.content_types, key=lambda c: c.value),
            )
            for spec in BOOST_SPECS.values()
        ]
    )


@router.post("/users/{user_id}/boosts", response_model=BoostResponse, status_code=status.HTTP_201_CREATED)
async def apply_boost(
    user_id: str,
    body: ApplyBoostRequest,
    service: BoostService = Depends(get_boosts),
):
    boost = await service.apply_boost(user_id, body.content_id, body.content_type, body.boost_type)
    return _boost_response(boost)


@router.get("/users/{user_id}/boosts", response_model=BoostListResponse)
async def list_boosts(
    user_id: str,
    active_only: bool = Query(False),
    service: BoostService = Depends(get_boosts),
):
    boosts = await service.list_boosts(user_id, active_only=active_only)
    return BoostListResponse(boosts=[_boost_response(b) for b in boosts])


@router.get("/users/{user_id}/boosts/{boost_id}", response_model=BoostAnalyticsResponse)
async def get_boost_analytics(
    user_id: str,
    boost_id: str,
    service: BoostService = Depends(get_boosts),
):
    analytics = await service.get_analytics(boost_id, user_id)
    return BoostAnalyticsResponse(
        boost=_boost_response(analytics.boost),
        baseline=analytics.baseline,
        metrics=analytics.metrics,
        progress_percent=analytics.progress_percent,
        seconds_remaining=analytics.seconds_remaining,
        is_active=analytics.is_active,
    )


@router.post("/users/{user_id}/boosts/{boost_id}/extend", response_model=BoostResponse)
async def extend_boost(user_id: str, boost_id: str, service: BoostService = Depends(get_boosts)):
    return _boost_response(await service.extend_boost(boost_id, user_id))


@router.post("/users/{user_id}/boosts/{boost_id}/cancel", response_model=BoostResponse)
async def cancel_boost(user_id: str, boost_id: str, service: BoostService = Depends(get_boosts)):
    return _boost_response(await service.cancel_boost(boost_id, user_id))


@router.post("/boosts/{boost_id}/refresh", response_model=BoostMetrics)
async def refresh_metrics(boost_id: str, service: BoostService = Depends(get_boosts)):
    """Take a fresh metrics snapshot of a running boost; 409 once it has ended."""
    return await service.refresh_metrics(boost_id)


@router.post("/content/{content_id}/engagement")
async def record_engagement(content_id: str, service: BoostService = Depends(get_boosts)):
    """Hook for like/comment/share events on a piece of content."""
    refreshed = await service.record_engagement(content_id)
    return {"refreshed": len(refreshed)}


@router.post("/boosts/finalize", response_model=FinalizeResponse)
async def finalize_expired(service: BoostService = Depends(get_boosts)):
    """Run one expiry pass now."""
    return FinalizeResponse(finalized=await service.finalize_expired())
