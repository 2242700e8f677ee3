"""Achievement API endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from clipt.achievements.schemas import (
    AchievementDefinitionResponse,
    AllAchievementsResponse,
    IncrementRequest,
    MetricRequest,
    MetricUpdateResponse,
    ProgressRequest,
    ProgressUpdateResponse,
    UserAchievementResponse,
    UserAchievementsResponse,
)
from clipt.achievements.service import AchievementService, ProgressUpdate
from clipt.achievements.tracker import AchievementTracker
from clipt.dependencies import get_achievements, get_tracker
from clipt.errors import ValidationError
from clipt.records import AchievementDefinition, TrackerMetric

router = APIRouter(prefix="/api/v1", tags=["Achievements"])


def _definition_fields(d: AchievementDefinition) -> dict:
    return {
        "id": d.id,
        "name": d.name,
        "description": d.description,
        "category": d.category.value,
        "target_value": d.target_value,
        "xp_reward": d.xp_reward,
        "token_reward": d.token_reward,
        "metric": d.metric.value if d.metric else None,
    }


def _update_response(update: ProgressUpdate) -> ProgressUpdateResponse:
    return ProgressUpdateResponse(
        achievement_id=update.achievement_id,
        current_value=update.current_value,
        target_value=update.target_value,
        completed=update.completed,
        reward_granted=update.reward_granted,
        xp_awarded=update.xp_awarded,
        tokens_awarded=update.tokens_awarded,
        progress_percent=update.progress_percent,
    )


@router.get("/achievements", response_model=AllAchievementsResponse)
async def list_achievements(service: AchievementService = Depends(get_achievements)):
    """All achievement definitions."""
    definitions = await service.store.list_achievements()
    return AllAchievementsResponse(
        achievements=[AchievementDefinitionResponse(**_definition_fields(d)) for d in definitions]
    )


@router.get("/users/{user_id}/achievements", response_model=UserAchievementsResponse)
async def list_user_achievements(
    user_id: str,
    category: str | None = Query(None),
    service: AchievementService = Depends(get_achievements),
):
    """Every achievement with the user's progress."""
    items = await service.list_user_achievements(user_id, category)
    return UserAchievementsResponse(
        achievements=[
            UserAchievementResponse(
                **_definition_fields(item.definition),
                current_value=item.current_value,
                completed=item.completed,
                completed_at=item.completed_at,
                progress_percent=item.progress_percent,
            )
            for item in items
        ],
        total=len(items),
        completed=sum(1 for item in items if item.completed),
    )


@router.post("/users/{user_id}/achievements/init")
async def init_user_achievements(user_id: str, service: AchievementService = Depends(get_achievements)):
    """Create zero-progress rows for the whole catalog."""
    created = await service.ensure_user_progress(user_id)
    return {"created": created}


@router.put("/users/{user_id}/achievements/{achievement_id}", response_model=ProgressUpdateResponse)
async def update_progress(
    user_id: str,
    achievement_id: str,
    body: ProgressRequest,
    service: AchievementService = Depends(get_achievements),
):
    return _update_response(await service.update_progress(user_id, achievement_id, body.value))


@router.post("/users/{user_id}/achievements/{achievement_id}/increment", response_model=ProgressUpdateResponse)
async def increment_progress(
    user_id: str,
    achievement_id: str,
    body: IncrementRequest,
    service: AchievementService = Depends(get_achievements),
):
    return _update_response(await service.increment_progress(user_id, achievement_id, body.delta))


@router.post("/users/{user_id}/metrics/{metric}", response_model=MetricUpdateResponse)
async def record_metric(
    user_id: str,
    metric: TrackerMetric,
    body: MetricRequest,
    tracker: AchievementTracker = Depends(get_tracker),
):
    """Feed an observed counter (``value``) or a change (``delta``) to the tracker."""
    if (body.value is None) == (body.delta is None):
        raise ValidationError("Provide exactly one of value or delta")
    if body.value is not None:
        updates = await tracker.record(user_id, metric, body.value)
    else:
        updates = await tracker.record_increment(user_id, metric, body.delta)
    return MetricUpdateResponse(metric=metric.value, updates=[_update_response(u) for u in updates])
