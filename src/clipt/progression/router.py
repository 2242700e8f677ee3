"""Progression API endpoints: levels, progress, XP, tokens and prestige."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from clipt.dependencies import get_progression
from clipt.progression.leveling import MAX_LEVEL, level_table
from clipt.progression.schemas import (
    AllLevelsResponse,
    AwardXPRequest,
    EnsureProfileRequest,
    LevelEntry,
    ProgressResponse,
    TokenBalanceResponse,
    TokenRequest,
    TokenTransactionResponse,
    TokenTransactionsResponse,
    XPAwardResponse,
)
from clipt.progression.service import ProgressionService, UserProgress

router = APIRouter(prefix="/api/v1", tags=["Progression"])


def _progress_response(progress: UserProgress) -> ProgressResponse:
    return ProgressResponse(
        user_id=progress.user_id,
        xp=progress.xp,
        level=progress.level,
        progress=progress.progress,
        xp_into_level=progress.xp_into_level,
        xp_to_next_level=progress.xp_to_next_level,
        is_max_level=progress.is_max_level,
        can_prestige=progress.can_prestige,
        prestige=progress.prestige,
        tokens=progress.tokens,
        unlocked_themes=progress.unlocked_themes,
    )


@router.get("/levels", response_model=AllLevelsResponse)
async def list_levels():
    """The full XP curve."""
    return AllLevelsResponse(
        max_level=MAX_LEVEL,
        levels=[LevelEntry(**row) for row in level_table()],
    )


@router.put("/users/{user_id}/profile", response_model=ProgressResponse)
async def ensure_profile(
    user_id: str,
    body: EnsureProfileRequest,
    service: ProgressionService = Depends(get_progression),
):
    """Create the progression profile for a new account (idempotent)."""
    progress = await service.ensure_profile(
        user_id, username=body.username, tokens=body.tokens, follower_count=body.follower_count
    )
    return _progress_response(progress)


@router.get("/users/{user_id}/progress", response_model=ProgressResponse)
async def get_progress(user_id: str, service: ProgressionService = Depends(get_progression)):
    return _progress_response(await service.get_progress(user_id))


@router.post("/users/{user_id}/xp", response_model=XPAwardResponse)
async def award_xp(
    user_id: str,
    body: AwardXPRequest,
    service: ProgressionService = Depends(get_progression),
):
    award = await service.award_xp(user_id, body.amount, body.reason)
    return XPAwardResponse(
        old_xp=award.old_xp,
        new_xp=award.new_xp,
        old_level=award.old_level,
        new_level=award.new_level,
        leveled_up=award.leveled_up,
    )


@router.post("/users/{user_id}/tokens/award", response_model=TokenBalanceResponse)
async def award_tokens(
    user_id: str,
    body: TokenRequest,
    service: ProgressionService = Depends(get_progression),
):
    balance = await service.award_tokens(user_id, body.amount, body.reason)
    return TokenBalanceResponse(user_id=user_id, tokens=balance)


@router.post("/users/{user_id}/tokens/spend", response_model=TokenBalanceResponse)
async def spend_tokens(
    user_id: str,
    body: TokenRequest,
    service: ProgressionService = Depends(get_progression),
):
    balance = await service.spend_tokens(user_id, body.amount, body.reason)
    return TokenBalanceResponse(user_id=user_id, tokens=balance)


@router.get("/users/{user_id}/tokens/transactions", response_model=TokenTransactionsResponse)
async def token_transactions(
    user_id: str,
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    service: ProgressionService = Depends(get_progression),
):
    """Token ledger, newest first."""
    rows = await service.token_history(user_id, limit=limit, offset=offset)
    return TokenTransactionsResponse(
        user_id=user_id,
        transactions=[TokenTransactionResponse.model_validate(row) for row in rows],
    )


@router.post("/users/{user_id}/prestige", response_model=ProgressResponse)
async def apply_prestige(user_id: str, service: ProgressionService = Depends(get_progression)):
    """Reset XP at level 30 and gain a prestige rank."""
    return _progress_response(await service.apply_prestige(user_id))
