"""Notification API endpoints."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel

from clipt.dependencies import get_notifier
from clipt.notifications.service import Notifier

router = APIRouter(prefix="/api/v1", tags=["Notifications"])


class NotificationResponse(BaseModel):
    id: str
    type: str
    title: str
    message: str
    reference_id: str | None = None
    reference_type: str | None = None
    read: bool
    metadata: dict[str, Any] = {}
    created_at: datetime


class NotificationListResponse(BaseModel):
    notifications: list[NotificationResponse]
    unread_count: int
    page: int
    per_page: int


@router.get("/users/{user_id}/notifications", response_model=NotificationListResponse)
async def list_notifications(
    user_id: str,
    unread_only: bool = Query(False),
    page: int = Query(1, ge=1),
    per_page: int = Query(20, ge=1, le=100),
    notifier: Notifier = Depends(get_notifier),
):
    """User's notifications, most recent first."""
    notifications, unread = await notifier.list_for_user(
        user_id, unread_only=unread_only, page=page, per_page=per_page
    )
    return NotificationListResponse(
        notifications=[NotificationResponse(**n.model_dump(exclude={"user_id"})) for n in notifications],
        unread_count=unread,
        page=page,
        per_page=per_page,
    )


@router.post("/users/{user_id}/notifications/{notification_id}/read")
async def mark_read(user_id: str, notification_id: str, notifier: Notifier = Depends(get_notifier)):
    await notifier.mark_read(user_id, notification_id)
    return {"status": "ok"}


@router.post("/users/{user_id}/notifications/read-all")
async def mark_all_read(user_id: str, notifier: Notifier = Depends(get_notifier)):
    count = await notifier.mark_all_read(user_id)
    return {"status": "ok", "marked": count}
