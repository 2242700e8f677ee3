"""Notification persistence and delivery.

Notifications are:
1. Persisted through the store (some inside a larger transaction, see
   ``ProgressStore.create_boost`` and friends)
2. Pushed to the user via Redis pub/sub on ``ws:user:<id>`` when Redis is configured

A failed push never fails the operation that produced the notification.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime

import redis.asyncio as aioredis
from pydantic import BaseModel

from clipt.errors import NotFoundError
from clipt.notifications.kinds import NotificationKind, build_notification
from clipt.records import NotificationRecord
from clipt.store.base import ProgressStore
from clipt.time_utils import Clock, utc_now

logger = logging.getLogger(__name__)


def user_channel(user_id: str) -> str:
    return f"ws:user:{user_id}"


class Notifier:
    def __init__(
        self,
        store: ProgressStore,
        redis: aioredis.Redis | None = None,
        clock: Clock = utc_now,
    ) -> None:
        self.store = store
        self.redis = redis
        self._clock = clock

    def build(self, user_id: str, kind: NotificationKind, payload: BaseModel, now: datetime | None = None) -> NotificationRecord:
        """Build a notification for a store transaction to persist."""
        return build_notification(user_id, kind, payload, now or self._clock())

    async def emit(self, user_id: str, kind: NotificationKind, payload: BaseModel) -> NotificationRecord:
        """Persist a standalone notification and push it."""
        notification = await self.store.add_notification(self.build(user_id, kind, payload))
        await self.publish(notification)
        return notification

    async def publish(self, notification: NotificationRecord) -> None:
        """Push an already persisted notification to the user's channel."""
        if self.redis is None:
            return
        ws_payload = {
            "event": "notification",
            "data": {
                "id": notification.id,
                "type": notification.type,
                "title": notification.title,
                "message": notification.message,
                "referenceId": notification.reference_id,
                "referenceType": notification.reference_type,
                "timestamp": notification.created_at.isoformat(),
                "read": notification.read,
                "metadata": notification.metadata,
            },
        }
        try:
            await self.redis.publish(user_channel(notification.user_id), json.dumps(ws_payload))
        except Exception:
            logger.warning("Failed to push notification %s", notification.id, exc_info=True)

    async def list_for_user(
        self,
        user_id: str,
        *,
        unread_only: bool = False,
        page: int = 1,
        per_page: int = 20,
    ) -> tuple[list[NotificationRecord], int]:
        """Most recent first, with the unread count."""
        offset = (max(page, 1) - 1) * per_page
        notifications = await self.store.list_notifications(
            user_id, unread_only=unread_only, limit=per_page, offset=offset
        )
        unread = await self.store.count_unread(user_id)
        return notifications, unread

    async def mark_read(self, user_id: str, notification_id: str) -> None:
        if not await self.store.mark_notification_read(user_id, notification_id):
            raise NotFoundError("notification", notification_id)

    async def mark_all_read(self, user_id: str) -> int:
        return await self.store.mark_all_notifications_read(user_id)
