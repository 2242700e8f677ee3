"""Metric tracker: maps observed counters onto every achievement they feed."""

from __future__ import annotations

import logging

from clipt.achievements.service import AchievementService, ProgressUpdate
from clipt.errors import ValidationError
from clipt.records import AchievementDefinition, TrackerMetric

logger = logging.getLogger(__name__)


class AchievementTracker:
    """Feeds follower, subscriber, trophy and leaderboard counters into achievements."""

    def __init__(self, service: AchievementService) -> None:
        self.service = service
        self._by_metric: dict[TrackerMetric, list[AchievementDefinition]] | None = None

    async def _definitions_for(self, metric: TrackerMetric | str) -> list[AchievementDefinition]:
        """Load and cache the store's definitions grouped by metric."""
        try:
            metric = TrackerMetric(metric)
        except ValueError as exc:
            raise ValidationError(f"Unknown tracker metric: {metric}") from exc
        if self._by_metric is None:
            grouped: dict[TrackerMetric, list[AchievementDefinition]] = {}
            for definition in await self.service.store.list_achievements():
                if definition.metric is not None:
                    grouped.setdefault(definition.metric, []).append(definition)
            self._by_metric = grouped
        return self._by_metric.get(metric, [])

    def invalidate(self) -> None:
        """Drop the cached definitions (after re-seeding the catalog)."""
        self._by_metric = None

    async def record(self, user_id: str, metric: TrackerMetric | str, observed_value: int) -> list[ProgressUpdate]:
        """Apply an absolute counter value (max semantics) to every fed achievement."""
        updates = []
        for definition in await self._definitions_for(metric):
            updates.append(await self.service.update_progress(user_id, definition.id, observed_value))
        unlocked = [u.achievement_id for u in updates if u.reward_granted]
        if unlocked:
            logger.info("Metric %s=%d for %s unlocked %s", metric, observed_value, user_id, unlocked)
        return updates

    async def record_increment(
        self, user_id: str, metric: TrackerMetric | str, delta: int = 1
    ) -> list[ProgressUpdate]:
        """Add ``delta`` to every achievement fed by ``metric``."""
        updates = []
        for definition in await self._definitions_for(metric):
            updates.append(await self.service.increment_progress(user_id, definition.id, delta))
        return updates
