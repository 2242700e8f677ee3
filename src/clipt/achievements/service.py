"""Achievement progress updates with exactly-once completion rewards.

Progress only moves up and is clamped to the target. When a row reaches its
target the reward step runs as one store transaction guarded by the
conditional ``completed = false -> true`` write, so concurrent updates that
all cross the threshold grant the reward once.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from clipt.errors import ConflictError, ValidationError
from clipt.notifications.kinds import AchievementUnlockedPayload, NotificationKind
from clipt.notifications.service import Notifier
from clipt.progression.service import ProgressionService
from clipt.records import AchievementCategory, AchievementDefinition, AchievementProgressRecord
from clipt.store.base import ProgressStore
from clipt.time_utils import Clock, utc_now

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProgressUpdate:
    user_id: str
    achievement_id: str
    current_value: int
    target_value: int
    completed: bool
    reward_granted: bool = False
    xp_awarded: int = 0
    tokens_awarded: int = 0

    @property
    def progress_percent(self) -> int:
        return min(self.current_value * 100 // self.target_value, 100)


@dataclass(frozen=True)
class UserAchievement:
    definition: AchievementDefinition
    current_value: int
    completed: bool
    completed_at: datetime | None = None

    @property
    def progress_percent(self) -> int:
        return min(self.current_value * 100 // self.definition.target_value, 100)


class AchievementService:
    def __init__(
        self,
        store: ProgressStore,
        progression: ProgressionService,
        notifier: Notifier,
        clock: Clock = utc_now,
    ) -> None:
        self.store = store
        self.progression = progression
        self.notifier = notifier
        self._clock = clock

    async def update_progress(self, user_id: str, achievement_id: str, new_value: int) -> ProgressUpdate:
        """Raise progress to ``new_value`` (never lowers it) and complete at the target."""
        if new_value < 0:
            raise ValidationError(f"Progress value must be >= 0, got {new_value}", value=new_value)
        definition = await self.store.get_achievement(achievement_id)
        row = await self.store.raise_progress(
            user_id, achievement_id, new_value, definition.target_value, self._clock()
        )
        return await self._settle(definition, row)

    async def increment_progress(self, user_id: str, achievement_id: str, delta: int = 1) -> ProgressUpdate:
        """Add ``delta`` to the current progress and complete at the target."""
        if delta <= 0:
            raise ValidationError(f"Progress delta must be positive, got {delta}", delta=delta)
        definition = await self.store.get_achievement(achievement_id)
        row = await self.store.increment_progress(
            user_id, achievement_id, delta, definition.target_value, self._clock()
        )
        return await self._settle(definition, row)

    async def _settle(self, definition: AchievementDefinition, row: AchievementProgressRecord) -> ProgressUpdate:
        update = ProgressUpdate(
            user_id=row.user_id,
            achievement_id=definition.id,
            current_value=row.current_value,
            target_value=definition.target_value,
            completed=row.completed,
        )
        if row.completed or row.current_value < definition.target_value:
            return update
        return await self._complete(definition, update)

    async def _complete(self, definition: AchievementDefinition, update: ProgressUpdate) -> ProgressUpdate:
        user_id = update.user_id
        notification = self.notifier.build(
            user_id,
            NotificationKind.ACHIEVEMENT_UNLOCKED,
            AchievementUnlockedPayload(
                achievement_id=definition.id,
                name=definition.name,
                xp_reward=definition.xp_reward,
                token_reward=definition.token_reward,
            ),
        )
        try:
            before, after = await self.store.complete_achievement(
                user_id,
                definition.id,
                target_value=definition.target_value,
                xp_reward=definition.xp_reward,
                token_reward=definition.token_reward,
                notification=notification,
                now=self._clock(),
            )
        except ConflictError:
            # Another update completed the row first and owns the reward.
            logger.info("Achievement %s already completed for %s", definition.id, user_id)
            return ProgressUpdate(
                user_id=user_id,
                achievement_id=definition.id,
                current_value=update.current_value,
                target_value=update.target_value,
                completed=True,
            )

        logger.info(
            "User %s completed %s: +%d XP, +%d tokens",
            user_id, definition.id, definition.xp_reward, definition.token_reward,
        )
        await self.notifier.publish(notification)
        await self.progression.announce_level_change(user_id, before.xp, after.xp)
        return ProgressUpdate(
            user_id=user_id,
            achievement_id=definition.id,
            current_value=update.current_value,
            target_value=update.target_value,
            completed=True,
            reward_granted=True,
            xp_awarded=definition.xp_reward,
            tokens_awarded=definition.token_reward,
        )

    async def ensure_user_progress(self, user_id: str) -> int:
        """Create zero-progress rows for every achievement. Returns rows created."""
        definitions = await self.store.list_achievements()
        created = await self.store.ensure_progress_rows(
            user_id, [d.id for d in definitions], self._clock()
        )
        if created:
            logger.info("Created %d achievement rows for %s", created, user_id)
        return created

    async def list_user_achievements(
        self,
        user_id: str,
        category: AchievementCategory | str | None = None,
    ) -> list[UserAchievement]:
        """Every definition joined with the user's progress (missing rows read as zero)."""
        definitions = await self.store.list_achievements()
        if category is not None:
            try:
                category = AchievementCategory(category)
            except ValueError as exc:
                raise ValidationError(f"Unknown achievement category: {category}") from exc
            definitions = [d for d in definitions if d.category == category]
        progress = {row.achievement_id: row for row in await self.store.list_progress(user_id)}

        result = []
        for definition in definitions:
            row = progress.get(definition.id)
            result.append(
                UserAchievement(
                    definition=definition,
                    current_value=row.current_value if row else 0,
                    completed=row.completed if row else False,
                    completed_at=row.completed_at if row else None,
                )
            )
        return result
