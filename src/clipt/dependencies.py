"""Shared FastAPI dependencies.

Services are built once in the application lifespan and kept on ``app.state``.
"""

from fastapi import Request

from clipt.achievements.service import AchievementService
from clipt.achievements.tracker import AchievementTracker
from clipt.boosts.service import BoostService
from clipt.notifications.service import Notifier
from clipt.progression.service import ProgressionService
from clipt.store.base import ProgressStore


def get_store(request: Request) -> ProgressStore:
    return request.app.state.store


def get_notifier(request: Request) -> Notifier:
    return request.app.state.notifier


def get_progression(request: Request) -> ProgressionService:
    return request.app.state.progression


def get_achievements(request: Request) -> AchievementService:
    return request.app.state.achievements


def get_tracker(request: Request) -> AchievementTracker:
    return request.app.state.tracker


def get_boosts(request: Request) -> BoostService:
    return request.app.state.boosts
