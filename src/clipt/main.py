"""FastAPI application factory."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from clipt.achievements.catalog import seed_catalog
from clipt.achievements.router import router as achievements_router
from clipt.achievements.service import AchievementService
from clipt.achievements.tracker import AchievementTracker
from clipt.boosts.poller import BoostExpiryPoller
from clipt.boosts.router import router as boosts_router
from clipt.boosts.service import BoostService
from clipt.config import Settings, get_settings
from clipt.database import close_db
from clipt.errors import StoreError
from clipt.health.router import router as health_router
from clipt.middleware import setup_middleware
from clipt.notifications.router import router as notifications_router
from clipt.notifications.service import Notifier
from clipt.progression.router import router as progression_router
from clipt.progression.service import ProgressionService
from clipt.redis_client import close_redis, get_redis, init_redis
from clipt.store import build_store
from clipt.store.base import ProgressStore

logger = logging.getLogger(__name__)


def build_lifespan(settings: Settings, store: ProgressStore | None = None):
    """Lifespan that wires the store, services and the expiry poller onto ``app.state``."""

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        owns_store = store is None
        active_store = store if store is not None else await build_store(settings)

        if settings.redis_url:
            await init_redis(settings.redis_url)

        notifier = Notifier(active_store, redis=get_redis())
        progression = ProgressionService(active_store, notifier)
        achievements = AchievementService(active_store, progression, notifier)
        boosts = BoostService(active_store, notifier, batch_size=settings.boost_poll_batch_size)

        app.state.store = active_store
        app.state.notifier = notifier
        app.state.progression = progression
        app.state.achievements = achievements
        app.state.tracker = AchievementTracker(achievements)
        app.state.boosts = boosts

        # Seed achievement definitions (idempotent)
        if settings.seed_catalog_on_startup:
            try:
                await seed_catalog(active_store)
            except StoreError:
                logger.warning("Achievement seeding failed", exc_info=True)

        poller = BoostExpiryPoller(boosts, settings.boost_poll_interval_seconds)
        if settings.boost_poller_enabled:
            await poller.start()

        yield

        await poller.stop()
        if owns_store:
            await active_store.close()
            await close_db()
        await close_redis()

    return lifespan


def create_app(store: ProgressStore | None = None, settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Pass ``store`` to run against an existing store (tests, demos); otherwise
    one is built from settings on startup.
    """
    settings = settings or get_settings()

    app = FastAPI(
        title="Clipt Progression API",
        description="XP, achievements and content boosts for the Clipt social gaming client",
        version=settings.app_version,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=build_lifespan(settings, store),
    )

    setup_middleware(app, settings)
    app.include_router(health_router, tags=["Health"])
    app.include_router(progression_router)
    app.include_router(achievements_router)
    app.include_router(boosts_router)
    app.include_router(notifications_router)

    return app
