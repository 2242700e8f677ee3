"""Boost expiry arq worker: finalizes expired boosts once a minute.

Runs the same finalization pass as the in-process poller, for deployments
that keep background work out of the API process.

Usage: arq clipt.boosts.worker.BoostWorkerSettings
"""

from __future__ import annotations

import logging

from arq import cron
from arq.connections import RedisSettings

from clipt.boosts.service import BoostService
from clipt.config import get_settings
from clipt.database import close_db
from clipt.middleware.logging import setup_logging
from clipt.notifications.service import Notifier
from clipt.store import build_store

logger = logging.getLogger(__name__)


async def boost_worker_startup(ctx: dict) -> None:  # type: ignore[type-arg]
    """Build the store and boost service on worker startup."""
    settings = get_settings()
    setup_logging(settings)
    store = await build_store(settings)
    notifier = Notifier(store, redis=ctx.get("redis"))
    ctx["store"] = store
    ctx["boost_service"] = BoostService(store, notifier, batch_size=settings.boost_poll_batch_size)
    logger.info("Boost worker started")


async def boost_worker_shutdown(ctx: dict) -> None:  # type: ignore[type-arg]
    store = ctx.get("store")
    if store is not None:
        await store.close()
    await close_db()
    logger.info("Boost worker stopped")


async def finalize_expired_boosts(ctx: dict) -> int:  # type: ignore[type-arg]
    """Scheduled task: finalize every boost whose window has closed."""
    service: BoostService = ctx["boost_service"]
    try:
        return await service.finalize_expired()
    except Exception:
        logger.exception("Boost finalization pass failed")
        return 0


class BoostWorkerSettings:
    """arq worker settings for boost expiry."""

    functions = [finalize_expired_boosts]
    cron_jobs = [
        cron(finalize_expired_boosts, second={0}, run_at_startup=True, unique=True),
    ]
    on_startup = boost_worker_startup
    on_shutdown = boost_worker_shutdown
    redis_settings = RedisSettings.from_dsn(get_settings().arq_redis_url)
    max_jobs = 1
    job_timeout = 300
    allow_abort_jobs = True
