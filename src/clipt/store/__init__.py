"""Store selection."""

from __future__ import annotations

import logging

from clipt.config import Settings
from clipt.database import get_engine, get_session_factory, init_db, init_models
from clipt.store.base import ProgressStore
from clipt.store.memory import InMemoryStore
from clipt.store.sql import SqlAlchemyStore

logger = logging.getLogger(__name__)

__all__ = ["InMemoryStore", "ProgressStore", "SqlAlchemyStore", "build_store"]


async def build_store(settings: Settings) -> ProgressStore:
    """Build the store named by ``settings.store_backend``."""
    backend = settings.store_backend.lower()
    if backend == "memory":
        logger.info("Using in-memory store")
        return InMemoryStore()
    if backend != "sql":
        msg = f"Unknown store backend: {settings.store_backend}"
        raise ValueError(msg)

    await init_db(settings.database_url)
    await init_models(get_engine())
    logger.info("Using SQL store")
    return SqlAlchemyStore(get_session_factory(), timeout_seconds=settings.store_timeout_seconds)
