"""Boost arq worker tests."""

from __future__ import annotations

import pytest

from clipt.boosts.service import BoostService
from clipt.boosts.worker import (
    BoostWorkerSettings,
    boost_worker_shutdown,
    boost_worker_startup,
    finalize_expired_boosts,
)
from clipt.config import get_settings
from clipt.errors import StoreError


@pytest.fixture
def memory_env(monkeypatch):
    monkeypatch.setenv("CLIPT_STORE_BACKEND", "memory")
    monkeypatch.setenv("CLIPT_LOG_FORMAT", "console")
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


class FailingService:
    async def finalize_expired(self, now=None):
        raise StoreError("due_boosts", "timed out")


class TestBoostWorker:
    """Startup wiring and the scheduled task."""

    def test_cron_registered(self):
        assert finalize_expired_boosts in BoostWorkerSettings.functions
        assert len(BoostWorkerSettings.cron_jobs) == 1
        assert BoostWorkerSettings.max_jobs == 1

    @pytest.mark.asyncio
    async def test_startup_and_run(self, memory_env):
        ctx: dict = {}
        await boost_worker_startup(ctx)
        assert isinstance(ctx["boost_service"], BoostService)
        assert await finalize_expired_boosts(ctx) == 0
        await boost_worker_shutdown(ctx)

    @pytest.mark.asyncio
    async def test_failed_pass_returns_zero(self):
        assert await finalize_expired_boosts({"boost_service": FailingService()}) == 0
