"""Shared test fixtures.

Services run against ``InMemoryStore`` with a fixed clock. SQL store tests use
an in-memory SQLite database through aiosqlite. API tests drive the real app
through httpx's ASGI transport with the lifespan entered by hand.
"""

from __future__ import annotations

import random
from collections.abc import AsyncGenerator
from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from clipt.achievements.catalog import seed_catalog
from clipt.achievements.service import AchievementService
from clipt.achievements.tracker import AchievementTracker
from clipt.boosts.simulator import MetricsSimulator
from clipt.boosts.service import BoostService
from clipt.config import Settings
from clipt.database import build_engine, build_session_factory, init_models
from clipt.notifications.service import Notifier
from clipt.progression.service import ProgressionService
from clipt.store.memory import InMemoryStore
from clipt.store.sql import SqlAlchemyStore

START = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, now: datetime = START) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


class FakeRedis:
    """Records publish calls."""

    def __init__(self, fail: bool = False) -> None:
        self.published: list[tuple[str, str]] = []
        self.fail = fail

    async def publish(self, channel: str, message: str) -> int:
        if self.fail:
            raise ConnectionError("redis down")
        self.published.append((channel, message))
        return 1

    async def ping(self) -> bool:
        return True


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest_asyncio.fixture
async def store(clock: FakeClock) -> InMemoryStore:
    """In-memory store with the catalog and two profiles."""
    memory = InMemoryStore(clock=clock)
    await seed_catalog(memory)
    await memory.ensure_profile("alice", username="alice", tokens=100, follower_count=40)
    await memory.ensure_profile("bob", username="bob", tokens=0)
    return memory


@pytest.fixture
def redis() -> FakeRedis:
    return FakeRedis()


@pytest.fixture
def notifier(store: InMemoryStore, redis: FakeRedis, clock: FakeClock) -> Notifier:
    return Notifier(store, redis=redis, clock=clock)


@pytest.fixture
def progression(store: InMemoryStore, notifier: Notifier) -> ProgressionService:
    return ProgressionService(store, notifier)


@pytest.fixture
def achievements(
    store: InMemoryStore, progression: ProgressionService, notifier: Notifier, clock: FakeClock
) -> AchievementService:
    return AchievementService(store, progression, notifier, clock=clock)


@pytest.fixture
def tracker(achievements: AchievementService) -> AchievementTracker:
    return AchievementTracker(achievements)


@pytest.fixture
def simulator() -> MetricsSimulator:
    return MetricsSimulator(random.Random(1234))


@pytest.fixture
def boosts(
    store: InMemoryStore, notifier: Notifier, simulator: MetricsSimulator, clock: FakeClock
) -> BoostService:
    return BoostService(store, notifier, simulator=simulator, clock=clock)


@pytest_asyncio.fixture
async def sql_store(clock: FakeClock) -> AsyncGenerator[SqlAlchemyStore, None]:
    """SQL store on a private in-memory SQLite database."""
    engine = build_engine("sqlite+aiosqlite:///:memory:")
    await init_models(engine)
    sql = SqlAlchemyStore(build_session_factory(engine), timeout_seconds=5.0, clock=clock)
    await seed_catalog(sql)
    await sql.ensure_profile("alice", username="alice", tokens=100, follower_count=40)
    await sql.ensure_profile("bob", username="bob", tokens=0)
    yield sql
    await engine.dispose()


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        store_backend="memory",
        redis_url="",
        boost_poller_enabled=False,
        seed_catalog_on_startup=True,
        log_format="console",
        log_level="WARNING",
    )


@pytest_asyncio.fixture
async def client(store: InMemoryStore, test_settings: Settings) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client against the app, sharing the ``store`` fixture."""
    from clipt.main import create_app

    app = create_app(store=store, settings=test_settings)
    async with app.router.lifespan_context(app):
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as ac:
            yield ac
