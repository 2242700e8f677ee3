"""Health, readiness, and version endpoints."""

from fastapi import APIRouter, Depends

from clipt.config import get_settings
from clipt.dependencies import get_notifier, get_store
from clipt.errors import StoreError
from clipt.notifications.service import Notifier
from clipt.store.base import ProgressStore

router = APIRouter()


@router.get("/health")
async def health() -> dict[str, str]:
    """Liveness probe: returns 200 if the process is alive."""
    return {"status": "healthy"}


@router.get("/ready")
async def readiness(
    store: ProgressStore = Depends(get_store),  # noqa: B008
    notifier: Notifier = Depends(get_notifier),  # noqa: B008
) -> dict[str, object]:
    """Readiness probe: checks store and Redis connectivity."""
    checks: dict[str, object] = {}

    try:
        await store.ping()
        checks["store"] = "ok"
    except StoreError as exc:
        checks["store"] = f"error: {exc}"

    if notifier.redis is not None:
        try:
            await notifier.redis.ping()
            checks["redis"] = "ok"
        except Exception as exc:
            checks["redis"] = f"error: {exc}"

    all_ok = all(v == "ok" for v in checks.values())
    return {"status": "ready" if all_ok else "degraded", "checks": checks}


@router.get("/version")
async def version() -> dict[str, str]:
    """Return API version and environment."""
    settings = get_settings()
    return {
        "version": settings.app_version,
        "environment": settings.environment,
    }
