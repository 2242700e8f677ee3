"""Service-boundary helper: turn expected failures into a result value.

UI event handlers and background loops call services through ``guarded`` so
a ``CliptError`` never escapes into the caller's flow. Programming errors are
not caught.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable
from dataclasses import dataclass
from typing import Generic, TypeVar

from clipt.errors import CliptError, ConflictError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class Outcome(Generic[T]):
    ok: bool
    value: T | None = None
    error: CliptError | None = None

    @property
    def message(self) -> str | None:
        """Toast text for a failed outcome."""
        if self.error is None:
            return None
        return self.error.user_message


def _log_level(exc: CliptError) -> int:
    if isinstance(exc, (ValidationError, NotFoundError)):
        return logging.INFO
    if isinstance(exc, ConflictError):
        return logging.WARNING
    return logging.ERROR


async def guarded(awaitable: Awaitable[T], *, action: str) -> Outcome[T]:
    """Await ``awaitable`` and wrap its result or its ``CliptError``."""
    try:
        value = await awaitable
    except CliptError as exc:
        logger.log(_log_level(exc), "%s failed: %s", action, exc, extra={"error": exc.to_dict()})
        return Outcome(ok=False, error=exc)
    return Outcome(ok=True, value=value)
