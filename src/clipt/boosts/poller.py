"""In-process expiry poller: runs the boost finalization pass on an interval."""

from __future__ import annotations

import asyncio

import structlog

from clipt.boosts.service import BoostService
from clipt.outcome import guarded

logger = structlog.get_logger()


class BoostExpiryPoller:
    """Periodically finalizes expired boosts until stopped."""

    def __init__(self, service: BoostService, interval_seconds: float = 60.0) -> None:
        self.service = service
        self.interval_seconds = interval_seconds
        self._task: asyncio.Task[None] | None = None
        self._stopping: asyncio.Event | None = None
        self._poll_lock = asyncio.Lock()

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        """Start the polling loop. No-op if already running."""
        if self.running:
            return
        self._stopping = asyncio.Event()
        self._task = asyncio.create_task(self._loop())
        logger.info("boost_poller_started", interval_seconds=self.interval_seconds)

    async def stop(self) -> None:
        """Signal the loop and wait for the in-flight poll, if any, to finish."""
        if self._task is None:
            return
        task, self._task = self._task, None
        if self._stopping is not None:
            self._stopping.set()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("boost_poller_stopped")

    async def _loop(self) -> None:
        assert self._stopping is not None
        while not self._stopping.is_set():
            await self.run_once()
            try:
                await asyncio.wait_for(self._stopping.wait(), timeout=self.interval_seconds)
            except asyncio.TimeoutError:
                continue

    async def run_once(self) -> int:
        """One finalization pass. Skipped (returns 0) while another pass is running."""
        if self._poll_lock.locked():
            logger.debug("boost_poll_skipped", reason="previous poll still running")
            return 0
        async with self._poll_lock:
            try:
                outcome = await guarded(self.service.finalize_expired(), action="finalize_expired_boosts")
            except Exception:
                logger.exception("boost_poll_failed")
                return 0
        if not outcome.ok:
            return 0
        if outcome.value:
            logger.info("boost_poll_finalized", count=outcome.value)
        return outcome.value or 0
