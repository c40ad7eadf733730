"""Cycle scheduler — runs the check cycle on a fixed interval.

A plain asyncio loop inside the API process. Deployments that prefer an
external timer can leave it disabled and call ``statuspage check`` from cron.
"""

from __future__ import annotations

import asyncio
import logging

from statuspage.health.checker import CycleReport, StatusChecker

logger = logging.getLogger(__name__)


class CycleScheduler:
    """Invokes ``StatusChecker.run_cycle`` every ``interval_seconds``."""

    def __init__(
        self,
        checker: StatusChecker,
        interval_seconds: float,
        run_on_start: bool = True,
    ) -> None:
        self.checker = checker
        self.interval = interval_seconds
        self.run_on_start = run_on_start
        self.last_report: CycleReport | None = None
        self._task: asyncio.Task[None] | None = None
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Start the periodic loop."""
        if self._running:
            return
        self._running = True
        self._task = asyncio.create_task(self._loop(), name="status-cycle")
        logger.info(
            "Cycle scheduler started: %d targets every %ss",
            len(self.checker.registry), self.interval,
        )

    async def stop(self) -> None:
        """Stop the loop, cancelling a cycle that is in flight."""
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        logger.info("Cycle scheduler stopped")

    async def _tick(self) -> None:
        try:
            self.last_report = await self.checker.run_cycle()
        except asyncio.CancelledError:
            raise
        except Exception:
            # Fatal to this cycle only; the next tick tries again
            logger.exception("Check cycle failed")

    async def _loop(self) -> None:
        if self.run_on_start:
            await self._tick()
        while self._running:
            await asyncio.sleep(self.interval)
            await self._tick()
