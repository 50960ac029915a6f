"""
Crisis Monitor

Timer-driven evaluation on the asyncio event loop. Tracking calls and
ticks share one thread, so a tick always sees a consistent buffer
snapshot and runs to completion before yielding.
"""

import asyncio
import logging
from typing import Optional

from .engine import CrisisDetectionEngine

logger = logging.getLogger(__name__)


class CrisisMonitor:
    """
    Runs engine.evaluate() every monitoring interval.

    stop() is synchronous: once it returns the timer task is cancelled,
    the handle dropped and host callbacks detached, so no further tick
    can run.
    """

    def __init__(
        self,
        engine: CrisisDetectionEngine,
        interval_seconds: Optional[float] = None
    ):
        self.engine = engine
        self.interval_seconds = (
            interval_seconds if interval_seconds is not None
            else engine.config.monitoring_interval_seconds
        )
        self.tick_count = 0
        self._running = False
        self._task: Optional[asyncio.Task] = None

    @property
    def is_running(self) -> bool:
        return self._running

    def start(self) -> bool:
        """Start ticking. Must be called from a running event loop."""
        if self._running:
            return True
        if not self.engine.config.enabled:
            logger.info("Crisis detection disabled, monitor not started")
            return False

        self._running = True
        self._task = asyncio.get_running_loop().create_task(self._run())
        logger.info(f"Crisis monitor started (every {self.interval_seconds:g}s)")
        return True

    def stop(self):
        """Cancel the timer and detach hooks."""
        if not self._running and self._task is None:
            return
        self._running = False
        if self._task is not None:
            self._task.cancel()
            self._task = None
        self.engine.detach_callbacks()
        logger.info("Crisis monitor stopped")

    async def aclose(self):
        """Stop and wait for the cancelled task to finish unwinding."""
        task = self._task
        self.stop()
        if task is not None:
            try:
                await task
            except asyncio.CancelledError:
                pass

    async def _run(self):
        while self._running:
            await asyncio.sleep(self.interval_seconds)
            if not self._running:
                break
            self.tick()

    def tick(self):
        """Run one evaluation; failures degrade to no detection."""
        try:
            self.engine.evaluate()
        except Exception:
            logger.exception("Crisis evaluation tick failed")
        self.tick_count += 1

    async def __aenter__(self) -> "CrisisMonitor":
        self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.aclose()
