"""In-process periodic jobs.

A ``PeriodicJob`` owns one asyncio task that calls its tick function every
``interval_seconds``. The clock and sleep functions are injectable so tests
drive ticks without waiting on the wall clock.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from datetime import datetime
from typing import Any

from heroes.clock import utcnow

logger = logging.getLogger(__name__)

TickFn = Callable[[datetime], Awaitable[Any]]


class PeriodicJob:
    """Runs ``tick(now)`` on a fixed interval until stopped.

    A failing tick is logged and the schedule continues; the next tick
    re-derives its work from the current time.
    """

    def __init__(
        self,
        name: str,
        tick: TickFn,
        interval_seconds: float,
        *,
        clock: Callable[[], datetime] = utcnow,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        run_immediately: bool = True,
    ) -> None:
        if interval_seconds <= 0:
            msg = "interval_seconds must be positive"
            raise ValueError(msg)
        self.name = name
        self.interval_seconds = interval_seconds
        self.run_immediately = run_immediately
        self.runs = 0
        self.last_run_at: datetime | None = None
        self.last_result: Any = None
        self._tick = tick
        self._clock = clock
        self._sleep = sleep
        self._running = False
        self._task: asyncio.Task[None] | None = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def run_once(self) -> Any:
        """Run a single tick now. Exceptions are logged, not raised."""
        now = self._clock()
        try:
            self.last_result = await self._tick(now)
        except Exception:
            logger.exception("Periodic job %s failed", self.name)
            self.last_result = None
        self.runs += 1
        self.last_run_at = now
        return self.last_result

    async def _loop(self) -> None:
        if self.run_immediately:
            await self.run_once()
        while self._running:
            await self._sleep(self.interval_seconds)
            if not self._running:
                break
            await self.run_once()

    def start(self) -> asyncio.Task[None]:
        """Schedule the loop on the running event loop."""
        if self.is_running:
            msg = f"Periodic job {self.name} already started"
            raise RuntimeError(msg)
        self._running = True
        self._task = asyncio.create_task(self._loop(), name=f"periodic:{self.name}")
        logger.info("Started periodic job %s (every %ss)", self.name, self.interval_seconds)
        return self._task

    async def stop(self) -> None:
        """Stop the loop and wait for it to finish. Safe to call when not started."""
        self._running = False
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("Stopped periodic job %s after %d runs", self.name, self.runs)
