"""Interval timer for idempotent background batch jobs.

A tick starts the job only when the previous run has finished; otherwise
the tick is skipped and counted. Job failures are logged and the timer
keeps going.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from datetime import datetime, timedelta, timezone
from typing import Any

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 86400


def seconds_until_next_run(now: datetime, hour: int = 0, weekday: int | None = None) -> float:
    """Seconds until the next ``hour``:00 UTC strictly after ``now``.

    With ``weekday`` (Monday=0) the run is pushed to that day of the week.
    """
    now = now.astimezone(timezone.utc)
    run_at = now.replace(hour=hour, minute=0, second=0, microsecond=0)
    if run_at <= now:
        run_at += timedelta(days=1)
    if weekday is not None:
        run_at += timedelta(days=(weekday - run_at.weekday()) % 7)
    return (run_at - now).total_seconds()


class PeriodicTask:
    """Runs ``func`` every ``interval`` seconds with skip-if-running."""

    def __init__(
        self,
        name: str,
        interval: float,
        func: Callable[[], Awaitable[Any]],
        initial_delay: float | None = None,
    ) -> None:
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.name = name
        self.interval = interval
        self.func = func
        self.initial_delay = interval if initial_delay is None else initial_delay
        self.runs = 0
        self.skipped = 0
        self.failures = 0
        self._job: asyncio.Task | None = None
        self._loop_task: asyncio.Task | None = None

    @property
    def is_running(self) -> bool:
        return self._job is not None and not self._job.done()

    async def _run(self) -> None:
        try:
            await self.func()
            self.runs += 1
        except Exception:
            self.failures += 1
            logger.exception("Periodic task %s failed", self.name)

    def tick(self) -> bool:
        """Start a run unless one is in flight. Returns whether a run started."""
        if self.is_running:
            self.skipped += 1
            logger.warning("Periodic task %s still running, skipping tick (%d skipped)", self.name, self.skipped)
            return False
        self._job = asyncio.create_task(self._run(), name=f"periodic:{self.name}")
        return True

    async def _loop(self) -> None:
        await asyncio.sleep(self.initial_delay)
        while True:
            self.tick()
            await asyncio.sleep(self.interval)

    def start(self) -> None:
        if self._loop_task is not None:
            return
        logger.info("Starting periodic task %s (every %ss)", self.name, self.interval)
        self._loop_task = asyncio.create_task(self._loop(), name=f"periodic-loop:{self.name}")

    async def stop(self, wait: bool = True) -> None:
        """Stop ticking. With ``wait`` an in-flight run is allowed to finish."""
        if self._loop_task is not None:
            self._loop_task.cancel()
            try:
                await self._loop_task
            except asyncio.CancelledError:
                pass
            self._loop_task = None
        if self._job is not None and not self._job.done():
            if wait:
                await self._job
            else:
                self._job.cancel()
                try:
                    await self._job
                except asyncio.CancelledError:
                    pass
        logger.info(
            "Stopped periodic task %s (runs=%d skipped=%d failures=%d)",
            self.name, self.runs, self.skipped, self.failures,
        )

    async def wait_idle(self) -> None:
        """Wait for the in-flight run, if any."""
        if self._job is not None:
            await asyncio.shield(self._job)
