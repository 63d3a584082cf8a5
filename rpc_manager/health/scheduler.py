"""Periodic and on-demand health refresh.

One background asyncio task sleeps for the configured interval and then runs
a prober cycle, forever, until ``stop()`` cancels it. Foreground calls never
wait on this task: selectors always read the last published subset.
"""

from __future__ import annotations

import asyncio
import logging

from rpc_manager.health.prober import HealthProber
from rpc_manager.pool.types import HealthSnapshot

logger = logging.getLogger(__name__)


class HealthRefreshScheduler:
    """Drives ``HealthProber.refresh`` on a fixed interval."""

    def __init__(self, prober: HealthProber, interval_seconds: float) -> None:
        self._prober = prober
        self._interval_seconds = interval_seconds
        self._task: asyncio.Task[None] | None = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        """Start the periodic loop, replacing a loop that is already running.

        Must be called from within a running event loop.
        """
        if self._task is not None:
            self._task.cancel()

        self._task = asyncio.create_task(self._loop(), name="rpc-health-refresh")
        logger.info(
            "Health check interval started with %dms interval",
            int(self._interval_seconds * 1000),
        )

    def stop(self) -> None:
        """Cancel the periodic loop. Safe to call any number of times."""
        if self._task is None:
            return

        self._task.cancel()
        self._task = None
        logger.info("Health check interval stopped")

    async def trigger(self) -> dict[str, HealthSnapshot] | None:
        """Run one refresh cycle now and wait for it."""
        return await self._prober.refresh()

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self._interval_seconds)
            try:
                await self._prober.refresh()
            except Exception:
                logger.exception("Failed to update healthy connections")
