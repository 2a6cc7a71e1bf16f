"""
kafka_avro.tier2_reliability.refresh
─────────────────────────────────────
Periodic background re-sync of a schema catalog. The scheduler owns one
asyncio task that sleeps ``interval`` seconds and then calls
``catalog.refresh()``, forever. Refresh failures are handled (and logged)
by the catalog; the loop keeps going and retries on the next tick.

An interval of 0 disables scheduling. ``stop()`` must be awaited when the
owning catalog is disposed so the task does not outlive it.
"""
from __future__ import annotations

import asyncio
from typing import Awaitable, Protocol

from kafka_avro.tier0_core.logging import get_logger

logger = get_logger(__name__)


class Refreshable(Protocol):
    def refresh(self) -> Awaitable[bool]: ...


class RefreshScheduler:
    """Run ``target.refresh()`` every ``interval`` seconds."""

    def __init__(self, target: Refreshable, interval: float) -> None:
        self._target = target
        self.interval = interval
        self._task: asyncio.Task | None = None

    @property
    def enabled(self) -> bool:
        return self.interval > 0

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if not self.enabled or self.running:
            return
        self._task = asyncio.get_running_loop().create_task(
            self._run(), name="kafka-avro-schema-refresh"
        )
        logger.info("refresh.scheduled", interval_seconds=self.interval)

    async def stop(self) -> None:
        task, self._task = self._task, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass
        logger.info("refresh.stopped")

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            refreshed = await self._target.refresh()
            logger.debug("refresh.tick", refreshed=refreshed)


__all__ = ["Refreshable", "RefreshScheduler"]
