"""Tests for tier2_reliability modules."""
from __future__ import annotations

import asyncio

import pytest

from kafka_avro.tier2_reliability.refresh import RefreshScheduler


class CountingTarget:
    def __init__(self, stop_after: int = 2) -> None:
        self.calls = 0
        self.stop_after = stop_after
        self.reached = asyncio.Event()

    async def refresh(self) -> bool:
        self.calls += 1
        if self.calls >= self.stop_after:
            self.reached.set()
        return True


# ── refresh ────────────────────────────────────────────────────────────────

class TestRefreshScheduler:
    @pytest.mark.asyncio
    async def test_runs_periodically(self):
        target = CountingTarget(stop_after=2)
        scheduler = RefreshScheduler(target, 0.01)
        scheduler.start()
        await asyncio.wait_for(target.reached.wait(), timeout=2)
        await scheduler.stop()
        assert target.calls >= 2

    @pytest.mark.asyncio
    async def test_stop_cancels_task(self):
        target = CountingTarget()
        scheduler = RefreshScheduler(target, 0.01)
        scheduler.start()
        assert scheduler.running
        await scheduler.stop()
        assert not scheduler.running
        calls = target.calls
        await asyncio.sleep(0.05)
        assert target.calls == calls

    @pytest.mark.asyncio
    async def test_zero_interval_disables(self):
        scheduler = RefreshScheduler(CountingTarget(), 0)
        assert not scheduler.enabled
        scheduler.start()
        assert not scheduler.running
        await scheduler.stop()

    @pytest.mark.asyncio
    async def test_start_is_idempotent(self):
        scheduler = RefreshScheduler(CountingTarget(), 10)
        scheduler.start()
        task = scheduler._task
        scheduler.start()
        assert scheduler._task is task
        await scheduler.stop()
