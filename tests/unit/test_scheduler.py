"""Tests for PeriodicJob with an injected clock and sleep."""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from heroes.workers.scheduler import PeriodicJob

START = datetime(2026, 3, 11, 0, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self) -> None:
        self.now = START

    def __call__(self) -> datetime:
        return self.now


class FakeSleep:
    """Advances the fake clock and yields; blocks after ``budget`` sleeps."""

    def __init__(self, clock: FakeClock, budget: int) -> None:
        self.clock = clock
        self.budget = budget
        self.calls: list[float] = []
        self.exhausted = asyncio.Event()

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)
        if len(self.calls) > self.budget:
            self.exhausted.set()
            await asyncio.Event().wait()
        self.clock.now += timedelta(seconds=seconds)
        await asyncio.sleep(0)


class TestPeriodicJob:
    async def test_run_once_passes_clock_time(self):
        clock = FakeClock()
        seen: list[datetime] = []

        async def tick(now: datetime) -> int:
            seen.append(now)
            return 7

        job = PeriodicJob("t", tick, 60, clock=clock)
        assert await job.run_once() == 7
        assert seen == [START]
        assert job.runs == 1
        assert job.last_run_at == START
        assert job.last_result == 7

    async def test_loop_ticks_on_interval(self):
        clock = FakeClock()
        sleep = FakeSleep(clock, budget=3)
        seen: list[datetime] = []

        async def tick(now: datetime) -> None:
            seen.append(now)

        job = PeriodicJob("t", tick, 3600, clock=clock, sleep=sleep)
        job.start()
        await asyncio.wait_for(sleep.exhausted.wait(), timeout=5)
        await job.stop()

        assert seen == [START + timedelta(hours=h) for h in range(4)]
        assert sleep.calls[:3] == [3600, 3600, 3600]
        assert job.is_running is False

    async def test_without_immediate_run_first_tick_waits(self):
        clock = FakeClock()
        sleep = FakeSleep(clock, budget=1)
        seen: list[datetime] = []

        async def tick(now: datetime) -> None:
            seen.append(now)

        job = PeriodicJob("t", tick, 300, clock=clock, sleep=sleep, run_immediately=False)
        job.start()
        await asyncio.wait_for(sleep.exhausted.wait(), timeout=5)
        await job.stop()

        assert seen == [START + timedelta(seconds=300)]

    async def test_failing_tick_does_not_stop_schedule(self):
        clock = FakeClock()
        sleep = FakeSleep(clock, budget=2)
        calls = 0

        async def tick(now: datetime) -> None:
            nonlocal calls
            calls += 1
            raise RuntimeError("boom")

        job = PeriodicJob("t", tick, 10, clock=clock, sleep=sleep)
        job.start()
        await asyncio.wait_for(sleep.exhausted.wait(), timeout=5)
        await job.stop()

        assert calls == 3
        assert job.runs == 3
        assert job.last_result is None

    async def test_start_twice_rejected(self):
        clock = FakeClock()
        sleep = FakeSleep(clock, budget=0)

        async def tick(now: datetime) -> None:
            return None

        job = PeriodicJob("t", tick, 10, clock=clock, sleep=sleep)
        job.start()
        with pytest.raises(RuntimeError, match="already started"):
            job.start()
        await job.stop()

    async def test_stop_before_start_is_noop(self):
        async def tick(now: datetime) -> None:
            return None

        job = PeriodicJob("t", tick, 10)
        await job.stop()
        assert job.runs == 0

    def test_interval_must_be_positive(self):
        async def tick(now: datetime) -> None:
            return None

        with pytest.raises(ValueError):
            PeriodicJob("t", tick, 0)
