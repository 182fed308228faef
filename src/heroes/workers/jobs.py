"""Background job definitions: recurring rewards and auto-approval."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from datetime import datetime
from typing import Any

from heroes.clock import utcnow
from heroes.config import Settings
from heroes.database import get_session_factory
from heroes.habits.auto_approval import run_auto_approvals
from heroes.rewards.recurring import process_recurring_rewards
from heroes.workers.scheduler import PeriodicJob


async def recurring_rewards_tick(now: datetime) -> int:
    async with get_session_factory()() as db:
        return await process_recurring_rewards(db, now)


async def auto_approval_tick(now: datetime) -> int:
    async with get_session_factory()() as db:
        return await run_auto_approvals(db, now)


def build_jobs(
    settings: Settings,
    clock: Callable[[], datetime] = utcnow,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> list[PeriodicJob]:
    return [
        PeriodicJob(
            "recurring_rewards",
            recurring_rewards_tick,
            settings.recurring_rewards_interval_seconds,
            clock=clock,
            sleep=sleep,
        ),
        PeriodicJob(
            "auto_approval",
            auto_approval_tick,
            settings.auto_approval_interval_seconds,
            clock=clock,
            sleep=sleep,
        ),
    ]
