"""Recurring reward generation.

A recurring reward is a template. Each time its ``next_occurrence`` passes,
one non-recurring copy is created for the child and the template's
``next_occurrence`` moves one calendar unit past the tick time.
"""

from __future__ import annotations

import calendar
import logging
from datetime import datetime, timedelta

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from heroes.clock import as_utc, utcnow
from heroes.db.models import Child, Reward
from heroes.sync.service import emit_sync_event

logger = logging.getLogger(__name__)

RECURRING_CATEGORIES = ("daily", "weekly", "monthly", "yearly")


def add_months(dt: datetime, months: int) -> datetime:
    """Calendar month arithmetic, clamping the day to the target month's end."""
    month_index = dt.month - 1 + months
    year = dt.year + month_index // 12
    month = month_index % 12 + 1
    day = min(dt.day, calendar.monthrange(year, month)[1])
    return dt.replace(year=year, month=month, day=day)


def next_occurrence(category: str, from_time: datetime) -> datetime:
    """One cadence unit after ``from_time``. Unknown categories advance one day."""
    if category == "weekly":
        return from_time + timedelta(weeks=1)
    if category == "monthly":
        return add_months(from_time, 1)
    if category == "yearly":
        # Feb 29 lands on Feb 28 in non-leap years.
        return add_months(from_time, 12)
    return from_time + timedelta(days=1)


async def get_recurring_rewards_due(db: AsyncSession, now: datetime) -> list[Reward]:
    result = await db.execute(
        select(Reward)
        .where(
            Reward.is_recurring.is_(True),
            Reward.is_active.is_(True),
            Reward.next_occurrence.is_not(None),
            Reward.next_occurrence <= now,
        )
        .order_by(Reward.next_occurrence)
    )
    return list(result.scalars().all())


async def get_recurring_rewards_for_child(db: AsyncSession, child_id: str) -> list[Reward]:
    result = await db.execute(
        select(Reward).where(Reward.child_id == child_id, Reward.is_recurring.is_(True)).order_by(Reward.created_at)
    )
    return list(result.scalars().all())


async def get_reward_instances(db: AsyncSession, parent_reward_id: str) -> list[Reward]:
    result = await db.execute(
        select(Reward).where(Reward.parent_reward_id == parent_reward_id).order_by(Reward.created_at.desc())
    )
    return list(result.scalars().all())


async def generate_next_reward_instance(db: AsyncSession, parent_reward: Reward, now: datetime) -> Reward:
    """Create the next instance of ``parent_reward`` and advance its schedule."""
    instance = Reward(
        child_id=parent_reward.child_id,
        name=parent_reward.name,
        description=parent_reward.description,
        type=parent_reward.type,
        value=parent_reward.value,
        cost=parent_reward.cost,
        cost_type=parent_reward.cost_type,
        category=parent_reward.category,
        is_recurring=False,
        parent_reward_id=parent_reward.id,
        next_occurrence=None,
        last_generated=None,
        is_active=True,
        created_at=now,
    )
    db.add(instance)

    parent_reward.next_occurrence = next_occurrence(parent_reward.category, now)
    parent_reward.last_generated = now
    await db.flush()

    parent_id = (await db.execute(select(Child.parent_id).where(Child.id == parent_reward.child_id))).scalar_one()
    await emit_sync_event(
        db,
        parent_id,
        "recurring_reward_generated",
        "rewards",
        instance.id,
        {
            "child_id": parent_reward.child_id,
            "parent_reward_id": parent_reward.id,
            "reward_name": instance.name,
            "category": instance.category,
        },
        now=now,
    )
    logger.info("Generated recurring reward instance %s for child %s", instance.name, parent_reward.child_id)
    return instance


async def process_recurring_rewards(db: AsyncSession, now: datetime | None = None) -> int:
    """One scheduler tick. Returns the number of instances generated.

    Any failure aborts the whole tick: the batch is rolled back and logged,
    and the same rewards are due again on the next tick.
    """
    now = as_utc(now) if now is not None else utcnow()
    try:
        due = await get_recurring_rewards_due(db, now)
        for reward in due:
            await generate_next_reward_instance(db, reward, now)
        await db.commit()
    except Exception:
        await db.rollback()
        logger.exception("Recurring reward tick failed; will retry next tick")
        return 0

    if due:
        logger.info("Recurring reward tick generated %d instances", len(due))
    return len(due)
