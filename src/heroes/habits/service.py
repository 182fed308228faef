"""Habits and master habit templates.

A master habit belongs to a parent and is cloned into per-child habits on
assignment. The clone keeps a reference to its origin but is otherwise an
independent copy: later edits on either side do not propagate.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import delete, select, update

from heroes.clock import utcnow
from heroes.db.models import Child, Habit, HabitCompletion, MasterHabit
from heroes.errors import DomainValidationError, NotFoundError
from heroes.sync.service import emit_sync_event

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

HABIT_FIELDS = frozenset({
    "name",
    "description",
    "icon",
    "xp_reward",
    "color",
    "frequency",
    "is_active",
    "reminder_enabled",
    "reminder_time",
    "time_range_start",
    "time_range_end",
})

FREQUENCIES = frozenset({"daily", "weekly", "custom"})


def _validate_habit_fields(fields: dict[str, Any]) -> None:
    if "xp_reward" in fields and fields["xp_reward"] is not None and fields["xp_reward"] < 0:
        msg = "XP reward cannot be negative"
        raise DomainValidationError(msg)
    if "frequency" in fields and fields["frequency"] is not None and fields["frequency"] not in FREQUENCIES:
        msg = f"Invalid frequency '{fields['frequency']}'"
        raise DomainValidationError(msg)
    if "name" in fields and fields["name"] is not None and not fields["name"].strip():
        msg = "Habit name cannot be empty"
        raise DomainValidationError(msg)


async def _parent_id_of(db: AsyncSession, child_id: str) -> str:
    return (await db.execute(select(Child.parent_id).where(Child.id == child_id))).scalar_one()


# ---------------------------------------------------------------------------
# Child habits
# ---------------------------------------------------------------------------


async def get_habit(db: AsyncSession, habit_id: str) -> Habit:
    result = await db.execute(select(Habit).where(Habit.id == habit_id))
    habit = result.scalar_one_or_none()
    if habit is None:
        msg = "Habit not found"
        raise NotFoundError(msg)
    return habit


async def list_habits(db: AsyncSession, child_id: str, active_only: bool = False) -> list[Habit]:
    stmt = select(Habit).where(Habit.child_id == child_id)
    if active_only:
        stmt = stmt.where(Habit.is_active.is_(True))
    result = await db.execute(stmt.order_by(Habit.created_at))
    return list(result.scalars().all())


async def create_habit(
    db: AsyncSession,
    child_id: str,
    fields: dict[str, Any],
    master_habit_id: str | None = None,
    now: datetime | None = None,
) -> Habit:
    if now is None:
        now = utcnow()
    _validate_habit_fields(fields)
    values = {k: v for k, v in fields.items() if k in HABIT_FIELDS and v is not None}
    if "name" not in values:
        msg = "Habit name is required"
        raise DomainValidationError(msg)
    habit = Habit(child_id=child_id, master_habit_id=master_habit_id, created_at=now, updated_at=now, **values)
    db.add(habit)
    await db.flush()
    parent_id = await _parent_id_of(db, child_id)
    await emit_sync_event(db, parent_id, "habit_created", "habits", habit.id, {"child_id": child_id}, now=now)
    return habit


async def update_habit(db: AsyncSession, habit: Habit, changes: dict[str, Any], now: datetime | None = None) -> Habit:
    _validate_habit_fields(changes)
    for field, value in changes.items():
        if field in HABIT_FIELDS and value is not None:
            setattr(habit, field, value)
    habit.updated_at = now or utcnow()
    await db.flush()
    parent_id = await _parent_id_of(db, habit.child_id)
    await emit_sync_event(db, parent_id, "habit_updated", "habits", habit.id, {"child_id": habit.child_id})
    return habit


async def delete_habit(db: AsyncSession, habit: Habit) -> None:
    """Delete a habit together with its completion history."""
    parent_id = await _parent_id_of(db, habit.child_id)
    habit_id, child_id = habit.id, habit.child_id
    await db.execute(delete(HabitCompletion).where(HabitCompletion.habit_id == habit_id))
    await db.delete(habit)
    await db.flush()
    await emit_sync_event(db, parent_id, "habit_deleted", "habits", habit_id, {"child_id": child_id})


# ---------------------------------------------------------------------------
# Master habits
# ---------------------------------------------------------------------------


async def get_master_habit(db: AsyncSession, master_habit_id: str) -> MasterHabit:
    result = await db.execute(select(MasterHabit).where(MasterHabit.id == master_habit_id))
    master = result.scalar_one_or_none()
    if master is None:
        msg = "Master habit not found"
        raise NotFoundError(msg)
    return master


async def list_master_habits(db: AsyncSession, parent_ids: list[str]) -> list[MasterHabit]:
    result = await db.execute(
        select(MasterHabit).where(MasterHabit.parent_id.in_(parent_ids)).order_by(MasterHabit.created_at)
    )
    return list(result.scalars().all())


async def create_master_habit(
    db: AsyncSession, parent_id: str, fields: dict[str, Any], now: datetime | None = None
) -> MasterHabit:
    if now is None:
        now = utcnow()
    _validate_habit_fields(fields)
    values = {k: v for k, v in fields.items() if k in HABIT_FIELDS and v is not None}
    if "name" not in values:
        msg = "Habit name is required"
        raise DomainValidationError(msg)
    master = MasterHabit(parent_id=parent_id, created_at=now, updated_at=now, **values)
    db.add(master)
    await db.flush()
    return master


async def update_master_habit(
    db: AsyncSession, master: MasterHabit, changes: dict[str, Any], now: datetime | None = None
) -> MasterHabit:
    """Edit the template only. Habits already assigned from it are unaffected."""
    _validate_habit_fields(changes)
    for field, value in changes.items():
        if field in HABIT_FIELDS and value is not None:
            setattr(master, field, value)
    master.updated_at = now or utcnow()
    await db.flush()
    return master


async def delete_master_habit(db: AsyncSession, master: MasterHabit) -> None:
    # Assigned copies survive; only their origin link is dropped.
    await db.execute(
        update(Habit).where(Habit.master_habit_id == master.id).values(master_habit_id=None)
    )
    await db.delete(master)
    await db.flush()


def _reminder_time_str(minutes_before: int | None) -> str | None:
    """Master habits keep reminder lead time in minutes; habits store it as text."""
    return str(minutes_before) if minutes_before is not None else None


async def assign_master_habit(
    db: AsyncSession, master: MasterHabit, child_ids: list[str], now: datetime | None = None
) -> list[Habit]:
    """Clone ``master`` into one habit per child."""
    if now is None:
        now = utcnow()
    habits: list[Habit] = []
    for child_id in dict.fromkeys(child_ids):
        habit = await create_habit(
            db,
            child_id,
            {
                "name": master.name,
                "description": master.description,
                "icon": master.icon,
                "xp_reward": master.xp_reward,
                "color": master.color,
                "frequency": master.frequency,
                "is_active": master.is_active,
                "reminder_enabled": master.reminder_enabled,
                "reminder_time": _reminder_time_str(master.reminder_time),
                "time_range_start": master.time_range_start,
                "time_range_end": master.time_range_end,
            },
            master_habit_id=master.id,
            now=now,
        )
        habits.append(habit)
    logger.info("Assigned master habit %s to %d children", master.id, len(habits))
    return habits
