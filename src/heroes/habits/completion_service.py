"""Habit completion lifecycle.

A child submits a completion, which is stored as ``pending``. A parent (or
the auto-approval sweep) moves it to ``approved``, settling XP and reward
points onto the child exactly once, or to ``rejected`` with a message.
Reviewed completions never go back to ``pending``; the daily reload deletes
today's pending and rejected rows so the habit can be attempted again.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, timedelta
from typing import TYPE_CHECKING, Any

from sqlalchemy import delete, func, select, update

from heroes.children.service import add_xp, credit_reward_points, get_child
from heroes.clock import get_monday, today_utc, utcnow
from heroes.config import get_settings
from heroes.db.models import Child, Habit, HabitCompletion
from heroes.errors import DomainValidationError, NotFoundError, StateConflictError
from heroes.rewards.service import record_transaction
from heroes.sync.service import emit_sync_event

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

# pending -> approved | rejected. Reviewed completions are final.
VALID_TRANSITIONS: dict[str, set[str]] = {
    "pending": {"approved", "rejected"},
    "approved": set(),
    "rejected": set(),
}

AUTO_APPROVER = "auto-approval"


def validate_transition(current: str, target: str) -> None:
    """Raise StateConflictError if the transition is not allowed."""
    if target not in VALID_TRANSITIONS.get(current, set()):
        if current in ("approved", "rejected"):
            msg = "Habit completion already reviewed"
        else:
            msg = f"Invalid transition: {current} -> {target}"
        raise StateConflictError(msg)


def reward_points_for(xp: int) -> int:
    """Reward points earned for ``xp``: one point per ``reward_points_divisor`` XP, rounded down."""
    return xp // get_settings().reward_points_divisor


async def get_completion(db: AsyncSession, completion_id: str) -> HabitCompletion:
    result = await db.execute(select(HabitCompletion).where(HabitCompletion.id == completion_id))
    completion = result.scalar_one_or_none()
    if completion is None:
        msg = "Habit completion not found"
        raise NotFoundError(msg)
    return completion


async def _has_approved(
    db: AsyncSession, habit_id: str, day: date, exclude_id: str | None = None
) -> bool:
    stmt = select(HabitCompletion.id).where(
        HabitCompletion.habit_id == habit_id,
        HabitCompletion.completion_date == day,
        HabitCompletion.status == "approved",
    )
    if exclude_id is not None:
        stmt = stmt.where(HabitCompletion.id != exclude_id)
    result = await db.execute(stmt.limit(1))
    return result.scalar_one_or_none() is not None


# ---------------------------------------------------------------------------
# Streaks
# ---------------------------------------------------------------------------


async def get_habit_streak(db: AsyncSession, habit_id: str, child_id: str, today: date | None = None) -> int:
    """Consecutive days with an approved completion, counting back from ``today``.

    The run must include ``today``; the first day without an approval ends
    it. Only the most recent ``streak_lookback_days`` approved rows are read,
    so the streak never exceeds that window.
    """
    if today is None:
        today = today_utc()
    lookback = get_settings().streak_lookback_days
    result = await db.execute(
        select(HabitCompletion.completion_date)
        .where(
            HabitCompletion.habit_id == habit_id,
            HabitCompletion.child_id == child_id,
            HabitCompletion.status == "approved",
        )
        .order_by(HabitCompletion.completion_date.desc())
        .limit(lookback)
    )

    days = list(result.scalars().all())
    if not days:
        return 0

    expected = today
    streak = 0
    for day in days:
        if day != expected:
            break
        streak += 1
        expected -= timedelta(days=1)
    return streak


# ---------------------------------------------------------------------------
# Transitions
# ---------------------------------------------------------------------------


async def submit_completion(
    db: AsyncSession, habit: Habit, child_id: str, now: datetime | None = None
) -> HabitCompletion:
    """
    Record that the child performed ``habit`` today.

    Raises:
        NotFoundError: The habit does not belong to the child.
        StateConflictError: The habit is inactive or already approved today.
    """
    if now is None:
        now = utcnow()
    if habit.child_id != child_id:
        msg = "Habit not found"
        raise NotFoundError(msg)
    if not habit.is_active:
        msg = "Habit is not active"
        raise StateConflictError(msg)

    today = today_utc(now)
    if await _has_approved(db, habit.id, today):
        msg = "Habit already completed today"
        raise StateConflictError(msg)

    # Today is not approved yet, so extend the run that ended yesterday
    streak = await get_habit_streak(db, habit.id, child_id, today - timedelta(days=1))
    completion = HabitCompletion(
        habit_id=habit.id,
        child_id=child_id,
        completion_date=today,
        xp_earned=habit.xp_reward,
        streak_count=streak + 1,
        reward_points_earned=reward_points_for(habit.xp_reward),
        status="pending",
        completed_at=now,
    )
    db.add(completion)
    await db.flush()

    child = await get_child(db, child_id)
    if child is not None:
        await emit_sync_event(
            db,
            child.parent_id,
            "habit_completed",
            "habit_completions",
            completion.id,
            {
                "child_id": child_id,
                "habit_id": habit.id,
                "habit_name": habit.name,
                "xp_earned": completion.xp_earned,
            },
            now=now,
        )
    logger.info("Child %s submitted habit %s (completion %s)", child_id, habit.id, completion.id)
    return completion


async def approve_completion(
    db: AsyncSession,
    completion_id: str,
    approved_by: str,
    message: str | None = None,
    now: datetime | None = None,
    auto: bool = False,
) -> HabitCompletion:
    """
    Approve a pending completion and settle XP and reward points onto the child.

    The status flip is a conditional UPDATE on ``status = 'pending'`` so two
    concurrent approvals cannot both credit the child.

    Raises:
        NotFoundError: Unknown completion.
        StateConflictError: Already reviewed, or another completion of the
            same habit is already approved for that day.
    """
    if now is None:
        now = utcnow()
    completion = await get_completion(db, completion_id)
    validate_transition(completion.status, "approved")

    if await _has_approved(db, completion.habit_id, completion.completion_date, exclude_id=completion.id):
        msg = "Habit already approved for this day"
        raise StateConflictError(msg)

    result = await db.execute(
        update(HabitCompletion)
        .where(HabitCompletion.id == completion.id, HabitCompletion.status == "pending")
        .values(
            status="approved",
            reviewed_at=now,
            reviewed_by=approved_by,
            parent_message=message,
            is_auto_approved=auto,
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        msg = "Habit completion already reviewed"
        raise StateConflictError(msg)
    await db.refresh(completion)

    child = await get_child(db, completion.child_id)
    if child is None:
        msg = "Child not found"
        raise NotFoundError(msg)

    leveled_up = add_xp(child, completion.xp_earned, now)
    if completion.reward_points_earned > 0:
        credit_reward_points(child, completion.reward_points_earned, now)
        await record_transaction(
            db,
            child.id,
            "earned",
            completion.reward_points_earned,
            "habit_completion",
            f"Approved habit completion {completion.id}",
            approved_by=approved_by,
            now=now,
        )
    await db.flush()

    await emit_sync_event(
        db,
        child.parent_id,
        "habit_approved",
        "habit_completions",
        completion.id,
        {
            "child_id": child.id,
            "habit_id": completion.habit_id,
            "xp_earned": completion.xp_earned,
            "reward_points_earned": completion.reward_points_earned,
            "auto_approved": auto,
            "level_up": leveled_up,
        },
        now=now,
    )
    logger.info("Completion %s approved by %s", completion.id, approved_by)
    return completion


async def reject_completion(
    db: AsyncSession,
    completion_id: str,
    rejected_by: str,
    message: str,
    now: datetime | None = None,
) -> HabitCompletion:
    """Reject a pending completion. A feedback message is mandatory; nothing is credited."""
    if now is None:
        now = utcnow()
    if not message or not message.strip():
        msg = "A message is required when rejecting a habit completion"
        raise DomainValidationError(msg)

    completion = await get_completion(db, completion_id)
    validate_transition(completion.status, "rejected")

    result = await db.execute(
        update(HabitCompletion)
        .where(HabitCompletion.id == completion.id, HabitCompletion.status == "pending")
        .values(status="rejected", reviewed_at=now, reviewed_by=rejected_by, parent_message=message.strip())
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        msg = "Habit completion already reviewed"
        raise StateConflictError(msg)
    await db.refresh(completion)

    parent_id = (await db.execute(select(Child.parent_id).where(Child.id == completion.child_id))).scalar_one()
    await emit_sync_event(
        db,
        parent_id,
        "habit_rejected",
        "habit_completions",
        completion.id,
        {"child_id": completion.child_id, "habit_id": completion.habit_id},
        now=now,
    )
    logger.info("Completion %s rejected by %s", completion.id, rejected_by)
    return completion


async def reload_daily_habits(db: AsyncSession, child: Child, now: datetime | None = None) -> int:
    """Delete today's pending and rejected completions for the child. Returns rows deleted."""
    if now is None:
        now = utcnow()
    today = today_utc(now)
    result = await db.execute(
        delete(HabitCompletion)
        .where(
            HabitCompletion.child_id == child.id,
            HabitCompletion.completion_date == today,
            HabitCompletion.status.in_(("pending", "rejected")),
        )
        .execution_options(synchronize_session=False)
    )
    deleted = result.rowcount or 0
    await emit_sync_event(
        db,
        child.parent_id,
        "habits_reloaded",
        "child",
        child.id,
        {"child_id": child.id, "date": today.isoformat(), "deleted": deleted},
        now=now,
    )
    logger.info("Reloaded daily habits for child %s (%d rows cleared)", child.id, deleted)
    return deleted


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------


async def get_completions(
    db: AsyncSession,
    child_id: str,
    start_date: date | None = None,
    end_date: date | None = None,
) -> list[HabitCompletion]:
    stmt = select(HabitCompletion).where(HabitCompletion.child_id == child_id)
    if start_date is not None:
        stmt = stmt.where(HabitCompletion.completion_date >= start_date)
    if end_date is not None:
        stmt = stmt.where(HabitCompletion.completion_date <= end_date)
    result = await db.execute(stmt.order_by(HabitCompletion.completed_at.desc()))
    return list(result.scalars().all())


async def get_todays_completions(db: AsyncSession, child_id: str, now: datetime | None = None) -> list[HabitCompletion]:
    today = today_utc(now)
    return await get_completions(db, child_id, today, today)


async def get_pending_completions(db: AsyncSession, child_ids: list[str]) -> list[tuple[HabitCompletion, Habit, Child]]:
    """Pending completions for the given children with their habit and child, newest first."""
    if not child_ids:
        return []
    result = await db.execute(
        select(HabitCompletion, Habit, Child)
        .join(Habit, Habit.id == HabitCompletion.habit_id)
        .join(Child, Child.id == HabitCompletion.child_id)
        .where(HabitCompletion.child_id.in_(child_ids), HabitCompletion.status == "pending")
        .order_by(HabitCompletion.completed_at.desc())
    )
    return [tuple(row) for row in result.all()]  # type: ignore[misc]


async def count_pending(db: AsyncSession, child_ids: list[str]) -> int:
    if not child_ids:
        return 0
    result = await db.execute(
        select(func.count())
        .select_from(HabitCompletion)
        .where(HabitCompletion.child_id.in_(child_ids), HabitCompletion.status == "pending")
    )
    return result.scalar_one()


def progress_status(completed: int, possible: int) -> str:
    """Traffic light: green at 100%, yellow from 50%, red below."""
    percentage = completed / possible * 100 if possible > 0 else 0
    if percentage >= 100:
        return "green"
    if percentage >= 50:
        return "yellow"
    return "red"


async def get_weekly_progress(db: AsyncSession, child_id: str, now: datetime | None = None) -> dict[str, Any]:
    """Approved completions for the current Monday-Sunday week against active habits."""
    week_start = get_monday(today_utc(now))
    week_end = week_start + timedelta(days=6)

    active_count = (
        await db.execute(
            select(func.count()).select_from(Habit).where(Habit.child_id == child_id, Habit.is_active.is_(True))
        )
    ).scalar_one()

    week_rows = await get_completions(db, child_id, week_start, week_end)
    approved = [c for c in week_rows if c.status == "approved"]
    pending = [c for c in week_rows if c.status == "pending"]

    daily_breakdown = []
    for offset in range(7):
        day = week_start + timedelta(days=offset)
        daily_breakdown.append({
            "date": day.isoformat(),
            "completed": sum(1 for c in approved if c.completion_date == day),
            "total": active_count,
        })

    total_possible = active_count * 7
    return {
        "total_habits": total_possible,
        "completed_habits": len(approved),
        "pending_habits": len(pending),
        "week_start": week_start.isoformat(),
        "week_end": week_end.isoformat(),
        "status": progress_status(len(approved), total_possible),
        "daily_breakdown": daily_breakdown,
    }
