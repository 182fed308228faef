"""Timed auto-approval (premium).

A parent configures a delay (value + unit). Any completion still pending once
``completed_at + delay`` has passed is approved by the periodic sweep through
the normal approval path, with reviewer ``auto-approval``.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any

from sqlalchemy import func, select

from heroes.clock import as_utc, utcnow
from heroes.db.models import AutoApprovalSettings, Child, HabitCompletion, User
from heroes.errors import AccessDeniedError, DomainValidationError, HeroesError
from heroes.habits.completion_service import AUTO_APPROVER, approve_completion, count_pending

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

TIME_UNITS: dict[str, timedelta] = {
    "hours": timedelta(hours=1),
    "days": timedelta(days=1),
    "weeks": timedelta(weeks=1),
}

PREMIUM_STATUSES = frozenset({"trial", "active"})


def validate_delay(time_value: int, time_unit: str) -> None:
    if time_value <= 0:
        msg = "Auto-approval delay must be greater than zero"
        raise DomainValidationError(msg)
    if time_unit not in TIME_UNITS:
        msg = f"Invalid time unit '{time_unit}'; expected hours, days or weeks"
        raise DomainValidationError(msg)


def compute_auto_approval_deadline(completed_at: datetime, time_value: int, time_unit: str) -> datetime:
    validate_delay(time_value, time_unit)
    return as_utc(completed_at) + TIME_UNITS[time_unit] * time_value


def time_remaining(
    completed_at: datetime, time_value: int, time_unit: str, now: datetime | None = None
) -> timedelta:
    """Time left before auto-approval; zero once the deadline has passed."""
    now = as_utc(now) if now is not None else utcnow()
    remaining = compute_auto_approval_deadline(completed_at, time_value, time_unit) - now
    return max(remaining, timedelta(0))


def is_premium(user: User) -> bool:
    return user.subscription_status in PREMIUM_STATUSES


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------


async def get_auto_approval_settings(db: AsyncSession, user_id: str) -> AutoApprovalSettings:
    """Stored settings, or an unsaved disabled default."""
    result = await db.execute(select(AutoApprovalSettings).where(AutoApprovalSettings.user_id == user_id))
    settings = result.scalar_one_or_none()
    if settings is None:
        settings = AutoApprovalSettings(
            user_id=user_id,
            enabled=False,
            time_value=24,
            time_unit="hours",
            apply_to_all_children=True,
            child_specific_settings={},
        )
    return settings


async def update_auto_approval_settings(
    db: AsyncSession,
    user: User,
    enabled: bool,
    time_value: int,
    time_unit: str,
    apply_to_all_children: bool = True,
    child_specific_settings: dict[str, dict[str, Any]] | None = None,
    now: datetime | None = None,
) -> AutoApprovalSettings:
    """
    Save the parent's auto-approval settings.

    Raises:
        AccessDeniedError: The parent has no trial or active subscription.
        DomainValidationError: A delay is not positive or uses an unknown unit.
    """
    if not is_premium(user):
        msg = "Auto-approval is a premium feature"
        raise AccessDeniedError(msg)
    validate_delay(time_value, time_unit)
    child_specific_settings = child_specific_settings or {}
    for rule in child_specific_settings.values():
        validate_delay(int(rule.get("time_value", time_value)), rule.get("time_unit", time_unit))

    result = await db.execute(select(AutoApprovalSettings).where(AutoApprovalSettings.user_id == user.id))
    settings = result.scalar_one_or_none()
    if settings is None:
        settings = AutoApprovalSettings(user_id=user.id)
        db.add(settings)

    settings.enabled = enabled
    settings.time_value = time_value
    settings.time_unit = time_unit
    settings.apply_to_all_children = apply_to_all_children
    settings.child_specific_settings = child_specific_settings
    settings.updated_at = now or utcnow()
    await db.flush()
    logger.info("Auto-approval settings updated for user %s (enabled=%s)", user.id, enabled)
    return settings


def effective_delay(settings: AutoApprovalSettings, child_id: str) -> tuple[int, str] | None:
    """The (time_value, time_unit) that applies to ``child_id``, or None when off.

    ``enabled`` is the master switch. A child-specific entry overrides the
    global delay; without one the global delay applies only when
    ``apply_to_all_children`` is set.
    """
    if not settings.enabled:
        return None
    rule = (settings.child_specific_settings or {}).get(child_id)
    if rule is not None:
        if not rule.get("enabled", True):
            return None
        return int(rule.get("time_value", settings.time_value)), rule.get("time_unit", settings.time_unit)
    if settings.apply_to_all_children:
        return settings.time_value, settings.time_unit
    return None


def auto_approve_at(settings: AutoApprovalSettings, completion: HabitCompletion) -> datetime | None:
    delay = effective_delay(settings, completion.child_id)
    if delay is None:
        return None
    return compute_auto_approval_deadline(completion.completed_at, *delay)


# ---------------------------------------------------------------------------
# Sweep
# ---------------------------------------------------------------------------


async def run_auto_approvals(db: AsyncSession, now: datetime | None = None) -> int:
    """Approve every pending completion whose auto-approval deadline has passed.

    Only families whose owning parent is premium are considered. Returns the
    number of completions approved; a failed sweep is rolled back and
    reported as 0.
    """
    now = as_utc(now) if now is not None else utcnow()
    approved = 0
    try:
        rows = await db.execute(
            select(HabitCompletion.id, HabitCompletion.child_id, HabitCompletion.completed_at, Child.parent_id)
            .join(Child, Child.id == HabitCompletion.child_id)
            .join(AutoApprovalSettings, AutoApprovalSettings.user_id == Child.parent_id)
            .where(HabitCompletion.status == "pending", AutoApprovalSettings.enabled.is_(True))
            .order_by(HabitCompletion.completed_at)
        )
        candidates = rows.all()

        settings_cache: dict[str, AutoApprovalSettings] = {}
        premium_cache: dict[str, bool] = {}
        for completion_id, child_id, completed_at, parent_id in candidates:
            if parent_id not in premium_cache:
                parent = (await db.execute(select(User).where(User.id == parent_id))).scalar_one()
                premium_cache[parent_id] = is_premium(parent)
                settings_cache[parent_id] = await get_auto_approval_settings(db, parent_id)
            if not premium_cache[parent_id]:
                continue

            delay = effective_delay(settings_cache[parent_id], child_id)
            if delay is None or compute_auto_approval_deadline(completed_at, *delay) > now:
                continue

            try:
                async with db.begin_nested():
                    await approve_completion(db, completion_id, AUTO_APPROVER, now=now, auto=True)
                approved += 1
            except HeroesError as exc:
                logger.info("Skipping auto-approval of %s: %s", completion_id, exc)

        await db.commit()
    except Exception:
        await db.rollback()
        logger.exception("Auto-approval sweep failed; will retry next tick")
        return 0

    if approved:
        logger.info("Auto-approved %d habit completions", approved)
    return approved


async def get_auto_approval_stats(db: AsyncSession, child_ids: list[str], now: datetime | None = None) -> dict[str, int]:
    now = as_utc(now) if now is not None else utcnow()
    if not child_ids:
        return {"this_week": 0, "total_saved": 0, "pending": 0}

    base = select(func.count()).select_from(HabitCompletion).where(
        HabitCompletion.child_id.in_(child_ids),
        HabitCompletion.is_auto_approved.is_(True),
    )
    total_saved = (await db.execute(base)).scalar_one()
    this_week = (await db.execute(base.where(HabitCompletion.reviewed_at >= now - timedelta(days=7)))).scalar_one()
    return {
        "this_week": this_week,
        "total_saved": total_saved,
        "pending": await count_pending(db, child_ids),
    }
