"""Parental controls: screen time, bedtime, feature toggles and emergency mode."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import select

from heroes.clock import utcnow
from heroes.db.models import ParentalControls
from heroes.errors import AccessDeniedError

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

# Columns a parent may set through upsert_parental_controls.
EDITABLE_FIELDS = frozenset({
    "daily_screen_time",
    "bonus_time_per_habit",
    "weekend_bonus",
    "game_unlock_requirement",
    "max_game_time_per_day",
    "bedtime_mode",
    "bedtime_start",
    "bedtime_end",
    "enable_habits",
    "enable_gear_shop",
    "enable_mini_games",
    "enable_rewards",
    "block_all_apps",
    "limit_internet",
    "parent_contact_enabled",
})


async def get_parental_controls(db: AsyncSession, child_id: str) -> ParentalControls | None:
    result = await db.execute(select(ParentalControls).where(ParentalControls.child_id == child_id))
    return result.scalar_one_or_none()


async def create_default_parental_controls(db: AsyncSession, child_id: str) -> ParentalControls:
    controls = ParentalControls(child_id=child_id, updated_at=utcnow())
    db.add(controls)
    await db.flush()
    return controls


async def get_or_create_parental_controls(db: AsyncSession, child_id: str) -> ParentalControls:
    controls = await get_parental_controls(db, child_id)
    if controls is None:
        controls = await create_default_parental_controls(db, child_id)
    return controls


async def upsert_parental_controls(db: AsyncSession, child_id: str, changes: dict[str, Any]) -> ParentalControls:
    """Apply ``changes`` to the child's controls, creating the row if needed.

    Unknown keys are ignored. Emergency mode is only switched through
    ``set_emergency_mode``.
    """
    controls = await get_or_create_parental_controls(db, child_id)
    for field, value in changes.items():
        if field in EDITABLE_FIELDS and value is not None:
            setattr(controls, field, value)
    controls.updated_at = utcnow()
    await db.flush()
    return controls


async def set_emergency_mode(
    db: AsyncSession, child_id: str, active: bool, now: datetime | None = None
) -> ParentalControls:
    """Switch emergency mode. Activation also blocks all apps; deactivation lifts both."""
    if now is None:
        now = utcnow()
    controls = await get_or_create_parental_controls(db, child_id)
    controls.emergency_mode = active
    controls.block_all_apps = active
    controls.emergency_activated_at = now if active else None
    controls.updated_at = now
    await db.flush()
    logger.info("Emergency mode %s for child %s", "activated" if active else "deactivated", child_id)
    return controls


async def ensure_child_not_blocked(db: AsyncSession, child_id: str) -> None:
    """Raise AccessDeniedError while the child is in emergency mode."""
    controls = await get_parental_controls(db, child_id)
    if controls is not None and controls.emergency_mode:
        msg = "Access blocked by parental controls"
        raise AccessDeniedError(msg)
