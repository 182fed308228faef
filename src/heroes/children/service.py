"""Child profiles: creation with credentials and defaults, edits, deletion,
and XP / reward point settlement.
"""

from __future__ import annotations

import logging
import re
import secrets
from datetime import datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import delete, select

from heroes.auth.password import generate_pin, hash_password, validate_pin
from heroes.children.levels import compute_level
from heroes.clock import utcnow
from heroes.db.models import (
    Child,
    Habit,
    HabitCompletion,
    ParentalControls,
    Reward,
    RewardClaim,
    RewardTransaction,
    User,
    WeekendChallenge,
)
from heroes.errors import DomainValidationError, StateConflictError
from heroes.family.controls_service import create_default_parental_controls
from heroes.rewards.seed import create_default_rewards
from heroes.sync.service import emit_sync_event

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = frozenset({"name", "avatar_type", "avatar_url"})


def _username_base(name: str) -> str:
    base = re.sub(r"[^a-z0-9]", "", name.lower())
    return base or "hero"


async def _username_taken(db: AsyncSession, username: str) -> bool:
    result = await db.execute(select(Child.id).where(Child.username == username))
    return result.scalar_one_or_none() is not None


async def generate_child_username(db: AsyncSession, name: str) -> str:
    """Lowercased alphanumeric name plus a number below 100, e.g. ``emma42``."""
    base = _username_base(name)
    for _ in range(10):
        candidate = f"{base}{secrets.randbelow(100)}"
        if not await _username_taken(db, candidate):
            return candidate
    # Crowded base name: widen the suffix.
    return f"{base}{secrets.randbelow(1_000_000)}"


async def get_child(db: AsyncSession, child_id: str) -> Child | None:
    result = await db.execute(select(Child).where(Child.id == child_id))
    return result.scalar_one_or_none()


async def create_child(
    db: AsyncSession,
    parent: User,
    name: str,
    avatar_type: str = "robot",
    username: str | None = None,
    pin: str | None = None,
    now: datetime | None = None,
) -> tuple[Child, str]:
    """
    Create a child profile with login credentials, default parental controls
    and the starter rewards.

    Returns:
        Tuple of (child, plaintext PIN). The PIN is only ever returned here.
    """
    if now is None:
        now = utcnow()
    name = name.strip()
    if not name:
        msg = "Child name cannot be empty"
        raise DomainValidationError(msg)

    if username:
        username = username.strip().lower()
        if await _username_taken(db, username):
            msg = "Username already taken"
            raise StateConflictError(msg)
    else:
        username = await generate_child_username(db, name)

    if pin is None:
        pin = generate_pin()
    validate_pin(pin)

    child = Child(
        parent_id=parent.id,
        name=name,
        username=username,
        pin_hash=hash_password(pin),
        avatar_type=avatar_type,
        unlocked_avatars=[avatar_type],
        unlocked_gear=[],
        created_at=now,
        updated_at=now,
    )
    db.add(child)
    await db.flush()

    await create_default_parental_controls(db, child.id)
    await create_default_rewards(db, child.id, now=now)

    await emit_sync_event(
        db, parent.id, "child_created", "child", child.id, {"child_id": child.id, "name": child.name}, now=now
    )
    logger.info("Created child %s for parent %s", child.id, parent.id)
    return child, pin


async def update_child(db: AsyncSession, child: Child, changes: dict[str, Any], now: datetime | None = None) -> Child:
    for field, value in changes.items():
        if field in EDITABLE_FIELDS and value is not None:
            setattr(child, field, value)
    if "pin" in changes and changes["pin"] is not None:
        validate_pin(changes["pin"])
        child.pin_hash = hash_password(changes["pin"])
    child.updated_at = now or utcnow()
    await db.flush()
    await emit_sync_event(db, child.parent_id, "child_updated", "child", child.id, {"child_id": child.id})
    return child


async def delete_child(db: AsyncSession, child: Child) -> None:
    """Delete a child and every row that depends on it."""
    child_id = child.id
    parent_id = child.parent_id
    for model in (
        HabitCompletion,
        RewardClaim,
        RewardTransaction,
        Reward,
        Habit,
        WeekendChallenge,
        ParentalControls,
    ):
        await db.execute(delete(model).where(model.child_id == child_id))
    await db.delete(child)
    await db.flush()
    await emit_sync_event(db, parent_id, "child_deleted", "child", child_id, {"child_id": child_id})
    logger.info("Deleted child %s", child_id)


# ---------------------------------------------------------------------------
# Settlement
# ---------------------------------------------------------------------------


def add_xp(child: Child, amount: int, now: datetime | None = None) -> bool:
    """Add XP and recompute level. Returns True on level up."""
    old_level = child.level
    info = compute_level(child.total_xp + amount)
    child.total_xp = info["total_xp"]
    child.level = info["level"]
    child.xp = info["xp"]
    child.updated_at = now or utcnow()
    return child.level > old_level


def credit_reward_points(child: Child, amount: int, now: datetime | None = None) -> None:
    child.reward_points += amount
    child.updated_at = now or utcnow()


def debit_reward_points(child: Child, amount: int, now: datetime | None = None) -> None:
    """Raise StateConflictError instead of letting the balance go negative."""
    if child.reward_points < amount:
        msg = "Not enough reward points"
        raise StateConflictError(msg)
    child.reward_points -= amount
    child.updated_at = now or utcnow()
