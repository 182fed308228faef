"""Device registry, sync event log and family catch-up queries.

Clients poll: they register a device once, pull ``sync_family_data`` plus the
events newer than their last acknowledged sync, then acknowledge with
``mark_events_processed`` and a device heartbeat.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import or_, select, update

from heroes.clock import as_utc, utcnow
from heroes.config import get_settings
from heroes.db.models import (
    Child,
    Device,
    Habit,
    HabitCompletion,
    Reward,
    RewardClaim,
    SyncEvent,
    SyncLog,
    User,
)
from heroes.errors import DomainValidationError, NotFoundError
from heroes.family.scope import family_children, family_user_ids_for_user

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

DEVICE_TYPES = frozenset({"web", "ios", "android"})


# ---------------------------------------------------------------------------
# Device registry
# ---------------------------------------------------------------------------


async def get_device(db: AsyncSession, user_id: str, device_id: str) -> Device | None:
    result = await db.execute(select(Device).where(Device.user_id == user_id, Device.device_id == device_id))
    return result.scalar_one_or_none()


async def register_device(
    db: AsyncSession,
    user_id: str,
    device_id: str,
    device_name: str,
    device_type: str,
    push_token: str | None = None,
    now: datetime | None = None,
) -> Device:
    """Upsert a device keyed by (user_id, device_id).

    Re-registering updates name, type and push token, reactivates the device
    and bumps its last sync time.
    """
    if device_type not in DEVICE_TYPES:
        msg = f"Invalid device type '{device_type}'"
        raise DomainValidationError(msg)
    if now is None:
        now = utcnow()

    device = await get_device(db, user_id, device_id)
    if device is None:
        device = Device(
            user_id=user_id,
            device_id=device_id,
            device_name=device_name,
            device_type=device_type,
            push_token=push_token,
            is_active=True,
            last_sync_at=now,
            created_at=now,
            updated_at=now,
        )
        db.add(device)
        logger.info("Registered device %s for user %s", device_id, user_id)
    else:
        device.device_name = device_name
        device.device_type = device_type
        device.push_token = push_token
        device.is_active = True
        device.last_sync_at = now
        device.updated_at = now

    await db.flush()
    return device


async def deactivate_device(db: AsyncSession, user_id: str, device_id: str, now: datetime | None = None) -> Device:
    device = await get_device(db, user_id, device_id)
    if device is None:
        msg = "Device not found"
        raise NotFoundError(msg)
    device.is_active = False
    device.updated_at = now or utcnow()
    await db.flush()
    return device


async def get_user_devices(db: AsyncSession, user_id: str) -> list[Device]:
    """Active devices, most recently synced first."""
    result = await db.execute(
        select(Device)
        .where(Device.user_id == user_id, Device.is_active.is_(True))
        .order_by(Device.last_sync_at.desc())
    )
    return list(result.scalars().all())


async def update_device_last_sync(
    db: AsyncSession, user_id: str, device_id: str, now: datetime | None = None
) -> bool:
    """Heartbeat. Returns False when the device is unknown."""
    if now is None:
        now = utcnow()
    result = await db.execute(
        update(Device)
        .where(Device.user_id == user_id, Device.device_id == device_id)
        .values(last_sync_at=now, updated_at=now)
    )
    return (result.rowcount or 0) > 0


# ---------------------------------------------------------------------------
# Event log
# ---------------------------------------------------------------------------


async def create_sync_event(
    db: AsyncSession,
    user_id: str,
    event_type: str,
    entity_type: str,
    entity_id: str,
    event_data: dict[str, Any] | None = None,
    device_origin: str | None = None,
    now: datetime | None = None,
) -> SyncEvent:
    """Append an event to the log. Events are never edited afterwards."""
    event = SyncEvent(
        user_id=user_id,
        event_type=event_type,
        entity_type=entity_type,
        entity_id=entity_id,
        event_data=event_data,
        device_origin=device_origin,
        timestamp=now or utcnow(),
        processed=False,
    )
    db.add(event)
    await db.flush()
    return event


async def emit_sync_event(
    db: AsyncSession,
    user_id: str,
    event_type: str,
    entity_type: str,
    entity_id: str,
    event_data: dict[str, Any] | None = None,
    device_origin: str | None = None,
    now: datetime | None = None,
) -> SyncEvent | None:
    """Best-effort ``create_sync_event``.

    Runs inside a SAVEPOINT so a failed append leaves the caller's transaction
    usable. Failures are logged and swallowed; returns None in that case.
    """
    try:
        async with db.begin_nested():
            return await create_sync_event(
                db, user_id, event_type, entity_type, entity_id, event_data, device_origin, now
            )
    except Exception:
        logger.warning(
            "Failed to record sync event %s for %s %s", event_type, entity_type, entity_id, exc_info=True
        )
        return None


async def log_sync_activity(
    db: AsyncSession,
    user_id: str,
    device: Device,
    sync_type: str,
    entity_type: str,
    entity_id: str,
    operation: str,
    sync_direction: str,
    sync_data: dict[str, Any] | None = None,
    now: datetime | None = None,
) -> SyncLog:
    entry = SyncLog(
        user_id=user_id,
        device_id=device.id,
        sync_type=sync_type,
        entity_type=entity_type,
        entity_id=entity_id,
        operation=operation,
        sync_direction=sync_direction,
        sync_data=sync_data,
        timestamp=now or utcnow(),
    )
    db.add(entry)
    await db.flush()
    return entry


async def get_pending_sync_events(
    db: AsyncSession,
    user_id: str,
    last_sync_time: datetime | None = None,
    limit: int | None = None,
    child_id: str | None = None,
) -> list[SyncEvent]:
    """Events for the user's family, newest first.

    Only events strictly newer than ``last_sync_time`` are returned when it is
    given. With ``child_id`` the feed is narrowed to events about that child:
    the child itself is the entity or the payload names it.

    The result is capped at ``sync_event_limit`` with no pagination, so a
    client that falls further behind than the cap must resync full state.
    """
    if limit is None:
        limit = get_settings().sync_event_limit
    user_ids = await family_user_ids_for_user(db, user_id) or [user_id]

    stmt = select(SyncEvent).where(SyncEvent.user_id.in_(user_ids))
    if last_sync_time is not None:
        stmt = stmt.where(SyncEvent.timestamp > as_utc(last_sync_time))
    if child_id is not None:
        stmt = stmt.where(
            or_(SyncEvent.entity_id == child_id, SyncEvent.event_data["child_id"].as_string() == child_id)
        )
    stmt = stmt.order_by(SyncEvent.timestamp.desc(), SyncEvent.id.desc()).limit(limit)

    result = await db.execute(stmt)
    return list(result.scalars().all())


async def mark_events_processed(
    db: AsyncSession,
    event_ids: list[str],
    user_ids: list[str] | None = None,
) -> int:
    """Flip ``processed`` for every id in one statement. Returns rows updated.

    ``user_ids`` restricts the update to events owned by those users.
    """
    if not event_ids:
        return 0
    stmt = update(SyncEvent).where(SyncEvent.id.in_(event_ids)).values(processed=True)
    if user_ids is not None:
        stmt = stmt.where(SyncEvent.user_id.in_(user_ids))
    result = await db.execute(stmt.execution_options(synchronize_session=False))
    return result.rowcount or 0


# ---------------------------------------------------------------------------
# Family snapshot
# ---------------------------------------------------------------------------


async def sync_family_data(db: AsyncSession, user_id: str) -> dict[str, list[Any]]:
    """Full family snapshot: children and, for every child, their habits,
    recent completions, rewards and recent reward claims.
    """
    settings = get_settings()
    result = await db.execute(select(User.family_code).where(User.id == user_id))
    family_code = result.scalar_one_or_none()
    if family_code is None:
        msg = "User not found"
        raise NotFoundError(msg)

    children: list[Child] = await family_children(db, family_code)
    habits: list[Habit] = []
    completions: list[HabitCompletion] = []
    rewards: list[Reward] = []
    claims: list[RewardClaim] = []

    for child in children:
        habit_rows = await db.execute(select(Habit).where(Habit.child_id == child.id).order_by(Habit.created_at))
        habits.extend(habit_rows.scalars().all())

        completion_rows = await db.execute(
            select(HabitCompletion)
            .where(HabitCompletion.child_id == child.id)
            .order_by(HabitCompletion.completed_at.desc())
            .limit(settings.completion_sync_limit)
        )
        completions.extend(completion_rows.scalars().all())

        reward_rows = await db.execute(
            select(Reward).where(Reward.child_id == child.id, Reward.is_active.is_(True)).order_by(Reward.created_at)
        )
        rewards.extend(reward_rows.scalars().all())

        claim_rows = await db.execute(
            select(RewardClaim)
            .where(RewardClaim.child_id == child.id)
            .order_by(RewardClaim.claimed_at.desc())
            .limit(settings.claim_sync_limit)
        )
        claims.extend(claim_rows.scalars().all())

    return {
        "children": children,
        "habits": habits,
        "completions": completions,
        "rewards": rewards,
        "claims": claims,
    }
