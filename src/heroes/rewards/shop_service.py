"""Avatar and gear shop. Prices come from the catalogue, never from the client."""

from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from heroes.children.service import debit_reward_points
from heroes.clock import utcnow
from heroes.db.models import AvatarShopItem, Child, GearShopItem
from heroes.errors import NotFoundError, StateConflictError
from heroes.rewards.service import record_transaction
from heroes.sync.service import emit_sync_event

logger = logging.getLogger(__name__)


async def list_avatar_items(db: AsyncSession) -> list[AvatarShopItem]:
    result = await db.execute(
        select(AvatarShopItem).where(AvatarShopItem.is_active.is_(True)).order_by(AvatarShopItem.cost)
    )
    return list(result.scalars().all())


async def list_gear_items(db: AsyncSession) -> list[GearShopItem]:
    result = await db.execute(
        select(GearShopItem).where(GearShopItem.is_active.is_(True)).order_by(GearShopItem.cost)
    )
    return list(result.scalars().all())


async def purchase_avatar(db: AsyncSession, child: Child, avatar_type: str, now: datetime | None = None) -> Child:
    """Unlock an avatar for the child, paying its catalogue cost in reward points."""
    if now is None:
        now = utcnow()
    result = await db.execute(
        select(AvatarShopItem).where(AvatarShopItem.avatar_type == avatar_type, AvatarShopItem.is_active.is_(True))
    )
    item = result.scalar_one_or_none()
    if item is None:
        msg = "Avatar not found in shop"
        raise NotFoundError(msg)

    unlocked = list(child.unlocked_avatars or [])
    if avatar_type in unlocked:
        msg = "Avatar already unlocked"
        raise StateConflictError(msg)

    debit_reward_points(child, item.cost, now)
    # Reassign so the JSON column is flagged dirty.
    child.unlocked_avatars = [*unlocked, avatar_type]
    await record_transaction(
        db, child.id, "spent", -item.cost, "avatar_purchase", f"Purchased avatar: {item.name}", now=now
    )
    await emit_sync_event(
        db, child.parent_id, "avatar_purchased", "child", child.id, {"child_id": child.id, "avatar_type": avatar_type}
    )
    logger.info("Child %s bought avatar %s for %d points", child.id, avatar_type, item.cost)
    return child


async def purchase_gear(db: AsyncSession, child: Child, gear_id: str, now: datetime | None = None) -> Child:
    if now is None:
        now = utcnow()
    result = await db.execute(
        select(GearShopItem).where(GearShopItem.id == gear_id, GearShopItem.is_active.is_(True))
    )
    item = result.scalar_one_or_none()
    if item is None:
        msg = "Gear not found in shop"
        raise NotFoundError(msg)

    unlocked = list(child.unlocked_gear or [])
    if gear_id in unlocked:
        msg = "Gear already unlocked"
        raise StateConflictError(msg)

    debit_reward_points(child, item.cost, now)
    child.unlocked_gear = [*unlocked, gear_id]
    await record_transaction(
        db, child.id, "spent", -item.cost, "gear_purchase", f"Purchased gear item: {item.name}", now=now
    )
    await emit_sync_event(
        db, child.parent_id, "gear_purchased", "child", child.id, {"child_id": child.id, "gear_id": gear_id}
    )
    logger.info("Child %s bought gear %s for %d points", child.id, gear_id, item.cost)
    return child
