"""Seed data: starter rewards for new children and the avatar / gear shop catalogue."""

from __future__ import annotations

import logging
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from heroes.clock import utcnow
from heroes.db.models import AvatarShopItem, GearShopItem, Reward

logger = logging.getLogger(__name__)

DEFAULT_CHILD_REWARDS: list[dict] = [
    {
        "name": "Extra Screen Time (30 min)",
        "description": "Earn 30 minutes of extra screen time",
        "type": "screen_time",
        "value": "30_minutes",
        "cost": 3,
        "cost_type": "habits",
    },
    {
        "name": "Special Treat",
        "description": "Pick a favourite snack or dessert",
        "type": "treat",
        "value": "special_snack",
        "cost": 5,
        "cost_type": "habits",
    },
    {
        "name": "Choose Dinner Menu",
        "description": "Decide what the family eats for dinner",
        "type": "privilege",
        "value": "dinner_choice",
        "cost": 5,
        "cost_type": "streak",
    },
]

AVATAR_SHOP_SEED: list[dict] = [
    {"name": "Robot Hero", "avatar_type": "robot", "cost": 0, "rarity": "common",
     "description": "The trusty starter hero"},
    {"name": "Ninja Hero", "avatar_type": "ninja", "cost": 25, "rarity": "common",
     "description": "Quiet, quick and always on time"},
    {"name": "Princess Hero", "avatar_type": "princess", "cost": 25, "rarity": "common",
     "description": "Rules the kingdom of good habits"},
    {"name": "Animal Hero", "avatar_type": "animal", "cost": 40, "rarity": "rare",
     "description": "Wild about routines"},
    {"name": "Wizard Hero", "avatar_type": "wizard", "cost": 75, "rarity": "epic",
     "description": "Turns chores into magic"},
    {"name": "Superhero", "avatar_type": "superhero", "cost": 150, "rarity": "legendary",
     "description": "The ultimate habit hero"},
]

GEAR_SHOP_SEED: list[dict] = [
    {"name": "Brave Helmet", "gear_type": "helmet", "cost": 20, "rarity": "common",
     "description": "Protects against grumpy mornings", "effect": "+1 courage"},
    {"name": "Shiny Armor", "gear_type": "armor", "cost": 35, "rarity": "rare",
     "description": "Sparkles with every finished chore", "effect": "+2 defense"},
    {"name": "Toothbrush Sword", "gear_type": "weapon", "cost": 30, "rarity": "common",
     "description": "Defeats plaque monsters", "effect": "+1 clean"},
    {"name": "Homework Shield", "gear_type": "accessory", "cost": 45, "rarity": "epic",
     "description": "Blocks distractions", "effect": "+2 focus"},
]


async def create_default_rewards(db: AsyncSession, child_id: str, now: datetime | None = None) -> list[Reward]:
    """Give a new child the starter rewards."""
    if now is None:
        now = utcnow()
    rewards = [Reward(child_id=child_id, created_at=now, **data) for data in DEFAULT_CHILD_REWARDS]
    db.add_all(rewards)
    await db.flush()
    return rewards


async def seed_shop(db: AsyncSession) -> int:
    """Insert missing catalogue entries. Safe to run on every startup."""
    seeded = 0

    existing_avatars = set((await db.execute(select(AvatarShopItem.avatar_type))).scalars().all())
    for item in AVATAR_SHOP_SEED:
        if item["avatar_type"] not in existing_avatars:
            db.add(AvatarShopItem(**item))
            seeded += 1

    existing_gear = set((await db.execute(select(GearShopItem.name))).scalars().all())
    for item in GEAR_SHOP_SEED:
        if item["name"] not in existing_gear:
            db.add(GearShopItem(**item))
            seeded += 1

    await db.commit()
    logger.info("Seeded %d shop items", seeded)
    return seeded
