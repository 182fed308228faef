"""Builders and auth helpers shared by the test modules."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy.ext.asyncio import AsyncSession

from heroes.auth.jwt import create_access_token
from heroes.auth.service import register_parent
from heroes.db.models import Child, Habit, User

PARENT_PASSWORD = "Sup3rSecret"

# A Wednesday
NOW = datetime(2026, 3, 11, 12, 0, 0, tzinfo=timezone.utc)


@dataclass
class Family:
    parent: User
    child: Child
    pin: str
    habit: Habit


async def make_parent(
    db: AsyncSession,
    email: str = "sarah@example.com",
    first_name: str = "Sarah",
    join_family_code: str | None = None,
) -> User:
    user = await register_parent(
        db,
        email=email,
        password=PARENT_PASSWORD,
        first_name=first_name,
        last_name="Hero",
        join_family_code=join_family_code,
    )
    await db.commit()
    return user


def parent_headers(user: User) -> dict[str, str]:
    token = create_access_token(user.id, "parent", user.family_code)
    return {"Authorization": f"Bearer {token}"}


def child_headers(child: Child, family_code: str) -> dict[str, str]:
    token = create_access_token(child.id, "child", family_code)
    return {"Authorization": f"Bearer {token}"}
