"""Family scoping.

A family is the set of parent accounts sharing a family code together with
every child those parents own. Parents may act on any child in their family;
a child principal may only act on itself.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import select

from heroes.db.models import Child, User
from heroes.errors import AccessDeniedError, NotFoundError

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from heroes.auth.principal import Principal


async def family_user_ids(db: AsyncSession, family_code: str) -> list[str]:
    result = await db.execute(select(User.id).where(User.family_code == family_code).order_by(User.created_at))
    return list(result.scalars().all())


async def family_user_ids_for_user(db: AsyncSession, user_id: str) -> list[str]:
    """All parent ids in the same family as ``user_id`` (including itself)."""
    result = await db.execute(select(User.family_code).where(User.id == user_id))
    family_code = result.scalar_one_or_none()
    if family_code is None:
        return []
    return await family_user_ids(db, family_code)


async def family_children(db: AsyncSession, family_code: str) -> list[Child]:
    result = await db.execute(
        select(Child)
        .join(User, User.id == Child.parent_id)
        .where(User.family_code == family_code)
        .order_by(Child.created_at, Child.name)
    )
    return list(result.scalars().all())


async def get_family_child(db: AsyncSession, family_code: str, child_id: str) -> Child:
    """
    Load a child that belongs to ``family_code``.

    Raises:
        NotFoundError: No such child, or it belongs to another family. Foreign
            children are reported as missing rather than forbidden.
    """
    result = await db.execute(
        select(Child)
        .join(User, User.id == Child.parent_id)
        .where(Child.id == child_id, User.family_code == family_code)
    )
    child = result.scalar_one_or_none()
    if child is None:
        msg = "Child not found"
        raise NotFoundError(msg)
    return child


async def get_accessible_child(db: AsyncSession, principal: Principal, child_id: str) -> Child:
    """Resolve ``child_id`` for the principal, enforcing family and self scope."""
    if principal.role == "child" and principal.id != child_id:
        msg = "Children may only access their own data"
        raise AccessDeniedError(msg)
    return await get_family_child(db, principal.family_code, child_id)
