"""
Authentication business logic.

Parents register with email + password and either start a new family or join
an existing one by family code. Children log in with username + PIN.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING

import structlog
from sqlalchemy import func, select

from heroes.auth.family_codes import (
    family_code_exists,
    generate_unique_family_code,
    normalize_family_code,
)
from heroes.auth.password import hash_password, validate_password_strength, verify_password
from heroes.db.models import Child, User
from heroes.errors import HeroesError, NotFoundError, StateConflictError
from heroes.family.controls_service import ensure_child_not_blocked

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = structlog.get_logger()


class InvalidCredentialsError(HeroesError):
    """Unknown account or wrong secret. Deliberately vague."""

    status_code = 401


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------


async def get_user_by_id(db: AsyncSession, user_id: str) -> User | None:
    result = await db.execute(select(User).where(User.id == user_id))
    return result.scalar_one_or_none()


async def get_user_by_email(db: AsyncSession, email: str) -> User | None:
    """Fetch a parent by email (case-insensitive)."""
    result = await db.execute(select(User).where(func.lower(User.email) == email.lower().strip()))
    return result.scalar_one_or_none()


async def get_child_by_username(db: AsyncSession, username: str) -> Child | None:
    result = await db.execute(select(Child).where(func.lower(Child.username) == username.lower().strip()))
    return result.scalar_one_or_none()


async def get_child_family_code(db: AsyncSession, child: Child) -> str:
    """A child's family is its owning parent's family."""
    parent = await get_user_by_id(db, child.parent_id)
    if parent is None:
        msg = "Parent account not found"
        raise NotFoundError(msg)
    return parent.family_code


# ---------------------------------------------------------------------------
# Parents
# ---------------------------------------------------------------------------


async def register_parent(
    db: AsyncSession,
    email: str,
    password: str,
    first_name: str,
    last_name: str,
    phone_number: str | None = None,
    join_family_code: str | None = None,
) -> User:
    """
    Register a parent account.

    With ``join_family_code`` the new parent becomes a co-parent of that
    family; otherwise a fresh family code is generated.

    Raises:
        PasswordStrengthError: Weak password.
        StateConflictError: Email already registered.
        NotFoundError: ``join_family_code`` does not match any family.
    """
    validate_password_strength(password)

    if await get_user_by_email(db, email) is not None:
        msg = "Email already registered"
        raise StateConflictError(msg)

    if join_family_code:
        family_code = normalize_family_code(join_family_code)
        if not await family_code_exists(db, family_code):
            msg = "Invalid family code"
            raise NotFoundError(msg)
    else:
        family_code = await generate_unique_family_code(db)

    now = datetime.now(timezone.utc)
    user = User(
        email=email.lower().strip(),
        password_hash=hash_password(password),
        first_name=first_name,
        last_name=last_name,
        phone_number=phone_number,
        family_code=family_code,
        created_at=now,
        updated_at=now,
    )
    db.add(user)
    await db.flush()
    logger.info("parent_registered", user_id=user.id, joined=bool(join_family_code))
    return user


async def authenticate_parent(db: AsyncSession, email: str, password: str) -> User:
    user = await get_user_by_email(db, email)
    if user is None or not verify_password(password, user.password_hash or ""):
        msg = "Invalid email or password"
        raise InvalidCredentialsError(msg)
    return user


# ---------------------------------------------------------------------------
# Children
# ---------------------------------------------------------------------------


async def authenticate_child(
    db: AsyncSession,
    username: str,
    pin: str,
    family_code: str | None = None,
) -> tuple[Child, str]:
    """
    Authenticate a child by username + PIN.

    Returns:
        Tuple of (child, family_code).

    Raises:
        InvalidCredentialsError: Unknown username, wrong PIN, or the child
            does not belong to the supplied family.
        AccessDeniedError: The child's parental controls are in emergency mode.
    """
    child = await get_child_by_username(db, username)
    if child is None or not verify_password(pin, child.pin_hash or ""):
        msg = "Invalid username or PIN"
        raise InvalidCredentialsError(msg)

    child_family = await get_child_family_code(db, child)
    if family_code and normalize_family_code(family_code) != child_family:
        msg = "Invalid username or PIN"
        raise InvalidCredentialsError(msg)

    await ensure_child_not_blocked(db, child.id)

    logger.info("child_authenticated", child_id=child.id)
    return child, child_family
