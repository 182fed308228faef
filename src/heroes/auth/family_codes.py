"""Family code generation.

Codes are 6 characters from an alphabet without the easily-confused
characters I, O, 0 and 1. They are generated server-side and shared by
co-parents and used by children to bind their login to a family.
"""

from __future__ import annotations

import secrets

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from heroes.db.models import User

FAMILY_CODE_CHARSET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
FAMILY_CODE_LENGTH = 6


def generate_family_code() -> str:
    return "".join(secrets.choice(FAMILY_CODE_CHARSET) for _ in range(FAMILY_CODE_LENGTH))


def normalize_family_code(code: str) -> str:
    """Family codes are matched case-insensitively."""
    return code.strip().upper()


async def family_code_exists(db: AsyncSession, code: str) -> bool:
    result = await db.execute(select(User.id).where(User.family_code == normalize_family_code(code)).limit(1))
    return result.scalar_one_or_none() is not None


async def generate_unique_family_code(db: AsyncSession) -> str:
    """Generate a family code that no parent uses yet."""
    for _ in range(10):
        code = generate_family_code()
        if not await family_code_exists(db, code):
            return code
    raise RuntimeError("Failed to generate unique family code after 10 attempts")
