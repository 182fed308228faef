"""The authenticated principal.

Every request authenticates through one bearer token. The token's ``role``
claim selects the variant: a parent account or a child profile. Handlers
depend on ``get_current_principal`` (either variant) or ``require_parent``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

import jwt
from fastapi import Depends, HTTPException, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from heroes.auth.jwt import verify_token
from heroes.auth.service import get_user_by_id
from heroes.database import get_session
from heroes.db.models import Child, User
from heroes.errors import AccessDeniedError
from heroes.family.controls_service import ensure_child_not_blocked

_bearer = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class ParentPrincipal:
    user: User
    role: Literal["parent"] = "parent"

    @property
    def id(self) -> str:
        return self.user.id

    @property
    def family_code(self) -> str:
        return self.user.family_code


@dataclass(frozen=True)
class ChildPrincipal:
    child: Child
    family_code: str
    role: Literal["child"] = "child"

    @property
    def id(self) -> str:
        return self.child.id


Principal = ParentPrincipal | ChildPrincipal


async def get_current_principal(
    credentials: HTTPAuthorizationCredentials | None = Security(_bearer),  # noqa: B008
    db: AsyncSession = Depends(get_session),  # noqa: B008
) -> Principal:
    """
    Verify the bearer token and load the principal it names.

    Raises 401 for a missing, invalid or stale token, and 403 for a child
    whose parental controls are in emergency mode.
    """
    if credentials is None:
        raise HTTPException(status_code=401, detail="Not authenticated")
    try:
        payload = verify_token(credentials.credentials)
    except jwt.InvalidTokenError as e:
        raise HTTPException(status_code=401, detail=str(e)) from e

    if payload["role"] == "parent":
        user = await get_user_by_id(db, payload["sub"])
        if user is None:
            raise HTTPException(status_code=401, detail="User not found")
        return ParentPrincipal(user=user)

    result = await db.execute(select(Child).where(Child.id == payload["sub"]))
    child = result.scalar_one_or_none()
    if child is None:
        raise HTTPException(status_code=401, detail="Child not found")
    await ensure_child_not_blocked(db, child.id)
    return ChildPrincipal(child=child, family_code=payload["family"])


async def require_parent(principal: Principal = Depends(get_current_principal)) -> ParentPrincipal:  # noqa: B008
    if not isinstance(principal, ParentPrincipal):
        msg = "Parent access required"
        raise AccessDeniedError(msg)
    return principal
