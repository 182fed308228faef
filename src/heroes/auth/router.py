"""Authentication router: all /api/auth/* endpoints."""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from heroes.auth.jwt import create_access_token
from heroes.auth.principal import ParentPrincipal, Principal, get_current_principal
from heroes.auth.schemas import (
    ChildLoginRequest,
    LoginRequest,
    ParentResponse,
    PrincipalResponse,
    RegisterRequest,
    TokenResponse,
)
from heroes.auth.service import authenticate_child, authenticate_parent, register_parent
from heroes.children.schemas import ChildResponse
from heroes.config import get_settings
from heroes.database import get_session
from heroes.db.models import Child, User

logger = structlog.get_logger()

router = APIRouter(prefix="/api/auth", tags=["Authentication"])


def _parent_token(user: User) -> TokenResponse:
    settings = get_settings()
    return TokenResponse(
        access_token=create_access_token(user.id, "parent", user.family_code),
        expires_in=settings.jwt_access_token_expire_minutes * 60,
        role="parent",
        user=ParentResponse.model_validate(user),
    )


def _child_token(child: Child, family_code: str) -> TokenResponse:
    settings = get_settings()
    return TokenResponse(
        access_token=create_access_token(child.id, "child", family_code),
        expires_in=settings.jwt_access_token_expire_minutes * 60,
        role="child",
        child=ChildResponse.model_validate(child).model_dump(mode="json"),
    )


@router.post("/register", response_model=TokenResponse, status_code=201)
async def register(
    body: RegisterRequest,
    db: AsyncSession = Depends(get_session),  # noqa: B008
) -> TokenResponse:
    """Register a parent and start (or join) a family."""
    user = await register_parent(
        db,
        email=body.email,
        password=body.password,
        first_name=body.first_name,
        last_name=body.last_name,
        phone_number=body.phone_number,
        join_family_code=body.join_family_code,
    )
    await db.commit()
    logger.info("parent_registered", user_id=user.id)
    return _parent_token(user)


@router.post("/login", response_model=TokenResponse)
async def login(
    body: LoginRequest,
    db: AsyncSession = Depends(get_session),  # noqa: B008
) -> TokenResponse:
    user = await authenticate_parent(db, body.email, body.password)
    logger.info("parent_login", user_id=user.id)
    return _parent_token(user)


@router.post("/child-login", response_model=TokenResponse)
async def child_login(
    body: ChildLoginRequest,
    db: AsyncSession = Depends(get_session),  # noqa: B008
) -> TokenResponse:
    """Child login with username + 4-digit PIN, optionally bound to a family code."""
    child, family_code = await authenticate_child(db, body.username, body.pin, body.family_code)
    logger.info("child_login", child_id=child.id)
    return _child_token(child, family_code)


@router.get("/me", response_model=PrincipalResponse)
async def me(principal: Principal = Depends(get_current_principal)) -> PrincipalResponse:  # noqa: B008
    if isinstance(principal, ParentPrincipal):
        return PrincipalResponse(
            role="parent",
            family_code=principal.family_code,
            user=ParentResponse.model_validate(principal.user),
        )
    return PrincipalResponse(
        role="child",
        family_code=principal.family_code,
        child=ChildResponse.model_validate(principal.child).model_dump(mode="json"),
    )
