"""Child profile router: /api/children."""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from heroes.auth.principal import ParentPrincipal, Principal, get_current_principal, require_parent
from heroes.children.levels import compute_level
from heroes.children.schemas import (
    ChildCreate,
    ChildCreatedResponse,
    ChildResponse,
    ChildUpdate,
    LevelResponse,
)
from heroes.children.service import create_child, delete_child, update_child
from heroes.database import get_session
from heroes.family.scope import family_children, get_accessible_child, get_family_child

logger = structlog.get_logger()

router = APIRouter(prefix="/api/children", tags=["Children"])


@router.get("", response_model=list[ChildResponse])
async def list_children(
    parent: ParentPrincipal = Depends(require_parent),  # noqa: B008
    db: AsyncSession = Depends(get_session),  # noqa: B008
) -> list[ChildResponse]:
    children = await family_children(db, parent.family_code)
    return [ChildResponse.model_validate(c) for c in children]


@router.post("", response_model=ChildCreatedResponse, status_code=201)
async def add_child(
    body: ChildCreate,
    parent: ParentPrincipal = Depends(require_parent),  # noqa: B008
    db: AsyncSession = Depends(get_session),  # noqa: B008
) -> ChildCreatedResponse:
    """Create a child. Username and PIN are generated when omitted."""
    child, pin = await create_child(
        db, parent.user, body.name, avatar_type=body.avatar_type, username=body.username, pin=body.pin
    )
    await db.commit()
    await db.refresh(child)
    logger.info("child_created", child_id=child.id, parent_id=parent.id)
    return ChildCreatedResponse(child=ChildResponse.model_validate(child), username=child.username or "", pin=pin)


@router.get("/{child_id}", response_model=ChildResponse)
async def get_child_profile(
    child_id: str,
    principal: Principal = Depends(get_current_principal),  # noqa: B008
    db: AsyncSession = Depends(get_session),  # noqa: B008
) -> ChildResponse:
    child = await get_accessible_child(db, principal, child_id)
    return ChildResponse.model_validate(child)


@router.get("/{child_id}/level", response_model=LevelResponse)
async def get_child_level(
    child_id: str,
    principal: Principal = Depends(get_current_principal),  # noqa: B008
    db: AsyncSession = Depends(get_session),  # noqa: B008
) -> LevelResponse:
    child = await get_accessible_child(db, principal, child_id)
    return LevelResponse(**compute_level(child.total_xp))


@router.put("/{child_id}", response_model=ChildResponse)
async def edit_child(
    child_id: str,
    body: ChildUpdate,
    parent: ParentPrincipal = Depends(require_parent),  # noqa: B008
    db: AsyncSession = Depends(get_session),  # noqa: B008
) -> ChildResponse:
    child = await get_family_child(db, parent.family_code, child_id)
    child = await update_child(db, child, body.model_dump(exclude_unset=True))
    await db.commit()
    await db.refresh(child)
    return ChildResponse.model_validate(child)


@router.delete("/{child_id}", status_code=204)
async def remove_child(
    child_id: str,
    parent: ParentPrincipal = Depends(require_parent),  # noqa: B008
    db: AsyncSession = Depends(get_session),  # noqa: B008
) -> None:
    child = await get_family_child(db, parent.family_code, child_id)
    await delete_child(db, child)
    await db.commit()
    logger.info("child_deleted", child_id=child_id, parent_id=parent.id)
