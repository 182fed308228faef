"""Parental controls and weekend challenge endpoints."""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from heroes.auth.principal import ParentPrincipal, Principal, get_current_principal, require_parent
from heroes.database import get_session
from heroes.db.models import WeekendChallenge
from heroes.family.challenge_service import (
    accept_challenge,
    challenge_state,
    complete_challenge,
    create_challenge,
    get_challenge,
    list_challenges,
)
from heroes.family.controls_service import get_or_create_parental_controls, set_emergency_mode, upsert_parental_controls
from heroes.family.schemas import (
    ChallengeCreate,
    ChallengeResponse,
    ParentalControlsResponse,
    ParentalControlsUpdate,
)
from heroes.family.scope import get_accessible_child, get_family_child

logger = structlog.get_logger()

router = APIRouter(prefix="/api", tags=["Family"])


def _challenge_response(challenge: WeekendChallenge) -> ChallengeResponse:
    response = ChallengeResponse.model_validate(challenge)
    response.state = challenge_state(challenge)
    return response


# ── Parental controls ──


@router.get("/children/{child_id}/parental-controls", response_model=ParentalControlsResponse)
async def read_controls(
    child_id: str,
    principal: Principal = Depends(get_current_principal),  # noqa: B008
    db: AsyncSession = Depends(get_session),  # noqa: B008
) -> ParentalControlsResponse:
    child = await get_accessible_child(db, principal, child_id)
    controls = await get_or_create_parental_controls(db, child.id)
    await db.commit()
    return ParentalControlsResponse.model_validate(controls)


@router.put("/children/{child_id}/parental-controls", response_model=ParentalControlsResponse)
async def write_controls(
    child_id: str,
    body: ParentalControlsUpdate,
    parent: ParentPrincipal = Depends(require_parent),  # noqa: B008
    db: AsyncSession = Depends(get_session),  # noqa: B008
) -> ParentalControlsResponse:
    child = await get_family_child(db, parent.family_code, child_id)
    controls = await upsert_parental_controls(db, child.id, body.model_dump(exclude_unset=True))
    await db.commit()
    return ParentalControlsResponse.model_validate(controls)


@router.post("/children/{child_id}/emergency/activate", response_model=ParentalControlsResponse)
async def activate_emergency(
    child_id: str,
    parent: ParentPrincipal = Depends(require_parent),  # noqa: B008
    db: AsyncSession = Depends(get_session),  # noqa: B008
) -> ParentalControlsResponse:
    """Block every child-side request until deactivated."""
    child = await get_family_child(db, parent.family_code, child_id)
    controls = await set_emergency_mode(db, child.id, True)
    await db.commit()
    logger.warning("emergency_mode_activated", child_id=child.id, parent_id=parent.id)
    return ParentalControlsResponse.model_validate(controls)


@router.post("/children/{child_id}/emergency/deactivate", response_model=ParentalControlsResponse)
async def deactivate_emergency(
    child_id: str,
    parent: ParentPrincipal = Depends(require_parent),  # noqa: B008
    db: AsyncSession = Depends(get_session),  # noqa: B008
) -> ParentalControlsResponse:
    child = await get_family_child(db, parent.family_code, child_id)
    controls = await set_emergency_mode(db, child.id, False)
    await db.commit()
    logger.info("emergency_mode_deactivated", child_id=child.id, parent_id=parent.id)
    return ParentalControlsResponse.model_validate(controls)


# ── Weekend challenges ──


@router.get("/children/{child_id}/challenges", response_model=list[ChallengeResponse])
async def child_challenges(
    child_id: str,
    principal: Principal = Depends(get_current_principal),  # noqa: B008
    db: AsyncSession = Depends(get_session),  # noqa: B008
) -> list[ChallengeResponse]:
    child = await get_accessible_child(db, principal, child_id)
    return [_challenge_response(c) for c in await list_challenges(db, child.id)]


@router.post("/children/{child_id}/challenges", response_model=ChallengeResponse, status_code=201)
async def add_challenge(
    child_id: str,
    body: ChallengeCreate,
    parent: ParentPrincipal = Depends(require_parent),  # noqa: B008
    db: AsyncSession = Depends(get_session),  # noqa: B008
) -> ChallengeResponse:
    child = await get_family_child(db, parent.family_code, child_id)
    challenge = await create_challenge(
        db,
        child.id,
        name=body.name,
        description=body.description,
        start_date=body.start_date,
        end_date=body.end_date,
        points_reward=body.points_reward,
    )
    await db.commit()
    return _challenge_response(challenge)


@router.post("/challenges/{challenge_id}/accept", response_model=ChallengeResponse)
async def accept(
    challenge_id: str,
    principal: Principal = Depends(get_current_principal),  # noqa: B008
    db: AsyncSession = Depends(get_session),  # noqa: B008
) -> ChallengeResponse:
    challenge = await get_challenge(db, challenge_id)
    await get_accessible_child(db, principal, challenge.child_id)
    challenge = await accept_challenge(db, challenge)
    await db.commit()
    return _challenge_response(challenge)


@router.post("/challenges/{challenge_id}/complete", response_model=ChallengeResponse)
async def complete(
    challenge_id: str,
    principal: Principal = Depends(get_current_principal),  # noqa: B008
    db: AsyncSession = Depends(get_session),  # noqa: B008
) -> ChallengeResponse:
    """Complete an accepted challenge, crediting its points to the child."""
    challenge = await get_challenge(db, challenge_id)
    await get_accessible_child(db, principal, challenge.child_id)
    challenge = await complete_challenge(db, challenge)
    await db.commit()
    logger.info("challenge_completed", challenge_id=challenge.id, child_id=challenge.child_id)
    return _challenge_response(challenge)
