"""Rewards router: rewards, claims, the point ledger and the shop."""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from heroes.auth.principal import ParentPrincipal, Principal, get_current_principal, require_parent
from heroes.database import get_session
from heroes.db.models import Child
from heroes.family.scope import family_children, get_accessible_child, get_family_child
from heroes.rewards.recurring import get_recurring_rewards_for_child, get_reward_instances
from heroes.rewards.schemas import (
    AvatarItemResponse,
    ClaimResponse,
    GearItemResponse,
    PurchaseResponse,
    RewardCreate,
    RewardResponse,
    RewardUpdate,
    TransactionCreate,
    TransactionResponse,
)
from heroes.rewards.service import (
    approve_claim,
    approve_transaction,
    create_claim,
    create_pending_transaction,
    create_reward,
    delete_reward,
    get_claim,
    get_reward,
    get_transaction,
    list_claims,
    list_pending_transactions,
    list_rewards,
    list_transactions,
    mark_claim_used,
    update_reward,
)
from heroes.rewards.shop_service import list_avatar_items, list_gear_items, purchase_avatar, purchase_gear

logger = structlog.get_logger()

router = APIRouter(prefix="/api", tags=["Rewards"])


def _purchase_response(child: Child) -> PurchaseResponse:
    return PurchaseResponse(
        child_id=child.id,
        reward_points=child.reward_points,
        unlocked_avatars=list(child.unlocked_avatars or []),
        unlocked_gear=list(child.unlocked_gear or []),
    )


# ── Rewards ──


@router.get("/children/{child_id}/rewards", response_model=list[RewardResponse])
async def child_rewards(
    child_id: str,
    principal: Principal = Depends(get_current_principal),  # noqa: B008
    db: AsyncSession = Depends(get_session),  # noqa: B008
) -> list[RewardResponse]:
    child = await get_accessible_child(db, principal, child_id)
    return [RewardResponse.model_validate(r) for r in await list_rewards(db, child.id)]


@router.get("/children/{child_id}/rewards/recurring", response_model=list[RewardResponse])
async def child_recurring_rewards(
    child_id: str,
    parent: ParentPrincipal = Depends(require_parent),  # noqa: B008
    db: AsyncSession = Depends(get_session),  # noqa: B008
) -> list[RewardResponse]:
    """Recurring templates for a child, including paused ones."""
    child = await get_family_child(db, parent.family_code, child_id)
    return [RewardResponse.model_validate(r) for r in await get_recurring_rewards_for_child(db, child.id)]


@router.post("/children/{child_id}/rewards", response_model=RewardResponse, status_code=201)
async def add_reward(
    child_id: str,
    body: RewardCreate,
    parent: ParentPrincipal = Depends(require_parent),  # noqa: B008
    db: AsyncSession = Depends(get_session),  # noqa: B008
) -> RewardResponse:
    child = await get_family_child(db, parent.family_code, child_id)
    reward = await create_reward(db, child.id, **body.model_dump())
    await db.commit()
    return RewardResponse.model_validate(reward)


@router.put("/rewards/{reward_id}", response_model=RewardResponse)
async def edit_reward(
    reward_id: str,
    body: RewardUpdate,
    parent: ParentPrincipal = Depends(require_parent),  # noqa: B008
    db: AsyncSession = Depends(get_session),  # noqa: B008
) -> RewardResponse:
    reward = await get_reward(db, reward_id)
    await get_family_child(db, parent.family_code, reward.child_id)
    reward = await update_reward(db, reward, body.model_dump(exclude_unset=True))
    await db.commit()
    return RewardResponse.model_validate(reward)


@router.delete("/rewards/{reward_id}", status_code=204)
async def remove_reward(
    reward_id: str,
    parent: ParentPrincipal = Depends(require_parent),  # noqa: B008
    db: AsyncSession = Depends(get_session),  # noqa: B008
) -> None:
    reward = await get_reward(db, reward_id)
    await get_family_child(db, parent.family_code, reward.child_id)
    await delete_reward(db, reward)
    await db.commit()


@router.get("/rewards/{reward_id}/instances", response_model=list[RewardResponse])
async def recurring_instances(
    reward_id: str,
    parent: ParentPrincipal = Depends(require_parent),  # noqa: B008
    db: AsyncSession = Depends(get_session),  # noqa: B008
) -> list[RewardResponse]:
    """Instances a recurring reward has generated so far."""
    reward = await get_reward(db, reward_id)
    await get_family_child(db, parent.family_code, reward.child_id)
    return [RewardResponse.model_validate(r) for r in await get_reward_instances(db, reward.id)]


# ── Claims ──


@router.post("/rewards/{reward_id}/claim", response_model=ClaimResponse, status_code=201)
async def claim_reward(
    reward_id: str,
    principal: Principal = Depends(get_current_principal),  # noqa: B008
    db: AsyncSession = Depends(get_session),  # noqa: B008
) -> ClaimResponse:
    reward = await get_reward(db, reward_id)
    child = await get_accessible_child(db, principal, reward.child_id)
    claim = await create_claim(db, reward, child.id)
    await db.commit()
    logger.info("reward_claimed", reward_id=reward.id, child_id=child.id)
    return ClaimResponse.model_validate(claim)


@router.get("/children/{child_id}/claims", response_model=list[ClaimResponse])
async def child_claims(
    child_id: str,
    principal: Principal = Depends(get_current_principal),  # noqa: B008
    db: AsyncSession = Depends(get_session),  # noqa: B008
) -> list[ClaimResponse]:
    child = await get_accessible_child(db, principal, child_id)
    return [ClaimResponse.model_validate(c) for c in await list_claims(db, child.id)]


@router.post("/reward-claims/{claim_id}/approve", response_model=ClaimResponse)
async def approve_reward_claim(
    claim_id: str,
    parent: ParentPrincipal = Depends(require_parent),  # noqa: B008
    db: AsyncSession = Depends(get_session),  # noqa: B008
) -> ClaimResponse:
    claim = await get_claim(db, claim_id)
    await get_family_child(db, parent.family_code, claim.child_id)
    claim = await approve_claim(db, claim)
    await db.commit()
    return ClaimResponse.model_validate(claim)


@router.post("/reward-claims/{claim_id}/use", response_model=ClaimResponse)
async def use_reward_claim(
    claim_id: str,
    parent: ParentPrincipal = Depends(require_parent),  # noqa: B008
    db: AsyncSession = Depends(get_session),  # noqa: B008
) -> ClaimResponse:
    claim = await get_claim(db, claim_id)
    await get_family_child(db, parent.family_code, claim.child_id)
    claim = await mark_claim_used(db, claim)
    await db.commit()
    return ClaimResponse.model_validate(claim)


# ── Ledger ──


@router.get("/children/{child_id}/transactions", response_model=list[TransactionResponse])
async def child_transactions(
    child_id: str,
    principal: Principal = Depends(get_current_principal),  # noqa: B008
    db: AsyncSession = Depends(get_session),  # noqa: B008
) -> list[TransactionResponse]:
    child = await get_accessible_child(db, principal, child_id)
    return [TransactionResponse.model_validate(t) for t in await list_transactions(db, child.id)]


@router.post("/children/{child_id}/transactions", response_model=TransactionResponse, status_code=201)
async def add_bonus_transaction(
    child_id: str,
    body: TransactionCreate,
    parent: ParentPrincipal = Depends(require_parent),  # noqa: B008
    db: AsyncSession = Depends(get_session),  # noqa: B008
) -> TransactionResponse:
    child = await get_family_child(db, parent.family_code, child_id)
    entry = await create_pending_transaction(db, child.id, body.amount, body.source, body.description)
    await db.commit()
    return TransactionResponse.model_validate(entry)


@router.get("/transactions/pending", response_model=list[TransactionResponse])
async def pending_transactions(
    parent: ParentPrincipal = Depends(require_parent),  # noqa: B008
    db: AsyncSession = Depends(get_session),  # noqa: B008
) -> list[TransactionResponse]:
    children = await family_children(db, parent.family_code)
    entries = await list_pending_transactions(db, [c.id for c in children])
    return [TransactionResponse.model_validate(t) for t in entries]


@router.post("/transactions/{transaction_id}/approve", response_model=TransactionResponse)
async def approve_pending_transaction(
    transaction_id: str,
    parent: ParentPrincipal = Depends(require_parent),  # noqa: B008
    db: AsyncSession = Depends(get_session),  # noqa: B008
) -> TransactionResponse:
    entry = await get_transaction(db, transaction_id)
    await get_family_child(db, parent.family_code, entry.child_id)
    entry = await approve_transaction(db, entry, parent.id)
    await db.commit()
    return TransactionResponse.model_validate(entry)


# ── Shop ──


@router.get("/shop/avatars", response_model=list[AvatarItemResponse])
async def avatar_shop(
    _principal: Principal = Depends(get_current_principal),  # noqa: B008
    db: AsyncSession = Depends(get_session),  # noqa: B008
) -> list[AvatarItemResponse]:
    return [AvatarItemResponse.model_validate(i) for i in await list_avatar_items(db)]


@router.get("/shop/gear", response_model=list[GearItemResponse])
async def gear_shop(
    _principal: Principal = Depends(get_current_principal),  # noqa: B008
    db: AsyncSession = Depends(get_session),  # noqa: B008
) -> list[GearItemResponse]:
    return [GearItemResponse.model_validate(i) for i in await list_gear_items(db)]


@router.post("/children/{child_id}/shop/avatars/{avatar_type}", response_model=PurchaseResponse)
async def buy_avatar(
    child_id: str,
    avatar_type: str,
    principal: Principal = Depends(get_current_principal),  # noqa: B008
    db: AsyncSession = Depends(get_session),  # noqa: B008
) -> PurchaseResponse:
    """Unlock an avatar with reward points."""
    child = await get_accessible_child(db, principal, child_id)
    child = await purchase_avatar(db, child, avatar_type)
    await db.commit()
    return _purchase_response(child)


@router.post("/children/{child_id}/shop/gear/{gear_id}", response_model=PurchaseResponse)
async def buy_gear(
    child_id: str,
    gear_id: str,
    principal: Principal = Depends(get_current_principal),  # noqa: B008
    db: AsyncSession = Depends(get_session),  # noqa: B008
) -> PurchaseResponse:
    child = await get_accessible_child(db, principal, child_id)
    child = await purchase_gear(db, child, gear_id)
    await db.commit()
    return _purchase_response(child)
