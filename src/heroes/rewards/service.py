"""Rewards, reward claims and the reward point ledger."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import select

from heroes.children.service import credit_reward_points, debit_reward_points, get_child
from heroes.clock import utcnow
from heroes.db.models import Child, Reward, RewardClaim, RewardTransaction
from heroes.errors import DomainValidationError, NotFoundError, StateConflictError
from heroes.rewards.recurring import RECURRING_CATEGORIES, next_occurrence
from heroes.sync.service import emit_sync_event

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

logger = logging.getLogger(__name__)

REWARD_CATEGORIES = frozenset({*RECURRING_CATEGORIES, "none"})

EDITABLE_FIELDS = frozenset({"name", "description", "type", "value", "cost", "cost_type", "is_active"})

# Claim lifecycle: pending -> approved -> used
VALID_CLAIM_TRANSITIONS: dict[str, set[str]] = {
    "pending": {"approved"},
    "approved": {"used"},
    "used": set(),
}


def validate_claim_transition(current: str, target: str) -> None:
    if target not in VALID_CLAIM_TRANSITIONS.get(current, set()):
        msg = f"Reward claim is already {current}"
        raise StateConflictError(msg)


# ---------------------------------------------------------------------------
# Rewards
# ---------------------------------------------------------------------------


async def get_reward(db: AsyncSession, reward_id: str) -> Reward:
    result = await db.execute(select(Reward).where(Reward.id == reward_id))
    reward = result.scalar_one_or_none()
    if reward is None:
        msg = "Reward not found"
        raise NotFoundError(msg)
    return reward


async def list_rewards(db: AsyncSession, child_id: str, include_inactive: bool = False) -> list[Reward]:
    stmt = select(Reward).where(Reward.child_id == child_id)
    if not include_inactive:
        stmt = stmt.where(Reward.is_active.is_(True))
    result = await db.execute(stmt.order_by(Reward.created_at))
    return list(result.scalars().all())


async def _parent_id_of(db: AsyncSession, child_id: str) -> str:
    return (await db.execute(select(Child.parent_id).where(Child.id == child_id))).scalar_one()


async def create_reward(
    db: AsyncSession,
    child_id: str,
    name: str,
    type: str,  # noqa: A002
    cost: int,
    description: str | None = None,
    value: str | None = None,
    cost_type: str = "habits",
    category: str = "none",
    is_recurring: bool = False,
    now: datetime | None = None,
) -> Reward:
    """Create a reward. Recurring rewards are first due one cadence unit from now."""
    if now is None:
        now = utcnow()
    if cost < 0:
        msg = "Reward cost cannot be negative"
        raise DomainValidationError(msg)
    if category not in REWARD_CATEGORIES:
        msg = f"Invalid reward category '{category}'"
        raise DomainValidationError(msg)
    if is_recurring and category == "none":
        msg = "Recurring rewards need a daily, weekly, monthly or yearly category"
        raise DomainValidationError(msg)

    reward = Reward(
        child_id=child_id,
        name=name,
        description=description,
        type=type,
        value=value,
        cost=cost,
        cost_type=cost_type,
        category=category,
        is_recurring=is_recurring,
        next_occurrence=next_occurrence(category, now) if is_recurring else None,
        is_active=True,
        created_at=now,
    )
    db.add(reward)
    await db.flush()
    parent_id = await _parent_id_of(db, child_id)
    await emit_sync_event(db, parent_id, "reward_created", "rewards", reward.id, {"child_id": child_id}, now=now)
    return reward


async def update_reward(db: AsyncSession, reward: Reward, changes: dict[str, Any]) -> Reward:
    for field, value in changes.items():
        if field in EDITABLE_FIELDS and value is not None:
            setattr(reward, field, value)
    await db.flush()
    parent_id = await _parent_id_of(db, reward.child_id)
    await emit_sync_event(db, parent_id, "reward_updated", "rewards", reward.id, {"child_id": reward.child_id})
    return reward


async def delete_reward(db: AsyncSession, reward: Reward) -> None:
    parent_id = await _parent_id_of(db, reward.child_id)
    reward_id, child_id = reward.id, reward.child_id
    await db.delete(reward)
    await db.flush()
    await emit_sync_event(db, parent_id, "reward_deleted", "rewards", reward_id, {"child_id": child_id})


# ---------------------------------------------------------------------------
# Claims
# ---------------------------------------------------------------------------


async def get_claim(db: AsyncSession, claim_id: str) -> RewardClaim:
    result = await db.execute(select(RewardClaim).where(RewardClaim.id == claim_id))
    claim = result.scalar_one_or_none()
    if claim is None:
        msg = "Reward claim not found"
        raise NotFoundError(msg)
    return claim


async def list_claims(db: AsyncSession, child_id: str) -> list[RewardClaim]:
    result = await db.execute(
        select(RewardClaim).where(RewardClaim.child_id == child_id).order_by(RewardClaim.claimed_at.desc())
    )
    return list(result.scalars().all())


async def create_claim(db: AsyncSession, reward: Reward, child_id: str, now: datetime | None = None) -> RewardClaim:
    """A child asks to redeem ``reward``. Points move when a parent approves."""
    if now is None:
        now = utcnow()
    if reward.child_id != child_id:
        msg = "Reward not found"
        raise NotFoundError(msg)
    if not reward.is_active:
        msg = "Reward is no longer available"
        raise StateConflictError(msg)

    claim = RewardClaim(reward_id=reward.id, child_id=child_id, status="pending", claimed_at=now)
    db.add(claim)
    await db.flush()
    await emit_sync_event(
        db,
        await _parent_id_of(db, child_id),
        "reward_claimed",
        "reward_claims",
        claim.id,
        {"child_id": child_id, "reward_id": reward.id, "reward_name": reward.name},
        now=now,
    )
    return claim


async def approve_claim(db: AsyncSession, claim: RewardClaim, now: datetime | None = None) -> RewardClaim:
    """Approve a pending claim, debiting the reward's cost and recording a ``spent`` entry."""
    if now is None:
        now = utcnow()
    validate_claim_transition(claim.status, "approved")
    reward = await get_reward(db, claim.reward_id)
    child = await get_child(db, claim.child_id)
    if child is None:
        msg = "Child not found"
        raise NotFoundError(msg)

    debit_reward_points(child, reward.cost, now)
    await record_transaction(
        db, child.id, "spent", -reward.cost, "reward_claim", f"Redeemed reward: {reward.name}", now=now
    )
    claim.status = "approved"
    claim.is_approved = True
    claim.approved_at = now
    await db.flush()
    await emit_sync_event(
        db, child.parent_id, "reward_claim_approved", "reward_claims", claim.id, {"child_id": child.id}, now=now
    )
    return claim


async def mark_claim_used(db: AsyncSession, claim: RewardClaim, now: datetime | None = None) -> RewardClaim:
    validate_claim_transition(claim.status, "used")
    claim.status = "used"
    claim.used_at = now or utcnow()
    await db.flush()
    return claim


# ---------------------------------------------------------------------------
# Ledger
# ---------------------------------------------------------------------------


async def record_transaction(
    db: AsyncSession,
    child_id: str,
    type: str,  # noqa: A002
    amount: int,
    source: str,
    description: str | None = None,
    approved_by: str | None = None,
    now: datetime | None = None,
) -> RewardTransaction:
    """Append an already-settled ledger entry. The caller moves the balance."""
    if now is None:
        now = utcnow()
    entry = RewardTransaction(
        child_id=child_id,
        type=type,
        amount=amount,
        source=source,
        description=description,
        requires_approval=False,
        is_approved=True,
        approved_by=approved_by,
        approved_at=now,
        created_at=now,
    )
    db.add(entry)
    await db.flush()
    return entry


async def create_pending_transaction(
    db: AsyncSession,
    child_id: str,
    amount: int,
    source: str,
    description: str | None = None,
    type: str = "bonus_earned",  # noqa: A002
    now: datetime | None = None,
) -> RewardTransaction:
    """Ledger entry that only credits the child once a parent approves it."""
    entry = RewardTransaction(
        child_id=child_id,
        type=type,
        amount=amount,
        source=source,
        description=description,
        requires_approval=True,
        is_approved=False,
        created_at=now or utcnow(),
    )
    db.add(entry)
    await db.flush()
    return entry


async def get_transaction(db: AsyncSession, transaction_id: str) -> RewardTransaction:
    result = await db.execute(select(RewardTransaction).where(RewardTransaction.id == transaction_id))
    entry = result.scalar_one_or_none()
    if entry is None:
        msg = "Transaction not found"
        raise NotFoundError(msg)
    return entry


async def list_transactions(db: AsyncSession, child_id: str) -> list[RewardTransaction]:
    result = await db.execute(
        select(RewardTransaction)
        .where(RewardTransaction.child_id == child_id)
        .order_by(RewardTransaction.created_at.desc())
    )
    return list(result.scalars().all())


async def list_pending_transactions(db: AsyncSession, child_ids: list[str]) -> list[RewardTransaction]:
    if not child_ids:
        return []
    result = await db.execute(
        select(RewardTransaction)
        .where(
            RewardTransaction.child_id.in_(child_ids),
            RewardTransaction.requires_approval.is_(True),
            RewardTransaction.is_approved.is_(False),
        )
        .order_by(RewardTransaction.created_at.desc())
    )
    return list(result.scalars().all())


async def approve_transaction(
    db: AsyncSession, entry: RewardTransaction, approved_by: str, now: datetime | None = None
) -> RewardTransaction:
    """Approve a pending ledger entry and credit its amount exactly once."""
    if now is None:
        now = utcnow()
    if entry.is_approved:
        msg = "Transaction already approved"
        raise StateConflictError(msg)
    child = await get_child(db, entry.child_id)
    if child is None:
        msg = "Child not found"
        raise NotFoundError(msg)

    credit_reward_points(child, entry.amount, now)
    entry.is_approved = True
    entry.approved_by = approved_by
    entry.approved_at = now
    await db.flush()
    await emit_sync_event(
        db,
        child.parent_id,
        "transaction_approved",
        "reward_transactions",
        entry.id,
        {"child_id": child.id, "amount": entry.amount},
        now=now,
    )
    return entry
