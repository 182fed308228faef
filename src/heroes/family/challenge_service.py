"""Weekend challenges: available -> accepted -> completed, never reversed."""

from __future__ import annotations

import logging
from datetime import date, datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from heroes.children.service import credit_reward_points, get_child
from heroes.clock import utcnow
from heroes.db.models import WeekendChallenge
from heroes.errors import DomainValidationError, NotFoundError, StateConflictError
from heroes.rewards.service import record_transaction
from heroes.sync.service import emit_sync_event

logger = logging.getLogger(__name__)

VALID_TRANSITIONS: dict[str, set[str]] = {
    "available": {"accepted"},
    "accepted": {"completed"},
    "completed": set(),
}


def challenge_state(challenge: WeekendChallenge) -> str:
    if challenge.is_completed:
        return "completed"
    if challenge.is_accepted:
        return "accepted"
    return "available"


def validate_transition(current: str, target: str) -> None:
    """Raise StateConflictError if the transition is not allowed."""
    if target not in VALID_TRANSITIONS.get(current, set()):
        msg = f"Invalid challenge transition: {current} -> {target}"
        raise StateConflictError(msg)


async def get_challenge(db: AsyncSession, challenge_id: str) -> WeekendChallenge:
    result = await db.execute(select(WeekendChallenge).where(WeekendChallenge.id == challenge_id))
    challenge = result.scalar_one_or_none()
    if challenge is None:
        msg = "Challenge not found"
        raise NotFoundError(msg)
    return challenge


async def list_challenges(db: AsyncSession, child_id: str) -> list[WeekendChallenge]:
    result = await db.execute(
        select(WeekendChallenge).where(WeekendChallenge.child_id == child_id).order_by(WeekendChallenge.start_date)
    )
    return list(result.scalars().all())


async def create_challenge(
    db: AsyncSession,
    child_id: str,
    name: str,
    description: str,
    start_date: date,
    end_date: date,
    points_reward: int = 20,
) -> WeekendChallenge:
    if end_date < start_date:
        msg = "Challenge end date is before its start date"
        raise DomainValidationError(msg)
    if points_reward < 0:
        msg = "Challenge reward cannot be negative"
        raise DomainValidationError(msg)
    challenge = WeekendChallenge(
        child_id=child_id,
        name=name,
        description=description,
        points_reward=points_reward,
        start_date=start_date,
        end_date=end_date,
    )
    db.add(challenge)
    await db.flush()
    return challenge


async def accept_challenge(db: AsyncSession, challenge: WeekendChallenge) -> WeekendChallenge:
    validate_transition(challenge_state(challenge), "accepted")
    challenge.is_accepted = True
    await db.flush()
    return challenge


async def complete_challenge(
    db: AsyncSession, challenge: WeekendChallenge, now: datetime | None = None
) -> WeekendChallenge:
    """Complete an accepted challenge and credit its points to the child."""
    if now is None:
        now = utcnow()
    validate_transition(challenge_state(challenge), "completed")
    child = await get_child(db, challenge.child_id)
    if child is None:
        msg = "Child not found"
        raise NotFoundError(msg)

    challenge.is_completed = True
    challenge.completed_at = now
    credit_reward_points(child, challenge.points_reward, now)
    await record_transaction(
        db,
        child.id,
        "bonus_earned",
        challenge.points_reward,
        "weekend_challenge",
        f"Completed challenge: {challenge.name}",
        now=now,
    )
    await emit_sync_event(
        db,
        child.parent_id,
        "challenge_completed",
        "weekend_challenges",
        challenge.id,
        {"child_id": child.id, "points": challenge.points_reward},
        now=now,
    )
    logger.info("Child %s completed challenge %s", child.id, challenge.id)
    return challenge
