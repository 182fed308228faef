"""Habit, master habit and completion submission endpoints."""

from __future__ import annotations

from datetime import date

import structlog
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from heroes.auth.principal import ParentPrincipal, Principal, get_current_principal, require_parent
from heroes.database import get_session
from heroes.db.models import MasterHabit
from heroes.errors import NotFoundError
from heroes.family.scope import family_user_ids, get_accessible_child, get_family_child
from heroes.habits.completion_service import (
    get_completions,
    get_habit_streak,
    get_todays_completions,
    submit_completion,
)
from heroes.habits.schemas import (
    AssignMasterHabitRequest,
    CompletionResponse,
    HabitCreate,
    HabitResponse,
    HabitUpdate,
    MasterHabitCreate,
    MasterHabitResponse,
    MasterHabitUpdate,
    StreakResponse,
)
from heroes.habits.service import (
    assign_master_habit,
    create_habit,
    create_master_habit,
    delete_habit,
    delete_master_habit,
    get_habit,
    get_master_habit,
    list_habits,
    list_master_habits,
    update_habit,
    update_master_habit,
)

logger = structlog.get_logger()

router = APIRouter(prefix="/api", tags=["Habits"])


async def _family_master_habit(db: AsyncSession, parent: ParentPrincipal, master_habit_id: str) -> MasterHabit:
    master = await get_master_habit(db, master_habit_id)
    if master.parent_id not in await family_user_ids(db, parent.family_code):
        msg = "Master habit not found"
        raise NotFoundError(msg)
    return master


# ── Child habits ──


@router.get("/children/{child_id}/habits", response_model=list[HabitResponse])
async def list_child_habits(
    child_id: str,
    active_only: bool = Query(False),
    principal: Principal = Depends(get_current_principal),  # noqa: B008
    db: AsyncSession = Depends(get_session),  # noqa: B008
) -> list[HabitResponse]:
    child = await get_accessible_child(db, principal, child_id)
    habits = await list_habits(db, child.id, active_only=active_only)
    return [HabitResponse.model_validate(h) for h in habits]


@router.post("/children/{child_id}/habits", response_model=HabitResponse, status_code=201)
async def add_habit(
    child_id: str,
    body: HabitCreate,
    parent: ParentPrincipal = Depends(require_parent),  # noqa: B008
    db: AsyncSession = Depends(get_session),  # noqa: B008
) -> HabitResponse:
    child = await get_family_child(db, parent.family_code, child_id)
    habit = await create_habit(db, child.id, body.model_dump())
    await db.commit()
    await db.refresh(habit)
    return HabitResponse.model_validate(habit)


@router.put("/habits/{habit_id}", response_model=HabitResponse)
async def edit_habit(
    habit_id: str,
    body: HabitUpdate,
    parent: ParentPrincipal = Depends(require_parent),  # noqa: B008
    db: AsyncSession = Depends(get_session),  # noqa: B008
) -> HabitResponse:
    habit = await get_habit(db, habit_id)
    await get_family_child(db, parent.family_code, habit.child_id)
    habit = await update_habit(db, habit, body.model_dump(exclude_unset=True))
    await db.commit()
    await db.refresh(habit)
    return HabitResponse.model_validate(habit)


@router.delete("/habits/{habit_id}", status_code=204)
async def remove_habit(
    habit_id: str,
    parent: ParentPrincipal = Depends(require_parent),  # noqa: B008
    db: AsyncSession = Depends(get_session),  # noqa: B008
) -> None:
    habit = await get_habit(db, habit_id)
    await get_family_child(db, parent.family_code, habit.child_id)
    await delete_habit(db, habit)
    await db.commit()


@router.get("/habits/{habit_id}/streak/{child_id}", response_model=StreakResponse)
async def habit_streak(
    habit_id: str,
    child_id: str,
    principal: Principal = Depends(get_current_principal),  # noqa: B008
    db: AsyncSession = Depends(get_session),  # noqa: B008
) -> StreakResponse:
    child = await get_accessible_child(db, principal, child_id)
    streak = await get_habit_streak(db, habit_id, child.id)
    return StreakResponse(habit_id=habit_id, child_id=child.id, streak=streak)


# ── Completions ──


@router.post("/habits/{habit_id}/complete", response_model=CompletionResponse, status_code=201)
async def complete_habit(
    habit_id: str,
    principal: Principal = Depends(get_current_principal),  # noqa: B008
    db: AsyncSession = Depends(get_session),  # noqa: B008
) -> CompletionResponse:
    """Submit today's completion. It stays pending until a parent reviews it."""
    habit = await get_habit(db, habit_id)
    child = await get_accessible_child(db, principal, habit.child_id)
    completion = await submit_completion(db, habit, child.id)
    await db.commit()
    logger.info("habit_submitted", habit_id=habit.id, child_id=child.id, completion_id=completion.id)
    return CompletionResponse.model_validate(completion)


@router.get("/children/{child_id}/completions", response_model=list[CompletionResponse])
async def list_completions(
    child_id: str,
    start_date: date | None = Query(None),
    end_date: date | None = Query(None),
    principal: Principal = Depends(get_current_principal),  # noqa: B008
    db: AsyncSession = Depends(get_session),  # noqa: B008
) -> list[CompletionResponse]:
    child = await get_accessible_child(db, principal, child_id)
    completions = await get_completions(db, child.id, start_date, end_date)
    return [CompletionResponse.model_validate(c) for c in completions]


@router.get("/children/{child_id}/completions/today", response_model=list[CompletionResponse])
async def list_todays_completions(
    child_id: str,
    principal: Principal = Depends(get_current_principal),  # noqa: B008
    db: AsyncSession = Depends(get_session),  # noqa: B008
) -> list[CompletionResponse]:
    child = await get_accessible_child(db, principal, child_id)
    completions = await get_todays_completions(db, child.id)
    return [CompletionResponse.model_validate(c) for c in completions]


# ── Master habits ──


@router.get("/master-habits", response_model=list[MasterHabitResponse])
async def list_family_master_habits(
    parent: ParentPrincipal = Depends(require_parent),  # noqa: B008
    db: AsyncSession = Depends(get_session),  # noqa: B008
) -> list[MasterHabitResponse]:
    masters = await list_master_habits(db, await family_user_ids(db, parent.family_code))
    return [MasterHabitResponse.model_validate(m) for m in masters]


@router.post("/master-habits", response_model=MasterHabitResponse, status_code=201)
async def add_master_habit(
    body: MasterHabitCreate,
    parent: ParentPrincipal = Depends(require_parent),  # noqa: B008
    db: AsyncSession = Depends(get_session),  # noqa: B008
) -> MasterHabitResponse:
    master = await create_master_habit(db, parent.id, body.model_dump())
    await db.commit()
    await db.refresh(master)
    return MasterHabitResponse.model_validate(master)


@router.put("/master-habits/{master_habit_id}", response_model=MasterHabitResponse)
async def edit_master_habit(
    master_habit_id: str,
    body: MasterHabitUpdate,
    parent: ParentPrincipal = Depends(require_parent),  # noqa: B008
    db: AsyncSession = Depends(get_session),  # noqa: B008
) -> MasterHabitResponse:
    master = await _family_master_habit(db, parent, master_habit_id)
    master = await update_master_habit(db, master, body.model_dump(exclude_unset=True))
    await db.commit()
    await db.refresh(master)
    return MasterHabitResponse.model_validate(master)


@router.delete("/master-habits/{master_habit_id}", status_code=204)
async def remove_master_habit(
    master_habit_id: str,
    parent: ParentPrincipal = Depends(require_parent),  # noqa: B008
    db: AsyncSession = Depends(get_session),  # noqa: B008
) -> None:
    master = await _family_master_habit(db, parent, master_habit_id)
    await delete_master_habit(db, master)
    await db.commit()


@router.post("/master-habits/{master_habit_id}/assign", response_model=list[HabitResponse], status_code=201)
async def assign_master(
    master_habit_id: str,
    body: AssignMasterHabitRequest,
    parent: ParentPrincipal = Depends(require_parent),  # noqa: B008
    db: AsyncSession = Depends(get_session),  # noqa: B008
) -> list[HabitResponse]:
    """Clone the template into an independent habit for each listed child."""
    master = await _family_master_habit(db, parent, master_habit_id)
    for child_id in body.child_ids:
        await get_family_child(db, parent.family_code, child_id)
    habits = await assign_master_habit(db, master, body.child_ids)
    await db.commit()
    logger.info("master_habit_assigned", master_habit_id=master.id, children=len(habits))
    return [HabitResponse.model_validate(h) for h in habits]
