"""Parent review endpoints: pending queue, approve/reject, daily reload,
weekly progress and auto-approval settings.
"""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from heroes.auth.principal import ParentPrincipal, Principal, get_current_principal, require_parent
from heroes.clock import utcnow
from heroes.database import get_session
from heroes.db.models import AutoApprovalSettings, Child, Habit, HabitCompletion
from heroes.family.scope import family_children, get_accessible_child, get_family_child
from heroes.habits.auto_approval import (
    auto_approve_at,
    get_auto_approval_settings,
    get_auto_approval_stats,
    update_auto_approval_settings,
)
from heroes.habits.completion_service import (
    approve_completion,
    count_pending,
    get_completion,
    get_pending_completions,
    get_weekly_progress,
    reject_completion,
    reload_daily_habits,
)
from heroes.habits.schemas import (
    ApproveRequest,
    AutoApprovalSettingsResponse,
    AutoApprovalSettingsUpdate,
    AutoApprovalStatsResponse,
    CompletionResponse,
    PendingCompletionResponse,
    PendingCountResponse,
    RejectRequest,
    ReloadResponse,
    WeeklyProgressResponse,
)

logger = structlog.get_logger()

router = APIRouter(prefix="/api", tags=["Habit Review"])


async def _pending_view(
    db: AsyncSession, rows: list[tuple[HabitCompletion, Habit, Child]]
) -> list[PendingCompletionResponse]:
    now = utcnow()
    settings_by_parent: dict[str, AutoApprovalSettings] = {}
    items = []
    for completion, habit, child in rows:
        if child.parent_id not in settings_by_parent:
            settings_by_parent[child.parent_id] = await get_auto_approval_settings(db, child.parent_id)
        deadline = auto_approve_at(settings_by_parent[child.parent_id], completion)
        items.append(PendingCompletionResponse(
            **CompletionResponse.model_validate(completion).model_dump(),
            habit_name=habit.name,
            habit_icon=habit.icon,
            child_name=child.name,
            auto_approve_at=deadline,
            seconds_until_auto_approval=(
                max(int((deadline - now).total_seconds()), 0) if deadline is not None else None
            ),
        ))
    return items


# ── Pending queue ──


@router.get("/pending-habits/all", response_model=list[PendingCompletionResponse])
async def all_pending(
    parent: ParentPrincipal = Depends(require_parent),  # noqa: B008
    db: AsyncSession = Depends(get_session),  # noqa: B008
) -> list[PendingCompletionResponse]:
    """Every pending completion in the family, newest first."""
    children = await family_children(db, parent.family_code)
    rows = await get_pending_completions(db, [c.id for c in children])
    return await _pending_view(db, rows)


@router.get("/pending-habits/count", response_model=PendingCountResponse)
async def pending_count(
    parent: ParentPrincipal = Depends(require_parent),  # noqa: B008
    db: AsyncSession = Depends(get_session),  # noqa: B008
) -> PendingCountResponse:
    children = await family_children(db, parent.family_code)
    return PendingCountResponse(count=await count_pending(db, [c.id for c in children]))


@router.get("/children/{child_id}/pending-habits", response_model=list[PendingCompletionResponse])
async def child_pending(
    child_id: str,
    principal: Principal = Depends(get_current_principal),  # noqa: B008
    db: AsyncSession = Depends(get_session),  # noqa: B008
) -> list[PendingCompletionResponse]:
    child = await get_accessible_child(db, principal, child_id)
    rows = await get_pending_completions(db, [child.id])
    return await _pending_view(db, rows)


# ── Review ──


@router.post("/habit-completions/{completion_id}/approve", response_model=CompletionResponse)
async def approve(
    completion_id: str,
    body: ApproveRequest | None = None,
    parent: ParentPrincipal = Depends(require_parent),  # noqa: B008
    db: AsyncSession = Depends(get_session),  # noqa: B008
) -> CompletionResponse:
    """Approve a pending completion, crediting XP and reward points once."""
    body = body or ApproveRequest()
    completion = await get_completion(db, completion_id)
    await get_family_child(db, parent.family_code, completion.child_id)
    completion = await approve_completion(db, completion_id, body.approved_by or parent.id, body.message)
    await db.commit()
    logger.info("completion_approved", completion_id=completion_id, parent_id=parent.id)
    return CompletionResponse.model_validate(completion)


@router.post("/habit-completions/{completion_id}/reject", response_model=CompletionResponse)
async def reject(
    completion_id: str,
    body: RejectRequest,
    parent: ParentPrincipal = Depends(require_parent),  # noqa: B008
    db: AsyncSession = Depends(get_session),  # noqa: B008
) -> CompletionResponse:
    completion = await get_completion(db, completion_id)
    await get_family_child(db, parent.family_code, completion.child_id)
    completion = await reject_completion(db, completion_id, body.rejected_by or parent.id, body.message)
    await db.commit()
    logger.info("completion_rejected", completion_id=completion_id, parent_id=parent.id)
    return CompletionResponse.model_validate(completion)


@router.post("/children/{child_id}/reload-habits", response_model=ReloadResponse)
async def reload_habits(
    child_id: str,
    principal: Principal = Depends(get_current_principal),  # noqa: B008
    db: AsyncSession = Depends(get_session),  # noqa: B008
) -> ReloadResponse:
    """Clear today's pending and rejected completions so the child can retry."""
    child = await get_accessible_child(db, principal, child_id)
    cleared = await reload_daily_habits(db, child)
    await db.commit()
    return ReloadResponse(child_id=child.id, cleared=cleared)


@router.get("/children/{child_id}/weekly-progress", response_model=WeeklyProgressResponse)
async def weekly_progress(
    child_id: str,
    principal: Principal = Depends(get_current_principal),  # noqa: B008
    db: AsyncSession = Depends(get_session),  # noqa: B008
) -> WeeklyProgressResponse:
    child = await get_accessible_child(db, principal, child_id)
    return WeeklyProgressResponse(**await get_weekly_progress(db, child.id))


# ── Auto-approval ──


@router.get("/auto-approval-settings", response_model=AutoApprovalSettingsResponse)
async def read_auto_approval_settings(
    parent: ParentPrincipal = Depends(require_parent),  # noqa: B008
    db: AsyncSession = Depends(get_session),  # noqa: B008
) -> AutoApprovalSettingsResponse:
    settings = await get_auto_approval_settings(db, parent.id)
    return AutoApprovalSettingsResponse.model_validate(settings)


@router.put("/auto-approval-settings", response_model=AutoApprovalSettingsResponse)
async def write_auto_approval_settings(
    body: AutoApprovalSettingsUpdate,
    parent: ParentPrincipal = Depends(require_parent),  # noqa: B008
    db: AsyncSession = Depends(get_session),  # noqa: B008
) -> AutoApprovalSettingsResponse:
    """Premium only. Child-specific rules override the global delay."""
    settings = await update_auto_approval_settings(
        db,
        parent.user,
        enabled=body.enabled,
        time_value=body.time_value,
        time_unit=body.time_unit,
        apply_to_all_children=body.apply_to_all_children,
        child_specific_settings={k: v.model_dump() for k, v in body.child_specific_settings.items()},
    )
    await db.commit()
    logger.info("auto_approval_updated", user_id=parent.id, enabled=body.enabled)
    return AutoApprovalSettingsResponse.model_validate(settings)


@router.get("/auto-approval-stats", response_model=AutoApprovalStatsResponse)
async def auto_approval_stats(
    parent: ParentPrincipal = Depends(require_parent),  # noqa: B008
    db: AsyncSession = Depends(get_session),  # noqa: B008
) -> AutoApprovalStatsResponse:
    children = await family_children(db, parent.family_code)
    return AutoApprovalStatsResponse(**await get_auto_approval_stats(db, [c.id for c in children]))
