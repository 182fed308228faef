"""Sync router: device registry and polling catch-up (/api/sync/*)."""

from __future__ import annotations

from datetime import datetime

import structlog
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from heroes.auth.principal import ChildPrincipal, ParentPrincipal, Principal, get_current_principal, require_parent
from heroes.children.schemas import ChildResponse
from heroes.clock import utcnow
from heroes.config import get_settings
from heroes.database import get_session
from heroes.family.scope import family_user_ids_for_user
from heroes.habits.schemas import CompletionResponse, HabitResponse
from heroes.rewards.schemas import ClaimResponse, RewardResponse
from heroes.sync.schemas import (
    DeviceResponse,
    FamilySyncResponse,
    MarkCompletedRequest,
    MarkCompletedResponse,
    RegisterDeviceRequest,
    RegisterDeviceResponse,
    SyncEventResponse,
)
from heroes.sync.service import (
    deactivate_device,
    get_device,
    get_pending_sync_events,
    get_user_devices,
    log_sync_activity,
    mark_events_processed,
    register_device,
    sync_family_data,
    update_device_last_sync,
)

logger = structlog.get_logger()

router = APIRouter(prefix="/api/sync", tags=["Sync"])


def _hints(now: datetime) -> dict:
    settings = get_settings()
    return {
        "server_time": now,
        "initial_delay_seconds": settings.sync_initial_delay_seconds,
        "poll_interval_seconds": settings.sync_poll_interval_seconds,
    }


async def _family_sync(
    db: AsyncSession, user_id: str, last_sync_time: datetime | None, child_id: str | None = None
) -> FamilySyncResponse:
    now = utcnow()
    data = await sync_family_data(db, user_id)
    events = await get_pending_sync_events(db, user_id, last_sync_time, child_id=child_id)

    def keep(row: object) -> bool:
        return child_id is None or getattr(row, "child_id", None) == child_id

    return FamilySyncResponse(
        children=[ChildResponse.model_validate(c) for c in data["children"] if child_id is None or c.id == child_id],
        habits=[HabitResponse.model_validate(h) for h in data["habits"] if keep(h)],
        completions=[CompletionResponse.model_validate(c) for c in data["completions"] if keep(c)],
        rewards=[RewardResponse.model_validate(r) for r in data["rewards"] if keep(r)],
        claims=[ClaimResponse.model_validate(c) for c in data["claims"] if keep(c)],
        sync_events=[SyncEventResponse.model_validate(e) for e in events],
        last_sync_time=now,
        **_hints(now),
    )


@router.post("/register-device", response_model=RegisterDeviceResponse)
async def register(
    body: RegisterDeviceRequest,
    parent: ParentPrincipal = Depends(require_parent),  # noqa: B008
    db: AsyncSession = Depends(get_session),  # noqa: B008
) -> RegisterDeviceResponse:
    """Register this device, or refresh it if it is already known."""
    now = utcnow()
    device = await register_device(
        db, parent.id, body.device_id, body.device_name, body.device_type, body.push_token, now=now
    )
    await db.commit()
    logger.info("device_registered", user_id=parent.id, device_id=body.device_id)
    return RegisterDeviceResponse(device=DeviceResponse.model_validate(device), **_hints(now))


@router.get("/family-data", response_model=FamilySyncResponse)
async def family_data(
    last_sync_time: datetime | None = Query(None),
    parent: ParentPrincipal = Depends(require_parent),  # noqa: B008
    db: AsyncSession = Depends(get_session),  # noqa: B008
) -> FamilySyncResponse:
    return await _family_sync(db, parent.id, last_sync_time)


@router.get("/child-family-data", response_model=FamilySyncResponse)
async def child_family_data(
    last_sync_time: datetime | None = Query(None),
    principal: Principal = Depends(get_current_principal),  # noqa: B008
    db: AsyncSession = Depends(get_session),  # noqa: B008
) -> FamilySyncResponse:
    """Family snapshot from a child session, narrowed to that child's rows."""
    if isinstance(principal, ChildPrincipal):
        return await _family_sync(db, principal.child.parent_id, last_sync_time, child_id=principal.id)
    return await _family_sync(db, principal.id, last_sync_time)


@router.post("/mark-completed", response_model=MarkCompletedResponse)
async def mark_completed(
    body: MarkCompletedRequest,
    parent: ParentPrincipal = Depends(require_parent),  # noqa: B008
    db: AsyncSession = Depends(get_session),  # noqa: B008
) -> MarkCompletedResponse:
    """Acknowledge processed events and record a device heartbeat."""
    now = utcnow()
    family_ids = await family_user_ids_for_user(db, parent.id)
    processed = await mark_events_processed(db, body.event_ids, user_ids=family_ids)
    device_known = await update_device_last_sync(db, parent.id, body.device_id, now=now)
    if device_known:
        device = await get_device(db, parent.id, body.device_id)
        if device is not None:
            await log_sync_activity(
                db,
                parent.id,
                device,
                sync_type="events_ack",
                entity_type="sync_events",
                entity_id=device.id,
                operation="update",
                sync_direction="pull",
                sync_data={"event_count": processed},
                now=now,
            )
    await db.commit()
    return MarkCompletedResponse(processed=processed, device_known=device_known, **_hints(now))


@router.get("/devices", response_model=list[DeviceResponse])
async def devices(
    parent: ParentPrincipal = Depends(require_parent),  # noqa: B008
    db: AsyncSession = Depends(get_session),  # noqa: B008
) -> list[DeviceResponse]:
    return [DeviceResponse.model_validate(d) for d in await get_user_devices(db, parent.id)]


@router.post("/devices/{device_id}/deactivate", response_model=DeviceResponse)
async def deactivate(
    device_id: str,
    parent: ParentPrincipal = Depends(require_parent),  # noqa: B008
    db: AsyncSession = Depends(get_session),  # noqa: B008
) -> DeviceResponse:
    device = await deactivate_device(db, parent.id, device_id)
    await db.commit()
    return DeviceResponse.model_validate(device)
