"""Schemas for device registration and catch-up sync."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field

from heroes.children.schemas import ChildResponse
from heroes.clock import UtcDatetime
from heroes.habits.schemas import CompletionResponse, HabitResponse
from heroes.rewards.schemas import ClaimResponse, RewardResponse


class RegisterDeviceRequest(BaseModel):
    device_id: str = Field(..., min_length=1, max_length=128)
    device_name: str = Field(..., min_length=1, max_length=128)
    device_type: Literal["web", "ios", "android"]
    push_token: str | None = Field(None, max_length=512)


class DeviceResponse(BaseModel):
    id: str
    device_id: str
    device_name: str
    device_type: str
    is_active: bool
    last_sync_at: UtcDatetime
    created_at: UtcDatetime | None = None

    model_config = {"from_attributes": True}


class PollingHints(BaseModel):
    server_time: UtcDatetime
    initial_delay_seconds: int
    poll_interval_seconds: int


class RegisterDeviceResponse(PollingHints):
    device: DeviceResponse


class SyncEventResponse(BaseModel):
    id: str
    user_id: str
    event_type: str
    entity_type: str
    entity_id: str
    event_data: dict[str, Any] | None = None
    timestamp: UtcDatetime
    processed: bool
    device_origin: str | None = None

    model_config = {"from_attributes": True}


class FamilySyncResponse(PollingHints):
    """Full family snapshot plus events since the client's last sync."""

    children: list[ChildResponse]
    habits: list[HabitResponse]
    completions: list[CompletionResponse]
    rewards: list[RewardResponse]
    claims: list[ClaimResponse]
    sync_events: list[SyncEventResponse]
    last_sync_time: UtcDatetime


class MarkCompletedRequest(BaseModel):
    device_id: str = Field(..., min_length=1, max_length=128)
    event_ids: list[str] = Field(default_factory=list, max_length=1000)


class MarkCompletedResponse(PollingHints):
    processed: int
    device_known: bool
