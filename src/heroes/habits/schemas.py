"""Schemas for habits, completions and auto-approval."""

from __future__ import annotations

import datetime as dt
from typing import Any, Literal

from pydantic import BaseModel, Field

from heroes.clock import UtcDatetime

_HHMM = r"^([01]\d|2[0-3]):[0-5]\d$"


# ── Habits ──


class HabitBase(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=128)
    description: str | None = None
    icon: str | None = Field(None, max_length=16)
    xp_reward: int | None = Field(None, ge=0)
    color: str | None = Field(None, max_length=32)
    frequency: Literal["daily", "weekly", "custom"] | None = None
    is_active: bool | None = None
    reminder_enabled: bool | None = None
    time_range_start: str | None = Field(None, pattern=_HHMM)
    time_range_end: str | None = Field(None, pattern=_HHMM)


class HabitCreate(HabitBase):
    name: str = Field(..., min_length=1, max_length=128)
    reminder_time: str | None = Field(None, max_length=5)


class HabitUpdate(HabitBase):
    reminder_time: str | None = Field(None, max_length=5)


class HabitResponse(BaseModel):
    id: str
    child_id: str
    master_habit_id: str | None = None
    name: str
    description: str | None = None
    icon: str
    xp_reward: int
    color: str
    frequency: str
    is_active: bool
    reminder_enabled: bool
    reminder_time: str | None = None
    time_range_start: str | None = None
    time_range_end: str | None = None
    created_at: UtcDatetime | None = None
    updated_at: UtcDatetime | None = None

    model_config = {"from_attributes": True}


class MasterHabitCreate(HabitBase):
    name: str = Field(..., min_length=1, max_length=128)
    reminder_time: int | None = Field(None, ge=0, description="Minutes before the time range starts")


class MasterHabitUpdate(HabitBase):
    reminder_time: int | None = Field(None, ge=0)


class MasterHabitResponse(BaseModel):
    id: str
    parent_id: str
    name: str
    description: str | None = None
    icon: str
    xp_reward: int
    color: str
    frequency: str
    is_active: bool
    reminder_enabled: bool
    reminder_time: int | None = None
    time_range_start: str | None = None
    time_range_end: str | None = None
    created_at: UtcDatetime | None = None

    model_config = {"from_attributes": True}


class AssignMasterHabitRequest(BaseModel):
    child_ids: list[str] = Field(..., min_length=1)


class StreakResponse(BaseModel):
    habit_id: str
    child_id: str
    streak: int


# ── Completions ──


class CompletionResponse(BaseModel):
    id: str
    habit_id: str
    child_id: str
    completion_date: dt.date
    xp_earned: int
    streak_count: int
    reward_points_earned: int
    status: str
    completed_at: UtcDatetime
    reviewed_at: UtcDatetime | None = None
    reviewed_by: str | None = None
    parent_message: str | None = None
    is_auto_approved: bool

    model_config = {"from_attributes": True}


class PendingCompletionResponse(CompletionResponse):
    habit_name: str
    habit_icon: str
    child_name: str
    auto_approve_at: UtcDatetime | None = None
    seconds_until_auto_approval: int | None = None


class PendingCountResponse(BaseModel):
    count: int


class ApproveRequest(BaseModel):
    approved_by: str | None = Field(None, max_length=64)
    message: str | None = Field(None, max_length=500)


class RejectRequest(BaseModel):
    rejected_by: str | None = Field(None, max_length=64)
    message: str = Field(..., max_length=500)


class ReloadResponse(BaseModel):
    child_id: str
    cleared: int


class DailyProgress(BaseModel):
    date: dt.date
    completed: int
    total: int


class WeeklyProgressResponse(BaseModel):
    total_habits: int
    completed_habits: int
    pending_habits: int
    week_start: dt.date
    week_end: dt.date
    status: Literal["green", "yellow", "red"]
    daily_breakdown: list[DailyProgress]


# ── Auto-approval ──


class ChildAutoApprovalRule(BaseModel):
    enabled: bool = True
    time_value: int = Field(..., gt=0)
    time_unit: Literal["hours", "days", "weeks"]


class AutoApprovalSettingsUpdate(BaseModel):
    enabled: bool
    time_value: int = Field(..., gt=0)
    time_unit: Literal["hours", "days", "weeks"]
    apply_to_all_children: bool = True
    child_specific_settings: dict[str, ChildAutoApprovalRule] = {}


class AutoApprovalSettingsResponse(BaseModel):
    enabled: bool
    time_value: int
    time_unit: str
    apply_to_all_children: bool
    child_specific_settings: dict[str, Any] = {}
    updated_at: UtcDatetime | None = None

    model_config = {"from_attributes": True}


class AutoApprovalStatsResponse(BaseModel):
    this_week: int
    total_saved: int
    pending: int
