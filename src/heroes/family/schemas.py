"""Schemas for parental controls and weekend challenges."""

from __future__ import annotations

import datetime as dt

from pydantic import BaseModel, Field

from heroes.clock import UtcDatetime

_HHMM = r"^([01]\d|2[0-3]):[0-5]\d$"


class ParentalControlsResponse(BaseModel):
    child_id: str
    daily_screen_time: int
    bonus_time_per_habit: int
    weekend_bonus: int
    game_unlock_requirement: int
    max_game_time_per_day: int
    bedtime_mode: bool
    bedtime_start: str
    bedtime_end: str
    enable_habits: bool
    enable_gear_shop: bool
    enable_mini_games: bool
    enable_rewards: bool
    emergency_mode: bool
    block_all_apps: bool
    limit_internet: bool
    parent_contact_enabled: bool
    emergency_activated_at: UtcDatetime | None = None
    updated_at: UtcDatetime | None = None

    model_config = {"from_attributes": True}


class ParentalControlsUpdate(BaseModel):
    daily_screen_time: int | None = Field(None, ge=0, le=1440)
    bonus_time_per_habit: int | None = Field(None, ge=0, le=240)
    weekend_bonus: int | None = Field(None, ge=0, le=480)
    game_unlock_requirement: int | None = Field(None, ge=0, le=50)
    max_game_time_per_day: int | None = Field(None, ge=0, le=1440)
    bedtime_mode: bool | None = None
    bedtime_start: str | None = Field(None, pattern=_HHMM)
    bedtime_end: str | None = Field(None, pattern=_HHMM)
    enable_habits: bool | None = None
    enable_gear_shop: bool | None = None
    enable_mini_games: bool | None = None
    enable_rewards: bool | None = None
    block_all_apps: bool | None = None
    limit_internet: bool | None = None
    parent_contact_enabled: bool | None = None


class ChallengeCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=128)
    description: str = Field(..., min_length=1)
    start_date: dt.date
    end_date: dt.date
    points_reward: int = Field(20, ge=0)


class ChallengeResponse(BaseModel):
    id: str
    child_id: str
    name: str
    description: str
    points_reward: int
    start_date: dt.date
    end_date: dt.date
    is_accepted: bool
    is_completed: bool
    completed_at: UtcDatetime | None = None
    state: str = "available"

    model_config = {"from_attributes": True}
