"""Schemas for child profile endpoints."""

from __future__ import annotations

from pydantic import BaseModel, Field

from heroes.clock import UtcDatetime


class ChildResponse(BaseModel):
    id: str
    parent_id: str
    name: str
    username: str | None = None
    avatar_type: str
    avatar_url: str | None = None
    level: int
    xp: int
    total_xp: int
    reward_points: int
    unlocked_avatars: list[str] = []
    unlocked_gear: list[str] = []
    created_at: UtcDatetime | None = None
    updated_at: UtcDatetime | None = None

    model_config = {"from_attributes": True}


class ChildCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=64)
    avatar_type: str = Field("robot", max_length=32)
    username: str | None = Field(None, min_length=3, max_length=64)
    pin: str | None = Field(None, pattern=r"^\d{4}$")


class ChildUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=64)
    avatar_type: str | None = Field(None, max_length=32)
    avatar_url: str | None = None
    pin: str | None = Field(None, pattern=r"^\d{4}$")


class ChildCreatedResponse(BaseModel):
    """Returned once on creation; the plaintext PIN is never shown again."""

    child: ChildResponse
    username: str
    pin: str


class LevelResponse(BaseModel):
    level: int
    xp: int
    total_xp: int
    xp_for_level: int
    xp_to_next_level: int
