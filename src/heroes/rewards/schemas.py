"""Schemas for rewards, claims, the point ledger and the shop."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

from heroes.clock import UtcDatetime

RewardCategory = Literal["daily", "weekly", "monthly", "yearly", "none"]


class RewardCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=128)
    description: str | None = None
    type: str = Field(..., min_length=1, max_length=32)
    value: str | None = Field(None, max_length=64)
    cost: int = Field(..., ge=0)
    cost_type: Literal["habits", "points", "streak"] = "habits"
    category: RewardCategory = "none"
    is_recurring: bool = False


class RewardUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=128)
    description: str | None = None
    type: str | None = Field(None, min_length=1, max_length=32)
    value: str | None = Field(None, max_length=64)
    cost: int | None = Field(None, ge=0)
    cost_type: Literal["habits", "points", "streak"] | None = None
    is_active: bool | None = None


class RewardResponse(BaseModel):
    id: str
    child_id: str
    name: str
    description: str | None = None
    type: str
    value: str | None = None
    cost: int
    cost_type: str
    category: str
    is_recurring: bool
    parent_reward_id: str | None = None
    next_occurrence: UtcDatetime | None = None
    last_generated: UtcDatetime | None = None
    is_active: bool
    created_at: UtcDatetime | None = None

    model_config = {"from_attributes": True}


class ClaimResponse(BaseModel):
    id: str
    reward_id: str
    child_id: str
    status: str
    is_approved: bool
    claimed_at: UtcDatetime
    approved_at: UtcDatetime | None = None
    used_at: UtcDatetime | None = None

    model_config = {"from_attributes": True}


class TransactionCreate(BaseModel):
    """A bonus that credits the child only after parent approval."""

    amount: int = Field(..., gt=0)
    source: str = Field("parent_bonus", max_length=32)
    description: str | None = Field(None, max_length=500)


class TransactionResponse(BaseModel):
    id: str
    child_id: str
    type: str
    amount: int
    source: str
    description: str | None = None
    requires_approval: bool
    is_approved: bool
    approved_by: str | None = None
    approved_at: UtcDatetime | None = None
    created_at: UtcDatetime

    model_config = {"from_attributes": True}


class AvatarItemResponse(BaseModel):
    id: str
    name: str
    avatar_type: str
    cost: int
    description: str | None = None
    rarity: str

    model_config = {"from_attributes": True}


class GearItemResponse(BaseModel):
    id: str
    name: str
    gear_type: str
    description: str
    cost: int
    rarity: str
    effect: str | None = None

    model_config = {"from_attributes": True}


class PurchaseResponse(BaseModel):
    child_id: str
    reward_points: int
    unlocked_avatars: list[str]
    unlocked_gear: list[str]
