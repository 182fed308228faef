"""ORM models for the Habit Heroes schema.

Primary keys are UUID strings. Every timestamp is written in UTC; the column
types stay portable so the same models run against PostgreSQL and SQLite.
"""

from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from heroes.clock import utcnow
from heroes.db.base import Base


def _uuid() -> str:
    return str(uuid.uuid4())


# ---------------------------------------------------------------------------
# Parents
# ---------------------------------------------------------------------------


class User(Base):
    """A parent account. Co-parents share a family_code."""

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    email: Mapped[str] = mapped_column(String(320), unique=True, nullable=False)
    password_hash: Mapped[str | None] = mapped_column(String(256), nullable=True)
    first_name: Mapped[str] = mapped_column(String(64), nullable=False)
    last_name: Mapped[str] = mapped_column(String(64), nullable=False)
    phone_number: Mapped[str | None] = mapped_column(String(32), nullable=True)
    family_code: Mapped[str] = mapped_column(String(8), nullable=False, index=True)
    subscription_status: Mapped[str] = mapped_column(String(16), nullable=False, default="trial")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)


# ---------------------------------------------------------------------------
# Children
# ---------------------------------------------------------------------------


class Child(Base):
    """A managed child profile owned by one parent."""

    __tablename__ = "children"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    parent_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(64), nullable=False)
    username: Mapped[str | None] = mapped_column(String(64), unique=True, nullable=True)
    pin_hash: Mapped[str | None] = mapped_column(String(256), nullable=True)
    avatar_type: Mapped[str] = mapped_column(String(32), nullable=False, default="robot")
    avatar_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    level: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    xp: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_xp: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    reward_points: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    unlocked_avatars: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=lambda: ["robot"])
    unlocked_gear: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)


# ---------------------------------------------------------------------------
# Habits
# ---------------------------------------------------------------------------


class MasterHabit(Base):
    """Parent-authored habit template, cloned into per-child habits on assignment."""

    __tablename__ = "master_habits"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    parent_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    icon: Mapped[str] = mapped_column(String(16), nullable=False, default="⚡")
    xp_reward: Mapped[int] = mapped_column(Integer, nullable=False, default=50)
    color: Mapped[str] = mapped_column(String(32), nullable=False, default="turquoise")
    frequency: Mapped[str] = mapped_column(String(16), nullable=False, default="daily")
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    reminder_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    reminder_time: Mapped[int | None] = mapped_column(Integer, nullable=True, default=15)
    time_range_start: Mapped[str | None] = mapped_column(String(5), nullable=True, default="09:00")
    time_range_end: Mapped[str | None] = mapped_column(String(5), nullable=True, default="21:00")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)


class Habit(Base):
    """A child's own habit. Independent of its master habit once assigned."""

    __tablename__ = "habits"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    child_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("children.id", ondelete="CASCADE"), nullable=False, index=True
    )
    master_habit_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("master_habits.id", ondelete="SET NULL"), nullable=True
    )
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    icon: Mapped[str] = mapped_column(String(16), nullable=False, default="⚡")
    xp_reward: Mapped[int] = mapped_column(Integer, nullable=False, default=50)
    color: Mapped[str] = mapped_column(String(32), nullable=False, default="mint")
    frequency: Mapped[str] = mapped_column(String(16), nullable=False, default="daily")
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    reminder_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    reminder_time: Mapped[str | None] = mapped_column(String(5), nullable=True)
    time_range_start: Mapped[str | None] = mapped_column(String(5), nullable=True, default="07:00")
    time_range_end: Mapped[str | None] = mapped_column(String(5), nullable=True, default="20:00")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)


class HabitCompletion(Base):
    """One child's record of performing a habit on a calendar day."""

    __tablename__ = "habit_completions"
    __table_args__ = (
        Index("idx_completions_habit_date", "habit_id", "completion_date"),
        Index("idx_completions_child_status", "child_id", "status"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    habit_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("habits.id", ondelete="CASCADE"), nullable=False
    )
    child_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("children.id", ondelete="CASCADE"), nullable=False
    )
    completion_date: Mapped[date] = mapped_column(Date, nullable=False)
    xp_earned: Mapped[int] = mapped_column(Integer, nullable=False)
    streak_count: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    reward_points_earned: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="pending")
    completed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    reviewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    reviewed_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    parent_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_auto_approved: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)


class AutoApprovalSettings(Base):
    """Per-parent timed auto-approval configuration."""

    __tablename__ = "auto_approval_settings"

    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    time_value: Mapped[int] = mapped_column(Integer, nullable=False, default=24)
    time_unit: Mapped[str] = mapped_column(String(8), nullable=False, default="hours")
    apply_to_all_children: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    child_specific_settings: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)


# ---------------------------------------------------------------------------
# Rewards
# ---------------------------------------------------------------------------


class Reward(Base):
    """A redeemable item. Recurring rewards spawn one instance per cadence."""

    __tablename__ = "rewards"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    child_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("children.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    type: Mapped[str] = mapped_column(String(32), nullable=False)
    value: Mapped[str | None] = mapped_column(String(64), nullable=True)
    cost: Mapped[int] = mapped_column(Integer, nullable=False)
    cost_type: Mapped[str] = mapped_column(String(16), nullable=False, default="habits")
    category: Mapped[str] = mapped_column(String(16), nullable=False, default="none")
    is_recurring: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    parent_reward_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("rewards.id", ondelete="SET NULL"), nullable=True
    )
    next_occurrence: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    last_generated: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)


class RewardClaim(Base):
    """A child's request to redeem a reward, pending parent approval."""

    __tablename__ = "reward_claims"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    reward_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("rewards.id", ondelete="CASCADE"), nullable=False
    )
    child_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("children.id", ondelete="CASCADE"), nullable=False, index=True
    )
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="pending")
    claimed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    used_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    is_approved: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)


class RewardTransaction(Base):
    """Ledger entry for reward point movements."""

    __tablename__ = "reward_transactions"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    child_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("children.id", ondelete="CASCADE"), nullable=False, index=True
    )
    type: Mapped[str] = mapped_column(String(16), nullable=False)  # earned, spent, bonus_earned
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    source: Mapped[str] = mapped_column(String(32), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    requires_approval: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_approved: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    approved_by: Mapped[str | None] = mapped_column(String(64), nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)


class AvatarShopItem(Base):
    __tablename__ = "avatar_shop_items"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    name: Mapped[str] = mapped_column(String(64), nullable=False)
    avatar_type: Mapped[str] = mapped_column(String(32), unique=True, nullable=False)
    cost: Mapped[int] = mapped_column(Integer, nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    rarity: Mapped[str] = mapped_column(String(16), nullable=False, default="common")
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


class GearShopItem(Base):
    __tablename__ = "gear_shop_items"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    name: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    gear_type: Mapped[str] = mapped_column(String(32), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    cost: Mapped[int] = mapped_column(Integer, nullable=False, default=30)
    rarity: Mapped[str] = mapped_column(String(16), nullable=False, default="common")
    effect: Mapped[str | None] = mapped_column(String(128), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


# ---------------------------------------------------------------------------
# Parental controls and challenges
# ---------------------------------------------------------------------------


class ParentalControls(Base):
    """One row per child. emergency_mode blocks all child-side access."""

    __tablename__ = "parental_controls"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    child_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("children.id", ondelete="CASCADE"), unique=True, nullable=False
    )
    daily_screen_time: Mapped[int] = mapped_column(Integer, nullable=False, default=60)
    bonus_time_per_habit: Mapped[int] = mapped_column(Integer, nullable=False, default=10)
    weekend_bonus: Mapped[int] = mapped_column(Integer, nullable=False, default=30)
    game_unlock_requirement: Mapped[int] = mapped_column(Integer, nullable=False, default=2)
    max_game_time_per_day: Mapped[int] = mapped_column(Integer, nullable=False, default=20)
    bedtime_mode: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    bedtime_start: Mapped[str] = mapped_column(String(5), nullable=False, default="20:00")
    bedtime_end: Mapped[str] = mapped_column(String(5), nullable=False, default="07:00")
    enable_habits: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    enable_gear_shop: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    enable_mini_games: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    enable_rewards: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    emergency_mode: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    block_all_apps: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    limit_internet: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    parent_contact_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    emergency_activated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)


class WeekendChallenge(Base):
    """Time-boxed bonus task: available -> accepted -> completed."""

    __tablename__ = "weekend_challenges"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    child_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("children.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    points_reward: Mapped[int] = mapped_column(Integer, nullable=False, default=20)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    is_accepted: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_completed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)


# ---------------------------------------------------------------------------
# Sync
# ---------------------------------------------------------------------------


class Device(Base):
    """A client installation registered for catch-up sync."""

    __tablename__ = "devices"
    __table_args__ = (UniqueConstraint("user_id", "device_id", name="devices_user_device_key"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    device_id: Mapped[str] = mapped_column(String(128), nullable=False)
    device_name: Mapped[str] = mapped_column(String(128), nullable=False)
    device_type: Mapped[str] = mapped_column(String(16), nullable=False)  # web, ios, android
    push_token: Mapped[str | None] = mapped_column(String(512), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    last_sync_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)


class SyncEvent(Base):
    """Immutable fact used for catch-up delivery. Only `processed` ever changes."""

    __tablename__ = "sync_events"
    __table_args__ = (Index("idx_sync_events_user_ts", "user_id", "timestamp"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    event_type: Mapped[str] = mapped_column(String(64), nullable=False)
    entity_type: Mapped[str] = mapped_column(String(32), nullable=False)
    entity_id: Mapped[str] = mapped_column(String(36), nullable=False)
    event_data: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    processed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    device_origin: Mapped[str | None] = mapped_column(String(128), nullable=True)


class SyncLog(Base):
    """Audit trail of what a device pushed or pulled."""

    __tablename__ = "sync_logs"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    device_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("devices.id", ondelete="CASCADE"), nullable=False
    )
    sync_type: Mapped[str] = mapped_column(String(32), nullable=False)
    entity_type: Mapped[str] = mapped_column(String(32), nullable=False)
    entity_id: Mapped[str] = mapped_column(String(36), nullable=False)
    operation: Mapped[str] = mapped_column(String(16), nullable=False)  # create, update, delete
    sync_direction: Mapped[str] = mapped_column(String(8), nullable=False)  # push, pull
    sync_data: Mapped[dict[str, Any] | None] = mapped_column(JSON, nullable=True)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
