"""Initial Habit Heroes schema.

Creates parents, children, habits and completions, rewards and the point
ledger, the shop catalogue, parental controls, weekend challenges,
auto-approval settings and the sync tables.

Revision ID: 001_initial_schema
Revises: None
Create Date: 2026-10-19
"""

from collections.abc import Sequence

import sqlalchemy as sa

from alembic import op

revision: str = "001_initial_schema"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _id() -> sa.Column:
    return sa.Column("id", sa.String(36), primary_key=True)


def _fk(name: str, target: str, nullable: bool = False, ondelete: str = "CASCADE") -> sa.Column:
    return sa.Column(name, sa.String(36), sa.ForeignKey(target, ondelete=ondelete), nullable=nullable)


def _ts(name: str, nullable: bool = False) -> sa.Column:
    if nullable:
        return sa.Column(name, sa.DateTime(timezone=True), nullable=True)
    return sa.Column(name, sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False)


def upgrade() -> None:
    """Create every table."""
    # --- Parents and children ---
    op.create_table(
        "users",
        _id(),
        sa.Column("email", sa.String(320), nullable=False),
        sa.Column("password_hash", sa.String(256), nullable=True),
        sa.Column("first_name", sa.String(64), nullable=False),
        sa.Column("last_name", sa.String(64), nullable=False),
        sa.Column("phone_number", sa.String(32), nullable=True),
        sa.Column("family_code", sa.String(8), nullable=False),
        sa.Column("subscription_status", sa.String(16), server_default="trial", nullable=False),
        _ts("created_at"),
        _ts("updated_at"),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)
    op.create_index("ix_users_family_code", "users", ["family_code"])
    op.execute(
        "ALTER TABLE users ADD CONSTRAINT ck_users_subscription_status "
        "CHECK (subscription_status IN ('trial', 'active', 'cancelled', 'expired', 'free'))"
    )

    op.create_table(
        "children",
        _id(),
        _fk("parent_id", "users.id"),
        sa.Column("name", sa.String(64), nullable=False),
        sa.Column("username", sa.String(64), nullable=True),
        sa.Column("pin_hash", sa.String(256), nullable=True),
        sa.Column("avatar_type", sa.String(32), server_default="robot", nullable=False),
        sa.Column("avatar_url", sa.Text(), nullable=True),
        sa.Column("level", sa.Integer(), server_default="1", nullable=False),
        sa.Column("xp", sa.Integer(), server_default="0", nullable=False),
        sa.Column("total_xp", sa.Integer(), server_default="0", nullable=False),
        sa.Column("reward_points", sa.Integer(), server_default="0", nullable=False),
        sa.Column("unlocked_avatars", sa.JSON(), server_default=sa.text("'[\"robot\"]'"), nullable=False),
        sa.Column("unlocked_gear", sa.JSON(), server_default=sa.text("'[]'"), nullable=False),
        _ts("created_at"),
        _ts("updated_at"),
    )
    op.create_index("ix_children_parent_id", "children", ["parent_id"])
    op.create_index("ix_children_username", "children", ["username"], unique=True)
    op.execute("ALTER TABLE children ADD CONSTRAINT ck_children_points CHECK (reward_points >= 0)")

    # --- Habits ---
    op.create_table(
        "master_habits",
        _id(),
        _fk("parent_id", "users.id"),
        sa.Column("name", sa.String(128), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("icon", sa.String(16), server_default="⚡", nullable=False),
        sa.Column("xp_reward", sa.Integer(), server_default="50", nullable=False),
        sa.Column("color", sa.String(32), server_default="turquoise", nullable=False),
        sa.Column("frequency", sa.String(16), server_default="daily", nullable=False),
        sa.Column("is_active", sa.Boolean(), server_default="true", nullable=False),
        sa.Column("reminder_enabled", sa.Boolean(), server_default="true", nullable=False),
        sa.Column("reminder_time", sa.Integer(), server_default="15", nullable=True),
        sa.Column("time_range_start", sa.String(5), server_default="09:00", nullable=True),
        sa.Column("time_range_end", sa.String(5), server_default="21:00", nullable=True),
        _ts("created_at"),
        _ts("updated_at"),
    )
    op.create_index("ix_master_habits_parent_id", "master_habits", ["parent_id"])

    op.create_table(
        "habits",
        _id(),
        _fk("child_id", "children.id"),
        _fk("master_habit_id", "master_habits.id", nullable=True, ondelete="SET NULL"),
        sa.Column("name", sa.String(128), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("icon", sa.String(16), server_default="⚡", nullable=False),
        sa.Column("xp_reward", sa.Integer(), server_default="50", nullable=False),
        sa.Column("color", sa.String(32), server_default="mint", nullable=False),
        sa.Column("frequency", sa.String(16), server_default="daily", nullable=False),
        sa.Column("is_active", sa.Boolean(), server_default="true", nullable=False),
        sa.Column("reminder_enabled", sa.Boolean(), server_default="false", nullable=False),
        sa.Column("reminder_time", sa.String(5), nullable=True),
        sa.Column("time_range_start", sa.String(5), server_default="07:00", nullable=True),
        sa.Column("time_range_end", sa.String(5), server_default="20:00", nullable=True),
        _ts("created_at"),
        _ts("updated_at"),
    )
    op.create_index("ix_habits_child_id", "habits", ["child_id"])
    op.execute("ALTER TABLE habits ADD CONSTRAINT ck_habits_xp CHECK (xp_reward >= 0)")

    op.create_table(
        "habit_completions",
        _id(),
        _fk("habit_id", "habits.id"),
        _fk("child_id", "children.id"),
        sa.Column("completion_date", sa.Date(), nullable=False),
        sa.Column("xp_earned", sa.Integer(), nullable=False),
        sa.Column("streak_count", sa.Integer(), server_default="1", nullable=False),
        sa.Column("reward_points_earned", sa.Integer(), server_default="0", nullable=False),
        sa.Column("status", sa.String(16), server_default="pending", nullable=False),
        _ts("completed_at"),
        _ts("reviewed_at", nullable=True),
        sa.Column("reviewed_by", sa.String(64), nullable=True),
        sa.Column("parent_message", sa.Text(), nullable=True),
        sa.Column("is_auto_approved", sa.Boolean(), server_default="false", nullable=False),
    )
    op.create_index("idx_completions_habit_date", "habit_completions", ["habit_id", "completion_date"])
    op.create_index("idx_completions_child_status", "habit_completions", ["child_id", "status"])
    # At most one approved completion per habit and day
    op.create_index(
        "uq_completions_approved_per_day",
        "habit_completions",
        ["habit_id", "completion_date"],
        unique=True,
        postgresql_where=sa.text("status = 'approved'"),
    )
    op.execute(
        "ALTER TABLE habit_completions ADD CONSTRAINT ck_completions_status "
        "CHECK (status IN ('pending', 'approved', 'rejected'))"
    )

    op.create_table(
        "auto_approval_settings",
        sa.Column("user_id", sa.String(36), sa.ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("enabled", sa.Boolean(), server_default="false", nullable=False),
        sa.Column("time_value", sa.Integer(), server_default="24", nullable=False),
        sa.Column("time_unit", sa.String(8), server_default="hours", nullable=False),
        sa.Column("apply_to_all_children", sa.Boolean(), server_default="true", nullable=False),
        sa.Column("child_specific_settings", sa.JSON(), server_default=sa.text("'{}'"), nullable=False),
        _ts("updated_at"),
    )
    op.execute(
        "ALTER TABLE auto_approval_settings ADD CONSTRAINT ck_auto_approval_delay "
        "CHECK (time_value > 0 AND time_unit IN ('hours', 'days', 'weeks'))"
    )

    # --- Rewards ---
    op.create_table(
        "rewards",
        _id(),
        _fk("child_id", "children.id"),
        sa.Column("name", sa.String(128), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("type", sa.String(32), nullable=False),
        sa.Column("value", sa.String(64), nullable=True),
        sa.Column("cost", sa.Integer(), nullable=False),
        sa.Column("cost_type", sa.String(16), server_default="habits", nullable=False),
        sa.Column("category", sa.String(16), server_default="none", nullable=False),
        sa.Column("is_recurring", sa.Boolean(), server_default="false", nullable=False),
        _fk("parent_reward_id", "rewards.id", nullable=True, ondelete="SET NULL"),
        _ts("next_occurrence", nullable=True),
        _ts("last_generated", nullable=True),
        sa.Column("is_active", sa.Boolean(), server_default="true", nullable=False),
        _ts("created_at"),
    )
    op.create_index("ix_rewards_child_id", "rewards", ["child_id"])
    op.create_index(
        "idx_rewards_recurring_due",
        "rewards",
        ["next_occurrence"],
        postgresql_where=sa.text("is_recurring AND is_active"),
    )

    op.create_table(
        "reward_claims",
        _id(),
        _fk("reward_id", "rewards.id"),
        _fk("child_id", "children.id"),
        sa.Column("status", sa.String(16), server_default="pending", nullable=False),
        _ts("claimed_at"),
        _ts("approved_at", nullable=True),
        _ts("used_at", nullable=True),
        sa.Column("is_approved", sa.Boolean(), server_default="false", nullable=False),
    )
    op.create_index("ix_reward_claims_child_id", "reward_claims", ["child_id"])

    op.create_table(
        "reward_transactions",
        _id(),
        _fk("child_id", "children.id"),
        sa.Column("type", sa.String(16), nullable=False),
        sa.Column("amount", sa.Integer(), nullable=False),
        sa.Column("source", sa.String(32), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("requires_approval", sa.Boolean(), server_default="false", nullable=False),
        sa.Column("is_approved", sa.Boolean(), server_default="true", nullable=False),
        sa.Column("approved_by", sa.String(64), nullable=True),
        _ts("approved_at", nullable=True),
        _ts("created_at"),
    )
    op.create_index("ix_reward_transactions_child_id", "reward_transactions", ["child_id"])

    op.create_table(
        "avatar_shop_items",
        _id(),
        sa.Column("name", sa.String(64), nullable=False),
        sa.Column("avatar_type", sa.String(32), nullable=False, unique=True),
        sa.Column("cost", sa.Integer(), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("rarity", sa.String(16), server_default="common", nullable=False),
        sa.Column("is_active", sa.Boolean(), server_default="true", nullable=False),
    )

    op.create_table(
        "gear_shop_items",
        _id(),
        sa.Column("name", sa.String(64), nullable=False, unique=True),
        sa.Column("gear_type", sa.String(32), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("cost", sa.Integer(), server_default="30", nullable=False),
        sa.Column("rarity", sa.String(16), server_default="common", nullable=False),
        sa.Column("effect", sa.String(128), nullable=True),
        sa.Column("is_active", sa.Boolean(), server_default="true", nullable=False),
    )

    # --- Parental controls and challenges ---
    op.create_table(
        "parental_controls",
        _id(),
        sa.Column("child_id", sa.String(36), sa.ForeignKey("children.id", ondelete="CASCADE"), nullable=False, unique=True),
        sa.Column("daily_screen_time", sa.Integer(), server_default="60", nullable=False),
        sa.Column("bonus_time_per_habit", sa.Integer(), server_default="10", nullable=False),
        sa.Column("weekend_bonus", sa.Integer(), server_default="30", nullable=False),
        sa.Column("game_unlock_requirement", sa.Integer(), server_default="2", nullable=False),
        sa.Column("max_game_time_per_day", sa.Integer(), server_default="20", nullable=False),
        sa.Column("bedtime_mode", sa.Boolean(), server_default="true", nullable=False),
        sa.Column("bedtime_start", sa.String(5), server_default="20:00", nullable=False),
        sa.Column("bedtime_end", sa.String(5), server_default="07:00", nullable=False),
        sa.Column("enable_habits", sa.Boolean(), server_default="true", nullable=False),
        sa.Column("enable_gear_shop", sa.Boolean(), server_default="true", nullable=False),
        sa.Column("enable_mini_games", sa.Boolean(), server_default="true", nullable=False),
        sa.Column("enable_rewards", sa.Boolean(), server_default="true", nullable=False),
        sa.Column("emergency_mode", sa.Boolean(), server_default="false", nullable=False),
        sa.Column("block_all_apps", sa.Boolean(), server_default="false", nullable=False),
        sa.Column("limit_internet", sa.Boolean(), server_default="false", nullable=False),
        sa.Column("parent_contact_enabled", sa.Boolean(), server_default="true", nullable=False),
        _ts("emergency_activated_at", nullable=True),
        _ts("updated_at"),
    )

    op.create_table(
        "weekend_challenges",
        _id(),
        _fk("child_id", "children.id"),
        sa.Column("name", sa.String(128), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("points_reward", sa.Integer(), server_default="20", nullable=False),
        sa.Column("start_date", sa.Date(), nullable=False),
        sa.Column("end_date", sa.Date(), nullable=False),
        sa.Column("is_accepted", sa.Boolean(), server_default="false", nullable=False),
        sa.Column("is_completed", sa.Boolean(), server_default="false", nullable=False),
        _ts("completed_at", nullable=True),
        _ts("created_at"),
    )
    op.create_index("ix_weekend_challenges_child_id", "weekend_challenges", ["child_id"])

    # --- Sync ---
    op.create_table(
        "devices",
        _id(),
        _fk("user_id", "users.id"),
        sa.Column("device_id", sa.String(128), nullable=False),
        sa.Column("device_name", sa.String(128), nullable=False),
        sa.Column("device_type", sa.String(16), nullable=False),
        sa.Column("push_token", sa.String(512), nullable=True),
        sa.Column("is_active", sa.Boolean(), server_default="true", nullable=False),
        _ts("last_sync_at"),
        _ts("created_at"),
        _ts("updated_at"),
        sa.UniqueConstraint("user_id", "device_id", name="devices_user_device_key"),
    )

    op.create_table(
        "sync_events",
        _id(),
        _fk("user_id", "users.id"),
        sa.Column("event_type", sa.String(64), nullable=False),
        sa.Column("entity_type", sa.String(32), nullable=False),
        sa.Column("entity_id", sa.String(36), nullable=False),
        sa.Column("event_data", sa.JSON(), nullable=True),
        _ts("timestamp"),
        sa.Column("processed", sa.Boolean(), server_default="false", nullable=False),
        sa.Column("device_origin", sa.String(128), nullable=True),
    )
    op.create_index("idx_sync_events_user_ts", "sync_events", ["user_id", "timestamp"])

    op.create_table(
        "sync_logs",
        _id(),
        _fk("user_id", "users.id"),
        _fk("device_id", "devices.id"),
        sa.Column("sync_type", sa.String(32), nullable=False),
        sa.Column("entity_type", sa.String(32), nullable=False),
        sa.Column("entity_id", sa.String(36), nullable=False),
        sa.Column("operation", sa.String(16), nullable=False),
        sa.Column("sync_direction", sa.String(8), nullable=False),
        sa.Column("sync_data", sa.JSON(), nullable=True),
        _ts("timestamp"),
    )


def downgrade() -> None:
    """Drop every table in reverse dependency order."""
    for table in (
        "sync_logs",
        "sync_events",
        "devices",
        "weekend_challenges",
        "parental_controls",
        "gear_shop_items",
        "avatar_shop_items",
        "reward_transactions",
        "reward_claims",
        "rewards",
        "auto_approval_settings",
        "habit_completions",
        "habits",
        "master_habits",
        "children",
        "users",
    ):
        op.drop_table(table)
