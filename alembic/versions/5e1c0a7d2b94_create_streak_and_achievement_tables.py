"""Create streak, activity and achievement tables

Revision ID: 5e1c0a7d2b94
Revises:
Create Date: 2026-10-17 09:12:41.118302

"""
from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = '5e1c0a7d2b94'
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Initial schema: daily activity, streaks, catalogue, awards, roles, audit."""

    # --- activity_logs ---
    op.create_table(
        "activity_logs",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.BigInteger, nullable=False),
        sa.Column("guild_id", sa.BigInteger, nullable=False),
        sa.Column("activity_date", sa.Date, nullable=False),
        sa.Column("message_count", sa.Integer, nullable=False, server_default="0"),
        sa.Column("voice_minutes", sa.Integer, nullable=False, server_default="0"),
        sa.Column("commands_run", sa.Integer, nullable=False, server_default="0"),
        sa.Column("reactions_given", sa.Integer, nullable=False, server_default="0"),
        sa.Column("channels_joined", sa.Integer, nullable=False, server_default="0"),
        sa.Column("bytepods_created", sa.Integer, nullable=False, server_default="0"),
        sa.Column("midnight_messages", sa.Integer, nullable=False, server_default="0"),
        sa.Column("longest_voice_session", sa.Integer, nullable=False, server_default="0"),
        sa.Column("message_hours", postgresql.JSONB, nullable=True, server_default="{}"),
        sa.Column("voice_hours", postgresql.JSONB, nullable=True, server_default="{}"),
        sa.Column("unique_commands", postgresql.JSONB, nullable=True, server_default="[]"),
        sa.Column("first_activity_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_activity_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("first_message_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("first_voice_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint(
            "user_id", "guild_id", "activity_date", name="uq_activity_logs_user_guild_date",
        ),
    )
    op.create_index("ix_activity_logs_guild_date", "activity_logs", ["guild_id", "activity_date"])

    # --- activity_streaks ---
    op.create_table(
        "activity_streaks",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.BigInteger, nullable=False),
        sa.Column("guild_id", sa.BigInteger, nullable=False),
        sa.Column("current_streak", sa.Integer, nullable=False, server_default="0"),
        sa.Column("longest_streak", sa.Integer, nullable=False, server_default="0"),
        sa.Column("last_activity_date", sa.Date, nullable=True),
        sa.Column("total_active_days", sa.Integer, nullable=False, server_default="0"),
        sa.Column("freezes_available", sa.Integer, nullable=False, server_default="1"),
        sa.Column("freezes_used", sa.Integer, nullable=False, server_default="0"),
        sa.Column("last_freeze_reset", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now(),
        ),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("user_id", "guild_id", name="uq_activity_streaks_user_guild"),
    )
    op.create_index(
        "ix_activity_streaks_guild_current", "activity_streaks", ["guild_id", "current_streak"],
    )

    # --- achievement_definitions ---
    op.create_table(
        "achievement_definitions",
        sa.Column("id", sa.String(100), primary_key=True),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("description", sa.Text, nullable=False, server_default=""),
        sa.Column("emoji", sa.String(32), nullable=False),
        sa.Column("category", sa.String(50), nullable=False),
        sa.Column("rarity", sa.String(20), nullable=False, server_default="common"),
        sa.Column("check_type", sa.String(20), nullable=False),
        sa.Column("criteria", postgresql.JSONB, nullable=False, server_default="{}"),
        sa.Column("grant_role", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("points", sa.Integer, nullable=False, server_default="0"),
        sa.Column("seasonal", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("seasonal_event", sa.String(100), nullable=True),
        sa.Column("start_date", sa.String(5), nullable=True),
        sa.Column("end_date", sa.String(5), nullable=True),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now(),
        ),
    )
    op.create_index(
        "ix_achievement_definitions_category", "achievement_definitions", ["category"],
    )

    # --- custom_achievements ---
    op.create_table(
        "custom_achievements",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("guild_id", sa.BigInteger, nullable=False),
        sa.Column("achievement_id", sa.String(100), nullable=False),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("description", sa.Text, nullable=False, server_default=""),
        sa.Column("emoji", sa.String(32), nullable=False),
        sa.Column("category", sa.String(50), nullable=False, server_default="custom"),
        sa.Column("rarity", sa.String(20), nullable=False, server_default="common"),
        sa.Column("check_type", sa.String(20), nullable=False),
        sa.Column("criteria", postgresql.JSONB, nullable=False, server_default="{}"),
        sa.Column("grant_role", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("points", sa.Integer, nullable=False, server_default="0"),
        sa.Column("created_by", sa.BigInteger, nullable=False),
        sa.Column("enabled", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now(),
        ),
        sa.UniqueConstraint("guild_id", "achievement_id", name="uq_custom_achievements_guild_id"),
    )

    # --- awarded_achievements ---
    op.create_table(
        "awarded_achievements",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.BigInteger, nullable=False),
        sa.Column("guild_id", sa.BigInteger, nullable=False),
        sa.Column("achievement_id", sa.String(100), nullable=False),
        sa.Column("points", sa.Integer, nullable=False, server_default="0"),
        sa.Column("notified", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("awarded_by", sa.BigInteger, nullable=True),
        sa.Column(
            "earned_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now(),
        ),
        sa.UniqueConstraint(
            "user_id", "guild_id", "achievement_id",
            name="uq_awarded_achievements_user_guild_achievement",
        ),
    )
    op.create_index(
        "ix_awarded_achievements_guild", "awarded_achievements", ["guild_id", "achievement_id"],
    )

    # --- achievement_role_config ---
    op.create_table(
        "achievement_role_config",
        sa.Column("guild_id", sa.BigInteger, primary_key=True),
        sa.Column("enabled", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("role_prefix", sa.String(10), nullable=False),
        sa.Column("use_rarity_colors", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("cleanup_orphaned", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("notify_on_earn", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )

    # --- achievement_roles ---
    op.create_table(
        "achievement_roles",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("guild_id", sa.BigInteger, nullable=False),
        sa.Column("achievement_id", sa.String(100), nullable=False),
        sa.Column("role_id", sa.BigInteger, nullable=False),
        sa.Column(
            "created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now(),
        ),
        sa.UniqueConstraint(
            "guild_id", "achievement_id", name="uq_achievement_roles_guild_achievement",
        ),
    )

    # --- social_counters ---
    op.create_table(
        "social_counters",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.BigInteger, nullable=False),
        sa.Column("guild_id", sa.BigInteger, nullable=False),
        sa.Column("counter", sa.String(50), nullable=False),
        sa.Column("value", sa.Integer, nullable=False, server_default="0"),
        sa.UniqueConstraint(
            "user_id", "guild_id", "counter", name="uq_social_counters_user_guild_counter",
        ),
    )

    # --- admin_log ---
    op.create_table(
        "admin_log",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("guild_id", sa.BigInteger, nullable=True),
        sa.Column("actor_id", sa.BigInteger, nullable=False),
        sa.Column("action_type", sa.String(50), nullable=False),
        sa.Column("target_table", sa.String(50), nullable=False),
        sa.Column("target_id", sa.String(100), nullable=True),
        sa.Column("before_snapshot", postgresql.JSONB, nullable=True),
        sa.Column("after_snapshot", postgresql.JSONB, nullable=True),
        sa.Column("reason", sa.Text, nullable=True),
        sa.Column(
            "timestamp", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now(),
        ),
    )
    op.create_index("ix_admin_log_actor_time", "admin_log", ["actor_id", "timestamp"])
    op.create_index(
        "ix_admin_log_target", "admin_log", ["target_table", "target_id", "timestamp"],
    )


def downgrade() -> None:
    """Drop every table created above."""
    op.drop_index("ix_admin_log_target", table_name="admin_log")
    op.drop_index("ix_admin_log_actor_time", table_name="admin_log")
    op.drop_table("admin_log")
    op.drop_table("social_counters")
    op.drop_table("achievement_roles")
    op.drop_table("achievement_role_config")
    op.drop_index("ix_awarded_achievements_guild", table_name="awarded_achievements")
    op.drop_table("awarded_achievements")
    op.drop_table("custom_achievements")
    op.drop_index("ix_achievement_definitions_category", table_name="achievement_definitions")
    op.drop_table("achievement_definitions")
    op.drop_index("ix_activity_streaks_guild_current", table_name="activity_streaks")
    op.drop_table("activity_streaks")
    op.drop_index("ix_activity_logs_guild_date", table_name="activity_logs")
    op.drop_table("activity_logs")
