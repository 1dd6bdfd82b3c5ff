"""
momentum.database.models — SQLAlchemy 2.0 Data Models
======================================================

Tables:
- activity_logs            — Per-user-per-day activity counters (UTC day)
- activity_streaks         — One streak state row per (user, guild)
- achievement_definitions  — Core + seasonal achievement catalogue
- custom_achievements      — Guild-owned achievement definitions
- awarded_achievements     — Earned achievements, unique per (user, guild, id)
- achievement_role_config  — Per-guild role reward settings
- achievement_roles        — Achievement → Discord role mapping per guild
- social_counters          — Counters fed by features outside the streak core
- admin_log                — Append-only audit trail
"""

from __future__ import annotations

import enum
from datetime import date, datetime

from sqlalchemy import (
    BigInteger,
    Boolean,
    Date,
    DateTime,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


# ---------------------------------------------------------------------------
# Base
# ---------------------------------------------------------------------------
class Base(DeclarativeBase):
    """Shared base for all Momentum ORM models."""


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------
class CheckType(enum.StrEnum):
    """How an achievement's criteria are evaluated."""
    EXACT = "exact"
    THRESHOLD = "threshold"
    SPECIAL = "special"
    COMBO = "combo"
    META = "meta"


class Rarity(enum.StrEnum):
    """Ordinal rarity.  Display and role colour only, never gating."""
    COMMON = "common"
    UNCOMMON = "uncommon"
    RARE = "rare"
    EPIC = "epic"
    LEGENDARY = "legendary"
    MYTHIC = "mythic"

    @property
    def rank(self) -> int:
        return list(Rarity).index(self)


class AdminActionType(enum.StrEnum):
    """Audit log action labels."""
    CREATE = "CREATE"
    UPDATE = "UPDATE"
    DELETE = "DELETE"
    AWARD = "AWARD"
    REVOKE = "REVOKE"


# ---------------------------------------------------------------------------
# ActivityLog: one row per user per guild per UTC day
# ---------------------------------------------------------------------------
class ActivityLog(Base):
    __tablename__ = "activity_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    guild_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    activity_date: Mapped[date] = mapped_column(Date, nullable=False)

    message_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    voice_minutes: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    commands_run: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    reactions_given: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    channels_joined: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    bytepods_created: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    midnight_messages: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    longest_voice_session: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    # JSON stored as {"13": 4}, keys are UTC hours as strings
    message_hours: Mapped[dict | None] = mapped_column(JSONB, default=dict)
    voice_hours: Mapped[dict | None] = mapped_column(JSONB, default=dict)
    unique_commands: Mapped[list | None] = mapped_column(JSONB, default=list)

    first_activity_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    last_activity_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    first_message_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    first_voice_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    __table_args__ = (
        UniqueConstraint(
            "user_id", "guild_id", "activity_date",
            name="uq_activity_logs_user_guild_date",
        ),
        Index("ix_activity_logs_guild_date", "guild_id", "activity_date"),
    )

    def __repr__(self) -> str:
        return (
            f"<ActivityLog user={self.user_id} guild={self.guild_id} "
            f"date={self.activity_date}>"
        )


# ---------------------------------------------------------------------------
# ActivityStreak: streak state, at most one row per (user, guild)
# ---------------------------------------------------------------------------
class ActivityStreak(Base):
    __tablename__ = "activity_streaks"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    guild_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    current_streak: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    longest_streak: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_activity_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    total_active_days: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    freezes_available: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    freezes_used: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    last_freeze_reset: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True, onupdate=func.now()
    )

    __table_args__ = (
        UniqueConstraint("user_id", "guild_id", name="uq_activity_streaks_user_guild"),
        Index("ix_activity_streaks_guild_current", "guild_id", "current_streak"),
    )

    def __repr__(self) -> str:
        return (
            f"<ActivityStreak user={self.user_id} guild={self.guild_id} "
            f"current={self.current_streak}>"
        )


# ---------------------------------------------------------------------------
# AchievementDefinition: core + seasonal catalogue (seeded)
# ---------------------------------------------------------------------------
class AchievementDefinition(Base):
    __tablename__ = "achievement_definitions"

    id: Mapped[str] = mapped_column(String(100), primary_key=True)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    emoji: Mapped[str] = mapped_column(String(32), nullable=False, default="🏆")
    category: Mapped[str] = mapped_column(String(50), nullable=False)
    rarity: Mapped[str] = mapped_column(String(20), nullable=False, default="common")
    check_type: Mapped[str] = mapped_column(String(20), nullable=False)
    criteria: Mapped[dict] = mapped_column(JSONB, nullable=False, default=dict)
    grant_role: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    points: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    # Seasonal window, year-agnostic "MM-DD"
    seasonal: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    seasonal_event: Mapped[str | None] = mapped_column(String(100), nullable=True)
    start_date: Mapped[str | None] = mapped_column(String(5), nullable=True)
    end_date: Mapped[str | None] = mapped_column(String(5), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        Index("ix_achievement_definitions_category", "category"),
    )

    def __repr__(self) -> str:
        return f"<AchievementDefinition id={self.id!r} category={self.category}>"


# ---------------------------------------------------------------------------
# CustomAchievement: guild-owned definitions, editable by guild admins
# ---------------------------------------------------------------------------
class CustomAchievement(Base):
    __tablename__ = "custom_achievements"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    guild_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    achievement_id: Mapped[str] = mapped_column(String(100), nullable=False)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    emoji: Mapped[str] = mapped_column(String(32), nullable=False, default="🏆")
    category: Mapped[str] = mapped_column(String(50), nullable=False, default="custom")
    rarity: Mapped[str] = mapped_column(String(20), nullable=False, default="common")
    check_type: Mapped[str] = mapped_column(String(20), nullable=False)
    criteria: Mapped[dict] = mapped_column(JSONB, nullable=False, default=dict)
    grant_role: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    points: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    created_by: Mapped[int] = mapped_column(BigInteger, nullable=False)
    enabled: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        UniqueConstraint(
            "guild_id", "achievement_id", name="uq_custom_achievements_guild_id",
        ),
    )

    def __repr__(self) -> str:
        return f"<CustomAchievement guild={self.guild_id} id={self.achievement_id!r}>"


# ---------------------------------------------------------------------------
# AwardedAchievement: earned badges
# ---------------------------------------------------------------------------
class AwardedAchievement(Base):
    __tablename__ = "awarded_achievements"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    guild_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    achievement_id: Mapped[str] = mapped_column(String(100), nullable=False)
    points: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    notified: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    awarded_by: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    earned_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        UniqueConstraint(
            "user_id", "guild_id", "achievement_id",
            name="uq_awarded_achievements_user_guild_achievement",
        ),
        Index("ix_awarded_achievements_guild", "guild_id", "achievement_id"),
    )

    def __repr__(self) -> str:
        return (
            f"<AwardedAchievement user={self.user_id} guild={self.guild_id} "
            f"achievement={self.achievement_id!r}>"
        )


# ---------------------------------------------------------------------------
# AchievementRoleConfig: per-guild role reward settings
# ---------------------------------------------------------------------------
class AchievementRoleConfig(Base):
    __tablename__ = "achievement_role_config"

    guild_id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    enabled: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    role_prefix: Mapped[str] = mapped_column(String(10), default="🏆", nullable=False)
    use_rarity_colors: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    cleanup_orphaned: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    notify_on_earn: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True, onupdate=func.now()
    )

    def __repr__(self) -> str:
        return f"<AchievementRoleConfig guild={self.guild_id} enabled={self.enabled}>"


# ---------------------------------------------------------------------------
# AchievementRole: roles created for achievements
# ---------------------------------------------------------------------------
class AchievementRole(Base):
    __tablename__ = "achievement_roles"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    guild_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    achievement_id: Mapped[str] = mapped_column(String(100), nullable=False)
    role_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        UniqueConstraint(
            "guild_id", "achievement_id", name="uq_achievement_roles_guild_achievement",
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<AchievementRole guild={self.guild_id} "
            f"achievement={self.achievement_id!r} role={self.role_id}>"
        )


# ---------------------------------------------------------------------------
# SocialCounter: bookmarks, media, suggestions, templates, birthday
# ---------------------------------------------------------------------------
class SocialCounter(Base):
    __tablename__ = "social_counters"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    guild_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    counter: Mapped[str] = mapped_column(String(50), nullable=False)
    value: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    __table_args__ = (
        UniqueConstraint(
            "user_id", "guild_id", "counter", name="uq_social_counters_user_guild_counter",
        ),
    )


# ---------------------------------------------------------------------------
# AdminLog: append-only audit trail
# ---------------------------------------------------------------------------
class AdminLog(Base):
    __tablename__ = "admin_log"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    guild_id: Mapped[int | None] = mapped_column(BigInteger, nullable=True)
    actor_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    action_type: Mapped[str] = mapped_column(String(50), nullable=False)
    target_table: Mapped[str] = mapped_column(String(50), nullable=False)
    target_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    before_snapshot: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
    after_snapshot: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    __table_args__ = (
        Index("ix_admin_log_actor_time", "actor_id", "timestamp"),
        Index("ix_admin_log_target", "target_table", "target_id", "timestamp"),
    )

    def __repr__(self) -> str:
        return f"<AdminLog id={self.id} actor={self.actor_id} action={self.action_type}>"
