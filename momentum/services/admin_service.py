"""
momentum.services.admin_service — Audited Admin Mutations
==========================================================

Every admin write follows the same pattern:
  1. Begin transaction
  2. Read "before" snapshot
  3. Apply change
  4. Write admin_log with before/after JSONB
  5. Commit

Covers guild custom achievements here; manual awards and role settings
reuse :func:`row_to_dict` / :func:`log_admin_action` from their own
services.
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from momentum.database.engine import get_session
from momentum.database.models import (
    AchievementDefinition,
    AdminActionType,
    AdminLog,
    CheckType,
    CustomAchievement,
    Rarity,
)
from momentum.engine.criteria import parse_criteria
from momentum.errors import ConflictError, NotFoundError

if TYPE_CHECKING:
    from sqlalchemy import Engine

logger = logging.getLogger(__name__)

# Check types a guild admin may use for a custom achievement
CUSTOM_CHECK_TYPES = (CheckType.THRESHOLD, CheckType.COMBO, CheckType.SPECIAL)

_FROZEN_KEYS = ("id", "guild_id", "achievement_id", "created_by", "created_at")


# ---------------------------------------------------------------------------
# Generic audit helpers
# ---------------------------------------------------------------------------
def row_to_dict(obj: Any) -> dict | None:
    """Convert a SQLAlchemy model instance to a JSON-serializable dict."""
    if obj is None:
        return None
    result = {}
    for col in obj.__table__.columns:
        val = getattr(obj, col.key, None)
        if isinstance(val, (datetime, date)):
            val = val.isoformat()
        result[col.name] = val
    return result


def log_admin_action(
    session: Session,
    *,
    guild_id: int | None,
    actor_id: int,
    action_type: str,
    target_table: str,
    target_id: str | None,
    before: dict | None,
    after: dict | None,
    reason: str | None = None,
) -> None:
    """Insert a row into admin_log within the current transaction."""
    session.add(AdminLog(
        guild_id=guild_id,
        actor_id=actor_id,
        action_type=action_type,
        target_table=target_table,
        target_id=target_id,
        before_snapshot=before,
        after_snapshot=after,
        reason=reason,
    ))


def _validate_definition(check_type: str, criteria: dict | None, rarity: str) -> None:
    if check_type not in CUSTOM_CHECK_TYPES:
        allowed = ", ".join(CUSTOM_CHECK_TYPES)
        raise ValueError(f"Custom achievements use one of: {allowed}")
    Rarity(rarity)
    parse_criteria(check_type, criteria)   # raises CriteriaError


def _select_custom(session: Session, guild_id: int, achievement_id: str) -> CustomAchievement | None:
    return session.scalar(
        select(CustomAchievement).where(
            CustomAchievement.guild_id == guild_id,
            CustomAchievement.achievement_id == achievement_id,
        )
    )


# ---------------------------------------------------------------------------
# Custom achievement CRUD
# ---------------------------------------------------------------------------
def create_custom_achievement(
    engine: Engine,
    *,
    guild_id: int,
    achievement_id: str,
    title: str,
    check_type: str,
    criteria: dict,
    description: str = "",
    emoji: str = "\U0001f3c6",
    category: str = "custom",
    rarity: str = "common",
    grant_role: bool = False,
    points: int = 10,
    actor_id: int,
) -> CustomAchievement:
    """Create a guild-owned achievement.

    Raises ``ValueError`` (or ``CriteriaError``) for a bad definition and
    :class:`ConflictError` when the id is taken by a core achievement or
    an existing custom one in the guild.
    """
    _validate_definition(check_type, criteria, rarity)

    with get_session(engine) as session:
        if session.get(AchievementDefinition, achievement_id) is not None:
            raise ConflictError(f"`{achievement_id}` is a built-in achievement id.")

        row = CustomAchievement(
            guild_id=guild_id,
            achievement_id=achievement_id,
            title=title,
            description=description,
            emoji=emoji,
            category=category,
            rarity=rarity,
            check_type=check_type,
            criteria=dict(criteria),
            grant_role=grant_role,
            points=points,
            created_by=actor_id,
            enabled=True,
        )
        try:
            with session.begin_nested():
                session.add(row)
                session.flush()
        except IntegrityError as exc:
            raise ConflictError(
                f"Custom achievement `{achievement_id}` already exists in this guild."
            ) from exc

        log_admin_action(
            session,
            guild_id=guild_id,
            actor_id=actor_id,
            action_type=AdminActionType.CREATE,
            target_table="custom_achievements",
            target_id=achievement_id,
            before=None,
            after=row_to_dict(row),
        )

    logger.info("Custom achievement %s created in guild %s by %s", achievement_id, guild_id, actor_id)
    return row


def update_custom_achievement(
    engine: Engine,
    *,
    guild_id: int,
    achievement_id: str,
    actor_id: int,
    **kwargs: Any,
) -> CustomAchievement:
    """Edit a custom achievement.  Id, guild and author cannot change."""
    with get_session(engine) as session:
        row = _select_custom(session, guild_id, achievement_id)
        if row is None:
            raise NotFoundError(f"Custom achievement `{achievement_id}` does not exist.")

        before = row_to_dict(row)
        for key, value in kwargs.items():
            if hasattr(row, key) and key not in _FROZEN_KEYS:
                setattr(row, key, value)
        _validate_definition(row.check_type, row.criteria, row.rarity)
        session.flush()

        log_admin_action(
            session,
            guild_id=guild_id,
            actor_id=actor_id,
            action_type=AdminActionType.UPDATE,
            target_table="custom_achievements",
            target_id=achievement_id,
            before=before,
            after=row_to_dict(row),
        )
    return row


def delete_custom_achievement(
    engine: Engine,
    *,
    guild_id: int,
    achievement_id: str,
    actor_id: int,
) -> None:
    """Delete a custom achievement.

    Existing awards are kept for history; they drop out of displays once
    the definition is gone.
    """
    with get_session(engine) as session:
        row = _select_custom(session, guild_id, achievement_id)
        if row is None:
            raise NotFoundError(f"Custom achievement `{achievement_id}` does not exist.")
        log_admin_action(
            session,
            guild_id=guild_id,
            actor_id=actor_id,
            action_type=AdminActionType.DELETE,
            target_table="custom_achievements",
            target_id=achievement_id,
            before=row_to_dict(row),
            after=None,
        )
        session.delete(row)

    logger.info("Custom achievement %s deleted in guild %s by %s", achievement_id, guild_id, actor_id)


def list_custom_achievements(
    engine: Engine,
    guild_id: int,
    include_disabled: bool = False,
) -> list[CustomAchievement]:
    with get_session(engine) as session:
        stmt = select(CustomAchievement).where(CustomAchievement.guild_id == guild_id)
        if not include_disabled:
            stmt = stmt.where(CustomAchievement.enabled.is_(True))
        return list(session.scalars(stmt.order_by(CustomAchievement.achievement_id)).all())


def get_admin_log(engine: Engine, guild_id: int, limit: int = 50) -> list[AdminLog]:
    """Most recent audit entries for a guild, newest first."""
    with get_session(engine) as session:
        return list(session.scalars(
            select(AdminLog)
            .where(AdminLog.guild_id == guild_id)
            .order_by(AdminLog.id.desc())
            .limit(limit)
        ).all())
