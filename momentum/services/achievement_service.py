"""
momentum.services.achievement_service — Achievement Awarding
=============================================================

Builds an :class:`~momentum.engine.achievements.AchievementContext` from
the database, asks the pure evaluator which definitions are newly met,
and persists the awards.

Awarding is at-most-once per (user, guild, achievement): every insert
runs inside a SAVEPOINT and an ``IntegrityError`` on the unique
constraint means "already awarded".  Two evaluations racing for the
same member therefore award each achievement once.

Manual awards skip the criteria but keep the uniqueness invariant and
the seasonal window gate; both manual award and removal are audited.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import TYPE_CHECKING

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from momentum.database.engine import get_session
from momentum.database.models import ActivityStreak, AdminActionType, AwardedAchievement
from momentum.engine.achievements import AchievementContext, evaluate
from momentum.engine.events import utc_today
from momentum.errors import ConflictError, PermissionDeniedError
from momentum.services.activity_service import (
    first_in_guild,
    load_history,
    totals_from_session,
    window_totals,
)
from momentum.services.admin_service import log_admin_action, row_to_dict

if TYPE_CHECKING:
    from sqlalchemy import Engine

    from momentum.engine.catalog import AchievementCatalog, CatalogEntry

logger = logging.getLogger(__name__)


def get_earned_achievement_ids(session: Session, user_id: int, guild_id: int) -> set[str]:
    """Ids the member has already earned in this guild."""
    rows = session.scalars(
        select(AwardedAchievement.achievement_id).where(
            AwardedAchievement.user_id == user_id,
            AwardedAchievement.guild_id == guild_id,
        )
    ).all()
    return set(rows)


def _insert_award(
    session: Session,
    user_id: int,
    guild_id: int,
    entry: CatalogEntry,
    awarded_by: int | None = None,
) -> AwardedAchievement | None:
    """Insert-or-ignore.  Returns ``None`` if the member already has it."""
    award = AwardedAchievement(
        user_id=user_id,
        guild_id=guild_id,
        achievement_id=entry.id,
        points=entry.points,
        notified=False,
        awarded_by=awarded_by,
    )
    try:
        with session.begin_nested():   # SAVEPOINT
            session.add(award)
            session.flush()
    except IntegrityError:
        # The SAVEPOINT was rolled back; the outer transaction is still alive.
        return None
    return award


def build_context(
    session: Session,
    catalog: AchievementCatalog,
    user_id: int,
    guild_id: int,
    earned: set[str],
    *,
    today: date,
    joined_at: date | None = None,
    guild_created_at: date | None = None,
) -> AchievementContext:
    """Gather everything the evaluator needs in one session."""
    streak = session.scalar(
        select(ActivityStreak).where(
            ActivityStreak.user_id == user_id, ActivityStreak.guild_id == guild_id,
        )
    )
    totals = totals_from_session(session, user_id, guild_id)
    history = load_history(session, user_id, guild_id)

    stats = totals.as_stats()
    stats["streak"] = streak.current_streak if streak else 0
    stats["longest_streak"] = streak.longest_streak if streak else 0
    stats["total_days"] = streak.total_active_days if streak else 0
    stats["freezes_used"] = streak.freezes_used if streak else 0

    awarded_non_meta = 0
    for achievement_id in earned:
        entry = catalog.get_by_id(achievement_id, guild_id)
        if entry is not None and not entry.is_meta:
            awarded_non_meta += 1

    seasonal_totals: dict[str, dict[str, int]] = {}
    for entry in catalog.definitions_for(guild_id):
        if entry.window is not None and entry.id not in earned and entry.window.contains(today):
            start = entry.window.occurrence_start(today)
            seasonal_totals[entry.id] = window_totals(session, user_id, guild_id, start, today)

    return AchievementContext(
        stats=stats,
        awarded_non_meta=awarded_non_meta,
        daily_messages=history.daily_messages,
        daily_active_hours=history.daily_active_hours,
        active_dates=history.active_dates,
        message_hours=history.message_hours,
        voice_hours=history.voice_hours,
        longest_voice_session=totals.longest_voice_session,
        first_messenger=first_in_guild(session, guild_id, "first_message_at") == user_id,
        first_voice=first_in_guild(session, guild_id, "first_voice_at") == user_id,
        joined_at=joined_at,
        guild_created_at=guild_created_at,
        seasonal_totals=seasonal_totals,
        today=today,
    )


# ---------------------------------------------------------------------------
# Automatic evaluation
# ---------------------------------------------------------------------------
def check_all_achievements(
    engine: Engine,
    catalog: AchievementCatalog,
    user_id: int,
    guild_id: int,
    *,
    today: date | None = None,
    joined_at: date | None = None,
    guild_created_at: date | None = None,
    dry_run: bool = False,
) -> list[CatalogEntry]:
    """Evaluate every definition for the member and award what is newly met.

    Returns the entries awarded by *this* call, in catalog order.  An
    entry another call awarded first is silently skipped.  With
    *dry_run* nothing is written and the entries that would be awarded
    are returned.
    """
    today = today or utc_today()
    with get_session(engine) as session:
        earned = get_earned_achievement_ids(session, user_id, guild_id)
        ctx = build_context(
            session, catalog, user_id, guild_id, earned,
            today=today, joined_at=joined_at, guild_created_at=guild_created_at,
        )
        candidates = evaluate(catalog.definitions_for(guild_id), ctx, earned)
        if dry_run:
            return candidates

        awarded = [
            entry for entry in candidates
            if _insert_award(session, user_id, guild_id, entry) is not None
        ]

    for entry in awarded:
        logger.info(
            "Achievement earned: user=%s guild=%s id=%s (%s, %d pts)",
            user_id, guild_id, entry.id, entry.rarity, entry.points,
        )
    return awarded


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------
def has_achievement(engine: Engine, user_id: int, guild_id: int, achievement_id: str) -> bool:
    with get_session(engine) as session:
        return session.scalar(
            select(AwardedAchievement.id).where(
                AwardedAchievement.user_id == user_id,
                AwardedAchievement.guild_id == guild_id,
                AwardedAchievement.achievement_id == achievement_id,
            )
        ) is not None


def get_user_achievements(engine: Engine, user_id: int, guild_id: int) -> list[AwardedAchievement]:
    """Awards for the member, oldest first."""
    with get_session(engine) as session:
        return list(session.scalars(
            select(AwardedAchievement)
            .where(
                AwardedAchievement.user_id == user_id,
                AwardedAchievement.guild_id == guild_id,
            )
            .order_by(AwardedAchievement.earned_at, AwardedAchievement.id)
        ).all())


def get_award_counts(engine: Engine, guild_id: int) -> dict[str, int]:
    """achievement id → number of members holding it in the guild."""
    with get_session(engine) as session:
        rows = session.execute(
            select(AwardedAchievement.achievement_id, func.count())
            .where(AwardedAchievement.guild_id == guild_id)
            .group_by(AwardedAchievement.achievement_id)
        ).all()
    return {achievement_id: count for achievement_id, count in rows}


def mark_notified(engine: Engine, user_id: int, guild_id: int, achievement_ids: list[str]) -> None:
    if not achievement_ids:
        return
    with get_session(engine) as session:
        for award in session.scalars(
            select(AwardedAchievement).where(
                AwardedAchievement.user_id == user_id,
                AwardedAchievement.guild_id == guild_id,
                AwardedAchievement.achievement_id.in_(achievement_ids),
            )
        ).all():
            award.notified = True


# ---------------------------------------------------------------------------
# Manual award / removal (admin)
# ---------------------------------------------------------------------------
def award_achievement(
    engine: Engine,
    catalog: AchievementCatalog,
    user_id: int,
    guild_id: int,
    achievement_id: str,
    *,
    awarded_by: int,
    reason: str | None = None,
    today: date | None = None,
) -> CatalogEntry:
    """Grant an achievement by hand, regardless of criteria.

    Raises
    ------
    NotFoundError
        Unknown achievement id.
    PermissionDeniedError
        Seasonal achievement outside its window.
    ConflictError
        The member already has it.
    """
    entry = catalog.require(achievement_id, guild_id)
    if not catalog.can_award(achievement_id, guild_id, today or utc_today()):
        window = entry.window.label() if entry.window else ""
        raise PermissionDeniedError(
            f"`{achievement_id}` can only be awarded during its season ({window})."
        )

    with get_session(engine) as session:
        award = _insert_award(session, user_id, guild_id, entry, awarded_by=awarded_by)
        if award is None:
            raise ConflictError(f"User already has `{achievement_id}`.")
        log_admin_action(
            session,
            guild_id=guild_id,
            actor_id=awarded_by,
            action_type=AdminActionType.AWARD,
            target_table="awarded_achievements",
            target_id=f"{user_id}:{achievement_id}",
            before=None,
            after=row_to_dict(award),
            reason=reason,
        )

    logger.info("Achievement %s awarded to %s in %s by %s", achievement_id, user_id, guild_id, awarded_by)
    return entry


def remove_achievement(
    engine: Engine,
    catalog: AchievementCatalog,
    user_id: int,
    guild_id: int,
    achievement_id: str,
    *,
    removed_by: int,
    reason: str | None = None,
) -> CatalogEntry:
    """Revoke an achievement.

    Raises :class:`NotFoundError` for an unknown id and
    :class:`ConflictError` when the member does not have it.
    """
    entry = catalog.require(achievement_id, guild_id)

    with get_session(engine) as session:
        award = session.scalar(
            select(AwardedAchievement).where(
                AwardedAchievement.user_id == user_id,
                AwardedAchievement.guild_id == guild_id,
                AwardedAchievement.achievement_id == achievement_id,
            )
        )
        if award is None:
            raise ConflictError(f"User does not have `{achievement_id}`.")
        log_admin_action(
            session,
            guild_id=guild_id,
            actor_id=removed_by,
            action_type=AdminActionType.REVOKE,
            target_table="awarded_achievements",
            target_id=f"{user_id}:{achievement_id}",
            before=row_to_dict(award),
            after=None,
            reason=reason,
        )
        session.delete(award)

    logger.info("Achievement %s removed from %s in %s by %s", achievement_id, user_id, guild_id, removed_by)
    return entry
