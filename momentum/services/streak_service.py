"""
momentum.services.streak_service — Streak Persistence
======================================================

Loads and stores ``activity_streaks`` rows around the pure transitions in
:mod:`momentum.engine.streaks`.

``touch_activity`` is one read-modify-write inside one transaction; the
row is locked with ``SELECT … FOR UPDATE`` so two events for the same
member cannot lose an update.  Touches are expected to be debounced by
the caller (see :mod:`momentum.engine.events`), but repeating a touch
on the same day is always a no-op.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, replace
from datetime import UTC, date, datetime, time
from typing import TYPE_CHECKING

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from momentum.database.engine import get_session
from momentum.database.models import ActivityStreak, AwardedAchievement
from momentum.engine.events import utc_today
from momentum.engine.streaks import (
    FREEZES_PER_MONTH,
    StreakState,
    TouchOutcome,
    apply_touch,
    freeze_reset_due,
    is_unrecoverable,
)
from momentum.errors import NotFoundError

if TYPE_CHECKING:
    from sqlalchemy import Engine

    from momentum.engine.catalog import AchievementCatalog, CatalogEntry

logger = logging.getLogger(__name__)


class LeaderboardType(enum.StrEnum):
    CURRENT = "current"
    LONGEST = "longest"
    TOTAL = "total"


_LEADERBOARD_COLUMNS = {
    LeaderboardType.CURRENT: ActivityStreak.current_streak,
    LeaderboardType.LONGEST: ActivityStreak.longest_streak,
    LeaderboardType.TOTAL: ActivityStreak.total_active_days,
}


@dataclass(frozen=True, slots=True)
class UserStreak:
    """Streak state plus earned achievements, for display."""

    user_id: int
    guild_id: int
    state: StreakState
    achievements: list[tuple[CatalogEntry, datetime]]

    @property
    def points(self) -> int:
        return sum(entry.points for entry, _ in self.achievements)


@dataclass(frozen=True, slots=True)
class LeaderboardRow:
    rank: int
    user_id: int
    value: int


# ---------------------------------------------------------------------------
# Row helpers
# ---------------------------------------------------------------------------
def to_state(row: ActivityStreak) -> StreakState:
    return StreakState(
        current_streak=row.current_streak,
        longest_streak=row.longest_streak,
        last_activity_date=row.last_activity_date,
        total_active_days=row.total_active_days,
        freezes_available=row.freezes_available,
        freezes_used=row.freezes_used,
    )


def _write_state(row: ActivityStreak, state: StreakState) -> None:
    row.current_streak = state.current_streak
    row.longest_streak = state.longest_streak
    row.last_activity_date = state.last_activity_date
    row.total_active_days = state.total_active_days
    row.freezes_available = state.freezes_available
    row.freezes_used = state.freezes_used


def _replenish_if_due(row: ActivityStreak, today: date) -> bool:
    """Restore this month's freezes on *row* if they are still owed."""
    if not freeze_reset_due(row.last_freeze_reset, today):
        return False
    row.freezes_available = FREEZES_PER_MONTH
    row.last_freeze_reset = datetime.combine(today, time.min, tzinfo=UTC)
    return True


def _select_streak(session: Session, user_id: int, guild_id: int) -> ActivityStreak | None:
    return session.scalar(
        select(ActivityStreak)
        .where(ActivityStreak.user_id == user_id, ActivityStreak.guild_id == guild_id)
        .with_for_update()
    )


def get_or_create_streak(
    session: Session,
    user_id: int,
    guild_id: int,
    today: date | None = None,
) -> ActivityStreak:
    """Fetch the member's streak row (locked), inserting a zeroed one if absent."""
    row = _select_streak(session, user_id, guild_id)
    if row is not None:
        return row

    row = ActivityStreak(
        user_id=user_id,
        guild_id=guild_id,
        current_streak=0,
        longest_streak=0,
        total_active_days=0,
        freezes_available=FREEZES_PER_MONTH,
        freezes_used=0,
        # a new row already holds this month's freeze
        last_freeze_reset=datetime.combine(today or utc_today(), time.min, tzinfo=UTC),
    )
    try:
        with session.begin_nested():   # SAVEPOINT
            session.add(row)
            session.flush()
    except IntegrityError:
        row = _select_streak(session, user_id, guild_id)
        if row is None:
            raise
    return row


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def touch_activity(
    engine: Engine,
    user_id: int,
    guild_id: int,
    *,
    today: date | None = None,
) -> tuple[StreakState, TouchOutcome]:
    """Count *today* toward the member's streak.

    Returns the stored state after the touch and what happened.  A second
    touch on the same UTC day returns ``TouchOutcome.SAME_DAY`` and
    writes nothing.
    """
    today = today or utc_today()
    with get_session(engine) as session:
        row = get_or_create_streak(session, user_id, guild_id, today)
        # the daily sweep may not have run yet on the 1st
        _replenish_if_due(row, today)
        state, outcome = apply_touch(to_state(row), today)
        if outcome.changed:
            _write_state(row, state)

    if outcome is TouchOutcome.FROZEN:
        logger.info(
            "Freeze used: user=%s guild=%s streak=%d", user_id, guild_id, state.current_streak,
        )
    elif outcome is TouchOutcome.BROKEN:
        logger.debug("Streak restarted: user=%s guild=%s", user_id, guild_id)
    return state, outcome


def get_streak_state(engine: Engine, user_id: int, guild_id: int) -> StreakState | None:
    """Current state, or ``None`` if the member was never active."""
    with get_session(engine) as session:
        row = session.scalar(
            select(ActivityStreak).where(
                ActivityStreak.user_id == user_id, ActivityStreak.guild_id == guild_id,
            )
        )
        return to_state(row) if row is not None else None


def get_user_streak(
    engine: Engine,
    catalog: AchievementCatalog,
    user_id: int,
    guild_id: int,
) -> UserStreak:
    """Streak state joined with the member's earned achievements.

    Raises :class:`NotFoundError` if the member has no streak record.
    Awards whose definition has since been deleted are left out.
    """
    with get_session(engine) as session:
        row = session.scalar(
            select(ActivityStreak).where(
                ActivityStreak.user_id == user_id, ActivityStreak.guild_id == guild_id,
            )
        )
        if row is None:
            raise NotFoundError(f"No streak record for user {user_id} in guild {guild_id}.")
        state = to_state(row)
        awarded = session.execute(
            select(AwardedAchievement.achievement_id, AwardedAchievement.earned_at)
            .where(
                AwardedAchievement.user_id == user_id,
                AwardedAchievement.guild_id == guild_id,
            )
            .order_by(AwardedAchievement.earned_at, AwardedAchievement.id)
        ).all()

    achievements = []
    for achievement_id, earned_at in awarded:
        entry = catalog.get_by_id(achievement_id, guild_id)
        if entry is not None:
            achievements.append((entry, earned_at))
    return UserStreak(user_id, guild_id, state, achievements)


def get_leaderboard(
    engine: Engine,
    guild_id: int,
    board: LeaderboardType | str = LeaderboardType.CURRENT,
    limit: int = 10,
) -> list[LeaderboardRow]:
    """Top members by current streak, longest streak or total active days."""
    column = _LEADERBOARD_COLUMNS[LeaderboardType(board)]
    with get_session(engine) as session:
        rows = session.execute(
            select(ActivityStreak.user_id, column)
            .where(ActivityStreak.guild_id == guild_id, column > 0)
            .order_by(column.desc(), ActivityStreak.user_id)
            .limit(limit)
        ).all()
    return [LeaderboardRow(rank, user_id, value) for rank, (user_id, value) in enumerate(rows, 1)]


def get_tracked_members(engine: Engine, guild_id: int | None = None) -> list[tuple[int, int]]:
    """``(user_id, guild_id)`` for every member with a streak row."""
    stmt = select(ActivityStreak.user_id, ActivityStreak.guild_id)
    if guild_id is not None:
        stmt = stmt.where(ActivityStreak.guild_id == guild_id)
    with get_session(engine) as session:
        rows = session.execute(
            stmt.order_by(ActivityStreak.guild_id, ActivityStreak.user_id)
        ).all()
    return [(user_id, gid) for user_id, gid in rows]


# ---------------------------------------------------------------------------
# Scheduled sweeps
# ---------------------------------------------------------------------------
def expire_broken_streaks(engine: Engine, today: date | None = None) -> int:
    """Zero ``current_streak`` where the streak can no longer continue.

    Freezes, totals and longest streaks are untouched; the next touch
    still starts a new streak at 1.  Returns the number of rows changed.
    """
    today = today or utc_today()
    expired = 0
    with get_session(engine) as session:
        rows = session.scalars(
            select(ActivityStreak).where(
                ActivityStreak.current_streak > 0,
                ActivityStreak.last_activity_date < today,
            )
        ).all()
        for row in rows:
            state = to_state(row)
            if freeze_reset_due(row.last_freeze_reset, today):
                # this month's freeze is owed and will bridge a one-day gap
                state = replace(state, freezes_available=FREEZES_PER_MONTH)
            if is_unrecoverable(state, today):
                row.current_streak = 0
                expired += 1

    logger.info("Streak sweep: %d broken streaks expired.", expired)
    return expired


def reset_monthly_freezes(engine: Engine, today: date | None = None) -> int:
    """Replenish freezes for rows not yet reset this calendar month.

    Idempotent: a second run in the same month changes nothing.
    """
    today = today or utc_today()
    reset = 0
    with get_session(engine) as session:
        for row in session.scalars(select(ActivityStreak)).all():
            if _replenish_if_due(row, today):
                reset += 1

    if reset:
        logger.info("Monthly freeze reset: %d streaks replenished.", reset)
    return reset
