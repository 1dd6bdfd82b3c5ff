"""
momentum.services.activity_service — Daily Activity Log & Totals Provider
==========================================================================

Upserts one ``activity_logs`` row per (user, guild, UTC day) and adds to
its counters.  Storage errors propagate; this layer never retries.

Also the totals provider for the evaluator: :func:`get_user_totals` sums
every daily row, :func:`load_history` returns the per-day detail the
special predicates need.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import UTC, date, datetime, timedelta
from typing import TYPE_CHECKING

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from momentum.database.engine import get_session
from momentum.database.models import ActivityLog, SocialCounter
from momentum.engine.events import ActivityEvent, ActivityKind, utc_today

if TYPE_CHECKING:
    from sqlalchemy import Engine

logger = logging.getLogger(__name__)

SOCIAL_COUNTERS: frozenset[str] = frozenset({
    "bookmarks_saved",
    "media_saved",
    "suggestions_made",
    "templates_created",
    "birthday_set",
})

# Simple counters: ActivityKind → ActivityLog column
_KIND_COLUMN: dict[ActivityKind, str] = {
    ActivityKind.MESSAGE: "message_count",
    ActivityKind.VOICE_MINUTES: "voice_minutes",
    ActivityKind.COMMAND: "commands_run",
    ActivityKind.REACTION: "reactions_given",
    ActivityKind.CHANNEL_JOIN: "channels_joined",
    ActivityKind.BYTEPOD_CREATED: "bytepods_created",
}

# (hour, minute) pairs counted as "around midnight"
_MIDNIGHT_MINUTES = frozenset({(23, 59), (0, 0)})


# ---------------------------------------------------------------------------
# Value objects
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class UserTotals:
    """Lifetime aggregates for one member in one guild."""

    messages: int = 0
    voice_minutes: int = 0
    commands: int = 0
    reactions: int = 0
    channel_joins: int = 0
    bytepods_created: int = 0
    midnight_messages: int = 0
    unique_commands: int = 0
    longest_voice_session: int = 0
    active_days: int = 0
    social: dict[str, int] = field(default_factory=dict)

    @property
    def voice_hours(self) -> int:
        return self.voice_minutes // 60

    def as_stats(self) -> dict[str, int]:
        """Flatten into the ``stats`` mapping used by criteria."""
        stats = {
            "messages": self.messages,
            "voice_minutes": self.voice_minutes,
            "voice_hours": self.voice_hours,
            "commands": self.commands,
            "reactions": self.reactions,
            "channel_joins": self.channel_joins,
            "bytepods_created": self.bytepods_created,
            "midnight_messages": self.midnight_messages,
            "unique_commands": self.unique_commands,
        }
        for name in SOCIAL_COUNTERS:
            stats[name] = self.social.get(name, 0)
        return stats


@dataclass(frozen=True, slots=True)
class ActivityHistory:
    """Per-day detail for special predicates."""

    daily_messages: dict[date, int]
    daily_active_hours: dict[date, int]
    active_dates: frozenset[date]
    message_hours: dict[int, int]
    voice_hours: dict[int, int]


# ---------------------------------------------------------------------------
# Session-level helpers
# ---------------------------------------------------------------------------
def _select_log(session: Session, user_id: int, guild_id: int, day: date) -> ActivityLog | None:
    return session.scalar(
        select(ActivityLog)
        .where(
            ActivityLog.user_id == user_id,
            ActivityLog.guild_id == guild_id,
            ActivityLog.activity_date == day,
        )
        .with_for_update()
    )


def get_or_create_log(session: Session, user_id: int, guild_id: int, day: date) -> ActivityLog:
    """Fetch today's row, inserting it if this is the first activity of the day.

    Two events racing to create the same row are resolved by the unique
    constraint: the loser's SAVEPOINT rolls back and it re-reads.
    """
    log = _select_log(session, user_id, guild_id, day)
    if log is not None:
        return log

    log = ActivityLog(
        user_id=user_id,
        guild_id=guild_id,
        activity_date=day,
        message_hours={},
        voice_hours={},
        unique_commands=[],
    )
    try:
        with session.begin_nested():   # SAVEPOINT
            session.add(log)
            session.flush()
    except IntegrityError:
        log = _select_log(session, user_id, guild_id, day)
        if log is None:
            raise
    return log


def _bump_hour(bucket: dict | None, hour: int, amount: int) -> dict:
    # JSON columns are replaced, never mutated in place, so the ORM sees the change
    updated = dict(bucket or {})
    updated[str(hour)] = int(updated.get(str(hour), 0)) + amount
    return updated


def apply_activity(
    log: ActivityLog,
    kind: ActivityKind,
    amount: int,
    at: datetime,
    command_name: str | None = None,
) -> None:
    """Add one event to a daily row (in memory; caller flushes)."""
    column = _KIND_COLUMN[kind]
    setattr(log, column, (getattr(log, column) or 0) + amount)

    if kind is ActivityKind.MESSAGE:
        log.message_hours = _bump_hour(log.message_hours, at.hour, amount)
        if (at.hour, at.minute) in _MIDNIGHT_MINUTES:
            log.midnight_messages = (log.midnight_messages or 0) + amount
        if log.first_message_at is None:
            log.first_message_at = at
    elif kind is ActivityKind.VOICE_MINUTES:
        log.voice_hours = _bump_hour(log.voice_hours, at.hour, amount)
    elif kind is ActivityKind.CHANNEL_JOIN:
        if log.first_voice_at is None:
            log.first_voice_at = at
    elif kind is ActivityKind.COMMAND and command_name:
        used = list(log.unique_commands or [])
        if command_name not in used:
            log.unique_commands = [*used, command_name]

    if log.first_activity_at is None:
        log.first_activity_at = at
    log.last_activity_at = at


# ---------------------------------------------------------------------------
# Public API: recording
# ---------------------------------------------------------------------------
def record_activity(
    engine: Engine,
    user_id: int,
    guild_id: int,
    kind: ActivityKind,
    amount: int = 1,
    *,
    at: datetime | None = None,
    command_name: str | None = None,
) -> date:
    """Add *amount* to today's *kind* counter.  Returns the UTC day written.

    Raises ``ValueError`` for a non-positive *amount*.
    """
    if amount <= 0:
        raise ValueError(f"amount must be positive, got {amount}")
    at = (at or datetime.now(UTC)).astimezone(UTC)
    day = utc_today(at)

    with get_session(engine) as session:
        log = get_or_create_log(session, user_id, guild_id, day)
        apply_activity(log, kind, amount, at, command_name)
    return day


def record_event(engine: Engine, event: ActivityEvent) -> date:
    """:func:`record_activity` for a normalized :class:`ActivityEvent`."""
    return record_activity(
        engine,
        event.user_id,
        event.guild_id,
        event.kind,
        event.amount,
        at=event.timestamp,
        command_name=event.command_name,
    )


def record_voice_session(
    engine: Engine,
    user_id: int,
    guild_id: int,
    started_at: datetime,
    ended_at: datetime,
) -> int:
    """Record a finished voice session, split across UTC hour boundaries.

    Each hour segment lands on the day it belongs to, so a session
    running over midnight credits both days.  Returns whole minutes
    recorded (0 for sessions under a minute).
    """
    started_at = started_at.astimezone(UTC)
    ended_at = ended_at.astimezone(UTC)
    total = int((ended_at - started_at).total_seconds() // 60)
    if total <= 0:
        return 0

    with get_session(engine) as session:
        cursor = started_at
        credited = 0
        log: ActivityLog | None = None
        while cursor < ended_at:
            next_hour = cursor.replace(minute=0, second=0, microsecond=0) + timedelta(hours=1)
            segment_end = min(next_hour, ended_at)
            # cumulative rounding so split segments add up to ``total``
            elapsed = int((segment_end - started_at).total_seconds() // 60)
            minutes, credited = elapsed - credited, elapsed
            if minutes > 0:
                log = get_or_create_log(session, user_id, guild_id, cursor.date())
                apply_activity(log, ActivityKind.VOICE_MINUTES, minutes, cursor)
            cursor = segment_end

        if log is not None:
            log.longest_voice_session = max(log.longest_voice_session or 0, total)

    logger.debug("Voice session for %s in %s: %d min", user_id, guild_id, total)
    return total


def increment_social_counter(
    engine: Engine,
    user_id: int,
    guild_id: int,
    counter: str,
    amount: int = 1,
) -> int:
    """Bump a social-feature counter (bookmarks, media, …).  Returns the new value."""
    if counter not in SOCIAL_COUNTERS:
        raise ValueError(f"Unknown social counter: {counter!r}")

    with get_session(engine) as session:
        stmt = select(SocialCounter).where(
            SocialCounter.user_id == user_id,
            SocialCounter.guild_id == guild_id,
            SocialCounter.counter == counter,
        ).with_for_update()
        row = session.scalar(stmt)
        if row is None:
            row = SocialCounter(user_id=user_id, guild_id=guild_id, counter=counter, value=0)
            try:
                with session.begin_nested():
                    session.add(row)
                    session.flush()
            except IntegrityError:
                row = session.scalar(stmt)
                if row is None:
                    raise
        row.value += amount
        return row.value


# ---------------------------------------------------------------------------
# Public API: totals provider
# ---------------------------------------------------------------------------
def _user_logs(session: Session, user_id: int, guild_id: int) -> list[ActivityLog]:
    return list(session.scalars(
        select(ActivityLog)
        .where(ActivityLog.user_id == user_id, ActivityLog.guild_id == guild_id)
        .order_by(ActivityLog.activity_date)
    ).all())


def totals_from_session(session: Session, user_id: int, guild_id: int) -> UserTotals:
    logs = _user_logs(session, user_id, guild_id)
    commands: set[str] = set()
    for log in logs:
        commands.update(log.unique_commands or [])

    social = {
        row.counter: row.value
        for row in session.scalars(
            select(SocialCounter).where(
                SocialCounter.user_id == user_id, SocialCounter.guild_id == guild_id,
            )
        )
    }

    return UserTotals(
        messages=sum(log.message_count for log in logs),
        voice_minutes=sum(log.voice_minutes for log in logs),
        commands=sum(log.commands_run for log in logs),
        reactions=sum(log.reactions_given for log in logs),
        channel_joins=sum(log.channels_joined for log in logs),
        bytepods_created=sum(log.bytepods_created for log in logs),
        midnight_messages=sum(log.midnight_messages for log in logs),
        unique_commands=len(commands),
        longest_voice_session=max((log.longest_voice_session for log in logs), default=0),
        active_days=len(logs),
        social=social,
    )


def get_user_totals(engine: Engine, user_id: int, guild_id: int) -> UserTotals:
    """Lifetime aggregates for (user, guild).  All zeros for unknown users."""
    with get_session(engine) as session:
        return totals_from_session(session, user_id, guild_id)


def load_history(session: Session, user_id: int, guild_id: int) -> ActivityHistory:
    daily_messages: dict[date, int] = {}
    daily_hours: dict[date, int] = {}
    message_hours: dict[int, int] = {}
    voice_hours: dict[int, int] = {}

    for log in _user_logs(session, user_id, guild_id):
        daily_messages[log.activity_date] = log.message_count
        daily_hours[log.activity_date] = sum(
            1 for count in (log.message_hours or {}).values() if int(count) > 0
        )
        for hour, count in (log.message_hours or {}).items():
            message_hours[int(hour)] = message_hours.get(int(hour), 0) + int(count)
        for hour, minutes in (log.voice_hours or {}).items():
            voice_hours[int(hour)] = voice_hours.get(int(hour), 0) + int(minutes)

    return ActivityHistory(
        daily_messages=daily_messages,
        daily_active_hours=daily_hours,
        active_dates=frozenset(daily_messages),
        message_hours=message_hours,
        voice_hours=voice_hours,
    )


def window_totals(
    session: Session,
    user_id: int,
    guild_id: int,
    start: date,
    end: date,
) -> dict[str, int]:
    """Seasonal stats between *start* and *end* inclusive."""
    logs = session.scalars(
        select(ActivityLog).where(
            ActivityLog.user_id == user_id,
            ActivityLog.guild_id == guild_id,
            ActivityLog.activity_date >= start,
            ActivityLog.activity_date <= end,
        )
    ).all()
    return {
        "active_days": len(logs),
        "messages": sum(log.message_count for log in logs),
        "voice_hours": sum(log.voice_minutes for log in logs) // 60,
        "channel_joins": sum(log.channels_joined for log in logs),
        "reactions": sum(log.reactions_given for log in logs),
    }


def first_in_guild(session: Session, guild_id: int, column: str) -> int | None:
    """User id with the earliest ``first_message_at`` / ``first_voice_at``."""
    attr = getattr(ActivityLog, column)
    return session.scalar(
        select(ActivityLog.user_id)
        .where(ActivityLog.guild_id == guild_id, attr.is_not(None))
        .order_by(attr.asc(), ActivityLog.id.asc())
        .limit(1)
    )
