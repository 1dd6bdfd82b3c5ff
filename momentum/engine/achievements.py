"""
momentum.engine.achievements — Achievement Evaluation
======================================================

Given an :class:`AchievementContext` (a snapshot of everything known
about one member in one guild) decide which catalog entries are newly
satisfied.

* ``exact`` and ``threshold`` — ``stat >= value``.
* ``combo`` — every listed stat meets its own value.
* ``meta`` — number of awarded non-meta achievements meets the count.
* ``special`` — dispatched by name through :data:`SPECIAL_HANDLERS`;
  each handler is a pure ``(params, ctx) -> bool`` function.

This module is pure calculation — no database I/O, no Discord I/O.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field, replace
from datetime import date
from typing import Any

from momentum.engine.catalog import CatalogEntry
from momentum.engine.criteria import (
    ComboCriteria,
    ExactCriteria,
    MetaCriteria,
    SpecialCriteria,
    ThresholdCriteria,
)
from momentum.engine.events import utc_today

logger = logging.getLogger(__name__)

# Stats measured inside a seasonal window
SEASONAL_STATS: frozenset[str] = frozenset({
    "active_days", "messages", "voice_hours", "channel_joins", "reactions",
})


# ---------------------------------------------------------------------------
# Achievement Context: passed to every check
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class AchievementContext:
    """Snapshot of one member's activity in one guild.

    Parameters
    ----------
    stats : Lifetime aggregates keyed by ``criteria.STAT_NAMES``
        (e.g. ``{"streak": 12, "messages": 1045, "voice_hours": 3}``).
    awarded_non_meta : Count of already-awarded, non-meta achievements.
    daily_messages : UTC day → messages sent that day.
    daily_active_hours : UTC day → distinct hours with a message that day.
    active_dates : Every UTC day with any recorded activity.
    message_hours : Lifetime messages per UTC hour (0–23).
    voice_hours : Lifetime voice minutes per UTC hour (0–23).
    longest_voice_session : Longest single voice session, in minutes.
    first_messenger / first_voice : This member was the guild's first.
    joined_at / guild_created_at : For early-adopter and anniversaries.
    seasonal_totals : achievement id → stats inside its current window.
    today : The evaluation day (UTC).
    """

    stats: dict[str, int] = field(default_factory=dict)
    awarded_non_meta: int = 0
    daily_messages: dict[date, int] = field(default_factory=dict)
    daily_active_hours: dict[date, int] = field(default_factory=dict)
    active_dates: frozenset[date] = frozenset()
    message_hours: dict[int, int] = field(default_factory=dict)
    voice_hours: dict[int, int] = field(default_factory=dict)
    longest_voice_session: int = 0
    first_messenger: bool = False
    first_voice: bool = False
    joined_at: date | None = None
    guild_created_at: date | None = None
    seasonal_totals: dict[str, dict[str, int]] = field(default_factory=dict)
    today: date = field(default_factory=utc_today)


SpecialHandler = Callable[[Mapping[str, Any], AchievementContext], bool]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def _longest_run(days: Iterable[date]) -> int:
    """Length of the longest run of consecutive calendar days."""
    best = run = 0
    previous: date | None = None
    for day in sorted(set(days)):
        run = run + 1 if previous is not None and (day - previous).days == 1 else 1
        best = max(best, run)
        previous = day
    return best


def _add_years(day: date, years: int) -> date:
    try:
        return day.replace(year=day.year + years)
    except ValueError:  # 29 Feb
        return day.replace(year=day.year + years, day=28)


# ---------------------------------------------------------------------------
# Special handlers: pure functions (params, ctx) → bool
# ---------------------------------------------------------------------------
def _check_all_hours_active(params: Mapping[str, Any], ctx: AchievementContext) -> bool:
    """Messages in ``hour_count`` distinct hours of one day."""
    need = int(params.get("hour_count", 24))
    return max(ctx.daily_active_hours.values(), default=0) >= need


def _check_night_messages(params: Mapping[str, Any], ctx: AchievementContext) -> bool:
    hours = params.get("hours", range(6))
    sent = sum(ctx.message_hours.get(int(h), 0) for h in hours)
    return sent >= int(params.get("count", 0))


def _check_continuous_session(params: Mapping[str, Any], ctx: AchievementContext) -> bool:
    return ctx.longest_voice_session >= int(params.get("hours", 0)) * 60


def _check_morning_voice(params: Mapping[str, Any], ctx: AchievementContext) -> bool:
    hours = params.get("time_range", (6, 7, 8, 9))
    minutes = sum(ctx.voice_hours.get(int(h), 0) for h in hours)
    return minutes >= int(params.get("hours", 0)) * 60


def _check_first_message(params: Mapping[str, Any], ctx: AchievementContext) -> bool:
    return ctx.first_messenger


def _check_first_voice(params: Mapping[str, Any], ctx: AchievementContext) -> bool:
    return ctx.first_voice


def _check_perfect_week(params: Mapping[str, Any], ctx: AchievementContext) -> bool:
    """Every hour of ``hours / 24`` consecutive days had a message."""
    days = int(params.get("hours", 168)) // 24
    full_days = (d for d, hours in ctx.daily_active_hours.items() if hours >= 24)
    return _longest_run(full_days) >= days


def _check_perfect_month(params: Mapping[str, Any], ctx: AchievementContext) -> bool:
    """``days`` consecutive active days with no freeze involved."""
    return _longest_run(ctx.active_dates) >= int(params.get("days", 30))


def _check_comeback(params: Mapping[str, Any], ctx: AchievementContext) -> bool:
    """A gap of ``inactive_days`` followed by a run of ``new_streak`` days."""
    inactive = int(params.get("inactive_days", 30))
    needed = int(params.get("new_streak", 7))
    days = sorted(ctx.active_dates)
    for i in range(1, len(days)):
        if (days[i] - days[i - 1]).days - 1 < inactive:
            continue
        run = 1
        for j in range(i + 1, len(days)):
            if (days[j] - days[j - 1]).days != 1:
                break
            run += 1
        if run >= needed:
            return True
    return False


def _check_early_adopter(params: Mapping[str, Any], ctx: AchievementContext) -> bool:
    if ctx.joined_at is None or ctx.guild_created_at is None:
        return False
    return (ctx.joined_at - ctx.guild_created_at).days < int(params.get("days", 7))


def _check_server_anniversary(params: Mapping[str, Any], ctx: AchievementContext) -> bool:
    if ctx.guild_created_at is None:
        return False
    anniversary = _add_years(ctx.guild_created_at, int(params.get("years", 1)))
    return anniversary in ctx.active_dates


def _check_weekend_warrior(params: Mapping[str, Any], ctx: AchievementContext) -> bool:
    """Weeks where the average weekend day beat the average weekday."""
    weeks: dict[tuple[int, int], list[int]] = {}
    for day, count in ctx.daily_messages.items():
        iso = day.isocalendar()
        totals = weeks.setdefault((iso.year, iso.week), [0, 0])  # [weekday, weekend]
        totals[1 if day.weekday() >= 5 else 0] += count
    winning = sum(
        1 for weekday, weekend in weeks.values()
        if weekend > 0 and weekend / 2 > weekday / 5
    )
    return winning >= int(params.get("weeks", 4))


def _check_all_milestones(params: Mapping[str, Any], ctx: AchievementContext) -> bool:
    return (
        ctx.stats.get("messages", 0) >= int(params.get("messages", 0))
        and ctx.stats.get("voice_hours", 0) >= int(params.get("voice", 0))
        and ctx.stats.get("commands", 0) >= int(params.get("commands", 0))
    )


def _counter_at_least(stat: str, default: int = 1) -> SpecialHandler:
    """Handler for "counter ≥ ``count``" style specials."""
    def check(params: Mapping[str, Any], ctx: AchievementContext) -> bool:
        return ctx.stats.get(stat, 0) >= int(params.get("count", default))
    check.__name__ = f"_check_{stat}"
    return check


# ---------------------------------------------------------------------------
# Handler registry: special type string → handler function
# ---------------------------------------------------------------------------
SPECIAL_HANDLERS: dict[str, SpecialHandler] = {
    "all_hours_active": _check_all_hours_active,
    "night_messages": _check_night_messages,
    "continuous_session": _check_continuous_session,
    "morning_voice": _check_morning_voice,
    "unique_commands": _counter_at_least("unique_commands"),
    "first_message": _check_first_message,
    "first_voice": _check_first_voice,
    "perfect_week": _check_perfect_week,
    "perfect_month": _check_perfect_month,
    "comeback": _check_comeback,
    "freeze_count": _counter_at_least("freezes_used"),
    "early_adopter": _check_early_adopter,
    "server_anniversary": _check_server_anniversary,
    "weekend_warrior": _check_weekend_warrior,
    "midnight_messages": _counter_at_least("midnight_messages"),
    "all_milestones": _check_all_milestones,
    "bookmarks_saved": _counter_at_least("bookmarks_saved"),
    "media_saved": _counter_at_least("media_saved"),
    "suggestions_made": _counter_at_least("suggestions_made"),
    "templates_created": _counter_at_least("templates_created"),
    "birthday_set": _counter_at_least("birthday_set"),
}


# ---------------------------------------------------------------------------
# Evaluation
# ---------------------------------------------------------------------------
def is_satisfied(entry: CatalogEntry, ctx: AchievementContext) -> bool:
    """Whether *entry*'s criteria hold for *ctx*.  Ignores seasonal windows."""
    match entry.criteria:
        case ExactCriteria(stat, value) | ThresholdCriteria(stat, value):
            return ctx.stats.get(stat, 0) >= value
        case ComboCriteria(requirements):
            return all(ctx.stats.get(stat, 0) >= value for stat, value in requirements)
        case MetaCriteria(count):
            return ctx.awarded_non_meta >= count
        case SpecialCriteria("seasonal", params):
            totals = ctx.seasonal_totals.get(entry.id)
            if totals is None:
                return False
            return all(totals.get(stat, 0) >= int(value) for stat, value in params.items())
        case SpecialCriteria(kind, params):
            handler = SPECIAL_HANDLERS.get(kind)
            if handler is None:
                logger.warning("No handler for special type %r (achievement %s)", kind, entry.id)
                return False
            return handler(params, ctx)
    return False


def evaluate(
    entries: Iterable[CatalogEntry],
    ctx: AchievementContext,
    already_awarded: set[str],
) -> list[CatalogEntry]:
    """Return entries newly satisfied by *ctx*, in catalog order.

    Non-meta entries are evaluated first.  Meta entries then see the
    non-meta count *including* this round's new awards, so unlocking the
    tenth achievement and "Achievement Hunter" happens in one pass.
    Seasonal entries outside their window are never returned.
    """
    pending = [
        e for e in entries
        if e.id not in already_awarded
        and (e.window is None or e.window.contains(ctx.today))
    ]

    earned = [e for e in pending if not e.is_meta and is_satisfied(e, ctx)]

    meta_ctx = replace(ctx, awarded_non_meta=ctx.awarded_non_meta + len(earned))
    earned.extend(e for e in pending if e.is_meta and is_satisfied(e, meta_ctx))
    return earned
