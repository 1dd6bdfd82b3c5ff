"""
momentum.engine.streaks — Streak State Transitions
===================================================

Pure calculation — no database I/O.  ``streak_service`` loads the row,
calls :func:`apply_touch` and writes the result back inside a single
transaction.

Gap rules (``gap = today - last_activity_date`` in whole UTC days):

=====================  ==============================================
gap                    effect
=====================  ==============================================
no previous activity   current=1, total+=1
0 (or negative)        no-op
1                      current+=1, total+=1
2 with a freeze        freeze consumed, current+=1, total+=1
2 without, or >= 3     current=1, total+=1  (a break, not an error)
=====================  ==============================================

``longest = max(longest, current)`` after every change.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, replace
from datetime import date, datetime

# Freezes granted at the start of every calendar month
FREEZES_PER_MONTH = 1

# A freeze bridges exactly one missed day, i.e. a gap of two
_FREEZE_GAP = 2


class TouchOutcome(enum.StrEnum):
    FIRST = "first"
    SAME_DAY = "same_day"
    CONTINUED = "continued"
    FROZEN = "frozen"
    BROKEN = "broken"

    @property
    def changed(self) -> bool:
        return self is not TouchOutcome.SAME_DAY


@dataclass(frozen=True, slots=True)
class StreakState:
    """Detached snapshot of an ``activity_streaks`` row."""

    current_streak: int = 0
    longest_streak: int = 0
    last_activity_date: date | None = None
    total_active_days: int = 0
    freezes_available: int = FREEZES_PER_MONTH
    freezes_used: int = 0


def days_between(earlier: date, later: date) -> int:
    return (later - earlier).days


def apply_touch(state: StreakState, today: date) -> tuple[StreakState, TouchOutcome]:
    """Return the state after activity on *today*, plus what happened."""
    if state.last_activity_date is None:
        new = replace(
            state,
            current_streak=1,
            total_active_days=state.total_active_days + 1,
            last_activity_date=today,
        )
        outcome = TouchOutcome.FIRST
    else:
        gap = days_between(state.last_activity_date, today)
        if gap <= 0:
            return state, TouchOutcome.SAME_DAY

        if gap == 1:
            new = replace(state, current_streak=state.current_streak + 1)
            outcome = TouchOutcome.CONTINUED
        elif gap == _FREEZE_GAP and state.freezes_available > 0:
            new = replace(
                state,
                current_streak=state.current_streak + 1,
                freezes_available=state.freezes_available - 1,
                freezes_used=state.freezes_used + 1,
            )
            outcome = TouchOutcome.FROZEN
        else:
            new = replace(state, current_streak=1)
            outcome = TouchOutcome.BROKEN

        new = replace(
            new,
            total_active_days=state.total_active_days + 1,
            last_activity_date=today,
        )

    return replace(new, longest_streak=max(new.longest_streak, new.current_streak)), outcome


def is_unrecoverable(state: StreakState, today: date) -> bool:
    """True when no future touch can continue the current streak."""
    if state.last_activity_date is None or state.current_streak == 0:
        return False
    gap = days_between(state.last_activity_date, today)
    if gap > _FREEZE_GAP:
        return True
    return gap == _FREEZE_GAP and state.freezes_available == 0


def freeze_reset_due(last_reset: datetime | None, today: date) -> bool:
    """True when freezes have not yet been replenished this calendar month."""
    if last_reset is None:
        return True
    return last_reset.date() < today.replace(day=1)
