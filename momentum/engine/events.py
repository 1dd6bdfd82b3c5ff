"""
momentum.engine.events — ActivityEvent and the Debounce Contract
=================================================================

Every qualifying Discord interaction is normalized into an
:class:`ActivityEvent` before it reaches the activity log.

Debounce contract
-----------------
Counters are recorded for **every** event.  The expensive half of the
pipeline (``touch_activity`` followed by ``check_all_achievements``) is
the feed's responsibility to throttle, via :class:`TouchDebouncer`:

* at most one touch per ``(user, guild)`` per ``window_seconds``;
* the first event after the UTC day changes always touches, so a streak
  is never missed because of a debounce window straddling midnight;
* voice session ends always touch (they are rare and carry minutes).

``touch_activity`` itself is idempotent within a day, so a touch that
slips through twice is harmless.
"""

from __future__ import annotations

import enum
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, date, datetime

__all__ = ["ActivityKind", "ActivityEvent", "TouchDebouncer", "utc_today"]


class ActivityKind(enum.StrEnum):
    """What a member did.  Maps 1:1 onto a DailyActivityRecord counter."""
    MESSAGE = "message"
    VOICE_MINUTES = "voice_minutes"
    COMMAND = "command"
    REACTION = "reaction"
    CHANNEL_JOIN = "channel_join"
    BYTEPOD_CREATED = "bytepod_created"


def utc_today(now: datetime | None = None) -> date:
    """The canonical activity day.  Every guild shares the UTC boundary."""
    now = now or datetime.now(UTC)
    if now.tzinfo is not None:
        now = now.astimezone(UTC)
    return now.date()


@dataclass(frozen=True, slots=True)
class ActivityEvent:
    """One unit of activity from the platform feed.

    ``amount`` is 1 for messages/commands/reactions and elapsed minutes
    for voice.  ``command_name`` is only set for commands.
    """

    user_id: int
    guild_id: int
    kind: ActivityKind
    amount: int = 1
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))
    command_name: str | None = None

    def __post_init__(self) -> None:
        if self.amount <= 0:
            raise ValueError(f"amount must be positive, got {self.amount}")


class TouchDebouncer:
    """Decides whether an activity event should trigger a streak touch.

    Not thread-safe; owned by a single Cog on the event loop.
    """

    def __init__(
        self,
        window_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.window_seconds = window_seconds
        self._clock = clock
        # (user_id, guild_id) → (monotonic timestamp, UTC day)
        self._last: dict[tuple[int, int], tuple[float, date]] = {}

    def should_touch(self, user_id: int, guild_id: int, today: date) -> bool:
        key = (user_id, guild_id)
        now = self._clock()
        last = self._last.get(key)
        if last is not None:
            last_ts, last_day = last
            if last_day == today and now - last_ts < self.window_seconds:
                return False
        self._last[key] = (now, today)
        return True

    def force(self, user_id: int, guild_id: int, today: date) -> None:
        """Record a touch that bypassed :meth:`should_touch` (voice end)."""
        self._last[(user_id, guild_id)] = (self._clock(), today)

    def prune(self) -> int:
        """Drop entries older than two windows.  Returns the number removed."""
        cutoff = self._clock() - 2 * self.window_seconds
        before = len(self._last)
        self._last = {k: v for k, v in self._last.items() if v[0] > cutoff}
        return before - len(self._last)
