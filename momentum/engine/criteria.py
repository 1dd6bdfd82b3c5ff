"""
momentum.engine.criteria — Typed Achievement Criteria
======================================================

Criteria are stored as JSON (``{"streak": 30}``,
``{"messages": 1000, "voice_hours": 100}``, ``{"type": "night_messages",
"count": 1000}``) and parsed once, at catalog load, into one variant per
check type.  The evaluator matches on the variant instead of poking at
dict keys.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from momentum.database.models import CheckType

# Stats a threshold / exact / combo criterion may reference.
# Keys of the ``stats`` mapping on AchievementContext.
STAT_NAMES: frozenset[str] = frozenset({
    "streak",
    "longest_streak",
    "total_days",
    "messages",
    "voice_minutes",
    "voice_hours",
    "commands",
    "reactions",
    "channel_joins",
    "bytepods_created",
    "unique_commands",
    "freezes_used",
    "midnight_messages",
    "bookmarks_saved",
    "media_saved",
    "suggestions_made",
    "templates_created",
    "birthday_set",
})

META_KEY = "achievement_count"


class CriteriaError(ValueError):
    """Raised when stored criteria do not fit their check type."""


# ---------------------------------------------------------------------------
# Variants
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class ThresholdCriteria:
    stat: str
    value: int


@dataclass(frozen=True, slots=True)
class ExactCriteria:
    """Milestone criteria.  Evaluated as ``stat >= value`` so a streak that
    moves past the milestone between two checks still earns it."""
    stat: str
    value: int


@dataclass(frozen=True, slots=True)
class ComboCriteria:
    requirements: tuple[tuple[str, int], ...]


@dataclass(frozen=True, slots=True)
class MetaCriteria:
    count: int


@dataclass(frozen=True, slots=True)
class SpecialCriteria:
    kind: str
    params: Mapping[str, Any] = field(default_factory=dict)


Criteria = ThresholdCriteria | ExactCriteria | ComboCriteria | MetaCriteria | SpecialCriteria


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------
def _to_int(name: str, value: Any) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError) as exc:
        raise CriteriaError(f"Value for {name!r} must be an integer") from exc
    if number < 0:
        raise CriteriaError(f"Value for {name!r} must be non-negative")
    return number


def _stat_value(stat: str, value: Any) -> tuple[str, int]:
    if stat not in STAT_NAMES:
        raise CriteriaError(f"Unknown stat: {stat!r}")
    return stat, _to_int(stat, value)


def parse_criteria(check_type: str, raw: Mapping[str, Any] | None) -> Criteria:
    """Turn stored JSON into a typed criteria variant.

    Raises :class:`CriteriaError` when *raw* does not fit *check_type*.
    """
    raw = dict(raw or {})
    try:
        kind = CheckType(check_type)
    except ValueError as exc:
        raise CriteriaError(f"Unknown check type: {check_type!r}") from exc

    match kind:
        case CheckType.THRESHOLD | CheckType.EXACT:
            if len(raw) != 1:
                raise CriteriaError(f"{kind} criteria need exactly one stat, got {raw}")
            stat, value = _stat_value(*next(iter(raw.items())))
            if kind is CheckType.EXACT:
                return ExactCriteria(stat, value)
            return ThresholdCriteria(stat, value)
        case CheckType.COMBO:
            if not raw:
                raise CriteriaError("combo criteria need at least one stat")
            return ComboCriteria(tuple(_stat_value(k, v) for k, v in raw.items()))
        case CheckType.META:
            if META_KEY not in raw:
                raise CriteriaError(f"meta criteria need {META_KEY!r}")
            return MetaCriteria(_to_int(META_KEY, raw[META_KEY]))
        case CheckType.SPECIAL:
            special = raw.pop("type", None)
            if not special:
                raise CriteriaError("special criteria need a 'type'")
            return SpecialCriteria(str(special), raw)


def criteria_to_dict(criteria: Criteria) -> dict[str, Any]:
    """Inverse of :func:`parse_criteria` for the JSON column."""
    match criteria:
        case ThresholdCriteria(stat, value) | ExactCriteria(stat, value):
            return {stat: value}
        case ComboCriteria(requirements):
            return dict(requirements)
        case MetaCriteria(count):
            return {META_KEY: count}
        case SpecialCriteria(kind, params):
            return {"type": kind, **params}
