"""
momentum.services.backfill_service — Retroactive Achievement Backfill
======================================================================

Re-runs the achievement check for every member that has a streak row,
so definitions added or edited after the fact reach members who already
qualify without waiting for their next activity event.

Used by ``/achievement check`` (one guild) and by the offline
``momentum-backfill`` command (one guild or all of them).  With
``dry_run`` nothing is written and the report lists what *would* be
awarded.

Join dates and guild creation dates are not known offline, so the
early-adopter and anniversary predicates are left to the live pipeline.
"""

from __future__ import annotations

import logging
from collections import Counter
from dataclasses import dataclass, field
from datetime import date
from typing import TYPE_CHECKING

from momentum.engine.events import utc_today
from momentum.errors import TransientStorageError
from momentum.services.achievement_service import check_all_achievements
from momentum.services.streak_service import get_tracked_members

if TYPE_CHECKING:
    from sqlalchemy import Engine

    from momentum.engine.catalog import AchievementCatalog, CatalogEntry

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class BackfillReport:
    dry_run: bool
    members_checked: int = 0
    errors: int = 0
    # (user_id, guild_id) → entries awarded (or that would be)
    awards: dict[tuple[int, int], list[CatalogEntry]] = field(default_factory=dict)

    @property
    def awarded(self) -> int:
        return sum(len(entries) for entries in self.awards.values())

    def by_achievement(self) -> Counter[str]:
        return Counter(entry.id for entries in self.awards.values() for entry in entries)


def backfill_achievements(
    engine: Engine,
    catalog: AchievementCatalog,
    *,
    guild_id: int | None = None,
    dry_run: bool = False,
    today: date | None = None,
) -> BackfillReport:
    """Check every tracked member (of *guild_id*, or of every guild).

    A storage outage for one member is counted in ``errors`` and the
    run moves on to the next member.
    """
    today = today or utc_today()
    report = BackfillReport(dry_run=dry_run)

    for user_id, gid in get_tracked_members(engine, guild_id):
        try:
            entries = check_all_achievements(
                engine, catalog, user_id, gid, today=today, dry_run=dry_run,
            )
        except TransientStorageError as exc:
            report.errors += 1
            logger.warning("Backfill failed for user=%s guild=%s: %s", user_id, gid, exc)
            continue
        report.members_checked += 1
        if entries:
            report.awards[(user_id, gid)] = entries

    action = "would award" if dry_run else "awarded"
    logger.info(
        "Backfill: %d members checked, %s %d achievements, %d errors",
        report.members_checked, action, report.awarded, report.errors,
    )
    return report
