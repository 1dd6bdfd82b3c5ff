"""
momentum.bot.backfill — Offline achievement backfill
=====================================================

Awards achievements retroactively from the activity already stored.
Useful after adding or editing definitions, or when enabling Momentum
on a server that has history.

Usage::

    python -m momentum.bot.backfill                 # every guild
    python -m momentum.bot.backfill 123456789       # one guild
    python -m momentum.bot.backfill --dry-run       # report only
    momentum-backfill 123456789 --dry-run

Awards made here are not announced: no DMs and no roles, since the bot
is not connected.  Role-granting awards pick up their role the next
time ``/achievement check`` runs for the member or they earn something
new.
"""

from __future__ import annotations

import argparse
import logging

from dotenv import load_dotenv

from momentum.database.engine import create_db_engine, init_db
from momentum.engine.catalog import AchievementCatalog
from momentum.services.backfill_service import backfill_achievements

logger = logging.getLogger("momentum")


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="momentum-backfill",
        description="Retroactively award achievements from stored activity.",
    )
    parser.add_argument("guild_id", nargs="?", type=int, help="Only backfill this guild")
    parser.add_argument(
        "--dry-run", action="store_true", help="Report what would be awarded without writing",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    """Run the backfill; returns the process exit code."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s │ %(levelname)-8s │ %(name)s │ %(message)s",
        datefmt="%H:%M:%S",
    )
    args = _parse_args(argv)
    load_dotenv()

    engine = create_db_engine()
    init_db(engine)
    catalog = AchievementCatalog(engine)
    catalog.load_definitions()

    report = backfill_achievements(
        engine, catalog, guild_id=args.guild_id, dry_run=args.dry_run,
    )

    for achievement_id, count in report.by_achievement().most_common():
        logger.info("  %-32s %d", achievement_id, count)
    logger.info(
        "%s: %d members, %d achievements, %d errors",
        "Dry run" if args.dry_run else "Backfill complete",
        report.members_checked, report.awarded, report.errors,
    )
    return 1 if report.errors else 0


if __name__ == "__main__":
    raise SystemExit(main())
