"""
momentum.bot.cogs.tasks — Periodic Background Tasks
====================================================

Scheduled jobs that run on ``discord.ext.tasks`` loops:

- **Streak sweep** — daily, replenishes freezes once a calendar month and
  then zeroes streaks that can no longer continue.
- **Catalog reload** — every 6 hours, so custom achievement edits made
  elsewhere reach the evaluator.
- **Role cleanup** — daily, deletes achievement roles nobody holds in
  guilds that enabled cleanup.

Every job is idempotent; a missed or repeated run does no harm.
"""

from __future__ import annotations

import logging
from datetime import UTC, time
from typing import TYPE_CHECKING

from discord.ext import commands, tasks

from momentum.database.engine import run_db
from momentum.services.streak_service import expire_broken_streaks, reset_monthly_freezes

if TYPE_CHECKING:
    from momentum.bot.core import MomentumBot

logger = logging.getLogger(__name__)

# Just after the UTC day boundary
_SWEEP_TIME = time(hour=0, minute=5, tzinfo=UTC)


class PeriodicTasks(commands.Cog):
    """Cog for scheduled background maintenance tasks."""

    def __init__(self, bot: MomentumBot) -> None:
        self.bot = bot

    async def cog_load(self) -> None:
        """Start task loops when the cog is loaded."""
        self.streak_sweep_loop.start()
        self.catalog_reload_loop.start()
        self.role_cleanup_loop.start()

    async def cog_unload(self) -> None:
        """Cancel task loops on unload."""
        self.streak_sweep_loop.cancel()
        self.catalog_reload_loop.cancel()
        self.role_cleanup_loop.cancel()

    # -------------------------------------------------------------------
    # Streak sweep: daily after midnight UTC
    # -------------------------------------------------------------------
    @tasks.loop(time=_SWEEP_TIME)
    async def streak_sweep_loop(self):
        try:
            replenished = await run_db(reset_monthly_freezes, self.bot.engine)
            expired = await run_db(expire_broken_streaks, self.bot.engine)
            logger.info(
                "Streak sweep complete: %d expired, %d freezes replenished",
                expired, replenished,
            )
        except Exception:
            logger.exception("Streak sweep failed", extra={"task": "streak_sweep"})

    @streak_sweep_loop.before_loop
    async def _wait_streak_sweep(self):
        await self.bot.wait_until_ready()

    # -------------------------------------------------------------------
    # Catalog reload: every 6 hours
    # -------------------------------------------------------------------
    @tasks.loop(hours=6)
    async def catalog_reload_loop(self):
        try:
            await run_db(self.bot.catalog.load_definitions)
        except Exception:
            logger.exception("Catalog reload failed", extra={"task": "catalog_reload"})

    @catalog_reload_loop.before_loop
    async def _wait_catalog_reload(self):
        await self.bot.wait_until_ready()

    # -------------------------------------------------------------------
    # Orphaned role cleanup: every 24 hours
    # -------------------------------------------------------------------
    @tasks.loop(hours=24)
    async def role_cleanup_loop(self):
        for guild in self.bot.guilds:
            try:
                await self.bot.reconciler.cleanup_orphaned_roles(guild)
            except Exception:
                logger.exception("Role cleanup failed for guild %d", guild.id, extra={"task": "role_cleanup"})

    @role_cleanup_loop.before_loop
    async def _wait_role_cleanup(self):
        await self.bot.wait_until_ready()


async def setup(bot: MomentumBot) -> None:
    await bot.add_cog(PeriodicTasks(bot))
