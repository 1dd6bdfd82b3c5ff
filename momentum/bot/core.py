"""
momentum.bot.core — Bot Instance & Cog Loader
==============================================

Defines :class:`MomentumBot`, a ``commands.Bot`` subclass that:

1. Stores the shared config (``bot.cfg``), DB engine (``bot.engine``),
   achievement catalog (``bot.catalog``) and role reconciler
   (``bot.reconciler``) so every Cog reaches them via ``self.bot.*``.
2. Loads every Cog listed in :data:`EXTENSIONS`.
3. Syncs the slash-command tree on startup (guild-scoped for dev, global
   for production — controlled by the ``DEV_GUILD_ID`` env var).
"""

from __future__ import annotations

import logging
import os
from datetime import date

import discord
from discord.ext import commands
from sqlalchemy import Engine

from momentum.config import MomentumConfig
from momentum.engine.catalog import AchievementCatalog
from momentum.services.role_service import RoleRewardReconciler

logger = logging.getLogger(__name__)

# Cog modules to load on startup
EXTENSIONS: list[str] = [
    "momentum.bot.cogs.activity",
    "momentum.bot.cogs.streaks",
    "momentum.bot.cogs.admin",
    "momentum.bot.cogs.tasks",
]


class MomentumBot(commands.Bot):
    """Custom Bot subclass that carries project-wide state.

    Parameters
    ----------
    cfg:
        The parsed :class:`MomentumConfig` from ``config.yaml``.
    engine:
        A SQLAlchemy :class:`Engine` connected to PostgreSQL.
    catalog:
        A loaded :class:`AchievementCatalog`.
    """

    def __init__(self, cfg: MomentumConfig, engine: Engine, catalog: AchievementCatalog) -> None:
        # Privileged intents (must enable in Developer Portal):
        #   GUILD_MEMBERS: member cache for role rewards and join dates
        # MESSAGE_CONTENT is not needed: only message metadata is counted.
        intents = discord.Intents.default()
        intents.members = True
        intents.presences = False

        super().__init__(
            command_prefix=cfg.bot_prefix,
            intents=intents,
            description="Momentum — activity streaks & achievements",
        )

        self.cfg = cfg
        self.engine = engine
        self.catalog = catalog
        self.reconciler = RoleRewardReconciler(engine, catalog, brand_color=cfg.brand_color)

    def guild_created_at(self, guild: discord.Guild) -> date:
        """Creation date used by early-adopter and anniversary checks."""
        if self.cfg.guild_created_at is not None and guild.id == self.cfg.guild_id:
            return self.cfg.guild_created_at
        return guild.created_at.date()

    # -----------------------------------------------------------------------
    # Lifecycle hooks
    # -----------------------------------------------------------------------
    async def setup_hook(self) -> None:
        """Called once before the bot connects to Discord.

        Loads all Cog extensions.  If one fails to load we log it and keep
        going — one broken Cog shouldn't take down the whole bot.
        """
        for ext in EXTENSIONS:
            try:
                await self.load_extension(ext)
                logger.info("Loaded extension: %s", ext)
            except Exception as exc:
                logger.error("Failed to load extension %s: %s", ext, exc)

    async def on_ready(self) -> None:
        """Fired when the bot has connected and the cache is populated."""
        assert self.user is not None  # guaranteed after on_ready
        logger.info("Logged in as %s (ID: %s)", self.user.name, self.user.id)

        dev_guild_id = os.getenv("DEV_GUILD_ID")
        if dev_guild_id:
            guild = discord.Object(id=int(dev_guild_id))
            self.tree.copy_global_to(guild=guild)
            synced = await self.tree.sync(guild=guild)
            logger.info("Synced %d commands to dev guild %s", len(synced), dev_guild_id)
        else:
            synced = await self.tree.sync()
            logger.info("Synced %d commands globally", len(synced))

        logger.info(
            "Tracking %d guild(s) with %d achievement definitions",
            len(self.guilds), len(self.catalog),
        )
