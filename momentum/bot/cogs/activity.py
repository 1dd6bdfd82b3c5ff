"""
momentum.bot.cogs.activity — Activity Feed
===========================================

Turns gateway events into activity records and drives the
streak/achievement pipeline.

Pipeline per event:
1. Gate (bots, DMs).
2. Record the counter for **every** event (``record_activity``).
3. Ask the :class:`TouchDebouncer` whether to touch; if so
   ``touch_activity`` → ``check_all_achievements`` → role grants and DMs.

Voice sessions are timed here and recorded when the member leaves; a
session end always touches.
"""

from __future__ import annotations

import logging
from datetime import UTC, date, datetime
from typing import TYPE_CHECKING

import discord
from discord import app_commands
from discord.ext import commands, tasks

from momentum.database.engine import run_db
from momentum.engine.events import ActivityKind, TouchDebouncer, utc_today
from momentum.errors import TransientStorageError
from momentum.services.achievement_service import check_all_achievements
from momentum.services.activity_service import record_activity, record_voice_session
from momentum.services.award_dispatch import dispatch_new_awards
from momentum.services.streak_service import touch_activity

if TYPE_CHECKING:
    from momentum.bot.core import MomentumBot

logger = logging.getLogger(__name__)


class Activity(commands.Cog, name="Activity"):
    """Records messages, commands, reactions and voice time."""

    def __init__(self, bot: MomentumBot) -> None:
        self.bot = bot
        self.debouncer = TouchDebouncer(bot.cfg.activity_debounce_seconds)
        # (user_id, guild_id) → session start (UTC)
        self._voice_sessions: dict[tuple[int, int], datetime] = {}

    async def cog_load(self) -> None:
        self._prune_debouncer.start()

    async def cog_unload(self) -> None:
        self._prune_debouncer.cancel()

    @tasks.loop(minutes=5)
    async def _prune_debouncer(self) -> None:
        pruned = self.debouncer.prune()
        if pruned:
            logger.debug("Pruned %d debounce entries", pruned)

    # -------------------------------------------------------------------
    # Pipeline
    # -------------------------------------------------------------------
    async def _record(
        self,
        member: discord.abc.User,
        guild: discord.Guild,
        kind: ActivityKind,
        amount: int = 1,
        *,
        at: datetime | None = None,
        command_name: str | None = None,
    ) -> None:
        await run_db(
            record_activity, self.bot.engine, member.id, guild.id, kind, amount,
            at=at, command_name=command_name,
        )

    async def touch_and_evaluate(
        self,
        member: discord.abc.User,
        guild: discord.Guild,
        *,
        today: date | None = None,
        force: bool = False,
    ) -> None:
        """Touch the streak and award anything newly earned (debounced).

        *today* is the UTC day the triggering event happened on, so a
        message sent before midnight and handled after it still counts
        for the day it was sent.
        """
        today = today or utc_today()
        if force:
            self.debouncer.force(member.id, guild.id, today)
        elif not self.debouncer.should_touch(member.id, guild.id, today):
            return

        await run_db(touch_activity, self.bot.engine, member.id, guild.id, today=today)

        joined_at = getattr(member, "joined_at", None)
        awards = await run_db(
            check_all_achievements,
            self.bot.engine,
            self.bot.catalog,
            member.id,
            guild.id,
            today=today,
            joined_at=joined_at.date() if joined_at else None,
            guild_created_at=self.bot.guild_created_at(guild),
        )
        if awards:
            await dispatch_new_awards(self.bot.engine, self.bot.reconciler, guild, member, awards)

    async def _handle(self, coro, what: str, user_id: int) -> None:
        try:
            await coro
        except TransientStorageError as exc:
            # Dropped; the next event for this member self-corrects
            logger.warning("Storage unavailable, dropped %s for user %s: %s", what, user_id, exc)
        except Exception:
            logger.exception("Error processing %s for user %s", what, user_id)

    # -------------------------------------------------------------------
    # Listeners
    # -------------------------------------------------------------------
    @commands.Cog.listener()
    async def on_message(self, message: discord.Message) -> None:
        if message.author.bot or message.guild is None:
            return
        await self._handle(
            self._on_message(message), f"message {message.id}", message.author.id,
        )

    async def _on_message(self, message: discord.Message) -> None:
        assert message.guild is not None
        await self._record(
            message.author, message.guild, ActivityKind.MESSAGE, at=message.created_at,
        )
        await self.touch_and_evaluate(
            message.author, message.guild, today=utc_today(message.created_at),
        )

    @commands.Cog.listener()
    async def on_app_command_completion(
        self,
        interaction: discord.Interaction,
        command: app_commands.Command | app_commands.ContextMenu,
    ) -> None:
        if interaction.guild is None or interaction.user.bot:
            return
        await self._handle(
            self._on_command(interaction, command.qualified_name),
            f"command /{command.qualified_name}",
            interaction.user.id,
        )

    async def _on_command(self, interaction: discord.Interaction, name: str) -> None:
        assert interaction.guild is not None
        await self._record(
            interaction.user, interaction.guild, ActivityKind.COMMAND, command_name=name,
        )
        await self.touch_and_evaluate(interaction.user, interaction.guild)

    @commands.Cog.listener()
    async def on_reaction_add(self, reaction: discord.Reaction, user: discord.abc.User) -> None:
        guild = reaction.message.guild
        if user.bot or guild is None:
            return
        await self._handle(self._on_reaction(user, guild), "reaction", user.id)

    async def _on_reaction(self, user: discord.abc.User, guild: discord.Guild) -> None:
        await self._record(user, guild, ActivityKind.REACTION)
        await self.touch_and_evaluate(user, guild)

    @commands.Cog.listener()
    async def on_voice_state_update(
        self,
        member: discord.Member,
        before: discord.VoiceState,
        after: discord.VoiceState,
    ) -> None:
        if member.bot or before.channel == after.channel:
            return
        await self._handle(self._on_voice(member, before, after), "voice update", member.id)

    async def _on_voice(
        self,
        member: discord.Member,
        before: discord.VoiceState,
        after: discord.VoiceState,
    ) -> None:
        key = (member.id, member.guild.id)
        now = datetime.now(UTC)

        # Join or move: a channel joined; a move keeps the running session
        if after.channel is not None:
            self._voice_sessions.setdefault(key, now)
            await self._record(member, member.guild, ActivityKind.CHANNEL_JOIN, at=now)
            await self.touch_and_evaluate(member, member.guild)
            return

        # Leave
        started = self._voice_sessions.pop(key, None)
        if started is None:
            return  # joined before the bot started
        minutes = int((now - started).total_seconds() // 60)
        if minutes < self.bot.cfg.voice_min_session_minutes:
            return
        await run_db(record_voice_session, self.bot.engine, member.id, member.guild.id, started, now)
        await self.touch_and_evaluate(member, member.guild, force=True)


async def setup(bot: MomentumBot) -> None:
    await bot.add_cog(Activity(bot))
