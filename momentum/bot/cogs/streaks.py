"""
momentum.bot.cogs.streaks — Streak & Achievement Commands
==========================================================

Slash commands for members:
- /streak — current and longest streak, freezes, next milestone
- /leaderboard — top streaks or most active days
- /achievements — earned achievements grouped by category
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import discord
from discord import app_commands
from discord.ext import commands

from momentum.database.engine import run_db
from momentum.errors import NotFoundError
from momentum.services.embeds import (
    build_achievement_list_embed,
    build_leaderboard_embed,
    build_streak_embed,
)
from momentum.services.streak_service import LeaderboardType, get_leaderboard, get_user_streak

if TYPE_CHECKING:
    from momentum.bot.core import MomentumBot


class Streaks(commands.Cog, name="Streaks"):
    """Member-facing streak and achievement views."""

    def __init__(self, bot: MomentumBot) -> None:
        self.bot = bot

    @app_commands.command(name="streak", description="Show an activity streak.")
    @app_commands.describe(user="Member to look up (defaults to you)")
    @app_commands.guild_only()
    async def streak(
        self,
        interaction: discord.Interaction,
        user: discord.Member | None = None,
    ) -> None:
        target = user or interaction.user
        assert interaction.guild_id is not None
        try:
            data = await run_db(
                get_user_streak, self.bot.engine, self.bot.catalog, target.id, interaction.guild_id,
            )
        except NotFoundError:
            await interaction.response.send_message(
                f"\U0001f4a4 **{target.display_name}** has no activity yet.", ephemeral=True,
            )
            return

        embed = build_streak_embed(
            target.display_name,
            target.display_avatar.url,
            data.state,
            achievement_count=len(data.achievements),
            points=data.points,
        )
        await interaction.response.send_message(embed=embed)

    @app_commands.command(name="leaderboard", description="Top streaks in this server.")
    @app_commands.describe(board="Which leaderboard to show")
    @app_commands.choices(board=[
        app_commands.Choice(name="Current streak", value=LeaderboardType.CURRENT.value),
        app_commands.Choice(name="Longest streak", value=LeaderboardType.LONGEST.value),
        app_commands.Choice(name="Total active days", value=LeaderboardType.TOTAL.value),
    ])
    @app_commands.guild_only()
    async def leaderboard(
        self,
        interaction: discord.Interaction,
        board: str = LeaderboardType.CURRENT.value,
    ) -> None:
        assert interaction.guild is not None
        rows = await run_db(get_leaderboard, self.bot.engine, interaction.guild.id, board)
        await interaction.response.send_message(
            embed=build_leaderboard_embed(rows, board, interaction.guild.name),
        )

    @app_commands.command(name="achievements", description="Show earned achievements.")
    @app_commands.describe(
        user="Member to look up (defaults to you)",
        category="Only show one category",
    )
    @app_commands.guild_only()
    async def achievements(
        self,
        interaction: discord.Interaction,
        user: discord.Member | None = None,
        category: str | None = None,
    ) -> None:
        target = user or interaction.user
        guild_id = interaction.guild_id
        assert guild_id is not None
        try:
            data = await run_db(
                get_user_streak, self.bot.engine, self.bot.catalog, target.id, guild_id,
            )
            earned = [entry for entry, _ in data.achievements]
        except NotFoundError:
            earned = []

        embed = build_achievement_list_embed(
            target.display_name,
            earned,
            total_available=len(self.bot.catalog.definitions_for(guild_id)),
            category=category,
        )
        await interaction.response.send_message(embed=embed)

    @achievements.autocomplete("category")
    async def _category_autocomplete(
        self, interaction: discord.Interaction, current: str,
    ) -> list[app_commands.Choice[str]]:
        names = set(self.bot.catalog.categories())
        if interaction.guild_id is not None:
            names.update(e.category for e in self.bot.catalog.get_custom_achievements(interaction.guild_id))
        return [
            app_commands.Choice(name=name.title(), value=name)
            for name in sorted(names)
            if current.lower() in name.lower()
        ][:25]  # Discord caps at 25


async def setup(bot: MomentumBot) -> None:
    await bot.add_cog(Streaks(bot))
