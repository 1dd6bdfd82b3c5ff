"""
momentum.bot.cogs.admin — /achievement Admin Commands
======================================================

Slash command group for server admins:
- /achievement setup      — role reward settings
- /achievement view       — one achievement and how many hold it
- /achievement cleanup    — delete achievement roles nobody holds
- /achievement list-roles — every achievement role with member counts
- /achievement award      — grant an achievement by hand
- /achievement remove     — revoke an achievement
- /achievement check      — re-run the achievement check for one member or all
- /achievement create     — add a guild custom achievement
- /achievement edit       — change a guild custom achievement
- /achievement delete     — delete a guild custom achievement
- /achievement list       — list this server's custom achievements
- /achievement audit      — recent admin changes

All commands require Manage Server or the configured admin_role_id.
Every outcome is reported back to the admin as an ephemeral message;
nothing fails silently.
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING

import discord
from discord import app_commands
from discord.ext import commands

from momentum.database.engine import run_db
from momentum.database.models import Rarity
from momentum.errors import MomentumError
from momentum.services.achievement_service import (
    award_achievement,
    check_all_achievements,
    get_award_counts,
    remove_achievement,
)
from momentum.services.admin_service import (
    CUSTOM_CHECK_TYPES,
    create_custom_achievement,
    delete_custom_achievement,
    get_admin_log,
    list_custom_achievements,
    update_custom_achievement,
)
from momentum.services.award_dispatch import dispatch_new_awards
from momentum.services.backfill_service import backfill_achievements
from momentum.services.embeds import (
    build_achievement_detail_embed,
    build_admin_log_embed,
    build_check_report_embed,
    build_custom_list_embed,
    build_role_config_embed,
    build_role_list_embed,
)
from momentum.services.role_service import RoleResult, update_role_config
from momentum.services.streak_service import get_streak_state

if TYPE_CHECKING:
    from momentum.bot.core import MomentumBot

logger = logging.getLogger(__name__)


def is_admin():
    """Decorator that passes members with Manage Server or the configured admin role."""
    async def predicate(interaction: discord.Interaction) -> bool:
        perms = interaction.permissions
        if perms.manage_guild or perms.administrator:
            return True
        bot: MomentumBot = interaction.client  # type: ignore[assignment]
        if not interaction.user or not hasattr(interaction.user, "roles"):
            return False
        admin_role_id = bot.cfg.admin_role_id
        return any(role.id == admin_role_id for role in interaction.user.roles)
    return app_commands.check(predicate)


def _criteria_from_json(text: str) -> dict:
    parsed = json.loads(text)
    if not isinstance(parsed, dict):
        raise ValueError("Criteria must be a JSON object.")
    return parsed


_ROLE_NOTES = {
    RoleResult.GRANTED: "Role granted.",
    RoleResult.REVOKED: "Role removed.",
    RoleResult.DISABLED: "Role rewards are disabled in this server.",
    RoleResult.FORBIDDEN: "⚠️ I lack permission to manage that role.",
    RoleResult.FAILED: "⚠️ Role update failed; see logs.",
}


class Admin(commands.Cog, name="Admin"):
    """Achievement administration for server admins."""

    achievement = app_commands.Group(
        name="achievement",
        description="Manage achievements and achievement roles.",
        guild_only=True,
    )

    def __init__(self, bot: MomentumBot) -> None:
        self.bot = bot

    async def _reply(self, interaction: discord.Interaction, content: str | None = None, **kwargs) -> None:
        if interaction.response.is_done():
            await interaction.followup.send(content, ephemeral=True, **kwargs)
        else:
            await interaction.response.send_message(content, ephemeral=True, **kwargs)

    # -------------------------------------------------------------------
    # /achievement setup
    # -------------------------------------------------------------------
    @achievement.command(name="setup", description="Configure achievement role rewards.")
    @app_commands.describe(
        enabled="Grant roles for role-rewarding achievements",
        prefix="Text placed before every achievement role name",
        rarity_colors="Colour roles by rarity (off: brand colour)",
        cleanup="Delete achievement roles nobody holds",
        notify="DM members when they earn an achievement",
    )
    @is_admin()
    async def setup_roles(
        self,
        interaction: discord.Interaction,
        enabled: bool | None = None,
        prefix: str | None = None,
        rarity_colors: bool | None = None,
        cleanup: bool | None = None,
        notify: bool | None = None,
    ) -> None:
        assert interaction.guild_id is not None
        settings = await run_db(
            update_role_config,
            self.bot.engine,
            interaction.guild_id,
            actor_id=interaction.user.id,
            enabled=enabled,
            role_prefix=prefix,
            use_rarity_colors=rarity_colors,
            cleanup_orphaned=cleanup,
            notify_on_earn=notify,
        )
        await self._reply(interaction, embed=build_role_config_embed(settings))

    # -------------------------------------------------------------------
    # /achievement view
    # -------------------------------------------------------------------
    @achievement.command(name="view", description="Show an achievement's details.")
    @is_admin()
    async def view(self, interaction: discord.Interaction, achievement_id: str) -> None:
        assert interaction.guild_id is not None
        entry = self.bot.catalog.require(achievement_id, interaction.guild_id)
        counts = await run_db(get_award_counts, self.bot.engine, interaction.guild_id)
        await self._reply(
            interaction, embed=build_achievement_detail_embed(entry, counts.get(entry.id, 0)),
        )

    # -------------------------------------------------------------------
    # /achievement cleanup + list-roles
    # -------------------------------------------------------------------
    @achievement.command(name="cleanup", description="Delete achievement roles nobody holds.")
    @is_admin()
    async def cleanup(self, interaction: discord.Interaction) -> None:
        assert interaction.guild is not None
        await interaction.response.defer(ephemeral=True, thinking=True)
        report = await self.bot.reconciler.cleanup_orphaned_roles(interaction.guild)
        if report.skipped:
            await self._reply(
                interaction, "Role cleanup is turned off. Enable it with `/achievement setup cleanup:True`.",
            )
            return
        await self._reply(
            interaction,
            f"\U0001f9f9 Deleted **{report.deleted}** orphaned roles, "
            f"forgot {report.stale} missing roles, {report.failed} failed.",
        )

    @achievement.command(name="list-roles", description="List achievement roles and their members.")
    @is_admin()
    async def list_roles(self, interaction: discord.Interaction) -> None:
        assert interaction.guild is not None
        infos = await self.bot.reconciler.list_achievement_roles(interaction.guild)
        await self._reply(interaction, embed=build_role_list_embed(infos))

    # -------------------------------------------------------------------
    # /achievement award + remove
    # -------------------------------------------------------------------
    @achievement.command(name="award", description="Grant an achievement to a member.")
    @app_commands.describe(member="Recipient", achievement_id="Achievement to grant", reason="Why")
    @is_admin()
    async def award(
        self,
        interaction: discord.Interaction,
        member: discord.Member,
        achievement_id: str,
        reason: str | None = None,
    ) -> None:
        assert interaction.guild is not None
        await interaction.response.defer(ephemeral=True, thinking=True)
        entry = await run_db(
            award_achievement,
            self.bot.engine,
            self.bot.catalog,
            member.id,
            interaction.guild.id,
            achievement_id,
            awarded_by=interaction.user.id,
            reason=reason,
        )
        report = await dispatch_new_awards(
            self.bot.engine, self.bot.reconciler, interaction.guild, member, [entry],
        )
        note = _ROLE_NOTES.get(report.roles.get(entry.id), "")
        await self._reply(
            interaction, f"✅ Awarded {entry.emoji} **{entry.title}** to {member.mention}. {note}",
        )

    @achievement.command(name="remove", description="Remove an achievement from a member.")
    @app_commands.describe(member="Member", achievement_id="Achievement to remove", reason="Why")
    @is_admin()
    async def remove(
        self,
        interaction: discord.Interaction,
        member: discord.Member,
        achievement_id: str,
        reason: str | None = None,
    ) -> None:
        assert interaction.guild is not None
        await interaction.response.defer(ephemeral=True, thinking=True)
        entry = await run_db(
            remove_achievement,
            self.bot.engine,
            self.bot.catalog,
            member.id,
            interaction.guild.id,
            achievement_id,
            removed_by=interaction.user.id,
            reason=reason,
        )
        result = await self.bot.reconciler.revoke_for_achievement(
            interaction.guild, member.id, entry.id,
        )
        await self._reply(
            interaction,
            f"✅ Removed **{entry.title}** from {member.mention}. {_ROLE_NOTES.get(result, '')}",
        )

    # -------------------------------------------------------------------
    # /achievement check
    # -------------------------------------------------------------------
    @achievement.command(name="check", description="Re-run the achievement check for a member or everyone.")
    @app_commands.describe(member="Only this member (default: every member with activity)")
    @is_admin()
    async def check(self, interaction: discord.Interaction, member: discord.Member | None = None) -> None:
        assert interaction.guild is not None
        guild = interaction.guild
        await interaction.response.defer(ephemeral=True, thinking=True)

        if member is not None:
            state = await run_db(get_streak_state, self.bot.engine, member.id, guild.id)
            if state is None:
                await self._reply(interaction, f"{member.mention} has no activity in this server yet.")
                return
            awards = await run_db(
                check_all_achievements,
                self.bot.engine,
                self.bot.catalog,
                member.id,
                guild.id,
                joined_at=member.joined_at.date() if member.joined_at else None,
                guild_created_at=self.bot.guild_created_at(guild),
            )
            if not awards:
                await self._reply(interaction, f"✅ {member.mention} is up to date; nothing new to award.")
                return
            await dispatch_new_awards(self.bot.engine, self.bot.reconciler, guild, member, awards)
            names = ", ".join(f"{e.emoji} **{e.title}**" for e in awards)
            await self._reply(interaction, f"✅ Awarded {len(awards)} to {member.mention}: {names}"[:2000])
            return

        report = await run_db(backfill_achievements, self.bot.engine, self.bot.catalog, guild_id=guild.id)
        for (user_id, _), entries in report.awards.items():
            target = guild.get_member(user_id)
            if target is None:
                continue  # left the server; the awards stand
            await dispatch_new_awards(self.bot.engine, self.bot.reconciler, guild, target, entries)
        await self._reply(interaction, embed=build_check_report_embed(report, guild.name))

    # -------------------------------------------------------------------
    # /achievement create + edit + delete + list (guild custom achievements)
    # -------------------------------------------------------------------
    @achievement.command(name="create", description="Create a custom achievement for this server.")
    @app_commands.describe(
        achievement_id="Unique id, e.g. helper_100",
        title="Display title",
        check_type="How the achievement is earned",
        criteria='JSON criteria, e.g. {"messages": 100}',
        description="Shown on the achievement card",
        rarity="Rarity tier",
        points="Points awarded",
        emoji="Emoji shown with the title",
        grant_role="Give holders a role",
    )
    @app_commands.choices(
        check_type=[app_commands.Choice(name=t.value.title(), value=t.value) for t in CUSTOM_CHECK_TYPES],
        rarity=[app_commands.Choice(name=r.value.title(), value=r.value) for r in Rarity],
    )
    @is_admin()
    async def create(
        self,
        interaction: discord.Interaction,
        achievement_id: str,
        title: str,
        check_type: str,
        criteria: str,
        description: str = "",
        rarity: str = Rarity.COMMON.value,
        points: app_commands.Range[int, 0, 10000] = 10,
        emoji: str = "\U0001f3c6",
        grant_role: bool = False,
    ) -> None:
        assert interaction.guild_id is not None
        parsed = _criteria_from_json(criteria)
        row = await run_db(
            create_custom_achievement,
            self.bot.engine,
            guild_id=interaction.guild_id,
            achievement_id=achievement_id.strip().lower(),
            title=title,
            check_type=check_type,
            criteria=parsed,
            description=description,
            emoji=emoji,
            rarity=rarity,
            grant_role=grant_role,
            points=points,
            actor_id=interaction.user.id,
        )
        await run_db(self.bot.catalog.load_definitions)
        await self._reply(interaction, f"✅ Created {row.emoji} **{row.title}** (`{row.achievement_id}`).")

    @achievement.command(name="delete", description="Delete a custom achievement.")
    @is_admin()
    async def delete(self, interaction: discord.Interaction, achievement_id: str) -> None:
        assert interaction.guild_id is not None
        await run_db(
            delete_custom_achievement,
            self.bot.engine,
            guild_id=interaction.guild_id,
            achievement_id=achievement_id,
            actor_id=interaction.user.id,
        )
        await run_db(self.bot.catalog.load_definitions)
        await self._reply(interaction, f"\U0001f5d1️ Deleted custom achievement `{achievement_id}`.")

    @achievement.command(name="edit", description="Change a custom achievement.")
    @app_commands.describe(
        achievement_id="Custom achievement to change",
        title="New display title",
        criteria='New JSON criteria, e.g. {"messages": 250}',
        description="New card text",
        rarity="New rarity tier",
        points="New point value",
        emoji="New emoji",
        grant_role="Give holders a role",
        enabled="Disabled achievements are no longer awarded",
    )
    @app_commands.choices(
        rarity=[app_commands.Choice(name=r.value.title(), value=r.value) for r in Rarity],
    )
    @is_admin()
    async def edit(
        self,
        interaction: discord.Interaction,
        achievement_id: str,
        title: str | None = None,
        criteria: str | None = None,
        description: str | None = None,
        rarity: str | None = None,
        points: app_commands.Range[int, 0, 10000] | None = None,
        emoji: str | None = None,
        grant_role: bool | None = None,
        enabled: bool | None = None,
    ) -> None:
        assert interaction.guild_id is not None
        changes = {
            key: value
            for key, value in {
                "title": title,
                "description": description,
                "rarity": rarity,
                "points": points,
                "emoji": emoji,
                "grant_role": grant_role,
                "enabled": enabled,
            }.items()
            if value is not None
        }
        if criteria is not None:
            changes["criteria"] = _criteria_from_json(criteria)
        if not changes:
            raise ValueError("Nothing to change; pass at least one field.")

        row = await run_db(
            update_custom_achievement,
            self.bot.engine,
            guild_id=interaction.guild_id,
            achievement_id=achievement_id,
            actor_id=interaction.user.id,
            **changes,
        )
        await run_db(self.bot.catalog.load_definitions)
        await self._reply(
            interaction,
            f"✅ Updated {row.emoji} **{row.title}** (`{row.achievement_id}`): {', '.join(sorted(changes))}.",
        )

    @achievement.command(name="list", description="List this server's custom achievements.")
    @is_admin()
    async def list_custom(self, interaction: discord.Interaction) -> None:
        assert interaction.guild_id is not None
        rows = await run_db(
            list_custom_achievements, self.bot.engine, interaction.guild_id, include_disabled=True,
        )
        await self._reply(interaction, embed=build_custom_list_embed(rows))

    # -------------------------------------------------------------------
    # /achievement audit
    # -------------------------------------------------------------------
    @achievement.command(name="audit", description="Show recent achievement admin changes.")
    @app_commands.describe(limit="How many entries to show")
    @is_admin()
    async def audit(
        self, interaction: discord.Interaction, limit: app_commands.Range[int, 1, 25] = 10,
    ) -> None:
        assert interaction.guild_id is not None
        entries = await run_db(get_admin_log, self.bot.engine, interaction.guild_id, limit)
        await self._reply(interaction, embed=build_admin_log_embed(entries))

    # -------------------------------------------------------------------
    # Autocomplete
    # -------------------------------------------------------------------
    @view.autocomplete("achievement_id")
    @award.autocomplete("achievement_id")
    @remove.autocomplete("achievement_id")
    async def _achievement_autocomplete(
        self, interaction: discord.Interaction, current: str,
    ) -> list[app_commands.Choice[str]]:
        needle = current.lower()
        entries = self.bot.catalog.definitions_for(interaction.guild_id or 0)
        return [
            app_commands.Choice(name=f"{e.title} ({e.id})"[:100], value=e.id)
            for e in entries
            if needle in e.id.lower() or needle in e.title.lower()
        ][:25]  # Discord caps at 25

    @delete.autocomplete("achievement_id")
    @edit.autocomplete("achievement_id")
    async def _custom_autocomplete(
        self, interaction: discord.Interaction, current: str,
    ) -> list[app_commands.Choice[str]]:
        entries = self.bot.catalog.get_custom_achievements(interaction.guild_id or 0)
        return [
            app_commands.Choice(name=f"{e.title} ({e.id})"[:100], value=e.id)
            for e in entries
            if current.lower() in e.id.lower()
        ][:25]

    # -------------------------------------------------------------------
    # Error handler
    # -------------------------------------------------------------------
    async def cog_app_command_error(
        self, interaction: discord.Interaction, error: app_commands.AppCommandError
    ) -> None:
        if isinstance(error, app_commands.CheckFailure):
            await self._reply(interaction, "🔒 You need Manage Server or the Admin role to use this command.")
            return
        original = getattr(error, "original", error)
        if isinstance(original, (MomentumError, ValueError)):
            await self._reply(interaction, f"❌ {original}")
            return
        logger.error("Admin command failed", exc_info=original)
        await self._reply(interaction, "❌ Something went wrong; the error was logged.")


async def setup(bot: MomentumBot) -> None:
    await bot.add_cog(Admin(bot))
