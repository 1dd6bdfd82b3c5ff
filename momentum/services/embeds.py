"""
momentum.services.embeds — Discord embed builders
==================================================

All embed construction lives here so the notification service and
cogs only need to supply data — no layout concerns.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING

import discord

from momentum.constants import (
    CATEGORY_LABELS,
    RANK_BADGES,
    RARITY_COLORS_HEX,
    RARITY_EMOJI,
    format_points,
    hex_to_int,
    next_milestone,
    progress_bar,
    streak_emoji,
    tier_badge,
)

if TYPE_CHECKING:
    from momentum.database.models import AdminLog, CustomAchievement
    from momentum.engine.catalog import CatalogEntry
    from momentum.engine.streaks import StreakState
    from momentum.services.backfill_service import BackfillReport
    from momentum.services.role_service import AchievementRoleInfo, RoleRewardSettings
    from momentum.services.streak_service import LeaderboardRow

_BOARD_TITLES = {
    "current": "\U0001f525 Current Streaks",
    "longest": "\U0001f3c6 Longest Streaks",
    "total": "\U0001f4c5 Most Active Days",
}


def _rarity_colour(rarity: str) -> discord.Color:
    return discord.Color(hex_to_int(RARITY_COLORS_HEX.get(rarity, "#9B59B6")))


def build_achievement_embed(entry: CatalogEntry, guild_name: str) -> discord.Embed:
    """DM sent when a member earns an achievement."""
    rarity_emoji = RARITY_EMOJI.get(entry.rarity, "⚪")
    embed = discord.Embed(
        title="\U0001f3c6 Achievement Unlocked!",
        description=(
            f"{entry.emoji} **{entry.title}**\n"
            f"*{entry.description or 'No description.'}*"
        ),
        color=_rarity_colour(entry.rarity),
    )
    embed.add_field(name="Rarity", value=f"{rarity_emoji} {entry.rarity.title()}", inline=True)
    embed.add_field(name="Points", value=f"+{entry.points}", inline=True)
    if entry.grant_role:
        embed.add_field(name="Reward", value="\U0001f3ad Role granted", inline=True)
    embed.set_footer(text=f"Earned in {guild_name}")
    return embed


def build_streak_embed(
    display_name: str,
    avatar_url: str,
    state: StreakState,
    achievement_count: int,
    points: int,
) -> discord.Embed:
    """``/streak`` card."""
    badge = tier_badge(achievement_count)
    target = next_milestone(state.current_streak)
    embed = discord.Embed(
        title=f"{streak_emoji(state.current_streak)} {display_name}'s Streak",
        color=discord.Color(hex_to_int(badge.color)),
    )
    embed.add_field(name="Current", value=f"**{state.current_streak}** days", inline=True)
    embed.add_field(name="Longest", value=f"{state.longest_streak} days", inline=True)
    embed.add_field(name="Active Days", value=str(state.total_active_days), inline=True)
    embed.add_field(name="Freezes", value=f"❄️ {state.freezes_available}", inline=True)
    embed.add_field(
        name="Achievements",
        value=f"{badge.emoji} {badge.name} • {achievement_count} ({format_points(points)} pts)",
        inline=True,
    )
    embed.add_field(
        name=f"Next milestone: {target} days",
        value=progress_bar(state.current_streak, target),
        inline=False,
    )
    embed.set_thumbnail(url=avatar_url)
    return embed


def build_leaderboard_embed(
    rows: Sequence[LeaderboardRow],
    board: str,
    guild_name: str,
) -> discord.Embed:
    embed = discord.Embed(
        title=_BOARD_TITLES.get(board, "Leaderboard"),
        color=discord.Color.orange(),
    )
    if not rows:
        embed.description = "No activity recorded yet."
        return embed
    lines = []
    for row in rows:
        rank = RANK_BADGES[row.rank - 1] if row.rank <= len(RANK_BADGES) else f"`#{row.rank}`"
        lines.append(f"{rank} <@{row.user_id}> — **{row.value}**")
    embed.description = "\n".join(lines)
    embed.set_footer(text=guild_name)
    return embed


def build_achievement_list_embed(
    display_name: str,
    entries: Sequence[CatalogEntry],
    total_available: int,
    category: str | None = None,
) -> discord.Embed:
    """``/achievements`` card, grouped by category."""
    points = sum(e.points for e in entries)
    badge = tier_badge(len(entries))
    embed = discord.Embed(
        title=f"{badge.emoji} {display_name}'s Achievements",
        description=(
            f"**{len(entries)}** / {total_available} unlocked • "
            f"{format_points(points)} pts • {badge.name}"
        ),
        color=discord.Color(hex_to_int(badge.color)),
    )
    grouped: dict[str, list[CatalogEntry]] = {}
    for entry in entries:
        if category is None or entry.category == category:
            grouped.setdefault(entry.category, []).append(entry)
    for cat, items in grouped.items():
        value = "\n".join(f"{e.emoji} {e.title}" for e in items)
        embed.add_field(
            name=CATEGORY_LABELS.get(cat, cat.title()),
            value=value[:1024],
            inline=False,
        )
    if not grouped:
        embed.add_field(name="Nothing yet", value="Stay active to start unlocking!", inline=False)
    return embed


def build_achievement_detail_embed(entry: CatalogEntry, holders: int) -> discord.Embed:
    """``/achievement view`` card."""
    embed = discord.Embed(
        title=f"{entry.emoji} {entry.title}",
        description=entry.description or "No description.",
        color=_rarity_colour(entry.rarity),
    )
    embed.add_field(name="ID", value=f"`{entry.id}`", inline=True)
    embed.add_field(
        name="Rarity",
        value=f"{RARITY_EMOJI.get(entry.rarity, '')} {entry.rarity.title()}",
        inline=True,
    )
    embed.add_field(name="Points", value=str(entry.points), inline=True)
    embed.add_field(name="Category", value=CATEGORY_LABELS.get(entry.category, entry.category), inline=True)
    embed.add_field(name="Holders", value=str(holders), inline=True)
    embed.add_field(name="Grants Role", value="Yes" if entry.grant_role else "No", inline=True)
    if entry.window is not None:
        embed.add_field(
            name="Season",
            value=f"{entry.window.event or 'Seasonal'} ({entry.window.label()})",
            inline=False,
        )
    return embed


def build_role_config_embed(settings: RoleRewardSettings) -> discord.Embed:
    def flag(value: bool) -> str:
        return "✅" if value else "❌"

    embed = discord.Embed(title="\U0001f3ad Achievement Roles", color=discord.Color.blurple())
    embed.add_field(name="Enabled", value=flag(settings.enabled), inline=True)
    embed.add_field(name="Prefix", value=settings.role_prefix or "(none)", inline=True)
    embed.add_field(name="Rarity Colours", value=flag(settings.use_rarity_colors), inline=True)
    embed.add_field(name="Auto Cleanup", value=flag(settings.cleanup_orphaned), inline=True)
    embed.add_field(name="DM on Earn", value=flag(settings.notify_on_earn), inline=True)
    return embed


def build_role_list_embed(infos: Sequence[AchievementRoleInfo]) -> discord.Embed:
    embed = discord.Embed(title="\U0001f3ad Achievement Roles", color=discord.Color.blurple())
    if not infos:
        embed.description = "No achievement roles have been created yet."
        return embed
    lines = []
    for info in infos:
        role = info.role.mention if info.role is not None else f"~~{info.role_id}~~ (deleted)"
        lines.append(f"`{info.achievement_id}` → {role} • {info.member_count} members")
    embed.description = "\n".join(lines)[:4096]
    return embed


def build_custom_list_embed(rows: Sequence[CustomAchievement]) -> discord.Embed:
    """``/achievement list``: this server's custom achievements."""
    embed = discord.Embed(title="\U0001f6e0️ Custom Achievements", color=discord.Color.blurple())
    if not rows:
        embed.description = "No custom achievements yet. Add one with `/achievement create`."
        return embed
    lines = []
    for row in rows:
        state = "" if row.enabled else " *(disabled)*"
        lines.append(
            f"{row.emoji} **{row.title}** `{row.achievement_id}` • "
            f"{RARITY_EMOJI.get(row.rarity, '')} {row.points} pts{state}"
        )
    embed.description = "\n".join(lines)[:4096]
    embed.set_footer(text=f"{len(rows)} custom achievements")
    return embed


def build_admin_log_embed(entries: Sequence[AdminLog]) -> discord.Embed:
    """``/achievement audit``: newest admin changes first."""
    embed = discord.Embed(title="\U0001f4dc Admin Log", color=discord.Color.dark_grey())
    if not entries:
        embed.description = "No admin actions recorded."
        return embed
    lines = []
    for entry in entries:
        when = discord.utils.format_dt(entry.timestamp, "R") if entry.timestamp else ""
        target = f"{entry.target_table}/{entry.target_id}" if entry.target_id else entry.target_table
        lines.append(f"`{entry.action_type}` {target} by <@{entry.actor_id}> {when}".rstrip())
    embed.description = "\n".join(lines)[:4096]
    return embed


def build_check_report_embed(report: BackfillReport, guild_name: str) -> discord.Embed:
    """``/achievement check`` without a member: guild-wide summary."""
    embed = discord.Embed(
        title="✅ Achievement Check Complete",
        description=f"Re-checked every tracked member of {guild_name}.",
        color=discord.Color.green() if not report.errors else discord.Color.orange(),
    )
    embed.add_field(name="Members Checked", value=str(report.members_checked), inline=True)
    embed.add_field(name="Awarded", value=str(report.awarded), inline=True)
    embed.add_field(name="Errors", value=str(report.errors), inline=True)
    top = report.by_achievement().most_common(10)
    if top:
        embed.add_field(
            name="Most Awarded",
            value="\n".join(f"`{achievement_id}` × {count}" for achievement_id, count in top),
            inline=False,
        )
    return embed
