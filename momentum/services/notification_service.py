"""
momentum.services.notification_service — Achievement DMs
=========================================================

Sends the "achievement unlocked" direct message.  Delivery is best
effort, and the outcome comes back as a :class:`NotificationResult`
instead of an exception so callers can tell a member who closed their
DMs apart from a Discord outage.
"""

from __future__ import annotations

import enum
import logging
from typing import TYPE_CHECKING

import discord

from momentum.services.embeds import build_achievement_embed

if TYPE_CHECKING:
    from collections.abc import Sequence

    from momentum.engine.catalog import CatalogEntry

logger = logging.getLogger(__name__)


class NotificationResult(enum.StrEnum):
    DELIVERED = "delivered"
    SUPPRESSED = "suppressed"   # recipient has DMs closed or blocked the bot
    FAILED = "failed"

    @property
    def ok(self) -> bool:
        return self is NotificationResult.DELIVERED


async def notify_achievement(
    recipient: discord.abc.User,
    entry: CatalogEntry,
    guild_name: str,
) -> NotificationResult:
    """DM *recipient* about *entry*.  Never raises for Discord errors."""
    try:
        await recipient.send(embed=build_achievement_embed(entry, guild_name))
    except discord.Forbidden:
        logger.debug("DMs closed for user %s; %s not announced", recipient.id, entry.id)
        return NotificationResult.SUPPRESSED
    except discord.HTTPException as exc:
        logger.warning("Achievement DM to %s failed: %s", recipient.id, exc)
        return NotificationResult.FAILED
    return NotificationResult.DELIVERED


async def notify_achievements(
    recipient: discord.abc.User,
    entries: Sequence[CatalogEntry],
    guild_name: str,
) -> dict[str, NotificationResult]:
    """DM each entry in order.  Stops after the first SUPPRESSED result."""
    results: dict[str, NotificationResult] = {}
    for entry in entries:
        result = await notify_achievement(recipient, entry, guild_name)
        results[entry.id] = result
        if result is NotificationResult.SUPPRESSED:
            break
    return results
