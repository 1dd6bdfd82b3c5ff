"""
momentum.services.award_dispatch — After-Award Side Effects
============================================================

Once awards are committed, hand role-granting ones to the
:class:`~momentum.services.role_service.RoleRewardReconciler` and, if the
guild wants it, DM the member.  Nothing here can undo an award.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from momentum.database.engine import run_db
from momentum.services.achievement_service import mark_notified
from momentum.services.notification_service import NotificationResult, notify_achievements
from momentum.services.role_service import RoleResult, get_role_config

if TYPE_CHECKING:
    from collections.abc import Sequence

    import discord
    from sqlalchemy import Engine

    from momentum.engine.catalog import CatalogEntry
    from momentum.services.role_service import RoleRewardReconciler

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class DispatchReport:
    roles: dict[str, RoleResult] = field(default_factory=dict)
    notifications: dict[str, NotificationResult] = field(default_factory=dict)


async def dispatch_new_awards(
    engine: Engine,
    reconciler: RoleRewardReconciler,
    guild: discord.Guild,
    member: discord.abc.User,
    awards: Sequence[CatalogEntry],
) -> DispatchReport:
    report = DispatchReport()
    if not awards:
        return report

    for entry in awards:
        if entry.grant_role:
            report.roles[entry.id] = await reconciler.grant_for_achievement(
                guild, member.id, entry.id,
            )

    settings = await run_db(get_role_config, engine, guild.id)
    if settings.notify_on_earn:
        report.notifications = await notify_achievements(member, awards, guild.name)
        delivered = [aid for aid, result in report.notifications.items() if result.ok]
        await run_db(mark_notified, engine, member.id, guild.id, delivered)

    logger.debug(
        "Dispatched %d awards for %s in %s: roles=%s",
        len(awards), member.id, guild.id, dict(report.roles),
    )
    return report
