"""
momentum.services.role_service — Achievement Role Rewards
==========================================================

Turns role-granting awards into Discord roles.

* Per-guild settings (``achievement_role_config``) with defaults when a
  guild never ran ``/achievement setup``.
* ``achievement_roles`` remembers which role was created for which
  achievement, so the same role is reused for every holder.
* :class:`RoleRewardReconciler` does the Discord side.  Permission and
  HTTP failures are logged and reported back as a result value; they
  never undo the award that triggered them.
"""

from __future__ import annotations

import enum
import logging
from dataclasses import asdict, dataclass, fields
from typing import TYPE_CHECKING, Any

import discord
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from momentum.constants import RARITY_COLORS_HEX, hex_to_int
from momentum.database.engine import get_session, run_db
from momentum.database.models import AchievementRole, AchievementRoleConfig, AdminActionType
from momentum.services.admin_service import log_admin_action

if TYPE_CHECKING:
    from sqlalchemy import Engine

    from momentum.engine.catalog import AchievementCatalog, CatalogEntry

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class RoleRewardSettings:
    enabled: bool = True
    role_prefix: str = "\U0001f3c6"
    use_rarity_colors: bool = True
    cleanup_orphaned: bool = True
    notify_on_earn: bool = True


_SETTING_NAMES = tuple(f.name for f in fields(RoleRewardSettings))


def _settings_from_row(row: AchievementRoleConfig | None) -> RoleRewardSettings:
    if row is None:
        return RoleRewardSettings()
    return RoleRewardSettings(**{name: getattr(row, name) for name in _SETTING_NAMES})


def get_role_config(engine: Engine, guild_id: int) -> RoleRewardSettings:
    with get_session(engine) as session:
        return _settings_from_row(session.get(AchievementRoleConfig, guild_id))


def update_role_config(
    engine: Engine,
    guild_id: int,
    *,
    actor_id: int,
    **changes: Any,
) -> RoleRewardSettings:
    """Apply *changes* (``None`` values are ignored) and audit the result."""
    unknown = set(changes) - set(_SETTING_NAMES)
    if unknown:
        raise ValueError(f"Unknown role settings: {', '.join(sorted(unknown))}")

    with get_session(engine) as session:
        row = session.get(AchievementRoleConfig, guild_id)
        before = asdict(_settings_from_row(row)) if row is not None else None
        if row is None:
            row = AchievementRoleConfig(guild_id=guild_id, **asdict(RoleRewardSettings()))
            session.add(row)
        for key, value in changes.items():
            if value is not None:
                setattr(row, key, value)
        session.flush()
        settings = _settings_from_row(row)
        log_admin_action(
            session,
            guild_id=guild_id,
            actor_id=actor_id,
            action_type=AdminActionType.CREATE if before is None else AdminActionType.UPDATE,
            target_table="achievement_role_config",
            target_id=str(guild_id),
            before=before,
            after=asdict(settings),
        )
    return settings


# ---------------------------------------------------------------------------
# Role mappings
# ---------------------------------------------------------------------------
def get_role_mapping(engine: Engine, guild_id: int, achievement_id: str) -> int | None:
    with get_session(engine) as session:
        return session.scalar(
            select(AchievementRole.role_id).where(
                AchievementRole.guild_id == guild_id,
                AchievementRole.achievement_id == achievement_id,
            )
        )


def save_role_mapping(engine: Engine, guild_id: int, achievement_id: str, role_id: int) -> None:
    """Remember *role_id* for the achievement, replacing a stale mapping."""
    with get_session(engine) as session:
        stmt = select(AchievementRole).where(
            AchievementRole.guild_id == guild_id,
            AchievementRole.achievement_id == achievement_id,
        )
        row = session.scalar(stmt)
        if row is not None:
            row.role_id = role_id
            return
        try:
            with session.begin_nested():
                session.add(AchievementRole(
                    guild_id=guild_id, achievement_id=achievement_id, role_id=role_id,
                ))
                session.flush()
        except IntegrityError:
            row = session.scalar(stmt)
            if row is None:
                raise
            row.role_id = role_id


def delete_role_mapping(engine: Engine, guild_id: int, achievement_id: str) -> bool:
    with get_session(engine) as session:
        row = session.scalar(
            select(AchievementRole).where(
                AchievementRole.guild_id == guild_id,
                AchievementRole.achievement_id == achievement_id,
            )
        )
        if row is None:
            return False
        session.delete(row)
        return True


def get_role_mappings(engine: Engine, guild_id: int) -> list[AchievementRole]:
    with get_session(engine) as session:
        return list(session.scalars(
            select(AchievementRole)
            .where(AchievementRole.guild_id == guild_id)
            .order_by(AchievementRole.achievement_id)
        ).all())


# ---------------------------------------------------------------------------
# Reconciler (async, talks to Discord)
# ---------------------------------------------------------------------------
class RoleResult(enum.StrEnum):
    GRANTED = "granted"
    REVOKED = "revoked"
    UNCHANGED = "unchanged"        # member already had / never had the role
    NOT_APPLICABLE = "not_applicable"  # achievement does not grant a role
    DISABLED = "disabled"          # guild turned role rewards off
    FORBIDDEN = "forbidden"        # missing Manage Roles / hierarchy
    FAILED = "failed"              # any other Discord error


@dataclass(frozen=True, slots=True)
class CleanupReport:
    deleted: int = 0
    stale: int = 0     # mappings whose role no longer exists
    failed: int = 0
    skipped: bool = False


@dataclass(frozen=True, slots=True)
class AchievementRoleInfo:
    achievement_id: str
    role_id: int
    role: discord.Role | None
    member_count: int


class RoleRewardReconciler:
    """Creates, assigns, removes and cleans up achievement roles."""

    def __init__(
        self,
        engine: Engine,
        catalog: AchievementCatalog,
        brand_color: str = "#9B59B6",
    ) -> None:
        self.engine = engine
        self.catalog = catalog
        self.brand_color = brand_color

    # -------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------
    def role_name(self, entry: CatalogEntry, settings: RoleRewardSettings) -> str:
        return f"{settings.role_prefix} {entry.title}".strip()[:100]

    def role_colour(self, entry: CatalogEntry, settings: RoleRewardSettings) -> discord.Colour:
        color = self.brand_color
        if settings.use_rarity_colors:
            color = RARITY_COLORS_HEX.get(entry.rarity, self.brand_color)
        return discord.Colour(hex_to_int(color))

    async def _get_member(self, guild: discord.Guild, user_id: int) -> discord.Member | None:
        member = guild.get_member(user_id)
        if member is not None:
            return member
        try:
            return await guild.fetch_member(user_id)
        except discord.NotFound:
            return None

    async def _resolve_role(
        self,
        guild: discord.Guild,
        entry: CatalogEntry,
        settings: RoleRewardSettings,
    ) -> discord.Role:
        """Existing mapped role, or a newly created one (mapping saved)."""
        role_id = await run_db(get_role_mapping, self.engine, guild.id, entry.id)
        role = guild.get_role(role_id) if role_id else None
        if role is not None:
            return role

        role = await guild.create_role(
            name=self.role_name(entry, settings),
            colour=self.role_colour(entry, settings),
            mentionable=False,
            reason=f"Achievement role for {entry.id}",
        )
        await run_db(save_role_mapping, self.engine, guild.id, entry.id, role.id)
        logger.info("Created role %s (%d) for %s in guild %d", role.name, role.id, entry.id, guild.id)
        return role

    # -------------------------------------------------------------------
    # Public API
    # -------------------------------------------------------------------
    async def grant_for_achievement(
        self,
        guild: discord.Guild,
        user_id: int,
        achievement_id: str,
    ) -> RoleResult:
        """Give the member the role for *achievement_id*, creating it if needed."""
        entry = self.catalog.get_by_id(achievement_id, guild.id)
        if entry is None or not entry.grant_role:
            return RoleResult.NOT_APPLICABLE

        settings = await run_db(get_role_config, self.engine, guild.id)
        if not settings.enabled:
            return RoleResult.DISABLED

        try:
            member = await self._get_member(guild, user_id)
            if member is None:
                logger.warning("Role grant skipped: user %d not in guild %d", user_id, guild.id)
                return RoleResult.FAILED
            role = await self._resolve_role(guild, entry, settings)
            if role in member.roles:
                return RoleResult.UNCHANGED
            await member.add_roles(role, reason=f"Earned achievement {entry.id}")
        except discord.Forbidden:
            logger.warning(
                "Missing permission to grant role for %s to user %d in guild %d",
                achievement_id, user_id, guild.id,
            )
            return RoleResult.FORBIDDEN
        except discord.HTTPException as exc:
            logger.warning(
                "Role grant for %s to user %d in guild %d failed: %s",
                achievement_id, user_id, guild.id, exc,
            )
            return RoleResult.FAILED

        return RoleResult.GRANTED

    async def revoke_for_achievement(
        self,
        guild: discord.Guild,
        user_id: int,
        achievement_id: str,
    ) -> RoleResult:
        """Take the achievement's role away from the member, if they have it."""
        role_id = await run_db(get_role_mapping, self.engine, guild.id, achievement_id)
        role = guild.get_role(role_id) if role_id else None
        if role is None:
            return RoleResult.NOT_APPLICABLE

        try:
            member = await self._get_member(guild, user_id)
            if member is None or role not in member.roles:
                return RoleResult.UNCHANGED
            await member.remove_roles(role, reason=f"Achievement {achievement_id} removed")
        except discord.Forbidden:
            logger.warning(
                "Missing permission to remove role for %s from user %d in guild %d",
                achievement_id, user_id, guild.id,
            )
            return RoleResult.FORBIDDEN
        except discord.HTTPException as exc:
            logger.warning("Role removal for %s in guild %d failed: %s", achievement_id, guild.id, exc)
            return RoleResult.FAILED

        return RoleResult.REVOKED

    async def cleanup_orphaned_roles(self, guild: discord.Guild) -> CleanupReport:
        """Delete achievement roles nobody holds any more.

        Does nothing when the guild has cleanup turned off.  Mappings whose
        role was deleted by hand are dropped.
        """
        settings = await run_db(get_role_config, self.engine, guild.id)
        if not settings.cleanup_orphaned:
            return CleanupReport(skipped=True)

        deleted = stale = failed = 0
        for mapping in await run_db(get_role_mappings, self.engine, guild.id):
            role = guild.get_role(mapping.role_id)
            if role is None:
                await run_db(delete_role_mapping, self.engine, guild.id, mapping.achievement_id)
                stale += 1
                continue
            if role.members:
                continue
            try:
                await role.delete(reason="Orphaned achievement role")
            except discord.HTTPException as exc:
                logger.warning("Could not delete role %d in guild %d: %s", role.id, guild.id, exc)
                failed += 1
                continue
            await run_db(delete_role_mapping, self.engine, guild.id, mapping.achievement_id)
            deleted += 1

        logger.info(
            "Role cleanup for guild %d: %d deleted, %d stale, %d failed",
            guild.id, deleted, stale, failed,
        )
        return CleanupReport(deleted=deleted, stale=stale, failed=failed)

    async def list_achievement_roles(self, guild: discord.Guild) -> list[AchievementRoleInfo]:
        """Every mapped role with its current member count."""
        result = []
        for mapping in await run_db(get_role_mappings, self.engine, guild.id):
            role = guild.get_role(mapping.role_id)
            result.append(AchievementRoleInfo(
                achievement_id=mapping.achievement_id,
                role_id=mapping.role_id,
                role=role,
                member_count=len(role.members) if role is not None else 0,
            ))
        return result
