"""
tests/test_role_service.py — Achievement Role Rewards
======================================================

Role settings and mappings hit the shared SQLite engine; Discord is
replaced with MagicMock / AsyncMock guilds, members and roles.
"""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import discord
import pytest
from sqlalchemy import select
from sqlalchemy.orm import Session

from conftest import make_entry, run_async
from momentum.constants import RARITY_COLORS_HEX, hex_to_int
from momentum.database.models import AdminLog
from momentum.engine.catalog import AchievementCatalog
from momentum.services import role_service
from momentum.services.role_service import RoleResult, RoleRewardReconciler, RoleRewardSettings

GUILD = 100
USER = 1000


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def _http_error(cls=discord.HTTPException, status: int = 500):
    return cls(MagicMock(status=status, reason="error"), "boom")


def _role(role_id: int, members: list | None = None) -> MagicMock:
    role = MagicMock(spec=discord.Role)
    role.id = role_id
    role.name = f"role-{role_id}"
    role.members = members or []
    role.delete = AsyncMock()
    return role


def _member(user_id: int = USER, roles: list | None = None) -> MagicMock:
    member = MagicMock()
    member.id = user_id
    member.roles = roles or []
    member.add_roles = AsyncMock()
    member.remove_roles = AsyncMock()
    return member


def _guild(member=None, roles: dict | None = None, created: MagicMock | None = None) -> MagicMock:
    roles = {} if roles is None else roles
    guild = MagicMock()
    guild.id = GUILD
    guild.name = "Test Guild"
    guild.get_member = MagicMock(return_value=member)
    guild.fetch_member = AsyncMock(side_effect=discord.NotFound(MagicMock(status=404, reason="nf"), "x"))
    guild.get_role = MagicMock(side_effect=lambda rid: roles.get(rid))
    guild.create_role = AsyncMock(return_value=created or _role(555))
    return guild


@pytest.fixture
def catalog() -> AchievementCatalog:
    return AchievementCatalog.from_entries([
        make_entry("voice_1000hrs", criteria={"voice_hours": 1000}, rarity="epic",
                   grant_role=True, title="Voice Veteran"),
        make_entry("streak_3", "exact", {"streak": 3}),
    ])


@pytest.fixture
def reconciler(db_engine, catalog) -> RoleRewardReconciler:
    return RoleRewardReconciler(db_engine, catalog, brand_color="#123456")


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------
class TestRoleConfig:
    def test_defaults_when_never_configured(self, db_engine):
        assert role_service.get_role_config(db_engine, GUILD) == RoleRewardSettings()

    def test_update_ignores_none_and_audits(self, db_engine):
        settings = role_service.update_role_config(
            db_engine, GUILD, actor_id=42, role_prefix="⭐", cleanup_orphaned=None,
        )
        assert settings.role_prefix == "⭐"
        assert settings.cleanup_orphaned is True

        role_service.update_role_config(db_engine, GUILD, actor_id=42, enabled=False)
        assert role_service.get_role_config(db_engine, GUILD).enabled is False

        with Session(db_engine) as session:
            actions = session.scalars(select(AdminLog.action_type).order_by(AdminLog.id)).all()
        assert actions == ["CREATE", "UPDATE"]

    def test_unknown_setting(self, db_engine):
        with pytest.raises(ValueError):
            role_service.update_role_config(db_engine, GUILD, actor_id=42, sparkles=True)


class TestRoleMappings:
    def test_save_replace_delete(self, db_engine):
        role_service.save_role_mapping(db_engine, GUILD, "voice_1000hrs", 1)
        role_service.save_role_mapping(db_engine, GUILD, "voice_1000hrs", 2)
        assert role_service.get_role_mapping(db_engine, GUILD, "voice_1000hrs") == 2
        assert len(role_service.get_role_mappings(db_engine, GUILD)) == 1

        assert role_service.delete_role_mapping(db_engine, GUILD, "voice_1000hrs") is True
        assert role_service.delete_role_mapping(db_engine, GUILD, "voice_1000hrs") is False
        assert role_service.get_role_mapping(db_engine, GUILD, "voice_1000hrs") is None


# ---------------------------------------------------------------------------
# Reconciler
# ---------------------------------------------------------------------------
class TestNaming:
    def test_role_name_uses_prefix_and_title(self, reconciler, catalog):
        entry = catalog.get_by_id("voice_1000hrs")
        assert reconciler.role_name(entry, RoleRewardSettings(role_prefix="⭐")) == "⭐ Voice Veteran"

    def test_rarity_colour_or_brand(self, reconciler, catalog):
        entry = catalog.get_by_id("voice_1000hrs")
        rarity = reconciler.role_colour(entry, RoleRewardSettings(use_rarity_colors=True))
        brand = reconciler.role_colour(entry, RoleRewardSettings(use_rarity_colors=False))
        assert rarity.value == hex_to_int(RARITY_COLORS_HEX["epic"])
        assert brand.value == 0x123456


class TestGrant:
    def test_creates_role_once_and_assigns(self, db_engine, reconciler):
        member = _member()
        created = _role(555)
        roles = {}
        guild = _guild(member, roles, created)

        result = run_async(reconciler.grant_for_achievement(guild, USER, "voice_1000hrs"))

        assert result is RoleResult.GRANTED
        guild.create_role.assert_awaited_once()
        member.add_roles.assert_awaited_once()
        assert role_service.get_role_mapping(db_engine, GUILD, "voice_1000hrs") == 555

        # second holder reuses the mapped role
        roles[555] = created
        other = _member(2000)
        guild.get_member.return_value = other
        assert run_async(reconciler.grant_for_achievement(guild, 2000, "voice_1000hrs")) is RoleResult.GRANTED
        guild.create_role.assert_awaited_once()

    def test_already_holding_is_unchanged(self, db_engine, reconciler):
        role = _role(555)
        role_service.save_role_mapping(db_engine, GUILD, "voice_1000hrs", 555)
        member = _member(roles=[role])
        guild = _guild(member, {555: role})

        assert run_async(reconciler.grant_for_achievement(guild, USER, "voice_1000hrs")) is RoleResult.UNCHANGED
        member.add_roles.assert_not_awaited()

    def test_achievement_without_role(self, reconciler):
        guild = _guild(_member())
        assert run_async(reconciler.grant_for_achievement(guild, USER, "streak_3")) is RoleResult.NOT_APPLICABLE
        assert run_async(reconciler.grant_for_achievement(guild, USER, "nope")) is RoleResult.NOT_APPLICABLE

    def test_disabled_guild(self, db_engine, reconciler):
        role_service.update_role_config(db_engine, GUILD, actor_id=42, enabled=False)
        guild = _guild(_member())
        assert run_async(reconciler.grant_for_achievement(guild, USER, "voice_1000hrs")) is RoleResult.DISABLED
        guild.create_role.assert_not_awaited()

    def test_forbidden_is_reported_not_raised(self, reconciler):
        guild = _guild(_member())
        guild.create_role.side_effect = _http_error(discord.Forbidden, 403)
        assert run_async(reconciler.grant_for_achievement(guild, USER, "voice_1000hrs")) is RoleResult.FORBIDDEN

    def test_http_error_is_failed(self, reconciler):
        member = _member()
        member.add_roles.side_effect = _http_error()
        guild = _guild(member)
        assert run_async(reconciler.grant_for_achievement(guild, USER, "voice_1000hrs")) is RoleResult.FAILED

    def test_member_left_guild(self, reconciler):
        guild = _guild(member=None)
        assert run_async(reconciler.grant_for_achievement(guild, USER, "voice_1000hrs")) is RoleResult.FAILED


class TestRevoke:
    def test_removes_held_role(self, db_engine, reconciler):
        role = _role(555)
        role_service.save_role_mapping(db_engine, GUILD, "voice_1000hrs", 555)
        member = _member(roles=[role])
        guild = _guild(member, {555: role})

        assert run_async(reconciler.revoke_for_achievement(guild, USER, "voice_1000hrs")) is RoleResult.REVOKED
        member.remove_roles.assert_awaited_once()

    def test_no_mapping(self, reconciler):
        guild = _guild(_member())
        assert run_async(reconciler.revoke_for_achievement(guild, USER, "voice_1000hrs")) is RoleResult.NOT_APPLICABLE


class TestCleanup:
    def test_deletes_empty_keeps_held_drops_stale(self, db_engine, reconciler):
        empty = _role(1)
        held = _role(2, members=[_member()])
        broken = _role(4)
        broken.delete.side_effect = _http_error()
        for achievement_id, role_id in (("a", 1), ("b", 2), ("c", 3), ("d", 4)):
            role_service.save_role_mapping(db_engine, GUILD, achievement_id, role_id)
        guild = _guild(roles={1: empty, 2: held, 4: broken})

        report = run_async(reconciler.cleanup_orphaned_roles(guild))

        assert (report.deleted, report.stale, report.failed, report.skipped) == (1, 1, 1, False)
        empty.delete.assert_awaited_once()
        held.delete.assert_not_awaited()
        remaining = {m.achievement_id for m in role_service.get_role_mappings(db_engine, GUILD)}
        assert remaining == {"b", "d"}

    def test_skipped_when_cleanup_disabled(self, db_engine, reconciler):
        role_service.update_role_config(db_engine, GUILD, actor_id=42, cleanup_orphaned=False)
        empty = _role(1)
        role_service.save_role_mapping(db_engine, GUILD, "a", 1)

        report = run_async(reconciler.cleanup_orphaned_roles(_guild(roles={1: empty})))

        assert report.skipped
        empty.delete.assert_not_awaited()

    def test_list_achievement_roles(self, db_engine, reconciler):
        held = _role(2, members=[_member(), _member(2000)])
        role_service.save_role_mapping(db_engine, GUILD, "b", 2)
        role_service.save_role_mapping(db_engine, GUILD, "c", 3)

        infos = run_async(reconciler.list_achievement_roles(_guild(roles={2: held})))

        assert [(i.achievement_id, i.member_count) for i in infos] == [("b", 2), ("c", 0)]
        assert infos[1].role is None
