"""
tests/test_notifications.py — Achievement DMs & After-Award Dispatch
=====================================================================

Notification delivery returns a result instead of raising; dispatch
hands role-granting awards to the reconciler and marks delivered DMs.
"""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import discord

from conftest import make_entry, run_async
from momentum.services import achievement_service, role_service
from momentum.services.award_dispatch import dispatch_new_awards
from momentum.services.notification_service import (
    NotificationResult,
    notify_achievement,
    notify_achievements,
)
from momentum.services.role_service import RoleResult

GUILD = 100
USER = 1000


def _user(send_side_effect=None) -> MagicMock:
    user = MagicMock()
    user.id = USER
    user.send = AsyncMock(side_effect=send_side_effect)
    return user


def _error(cls, status: int):
    return cls(MagicMock(status=status, reason="error"), "nope")


class TestNotifyAchievement:
    def test_delivered(self):
        user = _user()
        result = run_async(notify_achievement(user, make_entry("streak_7"), "Guild"))
        assert result is NotificationResult.DELIVERED
        assert result.ok
        embed = user.send.await_args.kwargs["embed"]
        assert "Streak 7" in embed.description
        assert embed.footer.text == "Earned in Guild"

    def test_closed_dms_are_suppressed(self):
        user = _user(_error(discord.Forbidden, 403))
        result = run_async(notify_achievement(user, make_entry("streak_7"), "Guild"))
        assert result is NotificationResult.SUPPRESSED
        assert not result.ok

    def test_outage_is_failed(self):
        user = _user(_error(discord.HTTPException, 503))
        assert run_async(notify_achievement(user, make_entry("streak_7"), "Guild")) is NotificationResult.FAILED

    def test_batch_stops_after_suppressed(self):
        user = _user(_error(discord.Forbidden, 403))
        entries = [make_entry("a"), make_entry("b"), make_entry("c")]
        results = run_async(notify_achievements(user, entries, "Guild"))
        assert results == {"a": NotificationResult.SUPPRESSED}
        assert user.send.await_count == 1

    def test_batch_continues_after_failure(self):
        user = _user([_error(discord.HTTPException, 503), None])
        results = run_async(notify_achievements(user, [make_entry("a"), make_entry("b")], "Guild"))
        assert results == {"a": NotificationResult.FAILED, "b": NotificationResult.DELIVERED}


class TestDispatch:
    def _reconciler(self, result=RoleResult.GRANTED) -> MagicMock:
        reconciler = MagicMock()
        reconciler.grant_for_achievement = AsyncMock(return_value=result)
        return reconciler

    def _guild(self) -> MagicMock:
        guild = MagicMock()
        guild.id = GUILD
        guild.name = "Guild"
        return guild

    def _award(self, engine, entries):
        from momentum.engine.catalog import AchievementCatalog

        catalog = AchievementCatalog.from_entries(entries)
        for entry in entries:
            achievement_service.award_achievement(engine, catalog, USER, GUILD, entry.id, awarded_by=1)

    def test_roles_only_for_role_granting_awards(self, db_engine):
        entries = [make_entry("plain"), make_entry("shiny", grant_role=True)]
        self._award(db_engine, entries)
        reconciler = self._reconciler()

        report = run_async(dispatch_new_awards(db_engine, reconciler, self._guild(), _user(), entries))

        assert report.roles == {"shiny": RoleResult.GRANTED}
        reconciler.grant_for_achievement.assert_awaited_once()
        assert set(report.notifications) == {"plain", "shiny"}
        assert all(a.notified for a in achievement_service.get_user_achievements(db_engine, USER, GUILD))

    def test_role_failure_does_not_undo_award(self, db_engine):
        entries = [make_entry("shiny", grant_role=True)]
        self._award(db_engine, entries)

        report = run_async(dispatch_new_awards(
            db_engine, self._reconciler(RoleResult.FORBIDDEN), self._guild(), _user(), entries,
        ))

        assert report.roles == {"shiny": RoleResult.FORBIDDEN}
        assert achievement_service.has_achievement(db_engine, USER, GUILD, "shiny")

    def test_no_dm_when_guild_opted_out(self, db_engine):
        role_service.update_role_config(db_engine, GUILD, actor_id=1, notify_on_earn=False)
        entries = [make_entry("plain")]
        self._award(db_engine, entries)
        user = _user()

        report = run_async(dispatch_new_awards(db_engine, self._reconciler(), self._guild(), user, entries))

        assert report.notifications == {}
        user.send.assert_not_awaited()
        assert not achievement_service.get_user_achievements(db_engine, USER, GUILD)[0].notified

    def test_suppressed_dm_is_not_marked(self, db_engine):
        entries = [make_entry("plain")]
        self._award(db_engine, entries)
        user = _user(_error(discord.Forbidden, 403))

        run_async(dispatch_new_awards(db_engine, self._reconciler(), self._guild(), user, entries))

        assert not achievement_service.get_user_achievements(db_engine, USER, GUILD)[0].notified

    def test_nothing_to_dispatch(self, db_engine):
        reconciler = self._reconciler()
        report = run_async(dispatch_new_awards(db_engine, reconciler, self._guild(), _user(), []))
        assert report.roles == {}
        assert report.notifications == {}
