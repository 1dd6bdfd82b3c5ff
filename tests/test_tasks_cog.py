"""
tests/test_tasks_cog.py — Periodic Background Tasks
====================================================

Runs each loop body once, directly, with the storage calls replaced.
"""

from __future__ import annotations

import logging
from datetime import date
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

from sqlalchemy.orm import Session

from conftest import run_async
from momentum.bot.cogs import tasks as tasks_cog
from momentum.database.models import ActivityStreak
from momentum.engine.streaks import TouchOutcome
from momentum.services import streak_service


def _make_cog(engine=None) -> tasks_cog.PeriodicTasks:
    bot = MagicMock()
    bot.engine = engine
    bot.reconciler.cleanup_orphaned_roles = AsyncMock()
    return tasks_cog.PeriodicTasks(bot)


class TestStreakSweep:
    def test_freezes_are_replenished_before_expiry(self, monkeypatch):
        calls = []
        monkeypatch.setattr(
            tasks_cog, "reset_monthly_freezes", lambda engine: calls.append("reset") or 0,
        )
        monkeypatch.setattr(
            tasks_cog, "expire_broken_streaks", lambda engine: calls.append("expire") or 0,
        )

        run_async(_make_cog().streak_sweep_loop())

        assert calls == ["reset", "expire"]

    def test_failure_is_logged_not_raised(self, monkeypatch, caplog):
        def broken(engine):
            raise RuntimeError("db down")

        expire = MagicMock(return_value=0)
        monkeypatch.setattr(tasks_cog, "reset_monthly_freezes", broken)
        monkeypatch.setattr(tasks_cog, "expire_broken_streaks", expire)

        with caplog.at_level(logging.ERROR, logger="momentum.bot.cogs.tasks"):
            run_async(_make_cog().streak_sweep_loop())

        assert "Streak sweep failed" in caplog.text
        expire.assert_not_called()

    def test_month_rollover_keeps_one_day_gap_streak(self, db_engine, monkeypatch):
        # last active on Jan 30, freeze spent in January; sweep runs Feb 1
        with Session(db_engine) as session:
            session.add(ActivityStreak(
                user_id=1, guild_id=100,
                current_streak=10, longest_streak=10,
                last_activity_date=date(2026, 1, 30),
                total_active_days=10, freezes_available=0, freezes_used=1,
            ))
            session.commit()

        sweep_day = date(2026, 2, 1)
        monkeypatch.setattr(
            tasks_cog, "reset_monthly_freezes",
            lambda engine: streak_service.reset_monthly_freezes(engine, sweep_day),
        )
        monkeypatch.setattr(
            tasks_cog, "expire_broken_streaks",
            lambda engine: streak_service.expire_broken_streaks(engine, sweep_day),
        )

        run_async(_make_cog(db_engine).streak_sweep_loop())

        state, outcome = streak_service.touch_activity(db_engine, 1, 100, today=sweep_day)
        assert outcome is TouchOutcome.FROZEN
        assert state.current_streak == 11


class TestCatalogReload:
    def test_reloads_definitions(self):
        cog = _make_cog()
        run_async(cog.catalog_reload_loop())
        cog.bot.catalog.load_definitions.assert_called_once_with()

    def test_failure_is_logged(self, caplog):
        cog = _make_cog()
        cog.bot.catalog.load_definitions.side_effect = RuntimeError("boom")

        with caplog.at_level(logging.ERROR, logger="momentum.bot.cogs.tasks"):
            run_async(cog.catalog_reload_loop())

        assert "Catalog reload failed" in caplog.text


class TestRoleCleanup:
    def test_one_guild_failing_does_not_stop_the_rest(self, caplog):
        cog = _make_cog()
        first, second = SimpleNamespace(id=1), SimpleNamespace(id=2)
        cog.bot.guilds = [first, second]
        cog.bot.reconciler.cleanup_orphaned_roles.side_effect = [RuntimeError("forbidden"), 0]

        with caplog.at_level(logging.ERROR, logger="momentum.bot.cogs.tasks"):
            run_async(cog.role_cleanup_loop())

        assert cog.bot.reconciler.cleanup_orphaned_roles.await_count == 2
        cog.bot.reconciler.cleanup_orphaned_roles.assert_awaited_with(second)
        assert "Role cleanup failed for guild 1" in caplog.text
