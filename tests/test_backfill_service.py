"""
tests/test_backfill_service.py — Retroactive Achievement Backfill
==================================================================
"""

from __future__ import annotations

from datetime import date

import pytest
from sqlalchemy import select
from sqlalchemy.orm import Session

from conftest import make_entry
from momentum.bot import backfill as backfill_cli
from momentum.database.models import ActivityStreak, AwardedAchievement
from momentum.engine.catalog import AchievementCatalog
from momentum.errors import TransientStorageError
from momentum.services import backfill_service, streak_service
from momentum.services.backfill_service import backfill_achievements

TODAY = date(2026, 5, 15)


@pytest.fixture
def catalog() -> AchievementCatalog:
    return AchievementCatalog.from_entries([
        make_entry("total_30", criteria={"total_days": 30}, category="total"),
        make_entry("streak_7", "exact", {"streak": 7}),
    ])


@pytest.fixture
def members(db_engine):
    with Session(db_engine) as session:
        session.add_all([
            ActivityStreak(user_id=1, guild_id=100, current_streak=7, longest_streak=7, total_active_days=30),
            ActivityStreak(user_id=2, guild_id=100, current_streak=2, longest_streak=2, total_active_days=2),
            ActivityStreak(user_id=3, guild_id=200, current_streak=1, longest_streak=9, total_active_days=31),
        ])
        session.commit()
    return db_engine


def _award_rows(engine) -> list[tuple[int, str]]:
    with Session(engine) as session:
        return [tuple(r) for r in session.execute(
            select(AwardedAchievement.user_id, AwardedAchievement.achievement_id)
            .order_by(AwardedAchievement.user_id, AwardedAchievement.achievement_id)
        ).all()]


class TestTrackedMembers:
    def test_all_guilds(self, members):
        assert streak_service.get_tracked_members(members) == [(1, 100), (2, 100), (3, 200)]

    def test_one_guild(self, members):
        assert streak_service.get_tracked_members(members, 200) == [(3, 200)]


class TestBackfill:
    def test_awards_every_qualifying_member(self, members, catalog):
        report = backfill_achievements(members, catalog, today=TODAY)

        assert report.members_checked == 3
        assert report.awarded == 3
        assert report.by_achievement() == {"total_30": 2, "streak_7": 1}
        assert _award_rows(members) == [(1, "streak_7"), (1, "total_30"), (3, "total_30")]

    def test_dry_run_writes_nothing(self, members, catalog):
        report = backfill_achievements(members, catalog, dry_run=True, today=TODAY)

        assert report.dry_run
        assert report.awarded == 3
        assert _award_rows(members) == []

    def test_second_run_awards_nothing(self, members, catalog):
        backfill_achievements(members, catalog, today=TODAY)
        report = backfill_achievements(members, catalog, today=TODAY)

        assert report.members_checked == 3
        assert report.awarded == 0
        assert report.awards == {}

    def test_guild_filter(self, members, catalog):
        report = backfill_achievements(members, catalog, guild_id=200, today=TODAY)

        assert report.members_checked == 1
        assert list(report.awards) == [(3, 200)]
        assert _award_rows(members) == [(3, "total_30")]

    def test_storage_error_counts_and_continues(self, members, catalog, monkeypatch):
        real = backfill_service.check_all_achievements

        def flaky(engine, catalog, user_id, guild_id, **kwargs):
            if user_id == 1:
                raise TransientStorageError("connection reset")
            return real(engine, catalog, user_id, guild_id, **kwargs)

        monkeypatch.setattr(backfill_service, "check_all_achievements", flaky)

        report = backfill_achievements(members, catalog, today=TODAY)

        assert report.errors == 1
        assert report.members_checked == 2
        assert _award_rows(members) == [(3, "total_30")]


class TestBackfillCommand:
    def test_arguments(self):
        args = backfill_cli._parse_args(["123", "--dry-run"])
        assert args.guild_id == 123
        assert args.dry_run is True

    def test_defaults_to_every_guild(self):
        args = backfill_cli._parse_args([])
        assert args.guild_id is None
        assert args.dry_run is False

    def test_main_passes_options_and_reports_errors(self, members, catalog, monkeypatch):
        seen = {}

        def fake_backfill(engine, catalog, *, guild_id, dry_run):
            seen.update(guild_id=guild_id, dry_run=dry_run)
            return backfill_service.BackfillReport(dry_run=dry_run, members_checked=1, errors=1)

        monkeypatch.setattr(backfill_cli, "load_dotenv", lambda: None)
        monkeypatch.setattr(backfill_cli, "create_db_engine", lambda: members)
        monkeypatch.setattr(backfill_cli, "init_db", lambda engine: None)
        monkeypatch.setattr(backfill_cli, "AchievementCatalog", lambda engine: catalog)
        monkeypatch.setattr(catalog, "load_definitions", lambda: None)
        monkeypatch.setattr(backfill_cli, "backfill_achievements", fake_backfill)

        assert backfill_cli.main(["100", "--dry-run"]) == 1
        assert seen == {"guild_id": 100, "dry_run": True}
