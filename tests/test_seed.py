"""
tests/test_seed.py — Achievement Catalogue Seeder
==================================================
"""

from __future__ import annotations

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from momentum.database.models import AchievementDefinition, CheckType, Rarity
from momentum.database.seed import load_seed_definitions, seed_achievement_definitions
from momentum.engine.criteria import parse_criteria


def _count(engine, *where) -> int:
    with Session(engine) as session:
        return session.scalar(select(func.count()).select_from(AchievementDefinition).where(*where))


class TestSeedFiles:
    def test_core_and_seasonal_counts(self):
        items = load_seed_definitions()
        assert sum(1 for i in items if not i["seasonal"]) == 87
        assert sum(1 for i in items if i["seasonal"]) == 16

    def test_ids_are_unique(self):
        ids = [i["id"] for i in load_seed_definitions()]
        assert len(ids) == len(set(ids))

    def test_every_definition_is_valid(self):
        for item in load_seed_definitions():
            CheckType(item["check_type"])
            Rarity(item["rarity"])
            parse_criteria(item["check_type"], item["criteria"])

    def test_seasonal_entries_have_windows(self):
        for item in load_seed_definitions():
            if item["seasonal"]:
                assert item["start_date"] and item["end_date"], item["id"]
                assert item["check_type"] == "special"


class TestSeedDatabase:
    def test_seed_inserts_everything(self, db_engine):
        assert seed_achievement_definitions(db_engine) == 103
        assert _count(db_engine) == 103
        assert _count(db_engine, AchievementDefinition.seasonal.is_(True)) == 16

    def test_reseed_is_idempotent(self, db_engine):
        seed_achievement_definitions(db_engine)
        assert seed_achievement_definitions(db_engine) == 0
        assert _count(db_engine) == 103

    def test_reseed_refreshes_edited_rows(self, db_engine):
        seed_achievement_definitions(db_engine)
        with Session(db_engine) as session:
            session.get(AchievementDefinition, "streak_7").title = "Edited"
            session.commit()

        seed_achievement_definitions(db_engine)
        with Session(db_engine) as session:
            assert session.get(AchievementDefinition, "streak_7").title == "Week Warrior"
