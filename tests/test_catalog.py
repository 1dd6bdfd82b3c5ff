"""
tests/test_catalog.py — AchievementCatalog & Seasonal Windows
==============================================================

Synthetic catalogs come from ``AchievementCatalog.from_entries``; the
database-backed tests load the real seeded catalogue.
"""

from __future__ import annotations

from datetime import date

import pytest
from sqlalchemy.orm import Session

from conftest import make_entry
from momentum.database.models import CustomAchievement
from momentum.engine.catalog import AchievementCatalog, SeasonalWindow
from momentum.errors import NotFoundError

GUILD = 100


@pytest.fixture
def catalog() -> AchievementCatalog:
    return AchievementCatalog.from_entries(
        [
            make_entry("streak_7", "exact", {"streak": 7}),
            make_entry("message_100", criteria={"messages": 100}, category="message", rarity="uncommon"),
            make_entry(
                "seasonal_new_year", "special", {"type": "seasonal", "active_days": 5},
                category="seasonal", window=("12-26", "01-05"),
            ),
        ],
        custom=[
            make_entry("guild_helper", criteria={"reactions": 50}, category="custom", guild_id=GUILD),
        ],
    )


class TestSeasonalWindow:
    def test_plain_window(self):
        window = SeasonalWindow.parse("10-01", "10-31", "Halloween")
        assert window.contains(date(2026, 10, 1))
        assert window.contains(date(2026, 10, 31))
        assert not window.contains(date(2026, 11, 1))
        assert not window.wraps

    def test_window_wrapping_year_end(self):
        window = SeasonalWindow.parse("12-26", "01-05")
        assert window.wraps
        assert window.contains(date(2026, 12, 31))
        assert window.contains(date(2027, 1, 5))
        assert not window.contains(date(2027, 1, 6))
        assert not window.contains(date(2026, 12, 25))

    def test_occurrence_start_across_year_end(self):
        window = SeasonalWindow.parse("12-26", "01-05")
        assert window.occurrence_start(date(2027, 1, 3)) == date(2026, 12, 26)
        assert window.occurrence_start(date(2026, 12, 28)) == date(2026, 12, 26)

    def test_parse_accepts_full_dates(self):
        window = SeasonalWindow.parse("2024-02-01", "2024-02-14")
        assert window.start == (2, 1)
        assert window.end == (2, 14)


class TestLookups:
    def test_get_by_id_core(self, catalog):
        assert catalog.get_by_id("streak_7").title == "Streak 7"

    def test_custom_requires_guild(self, catalog):
        assert catalog.get_by_id("guild_helper") is None
        assert catalog.get_by_id("guild_helper", GUILD).is_custom
        assert catalog.get_by_id("guild_helper", 999) is None

    def test_require_raises_not_found(self, catalog):
        with pytest.raises(NotFoundError):
            catalog.require("nope", GUILD)

    def test_by_category_and_rarity(self, catalog):
        assert [e.id for e in catalog.get_by_category("message")] == ["message_100"]
        assert [e.id for e in catalog.get_by_category("custom", GUILD)] == ["guild_helper"]
        assert [e.id for e in catalog.get_by_rarity("uncommon")] == ["message_100"]

    def test_definitions_for_lists_core_then_custom(self, catalog):
        ids = [e.id for e in catalog.definitions_for(GUILD)]
        assert ids == ["streak_7", "message_100", "seasonal_new_year", "guild_helper"]
        assert len(catalog.definitions_for(999)) == 3

    def test_categories(self, catalog):
        assert catalog.categories() == ["message", "seasonal", "streak"]


class TestCanAward:
    def test_unknown_id(self, catalog):
        assert not catalog.can_award("nope", GUILD, date(2026, 5, 1))

    def test_non_seasonal_always(self, catalog):
        assert catalog.can_award("streak_7", today=date(2026, 5, 1))
        assert catalog.can_award("guild_helper", GUILD, date(2026, 5, 1))

    def test_seasonal_inside_and_outside_window(self, catalog):
        assert catalog.can_award("seasonal_new_year", today=date(2027, 1, 2))
        assert not catalog.can_award("seasonal_new_year", today=date(2027, 3, 1))


class TestLoadDefinitions:
    def test_seeded_catalogue(self, seeded_catalog):
        assert len(seeded_catalog) == 87 + 16
        entry = seeded_catalog.get_by_id("seasonal_new_year")
        assert entry.is_seasonal
        assert entry.window.wraps
        assert seeded_catalog.get_by_id("meta_achievement_hunter").is_meta

    def test_reload_picks_up_custom_and_skips_disabled(self, seeded_engine, seeded_catalog):
        with Session(seeded_engine) as session:
            session.add_all([
                CustomAchievement(
                    guild_id=GUILD, achievement_id="welcome_wagon", title="Welcome Wagon",
                    emoji="\U0001f44b", check_type="threshold", criteria={"reactions": 10},
                    created_by=1, enabled=True,
                ),
                CustomAchievement(
                    guild_id=GUILD, achievement_id="retired", title="Retired",
                    emoji="\U0001f4a4", check_type="threshold", criteria={"reactions": 10},
                    created_by=1, enabled=False,
                ),
            ])
            session.commit()

        assert seeded_catalog.get_custom_achievements(GUILD) == []
        seeded_catalog.load_definitions()
        assert [e.id for e in seeded_catalog.get_custom_achievements(GUILD)] == ["welcome_wagon"]

    def test_malformed_custom_is_skipped(self, seeded_engine, seeded_catalog):
        with Session(seeded_engine) as session:
            session.add(CustomAchievement(
                guild_id=GUILD, achievement_id="broken", title="Broken",
                emoji="x", check_type="threshold", criteria={"karma": 10},
                created_by=1, enabled=True,
            ))
            session.commit()

        seeded_catalog.load_definitions()
        assert seeded_catalog.get_by_id("broken", GUILD) is None

    def test_without_engine_raises(self):
        with pytest.raises(RuntimeError):
            AchievementCatalog().load_definitions()
