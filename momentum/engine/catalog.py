"""
momentum.engine.catalog — AchievementCatalog
=============================================

In-memory index of achievement definitions: the seeded core list (which
includes seasonal entries) plus every guild's enabled custom
achievements.  Indexed by id, category and rarity.

The catalog is an ordinary object that the bot builds once and passes
to whatever needs it — the evaluator, cogs, the API.  Tests build
their own with :meth:`AchievementCatalog.from_entries`.

Usage::

    catalog = AchievementCatalog(engine)
    catalog.load_definitions()            # safe to call again at any time

    entry = catalog.get_by_id("streak_7")
    if catalog.can_award("seasonal_new_year"):
        ...
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date
from typing import TYPE_CHECKING, Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from momentum.database.models import AchievementDefinition, CustomAchievement
from momentum.engine.criteria import Criteria, CriteriaError, MetaCriteria, parse_criteria
from momentum.engine.events import utc_today
from momentum.errors import NotFoundError

if TYPE_CHECKING:
    from sqlalchemy import Engine

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Seasonal windows
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class SeasonalWindow:
    """A yearly ``MM-DD`` → ``MM-DD`` window.  ``start > end`` wraps the
    year end (Dec 26 → Jan 5)."""

    start: tuple[int, int]
    end: tuple[int, int]
    event: str | None = None

    @classmethod
    def parse(cls, start: str, end: str, event: str | None = None) -> SeasonalWindow:
        def md(value: str) -> tuple[int, int]:
            month, day = value.strip()[-5:].split("-")
            return int(month), int(day)
        return cls(md(start), md(end), event)

    @property
    def wraps(self) -> bool:
        return self.start > self.end

    def contains(self, day: date) -> bool:
        md = (day.month, day.day)
        if self.wraps:
            return md >= self.start or md <= self.end
        return self.start <= md <= self.end

    def occurrence_start(self, day: date) -> date:
        """First day of the occurrence that *day* falls in (or last began)."""
        year = day.year if (day.month, day.day) >= self.start else day.year - 1
        return date(year, *self.start)

    def label(self) -> str:
        return f"{self.start[0]:02d}-{self.start[1]:02d} → {self.end[0]:02d}-{self.end[1]:02d}"


# ---------------------------------------------------------------------------
# Catalog entries
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class CatalogEntry:
    """Detached, typed achievement definition."""

    id: str
    title: str
    description: str
    emoji: str
    category: str
    rarity: str
    check_type: str
    criteria: Criteria
    grant_role: bool = False
    points: int = 0
    guild_id: int | None = None  # set for guild custom achievements
    window: SeasonalWindow | None = None

    @property
    def is_custom(self) -> bool:
        return self.guild_id is not None

    @property
    def is_seasonal(self) -> bool:
        return self.window is not None

    @property
    def is_meta(self) -> bool:
        return isinstance(self.criteria, MetaCriteria)


def entry_from_row(row: AchievementDefinition | CustomAchievement) -> CatalogEntry:
    """Build a :class:`CatalogEntry` from either ORM definition table.

    Raises :class:`CriteriaError` if the stored criteria are malformed.
    """
    if isinstance(row, CustomAchievement):
        achievement_id, guild_id, window = row.achievement_id, row.guild_id, None
    else:
        achievement_id, guild_id = row.id, None
        window = (
            SeasonalWindow.parse(row.start_date, row.end_date, row.seasonal_event)
            if row.seasonal and row.start_date and row.end_date
            else None
        )
    return CatalogEntry(
        id=achievement_id,
        title=row.title,
        description=row.description or "",
        emoji=row.emoji,
        category=row.category,
        rarity=row.rarity,
        check_type=row.check_type,
        criteria=parse_criteria(row.check_type, row.criteria),
        grant_role=row.grant_role,
        points=row.points,
        guild_id=guild_id,
        window=window,
    )


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------
class AchievementCatalog:
    """Thread-safe index of core + custom achievement definitions."""

    def __init__(self, engine: Engine | None = None) -> None:
        self._engine = engine
        self._lock = threading.Lock()
        # id → entry (core + seasonal)
        self._core: dict[str, CatalogEntry] = {}
        # category → [entry], rarity → [entry]  (core only)
        self._by_category: dict[str, list[CatalogEntry]] = {}
        self._by_rarity: dict[str, list[CatalogEntry]] = {}
        # guild_id → id → entry
        self._custom: dict[int, dict[str, CatalogEntry]] = {}

    @classmethod
    def from_entries(
        cls,
        core: Iterable[CatalogEntry],
        custom: Iterable[CatalogEntry] = (),
    ) -> AchievementCatalog:
        """Build a catalog without a database (tests, tooling)."""
        catalog = cls()
        catalog._install(list(core), list(custom))
        return catalog

    # -------------------------------------------------------------------
    # Loading
    # -------------------------------------------------------------------
    def load_definitions(self) -> None:
        """(Re)load core and custom definitions from the database."""
        if self._engine is None:
            raise RuntimeError("AchievementCatalog was built without an engine")

        with Session(self._engine) as session:
            core_rows = session.scalars(select(AchievementDefinition)).all()
            custom_rows = session.scalars(
                select(CustomAchievement).where(CustomAchievement.enabled.is_(True))
            ).all()
            core = self._parse_rows(core_rows)
            custom = self._parse_rows(custom_rows)

        self._install(core, custom)
        logger.info(
            "AchievementCatalog loaded: %d core (%d seasonal), %d custom across %d guilds",
            len(core),
            sum(1 for e in core if e.is_seasonal),
            len(custom),
            len({e.guild_id for e in custom}),
        )

    @staticmethod
    def _parse_rows(rows: Iterable[Any]) -> list[CatalogEntry]:
        entries: list[CatalogEntry] = []
        for row in rows:
            try:
                entries.append(entry_from_row(row))
            except CriteriaError as exc:
                logger.warning("Skipping achievement %r: %s", row, exc)
        return entries

    def _install(self, core: list[CatalogEntry], custom: list[CatalogEntry]) -> None:
        by_id = {e.id: e for e in core}
        by_category: dict[str, list[CatalogEntry]] = {}
        by_rarity: dict[str, list[CatalogEntry]] = {}
        for e in core:
            by_category.setdefault(e.category, []).append(e)
            by_rarity.setdefault(e.rarity, []).append(e)
        by_guild: dict[int, dict[str, CatalogEntry]] = {}
        for e in custom:
            assert e.guild_id is not None
            by_guild.setdefault(e.guild_id, {})[e.id] = e

        with self._lock:
            self._core = by_id
            self._by_category = by_category
            self._by_rarity = by_rarity
            self._custom = by_guild

    # -------------------------------------------------------------------
    # Lookups
    # -------------------------------------------------------------------
    def __len__(self) -> int:
        with self._lock:
            return len(self._core)

    def get_by_id(self, achievement_id: str, guild_id: int | None = None) -> CatalogEntry | None:
        with self._lock:
            entry = self._core.get(achievement_id)
            if entry is None and guild_id is not None:
                entry = self._custom.get(guild_id, {}).get(achievement_id)
            return entry

    def require(self, achievement_id: str, guild_id: int | None = None) -> CatalogEntry:
        """Like :meth:`get_by_id` but raises :class:`NotFoundError`."""
        entry = self.get_by_id(achievement_id, guild_id)
        if entry is None:
            raise NotFoundError(f"Achievement `{achievement_id}` does not exist.")
        return entry

    def get_by_category(self, category: str, guild_id: int | None = None) -> list[CatalogEntry]:
        with self._lock:
            result = list(self._by_category.get(category, []))
            if guild_id is not None:
                result.extend(
                    e for e in self._custom.get(guild_id, {}).values() if e.category == category
                )
            return result

    def get_by_rarity(self, rarity: str, guild_id: int | None = None) -> list[CatalogEntry]:
        with self._lock:
            result = list(self._by_rarity.get(rarity, []))
            if guild_id is not None:
                result.extend(
                    e for e in self._custom.get(guild_id, {}).values() if e.rarity == rarity
                )
            return result

    def get_custom_achievements(self, guild_id: int) -> list[CatalogEntry]:
        with self._lock:
            return list(self._custom.get(guild_id, {}).values())

    def definitions_for(self, guild_id: int) -> list[CatalogEntry]:
        """Every definition that applies in *guild_id*: core, then custom."""
        with self._lock:
            return [*self._core.values(), *self._custom.get(guild_id, {}).values()]

    def categories(self) -> list[str]:
        with self._lock:
            return sorted(self._by_category)

    # -------------------------------------------------------------------
    # Award gate
    # -------------------------------------------------------------------
    def can_award(
        self,
        achievement_id: str,
        guild_id: int | None = None,
        today: date | None = None,
    ) -> bool:
        """False for unknown ids and for seasonal entries outside their window."""
        entry = self.get_by_id(achievement_id, guild_id)
        if entry is None:
            return False
        if entry.window is None:
            return True
        return entry.window.contains(today or utc_today())
