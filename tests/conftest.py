"""
tests/conftest.py — Shared Test Fixtures
=========================================
"""

from __future__ import annotations

import asyncio

import pytest
from sqlalchemy import Engine, create_engine

# ---------------------------------------------------------------------------
# Make JSONB columns work in SQLite for testing.
# SQLite doesn't support JSONB natively, but SQLAlchemy's JSON type works.
# We register a custom type compiler so SQLite renders JSONB as TEXT.
# ---------------------------------------------------------------------------
from sqlalchemy.dialects.postgresql import JSONB as PG_JSONB
from sqlalchemy.orm import Session

from momentum.database.models import Base
from momentum.engine.catalog import AchievementCatalog, CatalogEntry, SeasonalWindow
from momentum.engine.criteria import parse_criteria

_jsonb_sqlite_registered = False


def _register_jsonb_sqlite_compat():
    """Register SQLite compilation for PG JSONB type (idempotent).

    Also maps BigInteger → INTEGER so autoincrement works on SQLite.
    """
    global _jsonb_sqlite_registered
    if _jsonb_sqlite_registered:
        return
    from sqlalchemy import BigInteger
    from sqlalchemy.ext.compiler import compiles

    @compiles(PG_JSONB, "sqlite")
    def _compile_jsonb_as_text(type_, compiler, **kw):
        return "TEXT"

    @compiles(BigInteger, "sqlite")
    def _compile_bigint_as_integer(type_, compiler, **kw):
        return "INTEGER"

    _jsonb_sqlite_registered = True


_register_jsonb_sqlite_compat()


@pytest.fixture
def db_engine() -> Engine:
    """Create an in-memory SQLite engine with all Momentum tables.

    Uses StaticPool so all threads share the same in-memory database
    (required by ``asyncio.to_thread`` used in ``run_db``).
    """
    from sqlalchemy.pool import StaticPool

    engine = create_engine(
        "sqlite://",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    return engine


@pytest.fixture
def db_session(db_engine: Engine):
    """Provide a transactional session that rolls back after each test."""
    with Session(db_engine) as session:
        yield session
        session.rollback()


@pytest.fixture
def seeded_engine(db_engine: Engine) -> Engine:
    """db_engine with the core + seasonal catalogue seeded."""
    from momentum.database.seed import seed_achievement_definitions

    seed_achievement_definitions(db_engine)
    return db_engine


@pytest.fixture
def seeded_catalog(seeded_engine: Engine) -> AchievementCatalog:
    catalog = AchievementCatalog(seeded_engine)
    catalog.load_definitions()
    return catalog


# ---------------------------------------------------------------------------
# Helpers (import with ``from conftest import make_entry``)
# ---------------------------------------------------------------------------
def make_entry(
    id: str,
    check_type: str = "threshold",
    criteria: dict | None = None,
    *,
    category: str = "streak",
    rarity: str = "common",
    points: int = 10,
    grant_role: bool = False,
    guild_id: int | None = None,
    window: tuple[str, str] | None = None,
    title: str | None = None,
) -> CatalogEntry:
    """Build a CatalogEntry without touching the database."""
    return CatalogEntry(
        id=id,
        title=title or id.replace("_", " ").title(),
        description="",
        emoji="\U0001f3c6",
        category=category,
        rarity=rarity,
        check_type=check_type,
        criteria=parse_criteria(check_type, criteria if criteria is not None else {"streak": 1}),
        grant_role=grant_role,
        points=points,
        guild_id=guild_id,
        window=SeasonalWindow.parse(*window) if window else None,
    )


def run_async(coro):
    """Run a coroutine on a fresh event loop."""
    return asyncio.get_event_loop_policy().new_event_loop().run_until_complete(coro)
