"""
momentum.api.deps — FastAPI dependency injection
=================================================
"""

from __future__ import annotations

from functools import lru_cache

from sqlalchemy import Engine

from momentum.database.engine import create_db_engine
from momentum.engine.catalog import AchievementCatalog


@lru_cache(maxsize=1)
def get_engine() -> Engine:
    return create_db_engine()


@lru_cache(maxsize=1)
def get_catalog() -> AchievementCatalog:
    catalog = AchievementCatalog(get_engine())
    catalog.load_definitions()
    return catalog
