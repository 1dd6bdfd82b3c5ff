"""
momentum.database.seed — Achievement Catalogue Seeder
======================================================

Loads the core and seasonal achievement definitions from the YAML files
in ``momentum/seeds/`` and upserts them into ``achievement_definitions``.

Runs on every startup.  Rows are matched by id, so edits to the YAML
reach the database on the next boot and re-running never duplicates.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml
from sqlalchemy import Engine
from sqlalchemy.orm import Session

from momentum.database.models import AchievementDefinition, CheckType

logger = logging.getLogger(__name__)

# Packaged next to the code so an installed wheel can still seed
_SEEDS_DIR = Path(__file__).resolve().parent.parent / "seeds"

_FIELDS = (
    "title", "description", "emoji", "category", "rarity", "check_type",
    "criteria", "grant_role", "points", "seasonal", "seasonal_event",
    "start_date", "end_date",
)


def _load_yaml(filename: str) -> Any:
    """Load a YAML file from the seeds directory."""
    path = _SEEDS_DIR / filename
    if not path.exists():
        logger.warning("Seed file not found: %s", path)
        return {}
    with open(path, encoding="utf-8") as fh:
        return yaml.safe_load(fh) or {}


def load_seed_definitions() -> list[dict[str, Any]]:
    """Core + seasonal definitions as plain dicts, with defaults filled in."""
    items: list[dict[str, Any]] = []

    for a in _load_yaml("achievements.yaml").get("achievements", []):
        items.append({**a, "seasonal": False})

    for a in _load_yaml("seasonal.yaml").get("achievements", []):
        items.append({
            **a,
            "category": a.get("category", "seasonal"),
            "check_type": a.get("check_type", CheckType.SPECIAL.value),
            "seasonal": True,
        })

    for item in items:
        item.setdefault("description", "")
        item.setdefault("emoji", "\U0001f3c6")
        item.setdefault("rarity", "common")
        item.setdefault("criteria", {})
        item.setdefault("grant_role", False)
        item.setdefault("points", 0)
    return items


def seed_achievement_definitions(engine: Engine) -> int:
    """Upsert every seeded definition.  Returns the number of new rows."""
    items = load_seed_definitions()
    inserted = updated = 0

    with Session(engine) as session:
        try:
            for item in items:
                row = session.get(AchievementDefinition, item["id"])
                if row is None:
                    row = AchievementDefinition(id=item["id"])
                    session.add(row)
                    inserted += 1
                else:
                    updated += 1
                for key in _FIELDS:
                    setattr(row, key, item.get(key))
            session.commit()
        except Exception:
            session.rollback()
            raise

    logger.info(
        "Achievement catalogue seeded: %d new, %d refreshed (%d seasonal).",
        inserted, updated, sum(1 for i in items if i["seasonal"]),
    )
    return inserted
