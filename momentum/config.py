"""
momentum.config — YAML Configuration Loader
============================================

Reads ``config.yaml`` for infrastructure settings (Discord identity,
admin role, debounce window, brand colour).  Per-guild role reward
settings live in the ``achievement_role_config`` table and are edited
with ``/achievement setup``.

Usage::

    from momentum.config import load_config

    cfg = load_config()          # reads ./config.yaml by default
    print(cfg.guild_id)
    print(cfg.activity_debounce_seconds)
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from pathlib import Path

import yaml


# ---------------------------------------------------------------------------
# Typed settings object
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class MomentumConfig:
    """Immutable configuration loaded from ``config.yaml``."""

    # Discord
    bot_prefix: str
    guild_id: int  # Primary guild snowflake (dev command sync, API default)

    # Admin / Hardened Access
    admin_role_id: int  # Discord role required for /achievement admin commands

    # Role colour used when a guild turns rarity colours off
    brand_color: str = "#9B59B6"

    # Activity feed contract: at most one streak touch per user per window
    activity_debounce_seconds: int = 60

    # Voice sessions shorter than this are not recorded
    voice_min_session_minutes: int = 1

    # Read-only API
    api_port: int = 8000

    # Overrides the guild creation date used by early-adopter / anniversary
    guild_created_at: date | None = None


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------
def load_config(path: str | Path = "config.yaml") -> MomentumConfig:
    """Read *path* and return a :class:`MomentumConfig` instance.

    Raises
    ------
    FileNotFoundError
        If the YAML file doesn't exist.
    KeyError
        If a required key is missing from the YAML file.
    """
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(
            f"Configuration file not found: {config_path.resolve()}\n"
            "Hint: copy config.yaml.example → config.yaml and edit it."
        )

    with open(config_path, encoding="utf-8") as fh:
        raw: dict = yaml.safe_load(fh) or {}

    created = raw.get("guild_created_at")
    if isinstance(created, str):
        created = date.fromisoformat(created)

    return MomentumConfig(
        bot_prefix=raw["bot_prefix"],
        guild_id=int(raw["guild_id"]),
        admin_role_id=int(raw["admin_role_id"]),
        brand_color=str(raw.get("brand_color", "#9B59B6")),
        activity_debounce_seconds=int(raw.get("activity_debounce_seconds", 60)),
        voice_min_session_minutes=int(raw.get("voice_min_session_minutes", 1)),
        api_port=int(raw.get("api_port", 8000)),
        guild_created_at=created,
    )
