"""
momentum.constants — Shared Constants & Display Helpers
========================================================

Single source of truth for rarity presentation, tier badges and the
small formatting helpers used by embeds, cogs and the API.
"""

from __future__ import annotations

from dataclasses import dataclass

# ---------------------------------------------------------------------------
# Rarity presentation (embeds, role colours)
# ---------------------------------------------------------------------------
RARITY_EMOJI: dict[str, str] = {
    "common": "\u26aa",        # ⚪
    "uncommon": "\U0001f7e2",    # 🟢
    "rare": "\U0001f535",        # 🔵
    "epic": "\U0001f7e3",        # 🟣
    "legendary": "\U0001f7e0",   # 🟠
    "mythic": "\U0001f534",      # 🔴
}

RARITY_COLORS_HEX: dict[str, str] = {
    "common": "#95A5A6",
    "uncommon": "#2ECC71",
    "rare": "#3498DB",
    "epic": "#9B59B6",
    "legendary": "#F39C12",
    "mythic": "#E74C3C",
}

CATEGORY_LABELS: dict[str, str] = {
    "streak": "\U0001f525 Streak Master",
    "total": "\U0001f4c5 Dedication",
    "message": "\U0001f4ac Social",
    "voice": "\U0001f3a4 Voice Champion",
    "command": "\U0001f5fa\ufe0f Explorer",
    "special": "\u2b50 Special",
    "social": "\U0001f465 Community",
    "combo": "\U0001f3af Combo Master",
    "meta": "\U0001f3c6 Meta",
    "seasonal": "\U0001f383 Seasonal",
    "custom": "\U0001f6e0\ufe0f Custom",
}

RANK_BADGES: list[str] = ["\U0001f947", "\U0001f948", "\U0001f949"]  # 🥇🥈🥉

# Streak milestones used for "next goal" progress bars
MILESTONES: dict[str, list[int]] = {
    "streak": [3, 5, 7, 10, 14, 21, 30, 45, 60, 90, 120, 150, 180, 270, 365, 500, 730, 1000],
    "total_days": [30, 50, 100, 150, 250, 365, 500, 750, 1000, 1500],
    "messages": [100, 500, 1000, 5000, 10000, 25000, 50000, 100000],
    "voice_hours": [10, 50, 100, 250, 500, 1000, 2500, 5000],
    "commands": [50, 250, 500, 1000, 2500, 5000, 10000],
}


def hex_to_int(color: str) -> int:
    """``"#9B59B6"`` → ``0x9B59B6``."""
    return int(color.lstrip("#"), 16)


# ---------------------------------------------------------------------------
# Tier badges: based on how many achievements a member holds
# ---------------------------------------------------------------------------
@dataclass(frozen=True, slots=True)
class TierBadge:
    tier: int
    emoji: str
    name: str
    color: str


_TIERS: list[tuple[int, TierBadge]] = [
    (82, TierBadge(7, "\U0001f451", "Legend", "#FFD700")),
    (60, TierBadge(6, "\U0001f48e", "Master", "#00FFFF")),
    (40, TierBadge(5, "\U0001f3c6", "Champion", "#FFA500")),
    (25, TierBadge(4, "\u2b50", "Expert", "#9B59B6")),
    (15, TierBadge(3, "\U0001f31f", "Advanced", "#3498DB")),
    (8, TierBadge(2, "\u2728", "Intermediate", "#2ECC71")),
    (3, TierBadge(1, "\U0001f530", "Beginner", "#95A5A6")),
]

_NEWCOMER = TierBadge(0, "\U0001f95a", "Newcomer", "#BDC3C7")


def tier_badge(achievement_count: int) -> TierBadge:
    """Return the badge for a member holding *achievement_count* achievements."""
    for minimum, badge in _TIERS:
        if achievement_count >= minimum:
            return badge
    return _NEWCOMER


def streak_emoji(streak: int) -> str:
    if streak == 0:
        return "\U0001f4a4"  # 💤
    if streak < 7:
        return "\U0001f525"  # 🔥
    if streak < 30:
        return "\u26a1"      # ⚡
    if streak < 90:
        return "\U0001f4aa"  # 💪
    if streak < 365:
        return "\U0001f3c6"  # 🏆
    return "\U0001f451"      # 👑


def progress_bar(current: int, target: int, length: int = 10) -> str:
    """Render ``█████░░░░░ 50%``.  A zero target counts as complete."""
    ratio = 1.0 if target <= 0 else min(current / target, 1.0)
    filled = round(ratio * length)
    return f"{'█' * filled}{'░' * (length - filled)} {round(ratio * 100)}%"


def next_milestone(current: int, kind: str = "streak") -> int:
    """Smallest milestone above *current*, or the last one once all are passed."""
    milestones = MILESTONES.get(kind)
    if not milestones:
        return current + 1
    for m in milestones:
        if m > current:
            return m
    return milestones[-1]


def format_points(points: int) -> str:
    """``1500`` → ``1.5k``, ``2_000_000`` → ``2.0M``."""
    if points >= 1_000_000:
        return f"{points / 1_000_000:.1f}M"
    if points >= 1_000:
        return f"{points / 1_000:.1f}k"
    return str(points)
