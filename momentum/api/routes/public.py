"""
momentum.api.routes.public — Read-only public endpoints
========================================================

Streaks, totals, awards, leaderboards and the achievement catalogue.
Nothing here writes; every route is safe to expose to a dashboard.
"""

from __future__ import annotations

from datetime import date, datetime

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel
from sqlalchemy import Engine

from momentum.api.deps import get_catalog, get_engine
from momentum.constants import RARITY_COLORS_HEX, tier_badge
from momentum.engine.catalog import AchievementCatalog, CatalogEntry
from momentum.errors import NotFoundError
from momentum.services.achievement_service import get_user_achievements, has_achievement
from momentum.services.activity_service import get_user_totals
from momentum.services.streak_service import LeaderboardType, get_leaderboard, get_user_streak

router = APIRouter(tags=["public"])


# ---------------------------------------------------------------------------
# Pydantic schemas
# ---------------------------------------------------------------------------
class AchievementOut(BaseModel):
    id: str
    title: str
    description: str
    emoji: str
    category: str
    rarity: str
    rarity_color: str
    points: int
    grant_role: bool
    custom: bool
    season: str | None = None


class StreakOut(BaseModel):
    user_id: str
    guild_id: str
    current_streak: int
    longest_streak: int
    total_active_days: int
    last_activity_date: date | None
    freezes_available: int
    freezes_used: int
    tier: str
    points: int
    achievements: list[AchievementOut]


class TotalsOut(BaseModel):
    messages: int
    voice_minutes: int
    voice_hours: int
    commands: int
    reactions: int
    channel_joins: int
    bytepods_created: int
    unique_commands: int
    longest_voice_session: int
    active_days: int
    social: dict[str, int]


class AwardOut(BaseModel):
    achievement_id: str
    points: int
    earned_at: datetime | None
    manual: bool


class LeaderboardOut(BaseModel):
    rank: int
    user_id: str
    value: int


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def _achievement_out(entry: CatalogEntry) -> AchievementOut:
    season = None
    if entry.window is not None:
        season = f"{entry.window.event or 'Seasonal'} ({entry.window.label()})"
    return AchievementOut(
        id=entry.id,
        title=entry.title,
        description=entry.description,
        emoji=entry.emoji,
        category=entry.category,
        rarity=entry.rarity,
        rarity_color=RARITY_COLORS_HEX.get(entry.rarity, "#9B59B6"),
        points=entry.points,
        grant_role=entry.grant_role,
        custom=entry.is_custom,
        season=season,
    )


# ---------------------------------------------------------------------------
# Members
# ---------------------------------------------------------------------------
@router.get("/guilds/{guild_id}/users/{user_id}/streak", response_model=StreakOut)
def user_streak(
    guild_id: int,
    user_id: int,
    engine: Engine = Depends(get_engine),
    catalog: AchievementCatalog = Depends(get_catalog),
):
    try:
        data = get_user_streak(engine, catalog, user_id, guild_id)
    except NotFoundError as exc:
        raise HTTPException(404, str(exc)) from exc
    state = data.state
    return StreakOut(
        user_id=str(user_id),
        guild_id=str(guild_id),
        current_streak=state.current_streak,
        longest_streak=state.longest_streak,
        total_active_days=state.total_active_days,
        last_activity_date=state.last_activity_date,
        freezes_available=state.freezes_available,
        freezes_used=state.freezes_used,
        tier=tier_badge(len(data.achievements)).name,
        points=data.points,
        achievements=[_achievement_out(entry) for entry, _ in data.achievements],
    )


@router.get("/guilds/{guild_id}/users/{user_id}/totals", response_model=TotalsOut)
def user_totals(guild_id: int, user_id: int, engine: Engine = Depends(get_engine)):
    totals = get_user_totals(engine, user_id, guild_id)
    return TotalsOut(
        messages=totals.messages,
        voice_minutes=totals.voice_minutes,
        voice_hours=totals.voice_hours,
        commands=totals.commands,
        reactions=totals.reactions,
        channel_joins=totals.channel_joins,
        bytepods_created=totals.bytepods_created,
        unique_commands=totals.unique_commands,
        longest_voice_session=totals.longest_voice_session,
        active_days=totals.active_days,
        social=dict(totals.social),
    )


@router.get("/guilds/{guild_id}/users/{user_id}/achievements", response_model=list[AwardOut])
def user_achievements(guild_id: int, user_id: int, engine: Engine = Depends(get_engine)):
    return [
        AwardOut(
            achievement_id=a.achievement_id,
            points=a.points,
            earned_at=a.earned_at,
            manual=a.awarded_by is not None,
        )
        for a in get_user_achievements(engine, user_id, guild_id)
    ]


@router.get("/guilds/{guild_id}/users/{user_id}/achievements/{achievement_id}")
def user_has_achievement(
    guild_id: int,
    user_id: int,
    achievement_id: str,
    engine: Engine = Depends(get_engine),
):
    return {"has": has_achievement(engine, user_id, guild_id, achievement_id)}


# ---------------------------------------------------------------------------
# Guild-wide
# ---------------------------------------------------------------------------
@router.get("/guilds/{guild_id}/leaderboard", response_model=list[LeaderboardOut])
def leaderboard(
    guild_id: int,
    board: LeaderboardType = LeaderboardType.CURRENT,
    limit: int = Query(10, ge=1, le=100),
    engine: Engine = Depends(get_engine),
):
    return [
        LeaderboardOut(rank=row.rank, user_id=str(row.user_id), value=row.value)
        for row in get_leaderboard(engine, guild_id, board, limit)
    ]


@router.get("/guilds/{guild_id}/catalog", response_model=list[AchievementOut])
def catalog_entries(
    guild_id: int,
    category: str | None = None,
    rarity: str | None = None,
    catalog: AchievementCatalog = Depends(get_catalog),
):
    entries = catalog.definitions_for(guild_id)
    if category:
        entries = [e for e in entries if e.category == category]
    if rarity:
        entries = [e for e in entries if e.rarity == rarity]
    return [_achievement_out(e) for e in entries]
