"""
tests/test_activity_service.py — Daily Activity Log Integration Tests
======================================================================

Counter upserts, voice session splitting and the totals provider,
against the shared in-memory SQLite engine.
"""

from __future__ import annotations

from datetime import UTC, date, datetime, timedelta, timezone

import pytest
from sqlalchemy import select
from sqlalchemy.orm import Session

from momentum.database.models import ActivityLog
from momentum.engine.events import ActivityEvent, ActivityKind
from momentum.services import activity_service

GUILD = 100
USER = 1000


def _logs(engine, user_id: int = USER) -> list[ActivityLog]:
    with Session(engine) as session:
        return list(session.scalars(
            select(ActivityLog)
            .where(ActivityLog.user_id == user_id)
            .order_by(ActivityLog.activity_date)
        ).all())


class TestRecordActivity:
    def test_creates_then_increments_daily_row(self, db_engine):
        at = datetime(2026, 5, 4, 10, 15, tzinfo=UTC)
        activity_service.record_activity(db_engine, USER, GUILD, ActivityKind.MESSAGE, at=at)
        activity_service.record_activity(
            db_engine, USER, GUILD, ActivityKind.MESSAGE, at=at + timedelta(minutes=5),
        )

        logs = _logs(db_engine)
        assert len(logs) == 1
        assert logs[0].activity_date == date(2026, 5, 4)
        assert logs[0].message_count == 2
        assert logs[0].message_hours == {"10": 2}

    def test_day_is_resolved_in_utc(self, db_engine):
        # 23:30 in UTC-5 is already the next UTC day
        at = datetime(2026, 5, 4, 23, 30, tzinfo=timezone(timedelta(hours=-5)))
        day = activity_service.record_activity(db_engine, USER, GUILD, ActivityKind.COMMAND, at=at)
        assert day == date(2026, 5, 5)
        assert _logs(db_engine)[0].commands_run == 1

    def test_rejects_non_positive_amount(self, db_engine):
        with pytest.raises(ValueError):
            activity_service.record_activity(db_engine, USER, GUILD, ActivityKind.MESSAGE, 0)

    def test_unique_commands_are_deduplicated(self, db_engine):
        at = datetime(2026, 5, 4, 12, 0, tzinfo=UTC)
        for name in ("streak", "leaderboard", "streak"):
            activity_service.record_activity(
                db_engine, USER, GUILD, ActivityKind.COMMAND, at=at, command_name=name,
            )
        log = _logs(db_engine)[0]
        assert log.commands_run == 3
        assert sorted(log.unique_commands) == ["leaderboard", "streak"]

    def test_midnight_messages(self, db_engine):
        for at in (
            datetime(2026, 5, 4, 23, 59, 30, tzinfo=UTC),
            datetime(2026, 5, 5, 0, 0, 10, tzinfo=UTC),
            datetime(2026, 5, 5, 0, 1, tzinfo=UTC),
        ):
            activity_service.record_activity(db_engine, USER, GUILD, ActivityKind.MESSAGE, at=at)
        assert activity_service.get_user_totals(db_engine, USER, GUILD).midnight_messages == 2

    def test_record_event(self, db_engine):
        event = ActivityEvent(
            user_id=USER, guild_id=GUILD, kind=ActivityKind.REACTION,
            timestamp=datetime(2026, 5, 4, 8, 0, tzinfo=UTC),
        )
        activity_service.record_event(db_engine, event)
        assert _logs(db_engine)[0].reactions_given == 1


class TestVoiceSessions:
    def test_session_split_across_midnight(self, db_engine):
        start = datetime(2026, 5, 4, 23, 20, tzinfo=UTC)
        end = datetime(2026, 5, 5, 1, 5, tzinfo=UTC)

        total = activity_service.record_voice_session(db_engine, USER, GUILD, start, end)

        assert total == 105
        first, second = _logs(db_engine)
        assert first.activity_date == date(2026, 5, 4)
        assert first.voice_minutes == 40
        assert second.activity_date == date(2026, 5, 5)
        assert second.voice_minutes == 65
        assert second.voice_hours == {"0": 60, "1": 5}
        assert second.longest_voice_session == 105

    def test_split_minutes_add_up(self, db_engine):
        start = datetime(2026, 5, 4, 9, 59, 40, tzinfo=UTC)
        end = datetime(2026, 5, 4, 11, 0, 20, tzinfo=UTC)
        total = activity_service.record_voice_session(db_engine, USER, GUILD, start, end)
        assert total == 60
        assert _logs(db_engine)[0].voice_minutes == 60

    def test_short_session_records_nothing(self, db_engine):
        start = datetime(2026, 5, 4, 9, 0, tzinfo=UTC)
        assert activity_service.record_voice_session(
            db_engine, USER, GUILD, start, start + timedelta(seconds=40),
        ) == 0
        assert _logs(db_engine) == []


class TestTotals:
    def test_unknown_user_is_all_zero(self, db_engine):
        totals = activity_service.get_user_totals(db_engine, 42, GUILD)
        assert totals.messages == 0
        assert totals.active_days == 0
        assert totals.social == {}

    def test_sums_across_days_and_scopes_guild(self, db_engine):
        for day in (4, 5, 6):
            at = datetime(2026, 5, day, 12, 0, tzinfo=UTC)
            activity_service.record_activity(db_engine, USER, GUILD, ActivityKind.MESSAGE, 10, at=at)
            activity_service.record_activity(db_engine, USER, GUILD, ActivityKind.VOICE_MINUTES, 50, at=at)
        activity_service.record_activity(
            db_engine, USER, 200, ActivityKind.MESSAGE, 99, at=datetime(2026, 5, 4, tzinfo=UTC),
        )

        totals = activity_service.get_user_totals(db_engine, USER, GUILD)
        assert totals.messages == 30
        assert totals.voice_minutes == 150
        assert totals.voice_hours == 2
        assert totals.active_days == 3
        assert totals.as_stats()["voice_hours"] == 2

    def test_social_counters(self, db_engine):
        assert activity_service.increment_social_counter(db_engine, USER, GUILD, "bookmarks_saved") == 1
        assert activity_service.increment_social_counter(db_engine, USER, GUILD, "bookmarks_saved", 4) == 5

        totals = activity_service.get_user_totals(db_engine, USER, GUILD)
        assert totals.social == {"bookmarks_saved": 5}
        assert totals.as_stats()["bookmarks_saved"] == 5
        assert totals.as_stats()["media_saved"] == 0

    def test_unknown_social_counter(self, db_engine):
        with pytest.raises(ValueError):
            activity_service.increment_social_counter(db_engine, USER, GUILD, "karma")

    def test_window_totals(self, db_engine):
        for day in (1, 2, 3, 10):
            activity_service.record_activity(
                db_engine, USER, GUILD, ActivityKind.REACTION, 5,
                at=datetime(2026, 2, day, 12, 0, tzinfo=UTC),
            )
        with Session(db_engine) as session:
            totals = activity_service.window_totals(
                session, USER, GUILD, date(2026, 2, 1), date(2026, 2, 3),
            )
        assert totals["active_days"] == 3
        assert totals["reactions"] == 15

    def test_first_in_guild(self, db_engine):
        activity_service.record_activity(
            db_engine, 2, GUILD, ActivityKind.MESSAGE, at=datetime(2026, 5, 4, 9, 0, tzinfo=UTC),
        )
        activity_service.record_activity(
            db_engine, 1, GUILD, ActivityKind.MESSAGE, at=datetime(2026, 5, 4, 10, 0, tzinfo=UTC),
        )
        with Session(db_engine) as session:
            assert activity_service.first_in_guild(session, GUILD, "first_message_at") == 2
            assert activity_service.first_in_guild(session, GUILD, "first_voice_at") is None

    def test_history_counts_active_hours(self, db_engine):
        for hour in (1, 2, 2, 5):
            activity_service.record_activity(
                db_engine, USER, GUILD, ActivityKind.MESSAGE,
                at=datetime(2026, 5, 4, hour, 0, tzinfo=UTC),
            )
        with Session(db_engine) as session:
            history = activity_service.load_history(session, USER, GUILD)
        assert history.daily_active_hours == {date(2026, 5, 4): 3}
        assert history.daily_messages == {date(2026, 5, 4): 4}
        assert history.message_hours == {1: 1, 2: 2, 5: 1}
