"""Tests for session history recording and lifetime statistics."""

from datetime import date, datetime, timedelta

import pytest

from pomotune.database.db import get_session
from pomotune.database.models import TaskSession, UserStats
from pomotune.history import SessionRecorder, MAX_HISTORY, next_streak
from pomotune.timer.engine import CompletedSession, SessionType, TimerEngine

from helpers import SignalCollector, complete_session


@pytest.fixture
def recorder(engine):
    return SessionRecorder(engine)


def _record(session_type=SessionType.FOCUS, *, task=None, skipped=False,
            elapsed=1500, ended_at=None):
    ended_at = ended_at or datetime.now()
    return CompletedSession(
        session_type=session_type,
        task_name=task,
        skipped=skipped,
        duration_seconds=1500,
        elapsed_seconds=elapsed,
        started_at=ended_at - timedelta(seconds=elapsed),
        ended_at=ended_at,
    )


# ═══════════════════════════════════════════════════════════════════════════
#  RECORDING FROM THE ENGINE
# ═══════════════════════════════════════════════════════════════════════════


class TestRecording:

    def test_completed_focus_session_logged(self, engine, recorder):
        engine.start("Write report")
        for _ in range(1500):
            engine._on_tick()

        with get_session() as db:
            rows = db.query(TaskSession).all()
            assert len(rows) == 1
            assert rows[0].session_type == "focus"
            assert rows[0].name == "Write report"
            assert rows[0].completed is True
            assert rows[0].skipped is False
            assert rows[0].focused_minutes == 25
            assert rows[0].completed_at is not None

    def test_skipped_session_logged_but_not_counted(self, engine, recorder):
        engine.start("Write report")
        engine.skip()

        with get_session() as db:
            row = db.query(TaskSession).one()
            assert row.completed is False
            assert row.skipped is True
            assert row.completed_at is None
            stats = db.query(UserStats).one()
            assert stats.completed_sessions == 0
            assert stats.streak_days == 0

    def test_break_sessions_logged_without_focus_minutes(self, engine, recorder):
        engine.start()
        complete_session(engine)
        engine.start()
        for _ in range(300):
            engine._on_tick()

        with get_session() as db:
            rows = db.query(TaskSession).order_by(TaskSession.id).all()
            assert [r.session_type for r in rows] == ["focus", "short_break"]
            assert rows[1].focused_minutes == 0
            stats = db.query(UserStats).one()
            assert stats.completed_sessions == 2
            assert stats.total_sessions == 2

    def test_stats_updated_signal(self, engine, recorder):
        c = SignalCollector()
        recorder.stats_updated.connect(c)

        engine.start()
        for _ in range(1500):
            engine._on_tick()

        assert c.last["completed_sessions"] == 1
        assert c.last["total_focus_minutes"] == 25
        assert c.last["streak_days"] == 1

    def test_no_signal_for_skips(self, engine, recorder):
        c = SignalCollector()
        recorder.stats_updated.connect(c)
        engine.skip()
        assert len(c) == 0

    def test_database_failure_leaves_engine_alone(self, engine, recorder, monkeypatch, caplog):
        from sqlalchemy.exc import OperationalError

        def broken(_session):
            raise OperationalError("INSERT", {}, Exception("disk full"))

        monkeypatch.setattr(recorder, "record", broken)
        engine.start()
        engine.skip()
        assert engine.session_type == SessionType.SHORT_BREAK
        assert "Failed to record" in caplog.text


# ═══════════════════════════════════════════════════════════════════════════
#  STREAKS
# ═══════════════════════════════════════════════════════════════════════════


class TestStreaks:

    @pytest.mark.parametrize("current, last, expected", [
        (0, None, 1),
        (3, date(2024, 5, 10), 3),     # same day
        (3, date(2024, 5, 9), 4),      # yesterday
        (9, date(2024, 5, 1), 1),      # gap
    ])
    def test_next_streak(self, current, last, expected):
        assert next_streak(current, last, date(2024, 5, 10)) == expected

    def test_consecutive_days_extend_streak(self, recorder):
        with get_session() as db:
            stats = db.query(UserStats).one()
            stats.last_session_date = date.today() - timedelta(days=1)
            stats.streak_days = 5

        recorder.record(_record())
        assert recorder.load_stats()["streak_days"] == 6

    def test_gap_resets_streak(self, recorder):
        with get_session() as db:
            stats = db.query(UserStats).one()
            stats.last_session_date = date.today() - timedelta(days=4)
            stats.streak_days = 10

        recorder.record(_record())
        assert recorder.load_stats()["streak_days"] == 1

    def test_same_day_keeps_streak(self, recorder):
        recorder.record(_record())
        recorder.record(_record(SessionType.SHORT_BREAK, elapsed=300))
        recorder.record(_record())
        stats = recorder.load_stats()
        assert stats["streak_days"] == 1
        assert stats["total_focus_minutes"] == 50
        assert stats["last_session_date"] == date.today()


# ═══════════════════════════════════════════════════════════════════════════
#  QUERIES
# ═══════════════════════════════════════════════════════════════════════════


class TestQueries:

    def test_history_trimmed(self, recorder):
        base = datetime(2024, 1, 1, 9, 0)
        for i in range(MAX_HISTORY + 5):
            recorder.record(_record(task=f"t{i}", ended_at=base + timedelta(hours=i)))

        with get_session() as db:
            assert db.query(TaskSession).count() == MAX_HISTORY
            names = {r.name for r in db.query(TaskSession).all()}
        assert "t0" not in names
        assert f"t{MAX_HISTORY + 4}" in names

    def test_recent_task_names(self, recorder):
        base = datetime(2024, 1, 1, 9, 0)
        for i, name in enumerate(["Read", "Write", None, "Read", "  ", "Email"]):
            recorder.record(_record(task=name, ended_at=base + timedelta(hours=i)))

        assert recorder.recent_task_names() == ["Email", "Read", "Write"]
        assert recorder.recent_task_names(limit=2) == ["Email", "Read"]

    def test_completed_sessions(self, recorder):
        recorder.record(_record(task="done"))
        recorder.record(_record(task="skipped", skipped=True))
        assert [s.name for s in recorder.completed_sessions()] == ["done"]

    def test_sessions_between(self, recorder):
        base = datetime(2024, 3, 1, 9, 0)
        for day in range(5):
            recorder.record(_record(task=f"d{day}", ended_at=base + timedelta(days=day)))

        found = recorder.sessions_between(
            base + timedelta(days=1, hours=-1), base + timedelta(days=2, hours=1),
        )
        assert [s.name for s in found] == ["d2", "d1"]

    def test_delete_session(self, recorder):
        row_id = recorder.record(_record(task="oops"))
        assert recorder.delete_session(row_id) is True
        assert recorder.delete_session(row_id) is False
        assert recorder.completed_sessions() == []
