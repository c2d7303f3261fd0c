"""Session history and lifetime statistics.

``SessionRecorder`` listens to :attr:`TimerEngine.session_completed` and
writes one :class:`TaskSession` row per ended session.  Skipped sessions
are kept in the log (``completed=False, skipped=True``) but only
naturally completed ones count towards :class:`UserStats`.

Streak rules
------------
- first completed session ever:        streak = 1
- another session the same day:        unchanged
- first session on the following day:  streak + 1
- any longer gap:                      streak = 1

The log keeps the newest :data:`MAX_HISTORY` rows.
"""

from __future__ import annotations

import logging
from datetime import date, datetime

from PyQt6.QtCore import QObject, pyqtSignal
from sqlalchemy.exc import SQLAlchemyError

from .database.db import get_session
from .database.models import TaskSession, UserStats
from .timer.engine import CompletedSession, SessionType, TimerEngine

LOGGER = logging.getLogger(__name__)

MAX_HISTORY = 100


def next_streak(current: int, last: date | None, today: date) -> int:
    """Streak length after a completed session on *today*."""
    if last is None:
        return 1
    gap = (today - last).days
    if gap <= 0:
        return max(current, 1)
    if gap == 1:
        return current + 1
    return 1


def _stats_dict(stats: UserStats) -> dict:
    return {
        "total_focus_minutes": stats.total_focus_minutes,
        "total_sessions": stats.total_sessions,
        "completed_sessions": stats.completed_sessions,
        "streak_days": stats.streak_days,
        "last_session_date": stats.last_session_date,
    }


class SessionRecorder(QObject):
    """Persists finished sessions from a :class:`TimerEngine`.

    Signals
    -------
    stats_updated(data: dict)
        Emitted after a completed session changed :class:`UserStats`.
        Keys mirror the model columns.
    """

    stats_updated = pyqtSignal(object)

    def __init__(
        self,
        engine: TimerEngine | None = None,
        parent: QObject | None = None,
    ) -> None:
        super().__init__(parent)
        if engine is not None:
            self.attach(engine)

    def attach(self, engine: TimerEngine) -> None:
        engine.session_completed.connect(self._on_session_completed)

    # ── slot ──────────────────────────────────────────────────────────

    def _on_session_completed(self, session: CompletedSession) -> None:
        try:
            self.record(session)
        except SQLAlchemyError:
            LOGGER.exception("Failed to record %s session", session.session_type.value)

    # ── main entry point ──────────────────────────────────────────────

    def record(self, session: CompletedSession) -> int:
        """Store *session* and return the new row id."""
        completed = not session.skipped
        focused_minutes = 0
        if session.session_type == SessionType.FOCUS:
            focused_minutes = session.elapsed_seconds // 60

        with get_session() as db:
            row = TaskSession(
                name=session.task_name,
                session_type=session.session_type.value,
                focused_minutes=focused_minutes,
                completed=completed,
                skipped=session.skipped,
                created_at=session.started_at or session.ended_at,
                completed_at=session.ended_at if completed else None,
            )
            db.add(row)
            db.flush()
            row_id = row.id

            stale = (
                db.query(TaskSession.id)
                .order_by(TaskSession.created_at.desc(), TaskSession.id.desc())
                .offset(MAX_HISTORY)
                .all()
            )
            if stale:
                db.query(TaskSession).filter(
                    TaskSession.id.in_([r.id for r in stale])
                ).delete(synchronize_session=False)

            stats_data = None
            if completed:
                stats = self._stats_row(db)
                stats.total_sessions += 1
                stats.completed_sessions += 1
                stats.total_focus_minutes += focused_minutes
                today = session.ended_at.date()
                stats.streak_days = next_streak(
                    stats.streak_days, stats.last_session_date, today,
                )
                stats.last_session_date = today
                stats_data = _stats_dict(stats)

        LOGGER.debug(
            "Recorded %s session #%d (%s)",
            session.session_type.value, row_id,
            "skipped" if session.skipped else "completed",
        )
        if stats_data is not None:
            self.stats_updated.emit(stats_data)
        return row_id

    # ── queries ───────────────────────────────────────────────────────

    @staticmethod
    def _stats_row(db) -> UserStats:
        stats = db.query(UserStats).first()
        if stats is None:
            stats = UserStats()
            db.add(stats)
            db.flush()
        return stats

    def load_stats(self) -> dict:
        with get_session() as db:
            return _stats_dict(self._stats_row(db))

    def completed_sessions(self) -> list[TaskSession]:
        with get_session() as db:
            return (
                db.query(TaskSession)
                .filter(TaskSession.completed.is_(True))
                .order_by(TaskSession.created_at.desc(), TaskSession.id.desc())
                .all()
            )

    def sessions_between(self, start: datetime, end: datetime) -> list[TaskSession]:
        """Sessions created within ``[start, end]``, newest first."""
        with get_session() as db:
            return (
                db.query(TaskSession)
                .filter(TaskSession.created_at >= start)
                .filter(TaskSession.created_at <= end)
                .order_by(TaskSession.created_at.desc(), TaskSession.id.desc())
                .all()
            )

    def recent_task_names(self, limit: int = 10) -> list[str]:
        """Distinct non-blank task names, most recent first."""
        names: list[str] = []
        with get_session() as db:
            rows = (
                db.query(TaskSession.name)
                .filter(TaskSession.name.is_not(None))
                .order_by(TaskSession.created_at.desc(), TaskSession.id.desc())
                .all()
            )
        for (name,) in rows:
            if name.strip() and name not in names:
                names.append(name)
                if len(names) >= limit:
                    break
        return names

    def delete_session(self, session_id: int) -> bool:
        with get_session() as db:
            row = db.get(TaskSession, session_id)
            if row is None:
                return False
            db.delete(row)
        return True
