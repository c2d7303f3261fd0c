"""SQLAlchemy ORM models for Pomotune."""

from datetime import datetime
from sqlalchemy import (
    Column, Integer, String, Boolean, DateTime, Date
)
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    pass


class TaskSession(Base):
    """One ended Pomodoro session (focus or break), completed or skipped."""

    __tablename__ = "task_sessions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=True)
    session_type = Column(String(20), nullable=False, default="focus")  # focus | short_break | long_break
    focused_minutes = Column(Integer, nullable=False, default=0)
    completed = Column(Boolean, nullable=False, default=False)
    skipped = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, nullable=False, default=datetime.now)
    completed_at = Column(DateTime, nullable=True)

    def __repr__(self) -> str:
        return (
            f"<TaskSession id={self.id} type={self.session_type} "
            f"completed={self.completed}>"
        )


class UserStats(Base):
    """Single-row table with lifetime totals and the daily streak."""

    __tablename__ = "user_stats"

    id = Column(Integer, primary_key=True, autoincrement=True)
    total_focus_minutes = Column(Integer, nullable=False, default=0)
    total_sessions = Column(Integer, nullable=False, default=0)
    completed_sessions = Column(Integer, nullable=False, default=0)
    streak_days = Column(Integer, nullable=False, default=0)
    last_session_date = Column(Date, nullable=True)

    def __repr__(self) -> str:
        return (
            f"<UserStats sessions={self.completed_sessions} "
            f"focus={self.total_focus_minutes}m streak={self.streak_days}>"
        )
