"""Database package."""

from .db import configure_engine, get_session, init_db
from .models import TaskSession, UserStats

__all__ = ["configure_engine", "get_session", "init_db", "TaskSession", "UserStats"]
