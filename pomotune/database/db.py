"""Database connection and session management.

The history database is SQLite at ``APP_SUPPORT_DIR/pomotune.db``.  The
engine is created on first use; tests swap it for an in-memory one with
:func:`configure_engine`.
"""

from contextlib import contextmanager

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session as OrmSession

from ..settings import APP_SUPPORT_DIR
from .models import Base, UserStats

DB_PATH = APP_SUPPORT_DIR / "pomotune.db"

_engine = None
_SessionFactory = None


def _make_engine(url: str):
    return create_engine(url, connect_args={"check_same_thread": False}, echo=False)


def _get_engine():
    global _engine
    if _engine is None:
        DB_PATH.parent.mkdir(parents=True, exist_ok=True)
        _engine = _make_engine(f"sqlite:///{DB_PATH}")
    return _engine


def _get_session_factory():
    global _SessionFactory
    if _SessionFactory is None:
        _SessionFactory = sessionmaker(bind=_get_engine(), expire_on_commit=False)
    return _SessionFactory


def configure_engine(url: str) -> None:
    """Point the history database at *url* (e.g. ``sqlite:///:memory:``)."""
    global _engine, _SessionFactory
    _SessionFactory = None
    _engine = _make_engine(url)


def init_db() -> None:
    """Create the tables and the single stats row."""
    Base.metadata.create_all(_get_engine())
    with get_session() as session:
        if session.query(UserStats).first() is None:
            session.add(UserStats())


@contextmanager
def get_session():
    """Yield a SQLAlchemy session; commit on success, rollback on error."""
    session: OrmSession = _get_session_factory()()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
