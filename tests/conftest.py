"""Shared pytest fixtures for Pomotune tests."""

import sys
import pytest

from PyQt6.QtCore import QCoreApplication

from pomotune.database.db import configure_engine, init_db
from pomotune.timer.engine import TimerEngine, TimerSettings


@pytest.fixture(scope="session")
def qapp():
    """A single QCoreApplication instance shared across the entire test run."""
    app = QCoreApplication.instance() or QCoreApplication(sys.argv)
    yield app


@pytest.fixture(autouse=True)
def test_db():
    """Point every test at a fresh in-memory SQLite database."""
    configure_engine("sqlite:///:memory:")
    init_db()
    yield


@pytest.fixture(autouse=True)
def app_dir(tmp_path, monkeypatch):
    """Keep settings and snapshots out of the real home directory."""
    monkeypatch.setattr("pomotune.settings.APP_SUPPORT_DIR", tmp_path)
    monkeypatch.setattr("pomotune.settings.SETTINGS_PATH", tmp_path / "settings.json")
    monkeypatch.setattr("pomotune.settings.TIMER_STATE_PATH", tmp_path / "timer_state.json")
    monkeypatch.setattr("pomotune.settings.CURRENT_TASK_PATH", tmp_path / "current_task.json")
    return tmp_path


@pytest.fixture
def engine(qapp):
    """Fresh TimerEngine with the default 25/5/15 x4 table."""
    return TimerEngine()


@pytest.fixture
def short_engine(qapp):
    """One-minute sessions, long break after two focus sessions."""
    return TimerEngine(TimerSettings(
        focus_duration=1,
        short_break_duration=1,
        long_break_duration=2,
        sessions_until_long_break=2,
    ))
