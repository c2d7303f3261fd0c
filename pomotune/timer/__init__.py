"""Timer package."""

from .engine import (
    TimerEngine,
    TimerPhase,
    SessionType,
    TimerSettings,
    TimerData,
    CompletedSession,
    DEFAULT_TIMER_SETTINGS,
    SESSION_LABELS,
    TICK_INTERVAL_MS,
    format_time,
)

__all__ = [
    "TimerEngine",
    "TimerPhase",
    "SessionType",
    "TimerSettings",
    "TimerData",
    "CompletedSession",
    "DEFAULT_TIMER_SETTINGS",
    "SESSION_LABELS",
    "TICK_INTERVAL_MS",
    "format_time",
]
