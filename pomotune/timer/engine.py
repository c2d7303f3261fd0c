"""Timer state machine for Pomotune.

Phases
------
IDLE      Session loaded, waiting for the user to start.
RUNNING   Counting down, one tick per second.
PAUSED    Countdown frozen at its current value.

The session type (focus, short break, long break) is orthogonal to the
phase and only changes on a completed or skipped session.

Transitions
-----------
IDLE    → RUNNING                 (start)
RUNNING → PAUSED                  (pause)
PAUSED  → RUNNING                 (resume)
Any     → IDLE                    (stop / reset)
Any     → IDLE, next session      (skip, or the countdown reaching 0)

Cycle bookkeeping
-----------------
Every finished focus session bumps ``sessions_completed`` and
``current_cycle``.  Once ``current_cycle`` reaches
``sessions_until_long_break`` the next break is a long one and the cycle
counter drops back to 0.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import datetime
from enum import Enum
from typing import Callable

from PyQt6.QtCore import QObject, QTimer, pyqtSignal

LOGGER = logging.getLogger(__name__)


# ── enums ─────────────────────────────────────────────────────────────────


class TimerPhase(Enum):
    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"


class SessionType(Enum):
    FOCUS = "focus"
    SHORT_BREAK = "short_break"
    LONG_BREAK = "long_break"


# ── constants ─────────────────────────────────────────────────────────────

TICK_INTERVAL_MS = 1000

SESSION_LABELS: dict[SessionType, str] = {
    SessionType.FOCUS: "Focus Time",
    SessionType.SHORT_BREAK: "Short Break",
    SessionType.LONG_BREAK: "Long Break",
}


# ── value types ───────────────────────────────────────────────────────────


@dataclass(frozen=True)
class TimerSettings:
    """Duration table (minutes) and long-break threshold."""

    focus_duration: int = 25
    short_break_duration: int = 5
    long_break_duration: int = 15
    sessions_until_long_break: int = 4

    def seconds_for(self, session_type: SessionType) -> int:
        minutes = {
            SessionType.FOCUS: self.focus_duration,
            SessionType.SHORT_BREAK: self.short_break_duration,
            SessionType.LONG_BREAK: self.long_break_duration,
        }[session_type]
        return minutes * 60


DEFAULT_TIMER_SETTINGS = TimerSettings()


@dataclass(frozen=True)
class TimerData:
    """Read-only snapshot of the engine's mutable state."""

    phase: TimerPhase
    session_type: SessionType
    time_remaining: int
    current_task: str | None
    sessions_completed: int
    current_cycle: int

    def to_dict(self) -> dict:
        return {
            "phase": self.phase.value,
            "session_type": self.session_type.value,
            "time_remaining": self.time_remaining,
            "current_task": self.current_task,
            "sessions_completed": self.sessions_completed,
            "current_cycle": self.current_cycle,
        }

    @classmethod
    def from_dict(cls, data: dict) -> TimerData:
        return cls(
            phase=TimerPhase(data["phase"]),
            session_type=SessionType(data["session_type"]),
            time_remaining=int(data["time_remaining"]),
            current_task=data.get("current_task"),
            sessions_completed=int(data.get("sessions_completed", 0)),
            current_cycle=int(data.get("current_cycle", 0)),
        )


@dataclass(frozen=True)
class CompletedSession:
    """Payload of :attr:`TimerEngine.session_completed`."""

    session_type: SessionType
    task_name: str | None
    skipped: bool
    duration_seconds: int
    elapsed_seconds: int
    started_at: datetime | None
    ended_at: datetime


def format_time(seconds: int) -> str:
    """``125`` → ``"02:05"``."""
    minutes, secs = divmod(max(0, seconds), 60)
    return f"{minutes:02d}:{secs:02d}"


# ── engine ────────────────────────────────────────────────────────────────


class TimerEngine(QObject):
    """Qt-based Pomodoro engine: session state, duration table and the
    one-second countdown.

    Signals
    -------
    tick(remaining_seconds: int)
        Emitted on every countdown step while RUNNING.
    phase_changed(new_phase: TimerPhase)
        Emitted on every phase transition, and after a completion even
        when the phase was already IDLE so listeners pick up the new
        session type.
    session_completed(session: CompletedSession)
        Emitted once per finished session, natural or skipped.

    Callbacks
    ---------
    ``on_session_complete(session_type, task_name)`` and
    ``on_tick(remaining_seconds)`` are plain callables invoked after the
    matching signal.  They run after the state change has committed; an
    exception raised from one is logged and does not undo the transition.
    """

    tick = pyqtSignal(int)
    phase_changed = pyqtSignal(object)
    session_completed = pyqtSignal(object)

    def __init__(
        self,
        settings: TimerSettings | None = None,
        parent: QObject | None = None,
        *,
        on_session_complete: Callable[[SessionType, str | None], None] | None = None,
        on_tick: Callable[[int], None] | None = None,
        retain_task: bool = False,
        interval_ms: int = TICK_INTERVAL_MS,
    ) -> None:
        super().__init__(parent)

        # ── configuration ─────────────────────────────────────────────
        self._settings: TimerSettings = settings or DEFAULT_TIMER_SETTINGS
        self._retain_task: bool = retain_task
        self._complete_callback = on_session_complete
        self._tick_callback = on_tick

        # ── session state ─────────────────────────────────────────────
        self._phase: TimerPhase = TimerPhase.IDLE
        self._session_type: SessionType = SessionType.FOCUS
        self._remaining: int = self.duration_for(SessionType.FOCUS)
        self._current_task: str | None = None
        self._retained_task: str | None = None
        self._sessions_completed: int = 0
        self._current_cycle: int = 0

        # ── per-session bookkeeping ───────────────────────────────────
        self._started_at: datetime | None = None
        self._elapsed: int = 0

        # ── Qt timer ──────────────────────────────────────────────────
        self._qt_timer = QTimer(self)
        self._qt_timer.setInterval(interval_ms)
        self._qt_timer.timeout.connect(self._on_tick)

    # ══════════════════════════════════════════════════════════════════
    #  PUBLIC PROPERTIES
    # ══════════════════════════════════════════════════════════════════

    @property
    def phase(self) -> TimerPhase:
        return self._phase

    @property
    def session_type(self) -> SessionType:
        """The session loaded now (running, paused, or about to start)."""
        return self._session_type

    @property
    def remaining(self) -> int:
        """Seconds left on the clock."""
        return self._remaining

    @property
    def current_task(self) -> str | None:
        return self._current_task

    @property
    def sessions_completed(self) -> int:
        return self._sessions_completed

    @property
    def current_cycle(self) -> int:
        """Focus sessions finished since the last long break."""
        return self._current_cycle

    @property
    def settings(self) -> TimerSettings:
        return self._settings

    @property
    def retain_task(self) -> bool:
        return self._retain_task

    @retain_task.setter
    def retain_task(self, value: bool) -> None:
        self._retain_task = value
        if not value:
            self._retained_task = None

    @property
    def started_at(self) -> datetime | None:
        return self._started_at

    @property
    def tick_active(self) -> bool:
        """True while a tick registration is live."""
        return self._qt_timer.isActive()

    @property
    def is_running(self) -> bool:
        return self._phase == TimerPhase.RUNNING

    @property
    def is_paused(self) -> bool:
        return self._phase == TimerPhase.PAUSED

    @property
    def is_idle(self) -> bool:
        return self._phase == TimerPhase.IDLE

    @property
    def timer_data(self) -> TimerData:
        return TimerData(
            phase=self._phase,
            session_type=self._session_type,
            time_remaining=self._remaining,
            current_task=self._current_task,
            sessions_completed=self._sessions_completed,
            current_cycle=self._current_cycle,
        )

    # ── derived views ─────────────────────────────────────────────────

    @property
    def formatted_time(self) -> str:
        return format_time(self._remaining)

    @property
    def session_label(self) -> str:
        return SESSION_LABELS[self._session_type]

    @property
    def cycle_progress(self) -> str:
        return (
            f"{self._current_cycle + 1}/"
            f"{self._settings.sessions_until_long_break}"
        )

    @property
    def progress(self) -> float:
        """0.0 → 1.0 progress through the current session."""
        total = self.duration_for(self._session_type)
        if total <= 0:
            return 0.0
        elapsed = total - self._remaining
        return max(0.0, min(1.0, elapsed / total))

    @property
    def progress_percent(self) -> float:
        return self.progress * 100.0

    def duration_for(self, session_type: SessionType) -> int:
        """Full length in seconds, read from the live settings."""
        return self._settings.seconds_for(session_type)

    # ══════════════════════════════════════════════════════════════════
    #  CONTROLS
    # ══════════════════════════════════════════════════════════════════

    def start(self, task_name: str | None = None) -> None:
        """Start the loaded session.  Only valid from IDLE.

        A focus session takes *task_name* when one is given and keeps its
        current task otherwise.  Breaks never carry a task.
        """
        if self._phase != TimerPhase.IDLE:
            return
        if self._session_type == SessionType.FOCUS:
            if task_name:
                self._current_task = task_name
        else:
            self._current_task = None
        if self._started_at is None:
            self._started_at = datetime.now()
        self._schedule()
        self._set_phase(TimerPhase.RUNNING)

    def pause(self) -> None:
        if self._phase != TimerPhase.RUNNING:
            return
        self._cancel()
        self._set_phase(TimerPhase.PAUSED)

    def resume(self) -> None:
        if self._phase != TimerPhase.PAUSED:
            return
        self._schedule()
        self._set_phase(TimerPhase.RUNNING)

    def stop(self) -> None:
        """Abandon the current session and reload it at full length."""
        self._cancel()
        self._remaining = self.duration_for(self._session_type)
        self._current_task = None
        self._started_at = None
        self._elapsed = 0
        self._set_phase(TimerPhase.IDLE)

    def reset(self) -> None:
        """Back to a fresh focus session with zeroed counters."""
        self._cancel()
        self._session_type = SessionType.FOCUS
        self._remaining = self.duration_for(SessionType.FOCUS)
        self._current_task = None
        self._retained_task = None
        self._sessions_completed = 0
        self._current_cycle = 0
        self._started_at = None
        self._elapsed = 0
        self._set_phase(TimerPhase.IDLE)

    def skip(self) -> None:
        """Finish the current session now.  Works from any phase."""
        self._cancel()
        self._complete_session(skipped=True)

    def update_settings(self, **changes) -> None:
        """Merge *changes* into the current :class:`TimerSettings`."""
        self.set_settings(replace(self._settings, **changes))

    def set_settings(self, settings: TimerSettings) -> None:
        """Swap the duration table.

        While IDLE the loaded session picks up its new length right away.
        A running or paused countdown keeps going from where it is.
        """
        self._settings = settings
        if self._phase == TimerPhase.IDLE:
            self._remaining = self.duration_for(self._session_type)

    def restore(self, data: TimerData) -> None:
        """Load a snapshot taken by :attr:`timer_data`.

        A snapshot of a live countdown comes back PAUSED; an IDLE one comes
        back at full length.
        """
        self._cancel()
        self._session_type = data.session_type
        self._sessions_completed = max(0, data.sessions_completed)
        self._current_cycle = max(0, data.current_cycle)
        self._current_task = (
            data.current_task if data.session_type == SessionType.FOCUS else None
        )
        self._started_at = None
        self._elapsed = 0

        total = self.duration_for(data.session_type)
        remaining = max(0, min(total, data.time_remaining))
        if data.phase == TimerPhase.IDLE or remaining == 0:
            self._remaining = total
            self._set_phase(TimerPhase.IDLE)
        else:
            self._remaining = remaining
            self._elapsed = total - remaining
            self._set_phase(TimerPhase.PAUSED)

    # ══════════════════════════════════════════════════════════════════
    #  INTERNAL — timer mechanics
    # ══════════════════════════════════════════════════════════════════

    def _schedule(self) -> None:
        # Never two live registrations: stop before (re)starting.
        self._qt_timer.stop()
        self._qt_timer.start()

    def _cancel(self) -> None:
        self._qt_timer.stop()

    def _on_tick(self) -> None:
        if self._phase != TimerPhase.RUNNING:
            return
        self._remaining = max(0, self._remaining - 1)
        self._elapsed += 1
        self.tick.emit(self._remaining)
        if self._tick_callback is not None:
            self._notify(self._tick_callback, self._remaining)

        if self._remaining <= 0:
            self._cancel()
            self._complete_session(skipped=False)

    def _complete_session(self, *, skipped: bool) -> None:
        prev_type = self._session_type
        prev_task = self._current_task
        record = CompletedSession(
            session_type=prev_type,
            task_name=prev_task,
            skipped=skipped,
            duration_seconds=self.duration_for(prev_type),
            elapsed_seconds=self._elapsed,
            started_at=self._started_at,
            ended_at=datetime.now(),
        )

        # ── counters ──────────────────────────────────────────────────
        if prev_type == SessionType.FOCUS:
            self._sessions_completed += 1
            self._current_cycle += 1
            if self._retain_task:
                self._retained_task = prev_task

        # ── next session ──────────────────────────────────────────────
        if prev_type == SessionType.FOCUS:
            if self._current_cycle >= self._settings.sessions_until_long_break:
                next_type = SessionType.LONG_BREAK
                self._current_cycle = 0
            else:
                next_type = SessionType.SHORT_BREAK
        else:
            next_type = SessionType.FOCUS

        self._session_type = next_type
        self._remaining = self.duration_for(next_type)
        if next_type == SessionType.FOCUS and self._retain_task:
            self._current_task = self._retained_task
        else:
            self._current_task = None
        self._started_at = None
        self._elapsed = 0

        LOGGER.debug(
            "%s %s → %s (cycle %d, total %d)",
            "skipped" if skipped else "completed",
            prev_type.value, next_type.value,
            self._current_cycle, self._sessions_completed,
        )

        # ── notify ────────────────────────────────────────────────────
        self._set_phase(TimerPhase.IDLE)
        self.session_completed.emit(record)
        if self._complete_callback is not None:
            self._notify(self._complete_callback, prev_type, prev_task)

    def _notify(self, callback: Callable, *args) -> None:
        try:
            callback(*args)
        except Exception:
            LOGGER.exception("Timer callback %r failed", callback)

    def _set_phase(self, new_phase: TimerPhase) -> None:
        self._phase = new_phase
        self.phase_changed.emit(new_phase)
