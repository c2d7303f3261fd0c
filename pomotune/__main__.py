"""Run Pomotune in the terminal: python -m pomotune.

The console line plays the part of a window title::

    24:59 - Pomotune | Focus Time 1/4 | Write report

Ctrl+C pauses the countdown, saves a snapshot and exits; the next run
picks the session back up from that snapshot.
"""

from __future__ import annotations

import argparse
import logging
import signal
import sys
from dataclasses import replace
from typing import TextIO

from PyQt6.QtCore import QCoreApplication, QObject, QTimer, pyqtSignal

from .settings import (
    Settings,
    clamp_settings,
    load_settings,
    load_timer_data,
    save_timer_data,
    load_current_task,
    save_current_task,
)
from .timer.engine import SessionType, TimerEngine, TimerPhase

LOGGER = logging.getLogger("pomotune")

NOTIFICATION_MESSAGES: dict[SessionType, str] = {
    SessionType.FOCUS: "Focus session completed! Time for a break.",
    SessionType.SHORT_BREAK: "Short break finished! Ready to focus?",
    SessionType.LONG_BREAK: "Long break finished! Ready for a new cycle?",
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="pomotune",
        description="Pomodoro timer: focus and break intervals in your terminal.",
    )
    parser.add_argument("-t", "--task", help="label for the focus session")
    parser.add_argument("--focus", type=int, metavar="MIN", help="focus length in minutes")
    parser.add_argument("--short", type=int, metavar="MIN", help="short break length in minutes")
    parser.add_argument("--long", type=int, metavar="MIN", help="long break length in minutes")
    parser.add_argument(
        "--rounds", type=int, metavar="N",
        help="focus sessions before a long break",
    )
    parser.add_argument(
        "--sessions", type=int, metavar="N",
        help="with --auto, stop after N focus sessions",
    )
    parser.add_argument(
        "--auto", action="store_true",
        help="start the next session automatically",
    )
    parser.add_argument(
        "--retain-task", action="store_true",
        help="carry the task label into the focus session after a break",
    )
    parser.add_argument("--no-sound", action="store_true", help="disable notification cues")
    parser.add_argument("--no-history", action="store_true", help="do not record sessions")
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    return parser


def apply_overrides(settings: Settings, args: argparse.Namespace) -> Settings:
    """Return *settings* with command-line flags layered on top."""
    changes = {}
    for flag, field_name in (
        ("focus", "focus_duration"),
        ("short", "short_break_duration"),
        ("long", "long_break_duration"),
        ("rounds", "sessions_until_long_break"),
    ):
        value = getattr(args, flag)
        if value is not None:
            changes[field_name] = value
    if args.auto:
        changes["auto_start"] = True
    if args.retain_task:
        changes["retain_task"] = True
    if args.no_sound:
        changes["notification_sounds"] = False
    return clamp_settings(replace(settings, **changes))


class ConsoleRunner(QObject):
    """Wires a :class:`TimerEngine` to the terminal, history and cues.

    Signals
    -------
    finished()
        Emitted when there is nothing left to run.
    """

    finished = pyqtSignal()

    def __init__(
        self,
        settings: Settings,
        parent: QObject | None = None,
        *,
        task: str | None = None,
        sessions: int | None = None,
        history: bool = True,
        stream: TextIO | None = None,
    ) -> None:
        super().__init__(parent)
        self._settings = settings
        self._task = task
        self._sessions_goal = sessions
        self._focus_done = 0
        self._stream = stream or sys.stdout

        self.engine = TimerEngine(
            settings.timer_settings(),
            parent=self,
            on_session_complete=self._on_session_complete,
            on_tick=self._render,
            retain_task=settings.retain_task,
        )

        self.recorder = None
        if history:
            from .history import SessionRecorder
            self.recorder = SessionRecorder(self.engine, parent=self)

        self.cues = None
        if settings.notification_sounds:
            from .audio.cues import CuePlayer
            self.cues = CuePlayer(parent=self, volume=settings.volume)

    # ── console line ──────────────────────────────────────────────────

    def title(self) -> str:
        eng = self.engine
        line = (
            f"{eng.formatted_time} - Pomotune | "
            f"{eng.session_label} {eng.cycle_progress}"
        )
        if eng.current_task:
            line += f" | {eng.current_task}"
        return line

    def _render(self, _remaining: int | None = None) -> None:
        self._stream.write("\r" + self.title())
        self._stream.flush()

    def _say(self, message: str) -> None:
        self._stream.write("\n" + message + "\n")
        self._stream.flush()

    # ── lifecycle ─────────────────────────────────────────────────────

    def begin(self, snapshot=None) -> None:
        """Restore *snapshot* if given, then get the clock moving."""
        if snapshot is not None:
            self.engine.restore(snapshot)
        if self._task is None:
            self._task = load_current_task()
        if self.engine.is_paused:
            self.engine.resume()
        else:
            self._start_next()
        self._render()

    def _start_next(self) -> None:
        if self.cues is not None:
            self.cues.play_start()
        self.engine.start(self._task)

    def _on_session_complete(self, session_type: SessionType, task_name: str | None) -> None:
        self._say(NOTIFICATION_MESSAGES[session_type])
        if self.cues is not None:
            self.cues.play_session_transition(session_type)

        if session_type == SessionType.FOCUS:
            self._focus_done += 1
            # The task typed for this run only applies to its first focus.
            self._task = None

        goal_reached = (
            self._sessions_goal is not None
            and self._focus_done >= self._sessions_goal
        )
        if self._settings.auto_start and not goal_reached:
            self._start_next()
            self._render()
        else:
            self.finished.emit()

    def interrupt(self) -> None:
        """Ctrl+C: freeze the clock and finish."""
        if self.engine.is_running:
            self.engine.pause()
            if self.cues is not None:
                self.cues.play_pause()
        self._say("Paused.")
        self.finished.emit()

    def save_state(self) -> bool:
        data = self.engine.timer_data
        if data.current_task:
            save_current_task(data.current_task)
        return save_timer_data(data)


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    settings = apply_overrides(load_settings(), args)
    if not args.no_history:
        from .database.db import init_db
        init_db()
    if args.task:
        save_current_task(args.task)

    app = QCoreApplication.instance() or QCoreApplication(sys.argv[:1])
    app.setApplicationName("Pomotune")
    app.setOrganizationName("Pomotune")

    runner = ConsoleRunner(
        settings,
        task=args.task,
        sessions=args.sessions,
        history=not args.no_history,
    )
    runner.finished.connect(app.quit)
    signal.signal(signal.SIGINT, lambda *_: runner.interrupt())

    # Python only sees SIGINT when control returns to the interpreter.
    wakeup = QTimer()
    wakeup.timeout.connect(lambda: None)
    wakeup.start(200)

    snapshot = load_timer_data()
    if snapshot is not None and snapshot.phase != TimerPhase.IDLE:
        LOGGER.info("Resuming %s session", snapshot.session_type.value)
    runner.begin(snapshot)
    code = app.exec()
    runner.save_state()
    return code


if __name__ == "__main__":
    sys.exit(main())
