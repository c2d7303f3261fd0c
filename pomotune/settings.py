"""Application settings with JSON persistence.

Files live under:
    ~/Library/Application Support/Pomotune/

- ``settings.json``      user preferences
- ``timer_state.json``   last :class:`TimerData` snapshot
- ``current_task.json``  task label typed for the next focus session

Usage::

    settings = load_settings()
    settings.volume = 30
    save_settings(settings)

A broken or missing file never stops the app: reads fall back to
defaults and writes report ``False``.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, asdict, fields, replace
from pathlib import Path

from .timer.engine import TimerData, TimerSettings

LOGGER = logging.getLogger(__name__)


APP_SUPPORT_DIR = Path.home() / "Library" / "Application Support" / "Pomotune"
SETTINGS_PATH = APP_SUPPORT_DIR / "settings.json"
TIMER_STATE_PATH = APP_SUPPORT_DIR / "timer_state.json"
CURRENT_TASK_PATH = APP_SUPPORT_DIR / "current_task.json"

# ── limits ───────────────────────────────────────────────────────────────

MIN_DURATION = 1           # minutes
MAX_DURATION = 120
MAX_SESSIONS_UNTIL_LONG_BREAK = 10
MIN_VOLUME = 0
MAX_VOLUME = 100


@dataclass
class Settings:
    """All user-configurable preferences."""

    # ── timer (minutes) ───────────────────────────────────────────────
    focus_duration: int = 25
    short_break_duration: int = 5
    long_break_duration: int = 15
    sessions_until_long_break: int = 4
    retain_task: bool = False
    auto_start: bool = False

    # ── audio ─────────────────────────────────────────────────────────
    notification_sounds: bool = True
    volume: int = 50                       # 0-100

    def timer_settings(self) -> TimerSettings:
        return TimerSettings(
            focus_duration=self.focus_duration,
            short_break_duration=self.short_break_duration,
            long_break_duration=self.long_break_duration,
            sessions_until_long_break=self.sessions_until_long_break,
        )


def _clamp(value: int, low: int, high: int) -> int:
    return max(low, min(high, int(value)))


def clamp_settings(settings: Settings) -> Settings:
    """Pull every numeric field back into its allowed range."""
    return replace(
        settings,
        focus_duration=_clamp(settings.focus_duration, MIN_DURATION, MAX_DURATION),
        short_break_duration=_clamp(
            settings.short_break_duration, MIN_DURATION, MAX_DURATION,
        ),
        long_break_duration=_clamp(
            settings.long_break_duration, MIN_DURATION, MAX_DURATION,
        ),
        sessions_until_long_break=_clamp(
            settings.sessions_until_long_break, 1, MAX_SESSIONS_UNTIL_LONG_BREAK,
        ),
        volume=_clamp(settings.volume, MIN_VOLUME, MAX_VOLUME),
    )


# ── raw JSON helpers ─────────────────────────────────────────────────────


def _read_json(path: Path):
    """Return the decoded file, or ``None`` if absent or unreadable."""
    try:
        if path.exists():
            return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        LOGGER.warning("Could not read %s: %s", path, exc)
    return None


def _write_json(path: Path, data) -> bool:
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(json.dumps(data, indent=2) + "\n", encoding="utf-8")
    except OSError as exc:
        LOGGER.warning("Could not write %s: %s", path, exc)
        return False
    return True


def _remove(path: Path) -> bool:
    try:
        path.unlink(missing_ok=True)
    except OSError as exc:
        LOGGER.warning("Could not remove %s: %s", path, exc)
        return False
    return True


# ── settings ─────────────────────────────────────────────────────────────


def load_settings() -> Settings:
    """Load settings from disk, falling back to defaults."""
    data = _read_json(SETTINGS_PATH)
    if not isinstance(data, dict):
        return Settings()
    # Only use keys that exist in the dataclass
    valid_keys = {f.name for f in fields(Settings)}
    filtered = {k: v for k, v in data.items() if k in valid_keys}
    try:
        return clamp_settings(Settings(**filtered))
    except (TypeError, ValueError) as exc:
        LOGGER.warning("Ignoring malformed settings in %s: %s", SETTINGS_PATH, exc)
        return Settings()


def save_settings(settings: Settings) -> bool:
    """Write settings to disk as JSON."""
    return _write_json(SETTINGS_PATH, asdict(settings))


def update_settings(**changes) -> Settings:
    """Load, merge *changes*, save, and return the merged settings."""
    merged = clamp_settings(replace(load_settings(), **changes))
    save_settings(merged)
    return merged


# ── timer snapshot ───────────────────────────────────────────────────────


def load_timer_data() -> TimerData | None:
    data = _read_json(TIMER_STATE_PATH)
    if not isinstance(data, dict):
        return None
    try:
        return TimerData.from_dict(data)
    except (KeyError, TypeError, ValueError) as exc:
        LOGGER.warning("Ignoring malformed timer state: %s", exc)
        return None


def save_timer_data(timer_data: TimerData) -> bool:
    return _write_json(TIMER_STATE_PATH, timer_data.to_dict())


def clear_timer_data() -> bool:
    return _remove(TIMER_STATE_PATH)


# ── current task ─────────────────────────────────────────────────────────


def load_current_task() -> str | None:
    task = _read_json(CURRENT_TASK_PATH)
    return task if isinstance(task, str) and task.strip() else None


def save_current_task(task_name: str | None) -> bool:
    return _write_json(CURRENT_TASK_PATH, task_name)


def clear_current_task() -> bool:
    return _remove(CURRENT_TASK_PATH)
