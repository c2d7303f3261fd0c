"""Notification cues: numpy synthesis + QSoundEffect playback.

Every cue is a handful of plain sine beeps with a 10 ms attack and an
exponential decay, rendered once to a WAV file and cached on disk.

Cue names
---------
- ``focus_complete``       — double 800 Hz beep (time for a break)
- ``short_break_complete`` — single 1000 Hz beep (back to focus)
- ``long_break_complete``  — ascending 600 → 800 → 1000 Hz
- ``start``                — short 600 Hz blip
- ``pause``                — low 400 Hz blip
"""

from __future__ import annotations

import io
import logging
import wave
from pathlib import Path

import numpy as np

from PyQt6.QtCore import QObject, QUrl
from PyQt6.QtMultimedia import QSoundEffect

from ..settings import APP_SUPPORT_DIR
from ..timer.engine import SessionType

LOGGER = logging.getLogger(__name__)


SOUNDS_DIR = APP_SUPPORT_DIR / "sounds"

CUE_NAMES = (
    "focus_complete",
    "short_break_complete",
    "long_break_complete",
    "start",
    "pause",
)

SESSION_CUES: dict[SessionType, str] = {
    SessionType.FOCUS: "focus_complete",
    SessionType.SHORT_BREAK: "short_break_complete",
    SessionType.LONG_BREAK: "long_break_complete",
}

SAMPLE_RATE = 44100


# ═══════════════════════════════════════════════════════════════════════════
#  WAV SYNTHESIS HELPERS
# ═══════════════════════════════════════════════════════════════════════════


def _beep(freq: float, duration_s: float, gain: float) -> np.ndarray:
    """Sine beep: linear 10 ms ramp up, exponential decay to 0.001."""
    n = int(SAMPLE_RATE * duration_s)
    t = np.arange(n) / SAMPLE_RATE
    tone = np.sin(2 * np.pi * freq * t)

    env = np.geomspace(1.0, 0.001, n)
    attack = min(int(SAMPLE_RATE * 0.01), n)
    if attack > 0:
        env[:attack] = np.linspace(0.0, 1.0, attack)
    return tone * env * gain


def _sequence(beeps: list[tuple[float, np.ndarray]], tail_s: float = 0.05) -> np.ndarray:
    """Mix ``(offset_s, samples)`` pairs onto a single track.

    Beeps may overlap; the mix is summed and clipped later.
    """
    end = max(round(SAMPLE_RATE * offset) + len(s) for offset, s in beeps)
    track = np.zeros(end + round(SAMPLE_RATE * tail_s))
    for offset, samples in beeps:
        start = round(SAMPLE_RATE * offset)
        track[start:start + len(samples)] += samples
    return track


def _to_wav_bytes(samples: np.ndarray) -> bytes:
    """Convert a float64 numpy array (-1..1) to 16-bit PCM WAV bytes."""
    samples = np.clip(samples, -1.0, 1.0)
    int_samples = (samples * 32767).astype(np.int16)

    buf = io.BytesIO()
    with wave.open(buf, "wb") as wf:
        wf.setnchannels(1)
        wf.setsampwidth(2)
        wf.setframerate(SAMPLE_RATE)
        wf.writeframes(int_samples.tobytes())
    return buf.getvalue()


# ═══════════════════════════════════════════════════════════════════════════
#  CUE GENERATORS
# ═══════════════════════════════════════════════════════════════════════════


def _generate_focus_complete() -> bytes:
    """Double beep, 800 Hz, 150 ms each, second one 200 ms later."""
    beep = _beep(800.0, 0.15, 0.6)
    return _to_wav_bytes(_sequence([(0.0, beep), (0.2, beep)]))


def _generate_short_break_complete() -> bytes:
    """Single 1000 Hz beep, 300 ms."""
    return _to_wav_bytes(_sequence([(0.0, _beep(1000.0, 0.3, 0.5))]))


def _generate_long_break_complete() -> bytes:
    """Ascending triple beep, 150 ms apart."""
    notes = [600.0, 800.0, 1000.0]
    beeps = [(i * 0.15, _beep(freq, 0.2, 0.4)) for i, freq in enumerate(notes)]
    return _to_wav_bytes(_sequence(beeps))


def _generate_start() -> bytes:
    return _to_wav_bytes(_sequence([(0.0, _beep(600.0, 0.15, 0.35))]))


def _generate_pause() -> bytes:
    return _to_wav_bytes(_sequence([(0.0, _beep(400.0, 0.2, 0.35))]))


_GENERATORS: dict[str, callable] = {
    "focus_complete": _generate_focus_complete,
    "short_break_complete": _generate_short_break_complete,
    "long_break_complete": _generate_long_break_complete,
    "start": _generate_start,
    "pause": _generate_pause,
}


# ═══════════════════════════════════════════════════════════════════════════
#  CUE PLAYER
# ═══════════════════════════════════════════════════════════════════════════


class CuePlayer(QObject):
    """Synthesizes, caches and plays the notification cues.

    Usage::

        cues = CuePlayer(parent=self)
        cues.set_volume(50)
        cues.play_session_transition(SessionType.FOCUS)
    """

    def __init__(
        self,
        parent: QObject | None = None,
        *,
        sounds_dir: Path | None = None,
        enabled: bool = True,
        volume: int = 50,
    ) -> None:
        super().__init__(parent)
        self._enabled = enabled
        self._volume = max(0, min(volume, 100)) / 100.0
        self._sounds_dir = sounds_dir or SOUNDS_DIR
        self._effects: dict[str, QSoundEffect] = {}

        if self._ensure_wav_files():
            self._load_effects()

    # ── public API ────────────────────────────────────────────────────

    def set_volume(self, level: int) -> None:
        """Set volume (0-100).  Updates all loaded effects."""
        self._volume = max(0, min(level, 100)) / 100.0
        for effect in self._effects.values():
            effect.setVolume(self._volume)

    def set_enabled(self, enabled: bool) -> None:
        self._enabled = enabled

    def play(self, name: str) -> None:
        """Play a cue by name.  No-op if disabled or name unknown."""
        if not self._enabled:
            return
        effect = self._effects.get(name)
        if effect is not None:
            effect.play()

    def play_session_transition(self, session_type: SessionType) -> None:
        """Cue for the session that just ended."""
        self.play(SESSION_CUES[session_type])

    def play_start(self) -> None:
        self.play("start")

    def play_pause(self) -> None:
        self.play("pause")

    @property
    def volume(self) -> int:
        """Current volume as 0-100 integer."""
        return round(self._volume * 100)

    @property
    def enabled(self) -> bool:
        return self._enabled

    # ── internal ──────────────────────────────────────────────────────

    def _ensure_wav_files(self) -> bool:
        """Generate any missing WAV files.  False if the cache is unusable."""
        try:
            self._sounds_dir.mkdir(parents=True, exist_ok=True)
            for name, gen_fn in _GENERATORS.items():
                path = self._sounds_dir / f"{name}.wav"
                if not path.exists():
                    path.write_bytes(gen_fn())
        except OSError as exc:
            LOGGER.warning("Sound cache %s unavailable, cues disabled: %s",
                           self._sounds_dir, exc)
            return False
        return True

    def _load_effects(self) -> None:
        """Create QSoundEffect instances from cached WAV files."""
        for name in CUE_NAMES:
            path = self._sounds_dir / f"{name}.wav"
            if path.exists():
                effect = QSoundEffect(self)
                effect.setSource(QUrl.fromLocalFile(str(path)))
                effect.setVolume(self._volume)
                self._effects[name] = effect
