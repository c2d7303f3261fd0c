"""Audio package."""

from .cues import CuePlayer, CUE_NAMES, SESSION_CUES

__all__ = ["CuePlayer", "CUE_NAMES", "SESSION_CUES"]
