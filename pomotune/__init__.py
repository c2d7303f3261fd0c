"""Pomotune: a Pomodoro focus timer."""

__version__ = "0.1.0"
