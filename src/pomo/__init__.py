"""Pomodoro task tracker with a live session over a local socket."""

__version__ = "0.4.0"
