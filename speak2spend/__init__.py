"""Speak2Spend - voice-driven expense capture."""

__version__ = "0.1.0"
