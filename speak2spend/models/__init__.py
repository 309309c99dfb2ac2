"""Data models for the Speak2Spend application."""

from .audio import AudioClip, CaptureConstraints
from .transcription import Transcript
from .transaction import (
    Category,
    ExtractedTransaction,
    StoredTransaction,
    UNKNOWN_VENDOR,
)
from .session import (
    FailureReason,
    RecordingSession,
    RecordingState,
    failure_message,
)
from .events import SessionEvent

__all__ = [
    "AudioClip",
    "CaptureConstraints",
    "Transcript",
    "Category",
    "ExtractedTransaction",
    "StoredTransaction",
    "UNKNOWN_VENDOR",
    "FailureReason",
    "RecordingSession",
    "RecordingState",
    "failure_message",
    "SessionEvent",
]
