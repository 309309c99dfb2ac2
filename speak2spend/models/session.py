"""Recording session models."""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional
import uuid

from .audio import AudioClip
from .transaction import ExtractedTransaction
from .transcription import Transcript


class RecordingState(Enum):
    """Lifecycle states of a recording session."""
    IDLE = "idle"
    RECORDING = "recording"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (RecordingState.COMPLETED, RecordingState.FAILED)


class FailureReason(Enum):
    """Why a session ended in FAILED."""
    PERMISSION = "permission"
    DEVICE = "device"
    TIMEOUT = "timeout"
    PROCESSING = "processing"


FAILURE_MESSAGES = {
    FailureReason.PERMISSION: (
        "Microphone access was denied.",
        "Allow microphone access and try again.",
    ),
    FailureReason.DEVICE: (
        "No microphone is available.",
        "Check that a microphone is connected and not in use, then try again.",
    ),
    FailureReason.TIMEOUT: (
        "Recording timeout - please try again.",
        "Speak clearly and check your internet connection.",
    ),
    FailureReason.PROCESSING: (
        "Voice processing failed.",
        "Check your internet connection and try again.",
    ),
}


def failure_message(reason: FailureReason) -> str:
    """Short user-facing message with recovery guidance."""
    message, guidance = FAILURE_MESSAGES[reason]
    return f"{message} {guidance}"


def new_session_id() -> str:
    return uuid.uuid4().hex[:12]


@dataclass
class RecordingSession:
    """State of one recording attempt, owned by the RecordingController."""
    session_id: str = field(default_factory=new_session_id)
    state: RecordingState = RecordingState.IDLE
    started_at: Optional[float] = None
    elapsed_seconds: int = 0
    level_percent: float = 0.0
    clip: Optional[AudioClip] = None
    clip_file: Optional[Path] = None
    transcript: Optional[Transcript] = None
    transaction: Optional[ExtractedTransaction] = None
    failure_reason: Optional[FailureReason] = None
    failure_detail: Optional[str] = None
    # Set once finalization has been resolved by either the clip callback or the failsafe
    finalization_settled: bool = False

    @property
    def failure_text(self) -> Optional[str]:
        if self.failure_reason is None:
            return None
        return failure_message(self.failure_reason)
