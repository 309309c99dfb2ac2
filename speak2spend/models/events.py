"""Event models for pub/sub session notifications."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from .session import FailureReason, RecordingState
from .transaction import ExtractedTransaction
from .transcription import Transcript


STATE_EVENT = "state"
TICK_EVENT = "tick"
LEVEL_EVENT = "level"


@dataclass
class SessionEvent:
    """Snapshot of a recording session after an observable change."""
    event_type: str  # "state", "tick", "level"
    session_id: str
    state: RecordingState
    elapsed_seconds: int = 0
    level_percent: float = 0.0
    failure_reason: Optional[FailureReason] = None
    transcript: Optional[Transcript] = None
    transaction: Optional[ExtractedTransaction] = None
    timestamp: datetime = field(default_factory=datetime.now)
