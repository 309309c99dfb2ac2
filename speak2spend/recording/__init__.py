"""Recording lifecycle for Speak2Spend."""

from .controller import RecordingController
from .publisher import SESSION_TOPIC, SessionEventPublisher

__all__ = [
    "RecordingController",
    "SessionEventPublisher",
    "SESSION_TOPIC",
]
