"""Application services for Speak2Spend."""

from .expense_service import (
    ExpenseService,
    RecordingTimeoutError,
    create_transcription_backend,
    create_transcription_client,
    describe_environment,
)

__all__ = [
    "ExpenseService",
    "RecordingTimeoutError",
    "create_transcription_backend",
    "create_transcription_client",
    "describe_environment",
]
