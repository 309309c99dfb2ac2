"""Transcription module for Speak2Spend."""

from .base import AbstractTranscriptionBackend, TranscriptionBackendError
from .client import TranscriptionClient
from .deepgram_backend import DeepgramBackend
from .fallback import FallbackTranscriptGenerator
from .google_backend import GoogleSpeechBackend
from ..models.transcription import Transcript

__all__ = [
    "AbstractTranscriptionBackend",
    "TranscriptionBackendError",
    "TranscriptionClient",
    "DeepgramBackend",
    "FallbackTranscriptGenerator",
    "GoogleSpeechBackend",
    "Transcript",
]
