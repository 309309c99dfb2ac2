"""Abstract base classes for transcription backends."""

from abc import ABC, abstractmethod
from typing import Any, Dict
import logging

from ..models.audio import AudioClip

logger = logging.getLogger(__name__)


class TranscriptionBackendError(RuntimeError):
    """A speech-recognition backend failed to produce a transcript."""


class AbstractTranscriptionBackend(ABC):
    """Abstract base class for transcription backends."""

    service_name = "unknown"

    def __init__(self, language: str = "en-US"):
        """Initialize backend with language preference."""
        self.language = language

    @abstractmethod
    async def transcribe(self, clip: AudioClip) -> Dict[str, Any]:
        """Transcribe a finalized clip.

        Args:
            clip: Audio bytes plus MIME type

        Returns:
            Raw payload ``{"transcript": str, "confidence": float}``; it is
            validated by the caller, so fields may be missing or malformed

        Raises:
            TranscriptionBackendError: If the backend call fails
        """
        pass

    @abstractmethod
    def initialize(self) -> bool:
        """Initialize backend resources and verify configuration.

        Returns:
            True if initialization successful, False otherwise
        """
        pass

    async def cleanup(self) -> None:
        """Clean up backend resources."""
        pass
