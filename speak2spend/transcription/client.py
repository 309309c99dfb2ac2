"""Transcription client: real backend when configured, local fallback otherwise."""

import logging
from typing import Optional

from .base import AbstractTranscriptionBackend
from .fallback import BACKEND_FAILURE_TRANSCRIPT, FallbackTranscriptGenerator
from ..models.audio import AudioClip
from ..models.transcription import Transcript

logger = logging.getLogger(__name__)

DEMO_CONFIDENCE = 0.85
BACKEND_FAILURE_CONFIDENCE = 0.5
FALLBACK_SERVICE = "demo"


class TranscriptionClient:
    """Turns a finalized clip into a validated ``Transcript``.

    Backend failures never reach the caller: they degrade to a locally
    generated example transcript flagged with ``demo_mode``.
    """

    def __init__(self,
                 backend: Optional[AbstractTranscriptionBackend] = None,
                 fallback: Optional[FallbackTranscriptGenerator] = None):
        self.backend = backend
        self.fallback = fallback or FallbackTranscriptGenerator()

    @property
    def demo_mode(self) -> bool:
        return self.backend is None

    @property
    def service_name(self) -> str:
        return self.backend.service_name if self.backend else FALLBACK_SERVICE

    async def transcribe(self, clip: AudioClip) -> Transcript:
        if self.backend is None:
            logger.warning("No transcription backend configured, using demo mode")
            return Transcript(
                text=self.fallback.sample(),
                confidence=DEMO_CONFIDENCE,
                service=FALLBACK_SERVICE,
                demo_mode=True,
            )

        try:
            payload = await self.backend.transcribe(clip)
        except Exception as e:
            logger.error(f"Real transcription failed, falling back to demo mode: {e}")
            return self._backend_failure()

        transcript = Transcript.from_payload(payload, service=self.backend.service_name)
        if transcript.is_empty:
            logger.warning(f"{self.backend.service_name} returned no transcript, falling back to demo mode")
            return self._backend_failure()

        logger.info(f"Transcribed by {transcript.service}: '{transcript.text}'")
        return transcript

    @staticmethod
    def _backend_failure() -> Transcript:
        return Transcript(
            text=BACKEND_FAILURE_TRANSCRIPT,
            confidence=BACKEND_FAILURE_CONFIDENCE,
            service=FALLBACK_SERVICE,
            demo_mode=True,
        )

    async def close(self) -> None:
        if self.backend is not None:
            await self.backend.cleanup()
