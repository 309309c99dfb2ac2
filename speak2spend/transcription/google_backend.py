"""Google Speech-to-Text transcription backend."""

import asyncio
import time
import logging
from typing import Any, Dict, Optional

from .base import AbstractTranscriptionBackend, TranscriptionBackendError
from ..models.audio import AudioClip

from google.cloud import speech
from google.api_core import exceptions as gax_exceptions
from google.oauth2 import service_account

logger = logging.getLogger(__name__)


class GoogleSpeechBackend(AbstractTranscriptionBackend):
    """Google Speech-to-Text API backend for transcription."""

    service_name = "Google Speech-to-Text"

    def __init__(self,
                 credentials_path: Optional[str] = None,
                 sample_rate: int = 16000,
                 language: str = "en-US",
                 use_enhanced: bool = True,
                 enable_automatic_punctuation: bool = True,
                 timeout_seconds: float = 10.0):
        """Initialize Google Speech backend.

        Args:
            credentials_path: Path to Google Cloud service account JSON file
            sample_rate: Sample rate of the clips that will be sent
            language: Language code (e.g., 'en-US')
            use_enhanced: Whether to use enhanced model (costs more but better quality)
            enable_automatic_punctuation: Enable automatic punctuation
            timeout_seconds: Per-request deadline
        """
        super().__init__(language)
        self.credentials_path = credentials_path
        if not self.credentials_path:
            raise ValueError("Google credentials path is required - cannot initialize without credentials")
        self.use_enhanced = use_enhanced
        self.enable_automatic_punctuation = enable_automatic_punctuation
        self.timeout_seconds = timeout_seconds
        self.client = None
        self.project_id = None
        self.config = speech.RecognitionConfig(
            encoding=speech.RecognitionConfig.AudioEncoding.LINEAR16,
            sample_rate_hertz=sample_rate,
            language_code=self.language,
            use_enhanced=self.use_enhanced,
            enable_automatic_punctuation=self.enable_automatic_punctuation,
            # Expense phrases are short utterances
            model="latest_short",
        )

    def initialize(self) -> bool:
        """Initialize Google Speech client and verify credentials."""
        logger.info(f"Loading Google credentials from: {self.credentials_path}")
        credentials = service_account.Credentials.from_service_account_file(self.credentials_path)

        self.client = speech.SpeechClient(credentials=credentials)
        self.project_id = credentials.project_id
        logger.info(f"Using Google Cloud project: {self.project_id}")

        logger.info("Google Speech-to-Text backend initialized successfully")
        return True

    async def transcribe(self, clip: AudioClip) -> Dict[str, Any]:
        if self.client is None:
            raise TranscriptionBackendError("Google Speech backend used before initialize()")
        return await asyncio.to_thread(self._recognize, clip)

    def _recognize(self, clip: AudioClip) -> Dict[str, Any]:
        start_time = time.time()
        logger.debug(f"Clip size: {clip.size_bytes} bytes; Language: {self.language}; "
                     f"Enhanced model: {self.use_enhanced}")

        audio = speech.RecognitionAudio(content=clip.data)
        try:
            response = self.client.recognize(config=self.config, audio=audio, timeout=self.timeout_seconds)
        except gax_exceptions.DeadlineExceeded as e:
            logger.error("Google STT recognize deadline exceeded")
            raise TranscriptionBackendError(f"Google Speech recognize timeout: {e}") from e
        except gax_exceptions.ServiceUnavailable as e:
            logger.error("Google STT service unavailable")
            raise TranscriptionBackendError(f"Google Speech service unavailable: {e}") from e
        except gax_exceptions.GoogleAPICallError as e:
            logger.error(f"Google STT API call error: {e}")
            raise TranscriptionBackendError(f"Google Speech API error: {e}") from e
        processing_time = time.time() - start_time

        if not response.results:
            logger.debug("--- NO SPEECH DETECTED ---")
            return {"transcript": "", "confidence": 0.0}

        alternative = response.results[0].alternatives[0]
        logger.debug(f"TRANSCRIPTION SUCCESS: '{alternative.transcript}' "
                     f"(confidence: {alternative.confidence:.2f}, "
                     f"processing_time: {processing_time:.3f}s)")
        return {
            "transcript": alternative.transcript,
            "confidence": alternative.confidence,
        }
