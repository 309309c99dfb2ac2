"""Deepgram prerecorded speech-to-text backend."""

import asyncio
import logging
import time
from typing import Any, Dict, Optional

import aiohttp

from .base import AbstractTranscriptionBackend, TranscriptionBackendError
from ..models.audio import AudioClip

logger = logging.getLogger(__name__)


class DeepgramBackend(AbstractTranscriptionBackend):
    """Deepgram REST API backend for transcription."""

    service_name = "Deepgram"
    base_url = "https://api.deepgram.com/v1/listen"

    def __init__(self,
                 api_key: str,
                 model: str = "nova-2",
                 language: str = "en-US",
                 timeout_seconds: float = 10.0,
                 session: Optional[aiohttp.ClientSession] = None):
        """Initialize Deepgram backend.

        Args:
            api_key: Deepgram API key
            model: Deepgram model name
            language: Language code (e.g., 'en-US')
            timeout_seconds: Total timeout for a single request
            session: Optional shared aiohttp session; one is created per request otherwise
        """
        super().__init__(language)
        if not api_key:
            raise ValueError("Deepgram API key is required - cannot initialize without credentials")
        self.api_key = api_key
        self.model = model
        self.timeout_seconds = timeout_seconds
        self.session = session

    def initialize(self) -> bool:
        logger.info(f"Deepgram backend ready (model={self.model}, language={self.language})")
        return True

    def _params(self) -> Dict[str, str]:
        return {
            "model": self.model,
            "language": self.language,
            "smart_format": "true",
            "punctuate": "true",
            "diarize": "false",
            "filler_words": "false",
            "utterances": "false",
        }

    async def transcribe(self, clip: AudioClip) -> Dict[str, Any]:
        start_time = time.time()
        headers = {
            "Authorization": f"Token {self.api_key}",
            "Content-Type": clip.mime_type,
        }
        timeout = aiohttp.ClientTimeout(total=self.timeout_seconds)

        try:
            if self.session is not None:
                result = await self._post(self.session, clip, headers, timeout)
            else:
                async with aiohttp.ClientSession() as session:
                    result = await self._post(session, clip, headers, timeout)
        except aiohttp.ClientError as e:
            logger.error(f"Deepgram request failed: {e}")
            raise TranscriptionBackendError(f"Deepgram request failed: {e}") from e
        except asyncio.TimeoutError as e:
            logger.error(f"Deepgram request timed out after {self.timeout_seconds}s")
            raise TranscriptionBackendError("Deepgram request timed out") from e

        payload = self._extract_payload(result)
        logger.debug(f"Deepgram transcript='{payload.get('transcript')}' "
                     f"(processing_time: {time.time() - start_time:.3f}s)")
        return payload

    async def _post(self, session: aiohttp.ClientSession, clip: AudioClip,
                    headers: Dict[str, str], timeout: aiohttp.ClientTimeout) -> Any:
        async with session.post(self.base_url, params=self._params(), headers=headers,
                                data=clip.data, timeout=timeout) as response:
            if response.status != 200:
                error_text = await response.text()
                raise TranscriptionBackendError(f"Deepgram API error: {response.status} - {error_text}")
            return await response.json()

    @staticmethod
    def _extract_payload(result: Any) -> Dict[str, Any]:
        """Pull the first alternative out of a Deepgram response."""
        try:
            alternative = result["results"]["channels"][0]["alternatives"][0]
        except (KeyError, IndexError, TypeError) as e:
            raise TranscriptionBackendError(f"Unexpected Deepgram response shape: {e}") from e
        if not isinstance(alternative, dict):
            raise TranscriptionBackendError("Unexpected Deepgram response shape")
        return {
            "transcript": alternative.get("transcript"),
            "confidence": alternative.get("confidence"),
        }
