"""Expense service: wires configuration, transcription, recording and storage together."""

import asyncio
import logging
from pathlib import Path
from typing import Any, Callable, Dict, Optional

from ..audio.device import AbstractAudioDevice
from ..clock import AbstractClock
from ..config import Speak2SpendConfig
from ..extraction import TransactionExtractor
from ..models.audio import CaptureConstraints
from ..models.events import SessionEvent
from ..models.session import RecordingSession, RecordingState
from ..models.transaction import ExtractedTransaction
from ..recording import SESSION_TOPIC, RecordingController, SessionEventPublisher
from ..storage import TransactionRecorder, TransactionStore
from ..transcription import (
    AbstractTranscriptionBackend,
    DeepgramBackend,
    GoogleSpeechBackend,
    TranscriptionClient,
)

logger = logging.getLogger(__name__)

# Headroom on top of failsafe + request timeout before the caller gives up waiting
SETTLE_MARGIN_SECONDS = 5.0


class RecordingTimeoutError(RuntimeError):
    """A recording never reached Completed or Failed in time."""


def create_transcription_backend(config: Speak2SpendConfig) -> Optional[AbstractTranscriptionBackend]:
    """Pick a backend from config; None means local demo transcripts.

    ``auto`` prefers Deepgram, then Google, when their credentials are valid.
    An explicitly requested backend without credentials also yields None.
    """
    choice = config.get('transcription.backend', 'auto')
    timeout = config.get('transcription.timeout_seconds', 10.0)
    language = config.get('google_cloud.language', 'en-US')

    if choice == 'none':
        logger.info("Transcription backend disabled in configuration, using demo mode")
        return None

    if choice in ('auto', 'deepgram'):
        api_key = config.get_deepgram_api_key()
        if api_key:
            backend = DeepgramBackend(
                api_key=api_key,
                model=config.get('deepgram.model', 'nova-2'),
                language=language,
                timeout_seconds=timeout,
            )
            backend.initialize()
            return backend
        if choice == 'deepgram':
            logger.warning("Deepgram requested but no valid DEEPGRAM_API_KEY configured, using demo mode")
            return None

    if choice in ('auto', 'google'):
        credentials_path = config.get_google_credentials_path()
        if credentials_path:
            backend = GoogleSpeechBackend(
                credentials_path=credentials_path,
                sample_rate=config.get('audio.sample_rate', 16000),
                language=language,
                timeout_seconds=timeout,
            )
            try:
                backend.initialize()
            except Exception as e:
                logger.error(f"Google Speech backend failed to initialize, using demo mode: {e}")
                return None
            return backend
        if choice == 'google':
            logger.warning("Google requested but no credentials file found, using demo mode")
            return None

    logger.warning("No transcription credentials configured, using demo mode")
    return None


def create_transcription_client(config: Speak2SpendConfig) -> TranscriptionClient:
    return TranscriptionClient(backend=create_transcription_backend(config))


def describe_environment(config: Speak2SpendConfig) -> Dict[str, Any]:
    """Which transcription path is active and what is missing for a real one."""
    deepgram_ready = config.get_deepgram_api_key() is not None
    google_ready = config.get_google_credentials_path() is not None
    choice = config.get('transcription.backend', 'auto')

    if choice == 'none':
        active = None
    elif choice == 'deepgram':
        active = 'Deepgram' if deepgram_ready else None
    elif choice == 'google':
        active = 'Google Speech-to-Text' if google_ready else None
    elif deepgram_ready:
        active = 'Deepgram'
    elif google_ready:
        active = 'Google Speech-to-Text'
    else:
        active = None

    return {
        "backend_choice": choice,
        "deepgram_configured": deepgram_ready,
        "google_configured": google_ready,
        "active_service": active,
        "demo_mode": active is None,
        "data_directory": config.get_data_directory(),
    }


class ExpenseService:
    """Runs voice recordings end to end and keeps the transaction store up to date."""

    def __init__(self,
                 config: Speak2SpendConfig,
                 device_factory: Optional[Callable[[], AbstractAudioDevice]] = None,
                 transcription_client: Optional[TranscriptionClient] = None,
                 clock: Optional[AbstractClock] = None,
                 topic: str = SESSION_TOPIC):
        """Initialize expense service.

        Args:
            config: Application configuration
            device_factory: Creates one capture device per recording; microphone by default
            transcription_client: Overrides the configured backend selection
            clock: Time source handed to each RecordingController
            topic: Pub/sub topic for session events
        """
        self.config = config
        self.device_factory = device_factory or self._microphone_factory
        self.clock = clock
        self.topic = topic
        self.data_dir = Path(config.get_data_directory())

        self.extractor = TransactionExtractor()
        self.transcription_client = transcription_client or create_transcription_client(config)
        self.store = TransactionStore(str(self.data_dir))
        self.publisher = SessionEventPublisher(topic)
        self.recorder = TransactionRecorder(self.store, topic)
        self.controller: Optional[RecordingController] = None

        logger.info(f"ExpenseService ready (transcription: {self.transcription_client.service_name})")

    def _microphone_factory(self) -> AbstractAudioDevice:
        from ..audio.capture import MicrophoneDevice
        return MicrophoneDevice(
            chunk_size=self.config.get('audio.chunk_size', 1024),
            input_device_index=self.config.get('audio.input_device_index'),
        )

    def create_controller(self, on_event: Optional[Callable[[SessionEvent], None]] = None) -> RecordingController:
        publish = self.publisher.get_callback()

        def dispatch(event: SessionEvent) -> None:
            publish(event)
            if on_event is not None:
                on_event(event)

        clips_dir = self.data_dir / "clips"
        clips_dir.mkdir(parents=True, exist_ok=True)
        return RecordingController(
            device_factory=self.device_factory,
            transcriber=self.transcription_client,
            clock=self.clock,
            extractor=self.extractor,
            callback=dispatch,
            constraints=CaptureConstraints(
                sample_rate=self.config.get('audio.sample_rate', 16000),
                channels=self.config.get('audio.channels', 1),
            ),
            failsafe_seconds=self.config.get('recording.failsafe_seconds', 5.0),
            level_interval_seconds=self.config.get('recording.level_interval_seconds', 1.0 / 60.0),
            clip_directory=str(clips_dir),
        )

    async def record(self, duration: float,
                     on_event: Optional[Callable[[SessionEvent], None]] = None) -> RecordingSession:
        """Record for ``duration`` seconds and wait for the session to settle.

        Returns the settled session; a completed transaction has already been
        stored by the recorder subscription when this returns.
        """
        controller = self.create_controller(on_event)
        self.controller = controller
        try:
            await controller.start()
            if controller.state is RecordingState.RECORDING:
                await asyncio.sleep(duration)
                controller.stop()
                settle_timeout = (controller.failsafe_seconds
                                  + self.config.get('transcription.timeout_seconds', 10.0)
                                  + SETTLE_MARGIN_SECONDS)
                try:
                    await controller.wait_until_settled(settle_timeout)
                except asyncio.TimeoutError:
                    logger.error(f"Session {controller.session.session_id} still "
                                 f"{controller.state.value} after {settle_timeout:g}s")
                    raise RecordingTimeoutError(
                        f"Voice processing did not finish within {settle_timeout:g}s - please try again"
                    ) from None
            return controller.session
        finally:
            controller.dispose()
            self.controller = None

    def parse(self, text: str) -> ExtractedTransaction:
        return self.extractor.extract(text)

    async def shutdown(self) -> None:
        if self.controller is not None:
            self.controller.dispose()
            self.controller = None
        self.recorder.stop()
        await self.transcription_client.close()
        logger.info("ExpenseService shut down")
