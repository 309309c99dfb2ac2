"""Recording lifecycle state machine.

Orchestrates one recording attempt at a time::

    Idle --start()--> Recording --stop()--> Processing --> Completed
      |                                         |
      +--(acquisition error)--> Failed <--------+ (finalize/transcribe error, timeout)

``reset()`` is the only way back to Idle from Completed or Failed.

Clip finalization is an asynchronous callback from the capture device that
may never arrive, so ``stop()`` arms a failsafe timer. Whichever of the two
fires first settles the session and disables the other; callbacks are bound
to the session that issued them, so nothing that arrives after a timeout,
reset or disposal can touch a newer session.
"""

import asyncio
import logging
from typing import Callable, Optional, Set

from ..audio.device import (
    AbstractAudioDevice,
    AudioAcquisitionError,
    MicrophonePermissionError,
)
from ..audio.level_meter import LevelMeter
from ..clock import AbstractClock, AsyncioClock, TimerHandle
from ..extraction.extractor import TransactionExtractor
from ..models.audio import AudioClip, CaptureConstraints
from ..models.events import LEVEL_EVENT, STATE_EVENT, TICK_EVENT, SessionEvent
from ..models.session import FailureReason, RecordingSession, RecordingState
from ..transcription.client import TranscriptionClient

logger = logging.getLogger(__name__)

DEFAULT_FAILSAFE_SECONDS = 5.0
DEFAULT_LEVEL_INTERVAL_SECONDS = 1.0 / 60.0
DEFAULT_TICK_SECONDS = 1.0


class RecordingController:
    """Owns the active RecordingSession and every resource attached to it."""

    def __init__(self,
                 device_factory: Callable[[], AbstractAudioDevice],
                 transcriber: TranscriptionClient,
                 clock: Optional[AbstractClock] = None,
                 extractor: Optional[TransactionExtractor] = None,
                 level_meter: Optional[LevelMeter] = None,
                 callback: Optional[Callable[[SessionEvent], None]] = None,
                 constraints: Optional[CaptureConstraints] = None,
                 failsafe_seconds: float = DEFAULT_FAILSAFE_SECONDS,
                 level_interval_seconds: float = DEFAULT_LEVEL_INTERVAL_SECONDS,
                 tick_seconds: float = DEFAULT_TICK_SECONDS,
                 clip_directory: Optional[str] = None,
                 keep_clip_file: bool = True):
        """Initialize recording controller.

        Args:
            device_factory: Creates a fresh audio device for each attempt
            transcriber: Turns finalized clips into transcripts
            clock: Time source for the duration clock, level sampling and failsafe
            extractor: Transaction extractor applied to each transcript
            level_meter: Loudness meter fed from the device's latest samples
            callback: Receives a SessionEvent on every observable change
            constraints: Microphone constraints requested on start
            failsafe_seconds: Bound on waiting for clip finalization after stop
            level_interval_seconds: Level sampling cadence
            tick_seconds: Duration clock cadence
            clip_directory: Where finalized clips are written; system temp by default
            keep_clip_file: Whether to write finalized clips to a file at all
        """
        self.device_factory = device_factory
        self.transcriber = transcriber
        self.clock = clock or AsyncioClock()
        self.extractor = extractor or TransactionExtractor()
        self.level_meter = level_meter or LevelMeter()
        self.callback = callback
        self.constraints = constraints or CaptureConstraints()
        self.failsafe_seconds = failsafe_seconds
        self.level_interval_seconds = level_interval_seconds
        self.tick_seconds = tick_seconds
        self.clip_directory = clip_directory
        self.keep_clip_file = keep_clip_file

        self.session = RecordingSession()
        self._device: Optional[AbstractAudioDevice] = None
        self._duration_timer: Optional[TimerHandle] = None
        self._level_timer: Optional[TimerHandle] = None
        self._failsafe_timer: Optional[TimerHandle] = None
        self._tasks: Set[asyncio.Task] = set()
        self._settled: Optional[asyncio.Event] = None
        self._starting = False
        self._disposed = False

    # ------------------------------------------------------------------
    # Read-only view of the active session

    @property
    def state(self) -> RecordingState:
        return self.session.state

    @property
    def elapsed_seconds(self) -> int:
        return self.session.elapsed_seconds

    @property
    def level_percent(self) -> float:
        return self.session.level_percent

    @property
    def clip(self) -> Optional[AudioClip]:
        return self.session.clip

    @property
    def failure_reason(self) -> Optional[FailureReason]:
        return self.session.failure_reason

    @property
    def is_disposed(self) -> bool:
        return self._disposed

    # ------------------------------------------------------------------
    # Public operations

    async def start(self) -> RecordingState:
        """Acquire the microphone and begin recording.

        Legal from Idle, Completed and Failed (the latter two reset first).
        Never raises: acquisition problems end the session in Failed.
        """
        if self._disposed:
            logger.warning("start() called on a disposed controller")
            return self.session.state
        if self._starting or self.session.state in (RecordingState.RECORDING, RecordingState.PROCESSING):
            logger.warning(f"start() ignored while {self.session.state.value}")
            return self.session.state
        if self.session.state.is_terminal:
            self.reset()

        if self._settled is None:
            self._settled = asyncio.Event()
        self._settled.clear()

        session = self.session
        self._starting = True
        try:
            device = self.device_factory()
            await device.acquire(self.constraints)
        except MicrophonePermissionError as e:
            logger.error(f"Microphone permission denied: {e}")
            self._fail(session, FailureReason.PERMISSION, str(e))
            return session.state
        except AudioAcquisitionError as e:
            logger.error(f"Microphone unavailable: {e}")
            self._fail(session, FailureReason.DEVICE, str(e))
            return session.state
        except Exception as e:
            logger.error(f"Failed to access microphone: {e}", exc_info=True)
            self._fail(session, FailureReason.DEVICE, str(e))
            return session.state
        finally:
            self._starting = False

        if self._disposed or session is not self.session:
            logger.info("Controller torn down while acquiring microphone; releasing it")
            self._release_device(device)
            return self.session.state

        self._device = device
        self.level_meter.reset()
        session.started_at = self.clock.now()
        session.elapsed_seconds = 0
        session.level_percent = 0.0
        self._set_state(session, RecordingState.RECORDING)

        self._duration_timer = self.clock.call_every(self.tick_seconds, self._on_tick)
        self._level_timer = self.clock.call_every(self.level_interval_seconds, self._on_level_sample)
        logger.info(f"Recording started for session {session.session_id}")
        return session.state

    def stop(self) -> RecordingState:
        """Stop recording and begin processing. No-op unless Recording."""
        session = self.session
        if session.state is not RecordingState.RECORDING:
            logger.debug(f"stop() ignored while {session.state.value}")
            return session.state

        # Clock and sampling go first so no stale sample lands after a stop
        self._cancel_sampling()
        session.level_percent = 0.0
        self._set_state(session, RecordingState.PROCESSING)

        self._failsafe_timer = self.clock.call_later(
            self.failsafe_seconds, lambda: self._on_failsafe(session))

        device, self._device = self._device, None
        if device is None:
            self._settle_with_failure(session, FailureReason.PROCESSING, "No capture device to finalize")
            return session.state

        try:
            device.finalize(
                lambda clip: self._on_clip_finalized(session, clip),
                lambda error: self._on_finalize_error(session, error),
            )
        except Exception as e:
            logger.error(f"Could not begin clip finalization: {e}", exc_info=True)
            self._settle_with_failure(session, FailureReason.PROCESSING, str(e))
        finally:
            self._release_device(device)

        logger.info(f"Recording stopped after {session.elapsed_seconds}s; processing clip")
        return session.state

    def reset(self) -> RecordingState:
        """Discard the finished session and return to Idle."""
        previous = self.session
        if previous.state in (RecordingState.RECORDING, RecordingState.PROCESSING):
            logger.warning(f"reset() ignored while {previous.state.value}; stop first")
            return previous.state

        self._cancel_sampling()
        self._cancel_failsafe()
        self._release_clip_file(previous)
        self.level_meter.reset()
        self.session = RecordingSession()

        if previous.state is not RecordingState.IDLE:
            logger.info(f"Session {previous.session_id} reset")
            self._emit(STATE_EVENT, self.session)
        return self.session.state

    def dispose(self) -> None:
        """Tear down from any state without leaking the device, timers or clip file."""
        if self._disposed:
            return
        self._disposed = True

        session = self.session
        self._cancel_sampling()
        self._cancel_failsafe()
        device, self._device = self._device, None
        if device is not None:
            self._release_device(device)
        self._release_clip_file(session)
        self.level_meter.reset()
        self.session = RecordingSession()

        if self._settled is not None:
            self._settled.set()
        logger.info(f"Recording controller disposed (session {session.session_id} was {session.state.value})")

    async def wait_until_settled(self, timeout: Optional[float] = None) -> RecordingState:
        """Wait until the session reaches Completed or Failed (or is disposed)."""
        if self._settled is None or self.session.state.is_terminal:
            return self.session.state
        await asyncio.wait_for(self._settled.wait(), timeout)
        return self.session.state

    # ------------------------------------------------------------------
    # Timer callbacks

    def _on_tick(self) -> None:
        session = self.session
        if session.state is not RecordingState.RECORDING or session.started_at is None:
            return
        session.elapsed_seconds = int(self.clock.now() - session.started_at)
        self._emit(TICK_EVENT, session)

    def _on_level_sample(self) -> None:
        session = self.session
        if session.state is not RecordingState.RECORDING or self._device is None:
            return
        try:
            samples = self._device.latest_samples()
        except Exception as e:
            logger.warning(f"Could not read audio samples: {e}")
            return
        session.level_percent = self.level_meter.measure(samples)
        self._emit(LEVEL_EVENT, session)

    def _on_failsafe(self, session: RecordingSession) -> None:
        self._failsafe_timer = None
        if not self._awaiting_finalization(session):
            return
        logger.warning(f"Clip finalization did not arrive within {self.failsafe_seconds}s")
        session.finalization_settled = True
        self._fail(session, FailureReason.TIMEOUT, "timeout")

    # ------------------------------------------------------------------
    # Device callbacks

    def _on_clip_finalized(self, session: RecordingSession, clip: AudioClip) -> None:
        if not self._awaiting_finalization(session):
            logger.warning(f"Ignoring late clip for session {session.session_id}")
            return
        session.finalization_settled = True
        self._cancel_failsafe()

        session.clip = clip
        if self.keep_clip_file:
            try:
                session.clip_file = clip.write_temp_file(self.clip_directory)
            except OSError as e:
                logger.warning(f"Could not write clip file: {e}")

        task = asyncio.ensure_future(self._process_clip(session, clip))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _on_finalize_error(self, session: RecordingSession, error: Exception) -> None:
        if not self._awaiting_finalization(session):
            logger.warning(f"Ignoring late finalization error for session {session.session_id}: {error}")
            return
        logger.error(f"Clip finalization failed: {error}")
        self._settle_with_failure(session, FailureReason.PROCESSING, str(error))

    async def _process_clip(self, session: RecordingSession, clip: AudioClip) -> None:
        try:
            transcript = await self.transcriber.transcribe(clip)
            transaction = self.extractor.extract(transcript.text)
        except Exception as e:
            logger.error(f"Voice processing failed: {e}", exc_info=True)
            if session is self.session and session.state is RecordingState.PROCESSING:
                self._fail(session, FailureReason.PROCESSING, str(e))
            return

        if session is not self.session or session.state is not RecordingState.PROCESSING:
            logger.info(f"Discarding transcript for abandoned session {session.session_id}")
            return

        session.transcript = transcript
        session.transaction = transaction
        self._set_state(session, RecordingState.COMPLETED)

    # ------------------------------------------------------------------
    # Internals

    def _awaiting_finalization(self, session: RecordingSession) -> bool:
        return (
            session is self.session
            and session.state is RecordingState.PROCESSING
            and not session.finalization_settled
        )

    def _settle_with_failure(self, session: RecordingSession, reason: FailureReason, detail: str) -> None:
        session.finalization_settled = True
        self._cancel_failsafe()
        self._fail(session, reason, detail)

    def _fail(self, session: RecordingSession, reason: FailureReason, detail: str) -> None:
        session.failure_reason = reason
        session.failure_detail = detail
        self._set_state(session, RecordingState.FAILED)

    def _set_state(self, session: RecordingSession, state: RecordingState) -> None:
        previous = session.state
        session.state = state
        logger.info(f"Session {session.session_id}: {previous.value} -> {state.value}")
        self._emit(STATE_EVENT, session)
        if state.is_terminal and self._settled is not None:
            self._settled.set()

    def _emit(self, event_type: str, session: RecordingSession) -> None:
        if self.callback is None:
            return
        event = SessionEvent(
            event_type=event_type,
            session_id=session.session_id,
            state=session.state,
            elapsed_seconds=session.elapsed_seconds,
            level_percent=session.level_percent,
            failure_reason=session.failure_reason,
            transcript=session.transcript,
            transaction=session.transaction,
        )
        try:
            self.callback(event)
        except Exception as e:
            logger.error(f"Error in session event callback: {e}", exc_info=True)

    def _cancel_sampling(self) -> None:
        if self._duration_timer is not None:
            self._duration_timer.cancel()
            self._duration_timer = None
        if self._level_timer is not None:
            self._level_timer.cancel()
            self._level_timer = None

    def _cancel_failsafe(self) -> None:
        if self._failsafe_timer is not None:
            self._failsafe_timer.cancel()
            self._failsafe_timer = None

    @staticmethod
    def _release_device(device: AbstractAudioDevice) -> None:
        try:
            device.release()
        except Exception as e:
            logger.warning(f"Error releasing audio device: {e}")

    @staticmethod
    def _release_clip_file(session: RecordingSession) -> None:
        if session.clip_file is None:
            return
        try:
            session.clip_file.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning(f"Could not remove clip file {session.clip_file}: {e}")
        session.clip_file = None
