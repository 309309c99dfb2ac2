"""Microphone capture behind an injectable device abstraction."""

import asyncio
import logging
import threading
from typing import List, Optional

import numpy as np
import pyaudio

from ..models.audio import AudioClip, CaptureConstraints
from .device import (
    AbstractAudioDevice,
    AudioAcquisitionError,
    ClipCallback,
    DeviceUnavailableError,
    ErrorCallback,
    MicrophonePermissionError,
)


logger = logging.getLogger(__name__)


# PortAudio host error codes
_PA_INVALID_DEVICE = -9996
_PA_DEVICE_UNAVAILABLE = -9985
_PA_INVALID_CHANNEL_COUNT = -9998

THREAD_JOIN_TIMEOUT_SECONDS = 2.0


class MicrophoneDevice(AbstractAudioDevice):
    """PyAudio-backed microphone that records into memory on a background thread."""

    def __init__(self, chunk_size: int = 1024, input_device_index: Optional[int] = None):
        """Initialize microphone device.

        Args:
            chunk_size: Size of each audio chunk in samples
            input_device_index: PortAudio input device; None uses the default
        """
        self.chunk_size = chunk_size
        self.input_device_index = input_device_index
        self.constraints = CaptureConstraints()

        # Recording thread management
        self.recording_thread: Optional[threading.Thread] = None
        self.stop_event = threading.Event()
        self.lock = threading.Lock()

        self.frames: List[bytes] = []
        self.total_chunks = 0
        self._latest: Optional[np.ndarray] = None

        self.pyaudio_instance: Optional[pyaudio.PyAudio] = None
        self.stream = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._on_clip: Optional[ClipCallback] = None
        self._on_error: Optional[ErrorCallback] = None
        self._capture_error: Optional[Exception] = None
        self._finished = False
        self._delivered = False
        self._released = False

    async def acquire(self, constraints: CaptureConstraints) -> None:
        if self.recording_thread is not None:
            raise DeviceUnavailableError("Microphone already acquired by this session")

        self.constraints = constraints
        self._loop = asyncio.get_running_loop()
        logger.debug(f"Requested echo_cancellation={constraints.echo_cancellation}, "
                     f"noise_suppression={constraints.noise_suppression}; "
                     "PortAudio applies no processing, relying on the OS input pipeline")

        await asyncio.to_thread(self.__open_audio_stream)

        self.stop_event.clear()
        self.recording_thread = threading.Thread(target=self._record_continuously, daemon=True)
        self.recording_thread.name = "MicrophoneCaptureThread"
        self.recording_thread.start()

    def __open_audio_stream(self) -> None:
        self.pyaudio_instance = pyaudio.PyAudio()
        try:
            self.stream = self.pyaudio_instance.open(
                format=pyaudio.paInt16,
                channels=self.constraints.channels,
                rate=self.constraints.sample_rate,
                input=True,
                input_device_index=self.input_device_index,
                frames_per_buffer=self.chunk_size,
            )
        except OSError as e:
            self.pyaudio_instance.terminate()
            self.pyaudio_instance = None
            raise self._translate_open_error(e) from e

        logger.info(f"Audio stream opened: {self.constraints.sample_rate}Hz, "
                    f"{self.chunk_size} samples/chunk")

    @staticmethod
    def _translate_open_error(error: OSError) -> AudioAcquisitionError:
        code = error.errno if isinstance(error.errno, int) else (error.args[0] if error.args else None)
        message = str(error).lower()
        if "permission" in message or "not authorized" in message:
            return MicrophonePermissionError(f"Microphone permission denied: {error}")
        if code in (_PA_INVALID_DEVICE, _PA_DEVICE_UNAVAILABLE, _PA_INVALID_CHANNEL_COUNT):
            return DeviceUnavailableError(f"No usable microphone: {error}")
        return DeviceUnavailableError(f"Failed to open microphone: {error}")

    def _record_continuously(self) -> None:
        """Internal method: continuous recording loop in background thread."""
        error: Optional[Exception] = None
        try:
            while not self.stop_event.is_set():
                audio_chunk = self.stream.read(self.chunk_size, exception_on_overflow=False)
                with self.lock:
                    self.frames.append(audio_chunk)
                    self.total_chunks += 1
                    self._latest = np.frombuffer(audio_chunk, dtype=np.int16)
        except Exception as e:
            logger.error(f"Audio capture failed: {e}")
            error = e
        finally:
            self._close_stream()

        with self.lock:
            self._capture_error = error
            self._finished = True
        self._deliver()

    def _close_stream(self) -> None:
        if self.stream is not None:
            try:
                self.stream.stop_stream()
                self.stream.close()
            except OSError as e:
                logger.warning(f"Error closing audio stream: {e}")
            self.stream = None
        if self.pyaudio_instance is not None:
            self.pyaudio_instance.terminate()
            self.pyaudio_instance = None

    def _deliver(self) -> None:
        """Hand the finished clip (or error) to the loop thread once both
        the capture thread has ended and finalization was requested."""
        with self.lock:
            if self._delivered or not self._finished or self._on_clip is None:
                return
            self._delivered = True
            on_clip, on_error = self._on_clip, self._on_error
            error = self._capture_error
            frames = b"".join(self.frames)
        if self._loop is None or self._loop.is_closed():
            return

        if error is not None:
            self._loop.call_soon_threadsafe(on_error, error)
            return

        try:
            clip = AudioClip.from_pcm(frames, self.constraints.sample_rate, self.constraints.channels)
        except Exception as e:
            self._loop.call_soon_threadsafe(on_error, e)
            return
        logger.info(f"Finalized clip: {clip.duration_seconds:.1f}s, {clip.size_bytes} bytes, "
                    f"{self.total_chunks} chunks")
        self._loop.call_soon_threadsafe(on_clip, clip)

    def latest_samples(self) -> Optional[np.ndarray]:
        with self.lock:
            return self._latest

    def finalize(self, on_clip: ClipCallback, on_error: ErrorCallback) -> None:
        with self.lock:
            self._on_clip = on_clip
            self._on_error = on_error
        self.stop_event.set()
        # Capture may already have ended on a read error
        self._deliver()

    def release(self) -> None:
        if self._released:
            return
        self._released = True
        self.stop_event.set()
        if self.recording_thread is None:
            self._close_stream()
        elif self.recording_thread.is_alive() and self.recording_thread is not threading.current_thread():
            # One chunk read is the most the thread can still be blocked on
            self.recording_thread.join(timeout=THREAD_JOIN_TIMEOUT_SECONDS)
            if self.recording_thread.is_alive():
                logger.warning("Recording thread did not stop cleanly")
        logger.info(f"Microphone released. Total chunks: {self.total_chunks}")

    def __del__(self):
        """Ensure the capture thread is told to stop on deletion."""
        self.stop_event.set()
