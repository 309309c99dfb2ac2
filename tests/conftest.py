"""Pytest configuration and fixtures for Speak2Spend tests."""

import pytest
import tempfile
import logging
import itertools
from typing import Any, Callable, Dict, List, Optional
from unittest.mock import Mock, patch
import numpy as np

from speak2spend.audio.device import AbstractAudioDevice
from speak2spend.clock import AbstractClock, TimerHandle
from speak2spend.models.audio import AudioClip, CaptureConstraints
from speak2spend.transcription.base import AbstractTranscriptionBackend


# Configure logging for tests
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def pytest_configure(config):
    config.addinivalue_line("markers", "unit: fast tests with no I/O beyond temp files")
    config.addinivalue_line("markers", "integration: tests wiring several components together")
    config.addinivalue_line("markers", "hardware: tests needing a real microphone")


class FakeTimer(TimerHandle):
    _sequence = itertools.count()

    def __init__(self, clock: "FakeClock", delay: float, callback: Callable[[], None],
                 interval: Optional[float] = None):
        self.clock = clock
        self.due = clock.now() + delay
        self.callback = callback
        self.interval = interval
        self.order = next(self._sequence)
        self._cancelled = False
        self.fired = 0

    def cancel(self) -> None:
        self._cancelled = True

    @property
    def cancelled(self) -> bool:
        return self._cancelled


class FakeClock(AbstractClock):
    """Manually advanced clock; timers fire only inside ``advance()``."""

    def __init__(self, start: float = 1000.0):
        self.time = start
        self.timers: List[FakeTimer] = []

    def now(self) -> float:
        return self.time

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        timer = FakeTimer(self, delay, callback)
        self.timers.append(timer)
        return timer

    def call_every(self, interval: float, callback: Callable[[], None]) -> TimerHandle:
        timer = FakeTimer(self, interval, callback, interval=interval)
        self.timers.append(timer)
        return timer

    @property
    def pending(self) -> List[FakeTimer]:
        return [t for t in self.timers if not t.cancelled]

    def advance(self, seconds: float) -> None:
        target = self.time + seconds
        while True:
            due = [t for t in self.pending if t.due <= target + 1e-9]
            if not due:
                break
            timer = min(due, key=lambda t: (t.due, t.order))
            self.time = max(self.time, timer.due)
            if timer.interval is None:
                timer.cancel()
            else:
                timer.due += timer.interval
            timer.fired += 1
            timer.callback()
        self.time = target


class FakeAudioDevice(AbstractAudioDevice):
    """Scriptable capture device.

    Finalization is manual by default: the test decides when (and whether)
    the clip or error callback fires.
    """

    def __init__(self, samples: Optional[np.ndarray] = None, acquire_error: Optional[Exception] = None,
                 clip: Optional[AudioClip] = None):
        self.samples = samples
        self.acquire_error = acquire_error
        self.clip = clip or AudioClip.from_pcm(b"\x00\x01" * 1600)
        self.constraints: Optional[CaptureConstraints] = None
        self.acquire_calls = 0
        self.finalize_calls = 0
        self.release_calls = 0
        self.on_clip = None
        self.on_error = None

    async def acquire(self, constraints: CaptureConstraints) -> None:
        self.acquire_calls += 1
        self.constraints = constraints
        if self.acquire_error is not None:
            raise self.acquire_error

    def latest_samples(self) -> Optional[np.ndarray]:
        return self.samples

    def finalize(self, on_clip, on_error) -> None:
        self.finalize_calls += 1
        self.on_clip = on_clip
        self.on_error = on_error

    def release(self) -> None:
        self.release_calls += 1

    @property
    def released(self) -> bool:
        return self.release_calls > 0

    def deliver_clip(self, clip: Optional[AudioClip] = None) -> None:
        self.on_clip(clip or self.clip)

    def deliver_error(self, error: Exception) -> None:
        self.on_error(error)


class AutoFinalizingDevice(FakeAudioDevice):
    """Delivers its clip on the next loop iteration after finalize()."""

    def finalize(self, on_clip, on_error) -> None:
        import asyncio
        super().finalize(on_clip, on_error)
        asyncio.get_running_loop().call_soon(on_clip, self.clip)


class DeviceFactory:
    """Callable device factory that remembers every device it built."""

    def __init__(self, device_class=FakeAudioDevice, **kwargs: Any):
        self.device_class = device_class
        self.kwargs = kwargs
        self.devices: List[FakeAudioDevice] = []

    def __call__(self) -> FakeAudioDevice:
        device = self.device_class(**self.kwargs)
        self.devices.append(device)
        return device

    @property
    def last(self) -> FakeAudioDevice:
        return self.devices[-1]


class FakeBackend(AbstractTranscriptionBackend):
    """Backend returning a fixed payload or raising a fixed error."""

    service_name = "Fake STT"

    def __init__(self, payload: Optional[Dict[str, Any]] = None, error: Optional[Exception] = None):
        super().__init__("en-US")
        self.payload = payload if payload is not None else {"transcript": "", "confidence": 0.0}
        self.error = error
        self.clips: List[AudioClip] = []
        self.cleaned_up = False

    def initialize(self) -> bool:
        return True

    async def transcribe(self, clip: AudioClip) -> Dict[str, Any]:
        self.clips.append(clip)
        if self.error is not None:
            raise self.error
        return self.payload

    async def cleanup(self) -> None:
        self.cleaned_up = True


@pytest.fixture
def temp_data_dir():
    """Create temporary directory for test data."""
    with tempfile.TemporaryDirectory() as temp_dir:
        yield temp_dir


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def device_factory():
    return DeviceFactory()


@pytest.fixture
def sample_audio_chunk():
    """Generate a sample audio chunk for testing."""
    # Generate 1024 samples of 16-bit audio (sine wave)
    sample_rate = 16000
    duration = 1024 / sample_rate  # ~0.064 seconds
    freq = 440  # A4 note

    t = np.linspace(0, duration, 1024, False)
    wave_data = np.sin(2 * np.pi * freq * t)

    # Convert to 16-bit integers
    audio_data = (wave_data * 32767).astype(np.int16)
    return audio_data.tobytes()


@pytest.fixture
def sample_clip(sample_audio_chunk):
    """One second-ish WAV clip built from repeated sine chunks."""
    return AudioClip.from_pcm(sample_audio_chunk * 16, sample_rate=16000, channels=1)


@pytest.fixture
def audio_test_data():
    """Generate various audio test data patterns as int16 sample arrays."""
    def generate_audio(pattern="sine", num_samples=256, amplitude=1.0, freq=440, sample_rate=16000):
        """Generate audio samples for testing.

        Args:
            pattern: Type of audio pattern ('sine', 'noise', 'silence')
            num_samples: Number of samples
            amplitude: Peak amplitude as a fraction of full scale
            freq: Sine frequency in Hz
            sample_rate: Sample rate in Hz

        Returns:
            np.ndarray of int16 samples
        """
        if pattern == "sine":
            t = np.arange(num_samples) / sample_rate
            wave_data = np.sin(2 * np.pi * freq * t)
        elif pattern == "noise":
            wave_data = np.random.default_rng(1234).uniform(-1, 1, num_samples)
        elif pattern == "silence":
            wave_data = np.zeros(num_samples)
        else:
            raise ValueError(f"Unknown pattern: {pattern}")

        return (wave_data * amplitude * 32767).astype(np.int16)

    return generate_audio


@pytest.fixture
def mock_pyaudio():
    """Mock PyAudio for testing without actual audio hardware."""
    pytest.importorskip("pyaudio")
    with patch('pyaudio.PyAudio') as mock_pyaudio_class:
        mock_pyaudio_instance = Mock()
        mock_stream = Mock()

        # Configure mock stream
        mock_stream.read.return_value = b'\x00' * 2048  # Silent audio
        mock_stream.stop_stream.return_value = None
        mock_stream.close.return_value = None

        # Configure mock PyAudio instance
        mock_pyaudio_instance.open.return_value = mock_stream
        mock_pyaudio_instance.terminate.return_value = None

        # Configure mock PyAudio class
        mock_pyaudio_class.return_value = mock_pyaudio_instance

        yield {
            'class': mock_pyaudio_class,
            'instance': mock_pyaudio_instance,
            'stream': mock_stream
        }


@pytest.fixture
def make_device_factory():
    """Build a DeviceFactory; ``auto_finalize=True`` delivers clips without test help."""
    def make(auto_finalize: bool = False, **kwargs: Any) -> DeviceFactory:
        device_class = AutoFinalizingDevice if auto_finalize else FakeAudioDevice
        return DeviceFactory(device_class, **kwargs)
    return make


@pytest.fixture
def make_backend():
    """Build a FakeBackend from a payload or an error."""
    return FakeBackend
