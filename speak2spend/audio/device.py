"""Audio device abstraction used by the recording controller."""

from abc import ABC, abstractmethod
from typing import Callable, Optional

import numpy as np

from ..models.audio import AudioClip, CaptureConstraints


ClipCallback = Callable[[AudioClip], None]
ErrorCallback = Callable[[Exception], None]


class AudioAcquisitionError(RuntimeError):
    """The microphone could not be acquired."""


class MicrophonePermissionError(AudioAcquisitionError):
    """Access to the microphone was denied."""


class DeviceUnavailableError(AudioAcquisitionError):
    """No usable input device exists or it is busy."""


class AbstractAudioDevice(ABC):
    """Exclusive handle on an audio input device for one recording attempt."""

    @abstractmethod
    async def acquire(self, constraints: CaptureConstraints) -> None:
        """Acquire the device and start capturing.

        Raises:
            AudioAcquisitionError: If the device cannot be opened
        """
        pass

    @abstractmethod
    def latest_samples(self) -> Optional[np.ndarray]:
        """Most recent int16 samples, or None before any audio arrived."""
        pass

    @abstractmethod
    def finalize(self, on_clip: ClipCallback, on_error: ErrorCallback) -> None:
        """Begin asynchronous clip finalization.

        Exactly one of the callbacks is invoked later on the event loop
        thread, or neither if the backend never flushes.
        """
        pass

    @abstractmethod
    def release(self) -> None:
        """Stop using the hardware. Idempotent."""
        pass
