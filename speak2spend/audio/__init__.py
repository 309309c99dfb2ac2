"""Audio capture and level metering.

The PyAudio-backed ``MicrophoneDevice`` lives in ``speak2spend.audio.capture``
and is imported where a real microphone is wanted.
"""

from .device import (
    AbstractAudioDevice,
    AudioAcquisitionError,
    DeviceUnavailableError,
    MicrophonePermissionError,
)
from .level_meter import LevelMeter

__all__ = [
    'AbstractAudioDevice',
    'AudioAcquisitionError',
    'DeviceUnavailableError',
    'MicrophonePermissionError',
    'LevelMeter',
]
