"""Audio-related data models."""

import io
import os
import tempfile
import wave
from dataclasses import dataclass
from pathlib import Path
from typing import Optional


WAV_MIME_TYPE = "audio/wav"


@dataclass(frozen=True)
class CaptureConstraints:
    """Constraints requested when acquiring the microphone."""
    echo_cancellation: bool = True
    noise_suppression: bool = True
    sample_rate: int = 16000
    channels: int = 1


@dataclass(frozen=True)
class AudioClip:
    """A finalized, immutable audio recording ready for transcription."""
    data: bytes
    mime_type: str = WAV_MIME_TYPE
    sample_rate: int = 16000
    channels: int = 1
    duration_seconds: float = 0.0

    @classmethod
    def from_pcm(cls, frames: bytes, sample_rate: int = 16000, channels: int = 1) -> "AudioClip":
        """Wrap raw 16-bit PCM frames in a WAV container."""
        buffer = io.BytesIO()
        with wave.open(buffer, 'wb') as wf:
            wf.setnchannels(channels)
            wf.setsampwidth(2)  # 16-bit
            wf.setframerate(sample_rate)
            wf.writeframes(frames)

        bytes_per_second = sample_rate * channels * 2
        return cls(
            data=buffer.getvalue(),
            mime_type=WAV_MIME_TYPE,
            sample_rate=sample_rate,
            channels=channels,
            duration_seconds=len(frames) / bytes_per_second if bytes_per_second else 0.0,
        )

    @property
    def size_bytes(self) -> int:
        return len(self.data)

    def write_temp_file(self, directory: Optional[str] = None) -> Path:
        """Write the clip to a temporary file and return its path.

        The caller owns the file and is responsible for deleting it.
        """
        suffix = ".wav" if self.mime_type == WAV_MIME_TYPE else ".bin"
        fd, path = tempfile.mkstemp(prefix="speak2spend_clip_", suffix=suffix, dir=directory)
        with os.fdopen(fd, 'wb') as f:
            f.write(self.data)
        return Path(path)
