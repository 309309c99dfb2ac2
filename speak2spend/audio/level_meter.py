"""Loudness meter for recording visualization.

Mirrors what a browser analyser node reports: a windowed FFT over the most
recent samples, smoothed over time, mapped from decibels to byte values and
averaged into a single 0-100 level.
"""

import logging
from typing import Optional

import numpy as np

logger = logging.getLogger(__name__)


class LevelMeter:
    """Produces a 0-100 loudness signal from int16 audio samples."""

    def __init__(self,
                 fft_size: int = 256,
                 min_decibels: float = -100.0,
                 max_decibels: float = -30.0,
                 smoothing: float = 0.8):
        """Initialize level meter.

        Args:
            fft_size: Samples per transform; yields fft_size / 2 frequency bins
            min_decibels: Level mapped to 0
            max_decibels: Level mapped to 100
            smoothing: Weight of the previous spectrum (0 disables smoothing)
        """
        if fft_size < 2 or fft_size & (fft_size - 1):
            raise ValueError(f"fft_size must be a power of two, got {fft_size}")
        if max_decibels <= min_decibels:
            raise ValueError("max_decibels must be greater than min_decibels")
        if not 0.0 <= smoothing < 1.0:
            raise ValueError("smoothing must be in [0, 1)")

        self.fft_size = fft_size
        self.bin_count = fft_size // 2
        self.min_decibels = min_decibels
        self.max_decibels = max_decibels
        self.smoothing = smoothing
        self._window = np.blackman(fft_size)
        self._previous: Optional[np.ndarray] = None

    def reset(self) -> None:
        """Forget smoothing history."""
        self._previous = None

    def measure(self, samples: Optional[np.ndarray]) -> float:
        """Return the current level in percent for the latest samples."""
        if samples is None or len(samples) == 0:
            return 0.0

        frame = np.asarray(samples, dtype=np.float64)[-self.fft_size:] / 32768.0
        if len(frame) < self.fft_size:
            frame = np.pad(frame, (self.fft_size - len(frame), 0))

        spectrum = np.abs(np.fft.rfft(frame * self._window))[:self.bin_count] / self.fft_size
        if self._previous is not None and self.smoothing > 0.0:
            spectrum = self.smoothing * self._previous + (1.0 - self.smoothing) * spectrum
        self._previous = spectrum

        with np.errstate(divide='ignore'):
            decibels = 20.0 * np.log10(spectrum)

        scaled = 255.0 * (decibels - self.min_decibels) / (self.max_decibels - self.min_decibels)
        byte_values = np.clip(np.nan_to_num(scaled, neginf=0.0), 0.0, 255.0)
        return float(byte_values.mean() / 255.0 * 100.0)
