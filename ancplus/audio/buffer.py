#!/usr/bin/env python3

"""
Decoded audio buffer: sample rate plus equal-length per-channel sample arrays.
"""

from dataclasses import dataclass
from typing import Tuple

import numpy as np


@dataclass(frozen=True)
class AudioBuffer:
    """Immutable decoded audio"""
    sample_rate: int
    channels: Tuple[np.ndarray, ...]

    def __post_init__(self):
        if int(self.sample_rate) <= 0:
            raise ValueError(f"Sample rate must be positive, got {self.sample_rate}")
        if len(self.channels) == 0:
            raise ValueError("AudioBuffer needs at least one channel")

        frozen = []
        for channel in self.channels:
            data = np.array(channel, dtype=np.float32, copy=True).reshape(-1)
            data.setflags(write=False)
            frozen.append(data)

        lengths = {len(c) for c in frozen}
        if len(lengths) != 1:
            raise ValueError(f"Channel lengths differ: {sorted(lengths)}")

        object.__setattr__(self, 'sample_rate', int(self.sample_rate))
        object.__setattr__(self, 'channels', tuple(frozen))

    @classmethod
    def from_array(cls, samples: np.ndarray, sample_rate: int) -> 'AudioBuffer':
        """Build from a (frames,) or (frames, channels) array as returned by soundfile"""
        data = np.asarray(samples)
        if data.ndim == 1:
            return cls(sample_rate=sample_rate, channels=(data,))
        return cls(sample_rate=sample_rate, channels=tuple(data[:, i] for i in range(data.shape[1])))

    @property
    def num_channels(self) -> int:
        return len(self.channels)

    @property
    def sample_count(self) -> int:
        return len(self.channels[0])

    @property
    def duration(self) -> float:
        return self.sample_count / self.sample_rate

    def mono(self) -> np.ndarray:
        """Channel average as a new array"""
        if self.num_channels == 1:
            return self.channels[0]
        return np.mean(np.stack(self.channels), axis=0).astype(np.float32)

    def to_array(self) -> np.ndarray:
        """(frames, channels) array, the layout soundfile writes"""
        return np.stack(self.channels, axis=1)

    def segment(self, start: float, end: float) -> 'AudioBuffer':
        """Copy of the [start, end) window in seconds"""
        lo = max(0, int(round(start * self.sample_rate)))
        hi = min(self.sample_count, int(round(end * self.sample_rate)))
        if hi <= lo:
            raise ValueError(f"Empty segment [{start}, {end})")
        return AudioBuffer(self.sample_rate, tuple(c[lo:hi] for c in self.channels))
