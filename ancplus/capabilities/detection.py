#!/usr/bin/env python3

"""
Energy-based voice activity detection.
"""

import asyncio
import logging
from typing import List

import numpy as np

from ..audio.buffer import AudioBuffer
from .base import DetectionCapability, VoiceSegment

logger = logging.getLogger(__name__)


class EnergyVoiceDetector(DetectionCapability):
    """Marks frames whose RMS exceeds a threshold relative to the loudest frame"""

    def __init__(self, frame_seconds: float = 0.03, threshold: float = 0.1, min_gap: float = 0.2):
        self.frame_seconds = frame_seconds
        self.threshold = threshold
        self.min_gap = min_gap

    async def detect(self, buffer: AudioBuffer) -> List[VoiceSegment]:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._detect, buffer)

    def _detect(self, buffer: AudioBuffer) -> List[VoiceSegment]:
        mono = buffer.mono()
        frame = max(1, int(self.frame_seconds * buffer.sample_rate))
        count = len(mono) // frame
        if count == 0:
            return []

        frames = mono[:count * frame].reshape(count, frame)
        rms = np.sqrt(np.mean(frames.astype(np.float64) ** 2, axis=1))
        peak = float(rms.max())
        if peak <= 0.0:
            return []

        relative = rms / peak
        active = relative >= self.threshold

        segments: List[VoiceSegment] = []
        start = None
        for index, is_active in enumerate(active):
            if is_active and start is None:
                start = index
            elif not is_active and start is not None:
                segments.append(self._segment(start, index, frame, buffer.sample_rate, relative))
                start = None
        if start is not None:
            segments.append(self._segment(start, count, frame, buffer.sample_rate, relative))

        return self._merge(segments)

    @staticmethod
    def _segment(start: int, end: int, frame: int, sample_rate: int, relative: np.ndarray) -> VoiceSegment:
        return VoiceSegment(
            start=start * frame / sample_rate,
            end=end * frame / sample_rate,
            confidence=float(np.mean(relative[start:end])),
        )

    def _merge(self, segments: List[VoiceSegment]) -> List[VoiceSegment]:
        merged: List[VoiceSegment] = []
        for segment in segments:
            if merged and segment.start - merged[-1].end < self.min_gap:
                previous = merged.pop()
                segment = VoiceSegment(
                    start=previous.start,
                    end=segment.end,
                    confidence=max(previous.confidence, segment.confidence),
                )
            merged.append(segment)
        return merged
