#!/usr/bin/env python3

"""
Band-Split Separation Engine

Frequency-domain source separation. Each stream type owns a band and a gain;
the engine masks the spectrum of the mono mix block by block and inverts it to
get the stream samples. Every run yields all four stream types with ids unique
to that run. Initial playback state follows the processing settings:

- noise is muted and inactive while noise cancellation is enabled, and starts
  at reduced volume while background noise reduction is enabled
- ambient volume follows the transparency level while transparency is enabled
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

import numpy as np

from ..audio.buffer import AudioBuffer
from ..audio.settings import ProcessingSettings
from ..audio.streams import AudioStream, PlaybackState, StreamType
from .base import SeparationCapability

logger = logging.getLogger(__name__)

BLOCK_SIZE = 65536


@dataclass(frozen=True)
class Band:
    low: float
    high: float
    gain: float


def map_range(value: float, in_min: float, in_max: float, out_min: float, out_max: float) -> float:
    """Linear map of value from one range onto another"""
    return out_min + (value - in_min) * (out_max - out_min) / (in_max - in_min)


class BandSplitSeparationEngine(SeparationCapability):
    """Splits audio into voice, music, noise and ambient bands"""

    def __init__(self, block_size: int = BLOCK_SIZE):
        self.block_size = block_size
        self._ready = False

    async def initialize(self):
        self._ready = True
        logger.info("Band-split separation engine ready")
        return await super().initialize()

    async def dispose(self) -> None:
        self._ready = False

    def bands(self, settings: ProcessingSettings) -> Dict[StreamType, Band]:
        return {
            StreamType.VOICE: Band(85.0, 1100.0, settings.voice_separation.sensitivity / 100.0),
            StreamType.MUSIC: Band(20.0, 8000.0, 0.8),
            StreamType.NOISE: Band(8000.0, 20000.0, settings.background_noise_reduction.threshold / 100.0),
            StreamType.AMBIENT: Band(20.0, 200.0, 0.6),
        }

    def initial_state(self, stream_type: StreamType, settings: ProcessingSettings) -> PlaybackState:
        if stream_type is StreamType.NOISE:
            volume = 0.3 if settings.background_noise_reduction.enabled else 1.0
            if settings.noise_cancellation.enabled:
                return PlaybackState(volume=volume, is_muted=True, is_active=False)
            return PlaybackState(volume=volume)
        if stream_type is StreamType.AMBIENT:
            transparency = settings.transparency_mode
            if transparency.enabled:
                return PlaybackState(volume=map_range(transparency.level, 0, 100, 0.1, 1.0))
            return PlaybackState(volume=0.8)
        return PlaybackState(volume=1.0)

    async def separate(self, buffer: AudioBuffer, settings: ProcessingSettings) -> List[AudioStream]:
        bands = self.bands(settings)
        loop = asyncio.get_running_loop()
        filtered = await loop.run_in_executor(None, self._split, buffer, bands)

        run_id = uuid.uuid4().hex[:8]
        streams = []
        for stream_type in (StreamType.VOICE, StreamType.MUSIC, StreamType.NOISE, StreamType.AMBIENT):
            samples, dominant = filtered[stream_type]
            streams.append(AudioStream(
                id=f"{run_id}-{stream_type.value}",
                type=stream_type,
                source=buffer,
                samples=samples,
                dominant_frequency=dominant,
                state=self.initial_state(stream_type, settings),
            ))

        logger.debug(f"Separated {buffer.duration:.2f}s into {len(streams)} streams (run {run_id})")
        return streams

    def _split(self, buffer: AudioBuffer,
               bands: Dict[StreamType, Band]) -> Dict[StreamType, Tuple[np.ndarray, Optional[float]]]:
        mono = buffer.mono()
        outputs = {stream_type: np.zeros(len(mono), dtype=np.float32) for stream_type in bands}
        energy = {stream_type: None for stream_type in bands}

        for start in range(0, len(mono), self.block_size):
            block = mono[start:start + self.block_size]
            spectrum = np.fft.rfft(block)
            freqs = np.fft.rfftfreq(len(block), d=1.0 / buffer.sample_rate)
            magnitude = np.abs(spectrum)

            for stream_type, band in bands.items():
                mask = (freqs >= band.low) & (freqs <= band.high)
                masked = np.where(mask, spectrum, 0) * band.gain
                outputs[stream_type][start:start + len(block)] = np.fft.irfft(masked, n=len(block))

                band_energy = np.where(mask, magnitude, 0.0)
                if energy[stream_type] is None:
                    energy[stream_type] = (band_energy, freqs)
                else:
                    # keep the block with the strongest in-band peak
                    if band_energy.max(initial=0.0) > energy[stream_type][0].max(initial=0.0):
                        energy[stream_type] = (band_energy, freqs)

        result = {}
        for stream_type, samples in outputs.items():
            dominant = None
            if energy[stream_type] is not None:
                band_energy, freqs = energy[stream_type]
                if band_energy.max(initial=0.0) > 0.0:
                    dominant = float(freqs[int(np.argmax(band_energy))])
            result[stream_type] = (samples, dominant)
        return result
