#!/usr/bin/env python3

"""
Audio Streams and Stream Controllers

An AudioStream is one separated, independently steerable channel derived from
a source buffer. Its playback state is mutated only through the
StreamController that owns it. Controllers are synchronous and never touch
another stream's state; mixing is an audio-output concern.
"""

import logging
import math
import numbers
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

import numpy as np

from ..errors import OutOfRange
from ..functional.result_monad import Result, Success, Failure
from .buffer import AudioBuffer

logger = logging.getLogger(__name__)


class StreamType(Enum):
    """Perceptual category of a separated stream"""
    VOICE = "voice"
    MUSIC = "music"
    AMBIENT = "ambient"
    NOISE = "noise"


STREAM_LABELS = {
    StreamType.VOICE: "Voice",
    StreamType.MUSIC: "Music",
    StreamType.AMBIENT: "Ambient",
    StreamType.NOISE: "Background Noise",
}


@dataclass
class PlaybackState:
    """Live, mutable playback state of one stream"""
    volume: float = 1.0
    is_muted: bool = False
    is_active: bool = True

    def copy(self) -> 'PlaybackState':
        return PlaybackState(self.volume, self.is_muted, self.is_active)

    def to_dict(self) -> Dict[str, Any]:
        return {"volume": self.volume, "isMuted": self.is_muted, "isActive": self.is_active}


@dataclass(eq=False)
class AudioStream:
    """One separated stream produced by a separation capability"""
    id: str
    type: StreamType
    source: AudioBuffer
    samples: Optional[np.ndarray] = None
    name: str = ""
    dominant_frequency: Optional[float] = None
    state: PlaybackState = field(default_factory=PlaybackState)

    def __post_init__(self):
        if not self.name:
            self.name = STREAM_LABELS.get(self.type, str(self.type))
        if self.samples is not None:
            self.samples = np.asarray(self.samples, dtype=np.float32)
            self.samples.setflags(write=False)

    def snapshot(self) -> Dict[str, Any]:
        """Serializable view handed to the persistence collaborator"""
        return {
            "id": self.id,
            "type": self.type.value,
            "name": self.name,
            "frequency": self.dominant_frequency,
            **self.state.to_dict(),
        }


class StreamController:
    """Applies volume, mute and active updates to exactly one stream"""

    def __init__(self, stream: AudioStream):
        checked = self._check_volume(stream.state.volume)
        if checked.is_failure():
            raise checked.get_error()
        self._stream = stream

    @property
    def stream(self) -> AudioStream:
        return self._stream

    @property
    def stream_id(self) -> str:
        return self._stream.id

    @property
    def state(self) -> PlaybackState:
        """Copy of the current playback state"""
        return self._stream.state.copy()

    @property
    def effective_gain(self) -> float:
        """Gain an output stage should apply: zero while muted or inactive"""
        state = self._stream.state
        if state.is_muted or not state.is_active:
            return 0.0
        return state.volume

    def set_volume(self, volume: float) -> Result[PlaybackState, OutOfRange]:
        checked = self._check_volume(volume)
        if checked.is_failure():
            logger.debug(f"Rejected volume {volume!r} for stream {self.stream_id}")
            return checked
        self._stream.state.volume = checked.get_value()
        return Success(self.state)

    def set_mute(self, muted: bool) -> Result[PlaybackState, OutOfRange]:
        self._stream.state.is_muted = bool(muted)
        return Success(self.state)

    def set_active(self, active: bool) -> Result[PlaybackState, OutOfRange]:
        self._stream.state.is_active = bool(active)
        return Success(self.state)

    def apply(self, volume: Optional[float] = None, muted: Optional[bool] = None,
              active: Optional[bool] = None) -> Result[PlaybackState, OutOfRange]:
        """Apply several updates; an invalid volume rejects the whole update"""
        if volume is not None:
            checked = self._check_volume(volume)
            if checked.is_failure():
                return checked
            self._stream.state.volume = checked.get_value()
        if muted is not None:
            self.set_mute(muted)
        if active is not None:
            self.set_active(active)
        return Success(self.state)

    def snapshot(self) -> Dict[str, Any]:
        return self._stream.snapshot()

    @staticmethod
    def _check_volume(volume: Any) -> Result[float, OutOfRange]:
        if isinstance(volume, bool) or not isinstance(volume, numbers.Real):
            return Failure(OutOfRange("volume", volume))
        value = float(volume)
        if math.isnan(value) or value < 0.0 or value > 1.0:
            return Failure(OutOfRange("volume", volume))
        return Success(value)
