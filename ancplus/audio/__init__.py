"""
Audio Module

Decoded buffers, processing settings, separated streams and their controllers.
"""

from .buffer import AudioBuffer
from .decoder import AudioDecoder
from .settings import (
    ProcessingSettings,
    NoiseCancellation,
    TransparencyMode,
    VoiceSeparation,
    BackgroundNoiseReduction
)
from .streams import (
    AudioStream,
    StreamType,
    PlaybackState,
    StreamController,
    STREAM_LABELS
)

__all__ = [
    "AudioBuffer",
    "AudioDecoder",
    "ProcessingSettings",
    "NoiseCancellation",
    "TransparencyMode",
    "VoiceSeparation",
    "BackgroundNoiseReduction",
    "AudioStream",
    "StreamType",
    "PlaybackState",
    "StreamController",
    "STREAM_LABELS"
]
