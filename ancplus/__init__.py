"""
ANC Plus Core

Lazy capability loading, audio stream separation with per-stream control, and
video to audio extraction.
"""

from .audio import (
    AudioBuffer,
    AudioDecoder,
    AudioStream,
    PlaybackState,
    ProcessingSettings,
    StreamController,
    StreamType
)
from .config import AncConfig, setup_logging
from .errors import AncError
from .extraction import ExtractionOptions, MediaExtractionPipeline
from .loading import ModuleRegistry, create_default_registry
from .pipeline import AudioPipeline, StreamSession

__version__ = "1.0.0"

__all__ = [
    "AudioBuffer",
    "AudioDecoder",
    "AudioStream",
    "PlaybackState",
    "ProcessingSettings",
    "StreamController",
    "StreamType",
    "AncConfig",
    "setup_logging",
    "AncError",
    "ExtractionOptions",
    "MediaExtractionPipeline",
    "ModuleRegistry",
    "create_default_registry",
    "AudioPipeline",
    "StreamSession"
]
