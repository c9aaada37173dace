"""
Extraction Module

Video to audio extraction: options, progress channel, transcoding engines and
the staged extraction pipeline.
"""

from .options import (
    AudioFormat,
    Quality,
    ExtractionOptions,
    VideoFormats,
    BITRATES,
    CODECS,
    AUDIO_MIME_TYPES,
    bitrate_for,
    build_extraction_command
)
from .progress import (
    ExtractionStage,
    ProgressUpdate,
    ProgressChannel,
    STAGE_BANDS,
    overall_percentage
)
from .engine import (
    TranscodingEngine,
    FFmpegEngine,
    MediaInfo,
    media_info_from_probe
)
from .media_pipeline import (
    MediaExtractionPipeline,
    ExtractionJob,
    ExtractionOutput,
    BatchItemResult
)

__all__ = [
    "AudioFormat",
    "Quality",
    "ExtractionOptions",
    "VideoFormats",
    "BITRATES",
    "CODECS",
    "AUDIO_MIME_TYPES",
    "bitrate_for",
    "build_extraction_command",
    "ExtractionStage",
    "ProgressUpdate",
    "ProgressChannel",
    "STAGE_BANDS",
    "overall_percentage",
    "TranscodingEngine",
    "FFmpegEngine",
    "MediaInfo",
    "media_info_from_probe",
    "MediaExtractionPipeline",
    "ExtractionJob",
    "ExtractionOutput",
    "BatchItemResult"
]
