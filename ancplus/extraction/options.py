#!/usr/bin/env python3

"""
Extraction Options and Format Tables

Output options for video to audio extraction, the supported container list,
codec and bitrate tables, and the FFmpeg command builder.
"""

from enum import Enum
from pathlib import Path
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


class AudioFormat(str, Enum):
    WAV = "wav"
    MP3 = "mp3"
    FLAC = "flac"
    OGG = "ogg"
    AAC = "aac"


class Quality(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    LOSSLESS = "lossless"


class ExtractionOptions(BaseModel):
    """Output options for one extraction job"""
    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    format: AudioFormat = AudioFormat.WAV
    quality: Quality = Quality.HIGH
    sample_rate: Optional[int] = Field(default=None, gt=0, le=384000)
    channels: Optional[Literal[1, 2]] = None
    start_time: Optional[float] = Field(default=None, ge=0)
    end_time: Optional[float] = Field(default=None, ge=0)

    @model_validator(mode='after')
    def check_time_range(self) -> 'ExtractionOptions':
        if self.start_time is not None and self.end_time is not None and self.end_time <= self.start_time:
            raise ValueError("end_time must be greater than start_time")
        return self


# Lossless on a lossy codec maps to that codec's maximum
BITRATES: Dict[AudioFormat, Dict[Quality, str]] = {
    AudioFormat.MP3: {
        Quality.LOW: "128k",
        Quality.MEDIUM: "192k",
        Quality.HIGH: "320k",
        Quality.LOSSLESS: "320k",
    },
    AudioFormat.OGG: {
        Quality.LOW: "96k",
        Quality.MEDIUM: "160k",
        Quality.HIGH: "256k",
        Quality.LOSSLESS: "320k",
    },
    AudioFormat.AAC: {
        Quality.LOW: "96k",
        Quality.MEDIUM: "160k",
        Quality.HIGH: "256k",
        Quality.LOSSLESS: "320k",
    },
}

CODECS: Dict[AudioFormat, str] = {
    AudioFormat.WAV: "pcm_s16le",
    AudioFormat.MP3: "libmp3lame",
    AudioFormat.FLAC: "flac",
    AudioFormat.OGG: "libvorbis",
    AudioFormat.AAC: "aac",
}

AUDIO_MIME_TYPES: Dict[AudioFormat, str] = {
    AudioFormat.WAV: "audio/wav",
    AudioFormat.MP3: "audio/mpeg",
    AudioFormat.FLAC: "audio/flac",
    AudioFormat.OGG: "audio/ogg",
    AudioFormat.AAC: "audio/aac",
}


def bitrate_for(audio_format: AudioFormat, quality: Quality) -> Optional[str]:
    """Target bitrate, or None for formats that are not bitrate driven"""
    table = BITRATES.get(AudioFormat(audio_format))
    if table is None:
        return None
    return table[Quality(quality)]


def build_extraction_command(input_name: str, output_name: str, options: ExtractionOptions) -> List[str]:
    """FFmpeg arguments (without the binary) for one extraction"""
    command = ["-i", input_name]

    if options.start_time is not None:
        command += ["-ss", str(options.start_time)]
    if options.end_time is not None:
        command += ["-to", str(options.end_time)]

    command += ["-acodec", CODECS[options.format]]
    bitrate = bitrate_for(options.format, options.quality)
    if bitrate:
        command += ["-b:a", bitrate]

    if options.sample_rate:
        command += ["-ar", str(options.sample_rate)]
    if options.channels:
        command += ["-ac", str(options.channels)]

    command.append("-vn")
    command.append(output_name)
    return command


class VideoFormats:
    """Supported input containers and user-facing format descriptions"""

    CONTAINERS: Dict[str, Dict[str, str]] = {
        "mp4": {"mime_type": "video/mp4", "description": "Most widely supported video format"},
        "mov": {"mime_type": "video/quicktime", "description": "Apple QuickTime format"},
        "avi": {"mime_type": "video/x-msvideo", "description": "Classic Windows video format"},
        "mkv": {"mime_type": "video/x-matroska", "description": "Open-source container with excellent quality"},
        "webm": {"mime_type": "video/webm", "description": "Web-optimized open format"},
        "flv": {"mime_type": "video/x-flv", "description": "Adobe Flash video format"},
        "m4v": {"mime_type": "video/x-m4v", "description": "iTunes-compatible video format"},
        "3gp": {"mime_type": "video/3gpp", "description": "Mobile phone video format"},
        "wmv": {"mime_type": "video/x-ms-wmv", "description": "Windows Media Video format"},
        "ogv": {"mime_type": "video/ogg", "description": "Open-source Ogg video format"},
    }

    FORMAT_DESCRIPTIONS: Dict[AudioFormat, str] = {
        AudioFormat.WAV: "WAV - Uncompressed, highest quality",
        AudioFormat.MP3: "MP3 - Most compatible, good compression",
        AudioFormat.FLAC: "FLAC - Lossless compression",
        AudioFormat.OGG: "OGG - Open source, good compression",
        AudioFormat.AAC: "AAC - High efficiency, modern format",
    }

    QUALITY_DESCRIPTIONS: Dict[Quality, str] = {
        Quality.LOW: "Low - Smaller file, lower quality",
        Quality.MEDIUM: "Medium - Balanced size and quality",
        Quality.HIGH: "High - Larger file, better quality",
        Quality.LOSSLESS: "Lossless - Maximum quality",
    }

    @classmethod
    def supported_containers(cls) -> List[str]:
        return list(cls.CONTAINERS)

    @classmethod
    def supported_audio_formats(cls) -> List[str]:
        return [f.value for f in AudioFormat]

    @staticmethod
    def extension_of(file_name: str) -> str:
        return Path(file_name).suffix.lstrip('.').lower()

    @classmethod
    def is_video(cls, file_name: str) -> bool:
        return cls.extension_of(file_name) in cls.CONTAINERS

    @classmethod
    def mime_type(cls, container: str) -> Optional[str]:
        entry = cls.CONTAINERS.get(container.lower())
        return entry["mime_type"] if entry else None

    @classmethod
    def format_description(cls, audio_format: AudioFormat) -> str:
        return cls.FORMAT_DESCRIPTIONS.get(AudioFormat(audio_format), "Unknown format")

    @classmethod
    def quality_description(cls, quality: Quality) -> str:
        return cls.QUALITY_DESCRIPTIONS.get(Quality(quality), "Medium quality")
