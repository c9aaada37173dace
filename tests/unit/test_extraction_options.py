#!/usr/bin/env python3

"""
Extraction Options Unit Tests
"""

import pytest
from pydantic import ValidationError

from ancplus.extraction.options import (
    AudioFormat,
    ExtractionOptions,
    Quality,
    VideoFormats,
    bitrate_for,
    build_extraction_command
)


@pytest.mark.unit
class TestExtractionOptions:

    def test_defaults(self):
        options = ExtractionOptions()

        assert options.format is AudioFormat.WAV
        assert options.quality is Quality.HIGH
        assert options.sample_rate is None
        assert options.channels is None

    def test_camel_case_payload(self):
        options = ExtractionOptions.model_validate({
            "format": "mp3", "quality": "low", "sampleRate": 44100, "startTime": 1.5, "endTime": 3,
        })

        assert options.format is AudioFormat.MP3
        assert options.sample_rate == 44100
        assert options.start_time == 1.5

    @pytest.mark.parametrize("payload", [
        {"format": "wma"},
        {"quality": "ultra"},
        {"sample_rate": 0},
        {"channels": 6},
        {"start_time": -1},
        {"start_time": 5, "end_time": 5},
        {"start_time": 5, "end_time": 2},
    ])
    def test_invalid_options_rejected(self, payload):
        with pytest.raises(ValidationError):
            ExtractionOptions(**payload)


@pytest.mark.unit
class TestBitrates:

    @pytest.mark.parametrize("quality, expected", [
        (Quality.LOW, "128k"), (Quality.MEDIUM, "192k"), (Quality.HIGH, "320k"), (Quality.LOSSLESS, "320k"),
    ])
    def test_mp3_table(self, quality, expected):
        assert bitrate_for(AudioFormat.MP3, quality) == expected

    def test_lossy_formats_share_ogg_aac_table(self):
        assert bitrate_for(AudioFormat.OGG, Quality.MEDIUM) == "160k"
        assert bitrate_for(AudioFormat.AAC, Quality.HIGH) == "256k"

    @pytest.mark.parametrize("audio_format", [AudioFormat.WAV, AudioFormat.FLAC])
    def test_lossless_formats_have_no_bitrate(self, audio_format):
        assert bitrate_for(audio_format, Quality.HIGH) is None


@pytest.mark.unit
class TestCommandBuilder:

    def test_full_command(self):
        options = ExtractionOptions(format=AudioFormat.MP3, quality=Quality.MEDIUM, sample_rate=44100,
                                    channels=2, start_time=1.0, end_time=4.5)

        assert build_extraction_command("in.mp4", "out.mp3", options) == [
            "-i", "in.mp4",
            "-ss", "1.0", "-to", "4.5",
            "-acodec", "libmp3lame", "-b:a", "192k",
            "-ar", "44100", "-ac", "2",
            "-vn", "out.mp3",
        ]

    def test_minimal_wav_command(self):
        command = build_extraction_command("clip.mov", "clip.wav", ExtractionOptions())

        assert command == ["-i", "clip.mov", "-acodec", "pcm_s16le", "-vn", "clip.wav"]


@pytest.mark.unit
class TestVideoFormats:

    def test_containers(self):
        containers = VideoFormats.supported_containers()

        assert len(containers) == 10
        assert {"mp4", "mov", "mkv", "webm"} <= set(containers)

    @pytest.mark.parametrize("file_name, expected", [
        ("holiday.MP4", True), ("talk.mkv", True), ("song.wav", False), ("noext", False),
    ])
    def test_is_video(self, file_name, expected):
        assert VideoFormats.is_video(file_name) is expected

    def test_descriptions(self):
        assert VideoFormats.mime_type("MOV") == "video/quicktime"
        assert VideoFormats.mime_type("xyz") is None
        assert VideoFormats.format_description(AudioFormat.FLAC).startswith("FLAC")
        assert VideoFormats.quality_description(Quality.LOSSLESS).startswith("Lossless")
        assert VideoFormats.supported_audio_formats() == ["wav", "mp3", "flac", "ogg", "aac"]
