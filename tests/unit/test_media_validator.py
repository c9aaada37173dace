#!/usr/bin/env python3

"""
Media Validator Unit Tests
"""

import pytest

from ancplus.config import ValidationConfig
from ancplus.errors import ValidationError
from ancplus.functional.result_monad import Failure
from ancplus.validation.media_validator import MediaUpload, MediaValidator, ValidationReason
from tests.test_utils import (
    assert_result_failure,
    assert_result_success,
    create_test_buffer,
    create_test_wav_data
)


@pytest.fixture
def validator():
    return MediaValidator(ValidationConfig(max_file_size=1024 * 1024, max_duration=5.0, min_duration=0.1))


@pytest.mark.unit
class TestMediaValidator:

    def test_valid_audio(self, validator):
        upload = MediaUpload.from_bytes("speech.wav", create_test_wav_data(0.5))

        result = assert_result_success(validator.validate(upload))
        assert result.is_valid
        assert result.extension == "wav"
        assert result.file_name == "speech.wav"
        assert result.file_size == upload.size
        assert not result.is_video

    def test_valid_video(self, validator):
        result = assert_result_success(validator.validate(MediaUpload("clip.MKV", 2048)))

        assert result.is_video
        assert result.extension == "mkv"

    @pytest.mark.parametrize("upload, reason", [
        (MediaUpload("", 10), ValidationReason.MISSING_FILE),
        (MediaUpload("empty.wav", 0), ValidationReason.EMPTY_FILE),
        (MediaUpload("huge.wav", 2 * 1024 * 1024), ValidationReason.FILE_TOO_LARGE),
        (MediaUpload("document.pdf", 100), ValidationReason.INVALID_EXTENSION),
        (MediaUpload("README", 100), ValidationReason.INVALID_EXTENSION),
        (MediaUpload("../../etc/passwd.wav", 100), ValidationReason.SECURITY_RISK),
        (MediaUpload("a" * 300 + ".wav", 100), ValidationReason.SECURITY_RISK),
    ])
    def test_rejections(self, validator, upload, reason):
        error = assert_result_failure(validator.validate(upload), ValidationError)
        assert error.reason == reason
        assert error.user_message

    def test_from_path(self, temp_dir):
        path = f"{temp_dir}/tone.wav"
        with open(path, "wb") as f:
            f.write(create_test_wav_data(0.2))

        upload = MediaUpload.from_path(path)
        assert upload.file_name == "tone.wav"
        assert upload.size > 0

    def test_custom_validator(self, validator):
        def no_mp3(upload, config):
            if upload.file_name.endswith(".mp3"):
                return Failure(ValidationError("No MP3 please", "custom", upload.file_name))
            return validator._validate_name(upload, config)

        validator.add_validator(no_mp3)
        error = assert_result_failure(validator.validate(MediaUpload("song.mp3", 100)))
        assert error.reason == "custom"

        validator.remove_validator(no_mp3)
        assert_result_success(validator.validate(MediaUpload("song.mp3", 100)))


@pytest.mark.unit
class TestDurationValidation:

    def test_within_limits(self, validator):
        result = assert_result_success(validator.validate_duration(create_test_buffer(1.0), "a.wav"))
        assert result.duration == pytest.approx(1.0)

    def test_too_long(self, validator):
        error = assert_result_failure(validator.validate_duration(create_test_buffer(6.0)), ValidationError)
        assert error.reason == ValidationReason.TOO_LONG

    def test_too_short(self, validator):
        error = assert_result_failure(validator.validate_duration(create_test_buffer(0.05)), ValidationError)
        assert error.reason == ValidationReason.TOO_SHORT
