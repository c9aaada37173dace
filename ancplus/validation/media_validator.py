#!/usr/bin/env python3

"""
Media Validator

Caller-side checks for an upload before it reaches the core: name, emptiness,
size, extension and, once decoded, duration. Validators form a composable
pipeline; the first failure stops it.
"""

import logging
import mimetypes
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from ..audio.buffer import AudioBuffer
from ..config import ValidationConfig
from ..errors import ValidationError
from ..extraction.options import VideoFormats
from ..functional.result_monad import Result, Success, Failure

logger = logging.getLogger(__name__)

AUDIO_EXTENSIONS = ['wav', 'wave', 'mp3', 'flac', 'm4a', 'webm', 'ogg', 'opus', 'aac', 'aiff']


class ValidationReason:
    MISSING_FILE = "missing_file"
    EMPTY_FILE = "empty_file"
    FILE_TOO_LARGE = "file_too_large"
    INVALID_EXTENSION = "invalid_extension"
    SECURITY_RISK = "security_risk"
    TOO_LONG = "too_long"
    TOO_SHORT = "too_short"


@dataclass(frozen=True)
class MediaUpload:
    """Name and size of an upload; data is optional when only the size is known"""
    file_name: str
    size: int
    content_type: Optional[str] = None

    @classmethod
    def from_bytes(cls, file_name: str, data: bytes, content_type: Optional[str] = None) -> 'MediaUpload':
        return cls(file_name=file_name, size=len(data), content_type=content_type)

    @classmethod
    def from_path(cls, path: str) -> 'MediaUpload':
        file_path = Path(path)
        return cls(
            file_name=file_path.name,
            size=file_path.stat().st_size,
            content_type=mimetypes.guess_type(str(file_path))[0],
        )


@dataclass(frozen=True)
class ValidationResult:
    """Result of validation with metadata"""
    is_valid: bool
    file_name: Optional[str] = None
    file_size: Optional[int] = None
    extension: Optional[str] = None
    is_video: bool = False
    duration: Optional[float] = None
    metadata: Dict[str, Any] = field(default_factory=dict)


ValidationFunction = Callable[[MediaUpload, ValidationConfig], Result[ValidationResult, ValidationError]]


class MediaValidator:
    """Composable upload validator"""

    def __init__(self, config: Optional[ValidationConfig] = None):
        self.config = config or ValidationConfig()
        self._validators: List[ValidationFunction] = []
        self._setup_default_validators()

    def _setup_default_validators(self) -> None:
        self.add_validator(self._validate_name)
        self.add_validator(self._validate_not_empty)
        self.add_validator(self._validate_size)
        self.add_validator(self._validate_extension)
        self.add_validator(self._validate_security)

    def add_validator(self, validator: ValidationFunction) -> 'MediaValidator':
        self._validators.append(validator)
        return self

    def remove_validator(self, validator: ValidationFunction) -> 'MediaValidator':
        if validator in self._validators:
            self._validators.remove(validator)
        return self

    def validate(self, upload: MediaUpload) -> Result[ValidationResult, ValidationError]:
        """Run the pipeline over an upload"""
        results = []
        for validator in self._validators:
            result = validator(upload, self.config)
            if result.is_failure():
                logger.warning(f"Validation failed for {upload.file_name}: {result.get_error()}")
                return result
            results.append(result.get_value())

        combined = self._combine(results)
        logger.info(f"Media validation passed: {upload.file_name} ({upload.size} bytes)")
        return Success(combined)

    def validate_duration(self, buffer: AudioBuffer,
                          file_name: Optional[str] = None) -> Result[ValidationResult, ValidationError]:
        """Check a decoded buffer against the duration limits"""
        duration = buffer.duration
        if duration > self.config.max_duration:
            return Failure(ValidationError(
                f"Audio too long: {duration:.1f}s exceeds limit of {self.config.max_duration:.0f}s",
                ValidationReason.TOO_LONG, file_name
            ))
        if duration < self.config.min_duration:
            return Failure(ValidationError(
                f"Audio too short: {duration:.2f}s is below {self.config.min_duration:.2f}s",
                ValidationReason.TOO_SHORT, file_name
            ))
        return Success(ValidationResult(is_valid=True, file_name=file_name, duration=duration))

    @staticmethod
    def _validate_name(upload: MediaUpload, config: ValidationConfig) -> Result[ValidationResult, ValidationError]:
        if not upload.file_name:
            return Failure(ValidationError("File has no name", ValidationReason.MISSING_FILE))
        return Success(ValidationResult(is_valid=True, file_name=upload.file_name))

    @staticmethod
    def _validate_not_empty(upload: MediaUpload,
                            config: ValidationConfig) -> Result[ValidationResult, ValidationError]:
        if upload.size <= 0:
            return Failure(ValidationError("File is empty", ValidationReason.EMPTY_FILE, upload.file_name))
        return Success(ValidationResult(is_valid=True))

    @staticmethod
    def _validate_size(upload: MediaUpload, config: ValidationConfig) -> Result[ValidationResult, ValidationError]:
        if upload.size > config.max_file_size:
            max_mb = config.max_file_size / (1024 * 1024)
            actual_mb = upload.size / (1024 * 1024)
            return Failure(ValidationError(
                f"File too large: {actual_mb:.1f}MB exceeds limit of {max_mb:.1f}MB",
                ValidationReason.FILE_TOO_LARGE, upload.file_name
            ))
        return Success(ValidationResult(is_valid=True, file_size=upload.size))

    @staticmethod
    def _validate_extension(upload: MediaUpload,
                            config: ValidationConfig) -> Result[ValidationResult, ValidationError]:
        extension = VideoFormats.extension_of(upload.file_name)
        if not extension:
            return Failure(ValidationError("File has no extension", ValidationReason.INVALID_EXTENSION,
                                           upload.file_name))

        is_video = extension in VideoFormats.CONTAINERS
        if extension not in AUDIO_EXTENSIONS and not is_video:
            supported = AUDIO_EXTENSIONS + VideoFormats.supported_containers()
            return Failure(ValidationError(
                f"Unsupported file extension '.{extension}'. Supported formats: {', '.join(supported)}",
                ValidationReason.INVALID_EXTENSION, upload.file_name
            ))
        return Success(ValidationResult(is_valid=True, extension=extension, is_video=is_video))

    @staticmethod
    def _validate_security(upload: MediaUpload,
                           config: ValidationConfig) -> Result[ValidationResult, ValidationError]:
        file_name = upload.file_name
        if '..' in file_name or '/' in file_name or '\\' in file_name:
            return Failure(ValidationError("Invalid filename: path traversal detected",
                                           ValidationReason.SECURITY_RISK, file_name))
        if len(file_name) > 255:
            return Failure(ValidationError("Filename too long", ValidationReason.SECURITY_RISK, file_name))
        return Success(ValidationResult(is_valid=True))

    @staticmethod
    def _combine(results: List[ValidationResult]) -> ValidationResult:
        metadata: Dict[str, Any] = {}
        values: Dict[str, Any] = {}
        for result in results:
            metadata.update(result.metadata)
            for name in ('file_name', 'file_size', 'extension', 'duration'):
                value = getattr(result, name)
                if value is not None:
                    values[name] = value
            if result.is_video:
                values['is_video'] = True
        # every validator passed if we got here
        return ValidationResult(is_valid=True, metadata=metadata, **values)
