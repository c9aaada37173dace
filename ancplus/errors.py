#!/usr/bin/env python3

"""
Error Taxonomy

Typed errors carried inside Failure results across the core. Every error keeps
enough context (capability name, job id, stage) to be shown to a user through
``user_message`` without leaking raw engine diagnostics, which stay in
``details``.
"""

from typing import Any, Dict, Optional


class AncError(Exception):
    """Base error for the stream separation core."""

    user_text = "Audio processing failed."

    def __init__(self, message: str, details: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.details = details

    @property
    def user_message(self) -> str:
        return self.user_text

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": type(self).__name__,
            "message": self.user_message,
        }

    def __str__(self) -> str:
        if self.details:
            return f"{self.message}: {self.details}"
        return self.message


class DecodeError(AncError):
    """Raised when input bytes are empty, malformed or in an unsupported format."""

    user_text = "The audio could not be decoded. It may be empty, corrupted or in an unsupported format."

    def __init__(self, message: str, format_hint: Optional[str] = None, details: Optional[str] = None,
                 job_id: Optional[str] = None, stage: Optional[str] = None):
        super().__init__(message, details)
        self.format_hint = format_hint
        # set when the decode ran as the converting stage of an extraction job
        self.job_id = job_id
        self.stage = stage

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        if self.job_id is not None:
            data.update({"job_id": self.job_id, "stage": self.stage})
        return data


class UnknownCapability(AncError):
    """Raised when a capability name or preload action is not in the registry table."""

    def __init__(self, name: str):
        super().__init__(f"Unknown capability: {name}")
        self.name = name

    @property
    def user_message(self) -> str:
        return f"'{self.name}' is not an available processing feature."


class LoadFailure(AncError):
    """Raised when a capability bootstrap fails. Retryable on the next acquire."""

    def __init__(self, name: str, cause: BaseException):
        super().__init__(f"Failed to load capability {name}", details=repr(cause))
        self.name = name
        self.cause = cause

    @property
    def user_message(self) -> str:
        return f"The '{self.name}' feature could not be started. Please try again."


class PreloadFailure(AncError):
    """Collects every failed load of a preload action."""

    def __init__(self, action: str, failures: Dict[str, AncError]):
        names = ", ".join(sorted(failures))
        super().__init__(f"Preload '{action}' failed for: {names}")
        self.action = action
        self.failures = failures

    @property
    def user_message(self) -> str:
        return f"Some features needed for '{self.action}' could not be started."


class CapabilityUnavailable(AncError):
    """Raised by the audio pipeline when the separation capability cannot be acquired."""

    def __init__(self, name: str, cause: AncError):
        super().__init__(f"Capability {name} unavailable", details=str(cause))
        self.name = name
        self.cause = cause

    @property
    def user_message(self) -> str:
        return "Smart audio separation is temporarily unavailable. Please try again."


class SeparationError(AncError):
    """Raised when the separation capability ran but produced no valid output."""

    user_text = "The audio could not be separated into streams."


class OutOfRange(AncError):
    """Raised synchronously for invalid controller input; no state change happens."""

    def __init__(self, field: str, value: Any, low: float = 0.0, high: float = 1.0):
        super().__init__(f"{field} must be within [{low}, {high}], got {value!r}")
        self.field = field
        self.value = value
        self.low = low
        self.high = high

    @property
    def user_message(self) -> str:
        return f"{self.field.capitalize()} must be between {self.low:g} and {self.high:g}."


class SessionClosed(AncError):
    """Raised when a stream session is used after it ended."""

    user_text = "This audio session has ended."


class UnsupportedContainer(AncError):
    """Raised when a video container is not supported by the extraction pipeline."""

    def __init__(self, file_name: str, container: str, job_id: Optional[str] = None):
        super().__init__(f"Unsupported container '{container}' for {file_name}")
        self.file_name = file_name
        self.container = container
        self.job_id = job_id

    @property
    def user_message(self) -> str:
        return f"'.{self.container}' files are not supported. Try MP4, MOV, MKV or WebM."


class TranscodeError(AncError):
    """Raised when the external transcoding engine fails during a job."""

    def __init__(self, message: str, job_id: Optional[str] = None, stage: Optional[str] = None,
                 cause: Optional[BaseException] = None, details: Optional[str] = None):
        super().__init__(message, details=details)
        self.job_id = job_id
        self.stage = stage
        self.cause = cause

    @property
    def user_message(self) -> str:
        if self.stage == "loading":
            return "Failed to initialize video processor. Please try again."
        return "Failed to extract audio from video. Please try a different video file or format."

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update({"job_id": self.job_id, "stage": self.stage})
        return data


class ValidationError(AncError):
    """Raised by the caller-side media validator."""

    def __init__(self, message: str, reason: str, file_name: Optional[str] = None):
        super().__init__(message)
        self.reason = reason
        self.file_name = file_name

    @property
    def user_message(self) -> str:
        return self.message
