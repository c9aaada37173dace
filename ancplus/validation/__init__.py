"""
Validation Module

Caller-side upload validation.
"""

from .media_validator import (
    MediaValidator,
    MediaUpload,
    ValidationResult,
    ValidationReason,
    AUDIO_EXTENSIONS
)

__all__ = [
    "MediaValidator",
    "MediaUpload",
    "ValidationResult",
    "ValidationReason",
    "AUDIO_EXTENSIONS"
]
