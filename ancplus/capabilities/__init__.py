"""
Capabilities Module

Interfaces for the closed set of capability categories and the default
implementations the registry loads on demand.
"""

from .base import (
    Capability,
    CapabilityCategory,
    SeparationCapability,
    RecognitionCapability,
    DetectionCapability,
    SearchCapability,
    Transcript,
    VoiceSegment,
    SearchMatch,
    CATEGORY_INTERFACES,
    conforms
)
from .separation import BandSplitSeparationEngine
from .detection import EnergyVoiceDetector
from .recognition import WhisperRecognizer
from .search import CorrelationSearchEngine

__all__ = [
    "Capability",
    "CapabilityCategory",
    "SeparationCapability",
    "RecognitionCapability",
    "DetectionCapability",
    "SearchCapability",
    "Transcript",
    "VoiceSegment",
    "SearchMatch",
    "CATEGORY_INTERFACES",
    "conforms",
    "BandSplitSeparationEngine",
    "EnergyVoiceDetector",
    "WhisperRecognizer",
    "CorrelationSearchEngine"
]
