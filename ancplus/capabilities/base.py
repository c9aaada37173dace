#!/usr/bin/env python3

"""
Capability Interfaces

Closed set of capability categories. Each category has a fixed method contract;
the registry maps a capability name to exactly one category and checks the
loaded instance against that category's interface before handing it out.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Type

from ..functional.result_monad import Result, Success
from ..audio.buffer import AudioBuffer
from ..audio.settings import ProcessingSettings
from ..audio.streams import AudioStream

logger = logging.getLogger(__name__)


class CapabilityCategory(Enum):
    """Closed set of capability variants"""
    SEPARATION = "separation"
    RECOGNITION = "recognition"
    DETECTION = "detection"
    SEARCH = "search"


@dataclass(frozen=True)
class Transcript:
    """Speech recognition output"""
    text: str
    language: Optional[str] = None
    segments: List[Dict[str, Any]] = field(default_factory=list)


@dataclass(frozen=True)
class VoiceSegment:
    """A [start, end) window in seconds that contains voice activity"""
    start: float
    end: float
    confidence: float


@dataclass(frozen=True)
class SearchMatch:
    """Position of a query clip inside a buffer"""
    offset: float
    score: float


class Capability(ABC):
    """Lifecycle shared by every capability unit"""

    category: CapabilityCategory

    async def initialize(self) -> Result[None, str]:
        """Acquire heavyweight resources (models, workers)"""
        return Success(None)

    async def dispose(self) -> None:
        """Release resources; called on eviction or registry shutdown"""


class SeparationCapability(Capability):
    category = CapabilityCategory.SEPARATION

    @abstractmethod
    async def separate(self, buffer: AudioBuffer, settings: ProcessingSettings) -> List[AudioStream]:
        """Split a buffer into labeled streams"""


class RecognitionCapability(Capability):
    category = CapabilityCategory.RECOGNITION

    @abstractmethod
    async def recognize(self, buffer: AudioBuffer) -> Transcript:
        """Transcribe speech in a buffer"""


class DetectionCapability(Capability):
    category = CapabilityCategory.DETECTION

    @abstractmethod
    async def detect(self, buffer: AudioBuffer) -> List[VoiceSegment]:
        """Find voice activity in a buffer"""


class SearchCapability(Capability):
    category = CapabilityCategory.SEARCH

    @abstractmethod
    async def search(self, buffer: AudioBuffer, query: AudioBuffer, limit: int = 5) -> List[SearchMatch]:
        """Locate a query clip inside a buffer"""


CATEGORY_INTERFACES: Dict[CapabilityCategory, Type[Capability]] = {
    CapabilityCategory.SEPARATION: SeparationCapability,
    CapabilityCategory.RECOGNITION: RecognitionCapability,
    CapabilityCategory.DETECTION: DetectionCapability,
    CapabilityCategory.SEARCH: SearchCapability,
}


def conforms(instance: Any, category: CapabilityCategory) -> bool:
    """True if instance implements the interface of the given category"""
    return isinstance(instance, CATEGORY_INTERFACES[category])
