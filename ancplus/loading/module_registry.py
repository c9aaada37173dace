#!/usr/bin/env python3

"""
Module Registry

Lazy, deduplicated loading of heavyweight capability units. The registry owns
a fixed table of capability specs; a capability is constructed and initialized
on its first ``acquire`` and shared by every caller afterwards. Concurrent
acquires of a capability that is still loading await the same load.

The registry is a plain constructed object. The application creates one at
startup and calls ``shutdown()`` on teardown.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from ..capabilities.base import Capability, CapabilityCategory, conforms
from ..capabilities.detection import EnergyVoiceDetector
from ..capabilities.recognition import WhisperRecognizer
from ..capabilities.search import CorrelationSearchEngine
from ..capabilities.separation import BandSplitSeparationEngine
from ..errors import AncError, LoadFailure, PreloadFailure, UnknownCapability
from ..events.event_bus import (
    EventBus,
    CapabilityLoadedEvent,
    CapabilityLoadFailedEvent,
    publish_if_present
)
from ..functional.result_monad import Result, Success, Failure
from .single_flight import SingleFlight

logger = logging.getLogger(__name__)


class ModuleState(Enum):
    NOT_LOADED = "not-loaded"
    LOADING = "loading"
    LOADED = "loaded"
    FAILED = "failed"


@dataclass(frozen=True)
class CapabilitySpec:
    """One entry of the capability table"""
    name: str
    category: CapabilityCategory
    factory: Callable[[], Capability]


@dataclass(frozen=True)
class ModuleHandle:
    """Point-in-time view of one capability's load state"""
    name: str
    category: CapabilityCategory
    state: ModuleState
    instance: Optional[Capability] = None
    error: Optional[AncError] = None


DEFAULT_CAPABILITIES: List[CapabilitySpec] = [
    CapabilitySpec("source-separation", CapabilityCategory.SEPARATION, BandSplitSeparationEngine),
    CapabilitySpec("voice-detection", CapabilityCategory.DETECTION, EnergyVoiceDetector),
    CapabilitySpec("speech-recognition", CapabilityCategory.RECOGNITION, WhisperRecognizer),
    CapabilitySpec("audio-search", CapabilityCategory.SEARCH, CorrelationSearchEngine),
]

PRELOAD_GROUPS: Dict[str, List[str]] = {
    "upload": ["voice-detection"],
    "analyze": ["voice-detection", "speech-recognition"],
    "separate": ["source-separation", "voice-detection"],
    "search": ["audio-search"],
}


class ModuleRegistry:
    """Loads each capability at most once and hands out the shared instance"""

    def __init__(self, capabilities: Optional[List[CapabilitySpec]] = None,
                 preload_groups: Optional[Dict[str, List[str]]] = None,
                 event_bus: Optional[EventBus] = None):
        specs = DEFAULT_CAPABILITIES if capabilities is None else capabilities
        self._table: Dict[str, CapabilitySpec] = {spec.name: spec for spec in specs}
        self._groups = dict(PRELOAD_GROUPS if preload_groups is None else preload_groups)
        self._event_bus = event_bus
        self._flight: SingleFlight[str, Capability] = SingleFlight()
        self._failures: Dict[str, AncError] = {}
        self._shut_down = False

        unknown = {n for names in self._groups.values() for n in names} - set(self._table)
        if unknown:
            raise ValueError(f"Preload groups reference unknown capabilities: {sorted(unknown)}")

    @property
    def names(self) -> List[str]:
        return list(self._table)

    @property
    def preload_actions(self) -> List[str]:
        return list(self._groups)

    def load_count(self, name: str) -> int:
        return self._flight.load_count(name)

    async def acquire(self, name: str) -> Result[Capability, AncError]:
        """Return the capability, loading it first if nobody has yet"""
        spec = self._table.get(name)
        if spec is None:
            return Failure(UnknownCapability(name))
        if self._shut_down:
            return Failure(LoadFailure(name, RuntimeError("registry has been shut down")))

        try:
            instance = await self._flight.do(name, lambda: self._load(spec))
        except Exception as e:
            error = LoadFailure(name, e)
            self._failures[name] = error
            return Failure(error)

        self._failures.pop(name, None)
        return Success(instance)

    async def preload(self, action: str) -> Result[Dict[str, Capability], AncError]:
        """Acquire every capability an action needs, reporting all failures together"""
        names = self._groups.get(action)
        if names is None:
            return Failure(UnknownCapability(action))

        logger.info(f"Preloading capabilities for '{action}': {names}")
        results = await asyncio.gather(*(self.acquire(name) for name in names))

        failures = {name: r.get_error() for name, r in zip(names, results) if r.is_failure()}
        if failures:
            logger.warning(f"Preload '{action}' failed for {sorted(failures)}")
            return Failure(PreloadFailure(action, failures))

        return Success({name: r.get_value() for name, r in zip(names, results)})

    def status(self) -> Dict[str, str]:
        """loaded / loading / not-loaded for every known capability"""
        result = {}
        for name in self._table:
            if self._flight.is_loaded(name):
                result[name] = ModuleState.LOADED.value
            elif self._flight.is_loading(name):
                result[name] = ModuleState.LOADING.value
            else:
                result[name] = ModuleState.NOT_LOADED.value
        return result

    def handle(self, name: str) -> Result[ModuleHandle, AncError]:
        spec = self._table.get(name)
        if spec is None:
            return Failure(UnknownCapability(name))

        if self._flight.is_loaded(name):
            state = ModuleState.LOADED
        elif self._flight.is_loading(name):
            state = ModuleState.LOADING
        elif name in self._failures:
            state = ModuleState.FAILED
        else:
            state = ModuleState.NOT_LOADED

        return Success(ModuleHandle(
            name=name,
            category=spec.category,
            state=state,
            instance=self._flight.get(name),
            error=self._failures.get(name) if state is ModuleState.FAILED else None,
        ))

    async def evict(self, name: str) -> Result[bool, AncError]:
        """Dispose a loaded capability; the next acquire loads it again"""
        if name not in self._table:
            return Failure(UnknownCapability(name))

        instance = self._flight.forget(name)
        if instance is None:
            return Success(False)

        await self._dispose(name, instance)
        logger.info(f"Evicted capability {name}")
        return Success(True)

    async def shutdown(self) -> Result[None, str]:
        """Wait for pending loads, then dispose every loaded capability"""
        if self._shut_down:
            return Success(None)
        self._shut_down = True

        await self._flight.wait_idle()
        for name in self._flight.loaded_keys():
            instance = self._flight.forget(name)
            if instance is not None:
                await self._dispose(name, instance)

        logger.info("Module registry shut down")
        return Success(None)

    async def _load(self, spec: CapabilitySpec) -> Capability:
        logger.info(f"Loading capability {spec.name} ({spec.category.value})")
        start_time = time.time()
        try:
            instance = spec.factory()
            if not conforms(instance, spec.category):
                raise TypeError(
                    f"{type(instance).__name__} does not implement the {spec.category.value} interface"
                )
            initialized = await instance.initialize()
            if initialized.is_failure():
                raise RuntimeError(initialized.get_error())
        except Exception as e:
            logger.error(f"Failed to load capability {spec.name}: {e}")
            await publish_if_present(self._event_bus, CapabilityLoadFailedEvent.create(spec.name, str(e)))
            raise

        load_time = time.time() - start_time
        logger.info(f"Capability {spec.name} loaded in {load_time:.2f}s")
        await publish_if_present(
            self._event_bus,
            CapabilityLoadedEvent.create(spec.name, spec.category.value, load_time)
        )
        return instance

    @staticmethod
    async def _dispose(name: str, instance: Any) -> None:
        try:
            await instance.dispose()
        except Exception as e:
            logger.error(f"Error disposing capability {name}: {e}")


def create_default_registry(event_bus: Optional[EventBus] = None) -> ModuleRegistry:
    """Registry over the default capability table"""
    return ModuleRegistry(event_bus=event_bus)
