"""
Loading Module

Deduplicated lazy loading of capability units.
"""

from .single_flight import SingleFlight
from .module_registry import (
    ModuleRegistry,
    ModuleState,
    ModuleHandle,
    CapabilitySpec,
    DEFAULT_CAPABILITIES,
    PRELOAD_GROUPS,
    create_default_registry
)

__all__ = [
    "SingleFlight",
    "ModuleRegistry",
    "ModuleState",
    "ModuleHandle",
    "CapabilitySpec",
    "DEFAULT_CAPABILITIES",
    "PRELOAD_GROUPS",
    "create_default_registry"
]
