"""
Event Module

Domain events and the injectable event bus.
"""

from .event_bus import (
    EventBus,
    DomainEvent,
    EventPriority,
    CapabilityLoadedEvent,
    CapabilityLoadFailedEvent,
    StreamsSeparatedEvent,
    ExtractionCompletedEvent,
    ExtractionFailedEvent,
    Handler,
    publish_if_present
)

__all__ = [
    "EventBus",
    "DomainEvent",
    "EventPriority",
    "CapabilityLoadedEvent",
    "CapabilityLoadFailedEvent",
    "StreamsSeparatedEvent",
    "ExtractionCompletedEvent",
    "ExtractionFailedEvent",
    "Handler",
    "publish_if_present"
]
