#!/usr/bin/env python3

"""
Event Bus

Async event bus with domain events, handlers and middleware. The core publishes
capability lifecycle, separation and extraction events here; collaborators such
as the persistence layer subscribe to them. The bus is constructed and injected,
there is no process-wide instance.
"""

import asyncio
import logging
import time
import uuid
from typing import Dict, List, Optional, Any, Callable, Union, Awaitable
from dataclasses import dataclass, field, replace
from enum import Enum

from ..functional.result_monad import Result, Success, Failure

logger = logging.getLogger(__name__)


class EventPriority(Enum):
    """Failures are published as HIGH so alerting subscribers can filter on it"""
    LOW = 1
    NORMAL = 2
    HIGH = 3
    CRITICAL = 4


@dataclass(frozen=True)
class DomainEvent:
    """Immutable event envelope; subclasses fix event_type and build data"""
    event_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    event_type: str = ""
    timestamp: float = field(default_factory=time.time)
    source: Optional[str] = None
    correlation_id: Optional[str] = None
    priority: EventPriority = EventPriority.NORMAL
    data: Dict[str, Any] = field(default_factory=dict)
    metadata: Dict[str, Any] = field(default_factory=dict)

    def with_metadata(self, **metadata) -> 'DomainEvent':
        """Copy of the event with extra metadata; id and payload are kept"""
        return replace(self, metadata={**self.metadata, **metadata})


@dataclass(frozen=True)
class CapabilityLoadedEvent(DomainEvent):
    """Fired once per successful capability load"""
    event_type: str = "capability.loaded"

    @classmethod
    def create(cls, name: str, category: str, load_time: float) -> 'CapabilityLoadedEvent':
        return cls(
            source="module_registry",
            correlation_id=name,
            data={"name": name, "category": category, "load_time": load_time}
        )


@dataclass(frozen=True)
class CapabilityLoadFailedEvent(DomainEvent):
    """Fired when a capability load attempt fails"""
    event_type: str = "capability.load_failed"
    priority: EventPriority = EventPriority.HIGH

    @classmethod
    def create(cls, name: str, error: str) -> 'CapabilityLoadFailedEvent':
        return cls(
            source="module_registry",
            correlation_id=name,
            data={"name": name, "error": error}
        )


@dataclass(frozen=True)
class StreamsSeparatedEvent(DomainEvent):
    """Carries stream snapshots of a finished separation run for persistence"""
    event_type: str = "streams.separated"

    @classmethod
    def create(cls, session_id: str, streams: List[Dict[str, Any]], duration: float,
               processing_time: float) -> 'StreamsSeparatedEvent':
        return cls(
            source="audio_pipeline",
            correlation_id=session_id,
            data={
                "session_id": session_id,
                "streams": streams,
                "duration": duration,
                "processing_time": processing_time
            }
        )


@dataclass(frozen=True)
class ExtractionCompletedEvent(DomainEvent):
    """Fired when an extraction job completes"""
    event_type: str = "extraction.completed"

    @classmethod
    def create(cls, job_id: str, file_name: str, output_format: str, output_size: int,
               processing_time: float) -> 'ExtractionCompletedEvent':
        return cls(
            source="media_extraction",
            correlation_id=job_id,
            data={
                "job_id": job_id,
                "file_name": file_name,
                "format": output_format,
                "output_size": output_size,
                "processing_time": processing_time
            }
        )


@dataclass(frozen=True)
class ExtractionFailedEvent(DomainEvent):
    """Fired when an extraction job ends in the failed stage"""
    event_type: str = "extraction.failed"
    priority: EventPriority = EventPriority.HIGH

    @classmethod
    def create(cls, job_id: str, file_name: str, stage: str, error: str) -> 'ExtractionFailedEvent':
        return cls(
            source="media_extraction",
            correlation_id=job_id,
            data={"job_id": job_id, "file_name": file_name, "stage": stage, "error": error}
        )


Handler = Callable[[DomainEvent], Union[Result[None, str], Awaitable[Result[None, str]], None]]


def _coroutine_handler(handler: Handler) -> Callable[[DomainEvent], Awaitable[Any]]:
    """Plain functions are accepted as handlers and awaited like coroutines"""
    if asyncio.iscoroutinefunction(handler):
        return handler

    async def call(event: DomainEvent):
        return handler(event)

    return call


class EventBus:
    """
    Delivers domain events to subscribers from a background task.

    Publishing only enqueues, so a slow persistence handler never holds up a
    separation run or an extraction job. Middleware runs before handlers; a
    middleware Failure diverts the event to the dead letter queue, as does an
    event whose handlers all fail.
    """

    def __init__(self):
        self._by_type: Dict[str, List[Callable]] = {}
        self._catch_all: List[Callable] = []
        self._middleware: List[Callable] = []

        self._queue: asyncio.Queue = asyncio.Queue()
        self._dead_letters: asyncio.Queue = asyncio.Queue()
        self._worker: Optional[asyncio.Task] = None
        self._accepting = True

        self._counters = {"published_count": 0, "processed_count": 0, "failed_count": 0}

    @property
    def running(self) -> bool:
        return self._worker is not None and not self._worker.done()

    def subscribe(self, event_type: str, handler: Handler) -> None:
        self._by_type.setdefault(event_type, []).append(_coroutine_handler(handler))
        logger.debug(f"Handler subscribed to {event_type}")

    def subscribe_all(self, handler: Handler) -> None:
        self._catch_all.append(_coroutine_handler(handler))

    def add_middleware(self, middleware: Handler) -> None:
        self._middleware.append(_coroutine_handler(middleware))

    async def start(self) -> Result[None, str]:
        if self.running:
            return Failure("Event bus is already running")

        self._accepting = True
        self._worker = asyncio.create_task(self._run())
        logger.info("Event bus started")
        return Success(None)

    async def stop(self) -> Result[None, str]:
        """Deliver whatever is still queued, then stop the worker"""
        self._accepting = False

        if self._worker is not None:
            while not self._queue.empty():
                await self._deliver(self._queue.get_nowait())
            self._worker.cancel()
            try:
                await self._worker
            except asyncio.CancelledError:
                logger.debug("Event bus worker cancelled")
            self._worker = None

        logger.info("Event bus stopped")
        return Success(None)

    async def publish(self, event: DomainEvent) -> Result[None, str]:
        if not self._accepting:
            return Failure("Event bus is stopped")

        await self._queue.put(event)
        self._counters["published_count"] += 1
        logger.debug(f"Queued {event.event_type} ({event.event_id})")
        return Success(None)

    def get_metrics(self) -> Dict[str, int]:
        return {
            **self._counters,
            "queue_size": self._queue.qsize(),
            "dead_letter_size": self._dead_letters.qsize()
        }

    async def _run(self) -> None:
        while self._accepting:
            await self._deliver(await self._queue.get())

    async def _deliver(self, event: DomainEvent) -> None:
        for middleware in self._middleware:
            verdict = await self._invoke(middleware, event)
            if verdict.is_failure():
                await self._dead_letter(event, verdict.get_error())
                return

        handlers = self._by_type.get(event.event_type, []) + self._catch_all
        outcomes = await asyncio.gather(*(self._invoke(handler, event) for handler in handlers))
        self._counters["processed_count"] += 1

        failures = sum(1 for outcome in outcomes if outcome.is_failure())
        if failures:
            self._counters["failed_count"] += 1
            logger.warning(f"{failures} of {len(outcomes)} handlers failed for {event.event_type} ({event.event_id})")
            if failures == len(outcomes):
                await self._dead_letter(event, "All handlers failed")

    async def _invoke(self, handler: Callable, event: DomainEvent) -> Result[None, str]:
        try:
            outcome = await handler(event)
        except Exception as e:
            logger.error(f"Handler raised for {event.event_type}: {e}")
            return Failure(f"Handler exception: {e}")
        return outcome if isinstance(outcome, Result) else Success(None)

    async def _dead_letter(self, event: DomainEvent, reason: str) -> None:
        await self._dead_letters.put(event.with_metadata(
            dead_letter_reason=reason,
            dead_letter_timestamp=time.time()
        ))
        logger.warning(f"Event {event.event_id} moved to dead letter queue: {reason}")


async def publish_if_present(event_bus: Optional[EventBus], event: DomainEvent) -> None:
    """Publish to an optional bus; a stopped bus is logged, not raised"""
    if event_bus is None:
        return
    result = await event_bus.publish(event)
    if result.is_failure():
        logger.debug(f"Event {event.event_type} not published: {result.get_error()}")
