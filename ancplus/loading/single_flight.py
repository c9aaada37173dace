#!/usr/bin/env python3

"""
Single-Flight Loading

Deduplicates concurrent loads of the same key: while a load for a key is in
flight every caller awaits the same task, and once it succeeds the value is
served from the loaded map. A failed load leaves no trace, so the next call
starts a fresh attempt.

Callers await the shared task through ``asyncio.shield``; cancelling one
caller never cancels a load other callers depend on.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Dict, Generic, Hashable, List, Optional, TypeVar

logger = logging.getLogger(__name__)

K = TypeVar('K', bound=Hashable)
V = TypeVar('V')


class SingleFlight(Generic[K, V]):
    """Loaded map plus in-flight map keyed by the same names"""

    def __init__(self):
        self._loaded: Dict[K, V] = {}
        self._in_flight: Dict[K, asyncio.Task] = {}
        self._load_counts: Dict[K, int] = {}

    async def do(self, key: K, loader: Callable[[], Awaitable[V]]) -> V:
        """Return the loaded value for key, starting at most one load for it"""
        if key in self._loaded:
            return self._loaded[key]

        # No await between the lookup and the registration below.
        task = self._in_flight.get(key)
        if task is None:
            task = asyncio.ensure_future(self._run(key, loader))
            task.add_done_callback(self._observe)
            self._in_flight[key] = task
            self._load_counts[key] = self._load_counts.get(key, 0) + 1

        return await asyncio.shield(task)

    async def _run(self, key: K, loader: Callable[[], Awaitable[V]]) -> V:
        try:
            value = await loader()
            self._loaded[key] = value
            return value
        finally:
            self._in_flight.pop(key, None)

    @staticmethod
    def _observe(task: asyncio.Task) -> None:
        # Marks the exception retrieved even when every caller was cancelled.
        if not task.cancelled() and task.exception() is not None:
            logger.debug(f"Shared load finished with error: {task.exception()!r}")

    def get(self, key: K) -> Optional[V]:
        return self._loaded.get(key)

    def is_loaded(self, key: K) -> bool:
        return key in self._loaded

    def is_loading(self, key: K) -> bool:
        return key in self._in_flight

    def load_count(self, key: K) -> int:
        """Number of loads ever started for key"""
        return self._load_counts.get(key, 0)

    def loaded_keys(self) -> List[K]:
        return list(self._loaded)

    def forget(self, key: K) -> Optional[V]:
        """Drop a loaded value so the next call loads again"""
        return self._loaded.pop(key, None)

    async def wait_idle(self) -> None:
        """Wait for every in-flight load to settle, ignoring their outcome"""
        pending = list(self._in_flight.values())
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
