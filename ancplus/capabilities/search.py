#!/usr/bin/env python3

"""
Audio search by normalized cross-correlation of a query clip against a buffer.
"""

import asyncio
import logging
from typing import List

import numpy as np

from ..audio.buffer import AudioBuffer
from .base import SearchCapability, SearchMatch

logger = logging.getLogger(__name__)


class CorrelationSearchEngine(SearchCapability):

    async def search(self, buffer: AudioBuffer, query: AudioBuffer, limit: int = 5) -> List[SearchMatch]:
        if query.sample_rate != buffer.sample_rate:
            raise ValueError(
                f"Query sample rate {query.sample_rate} does not match buffer {buffer.sample_rate}"
            )
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._search, buffer, query, limit)

    def _search(self, buffer: AudioBuffer, query: AudioBuffer, limit: int) -> List[SearchMatch]:
        haystack = buffer.mono().astype(np.float64)
        needle = query.mono().astype(np.float64)
        n = len(needle)
        if n == 0 or n > len(haystack):
            return []

        needle = needle - needle.mean()
        needle_norm = np.linalg.norm(needle)
        if needle_norm == 0.0:
            return []

        raw = np.correlate(haystack, needle, mode='valid')

        # sliding window energy of the haystack for normalization
        cumsum = np.concatenate(([0.0], np.cumsum(haystack)))
        cumsum_sq = np.concatenate(([0.0], np.cumsum(haystack ** 2)))
        window_sum = cumsum[n:] - cumsum[:-n]
        window_sq = cumsum_sq[n:] - cumsum_sq[:-n]
        window_energy = np.sqrt(np.maximum(window_sq - window_sum ** 2 / n, 0.0))

        with np.errstate(divide='ignore', invalid='ignore'):
            scores = np.where(window_energy > 0, raw / (window_energy * needle_norm), 0.0)

        matches: List[SearchMatch] = []
        taken = np.zeros(len(scores), dtype=bool)
        for index in np.argsort(scores)[::-1]:
            if len(matches) >= limit:
                break
            if taken[index]:
                continue
            matches.append(SearchMatch(offset=index / buffer.sample_rate, score=float(scores[index])))
            taken[max(0, index - n + 1):index + n] = True
        return matches
