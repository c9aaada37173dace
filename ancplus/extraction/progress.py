#!/usr/bin/env python3

"""
Extraction Progress

Each extraction job owns one ProgressChannel: a finite async iterable of
ProgressUpdate values that ends when the job reaches a terminal stage. Stage
fractions are mapped into fixed bands of the overall percentage, and the
overall percentage never decreases within a job.
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import AsyncIterator, Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)


class ExtractionStage(Enum):
    LOADING = "loading"
    EXTRACTING = "extracting"
    CONVERTING = "converting"
    COMPLETE = "complete"
    FAILED = "failed"

    @property
    def terminal(self) -> bool:
        return self in (ExtractionStage.COMPLETE, ExtractionStage.FAILED)


STAGE_BANDS: Dict[ExtractionStage, Tuple[float, float]] = {
    ExtractionStage.LOADING: (0.0, 10.0),
    ExtractionStage.EXTRACTING: (10.0, 90.0),
    ExtractionStage.CONVERTING: (90.0, 99.0),
    ExtractionStage.COMPLETE: (100.0, 100.0),
}


@dataclass(frozen=True)
class ProgressUpdate:
    job_id: str
    stage: ExtractionStage
    percentage: float
    message: str
    time_remaining: Optional[float] = None

    def to_dict(self) -> dict:
        return {
            "jobId": self.job_id,
            "stage": self.stage.value,
            "percentage": self.percentage,
            "userMessage": self.message,
            "timeRemaining": self.time_remaining,
        }


def overall_percentage(stage: ExtractionStage, fraction: float) -> Optional[float]:
    """Map a 0..1 fraction within a stage onto the job-wide percentage"""
    band = STAGE_BANDS.get(stage)
    if band is None:
        return None
    fraction = min(max(fraction, 0.0), 1.0)
    low, high = band
    return round(low + (high - low) * fraction, 2)


class ProgressChannel:
    """Finite, single-consumer stream of progress updates for one job"""

    _END = object()

    def __init__(self, job_id: str, estimated_job_seconds: float = 30.0):
        self.job_id = job_id
        self.estimated_job_seconds = estimated_job_seconds
        self._queue: asyncio.Queue = asyncio.Queue()
        self._history: List[ProgressUpdate] = []
        self._stage = ExtractionStage.LOADING
        self._percentage = 0.0
        self._closed = False
        self._consumed = False

    @property
    def stage(self) -> ExtractionStage:
        return self._stage

    @property
    def percentage(self) -> float:
        return self._percentage

    @property
    def history(self) -> List[ProgressUpdate]:
        return list(self._history)

    @property
    def closed(self) -> bool:
        return self._closed

    def report(self, stage: ExtractionStage, fraction: float, message: str) -> Optional[ProgressUpdate]:
        """Record progress within a stage; ignored once the channel is closed"""
        if self._closed:
            return None
        if self._stage.terminal:
            logger.debug(f"Job {self.job_id}: progress after terminal stage ignored")
            return None

        target = overall_percentage(stage, fraction)
        if target is not None:
            self._percentage = max(self._percentage, target)

        time_remaining = None
        if stage is ExtractionStage.EXTRACTING:
            time_remaining = self._estimate_time_remaining(fraction * 100.0)

        if stage is not self._stage:
            logger.debug(f"Job {self.job_id}: {self._stage.value} -> {stage.value}")
        self._stage = stage

        update = ProgressUpdate(
            job_id=self.job_id,
            stage=stage,
            percentage=self._percentage,
            message=message,
            time_remaining=time_remaining,
        )
        self._history.append(update)
        self._queue.put_nowait(update)
        return update

    def complete(self, message: str) -> Optional[ProgressUpdate]:
        return self.report(ExtractionStage.COMPLETE, 1.0, message)

    def fail(self, message: str) -> Optional[ProgressUpdate]:
        return self.report(ExtractionStage.FAILED, 0.0, message)

    def close(self) -> None:
        """End the stream; consumers stop after the updates already queued"""
        if self._closed:
            return
        self._closed = True
        self._queue.put_nowait(self._END)

    def _estimate_time_remaining(self, percentage: float) -> Optional[float]:
        if percentage <= 0:
            return None
        return round(self.estimated_job_seconds * (100.0 - percentage) / percentage)

    def __aiter__(self) -> AsyncIterator[ProgressUpdate]:
        if self._consumed:
            raise RuntimeError(f"Progress for job {self.job_id} can only be iterated once")
        self._consumed = True
        return self._iterate()

    async def _iterate(self) -> AsyncIterator[ProgressUpdate]:
        while True:
            item = await self._queue.get()
            if item is self._END:
                return
            yield item
