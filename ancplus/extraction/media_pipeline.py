#!/usr/bin/env python3

"""
Media Extraction Pipeline

Extracts the audio track of a video file through a TranscodingEngine.

Each job moves through loading -> extracting -> [converting] -> complete, or
to failed from any of those stages. The engine is bootstrapped once per
pipeline however many jobs start concurrently, and jobs keep running when the
caller stops waiting for them. Only ``dispose()`` stops the engine; it is final,
and jobs cut short or submitted after it end in failed with a TranscodeError.
"""

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence, Union

import aiofiles

from ..audio.buffer import AudioBuffer
from ..audio.decoder import AudioDecoder
from ..config import ExtractionConfig
from ..errors import AncError, DecodeError, TranscodeError, UnsupportedContainer
from ..events.event_bus import (
    EventBus,
    ExtractionCompletedEvent,
    ExtractionFailedEvent,
    publish_if_present
)
from ..functional.result_monad import Result, Success, Failure
from ..loading.single_flight import SingleFlight
from .engine import FFmpegEngine, MediaInfo, TranscodingEngine
from .options import AUDIO_MIME_TYPES, ExtractionOptions, VideoFormats, build_extraction_command
from .progress import ExtractionStage, ProgressChannel

logger = logging.getLogger(__name__)

PathLike = Union[str, Path]

_ENGINE_KEY = "engine"


@dataclass(frozen=True)
class ExtractionOutput:
    job_id: str
    blob: bytes
    mime_type: str
    format: str
    buffer: Optional[AudioBuffer] = None

    @property
    def size(self) -> int:
        return len(self.blob)


@dataclass(frozen=True)
class BatchItemResult:
    """Outcome of one input of a batch, in input order"""
    index: int
    file_name: str
    output: Optional[ExtractionOutput] = None
    error: Optional[AncError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


class ExtractionJob:
    """Handle to one running extraction"""

    def __init__(self, job_id: str, source: Path, options: ExtractionOptions, progress: ProgressChannel):
        self.job_id = job_id
        self.source = source
        self.options = options
        self.progress = progress
        self._task: Optional[asyncio.Task] = None

    @property
    def file_name(self) -> str:
        return self.source.name

    @property
    def stage(self) -> ExtractionStage:
        return self.progress.stage

    @property
    def percentage(self) -> float:
        return self.progress.percentage

    def done(self) -> bool:
        return self._task is not None and self._task.done()

    async def result(self) -> Result[ExtractionOutput, AncError]:
        """Wait for the job; cancelling this wait does not cancel the job"""
        try:
            return await asyncio.shield(self._task)
        except asyncio.CancelledError:
            if not self._task.cancelled():
                raise
            return Failure(TranscodeError("Extraction cancelled", self.job_id, self.stage.value))


class MediaExtractionPipeline:
    """Video to audio extraction with staged progress"""

    def __init__(self, engine: Optional[TranscodingEngine] = None,
                 decoder: Optional[AudioDecoder] = None,
                 config: Optional[ExtractionConfig] = None,
                 event_bus: Optional[EventBus] = None):
        self.config = config or ExtractionConfig()
        self.engine = engine or FFmpegEngine(self.config)
        self.decoder = decoder or AudioDecoder()
        self._event_bus = event_bus
        self._bootstrap: SingleFlight[str, TranscodingEngine] = SingleFlight()
        self._jobs: List[ExtractionJob] = []
        self._disposed = False

    @property
    def engine_loaded(self) -> bool:
        return self._bootstrap.is_loaded(_ENGINE_KEY)

    @property
    def engine_load_count(self) -> int:
        return self._bootstrap.load_count(_ENGINE_KEY)

    def submit(self, video_path: PathLike, options: Optional[ExtractionOptions] = None,
               decode: bool = False) -> ExtractionJob:
        """Start a job on the running loop and return its handle"""
        job_id = f"extract_{uuid.uuid4().hex[:12]}"
        job = ExtractionJob(
            job_id=job_id,
            source=Path(video_path),
            options=options or ExtractionOptions(),
            progress=ProgressChannel(job_id, self.config.estimated_job_seconds),
        )
        job._task = asyncio.ensure_future(self._run(job, decode))
        self._jobs.append(job)
        job._task.add_done_callback(lambda _: self._jobs.remove(job))
        logger.info(f"Submitted extraction job {job_id} for {job.file_name}")
        return job

    async def extract(self, video_path: PathLike, options: Optional[ExtractionOptions] = None,
                      decode: bool = False) -> Result[ExtractionOutput, AncError]:
        return await self.submit(video_path, options, decode).result()

    async def batch_extract(self, files: Sequence[PathLike], options: Optional[ExtractionOptions] = None,
                            decode: bool = False) -> List[BatchItemResult]:
        """Extract files one after another; a failure never stops the batch"""
        results: List[BatchItemResult] = []
        for index, path in enumerate(files):
            file_name = Path(path).name
            logger.info(f"Processing video {index + 1} of {len(files)}: {file_name}")
            outcome = await self.extract(path, options, decode)
            if outcome.is_success():
                results.append(BatchItemResult(index, file_name, output=outcome.get_value()))
            else:
                logger.error(f"Failed to extract from {file_name}: {outcome.get_error()}")
                results.append(BatchItemResult(index, file_name, error=outcome.get_error()))

        failed = sum(1 for r in results if not r.ok)
        logger.info(f"Batch finished: {len(results) - failed} succeeded, {failed} failed")
        return results

    async def probe(self, video_path: PathLike) -> Result[MediaInfo, AncError]:
        """Container metadata for a video file"""
        path = Path(video_path)
        container = VideoFormats.extension_of(path.name)
        if container not in VideoFormats.CONTAINERS:
            return Failure(UnsupportedContainer(path.name, container))

        if self._disposed:
            return Failure(TranscodeError("Extraction pipeline has been disposed", stage="loading"))
        try:
            engine = await self._ensure_engine()
        except Exception as e:
            return Failure(TranscodeError("Transcoding engine failed to load", stage="loading",
                                          cause=e, details=str(e)))

        name = f"probe_{uuid.uuid4().hex[:12]}.{container}"
        try:
            await engine.write_file(name, await self._read_input(path))
            return Success(await engine.probe(name))
        except Exception as e:
            logger.error(f"Failed to analyze video {path.name}: {e}")
            return Failure(TranscodeError("Failed to analyze video file", cause=e, details=str(e)))
        finally:
            await self._cleanup(engine, name)

    async def dispose(self) -> None:
        """Cancel pending jobs and terminate the engine"""
        self._disposed = True
        running = [job for job in self._jobs if not job.done()]
        for job in running:
            job._task.cancel()
        if running:
            await asyncio.gather(*(job._task for job in running), return_exceptions=True)
        for job in running:
            # cancelled before its first step ran
            if not job.progress.closed:
                job.progress.fail("Extraction cancelled")
                job.progress.close()
        await self._bootstrap.wait_idle()
        if self.engine_loaded:
            self._bootstrap.forget(_ENGINE_KEY)
            await self.engine.terminate()
            logger.info("Extraction engine terminated")

    async def _ensure_engine(self) -> TranscodingEngine:
        return await self._bootstrap.do(_ENGINE_KEY, self._load_engine)

    async def _load_engine(self) -> TranscodingEngine:
        logger.info(f"Loading transcoding engine {type(self.engine).__name__}")
        await self.engine.load()
        return self.engine

    async def _run(self, job: ExtractionJob, decode: bool) -> Result[ExtractionOutput, AncError]:
        progress = job.progress
        start_time = time.time()
        try:
            output = await self._extract(job, decode)
        except AncError as e:
            logger.error(f"Extraction job {job.job_id} failed in {job.stage.value}: {e}")
            failed_stage = job.stage.value
            progress.fail(e.user_message)
            await publish_if_present(
                self._event_bus,
                ExtractionFailedEvent.create(job.job_id, job.file_name, failed_stage, str(e))
            )
            return Failure(e)
        except asyncio.CancelledError:
            failed_stage = job.stage.value
            progress.fail("Extraction cancelled")
            if not self._disposed:
                raise
            logger.warning(f"Extraction job {job.job_id} cancelled in {failed_stage} by dispose")
            error = TranscodeError("Extraction cancelled", job.job_id, failed_stage)
            await publish_if_present(
                self._event_bus,
                ExtractionFailedEvent.create(job.job_id, job.file_name, failed_stage, str(error))
            )
            return Failure(error)
        finally:
            progress.close()

        processing_time = time.time() - start_time
        logger.info(f"Extraction job {job.job_id} complete in {processing_time:.2f}s ({output.size} bytes)")
        await publish_if_present(
            self._event_bus,
            ExtractionCompletedEvent.create(
                job.job_id, job.file_name, output.format, output.size, processing_time
            )
        )
        return Success(output)

    async def _extract(self, job: ExtractionJob, decode: bool) -> ExtractionOutput:
        progress = job.progress
        options = job.options
        container = VideoFormats.extension_of(job.file_name)
        if container not in VideoFormats.CONTAINERS:
            raise UnsupportedContainer(job.file_name, container, job.job_id)

        progress.report(ExtractionStage.LOADING, 0.0, "Setting up video processor...")
        if self._disposed:
            raise TranscodeError("Extraction pipeline has been disposed", job.job_id, "loading")
        try:
            engine = await self._ensure_engine()
        except Exception as e:
            raise TranscodeError("Transcoding engine failed to load", job.job_id, "loading",
                                 cause=e, details=str(e)) from e
        progress.report(ExtractionStage.LOADING, 1.0, "Video processor ready!")

        progress.report(ExtractionStage.EXTRACTING, 0.0, "Starting audio extraction...")
        audio_format = options.format.value
        input_name = f"{job.job_id}-input.{container}"
        output_name = f"{job.job_id}-output.{audio_format}"

        def on_progress(fraction: float) -> None:
            progress.report(ExtractionStage.EXTRACTING, fraction,
                            f"Processing video... {int(round(fraction * 100))}%")

        try:
            await engine.write_file(input_name, await self._read_input(job.source))
            await engine.exec(build_extraction_command(input_name, output_name, options), on_progress)
            blob = await engine.read_file(output_name)
        except Exception as e:
            raise TranscodeError("Audio extraction failed", job.job_id, "extracting",
                                 cause=e, details=str(e)) from e
        finally:
            await self._cleanup(engine, input_name, output_name)

        if not blob:
            raise TranscodeError("Engine produced an empty output", job.job_id, "extracting")
        progress.report(ExtractionStage.EXTRACTING, 1.0, "Audio track extracted")

        buffer = None
        if decode:
            progress.report(ExtractionStage.CONVERTING, 0.0, "Converting to audio buffer...")
            decoded = await self.decoder.decode(blob, format_hint=audio_format)
            if decoded.is_failure():
                error = decoded.get_error()
                raise DecodeError(error.message, audio_format, error.details,
                                  job_id=job.job_id, stage="converting") from error
            buffer = decoded.get_value()
            progress.report(ExtractionStage.CONVERTING, 1.0, "Audio ready for processing!")

        progress.complete("Audio extracted successfully!")
        return ExtractionOutput(
            job_id=job.job_id,
            blob=blob,
            mime_type=AUDIO_MIME_TYPES[options.format],
            format=audio_format,
            buffer=buffer,
        )

    @staticmethod
    async def _read_input(path: Path) -> bytes:
        async with aiofiles.open(path, "rb") as f:
            return await f.read()

    @staticmethod
    async def _cleanup(engine: TranscodingEngine, *names: str) -> None:
        for name in names:
            try:
                await engine.delete_file(name)
            except Exception as e:
                logger.warning(f"Could not delete workspace file {name}: {e}")
