#!/usr/bin/env python3

"""
Audio Pipeline

Turns raw audio bytes into a StreamSession: decode, acquire the separation
capability, separate, then hand out one StreamController per stream. Steps
run in that order and every failure is returned as a typed error.
"""

import logging
import time
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union

from ..audio.buffer import AudioBuffer
from ..audio.decoder import AudioDecoder
from ..audio.settings import ProcessingSettings
from ..audio.streams import AudioStream, StreamController, StreamType
from ..capabilities.base import SeparationCapability
from ..errors import (
    AncError,
    CapabilityUnavailable,
    OutOfRange,
    SeparationError,
    SessionClosed
)
from ..events.event_bus import EventBus, StreamsSeparatedEvent, publish_if_present
from ..extraction.media_pipeline import MediaExtractionPipeline
from ..extraction.options import AudioFormat, ExtractionOptions, VideoFormats
from ..functional.result_monad import Result, Success, Failure
from ..loading.module_registry import ModuleRegistry

logger = logging.getLogger(__name__)

SEPARATION_CAPABILITY = "source-separation"

BufferCheck = Callable[[AudioBuffer], Result[Any, AncError]]


@dataclass
class StreamSession:
    """Streams and controllers produced by one pipeline run"""
    session_id: str
    buffer: AudioBuffer
    streams: List[AudioStream]
    controllers: Dict[str, StreamController]
    settings: ProcessingSettings
    stage_metrics: Dict[str, float] = field(default_factory=dict)
    created_at: float = field(default_factory=time.time)
    _closed: bool = False

    @property
    def closed(self) -> bool:
        return self._closed

    def controller(self, stream_id: str) -> Result[StreamController, AncError]:
        if self._closed:
            return Failure(SessionClosed(f"Session {self.session_id} is closed"))
        controller = self.controllers.get(stream_id)
        if controller is None:
            return Failure(AncError(f"Unknown stream {stream_id} in session {self.session_id}"))
        return Success(controller)

    def snapshots(self) -> List[Dict[str, Any]]:
        return [controller.snapshot() for controller in self.controllers.values()]

    def close(self) -> None:
        """End the session; controllers are released"""
        if self._closed:
            return
        self._closed = True
        self.controllers = {}
        self.streams = []
        logger.info(f"Session {self.session_id} closed")


class AudioPipeline:
    """Decode, separate and wrap streams in controllers"""

    def __init__(self, registry: ModuleRegistry, decoder: Optional[AudioDecoder] = None,
                 event_bus: Optional[EventBus] = None,
                 extraction: Optional[MediaExtractionPipeline] = None,
                 validate_buffer: Optional[BufferCheck] = None):
        self.registry = registry
        self.decoder = decoder or AudioDecoder()
        self._event_bus = event_bus
        self.extraction = extraction
        # runs on every decoded buffer before separation starts
        self.validate_buffer = validate_buffer

    async def process(self, raw: bytes, settings: Optional[ProcessingSettings] = None,
                      format_hint: Optional[str] = None) -> Result[StreamSession, AncError]:
        """Decode raw bytes and separate them into controllable streams"""
        settings = settings or ProcessingSettings()
        metrics: Dict[str, float] = {}

        start_time = time.time()
        decoded = await self.decoder.decode(raw, format_hint=format_hint)
        metrics["decode"] = time.time() - start_time
        if decoded.is_failure():
            logger.warning(f"Decode failed: {decoded.get_error()}")
            return decoded

        return await self._separate(decoded.get_value(), settings, metrics)

    async def process_file(self, path: Union[str, Path],
                           settings: Optional[ProcessingSettings] = None) -> Result[StreamSession, AncError]:
        """Process an audio file, or the audio track of a video file"""
        settings = settings or ProcessingSettings()
        file_path = Path(path)

        if VideoFormats.is_video(file_path.name):
            if self.extraction is None:
                return Failure(AncError(f"No extraction pipeline configured for {file_path.name}"))
            metrics: Dict[str, float] = {}
            start_time = time.time()
            extracted = await self.extraction.extract(
                file_path, ExtractionOptions(format=AudioFormat.WAV), decode=True
            )
            metrics["extract"] = time.time() - start_time
            if extracted.is_failure():
                return extracted
            return await self._separate(extracted.get_value().buffer, settings, metrics)

        decoded = await self.decoder.decode_file(str(file_path))
        if decoded.is_failure():
            return decoded
        return await self._separate(decoded.get_value(), settings, {})

    async def _separate(self, buffer: AudioBuffer, settings: ProcessingSettings,
                        metrics: Dict[str, float]) -> Result[StreamSession, AncError]:
        if self.validate_buffer is not None:
            checked = self.validate_buffer(buffer)
            if checked.is_failure():
                logger.warning(f"Decoded audio rejected before separation: {checked.get_error()}")
                return Failure(checked.get_error())

        start_time = time.time()
        acquired = await self.registry.acquire(SEPARATION_CAPABILITY)
        metrics["acquire"] = time.time() - start_time
        if acquired.is_failure():
            error = CapabilityUnavailable(SEPARATION_CAPABILITY, acquired.get_error())
            logger.error(f"Separation unavailable: {error}")
            return Failure(error)
        engine = acquired.get_value()
        if not isinstance(engine, SeparationCapability):
            return Failure(CapabilityUnavailable(
                SEPARATION_CAPABILITY, AncError(f"{type(engine).__name__} cannot separate audio")
            ))

        start_time = time.time()
        try:
            streams = await engine.separate(buffer, settings)
        except Exception as e:
            logger.error(f"Separation failed: {e}")
            return Failure(SeparationError("Separation capability raised an error", details=str(e)))
        metrics["separate"] = time.time() - start_time

        checked = self._check_streams(streams)
        if checked.is_failure():
            return checked

        built = self._build_controllers(streams)
        if built.is_failure():
            return built

        session = StreamSession(
            session_id=f"session_{uuid.uuid4().hex[:12]}",
            buffer=buffer,
            streams=list(streams),
            controllers=built.get_value(),
            settings=settings,
            stage_metrics=metrics,
        )

        logger.info(
            f"Session {session.session_id}: {len(streams)} streams from {buffer.duration:.2f}s of audio"
        )
        await publish_if_present(
            self._event_bus,
            StreamsSeparatedEvent.create(
                session.session_id, session.snapshots(), buffer.duration, sum(metrics.values())
            )
        )
        return Success(session)

    @staticmethod
    def _check_streams(streams: Any) -> Result[List[AudioStream], AncError]:
        if not isinstance(streams, (list, tuple)):
            return Failure(SeparationError(f"Expected a list of streams, got {type(streams).__name__}"))

        seen = set()
        for item in streams:
            if not isinstance(item, AudioStream):
                return Failure(SeparationError(f"Invalid stream object: {type(item).__name__}"))
            if not isinstance(item.type, StreamType):
                return Failure(SeparationError(f"Stream {item.id} has unknown type {item.type!r}"))
            if item.id in seen:
                return Failure(SeparationError(f"Duplicate stream id {item.id}"))
            seen.add(item.id)
        return Success(list(streams))

    @staticmethod
    def _build_controllers(streams: List[AudioStream]) -> Result[Dict[str, StreamController], AncError]:
        controllers: Dict[str, StreamController] = {}
        for stream in streams:
            try:
                controllers[stream.id] = StreamController(stream)
            except OutOfRange as e:
                return Failure(SeparationError(f"Stream {stream.id} has an invalid initial state", details=str(e)))
        return Success(controllers)
