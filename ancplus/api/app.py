#!/usr/bin/env python3

"""
ANC Plus HTTP API

Thin FastAPI layer over the core. The AncRuntime owns the event bus, module
registry, decoder and pipelines for the lifetime of the application and
tears them down on shutdown.
"""

import logging
import os
import tempfile
import time
import uuid
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, Dict, List, Optional

import aiofiles
import uvicorn
from fastapi import FastAPI, File, Form, HTTPException, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response
from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from ..audio.decoder import AudioDecoder
from ..audio.settings import ProcessingSettings
from ..config import AncConfig, setup_logging
from ..errors import (
    AncError,
    CapabilityUnavailable,
    DecodeError,
    LoadFailure,
    OutOfRange,
    PreloadFailure,
    SeparationError,
    SessionClosed,
    TranscodeError,
    UnknownCapability,
    UnsupportedContainer,
    ValidationError
)
from ..events.event_bus import EventBus
from ..extraction.engine import TranscodingEngine
from ..extraction.media_pipeline import MediaExtractionPipeline
from ..extraction.options import ExtractionOptions, VideoFormats
from ..loading.module_registry import ModuleRegistry, create_default_registry
from ..pipeline.audio_pipeline import AudioPipeline, StreamSession
from ..validation.media_validator import MediaUpload, MediaValidator, ValidationReason

logger = logging.getLogger(__name__)

ERROR_STATUS = {
    ValidationError: 400,
    DecodeError: 422,
    UnsupportedContainer: 415,
    OutOfRange: 422,
    UnknownCapability: 404,
    SessionClosed: 410,
    PreloadFailure: 503,
    LoadFailure: 503,
    CapabilityUnavailable: 503,
    TranscodeError: 502,
    SeparationError: 500,
}


def error_status(error: AncError) -> int:
    for error_type in type(error).__mro__:
        if error_type in ERROR_STATUS:
            return ERROR_STATUS[error_type]
    return 500


def http_error(error: AncError) -> HTTPException:
    status_code = error_status(error)
    if isinstance(error, ValidationError) and error.reason == ValidationReason.FILE_TOO_LARGE:
        status_code = 413
    return HTTPException(status_code=status_code, detail=error.to_dict())


class StreamUpdate(BaseModel):
    volume: Optional[float] = Field(default=None, description="Volume in [0, 1]")
    muted: Optional[bool] = None
    active: Optional[bool] = None


class SessionResponse(BaseModel):
    session_id: str
    duration: float
    sample_rate: int
    channels: int
    streams: List[Dict[str, Any]]


class AncRuntime:
    """Owns the long-lived core components of one application instance"""

    def __init__(self, config: Optional[AncConfig] = None,
                 registry: Optional[ModuleRegistry] = None,
                 engine: Optional[TranscodingEngine] = None,
                 event_bus: Optional[EventBus] = None):
        self.config = config or AncConfig()
        self.event_bus = event_bus or EventBus()
        self.registry = registry or create_default_registry(self.event_bus)
        self.decoder = AudioDecoder(self.config.decoder)
        self.extraction = MediaExtractionPipeline(engine, self.decoder, self.config.extraction, self.event_bus)
        self.validator = MediaValidator(self.config.validation)
        self.pipeline = AudioPipeline(self.registry, self.decoder, self.event_bus, self.extraction,
                                      validate_buffer=self.validator.validate_duration)
        self.sessions: Dict[str, StreamSession] = {}
        self.started_at = time.time()

    async def start(self) -> None:
        if not self.event_bus.running:
            await self.event_bus.start()
        logger.info("ANC Plus runtime started")

    async def shutdown(self) -> None:
        for session in self.sessions.values():
            session.close()
        self.sessions.clear()
        await self.extraction.dispose()
        await self.registry.shutdown()
        await self.event_bus.stop()
        logger.info("ANC Plus runtime shut down")

    def session(self, session_id: str) -> StreamSession:
        session = self.sessions.get(session_id)
        if session is None:
            raise HTTPException(status_code=404, detail=f"Session {session_id} not found")
        return session

    async def save_temp(self, file_name: str, data: bytes) -> str:
        suffix = Path(file_name).suffix
        fd, path = tempfile.mkstemp(prefix="ancplus_upload_", suffix=suffix,
                                    dir=self.config.extraction.resolve_work_dir())
        os.close(fd)
        async with aiofiles.open(path, "wb") as f:
            await f.write(data)
        return path


def session_payload(session: StreamSession) -> SessionResponse:
    return SessionResponse(
        session_id=session.session_id,
        duration=session.buffer.duration,
        sample_rate=session.buffer.sample_rate,
        channels=session.buffer.num_channels,
        streams=session.snapshots(),
    )


def parse_settings(raw: Optional[str]) -> ProcessingSettings:
    if not raw:
        return ProcessingSettings()
    try:
        return ProcessingSettings.model_validate_json(raw)
    except PydanticValidationError as e:
        raise HTTPException(status_code=422, detail=f"Invalid settings: {e.errors()}")


def parse_options(raw: Optional[str]) -> ExtractionOptions:
    if not raw:
        return ExtractionOptions()
    try:
        return ExtractionOptions.model_validate_json(raw)
    except PydanticValidationError as e:
        raise HTTPException(status_code=422, detail=f"Invalid extraction options: {e.errors()}")


def get_runtime(request: Request) -> AncRuntime:
    return request.app.state.runtime


def create_app(config: Optional[AncConfig] = None, runtime: Optional[AncRuntime] = None) -> FastAPI:
    """Build the application; a prepared runtime can be passed in for tests"""
    config = config or (runtime.config if runtime else AncConfig())

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.runtime = runtime or AncRuntime(config)
        await app.state.runtime.start()
        try:
            yield
        finally:
            await app.state.runtime.shutdown()

    app = FastAPI(
        title="ANC Plus Stream Separation Server",
        description="Audio decoding, stream separation and video audio extraction",
        version="1.0.0",
        lifespan=lifespan
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/health")
    async def health_check(request: Request):
        runtime = get_runtime(request)
        return {
            "status": "healthy",
            "timestamp": time.time(),
            "uptime": time.time() - runtime.started_at,
            "components": {
                "event_bus": "running" if runtime.event_bus.running else "stopped",
                "extraction_engine": "loaded" if runtime.extraction.engine_loaded else "not_loaded",
                "sessions": len(runtime.sessions),
            },
            "events": runtime.event_bus.get_metrics(),
        }

    @app.get("/capabilities")
    async def list_capabilities(request: Request):
        runtime = get_runtime(request)
        return {
            "capabilities": runtime.registry.status(),
            "actions": runtime.registry.preload_actions,
        }

    @app.post("/capabilities/preload/{action}")
    async def preload_capabilities(action: str, request: Request):
        runtime = get_runtime(request)
        result = await runtime.registry.preload(action)
        if result.is_failure():
            error = result.get_error()
            detail = error.to_dict()
            if isinstance(error, PreloadFailure):
                detail["failures"] = {name: e.user_message for name, e in error.failures.items()}
            raise HTTPException(status_code=error_status(error), detail=detail)
        return {"action": action, "loaded": sorted(result.get_value())}

    @app.post("/sessions", response_model=SessionResponse)
    async def create_session(request: Request, file: UploadFile = File(...),
                             settings: Optional[str] = Form(None)):
        """Separate an uploaded audio or video file into controllable streams"""
        runtime = get_runtime(request)
        processing_settings = parse_settings(settings)
        file_name = file.filename or ""
        data = await file.read()

        checked = runtime.validator.validate(MediaUpload.from_bytes(file_name, data, file.content_type))
        if checked.is_failure():
            raise http_error(checked.get_error())

        if checked.get_value().is_video:
            temp_path = await runtime.save_temp(file_name, data)
            try:
                result = await runtime.pipeline.process_file(temp_path, processing_settings)
            finally:
                Path(temp_path).unlink(missing_ok=True)
        else:
            result = await runtime.pipeline.process(
                data, processing_settings, format_hint=VideoFormats.extension_of(file_name)
            )

        if result.is_failure():
            raise http_error(result.get_error())
        session = result.get_value()

        runtime.sessions[session.session_id] = session
        logger.info(f"Created session {session.session_id} from {file_name}")
        return session_payload(session)

    @app.get("/sessions/{session_id}", response_model=SessionResponse)
    async def get_session(session_id: str, request: Request):
        return session_payload(get_runtime(request).session(session_id))

    @app.patch("/sessions/{session_id}/streams/{stream_id}")
    async def update_stream(session_id: str, stream_id: str, update: StreamUpdate, request: Request):
        session = get_runtime(request).session(session_id)
        found = session.controller(stream_id)
        if found.is_failure():
            error = found.get_error()
            if isinstance(error, SessionClosed):
                raise http_error(error)
            raise HTTPException(status_code=404, detail=f"Stream {stream_id} not found")

        controller = found.get_value()
        applied = controller.apply(volume=update.volume, muted=update.muted, active=update.active)
        if applied.is_failure():
            raise http_error(applied.get_error())
        return controller.snapshot()

    @app.delete("/sessions/{session_id}")
    async def close_session(session_id: str, request: Request):
        runtime = get_runtime(request)
        session = runtime.session(session_id)
        session.close()
        del runtime.sessions[session_id]
        return {"session_id": session_id, "closed": True}

    @app.post("/extract")
    async def extract_audio(request: Request, file: UploadFile = File(...),
                            options: Optional[str] = Form(None)):
        """Extract the audio track of an uploaded video"""
        runtime = get_runtime(request)
        extraction_options = parse_options(options)
        file_name = file.filename or ""
        data = await file.read()

        checked = runtime.validator.validate(MediaUpload.from_bytes(file_name, data, file.content_type))
        if checked.is_failure():
            raise http_error(checked.get_error())
        if not checked.get_value().is_video:
            raise http_error(UnsupportedContainer(file_name, VideoFormats.extension_of(file_name)))

        temp_path = await runtime.save_temp(file_name, data)
        try:
            result = await runtime.extraction.extract(temp_path, extraction_options)
        finally:
            Path(temp_path).unlink(missing_ok=True)

        if result.is_failure():
            raise http_error(result.get_error())

        output = result.get_value()
        stem = Path(file_name).stem or f"audio_{uuid.uuid4().hex[:8]}"
        return Response(
            content=output.blob,
            media_type=output.mime_type,
            headers={
                "X-Job-Id": output.job_id,
                "Content-Disposition": f'attachment; filename="{stem}.{output.format}"',
            },
        )

    return app


def main():
    """Entry point for the ANC Plus server"""
    config = AncConfig.from_env()
    setup_logging(config.server.log_level)
    logger.info("Starting ANC Plus server")

    uvicorn.run(
        create_app(config),
        host=config.server.host,
        port=config.server.port,
        reload=False,
        log_level=config.server.log_level.lower()
    )


if __name__ == "__main__":
    main()
