#!/usr/bin/env python3

"""
Transcoding Engines

The extraction pipeline drives a TranscodingEngine through a small file-system
style interface: files are written into the engine's private workspace, a
command runs against them, and outputs are read back. FFmpegEngine implements
it with FFmpeg/ffprobe subprocesses in a private temporary directory.
"""

import asyncio
import json
import logging
import os
import shutil
import tempfile
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional, Set

import aiofiles

from ..config import ExtractionConfig

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[float], None]


@dataclass(frozen=True)
class MediaInfo:
    """Container metadata reported by the engine"""
    duration: float
    format: str
    video_codec: Optional[str]
    audio_codec: Optional[str]
    width: Optional[int]
    height: Optional[int]
    file_size: int
    has_audio: bool
    has_video: bool

    def to_dict(self) -> dict:
        return {
            "duration": self.duration,
            "format": self.format,
            "videoCodec": self.video_codec,
            "audioCodec": self.audio_codec,
            "resolution": {"width": self.width, "height": self.height},
            "fileSize": self.file_size,
            "hasAudio": self.has_audio,
            "hasVideo": self.has_video,
        }


def media_info_from_probe(data: dict, file_size: int) -> MediaInfo:
    """Build MediaInfo from ffprobe JSON output"""
    format_info = data.get('format', {})
    video = next((s for s in data.get('streams', []) if s.get('codec_type') == 'video'), None)
    audio = next((s for s in data.get('streams', []) if s.get('codec_type') == 'audio'), None)

    return MediaInfo(
        duration=float(format_info.get('duration') or 0.0),
        format=format_info.get('format_name', 'unknown'),
        video_codec=video.get('codec_name') if video else None,
        audio_codec=audio.get('codec_name') if audio else None,
        width=int(video['width']) if video and 'width' in video else None,
        height=int(video['height']) if video and 'height' in video else None,
        file_size=int(format_info.get('size') or file_size),
        has_audio=audio is not None,
        has_video=video is not None,
    )


class TranscodingEngine(ABC):
    """Workspace plus command runner used by the extraction pipeline"""

    @abstractmethod
    async def load(self) -> None:
        """Bootstrap the engine; raises if it cannot run"""

    @abstractmethod
    async def write_file(self, name: str, data: bytes) -> None:
        pass

    @abstractmethod
    async def exec(self, command: List[str], on_progress: Optional[ProgressCallback] = None) -> None:
        """Run a command; on_progress receives fractions in [0, 1]"""

    @abstractmethod
    async def read_file(self, name: str) -> bytes:
        pass

    @abstractmethod
    async def delete_file(self, name: str) -> None:
        pass

    @abstractmethod
    async def probe(self, name: str) -> MediaInfo:
        pass

    @abstractmethod
    async def terminate(self) -> None:
        """Stop running commands and release the workspace"""


class FFmpegEngine(TranscodingEngine):
    """FFmpeg subprocesses working inside a private temporary directory"""

    def __init__(self, config: Optional[ExtractionConfig] = None):
        self.config = config or ExtractionConfig()
        self._work_dir: Optional[str] = None
        self._processes: Set[asyncio.subprocess.Process] = set()

    @property
    def work_dir(self) -> Optional[str]:
        return self._work_dir

    async def load(self) -> None:
        for binary in (self.config.ffmpeg_binary, self.config.ffprobe_binary):
            if not shutil.which(binary):
                raise RuntimeError(f"{binary} not found on PATH")

        process = await asyncio.create_subprocess_exec(
            self.config.ffmpeg_binary, "-hide_banner", "-version",
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE
        )
        stdout, stderr = await process.communicate()
        if process.returncode != 0:
            raise RuntimeError(f"ffmpeg -version failed: {stderr.decode(errors='replace').strip()}")

        self._work_dir = tempfile.mkdtemp(prefix="ancplus_ffmpeg_", dir=self.config.resolve_work_dir())
        version_line = stdout.decode(errors='replace').splitlines()[0] if stdout else "unknown version"
        logger.info(f"FFmpeg engine ready ({version_line}) in {self._work_dir}")

    def _path(self, name: str) -> str:
        if self._work_dir is None:
            raise RuntimeError("FFmpeg engine is not loaded")
        if os.path.basename(name) != name:
            raise ValueError(f"Invalid workspace file name: {name}")
        return os.path.join(self._work_dir, name)

    async def write_file(self, name: str, data: bytes) -> None:
        async with aiofiles.open(self._path(name), "wb") as f:
            await f.write(data)

    async def read_file(self, name: str) -> bytes:
        async with aiofiles.open(self._path(name), "rb") as f:
            return await f.read()

    async def delete_file(self, name: str) -> None:
        Path(self._path(name)).unlink(missing_ok=True)

    async def exec(self, command: List[str], on_progress: Optional[ProgressCallback] = None) -> None:
        if self._work_dir is None:
            raise RuntimeError("FFmpeg engine is not loaded")
        total = await self._expected_duration(command)

        cmd = [
            self.config.ffmpeg_binary,
            "-y",
            "-hide_banner",
            "-nostats",
            "-loglevel", "error",
            "-progress", "pipe:1",
            *command
        ]
        logger.debug(f"Running: {' '.join(cmd)}")

        process = await asyncio.create_subprocess_exec(
            *cmd,
            cwd=self._work_dir,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE
        )
        self._processes.add(process)
        stderr_task = asyncio.ensure_future(process.stderr.read())

        async def follow_progress() -> None:
            async for raw_line in process.stdout:
                fraction = self._parse_progress(raw_line.decode(errors='replace').strip(), total)
                if fraction is not None and on_progress:
                    on_progress(fraction)
            await process.wait()

        try:
            await asyncio.wait_for(follow_progress(), timeout=self.config.exec_timeout)
            stderr = await stderr_task
        except asyncio.TimeoutError:
            if process.returncode is None:
                process.kill()
            await process.wait()
            stderr_task.cancel()
            logger.error(f"FFmpeg command timed out after {self.config.exec_timeout:.1f}s")
            raise RuntimeError(f"FFmpeg timed out after {self.config.exec_timeout:.1f}s")
        finally:
            self._processes.discard(process)

        if process.returncode != 0:
            error_msg = stderr.decode(errors='replace').strip() or f"exit code {process.returncode}"
            logger.error(f"FFmpeg command failed: {error_msg}")
            raise RuntimeError(f"FFmpeg failed: {error_msg}")

    @staticmethod
    def _parse_progress(line: str, total: Optional[float]) -> Optional[float]:
        key, _, value = line.partition("=")
        if key == "progress" and value == "end":
            return 1.0
        if key in ("out_time_us", "out_time_ms") and total:
            try:
                # both keys are reported in microseconds
                seconds = int(value) / 1_000_000
            except ValueError:
                return None
            return min(max(seconds / total, 0.0), 1.0)
        return None

    async def _expected_duration(self, command: List[str]) -> Optional[float]:
        """Output duration implied by the input length and any -ss/-to trim"""
        if "-i" not in command:
            return None
        input_name = command[command.index("-i") + 1]
        try:
            duration = (await self.probe(input_name)).duration
        except (RuntimeError, ValueError) as e:
            logger.debug(f"Could not probe {input_name} for progress: {e}")
            return None

        def option(flag: str) -> Optional[float]:
            if flag in command:
                return float(command[command.index(flag) + 1])
            return None

        start = option("-ss") or 0.0
        end = option("-to")
        if end is not None:
            duration = min(duration, end)
        duration -= start
        return duration if duration > 0 else None

    async def probe(self, name: str) -> MediaInfo:
        path = self._path(name)
        cmd = [
            self.config.ffprobe_binary,
            "-v", "quiet",
            "-print_format", "json",
            "-show_streams",
            "-show_format",
            path
        ]
        process = await asyncio.create_subprocess_exec(
            *cmd,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE
        )
        stdout, stderr = await process.communicate()
        if process.returncode != 0:
            raise RuntimeError(f"ffprobe failed for {name}: {stderr.decode(errors='replace').strip()}")

        try:
            data = json.loads(stdout.decode())
        except json.JSONDecodeError as e:
            raise ValueError(f"Unreadable ffprobe output for {name}") from e
        return media_info_from_probe(data, os.path.getsize(path))

    async def terminate(self) -> None:
        for process in list(self._processes):
            if process.returncode is None:
                process.kill()
                await process.wait()
        self._processes.clear()

        if self._work_dir is not None:
            shutil.rmtree(self._work_dir, ignore_errors=True)
            logger.info(f"FFmpeg engine workspace {self._work_dir} removed")
            self._work_dir = None
