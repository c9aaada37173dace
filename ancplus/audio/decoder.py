#!/usr/bin/env python3

"""
Audio Decoder

Decodes raw file bytes into an AudioBuffer. libsndfile (through soundfile)
handles the common lossless and Vorbis/Opus/MP3 inputs in memory; anything it
cannot read is converted to WAV with FFmpeg first. Size and duration limits
are checked by the caller-side validator, not here, but an empty or
zero-channel result is always rejected.
"""

import asyncio
import io
import logging
import os
import shutil
import tempfile
from pathlib import Path
from typing import Optional

import numpy as np
import soundfile as sf

from ..config import DecoderConfig
from ..errors import DecodeError
from ..functional.result_monad import Result, Success, Failure
from .buffer import AudioBuffer

logger = logging.getLogger(__name__)

_SOUNDFILE_ERRORS = (sf.SoundFileError, RuntimeError, ValueError, TypeError)


class AudioDecoder:
    """Turns encoded audio bytes into float32 sample buffers"""

    def __init__(self, config: Optional[DecoderConfig] = None):
        self.config = config or DecoderConfig()
        self.ffmpeg_available = bool(shutil.which(self.config.ffmpeg_binary))
        if self.config.ffmpeg_fallback and not self.ffmpeg_available:
            logger.warning("FFmpeg not found. Decoding limited to formats libsndfile reads natively.")

    async def decode(self, data: bytes, format_hint: Optional[str] = None) -> Result[AudioBuffer, DecodeError]:
        """Decode bytes; format_hint is a file extension used for the FFmpeg path"""
        if not data:
            return Failure(DecodeError("Audio data is empty", format_hint=format_hint))

        loop = asyncio.get_running_loop()
        try:
            samples, sample_rate = await loop.run_in_executor(None, self._read_with_soundfile, data)
        except _SOUNDFILE_ERRORS as e:
            if not (self.config.ffmpeg_fallback and self.ffmpeg_available):
                return Failure(DecodeError("Unsupported or malformed audio", format_hint, details=str(e)))
            logger.debug(f"soundfile could not decode input ({e}), converting with FFmpeg")
            converted = await self._convert_with_ffmpeg(data, format_hint)
            if converted.is_failure():
                return converted
            try:
                samples, sample_rate = await loop.run_in_executor(
                    None, self._read_with_soundfile, converted.get_value()
                )
            except _SOUNDFILE_ERRORS as inner:
                return Failure(DecodeError("Converted audio could not be read", format_hint, details=str(inner)))

        return self._to_buffer(samples, sample_rate, format_hint)

    async def decode_file(self, path: str) -> Result[AudioBuffer, DecodeError]:
        file_path = Path(path)
        if not file_path.is_file():
            return Failure(DecodeError(f"Audio file not found: {file_path.name}"))
        data = await asyncio.get_running_loop().run_in_executor(None, file_path.read_bytes)
        return await self.decode(data, format_hint=file_path.suffix.lstrip('.').lower() or None)

    def _to_buffer(self, samples: np.ndarray, sample_rate: int,
                   format_hint: Optional[str]) -> Result[AudioBuffer, DecodeError]:
        if samples.ndim != 2 or samples.shape[1] == 0:
            return Failure(DecodeError("Decoded audio has no channels", format_hint))
        if samples.shape[0] == 0:
            return Failure(DecodeError("Decoded audio has no samples", format_hint))

        buffer = AudioBuffer.from_array(samples, sample_rate)
        logger.debug(
            f"Decoded {buffer.num_channels} channel(s) at {buffer.sample_rate}Hz, {buffer.duration:.2f}s"
        )
        return Success(buffer)

    @staticmethod
    def _read_with_soundfile(data: bytes):
        return sf.read(io.BytesIO(data), dtype='float32', always_2d=True)

    async def _convert_with_ffmpeg(self, data: bytes, format_hint: Optional[str]) -> Result[bytes, DecodeError]:
        """Convert arbitrary input bytes to float WAV bytes using temporary files"""
        suffix = f".{format_hint}" if format_hint else ""
        with tempfile.TemporaryDirectory(prefix="ancplus_decode_") as work_dir:
            input_path = os.path.join(work_dir, f"input{suffix}")
            output_path = os.path.join(work_dir, "output.wav")
            Path(input_path).write_bytes(data)

            cmd = [
                self.config.ffmpeg_binary,
                "-y",
                "-hide_banner",
                "-loglevel", "error",
                "-i", input_path,
                "-vn",
                "-acodec", "pcm_f32le",
                "-f", "wav",
                output_path
            ]

            process = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE
            )
            try:
                _, stderr = await asyncio.wait_for(process.communicate(), timeout=self.config.timeout)
            except asyncio.TimeoutError:
                process.kill()
                await process.wait()
                return Failure(DecodeError("Audio conversion timed out", format_hint))

            if process.returncode != 0 or not os.path.exists(output_path):
                error_msg = stderr.decode(errors="replace").strip() if stderr else "Unknown FFmpeg error"
                logger.debug(f"FFmpeg decode conversion failed: {error_msg}")
                return Failure(DecodeError("Unsupported or malformed audio", format_hint, details=error_msg))

            return Success(Path(output_path).read_bytes())
