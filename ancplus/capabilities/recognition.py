#!/usr/bin/env python3

"""
Whisper Speech Recognition Capability

Wraps an OpenAI Whisper model. The model and torch are imported and loaded in
``initialize`` on a worker thread, so nothing heavy happens until the registry
first acquires this capability.
"""

import asyncio
import logging
import time
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Optional

import numpy as np

from ..audio.buffer import AudioBuffer
from ..functional.result_monad import Result, Success, Failure
from .base import RecognitionCapability, Transcript

logger = logging.getLogger(__name__)

WHISPER_SAMPLE_RATE = 16000


def resample(samples: np.ndarray, source_rate: int, target_rate: int) -> np.ndarray:
    """Linear-interpolation resample of a mono signal"""
    if source_rate == target_rate or len(samples) == 0:
        return samples.astype(np.float32)
    target_length = max(1, int(round(len(samples) * target_rate / source_rate)))
    positions = np.linspace(0, len(samples) - 1, num=target_length)
    return np.interp(positions, np.arange(len(samples)), samples).astype(np.float32)


class WhisperRecognizer(RecognitionCapability):
    """Speech recognition backed by openai-whisper"""

    def __init__(self, model_size: str = "base", device: Optional[str] = None,
                 language: Optional[str] = None, max_workers: int = 1):
        """
        Args:
            model_size: Size of Whisper model ('tiny', 'base', 'small', 'medium', 'large')
            device: Device to use ('cuda', 'cpu', or None for auto-detection)
            language: Language code for transcription (None for auto-detection)
        """
        self.model_size = model_size
        self.device = device
        self.language = language
        self.max_workers = max_workers
        self._model: Any = None
        self._executor: Optional[ThreadPoolExecutor] = None

    async def initialize(self) -> Result[None, str]:
        if self._model is not None:
            return Success(None)

        self._executor = ThreadPoolExecutor(max_workers=self.max_workers, thread_name_prefix="whisper-")
        start_time = time.time()
        try:
            loop = asyncio.get_running_loop()
            self._model = await loop.run_in_executor(self._executor, self._load_model)
        except Exception as e:
            logger.error(f"Failed to load Whisper model: {e}")
            self._executor.shutdown(wait=False)
            self._executor = None
            return Failure(f"Whisper model '{self.model_size}' failed to load: {e}")

        logger.info(f"Whisper model {self.model_size} loaded on {self.device} in {time.time() - start_time:.2f}s")
        return Success(None)

    def _load_model(self):
        import torch
        import whisper

        if self.device is None:
            if torch.cuda.is_available():
                self.device = "cuda"
                logger.info(f"CUDA available - using GPU: {torch.cuda.get_device_name(0)}")
            else:
                self.device = "cpu"
                logger.warning("CUDA not available - using CPU")

        logger.info(f"Initializing Whisper model - size={self.model_size}, device={self.device}")
        return whisper.load_model(self.model_size, device=self.device)

    async def recognize(self, buffer: AudioBuffer) -> Transcript:
        if self._model is None:
            raise RuntimeError("Whisper model is not loaded")

        audio = resample(buffer.mono(), buffer.sample_rate, WHISPER_SAMPLE_RATE)
        options = {
            'language': self.language,
            'task': 'transcribe',
            'fp16': self.device == 'cuda',
        }
        options = {k: v for k, v in options.items() if v is not None}

        loop = asyncio.get_running_loop()
        start_time = time.time()
        result = await loop.run_in_executor(self._executor, lambda: self._model.transcribe(audio, **options))
        logger.info(f"Transcription completed in {time.time() - start_time:.2f}s")

        return Transcript(
            text=result.get('text', '').strip(),
            language=result.get('language'),
            segments=list(result.get('segments', [])),
        )

    async def dispose(self) -> None:
        """Release the model and any cached GPU memory"""
        if self._model is None:
            return
        device = self.device
        self._model = None
        if self._executor is not None:
            self._executor.shutdown(wait=False)
            self._executor = None
        if device == "cuda":
            import torch
            torch.cuda.empty_cache()
        logger.info("Whisper recognizer disposed")
