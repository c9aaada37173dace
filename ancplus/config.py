#!/usr/bin/env python3

"""
Configuration and Logging

Frozen dataclass configuration for the core components, loadable from
environment variables (``ANCPLUS_*``) or from a nested dictionary, plus the
shared logging setup.
"""

import logging
import os
import tempfile
from dataclasses import dataclass, field, asdict
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(filename)s:%(lineno)d - %(message)s'

ENV_PREFIX = "ANCPLUS_"


@dataclass(frozen=True)
class DecoderConfig:
    """Audio decoder settings"""
    ffmpeg_binary: str = "ffmpeg"
    ffmpeg_fallback: bool = True
    timeout: float = 120.0


@dataclass(frozen=True)
class ExtractionConfig:
    """Media extraction settings"""
    ffmpeg_binary: str = "ffmpeg"
    ffprobe_binary: str = "ffprobe"
    work_dir: Optional[str] = None
    estimated_job_seconds: float = 30.0
    exec_timeout: float = 1800.0  # 30 minutes per ffmpeg run

    def resolve_work_dir(self) -> str:
        return self.work_dir or tempfile.gettempdir()


@dataclass(frozen=True)
class ValidationConfig:
    """Caller-side upload limits"""
    max_file_size: int = 100 * 1024 * 1024  # 100MB
    max_duration: float = 600.0  # 10 minutes
    min_duration: float = 0.1


@dataclass(frozen=True)
class ServerConfig:
    """HTTP surface settings"""
    host: str = "0.0.0.0"
    port: int = 8000
    log_level: str = "INFO"


@dataclass(frozen=True)
class AncConfig:
    """Top-level configuration grouping every component section"""
    decoder: DecoderConfig = field(default_factory=DecoderConfig)
    extraction: ExtractionConfig = field(default_factory=ExtractionConfig)
    validation: ValidationConfig = field(default_factory=ValidationConfig)
    server: ServerConfig = field(default_factory=ServerConfig)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'AncConfig':
        """Create config from a nested dictionary, using defaults for missing keys"""
        merged = merge_configs(cls().to_dict(), data)
        return cls(
            decoder=DecoderConfig(**merged["decoder"]),
            extraction=ExtractionConfig(**merged["extraction"]),
            validation=ValidationConfig(**merged["validation"]),
            server=ServerConfig(**merged["server"]),
        )

    @classmethod
    def from_env(cls, environ: Optional[Dict[str, str]] = None) -> 'AncConfig':
        """Create config from ANCPLUS_* environment variables"""
        env = os.environ if environ is None else environ
        overrides: Dict[str, Dict[str, Any]] = {}

        def put(section: str, key: str, var: str, convert=str) -> None:
            raw = env.get(ENV_PREFIX + var)
            if raw is None or raw == "":
                return
            try:
                overrides.setdefault(section, {})[key] = convert(raw)
            except ValueError:
                logger.warning(f"Ignoring invalid value for {ENV_PREFIX + var}: {raw!r}")

        put("decoder", "ffmpeg_binary", "FFMPEG")
        put("decoder", "ffmpeg_fallback", "FFMPEG_FALLBACK", _parse_bool)
        put("extraction", "ffmpeg_binary", "FFMPEG")
        put("extraction", "ffprobe_binary", "FFPROBE")
        put("extraction", "work_dir", "WORK_DIR")
        put("extraction", "exec_timeout", "EXEC_TIMEOUT", float)
        put("validation", "max_file_size", "MAX_FILE_SIZE", int)
        put("validation", "max_duration", "MAX_DURATION", float)
        put("server", "host", "HOST")
        put("server", "port", "PORT", int)
        put("server", "log_level", "LOG_LEVEL")

        return cls.from_dict(overrides)


def _parse_bool(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in ("1", "true", "yes", "on"):
        return True
    if lowered in ("0", "false", "no", "off"):
        return False
    raise ValueError(value)


def merge_configs(default: dict, user: dict) -> dict:
    """Merge configurations with deep update"""
    result = default.copy()

    for key, value in user.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = merge_configs(result[key], value)
        else:
            result[key] = value

    return result


def setup_logging(level: str = "INFO", format_string: Optional[str] = None) -> None:
    """Configure root logging with the project format"""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=format_string or LOG_FORMAT,
        datefmt='%Y-%m-%d %H:%M:%S'
    )
    logger.info(f"Logging configured at {level} level")
