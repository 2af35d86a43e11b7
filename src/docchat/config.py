"""Environment driven configuration for the document chat service."""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

LOGGER = logging.getLogger(__name__)

DEFAULT_COMPLETION_URL = "http://localhost:8000/v1/rag-chat"


def _str_from_env(name: str, default: Optional[str]) -> Optional[str]:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    return value.strip()


def _int_from_env(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        LOGGER.warning("Invalid integer for %s: %s; using default %s", name, value, default)
        return default


def _float_from_env(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        LOGGER.warning("Invalid float for %s: %s; using default %s", name, value, default)
        return default


@dataclass(frozen=True, slots=True)
class Settings:
    """Runtime settings for a session and its collaborators."""

    completion_url: str = DEFAULT_COMPLETION_URL
    completion_api_key: Optional[str] = None
    completion_connect_timeout: float = 10.0
    completion_read_timeout: float = 120.0
    extraction_timeout: float = 60.0
    chunk_chars: int = 450
    chunk_overlap: int = 50
    retrieval_top_k: int = 5
    history_messages: int = 10
    stream_max_malformed_retries: int = 3
    stream_max_buffer_chars: int = 1024 * 1024
    log_level: str = "INFO"
    log_dir: Path = Path("logs")


def load_settings(env_file: Path | None = None) -> Settings:
    """Build :class:`Settings` from the process environment.

    A ``.env`` file is loaded first when present; variables already set in the
    environment take precedence over it.
    """

    if env_file is not None:
        load_dotenv(dotenv_path=env_file)
    else:
        load_dotenv()

    defaults = Settings()
    return Settings(
        completion_url=_str_from_env("COMPLETION_URL", defaults.completion_url) or DEFAULT_COMPLETION_URL,
        completion_api_key=_str_from_env("COMPLETION_API_KEY", None),
        completion_connect_timeout=_float_from_env(
            "COMPLETION_CONNECT_TIMEOUT", defaults.completion_connect_timeout
        ),
        completion_read_timeout=_float_from_env("COMPLETION_READ_TIMEOUT", defaults.completion_read_timeout),
        extraction_timeout=_float_from_env("EXTRACTION_TIMEOUT", defaults.extraction_timeout),
        chunk_chars=_int_from_env("CHUNK_CHARS", defaults.chunk_chars),
        chunk_overlap=_int_from_env("CHUNK_OVERLAP", defaults.chunk_overlap),
        retrieval_top_k=_int_from_env("RETRIEVAL_TOP_K", defaults.retrieval_top_k),
        history_messages=_int_from_env("HISTORY_MESSAGES", defaults.history_messages),
        stream_max_malformed_retries=_int_from_env(
            "STREAM_MAX_MALFORMED_RETRIES", defaults.stream_max_malformed_retries
        ),
        stream_max_buffer_chars=_int_from_env("STREAM_MAX_BUFFER_CHARS", defaults.stream_max_buffer_chars),
        log_level=(_str_from_env("LOG_LEVEL", defaults.log_level) or "INFO").upper(),
        log_dir=Path(_str_from_env("LOG_DIR", str(defaults.log_dir)) or "logs"),
    )
