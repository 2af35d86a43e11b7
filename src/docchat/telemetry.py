"""Centralised observability helpers for structured lifecycle logging."""

from __future__ import annotations

import logging
import os
import platform
import sys
import traceback
from typing import Any, Iterable, Optional

LOGGER = logging.getLogger("docchat.telemetry")

_ENV_KEYS_TO_LOG: tuple[str, ...] = (
    "COMPLETION_URL",
    "COMPLETION_CONNECT_TIMEOUT",
    "COMPLETION_READ_TIMEOUT",
    "EXTRACTION_TIMEOUT",
    "CHUNK_CHARS",
    "CHUNK_OVERLAP",
    "RETRIEVAL_TOP_K",
    "HISTORY_MESSAGES",
    "LOG_LEVEL",
)


def _format_exception(error: BaseException) -> str:
    return "".join(traceback.format_exception(error.__class__, error, error.__traceback__))


def log_event(
    logger: Optional[logging.Logger],
    step: str,
    *,
    level: str = "info",
    req_id: str | None = None,
    session_id: str | None = None,
    duration_ms: float | None = None,
    exc: BaseException | str | None = None,
    details: dict[str, Any] | None = None,
    extra: dict[str, Any] | None = None,
    **payload: Any,
) -> None:
    """Emit a structured log event with the agreed-upon schema."""

    logger = logger or LOGGER
    event: dict[str, Any] = {"step": step, "module": logger.name}
    if req_id:
        event["req_id"] = req_id
    if session_id:
        event["session_id"] = session_id
    if duration_ms is not None:
        event["duration_ms"] = round(duration_ms, 3)
    if details is not None:
        event["details"] = details
    if extra:
        event.update(extra)
    event.update(payload)

    exc_info = None
    if exc is not None:
        if isinstance(exc, BaseException):
            event["exc"] = _format_exception(exc)
            exc_info = (exc.__class__, exc, exc.__traceback__)
        else:
            event["exc"] = str(exc)

    log_method = getattr(logger, level.lower(), logger.info)
    log_method(event, exc_info=exc_info)


def emit_app_startup_event() -> None:
    env_values = {key: os.getenv(key) for key in _ENV_KEYS_TO_LOG if os.getenv(key) is not None}
    details = {
        "env": env_values,
        "python": sys.version.split()[0],
        "platform": platform.platform(),
    }
    log_event(LOGGER, "app.startup", details=details, extra={"pid": os.getpid()})


def emit_ingest_event(
    step: str,
    *,
    file_name: str,
    session_id: str,
    document_id: str,
    size_bytes: int | None = None,
    duration_ms: float | None = None,
    pages: int | None = None,
    chunks: int | None = None,
    error: BaseException | None = None,
) -> None:
    details = {
        "file": file_name,
        "document_id": document_id,
        "size_bytes": size_bytes,
        "pages": pages,
        "chunks": chunks,
    }
    log_event(
        LOGGER,
        step,
        level="warning" if error is not None else "info",
        session_id=session_id,
        duration_ms=duration_ms,
        details=details,
        exc=str(error) if error is not None else None,
    )


def emit_retriever_event(
    *,
    session_id: str,
    query: str,
    top_k: int,
    results: list[dict[str, Any]],
    duration_ms: float,
) -> None:
    details = {
        "query_preview": query[:120],
        "top_k": top_k,
        "results": results,
    }
    log_event(LOGGER, "retriever.query", session_id=session_id, duration_ms=duration_ms, details=details)


def emit_completion_request(
    *,
    req_id: str,
    session_id: str,
    message_preview: str,
    context_len: int,
    history_len: int,
    explanation_mode: str,
    sources: Iterable[str],
) -> None:
    details = {
        "message_preview": message_preview[:120],
        "context_len": context_len,
        "history_len": history_len,
        "explanation_mode": explanation_mode,
        "sources": list(sources),
    }
    log_event(LOGGER, "completion.request", req_id=req_id, session_id=session_id, details=details)


def emit_completion_result(
    *,
    req_id: str,
    session_id: str,
    state: str,
    duration_ms: float,
    frames: int,
    answer_preview: str,
) -> None:
    details = {
        "state": state,
        "frames": frames,
        "answer_preview": answer_preview[:120],
        "answer_len": len(answer_preview),
    }
    log_event(
        LOGGER,
        "completion.stream.complete",
        req_id=req_id,
        session_id=session_id,
        duration_ms=duration_ms,
        details=details,
    )


def emit_exception(
    *,
    module: str,
    error: BaseException,
    req_id: str | None = None,
    session_id: str | None = None,
) -> None:
    log_event(
        LOGGER,
        "exception",
        level="error",
        req_id=req_id,
        session_id=session_id,
        details={"module": module},
        exc=error,
    )


__all__ = [
    "emit_app_startup_event",
    "emit_completion_request",
    "emit_completion_result",
    "emit_exception",
    "emit_ingest_event",
    "emit_retriever_event",
    "log_event",
]
