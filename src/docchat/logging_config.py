"""JSON logging for the session engine and its audit trail."""

from __future__ import annotations

import json
import logging
import logging.config
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

AUDIT_LOGGER_NAME = "docchat.audit"

# Correlation fields written by ``docchat.telemetry.log_event`` and the audit
# records. They are placed right after the header so lines from one session or
# one completion request line up when scanned.
CONTEXT_KEYS = ("event", "step", "session_id", "req_id", "duration_ms")

_RECORD_ATTRIBUTES = frozenset(logging.LogRecord("", logging.INFO, "", 0, "", None, None).__dict__) | {
    "message",
    "asctime",
}


def _utc_timestamp(created: float) -> str:
    return datetime.fromtimestamp(created, tz=timezone.utc).isoformat().replace("+00:00", "Z")


class MinimalJSONFormatter(logging.Formatter):
    """Serialize log records to one compact JSON object per line.

    Dict messages are merged into the object, anything passed through
    ``extra=`` is copied over, and the keys in :data:`CONTEXT_KEYS` are moved
    to the front in a fixed order.
    """

    def format(self, record: logging.LogRecord) -> str:  # noqa: D401 - inherited
        timestamp = _utc_timestamp(record.created)
        fields: dict[str, Any] = {}

        if isinstance(record.msg, dict):
            fields.update(record.msg)
        else:
            message = record.getMessage()
            if message:
                fields["message"] = message

        for key, value in record.__dict__.items():
            if key in _RECORD_ATTRIBUTES or key.startswith("_"):
                continue
            fields[key] = value

        log_record: dict[str, Any] = {
            "ts": timestamp,
            "timestamp": timestamp,
            "level": record.levelname,
            "module": fields.pop("module", record.name),
        }
        for key in CONTEXT_KEYS:
            if key in fields:
                log_record[key] = fields.pop(key)
        log_record.update(fields)

        if record.exc_info:
            log_record["exc_info"] = self.formatException(record.exc_info)

        return json.dumps(log_record, ensure_ascii=False, default=str)


def configure_logging(level: str = "INFO", log_dir: Path = Path("logs")) -> None:
    """Send JSON logs to stderr and audit records to ``log_dir/audit.log``."""

    log_dir.mkdir(parents=True, exist_ok=True)

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {"json": {"()": MinimalJSONFormatter}},
            "handlers": {
                "default": {
                    "class": "logging.StreamHandler",
                    "formatter": "json",
                },
                "audit": {
                    "class": "logging.FileHandler",
                    "filename": str(log_dir / "audit.log"),
                    "mode": "a",
                    "encoding": "utf-8",
                    "formatter": "json",
                },
            },
            "root": {
                "level": level,
                "handlers": ["default"],
            },
            "loggers": {
                AUDIT_LOGGER_NAME: {
                    "level": "INFO",
                    "handlers": ["audit"],
                    "propagate": False,
                },
                # httpx logs every completion request at INFO.
                "httpx": {"level": "WARNING"},
            },
        }
    )
