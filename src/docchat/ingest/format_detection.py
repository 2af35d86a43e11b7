"""Utilities for detecting the format of uploaded documents."""
from __future__ import annotations

from enum import Enum
from pathlib import Path

from ..errors import UnsupportedFormatError


class DocumentFormat(str, Enum):
    """Supported document formats."""

    PDF = "pdf"
    DOCX = "docx"
    TXT = "txt"


class DocumentFormatDetector:
    """Detects the document format from the file extension."""

    @classmethod
    def detect(cls, file_name: str) -> DocumentFormat:
        """Return the detected document format.

        Raises :class:`UnsupportedFormatError` for any other extension.
        """

        suffix = Path(file_name).suffix.lower().lstrip(".")
        try:
            return DocumentFormat(suffix)
        except ValueError as exc:
            raise UnsupportedFormatError(f"Unsupported file type: .{suffix}", cause=exc) from exc
