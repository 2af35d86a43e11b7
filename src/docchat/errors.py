"""Common exceptions raised by the document chat engine."""
from __future__ import annotations


class DocChatError(RuntimeError):
    """Base class for errors surfaced by the engine."""

    def __init__(self, message: str, *, cause: Exception | None = None) -> None:
        super().__init__(message)
        self.__cause__ = cause


class ExtractionError(DocChatError):
    """Raised when a source file cannot be turned into text."""


class UnsupportedFormatError(ExtractionError):
    """Raised when the file extension is not one of the supported formats."""


class NetworkError(DocChatError):
    """Raised when the completion request fails or returns a non-success status."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message, cause=cause)
        self.status_code = status_code


class StreamProtocolError(DocChatError):
    """Raised when the completion stream cannot be decoded."""
