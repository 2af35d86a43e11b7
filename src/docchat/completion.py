"""Client side of the streaming chat-completion backend."""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, AsyncContextManager, AsyncIterator, Dict, List, Optional, Protocol

import httpx

from .config import Settings
from .errors import NetworkError, StreamProtocolError
from .models import ExplanationMode

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class CompletionRequest:
    """Everything the backend needs to answer one user turn."""

    message: str
    context: str
    history: List[Dict[str, str]] = field(default_factory=list)
    explanation_mode: ExplanationMode = ExplanationMode.SIMPLE

    @property
    def has_context(self) -> bool:
        return bool(self.context)

    def to_payload(self) -> Dict[str, Any]:
        return {
            "messages": [{"role": "user", "content": self.message}],
            "context": self.context,
            "conversationHistory": [dict(item) for item in self.history],
            "explanationMode": self.explanation_mode.value,
            "hasContext": self.has_context,
        }


class CompletionService(Protocol):
    """Streams the raw response body of a completion request."""

    def stream(self, request: CompletionRequest) -> AsyncContextManager[AsyncIterator[bytes]]:
        """Open the request and yield an iterator over the body's byte frames.

        Raises :class:`NetworkError` when the request cannot be made or the
        backend answers with a non-success status.
        """
        ...


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        body = {}
    error = body.get("error") if isinstance(body, dict) else None
    if error:
        return str(error)
    return f"Request failed: {response.status_code}"


class HttpCompletionService:
    """POST the turn to an HTTP endpoint and stream back its SSE body."""

    def __init__(
        self,
        url: str,
        *,
        api_key: Optional[str] = None,
        timeout: Optional[httpx.Timeout] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.url = url
        self._api_key = api_key
        self._timeout = timeout or httpx.Timeout(120.0, connect=10.0)
        self._transport = transport

    @classmethod
    def from_settings(cls, settings: Settings) -> "HttpCompletionService":
        return cls(
            settings.completion_url,
            api_key=settings.completion_api_key,
            timeout=httpx.Timeout(settings.completion_read_timeout, connect=settings.completion_connect_timeout),
        )

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json", "Accept": "text/event-stream"}
        if self._api_key:
            headers["Authorization"] = f"Bearer {self._api_key}"
        return headers

    @asynccontextmanager
    async def stream(self, request: CompletionRequest) -> AsyncIterator[AsyncIterator[bytes]]:
        async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
            try:
                async with client.stream(
                    "POST",
                    self.url,
                    json=request.to_payload(),
                    headers=self._headers(),
                ) as response:
                    if not response.is_success:
                        await response.aread()
                        message = _error_message(response)
                        LOGGER.warning("Completion request failed with %s: %s", response.status_code, message)
                        raise NetworkError(message, status_code=response.status_code)
                    if response.status_code == 204 or response.headers.get("content-length") == "0":
                        raise StreamProtocolError("No response body")
                    yield self._frames(response)
            except httpx.HTTPError as error:
                raise NetworkError(f"Request failed: {error}", cause=error) from error

    @staticmethod
    async def _frames(response: httpx.Response) -> AsyncIterator[bytes]:
        try:
            async for frame in response.aiter_bytes():
                if frame:
                    yield frame
        except httpx.HTTPError as error:
            raise NetworkError(f"Connection lost while streaming: {error}", cause=error) from error
