"""Shared fixtures: a scripted completion backend and session settings."""
from __future__ import annotations

import asyncio
import json
from contextlib import asynccontextmanager
from typing import AsyncIterator, Iterable, List, Optional

import pytest

from docchat.completion import CompletionRequest
from docchat.config import Settings


def delta_line(text: str) -> bytes:
    payload = {"choices": [{"delta": {"content": text}}]}
    return f"data: {json.dumps(payload, ensure_ascii=False)}\n".encode("utf-8")


DONE_LINE = b"data: [DONE]\n"


class ScriptedCompletionService:
    """Completion backend replaying a fixed list of frames.

    With ``hold_after`` set, the stream blocks after that many frames until
    :attr:`release` is set, which lets tests observe a turn mid-stream.
    """

    def __init__(
        self,
        frames: Iterable[bytes] = (),
        *,
        error: Optional[Exception] = None,
        hold_after: Optional[int] = None,
    ) -> None:
        self.frames: List[bytes] = list(frames)
        self.error = error
        self.hold_after = hold_after
        self.release = asyncio.Event()
        self.requests: List[CompletionRequest] = []

    @asynccontextmanager
    async def stream(self, request: CompletionRequest) -> AsyncIterator[AsyncIterator[bytes]]:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        yield self._iterate()

    async def _iterate(self) -> AsyncIterator[bytes]:
        for position, frame in enumerate(self.frames):
            if self.hold_after is not None and position == self.hold_after:
                await self.release.wait()
            yield frame


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(extraction_timeout=5.0, log_dir=tmp_path / "logs")


@pytest.fixture
def hello_frames() -> List[bytes]:
    return [delta_line("Hel"), delta_line("lo"), DONE_LINE]
