"""Incremental decoding of server-sent-event completion streams.

The completion backend answers with ``data: {json}`` lines whose payload
carries an OpenAI style ``choices[0].delta.content`` fragment. Network frames
are not aligned with lines, so :class:`SSELineDecoder` buffers decoded text
and only hands out complete lines, each turned into a tagged event.
:class:`StreamAssembler` drives the decoder over a live frame iterator and
accumulates the message text.
"""
from __future__ import annotations

import asyncio
import codecs
import inspect
import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, AsyncIterable, Awaitable, Callable, List, Optional, Union

from .errors import StreamProtocolError

LOGGER = logging.getLogger(__name__)

DATA_PREFIX = "data: "
DONE_PAYLOAD = "[DONE]"
DEFAULT_MAX_MALFORMED_RETRIES = 3
DEFAULT_MAX_BUFFER_CHARS = 1024 * 1024


async def maybe_await(result: Any) -> Any:
    """Await result if it is awaitable."""

    if inspect.isawaitable(result):
        return await result
    return result


@dataclass(frozen=True, slots=True)
class Delta:
    text: str


@dataclass(frozen=True, slots=True)
class Done:
    pass


@dataclass(frozen=True, slots=True)
class Comment:
    line: str


@dataclass(frozen=True, slots=True)
class Malformed:
    raw_line: str


StreamEvent = Union[Delta, Done, Comment, Malformed]


def _delta_content(parsed: Any) -> str:
    try:
        content = parsed["choices"][0]["delta"]["content"]
    except (KeyError, IndexError, TypeError):
        return ""
    return content if isinstance(content, str) else ""


def decode_line(line: str) -> StreamEvent:
    """Classify a single protocol line."""

    if line.endswith("\r"):
        line = line[:-1]
    if not line.strip() or line.startswith(":"):
        return Comment(line)
    if not line.startswith(DATA_PREFIX):
        return Comment(line)

    payload = line[len(DATA_PREFIX) :].strip()
    if payload == DONE_PAYLOAD:
        return Done()
    if not payload:
        return Comment(line)
    try:
        parsed = json.loads(payload)
    except json.JSONDecodeError:
        return Malformed(line)
    return Delta(_delta_content(parsed))


class SSELineDecoder:
    """Turn arbitrary byte frames into complete-line stream events.

    A line whose JSON payload does not parse is held at the front of the
    buffer and nothing behind it is decoded while it is held. Retries are
    counted in complete lines queued behind the held line, so the outcome
    depends only on the bytes received and never on how they were framed.
    More than ``max_malformed_retries`` queued lines, any single line longer
    than ``max_buffer_chars``, or a buffer that stays larger than that after
    draining is a protocol failure. When the stream closes, :meth:`finish`
    drops the held line and decodes the rest.

    Failures are reported by :meth:`raise_for_error` so that events decoded
    ahead of the failing line in the same frame can still be applied.
    """

    def __init__(
        self,
        *,
        max_malformed_retries: int = DEFAULT_MAX_MALFORMED_RETRIES,
        max_buffer_chars: int = DEFAULT_MAX_BUFFER_CHARS,
    ) -> None:
        self.max_malformed_retries = max(max_malformed_retries, 0)
        self.max_buffer_chars = max(max_buffer_chars, 1)
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._buffer = ""
        self._held_line: Optional[str] = None
        self._error: Optional[StreamProtocolError] = None
        self._done = False

    @property
    def done(self) -> bool:
        return self._done

    @property
    def buffered(self) -> str:
        return self._buffer

    @property
    def error(self) -> Optional[StreamProtocolError]:
        return self._error

    def raise_for_error(self) -> None:
        if self._error is not None:
            raise self._error

    def feed(self, frame: bytes) -> List[StreamEvent]:
        if self._done or self._error is not None:
            return []
        self._buffer += self._decoder.decode(frame)
        events = self._drain()
        if self._error is None and len(self._buffer) > self.max_buffer_chars:
            self._error = StreamProtocolError(f"Stream buffer exceeded {self.max_buffer_chars} characters")
        return events

    def finish(self) -> List[StreamEvent]:
        """Decode whatever is left once the connection has closed.

        Remaining lines are decoded once; malformed ones, the held line
        included, are logged and dropped.
        """

        if self._done or self._error is not None:
            return []
        self._buffer += self._decoder.decode(b"", final=True)
        remaining, self._buffer = self._buffer, ""
        self._held_line = None
        events: List[StreamEvent] = []
        for line in remaining.split("\n"):
            event = decode_line(line)
            if isinstance(event, Malformed):
                LOGGER.warning("Dropping unparseable stream line: %.120s", event.raw_line)
                continue
            events.append(event)
            if isinstance(event, Done):
                self._done = True
                break
        return events

    def _drain(self) -> List[StreamEvent]:
        if self._held_line is not None:
            self._check_held_line(self._held_line)
            return []

        events: List[StreamEvent] = []
        while not self._done:
            newline_index = self._buffer.find("\n")
            if newline_index == -1:
                break
            line = self._buffer[:newline_index]
            if len(line) > self.max_buffer_chars:
                self._error = StreamProtocolError(f"Stream line exceeded {self.max_buffer_chars} characters")
                break

            event = decode_line(line)
            if isinstance(event, Malformed):
                self._held_line = line
                events.append(event)
                self._check_held_line(line)
                break

            self._buffer = self._buffer[newline_index + 1 :]
            events.append(event)
            if isinstance(event, Done):
                self._done = True
        return events

    def _check_held_line(self, line: str) -> None:
        queued = self._buffer.count("\n") - 1
        if queued > self.max_malformed_retries:
            self._error = StreamProtocolError(f"Malformed stream payload: {line[:120]}")
            return
        LOGGER.debug("Holding unparseable stream line with %s lines queued behind it", queued)


class StreamState(str, Enum):
    IDLE = "idle"
    STREAMING = "streaming"
    COMPLETE = "complete"
    ERRORED = "errored"
    CANCELLED = "cancelled"


ContentCallback = Callable[[str], Union[None, Awaitable[None]]]


class StreamAssembler:
    """Reassemble one assistant message from a stream of byte frames."""

    def __init__(
        self,
        *,
        max_malformed_retries: int = DEFAULT_MAX_MALFORMED_RETRIES,
        max_buffer_chars: int = DEFAULT_MAX_BUFFER_CHARS,
    ) -> None:
        self._decoder = SSELineDecoder(
            max_malformed_retries=max_malformed_retries,
            max_buffer_chars=max_buffer_chars,
        )
        self.state = StreamState.IDLE
        self.content = ""
        self.frames = 0

    async def run(self, frames: AsyncIterable[bytes], on_content: Optional[ContentCallback] = None) -> str:
        """Consume *frames* until ``[DONE]`` or the connection closes.

        *on_content* receives the accumulated text after every non-empty delta.
        Errors leave the assembler ``errored`` and cancellation leaves it
        ``cancelled``; both are re-raised.
        """

        if self.state is not StreamState.IDLE:
            raise RuntimeError(f"StreamAssembler cannot run from state {self.state.value}")
        self.state = StreamState.STREAMING
        try:
            async for frame in frames:
                self.frames += 1
                for event in self._decoder.feed(frame):
                    await self._apply(event, on_content)
                self._decoder.raise_for_error()
                if self._decoder.done:
                    break
            else:
                for event in self._decoder.finish():
                    await self._apply(event, on_content)
        except asyncio.CancelledError:
            self.state = StreamState.CANCELLED
            raise
        except Exception:
            self.state = StreamState.ERRORED
            raise
        self.state = StreamState.COMPLETE
        return self.content

    async def _apply(self, event: StreamEvent, on_content: Optional[ContentCallback]) -> None:
        if not isinstance(event, Delta) or not event.text:
            return
        self.content += event.text
        if on_content is not None:
            await maybe_await(on_content(self.content))
