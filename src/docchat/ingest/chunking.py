"""Chunking utilities for breaking extracted text into page-tagged units."""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Iterator, List, Optional

from .models import Chunk

PAGE_MARKER_RE = re.compile(r"\[Page (\d+)\]")
LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ChunkingConfig:
    chunk_chars: int = 450
    overlap_chars: int = 50


class LineChunker:
    """Greedy single-pass chunker working at line granularity.

    Lines are accumulated into a buffer separated by a single space. When the
    next line would push the buffer past ``chunk_chars`` the buffer is flushed
    and re-seeded with its last ``overlap_chars`` characters. Lines are never
    split, so one oversized line still lands in a single chunk.

    ``[Page N]`` marker lines switch the current page and are not emitted. A
    chunk is tagged with the page that was active when its last line was
    appended.
    """

    def __init__(self, config: Optional[ChunkingConfig] = None) -> None:
        self.config = config or ChunkingConfig()

    def chunk(self, text: str, document_id: str, document_name: str) -> Iterator[Chunk]:
        chunk_chars = max(self.config.chunk_chars, 1)
        overlap_chars = max(self.config.overlap_chars, 0)

        buffer = ""
        current_page = 1
        buffer_page = 1
        index = 0

        for line in text.split("\n"):
            marker = PAGE_MARKER_RE.search(line)
            if marker:
                current_page = int(marker.group(1))
                continue

            if len(buffer) + len(line) > chunk_chars:
                if buffer.strip():
                    yield self._make_chunk(buffer, document_id, document_name, buffer_page, index)
                    index += 1
                buffer = buffer[-overlap_chars:] if overlap_chars else ""

            buffer += line + " "
            buffer_page = current_page

        if buffer.strip():
            yield self._make_chunk(buffer, document_id, document_name, buffer_page, index)

    @staticmethod
    def _make_chunk(buffer: str, document_id: str, document_name: str, page: int, index: int) -> Chunk:
        LOGGER.debug(
            "Chunk %s of %s page %s length %s",  # noqa: G004 - f-string not required
            index,
            document_id,
            page,
            len(buffer),
        )
        return Chunk(
            id=f"{document_id}-{index}",
            document_id=document_id,
            document_name=document_name,
            content=buffer.strip(),
            page=page,
            index=index,
        )


def chunk_text(
    text: str,
    document_id: str,
    document_name: str,
    config: Optional[ChunkingConfig] = None,
) -> List[Chunk]:
    """Split *text* into an ordered list of :class:`Chunk` objects."""

    return list(LineChunker(config).chunk(text, document_id, document_name))
