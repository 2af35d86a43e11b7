"""Utilities for turning retrieved chunks and history into completion inputs."""
from __future__ import annotations

from typing import Dict, List, Sequence, Tuple

from .ingest.models import Chunk
from .models import Message, SourceCitation

SNIPPET_CHARS = 100
CONTEXT_SEPARATOR = "\n\n---\n\n"


def build_citations(chunks: Sequence[Chunk]) -> Tuple[SourceCitation, ...]:
    """Project retrieved chunks into display-only citations."""

    return tuple(
        SourceCitation(
            document_name=chunk.document_name,
            page=chunk.page,
            snippet=chunk.content[:SNIPPET_CHARS] + "...",
        )
        for chunk in chunks
    )


def build_context(chunks: Sequence[Chunk]) -> str:
    """Compose the grounding material sent alongside the question.

    Returns an empty string when nothing was retrieved.
    """

    sections = [f"[Source: {chunk.document_name}, Page {chunk.page}]\n{chunk.content}" for chunk in chunks]
    return CONTEXT_SEPARATOR.join(sections)


def build_history(messages: Sequence[Message], limit: int) -> List[Dict[str, str]]:
    """Reduce the last *limit* messages to role/content pairs."""

    if limit <= 0:
        return []
    return [{"role": message.role.value, "content": message.content} for message in messages[-limit:]]


__all__ = ["build_citations", "build_context", "build_history"]
