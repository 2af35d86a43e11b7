"""Data models used by the ingestion pipeline."""
from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class ExtractionResult:
    """Raw text of a document with ``[Page N]`` marker lines and a page count hint."""

    text: str
    page_count: int


@dataclass(frozen=True, slots=True)
class Chunk:
    """Page-tagged excerpt of a document, the unit of retrieval."""

    id: str
    document_id: str
    document_name: str
    content: str
    page: int = 1
    index: int = 0
