"""Session level records: documents, messages and citations."""
from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Tuple

from .ingest.models import Chunk


class DocumentStatus(str, Enum):
    """Lifecycle of an uploaded document."""

    UPLOADING = "uploading"
    INDEXING = "indexing"
    READY = "ready"
    ERROR = "error"


class Role(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


class ExplanationMode(str, Enum):
    """Backend hint changing the answer style."""

    SIMPLE = "simple"
    TECHNICAL = "technical"

    def toggled(self) -> "ExplanationMode":
        return ExplanationMode.TECHNICAL if self is ExplanationMode.SIMPLE else ExplanationMode.SIMPLE


def new_id() -> str:
    return uuid.uuid4().hex


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True, slots=True)
class Document:
    """An uploaded file and the chunks it owns."""

    id: str
    name: str
    size: int
    status: DocumentStatus = DocumentStatus.UPLOADING
    page_count: Optional[int] = None
    chunks: Tuple[Chunk, ...] = ()
    error: Optional[str] = None

    @property
    def is_ready(self) -> bool:
        return self.status is DocumentStatus.READY


@dataclass(frozen=True, slots=True)
class SourceCitation:
    """Display-only projection of a retrieved chunk."""

    document_name: str
    page: int
    snippet: str


@dataclass(frozen=True, slots=True)
class Message:
    """A single entry of the conversation log."""

    role: Role
    content: str
    id: str = field(default_factory=new_id)
    sources: Optional[Tuple[SourceCitation, ...]] = None
    timestamp: datetime = field(default_factory=utcnow)
    is_error: bool = False


@dataclass(frozen=True, slots=True)
class UploadedFile:
    """File handed to :meth:`RAGSession.add_document`."""

    name: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)
