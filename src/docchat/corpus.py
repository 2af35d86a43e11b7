"""In-memory collection of uploaded documents and their chunks."""
from __future__ import annotations

import logging
from dataclasses import replace
from typing import Dict, Optional, Tuple

from .ingest.models import Chunk
from .models import Document, DocumentStatus

LOGGER = logging.getLogger(__name__)

_ALLOWED_TRANSITIONS: Dict[DocumentStatus, frozenset[DocumentStatus]] = {
    DocumentStatus.UPLOADING: frozenset({DocumentStatus.INDEXING}),
    DocumentStatus.INDEXING: frozenset({DocumentStatus.READY, DocumentStatus.ERROR}),
    DocumentStatus.READY: frozenset(),
    DocumentStatus.ERROR: frozenset(),
}


class InvalidTransitionError(ValueError):
    """Raised when a document status update skips or reverses a lifecycle step."""


class Corpus:
    """Ordered mapping of document id to :class:`Document`.

    Every update swaps in a new tuple of documents so readers holding a
    snapshot never observe a partially applied change.
    """

    def __init__(self) -> None:
        self._documents: Tuple[Document, ...] = ()

    @property
    def documents(self) -> Tuple[Document, ...]:
        return self._documents

    def __len__(self) -> int:
        return len(self._documents)

    def __contains__(self, document_id: object) -> bool:
        return any(document.id == document_id for document in self._documents)

    def get(self, document_id: str) -> Optional[Document]:
        for document in self._documents:
            if document.id == document_id:
                return document
        return None

    def add(self, document: Document) -> None:
        if document.id in self:
            raise ValueError(f"Document {document.id} already exists")
        self._documents = self._documents + (document,)

    def remove(self, document_id: str) -> bool:
        remaining = tuple(document for document in self._documents if document.id != document_id)
        removed = len(remaining) != len(self._documents)
        self._documents = remaining
        return removed

    def set_status(
        self,
        document_id: str,
        status: DocumentStatus,
        *,
        chunks: Optional[Tuple[Chunk, ...]] = None,
        page_count: Optional[int] = None,
        error: Optional[str] = None,
    ) -> Optional[Document]:
        """Advance a document to *status* and return the updated record.

        Updates for documents removed in the meantime are ignored and return
        ``None``.
        """

        current = self.get(document_id)
        if current is None:
            LOGGER.info("Ignoring %s update for removed document %s", status.value, document_id)
            return None
        if status not in _ALLOWED_TRANSITIONS[current.status]:
            raise InvalidTransitionError(
                f"Document {document_id} cannot move from {current.status.value} to {status.value}"
            )

        changes: dict[str, object] = {"status": status}
        if chunks is not None:
            changes["chunks"] = tuple(chunks)
        if page_count is not None:
            changes["page_count"] = page_count
        if error is not None:
            changes["error"] = error
        updated = replace(current, **changes)
        self._documents = tuple(updated if document.id == document_id else document for document in self._documents)
        return updated

    def all_chunks(self) -> Tuple[Chunk, ...]:
        """Chunks of ready documents in insertion order, then chunk order."""

        return tuple(chunk for document in self._documents if document.is_ready for chunk in document.chunks)

    @property
    def ready_count(self) -> int:
        return sum(1 for document in self._documents if document.is_ready)
