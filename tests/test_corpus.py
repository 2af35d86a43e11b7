from __future__ import annotations

import pytest

from docchat.corpus import Corpus, InvalidTransitionError
from docchat.ingest.models import Chunk
from docchat.models import Document, DocumentStatus


def _document(document_id: str) -> Document:
    return Document(id=document_id, name=f"{document_id}.pdf", size=10)


def _chunks(document_id: str, count: int) -> tuple[Chunk, ...]:
    return tuple(
        Chunk(id=f"{document_id}-{index}", document_id=document_id, document_name=f"{document_id}.pdf", content=f"text {index}", index=index)
        for index in range(count)
    )


def test_status_follows_lifecycle():
    corpus = Corpus()
    corpus.add(_document("a"))

    indexing = corpus.set_status("a", DocumentStatus.INDEXING)
    ready = corpus.set_status("a", DocumentStatus.READY, chunks=_chunks("a", 2), page_count=3)

    assert indexing is not None and indexing.status is DocumentStatus.INDEXING
    assert ready is not None and ready.is_ready
    assert ready.page_count == 3
    assert len(ready.chunks) == 2
    assert corpus.get("a") == ready


def test_status_cannot_skip_or_reverse():
    corpus = Corpus()
    corpus.add(_document("a"))

    with pytest.raises(InvalidTransitionError):
        corpus.set_status("a", DocumentStatus.READY)

    corpus.set_status("a", DocumentStatus.INDEXING)
    corpus.set_status("a", DocumentStatus.ERROR, error="Could not read PDF")

    with pytest.raises(InvalidTransitionError):
        corpus.set_status("a", DocumentStatus.INDEXING)
    assert corpus.get("a").error == "Could not read PDF"


def test_updates_for_removed_documents_are_ignored():
    corpus = Corpus()
    corpus.add(_document("a"))
    corpus.set_status("a", DocumentStatus.INDEXING)

    assert corpus.remove("a") is True
    assert corpus.set_status("a", DocumentStatus.READY, chunks=_chunks("a", 1)) is None
    assert len(corpus) == 0
    assert corpus.remove("a") is False


def test_all_chunks_only_from_ready_documents_in_insertion_order():
    corpus = Corpus()
    for document_id in ("b", "a", "c"):
        corpus.add(_document(document_id))
        corpus.set_status(document_id, DocumentStatus.INDEXING)
    corpus.set_status("a", DocumentStatus.READY, chunks=_chunks("a", 2))
    corpus.set_status("b", DocumentStatus.READY, chunks=_chunks("b", 1))

    assert [chunk.id for chunk in corpus.all_chunks()] == ["b-0", "a-0", "a-1"]
    assert corpus.ready_count == 2


def test_updates_replace_snapshots():
    corpus = Corpus()
    corpus.add(_document("a"))
    before = corpus.documents

    corpus.set_status("a", DocumentStatus.INDEXING)

    assert before[0].status is DocumentStatus.UPLOADING
    assert corpus.documents[0].status is DocumentStatus.INDEXING


def test_duplicate_ids_are_rejected():
    corpus = Corpus()
    corpus.add(_document("a"))

    with pytest.raises(ValueError):
        corpus.add(_document("a"))
