"""Lexical retrieval of the chunks most relevant to a question."""
from __future__ import annotations

from dataclasses import dataclass
from typing import FrozenSet, Iterable, List, Sequence, Union

from .corpus import Corpus
from .ingest.models import Chunk

MIN_WORD_LENGTH = 3
DEFAULT_TOP_K = 5


@dataclass(frozen=True, slots=True)
class ScoredChunk:
    chunk: Chunk
    score: float


def tokenize(text: str) -> FrozenSet[str]:
    """Lowercase whitespace-separated words longer than two characters."""

    return frozenset(word for word in text.lower().split() if len(word) >= MIN_WORD_LENGTH)


def jaccard_similarity(left: FrozenSet[str], right: FrozenSet[str]) -> float:
    union = left | right
    if not union:
        return 0.0
    return len(left & right) / len(union)


def score_chunks(query: str, chunks: Iterable[Chunk]) -> List[ScoredChunk]:
    """Score every chunk against *query*, best first.

    ``sorted`` is stable, so chunks with equal scores keep their corpus order.
    """

    query_words = tokenize(query)
    if not query_words:
        return []
    scored = [ScoredChunk(chunk=chunk, score=jaccard_similarity(query_words, tokenize(chunk.content))) for chunk in chunks]
    return sorted(scored, key=lambda item: item.score, reverse=True)


def retrieve(
    query: str,
    corpus: Union[Corpus, Sequence[Chunk]],
    top_k: int = DEFAULT_TOP_K,
) -> List[Chunk]:
    """Return at most *top_k* chunks with a positive score, best first."""

    if top_k <= 0:
        return []
    chunks = corpus.all_chunks() if isinstance(corpus, Corpus) else tuple(corpus)
    if not chunks:
        return []
    ranked = score_chunks(query, chunks)[:top_k]
    return [item.chunk for item in ranked if item.score > 0]
