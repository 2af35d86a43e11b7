"""Document ingestion: extraction and chunking."""
from __future__ import annotations

from .chunking import ChunkingConfig, LineChunker, chunk_text
from .extractors import DocumentExtractor, estimate_page_count
from .format_detection import DocumentFormat, DocumentFormatDetector
from .models import Chunk, ExtractionResult

__all__ = [
    "Chunk",
    "ChunkingConfig",
    "DocumentExtractor",
    "DocumentFormat",
    "DocumentFormatDetector",
    "ExtractionResult",
    "LineChunker",
    "chunk_text",
    "estimate_page_count",
]
