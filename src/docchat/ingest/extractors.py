"""Extractors for supported document types."""
from __future__ import annotations

import io
import logging
import math

from docx import Document as DocxDocument
from PyPDF2 import PdfReader

from ..errors import ExtractionError
from .format_detection import DocumentFormat, DocumentFormatDetector
from .models import ExtractionResult

LOGGER = logging.getLogger(__name__)

CHARS_PER_ESTIMATED_PAGE = 3000


def estimate_page_count(text: str) -> int:
    """Synthetic page count for formats without native pages."""

    return max(1, math.ceil(len(text) / CHARS_PER_ESTIMATED_PAGE))


class PDFExtractor:
    """Extract text from PDF documents, one ``[Page N]`` marker per page."""

    def extract(self, data: bytes) -> ExtractionResult:
        try:
            reader = PdfReader(io.BytesIO(data))
            pages = list(reader.pages)
        except Exception as error:
            raise ExtractionError(f"Could not read PDF: {error}", cause=error) from error

        parts: list[str] = []
        for number, page in enumerate(pages, start=1):
            try:
                page_text = page.extract_text() or ""
            except Exception as error:  # pragma: no cover - depends on PDF internals
                LOGGER.warning("Failed to extract text from PDF page %s: %s", number, error)
                page_text = ""
            parts.append(f"\n[Page {number}]\n{page_text}")
        return ExtractionResult(text="".join(parts), page_count=len(pages))


class DocxExtractor:
    """Extract text from Microsoft Word documents."""

    def extract(self, data: bytes) -> ExtractionResult:
        try:
            document = DocxDocument(io.BytesIO(data))
        except Exception as error:
            raise ExtractionError(f"Could not read DOCX: {error}", cause=error) from error

        text = "\n".join(paragraph.text for paragraph in document.paragraphs)
        return ExtractionResult(text=text, page_count=estimate_page_count(text))


class TextExtractor:
    """Extract text from plaintext documents."""

    def extract(self, data: bytes) -> ExtractionResult:
        try:
            text = data.decode("utf-8-sig")
        except UnicodeDecodeError:
            LOGGER.info("Text file is not valid UTF-8; decoding as latin-1")
            text = data.decode("latin-1")
        return ExtractionResult(text=text, page_count=estimate_page_count(text))


class DocumentExtractor:
    """Dispatch a file to the extractor matching its extension."""

    def __init__(self) -> None:
        self.pdf_extractor = PDFExtractor()
        self.docx_extractor = DocxExtractor()
        self.text_extractor = TextExtractor()

    def extract(self, data: bytes, file_name: str) -> ExtractionResult:
        """Return the text of *data* with page markers and a page count.

        Raises :class:`~docchat.errors.UnsupportedFormatError` for unknown
        extensions and :class:`~docchat.errors.ExtractionError` for corrupt files.
        """

        document_format = DocumentFormatDetector.detect(file_name)
        LOGGER.info("Extracting %s as %s", file_name, document_format.value)
        if document_format is DocumentFormat.PDF:
            return self.pdf_extractor.extract(data)
        if document_format is DocumentFormat.DOCX:
            return self.docx_extractor.extract(data)
        return self.text_extractor.extract(data)
