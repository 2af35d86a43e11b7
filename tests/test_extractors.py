from __future__ import annotations

import io

import pytest
from docx import Document as DocxDocument
from PyPDF2 import PdfWriter

from docchat.errors import ExtractionError, UnsupportedFormatError
from docchat.ingest import DocumentExtractor, DocumentFormat, DocumentFormatDetector, estimate_page_count


def _pdf_bytes(pages: int) -> bytes:
    writer = PdfWriter()
    for _ in range(pages):
        writer.add_blank_page(width=200, height=200)
    buffer = io.BytesIO()
    writer.write(buffer)
    return buffer.getvalue()


def _docx_bytes(*paragraphs: str) -> bytes:
    document = DocxDocument()
    for paragraph in paragraphs:
        document.add_paragraph(paragraph)
    buffer = io.BytesIO()
    document.save(buffer)
    return buffer.getvalue()


@pytest.mark.parametrize(
    ("file_name", "expected"),
    [
        ("report.pdf", DocumentFormat.PDF),
        ("REPORT.PDF", DocumentFormat.PDF),
        ("memo.docx", DocumentFormat.DOCX),
        ("notes.txt", DocumentFormat.TXT),
    ],
)
def test_format_detection(file_name, expected):
    assert DocumentFormatDetector.detect(file_name) is expected


def test_unknown_extension_is_rejected():
    with pytest.raises(UnsupportedFormatError, match=r"Unsupported file type: \.xlsx"):
        DocumentExtractor().extract(b"data", "sheet.xlsx")


def test_pdf_pages_are_marked():
    result = DocumentExtractor().extract(_pdf_bytes(2), "scan.pdf")

    assert result.page_count == 2
    assert "[Page 1]" in result.text
    assert "[Page 2]" in result.text
    assert result.text.index("[Page 1]") < result.text.index("[Page 2]")


def test_docx_paragraphs_are_joined():
    result = DocumentExtractor().extract(_docx_bytes("First clause.", "Second clause."), "memo.docx")

    assert result.text == "First clause.\nSecond clause."
    assert result.page_count == 1


def test_text_files_decode_with_fallback():
    extractor = DocumentExtractor()

    assert extractor.extract("hello\nworld".encode("utf-8-sig"), "a.txt").text == "hello\nworld"
    assert extractor.extract(b"caf\xe9", "b.txt").text == "café"


def test_page_estimate_for_formats_without_pages():
    assert estimate_page_count("") == 1
    assert estimate_page_count("x" * 3000) == 1
    assert estimate_page_count("x" * 6001) == 3
    assert DocumentExtractor().extract(b"y" * 6001, "long.txt").page_count == 3


@pytest.mark.parametrize("file_name", ["broken.pdf", "broken.docx"])
def test_corrupt_files_raise_extraction_error(file_name):
    with pytest.raises(ExtractionError):
        DocumentExtractor().extract(b"definitely not a real document", file_name)
