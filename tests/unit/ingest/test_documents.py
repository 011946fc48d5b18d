"""Tests for PDF text extraction."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

from mindstack.ingest.documents import extract_pdf_text


def _mock_reader(page_texts: list[str | None]):
    """Return a mock PdfReader with pages that yield the given texts."""
    pages = []
    for text in page_texts:
        page = MagicMock()
        page.extract_text.return_value = text
        pages.append(page)
    reader = MagicMock()
    reader.pages = pages
    return reader


def test_pages_joined_by_blank_line():
    with patch("mindstack.ingest.documents.pypdf") as mock_pypdf:
        mock_pypdf.PdfReader.return_value = _mock_reader([" Page one. ", "Page two."])
        assert extract_pdf_text(b"%PDF") == "Page one.\n\nPage two."


def test_empty_pages_skipped():
    with patch("mindstack.ingest.documents.pypdf") as mock_pypdf:
        mock_pypdf.PdfReader.return_value = _mock_reader(["", None, "  ", "Only text."])
        assert extract_pdf_text(b"%PDF") == "Only text."


def test_no_text_yields_empty_string():
    with patch("mindstack.ingest.documents.pypdf") as mock_pypdf:
        mock_pypdf.PdfReader.return_value = _mock_reader([None])
        assert extract_pdf_text(b"%PDF") == ""
