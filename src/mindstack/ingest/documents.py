"""Document text extraction via pypdf."""

from __future__ import annotations

import io

import pypdf


def extract_pdf_text(data: bytes) -> str:
    """Extract all page text from PDF *data*.

    Pages that yield no text (scanned images, etc.) are skipped. Page texts
    are joined by a blank line so the chunker sees page breaks as paragraph
    boundaries.
    """
    reader = pypdf.PdfReader(io.BytesIO(data))
    parts: list[str] = []
    for page in reader.pages:
        page_text = page.extract_text() or ""
        stripped = page_text.strip()
        if stripped:
            parts.append(stripped)
    return "\n\n".join(parts)
