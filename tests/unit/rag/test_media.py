"""Tests for inline attachment media resolution."""

from __future__ import annotations

import asyncio
import base64

from mindstack.db.models import Attachment, AttachmentKind
from mindstack.rag.media import MediaPayload, resolve_media


def _put(objects, key, data, mime):
    return asyncio.run(objects.put(key, data, mime))


def test_images_and_pdfs_resolved_in_order(objects):
    img = _put(objects, "a.png", b"png-bytes", "image/png")
    pdf = _put(objects, "b.pdf", b"pdf-bytes", "application/octet-stream")
    doc = _put(objects, "c.docx", b"doc", "application/msword")
    attachments = [
        Attachment(img, AttachmentKind.IMAGE, "a.png"),
        Attachment(doc, AttachmentKind.DOC, "c.docx"),
        Attachment(pdf, AttachmentKind.PDF, "b.pdf"),
    ]

    payloads = asyncio.run(resolve_media(objects, attachments))

    assert [p.file_name for p in payloads] == ["a.png", "b.pdf"]
    assert payloads[0].mime_type == "image/png"
    assert payloads[1].mime_type == "application/pdf"
    assert payloads[1].is_pdf
    assert base64.b64decode(payloads[0].data_b64) == b"png-bytes"


def test_failing_attachment_omitted(objects, caplog):
    good = _put(objects, "ok.png", b"ok", "image/png")
    broken = _put(objects, "broken.png", b"x", "image/png")
    objects.broken.add(broken)
    attachments = [
        Attachment("blob://missing.png", AttachmentKind.IMAGE, "missing.png"),
        Attachment(broken, AttachmentKind.IMAGE, "broken.png"),
        Attachment(good, AttachmentKind.IMAGE, "ok.png"),
    ]
    payloads = asyncio.run(resolve_media(objects, attachments))
    assert [p.file_name for p in payloads] == ["ok.png"]
    assert "missing.png" in caplog.text


def test_no_inlineable_attachments(objects):
    attachments = [Attachment("blob://t.json", AttachmentKind.RAW_TRANSCRIPT_JSON, "t.json")]
    assert asyncio.run(resolve_media(objects, attachments)) == []


def test_content_blocks():
    image = MediaPayload("QUJD", "image/png", "a.png")
    pdf = MediaPayload("QUJD", "application/pdf", "b.pdf", is_pdf=True)
    assert image.to_content_block() == {
        "type": "image_url",
        "image_url": {"url": "data:image/png;base64,QUJD"},
    }
    assert pdf.to_content_block() == {
        "type": "file",
        "file": {"file_data": "data:application/pdf;base64,QUJD", "filename": "b.pdf"},
    }


def test_limit_stops_fetching_past_the_cap(objects):
    urls = [_put(objects, f"img{i}.png", b"i", "image/png") for i in range(4)]
    attachments = [Attachment(u, AttachmentKind.IMAGE, f"img{i}.png") for i, u in enumerate(urls)]

    payloads = asyncio.run(resolve_media(objects, attachments, limit=2))

    assert [p.file_name for p in payloads] == ["img0.png", "img1.png"]
    assert objects.fetched == urls[:2]


def test_limit_backfills_after_failed_fetch(objects):
    urls = [_put(objects, f"img{i}.png", b"i", "image/png") for i in range(4)]
    objects.broken.add(urls[0])
    attachments = [Attachment(u, AttachmentKind.IMAGE, f"img{i}.png") for i, u in enumerate(urls)]

    payloads = asyncio.run(resolve_media(objects, attachments, limit=2))

    assert [p.file_name for p in payloads] == ["img1.png", "img2.png"]
    assert urls[3] not in objects.fetched
