"""Inline attachment media for multimodal generation.

IMAGE and PDF attachments are fetched from the object store and encoded as
base64 data URLs. Resolution runs concurrently; a failing attachment is
logged and omitted without affecting the others.
"""

from __future__ import annotations

import asyncio
import base64
import logging
from dataclasses import dataclass

from mindstack.db.models import Attachment, AttachmentKind
from mindstack.storage.objects import ObjectStore

logger = logging.getLogger(__name__)


@dataclass
class MediaPayload:
    data_b64: str
    mime_type: str
    file_name: str
    is_pdf: bool = False

    @property
    def data_url(self) -> str:
        return f"data:{self.mime_type};base64,{self.data_b64}"

    def to_content_block(self) -> dict:
        """OpenAI-style content block (``file`` for PDFs, ``image_url`` otherwise)."""
        if self.is_pdf:
            return {
                "type": "file",
                "file": {"file_data": self.data_url, "filename": self.file_name},
            }
        return {"type": "image_url", "image_url": {"url": self.data_url}}


async def _resolve_one(objects: ObjectStore, attachment: Attachment) -> MediaPayload | None:
    try:
        stored = await objects.get(attachment.url)
    except Exception as exc:
        logger.warning("Media fetch failed for %s: %s", attachment.url, exc)
        return None
    is_pdf = attachment.file_type is AttachmentKind.PDF
    return MediaPayload(
        data_b64=base64.b64encode(stored.data).decode("ascii"),
        mime_type="application/pdf" if is_pdf else stored.mime_type,
        file_name=attachment.file_name,
        is_pdf=is_pdf,
    )


async def resolve_media(
    objects: ObjectStore, attachments: list[Attachment], limit: int | None = None
) -> list[MediaPayload]:
    """Resolve inlineable attachments, preserving attachment order.

    With *limit*, at most that many payloads are returned and attachments
    past the cap are never fetched. Fetches run concurrently, one window
    of ``limit - resolved`` attachments at a time, so a failed fetch pulls
    in the next candidate.
    """
    pending = [a for a in attachments if a.file_type.is_inlineable]
    payloads: list[MediaPayload] = []
    while pending and (limit is None or len(payloads) < limit):
        want = len(pending) if limit is None else limit - len(payloads)
        window, pending = pending[:want], pending[want:]
        results = await asyncio.gather(*(_resolve_one(objects, a) for a in window))
        payloads.extend(payload for payload in results if payload is not None)
    return payloads
