"""Object storage for capture attachments.

Blobs are addressed by URL. The filesystem-backed store hands out
``blob://<key>`` URLs and keeps an optional ``<key>.mime`` sidecar holding
the content type given at upload time.
"""

from __future__ import annotations

import asyncio
import logging
import mimetypes
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from mindstack.errors import NotFoundError, UpstreamError, ValidationError

logger = logging.getLogger(__name__)

BLOB_SCHEME = "blob://"
_DEFAULT_MIME = "application/octet-stream"


@dataclass
class StoredObject:
    data: bytes
    mime_type: str


class ObjectStore(Protocol):
    async def put(self, key: str, data: bytes, content_type: str | None = None) -> str: ...

    async def get(self, url: str) -> StoredObject: ...

    async def delete(self, url: str) -> None: ...


def infer_mime_type(name: str) -> str:
    """Guess a MIME type from a file name or key, defaulting to octet-stream."""
    guessed, _ = mimetypes.guess_type(name)
    return guessed or _DEFAULT_MIME


class LocalObjectStore:
    """Filesystem-backed ObjectStore rooted at *root*."""

    def __init__(self, root: Path | str) -> None:
        self.root = Path(root)

    def _key_from_url(self, url: str) -> str:
        if not url.startswith(BLOB_SCHEME):
            raise ValidationError(f"Unsupported object URL '{url}'")
        key = url[len(BLOB_SCHEME):]
        return self._check_key(key)

    def _check_key(self, key: str) -> str:
        parts = Path(key).parts
        if not key or Path(key).is_absolute() or ".." in parts:
            raise ValidationError(f"Invalid object key '{key}'")
        return key

    def _path(self, key: str) -> Path:
        return self.root / key

    async def put(self, key: str, data: bytes, content_type: str | None = None) -> str:
        """Store *data* under *key* and return its ``blob://`` URL."""
        key = self._check_key(key)
        path = self._path(key)
        try:
            await asyncio.to_thread(self._write, path, data, content_type)
        except OSError as exc:
            raise UpstreamError(f"Object write failed for '{key}': {exc}") from exc
        return f"{BLOB_SCHEME}{key}"

    @staticmethod
    def _write(path: Path, data: bytes, content_type: str | None) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
        if content_type:
            path.with_name(path.name + ".mime").write_text(content_type, encoding="utf-8")

    async def get(self, url: str) -> StoredObject:
        """Fetch the blob behind *url*.

        Raises:
            NotFoundError: No blob exists at *url*.
            UpstreamError: The blob exists but could not be read.
        """
        key = self._key_from_url(url)
        path = self._path(key)
        if not path.exists():
            raise NotFoundError(f"Object '{url}' not found")
        try:
            data = await asyncio.to_thread(path.read_bytes)
        except OSError as exc:
            raise UpstreamError(f"Object read failed for '{url}': {exc}") from exc
        sidecar = path.with_name(path.name + ".mime")
        mime = sidecar.read_text(encoding="utf-8").strip() if sidecar.exists() else ""
        return StoredObject(data=data, mime_type=mime or infer_mime_type(key))

    async def delete(self, url: str) -> None:
        """Delete the blob behind *url*. Missing blobs are ignored."""
        key = self._key_from_url(url)
        path = self._path(key)
        try:
            path.unlink(missing_ok=True)
            path.with_name(path.name + ".mime").unlink(missing_ok=True)
        except OSError as exc:
            raise UpstreamError(f"Object delete failed for '{url}': {exc}") from exc
        logger.debug("Deleted object %s", url)
