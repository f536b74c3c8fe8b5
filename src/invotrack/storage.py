"""Blob storage for invoice images."""

from __future__ import annotations

import base64
import binascii
import logging
import re
import threading
from dataclasses import dataclass
from typing import Callable, Optional, Protocol

from supabase import Client

logger = logging.getLogger(__name__)

_DATA_URI_PATTERN = re.compile(r"^data:(?P<mime>[^;,]+);base64,(?P<data>.+)$", re.DOTALL)


@dataclass(frozen=True)
class DecodedDataUri:
    """Binary payload and MIME type of a base64 data URI."""

    content_type: str
    data: bytes


def decode_data_uri(uri: str) -> Optional[DecodedDataUri]:
    """Return the decoded payload, or None when the URI is not base64 data."""
    match = _DATA_URI_PATTERN.match(uri.strip())
    if not match:
        return None
    try:
        data = base64.b64decode(match.group("data"), validate=True)
    except (binascii.Error, ValueError):
        return None
    return DecodedDataUri(content_type=match.group("mime"), data=data)


class BlobStorage(Protocol):
    """Stores a blob under a path and returns a URL for it."""

    def upload(self, path: str, data: bytes, content_type: str) -> str:
        ...


class InMemoryBlobStorage(BlobStorage):
    """Keeps blobs in process memory; URLs use the memory:// scheme."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.blobs: dict[str, DecodedDataUri] = {}

    def upload(self, path: str, data: bytes, content_type: str) -> str:
        with self._lock:
            self.blobs[path] = DecodedDataUri(content_type=content_type, data=data)
        return f"memory://{path}"

    def reset(self) -> None:
        """Drop stored blobs (used by tests)."""
        with self._lock:
            self.blobs.clear()


class SupabaseBlobStorage(BlobStorage):
    """Uploads to a Supabase Storage bucket and returns the public URL.

    The client is resolved on first upload.
    """

    def __init__(self, get_client: Callable[[], Client], bucket: str) -> None:
        self._get_client = get_client
        self._bucket = bucket

    def upload(self, path: str, data: bytes, content_type: str) -> str:
        bucket = self._get_client().storage.from_(self._bucket)
        bucket.upload(
            path=path,
            file=data,
            file_options={"content-type": content_type, "upsert": "true"},
        )
        logger.info("Uploaded %s bytes to %s/%s", len(data), self._bucket, path)
        return bucket.get_public_url(path)
