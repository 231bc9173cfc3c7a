"""Listing image storage in a public Supabase storage bucket."""

from __future__ import annotations

import mimetypes
import os
import secrets
import time
from typing import Any, Optional
from urllib.parse import unquote, urlparse

from ..utils.errors import BlobStoreError, ValidationError
from ..utils.logging import get_logger

LOGGER = get_logger("services.blobs")

STORAGE_BUCKET = os.getenv("STORAGE_BUCKET", "property-images")
MAX_UPLOAD_BYTES = int(os.getenv("MAX_UPLOAD_BYTES", str(10 * 1024 * 1024)))
IMAGE_TYPES = {"image/jpeg", "image/png", "image/webp", "image/gif"}


def object_key(url: str) -> Optional[str]:
    """Last path segment of a public object URL, or None if there is none."""

    if not url:
        return None
    key = unquote(urlparse(url).path.rstrip("/").rsplit("/", 1)[-1])
    return key or None


def new_object_key(filename: str, content_type: str) -> str:
    ext = os.path.splitext(filename or "")[1].lower() or mimetypes.guess_extension(content_type) or ""
    return f"{int(time.time() * 1000)}-{secrets.token_hex(6)}{ext}"


class SupabaseBlobStore:
    def __init__(self, client: Any, bucket: str = STORAGE_BUCKET):
        self.client = client
        self.bucket = bucket

    def _bucket(self):
        return self.client.storage.from_(self.bucket)

    def upload(self, content: bytes, filename: str, content_type: str) -> str:
        """Store an image and return its public URL."""

        if content_type not in IMAGE_TYPES:
            raise ValidationError(f"Unsupported image type '{content_type}'")
        if not content:
            raise ValidationError("Uploaded file is empty")
        if len(content) > MAX_UPLOAD_BYTES:
            raise ValidationError(f"Image exceeds {MAX_UPLOAD_BYTES} bytes")

        key = new_object_key(filename, content_type)
        try:
            self._bucket().upload(key, content, {"content-type": content_type})
            url = self._bucket().get_public_url(key)
        except Exception as exc:
            LOGGER.error("upload_failed bucket=%s key=%s error=%s", self.bucket, key, exc)
            raise BlobStoreError("Image upload failed") from exc
        LOGGER.info("upload_ok bucket=%s key=%s bytes=%d", self.bucket, key, len(content))
        return url

    def delete_by_url(self, url: str) -> bool:
        key = object_key(url)
        if key is None:
            return False
        try:
            removed = self._bucket().remove([key])
        except Exception as exc:
            LOGGER.error("delete_failed bucket=%s key=%s error=%s", self.bucket, key, exc)
            raise BlobStoreError("Image delete failed") from exc
        LOGGER.info("delete bucket=%s key=%s removed=%d", self.bucket, key, len(removed or []))
        return bool(removed)
