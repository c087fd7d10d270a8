import logging
import os
from datetime import datetime, timedelta, timezone
from typing import Protocol
from urllib.parse import quote

import jwt

from coursework.core.config import settings

logger = logging.getLogger(__name__)


class BlobStoreError(Exception):
    """Raised by a blob store when bytes cannot be written, read or removed."""


class BlobStore(Protocol):
    """Contract of the external object store. Paths are relative to a bucket."""

    def upload(self, bucket: str, path: str, data: bytes) -> str: ...

    def get_url(self, bucket: str, path: str) -> str: ...

    def delete(self, bucket: str, path: str) -> None: ...


def safe_filename(name: str) -> str:
    bad = ["..", "/", "\\", "\0", ":", "*", "?", '"', "<", ">", "|"]
    for b in bad:
        name = name.replace(b, "_")
    return name.strip() or "file.bin"


class LocalBlobStore:
    """Filesystem-backed store used in development and tests.

    Download URLs carry a short-lived JWT so the ``/files`` route can serve
    the blob without a session.
    """

    def __init__(self, root: str | None = None, base_url: str | None = None):
        self.root = root or settings.BLOB_ROOT
        self.base_url = (base_url or settings.FILES_BASE_URL).rstrip("/")
        os.makedirs(self.root, exist_ok=True)

    def _full_path(self, bucket: str, path: str) -> str:
        full = os.path.abspath(os.path.join(self.root, bucket, path))
        if not full.startswith(os.path.abspath(self.root) + os.sep):
            raise BlobStoreError(f"Path escapes storage root: {path}")
        return full

    def upload(self, bucket: str, path: str, data: bytes) -> str:
        full = self._full_path(bucket, path)
        try:
            os.makedirs(os.path.dirname(full), exist_ok=True)
            with open(full, "wb") as buffer:
                buffer.write(data)
        except OSError as e:
            raise BlobStoreError(str(e)) from e
        logger.debug("Stored %s/%s (%d bytes)", bucket, path, len(data))
        return path

    def get_url(self, bucket: str, path: str) -> str:
        token = create_download_token(bucket, path)
        return f"{self.base_url}/{quote(bucket)}/{quote(path)}?token={token}"

    def delete(self, bucket: str, path: str) -> None:
        full = self._full_path(bucket, path)
        try:
            if os.path.exists(full):
                os.remove(full)
        except OSError as e:
            raise BlobStoreError(str(e)) from e

    def open_path(self, bucket: str, path: str) -> str:
        full = self._full_path(bucket, path)
        if not os.path.isfile(full):
            raise BlobStoreError(f"No such blob: {bucket}/{path}")
        return full


def create_download_token(bucket: str, path: str) -> str:
    expires = datetime.now(timezone.utc) + timedelta(seconds=settings.SIGNED_URL_TTL_SECONDS)
    payload = {"bucket": bucket, "path": path, "exp": expires}
    return jwt.encode(payload, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def verify_download_token(token: str, bucket: str, path: str) -> bool:
    try:
        payload = jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except jwt.PyJWTError:
        return False
    return payload.get("bucket") == bucket and payload.get("path") == path
