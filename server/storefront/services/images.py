# Image store: Cloud Storage bucket fronted by a small in-memory LRU.
# Storage SDK is synchronous; every call is wrapped in the default executor
# so the event loop never blocks on GCS I/O.

from __future__ import annotations

import asyncio
import io
import threading
from typing import Any

import structlog
from cachetools import LRUCache  # type: ignore[import-untyped]
from PIL import Image, UnidentifiedImageError

from storefront.exceptions import ImageError, StorageUnavailableError

logger = structlog.get_logger(__name__)

_CONTENT_TYPE = "image/jpeg"


def object_name(key: str) -> str:
    return f"{key}.jpeg"


def validate_jpeg(data: bytes, max_bytes: int) -> None:
    """Reject empty, oversize, or non-JPEG uploads."""
    if not data:
        raise ImageError("IMAGE_FILE_ERROR")
    if len(data) > max_bytes:
        raise ImageError(f"IMAGE_MUST_BE_LESS_THAN_{max_bytes // 1_000_000}_MEGABYTES")
    try:
        with Image.open(io.BytesIO(data)) as img:
            fmt = img.format
    except (UnidentifiedImageError, OSError):
        fmt = None
    if fmt != "JPEG":
        raise ImageError("FILE_TYPE_NOT_ALLOWED")


class ImageStore:
    """JPEG uploads keyed by name, stored as `<key>.jpeg` in a GCS bucket."""

    def __init__(
        self, bucket_name: str = "", max_bytes: int = 3_000_000, memory_capacity: int = 64
    ) -> None:
        self._bucket_name = bucket_name
        self._max_bytes = max_bytes
        self._memory: LRUCache[str, bytes] = LRUCache(maxsize=memory_capacity)
        self._lock = threading.Lock()
        self._client: Any = None
        self._bucket: Any = None

    async def connect(self) -> None:
        """Initialize Cloud Storage client. Async wrapper around sync SDK."""
        if self._bucket_name:
            loop = asyncio.get_running_loop()
            await loop.run_in_executor(None, self._connect_sync)
        else:
            logger.info("image_storage_disabled", reason="no IMAGE_BUCKET set")

    def _connect_sync(self) -> None:
        try:
            from google.cloud import storage

            self._client = storage.Client()
            self._bucket = self._client.bucket(self._bucket_name)
            logger.info("image_storage_connected", bucket=f"gs://{self._bucket_name}")
        except Exception as e:
            logger.warning("image_storage_unavailable", error=str(e))

    async def disconnect(self) -> None:
        if self._client:
            self._client.close()

    @property
    def is_connected(self) -> bool:
        """Whether uploads can be served (no bucket configured also counts)."""
        return self._bucket is not None or not self._bucket_name

    def public_url(self, key: str) -> str:
        return f"https://storage.googleapis.com/{self._bucket_name}/{object_name(key)}"

    def _require_bucket(self) -> Any:
        if self._bucket is None:
            raise StorageUnavailableError()
        return self._bucket

    # ── Upload ───────────────────────────────────────────────────────────

    async def upload(self, key: str, data: bytes) -> str:
        """Validate and store a JPEG. Returns the object name."""
        if not data:
            raise ImageError("IMAGE_FILE_ERROR")
        if not key:
            raise ImageError("INVALID_FORM_VALUE")
        validate_jpeg(data, self._max_bytes)
        bucket = self._require_bucket()

        loop = asyncio.get_running_loop()
        await loop.run_in_executor(None, self._upload_sync, bucket, key, data)
        with self._lock:
            self._memory[key] = data
        logger.info("image_uploaded", key=key, size_bytes=len(data))
        return object_name(key)

    @staticmethod
    def _upload_sync(bucket: Any, key: str, data: bytes) -> None:
        blob = bucket.blob(object_name(key))
        blob.upload_from_string(data, content_type=_CONTENT_TYPE)

    # ── Download ─────────────────────────────────────────────────────────

    async def download(self, key: str) -> bytes:
        with self._lock:
            if key in self._memory:
                return self._memory[key]  # type: ignore[no-any-return]
        bucket = self._require_bucket()

        loop = asyncio.get_running_loop()
        data = await loop.run_in_executor(None, self._download_sync, bucket, key)
        if data is None:
            raise ImageError("IMAGE_NOT_FOUND", status_code=404)
        with self._lock:
            self._memory[key] = data
        return data

    @staticmethod
    def _download_sync(bucket: Any, key: str) -> bytes | None:
        blob = bucket.blob(object_name(key))
        if not blob.exists():
            return None
        return blob.download_as_bytes()  # type: ignore[no-any-return]

    # ── Delete ───────────────────────────────────────────────────────────

    async def delete(self, key: str) -> None:
        bucket = self._require_bucket()
        loop = asyncio.get_running_loop()
        existed = await loop.run_in_executor(None, self._delete_sync, bucket, key)
        with self._lock:
            self._memory.pop(key, None)
        if not existed:
            raise ImageError("IMAGE_NOT_FOUND", status_code=404)
        logger.info("image_deleted", key=key)

    @staticmethod
    def _delete_sync(bucket: Any, key: str) -> bool:
        blob = bucket.blob(object_name(key))
        if not blob.exists():
            return False
        blob.delete()
        return True
