"""Object storage collaborator — uploaded PDFs and their access URLs.

Provides an abstract interface with an in-memory implementation (tests,
single-instance development) and a Supabase Storage REST implementation.
"""

from __future__ import annotations

import logging
import secrets
import time
from abc import ABC, abstractmethod
from urllib.parse import quote

from errors.exceptions import StoreError
from services.rest_client import RestClient, get_rest_client

logger = logging.getLogger(__name__)


# ── Abstract Interface ───────────────────────────────────────


class ObjectStorage(ABC):
    """Abstract bucket storage."""

    @abstractmethod
    async def upload(self, path: str, data: bytes, content_type: str = "application/pdf") -> None:
        """Store *data* under *path*.  Fails if the path already exists."""
        ...

    @abstractmethod
    async def remove(self, paths: list[str]) -> None:
        """Delete the given objects (missing paths are ignored)."""
        ...

    @abstractmethod
    def get_public_url(self, path: str) -> str:
        """Permanent public URL for *path*."""
        ...

    @abstractmethod
    async def create_signed_url(self, path: str, ttl_seconds: int) -> str:
        """Short-lived URL granting read access to *path*."""
        ...

    @abstractmethod
    async def download_signed(self, signed_url: str) -> bytes:
        """Fetch the bytes behind a URL from :meth:`create_signed_url`."""
        ...


# ── In-Memory Implementation ────────────────────────────────


class InMemoryObjectStorage(ObjectStorage):
    """Dict-backed bucket with expiring signed URLs."""

    _SCHEME = "memory://"

    def __init__(self, bucket: str = "resource-files") -> None:
        self._bucket = bucket
        self._objects: dict[str, tuple[bytes, str]] = {}
        self._grants: dict[str, tuple[str, float]] = {}

    async def upload(self, path: str, data: bytes, content_type: str = "application/pdf") -> None:
        if path in self._objects:
            raise StoreError(409, "The resource already exists", path)
        self._objects[path] = (data, content_type)
        logger.debug("Stored %s (%d bytes)", path, len(data))

    async def remove(self, paths: list[str]) -> None:
        for path in paths:
            self._objects.pop(path, None)

    def get_public_url(self, path: str) -> str:
        return f"{self._SCHEME}{self._bucket}/public/{path}"

    async def create_signed_url(self, path: str, ttl_seconds: int) -> str:
        if path not in self._objects:
            raise StoreError(404, "Object not found", path)
        token = secrets.token_urlsafe(12)
        self._grants[token] = (path, time.monotonic() + ttl_seconds)
        return f"{self._SCHEME}{self._bucket}/sign/{path}?token={token}"

    async def download_signed(self, signed_url: str) -> bytes:
        _, _, token = signed_url.partition("?token=")
        grant = self._grants.get(token)
        if grant is None:
            raise StoreError(400, "Invalid signature", signed_url)
        path, expires_at = grant
        if time.monotonic() > expires_at:
            raise StoreError(400, "Signature expired", signed_url)
        if path not in self._objects:
            raise StoreError(404, "Object not found", signed_url)
        return self._objects[path][0]

    def __contains__(self, path: str) -> bool:
        return path in self._objects


# ── Supabase Storage Implementation ──────────────────────────


class RestObjectStorage(ObjectStorage):
    """Supabase Storage API over the shared :class:`RestClient`."""

    def __init__(self, client: RestClient, bucket: str) -> None:
        self._client = client
        self._bucket = bucket

    def _object_path(self, path: str) -> str:
        return quote(path, safe="/")

    async def upload(self, path: str, data: bytes, content_type: str = "application/pdf") -> None:
        await self._client.request(
            "POST",
            f"/storage/v1/object/{self._bucket}/{self._object_path(path)}",
            content=data,
            headers={"Content-Type": content_type, "x-upsert": "false"},
        )
        logger.info("Uploaded %s to bucket %s (%d bytes)", path, self._bucket, len(data))

    async def remove(self, paths: list[str]) -> None:
        if not paths:
            return
        await self._client.request(
            "DELETE",
            f"/storage/v1/object/{self._bucket}",
            json_body={"prefixes": paths},
        )

    def get_public_url(self, path: str) -> str:
        return f"{self._client.base_url}/storage/v1/object/public/{self._bucket}/{self._object_path(path)}"

    async def create_signed_url(self, path: str, ttl_seconds: int) -> str:
        response = await self._client.request(
            "POST",
            f"/storage/v1/object/sign/{self._bucket}/{self._object_path(path)}",
            json_body={"expiresIn": ttl_seconds},
        )
        signed = (response.json() or {}).get("signedURL")
        if not signed:
            raise StoreError(response.status_code, "Unable to generate signed URL", path)
        return f"{self._client.base_url}/storage/v1{signed}"

    async def download_signed(self, signed_url: str) -> bytes:
        return await self._client.get_absolute(signed_url)


# ── Module-level Singleton ───────────────────────────────────

_storage: ObjectStorage | None = None


def get_object_storage() -> ObjectStorage:
    """Get the singleton object storage instance."""
    global _storage
    if _storage is None:
        from config.settings import get_settings

        settings = get_settings()
        if settings.store_backend == "rest" and settings.store_base_url:
            _storage = RestObjectStorage(get_rest_client(), settings.storage_bucket)
            logger.info("Initialized RestObjectStorage (bucket=%s)", settings.storage_bucket)
        else:
            _storage = InMemoryObjectStorage(settings.storage_bucket)
            logger.info("Initialized InMemoryObjectStorage (bucket=%s)", settings.storage_bucket)
    return _storage
