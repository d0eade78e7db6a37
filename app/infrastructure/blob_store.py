"""Object storage clients for product images.

Provides a Supabase Storage client over HTTP and a local-disk store
for development. Both expose the same small interface: upload bytes
under a key, list keys under a prefix, delete keys.
"""

import asyncio
from collections.abc import Sequence
from pathlib import Path
from typing import Any, Protocol

import httpx
import structlog

from app.infrastructure.config import settings

logger = structlog.get_logger()


class BlobStoreError(Exception):
    """Error from the object store."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class BlobStore(Protocol):
    """Interface every image store implements."""

    async def upload(self, key: str, data: bytes, content_type: str) -> str:
        """Store bytes under ``key`` and return the public URL."""
        ...

    async def list_keys(self, prefix: str) -> list[str]:
        """List full keys directly under ``prefix``."""
        ...

    async def delete(self, keys: Sequence[str]) -> None:
        """Delete the given keys. Missing keys are ignored."""
        ...

    async def close(self) -> None:
        """Release any held connections."""
        ...


# ============================================================================
# Supabase Storage
# ============================================================================


class SupabaseBlobStore:
    """HTTP client for Supabase Storage.

    Talks to the storage REST API with the service role key, so the
    bucket policies do not apply.
    """

    def __init__(
        self,
        url: str,
        service_key: str,
        bucket: str,
        timeout: float = 30.0,
    ) -> None:
        """Initialize the client.

        Args:
            url: Supabase project URL.
            service_key: Service role key.
            bucket: Storage bucket holding product images.
            timeout: Request timeout in seconds.

        Raises:
            BlobStoreError: If the URL or key is missing.
        """
        if not url or not service_key:
            raise BlobStoreError(
                "Missing Supabase configuration. Please check SUPABASE_URL "
                "and SUPABASE_SERVICE_ROLE_KEY environment variables."
            )
        self.url = url.rstrip("/")
        self.service_key = service_key
        self.bucket = bucket
        self.timeout = timeout
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=f"{self.url}/storage/v1",
                timeout=self.timeout,
                headers={
                    "Authorization": f"Bearer {self.service_key}",
                    "apikey": self.service_key,
                },
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    def public_url(self, key: str) -> str:
        """Public URL of an object in the bucket."""
        return f"{self.url}/storage/v1/object/public/{self.bucket}/{key}"

    async def upload(self, key: str, data: bytes, content_type: str) -> str:
        """Upload an object.

        Args:
            key: Object key inside the bucket.
            data: Object bytes.
            content_type: MIME type stored with the object.

        Returns:
            Public URL of the object.

        Raises:
            BlobStoreError: On API or transport error.
        """
        response = await self._request(
            "POST",
            f"/object/{self.bucket}/{key}",
            content=data,
            headers={
                "Content-Type": content_type,
                "Cache-Control": "max-age=3600",
                "x-upsert": "false",
            },
        )
        if response.status_code not in (200, 201):
            raise BlobStoreError(
                f"Failed to upload image: {response.text}", response.status_code
            )

        logger.info("Uploaded object", bucket=self.bucket, key=key, size=len(data))
        return self.public_url(key)

    async def list_keys(self, prefix: str) -> list[str]:
        """List objects under a folder prefix.

        Args:
            prefix: Folder path without trailing slash.

        Returns:
            Full object keys.

        Raises:
            BlobStoreError: On API or transport error.
        """
        prefix = prefix.strip("/")
        response = await self._request(
            "POST",
            f"/object/list/{self.bucket}",
            json={
                "prefix": prefix,
                "limit": 1000,
                "offset": 0,
                "sortBy": {"column": "name", "order": "asc"},
            },
        )
        if response.status_code != 200:
            raise BlobStoreError(
                f"Failed to list images: {response.text}", response.status_code
            )

        try:
            entries = response.json()
        except ValueError as e:
            raise BlobStoreError(
                f"Unexpected list response: {response.text[:200]}", response.status_code
            ) from e

        if not isinstance(entries, list):
            raise BlobStoreError(
                f"Unexpected list response: {response.text[:200]}", response.status_code
            )

        return [
            f"{prefix}/{entry['name']}"
            for entry in entries
            if isinstance(entry, dict) and entry.get("name")
        ]

    async def delete(self, keys: Sequence[str]) -> None:
        """Delete objects.

        Args:
            keys: Object keys to remove.

        Raises:
            BlobStoreError: On API or transport error.
        """
        if not keys:
            return

        response = await self._request(
            "DELETE",
            f"/object/{self.bucket}",
            json={"prefixes": list(keys)},
        )
        if response.status_code != 200:
            raise BlobStoreError(
                f"Failed to delete images: {response.text}", response.status_code
            )

        logger.info("Deleted objects", bucket=self.bucket, count=len(keys))

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        """Send a request, wrapping transport errors."""
        try:
            client = await self._get_client()
            return await client.request(method, path, **kwargs)
        except httpx.RequestError as e:
            logger.error(
                "Storage API request failed",
                method=method,
                path=path,
                error=str(e),
            )
            raise BlobStoreError(f"Request failed: {str(e)}") from e


# ============================================================================
# Local disk
# ============================================================================


class LocalBlobStore:
    """Store objects as files under a directory.

    Files are served by the application at ``/uploads``, so the public
    URL is built from ``public_base_url``.
    """

    def __init__(self, root: str | Path, public_base_url: str) -> None:
        """Initialize the store.

        Args:
            root: Directory that holds the objects.
            public_base_url: Base URL the application is reachable at.
        """
        self.root = Path(root)
        self.public_base_url = public_base_url.rstrip("/")

    def public_url(self, key: str) -> str:
        """Public URL of a stored file."""
        return f"{self.public_base_url}/uploads/{key}"

    def _path(self, key: str) -> Path:
        path = (self.root / key).resolve()
        if not path.is_relative_to(self.root.resolve()):
            raise BlobStoreError(f"Invalid object key: {key}")
        return path

    async def upload(self, key: str, data: bytes, content_type: str) -> str:
        """Write bytes to ``root/key`` and return the public URL."""
        path = self._path(key)

        def write() -> None:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)

        try:
            await asyncio.to_thread(write)
        except OSError as e:
            raise BlobStoreError(f"Failed to store image: {e}") from e

        logger.info("Stored file", key=key, size=len(data), content_type=content_type)
        return self.public_url(key)

    async def list_keys(self, prefix: str) -> list[str]:
        """List files directly under the ``prefix`` directory."""
        prefix = prefix.strip("/")
        folder = self._path(prefix)

        def scan() -> list[str]:
            if not folder.is_dir():
                return []
            return sorted(f"{prefix}/{p.name}" for p in folder.iterdir() if p.is_file())

        return await asyncio.to_thread(scan)

    async def delete(self, keys: Sequence[str]) -> None:
        """Remove files. Missing files are ignored."""
        paths = [self._path(key) for key in keys]

        def remove() -> None:
            for path in paths:
                path.unlink(missing_ok=True)

        try:
            await asyncio.to_thread(remove)
        except OSError as e:
            raise BlobStoreError(f"Failed to delete images: {e}") from e

    async def close(self) -> None:
        """Nothing to release."""


# Global store instance
_blob_store: BlobStore | None = None


def create_blob_store() -> BlobStore:
    """Create the store selected by ``settings.blob_store_backend``."""
    if settings.blob_store_backend == "supabase":
        return SupabaseBlobStore(
            url=settings.supabase_url,
            service_key=settings.supabase_service_role_key,
            bucket=settings.supabase_bucket,
        )
    return LocalBlobStore(settings.upload_dir, settings.public_base_url)


def get_blob_store() -> BlobStore:
    """Get the blob store singleton.

    Returns:
        Configured BlobStore.
    """
    global _blob_store
    if _blob_store is None:
        _blob_store = create_blob_store()
        logger.info("Blob store ready", backend=settings.blob_store_backend)
    return _blob_store


async def close_blob_store() -> None:
    """Close and forget the blob store singleton."""
    global _blob_store
    if _blob_store is not None:
        await _blob_store.close()
        _blob_store = None
