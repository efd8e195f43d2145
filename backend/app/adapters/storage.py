"""Object storage adapters for uploaded document bytes."""

import asyncio
import logging
from collections.abc import Sequence
from pathlib import Path
from typing import Protocol

import httpx

from backend.app.errors import StorageError

logger = logging.getLogger(__name__)


class ObjectStorage(Protocol):
    """Protocol for object storage implementations."""

    async def upload(self, path: str, data: bytes, content_type: str) -> None:
        """Store ``data`` at ``path``. Existing objects are not overwritten."""
        ...

    async def download(self, path: str) -> bytes:
        """Fetch the object at ``path``.

        Raises:
            StorageError: If the object is missing or the transfer fails
        """
        ...

    async def remove(self, paths: Sequence[str]) -> None:
        """Delete objects; missing paths are ignored."""
        ...


class HTTPObjectStorage:
    """Storage REST API client (``/object/{bucket}/{path}`` layout)."""

    def __init__(
        self,
        base_url: str,
        bucket: str,
        api_key: str | None = None,
        client: httpx.AsyncClient | None = None,
        timeout: float = 30.0,
    ) -> None:
        """Initialize storage client.

        Args:
            base_url: Storage API root, e.g. https://<project>/storage/v1
            bucket: Bucket holding document objects
            api_key: Service key sent as bearer token
            client: Optional httpx client (for testing with mocks)
            timeout: Per-request timeout in seconds
        """
        headers = {"Authorization": f"Bearer {api_key}"} if api_key else {}
        self._bucket = bucket
        self._client = client or httpx.AsyncClient(
            base_url=base_url.rstrip("/"), headers=headers, timeout=timeout
        )

    def _object_url(self, path: str) -> str:
        return f"/object/{self._bucket}/{path.lstrip('/')}"

    async def upload(self, path: str, data: bytes, content_type: str) -> None:
        """Upload object bytes."""
        try:
            response = await self._client.post(
                self._object_url(path),
                content=data,
                headers={"Content-Type": content_type, "x-upsert": "false"},
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise StorageError(f"Upload failed for {path}: {e}") from e

    async def download(self, path: str) -> bytes:
        """Download object bytes."""
        try:
            response = await self._client.get(self._object_url(path))
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise StorageError(f"Download failed for {path}: {e}") from e
        return response.content

    async def remove(self, paths: Sequence[str]) -> None:
        """Delete objects in one request."""
        if not paths:
            return
        try:
            response = await self._client.request(
                "DELETE",
                f"/object/{self._bucket}",
                json={"prefixes": list(paths)},
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise StorageError(f"Remove failed for {len(paths)} object(s): {e}") from e

    async def aclose(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()


class LocalObjectStorage:
    """Filesystem-backed storage for local development."""

    def __init__(self, root: str | Path) -> None:
        self._root = Path(root).resolve()

    def _resolve(self, path: str) -> Path:
        target = (self._root / path.lstrip("/")).resolve()
        if not target.is_relative_to(self._root):
            raise StorageError(f"Path escapes storage root: {path}")
        return target

    async def upload(self, path: str, data: bytes, content_type: str) -> None:
        """Write object bytes to disk."""
        target = self._resolve(path)
        if target.exists():
            raise StorageError(f"Object already exists: {path}")

        def _write() -> None:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)

        try:
            await asyncio.to_thread(_write)
        except OSError as e:
            raise StorageError(f"Upload failed for {path}: {e}") from e

    async def download(self, path: str) -> bytes:
        """Read object bytes from disk."""
        target = self._resolve(path)
        try:
            return await asyncio.to_thread(target.read_bytes)
        except OSError as e:
            raise StorageError(f"Download failed for {path}: {e}") from e

    async def remove(self, paths: Sequence[str]) -> None:
        """Delete objects from disk."""
        for path in paths:
            target = self._resolve(path)
            try:
                await asyncio.to_thread(target.unlink, missing_ok=True)
            except OSError as e:
                raise StorageError(f"Remove failed for {path}: {e}") from e


class InMemoryObjectStorage:
    """In-memory storage for tests."""

    def __init__(self) -> None:
        self.objects: dict[str, bytes] = {}

    async def upload(self, path: str, data: bytes, content_type: str) -> None:
        """Store object bytes."""
        if path in self.objects:
            raise StorageError(f"Object already exists: {path}")
        self.objects[path] = data

    async def download(self, path: str) -> bytes:
        """Return object bytes."""
        try:
            return self.objects[path]
        except KeyError as e:
            raise StorageError(f"Object not found: {path}") from e

    async def remove(self, paths: Sequence[str]) -> None:
        """Delete objects."""
        for path in paths:
            self.objects.pop(path, None)
