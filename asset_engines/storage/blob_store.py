"""Blob store abstractions: protocol, in-memory store and GCS-backed store."""
from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, AsyncIterator, Dict, List, Optional, Protocol, Tuple

from asset_engines.config import runtime_config
from asset_engines.storage.errors import BlobNotFound, StorageError

try:  # pragma: no cover - optional dependency
    from google.api_core import exceptions as google_exceptions  # type: ignore
    from google.cloud import storage  # type: ignore
except Exception:  # pragma: no cover - optional dependency
    google_exceptions = None
    storage = None

DEFAULT_CHUNK_BYTES = 256 * 1024


class BlobWriter(Protocol):
    """Write side of a blob stream. ``close`` is the durable-completion signal."""

    async def write(self, chunk: bytes) -> None:
        ...

    async def close(self) -> None:
        ...

    async def abort(self) -> None:
        ...


class BlobStore(Protocol):
    def open_read_stream(self, bucket: str, key: str, chunk_size: int = DEFAULT_CHUNK_BYTES) -> AsyncIterator[bytes]:
        ...

    async def open_write_stream(self, bucket: str, key: str, content_type: Optional[str]) -> BlobWriter:
        ...

    async def delete(self, bucket: str, key: str) -> None:
        ...

    async def delete_by_prefix(self, bucket: str, prefix: str) -> int:
        ...

    async def get_access_descriptor(self, bucket: str, key: str, expiry: timedelta) -> str:
        ...


@dataclass
class StoredBlob:
    data: bytes
    content_type: Optional[str] = None


class InMemoryBlobWriter:
    def __init__(self, store: "InMemoryBlobStore", bucket: str, key: str, content_type: Optional[str]) -> None:
        self._store = store
        self._bucket = bucket
        self._key = key
        self._content_type = content_type
        self._buffer = bytearray()
        self.closed = False
        self.aborted = False

    async def write(self, chunk: bytes) -> None:
        if self.closed or self.aborted:
            raise StorageError(f"write stream for {self._bucket}/{self._key} is no longer open")
        self._buffer.extend(chunk)

    async def close(self) -> None:
        if self.aborted:
            raise StorageError(f"write stream for {self._bucket}/{self._key} was aborted")
        if self.closed:
            return
        await asyncio.sleep(0)
        self._store.put(self._bucket, self._key, bytes(self._buffer), self._content_type)
        self.closed = True

    async def abort(self) -> None:
        self._buffer.clear()
        self.aborted = True


class InMemoryBlobStore:
    """Dict-backed blob store keyed by (bucket, key)."""

    def __init__(self) -> None:
        self._objects: Dict[Tuple[str, str], StoredBlob] = {}

    def put(self, bucket: str, key: str, data: bytes, content_type: Optional[str] = None) -> None:
        self._objects[(bucket, key)] = StoredBlob(data=data, content_type=content_type)

    def get(self, bucket: str, key: str) -> Optional[StoredBlob]:
        return self._objects.get((bucket, key))

    def keys(self, bucket: str) -> List[str]:
        return sorted(k for b, k in self._objects if b == bucket)

    async def open_read_stream(
        self, bucket: str, key: str, chunk_size: int = DEFAULT_CHUNK_BYTES
    ) -> AsyncIterator[bytes]:
        blob = self._objects.get((bucket, key))
        if blob is None:
            raise BlobNotFound(f"{bucket}/{key} not found")
        for offset in range(0, len(blob.data), chunk_size):
            await asyncio.sleep(0)
            yield blob.data[offset : offset + chunk_size]

    async def open_write_stream(self, bucket: str, key: str, content_type: Optional[str]) -> InMemoryBlobWriter:
        return InMemoryBlobWriter(self, bucket, key, content_type)

    async def delete(self, bucket: str, key: str) -> None:
        if self._objects.pop((bucket, key), None) is None:
            raise BlobNotFound(f"{bucket}/{key} not found")

    async def delete_by_prefix(self, bucket: str, prefix: str) -> int:
        matched = [k for k in self._objects if k[0] == bucket and k[1].startswith(prefix)]
        for k in matched:
            del self._objects[k]
        return len(matched)

    async def get_access_descriptor(self, bucket: str, key: str, expiry: timedelta) -> str:
        if (bucket, key) not in self._objects:
            raise BlobNotFound(f"{bucket}/{key} not found")
        return f"memory://{bucket}/{key}?expires_in={int(expiry.total_seconds())}"


class GcsBlobWriter:
    """Wraps a google-cloud-storage ``BlobWriter``; the upload is finalized on close."""

    def __init__(self, handle: Any, bucket: str, key: str) -> None:
        self._handle = handle
        self._bucket = bucket
        self._key = key

    async def write(self, chunk: bytes) -> None:
        if self._handle is None:
            raise StorageError(f"write stream for {self._bucket}/{self._key} is no longer open")
        try:
            await asyncio.to_thread(self._handle.write, chunk)
        except google_exceptions.GoogleAPIError as exc:
            raise StorageError(f"write to gs://{self._bucket}/{self._key} failed: {exc}") from exc

    async def close(self) -> None:
        if self._handle is None:
            raise StorageError(f"write stream for {self._bucket}/{self._key} is no longer open")
        handle, self._handle = self._handle, None
        try:
            await asyncio.to_thread(handle.close)
        except google_exceptions.GoogleAPIError as exc:
            raise StorageError(f"finalize of gs://{self._bucket}/{self._key} failed: {exc}") from exc

    async def abort(self) -> None:
        # Dropping the handle without close() leaves the resumable session unfinalized.
        self._handle = None


class GcsBlobStore:
    def __init__(self, client: Any = None) -> None:
        self._client = client or self._default_client()

    def _default_client(self) -> Any:
        if storage is None:
            raise RuntimeError("google-cloud-storage is not installed")
        project = runtime_config.get_firestore_project()
        return storage.Client(project=project)  # type: ignore[arg-type]

    def _blob(self, bucket: str, key: str):
        if not bucket:
            raise RuntimeError("Bucket not configured")
        return self._client.bucket(bucket).blob(key)

    async def open_read_stream(
        self, bucket: str, key: str, chunk_size: int = DEFAULT_CHUNK_BYTES
    ) -> AsyncIterator[bytes]:
        blob = self._blob(bucket, key)
        try:
            reader = await asyncio.to_thread(blob.open, "rb")
        except google_exceptions.NotFound as exc:
            raise BlobNotFound(f"gs://{bucket}/{key} not found") from exc
        try:
            while True:
                chunk = await asyncio.to_thread(reader.read, chunk_size)
                if not chunk:
                    break
                yield chunk
        except google_exceptions.NotFound as exc:
            raise BlobNotFound(f"gs://{bucket}/{key} not found") from exc
        except google_exceptions.GoogleAPIError as exc:
            raise StorageError(f"read of gs://{bucket}/{key} failed: {exc}") from exc
        finally:
            reader.close()

    async def open_write_stream(self, bucket: str, key: str, content_type: Optional[str]) -> GcsBlobWriter:
        blob = self._blob(bucket, key)
        kwargs = {"content_type": content_type} if content_type else {}
        handle = await asyncio.to_thread(blob.open, "wb", **kwargs)
        return GcsBlobWriter(handle, bucket, key)

    async def delete(self, bucket: str, key: str) -> None:
        blob = self._blob(bucket, key)
        try:
            await asyncio.to_thread(blob.delete)
        except google_exceptions.NotFound as exc:
            raise BlobNotFound(f"gs://{bucket}/{key} not found") from exc
        except google_exceptions.GoogleAPIError as exc:
            raise StorageError(f"delete of gs://{bucket}/{key} failed: {exc}") from exc

    async def delete_by_prefix(self, bucket: str, prefix: str) -> int:
        def _delete() -> int:
            blobs = list(self._client.list_blobs(bucket, prefix=prefix))
            if blobs:
                # objects removed concurrently by someone else are not an error
                self._client.bucket(bucket).delete_blobs(blobs, on_error=lambda blob: None)
            return len(blobs)

        try:
            return await asyncio.to_thread(_delete)
        except google_exceptions.GoogleAPIError as exc:
            raise StorageError(f"bulk delete of gs://{bucket}/{prefix}* failed: {exc}") from exc

    async def get_access_descriptor(self, bucket: str, key: str, expiry: timedelta) -> str:
        blob = self._blob(bucket, key)
        try:
            return await asyncio.to_thread(blob.generate_signed_url, version="v4", expiration=expiry, method="GET")
        except google_exceptions.GoogleAPIError as exc:
            raise StorageError(f"signing gs://{bucket}/{key} failed: {exc}") from exc


def blob_store_from_env() -> BlobStore:
    backend = runtime_config.get_blob_backend()
    if backend == "gcs":
        return GcsBlobStore()
    if backend == "memory":
        return InMemoryBlobStore()
    raise RuntimeError(f"Unknown BLOB_BACKEND {backend!r}")
