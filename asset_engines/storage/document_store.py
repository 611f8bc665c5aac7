"""Hierarchical document store abstractions (Firestore-shaped)."""
from __future__ import annotations

import asyncio
import copy
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol, Sequence

from asset_engines.config import runtime_config
from asset_engines.storage.errors import DocumentNotFound, StorageError

try:  # pragma: no cover - optional dependency
    from google.api_core import exceptions as google_exceptions  # type: ignore
    from google.cloud import firestore  # type: ignore
except Exception:  # pragma: no cover - optional dependency
    google_exceptions = None
    firestore = None


@dataclass(frozen=True)
class DocumentRef:
    path: str

    @property
    def id(self) -> str:
        return self.path.rsplit("/", 1)[-1]

    @property
    def collection_path(self) -> str:
        return self.path.rsplit("/", 1)[0] if "/" in self.path else ""


class DocumentStore(Protocol):
    async def query(self, collection_path: str, limit: int) -> List[DocumentRef]:
        ...

    async def batch_delete(self, refs: Sequence[DocumentRef]) -> int:
        ...

    async def update(self, document_path: str, fields: Dict[str, Any]) -> None:
        ...

    async def get(self, document_path: str) -> Optional[Dict[str, Any]]:
        ...

    async def delete(self, document_path: str) -> bool:
        ...


def get_field(data: Optional[Dict[str, Any]], dotted: str) -> Any:
    """Resolve a dotted field path (``image.bucket``) against a document dict."""
    current: Any = data
    for part in dotted.split("."):
        if not isinstance(current, dict) or part not in current:
            return None
        current = current[part]
    return current


def _set_field(data: Dict[str, Any], dotted: str, value: Any) -> None:
    parts = dotted.split(".")
    target = data
    for part in parts[:-1]:
        nxt = target.get(part)
        if not isinstance(nxt, dict):
            nxt = {}
            target[part] = nxt
        target = nxt
    target[parts[-1]] = value


class InMemoryDocumentStore:
    """Dict-backed document tree keyed by full document path."""

    def __init__(self) -> None:
        self._docs: Dict[str, Dict[str, Any]] = {}

    def set(self, document_path: str, data: Dict[str, Any]) -> None:
        self._docs[document_path] = copy.deepcopy(data)

    def paths(self, collection_path: Optional[str] = None) -> List[str]:
        if collection_path is None:
            return sorted(self._docs)
        return sorted(p for p in self._docs if DocumentRef(p).collection_path == collection_path)

    async def query(self, collection_path: str, limit: int) -> List[DocumentRef]:
        await asyncio.sleep(0)
        return [DocumentRef(p) for p in self.paths(collection_path)[:limit]]

    async def batch_delete(self, refs: Sequence[DocumentRef]) -> int:
        await asyncio.sleep(0)
        for ref in refs:
            self._docs.pop(ref.path, None)
        return len(refs)

    async def update(self, document_path: str, fields: Dict[str, Any]) -> None:
        await asyncio.sleep(0)
        doc = self._docs.get(document_path)
        if doc is None:
            raise DocumentNotFound(f"{document_path} not found")
        for dotted, value in fields.items():
            _set_field(doc, dotted, copy.deepcopy(value))

    async def get(self, document_path: str) -> Optional[Dict[str, Any]]:
        doc = self._docs.get(document_path)
        return copy.deepcopy(doc) if doc is not None else None

    async def delete(self, document_path: str) -> bool:
        return self._docs.pop(document_path, None) is not None


class FirestoreDocumentStore:
    def __init__(self, client: Optional[object] = None) -> None:  # pragma: no cover - optional dependency
        if firestore is None:
            raise RuntimeError("google-cloud-firestore not installed")
        project = runtime_config.get_firestore_project()
        if not project and client is None:
            raise RuntimeError("GCP project is required for Firestore document store")
        self._client = client or firestore.Client(project=project)  # type: ignore[arg-type]

    async def query(self, collection_path: str, limit: int) -> List[DocumentRef]:
        def _fetch() -> List[DocumentRef]:
            snaps = self._client.collection(collection_path).limit(limit).stream()
            return [DocumentRef(snap.reference.path) for snap in snaps]

        try:
            return await asyncio.to_thread(_fetch)
        except google_exceptions.GoogleAPIError as exc:
            raise StorageError(f"query of {collection_path} failed: {exc}") from exc

    async def batch_delete(self, refs: Sequence[DocumentRef]) -> int:
        if not refs:
            return 0

        def _commit() -> int:
            batch = self._client.batch()
            for ref in refs:
                batch.delete(self._client.document(ref.path))
            batch.commit()
            return len(refs)

        try:
            return await asyncio.to_thread(_commit)
        except google_exceptions.GoogleAPIError as exc:
            raise StorageError(f"batch delete of {len(refs)} documents failed: {exc}") from exc

    async def update(self, document_path: str, fields: Dict[str, Any]) -> None:
        def _update() -> None:
            self._client.document(document_path).update(fields)

        try:
            await asyncio.to_thread(_update)
        except google_exceptions.NotFound as exc:
            raise DocumentNotFound(f"{document_path} not found") from exc
        except google_exceptions.GoogleAPIError as exc:
            raise StorageError(f"update of {document_path} failed: {exc}") from exc
        except ValueError as exc:
            # odd segment counts are rejected client-side before any request
            raise StorageError(f"invalid document path {document_path}: {exc}") from exc

    async def get(self, document_path: str) -> Optional[Dict[str, Any]]:
        try:
            snap = await asyncio.to_thread(self._client.document(document_path).get)
        except google_exceptions.GoogleAPIError as exc:
            raise StorageError(f"read of {document_path} failed: {exc}") from exc
        if not snap or not snap.exists:
            return None
        return snap.to_dict() or {}

    async def delete(self, document_path: str) -> bool:
        try:
            await asyncio.to_thread(self._client.document(document_path).delete)
        except google_exceptions.GoogleAPIError as exc:
            raise StorageError(f"delete of {document_path} failed: {exc}") from exc
        return True


def document_store_from_env() -> DocumentStore:
    backend = runtime_config.get_document_backend()
    if backend == "firestore":
        return FirestoreDocumentStore()
    if backend == "memory":
        return InMemoryDocumentStore()
    raise RuntimeError(f"Unknown DOCUMENT_BACKEND {backend!r}")
