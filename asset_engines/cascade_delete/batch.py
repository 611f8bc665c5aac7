"""Bounded batch deletes and the iterative collection drain built on them."""
from __future__ import annotations

import asyncio
import logging
from typing import Optional

from asset_engines.cascade_delete.models import DrainResult
from asset_engines.storage.document_store import DocumentStore

logger = logging.getLogger(__name__)


class BatchDeleter:
    """Deletes one page of a collection query in a single atomic batch write."""

    def __init__(self, store: DocumentStore) -> None:
        self._store = store

    async def delete_page(self, collection_path: str, batch_size: int) -> int:
        refs = await self._store.query(collection_path, batch_size)
        if not refs:
            return 0
        return await self._store.batch_delete(refs)


class CollectionDrain:
    """Empties a collection page by page.

    Each page is awaited to commit before the next fetch, and control returns to
    the event loop between pages, so stack depth stays constant no matter how
    many pages the collection holds. Store errors end the drain as-is.
    """

    def __init__(self, store: DocumentStore, batch_size: int, batch_deleter: Optional[BatchDeleter] = None) -> None:
        if batch_size <= 0:
            raise ValueError("batch_size must be positive")
        self.batch_size = batch_size
        self._deleter = batch_deleter or BatchDeleter(store)

    async def drain(self, collection_path: str) -> DrainResult:
        logger.info(f"deleting collection {collection_path}")
        result = DrainResult(collection_path=collection_path)
        while True:
            deleted = await self._deleter.delete_page(collection_path, self.batch_size)
            result.fetches += 1
            if deleted == 0:
                break
            result.batches += 1
            result.deleted += deleted
            logger.debug(f"deleted batch {result.batches} ({deleted} docs) from {collection_path}")
            await asyncio.sleep(0)
        logger.info(f"all documents deleted from {collection_path} ({result.deleted} in {result.batches} batches)")
        return result
