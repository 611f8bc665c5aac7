"""Bulk removal of every blob under a key prefix."""
from __future__ import annotations

import logging

from asset_engines.storage.blob_store import BlobStore

logger = logging.getLogger(__name__)


class BlobPrefixDeleter:
    def __init__(self, store: BlobStore) -> None:
        self._store = store

    async def delete_prefix(self, bucket: str, prefix: str) -> int:
        if not prefix.strip("/"):
            raise ValueError("refusing to delete by an empty prefix")
        logger.info(f"deleting folder gs://{bucket}/{prefix}")
        removed = await self._store.delete_by_prefix(bucket, prefix)
        logger.info(f"deleted {removed} objects under gs://{bucket}/{prefix}")
        return removed
