"""Best-effort cleanup of blobs left behind by a run that could not link."""
from __future__ import annotations

import asyncio
import logging
from typing import Dict, List

from asset_engines.storage.blob_store import BlobStore
from asset_engines.thumbnails.models import RollbackPolicy

logger = logging.getLogger(__name__)


class RollbackCompensator:
    def __init__(self, blobs: BlobStore, policy: RollbackPolicy = RollbackPolicy.both) -> None:
        self._blobs = blobs
        self.policy = policy

    def keys_to_delete(self, primary_key: str, derivative_key: str) -> List[str]:
        if self.policy == RollbackPolicy.derivative_only:
            return [derivative_key]
        return [primary_key, derivative_key]

    async def compensate(self, bucket: str, primary_key: str, derivative_key: str) -> Dict[str, bool]:
        """Delete the policy's keys; returns key -> deleted. Failures are logged only."""
        keys = self.keys_to_delete(primary_key, derivative_key)
        logger.warning(f"deleting uploaded images {keys} in {bucket}")
        outcomes = await asyncio.gather(*(self._blobs.delete(bucket, k) for k in keys), return_exceptions=True)
        report: Dict[str, bool] = {}
        for key, outcome in zip(keys, outcomes):
            if isinstance(outcome, Exception):
                logger.error(f"rollback delete of gs://{bucket}/{key} failed: {outcome}")
                report[key] = False
            elif isinstance(outcome, BaseException):
                raise outcome
            else:
                report[key] = True
        return report
