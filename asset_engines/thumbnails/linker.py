"""Bounded retry of the metadata update that links a derivative to its record."""
from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional

from asset_engines.storage.document_store import DocumentStore
from asset_engines.storage.errors import DocumentNotFound
from asset_engines.thumbnails.errors import PermanentLinkFailure, TransientLinkFailure
from asset_engines.thumbnails.models import DerivativeResult

logger = logging.getLogger(__name__)

Sleep = Callable[[float], Awaitable[None]]
AttemptHook = Callable[[int], None]


class MetadataLinker:
    """Writes linked fields onto a record that may not be visible yet.

    The triggering object write and the record write land in different
    services, so the first attempts can see "not found". Any other failure is
    counted as one attempt and retried until ``max_attempts`` is used up.
    """

    def __init__(
        self,
        documents: DocumentStore,
        max_attempts: int = 5,
        backoff_seconds: float = 1.0,
        backoff_factor: float = 2.0,
        sleep: Optional[Sleep] = None,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self._documents = documents
        self.max_attempts = max_attempts
        self.backoff_seconds = backoff_seconds
        self.backoff_factor = backoff_factor
        self._sleep = sleep or asyncio.sleep

    def delay_for(self, attempt: int) -> float:
        return self.backoff_seconds * (self.backoff_factor ** (attempt - 1))

    async def link(
        self,
        document_path: str,
        result: DerivativeResult,
        on_attempt: Optional[AttemptHook] = None,
    ) -> int:
        """Apply the linked fields; returns the attempt number that succeeded."""
        fields = result.linked_fields()
        last_error: Optional[TransientLinkFailure] = None
        for attempt in range(1, self.max_attempts + 1):
            if on_attempt:
                on_attempt(attempt)
            logger.info(f"attempt update firestore {attempt} for {document_path}")
            try:
                await self._documents.update(document_path, fields)
                return attempt
            except DocumentNotFound as exc:
                last_error = TransientLinkFailure(document_path, attempt, exc)
                logger.info(f"{document_path} not visible yet (attempt {attempt})")
            except Exception as exc:
                last_error = TransientLinkFailure(document_path, attempt, exc)
                logger.warning(f"update of {document_path} failed on attempt {attempt}: {exc}")
            if attempt < self.max_attempts:
                await self._sleep(self.delay_for(attempt))
        raise PermanentLinkFailure(document_path, self.max_attempts, last_error.cause if last_error else None)
