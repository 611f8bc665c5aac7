"""Thumbnail pipeline: resize on object finalize, link onto the owning record."""
from __future__ import annotations

import logging
from typing import List, Optional

from asset_engines.config.settings import Settings, get_settings
from asset_engines.logging.event_log import EventLogger, emit_lifecycle_event
from asset_engines.storage.blob_store import BlobStore, blob_store_from_env
from asset_engines.storage.document_store import DocumentStore, document_store_from_env, get_field
from asset_engines.storage.errors import StorageError
from asset_engines.thumbnails.errors import DerivativeError
from asset_engines.thumbnails.linker import MetadataLinker, Sleep
from asset_engines.thumbnails.models import (
    COMPLETION_MARKER_FIELD,
    PipelineOutcome,
    PipelineState,
    RollbackPolicy,
    derivative_key_for,
    record_path_for,
)
from asset_engines.thumbnails.rollback import RollbackCompensator
from asset_engines.thumbnails.transformer import StreamTransformer
from asset_engines.thumbnails.writer import DerivativeWriter
from asset_engines.triggers.models import ObjectFinalizedEvent

logger = logging.getLogger(__name__)


class DerivativePipeline:
    """One run of transform -> write -> link (-> rollback) for a single finalize event."""

    def __init__(
        self,
        event: ObjectFinalizedEvent,
        documents: DocumentStore,
        transformer: StreamTransformer,
        writer: DerivativeWriter,
        linker: MetadataLinker,
        compensator: RollbackCompensator,
        event_logger: Optional[EventLogger] = None,
    ) -> None:
        self.event = event
        self._documents = documents
        self._transformer = transformer
        self._writer = writer
        self._linker = linker
        self._compensator = compensator
        self._event_logger = event_logger
        self.state = PipelineState.pending
        self.history: List[PipelineState] = [PipelineState.pending]
        self.link_attempts = 0
        self.record_path: Optional[str] = None
        self.derivative_key: Optional[str] = None

    def _transition(self, state: PipelineState) -> None:
        self.state = state
        self.history.append(state)

    def _on_link_attempt(self, attempt: int) -> None:
        self.link_attempts = attempt
        self._transition(PipelineState.linking)

    def _outcome(self, reason: Optional[str] = None) -> PipelineOutcome:
        return PipelineOutcome(
            state=self.state,
            bucket=self.event.bucket,
            object_name=self.event.name,
            record_path=self.record_path,
            derivative_key=self.derivative_key,
            link_attempts=self.link_attempts,
            reason=reason,
            history=list(self.history),
        )

    def _not_applicable(self, reason: str) -> PipelineOutcome:
        logger.info(f"skipping gs://{self.event.bucket}/{self.event.name}: {reason}")
        self._transition(PipelineState.not_applicable)
        return self._outcome(reason)

    async def run(self) -> PipelineOutcome:
        event = self.event
        reason = self._transformer.applicability(event.name, event.content_type)
        if reason:
            return self._not_applicable(reason)

        self.record_path = record_path_for(event.name)
        if not self.record_path:
            return self._not_applicable("object has no owning record")

        try:
            existing = await self._documents.get(self.record_path)
        except StorageError as exc:
            self._fail(exc)
            raise
        if get_field(existing, COMPLETION_MARKER_FIELD):
            return self._not_applicable("thumbnail already linked")

        self.derivative_key = derivative_key_for(event.name, self._transformer.derivative_prefix)
        self._transition(PipelineState.transforming)
        try:
            result = await self._writer.write(
                event.bucket,
                event.name,
                self.derivative_key,
                event.content_type,
                on_state=self._transition,
            )
            await self._linker.link(self.record_path, result, on_attempt=self._on_link_attempt)
        except DerivativeError as exc:
            if exc.requires_rollback:
                await self._roll_back(exc)
            else:
                self._fail(exc)
            raise

        self._transition(PipelineState.committed)
        logger.info(f"thumbnail URLs saved to {self.record_path}")
        emit_lifecycle_event(
            "thumbnail_committed",
            self.record_path,
            bucket=event.bucket,
            metadata={
                "primary_key": event.name,
                "derivative_key": self.derivative_key,
                "link_attempts": self.link_attempts,
                "size": [result.width, result.height],
            },
            event_logger=self._event_logger,
        )
        return self._outcome()

    def _fail(self, exc: Exception) -> None:
        self._transition(PipelineState.failed_no_rollback)
        logger.error(f"thumbnail for gs://{self.event.bucket}/{self.event.name} failed: {exc}")
        emit_lifecycle_event(
            "thumbnail_failed",
            self.record_path or self.event.name,
            bucket=self.event.bucket,
            status="failed",
            error=str(exc),
            metadata={"primary_key": self.event.name, "kind": type(exc).__name__},
            event_logger=self._event_logger,
        )

    async def _roll_back(self, exc: DerivativeError) -> None:
        self._transition(PipelineState.failed_rollback)
        logger.error(f"ERROR, deleting uploaded images for gs://{self.event.bucket}/{self.event.name}: {exc}")
        report = await self._compensator.compensate(self.event.bucket, self.event.name, self.derivative_key)
        self._transition(PipelineState.rolled_back)
        emit_lifecycle_event(
            "thumbnail_rolled_back",
            self.record_path or self.event.name,
            bucket=self.event.bucket,
            status="failed",
            error=str(exc),
            metadata={
                "primary_key": self.event.name,
                "derivative_key": self.derivative_key,
                "kind": type(exc).__name__,
                "link_attempts": self.link_attempts,
                "deleted": report,
            },
            event_logger=self._event_logger,
        )


class ThumbnailService:
    def __init__(
        self,
        blobs: Optional[BlobStore] = None,
        documents: Optional[DocumentStore] = None,
        settings: Optional[Settings] = None,
        event_logger: Optional[EventLogger] = None,
        sleep: Optional[Sleep] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._blobs = blobs or blob_store_from_env()
        self._documents = documents or document_store_from_env()
        self._event_logger = event_logger
        self.transformer = StreamTransformer(
            self._settings.thumb_max_width,
            self._settings.thumb_max_height,
            self._settings.thumb_prefix,
        )
        self.writer = DerivativeWriter(
            self._blobs,
            self.transformer,
            self._settings.signed_url_ttl,
            self._settings.thumb_read_chunk_bytes,
        )
        self.linker = MetadataLinker(
            self._documents,
            max_attempts=self._settings.link_max_attempts,
            backoff_seconds=self._settings.link_backoff_seconds,
            backoff_factor=self._settings.link_backoff_factor,
            sleep=sleep,
        )
        self.compensator = RollbackCompensator(self._blobs, RollbackPolicy(self._settings.rollback_policy))

    def build_pipeline(self, event: ObjectFinalizedEvent) -> DerivativePipeline:
        return DerivativePipeline(
            event,
            self._documents,
            self.transformer,
            self.writer,
            self.linker,
            self.compensator,
            event_logger=self._event_logger,
        )

    async def handle_object_finalized(self, event: ObjectFinalizedEvent) -> PipelineOutcome:
        return await self.build_pipeline(event).run()
