"""Routes trigger payloads to the thumbnail pipeline or the cascade engine."""
from __future__ import annotations

import logging
import mimetypes
from typing import Optional

from asset_engines.cascade_delete.models import CascadeReport
from asset_engines.cascade_delete.service import CascadeDeletionEngine
from asset_engines.storage.document_store import get_field
from asset_engines.thumbnails.models import (
    BUCKET_FIELD,
    COMPLETION_MARKER_FIELD,
    IMAGE_URL_FIELD,
    PipelineOutcome,
    record_path_for,
)
from asset_engines.thumbnails.service import ThumbnailService
from asset_engines.triggers.models import DocumentDeletedEvent, DocumentWrittenEvent, ObjectFinalizedEvent

logger = logging.getLogger(__name__)


class TriggerDispatcher:
    def __init__(self, thumbnails: ThumbnailService, cascade: CascadeDeletionEngine) -> None:
        self.thumbnails = thumbnails
        self.cascade = cascade

    async def on_object_finalized(self, event: ObjectFinalizedEvent) -> PipelineOutcome:
        return await self.thumbnails.handle_object_finalized(event)

    async def on_document_deleted(self, event: DocumentDeletedEvent) -> CascadeReport:
        return await self.cascade.handle(event)

    async def on_document_written(self, event: DocumentWrittenEvent) -> Optional[PipelineOutcome]:
        """Re-drive the thumbnail pipeline for a record naming an unlinked primary image.

        Returns None when the write does not describe such a record.
        """
        if get_field(event.fields, COMPLETION_MARKER_FIELD):
            return None
        primary_key = get_field(event.fields, IMAGE_URL_FIELD)
        bucket = get_field(event.fields, BUCKET_FIELD)
        if not primary_key or not bucket:
            return None
        document_path = event.document_path.strip("/")
        if record_path_for(primary_key) != document_path:
            logger.warning(f"{document_path} references {primary_key} owned by another record; not re-driving")
            return None
        content_type, _ = mimetypes.guess_type(primary_key)
        logger.info(f"re-driving thumbnail for gs://{bucket}/{primary_key} from {document_path}")
        finalized = ObjectFinalizedEvent(bucket=bucket, name=primary_key, content_type=content_type)
        return await self.thumbnails.handle_object_finalized(finalized)
