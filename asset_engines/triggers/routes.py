"""FastAPI ingress for trigger payloads delivered by the event-dispatch layer."""
from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException

from asset_engines.cascade_delete.service import CascadeDeletionEngine, CascadeSubtaskFailure
from asset_engines.storage.blob_store import blob_store_from_env
from asset_engines.storage.document_store import document_store_from_env
from asset_engines.storage.errors import StorageError
from asset_engines.thumbnails.errors import DerivativeError
from asset_engines.thumbnails.service import ThumbnailService
from asset_engines.triggers.dispatch import TriggerDispatcher
from asset_engines.triggers.models import DocumentDeletedEvent, DocumentWrittenEvent, ObjectFinalizedEvent

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/triggers", tags=["triggers"])

_dispatcher: Optional[TriggerDispatcher] = None


def get_dispatcher() -> TriggerDispatcher:
    global _dispatcher
    if _dispatcher is None:
        blobs = blob_store_from_env()
        documents = document_store_from_env()
        _dispatcher = TriggerDispatcher(
            ThumbnailService(blobs=blobs, documents=documents),
            CascadeDeletionEngine(documents, blobs),
        )
    return _dispatcher


def set_dispatcher(dispatcher: Optional[TriggerDispatcher]) -> None:
    global _dispatcher
    _dispatcher = dispatcher


@router.post("/object-finalized")
async def object_finalized(event: ObjectFinalizedEvent, dispatcher: TriggerDispatcher = Depends(get_dispatcher)):
    try:
        outcome = await dispatcher.on_object_finalized(event)
    except (DerivativeError, StorageError) as exc:
        raise HTTPException(status_code=500, detail=str(exc))
    return outcome.model_dump(mode="json")


@router.post("/document-deleted")
async def document_deleted(event: DocumentDeletedEvent, dispatcher: TriggerDispatcher = Depends(get_dispatcher)):
    try:
        report = await dispatcher.on_document_deleted(event)
    except CascadeSubtaskFailure as exc:
        raise HTTPException(
            status_code=500,
            detail={"message": str(exc), "root_path": exc.root_path, "failed": [e.label for e in exc.failed_entries]},
        )
    except StorageError as exc:
        raise HTTPException(status_code=500, detail=str(exc))
    return report.model_dump(mode="json")


@router.post("/document-written")
async def document_written(event: DocumentWrittenEvent, dispatcher: TriggerDispatcher = Depends(get_dispatcher)):
    try:
        outcome = await dispatcher.on_document_written(event)
    except (DerivativeError, StorageError) as exc:
        raise HTTPException(status_code=500, detail=str(exc))
    if outcome is None:
        return {"state": "ignored"}
    return outcome.model_dump(mode="json")
