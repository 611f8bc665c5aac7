"""Cascade deletion of a root record's owned documents and blobs."""
from __future__ import annotations

import asyncio
import logging
from typing import List, Optional, Sequence, Tuple

from asset_engines.cascade_delete.batch import CollectionDrain
from asset_engines.cascade_delete.blobs import BlobPrefixDeleter
from asset_engines.cascade_delete.models import (
    CascadeReport,
    DeletionPlan,
    EntryKind,
    EntryResult,
    ResolvedEntry,
)
from asset_engines.cascade_delete.plans import DELETION_PLANS, find_plan, resolve_entries
from asset_engines.config.settings import Settings, get_settings
from asset_engines.logging.event_log import EventLogger, emit_lifecycle_event
from asset_engines.storage.blob_store import BlobStore
from asset_engines.storage.document_store import DocumentStore, get_field
from asset_engines.storage.errors import BlobNotFound
from asset_engines.triggers.models import DocumentDeletedEvent

logger = logging.getLogger(__name__)


class CascadeError(Exception):
    """Base cascade deletion error."""


class CascadeSubtaskFailure(CascadeError):
    """One or more plan entries failed; the others ran to completion and stay committed."""

    def __init__(
        self,
        root_path: str,
        failures: List[Tuple[ResolvedEntry, BaseException]],
        completed: List[EntryResult],
    ) -> None:
        self.root_path = root_path
        self.failures = failures
        self.completed = completed
        first_entry, first_exc = failures[0]
        super().__init__(
            f"cascade for {root_path} failed on {len(failures)} of "
            f"{len(failures) + len(completed)} entries; first: {first_entry.label}: {first_exc}"
        )

    @property
    def failed_entries(self) -> List[ResolvedEntry]:
        return [entry for entry, _ in self.failures]


class CascadeDeletionEngine:
    def __init__(
        self,
        documents: DocumentStore,
        blobs: BlobStore,
        plans: Optional[Sequence[DeletionPlan]] = None,
        settings: Optional[Settings] = None,
        event_logger: Optional[EventLogger] = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._documents = documents
        self._blobs = blobs
        self._plans = list(plans) if plans is not None else DELETION_PLANS
        self._drain = CollectionDrain(documents, self._settings.cascade_batch_size)
        self._prefix_deleter = BlobPrefixDeleter(blobs)
        self._event_logger = event_logger

    async def handle(self, event: DocumentDeletedEvent) -> CascadeReport:
        path = event.document_path.strip("/")
        match = find_plan(path, self._plans)
        if match is None:
            logger.info(f"no deletion plan for {path}")
            return CascadeReport(root_path=path, status="not_applicable", reason="no deletion plan")
        plan, params = match
        if plan.requires_field and not get_field(event.prior_fields, plan.requires_field):
            logger.info(f"{plan.root_type} {path} has no {plan.requires_field} payload")
            return CascadeReport(
                root_path=path,
                root_type=plan.root_type,
                status="not_applicable",
                reason=f"no {plan.requires_field} payload",
            )
        logger.info(f"deleting {plan.root_type} {path}")
        entries = resolve_entries(plan, params, event.prior_fields, self._settings.default_bucket)
        results = await self.execute(path, entries, root_type=plan.root_type)
        return CascadeReport(root_path=path, root_type=plan.root_type, results=results)

    async def execute(
        self, root_path: str, entries: Sequence[ResolvedEntry], root_type: Optional[str] = None
    ) -> List[EntryResult]:
        """Run all entries concurrently; siblings of a failed entry still finish."""
        outcomes = await asyncio.gather(*(self._run_entry(e) for e in entries), return_exceptions=True)
        completed: List[EntryResult] = []
        failures: List[Tuple[ResolvedEntry, BaseException]] = []
        for entry, outcome in zip(entries, outcomes):
            if isinstance(outcome, EntryResult):
                completed.append(outcome)
            elif isinstance(outcome, Exception):
                logger.error(f"cascade entry {entry.label} failed for root {root_path}: {outcome}")
                failures.append((entry, outcome))
            else:
                raise outcome
        if failures:
            emit_lifecycle_event(
                "cascade_partial",
                root_path,
                status="failed",
                error=str(failures[0][1]),
                metadata={
                    "root_type": root_type,
                    "failed": [e.label for e, _ in failures],
                    "completed": [r.entry.label for r in completed],
                },
                event_logger=self._event_logger,
            )
            raise CascadeSubtaskFailure(root_path, failures, completed) from failures[0][1]
        emit_lifecycle_event(
            "cascade_completed",
            root_path,
            metadata={
                "root_type": root_type,
                "entries": [r.entry.label for r in completed],
                "deleted": sum(r.deleted for r in completed),
            },
            event_logger=self._event_logger,
        )
        return completed

    async def _run_entry(self, entry: ResolvedEntry) -> EntryResult:
        if entry.kind == EntryKind.collection:
            drained = await self._drain.drain(entry.path)
            return EntryResult(entry=entry, deleted=drained.deleted, batches=drained.batches)
        if entry.kind == EntryKind.blob_prefix:
            removed = await self._prefix_deleter.delete_prefix(entry.bucket, entry.path)
            return EntryResult(entry=entry, deleted=removed)
        if entry.kind == EntryKind.document:
            logger.info(f"deleting document {entry.path}")
            existed = await self._documents.delete(entry.path)
            return EntryResult(entry=entry, deleted=1 if existed else 0)
        logger.info(f"deleting image gs://{entry.bucket}/{entry.path}")
        try:
            await self._blobs.delete(entry.bucket, entry.path)
        except BlobNotFound:
            logger.info(f"gs://{entry.bucket}/{entry.path} already gone")
            return EntryResult(entry=entry, deleted=0)
        return EntryResult(entry=entry, deleted=1)
