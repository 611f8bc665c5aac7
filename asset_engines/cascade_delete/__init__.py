"""Cascade deletion of record subtrees and their blobs."""

from asset_engines.cascade_delete.batch import BatchDeleter, CollectionDrain
from asset_engines.cascade_delete.blobs import BlobPrefixDeleter
from asset_engines.cascade_delete.models import (
    CascadeReport,
    DeletionPlan,
    DrainResult,
    EntryKind,
    EntryResult,
    PlanEntry,
    ResolvedEntry,
)
from asset_engines.cascade_delete.plans import DELETION_PLANS
from asset_engines.cascade_delete.service import CascadeDeletionEngine, CascadeError, CascadeSubtaskFailure

__all__ = [
    "BatchDeleter",
    "CollectionDrain",
    "BlobPrefixDeleter",
    "CascadeDeletionEngine",
    "CascadeError",
    "CascadeSubtaskFailure",
    "CascadeReport",
    "DeletionPlan",
    "DrainResult",
    "EntryKind",
    "EntryResult",
    "PlanEntry",
    "ResolvedEntry",
    "DELETION_PLANS",
]
