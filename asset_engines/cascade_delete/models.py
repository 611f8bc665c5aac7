"""Models for cascade deletion plans and their results."""
from __future__ import annotations

from enum import Enum
from typing import List, Literal, Optional

from pydantic import BaseModel, Field


class EntryKind(str, Enum):
    collection = "collection"
    blob_prefix = "blob_prefix"
    document = "document"
    blob_field = "blob_field"


class PlanEntry(BaseModel):
    """One sub-deletion of a plan.

    ``target`` is a path template (``users/{uid}/work_orders``) for collection,
    blob_prefix and document entries, and a dotted field path of the deleted
    record (``image.imageUrl``) for blob_field entries.
    """

    kind: EntryKind
    target: str


class DeletionPlan(BaseModel):
    root_type: str
    pattern: str
    entries: List[PlanEntry] = Field(default_factory=list)
    # deleted records lacking this field have nothing to cascade
    requires_field: Optional[str] = None


class ResolvedEntry(BaseModel):
    kind: EntryKind
    path: str
    bucket: Optional[str] = None

    @property
    def label(self) -> str:
        if self.bucket:
            return f"{self.kind.value}:{self.bucket}/{self.path}"
        return f"{self.kind.value}:{self.path}"


class DrainResult(BaseModel):
    collection_path: str
    batches: int = 0
    fetches: int = 0
    deleted: int = 0


class EntryResult(BaseModel):
    entry: ResolvedEntry
    deleted: int = 0
    batches: int = 0


class CascadeReport(BaseModel):
    root_path: str
    root_type: Optional[str] = None
    status: Literal["completed", "not_applicable"] = "completed"
    reason: Optional[str] = None
    results: List[EntryResult] = Field(default_factory=list)

    @property
    def deleted(self) -> int:
        return sum(r.deleted for r in self.results)
