"""Compiled-in deletion plans and path-template helpers."""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple

from asset_engines.cascade_delete.models import DeletionPlan, EntryKind, PlanEntry, ResolvedEntry
from asset_engines.storage.document_store import get_field

logger = logging.getLogger(__name__)

BUCKET_FIELD = "image.bucket"

DELETION_PLANS: List[DeletionPlan] = [
    DeletionPlan(
        root_type="motorcycle",
        pattern="users/{uid}/motorcycles/{motorcycleId}",
        entries=[
            PlanEntry(kind=EntryKind.blob_prefix, target="users/{uid}/motorcycles/{motorcycleId}/"),
            PlanEntry(kind=EntryKind.collection, target="users/{uid}/work_orders/{motorcycleId}/forms"),
        ],
    ),
    DeletionPlan(
        root_type="work_order",
        pattern="users/{uid}/work_orders/{motorcycleId}/forms/{woId}",
        entries=[
            PlanEntry(kind=EntryKind.document, target="users/{uid}/work_orders$metadata/{woId}"),
            PlanEntry(
                kind=EntryKind.collection,
                target="users/{uid}/work_orders/{motorcycleId}/file_repos/{woId}/images",
            ),
            PlanEntry(
                kind=EntryKind.collection,
                target="users/{uid}/work_orders/{motorcycleId}/cost_sheets/{woId}/costs",
            ),
        ],
    ),
    DeletionPlan(
        root_type="work_order_image",
        pattern="users/{uid}/work_orders/{woId}/file_repos/{woFormId}/images/{imageId}",
        requires_field="image",
        entries=[
            PlanEntry(kind=EntryKind.blob_field, target="image.imageUrl"),
            PlanEntry(kind=EntryKind.blob_field, target="image.thumbnailUrl"),
        ],
    ),
]


def match_path(pattern: str, path: str) -> Optional[Dict[str, str]]:
    """Match ``users/{uid}/motorcycles/{id}`` against a concrete path, returning captures."""
    pattern_parts = pattern.strip("/").split("/")
    path_parts = path.strip("/").split("/")
    if len(pattern_parts) != len(path_parts):
        return None
    params: Dict[str, str] = {}
    for expected, actual in zip(pattern_parts, path_parts):
        if expected.startswith("{") and expected.endswith("}"):
            if not actual:
                return None
            params[expected[1:-1]] = actual
        elif expected != actual:
            return None
    return params


def bind(template: str, params: Dict[str, str]) -> str:
    return template.format(**params)


def find_plan(path: str, plans: Sequence[DeletionPlan]) -> Optional[Tuple[DeletionPlan, Dict[str, str]]]:
    for plan in plans:
        params = match_path(plan.pattern, path)
        if params is not None:
            return plan, params
    return None


def resolve_entries(
    plan: DeletionPlan,
    params: Dict[str, str],
    prior_fields: Optional[Dict[str, Any]],
    default_bucket: Optional[str] = None,
) -> List[ResolvedEntry]:
    """Bind a plan's templates for one deleted record."""
    bucket = get_field(prior_fields, BUCKET_FIELD) or default_bucket
    resolved: List[ResolvedEntry] = []
    for entry in plan.entries:
        if entry.kind in (EntryKind.collection, EntryKind.document):
            resolved.append(ResolvedEntry(kind=entry.kind, path=bind(entry.target, params)))
            continue
        if not bucket:
            logger.warning(f"no bucket for {entry.kind.value} entry {entry.target} of {plan.root_type}; skipping")
            continue
        if entry.kind == EntryKind.blob_prefix:
            resolved.append(ResolvedEntry(kind=entry.kind, path=bind(entry.target, params), bucket=bucket))
        else:
            key = get_field(prior_fields, entry.target)
            if not key:
                logger.info(f"{plan.root_type} record has no {entry.target}; skipping")
                continue
            resolved.append(ResolvedEntry(kind=entry.kind, path=str(key), bucket=bucket))
    return resolved
