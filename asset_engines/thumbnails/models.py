"""Models and naming rules for image/thumbnail pairs."""
from __future__ import annotations

import posixpath
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

IMAGE_URL_FIELD = "image.imageUrl"
IMAGE_PUBLIC_URL_FIELD = "image.imagePublicUrl"
THUMBNAIL_URL_FIELD = "image.thumbnailUrl"
THUMBNAIL_PUBLIC_URL_FIELD = "image.thumbnailPublicUrl"
BUCKET_FIELD = "image.bucket"

# presence of the derivative's access descriptor marks the asset as done
COMPLETION_MARKER_FIELD = THUMBNAIL_PUBLIC_URL_FIELD


class PipelineState(str, Enum):
    pending = "pending"
    transforming = "transforming"
    writing = "writing"
    linking = "linking"
    committed = "committed"
    not_applicable = "not_applicable"
    failed_no_rollback = "failed_no_rollback"
    failed_rollback = "failed_rollback"
    rolled_back = "rolled_back"


class RollbackPolicy(str, Enum):
    both = "both"
    derivative_only = "derivative_only"


def derivative_key_for(primary_key: str, prefix: str) -> str:
    directory, name = posixpath.split(primary_key)
    return posixpath.join(directory, f"{prefix}{name}")


def is_derivative_key(key: str, prefix: str) -> bool:
    return posixpath.basename(key).startswith(prefix)


def record_path_for(primary_key: str) -> str:
    """The metadata record owning an object is the document at the object's directory."""
    return posixpath.dirname(primary_key)


class ResizeResult(BaseModel):
    width: int
    height: int
    format: str
    bytes_written: int


class DerivativeResult(BaseModel):
    bucket: str
    primary_key: str
    derivative_key: str
    primary_url: str
    derivative_url: str
    width: Optional[int] = None
    height: Optional[int] = None

    def linked_fields(self) -> Dict[str, str]:
        return {
            IMAGE_URL_FIELD: self.primary_key,
            IMAGE_PUBLIC_URL_FIELD: self.primary_url,
            THUMBNAIL_URL_FIELD: self.derivative_key,
            THUMBNAIL_PUBLIC_URL_FIELD: self.derivative_url,
            BUCKET_FIELD: self.bucket,
        }


class PipelineOutcome(BaseModel):
    state: PipelineState
    bucket: str
    object_name: str
    record_path: Optional[str] = None
    derivative_key: Optional[str] = None
    link_attempts: int = 0
    reason: Optional[str] = None
    history: List[PipelineState] = Field(default_factory=list)
