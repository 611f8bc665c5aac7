"""Trigger payloads delivered by the event-dispatch layer."""
from __future__ import annotations

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class ObjectFinalizedEvent(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    bucket: str
    name: str = Field(..., alias="objectName")
    content_type: Optional[str] = Field(default=None, alias="contentType")


class DocumentDeletedEvent(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    document_path: str = Field(..., alias="documentPath")
    prior_fields: Dict[str, Any] = Field(default_factory=dict, alias="priorFieldValues")


class DocumentWrittenEvent(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    document_path: str = Field(..., alias="documentPath")
    fields: Dict[str, Any] = Field(default_factory=dict, alias="fieldValues")
