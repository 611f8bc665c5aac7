"""Lifecycle event log shared by the thumbnail and cascade engines."""
from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional
from uuid import uuid4

from pydantic import BaseModel, Field

from asset_engines.config import runtime_config

logger = logging.getLogger("asset_engines.events")


class LifecycleEvent(BaseModel):
    event_id: str = Field(default_factory=lambda: uuid4().hex)
    event_type: str
    subject_path: str
    bucket: Optional[str] = None
    status: str = "ok"
    error: Optional[str] = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    metadata: Dict[str, Any] = Field(default_factory=dict)


EventLogger = Callable[[LifecycleEvent], None]


def default_event_logger(event: LifecycleEvent) -> None:
    """Write the event as one JSON line; failures are logged at WARNING or above."""
    payload = event.model_dump(mode="json")
    payload["env"] = runtime_config.get_env() or "dev"
    level = logging.INFO if event.status == "ok" else logging.WARNING
    if event.status == "failed":
        level = logging.ERROR
    logger.log(level, json.dumps(payload, sort_keys=True, default=str))


_event_logger: EventLogger = default_event_logger


def set_event_logger(event_logger: Optional[EventLogger]) -> None:
    global _event_logger
    _event_logger = event_logger or default_event_logger


def emit_lifecycle_event(
    event_type: str,
    subject_path: str,
    bucket: Optional[str] = None,
    status: str = "ok",
    error: Optional[str] = None,
    metadata: Optional[Dict[str, Any]] = None,
    event_logger: Optional[EventLogger] = None,
) -> LifecycleEvent:
    event = LifecycleEvent(
        event_type=event_type,
        subject_path=subject_path,
        bucket=bucket,
        status=status,
        error=error,
        metadata=metadata or {},
    )
    (event_logger or _event_logger)(event)
    return event
