"""Typed settings view over the env-driven runtime config."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta

from asset_engines.config import runtime_config


@dataclass
class Settings:
    project_id: str | None
    default_bucket: str | None
    blob_backend: str
    document_backend: str
    thumb_max_width: int
    thumb_max_height: int
    thumb_prefix: str
    thumb_read_chunk_bytes: int
    cascade_batch_size: int
    link_max_attempts: int
    link_backoff_seconds: float
    link_backoff_factor: float
    signed_url_ttl: timedelta
    rollback_policy: str


def get_settings() -> Settings:
    cfg = runtime_config.config_snapshot()
    return Settings(
        project_id=cfg["gcp_project"],
        default_bucket=cfg["default_bucket"],
        blob_backend=cfg["blob_backend"],
        document_backend=cfg["document_backend"],
        thumb_max_width=cfg["thumb_max_width"],
        thumb_max_height=cfg["thumb_max_height"],
        thumb_prefix=cfg["thumb_prefix"],
        thumb_read_chunk_bytes=cfg["thumb_read_chunk_bytes"],
        cascade_batch_size=cfg["cascade_batch_size"],
        link_max_attempts=cfg["link_max_attempts"],
        link_backoff_seconds=cfg["link_backoff_seconds"],
        link_backoff_factor=cfg["link_backoff_factor"],
        signed_url_ttl=timedelta(seconds=cfg["signed_url_ttl_seconds"]),
        rollback_policy=cfg["rollback_policy"],
    )
