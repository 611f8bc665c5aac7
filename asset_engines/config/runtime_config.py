"""Runtime configuration helpers for asset lifecycle engines."""
from __future__ import annotations

import os
from typing import Optional

ROLLBACK_BOTH = "both"
ROLLBACK_DERIVATIVE_ONLY = "derivative_only"


def _get_env(name: str, default: Optional[str] = None) -> Optional[str]:
    return os.getenv(name, default)


def _get_int(name: str, default: int) -> int:
    raw = _get_env(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise RuntimeError(f"{name} must be an integer, got {raw!r}") from exc


def _get_float(name: str, default: float) -> float:
    raw = _get_env(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise RuntimeError(f"{name} must be a number, got {raw!r}") from exc


def get_env() -> Optional[str]:
    return _get_env("ENV") or _get_env("APP_ENV")


def get_firestore_project() -> Optional[str]:
    return _get_env("GCP_PROJECT_ID") or _get_env("GCP_PROJECT")


def get_default_bucket() -> Optional[str]:
    return _get_env("DEFAULT_BUCKET")


def get_blob_backend() -> str:
    return (_get_env("BLOB_BACKEND") or "memory").lower()


def get_document_backend() -> str:
    return (_get_env("DOCUMENT_BACKEND") or "memory").lower()


def get_thumb_max_width() -> int:
    return _get_int("THUMB_MAX_WIDTH", 250)


def get_thumb_max_height() -> int:
    return _get_int("THUMB_MAX_HEIGHT", 250)


def get_thumb_prefix() -> str:
    return _get_env("THUMB_PREFIX") or "thumb_"


def get_thumb_read_chunk_bytes() -> int:
    return _get_int("THUMB_READ_CHUNK_BYTES", 256 * 1024)


def get_cascade_batch_size() -> int:
    return _get_int("CASCADE_BATCH_SIZE", 20)


def get_link_max_attempts() -> int:
    return _get_int("LINK_MAX_ATTEMPTS", 5)


def get_link_backoff_seconds() -> float:
    return _get_float("LINK_BACKOFF_SECONDS", 1.0)


def get_link_backoff_factor() -> float:
    return _get_float("LINK_BACKOFF_FACTOR", 2.0)


def get_signed_url_ttl_seconds() -> int:
    return _get_int("SIGNED_URL_TTL_SECONDS", 7 * 24 * 3600)


def get_rollback_policy() -> str:
    policy = (_get_env("ROLLBACK_POLICY") or ROLLBACK_BOTH).lower()
    if policy not in {ROLLBACK_BOTH, ROLLBACK_DERIVATIVE_ONLY}:
        raise RuntimeError(f"ROLLBACK_POLICY must be one of both/derivative_only, got {policy!r}")
    return policy


def config_snapshot() -> dict:
    """Return a snapshot of relevant env-driven config."""
    return {
        "env": get_env(),
        "gcp_project": get_firestore_project(),
        "default_bucket": get_default_bucket(),
        "blob_backend": get_blob_backend(),
        "document_backend": get_document_backend(),
        "thumb_max_width": get_thumb_max_width(),
        "thumb_max_height": get_thumb_max_height(),
        "thumb_prefix": get_thumb_prefix(),
        "thumb_read_chunk_bytes": get_thumb_read_chunk_bytes(),
        "cascade_batch_size": get_cascade_batch_size(),
        "link_max_attempts": get_link_max_attempts(),
        "link_backoff_seconds": get_link_backoff_seconds(),
        "link_backoff_factor": get_link_backoff_factor(),
        "signed_url_ttl_seconds": get_signed_url_ttl_seconds(),
        "rollback_policy": get_rollback_policy(),
    }
