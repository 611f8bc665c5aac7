"""Errors raised by the blob and document store adapters."""
from __future__ import annotations


class StorageError(RuntimeError):
    """Base error for blob/document store failures."""


class BlobNotFound(StorageError):
    """Raised when a blob key does not exist in its bucket."""


class DocumentNotFound(StorageError):
    """Raised when a document path does not exist (or is not yet visible)."""
