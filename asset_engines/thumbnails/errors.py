"""Failure kinds of the derivative (thumbnail) pipeline."""
from __future__ import annotations

from typing import Optional


class DerivativeError(Exception):
    """Base pipeline error. ``requires_rollback`` is True once a blob may have been committed."""

    requires_rollback = False


class PermanentTransformFailure(DerivativeError):
    """Source unreadable or not decodable as an image; nothing was written."""


class PermanentWriteFailure(DerivativeError):
    """Destination write or finalize failed; no derivative was committed."""


class AccessDescriptorFailure(DerivativeError):
    """Signing failed after the derivative was committed."""

    requires_rollback = True


class TransientLinkFailure(DerivativeError):
    """One metadata update attempt failed (usually: record not visible yet)."""

    def __init__(self, document_path: str, attempt: int, cause: Exception) -> None:
        self.document_path = document_path
        self.attempt = attempt
        self.cause = cause
        super().__init__(f"link attempt {attempt} on {document_path} failed: {cause}")


class PermanentLinkFailure(DerivativeError):
    requires_rollback = True

    def __init__(self, document_path: str, attempts: int, last_error: Optional[Exception] = None) -> None:
        self.document_path = document_path
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"could not link metadata on {document_path} after {attempts} attempts: {last_error}")
