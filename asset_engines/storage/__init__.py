"""Blob and document store adapters."""
