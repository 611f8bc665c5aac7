"""Lifecycle event logging."""
