"""Env-driven configuration."""
