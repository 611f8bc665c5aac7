"""Trigger payloads, dispatch and ingress routes."""
