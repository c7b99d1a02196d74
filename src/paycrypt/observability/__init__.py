"""Observability: logging, correlation IDs, metrics, health."""
