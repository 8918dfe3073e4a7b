"""Metric registry and the realtime metric definitions."""

from . import metrics, registry

__all__ = ["metrics", "registry"]
