"""Crawl reconciliation exports for drivemirror."""

from __future__ import annotations

from .engine import DEFAULT_MAX_DEPTH, ReconciliationEngine

__all__ = ["ReconciliationEngine", "DEFAULT_MAX_DEPTH"]
