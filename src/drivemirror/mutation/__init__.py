"""Mutation exports for drivemirror."""

from __future__ import annotations

from .coordinator import MAX_NAME_LENGTH, DownloadStream, MutationCoordinator

__all__ = ["MutationCoordinator", "DownloadStream", "MAX_NAME_LENGTH"]
