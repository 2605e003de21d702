"""Public error exports for drivemirror."""

from __future__ import annotations

from .exceptions import (
    ConflictError,
    CrawlDepthExceededError,
    DriveMirrorError,
    HttpErrorInfo,
    InvalidArgumentError,
    InvalidMoveError,
    InvalidParentError,
    MirrorOutOfSyncError,
    NotFoundError,
    RemoteRejected,
    RemoteUnavailable,
    SyncInProgressError,
    is_transient_status,
    map_http_error,
)

__all__ = [
    "DriveMirrorError",
    "RemoteUnavailable",
    "RemoteRejected",
    "NotFoundError",
    "InvalidParentError",
    "InvalidMoveError",
    "ConflictError",
    "InvalidArgumentError",
    "SyncInProgressError",
    "CrawlDepthExceededError",
    "MirrorOutOfSyncError",
    "HttpErrorInfo",
    "is_transient_status",
    "map_http_error",
]
