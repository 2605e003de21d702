"""Audit notification exports for drivemirror."""

from __future__ import annotations

from .events import (
    FILE_DELETED,
    FILE_MOVED,
    FILE_RENAMED,
    FILE_UPLOADED,
    FOLDER_CREATED,
    FOLDER_DELETED,
    FOLDER_MOVED,
    FOLDER_RENAMED,
    SYNC_COMPLETED,
    AuditEvent,
    AuditNotifier,
    CallbackAuditNotifier,
    LoggingAuditNotifier,
    NullAuditNotifier,
    notify_safely,
)

__all__ = [
    "AuditEvent",
    "AuditNotifier",
    "NullAuditNotifier",
    "LoggingAuditNotifier",
    "CallbackAuditNotifier",
    "notify_safely",
    "FILE_UPLOADED",
    "FOLDER_CREATED",
    "FILE_RENAMED",
    "FOLDER_RENAMED",
    "FILE_MOVED",
    "FOLDER_MOVED",
    "FILE_DELETED",
    "FOLDER_DELETED",
    "SYNC_COMPLETED",
]
