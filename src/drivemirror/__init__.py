"""drivemirror public API."""

from __future__ import annotations

from drivemirror.audit import (
    AuditEvent,
    AuditNotifier,
    CallbackAuditNotifier,
    LoggingAuditNotifier,
    NullAuditNotifier,
)
from drivemirror.auth import AuthInfo, OAuthClient
from drivemirror.config import MirrorSettings, load_settings
from drivemirror.errors import (
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
    map_http_error,
)
from drivemirror.gateway import GoogleDriveGateway, InMemoryGateway, RemoteStoreGateway
from drivemirror.logging_setup import setup_logging
from drivemirror.manager import DriveMirror
from drivemirror.mirror import MirrorRepository
from drivemirror.models import (
    Breadcrumb,
    NodeKind,
    NodeView,
    RemoteEntry,
    SyncResult,
    SyncStatus,
    TreeNode,
)
from drivemirror.mutation import DownloadStream, MutationCoordinator
from drivemirror.sync import ReconciliationEngine

__all__ = [
    # High-level
    "DriveMirror",
    "MirrorSettings",
    "load_settings",
    "setup_logging",
    # Components
    "RemoteStoreGateway",
    "GoogleDriveGateway",
    "InMemoryGateway",
    "MirrorRepository",
    "ReconciliationEngine",
    "MutationCoordinator",
    "DownloadStream",
    # Auth
    "AuthInfo",
    "OAuthClient",
    # Audit
    "AuditEvent",
    "AuditNotifier",
    "NullAuditNotifier",
    "LoggingAuditNotifier",
    "CallbackAuditNotifier",
    # Models
    "TreeNode",
    "NodeKind",
    "RemoteEntry",
    "Breadcrumb",
    "NodeView",
    "SyncResult",
    "SyncStatus",
    # Errors
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
    "map_http_error",
]
