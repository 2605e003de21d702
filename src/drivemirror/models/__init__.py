"""Public model exports for drivemirror."""

from __future__ import annotations

from .node import Base, NodeAttributes, NodeKind, TreeNode, UTCDateTime
from .remote_entry import RemoteEntry
from .results import Breadcrumb, NodeView, SyncResult, SyncState, SyncStatus

__all__ = [
    "Base",
    "NodeKind",
    "TreeNode",
    "NodeAttributes",
    "UTCDateTime",
    "RemoteEntry",
    "SyncResult",
    "SyncState",
    "SyncStatus",
    "Breadcrumb",
    "NodeView",
]
