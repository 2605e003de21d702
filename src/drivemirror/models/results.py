"""Result models for crawl and query operations."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Literal, Optional

from drivemirror.util.time import to_rfc3339

from .node import TreeNode

SyncState = Literal["idle", "running"]


@dataclass(slots=True)
class SyncResult:
    """Aggregate result of a full crawl."""

    files_discovered: int
    folders_discovered: int
    completed_at: datetime

    unseen_trashed: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "files_discovered": self.files_discovered,
            "folders_discovered": self.folders_discovered,
            "completed_at": to_rfc3339(self.completed_at),
            "unseen_trashed": self.unseen_trashed,
        }


@dataclass(slots=True)
class SyncStatus:
    """Crawl status snapshot: running flag plus the newest mirror write."""

    state: SyncState
    updated_at: Optional[datetime] = None
    last_result: Optional[SyncResult] = None


@dataclass(frozen=True, slots=True)
class Breadcrumb:
    """One hop on the path from the synthetic root to a node."""

    local_id: Optional[int]
    name: str
    remote_id: Optional[str]


@dataclass(slots=True)
class NodeView:
    """A node with its breadcrumbs and (non-trashed) children."""

    node: TreeNode
    breadcrumbs: list[Breadcrumb] = field(default_factory=list)
    children: list[TreeNode] = field(default_factory=list)
