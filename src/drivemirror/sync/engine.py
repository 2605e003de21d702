"""ReconciliationEngine: full crawl of the remote tree into the mirror."""

from __future__ import annotations

import logging
import threading
from collections import deque
from dataclasses import dataclass
from typing import Optional

from drivemirror.errors import CrawlDepthExceededError, SyncInProgressError
from drivemirror.gateway import RemoteStoreGateway
from drivemirror.mirror import MirrorRepository
from drivemirror.models import NodeAttributes, NodeKind, RemoteEntry, SyncResult
from drivemirror.tree import kind_for_mime
from drivemirror.util.time import now_utc

logger = logging.getLogger(__name__)

DEFAULT_MAX_DEPTH: int = 64


@dataclass(frozen=True)
class _CrawlTask:
    remote_parent_id: str
    mirror_parent_local_id: Optional[int]
    depth: int


@dataclass(frozen=True)
class _VisitCounts:
    files: int = 0
    folders: int = 0

    def __add__(self, other: _VisitCounts) -> _VisitCounts:
        return _VisitCounts(self.files + other.files, self.folders + other.folders)


class ReconciliationEngine:
    """
    Walk the remote tree breadth-first and upsert every entry into the mirror.

    Notes:
        - Entries are listed with trashed items included so remote trash
          state is mirrored; trashed folders are recorded but not descended.
        - The first error aborts the crawl. Upserts already committed stay.
        - Only one crawl runs at a time per engine; a concurrent run() raises
          SyncInProgressError instead of waiting.
    """

    def __init__(
        self,
        gateway: RemoteStoreGateway,
        repository: MirrorRepository,
        *,
        max_depth: int = DEFAULT_MAX_DEPTH,
        mark_unseen_trashed: bool = False,
    ) -> None:
        self._gateway = gateway
        self._repository = repository
        self._max_depth = max_depth
        self._mark_unseen_trashed = mark_unseen_trashed
        self._lock = threading.Lock()
        self._last_result: Optional[SyncResult] = None

    @property
    def is_running(self) -> bool:
        return self._lock.locked()

    @property
    def last_result(self) -> Optional[SyncResult]:
        return self._last_result

    # ----------------------------
    # Public API
    # ----------------------------
    def run(self) -> SyncResult:
        """
        Crawl the whole remote tree.

        Raises:
            SyncInProgressError: another crawl holds the engine.
            CrawlDepthExceededError: nesting deeper than max_depth.
            RemoteUnavailable / RemoteRejected: from the gateway, unchanged.
        """
        if not self._lock.acquire(blocking=False):
            raise SyncInProgressError("A crawl is already running")
        try:
            result = self._crawl()
        finally:
            self._lock.release()

        self._last_result = result
        return result

    # ----------------------------
    # Internals
    # ----------------------------
    def _crawl(self) -> SyncResult:
        root_id = self._gateway.root_id()
        logger.info("Crawl started from %s", root_id)

        queue: deque[_CrawlTask] = deque([_CrawlTask(root_id, None, 0)])
        visited: set[str] = {root_id}
        seen: set[str] = set()
        totals = _VisitCounts()

        while queue:
            task = queue.popleft()
            if task.depth > self._max_depth:
                raise CrawlDepthExceededError(
                    f"Remote tree is nested deeper than {self._max_depth} levels",
                    details={"remote_parent_id": task.remote_parent_id, "max_depth": self._max_depth},
                )
            totals = totals + self._visit(task, root_id, queue, visited, seen)

        unseen_trashed = 0
        if self._mark_unseen_trashed:
            unseen_trashed = self._repository.trash_unseen(seen)

        result = SyncResult(
            files_discovered=totals.files,
            folders_discovered=totals.folders,
            completed_at=now_utc(),
            unseen_trashed=unseen_trashed,
        )
        logger.info(
            "Crawl finished: %d file(s), %d folder(s), %d unseen trashed",
            result.files_discovered,
            result.folders_discovered,
            result.unseen_trashed,
        )
        return result

    def _visit(
        self,
        task: _CrawlTask,
        root_id: str,
        queue: deque[_CrawlTask],
        visited: set[str],
        seen: set[str],
    ) -> _VisitCounts:
        entries = self._gateway.list(task.remote_parent_id, include_trashed=True)
        logger.debug("Visiting %s (depth %d): %d entries", task.remote_parent_id, task.depth, len(entries))

        counts = _VisitCounts()
        for entry in entries:
            if entry.remote_id == root_id:
                continue

            node = self._repository.upsert_by_remote_id(
                entry.remote_id,
                _attributes_for(entry, task.mirror_parent_local_id),
            )
            seen.add(entry.remote_id)

            # Counts follow the remote MIME type; a stored kind that disagrees
            # (warned about by the repository) is never descended as a folder.
            remote_kind = kind_for_mime(entry.mime_type)
            if remote_kind is NodeKind.FOLDER:
                counts = counts + _VisitCounts(folders=1)
                descend = node.kind is NodeKind.FOLDER and not entry.trashed
                if descend and entry.remote_id not in visited:
                    visited.add(entry.remote_id)
                    queue.append(_CrawlTask(entry.remote_id, node.local_id, task.depth + 1))
            else:
                counts = counts + _VisitCounts(files=1)

        return counts


def _attributes_for(entry: RemoteEntry, parent_local_id: Optional[int]) -> NodeAttributes:
    kind = kind_for_mime(entry.mime_type)
    return NodeAttributes(
        name=entry.name,
        kind=kind,
        parent_local_id=parent_local_id,
        size_bytes=None if kind is NodeKind.FOLDER else entry.size_bytes,
        mime_type=entry.mime_type,
        trashed=entry.trashed,
        remote_created_at=entry.created_at,
        remote_modified_at=entry.modified_at,
    )
