"""MutationCoordinator: local-initiated changes, remote first, then mirror."""

from __future__ import annotations

import logging
import os
from typing import Any, Callable, Iterator, Optional, TypeVar

from sqlalchemy.exc import SQLAlchemyError

from drivemirror.audit import (
    FILE_DELETED,
    FILE_MOVED,
    FILE_RENAMED,
    FILE_UPLOADED,
    FOLDER_CREATED,
    FOLDER_DELETED,
    FOLDER_MOVED,
    FOLDER_RENAMED,
    AuditEvent,
    AuditNotifier,
    NullAuditNotifier,
    notify_safely,
)
from drivemirror.errors import (
    DriveMirrorError,
    InvalidArgumentError,
    MirrorOutOfSyncError,
    NotFoundError,
)
from drivemirror.gateway import RemoteStoreGateway
from drivemirror.mirror import MirrorRepository
from drivemirror.models import NodeAttributes, NodeKind, TreeNode
from drivemirror.tree import validate_move, validate_parent
from drivemirror.util.mime import FOLDER_MIME, guess_mime_type, is_google_app
from drivemirror.util.time import now_utc

logger = logging.getLogger(__name__)

T = TypeVar("T")

MAX_NAME_LENGTH: int = 255


class DownloadStream:
    """
    Lazily streamed file content plus the metadata a caller needs to serve it.

    Iterate to receive chunks. close() (or leaving a with-block) stops the
    remote transfer; chunks not yet fetched are never requested.
    """

    def __init__(self, node: TreeNode, chunks: Iterator[bytes]) -> None:
        self._node = node
        self._chunks = chunks
        self._closed = False

    @property
    def local_id(self) -> int:
        return self._node.local_id

    @property
    def name(self) -> str:
        return self._node.name

    @property
    def mime_type(self) -> Optional[str]:
        return self._node.mime_type

    @property
    def size_bytes(self) -> Optional[int]:
        return self._node.size_bytes

    @property
    def closed(self) -> bool:
        return self._closed

    def __iter__(self) -> Iterator[bytes]:
        # Closing the iterator (a cancelled response) closes the remote transfer too.
        try:
            while not self._closed:
                try:
                    chunk = next(self._chunks)
                except StopIteration:
                    return
                yield chunk
        finally:
            self.close()

    def read(self) -> bytes:
        """Drain the remaining content into memory."""
        return b"".join(self)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        close = getattr(self._chunks, "close", None)
        if callable(close):
            close()

    def __enter__(self) -> DownloadStream:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()


class MutationCoordinator:
    """
    Apply one local-initiated change to the remote store and the mirror.

    Each operation is two-phase:
        1. validate against the mirror, then call the gateway;
        2. write the outcome to the mirror.

    A phase-1 failure leaves the mirror untouched and propagates unchanged.
    A phase-2 failure raises MirrorOutOfSyncError: the remote already holds
    the change and the next crawl repairs the mirror. Nothing is retried.
    """

    def __init__(
        self,
        gateway: RemoteStoreGateway,
        repository: MirrorRepository,
        *,
        notifier: Optional[AuditNotifier] = None,
    ) -> None:
        self._gateway = gateway
        self._repository = repository
        self._notifier: AuditNotifier = notifier or NullAuditNotifier()

    # ----------------------------
    # Public API
    # ----------------------------
    def upload(
        self,
        local_path: str,
        parent_local_id: Optional[int] = None,
        *,
        name: Optional[str] = None,
        mime_type: Optional[str] = None,
        actor_id: Optional[str] = None,
    ) -> TreeNode:
        parent = self._resolve_parent(parent_local_id)
        file_name = _validate_name(name if name is not None else os.path.basename(local_path or ""))
        if not local_path or not os.path.isfile(local_path):
            raise InvalidArgumentError(
                "local_path must point to an existing file",
                details={"local_path": local_path},
            )
        use_mime = mime_type or guess_mime_type(file_name)

        entry = self._gateway.upload_file(
            local_path,
            file_name,
            parent.remote_id if parent else None,
            use_mime,
        )
        logger.info("Uploaded %s as %s", file_name, entry.remote_id)

        size = entry.size_bytes if entry.size_bytes is not None else os.path.getsize(local_path)
        attrs = NodeAttributes(
            name=entry.name or file_name,
            kind=NodeKind.FILE,
            parent_local_id=parent_local_id,
            size_bytes=size,
            mime_type=entry.mime_type or use_mime,
            trashed=False,
            remote_created_at=entry.created_at,
            remote_modified_at=entry.modified_at,
        )
        node = self._apply_locally(
            "upload",
            entry.remote_id,
            None,
            lambda: self._repository.upsert_by_remote_id(entry.remote_id, attrs),
        )

        self._audit(FILE_UPLOADED, node, actor_id, {"size_bytes": node.size_bytes, "mime_type": node.mime_type})
        return node

    def create_folder(
        self,
        name: str,
        parent_local_id: Optional[int] = None,
        *,
        actor_id: Optional[str] = None,
    ) -> TreeNode:
        parent = self._resolve_parent(parent_local_id)
        folder_name = _validate_name(name)

        entry = self._gateway.create_folder(folder_name, parent.remote_id if parent else None)
        logger.info("Created folder %s as %s", folder_name, entry.remote_id)

        attrs = NodeAttributes(
            name=entry.name or folder_name,
            kind=NodeKind.FOLDER,
            parent_local_id=parent_local_id,
            size_bytes=None,
            mime_type=entry.mime_type or FOLDER_MIME,
            trashed=False,
            remote_created_at=entry.created_at,
            remote_modified_at=entry.modified_at,
        )
        node = self._apply_locally(
            "create_folder",
            entry.remote_id,
            None,
            lambda: self._repository.upsert_by_remote_id(entry.remote_id, attrs),
        )

        self._audit(FOLDER_CREATED, node, actor_id)
        return node

    def rename(self, local_id: int, new_name: str, *, actor_id: Optional[str] = None) -> TreeNode:
        node = self._require_visible(local_id)
        target_name = _validate_name(new_name)
        old_name = node.name

        entry = self._gateway.rename(node.remote_id, target_name)
        logger.info("Renamed %s from %r to %r", node.remote_id, old_name, target_name)

        updated = self._apply_locally(
            "rename",
            node.remote_id,
            local_id,
            lambda: self._repository.rename(local_id, entry.name or target_name, entry.modified_at),
        )

        action = FOLDER_RENAMED if updated.is_folder else FILE_RENAMED
        self._audit(action, updated, actor_id, {"old_name": old_name, "new_name": updated.name})
        return updated

    def move(
        self,
        local_id: int,
        new_parent_local_id: Optional[int] = None,
        *,
        actor_id: Optional[str] = None,
    ) -> TreeNode:
        node = self._require_visible(local_id)
        new_parent = self._resolve_parent(new_parent_local_id)
        validate_move(node, new_parent_local_id, self._repository.get)

        old_remote_parent = self._remote_parent_of(node.parent_local_id)
        new_remote_parent = new_parent.remote_id if new_parent else self._gateway.root_id()

        entry = self._gateway.move(
            node.remote_id,
            new_remote_parent,
            old_remote_parent if old_remote_parent != new_remote_parent else None,
        )
        logger.info("Moved %s from %s to %s", node.remote_id, old_remote_parent, new_remote_parent)

        updated = self._apply_locally(
            "move",
            node.remote_id,
            local_id,
            lambda: self._repository.move(local_id, new_parent_local_id, entry.modified_at),
        )

        action = FOLDER_MOVED if updated.is_folder else FILE_MOVED
        self._audit(
            action,
            updated,
            actor_id,
            {"old_parent_id": node.parent_local_id, "new_parent_id": updated.parent_local_id},
        )
        return updated

    def trash(self, local_id: int, *, actor_id: Optional[str] = None) -> TreeNode:
        """Trash one node remotely and flag it locally; descendants are untouched."""
        node = self._require_visible(local_id)

        self._gateway.trash(node.remote_id)
        logger.info("Trashed %s", node.remote_id)

        updated = self._apply_locally(
            "trash",
            node.remote_id,
            local_id,
            lambda: self._repository.mark_trashed(local_id, now_utc()),
        )

        action = FOLDER_DELETED if updated.is_folder else FILE_DELETED
        self._audit(action, updated, actor_id)
        return updated

    def download(self, local_id: int) -> DownloadStream:
        node = self._require_visible(local_id)
        if node.is_folder or is_google_app(node.mime_type):
            raise NotFoundError(
                f"No downloadable content: {local_id}",
                details={"local_id": local_id, "kind": node.kind.value, "mime_type": node.mime_type},
            )

        chunks = self._gateway.download(node.remote_id)
        logger.debug("Streaming %s (%s)", node.remote_id, node.name)
        return DownloadStream(node, iter(chunks))

    # ----------------------------
    # Internals
    # ----------------------------
    def _require_visible(self, local_id: int) -> TreeNode:
        node = self._repository.find_by_local_id(local_id)
        if node.trashed:
            raise NotFoundError(f"Node is trashed: {local_id}", details={"local_id": local_id})
        return node

    def _resolve_parent(self, parent_local_id: Optional[int]) -> Optional[TreeNode]:
        if parent_local_id is None:
            return None
        parent = self._repository.get(parent_local_id)
        validate_parent(parent, parent_local_id=parent_local_id)
        return parent

    def _remote_parent_of(self, parent_local_id: Optional[int]) -> str:
        if parent_local_id is None:
            return self._gateway.root_id()
        parent = self._repository.get(parent_local_id)
        return parent.remote_id if parent is not None else self._gateway.root_id()

    def _apply_locally(
        self,
        action: str,
        remote_id: str,
        local_id: Optional[int],
        func: Callable[[], T],
    ) -> T:
        try:
            return func()
        except (SQLAlchemyError, DriveMirrorError) as exc:
            logger.error(
                "Remote %s of %s succeeded but the mirror update failed: %s",
                action,
                remote_id,
                exc,
            )
            raise MirrorOutOfSyncError(
                f"Mirror update failed after remote {action}",
                details={"action": action, "remote_id": remote_id, "local_id": local_id},
                cause=exc,
            ) from exc

    def _audit(
        self,
        action: str,
        node: TreeNode,
        actor_id: Optional[str],
        metadata: Optional[dict[str, Any]] = None,
    ) -> None:
        event = AuditEvent(
            action=action,
            actor_id=actor_id,
            target_local_id=node.local_id,
            target_name=node.name,
            metadata=metadata or {},
        )
        notify_safely(self._notifier, event)


def _validate_name(name: Optional[str]) -> str:
    if not isinstance(name, str) or not name.strip():
        raise InvalidArgumentError("name must be a non-empty string", details={"name": name})
    cleaned = name.strip()
    if len(cleaned) > MAX_NAME_LENGTH:
        raise InvalidArgumentError(
            f"name must be at most {MAX_NAME_LENGTH} characters",
            details={"length": len(cleaned)},
        )
    return cleaned
