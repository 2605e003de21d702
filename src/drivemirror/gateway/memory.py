"""In-process remote store backend."""

from __future__ import annotations

import itertools
import threading
from collections import defaultdict, deque
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any, Iterator, Optional

from drivemirror.errors import DriveMirrorError, InvalidArgumentError, RemoteRejected
from drivemirror.models import RemoteEntry
from drivemirror.util.mime import DEFAULT_FILE_MIME, FOLDER_MIME, is_download_disallowed
from drivemirror.util.time import now_utc

from .base import RemoteStoreGateway

DEFAULT_CHUNK_SIZE: int = 64 * 1024


@dataclass
class _StoredItem:
    entry: RemoteEntry
    parent_id: str
    content: bytes = b""


class InMemoryGateway(RemoteStoreGateway):
    """
    A remote store kept in a dict, with the same contract as Drive.

    Useful for offline development and tests:
        - calls: every gateway call as a tuple (operation, *args)
        - fail_next(): make the next call of an operation raise
        - add_folder()/add_file(): seed the tree without recording calls
    """

    def __init__(self, *, root_id: str = "root", chunk_size: int = DEFAULT_CHUNK_SIZE) -> None:
        self._root_id = root_id
        self._chunk_size = chunk_size
        self._items: dict[str, _StoredItem] = {}
        self._ids = itertools.count(1)
        self._lock = threading.RLock()
        self._failures: dict[str, deque[DriveMirrorError]] = defaultdict(deque)
        self.calls: list[tuple[Any, ...]] = []

    # ----------------------------
    # Seeding / test helpers
    # ----------------------------
    def add_folder(
        self,
        name: str,
        parent_remote_id: Optional[str] = None,
        *,
        remote_id: Optional[str] = None,
        trashed: bool = False,
    ) -> RemoteEntry:
        with self._lock:
            return self._store(name, FOLDER_MIME, parent_remote_id, remote_id=remote_id, trashed=trashed)

    def add_file(
        self,
        name: str,
        parent_remote_id: Optional[str] = None,
        *,
        content: bytes = b"",
        mime_type: str = "text/plain",
        remote_id: Optional[str] = None,
        trashed: bool = False,
        modified_at: Optional[datetime] = None,
    ) -> RemoteEntry:
        with self._lock:
            return self._store(
                name,
                mime_type,
                parent_remote_id,
                remote_id=remote_id,
                trashed=trashed,
                content=content,
                modified_at=modified_at,
            )

    def remove(self, remote_id: str) -> None:
        """Delete an item outright, as if removed outside this system."""
        with self._lock:
            self._items.pop(remote_id, None)

    def fail_next(self, operation: str, error: DriveMirrorError) -> None:
        """Queue an error for the next call of operation ("list", "rename", ...)."""
        with self._lock:
            self._failures[operation].append(error)

    def calls_of(self, operation: str) -> list[tuple[Any, ...]]:
        return [c for c in self.calls if c[0] == operation]

    # ----------------------------
    # RemoteStoreGateway
    # ----------------------------
    def root_id(self) -> str:
        return self._root_id

    def list(self, parent_remote_id: str, *, include_trashed: bool = False) -> list[RemoteEntry]:
        with self._lock:
            self._enter("list", parent_remote_id, include_trashed)
            if parent_remote_id != self._root_id:
                self._require_folder(parent_remote_id, "list")

            entries = [
                replace(item.entry, parents=list(item.entry.parents))
                for item in self._items.values()
                if item.parent_id == parent_remote_id and (include_trashed or not item.entry.trashed)
            ]
            entries.sort(key=lambda e: (e.name, e.remote_id))
            return entries

    def get(self, remote_id: str) -> RemoteEntry:
        with self._lock:
            self._enter("get", remote_id)
            return self._copy(self._require(remote_id, "get").entry)

    def create_folder(self, name: str, parent_remote_id: Optional[str] = None) -> RemoteEntry:
        with self._lock:
            self._enter("create_folder", name, parent_remote_id)
            self._require_name(name, "create_folder")
            parent_id = parent_remote_id or self._root_id
            if parent_id != self._root_id:
                self._require_folder(parent_id, "create_folder")
            return self._copy(self._store(name, FOLDER_MIME, parent_id))

    def upload_file(
        self,
        local_path: str,
        name: str,
        parent_remote_id: Optional[str] = None,
        mime_type: Optional[str] = None,
    ) -> RemoteEntry:
        with self._lock:
            self._enter("upload_file", local_path, name, parent_remote_id, mime_type)
            self._require_name(name, "upload_file")
            parent_id = parent_remote_id or self._root_id
            if parent_id != self._root_id:
                self._require_folder(parent_id, "upload_file")

            try:
                with open(local_path, "rb") as f:
                    content = f.read()
            except OSError as exc:
                raise InvalidArgumentError(
                    "local_path must point to a readable file",
                    details={"local_path": local_path},
                    cause=exc,
                ) from exc

            stored = self._store(name, mime_type or DEFAULT_FILE_MIME, parent_id, content=content)
            return self._copy(stored)

    def rename(self, remote_id: str, new_name: str) -> RemoteEntry:
        with self._lock:
            self._enter("rename", remote_id, new_name)
            self._require_name(new_name, "rename")
            item = self._require(remote_id, "rename")
            item.entry.name = new_name
            item.entry.modified_at = now_utc()
            return self._copy(item.entry)

    def move(
        self,
        remote_id: str,
        new_parent_remote_id: str,
        old_parent_remote_id: Optional[str] = None,
    ) -> RemoteEntry:
        with self._lock:
            self._enter("move", remote_id, new_parent_remote_id, old_parent_remote_id)
            item = self._require(remote_id, "move")
            if new_parent_remote_id != self._root_id:
                self._require_folder(new_parent_remote_id, "move")
                if self._is_within(new_parent_remote_id, remote_id):
                    raise _rejected(400, "Cannot move a folder into its own descendant", "move", remote_id)

            item.parent_id = new_parent_remote_id
            item.entry.parents = [new_parent_remote_id]
            item.entry.modified_at = now_utc()
            return self._copy(item.entry)

    def trash(self, remote_id: str) -> None:
        with self._lock:
            self._enter("trash", remote_id)
            item = self._require(remote_id, "trash")
            item.entry.trashed = True
            item.entry.modified_at = now_utc()

    def download(self, remote_id: str) -> Iterator[bytes]:
        with self._lock:
            self._enter("download", remote_id)
            item = self._require(remote_id, "download")
            if is_download_disallowed(item.entry.mime_type):
                raise _rejected(400, "Item has no downloadable content", "download", remote_id)
            content = item.content
        return _iter_chunks(content, self._chunk_size)

    # ----------------------------
    # Internals
    # ----------------------------
    def _enter(self, operation: str, *args: Any) -> None:
        self.calls.append((operation, *args))
        pending = self._failures.get(operation)
        if pending:
            raise pending.popleft()

    def _store(
        self,
        name: str,
        mime_type: str,
        parent_remote_id: Optional[str],
        *,
        remote_id: Optional[str] = None,
        trashed: bool = False,
        content: bytes = b"",
        modified_at: Optional[datetime] = None,
    ) -> RemoteEntry:
        new_id = remote_id or f"mem-{next(self._ids)}"
        parent_id = parent_remote_id or self._root_id
        now = now_utc()
        is_dir = mime_type == FOLDER_MIME
        entry = RemoteEntry(
            remote_id=new_id,
            name=name,
            mime_type=mime_type,
            size_bytes=None if is_dir else len(content),
            trashed=trashed,
            created_at=now,
            modified_at=modified_at or now,
            parents=[parent_id],
        )
        self._items[new_id] = _StoredItem(entry=entry, parent_id=parent_id, content=content)
        return entry

    def _require(self, remote_id: str, operation: str) -> _StoredItem:
        item = self._items.get(remote_id)
        if item is None:
            raise _rejected(404, f"File not found: {remote_id}", operation, remote_id)
        return item

    def _require_folder(self, remote_id: str, operation: str) -> _StoredItem:
        item = self._require(remote_id, operation)
        if not item.entry.is_folder:
            raise _rejected(400, f"Not a folder: {remote_id}", operation, remote_id)
        return item

    def _require_name(self, name: str, operation: str) -> None:
        if not isinstance(name, str) or not name.strip():
            raise _rejected(400, "Invalid name", operation, None)

    def _is_within(self, remote_id: str, ancestor_id: str) -> bool:
        current: Optional[str] = remote_id
        seen: set[str] = set()
        while current is not None and current != self._root_id and current not in seen:
            if current == ancestor_id:
                return True
            seen.add(current)
            item = self._items.get(current)
            current = item.parent_id if item else None
        return False

    @staticmethod
    def _copy(entry: RemoteEntry) -> RemoteEntry:
        return replace(entry, parents=list(entry.parents))


def _rejected(status_code: int, message: str, operation: str, remote_id: Optional[str]) -> RemoteRejected:
    return RemoteRejected(
        message,
        details={"status_code": status_code, "operation": operation, "remote_id": remote_id},
    )


def _iter_chunks(content: bytes, chunk_size: int) -> Iterator[bytes]:
    for start in range(0, len(content), chunk_size):
        yield content[start:start + chunk_size]
