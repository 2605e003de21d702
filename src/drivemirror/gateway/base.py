"""Capability contract every remote store backend implements."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Iterator, Optional

from drivemirror.models import RemoteEntry


class RemoteStoreGateway(ABC):
    """
    Remote tree operations addressed by opaque remote ids.

    Contract:
        - A parent of None means the store's conventional root (root_id()).
        - Every failure surfaces as RemoteUnavailable (transient) or
          RemoteRejected (permanent for the input); nothing is swallowed.
        - No local persistence and no retries happen here.
    """

    @abstractmethod
    def root_id(self) -> str:
        """Identifier of the conventional root folder."""

    @abstractmethod
    def list(self, parent_remote_id: str, *, include_trashed: bool = False) -> list[RemoteEntry]:
        """Direct children of parent_remote_id."""

    @abstractmethod
    def get(self, remote_id: str) -> RemoteEntry:
        """Metadata of a single item."""

    @abstractmethod
    def create_folder(self, name: str, parent_remote_id: Optional[str] = None) -> RemoteEntry:
        """Create a folder under parent_remote_id (root if None)."""

    @abstractmethod
    def upload_file(
        self,
        local_path: str,
        name: str,
        parent_remote_id: Optional[str] = None,
        mime_type: Optional[str] = None,
    ) -> RemoteEntry:
        """Upload local_path as a new file."""

    @abstractmethod
    def rename(self, remote_id: str, new_name: str) -> RemoteEntry:
        """Change an item's name."""

    @abstractmethod
    def move(
        self,
        remote_id: str,
        new_parent_remote_id: str,
        old_parent_remote_id: Optional[str] = None,
    ) -> RemoteEntry:
        """
        Reparent an item.

        Some stores model reparenting as add-to/remove-from, so the old
        parent is passed along when the caller knows it.
        """

    @abstractmethod
    def trash(self, remote_id: str) -> None:
        """Move an item to the trash."""

    @abstractmethod
    def download(self, remote_id: str) -> Iterator[bytes]:
        """
        Stream file content in chunks.

        Content is fetched lazily as the iterator advances; closing the
        iterator stops further requests.
        """
