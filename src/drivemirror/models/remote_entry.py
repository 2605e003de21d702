"""Data model for items reported by the remote store."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from drivemirror.util.mime import is_folder


@dataclass(slots=True)
class RemoteEntry:
    """
    Represents one remote file or folder as reported by a gateway.

    Notes:
        - remote_id is opaque; only the gateway interprets it.
        - Folder vs file is derived from mime_type (folder sentinel).
        - parents are informational; the crawl assigns mirror parents from
          the listing it is processing.
    """

    remote_id: str
    name: str
    mime_type: str

    size_bytes: Optional[int] = None
    trashed: bool = False
    created_at: Optional[datetime] = None
    modified_at: Optional[datetime] = None
    parents: list[str] = field(default_factory=list)

    @property
    def is_folder(self) -> bool:
        return is_folder(self.mime_type)
