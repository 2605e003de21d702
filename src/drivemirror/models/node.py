"""Mirror row model: one TreeNode per remote file or folder."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy import BigInteger, Boolean, DateTime, Enum, ForeignKey, Integer, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator

from drivemirror.util.size import format_size
from drivemirror.util.time import as_utc, now_utc, to_rfc3339


class NodeKind(str, enum.Enum):
    FILE = "file"
    FOLDER = "folder"


class UTCDateTime(TypeDecorator):
    """
    Store datetimes as naive UTC and hand them back tz-aware.

    SQLite drops tzinfo on the way in; this keeps every timestamp read from
    the mirror comparable with remote (aware) values.
    """

    impl = DateTime
    cache_ok = True

    def process_bind_param(self, value: Optional[datetime], dialect: Any) -> Optional[datetime]:
        if value is None:
            return None
        return as_utc(value).replace(tzinfo=None)

    def process_result_value(self, value: Optional[datetime], dialect: Any) -> Optional[datetime]:
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


class Base(DeclarativeBase):
    pass


class TreeNode(Base):
    """
    Local mirror row for a remote file or folder.

    Notes:
        - local_id is assigned by the database and never changes.
        - remote_id is the join key with the remote store (unique).
        - parent_local_id is None for items directly under the remote root;
          the remote root itself is never stored.
        - kind is fixed on insert.
    """

    __tablename__ = "tree_nodes"

    local_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    remote_id: Mapped[str] = mapped_column(String(255), unique=True, index=True, nullable=False)
    name: Mapped[str] = mapped_column(String(1024), nullable=False)
    kind: Mapped[NodeKind] = mapped_column(
        Enum(
            NodeKind,
            native_enum=False,
            length=16,
            values_callable=lambda kinds: [k.value for k in kinds],
        ),
        nullable=False,
        index=True,
    )
    parent_local_id: Mapped[Optional[int]] = mapped_column(
        ForeignKey("tree_nodes.local_id"),
        nullable=True,
        index=True,
    )
    size_bytes: Mapped[Optional[int]] = mapped_column(BigInteger, nullable=True)
    mime_type: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    trashed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False, index=True)

    remote_created_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime(), nullable=True)
    remote_modified_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime(), nullable=True)

    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        default=now_utc,
        onupdate=now_utc,
        nullable=False,
    )

    @property
    def is_folder(self) -> bool:
        return self.kind is NodeKind.FOLDER

    @property
    def is_file(self) -> bool:
        return self.kind is NodeKind.FILE

    @property
    def formatted_size(self) -> Optional[str]:
        return format_size(self.size_bytes)

    def to_dict(self) -> dict[str, Any]:
        return {
            "local_id": self.local_id,
            "remote_id": self.remote_id,
            "name": self.name,
            "kind": self.kind.value,
            "parent_local_id": self.parent_local_id,
            "size_bytes": self.size_bytes,
            "formatted_size": self.formatted_size,
            "mime_type": self.mime_type,
            "trashed": self.trashed,
            "remote_created_at": _iso(self.remote_created_at),
            "remote_modified_at": _iso(self.remote_modified_at),
            "updated_at": _iso(self.updated_at),
        }

    def __repr__(self) -> str:
        return (
            f"<TreeNode local_id={self.local_id} remote_id={self.remote_id!r} "
            f"kind={self.kind.value} name={self.name!r}>"
        )


@dataclass(slots=True)
class NodeAttributes:
    """Attribute bundle written by upsert_by_remote_id."""

    name: str
    kind: NodeKind
    parent_local_id: Optional[int] = None
    size_bytes: Optional[int] = None
    mime_type: Optional[str] = None
    trashed: bool = False
    remote_created_at: Optional[datetime] = None
    remote_modified_at: Optional[datetime] = None


def _iso(dt: Optional[datetime]) -> Optional[str]:
    return to_rfc3339(dt) if dt is not None else None
