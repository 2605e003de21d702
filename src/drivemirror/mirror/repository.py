"""MirrorRepository: relational storage for the mirrored tree."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, Iterator, Optional

from sqlalchemy import ColumnElement, case, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from drivemirror.errors import ConflictError, InvalidParentError, NotFoundError
from drivemirror.models import NodeAttributes, NodeKind, TreeNode
from drivemirror.tree import validate_move
from drivemirror.util.time import now_utc, or_now

from .database import create_mirror_engine, init_schema, make_session_factory

logger = logging.getLogger(__name__)

_BULK_CHUNK = 500


class MirrorRepository:
    """
    Local table of tree nodes keyed by remote_id.

    Notes:
        - Every call opens its own session and transaction; no session is
          shared between callers, so concurrent operations on different
          nodes do not contend on Python-side state.
        - Returned TreeNode objects are detached snapshots.
        - Writes that would break a tree invariant raise before anything
          is persisted.
    """

    def __init__(self, session_factory: sessionmaker[Session]) -> None:
        self._session_factory = session_factory

    @classmethod
    def from_url(cls, url: str, *, echo: bool = False) -> MirrorRepository:
        engine = create_mirror_engine(url, echo=echo)
        init_schema(engine)
        return cls(make_session_factory(engine))

    # ----------------------------
    # Read APIs
    # ----------------------------
    def get(self, local_id: int) -> Optional[TreeNode]:
        with self._session_factory() as session:
            return session.get(TreeNode, local_id)

    def find_by_local_id(self, local_id: int) -> TreeNode:
        node = self.get(local_id)
        if node is None:
            raise NotFoundError(f"Node does not exist: {local_id}", details={"local_id": local_id})
        return node

    def find_by_remote_id(self, remote_id: str) -> Optional[TreeNode]:
        with self._session_factory() as session:
            stmt = select(TreeNode).where(TreeNode.remote_id == remote_id)
            return session.scalars(stmt).first()

    def children_of(
        self,
        parent_local_id: Optional[int] = None,
        *,
        include_trashed: bool = False,
        name_contains: Optional[str] = None,
    ) -> list[TreeNode]:
        """Direct children of a folder (None = root), folders first then by name."""
        stmt = select(TreeNode).where(_parent_is(parent_local_id))
        if not include_trashed:
            stmt = stmt.where(TreeNode.trashed.is_(False))
        if name_contains:
            stmt = stmt.where(_name_contains(name_contains))

        with self._session_factory() as session:
            return list(session.scalars(stmt.order_by(*_listing_order())))

    def search(self, term: str) -> list[TreeNode]:
        """Case-insensitive substring match on name across the whole mirror."""
        stmt = (
            select(TreeNode)
            .where(TreeNode.trashed.is_(False))
            .where(_name_contains(term))
            .order_by(*_listing_order())
        )
        with self._session_factory() as session:
            return list(session.scalars(stmt))

    def all_nodes(self) -> list[TreeNode]:
        with self._session_factory() as session:
            return list(session.scalars(select(TreeNode).order_by(TreeNode.local_id)))

    def last_updated_at(self) -> Optional[datetime]:
        with self._session_factory() as session:
            return session.scalar(select(func.max(TreeNode.updated_at)))

    # ----------------------------
    # Write APIs
    # ----------------------------
    def upsert_by_remote_id(self, remote_id: str, attrs: NodeAttributes) -> TreeNode:
        """
        Insert the node for remote_id, or refresh its mutable fields.

        kind and remote_created_at are written on insert only. A missing
        remote modification time keeps the stored one (or falls back to now
        for new rows).
        """
        try:
            with self._session_factory.begin() as session:
                stmt = select(TreeNode).where(TreeNode.remote_id == remote_id)
                node = session.scalars(stmt).first()
                _check_parent_assignment(session, node, attrs.parent_local_id)

                if node is None:
                    node = TreeNode(
                        remote_id=remote_id,
                        kind=attrs.kind,
                        remote_created_at=or_now(attrs.remote_created_at),
                        remote_modified_at=or_now(attrs.remote_modified_at),
                    )
                    session.add(node)
                else:
                    if node.kind is not attrs.kind:
                        logger.warning(
                            "Remote %s reports kind %s but mirror row %s is %s; keeping %s",
                            remote_id,
                            attrs.kind.value,
                            node.local_id,
                            node.kind.value,
                            node.kind.value,
                        )
                    if attrs.remote_modified_at is not None:
                        node.remote_modified_at = attrs.remote_modified_at
                    elif node.remote_modified_at is None:
                        node.remote_modified_at = now_utc()

                node.name = attrs.name
                node.parent_local_id = attrs.parent_local_id
                node.size_bytes = None if node.kind is NodeKind.FOLDER else attrs.size_bytes
                node.mime_type = attrs.mime_type
                node.trashed = attrs.trashed
                session.flush()
                return node
        except IntegrityError as exc:
            raise ConflictError(
                "Mirror write collided with an existing row",
                details={"remote_id": remote_id},
                cause=exc,
            ) from exc

    def rename(self, local_id: int, name: str, modified_at: Optional[datetime]) -> TreeNode:
        def apply(session: Session, node: TreeNode) -> None:
            node.name = name
            node.remote_modified_at = or_now(modified_at)

        return self._update(local_id, apply)

    def move(
        self,
        local_id: int,
        new_parent_local_id: Optional[int],
        modified_at: Optional[datetime],
    ) -> TreeNode:
        def apply(session: Session, node: TreeNode) -> None:
            _check_parent_assignment(session, node, new_parent_local_id)
            node.parent_local_id = new_parent_local_id
            node.remote_modified_at = or_now(modified_at)

        return self._update(local_id, apply)

    def mark_trashed(self, local_id: int, modified_at: Optional[datetime] = None) -> TreeNode:
        """Flag one node as trashed; descendants keep their own flags."""

        def apply(session: Session, node: TreeNode) -> None:
            node.trashed = True
            node.remote_modified_at = or_now(modified_at)

        return self._update(local_id, apply)

    def trash_unseen(self, seen_remote_ids: set[str]) -> int:
        """Flag every non-trashed row whose remote_id is not in seen_remote_ids."""
        with self._session_factory.begin() as session:
            rows = session.execute(
                select(TreeNode.local_id, TreeNode.remote_id).where(TreeNode.trashed.is_(False))
            ).all()
            unseen = [local_id for local_id, remote_id in rows if remote_id not in seen_remote_ids]

            stamp = now_utc()
            for chunk in _chunks(unseen, _BULK_CHUNK):
                session.execute(
                    update(TreeNode)
                    .where(TreeNode.local_id.in_(chunk))
                    .values(trashed=True, updated_at=stamp)
                )

        if unseen:
            logger.info("Flagged %d unseen node(s) as trashed", len(unseen))
        return len(unseen)

    # ----------------------------
    # Internals
    # ----------------------------
    def _update(self, local_id: int, apply: Callable[[Session, TreeNode], None]) -> TreeNode:
        with self._session_factory.begin() as session:
            node = session.get(TreeNode, local_id)
            if node is None:
                raise NotFoundError(f"Node does not exist: {local_id}", details={"local_id": local_id})
            apply(session, node)
            session.flush()
            return node


def _check_parent_assignment(
    session: Session,
    node: Optional[TreeNode],
    parent_local_id: Optional[int],
) -> None:
    """Parent must be an existing folder and must not sit inside node's subtree."""
    if parent_local_id is None:
        return

    parent = session.get(TreeNode, parent_local_id)
    if parent is None or not parent.is_folder:
        raise InvalidParentError(
            f"Parent must be an existing folder: {parent_local_id}",
            details={"parent_local_id": parent_local_id},
        )

    if node is not None:
        validate_move(node, parent_local_id, lambda lid: session.get(TreeNode, lid))


def _parent_is(parent_local_id: Optional[int]) -> ColumnElement[bool]:
    if parent_local_id is None:
        return TreeNode.parent_local_id.is_(None)
    return TreeNode.parent_local_id == parent_local_id


def _name_contains(term: str) -> ColumnElement[bool]:
    # lower(name) LIKE lower(:term); both sides fold through the same database function.
    return TreeNode.name.icontains(term, autoescape=True)


def _listing_order() -> tuple[ColumnElement, ...]:
    folders_first = case((TreeNode.kind == NodeKind.FOLDER, 0), else_=1)
    return (folders_first, TreeNode.name, TreeNode.local_id)


def _chunks(items: list[int], size: int) -> Iterator[list[int]]:
    for start in range(0, len(items), size):
        yield items[start:start + size]
