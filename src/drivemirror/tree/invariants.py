"""Tree invariant helpers (pure; no I/O).

All functions take a ``lookup(local_id) -> TreeNode | None`` callable so the
same rules apply to repository reads and to in-session checks.
"""

from __future__ import annotations

import logging
from typing import Callable, Iterator, Optional

from drivemirror.errors import InvalidMoveError, InvalidParentError
from drivemirror.models import Breadcrumb, NodeKind, TreeNode
from drivemirror.util.mime import is_folder

logger = logging.getLogger(__name__)

NodeLookup = Callable[[int], Optional[TreeNode]]

ROOT_LABEL: str = "Home"
DEFAULT_MAX_HOPS: int = 10_000


def kind_for_mime(mime_type: Optional[str]) -> NodeKind:
    """Classify a remote entry; the folder sentinel is the only folder signal."""
    return NodeKind.FOLDER if is_folder(mime_type) else NodeKind.FILE


def iter_ancestors(
    node: TreeNode,
    lookup: NodeLookup,
    *,
    max_hops: int = DEFAULT_MAX_HOPS,
) -> Iterator[TreeNode]:
    """
    Yield the parents of node, nearest first.

    Stops at the root, at a dangling parent reference, on a repeated node
    (cycle), or after max_hops.
    """
    visited: set[int] = {node.local_id}
    parent_id = node.parent_local_id
    hops = 0

    while parent_id is not None:
        if parent_id in visited:
            logger.warning(
                "Parent chain of node %s loops back to %s; stopping walk",
                node.local_id,
                parent_id,
            )
            return
        if hops >= max_hops:
            logger.warning(
                "Parent chain of node %s exceeds %d hops; stopping walk",
                node.local_id,
                max_hops,
            )
            return

        parent = lookup(parent_id)
        if parent is None:
            return

        visited.add(parent_id)
        hops += 1
        yield parent
        parent_id = parent.parent_local_id


def is_descendant(
    candidate_local_id: int,
    ancestor_local_id: int,
    lookup: NodeLookup,
    *,
    max_hops: int = DEFAULT_MAX_HOPS,
) -> bool:
    """Walk upward from candidate; True if ancestor is on its parent chain."""
    candidate = lookup(candidate_local_id)
    if candidate is None:
        return False

    for parent in iter_ancestors(candidate, lookup, max_hops=max_hops):
        if parent.local_id == ancestor_local_id:
            return True
    return False


def validate_parent(parent: Optional[TreeNode], *, parent_local_id: Optional[int]) -> None:
    """None (root) or a non-trashed folder; anything else is InvalidParentError."""
    if parent_local_id is None:
        return
    if parent is None:
        raise InvalidParentError(
            f"Parent does not exist: {parent_local_id}",
            details={"parent_local_id": parent_local_id},
        )
    if not parent.is_folder:
        raise InvalidParentError(
            f"Parent must be a folder: {parent_local_id}",
            details={"parent_local_id": parent_local_id, "kind": parent.kind.value},
        )
    if parent.trashed:
        raise InvalidParentError(
            f"Parent is trashed: {parent_local_id}",
            details={"parent_local_id": parent_local_id},
        )


def validate_move(
    node: TreeNode,
    new_parent_local_id: Optional[int],
    lookup: NodeLookup,
) -> None:
    """
    Reject cycles: the destination may not be the node or inside its subtree.

    Moving to the root (None) can never close a cycle.
    """
    if new_parent_local_id is None:
        return

    if new_parent_local_id == node.local_id:
        raise InvalidMoveError(
            "Cannot move a node into itself",
            details={"local_id": node.local_id},
        )

    if is_descendant(new_parent_local_id, node.local_id, lookup):
        raise InvalidMoveError(
            "Cannot move a folder into its own descendant",
            details={"local_id": node.local_id, "new_parent_local_id": new_parent_local_id},
        )


def breadcrumbs(
    node: TreeNode,
    lookup: NodeLookup,
    *,
    root_label: str = ROOT_LABEL,
) -> list[Breadcrumb]:
    """Synthetic root first, then every ancestor, then the node itself."""
    chain = [node, *iter_ancestors(node, lookup)]
    chain.reverse()

    crumbs = [Breadcrumb(local_id=None, name=root_label, remote_id=None)]
    crumbs.extend(
        Breadcrumb(local_id=n.local_id, name=n.name, remote_id=n.remote_id) for n in chain
    )
    return crumbs
