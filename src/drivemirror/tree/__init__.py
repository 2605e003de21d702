"""Tree invariant exports for drivemirror."""

from __future__ import annotations

from .invariants import (
    DEFAULT_MAX_HOPS,
    ROOT_LABEL,
    NodeLookup,
    breadcrumbs,
    is_descendant,
    iter_ancestors,
    kind_for_mime,
    validate_move,
    validate_parent,
)

__all__ = [
    "NodeLookup",
    "ROOT_LABEL",
    "DEFAULT_MAX_HOPS",
    "kind_for_mime",
    "iter_ancestors",
    "is_descendant",
    "validate_parent",
    "validate_move",
    "breadcrumbs",
]
