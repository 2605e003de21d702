"""Mirror repository exports for drivemirror."""

from __future__ import annotations

from .database import create_mirror_engine, init_schema, make_session_factory
from .repository import MirrorRepository

__all__ = [
    "MirrorRepository",
    "create_mirror_engine",
    "init_schema",
    "make_session_factory",
]
