"""Engine and session factory for the mirror database."""

from __future__ import annotations

from typing import Any, Optional

from sqlalchemy import Engine, create_engine, event
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from drivemirror.models import Base


def _is_sqlite_memory(url: str) -> bool:
    return url.startswith("sqlite") and (":memory:" in url or url.rstrip("/") in ("sqlite:", "sqlite+pysqlite:"))


def _unicode_lower(value: Optional[str]) -> Optional[str]:
    return value.lower() if isinstance(value, str) else value


def _install_sqlite_functions(dbapi_connection: Any, connection_record: Any) -> None:
    # SQLite's built-in lower() folds ASCII only; name search needs all of Unicode.
    dbapi_connection.create_function("lower", 1, _unicode_lower, deterministic=True)


def create_mirror_engine(url: str, *, echo: bool = False) -> Engine:
    """
    Create the engine backing the mirror.

    In-memory SQLite gets one shared connection so every session sees the
    same database. SQLite connections get a Unicode-aware lower().
    """
    if not url.startswith("sqlite"):
        return create_engine(url, echo=echo)

    if _is_sqlite_memory(url):
        engine = create_engine(
            url,
            echo=echo,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    else:
        engine = create_engine(url, echo=echo, connect_args={"check_same_thread": False})
    event.listen(engine, "connect", _install_sqlite_functions)
    return engine


def init_schema(engine: Engine) -> None:
    """Create the mirror tables if they do not exist yet."""
    Base.metadata.create_all(engine)


def make_session_factory(engine: Engine) -> sessionmaker[Session]:
    # Rows returned by the repository stay readable after their session ends.
    return sessionmaker(bind=engine, expire_on_commit=False)
