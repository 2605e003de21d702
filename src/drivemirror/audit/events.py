"""Audit events emitted after successful operations."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Optional, Protocol

from drivemirror.util.time import now_utc, to_rfc3339

logger = logging.getLogger(__name__)

# Action names
FILE_UPLOADED = "file_uploaded"
FOLDER_CREATED = "folder_created"
FILE_RENAMED = "file_renamed"
FOLDER_RENAMED = "folder_renamed"
FILE_MOVED = "file_moved"
FOLDER_MOVED = "folder_moved"
FILE_DELETED = "file_deleted"
FOLDER_DELETED = "folder_deleted"
SYNC_COMPLETED = "sync_completed"


@dataclass(slots=True)
class AuditEvent:
    """One audit record; persistence is up to the notifier."""

    action: str
    actor_id: Optional[str] = None
    target_local_id: Optional[int] = None
    target_name: Optional[str] = None
    metadata: dict[str, Any] = field(default_factory=dict)
    occurred_at: datetime = field(default_factory=now_utc)

    def to_dict(self) -> dict[str, Any]:
        return {
            "action": self.action,
            "actor_id": self.actor_id,
            "target_local_id": self.target_local_id,
            "target_name": self.target_name,
            "metadata": dict(self.metadata),
            "occurred_at": to_rfc3339(self.occurred_at),
        }


class AuditNotifier(Protocol):
    def notify(self, event: AuditEvent) -> None: ...


class NullAuditNotifier:
    """Drops every event."""

    def notify(self, event: AuditEvent) -> None:
        return None


class LoggingAuditNotifier:
    """Writes each event to a logger at INFO."""

    def __init__(self, audit_logger: Optional[logging.Logger] = None) -> None:
        self._logger = audit_logger or logging.getLogger("drivemirror.audit.trail")

    def notify(self, event: AuditEvent) -> None:
        self._logger.info(
            "%s actor=%s target=%s name=%r metadata=%s",
            event.action,
            event.actor_id,
            event.target_local_id,
            event.target_name,
            event.metadata,
        )


class CallbackAuditNotifier:
    """Hands each event to a callable (e.g. a database writer)."""

    def __init__(self, callback: Callable[[AuditEvent], None]) -> None:
        self._callback = callback

    def notify(self, event: AuditEvent) -> None:
        self._callback(event)


def notify_safely(notifier: AuditNotifier, event: AuditEvent) -> None:
    """Emit event; failures are logged and never reach the caller."""
    try:
        notifier.notify(event)
    except Exception:
        logger.warning("Audit notification failed for %s", event.action, exc_info=True)
