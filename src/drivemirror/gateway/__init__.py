"""Remote store gateway exports for drivemirror."""

from __future__ import annotations

from .base import RemoteStoreGateway
from .drive_gateway import GoogleDriveGateway
from .memory import InMemoryGateway

__all__ = ["RemoteStoreGateway", "GoogleDriveGateway", "InMemoryGateway"]
