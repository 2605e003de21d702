"""Exception hierarchy and HTTP error mapping for drivemirror."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional


class DriveMirrorError(Exception):
    """
    Base exception for drivemirror.

    Attributes:
        details: Optional structured information (node ids, remote call,
            HTTP status, ...).
        cause: Optional original exception that triggered this error.
    """

    def __init__(
        self,
        message: str,
        *,
        details: Optional[dict[str, Any]] = None,
        cause: Optional[BaseException] = None,
    ) -> None:
        super().__init__(message)
        self.details = details or {}
        self.cause = cause


class RemoteUnavailable(DriveMirrorError):
    """Raised on transient remote failures (network, auth, 429, 5xx). Safe to retry."""


class RemoteRejected(DriveMirrorError):
    """Raised when the remote store refuses the request for the given input (4xx)."""

    @property
    def status_code(self) -> Optional[int]:
        value = self.details.get("status_code")
        return value if isinstance(value, int) else None


class NotFoundError(DriveMirrorError):
    """Raised when a mirror node is absent (or hidden because it is trashed)."""


class InvalidParentError(DriveMirrorError):
    """Raised when a target parent is not a non-trashed folder."""


class InvalidMoveError(DriveMirrorError):
    """Raised when a move would place a node into itself or its own subtree."""


class ConflictError(DriveMirrorError):
    """Raised when a mirror write collides with a unique key."""


class InvalidArgumentError(DriveMirrorError):
    """Raised when caller input is malformed (empty name, missing file, ...)."""


class SyncInProgressError(DriveMirrorError):
    """Raised when a crawl is requested while another crawl is running."""


class CrawlDepthExceededError(DriveMirrorError):
    """Raised when a crawl descends past the configured maximum depth."""


class MirrorOutOfSyncError(DriveMirrorError):
    """
    Raised when the remote call succeeded but the mirror update failed.

    The remote store already reflects the change; the next full crawl
    re-converges the mirror.
    """


@dataclass(frozen=True)
class HttpErrorInfo:
    """Lightweight HTTP error information for mapping to drivemirror exceptions."""

    status_code: int
    reason: str | None = None
    message: str | None = None
    details: dict[str, Any] | None = None


_RATE_LIMIT_REASON_KEYWORDS: tuple[str, ...] = (
    "rateLimitExceeded",
    "userRateLimitExceeded",
    "dailyLimitExceeded",
    "backendError",
)

_TRANSIENT_STATUS_CODES: frozenset[int] = frozenset({0, 401, 408, 429})


def _is_rate_limit_reason(reason: str | None) -> bool:
    if not reason:
        return False
    return any(key.lower() in reason.lower() for key in _RATE_LIMIT_REASON_KEYWORDS)


def is_transient_status(status_code: int, reason: str | None = None) -> bool:
    """Return True if an HTTP status (plus reason) denotes a retryable failure."""
    if status_code in _TRANSIENT_STATUS_CODES:
        return True
    if 500 <= status_code <= 599:
        return True
    return status_code == 403 and _is_rate_limit_reason(reason)


def map_http_error(
    info: HttpErrorInfo,
    *,
    cause: Optional[BaseException] = None,
) -> DriveMirrorError:
    """
    Map an HTTP error to one of the two remote error kinds.

    Policy:
        - 0 (no response), 401, 408, 429, 5xx -> RemoteUnavailable
        - 403 with a rate-limit reason -> RemoteUnavailable
        - everything else (400, 403, 404, 409, 412, storage quota, ...)
          -> RemoteRejected
    """
    details: dict[str, Any] = {
        "status_code": info.status_code,
        "reason": info.reason,
    }
    if info.details:
        details.update(info.details)

    message = info.message or f"HTTP error {info.status_code}"

    if is_transient_status(info.status_code, info.reason):
        return RemoteUnavailable(message, details=details, cause=cause)
    return RemoteRejected(message, details=details, cause=cause)
