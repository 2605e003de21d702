from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


def normalize_dt(dt: datetime) -> datetime:
    """Reject naive datetimes; mirror timestamps are always zone-aware."""
    if not isinstance(dt, datetime):
        raise TypeError("dt must be a datetime")
    if dt.tzinfo is None:
        raise ValueError("naive datetime is not allowed; timezone-aware required")
    return dt


def as_utc(dt: datetime) -> datetime:
    return normalize_dt(dt).astimezone(timezone.utc)


def parse_rfc3339(value: str) -> datetime:
    """
    Parse a Drive timestamp ("2025-01-01T12:34:56.789Z", or with an explicit
    offset) into an aware UTC datetime.
    """
    if not isinstance(value, str) or not value.strip():
        raise ValueError("RFC3339 value must be a non-empty string")

    text = value.strip()
    if text[-1] in "zZ":
        # fromisoformat only understands the Z suffix from 3.11 on.
        text = f"{text[:-1]}+00:00"
    return as_utc(datetime.fromisoformat(text))


def parse_rfc3339_or_none(value: object) -> Optional[datetime]:
    """Lenient variant for remote payloads: anything unparsable becomes None."""
    if not isinstance(value, str):
        return None
    try:
        return parse_rfc3339(value)
    except ValueError:
        return None


def to_rfc3339(dt: datetime) -> str:
    return as_utc(dt).isoformat(timespec="microseconds").replace("+00:00", "Z")


def or_now(dt: Optional[datetime]) -> datetime:
    """Return dt if the remote provided one, otherwise the local UTC time."""
    return dt if dt is not None else now_utc()
