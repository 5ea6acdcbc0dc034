from __future__ import annotations

from datetime import UTC, datetime
from email.utils import format_datetime


def now_utc() -> datetime:
    return datetime.now(UTC)


def from_epoch(seconds: float) -> datetime:
    return datetime.fromtimestamp(seconds, tz=UTC)


def http_date(seconds: float) -> str:
    """RFC 7231 date for ``If-Modified-Since``, e.g. ``Sun, 06 Nov 1994 08:49:37 GMT``."""
    return format_datetime(from_epoch(int(seconds)), usegmt=True)


def isoformat_or_none(dt: datetime | None) -> str | None:
    if dt is None:
        return None
    return dt.strftime("%Y-%m-%dT%H:%M:%SZ")
