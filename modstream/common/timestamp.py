"""
Timestamp Utilities

RFC3339 formatting for outbound message timestamps.
"""

from datetime import datetime, timezone


def utc_now() -> datetime:
    """Current time as a timezone-aware UTC datetime"""
    return datetime.now(timezone.utc)


def format_rfc3339(ts: datetime) -> str:
    """
    Format a datetime as RFC3339 with seconds precision.

    Naive datetimes are assumed to be UTC.

    Examples:
        2026-10-19 12:00:00.734+00:00 -> "2026-10-19T12:00:00+00:00"
    """
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts.isoformat(timespec="seconds")


def parse_rfc3339(value: str) -> datetime:
    """Parse an RFC3339 string, accepting a trailing 'Z' for UTC"""
    return datetime.fromisoformat(value.replace("Z", "+00:00"))
