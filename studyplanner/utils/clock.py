"""Timestamp helpers shared by the ledger and the timer client."""

import math
from datetime import datetime, timezone


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_iso(dt: datetime) -> str:
    """Render `dt` as `YYYY-MM-DDTHH:MM:SS.mmmZ` in UTC.

    The fixed width keeps string comparison in chronological order.
    """
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt = dt.astimezone(timezone.utc)
    return dt.strftime("%Y-%m-%dT%H:%M:%S.") + f"{dt.microsecond // 1000:03d}Z"


def utc_now_iso() -> str:
    """Return the current UTC time as an ISO-8601 string with milliseconds."""
    return to_iso(utc_now())


def parse_iso(value: str) -> datetime:
    """Parse an ISO-8601 string, accepting a trailing `Z` for UTC."""
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    dt = datetime.fromisoformat(value)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def duration_minutes(start: str, end: str) -> int:
    """Whole minutes between two ISO timestamps, rounded half up, never negative."""
    elapsed_ms = (parse_iso(end) - parse_iso(start)).total_seconds() * 1000.0
    return max(0, int(math.floor(elapsed_ms / 60000.0 + 0.5)))


def fmt_mmss(seconds: int) -> str:
    """Format a countdown as MM:SS, clamping negatives to zero."""
    if seconds < 0:
        seconds = 0
    return f"{seconds // 60:02}:{seconds % 60:02}"
