"""
Timestamp helpers.

Events carry UTC ISO-8601 strings with millisecond precision and a trailing
``Z`` (the producer's native format). Keeping every stored value in exactly
this shape makes string order equal to chronological order, which the
window queries and the forward correlation both rely on.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional


def parse_timestamp(ts: str) -> Optional[datetime]:
    """Parse an ISO-8601 string into an aware UTC datetime, or None."""
    if not ts or not isinstance(ts, str):
        return None
    s = ts.strip().replace("Z", "+00:00")
    # sqlite-style "YYYY-MM-DD HH:MM:SS"
    if len(s) >= 19 and s[10] == " ":
        s = s[:10] + "T" + s[11:]
    try:
        dt = datetime.fromisoformat(s)
    except ValueError:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def format_timestamp(dt: datetime) -> str:
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    dt = dt.astimezone(timezone.utc)
    return dt.strftime("%Y-%m-%dT%H:%M:%S.") + f"{dt.microsecond // 1000:03d}Z"


def normalize_timestamp(ts: str) -> Optional[str]:
    dt = parse_timestamp(ts)
    return format_timestamp(dt) if dt else None


def utcnow() -> str:
    return format_timestamp(datetime.now(timezone.utc))


def shift_ms(ts: str, delta_ms: int) -> str:
    """Return ``ts`` moved by ``delta_ms`` milliseconds (negative moves back)."""
    dt = parse_timestamp(ts)
    if dt is None:
        raise ValueError(f"Invalid timestamp: {ts!r}")
    return format_timestamp(dt + timedelta(milliseconds=delta_ms))
