from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_utc_iso(dt: datetime) -> str:
    return dt.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def utc_now_iso() -> str:
    return to_utc_iso(utc_now())


def parse_utc_iso(ts: str) -> Optional[datetime]:
    s = (ts or "").strip()
    if not s:
        return None
    try:
        if s.endswith("Z"):
            s = s[: -len("Z")] + "+00:00"
        dt = datetime.fromisoformat(s)
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        return dt.astimezone(timezone.utc)
    except ValueError:
        return None


def parse_since(value: str) -> Optional[datetime]:
    """Parse a `since` query value.

    Accepts an ISO-8601 timestamp or a number of epoch milliseconds (what a
    browser's `Date.now()` produces). Returns None when the value is unusable.
    """
    s = (value or "").strip()
    if not s:
        return None
    try:
        millis = float(s)
    except ValueError:
        return parse_utc_iso(s)
    try:
        return datetime.fromtimestamp(millis / 1000.0, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        return None


def clock_label(dt: datetime) -> str:
    """Wall-clock label in local time, e.g. `3:04:05 PM`."""
    local = dt.astimezone()
    hour = local.hour % 12 or 12
    return f"{hour}:{local:%M:%S} {'AM' if local.hour < 12 else 'PM'}"
