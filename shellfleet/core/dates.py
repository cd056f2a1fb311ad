"""Date/time display helpers."""

from __future__ import annotations

from datetime import datetime, timezone

from shellfleet.constants import MISSING_VALUE


def format_relative_time(timestamp: datetime | None, now: datetime | None = None) -> str:
    """Format a timestamp as '12s ago', '5m ago', '3h ago' or '2d ago'.

    Each tier truncates. Returns '-' when the timestamp is absent.
    """
    if timestamp is None:
        return MISSING_VALUE
    if timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=timezone.utc)
    current = now or datetime.now(timezone.utc)
    seconds = max(0, int((current - timestamp).total_seconds()))
    if seconds < 60:
        return f"{seconds}s ago"
    if seconds < 3600:
        return f"{seconds // 60}m ago"
    if seconds < 86400:
        return f"{seconds // 3600}h ago"
    return f"{seconds // 86400}d ago"
