"""
Timestamp helpers. All stored and returned timestamps are timezone-aware UTC.
"""

from datetime import datetime, timezone


def utc_now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def from_epoch(seconds: float) -> datetime:
    """Aware UTC datetime for an epoch timestamp (cache expiry, ring creation)."""
    return datetime.fromtimestamp(seconds, tz=timezone.utc)
