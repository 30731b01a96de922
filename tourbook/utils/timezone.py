"""
Time helpers. Timestamps are stored as naive UTC datetimes.
"""
from datetime import datetime, timezone


def utcnow():
    """Current UTC time as a naive datetime (database storage format)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_epoch(value):
    """Seconds since the epoch (with microseconds) for a naive UTC datetime."""
    return value.replace(tzinfo=timezone.utc).timestamp()
