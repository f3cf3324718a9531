"""
DateTime utility functions for the application.
"""
from datetime import datetime, timezone


def utcnow():
    """
    Current time as a naive UTC datetime.

    All outbox timestamps are stored naive in UTC so that SQLite and
    PostgreSQL compare them the same way.
    """
    return datetime.now(timezone.utc).replace(tzinfo=None)


def format_iso(dt):
    """Format a naive UTC datetime as ISO-8601 with a trailing 'Z', or None."""
    if not dt:
        return None
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt.isoformat(timespec="seconds") + "Z"
