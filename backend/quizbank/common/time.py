"""Timestamp helpers.

All persisted timestamps are naive UTC so that values read back from
PostgreSQL and SQLite compare cleanly with freshly created ones.
"""

from datetime import UTC, datetime


def utcnow() -> datetime:
    """Current UTC time without tzinfo."""
    return datetime.now(UTC).replace(tzinfo=None)
