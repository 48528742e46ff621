"""Datetime utilities for timezone-aware UTC timestamps.

Usage:
    from libs.common.datetime_utils import utc_now

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )
"""

from datetime import datetime, timezone


def utc_now() -> datetime:
    """Return timezone-aware UTC datetime.

    Always use this for timestamps in the database instead of the naive
    ``datetime.utcnow()``.
    """
    return datetime.now(timezone.utc)


def current_year() -> int:
    """Calendar year in UTC, used when stamping human-readable identifiers."""
    return utc_now().year
