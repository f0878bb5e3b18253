"""Datetime utilities for timezone-aware UTC timestamps.

Usage:
    from libs.common.datetime_utils import utc_now

    paid_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )
"""

from datetime import datetime, timedelta, timezone


def utc_now() -> datetime:
    """Return timezone-aware UTC datetime.

    Always use this for timestamps written to the database.
    """
    return datetime.now(timezone.utc)


def minutes_ago(minutes: int) -> datetime:
    """Return the UTC datetime ``minutes`` before now."""
    return utc_now() - timedelta(minutes=minutes)
