"""Timezone-aware UTC helpers.

Usage:
    from libs.common.datetime_utils import utc_now

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )
"""

from datetime import date, datetime, timedelta, timezone


def utc_now() -> datetime:
    """Return timezone-aware UTC datetime. Use for every stored timestamp."""
    return datetime.now(timezone.utc)


def utc_today() -> date:
    """Current UTC calendar date; the bucket key for daily analytics."""
    return utc_now().date()


def days_ago(days: int) -> datetime:
    return utc_now() - timedelta(days=days)
