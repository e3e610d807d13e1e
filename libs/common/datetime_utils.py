"""Datetime utilities for timezone-aware UTC timestamps.

Usage:
    from libs.common.datetime_utils import utc_now

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )
"""

from datetime import date, datetime, timezone
from zoneinfo import ZoneInfo

from libs.common.config import get_settings


def utc_now() -> datetime:
    """Return timezone-aware UTC datetime.

    Always use this for timestamps in the database.
    """
    return datetime.now(timezone.utc)


def local_today() -> date:
    """Return today's date in the store's configured timezone."""
    return datetime.now(ZoneInfo(get_settings().TIMEZONE)).date()
