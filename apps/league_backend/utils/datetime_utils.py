"""
Datetime utility functions.
Calendar helpers for the weekly session catalog.
"""

from datetime import date, datetime, timedelta
from typing import Optional, Union
import pytz


def utcnow() -> datetime:
    """
    Get current UTC datetime using pytz.UTC.

    Returns:
        Current UTC datetime with pytz timezone information
    """
    return datetime.now(pytz.UTC)


def utc_today() -> date:
    """Current calendar date in UTC."""
    return utcnow().date()


def start_of_week_monday(day: date) -> date:
    """
    Get the Monday of the calendar week containing ``day``.

    Python weekday: Monday=0, Sunday=6, so the offset is the weekday itself.

    Examples:
        >>> start_of_week_monday(date(2024, 6, 6))
        datetime.date(2024, 6, 3)
        >>> start_of_week_monday(date(2024, 6, 9))
        datetime.date(2024, 6, 3)
    """
    return day - timedelta(days=day.weekday())


def day_in_week(week_monday: date, weekday: int) -> date:
    """Date of ``weekday`` (Monday=0) within the week starting at ``week_monday``."""
    return week_monday + timedelta(days=weekday)


def to_iso_date(value: Optional[Union[date, datetime, str]]) -> Optional[str]:
    """
    Format a date as YYYY-MM-DD.

    Strings are returned unchanged so values read back from SQLite (which may
    already be strings) pass straight through.
    """
    if value is None:
        return None
    if isinstance(value, str):
        return value
    if isinstance(value, datetime):
        return value.date().isoformat()
    return value.isoformat()


def to_iso_datetime(value: Optional[datetime]) -> Optional[str]:
    """ISO-8601 timestamp or None."""
    return value.isoformat() if value else None
