"""
Standardized Date/Time Handling Utilities

RULES:
- Timestamps are stored as timezone-aware UTC datetimes (now_utc())
- Streak days are calendar days in GAMIFY_TIMEZONE (to_day())
- Never mix naive and aware datetimes: naive values are read as GAMIFY_TIMEZONE
"""

import logging
from datetime import datetime, date, time, timedelta, timezone
from typing import Optional, Union
from zoneinfo import ZoneInfo

from gamify import config

logger = logging.getLogger(__name__)

UTC = timezone.utc


def get_timezone() -> ZoneInfo:
    """Timezone used for day boundaries"""
    return ZoneInfo(config.GAMIFY_TIMEZONE)


def now_utc() -> datetime:
    """
    Get current datetime in UTC (timezone-aware)

    Returns:
        Current datetime in UTC with timezone info
    """
    return datetime.now(UTC)


def to_utc(dt: datetime) -> datetime:
    """Convert datetime to UTC, treating naive values as local"""
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=get_timezone())
    return dt.astimezone(UTC)


def to_day(value: Union[date, datetime, None] = None) -> date:
    """
    Truncate a moment to its local calendar day (midnight alignment)

    Args:
        value: date, datetime (aware or naive) or None for "now"

    Returns:
        The calendar day in GAMIFY_TIMEZONE
    """
    if value is None:
        return datetime.now(get_timezone()).date()
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.date()
        return value.astimezone(get_timezone()).date()
    return value


def today() -> date:
    """Today's date in GAMIFY_TIMEZONE"""
    return to_day(None)


def yesterday(reference: Optional[date] = None) -> date:
    """The day before reference (default: today)"""
    return (reference or today()) - timedelta(days=1)


def days_between(earlier: date, later: date) -> int:
    """Whole days from earlier to later (negative if later is before earlier)"""
    return (later - earlier).days


def start_of_day(day: date) -> datetime:
    """Local midnight of day, as aware UTC datetime"""
    return datetime.combine(day, time.min, tzinfo=get_timezone()).astimezone(UTC)


def start_of_month(moment: datetime) -> datetime:
    """Local midnight of the first day of moment's month, as aware UTC datetime"""
    local_day = to_day(moment)
    return start_of_day(local_day.replace(day=1))
