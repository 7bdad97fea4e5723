"""
Date and time helpers.

All persisted timestamps are naive UTC. Schedule entries are wall-clock
times in the configured timezone, so matching converts between the two.
"""

from datetime import date, datetime, time, timezone
from typing import Optional

import pytz


def utcnow() -> datetime:
    """Current time as a naive UTC datetime"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def to_naive_utc(dt: datetime) -> datetime:
    """Normalize an aware datetime to naive UTC; naive values are assumed UTC already"""
    if dt.tzinfo is None:
        return dt
    return dt.astimezone(timezone.utc).replace(tzinfo=None)


def minutes_between(start: datetime, end: datetime) -> float:
    """Signed minutes from start to end"""
    return (end - start).total_seconds() / 60.0


class TimezoneConverter:
    """Timezone conversion between naive UTC and local wall-clock time"""

    def __init__(self, default_timezone: str = 'UTC'):
        self.default_timezone = default_timezone
        self._tz = pytz.timezone(default_timezone)

    def from_utc(self, dt: datetime, to_tz: Optional[str] = None) -> datetime:
        """Convert a naive UTC datetime to naive local wall-clock time"""
        tz_obj = pytz.timezone(to_tz) if to_tz else self._tz
        aware = pytz.utc.localize(to_naive_utc(dt))
        return aware.astimezone(tz_obj).replace(tzinfo=None)

    def to_utc(self, dt: datetime, from_tz: Optional[str] = None) -> datetime:
        """Convert a naive local wall-clock datetime to naive UTC"""
        tz_obj = pytz.timezone(from_tz) if from_tz else self._tz
        if dt.tzinfo is None:
            dt = tz_obj.localize(dt)
        return dt.astimezone(pytz.utc).replace(tzinfo=None)

    def combine(self, day: date, at: time) -> datetime:
        """Wall-clock date and time as naive local datetime"""
        return datetime.combine(day, at)
