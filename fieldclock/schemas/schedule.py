"""
Schedule match schema. Computed per check, never persisted.
"""

from datetime import date, datetime, time
from typing import Optional

from pydantic import Field

from fieldclock.models.enums import ScheduleLocationType
from fieldclock.schemas.base import BaseDBSchema, BaseSchema

__all__ = ["ScheduleEntryResponse", "ScheduleMatch"]


class ScheduleMatch(BaseSchema):
    """
    Confidence-scored pairing of "now" with a schedule entry.

    ``variance_minutes`` is signed: negative means now is before the start.
    ``start``/``end`` are naive wall-clock datetimes in the configured timezone.
    """

    schedule_entry_id: str = Field(..., description="Matched schedule entry")
    confidence_score: float = Field(..., ge=0, le=100)
    variance_minutes: int = Field(..., description="Minutes from start to now")
    is_match: bool

    course_name: str
    start: datetime
    end: datetime
    location_type: ScheduleLocationType
    online_platform: Optional[str] = None
    online_url: Optional[str] = None
    location_id: Optional[str] = None
    expected_student_count: Optional[int] = None

    is_late: bool = False
    is_early: bool = False
    is_on_time: bool = False


class ScheduleEntryResponse(BaseDBSchema):
    """A stored schedule slot; times are wall-clock in the configured timezone."""

    user_id: str
    org_id: Optional[str] = None
    course_name: str
    day_of_week: Optional[int] = None
    schedule_date: Optional[date] = None
    start_time: time
    end_time: time
    location_type: ScheduleLocationType
    online_platform: Optional[str] = None
    online_url: Optional[str] = None
    location_id: Optional[str] = None
    expected_student_count: Optional[int] = None
    is_active: bool
