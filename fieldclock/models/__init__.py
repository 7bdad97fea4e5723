"""
ORM models for the field attendance engine
"""

from fieldclock.models.base_model import Base, BaseModel, TimestampModel
from fieldclock.models.enums import (
    CheckoutSource,
    EntryType,
    RegistrationSource,
    ScheduleLocationType,
    SessionEventType,
    SessionState,
    SpecialCaseEffect,
    SpecialCaseType,
    WorkLocationType,
)
from fieldclock.models.work_location import LocationRegistration, WorkLocation
from fieldclock.models.schedule_entry import ScheduleEntry
from fieldclock.models.session_entry import SessionEntry, SpecialCaseEvent

__all__ = [
    "Base",
    "BaseModel",
    "TimestampModel",
    "CheckoutSource",
    "EntryType",
    "RegistrationSource",
    "ScheduleLocationType",
    "SessionEventType",
    "SessionState",
    "SpecialCaseEffect",
    "SpecialCaseType",
    "WorkLocationType",
    "LocationRegistration",
    "WorkLocation",
    "ScheduleEntry",
    "SessionEntry",
    "SpecialCaseEvent",
]
