"""
Enumerations shared by models, schemas and services.
"""

from enum import Enum


class EntryType(str, Enum):
    """What kind of work a session records"""
    TEACHING = "teaching"
    MEETING = "meeting"
    PREP = "prep"
    ADMIN = "admin"
    OTHER = "other"


class WorkLocationType(str, Enum):
    """Where the session takes place; only ONSITE is geofenced"""
    ONSITE = "onsite"
    REMOTE = "remote"
    ONLINE = "online"


class ScheduleLocationType(str, Enum):
    ONSITE = "onsite"
    ONLINE = "online"
    HYBRID = "hybrid"


class RegistrationSource(str, Enum):
    MANUAL = "manual"
    AUTO = "auto"


class CheckoutSource(str, Enum):
    MANUAL = "manual"
    AUTO = "auto"


class SessionState(str, Enum):
    """
    Persisted lifecycle state. IDLE is implicit: a user with no open
    session entry.
    """
    ACTIVE = "active"
    PAUSED = "paused"
    CLOSED = "closed"


class SpecialCaseType(str, Enum):
    EMERGENCY = "emergency"
    NO_STUDENTS = "no_students"
    LOW_ATTENDANCE = "low_attendance"
    INFRASTRUCTURE = "infrastructure"
    MEAL_BREAK = "meal_break"


class SessionEventType(str, Enum):
    """Kinds of entries in a session's special case log"""
    PAUSE = "pause"
    RESUME = "resume"
    EMERGENCY = "emergency"
    NO_STUDENTS = "no_students"
    LOW_ATTENDANCE = "low_attendance"
    INFRASTRUCTURE = "infrastructure"
    MEAL_BREAK = "meal_break"


class SpecialCaseEffect(str, Enum):
    """State effect a special case handler asks the state machine to apply"""
    CONTINUE = "continue"
    PAUSE = "pause"
    CLOSE = "close"
