"""
Session request and response schemas.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import Field

from fieldclock.models.enums import CheckoutSource, EntryType, SessionState, WorkLocationType
from fieldclock.schemas.base import BaseDBSchema, BaseSchema
from fieldclock.schemas.location import CoordinateSchema
from fieldclock.schemas.special_case import SpecialCaseEventResponse

__all__ = [
    "CheckInBody",
    "CheckInRequest",
    "PauseRequest",
    "CheckOutRequest",
    "SessionEntryResponse",
    "LiveSessionResponse",
    "ElapsedResponse",
]


class CheckInBody(BaseSchema):
    """
    Check-in parameters. Unset fields are prefilled from a schedule match
    when one exists; explicitly set fields always win.
    """

    org_id: str = Field(..., min_length=1)
    entry_type: Optional[EntryType] = Field(None, description="Defaults to teaching on a schedule match, else other")
    work_location: Optional[WorkLocationType] = Field(None, description="Defaults to onsite")
    course_name: Optional[str] = Field(None, max_length=200)
    location_id: Optional[str] = Field(None, description="Selected work location")
    online_platform: Optional[str] = Field(None, max_length=100)
    online_url: Optional[str] = Field(None, max_length=500)
    coordinate: Optional[CoordinateSchema] = Field(
        None,
        description="Client-reported coordinate; the location provider is used when absent",
    )
    expected_student_count: Optional[int] = Field(None, ge=0)
    notes: Optional[str] = None
    use_schedule: bool = Field(True, description="Run schedule matching to prefill fields")


class CheckInRequest(CheckInBody):
    user_id: str = Field(..., min_length=1)


class PauseRequest(BaseSchema):
    reason: Optional[str] = Field(None, max_length=500)
    break_type: Optional[str] = Field(None, max_length=50)
    duration_minutes: Optional[int] = Field(None, ge=0, description="Expected break length (hint only)")


class CheckOutRequest(BaseSchema):
    notes: Optional[str] = None
    actual_student_count: Optional[int] = Field(None, ge=0)


class SessionEntryResponse(BaseDBSchema):
    user_id: str
    org_id: str
    entry_type: EntryType
    work_location: WorkLocationType
    state: SessionState
    session_paused: bool

    check_in_time: datetime
    check_out_time: Optional[datetime] = None
    paused_at: Optional[datetime] = None
    paused_duration_minutes: float
    break_type: Optional[str] = None

    schedule_entry_id: Optional[str] = None
    location_id: Optional[str] = None
    course_name: Optional[str] = None
    online_platform: Optional[str] = None
    online_url: Optional[str] = None
    actual_student_count: Optional[int] = None
    expected_student_count: Optional[int] = None
    notes: Optional[str] = None

    check_in_latitude: Optional[float] = None
    check_in_longitude: Optional[float] = None
    location_verified: bool = False
    schedule_variance_minutes: Optional[int] = None
    schedule_confidence: Optional[float] = None

    checkout_source: Optional[CheckoutSource] = None
    total_hours: Optional[float] = None
    regular_hours: Optional[float] = None
    overtime_hours: Optional[float] = None
    needs_manager_review: bool = False

    last_status_change: Optional[datetime] = None
    status_change_reason: Optional[str] = None
    is_emergency: bool = False
    emergency_reason: Optional[str] = None

    special_case_log: List[SpecialCaseEventResponse] = Field(default_factory=list)


class LiveSessionResponse(BaseSchema):
    session: SessionEntryResponse
    elapsed_minutes: int = Field(..., ge=0)
    location_warning: Optional[str] = None


class ElapsedResponse(BaseSchema):
    session_id: str
    elapsed_minutes: int = Field(..., ge=0)
