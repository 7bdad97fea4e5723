"""
Special case request/payload schemas.
"""

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import Field

from fieldclock.models.enums import SpecialCaseType
from fieldclock.schemas.base import BaseSchema

__all__ = [
    "SpecialCasePayload",
    "SpecialCaseRequest",
    "SpecialCaseEventResponse",
    "SuggestedAction",
]


class SpecialCasePayload(BaseSchema):
    """
    Union of fields any special case handler may read.

    Which fields are required depends on the case type; the handler
    validates them.
    """

    action: Optional[str] = Field(None, max_length=50, description="Chosen action")
    reason: Optional[str] = Field(None, max_length=500)
    notes: Optional[str] = None
    actual_count: Optional[int] = Field(None, ge=0, description="Students present")
    expected_count: Optional[int] = Field(None, ge=0, description="Students expected")
    failure_type: Optional[str] = Field(None, max_length=50, description="power, internet, equipment")
    duration_minutes: Optional[int] = Field(None, description="Requested break length")
    extra: Dict[str, Any] = Field(default_factory=dict)


class SpecialCaseRequest(BaseSchema):
    case_type: SpecialCaseType
    payload: SpecialCasePayload = Field(default_factory=SpecialCasePayload)


class SpecialCaseEventResponse(BaseSchema):
    id: str
    sequence: int
    event_type: str
    action: Optional[str] = None
    reason: Optional[str] = None
    payload: Optional[Dict[str, Any]] = None
    message: Optional[str] = None
    timestamp: datetime


class SuggestedAction(BaseSchema):
    action: str
    label: str
