from fieldclock.schemas.base import BaseDBSchema, BaseSchema
from fieldclock.schemas.location import (
    CoordinateSchema,
    LocationRegistrationResponse,
    NearestLocationResponse,
    RegisterLocationRequest,
    VerifyRegistrationRequest,
    WorkLocationCreate,
    WorkLocationResponse,
)
from fieldclock.schemas.schedule import ScheduleEntryResponse, ScheduleMatch
from fieldclock.schemas.session import (
    CheckInBody,
    CheckInRequest,
    CheckOutRequest,
    ElapsedResponse,
    LiveSessionResponse,
    PauseRequest,
    SessionEntryResponse,
)
from fieldclock.schemas.special_case import (
    SpecialCaseEventResponse,
    SpecialCasePayload,
    SpecialCaseRequest,
    SuggestedAction,
)

__all__ = [
    "BaseDBSchema",
    "BaseSchema",
    "CheckInBody",
    "CheckInRequest",
    "CheckOutRequest",
    "CoordinateSchema",
    "ElapsedResponse",
    "LiveSessionResponse",
    "LocationRegistrationResponse",
    "NearestLocationResponse",
    "PauseRequest",
    "RegisterLocationRequest",
    "ScheduleEntryResponse",
    "ScheduleMatch",
    "SessionEntryResponse",
    "SpecialCaseEventResponse",
    "SpecialCasePayload",
    "SpecialCaseRequest",
    "SuggestedAction",
    "VerifyRegistrationRequest",
    "WorkLocationCreate",
    "WorkLocationResponse",
]
