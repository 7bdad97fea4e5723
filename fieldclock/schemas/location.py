"""
Work location and registration schemas.
"""

from datetime import datetime
from typing import Optional

from pydantic import Field

from fieldclock.models.enums import RegistrationSource
from fieldclock.schemas.base import BaseDBSchema, BaseSchema
from fieldclock.utils.geo_utils import Coordinate

__all__ = [
    "CoordinateSchema",
    "WorkLocationCreate",
    "WorkLocationResponse",
    "LocationRegistrationResponse",
    "NearestLocationResponse",
    "RegisterLocationRequest",
    "VerifyRegistrationRequest",
]


class CoordinateSchema(BaseSchema):
    """Raw coordinate reading reported by a client"""

    latitude: float = Field(..., ge=-90, le=90, description="Latitude in degrees")
    longitude: float = Field(..., ge=-180, le=180, description="Longitude in degrees")
    accuracy_meters: Optional[float] = Field(
        None,
        ge=0,
        description="Reported GPS accuracy",
    )

    def to_coordinate(self) -> Coordinate:
        return Coordinate(self.latitude, self.longitude)


class WorkLocationCreate(BaseSchema):
    org_id: str = Field(..., min_length=1, description="Owning organization")
    name: str = Field(..., min_length=1, max_length=200, description="Display name")
    address: Optional[str] = Field(None, description="Street address")
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)
    radius_meters: Optional[float] = Field(
        None,
        gt=0,
        le=50000,
        description="Geofence radius; defaults to the configured radius",
    )
    is_main_office: bool = Field(False, description="Organization's main office")


class WorkLocationResponse(BaseDBSchema):
    org_id: str
    name: str
    address: Optional[str] = None
    latitude: float
    longitude: float
    radius_meters: float
    is_active: bool
    is_main_office: bool


class LocationRegistrationResponse(BaseDBSchema):
    user_id: str
    location_id: str
    is_verified: bool
    source: RegistrationSource
    registered_at: datetime
    notes: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    distance_meters: Optional[float] = None
    verified_by: Optional[str] = None
    verified_at: Optional[datetime] = None
    location: Optional[WorkLocationResponse] = None


class NearestLocationResponse(BaseSchema):
    """Closest registered location within its radius plus buffer"""

    location: WorkLocationResponse
    registration_id: str
    distance_meters: float = Field(..., ge=0)


class RegisterLocationRequest(BaseSchema):
    """Manual registration at a work location the user is standing in"""

    coordinate: CoordinateSchema
    notes: Optional[str] = Field(None, max_length=500)


class VerifyRegistrationRequest(BaseSchema):
    verified: bool = True
    notes: Optional[str] = Field(None, max_length=500)
