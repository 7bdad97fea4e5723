"""
Work location and per-user location registration models.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from fieldclock.models.base_model import TimestampModel
from fieldclock.models.enums import RegistrationSource
from fieldclock.utils.datetime_utils import utcnow
from fieldclock.utils.geo_utils import Coordinate

__all__ = [
    "WorkLocation",
    "LocationRegistration",
]


class WorkLocation(TimestampModel):
    """
    Organization-owned geofence: a center coordinate plus radius.

    Admin-created; a session keeps referencing the same row for its lifetime.
    """

    __tablename__ = "work_locations"

    org_id: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(
        String(200),
        nullable=False,
    )
    address: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
    )
    latitude: Mapped[float] = mapped_column(
        Float,
        nullable=False,
    )
    longitude: Mapped[float] = mapped_column(
        Float,
        nullable=False,
    )
    radius_meters: Mapped[float] = mapped_column(
        Float,
        nullable=False,
        default=100.0,
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
        index=True,
    )
    is_main_office: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
    )

    registrations: Mapped[list["LocationRegistration"]] = relationship(
        "LocationRegistration",
        back_populates="location",
        lazy="select",
    )

    __table_args__ = (
        CheckConstraint(
            "latitude >= -90 AND latitude <= 90",
            name="ck_work_location_latitude_range",
        ),
        CheckConstraint(
            "longitude >= -180 AND longitude <= 180",
            name="ck_work_location_longitude_range",
        ),
        CheckConstraint(
            "radius_meters > 0",
            name="ck_work_location_radius_positive",
        ),
        Index(
            "idx_work_location_org_active",
            "org_id",
            "is_active",
        ),
    )

    @property
    def coordinate(self) -> Coordinate:
        return Coordinate(self.latitude, self.longitude)

    def __repr__(self) -> str:
        return (
            f"<WorkLocation(id={self.id}, name={self.name!r}, "
            f"radius={self.radius_meters}m)>"
        )


class LocationRegistration(TimestampModel):
    """
    Link between a user and a work location they may select at check-in.

    Created lazily (auto) on first proximity detection or explicitly (manual).
    Never auto-deleted.
    """

    __tablename__ = "location_registrations"

    user_id: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        index=True,
    )
    location_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("work_locations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    is_verified: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
    )
    source: Mapped[RegistrationSource] = mapped_column(
        Enum(RegistrationSource, name="registration_source_enum"),
        nullable=False,
        default=RegistrationSource.MANUAL,
    )
    registered_at: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
        default=utcnow,
    )
    notes: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
    )

    # Where the user stood when registering
    latitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    longitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    distance_meters: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    # Admin verification
    verified_by: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    verified_at: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)

    location: Mapped["WorkLocation"] = relationship(
        "WorkLocation",
        back_populates="registrations",
        lazy="joined",
    )

    __table_args__ = (
        UniqueConstraint(
            "user_id",
            "location_id",
            name="uq_registration_user_location",
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<LocationRegistration(user_id={self.user_id}, "
            f"location_id={self.location_id}, source={self.source.value})>"
        )
