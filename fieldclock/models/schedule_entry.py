"""
Recurring schedule entries. Read-only input to the engine.
"""

from datetime import date, time
from typing import Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Time,
)
from sqlalchemy.orm import Mapped, mapped_column

from fieldclock.models.base_model import TimestampModel
from fieldclock.models.enums import ScheduleLocationType


class ScheduleEntry(TimestampModel):
    """
    One teaching slot. Either recurs weekly on ``day_of_week`` (Monday=0)
    or applies to a single ``schedule_date``. Times are wall-clock in the
    configured timezone; ``end_time <= start_time`` means the slot crosses
    midnight.
    """

    __tablename__ = "schedule_entries"

    user_id: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        index=True,
    )
    org_id: Mapped[Optional[str]] = mapped_column(
        String(64),
        nullable=True,
    )
    course_name: Mapped[str] = mapped_column(
        String(200),
        nullable=False,
    )
    day_of_week: Mapped[Optional[int]] = mapped_column(
        Integer,
        nullable=True,
    )
    schedule_date: Mapped[Optional[date]] = mapped_column(
        Date,
        nullable=True,
    )
    start_time: Mapped[time] = mapped_column(
        Time,
        nullable=False,
    )
    end_time: Mapped[time] = mapped_column(
        Time,
        nullable=False,
    )
    location_type: Mapped[ScheduleLocationType] = mapped_column(
        Enum(ScheduleLocationType, name="schedule_location_type_enum"),
        nullable=False,
        default=ScheduleLocationType.ONSITE,
    )
    online_platform: Mapped[Optional[str]] = mapped_column(
        String(100),
        nullable=True,
    )
    online_url: Mapped[Optional[str]] = mapped_column(
        String(500),
        nullable=True,
    )
    location_id: Mapped[Optional[str]] = mapped_column(
        String(36),
        ForeignKey("work_locations.id", ondelete="SET NULL"),
        nullable=True,
    )
    expected_student_count: Mapped[Optional[int]] = mapped_column(
        Integer,
        nullable=True,
    )
    is_active: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=True,
    )

    __table_args__ = (
        CheckConstraint(
            "day_of_week IS NULL OR (day_of_week >= 0 AND day_of_week <= 6)",
            name="ck_schedule_day_of_week_range",
        ),
        CheckConstraint(
            "day_of_week IS NOT NULL OR schedule_date IS NOT NULL",
            name="ck_schedule_day_or_date",
        ),
        Index(
            "idx_schedule_user_day",
            "user_id",
            "day_of_week",
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<ScheduleEntry(id={self.id}, course={self.course_name!r}, "
            f"{self.start_time}-{self.end_time})>"
        )
