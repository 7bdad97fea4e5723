"""
Session entry aggregate and its append-only special case log.
"""

from datetime import datetime
from typing import Any, Optional

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    event,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from fieldclock.models.base_model import BaseModel, TimestampModel
from fieldclock.models.enums import (
    CheckoutSource,
    EntryType,
    SessionState,
    WorkLocationType,
)
from fieldclock.utils.datetime_utils import utcnow

__all__ = [
    "SessionEntry",
    "SpecialCaseEvent",
]


class SessionEntry(TimestampModel):
    """
    One check-in-to-check-out work period for a user.

    Only check_in_time, check_out_time and paused_duration_minutes feed
    elapsed time; worked minutes are always derived, never stored live.
    """

    __tablename__ = "session_entries"

    user_id: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        index=True,
    )
    org_id: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        index=True,
    )
    entry_type: Mapped[EntryType] = mapped_column(
        Enum(EntryType, name="entry_type_enum"),
        nullable=False,
        default=EntryType.OTHER,
    )
    work_location: Mapped[WorkLocationType] = mapped_column(
        Enum(WorkLocationType, name="work_location_type_enum"),
        nullable=False,
        default=WorkLocationType.ONSITE,
    )
    state: Mapped[SessionState] = mapped_column(
        Enum(SessionState, name="session_state_enum"),
        nullable=False,
        default=SessionState.ACTIVE,
        index=True,
    )

    # Timing
    check_in_time: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
    )
    check_out_time: Mapped[Optional[datetime]] = mapped_column(
        DateTime,
        nullable=True,
    )
    paused_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime,
        nullable=True,
    )
    paused_duration_minutes: Mapped[float] = mapped_column(
        Float,
        nullable=False,
        default=0.0,
    )
    worked_minutes_at_pause: Mapped[Optional[int]] = mapped_column(
        Integer,
        nullable=True,
    )
    break_type: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    break_duration_hint: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    # References
    schedule_entry_id: Mapped[Optional[str]] = mapped_column(
        String(36),
        ForeignKey("schedule_entries.id", ondelete="SET NULL"),
        nullable=True,
    )
    location_id: Mapped[Optional[str]] = mapped_column(
        String(36),
        ForeignKey("work_locations.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    # Teaching / online metadata
    course_name: Mapped[Optional[str]] = mapped_column(String(200), nullable=True)
    online_platform: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    online_url: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    actual_student_count: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    expected_student_count: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # Check-in verification
    check_in_latitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    check_in_longitude: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    location_verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    schedule_variance_minutes: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    schedule_confidence: Mapped[Optional[float]] = mapped_column(Float, nullable=True)

    # Check-out accounting
    checkout_source: Mapped[Optional[CheckoutSource]] = mapped_column(
        Enum(CheckoutSource, name="checkout_source_enum"),
        nullable=True,
    )
    total_hours: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    regular_hours: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    overtime_hours: Mapped[Optional[float]] = mapped_column(Float, nullable=True)
    needs_manager_review: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Status trail
    last_status_change: Mapped[Optional[datetime]] = mapped_column(DateTime, nullable=True)
    status_change_reason: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)

    # Emergency flagging
    is_emergency: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    emergency_reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    special_case_log: Mapped[list["SpecialCaseEvent"]] = relationship(
        "SpecialCaseEvent",
        back_populates="session",
        cascade="all, delete-orphan",
        order_by="SpecialCaseEvent.sequence",
        lazy="selectin",
    )

    __table_args__ = (
        # At most one open session per user
        Index(
            "uq_session_open_per_user",
            "user_id",
            unique=True,
            sqlite_where=text("check_out_time IS NULL"),
            postgresql_where=text("check_out_time IS NULL"),
        ),
        CheckConstraint(
            "paused_duration_minutes >= 0",
            name="ck_session_paused_duration_non_negative",
        ),
        Index(
            "idx_session_org_open",
            "org_id",
            "check_out_time",
        ),
        Index(
            "idx_session_user_check_in",
            "user_id",
            "check_in_time",
        ),
    )

    @property
    def session_paused(self) -> bool:
        return self.state == SessionState.PAUSED

    @property
    def is_open(self) -> bool:
        return self.check_out_time is None

    def __repr__(self) -> str:
        return (
            f"<SessionEntry(id={self.id}, user_id={self.user_id}, "
            f"state={self.state.value})>"
        )


class SpecialCaseEvent(BaseModel):
    """
    Immutable audit entry on a session. Rows are inserted, never updated.
    """

    __tablename__ = "special_case_events"

    session_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("session_entries.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    sequence: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
    )
    event_type: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
    )
    action: Mapped[Optional[str]] = mapped_column(String(50), nullable=True)
    reason: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    payload: Mapped[Optional[dict[str, Any]]] = mapped_column(JSON, nullable=True)
    message: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    timestamp: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
        default=utcnow,
    )

    session: Mapped["SessionEntry"] = relationship(
        "SessionEntry",
        back_populates="special_case_log",
    )

    def __repr__(self) -> str:
        return (
            f"<SpecialCaseEvent(session_id={self.session_id}, "
            f"type={self.event_type}, action={self.action})>"
        )


@event.listens_for(SpecialCaseEvent, 'before_update')
def reject_special_case_event_update(mapper, connection, target):
    """Special case log entries are append-only."""
    raise ValueError("SpecialCaseEvent rows are immutable")
