"""
Worked-time accounting.

Worked minutes are always derived from check_in_time, check_out_time,
paused_at and paused_duration_minutes; no live counter is stored.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from fieldclock.config.settings import settings
from fieldclock.utils.datetime_utils import minutes_between


@dataclass(frozen=True)
class HoursSummary:
    total_hours: float
    regular_hours: float
    overtime_hours: float
    needs_manager_review: bool


class TimeAccountant:
    """Elapsed-time and check-out hour calculations."""

    def __init__(
        self,
        overtime_threshold_hours: Optional[float] = None,
        manager_review_hours: Optional[float] = None,
    ):
        self.overtime_threshold_hours = (
            settings.OVERTIME_THRESHOLD_HOURS if overtime_threshold_hours is None else overtime_threshold_hours
        )
        self.manager_review_hours = (
            settings.MANAGER_REVIEW_HOURS if manager_review_hours is None else manager_review_hours
        )

    @staticmethod
    def pause_interval_minutes(session, now: datetime) -> float:
        """Minutes spent in the current pause, 0 when not paused."""
        if session.paused_at is None:
            return 0.0
        return max(0.0, minutes_between(session.paused_at, now))

    def worked_minutes(self, session, now: datetime) -> float:
        """
        Unrounded worked minutes at ``now``.

        A closed session is measured to its check-out; a paused one is
        frozen at the moment it was paused.
        """
        if session.check_out_time is not None:
            end = session.check_out_time
        elif session.paused_at is not None:
            end = min(session.paused_at, now)
        else:
            end = now
        raw = minutes_between(session.check_in_time, end) - (session.paused_duration_minutes or 0.0)
        return max(0.0, raw)

    def elapsed_worked_minutes(self, session, now: datetime) -> int:
        return int(self.worked_minutes(session, now))

    def summarize(self, session, check_out_time: datetime, is_emergency: bool = False) -> HoursSummary:
        """Hour split recorded at check-out."""
        end = check_out_time
        if session.paused_at is not None:
            end = min(session.paused_at, check_out_time)
        worked = max(
            0.0,
            minutes_between(session.check_in_time, end) - (session.paused_duration_minutes or 0.0),
        )
        total = round(worked / 60.0, 2)
        regular = round(min(total, self.overtime_threshold_hours), 2)
        overtime = round(max(0.0, total - self.overtime_threshold_hours), 2)
        return HoursSummary(
            total_hours=total,
            regular_hours=regular,
            overtime_hours=overtime,
            needs_manager_review=overtime > 0 or total > self.manager_review_hours or is_emergency,
        )
