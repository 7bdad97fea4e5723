"""
Session lifecycle state machine.

    Idle --check_in--> Active --pause--> Paused --resume--> Active
    Active | Paused --check_out--> Closed (terminal)

Idle is the absence of an open entry for the user. Every guard runs before
the first mutation, and callers run transitions inside a UnitOfWork, so a
rejected transition leaves nothing behind.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Dict, FrozenSet, Optional, Tuple, Union

from fieldclock.config.logging import get_logger
from fieldclock.core.exceptions import (
    AlreadyActiveError,
    InvalidTransitionError,
    LocationRequiredError,
    MissingCourseNameError,
    MissingPlatformError,
)
from fieldclock.models.enums import (
    CheckoutSource,
    EntryType,
    SessionEventType,
    SessionState,
    SpecialCaseEffect,
    SpecialCaseType,
    WorkLocationType,
)
from fieldclock.models.session_entry import SessionEntry, SpecialCaseEvent
from fieldclock.repositories.session_entry_repository import SessionEntryRepository
from fieldclock.schemas.special_case import SpecialCasePayload
from fieldclock.services.session.special_case_handler import SpecialCaseHandler, SpecialCaseOutcome
from fieldclock.services.session.time_accountant import TimeAccountant

logger = get_logger(__name__)

ALLOWED_FROM: Dict[str, FrozenSet[SessionState]] = {
    "pause": frozenset({SessionState.ACTIVE}),
    "resume": frozenset({SessionState.PAUSED}),
    "check out": frozenset({SessionState.ACTIVE, SessionState.PAUSED}),
    "report a special case on": frozenset({SessionState.ACTIVE, SessionState.PAUSED}),
}


@dataclass
class CheckInParams:
    """Fully resolved check-in input, after schedule prefill and location lookup."""
    user_id: str
    org_id: str
    entry_type: EntryType = EntryType.OTHER
    work_location: WorkLocationType = WorkLocationType.ONSITE
    course_name: Optional[str] = None
    location_id: Optional[str] = None
    online_platform: Optional[str] = None
    online_url: Optional[str] = None
    schedule_entry_id: Optional[str] = None
    schedule_bypass: bool = False
    check_in_latitude: Optional[float] = None
    check_in_longitude: Optional[float] = None
    location_verified: bool = False
    schedule_variance_minutes: Optional[int] = None
    schedule_confidence: Optional[float] = None
    expected_student_count: Optional[int] = None
    notes: Optional[str] = None


def append_note(existing: Optional[str], note: Optional[str]) -> Optional[str]:
    if not note:
        return existing
    return f"{existing}\n{note}" if existing else note


class SessionStateMachine:
    """Transitions over a SessionEntry through its repository."""

    def __init__(
        self,
        accountant: Optional[TimeAccountant] = None,
        special_cases: Optional[SpecialCaseHandler] = None,
    ):
        self.accountant = accountant or TimeAccountant()
        self.special_cases = special_cases or SpecialCaseHandler()

    @staticmethod
    def state_of(entry: Optional[SessionEntry]) -> str:
        return "idle" if entry is None else entry.state.value

    def _ensure(self, entry: SessionEntry, event: str) -> None:
        if entry.state not in ALLOWED_FROM[event]:
            raise InvalidTransitionError(entry.state.value, event, entry.id)

    def _log_event(
        self,
        repo: SessionEntryRepository,
        entry: SessionEntry,
        event_type: str,
        now: datetime,
        action: Optional[str] = None,
        reason: Optional[str] = None,
        payload: Optional[dict] = None,
        message: Optional[str] = None,
    ) -> SpecialCaseEvent:
        return repo.append_event(
            entry,
            SpecialCaseEvent(
                event_type=event_type,
                action=action,
                reason=reason,
                payload=payload or {},
                message=message,
                timestamp=now,
            ),
        )

    # ------------------------------------------------------------------ #
    # Transitions
    # ------------------------------------------------------------------ #

    def check_in(self, repo: SessionEntryRepository, params: CheckInParams, now: datetime) -> SessionEntry:
        existing = repo.get_open_session(params.user_id)
        if existing is not None:
            raise AlreadyActiveError(params.user_id, existing.id)

        if (
            params.work_location == WorkLocationType.ONSITE
            and not params.location_id
            and not params.schedule_bypass
        ):
            raise LocationRequiredError()
        if params.entry_type == EntryType.TEACHING and not params.course_name:
            raise MissingCourseNameError()
        if params.work_location == WorkLocationType.ONLINE and not params.online_platform:
            raise MissingPlatformError()

        entry = repo.create_session(
            SessionEntry(
                user_id=params.user_id,
                org_id=params.org_id,
                entry_type=params.entry_type,
                work_location=params.work_location,
                state=SessionState.ACTIVE,
                check_in_time=now,
                paused_duration_minutes=0.0,
                schedule_entry_id=params.schedule_entry_id,
                location_id=params.location_id,
                course_name=params.course_name,
                online_platform=params.online_platform,
                online_url=params.online_url,
                expected_student_count=params.expected_student_count,
                notes=params.notes,
                check_in_latitude=params.check_in_latitude,
                check_in_longitude=params.check_in_longitude,
                location_verified=params.location_verified,
                schedule_variance_minutes=params.schedule_variance_minutes,
                schedule_confidence=params.schedule_confidence,
                last_status_change=now,
                status_change_reason="Checked in",
            )
        )
        logger.info(
            f"check_in {params.entry_type.value}/{params.work_location.value}",
            extra={"session_id": entry.id, "user_id": params.user_id, "org_id": params.org_id},
        )
        return entry

    def pause(
        self,
        repo: SessionEntryRepository,
        entry: SessionEntry,
        now: datetime,
        reason: Optional[str] = None,
        break_type: Optional[str] = None,
        duration_hint: Optional[int] = None,
        log_event: bool = True,
    ) -> SessionEntry:
        """Active -> Paused. The worked-time counter is frozen at ``now``."""
        self._ensure(entry, "pause")
        worked = self.accountant.elapsed_worked_minutes(entry, now)

        repo.update_session(entry, {
            "state": SessionState.PAUSED,
            "paused_at": now,
            "worked_minutes_at_pause": worked,
            "break_type": break_type,
            "break_duration_hint": duration_hint,
            "last_status_change": now,
            "status_change_reason": reason or "Paused",
        })
        if log_event:
            self._log_event(
                repo, entry, SessionEventType.PAUSE.value, now,
                action=break_type,
                reason=reason,
                payload={"duration_minutes": duration_hint, "worked_minutes": worked},
            )
        logger.info("pause", extra={"session_id": entry.id, "user_id": entry.user_id})
        return entry

    def resume(self, repo: SessionEntryRepository, entry: SessionEntry, now: datetime) -> SessionEntry:
        """Paused -> Active. The pause interval is added to paused_duration_minutes."""
        self._ensure(entry, "resume")
        interval = self.accountant.pause_interval_minutes(entry, now)

        repo.update_session(entry, {
            "state": SessionState.ACTIVE,
            "paused_duration_minutes": (entry.paused_duration_minutes or 0.0) + interval,
            "paused_at": None,
            "worked_minutes_at_pause": None,
            "break_type": None,
            "break_duration_hint": None,
            "last_status_change": now,
            "status_change_reason": "Resumed",
        })
        self._log_event(
            repo, entry, SessionEventType.RESUME.value, now,
            payload={"paused_minutes": round(interval, 2)},
        )
        logger.info(
            f"resume after {round(interval, 1)} paused minutes",
            extra={"session_id": entry.id, "user_id": entry.user_id},
        )
        return entry

    def check_out(
        self,
        repo: SessionEntryRepository,
        entry: SessionEntry,
        now: datetime,
        source: CheckoutSource = CheckoutSource.MANUAL,
        notes: Optional[str] = None,
        actual_student_count: Optional[int] = None,
    ) -> SessionEntry:
        """
        Active | Paused -> Closed. An open pause is folded into
        paused_duration_minutes first. Cancelling monitoring is left to the
        caller once the close has been committed.
        """
        self._ensure(entry, "check out")

        paused_total = entry.paused_duration_minutes or 0.0
        if entry.paused_at is not None:
            paused_total += self.accountant.pause_interval_minutes(entry, now)
        repo.update_session(entry, {"paused_duration_minutes": paused_total, "paused_at": None})

        summary = self.accountant.summarize(entry, now, is_emergency=entry.is_emergency)
        values = {
            "checkout_source": source,
            "notes": append_note(entry.notes, notes),
            "total_hours": summary.total_hours,
            "regular_hours": summary.regular_hours,
            "overtime_hours": summary.overtime_hours,
            "needs_manager_review": summary.needs_manager_review,
            "worked_minutes_at_pause": None,
            "last_status_change": now,
            "status_change_reason": "Auto check-out" if source == CheckoutSource.AUTO else "Checked out",
        }
        if actual_student_count is not None:
            values["actual_student_count"] = actual_student_count
        repo.close_session(entry, now, values)

        logger.info(
            f"check_out ({source.value}) total={summary.total_hours}h overtime={summary.overtime_hours}h",
            extra={"session_id": entry.id, "user_id": entry.user_id},
        )
        return entry

    def special_case(
        self,
        repo: SessionEntryRepository,
        entry: SessionEntry,
        case_type: Union[SpecialCaseType, str],
        payload: Optional[SpecialCasePayload],
        now: datetime,
    ) -> Tuple[SessionEntry, SpecialCaseOutcome]:
        """
        Log a special case and apply its effect. The event is appended for
        every accepted case, whether or not the state changes.
        """
        self._ensure(entry, "report a special case on")
        case_type = self.special_cases.coerce_type(case_type)
        outcome = self.special_cases.handle(entry, case_type, payload)

        self._log_event(
            repo, entry, case_type.value, now,
            action=outcome.action,
            reason=outcome.reason,
            payload=outcome.payload,
            message=outcome.message,
        )
        if outcome.updates:
            repo.update_session(entry, outcome.updates)

        logger.info(
            f"special_case {case_type.value}/{outcome.action} -> {outcome.effect.value}",
            extra={"session_id": entry.id, "user_id": entry.user_id},
        )

        if outcome.effect == SpecialCaseEffect.PAUSE and entry.state == SessionState.ACTIVE:
            self.pause(
                repo, entry, now,
                reason=outcome.reason,
                break_type=outcome.updates.get("break_type", case_type.value),
                duration_hint=outcome.updates.get("break_duration_hint"),
                log_event=False,
            )
        elif outcome.effect == SpecialCaseEffect.CLOSE:
            self.check_out(
                repo, entry, now,
                source=CheckoutSource.MANUAL,
                notes=f"[{case_type.value}] {outcome.message}",
            )
        return entry, outcome
