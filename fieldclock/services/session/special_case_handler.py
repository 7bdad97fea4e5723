"""
Special case handlers.

A closed dispatch table maps each SpecialCaseType to a handler that
validates the payload and decides the state effect. Handlers never touch
the session; the state machine logs the event and applies the outcome.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from fieldclock.config.settings import settings
from fieldclock.core.exceptions import ConfigurationError, InvalidSpecialCaseError
from fieldclock.models.enums import SpecialCaseEffect, SpecialCaseType
from fieldclock.schemas.special_case import SpecialCasePayload, SuggestedAction

SUGGESTED_ACTIONS: Dict[SpecialCaseType, List[Tuple[str, str]]] = {
    SpecialCaseType.EMERGENCY: [
        ("evacuation", "Building evacuation"),
        ("medical", "Medical emergency"),
        ("fire", "Fire"),
        ("earthquake", "Earthquake"),
        ("other", "Other emergency"),
    ],
    SpecialCaseType.NO_STUDENTS: [
        ("wait", "Wait 15 minutes"),
        ("cancel", "Cancel class"),
        ("online", "Switch to online"),
        ("record", "Record the lesson"),
    ],
    SpecialCaseType.LOW_ATTENDANCE: [
        ("continue", "Teach as planned and record video"),
        ("review", "Review for attendees"),
        ("reschedule", "Reschedule the lesson"),
        ("combine", "Combine with another class"),
    ],
    SpecialCaseType.INFRASTRUCTURE: [
        ("relocate", "Move to another room"),
        ("reschedule", "Reschedule class"),
        ("offline", "Teach without technology"),
        ("wait_repair", "Wait for repair"),
    ],
    SpecialCaseType.MEAL_BREAK: [
        ("15", "15 minute break"),
        ("30", "30 minute break"),
        ("60", "1 hour break"),
        ("custom", "Custom duration"),
    ],
}

CLOSING_EMERGENCIES = {"evacuation", "fire"}
FAILURE_TYPES = {"power", "internet", "equipment"}


@dataclass
class SpecialCaseOutcome:
    effect: SpecialCaseEffect
    action: Optional[str]
    reason: Optional[str]
    message: str
    payload: Dict[str, Any] = field(default_factory=dict)
    # Session fields the state machine sets alongside the effect
    updates: Dict[str, Any] = field(default_factory=dict)


Handler = Callable[[Any, SpecialCasePayload], SpecialCaseOutcome]


class SpecialCaseHandler:
    """
    Validates special case payloads and decides their effect.

    Raises ConfigurationError at construction if any case type lacks a
    handler.
    """

    def __init__(
        self,
        meal_break_min_minutes: Optional[int] = None,
        meal_break_max_minutes: Optional[int] = None,
        meal_break_default_minutes: Optional[int] = None,
        no_students_wait_minutes: Optional[int] = None,
    ):
        self.meal_break_min = (
            settings.MEAL_BREAK_MIN_MINUTES if meal_break_min_minutes is None else meal_break_min_minutes
        )
        self.meal_break_max = (
            settings.MEAL_BREAK_MAX_MINUTES if meal_break_max_minutes is None else meal_break_max_minutes
        )
        self.meal_break_default = (
            settings.MEAL_BREAK_DEFAULT_MINUTES if meal_break_default_minutes is None else meal_break_default_minutes
        )
        self.no_students_wait = (
            settings.NO_STUDENTS_WAIT_MINUTES if no_students_wait_minutes is None else no_students_wait_minutes
        )

        self._handlers: Dict[SpecialCaseType, Handler] = {
            SpecialCaseType.EMERGENCY: self._handle_emergency,
            SpecialCaseType.NO_STUDENTS: self._handle_no_students,
            SpecialCaseType.LOW_ATTENDANCE: self._handle_low_attendance,
            SpecialCaseType.INFRASTRUCTURE: self._handle_infrastructure,
            SpecialCaseType.MEAL_BREAK: self._handle_meal_break,
        }
        missing = set(SpecialCaseType) - set(self._handlers)
        if missing:
            raise ConfigurationError(
                "Special case types without a handler",
                {"missing": sorted(t.value for t in missing)},
            )

    @staticmethod
    def coerce_type(case_type: Union[SpecialCaseType, str]) -> SpecialCaseType:
        try:
            return SpecialCaseType(case_type)
        except ValueError as e:
            raise InvalidSpecialCaseError(str(case_type), f"Unknown special case type '{case_type}'") from e

    def handle(
        self,
        session,
        case_type: Union[SpecialCaseType, str],
        payload: Optional[SpecialCasePayload] = None,
    ) -> SpecialCaseOutcome:
        case_type = self.coerce_type(case_type)
        return self._handlers[case_type](session, payload or SpecialCasePayload())

    def suggested_actions(self, case_type: Union[SpecialCaseType, str]) -> List[SuggestedAction]:
        case_type = self.coerce_type(case_type)
        return [SuggestedAction(action=a, label=label) for a, label in SUGGESTED_ACTIONS[case_type]]

    @staticmethod
    def _require_action(
        case_type: SpecialCaseType,
        action: Optional[str],
        default: Optional[str] = None,
    ) -> str:
        action = action or default
        allowed = [a for a, _ in SUGGESTED_ACTIONS[case_type]]
        if action not in allowed:
            raise InvalidSpecialCaseError(
                case_type.value,
                f"Action must be one of: {', '.join(allowed)}",
                field="action",
            )
        return action

    # ------------------------------------------------------------------ #
    # Handlers
    # ------------------------------------------------------------------ #

    def _handle_emergency(self, session, payload: SpecialCasePayload) -> SpecialCaseOutcome:
        action = self._require_action(SpecialCaseType.EMERGENCY, payload.action, default="other")
        reason = payload.reason or f"Emergency: {action}"
        effect = SpecialCaseEffect.CLOSE if action in CLOSING_EMERGENCIES else SpecialCaseEffect.PAUSE
        return SpecialCaseOutcome(
            effect=effect,
            action=action,
            reason=reason,
            message=(
                "Emergency check-out recorded; session requires approval"
                if effect == SpecialCaseEffect.CLOSE
                else "Session paused for emergency"
            ),
            payload={"notes": payload.notes} if payload.notes else {},
            updates={"is_emergency": True, "emergency_reason": reason},
        )

    def _handle_no_students(self, session, payload: SpecialCasePayload) -> SpecialCaseOutcome:
        action = self._require_action(SpecialCaseType.NO_STUDENTS, payload.action)
        details: Dict[str, Any] = {"student_count": 0}
        messages = {
            "wait": f"Waiting {self.no_students_wait} minutes for students",
            "cancel": "Class cancelled: no students arrived",
            "online": "Switching class to online",
            "record": "Recording lesson for absent students",
        }
        if action == "wait":
            details["wait_duration"] = self.no_students_wait
        elif action == "online":
            details["platform"] = payload.extra.get("platform", "zoom")

        return SpecialCaseOutcome(
            effect=SpecialCaseEffect.CLOSE if action == "cancel" else SpecialCaseEffect.CONTINUE,
            action=action,
            reason=payload.reason or "No students present",
            message=messages[action],
            payload=details,
            updates={"actual_student_count": 0},
        )

    def _handle_low_attendance(self, session, payload: SpecialCasePayload) -> SpecialCaseOutcome:
        case = SpecialCaseType.LOW_ATTENDANCE.value
        if payload.actual_count is None:
            raise InvalidSpecialCaseError(case, "actual_count is required", field="actual_count")
        expected = payload.expected_count
        if expected is None:
            expected = getattr(session, "expected_student_count", None)
        if not expected:
            raise InvalidSpecialCaseError(case, "expected_count must be greater than zero", field="expected_count")

        action = self._require_action(SpecialCaseType.LOW_ATTENDANCE, payload.action, default="continue")
        rate = round(payload.actual_count / expected * 100, 1)
        return SpecialCaseOutcome(
            effect=SpecialCaseEffect.PAUSE if action == "reschedule" else SpecialCaseEffect.CONTINUE,
            action=action,
            reason=payload.reason or f"Low attendance ({payload.actual_count}/{expected})",
            message=f"Attendance {rate}% recorded",
            payload={
                "actual_count": payload.actual_count,
                "expected_count": expected,
                "attendance_rate": rate,
            },
            updates={
                "actual_student_count": payload.actual_count,
                "expected_student_count": expected,
            },
        )

    def _handle_infrastructure(self, session, payload: SpecialCasePayload) -> SpecialCaseOutcome:
        case = SpecialCaseType.INFRASTRUCTURE.value
        if payload.failure_type not in FAILURE_TYPES:
            raise InvalidSpecialCaseError(
                case,
                f"failure_type must be one of: {', '.join(sorted(FAILURE_TYPES))}",
                field="failure_type",
            )
        action = self._require_action(SpecialCaseType.INFRASTRUCTURE, payload.action)
        pauses = action in ("reschedule", "wait_repair")
        return SpecialCaseOutcome(
            effect=SpecialCaseEffect.PAUSE if pauses else SpecialCaseEffect.CONTINUE,
            action=action,
            reason=payload.reason or f"{payload.failure_type} failure",
            message=f"Infrastructure failure ({payload.failure_type}): {action}",
            payload={"failure_type": payload.failure_type},
        )

    def _handle_meal_break(self, session, payload: SpecialCasePayload) -> SpecialCaseOutcome:
        duration = payload.duration_minutes
        if duration is None and payload.action and payload.action.isdigit():
            duration = int(payload.action)
        if duration is None:
            duration = self.meal_break_default

        if not (self.meal_break_min <= duration <= self.meal_break_max):
            raise InvalidSpecialCaseError(
                SpecialCaseType.MEAL_BREAK.value,
                f"Break duration must be between {self.meal_break_min} and {self.meal_break_max} minutes",
                field="duration_minutes",
            )
        return SpecialCaseOutcome(
            effect=SpecialCaseEffect.PAUSE,
            action="meal_break",
            reason=payload.reason or f"Meal break ({duration} minutes)",
            message=f"Meal break started for {duration} minutes",
            payload={"duration_minutes": duration},
            updates={"break_type": "meal", "break_duration_hint": duration},
        )
