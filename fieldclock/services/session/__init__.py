from fieldclock.services.session.session_lock import SessionLockRegistry
from fieldclock.services.session.session_service import SessionService
from fieldclock.services.session.special_case_handler import (
    SUGGESTED_ACTIONS,
    SpecialCaseHandler,
    SpecialCaseOutcome,
)
from fieldclock.services.session.state_machine import CheckInParams, SessionStateMachine
from fieldclock.services.session.time_accountant import HoursSummary, TimeAccountant

__all__ = [
    "CheckInParams",
    "HoursSummary",
    "SUGGESTED_ACTIONS",
    "SessionLockRegistry",
    "SessionService",
    "SessionStateMachine",
    "SpecialCaseHandler",
    "SpecialCaseOutcome",
    "TimeAccountant",
]
