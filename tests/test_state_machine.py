from datetime import timedelta

import pytest

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
    SessionState,
    SpecialCaseType,
    WorkLocationType,
)
from fieldclock.models.session_entry import SessionEntry, SpecialCaseEvent
from fieldclock.repositories.session_entry_repository import SessionEntryRepository
from fieldclock.schemas.special_case import SpecialCasePayload
from fieldclock.services.base.unit_of_work import UnitOfWork
from fieldclock.services.session.state_machine import CheckInParams, SessionStateMachine

from tests.conftest import NOW, ORG_ID, USER_ID


@pytest.fixture
def machine():
    return SessionStateMachine()


def online_params(**overrides):
    values = dict(
        user_id=USER_ID,
        org_id=ORG_ID,
        work_location=WorkLocationType.ONLINE,
        online_platform="zoom",
    )
    values.update(overrides)
    return CheckInParams(**values)


def check_in(session_factory, machine, params=None):
    with UnitOfWork(session_factory) as uow:
        return machine.check_in(uow.get_repo(SessionEntryRepository), params or online_params(), NOW)


def apply(session_factory, session_id, action):
    with UnitOfWork(session_factory) as uow:
        repo = uow.get_repo(SessionEntryRepository)
        entry = repo.get_or_raise(session_id)
        action(repo, entry)
        return entry


class TestCheckInGuards:
    def test_onsite_without_location(self, session_factory, machine):
        with pytest.raises(LocationRequiredError):
            check_in(session_factory, machine, online_params(work_location=WorkLocationType.ONSITE))

    def test_onsite_schedule_bypass(self, session_factory, machine):
        entry = check_in(
            session_factory, machine, online_params(work_location=WorkLocationType.ONSITE, schedule_bypass=True)
        )
        assert entry.state == SessionState.ACTIVE

    def test_teaching_needs_course_name(self, session_factory, machine):
        with pytest.raises(MissingCourseNameError):
            check_in(session_factory, machine, online_params(entry_type=EntryType.TEACHING))

    def test_online_needs_platform(self, session_factory, machine):
        with pytest.raises(MissingPlatformError):
            check_in(session_factory, machine, online_params(online_platform=None))

    def test_one_open_session_per_user(self, session_factory, machine):
        check_in(session_factory, machine)
        with pytest.raises(AlreadyActiveError):
            check_in(session_factory, machine)

    def test_database_index_rejects_second_open_session(self, session_factory):
        def open_entry():
            return SessionEntry(
                user_id=USER_ID,
                org_id=ORG_ID,
                entry_type=EntryType.OTHER,
                work_location=WorkLocationType.REMOTE,
                state=SessionState.ACTIVE,
                check_in_time=NOW,
                paused_duration_minutes=0.0,
            )

        with pytest.raises(AlreadyActiveError):
            with UnitOfWork(session_factory) as uow:
                repo = uow.get_repo(SessionEntryRepository)
                repo.create_session(open_entry())
                repo.create_session(open_entry())


class TestTransitions:
    def test_pause_resume_check_out(self, session_factory, machine):
        entry = check_in(session_factory, machine)

        paused_at = NOW + timedelta(minutes=30)
        entry = apply(session_factory, entry.id, lambda repo, e: machine.pause(repo, e, paused_at, reason="Coffee"))
        assert entry.state == SessionState.PAUSED
        assert entry.session_paused
        assert entry.worked_minutes_at_pause == 30

        resumed_at = paused_at + timedelta(minutes=10)
        entry = apply(session_factory, entry.id, lambda repo, e: machine.resume(repo, e, resumed_at))
        assert entry.state == SessionState.ACTIVE
        assert entry.paused_duration_minutes == pytest.approx(10)
        assert entry.paused_at is None

        closed_at = resumed_at + timedelta(minutes=20)
        entry = apply(session_factory, entry.id, lambda repo, e: machine.check_out(repo, e, closed_at, notes="Done"))
        assert entry.state == SessionState.CLOSED
        assert entry.check_out_time == closed_at
        assert entry.checkout_source == CheckoutSource.MANUAL
        assert entry.total_hours == pytest.approx(round(50 / 60, 2))
        assert [e.event_type for e in entry.special_case_log] == ["pause", "resume"]

    def test_check_out_while_paused_folds_the_pause(self, session_factory, machine):
        entry = check_in(session_factory, machine)
        apply(session_factory, entry.id, lambda repo, e: machine.pause(repo, e, NOW + timedelta(minutes=60)))
        entry = apply(
            session_factory,
            entry.id,
            lambda repo, e: machine.check_out(repo, e, NOW + timedelta(minutes=90)),
        )
        assert entry.paused_duration_minutes == pytest.approx(30)
        assert entry.paused_at is None
        assert entry.total_hours == 1.0

    @pytest.mark.parametrize(
        "event",
        ["resume", "check_out_twice", "pause_twice"],
    )
    def test_invalid_transitions(self, session_factory, machine, event):
        entry = check_in(session_factory, machine)
        if event == "resume":
            with pytest.raises(InvalidTransitionError):
                apply(session_factory, entry.id, lambda repo, e: machine.resume(repo, e, NOW))
        elif event == "pause_twice":
            apply(session_factory, entry.id, lambda repo, e: machine.pause(repo, e, NOW))
            with pytest.raises(InvalidTransitionError):
                apply(session_factory, entry.id, lambda repo, e: machine.pause(repo, e, NOW))
        else:
            apply(session_factory, entry.id, lambda repo, e: machine.check_out(repo, e, NOW))
            with pytest.raises(InvalidTransitionError):
                apply(session_factory, entry.id, lambda repo, e: machine.check_out(repo, e, NOW))

    def test_rejected_transition_leaves_no_writes(self, session_factory, machine):
        entry = check_in(session_factory, machine)
        with pytest.raises(InvalidTransitionError):
            apply(session_factory, entry.id, lambda repo, e: machine.resume(repo, e, NOW))

        with UnitOfWork(session_factory) as uow:
            reloaded = uow.get_repo(SessionEntryRepository).get_or_raise(entry.id)
            assert reloaded.state == SessionState.ACTIVE
            assert reloaded.special_case_log == []


class TestSpecialCases:
    def test_meal_break_pauses_with_single_log_entry(self, session_factory, machine):
        entry = check_in(session_factory, machine)
        entry = apply(
            session_factory,
            entry.id,
            lambda repo, e: machine.special_case(repo, e, SpecialCaseType.MEAL_BREAK, None, NOW),
        )
        assert entry.state == SessionState.PAUSED
        assert entry.break_type == "meal"
        assert entry.break_duration_hint == 30
        assert [e.event_type for e in entry.special_case_log] == ["meal_break"]

    def test_continue_effect_keeps_state(self, session_factory, machine):
        entry = check_in(session_factory, machine)
        entry = apply(
            session_factory,
            entry.id,
            lambda repo, e: machine.special_case(
                repo, e, SpecialCaseType.NO_STUDENTS, SpecialCasePayload(action="wait"), NOW
            ),
        )
        assert entry.state == SessionState.ACTIVE
        assert entry.actual_student_count == 0
        assert entry.special_case_log[0].payload["wait_duration"] == 15

    def test_evacuation_closes_and_flags_review(self, session_factory, machine):
        entry = check_in(session_factory, machine)
        entry = apply(
            session_factory,
            entry.id,
            lambda repo, e: machine.special_case(
                repo, e, SpecialCaseType.EMERGENCY, SpecialCasePayload(action="evacuation"),
                NOW + timedelta(minutes=5),
            ),
        )
        assert entry.state == SessionState.CLOSED
        assert entry.checkout_source == CheckoutSource.MANUAL
        assert entry.is_emergency
        assert entry.needs_manager_review
        assert "[emergency]" in entry.notes

    def test_special_case_on_closed_session(self, session_factory, machine):
        entry = check_in(session_factory, machine)
        apply(session_factory, entry.id, lambda repo, e: machine.check_out(repo, e, NOW))
        with pytest.raises(InvalidTransitionError):
            apply(
                session_factory,
                entry.id,
                lambda repo, e: machine.special_case(repo, e, SpecialCaseType.MEAL_BREAK, None, NOW),
            )

    def test_log_entries_are_immutable(self, session_factory, machine):
        entry = check_in(session_factory, machine)
        entry = apply(session_factory, entry.id, lambda repo, e: machine.special_case(repo, e, "meal_break", None, NOW))

        with pytest.raises(ValueError):
            with UnitOfWork(session_factory) as uow:
                event = uow.session.get(SpecialCaseEvent, entry.special_case_log[0].id)
                event.message = "rewritten"
                uow.session.flush()
