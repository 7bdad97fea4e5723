from concurrent.futures import ThreadPoolExecutor
from datetime import date, time

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from fieldclock.core.exceptions import ErrorCode
from fieldclock.models.enums import (
    CheckoutSource,
    EntryType,
    ScheduleLocationType,
    SessionState,
    WorkLocationType,
)
from fieldclock.models.session_entry import SessionEntry
from fieldclock.schemas.location import CoordinateSchema
from fieldclock.schemas.session import CheckInRequest, CheckOutRequest, PauseRequest
from fieldclock.schemas.special_case import SpecialCasePayload
from fieldclock.services.location.location_monitor import LocationMonitor
from fieldclock.services.schedule.schedule_matcher import ScheduleMatcher
from fieldclock.services.session.session_service import SessionService

from tests.conftest import (
    OFFICE,
    ORG_ID,
    USER_ID,
    add_schedule_entry,
    add_work_location,
    north_of,
)


def onsite(**overrides):
    values = dict(user_id=USER_ID, org_id=ORG_ID, work_location=WorkLocationType.ONSITE, use_schedule=False)
    values.update(overrides)
    return CheckInRequest(**values)


def online(**overrides):
    values = dict(
        user_id=USER_ID,
        org_id=ORG_ID,
        work_location=WorkLocationType.ONLINE,
        online_platform="zoom",
        use_schedule=False,
    )
    values.update(overrides)
    return CheckInRequest(**values)


@pytest.fixture
def failing_close_commit(monkeypatch):
    """Commits that would close a session fail like a locked database."""
    original = Session.commit

    def commit(self):
        closing = any(
            isinstance(obj, SessionEntry) and obj.state == SessionState.CLOSED
            for obj in self.identity_map.values()
        )
        if closing:
            raise OperationalError("COMMIT", {}, Exception("database is locked"))
        return original(self)

    monkeypatch.setattr(Session, "commit", commit)
    return monkeypatch


class TestCheckIn:
    def test_onsite_auto_registers_and_monitors(self, service, monitor, office):
        session = service.check_in(onsite()).unwrap()

        assert session.state == SessionState.ACTIVE
        assert session.location_id == office.id
        assert session.location_verified
        assert session.check_in_latitude == pytest.approx(OFFICE.latitude)
        assert monitor.is_monitoring(session.id)

    def test_onsite_without_any_location(self, service):
        result = service.check_in(onsite())
        assert result.error_code == ErrorCode.LOCATION_REQUIRED
        assert result.error.status_code == 422
        assert service.get_active_session(USER_ID).unwrap() is None

    def test_selected_location_out_of_bounds(self, service, provider, office):
        provider.set_coordinate(north_of(OFFICE, 300))
        result = service.check_in(onsite(location_id=office.id))

        assert result.error_code == ErrorCode.OUT_OF_BOUNDS
        assert result.error.status_code == 403
        assert result.error.details["location_id"] == office.id
        assert service.get_active_session(USER_ID).unwrap() is None

    def test_selected_location_with_location_denied(self, service, provider, office):
        provider.deny()
        result = service.check_in(onsite(location_id=office.id))
        assert result.error_code == ErrorCode.LOCATION_UNAVAILABLE
        assert result.error.status_code == 503

    def test_reported_coordinate_takes_precedence(self, service, provider, office):
        provider.set_coordinate(north_of(OFFICE, 5000))
        request = onsite(coordinate=CoordinateSchema(latitude=OFFICE.latitude, longitude=OFFICE.longitude))
        assert service.check_in(request).unwrap().location_id == office.id

    def test_teaching_without_course(self, service):
        result = service.check_in(online(entry_type=EntryType.TEACHING))
        assert result.error_code == ErrorCode.MISSING_COURSE_NAME

    def test_online_without_platform(self, service):
        result = service.check_in(online(online_platform=None))
        assert result.error_code == ErrorCode.MISSING_PLATFORM

    def test_online_is_not_monitored(self, service, monitor):
        session = service.check_in(online()).unwrap()
        assert session.work_location == WorkLocationType.ONLINE
        assert not monitor.is_monitoring(session.id)

    def test_second_check_in_is_rejected(self, service):
        first = service.check_in(online()).unwrap()
        result = service.check_in(online())
        assert result.error_code == ErrorCode.ALREADY_ACTIVE
        assert result.error.status_code == 409
        assert service.get_active_session(USER_ID).unwrap().id == first.id

    def test_concurrent_check_ins_open_one_session(self, service):
        with ThreadPoolExecutor(max_workers=4) as pool:
            results = list(pool.map(lambda _: service.check_in(online()), range(4)))

        assert sum(r.is_success for r in results) == 1
        assert {r.error_code for r in results if not r.is_success} == {ErrorCode.ALREADY_ACTIVE}
        assert len(service.list_sessions(USER_ID).unwrap()) == 1


class TestSchedulePrefill:
    def test_onsite_schedule_fills_course_and_location(self, service, session_factory, office):
        entry = add_schedule_entry(session_factory, location_id=office.id, expected_student_count=24)
        session = service.check_in(onsite(use_schedule=True)).unwrap()

        assert session.entry_type == EntryType.TEACHING
        assert session.course_name == "Algebra I"
        assert session.schedule_entry_id == entry.id
        assert session.location_id == office.id
        assert session.schedule_variance_minutes == 5
        assert session.schedule_confidence == 90
        assert session.expected_student_count == 24

    def test_online_schedule_fills_platform(self, service, session_factory, monitor):
        add_schedule_entry(
            session_factory,
            location_type=ScheduleLocationType.ONLINE,
            online_platform="teams",
            online_url="https://teams.example/algebra",
        )
        request = CheckInRequest(user_id=USER_ID, org_id=ORG_ID)
        session = service.check_in(request).unwrap()

        assert session.work_location == WorkLocationType.ONLINE
        assert session.online_platform == "teams"
        assert session.online_url == "https://teams.example/algebra"
        assert not monitor.is_monitoring(session.id)

    def test_explicit_fields_win_over_schedule(self, service, session_factory):
        add_schedule_entry(session_factory, location_type=ScheduleLocationType.ONLINE, online_platform="teams")
        session = service.check_in(online(use_schedule=True, course_name="Geometry")).unwrap()
        assert session.course_name == "Geometry"
        assert session.online_platform == "zoom"

    def test_detect_schedule(self, service, session_factory, clock):
        add_schedule_entry(session_factory)
        assert service.detect_schedule(USER_ID).unwrap().variance_minutes == 5
        clock.advance(hours=2)
        assert service.detect_schedule(USER_ID).unwrap() is None

    def test_day_schedule(self, service, session_factory):
        afternoon = add_schedule_entry(session_factory)
        morning = add_schedule_entry(session_factory, course_name="Geometry", start_time=time(8, 0), end_time=time(9, 0))
        add_schedule_entry(session_factory, course_name="Biology", day_of_week=2)

        today = service.get_day_schedule(USER_ID).unwrap()
        assert [e.id for e in today] == [morning.id, afternoon.id]

        wednesday = service.get_day_schedule(USER_ID, date(2024, 3, 6)).unwrap()
        assert [e.course_name for e in wednesday] == ["Biology"]

    def test_onsite_schedule_without_location_bypasses_selection(self, service, session_factory, monitor):
        add_schedule_entry(session_factory, start_time=time(13, 0), end_time=time(14, 0))
        session = service.check_in(onsite(use_schedule=True)).unwrap()

        assert session.location_id is None
        assert not session.location_verified
        assert not monitor.is_monitoring(session.id)


class TestLifecycle:
    def test_pause_resume_accounting(self, service, clock):
        session = service.check_in(online()).unwrap()

        clock.advance(minutes=30)
        paused = service.pause(session.id, PauseRequest(reason="Coffee", break_type="coffee")).unwrap()
        assert paused.state == SessionState.PAUSED
        assert paused.session_paused

        clock.advance(minutes=15)
        assert service.get_elapsed_minutes(session.id).unwrap() == 30

        resumed = service.resume(session.id).unwrap()
        assert resumed.paused_duration_minutes == pytest.approx(15)

        clock.advance(minutes=10)
        assert service.get_elapsed_minutes(session.id).unwrap() == 40

    def test_resume_active_session_is_rejected(self, service):
        session = service.check_in(online()).unwrap()
        result = service.resume(session.id)
        assert result.error_code == ErrorCode.INVALID_TRANSITION
        assert result.error.status_code == 409
        assert service.get_active_session(USER_ID).unwrap().state == SessionState.ACTIVE

    def test_unknown_session(self, service):
        result = service.pause("missing")
        assert result.error_code == ErrorCode.RESOURCE_NOT_FOUND
        assert result.error.status_code == 404

    def test_overtime_check_out(self, service, clock):
        session = service.check_in(online()).unwrap()
        clock.advance(hours=9, minutes=30)
        closed = service.check_out(session.id, CheckOutRequest(notes="Long day", actual_student_count=12)).unwrap()

        assert closed.state == SessionState.CLOSED
        assert closed.checkout_source == CheckoutSource.MANUAL
        assert closed.total_hours == 9.5
        assert closed.regular_hours == 8.0
        assert closed.overtime_hours == 1.5
        assert closed.needs_manager_review
        assert closed.actual_student_count == 12
        assert closed.notes == "Long day"

    def test_check_out_appends_notes(self, service):
        session = service.check_in(online(notes="Room swap")).unwrap()
        closed = service.check_out(session.id, CheckOutRequest(notes="All good")).unwrap()
        assert closed.notes == "Room swap\nAll good"

    def test_check_out_stops_monitoring(self, service, monitor, office):
        session = service.check_in(onsite()).unwrap()
        service.check_out(session.id).unwrap()

        assert not monitor.is_monitoring(session.id)
        assert monitor.run_check(session.id) is False

    def test_failed_check_out_commit_keeps_monitoring(self, service, monitor, office, failing_close_commit):
        session = service.check_in(onsite()).unwrap()

        result = service.check_out(session.id)
        assert result.error_code == ErrorCode.DATABASE_ERROR
        assert service.get_active_session(USER_ID).unwrap().id == session.id
        assert monitor.is_monitoring(session.id)

        failing_close_commit.undo()
        service.check_out(session.id).unwrap()
        assert not monitor.is_monitoring(session.id)

    def test_user_can_check_in_again_after_check_out(self, service, clock):
        first = service.check_in(online()).unwrap()
        clock.advance(minutes=30)
        service.check_out(first.id).unwrap()
        clock.advance(minutes=5)
        second = service.check_in(online()).unwrap()

        assert [s.id for s in service.list_sessions(USER_ID).unwrap()] == [second.id, first.id]


class TestSpecialCases:
    def test_meal_break(self, service):
        session = service.check_in(online()).unwrap()
        result = service.report_special_case(session.id, "meal_break", SpecialCasePayload(action="15"))

        paused = result.unwrap()
        assert paused.state == SessionState.PAUSED
        assert paused.break_type == "meal"
        assert result.metadata["effect"] == "pause"
        assert [e.event_type for e in paused.special_case_log] == ["meal_break"]

    def test_cancelled_class_closes_session(self, service, monitor, office):
        session = service.check_in(onsite()).unwrap()
        closed = service.report_special_case(
            session.id, "no_students", SpecialCasePayload(action="cancel")
        ).unwrap()

        assert closed.state == SessionState.CLOSED
        assert closed.checkout_source == CheckoutSource.MANUAL
        assert closed.actual_student_count == 0
        assert "[no_students]" in closed.notes
        assert not monitor.is_monitoring(session.id)

    def test_invalid_payload(self, service):
        session = service.check_in(online()).unwrap()
        result = service.report_special_case(session.id, "infrastructure", SpecialCasePayload(action="relocate"))
        assert result.error_code == ErrorCode.INVALID_SPECIAL_CASE
        assert service.get_active_session(USER_ID).unwrap().special_case_log == []

    def test_special_case_on_closed_session(self, service):
        session = service.check_in(online()).unwrap()
        service.check_out(session.id).unwrap()
        result = service.report_special_case(session.id, "meal_break")
        assert result.error_code == ErrorCode.INVALID_TRANSITION

    def test_suggested_actions(self, service):
        actions = service.suggested_actions("emergency").unwrap()
        assert "evacuation" in [a.action for a in actions]
        assert service.suggested_actions("picnic").error_code == ErrorCode.INVALID_SPECIAL_CASE


class TestAutoCheckOut:
    def test_leaving_the_geofence_closes_the_session(self, service, monitor, provider, office, clock):
        session = service.check_in(onsite()).unwrap()
        clock.advance(minutes=45)
        provider.set_coordinate(north_of(OFFICE, 600))

        assert monitor.run_check(session.id) is False

        closed = service.list_sessions(USER_ID).unwrap()[0]
        assert closed.state == SessionState.CLOSED
        assert closed.checkout_source == CheckoutSource.AUTO
        assert closed.total_hours == 0.75
        assert "Automatic check-out" in closed.notes
        assert not monitor.is_monitoring(session.id)

    def test_failed_auto_check_out_resumes_monitoring(
        self, service, monitor, provider, office, failing_close_commit
    ):
        session = service.check_in(onsite()).unwrap()
        provider.set_coordinate(north_of(OFFICE, 600))

        assert monitor.run_check(session.id) is False
        assert service.get_active_session(USER_ID).unwrap().id == session.id
        assert monitor.is_monitoring(session.id)

        failing_close_commit.undo()
        assert monitor.run_check(session.id) is False
        closed = service.list_sessions(USER_ID).unwrap()[0]
        assert closed.checkout_source == CheckoutSource.AUTO
        assert not monitor.is_monitoring(session.id)

    def test_moving_within_tolerance_keeps_session_open(self, service, monitor, provider, office):
        session = service.check_in(onsite()).unwrap()
        provider.set_coordinate(north_of(OFFICE, 110))

        assert monitor.run_check(session.id) is True
        assert service.get_active_session(USER_ID).unwrap().id == session.id

    def test_paused_session_is_still_monitored(self, service, monitor, provider, office):
        session = service.check_in(onsite()).unwrap()
        service.pause(session.id).unwrap()
        provider.set_coordinate(north_of(OFFICE, 600))

        monitor.run_check(session.id)
        closed = service.list_sessions(USER_ID).unwrap()[0]
        assert closed.state == SessionState.CLOSED
        assert closed.checkout_source == CheckoutSource.AUTO

    def test_client_reported_locations_drive_monitoring(self, session_factory, clock, office):
        monitor = LocationMonitor(interval_seconds=3600, acquire_timeout_seconds=2, tolerance_meters=20)
        service = SessionService(
            session_factory, location_monitor=monitor, matcher=ScheduleMatcher(timezone="UTC"), clock=clock
        )
        try:
            request = onsite(coordinate=CoordinateSchema(latitude=OFFICE.latitude, longitude=OFFICE.longitude))
            session = service.check_in(request).unwrap()
            assert monitor.run_check(session.id) is True

            service.report_location(USER_ID, north_of(OFFICE, 800)).unwrap()
            assert monitor.run_check(session.id) is False
            assert service.get_active_session(USER_ID).unwrap() is None
        finally:
            service.shutdown()


class TestQueries:
    def test_live_sessions(self, service, session_factory, clock, monitor):
        service.check_in(online()).unwrap()
        service.check_in(online(user_id="user-2")).unwrap()
        service.check_in(online(user_id="user-3", org_id="org-2")).unwrap()
        clock.advance(minutes=20)

        live = service.list_live_sessions(ORG_ID).unwrap()
        assert {item.session.user_id for item in live} == {USER_ID, "user-2"}
        assert all(item.elapsed_minutes == 20 for item in live)
        assert all(item.location_warning is None for item in live)

    def test_restore_monitoring_after_restart(self, service, session_factory, clock, provider, office):
        session = service.check_in(onsite()).unwrap()
        service.check_in(online(user_id="user-2")).unwrap()

        monitor = LocationMonitor(provider=provider, interval_seconds=3600)
        restarted = SessionService(session_factory, location_monitor=monitor, clock=clock)
        try:
            assert restarted.restore_monitoring() == 1
            assert monitor.is_monitoring(session.id)
        finally:
            restarted.shutdown()

    def test_deactivated_location_is_not_offered(self, service, session_factory):
        add_work_location(session_factory, is_active=False)
        assert service.check_in(onsite()).error_code == ErrorCode.LOCATION_REQUIRED
