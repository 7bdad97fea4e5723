"""
Session orchestration: the engine's public operations.

Every operation captures ``now`` once, serializes on the owning user's
lock, and runs its transition inside a single UnitOfWork. Results are
returned as ServiceResults carrying pydantic responses.
"""

from datetime import date, datetime
from typing import Callable, Dict, List, Optional, Union

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from fieldclock.config.settings import settings
from fieldclock.core.exceptions import (
    AlreadyActiveError,
    DatabaseError,
    LocationRequiredError,
    LocationUnavailableError,
    OutOfBoundsError,
    ScheduleError,
    WorkLocationNotFoundError,
)
from fieldclock.models.enums import (
    CheckoutSource,
    EntryType,
    ScheduleLocationType,
    SessionState,
    SpecialCaseType,
    WorkLocationType,
)
from fieldclock.models.schedule_entry import ScheduleEntry
from fieldclock.models.session_entry import SessionEntry
from fieldclock.repositories.location_repository import WorkLocationRepository
from fieldclock.repositories.schedule_entry_repository import ScheduleEntryRepository
from fieldclock.repositories.session_entry_repository import SessionEntryRepository
from fieldclock.schemas.schedule import ScheduleEntryResponse, ScheduleMatch
from fieldclock.schemas.session import (
    CheckInRequest,
    CheckOutRequest,
    LiveSessionResponse,
    PauseRequest,
    SessionEntryResponse,
)
from fieldclock.schemas.special_case import SpecialCasePayload, SuggestedAction
from fieldclock.services.base.base_service import BaseService
from fieldclock.services.base.service_result import ServiceResult
from fieldclock.services.base.unit_of_work import UnitOfWork
from fieldclock.services.location.location_monitor import Geofence, LocationMonitor, LocationVerification
from fieldclock.services.location.location_provider import LocationProvider, StaticLocationProvider
from fieldclock.services.location.location_registry_service import LocationRegistry
from fieldclock.services.schedule.schedule_matcher import ScheduleMatcher, schedule_for_day
from fieldclock.services.session.session_lock import SessionLockRegistry
from fieldclock.services.session.special_case_handler import SpecialCaseHandler
from fieldclock.services.session.state_machine import CheckInParams, SessionStateMachine
from fieldclock.services.session.time_accountant import TimeAccountant
from fieldclock.utils.datetime_utils import utcnow
from fieldclock.utils.geo_utils import Coordinate

ONLINE_SCHEDULE_TYPES = (ScheduleLocationType.ONLINE, ScheduleLocationType.HYBRID)


class SessionService(BaseService):
    """
    Check-in, pause/resume, check-out, special cases and session queries.

    When no platform ``location_provider`` is given, coordinates reported
    by clients (at check-in or via ``report_location``) feed a per-user
    provider used for geofence monitoring.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        location_monitor: Optional[LocationMonitor] = None,
        location_provider: Optional[LocationProvider] = None,
        registry: Optional[LocationRegistry] = None,
        matcher: Optional[ScheduleMatcher] = None,
        accountant: Optional[TimeAccountant] = None,
        special_cases: Optional[SpecialCaseHandler] = None,
        locks: Optional[SessionLockRegistry] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        super().__init__(session_factory)
        self.monitor = location_monitor or LocationMonitor(provider=location_provider)
        if location_provider is not None and self.monitor.provider is None:
            self.monitor.provider = location_provider
        self.registry = registry or LocationRegistry()
        self.matcher = matcher or ScheduleMatcher()
        self.accountant = accountant or TimeAccountant()
        self.special_cases = special_cases or SpecialCaseHandler()
        self.locks = locks or SessionLockRegistry()
        self.clock = clock
        self.state_machine = SessionStateMachine(
            accountant=self.accountant,
            special_cases=self.special_cases,
        )
        self._reported: Dict[str, StaticLocationProvider] = {}

    # ------------------------------------------------------------------ #
    # Location plumbing
    # ------------------------------------------------------------------ #

    def _provider_for(self, user_id: str) -> Optional[LocationProvider]:
        if self.monitor.provider is not None:
            return self.monitor.provider
        return self._reported.get(user_id)

    def report_location(self, user_id: str, coordinate: Coordinate) -> ServiceResult[bool]:
        """Record a client-reported coordinate for the user's monitoring."""
        provider = self._reported.get(user_id)
        if provider is None:
            provider = self._reported.setdefault(user_id, StaticLocationProvider())
        provider.set_coordinate(coordinate)
        return ServiceResult.success(True)

    def _acquire(self, request: CheckInRequest) -> Coordinate:
        if request.coordinate is not None:
            coordinate = request.coordinate.to_coordinate()
            if self.monitor.provider is None:
                self.report_location(request.user_id, coordinate)
            return coordinate
        return self.monitor.acquire(self._provider_for(request.user_id))

    def _start_monitoring(self, session_id: str, user_id: str, fences: List[Geofence]) -> None:
        self.monitor.start_monitoring(
            session_id,
            fences,
            on_out_of_bounds=lambda sid, result: self._auto_check_out(sid, user_id, result, fences),
            is_open=lambda: self._is_open(session_id),
            provider=self._provider_for(user_id),
        )

    def _is_open(self, session_id: str) -> bool:
        with self.unit_of_work() as uow:
            entry = uow.get_repo(SessionEntryRepository).get_by_id(session_id)
            return entry is not None and entry.is_open

    def _auto_check_out(
        self,
        session_id: str,
        user_id: str,
        verification: LocationVerification,
        fences: List[Geofence],
    ) -> None:
        """
        Out-of-bounds callback: the same close transition with source=auto.
        If the close cannot be committed the session stays open, so its
        monitor is started again.
        """
        with self.locks.hold(user_id):
            try:
                with self.unit_of_work() as uow:
                    repo = uow.get_repo(SessionEntryRepository)
                    entry = repo.get_by_id(session_id)
                    if entry is None or not entry.is_open:
                        self._logger.info(
                            "Auto check-out skipped: session already closed",
                            extra={"session_id": session_id, "user_id": user_id},
                        )
                        return
                    reason = verification.reason or "outside authorized area"
                    self.state_machine.check_out(
                        repo, entry, self.clock(),
                        source=CheckoutSource.AUTO,
                        notes=f"[system] Automatic check-out: {reason}",
                    )
            except DatabaseError:
                self._logger.error(
                    "Auto check-out failed to commit, resuming location monitoring",
                    extra={"session_id": session_id, "user_id": user_id},
                )
                self._start_monitoring(session_id, user_id, fences)
                raise
            self.monitor.stop_monitoring(session_id)
        self._log_operation("auto_check_out", session_id, {"user_id": user_id, "session_id": session_id})

    # ------------------------------------------------------------------ #
    # Schedule
    # ------------------------------------------------------------------ #

    def _schedule_source(self, user_id: str) -> List[ScheduleEntry]:
        try:
            with self.unit_of_work() as uow:
                return uow.get_repo(ScheduleEntryRepository).list_schedule_entries(user_id)
        except SQLAlchemyError as e:
            raise ScheduleError(details={"user_id": user_id, "error": str(e)}) from e

    def detect_schedule(self, user_id: str, now: Optional[datetime] = None) -> ServiceResult[Optional[ScheduleMatch]]:
        """Best schedule match for ``now``; success with None when nothing matches."""
        at = now or self.clock()
        return self._execute(
            "detect schedule",
            lambda: self.matcher.detect(user_id, at, self._schedule_source),
            user_id,
        )

    def get_day_schedule(self, user_id: str, day: Optional[date] = None) -> ServiceResult[List[ScheduleEntryResponse]]:
        """The user's slots for ``day`` (default: today, local time) ordered by start."""
        on = day or self.matcher.converter.from_utc(self.clock()).date()

        def run() -> List[ScheduleEntryResponse]:
            entries = schedule_for_day(self._schedule_source(user_id), on)
            return [ScheduleEntryResponse.model_validate(e) for e in entries]

        return self._execute("get day schedule", run, user_id)

    # ------------------------------------------------------------------ #
    # Check-in
    # ------------------------------------------------------------------ #

    def _prefill(self, request: CheckInRequest, match: Optional[ScheduleMatch]) -> CheckInParams:
        """Merge explicit request fields over schedule-derived defaults."""
        work_location = request.work_location
        if work_location is None:
            if match is not None and match.location_type in ONLINE_SCHEDULE_TYPES:
                work_location = WorkLocationType.ONLINE
            else:
                work_location = WorkLocationType.ONSITE

        params = CheckInParams(
            user_id=request.user_id,
            org_id=request.org_id,
            entry_type=request.entry_type or (EntryType.TEACHING if match else EntryType.OTHER),
            work_location=work_location,
            course_name=request.course_name,
            location_id=request.location_id,
            online_platform=request.online_platform,
            online_url=request.online_url,
            expected_student_count=request.expected_student_count,
            notes=request.notes,
        )
        if match is None:
            return params

        params.schedule_entry_id = match.schedule_entry_id
        params.schedule_variance_minutes = match.variance_minutes
        params.schedule_confidence = match.confidence_score
        params.course_name = params.course_name or match.course_name
        if params.expected_student_count is None:
            params.expected_student_count = match.expected_student_count

        if work_location == WorkLocationType.ONLINE:
            params.online_platform = params.online_platform or match.online_platform
            params.online_url = params.online_url or match.online_url
        elif work_location == WorkLocationType.ONSITE and match.location_type == ScheduleLocationType.ONSITE:
            params.location_id = params.location_id or match.location_id
            params.schedule_bypass = True
        return params

    def _resolve_onsite(
        self,
        uow: UnitOfWork,
        request: CheckInRequest,
        params: CheckInParams,
        now: datetime,
    ) -> List[Geofence]:
        """
        Pick and verify the onsite work location. Returns the geofences to
        monitor (empty when a schedule bypass left no location to check).
        """
        coordinate: Optional[Coordinate] = None
        unavailable: Optional[LocationUnavailableError] = None
        try:
            coordinate = self._acquire(request)
        except LocationUnavailableError as e:
            self._logger.warning(f"Location unavailable at check-in: {e.message}", extra={"user_id": request.user_id})
            unavailable = e

        if not params.location_id and coordinate is not None:
            self.registry.auto_register_nearby(uow, request.user_id, coordinate, request.org_id, now)
            nearest = self.registry.nearest_registered(uow, request.user_id, coordinate, request.org_id)
            if nearest is not None:
                params.location_id = nearest.location.id

        if not params.location_id:
            if not params.schedule_bypass:
                raise LocationRequiredError(details={"coordinate_available": coordinate is not None})
            if unavailable is not None:
                raise unavailable
            params.check_in_latitude = coordinate.latitude
            params.check_in_longitude = coordinate.longitude
            return []

        if unavailable is not None:
            raise unavailable

        location = uow.get_repo(WorkLocationRepository).get_or_raise(params.location_id)
        if not location.is_active or location.org_id != request.org_id:
            raise WorkLocationNotFoundError(params.location_id)

        fence = Geofence.from_location(location)
        verification = self.monitor.verify(coordinate, [fence])
        if not verification.valid:
            raise OutOfBoundsError(
                f"You are {round(verification.distance)}m from {location.name}",
                distance_meters=round(verification.distance, 2),
                allowed_meters=location.radius_meters + self.monitor.tolerance_meters,
                location_id=location.id,
            )

        params.check_in_latitude = coordinate.latitude
        params.check_in_longitude = coordinate.longitude
        params.location_verified = True
        return [fence]

    def check_in(self, request: CheckInRequest) -> ServiceResult[SessionEntryResponse]:
        now = self.clock()

        def run() -> SessionEntryResponse:
            with self.locks.hold(request.user_id):
                with self.unit_of_work() as uow:
                    repo = uow.get_repo(SessionEntryRepository)
                    existing = repo.get_open_session(request.user_id)
                    if existing is not None:
                        raise AlreadyActiveError(request.user_id, existing.id)

                    match = None
                    if request.use_schedule:
                        match = self.matcher.detect(request.user_id, now, self._schedule_source)
                    params = self._prefill(request, match)

                    fences: List[Geofence] = []
                    if params.work_location == WorkLocationType.ONSITE:
                        fences = self._resolve_onsite(uow, request, params, now)

                    entry = self.state_machine.check_in(repo, params, now)
                    response = SessionEntryResponse.model_validate(entry)
                    uow.commit()

                if fences:
                    self._start_monitoring(response.id, request.user_id, fences)
                return response

        return self._execute("check in", run, request.user_id)

    # ------------------------------------------------------------------ #
    # Transitions on an existing session
    # ------------------------------------------------------------------ #

    def _owner_of(self, session_id: str) -> str:
        with self.unit_of_work() as uow:
            return uow.get_repo(SessionEntryRepository).get_or_raise(session_id).user_id

    def _transition(
        self,
        operation: str,
        session_id: str,
        apply: Callable[[SessionEntryRepository, SessionEntry, datetime], object],
    ) -> ServiceResult[SessionEntryResponse]:
        now = self.clock()

        def run() -> SessionEntryResponse:
            user_id = self._owner_of(session_id)
            with self.locks.hold(user_id):
                with self.unit_of_work() as uow:
                    repo = uow.get_repo(SessionEntryRepository)
                    entry = repo.get_or_raise(session_id)
                    apply(repo, entry, now)
                    response = SessionEntryResponse.model_validate(entry)
                # Only a committed close releases the monitor
                if response.state == SessionState.CLOSED:
                    self.monitor.stop_monitoring(session_id)
                return response

        return self._execute(operation, run, session_id)

    def pause(self, session_id: str, request: Optional[PauseRequest] = None) -> ServiceResult[SessionEntryResponse]:
        request = request or PauseRequest()
        return self._transition(
            "pause session",
            session_id,
            lambda repo, entry, now: self.state_machine.pause(
                repo, entry, now,
                reason=request.reason,
                break_type=request.break_type,
                duration_hint=request.duration_minutes,
            ),
        )

    def resume(self, session_id: str) -> ServiceResult[SessionEntryResponse]:
        return self._transition(
            "resume session",
            session_id,
            lambda repo, entry, now: self.state_machine.resume(repo, entry, now),
        )

    def check_out(
        self,
        session_id: str,
        request: Optional[CheckOutRequest] = None,
        source: CheckoutSource = CheckoutSource.MANUAL,
    ) -> ServiceResult[SessionEntryResponse]:
        request = request or CheckOutRequest()
        return self._transition(
            "check out",
            session_id,
            lambda repo, entry, now: self.state_machine.check_out(
                repo, entry, now,
                source=source,
                notes=request.notes,
                actual_student_count=request.actual_student_count,
            ),
        )

    def report_special_case(
        self,
        session_id: str,
        case_type: Union[SpecialCaseType, str],
        payload: Optional[SpecialCasePayload] = None,
    ) -> ServiceResult[SessionEntryResponse]:
        outcomes = []

        def apply(repo, entry, now):
            _, outcome = self.state_machine.special_case(repo, entry, case_type, payload, now)
            outcomes.append(outcome)

        result = self._transition("report special case", session_id, apply)
        if result.is_success and outcomes:
            outcome = outcomes[0]
            result.message = outcome.message
            result.metadata.update({"effect": outcome.effect.value, "action": outcome.action})
        return result

    def suggested_actions(self, case_type: Union[SpecialCaseType, str]) -> ServiceResult[List[SuggestedAction]]:
        return self._execute("list suggested actions", lambda: self.special_cases.suggested_actions(case_type))

    # ------------------------------------------------------------------ #
    # Queries
    # ------------------------------------------------------------------ #

    def get_elapsed_minutes(self, session_id: str) -> ServiceResult[int]:
        now = self.clock()

        def run() -> int:
            with self.unit_of_work() as uow:
                entry = uow.get_repo(SessionEntryRepository).get_or_raise(session_id)
                return self.accountant.elapsed_worked_minutes(entry, now)

        return self._execute("get elapsed minutes", run, session_id)

    def get_active_session(self, user_id: str) -> ServiceResult[Optional[SessionEntryResponse]]:
        def run() -> Optional[SessionEntryResponse]:
            with self.unit_of_work() as uow:
                entry = uow.get_repo(SessionEntryRepository).get_open_session(user_id)
                return SessionEntryResponse.model_validate(entry) if entry else None

        return self._execute("get active session", run, user_id)

    def list_sessions(self, user_id: str, limit: Optional[int] = None) -> ServiceResult[List[SessionEntryResponse]]:
        def run() -> List[SessionEntryResponse]:
            with self.unit_of_work() as uow:
                entries = uow.get_repo(SessionEntryRepository).list_sessions(user_id, limit)
                return [SessionEntryResponse.model_validate(e) for e in entries]

        return self._execute("list sessions", run, user_id)

    def list_live_sessions(self, org_id: str) -> ServiceResult[List[LiveSessionResponse]]:
        """Every open session in the organization with its elapsed minutes."""
        now = self.clock()

        def run() -> List[LiveSessionResponse]:
            with self.unit_of_work() as uow:
                entries = uow.get_repo(SessionEntryRepository).list_open_sessions(org_id)
                return [
                    LiveSessionResponse(
                        session=SessionEntryResponse.model_validate(e),
                        elapsed_minutes=self.accountant.elapsed_worked_minutes(e, now),
                        location_warning=self.monitor.warning_for(e.id),
                    )
                    for e in entries
                ]

        return self._execute("list live sessions", run, org_id)

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #

    def restore_monitoring(self) -> int:
        """Restart geofence monitoring for open onsite sessions, e.g. after a restart."""
        restored = []
        with self.unit_of_work() as uow:
            locations = uow.get_repo(WorkLocationRepository)
            for entry in uow.get_repo(SessionEntryRepository).list_open_sessions():
                if entry.work_location != WorkLocationType.ONSITE or not entry.location_id:
                    continue
                location = locations.get_by_id(entry.location_id)
                if location is None or not location.is_active:
                    continue
                restored.append((entry.id, entry.user_id, Geofence.from_location(location)))

        for session_id, user_id, fence in restored:
            self._start_monitoring(session_id, user_id, [fence])
        if restored:
            self._logger.info(f"Restored location monitoring for {len(restored)} open sessions")
        return len(restored)

    def shutdown(self) -> None:
        self.monitor.stop_all()
