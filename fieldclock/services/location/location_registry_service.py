"""
Location registry: which work locations a user may select at check-in.

``LocationRegistry`` holds the rules and works inside a caller's
UnitOfWork so the orchestrator can fold it into a check-in transaction.
``LocationRegistryService`` exposes the admin and self-service operations
as ServiceResults.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Callable, List, Optional

from sqlalchemy.orm import Session

from fieldclock.config.logging import get_logger
from fieldclock.config.settings import settings
from fieldclock.core.exceptions import OutOfBoundsError, WorkLocationNotFoundError
from fieldclock.models.enums import RegistrationSource
from fieldclock.models.work_location import LocationRegistration, WorkLocation
from fieldclock.repositories.location_repository import (
    LocationRegistrationRepository,
    WorkLocationRepository,
)
from fieldclock.schemas.location import (
    LocationRegistrationResponse,
    NearestLocationResponse,
    WorkLocationCreate,
    WorkLocationResponse,
)
from fieldclock.services.base.base_service import BaseService
from fieldclock.services.base.service_result import ServiceResult
from fieldclock.services.base.unit_of_work import UnitOfWork
from fieldclock.utils.datetime_utils import utcnow
from fieldclock.utils.geo_utils import Coordinate, GeoMath

logger = get_logger(__name__)


@dataclass
class NearestLocation:
    location: WorkLocation
    registration: LocationRegistration
    distance_meters: float


class LocationRegistry:
    """Registration rules over the repositories of one UnitOfWork."""

    def __init__(self, buffer_meters: Optional[float] = None):
        self.buffer_meters = (
            settings.AUTO_REGISTER_BUFFER_METERS if buffer_meters is None else buffer_meters
        )

    def list_registered(self, uow: UnitOfWork, user_id: str, org_id: Optional[str] = None) -> List[LocationRegistration]:
        return uow.get_repo(LocationRegistrationRepository).list_for_user(user_id, org_id)

    def auto_register_nearby(
        self,
        uow: UnitOfWork,
        user_id: str,
        coordinate: Coordinate,
        org_id: str,
        now: Optional[datetime] = None,
    ) -> List[LocationRegistration]:
        """
        Register every active org location within radius + buffer that the
        user does not have yet. Returns the newly created registrations.
        """
        now = now or utcnow()
        registrations = uow.get_repo(LocationRegistrationRepository)
        registered_ids = {r.location_id for r in registrations.list_for_user(user_id)}

        created = []
        for location in uow.get_repo(WorkLocationRepository).list_work_locations(org_id):
            if location.id in registered_ids:
                continue
            distance = GeoMath.distance(coordinate, location.coordinate)
            if distance > location.radius_meters + self.buffer_meters:
                continue

            registration = registrations.create_location_registration(
                LocationRegistration(
                    user_id=user_id,
                    location_id=location.id,
                    is_verified=True,
                    source=RegistrationSource.AUTO,
                    registered_at=now,
                    latitude=coordinate.latitude,
                    longitude=coordinate.longitude,
                    distance_meters=round(distance, 2),
                    notes=f"Auto-registered - within radius ({round(distance)}m)",
                )
            )
            created.append(registration)
            logger.info(
                f"Auto-registered location {location.name} ({round(distance)}m away)",
                extra={"user_id": user_id, "org_id": org_id},
            )
        return created

    def nearest_registered(
        self,
        uow: UnitOfWork,
        user_id: str,
        coordinate: Coordinate,
        org_id: Optional[str] = None,
    ) -> Optional[NearestLocation]:
        """
        Closest registered active location within radius + buffer.

        Ties go to the most recent registration. Any failure yields None.
        """
        try:
            candidates = []
            for registration in self.list_registered(uow, user_id, org_id):
                location = registration.location
                if location is None or not location.is_active:
                    continue
                distance = GeoMath.distance(coordinate, location.coordinate)
                if distance <= location.radius_meters + self.buffer_meters:
                    candidates.append(NearestLocation(location, registration, distance))
        except Exception:
            logger.warning("Nearest location lookup failed", exc_info=True, extra={"user_id": user_id})
            return None

        if not candidates:
            return None
        # list_for_user is newest-first and sort is stable
        candidates.sort(key=lambda c: c.distance_meters)
        return candidates[0]

    def register_location(
        self,
        uow: UnitOfWork,
        user_id: str,
        location_id: str,
        coordinate: Coordinate,
        notes: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> LocationRegistration:
        """
        Manual registration: the user must stand inside the radius (no buffer).
        Created unverified; an existing registration is returned unchanged.
        """
        location = uow.get_repo(WorkLocationRepository).get_or_raise(location_id)
        if not location.is_active:
            raise WorkLocationNotFoundError(location_id)

        registrations = uow.get_repo(LocationRegistrationRepository)
        existing = registrations.get_for_user_and_location(user_id, location_id)
        if existing is not None:
            return existing

        distance = GeoMath.distance(coordinate, location.coordinate)
        if distance > location.radius_meters:
            raise OutOfBoundsError(
                f"You must be within {round(location.radius_meters)}m of {location.name} to register it",
                distance_meters=round(distance, 2),
                allowed_meters=location.radius_meters,
                location_id=location_id,
            )

        return registrations.create_location_registration(
            LocationRegistration(
                user_id=user_id,
                location_id=location_id,
                is_verified=False,
                source=RegistrationSource.MANUAL,
                registered_at=now or utcnow(),
                latitude=coordinate.latitude,
                longitude=coordinate.longitude,
                distance_meters=round(distance, 2),
                notes=notes,
            )
        )


class LocationRegistryService(BaseService):
    """Work location administration and user registrations."""

    def __init__(
        self,
        session_factory: Callable[[], Session],
        registry: Optional[LocationRegistry] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        super().__init__(session_factory)
        self.registry = registry or LocationRegistry()
        self.clock = clock

    def create_work_location(self, data: WorkLocationCreate) -> ServiceResult[WorkLocationResponse]:
        def run():
            with self.unit_of_work() as uow:
                location = uow.get_repo(WorkLocationRepository).create(
                    WorkLocation(
                        org_id=data.org_id,
                        name=data.name,
                        address=data.address,
                        latitude=data.latitude,
                        longitude=data.longitude,
                        radius_meters=data.radius_meters or settings.DEFAULT_LOCATION_RADIUS_METERS,
                        is_main_office=data.is_main_office,
                        is_active=True,
                    )
                )
                self._log_operation("create_work_location", location.id, {"org_id": data.org_id})
                return WorkLocationResponse.model_validate(location)

        return self._execute("create work location", run, data.name)

    def deactivate_work_location(self, location_id: str) -> ServiceResult[WorkLocationResponse]:
        def run():
            with self.unit_of_work() as uow:
                repo = uow.get_repo(WorkLocationRepository)
                location = repo.update(repo.get_or_raise(location_id), {"is_active": False})
                self._log_operation("deactivate_work_location", location_id)
                return WorkLocationResponse.model_validate(location)

        return self._execute("deactivate work location", run, location_id)

    def list_work_locations(self, org_id: str) -> ServiceResult[List[WorkLocationResponse]]:
        def run():
            with self.unit_of_work() as uow:
                locations = uow.get_repo(WorkLocationRepository).list_work_locations(org_id)
                return [WorkLocationResponse.model_validate(loc) for loc in locations]

        return self._execute("list work locations", run, org_id)

    def list_registered(self, user_id: str) -> ServiceResult[List[LocationRegistrationResponse]]:
        def run():
            with self.unit_of_work() as uow:
                return [
                    LocationRegistrationResponse.model_validate(r)
                    for r in self.registry.list_registered(uow, user_id)
                ]

        return self._execute("list registered locations", run, user_id)

    def nearest_location(
        self,
        user_id: str,
        coordinate: Coordinate,
        org_id: Optional[str] = None,
    ) -> ServiceResult[Optional[NearestLocationResponse]]:
        def run():
            with self.unit_of_work() as uow:
                nearest = self.registry.nearest_registered(uow, user_id, coordinate, org_id)
                if nearest is None:
                    return None
                return NearestLocationResponse(
                    location=WorkLocationResponse.model_validate(nearest.location),
                    registration_id=nearest.registration.id,
                    distance_meters=round(nearest.distance_meters, 2),
                )

        return self._execute("find nearest location", run, user_id)

    def register_location(
        self,
        user_id: str,
        location_id: str,
        coordinate: Coordinate,
        notes: Optional[str] = None,
    ) -> ServiceResult[LocationRegistrationResponse]:
        def run():
            with self.unit_of_work() as uow:
                registration = self.registry.register_location(
                    uow, user_id, location_id, coordinate, notes, self.clock()
                )
                self._log_operation("register_location", registration.id, {"user_id": user_id})
                return LocationRegistrationResponse.model_validate(registration)

        return self._execute("register location", run, location_id)

    def verify_registration(
        self,
        registration_id: str,
        verified: bool,
        verifier_id: str,
        notes: Optional[str] = None,
    ) -> ServiceResult[LocationRegistrationResponse]:
        """Admin approval or rejection of a registration."""
        def run():
            with self.unit_of_work() as uow:
                repo = uow.get_repo(LocationRegistrationRepository)
                registration = repo.get_or_raise(registration_id)
                values = {
                    "is_verified": verified,
                    "verified_by": verifier_id,
                    "verified_at": self.clock(),
                }
                if notes is not None:
                    values["notes"] = notes
                repo.update(registration, values)
                self._log_operation(
                    "verify_registration", registration_id, {"verified": verified, "user_id": registration.user_id}
                )
                return LocationRegistrationResponse.model_validate(registration)

        return self._execute("verify registration", run, registration_id)
