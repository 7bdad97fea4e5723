"""
Work location and location registration persistence.
"""

from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from fieldclock.core.exceptions import RegistrationNotFoundError, WorkLocationNotFoundError
from fieldclock.models.work_location import LocationRegistration, WorkLocation
from fieldclock.repositories.base_repository import BaseRepository


class WorkLocationRepository(BaseRepository[WorkLocation]):

    not_found_error = WorkLocationNotFoundError

    def __init__(self, db: Session):
        super().__init__(WorkLocation, db)

    def list_work_locations(self, org_id: str, include_inactive: bool = False) -> List[WorkLocation]:
        """Organization's geofences, main office first."""
        stmt = select(WorkLocation).where(WorkLocation.org_id == org_id)
        if not include_inactive:
            stmt = stmt.where(WorkLocation.is_active.is_(True))
        stmt = stmt.order_by(WorkLocation.is_main_office.desc(), WorkLocation.name)
        return list(self.db.scalars(stmt).all())


class LocationRegistrationRepository(BaseRepository[LocationRegistration]):

    not_found_error = RegistrationNotFoundError

    def __init__(self, db: Session):
        super().__init__(LocationRegistration, db)

    def create_location_registration(self, registration: LocationRegistration) -> LocationRegistration:
        return self.create(registration)

    def list_for_user(self, user_id: str, org_id: Optional[str] = None) -> List[LocationRegistration]:
        """User's registrations, newest first."""
        stmt = select(LocationRegistration).where(LocationRegistration.user_id == user_id)
        if org_id is not None:
            stmt = stmt.join(WorkLocation).where(WorkLocation.org_id == org_id)
        stmt = stmt.order_by(LocationRegistration.registered_at.desc())
        return list(self.db.scalars(stmt).unique().all())

    def get_for_user_and_location(self, user_id: str, location_id: str) -> Optional[LocationRegistration]:
        stmt = select(LocationRegistration).where(
            LocationRegistration.user_id == user_id,
            LocationRegistration.location_id == location_id,
        )
        return self.db.scalars(stmt).unique().first()
