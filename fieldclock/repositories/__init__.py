from fieldclock.repositories.base_repository import BaseRepository
from fieldclock.repositories.location_repository import (
    LocationRegistrationRepository,
    WorkLocationRepository,
)
from fieldclock.repositories.schedule_entry_repository import ScheduleEntryRepository
from fieldclock.repositories.session_entry_repository import SessionEntryRepository

__all__ = [
    "BaseRepository",
    "LocationRegistrationRepository",
    "ScheduleEntryRepository",
    "SessionEntryRepository",
    "WorkLocationRepository",
]
