"""
Service layer: location, schedule and session orchestration.
"""

from fieldclock.services.location import LocationMonitor, LocationRegistryService
from fieldclock.services.schedule import ScheduleMatcher
from fieldclock.services.session import SessionService

__all__ = [
    "LocationMonitor",
    "LocationRegistryService",
    "ScheduleMatcher",
    "SessionService",
]
