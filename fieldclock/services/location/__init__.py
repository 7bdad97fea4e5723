from fieldclock.services.location.location_monitor import (
    Geofence,
    LocationMonitor,
    LocationVerification,
)
from fieldclock.services.location.location_provider import (
    LocationProvider,
    StaticLocationProvider,
)
from fieldclock.services.location.location_registry_service import (
    LocationRegistry,
    LocationRegistryService,
    NearestLocation,
)

__all__ = [
    "Geofence",
    "LocationMonitor",
    "LocationProvider",
    "LocationRegistry",
    "LocationRegistryService",
    "LocationVerification",
    "NearestLocation",
    "StaticLocationProvider",
]
