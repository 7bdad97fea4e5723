"""
Platform location providers.

A provider returns the device's current coordinate or raises. Acquisition
timeouts are enforced by the caller (LocationMonitor), not the provider.
"""

import threading
from typing import Optional, Protocol, runtime_checkable

from fieldclock.utils.geo_utils import Coordinate


@runtime_checkable
class LocationProvider(Protocol):
    def get_current_coordinate(self) -> Coordinate:
        """Return the current coordinate; raise PermissionError if access is denied."""
        ...


class StaticLocationProvider:
    """
    Provider returning a settable coordinate.

    Used for client-reported readings (HTTP) and tests. ``None`` means no
    fix is available; ``denied`` simulates a permission refusal.
    """

    def __init__(self, coordinate: Optional[Coordinate] = None, denied: bool = False):
        self._lock = threading.Lock()
        self._coordinate = coordinate
        self._denied = denied

    def set_coordinate(self, coordinate: Optional[Coordinate]) -> None:
        with self._lock:
            self._coordinate = coordinate

    def deny(self, denied: bool = True) -> None:
        with self._lock:
            self._denied = denied

    def get_current_coordinate(self) -> Coordinate:
        with self._lock:
            if self._denied:
                raise PermissionError("Location permission denied")
            if self._coordinate is None:
                raise LookupError("No location fix available")
            return self._coordinate

