"""
Location acquisition and periodic geofence validation.

Each monitored session gets a daemon thread that waits on a stop event
between ticks, so stopping is immediate and never busy-polls. The
out-of-bounds callback fires at most once per monitoring run.
"""

import threading
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FutureTimeoutError
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Optional

from fieldclock.config.logging import get_logger
from fieldclock.config.settings import settings
from fieldclock.core.exceptions import InvalidCoordinateError, LocationUnavailableError
from fieldclock.services.location.location_provider import LocationProvider
from fieldclock.utils.geo_utils import Coordinate, GeoMath

logger = get_logger(__name__)


@dataclass(frozen=True)
class Geofence:
    """Detached copy of a work location's boundary, safe to share across threads"""
    location_id: str
    name: str
    center: Coordinate
    radius_meters: float

    @classmethod
    def from_location(cls, location) -> "Geofence":
        return cls(
            location_id=location.id,
            name=location.name,
            center=Coordinate(location.latitude, location.longitude),
            radius_meters=location.radius_meters,
        )


@dataclass
class LocationVerification:
    valid: bool
    nearest: Optional[Geofence] = None
    distance: Optional[float] = None
    reason: Optional[str] = None


OutOfBoundsCallback = Callable[[str, LocationVerification], None]


@dataclass
class _MonitorHandle:
    session_id: str
    allowed: List[Geofence]
    on_out_of_bounds: OutOfBoundsCallback
    is_open: Optional[Callable[[], bool]] = None
    provider: Optional[LocationProvider] = None
    stop_event: threading.Event = field(default_factory=threading.Event)
    lock: threading.Lock = field(default_factory=threading.Lock)
    fired: bool = False
    warning: Optional[str] = None
    thread: Optional[threading.Thread] = None


class LocationMonitor:
    """
    Acquires coordinates and validates them against allowed geofences.

    ``stop_monitoring`` only signals the worker; it never joins it, so it
    is safe to call while holding locks the callback may also take.
    """

    def __init__(
        self,
        provider: Optional[LocationProvider] = None,
        interval_seconds: Optional[float] = None,
        acquire_timeout_seconds: Optional[float] = None,
        tolerance_meters: Optional[float] = None,
    ):
        self.provider = provider
        self.interval_seconds = (
            settings.LOCATION_CHECK_INTERVAL_SECONDS if interval_seconds is None else interval_seconds
        )
        self.acquire_timeout_seconds = (
            settings.LOCATION_ACQUIRE_TIMEOUT_SECONDS
            if acquire_timeout_seconds is None else acquire_timeout_seconds
        )
        self.tolerance_meters = (
            settings.GEOFENCE_TOLERANCE_METERS if tolerance_meters is None else tolerance_meters
        )
        self._executor = ThreadPoolExecutor(max_workers=4, thread_name_prefix="location-acquire")
        self._handles: Dict[str, _MonitorHandle] = {}
        self._handles_lock = threading.Lock()

    # ------------------------------------------------------------------ #
    # Acquisition and verification
    # ------------------------------------------------------------------ #

    def acquire(self, provider: Optional[LocationProvider] = None) -> Coordinate:
        """
        Read the current coordinate within the acquisition timeout.

        Raises:
            LocationUnavailableError: timeout, permission denial or no fix
        """
        provider = provider or self.provider
        if provider is None:
            raise LocationUnavailableError("No location provider configured")

        future = self._executor.submit(provider.get_current_coordinate)
        try:
            coordinate = future.result(timeout=self.acquire_timeout_seconds)
        except FutureTimeoutError as e:
            future.cancel()
            raise LocationUnavailableError(
                f"Location acquisition timed out after {self.acquire_timeout_seconds}s"
            ) from e
        except PermissionError as e:
            raise LocationUnavailableError("Location permission denied") from e
        except InvalidCoordinateError:
            raise
        except Exception as e:
            raise LocationUnavailableError(f"Location could not be determined: {e}") from e

        if not isinstance(coordinate, Coordinate):
            raise LocationUnavailableError("Location provider returned no coordinate")
        return coordinate

    def verify(
        self,
        coordinate: Coordinate,
        allowed_locations: Iterable[Geofence],
        tolerance_meters: Optional[float] = None,
    ) -> LocationVerification:
        """
        Valid iff the coordinate is within radius + tolerance of some location.

        ``nearest`` is the closest satisfying location when valid, otherwise
        the closest location overall. An empty list is never valid.
        """
        tolerance = self.tolerance_meters if tolerance_meters is None else tolerance_meters
        fences = list(allowed_locations)
        inside = [
            fence for fence in fences
            if GeoMath.is_within_radius(coordinate, fence.center, fence.radius_meters + tolerance)
        ]
        best_valid = GeoMath.nearest(coordinate, ((fence, fence.center) for fence in inside))
        if best_valid is not None:
            return LocationVerification(valid=True, nearest=best_valid[0], distance=best_valid[1])

        best_any = GeoMath.nearest(coordinate, ((fence, fence.center) for fence in fences))
        if best_any is not None:
            fence, d = best_any
            return LocationVerification(
                valid=False,
                nearest=fence,
                distance=d,
                reason=f"{round(d)}m from {fence.name} (allowed {round(fence.radius_meters + tolerance)}m)",
            )
        return LocationVerification(valid=False, reason="No authorized locations")

    # ------------------------------------------------------------------ #
    # Periodic monitoring
    # ------------------------------------------------------------------ #

    def start_monitoring(
        self,
        session_id: str,
        allowed_locations: Iterable[Geofence],
        on_out_of_bounds: OutOfBoundsCallback,
        is_open: Optional[Callable[[], bool]] = None,
        provider: Optional[LocationProvider] = None,
    ) -> None:
        """Begin re-verifying every interval until stopped or out of bounds."""
        self.stop_monitoring(session_id)

        handle = _MonitorHandle(
            session_id=session_id,
            allowed=list(allowed_locations),
            on_out_of_bounds=on_out_of_bounds,
            is_open=is_open,
            provider=provider,
        )
        handle.thread = threading.Thread(
            target=self._run,
            args=(handle,),
            name=f"location-monitor-{session_id}",
            daemon=True,
        )
        with self._handles_lock:
            self._handles[session_id] = handle
        handle.thread.start()
        logger.info(
            f"Location monitoring started ({len(handle.allowed)} locations, every {self.interval_seconds}s)",
            extra={"session_id": session_id},
        )

    def stop_monitoring(self, session_id: str) -> bool:
        """Idempotent. Returns True if a monitor was running."""
        with self._handles_lock:
            handle = self._handles.pop(session_id, None)
        if handle is None:
            return False

        with handle.lock:
            handle.stop_event.set()
        logger.info("Location monitoring stopped", extra={"session_id": session_id})
        return True

    def stop_all(self) -> None:
        with self._handles_lock:
            session_ids = list(self._handles)
        for session_id in session_ids:
            self.stop_monitoring(session_id)
        self._executor.shutdown(wait=False, cancel_futures=True)

    def is_monitoring(self, session_id: str) -> bool:
        with self._handles_lock:
            handle = self._handles.get(session_id)
        return handle is not None and not handle.stop_event.is_set()

    def warning_for(self, session_id: str) -> Optional[str]:
        with self._handles_lock:
            handle = self._handles.get(session_id)
        return handle.warning if handle else None

    def run_check(self, session_id: str) -> bool:
        """
        Run one tick synchronously. Returns False when no monitor is active
        or the tick ended monitoring.
        """
        with self._handles_lock:
            handle = self._handles.get(session_id)
        if handle is None:
            return False
        return self._tick(handle)

    def _run(self, handle: _MonitorHandle) -> None:
        while not handle.stop_event.wait(self.interval_seconds):
            if not self._tick(handle):
                break

    def _tick(self, handle: _MonitorHandle) -> bool:
        """One verification pass. Returns whether monitoring continues."""
        if handle.stop_event.is_set():
            return False
        if handle.is_open is not None and not handle.is_open():
            self.stop_monitoring(handle.session_id)
            return False

        try:
            coordinate = self.acquire(handle.provider)
            result = self.verify(coordinate, handle.allowed)
        except (LocationUnavailableError, InvalidCoordinateError) as e:
            logger.warning(
                f"Location unavailable during monitoring: {e.message}",
                extra={"session_id": handle.session_id},
            )
            result = LocationVerification(valid=False, reason=e.message)

        if result.valid:
            if handle.warning:
                logger.info("Location warning cleared", extra={"session_id": handle.session_id})
            handle.warning = None
            return True

        with handle.lock:
            if handle.fired or handle.stop_event.is_set():
                return False
            handle.fired = True
            handle.warning = result.reason or "Outside authorized area"
            handle.stop_event.set()

        logger.warning(
            f"Session out of bounds: {handle.warning}",
            extra={"session_id": handle.session_id},
        )
        try:
            handle.on_out_of_bounds(handle.session_id, result)
        except Exception:
            logger.error(
                "Out-of-bounds callback failed",
                exc_info=True,
                extra={"session_id": handle.session_id},
            )
        finally:
            with self._handles_lock:
                if self._handles.get(handle.session_id) is handle:
                    del self._handles[handle.session_id]
        return False
