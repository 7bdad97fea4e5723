"""
Geolocation utilities for the field attendance engine
"""

import math
from dataclasses import dataclass
from typing import Iterable, Optional, Tuple, TypeVar

from fieldclock.core.exceptions import InvalidCoordinateError

T = TypeVar("T")


@dataclass(frozen=True)
class Coordinate:
    """Geographic point with latitude and longitude"""
    latitude: float
    longitude: float

    def __post_init__(self):
        GeoMath.validate(self.latitude, self.longitude)

    def as_tuple(self) -> Tuple[float, float]:
        return (self.latitude, self.longitude)


class GeoMath:
    """Great-circle distance helpers"""

    # Mean Earth radius in meters
    EARTH_RADIUS_METERS = 6371e3

    @staticmethod
    def validate(latitude, longitude) -> None:
        """Raise InvalidCoordinateError for non-finite or out-of-range components"""
        try:
            lat = float(latitude)
            lon = float(longitude)
        except (TypeError, ValueError) as exc:
            raise InvalidCoordinateError(latitude, longitude) from exc

        if not (math.isfinite(lat) and math.isfinite(lon)):
            raise InvalidCoordinateError(latitude, longitude)
        if not (-90 <= lat <= 90):
            raise InvalidCoordinateError(latitude, longitude, "Latitude must be between -90 and 90")
        if not (-180 <= lon <= 180):
            raise InvalidCoordinateError(latitude, longitude, "Longitude must be between -180 and 180")

    @staticmethod
    def distance(a: Coordinate, b: Coordinate) -> float:
        """Calculate distance in meters between two points using the Haversine formula"""
        GeoMath.validate(a.latitude, a.longitude)
        GeoMath.validate(b.latitude, b.longitude)

        lat1, lon1 = math.radians(a.latitude), math.radians(a.longitude)
        lat2, lon2 = math.radians(b.latitude), math.radians(b.longitude)

        dlat = lat2 - lat1
        dlon = lon2 - lon1

        h = (math.sin(dlat / 2) ** 2 +
             math.cos(lat1) * math.cos(lat2) * math.sin(dlon / 2) ** 2)
        # Clamp against float drift for antipodal points
        c = 2 * math.asin(math.sqrt(min(1.0, h)))

        return c * GeoMath.EARTH_RADIUS_METERS

    @staticmethod
    def is_within_radius(point: Coordinate, center: Coordinate, radius_meters: float) -> bool:
        return GeoMath.distance(point, center) <= radius_meters

    @staticmethod
    def nearest(
        point: Coordinate,
        candidates: Iterable[Tuple[T, Coordinate]],
    ) -> Optional[Tuple[T, float]]:
        """Return (item, distance) of the closest candidate, or None for an empty iterable"""
        best: Optional[Tuple[T, float]] = None
        for item, coordinate in candidates:
            d = GeoMath.distance(point, coordinate)
            if best is None or d < best[1]:
                best = (item, d)
        return best
