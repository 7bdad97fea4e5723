"""
Utility modules for the field attendance engine
"""

from fieldclock.utils.geo_utils import Coordinate, GeoMath
from fieldclock.utils.datetime_utils import TimezoneConverter, minutes_between, to_naive_utc, utcnow

__all__ = [
    'Coordinate',
    'GeoMath',
    'TimezoneConverter',
    'minutes_between',
    'to_naive_utc',
    'utcnow',
]
