import math

import pytest

from fieldclock.core.exceptions import InvalidCoordinateError
from fieldclock.utils.geo_utils import Coordinate, GeoMath

from tests.conftest import OFFICE, north_of


def test_distance_to_self_is_zero():
    assert GeoMath.distance(OFFICE, OFFICE) == 0


def test_distance_is_symmetric():
    paris = Coordinate(48.8566, 2.3522)
    london = Coordinate(51.5074, -0.1278)
    assert GeoMath.distance(paris, london) == pytest.approx(GeoMath.distance(london, paris))


def test_paris_to_london():
    paris = Coordinate(48.8566, 2.3522)
    london = Coordinate(51.5074, -0.1278)
    assert GeoMath.distance(paris, london) == pytest.approx(343_500, rel=0.01)


def test_distance_along_meridian():
    assert GeoMath.distance(OFFICE, north_of(OFFICE, 250)) == pytest.approx(250, abs=0.01)


def test_antipodal_points_do_not_overflow():
    d = GeoMath.distance(Coordinate(0, 0), Coordinate(0, 180))
    assert d == pytest.approx(math.pi * GeoMath.EARTH_RADIUS_METERS)


@pytest.mark.parametrize(
    "latitude,longitude",
    [(91, 0), (-90.5, 0), (0, 180.1), (0, -181), (float("nan"), 0), (0, float("inf"))],
)
def test_invalid_coordinates_rejected(latitude, longitude):
    with pytest.raises(InvalidCoordinateError):
        Coordinate(latitude, longitude)


def test_boundary_coordinates_accepted():
    Coordinate(90, 180)
    Coordinate(-90, -180)


def test_is_within_radius():
    assert GeoMath.is_within_radius(north_of(OFFICE, 99), OFFICE, 100)
    assert not GeoMath.is_within_radius(north_of(OFFICE, 101), OFFICE, 100)


def test_nearest():
    candidates = [
        ("far", north_of(OFFICE, 500)),
        ("near", north_of(OFFICE, 50)),
    ]
    item, distance = GeoMath.nearest(OFFICE, candidates)
    assert item == "near"
    assert distance == pytest.approx(50, abs=0.01)
    assert GeoMath.nearest(OFFICE, []) is None
