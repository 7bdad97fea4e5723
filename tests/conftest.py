import os

os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("DATABASE_URL", "sqlite://")

from datetime import datetime, time, timedelta

import pytest
from sqlalchemy.pool import StaticPool

from fieldclock.db.init_db import init_db
from fieldclock.db.session import build_engine, build_session_factory
from fieldclock.models.enums import ScheduleLocationType
from fieldclock.models.schedule_entry import ScheduleEntry
from fieldclock.models.work_location import WorkLocation
from fieldclock.services.location.location_monitor import LocationMonitor
from fieldclock.services.location.location_provider import StaticLocationProvider
from fieldclock.services.schedule.schedule_matcher import ScheduleMatcher
from fieldclock.services.session.session_service import SessionService
from fieldclock.utils.geo_utils import Coordinate, GeoMath

# Monday
NOW = datetime(2024, 3, 4, 13, 5)
ORG_ID = "org-1"
USER_ID = "user-1"
OFFICE = Coordinate(40.7128, -74.0060)

METERS_PER_DEGREE_LATITUDE = GeoMath.EARTH_RADIUS_METERS * 3.141592653589793 / 180.0


def north_of(origin: Coordinate, meters: float) -> Coordinate:
    """Point ``meters`` due north of ``origin`` along its meridian."""
    return Coordinate(origin.latitude + meters / METERS_PER_DEGREE_LATITUDE, origin.longitude)


class FakeClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


@pytest.fixture
def engine():
    engine = build_engine("sqlite://", poolclass=StaticPool)
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_session_factory(engine)


@pytest.fixture
def clock():
    return FakeClock(NOW)


@pytest.fixture
def provider():
    return StaticLocationProvider(OFFICE)


@pytest.fixture
def monitor(provider):
    # Ticks are driven with run_check; the background interval never elapses
    monitor = LocationMonitor(
        provider=provider,
        interval_seconds=3600,
        acquire_timeout_seconds=2,
        tolerance_meters=20,
    )
    yield monitor
    monitor.stop_all()


@pytest.fixture
def service(session_factory, monitor, clock):
    service = SessionService(
        session_factory,
        location_monitor=monitor,
        matcher=ScheduleMatcher(timezone="UTC"),
        clock=clock,
    )
    yield service
    service.shutdown()


def add_work_location(session_factory, **overrides) -> WorkLocation:
    values = dict(
        org_id=ORG_ID,
        name="Main Campus",
        latitude=OFFICE.latitude,
        longitude=OFFICE.longitude,
        radius_meters=100.0,
        is_active=True,
        is_main_office=True,
    )
    values.update(overrides)
    with session_factory() as db:
        location = WorkLocation(**values)
        db.add(location)
        db.commit()
        return location


def add_schedule_entry(session_factory, **overrides) -> ScheduleEntry:
    values = dict(
        user_id=USER_ID,
        org_id=ORG_ID,
        course_name="Algebra I",
        day_of_week=0,
        start_time=time(13, 0),
        end_time=time(14, 0),
        location_type=ScheduleLocationType.ONSITE,
        is_active=True,
    )
    values.update(overrides)
    with session_factory() as db:
        entry = ScheduleEntry(**values)
        db.add(entry)
        db.commit()
        return entry


@pytest.fixture
def office(session_factory):
    return add_work_location(session_factory)
