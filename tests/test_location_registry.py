import pytest

from fieldclock.core.exceptions import ErrorCode, OutOfBoundsError, WorkLocationNotFoundError
from fieldclock.models.enums import RegistrationSource
from fieldclock.schemas.location import WorkLocationCreate
from fieldclock.services.base.unit_of_work import UnitOfWork
from fieldclock.services.location.location_registry_service import (
    LocationRegistry,
    LocationRegistryService,
)

from tests.conftest import NOW, OFFICE, ORG_ID, USER_ID, add_work_location, north_of


@pytest.fixture
def registry():
    return LocationRegistry(buffer_meters=20)


@pytest.fixture
def location_service(session_factory, clock):
    return LocationRegistryService(session_factory, registry=LocationRegistry(buffer_meters=20), clock=clock)


class TestAutoRegistration:
    def test_registers_locations_within_radius_plus_buffer(self, session_factory, registry, office):
        far = add_work_location(
            session_factory, name="Annex", latitude=north_of(OFFICE, 400).latitude, is_main_office=False
        )
        with UnitOfWork(session_factory) as uow:
            created = registry.auto_register_nearby(uow, USER_ID, north_of(OFFICE, 115), ORG_ID, NOW)

        assert [r.location_id for r in created] == [office.id]
        registration = created[0]
        assert registration.is_verified
        assert registration.source == RegistrationSource.AUTO
        assert registration.notes.startswith("Auto-registered")
        assert registration.distance_meters == pytest.approx(115, abs=0.01)
        assert far.id not in {r.location_id for r in created}

    def test_is_idempotent(self, session_factory, registry, office):
        with UnitOfWork(session_factory) as uow:
            registry.auto_register_nearby(uow, USER_ID, OFFICE, ORG_ID, NOW)
        with UnitOfWork(session_factory) as uow:
            assert registry.auto_register_nearby(uow, USER_ID, OFFICE, ORG_ID, NOW) == []
            assert len(registry.list_registered(uow, USER_ID)) == 1

    def test_skips_inactive_locations(self, session_factory, registry):
        add_work_location(session_factory, is_active=False)
        with UnitOfWork(session_factory) as uow:
            assert registry.auto_register_nearby(uow, USER_ID, OFFICE, ORG_ID, NOW) == []

    def test_skips_other_organizations(self, session_factory, registry):
        add_work_location(session_factory, org_id="org-2")
        with UnitOfWork(session_factory) as uow:
            assert registry.auto_register_nearby(uow, USER_ID, OFFICE, ORG_ID, NOW) == []


class TestNearestRegistered:
    def test_returns_closest_registered_location(self, session_factory, registry, office):
        annex = add_work_location(
            session_factory, name="Annex", latitude=north_of(OFFICE, 150).latitude, is_main_office=False
        )
        with UnitOfWork(session_factory) as uow:
            registry.auto_register_nearby(uow, USER_ID, north_of(OFFICE, 100), ORG_ID, NOW)
        with UnitOfWork(session_factory) as uow:
            nearest = registry.nearest_registered(uow, USER_ID, north_of(OFFICE, 110), ORG_ID)

        assert nearest.location.id == annex.id
        assert nearest.distance_meters == pytest.approx(40, abs=0.01)

    def test_none_when_out_of_range(self, session_factory, registry, office):
        with UnitOfWork(session_factory) as uow:
            registry.auto_register_nearby(uow, USER_ID, OFFICE, ORG_ID, NOW)
        with UnitOfWork(session_factory) as uow:
            assert registry.nearest_registered(uow, USER_ID, north_of(OFFICE, 500), ORG_ID) is None

    def test_none_without_registrations(self, session_factory, registry, office):
        with UnitOfWork(session_factory) as uow:
            assert registry.nearest_registered(uow, USER_ID, OFFICE, ORG_ID) is None


class TestManualRegistration:
    def test_requires_being_inside_radius(self, session_factory, registry, office):
        with UnitOfWork(session_factory) as uow:
            with pytest.raises(OutOfBoundsError):
                # Inside the auto-registration buffer but outside the radius
                registry.register_location(uow, USER_ID, office.id, north_of(OFFICE, 110))

    def test_creates_unverified_manual_registration(self, session_factory, registry, office):
        with UnitOfWork(session_factory) as uow:
            registration = registry.register_location(uow, USER_ID, office.id, north_of(OFFICE, 40), "Room 12")

        assert not registration.is_verified
        assert registration.source == RegistrationSource.MANUAL
        assert registration.notes == "Room 12"

    def test_existing_registration_is_returned(self, session_factory, registry, office):
        with UnitOfWork(session_factory) as uow:
            first = registry.register_location(uow, USER_ID, office.id, OFFICE)
        with UnitOfWork(session_factory) as uow:
            second = registry.register_location(uow, USER_ID, office.id, OFFICE)
        assert first.id == second.id

    def test_inactive_location_rejected(self, session_factory, registry):
        inactive = add_work_location(session_factory, is_active=False)
        with UnitOfWork(session_factory) as uow:
            with pytest.raises(WorkLocationNotFoundError):
                registry.register_location(uow, USER_ID, inactive.id, OFFICE)


class TestLocationRegistryService:
    def test_create_and_list_work_locations(self, location_service):
        created = location_service.create_work_location(
            WorkLocationCreate(org_id=ORG_ID, name="Science Block", latitude=1.0, longitude=2.0)
        ).unwrap()
        assert created.radius_meters == 100.0
        assert created.is_active

        listed = location_service.list_work_locations(ORG_ID).unwrap()
        assert [loc.id for loc in listed] == [created.id]

    def test_deactivated_locations_are_not_listed(self, location_service, office):
        location_service.deactivate_work_location(office.id).unwrap()
        assert location_service.list_work_locations(ORG_ID).unwrap() == []

    def test_verify_registration(self, location_service, office, clock):
        registration = location_service.register_location(USER_ID, office.id, OFFICE).unwrap()
        verified = location_service.verify_registration(registration.id, True, "admin-1", "Checked on site").unwrap()

        assert verified.is_verified
        assert verified.verified_by == "admin-1"
        assert verified.verified_at == clock.now
        assert verified.notes == "Checked on site"

    def test_verify_unknown_registration(self, location_service):
        result = location_service.verify_registration("missing", True, "admin-1")
        assert not result.is_success
        assert result.error_code == ErrorCode.RESOURCE_NOT_FOUND
        assert result.error.status_code == 404

    def test_register_out_of_bounds_is_a_failure(self, location_service, office):
        result = location_service.register_location(USER_ID, office.id, north_of(OFFICE, 300))
        assert result.error_code == ErrorCode.OUT_OF_BOUNDS
        assert location_service.list_registered(USER_ID).unwrap() == []

    def test_nearest_location(self, location_service, office):
        location_service.register_location(USER_ID, office.id, OFFICE).unwrap()
        nearest = location_service.nearest_location(USER_ID, north_of(OFFICE, 30), ORG_ID).unwrap()
        assert nearest.location.id == office.id
        assert nearest.distance_meters == pytest.approx(30, abs=0.01)
