"""
Work location routes: listing, administration, registration and
client-reported coordinates.
"""
from typing import List, Optional

from fastapi import APIRouter, Depends

from fieldclock.api.deps import (
    CurrentUser,
    get_admin_user,
    get_current_user,
    get_location_service,
    get_session_service,
    unwrap_result,
)
from fieldclock.schemas.location import (
    CoordinateSchema,
    LocationRegistrationResponse,
    NearestLocationResponse,
    RegisterLocationRequest,
    VerifyRegistrationRequest,
    WorkLocationCreate,
    WorkLocationResponse,
)
from fieldclock.services.location import LocationRegistryService
from fieldclock.services.session import SessionService

router = APIRouter(tags=["Locations"])


@router.post("/locations/report", status_code=204)
def report_location(
    payload: CoordinateSchema,
    current_user: CurrentUser = Depends(get_current_user),
    service: SessionService = Depends(get_session_service),
):
    unwrap_result(service.report_location(current_user.id, payload.to_coordinate()))


@router.post("/locations/nearest", response_model=Optional[NearestLocationResponse])
def nearest_location(
    payload: CoordinateSchema,
    org_id: Optional[str] = None,
    current_user: CurrentUser = Depends(get_current_user),
    service: LocationRegistryService = Depends(get_location_service),
):
    return unwrap_result(service.nearest_location(current_user.id, payload.to_coordinate(), org_id))


@router.get("/locations/registered/me", response_model=List[LocationRegistrationResponse])
def list_my_registrations(
    current_user: CurrentUser = Depends(get_current_user),
    service: LocationRegistryService = Depends(get_location_service),
):
    return unwrap_result(service.list_registered(current_user.id))


@router.get("/locations/{org_id}", response_model=List[WorkLocationResponse])
def list_work_locations(
    org_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    service: LocationRegistryService = Depends(get_location_service),
):
    return unwrap_result(service.list_work_locations(org_id))


@router.post("/locations", response_model=WorkLocationResponse, status_code=201)
def create_work_location(
    payload: WorkLocationCreate,
    admin: CurrentUser = Depends(get_admin_user),
    service: LocationRegistryService = Depends(get_location_service),
):
    return unwrap_result(service.create_work_location(payload))


@router.post("/locations/{location_id}/deactivate", response_model=WorkLocationResponse)
def deactivate_work_location(
    location_id: str,
    admin: CurrentUser = Depends(get_admin_user),
    service: LocationRegistryService = Depends(get_location_service),
):
    return unwrap_result(service.deactivate_work_location(location_id))


@router.post(
    "/locations/{location_id}/register",
    response_model=LocationRegistrationResponse,
    status_code=201,
)
def register_location(
    location_id: str,
    payload: RegisterLocationRequest,
    current_user: CurrentUser = Depends(get_current_user),
    service: LocationRegistryService = Depends(get_location_service),
):
    return unwrap_result(
        service.register_location(
            current_user.id, location_id, payload.coordinate.to_coordinate(), payload.notes
        )
    )


@router.post(
    "/locations/registrations/{registration_id}/verify",
    response_model=LocationRegistrationResponse,
)
def verify_registration(
    registration_id: str,
    payload: VerifyRegistrationRequest,
    admin: CurrentUser = Depends(get_admin_user),
    service: LocationRegistryService = Depends(get_location_service),
):
    return unwrap_result(
        service.verify_registration(registration_id, payload.verified, admin.id, payload.notes)
    )
