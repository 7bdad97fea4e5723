"""
Session lifecycle routes: check-in, pause/resume, check-out, special cases.
"""
from typing import List, Optional

from fastapi import APIRouter, Depends

from fieldclock.api.deps import (
    CurrentUser,
    get_admin_user,
    get_current_user,
    get_session_service,
    unwrap_result,
)
from fieldclock.models.enums import SpecialCaseType
from fieldclock.schemas.session import (
    CheckInBody,
    CheckInRequest,
    CheckOutRequest,
    ElapsedResponse,
    LiveSessionResponse,
    PauseRequest,
    SessionEntryResponse,
)
from fieldclock.schemas.special_case import SpecialCaseRequest, SuggestedAction
from fieldclock.services.session import SessionService

router = APIRouter(tags=["Sessions"])


@router.post("/sessions/check-in", response_model=SessionEntryResponse, status_code=201)
def check_in(
    payload: CheckInBody,
    current_user: CurrentUser = Depends(get_current_user),
    service: SessionService = Depends(get_session_service),
):
    request = CheckInRequest(user_id=current_user.id, **payload.model_dump())
    return unwrap_result(service.check_in(request))


@router.post("/sessions/{session_id}/pause", response_model=SessionEntryResponse)
def pause_session(
    session_id: str,
    payload: Optional[PauseRequest] = None,
    current_user: CurrentUser = Depends(get_current_user),
    service: SessionService = Depends(get_session_service),
):
    return unwrap_result(service.pause(session_id, payload))


@router.post("/sessions/{session_id}/resume", response_model=SessionEntryResponse)
def resume_session(
    session_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    service: SessionService = Depends(get_session_service),
):
    return unwrap_result(service.resume(session_id))


@router.post("/sessions/{session_id}/check-out", response_model=SessionEntryResponse)
def check_out(
    session_id: str,
    payload: Optional[CheckOutRequest] = None,
    current_user: CurrentUser = Depends(get_current_user),
    service: SessionService = Depends(get_session_service),
):
    return unwrap_result(service.check_out(session_id, payload))


@router.post("/sessions/{session_id}/special-cases", response_model=SessionEntryResponse)
def report_special_case(
    session_id: str,
    payload: SpecialCaseRequest,
    current_user: CurrentUser = Depends(get_current_user),
    service: SessionService = Depends(get_session_service),
):
    return unwrap_result(service.report_special_case(session_id, payload.case_type, payload.payload))


@router.get("/sessions/{session_id}/elapsed", response_model=ElapsedResponse)
def get_elapsed(
    session_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    service: SessionService = Depends(get_session_service),
):
    minutes = unwrap_result(service.get_elapsed_minutes(session_id))
    return ElapsedResponse(session_id=session_id, elapsed_minutes=minutes)


@router.get("/sessions/active/{user_id}", response_model=Optional[SessionEntryResponse])
def get_active_session(
    user_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    service: SessionService = Depends(get_session_service),
):
    return unwrap_result(service.get_active_session(user_id))


@router.get("/sessions/history/{user_id}", response_model=List[SessionEntryResponse])
def list_sessions(
    user_id: str,
    limit: Optional[int] = None,
    current_user: CurrentUser = Depends(get_current_user),
    service: SessionService = Depends(get_session_service),
):
    return unwrap_result(service.list_sessions(user_id, limit))


@router.get("/sessions/live/{org_id}", response_model=List[LiveSessionResponse])
def list_live_sessions(
    org_id: str,
    admin: CurrentUser = Depends(get_admin_user),
    service: SessionService = Depends(get_session_service),
):
    return unwrap_result(service.list_live_sessions(org_id))


@router.get("/special-cases/{case_type}/actions", response_model=List[SuggestedAction])
def suggested_actions(
    case_type: SpecialCaseType,
    service: SessionService = Depends(get_session_service),
):
    return unwrap_result(service.suggested_actions(case_type))
