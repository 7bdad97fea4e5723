from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from fieldclock.api.deps import CurrentUser, get_current_user, get_session_service, unwrap_result
from fieldclock.schemas.schedule import ScheduleEntryResponse, ScheduleMatch
from fieldclock.services.session import SessionService

router = APIRouter(tags=["Schedules"])


@router.get("/schedules/{user_id}/match", response_model=Optional[ScheduleMatch])
def match_schedule(
    user_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    service: SessionService = Depends(get_session_service),
):
    """Best schedule entry for right now, or null when nothing matches."""
    return unwrap_result(service.detect_schedule(user_id))


@router.get("/schedules/{user_id}/day", response_model=List[ScheduleEntryResponse])
def day_schedule(
    user_id: str,
    day: Optional[date] = Query(None, description="Defaults to today in the configured timezone"),
    current_user: CurrentUser = Depends(get_current_user),
    service: SessionService = Depends(get_session_service),
):
    return unwrap_result(service.get_day_schedule(user_id, day))
