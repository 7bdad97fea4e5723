"""
API v1 Router - aggregates the session, location and schedule endpoints.
"""
from fastapi import APIRouter

from fieldclock.api.v1 import locations, schedules, sessions

router = APIRouter(
    responses={
        401: {"description": "Missing identity"},
        403: {"description": "Forbidden or outside authorized area"},
        404: {"description": "Not Found"},
        409: {"description": "Invalid state transition"},
        422: {"description": "Validation Error"},
        500: {"description": "Internal Server Error"},
        503: {"description": "Location unavailable"},
    }
)

router.include_router(sessions.router)
router.include_router(locations.router)
router.include_router(schedules.router)
