from functools import lru_cache
from typing import Optional

from fastapi import Depends, Header, HTTPException, status

from fieldclock.db.session import SessionLocal
from fieldclock.services.base.service_result import ServiceResult
from fieldclock.services.location import LocationRegistryService
from fieldclock.services.session import SessionService

ADMIN_ROLES = frozenset({"admin", "manager"})


# ------------------------------------------------------------------ #
# Services
# ------------------------------------------------------------------ #
def get_session_factory():
    """
    Provide a session factory for services that expect Callable[[], Session].
    """
    return SessionLocal


@lru_cache()
def get_session_service() -> SessionService:
    """
    Process-wide SessionService. It owns the location monitor threads and
    per-user locks, so every request must share one instance.
    """
    return SessionService(session_factory=get_session_factory())


@lru_cache()
def get_location_service() -> LocationRegistryService:
    return LocationRegistryService(session_factory=get_session_factory())


# ------------------------------------------------------------------ #
# Identity
# ------------------------------------------------------------------ #
class CurrentUser:
    """
    Caller identity as asserted by the upstream gateway headers.
    """

    def __init__(self, user_id: str, role: Optional[str] = None):
        self.id = user_id
        self.role = (role or "staff").lower()

    @property
    def is_admin(self) -> bool:
        return self.role in ADMIN_ROLES


def get_current_user(
    x_user_id: Optional[str] = Header(None),
    x_user_role: Optional[str] = Header(None),
) -> CurrentUser:
    if not x_user_id:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing X-User-Id header",
        )
    return CurrentUser(user_id=x_user_id, role=x_user_role)


def get_admin_user(current_user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
    if not current_user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin role required",
        )
    return current_user


# ------------------------------------------------------------------ #
# Results
# ------------------------------------------------------------------ #
def unwrap_result(result: ServiceResult):
    """Return the result data or raise the failure as an HTTPException."""
    if not result.is_success:
        raise HTTPException(
            status_code=result.error.status_code,
            detail=result.error.to_dict(),
        )
    return result.data


__all__ = [
    "CurrentUser",
    "get_admin_user",
    "get_current_user",
    "get_location_service",
    "get_session_factory",
    "get_session_service",
    "unwrap_result",
]
