"""
Core package: exception taxonomy and domain enums shared by every layer.
"""

from fieldclock.core.exceptions import (
    AlreadyActiveError,
    BaseAppException,
    ConfigurationError,
    DatabaseError,
    ErrorCode,
    InvalidCoordinateError,
    InvalidSpecialCaseError,
    InvalidTransitionError,
    LocationError,
    LocationRequiredError,
    LocationUnavailableError,
    MissingCourseNameError,
    MissingPlatformError,
    OutOfBoundsError,
    RegistrationNotFoundError,
    ResourceNotFoundError,
    ScheduleError,
    SessionNotFoundError,
    StateError,
    ValidationError,
    WorkLocationNotFoundError,
)

__all__ = [
    "AlreadyActiveError",
    "BaseAppException",
    "ConfigurationError",
    "DatabaseError",
    "ErrorCode",
    "InvalidCoordinateError",
    "InvalidSpecialCaseError",
    "InvalidTransitionError",
    "LocationError",
    "LocationRequiredError",
    "LocationUnavailableError",
    "MissingCourseNameError",
    "MissingPlatformError",
    "OutOfBoundsError",
    "RegistrationNotFoundError",
    "ResourceNotFoundError",
    "ScheduleError",
    "SessionNotFoundError",
    "StateError",
    "ValidationError",
    "WorkLocationNotFoundError",
]
