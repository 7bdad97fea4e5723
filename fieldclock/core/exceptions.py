"""
Custom Exceptions for the field attendance engine

This module defines custom exception classes used throughout the application
for better error handling and debugging.
"""

from typing import Any, Dict, List, Optional
from enum import Enum


class ErrorCode(str, Enum):
    """Standard error codes for the application"""
    # General errors
    INTERNAL_ERROR = "INTERNAL_ERROR"
    RESOURCE_NOT_FOUND = "RESOURCE_NOT_FOUND"
    OPERATION_FAILED = "OPERATION_FAILED"

    # Validation errors
    VALIDATION_ERROR = "VALIDATION_ERROR"
    MISSING_REQUIRED_FIELD = "MISSING_REQUIRED_FIELD"
    MISSING_COURSE_NAME = "MISSING_COURSE_NAME"
    MISSING_PLATFORM = "MISSING_PLATFORM"
    LOCATION_REQUIRED = "LOCATION_REQUIRED"
    INVALID_COORDINATE = "INVALID_COORDINATE"
    INVALID_SPECIAL_CASE = "INVALID_SPECIAL_CASE"

    # State errors
    INVALID_TRANSITION = "INVALID_TRANSITION"
    ALREADY_ACTIVE = "ALREADY_ACTIVE"

    # Location errors
    LOCATION_UNAVAILABLE = "LOCATION_UNAVAILABLE"
    OUT_OF_BOUNDS = "OUT_OF_BOUNDS"

    # Schedule errors
    SCHEDULE_UNAVAILABLE = "SCHEDULE_UNAVAILABLE"

    # Database errors
    DATABASE_ERROR = "DATABASE_ERROR"

    # Configuration errors
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"


class BaseAppException(Exception):
    """
    Base exception class for all application exceptions.

    Provides consistent error handling across the application with
    structured error information.
    """

    def __init__(
        self,
        message: str,
        error_code: ErrorCode = ErrorCode.INTERNAL_ERROR,
        details: Optional[Dict[str, Any]] = None,
        status_code: int = 500
    ):
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        self.status_code = status_code
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary format"""
        return {
            "error": {
                "message": self.message,
                "code": self.error_code.value,
                "details": self.details,
                "type": self.__class__.__name__
            }
        }

    def __str__(self) -> str:
        return f"{self.error_code.value}: {self.message}"

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(message='{self.message}', error_code='{self.error_code.value}')"


# ========================================
# Validation Exceptions
# ========================================

class ValidationError(BaseAppException):
    """Exception raised when input is missing a field required by entry type or work location"""

    def __init__(
        self,
        message: str = "Validation failed",
        field_errors: Optional[Dict[str, List[str]]] = None,
        error_code: ErrorCode = ErrorCode.VALIDATION_ERROR,
        status_code: int = 422,
        details: Optional[Dict[str, Any]] = None,
    ):
        merged = dict(details or {})
        if field_errors:
            merged["field_errors"] = field_errors
        super().__init__(message, error_code, merged, status_code)


class MissingCourseNameError(ValidationError):
    """Teaching sessions must name the course being taught"""

    def __init__(self, message: str = "Course name is required for teaching sessions"):
        super().__init__(
            message,
            field_errors={"course_name": ["required when entry_type is teaching"]},
            error_code=ErrorCode.MISSING_COURSE_NAME,
        )


class MissingPlatformError(ValidationError):
    """Online sessions must name the platform they run on"""

    def __init__(self, message: str = "Online platform is required for online sessions"):
        super().__init__(
            message,
            field_errors={"online_platform": ["required when work_location is online"]},
            error_code=ErrorCode.MISSING_PLATFORM,
        )


class LocationRequiredError(ValidationError):
    """Onsite check-in without a resolvable work location"""

    def __init__(
        self,
        message: str = "A work location must be selected for onsite check-in",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(
            message,
            field_errors={"location_id": ["required when work_location is onsite"]},
            error_code=ErrorCode.LOCATION_REQUIRED,
            details=details,
        )


class InvalidCoordinateError(ValidationError):
    """Coordinate with non-finite or out-of-range components"""

    def __init__(self, latitude: Any = None, longitude: Any = None, message: Optional[str] = None):
        super().__init__(
            message or f"Invalid coordinate ({latitude}, {longitude})",
            error_code=ErrorCode.INVALID_COORDINATE,
            details={"latitude": repr(latitude), "longitude": repr(longitude)},
        )


class InvalidSpecialCaseError(ValidationError):
    """Special case payload that the handler for its type cannot accept"""

    def __init__(
        self,
        case_type: str,
        message: str,
        field: Optional[str] = None,
    ):
        super().__init__(
            message,
            field_errors={field: [message]} if field else None,
            error_code=ErrorCode.INVALID_SPECIAL_CASE,
            details={"case_type": case_type},
        )


# ========================================
# State Exceptions
# ========================================

class StateError(BaseAppException):
    """Exception raised when a session is not in a state that allows the operation"""

    def __init__(
        self,
        message: str = "Invalid session state",
        error_code: ErrorCode = ErrorCode.INVALID_TRANSITION,
        details: Optional[Dict[str, Any]] = None,
        status_code: int = 409
    ):
        super().__init__(message, error_code, details, status_code)


class InvalidTransitionError(StateError):
    """Transition not allowed from the session's current state"""

    def __init__(self, current_state: str, event: str, session_id: Optional[str] = None):
        super().__init__(
            f"Cannot {event} a session that is {current_state}",
            ErrorCode.INVALID_TRANSITION,
            {"current_state": current_state, "event": event, "session_id": session_id},
        )
        self.current_state = current_state
        self.event = event


class AlreadyActiveError(StateError):
    """User already has an open session"""

    def __init__(self, user_id: str, session_id: Optional[str] = None):
        super().__init__(
            "User already has an open session",
            ErrorCode.ALREADY_ACTIVE,
            {"user_id": user_id, "session_id": session_id},
        )


# ========================================
# Location Exceptions
# ========================================

class LocationError(BaseAppException):
    """Base exception for location acquisition and geofence failures"""

    def __init__(
        self,
        message: str = "Location check failed",
        error_code: ErrorCode = ErrorCode.LOCATION_UNAVAILABLE,
        details: Optional[Dict[str, Any]] = None,
        status_code: int = 503
    ):
        super().__init__(message, error_code, details, status_code)


class LocationUnavailableError(LocationError):
    """Current coordinate could not be acquired (timeout or permission denial)"""

    def __init__(self, reason: str = "Location could not be determined"):
        super().__init__(reason, ErrorCode.LOCATION_UNAVAILABLE, {"reason": reason}, 503)


class OutOfBoundsError(LocationError):
    """Coordinate is outside every authorized geofence"""

    def __init__(
        self,
        message: str = "Current location is outside the allowed area",
        distance_meters: Optional[float] = None,
        allowed_meters: Optional[float] = None,
        location_id: Optional[str] = None,
    ):
        super().__init__(
            message,
            ErrorCode.OUT_OF_BOUNDS,
            {
                "distance_meters": distance_meters,
                "allowed_meters": allowed_meters,
                "location_id": location_id,
            },
            403,
        )


# ========================================
# Schedule Exceptions
# ========================================

class ScheduleError(BaseAppException):
    """Schedule source unreachable; converted to 'no match' by the matcher"""

    def __init__(self, message: str = "Schedule source unavailable", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, ErrorCode.SCHEDULE_UNAVAILABLE, details, 503)


# ========================================
# Resource Not Found Exceptions
# ========================================

class ResourceNotFoundError(BaseAppException):
    """Exception raised when a requested resource is not found"""

    def __init__(
        self,
        resource_type: str = "Resource",
        resource_id: Optional[str] = None,
        message: Optional[str] = None
    ):
        if not message:
            message = f"{resource_type} not found"
            if resource_id:
                message += f" (ID: {resource_id})"

        details = {
            "resource_type": resource_type,
            "resource_id": resource_id
        }
        super().__init__(message, ErrorCode.RESOURCE_NOT_FOUND, details, 404)


class SessionNotFoundError(ResourceNotFoundError):
    def __init__(self, session_id: Optional[str] = None):
        super().__init__("Session", session_id)


class WorkLocationNotFoundError(ResourceNotFoundError):
    def __init__(self, location_id: Optional[str] = None):
        super().__init__("Work location", location_id)


class RegistrationNotFoundError(ResourceNotFoundError):
    def __init__(self, registration_id: Optional[str] = None):
        super().__init__("Location registration", registration_id)


# ========================================
# Infrastructure Exceptions
# ========================================

class DatabaseError(BaseAppException):
    """Exception raised for database-related errors"""

    def __init__(
        self,
        message: str = "Database operation failed",
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, ErrorCode.DATABASE_ERROR, details, 500)


class ConfigurationError(BaseAppException):
    """Exception raised for configuration errors"""

    def __init__(self, message: str = "Configuration error", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, ErrorCode.CONFIGURATION_ERROR, details, 500)
