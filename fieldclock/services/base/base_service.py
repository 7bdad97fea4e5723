"""
Base service class providing common functionality for all services.
"""

from abc import ABC
from typing import Any, Callable, Dict, Optional, TypeVar

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from fieldclock.config.logging import get_logger
from fieldclock.core.exceptions import BaseAppException, ErrorCode
from fieldclock.services.base.service_result import (
    ErrorSeverity,
    ServiceError,
    ServiceResult,
)
from fieldclock.services.base.unit_of_work import UnitOfWork

TData = TypeVar("TData")


class BaseService(ABC):
    """
    Base service with common behaviors:
    - Shared logger and session factory
    - One UnitOfWork per logical operation
    - Consistent error handling via ServiceResult
    """

    def __init__(self, session_factory: Callable[[], Session]):
        """
        Initialize base service.

        Args:
            session_factory: Factory returning new SQLAlchemy sessions
        """
        self.session_factory = session_factory
        self._logger = get_logger(f"{self.__class__.__module__}.{self.__class__.__name__}")

    def unit_of_work(self) -> UnitOfWork:
        return UnitOfWork(self.session_factory)

    # -------------------------------------------------------------------------
    # Exception & Error Handling
    # -------------------------------------------------------------------------

    def _execute(
        self,
        operation: str,
        func: Callable[[], TData],
        entity_ref: Optional[Any] = None,
    ) -> ServiceResult[TData]:
        """
        Run ``func`` and wrap its outcome.

        Domain exceptions become failures carrying their own error code;
        anything else is logged as unexpected via ``_handle_exception``.
        """
        try:
            return ServiceResult.success(func())
        except BaseAppException as e:
            self._logger.warning(
                f"{operation} rejected: {e}",
                extra={"operation": operation, "entity_ref": str(entity_ref) if entity_ref else None},
            )
            return ServiceResult.from_app_exception(e)
        except Exception as e:
            return self._handle_exception(e, operation, entity_ref)

    def _handle_exception(
        self,
        exception: Exception,
        operation: str,
        entity_ref: Optional[Any] = None,
        severity: ErrorSeverity = ErrorSeverity.CRITICAL,
        additional_context: Optional[Dict[str, Any]] = None,
    ) -> ServiceResult:
        """
        Convert exception to a ServiceResult failure with comprehensive logging.

        Args:
            exception: The caught exception
            operation: Description of the operation that failed
            entity_ref: Reference to the entity involved (ID, name, etc.)
            severity: Error severity level
            additional_context: Extra context for logging/debugging

        Returns:
            ServiceResult with failure status and error details
        """
        context = {
            "operation": operation,
            "entity_ref": str(entity_ref) if entity_ref is not None else None,
            "exception_type": type(exception).__name__,
        }

        if additional_context:
            context.update(additional_context)

        self._logger.error(
            f"Error during {operation}: {exception}",
            exc_info=True,
            extra=context,
        )

        error_code = self._map_exception_to_error_code(exception)

        return ServiceResult.failure(
            ServiceError(
                code=error_code,
                message=f"Failed to {operation}",
                details={
                    "error": str(exception),
                    "entity_ref": str(entity_ref) if entity_ref is not None else None,
                    "context": additional_context,
                },
                severity=severity,
                status_code=500,
            )
        )

    def _map_exception_to_error_code(self, exception: Exception) -> ErrorCode:
        """
        Map exception types to appropriate error codes.
        """
        exception_mapping = {
            ValueError: ErrorCode.VALIDATION_ERROR,
            SQLAlchemyError: ErrorCode.DATABASE_ERROR,
        }

        for exc_type, error_code in exception_mapping.items():
            if isinstance(exception, exc_type):
                return error_code

        return ErrorCode.INTERNAL_ERROR

    def _log_operation(
        self,
        operation: str,
        entity_ref: Optional[Any] = None,
        extra: Optional[Dict[str, Any]] = None,
    ) -> None:
        """
        Log service operation with standardized format.
        """
        context = {"entity_ref": str(entity_ref) if entity_ref else None, "operation": operation}
        if extra:
            context.update(extra)

        self._logger.info(f"Operation: {operation}", extra=context)
