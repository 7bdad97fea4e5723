from fieldclock.services.base.base_service import BaseService
from fieldclock.services.base.service_result import ErrorSeverity, ServiceError, ServiceResult
from fieldclock.services.base.unit_of_work import UnitOfWork

__all__ = [
    "BaseService",
    "ErrorSeverity",
    "ServiceError",
    "ServiceResult",
    "UnitOfWork",
]
