"""
Base repository with standardized CRUD operations and error handling.

Repositories never commit; the UnitOfWork that owns the session does.
"""

from typing import Any, Dict, Generic, List, Optional, Sequence, Type, TypeVar

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from fieldclock.config.logging import get_logger
from fieldclock.core.exceptions import DatabaseError, ResourceNotFoundError
from fieldclock.models.base_model import BaseModel

logger = get_logger(__name__)

# Type variable for model classes
ModelType = TypeVar("ModelType", bound=BaseModel)


class BaseRepository(Generic[ModelType]):
    """
    Generic repository bound to one model class and one session.
    """

    not_found_error: Type[ResourceNotFoundError] = ResourceNotFoundError

    def __init__(self, model: Type[ModelType], db: Session):
        """
        Initialize repository.

        Args:
            model: SQLAlchemy model class
            db: Database session
        """
        self.model = model
        self.db = db

    # ==================== Create Operations ====================

    def create(self, entity: ModelType) -> ModelType:
        """
        Add a new entity and flush so generated values are available.
        """
        try:
            self.db.add(entity)
            self.db.flush()
            logger.debug(f"Created {self.model.__name__}: {entity.id}")
            return entity
        except SQLAlchemyError as e:
            logger.error(f"Error creating {self.model.__name__}: {str(e)}")
            raise DatabaseError(
                f"Failed to create {self.model.__name__}",
                details={"error": str(e)},
            ) from e

    # ==================== Read Operations ====================

    def get_by_id(self, entity_id: Any) -> Optional[ModelType]:
        return self.db.get(self.model, entity_id)

    def get_or_raise(self, entity_id: Any) -> ModelType:
        """
        Get entity by ID or raise the repository's not-found error.
        """
        entity = self.get_by_id(entity_id)
        if entity is None:
            if self.not_found_error is ResourceNotFoundError:
                raise ResourceNotFoundError(self.model.__name__, entity_id)
            raise self.not_found_error(entity_id)
        return entity

    def list(
        self,
        filters: Optional[Dict[str, Any]] = None,
        order_by: Optional[Sequence[Any]] = None,
        limit: Optional[int] = None,
    ) -> List[ModelType]:
        """
        List entities matching equality filters.

        Args:
            filters: Column name to value mapping
            order_by: Column expressions to order by
            limit: Maximum number of rows
        """
        stmt = select(self.model)
        for field, value in (filters or {}).items():
            stmt = stmt.where(getattr(self.model, field) == value)
        if order_by:
            stmt = stmt.order_by(*order_by)
        if limit is not None:
            stmt = stmt.limit(limit)
        return list(self.db.scalars(stmt).unique().all())

    # ==================== Update Operations ====================

    def update(self, entity: ModelType, data: Dict[str, Any]) -> ModelType:
        """
        Apply field values to a loaded entity and flush.
        """
        for field, value in data.items():
            if not hasattr(entity, field):
                raise AttributeError(f"{self.model.__name__} has no field '{field}'")
            setattr(entity, field, value)

        try:
            self.db.flush()
        except SQLAlchemyError as e:
            logger.error(f"Error updating {self.model.__name__} {entity.id}: {str(e)}")
            raise DatabaseError(
                f"Failed to update {self.model.__name__}",
                details={"error": str(e), "id": entity.id},
            ) from e
        return entity
