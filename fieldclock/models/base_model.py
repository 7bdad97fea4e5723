"""
Base model configuration for SQLAlchemy ORM.

Provides abstract base classes with common fields and utility methods
shared by every table in the engine.
"""

from datetime import date, datetime, time
from enum import Enum as PyEnum
from typing import Any, Dict, List, Optional
from uuid import uuid4

from sqlalchemy import DateTime, String
from sqlalchemy.orm import Mapped, declarative_base, mapped_column

from fieldclock.utils.datetime_utils import utcnow

# Create declarative base
Base = declarative_base()


class BaseModel(Base):
    """
    Abstract base model with a UUID string primary key.
    """

    __abstract__ = True

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid4()),
        nullable=False,
        comment="Primary key (UUID)"
    )

    def to_dict(self, exclude: Optional[List[str]] = None) -> Dict[str, Any]:
        """
        Convert model instance to dictionary.

        Args:
            exclude: List of field names to exclude

        Returns:
            Dictionary representation of the model
        """
        exclude = exclude or []
        result = {}

        for column in self.__table__.columns:
            if column.name in exclude:
                continue
            value = getattr(self, column.name)

            if isinstance(value, (datetime, date, time)):
                result[column.name] = value.isoformat()
            elif isinstance(value, PyEnum):
                result[column.name] = value.value
            else:
                result[column.name] = value

        return result

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__}(id={self.id})>"


class TimestampModel(BaseModel):
    """
    Abstract model adding created_at / updated_at tracking (naive UTC).
    """

    __abstract__ = True

    created_at: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
        default=utcnow,
        comment="Record creation timestamp (UTC)"
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime,
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
        comment="Record last update timestamp (UTC)"
    )
