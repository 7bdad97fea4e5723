"""
Base schema classes with common fields and configurations.
"""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

__all__ = [
    "BaseSchema",
    "BaseDBSchema",
]


class BaseSchema(BaseModel):
    """
    Base schema with common Pydantic configuration.

    Response schemas are built straight from ORM rows (``from_attributes``).
    """

    model_config = ConfigDict(
        from_attributes=True,
        populate_by_name=True,
        # Keep enums as Enum instances; JSON output still uses `.value`
        use_enum_values=False,
        str_strip_whitespace=True,
        validate_assignment=True,
    )


class BaseDBSchema(BaseSchema):
    """Base schema for database entities with ID and timestamps."""

    id: str = Field(..., description="Unique identifier")
    created_at: datetime = Field(..., description="Creation timestamp")
    updated_at: datetime = Field(..., description="Last update timestamp")
