"""SQLAlchemy Base with every model registered on its metadata."""
from fieldclock.models.base_model import Base

# Importing the models registers their tables on Base.metadata
from fieldclock.models import (  # noqa: F401
    LocationRegistration,
    ScheduleEntry,
    SessionEntry,
    SpecialCaseEvent,
    WorkLocation,
)

__all__ = ["Base"]
