"""
Session entry persistence.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from fieldclock.config.logging import get_logger
from fieldclock.core.exceptions import AlreadyActiveError, SessionNotFoundError
from fieldclock.models.enums import SessionState
from fieldclock.models.session_entry import SessionEntry, SpecialCaseEvent
from fieldclock.repositories.base_repository import BaseRepository

logger = get_logger(__name__)


class SessionEntryRepository(BaseRepository[SessionEntry]):
    """
    Persistence contract for session entries and their event log.
    """

    not_found_error = SessionNotFoundError

    def __init__(self, db: Session):
        super().__init__(SessionEntry, db)

    def create_session(self, entry: SessionEntry) -> SessionEntry:
        """
        Insert a new open session.

        Raises:
            AlreadyActiveError: the open-session unique index rejected the row
        """
        try:
            self.db.add(entry)
            self.db.flush()
        except IntegrityError as e:
            logger.warning(f"Open session already exists for user {entry.user_id}")
            raise AlreadyActiveError(entry.user_id) from e
        return entry

    def update_session(self, entry: SessionEntry, data: Dict[str, Any]) -> SessionEntry:
        return self.update(entry, data)

    def close_session(self, entry: SessionEntry, check_out_time: datetime, data: Dict[str, Any]) -> SessionEntry:
        """Set check_out_time and the closing fields in one flush."""
        values = dict(data)
        values["check_out_time"] = check_out_time
        values["state"] = SessionState.CLOSED
        return self.update(entry, values)

    def list_sessions(self, user_id: str, limit: Optional[int] = None) -> List[SessionEntry]:
        """User's sessions, most recent first."""
        return self.list(
            filters={"user_id": user_id},
            order_by=[SessionEntry.check_in_time.desc()],
            limit=limit,
        )

    def get_open_session(self, user_id: str) -> Optional[SessionEntry]:
        stmt = select(SessionEntry).where(
            SessionEntry.user_id == user_id,
            SessionEntry.check_out_time.is_(None),
        )
        return self.db.scalars(stmt).first()

    def list_open_sessions(self, org_id: Optional[str] = None) -> List[SessionEntry]:
        stmt = select(SessionEntry).where(SessionEntry.check_out_time.is_(None))
        if org_id is not None:
            stmt = stmt.where(SessionEntry.org_id == org_id)
        stmt = stmt.order_by(SessionEntry.check_in_time)
        return list(self.db.scalars(stmt).all())

    def append_event(self, entry: SessionEntry, event: SpecialCaseEvent) -> SpecialCaseEvent:
        """Append an immutable log entry with the next sequence number."""
        event.sequence = len(entry.special_case_log) + 1
        entry.special_case_log.append(event)
        self.db.flush()
        return event
