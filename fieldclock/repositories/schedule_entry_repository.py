"""
Schedule entry access. The engine only reads schedules; creation exists
for seeding.
"""

from typing import List

from sqlalchemy import select
from sqlalchemy.orm import Session

from fieldclock.models.schedule_entry import ScheduleEntry
from fieldclock.repositories.base_repository import BaseRepository


class ScheduleEntryRepository(BaseRepository[ScheduleEntry]):

    def __init__(self, db: Session):
        super().__init__(ScheduleEntry, db)

    def list_schedule_entries(self, user_id: str) -> List[ScheduleEntry]:
        stmt = (
            select(ScheduleEntry)
            .where(
                ScheduleEntry.user_id == user_id,
                ScheduleEntry.is_active.is_(True),
            )
            .order_by(ScheduleEntry.start_time)
        )
        return list(self.db.scalars(stmt).all())
