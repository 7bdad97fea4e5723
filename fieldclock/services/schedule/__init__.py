from fieldclock.services.schedule.schedule_matcher import (
    MatchPolicy,
    ScheduleMatcher,
    entry_applies_on,
    schedule_for_day,
)

__all__ = [
    "MatchPolicy",
    "ScheduleMatcher",
    "entry_applies_on",
    "schedule_for_day",
]
