"""
Schedule matching: pair "now" with a user's recurring schedule.

For every entry occurrence whose window ``[start - grace, end]`` contains
now, the signed variance from start gives a linear confidence score:

    confidence = max(0, 100 - penalty * |variance|)

Once the slot has started, being inside the window is a match whatever the
variance. Before the start the threshold gates early arrivals.

Matching is pure and stateless apart from the optional schedule source, so
one matcher is safely shared across threads.
"""

from dataclasses import dataclass
from datetime import date, datetime, timedelta
from typing import Any, Callable, Iterable, List, Optional

from fieldclock.config.logging import get_logger
from fieldclock.config.settings import Settings, settings
from fieldclock.schemas.schedule import ScheduleMatch
from fieldclock.utils.datetime_utils import TimezoneConverter

logger = get_logger(__name__)

ScheduleSource = Callable[[str], Iterable[Any]]


@dataclass(frozen=True)
class MatchPolicy:
    """Tunable constants of the confidence heuristic"""
    grace_minutes: int = 15
    penalty_per_minute: float = 2.0
    threshold: float = 70.0
    on_time_minutes: int = 15

    @classmethod
    def from_settings(cls, config: Settings = settings) -> "MatchPolicy":
        return cls(
            grace_minutes=config.SCHEDULE_GRACE_MINUTES,
            penalty_per_minute=config.SCHEDULE_CONFIDENCE_PENALTY,
            threshold=config.SCHEDULE_MATCH_THRESHOLD,
            on_time_minutes=config.SCHEDULE_ON_TIME_MINUTES,
        )

    def confidence(self, variance_minutes: int) -> float:
        return max(0.0, 100.0 - self.penalty_per_minute * abs(variance_minutes))


def entry_applies_on(entry: Any, day: date) -> bool:
    """Dated entries apply on their date; recurring ones on their weekday (Monday=0)."""
    if not getattr(entry, "is_active", True):
        return False
    schedule_date = getattr(entry, "schedule_date", None)
    if schedule_date is not None:
        return schedule_date == day
    return entry.day_of_week == day.weekday()


def schedule_for_day(entries: Iterable[Any], day: date) -> List[Any]:
    """The day's entries ordered by start time."""
    return sorted(
        (e for e in entries if entry_applies_on(e, day)),
        key=lambda e: e.start_time,
    )


class ScheduleMatcher:
    """Confidence-scored schedule matching in the configured timezone."""

    def __init__(
        self,
        policy: Optional[MatchPolicy] = None,
        timezone: Optional[str] = None,
    ):
        self.policy = policy or MatchPolicy.from_settings()
        self.converter = TimezoneConverter(timezone or settings.TIMEZONE)

    def _occurrence(self, entry: Any, day: date):
        start = self.converter.combine(day, entry.start_time)
        end = self.converter.combine(day, entry.end_time)
        if end <= start:
            end += timedelta(days=1)
        return start, end

    def evaluate(self, entry: Any, now_local: datetime) -> Optional[ScheduleMatch]:
        """
        Score ``entry`` against local wall-clock ``now_local``; None when no
        occurrence of it has a window containing now.
        """
        grace = timedelta(minutes=self.policy.grace_minutes)
        # Yesterday covers slots crossing midnight, tomorrow covers grace before midnight
        for offset in (0, -1, 1):
            day = now_local.date() + timedelta(days=offset)
            if not entry_applies_on(entry, day):
                continue
            start, end = self._occurrence(entry, day)
            if not (start - grace <= now_local <= end):
                continue

            variance = int(round((now_local - start).total_seconds() / 60.0))
            confidence = self.policy.confidence(variance)
            started = start <= now_local
            on_time = self.policy.on_time_minutes

            return ScheduleMatch(
                schedule_entry_id=entry.id,
                confidence_score=confidence,
                variance_minutes=variance,
                is_match=started or confidence >= self.policy.threshold,
                course_name=entry.course_name,
                start=start,
                end=end,
                location_type=entry.location_type,
                online_platform=getattr(entry, "online_platform", None),
                online_url=getattr(entry, "online_url", None),
                location_id=getattr(entry, "location_id", None),
                expected_student_count=getattr(entry, "expected_student_count", None),
                is_late=variance > on_time,
                is_early=variance < -on_time,
                is_on_time=abs(variance) <= on_time,
            )
        return None

    def candidates(self, entries: Iterable[Any], now: datetime) -> List[ScheduleMatch]:
        """All in-window evaluations for naive-UTC ``now``, best first."""
        now_local = self.converter.from_utc(now)
        scored = [m for m in (self.evaluate(e, now_local) for e in entries) if m is not None]
        scored.sort(key=lambda m: (-m.confidence_score, abs(m.variance_minutes), m.start))
        return scored

    def match(self, entries: Iterable[Any], now: datetime) -> Optional[ScheduleMatch]:
        """
        Best matching candidate: highest confidence, then smallest
        |variance|, then earliest start. None when nothing matches.
        """
        for candidate in self.candidates(entries, now):
            if candidate.is_match:
                return candidate
        return None

    def detect(self, user_id: str, now: datetime, source: ScheduleSource) -> Optional[ScheduleMatch]:
        """
        Load the user's schedule from ``source`` and match it.

        An unreachable source is "no match", never an error.
        """
        try:
            entries = list(source(user_id))
        except Exception as e:
            logger.warning(
                f"Schedule source unavailable, treating as no match: {e}",
                extra={"user_id": user_id},
            )
            return None

        result = self.match(entries, now)
        if result is not None:
            logger.debug(
                f"Schedule match {result.course_name}: confidence={result.confidence_score} "
                f"variance={result.variance_minutes}",
                extra={"user_id": user_id},
            )
        return result
