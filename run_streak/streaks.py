"""
Calendar streak analysis.

Given an inclusive day range and the set of days on which a qualifying
activity happened, build a StreakReport: missed days, completion rate,
longest and current streak. Pure and synchronous, no I/O.
"""

from dataclasses import dataclass
from datetime import date, timedelta
from typing import Iterable, Iterator, Optional, Tuple

from pydantic import BaseModel, ConfigDict

from .dates import DayLike, parse_day, utc_today
from .exceptions import InvalidRangeError

ONE_DAY = timedelta(days=1)


@dataclass(frozen=True)
class CalendarWindow:
    """Inclusive range of calendar days to analyze."""

    start: date
    end: date

    def __post_init__(self):
        # Collapse datetimes/strings to plain days before checking the range
        object.__setattr__(self, "start", parse_day(self.start))
        object.__setattr__(self, "end", parse_day(self.end))
        if self.start > self.end:
            raise InvalidRangeError(self.start, self.end)

    @classmethod
    def since(cls, start: DayLike, end: Optional[DayLike] = None) -> "CalendarWindow":
        """Window from `start` through `end`, defaulting to today (UTC)."""
        return cls(start=start, end=end if end is not None else utc_today())

    def __len__(self) -> int:
        return (self.end - self.start).days + 1

    def __contains__(self, day: date) -> bool:
        return self.start <= day <= self.end

    def days(self) -> Iterator[date]:
        """Every day from start to end, ascending, one civil day at a time."""
        day = self.start
        while day <= self.end:
            yield day
            day += ONE_DAY


class LongestStreak(BaseModel):
    model_config = ConfigDict(frozen=True)

    length: int = 0
    start: Optional[date] = None
    end: Optional[date] = None


class StreakReport(BaseModel):
    model_config = ConfigDict(frozen=True)

    total_days: int
    active_days: int
    missed_days: Tuple[date, ...]
    completion_rate: float
    longest_streak: LongestStreak
    current_streak: int
    most_recent_missed_day: Optional[date] = None


def analyze(window: CalendarWindow, active_dates: Iterable[DayLike]) -> StreakReport:
    """
    Scan the window once and build a StreakReport.

    Dates in `active_dates` outside the window are ignored. When several runs
    share the maximum length, the earliest one is reported.
    """
    if window.start > window.end:
        raise InvalidRangeError(window.start, window.end)

    active = {parse_day(d) for d in active_dates}

    missed = []
    total_days = 0
    run = 0
    best_length = 0
    best_start = None
    best_end = None

    for day in window.days():
        total_days += 1
        if day in active:
            run += 1
            if run > best_length:
                best_length = run
                best_start = day - timedelta(days=run - 1)
                best_end = day
        else:
            run = 0
            missed.append(day)

    # The run left over after the last day is the one that reaches window.end
    current_streak = run
    active_days = total_days - len(missed)

    return StreakReport(
        total_days=total_days,
        active_days=active_days,
        missed_days=tuple(missed),
        completion_rate=active_days / total_days,
        longest_streak=LongestStreak(length=best_length, start=best_start, end=best_end),
        current_streak=current_streak,
        most_recent_missed_day=missed[-1] if missed else None,
    )
