"""
Calendar-day helpers.

Everything in run_streak works on plain `date` values. Timestamps are
collapsed to their UTC calendar day so that day arithmetic never sees a
daylight-saving offset.
"""

from datetime import date, datetime, time, timezone
from typing import Optional, Union

import dateparser

DayLike = Union[date, datetime, str]


def to_day(value: Union[date, datetime]) -> date:
    """Normalize a date or datetime to a calendar date (UTC for aware datetimes)."""
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value.date()
    return value


def parse_day(value: DayLike) -> date:
    """
    Parse user input into a calendar date.

    Accepts date/datetime objects, ISO strings ("2019-12-21",
    "2019-12-21T23:30:00-05:00") and the relative phrases dateparser
    understands ("today", "3 days ago"). Timestamps with an offset land on
    their UTC day, the same as the equivalent aware datetime.
    """
    if isinstance(value, (date, datetime)):
        return to_day(value)

    text = str(value).strip()
    try:
        # fromisoformat only accepts a trailing "Z" from Python 3.11 on
        return to_day(datetime.fromisoformat(text[:-1] + "+00:00" if text.endswith("Z") else text))
    except ValueError:
        pass

    parsed = dateparser.parse(text, settings={'PREFER_DATES_FROM': 'past', 'STRICT_PARSING': False})
    if parsed is None:
        raise ValueError(f"Could not parse date: {value!r}")
    return to_day(parsed)


def utc_today() -> date:
    return datetime.now(timezone.utc).date()


def day_start_epoch(day: date) -> int:
    """Unix timestamp of 00:00 UTC on `day`."""
    return int(datetime.combine(day, time.min, tzinfo=timezone.utc).timestamp())


def format_day(day: Optional[date]) -> Optional[str]:
    return day.isoformat() if day is not None else None
