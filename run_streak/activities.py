"""
Reduce Strava activities to the set of days with a run.

Reads and writes the two intermediate files of the streak pipeline:
  run-activities.json  raw run activities
  run-days.json        {"totalDays": N, "daysList": ["YYYY-MM-DD", ...]}
"""

import json
import logging
from datetime import date
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Protocol, Set, Tuple

from pydantic import BaseModel, Field

from .dates import parse_day

logger = logging.getLogger(__name__)

DEFAULT_RUN_TYPES = ("Run", "TrailRun")


class ActivityProvider(Protocol):
    """Anything that can list activities started on or after a given day."""

    async def list_activities_since(self, day: date) -> List[Dict[str, Any]]:
        ...


class RunDays(BaseModel):
    total_days: int = Field(alias="totalDays")
    days_list: List[date] = Field(alias="daysList")

    model_config = {"populate_by_name": True}

    @classmethod
    def from_days(cls, days: Iterable[date]) -> "RunDays":
        days_list = sorted(set(days))
        return cls(total_days=len(days_list), days_list=days_list)

    def day_set(self) -> Set[date]:
        return set(self.days_list)


def filter_runs(activities: Iterable[Dict[str, Any]], run_types: Iterable[str] = DEFAULT_RUN_TYPES) -> List[Dict[str, Any]]:
    run_types = set(run_types)
    return [a for a in activities if a.get("type") in run_types]


def activity_day(activity: Dict[str, Any]) -> Optional[date]:
    """Local calendar day of an activity, taken from the date part of start_date_local."""
    start_date = activity.get("start_date_local") or activity.get("start_date")
    if not start_date:
        return None
    return date.fromisoformat(start_date.split("T")[0])


def describe_activity(activity: Dict[str, Any], index: int) -> str:
    """Multi-line console summary of one activity."""
    distance_km = (activity.get("distance") or 0) / 1000
    minutes = int((activity.get("moving_time") or 0) // 60)
    return "\n".join([
        f"{index}. {activity.get('name', '')}",
        f"   Type: {activity.get('type')}",
        f"   Date: {activity.get('start_date_local')}",
        f"   Distance: {distance_km:.2f} km",
        f"   Duration: {minutes} minutes",
        f"   Elevation Gain: {activity.get('total_elevation_gain')} m",
    ])


def group_by_day(activities: Iterable[Dict[str, Any]]) -> Dict[date, List[Dict[str, Any]]]:
    by_day: Dict[date, List[Dict[str, Any]]] = {}
    for activity in activities:
        day = activity_day(activity)
        if day is None:
            logger.warning(f"Skipping activity {activity.get('id')} without a start date")
            continue
        by_day.setdefault(day, []).append(activity)
    return by_day


def run_days(activities: Iterable[Dict[str, Any]]) -> RunDays:
    return RunDays.from_days(group_by_day(activities).keys())


async def fetch_run_days(
    provider: ActivityProvider,
    since: date,
    run_types: Iterable[str] = DEFAULT_RUN_TYPES,
) -> Tuple[List[Dict[str, Any]], RunDays]:
    """Fetch every activity since `since` and reduce the runs to their days."""
    logger.info(f"Fetching all activities since {since.isoformat()}...")
    all_activities = await provider.list_activities_since(since)
    runs = filter_runs(all_activities, run_types)
    days = run_days(runs)

    logger.info(f"Total activities fetched: {len(all_activities)}")
    logger.info(f"Total runs (including trail runs): {len(runs)}")
    logger.info(f"Total days with runs: {days.total_days}")
    return runs, days


def save_run_activities(runs: List[Dict[str, Any]], path: Path):
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(runs, indent=2))


def save_run_days(days: RunDays, path: Path):
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(days.model_dump_json(by_alias=True, indent=2))


async def refresh_run_files(
    provider: ActivityProvider,
    since: date,
    activities_path: Path,
    days_path: Path,
    run_types: Iterable[str] = DEFAULT_RUN_TYPES,
) -> Tuple[List[Dict[str, Any]], RunDays]:
    """Fetch runs and rewrite both run-activities.json and run-days.json."""
    runs, days = await fetch_run_days(provider, since, run_types)

    save_run_activities(runs, activities_path)
    logger.info(f"Run activities saved to {activities_path}")
    save_run_days(days, days_path)
    logger.info(f"Run days data saved to {days_path}")
    return runs, days


def load_run_days(path: Path) -> RunDays:
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Missing {path}. Run scripts/fetch_all_activities.py first.")
    data = json.loads(path.read_text())
    # Hand-edited files may carry unsorted or duplicate days
    return RunDays.from_days(parse_day(d) for d in data.get("daysList", []))
