import asyncio
import logging
import sys
from pathlib import Path

# Add the project root to sys.path so we can import run_streak
sys.path.append(str(Path(__file__).parent.parent))

from run_streak.activities import refresh_run_files
from run_streak.config import configure_logging, settings
from run_streak.dates import parse_day
from run_streak.exceptions import RunStreakError
from run_streak.strava_client import StravaClient

logger = logging.getLogger("fetch_all_activities")


async def main() -> int:
    configure_logging()
    activities_path = settings.data_path(settings.RUN_ACTIVITIES_FILE)
    days_path = settings.data_path(settings.RUN_DAYS_FILE)

    try:
        client = StravaClient.from_settings(settings)
        runs, days = await refresh_run_files(
            client,
            parse_day(settings.STREAK_START_DATE),
            activities_path,
            days_path,
            settings.RUN_TYPES,
        )
    except RunStreakError as e:
        logger.error(f"Error fetching activities: {e}")
        return 1

    print(f"Total runs (including trail runs): {len(runs)}")
    print(f"Total days with runs: {days.total_days}")
    print(f"Run activities saved to {activities_path}")
    print(f"Run days data saved to {days_path}")
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
