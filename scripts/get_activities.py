import asyncio
import logging
import sys
from pathlib import Path

# Add the project root to sys.path so we can import run_streak
sys.path.append(str(Path(__file__).parent.parent))

from run_streak.activities import describe_activity
from run_streak.config import configure_logging, settings
from run_streak.exceptions import RunStreakError
from run_streak.strava_client import StravaClient

logger = logging.getLogger("get_activities")


async def main() -> int:
    configure_logging()
    try:
        client = StravaClient.from_settings(settings)
        activities = await client.request("GET", "/athlete/activities", params={"page": 1, "per_page": 10})
    except RunStreakError as e:
        logger.error(f"Error fetching activities: {e}")
        return 1

    print("Recent Strava Activities:")
    print("========================")
    for index, activity in enumerate(activities, start=1):
        print(describe_activity(activity, index))
        print("------------------------")
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
