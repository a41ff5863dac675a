"""
Compute the running streak report from run-days.json.

Reads:
  run-days.json     (written by scripts/fetch_all_activities.py)

Writes:
  missed-days.json
"""

import argparse
import logging
import sys
from pathlib import Path

# Add the project root to sys.path so we can import run_streak
sys.path.append(str(Path(__file__).parent.parent))

from run_streak.activities import load_run_days
from run_streak.config import configure_logging, settings
from run_streak.dates import parse_day
from run_streak.report import render_report, save_report
from run_streak.streaks import CalendarWindow, analyze

logger = logging.getLogger("check_streak")


def main() -> int:
    parser = argparse.ArgumentParser(description="Report missed days and streaks since the start date.")
    parser.add_argument("--start", default=settings.STREAK_START_DATE, help="First day (default: STREAK_START_DATE)")
    parser.add_argument("--end", default=None, help="Last day (default: today, UTC)")
    parser.add_argument("--days-file", default=str(settings.data_path(settings.RUN_DAYS_FILE)))
    parser.add_argument("--output", default=str(settings.data_path(settings.MISSED_DAYS_FILE)))
    args = parser.parse_args()

    configure_logging()

    try:
        window = CalendarWindow.since(parse_day(args.start), parse_day(args.end) if args.end else None)
    except ValueError as e:
        # InvalidRangeError or an unparseable date
        print(f"Error: {e}", file=sys.stderr)
        return 2

    try:
        days = load_run_days(Path(args.days_file))
    except FileNotFoundError as e:
        logger.error(str(e))
        return 1

    report = analyze(window, days.day_set())
    print(render_report(report))

    save_report(report, Path(args.output))
    print(f"\nDetailed missed days saved to {args.output}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
