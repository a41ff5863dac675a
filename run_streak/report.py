import json
from pathlib import Path
from typing import Any, Dict, List

from .dates import format_day
from .streaks import StreakReport

PREVIEW_DAYS = 10


def report_record(report: StreakReport) -> Dict[str, Any]:
    """Flat JSON record of a report, as written to missed-days.json."""
    longest = report.longest_streak
    return {
        "totalDays": report.total_days,
        "completionRate": report.completion_rate,
        "totalMissedDays": len(report.missed_days),
        "missedDays": [format_day(d) for d in report.missed_days],
        "longestStreak": longest.length,
        "longestStreakStart": format_day(longest.start),
        "longestStreakEnd": format_day(longest.end),
        "currentStreak": report.current_streak,
        "mostRecentMissedDay": format_day(report.most_recent_missed_day),
    }


def save_report(report: StreakReport, path: Path) -> Dict[str, Any]:
    record = report_record(report)
    Path(path).write_text(json.dumps(record, indent=2))
    return record


def render_report(report: StreakReport) -> str:
    """Human-readable summary of a report."""
    longest = report.longest_streak
    missed = [d.isoformat() for d in report.missed_days]

    lines: List[str] = [
        f"Total days since start: {report.total_days}",
        f"Days with runs: {report.active_days}",
        f"Days without runs: {len(missed)}",
        f"Run completion rate: {report.completion_rate * 100:.2f}%",
        "",
        f"Longest streak: {longest.length} days",
        f"Longest streak period: {format_day(longest.start)} to {format_day(longest.end)}",
        "",
        f"Current streak: {report.current_streak} days",
        "",
        f"Most recent missed day: {format_day(report.most_recent_missed_day)}",
        "",
        f"First {PREVIEW_DAYS} missed days:",
        *missed[:PREVIEW_DAYS],
        "",
        f"Last {PREVIEW_DAYS} missed days:",
        *missed[-PREVIEW_DAYS:],
    ]
    return "\n".join(lines)
