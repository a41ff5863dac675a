import logging
import sys
from pathlib import Path
from typing import List

from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    # Strava API
    STRAVA_CLIENT_ID: str = ""
    STRAVA_CLIENT_SECRET: str = ""
    STRAVA_REFRESH_TOKEN: str = ""
    STRAVA_API_BASE_URL: str = "https://www.strava.com/api/v3"
    STRAVA_OAUTH_URL: str = "https://www.strava.com/oauth"
    REQUEST_TIMEOUT_SECONDS: float = 30.0

    # Tokens
    TOKEN_REFRESH_GRACE_SECONDS: int = 60  # refresh when this close to expiry
    TOKEN_CACHE_FILE: str = ""  # empty disables persistence

    # Streak
    STREAK_START_DATE: str = "2019-12-21"
    RUN_TYPES: List[str] = ["Run", "TrailRun"]
    ACTIVITIES_PER_PAGE: int = 100  # Maximum allowed by Strava API
    PAGE_DELAY_SECONDS: float = 0.5

    # Files
    DATA_DIR: str = "."
    RUN_ACTIVITIES_FILE: str = "run-activities.json"
    RUN_DAYS_FILE: str = "run-days.json"
    MISSED_DAYS_FILE: str = "missed-days.json"

    # Servers
    AUTH_PORT: int = 3000
    AUTH_SCOPE: str = "activity:read_all,activity:write"
    SERVER_PORT: int = 8000
    CORS_ORIGINS: str = "http://localhost:3000,http://localhost:5173,http://127.0.0.1:5173"  # comma-separated

    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"
        extra = "ignore"

    def data_path(self, name: str) -> Path:
        """Resolve a data file name against DATA_DIR."""
        return Path(self.DATA_DIR) / name

settings = Settings()


def configure_logging(level: str = None):
    """Send log records to stderr so stdout stays free for reports and stdio transports."""
    level_name = (level or settings.LOG_LEVEL).upper()
    logging.basicConfig(
        level=getattr(logging, level_name, logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        stream=sys.stderr
    )
