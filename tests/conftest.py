# tests/conftest.py
import json
import time
from typing import Any, Dict, List, Optional

import httpx
import pytest

from run_streak.config import Settings
from run_streak.strava_client import StravaClient
from run_streak.tools import ToolDispatcher


class FakeStrava:
    """
    In-memory stand-in for the Strava API, served through httpx.MockTransport.

    - POST /oauth/token hands out numbered access tokens
    - GET /api/v3/athlete/activities serves `pages` (1-based), then empty pages
    - /api/v3/activities/... echoes the request back
    """

    def __init__(self, pages: Optional[List[List[Dict[str, Any]]]] = None,
                 token_status: int = 200, api_status: int = 200):
        self.pages = pages or []
        self.token_status = token_status
        self.api_status = api_status
        self.requests: List[httpx.Request] = []
        self.token_calls = 0

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if path == "/oauth/token":
            self.token_calls += 1
            if self.token_status != 200:
                return httpx.Response(self.token_status, json={"message": "Bad Request"})
            return httpx.Response(200, json={
                "access_token": f"access-{self.token_calls}",
                "refresh_token": "refresh-rotated",
                "expires_at": int(time.time()) + 6 * 3600,
                "expires_in": 6 * 3600,
            })

        if self.api_status != 200:
            return httpx.Response(self.api_status, json={"message": "Upstream failure"})

        if path == "/api/v3/athlete/activities":
            page = int(request.url.params.get("page", "1"))
            body = self.pages[page - 1] if page <= len(self.pages) else []
            return httpx.Response(200, json=body)

        if path.startswith("/api/v3/activities"):
            return httpx.Response(200, json={
                "method": request.method,
                "path": path,
                "params": dict(request.url.params),
                "body": json.loads(request.content) if request.content else None,
            })

        return httpx.Response(404, json={"message": "Record Not Found"})

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def api_requests(self) -> List[httpx.Request]:
        return [r for r in self.requests if r.url.path.startswith("/api/v3")]


def run(activity_id: int, day: str, activity_type: str = "Run") -> Dict[str, Any]:
    return {
        "id": activity_id,
        "name": f"{activity_type} {day}",
        "type": activity_type,
        "start_date_local": f"{day}T07:15:00Z",
        "distance": 5000.0,
        "moving_time": 1500,
        "total_elevation_gain": 12.0,
    }


@pytest.fixture
def test_settings(tmp_path) -> Settings:
    return Settings(
        STRAVA_CLIENT_ID="12345",
        STRAVA_CLIENT_SECRET="client-secret",
        STRAVA_REFRESH_TOKEN="refresh-token",
        STREAK_START_DATE="2024-01-01",
        PAGE_DELAY_SECONDS=0,
        DATA_DIR=str(tmp_path),
    )


@pytest.fixture
def activity_pages() -> List[List[Dict[str, Any]]]:
    """Two pages: runs on Jan 1, 2, 4, 5 and a ride on Jan 3."""
    return [
        [run(1, "2024-01-01"), run(2, "2024-01-02"), run(3, "2024-01-03", "Ride")],
        [run(4, "2024-01-04", "TrailRun"), run(5, "2024-01-05"), run(6, "2024-01-05")],
    ]


@pytest.fixture
def fake_strava(activity_pages) -> FakeStrava:
    return FakeStrava(pages=activity_pages)


@pytest.fixture
def strava_client(test_settings, fake_strava) -> StravaClient:
    return StravaClient.from_settings(test_settings, transport=fake_strava.transport)


@pytest.fixture
def dispatcher(strava_client, test_settings) -> ToolDispatcher:
    return ToolDispatcher(strava_client, test_settings)
