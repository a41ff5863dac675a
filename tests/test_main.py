"""
HTTP server tests, run against an app wired to the in-memory Strava API.
"""

import asyncio
import json

import httpx
import pytest
from fastapi.testclient import TestClient

from run_streak.activities import RunDays, save_run_days
from run_streak.dates import parse_day
from run_streak.main import create_app
from run_streak.strava_client import StravaClient
from run_streak.tools import ToolDispatcher

from .conftest import FakeStrava


@pytest.fixture
def client(test_settings, dispatcher) -> TestClient:
    return TestClient(create_app(test_settings, dispatcher))


def failing_client(test_settings, **fake_options) -> TestClient:
    strava = StravaClient.from_settings(test_settings, transport=FakeStrava(**fake_options).transport)
    return TestClient(create_app(test_settings, ToolDispatcher(strava, test_settings)), raise_server_exceptions=False)


# =============================================================================
# Tools
# =============================================================================

class TestToolRoutes:
    def test_root(self, client):
        assert client.get("/").json() == {"message": "Strava Run Streak server is running"}

    def test_list_tools(self, client):
        tools = client.get("/tools").json()["tools"]
        assert len(tools) == 6
        assert tools[0]["inputSchema"]["type"] == "object"

    def test_call_tool_wraps_result_as_text(self, client):
        response = client.post("/tools/call", json={"name": "get_activity_laps", "arguments": {"id": 9}})

        assert response.status_code == 200
        content = response.json()["content"]
        assert content[0]["type"] == "text"
        assert json.loads(content[0]["text"])["path"] == "/api/v3/activities/9/laps"

    def test_unknown_tool_is_404(self, client, fake_strava):
        response = client.post("/tools/call", json={"name": "delete_everything", "arguments": {}})

        assert response.status_code == 404
        assert "delete_everything" in response.json()["detail"]
        assert fake_strava.requests == []

    def test_invalid_arguments_is_422(self, client):
        response = client.post("/tools/call", json={"name": "get_activity", "arguments": {}})

        assert response.status_code == 422
        assert response.json()["errors"][0]["loc"] == ["id"]

    def test_upstream_failure_is_502(self, test_settings):
        response = failing_client(test_settings, api_status=500).post(
            "/tools/call", json={"name": "get_activity", "arguments": {"id": 1}}
        )

        assert response.status_code == 502
        assert response.json()["upstream_status"] == 500

    def test_unparseable_streak_date_is_422(self, client, fake_strava):
        response = client.post(
            "/tools/call", json={"name": "get_run_streak", "arguments": {"start_date": "zzqq not a date"}}
        )

        assert response.status_code == 422
        assert response.json()["errors"][0]["loc"] == ["start_date"]
        assert fake_strava.requests == []

    def test_rejected_token_is_401(self, test_settings):
        response = failing_client(test_settings, token_status=401).post(
            "/tools/call", json={"name": "get_activity", "arguments": {"id": 1}}
        )
        assert response.status_code == 401


# =============================================================================
# Streak
# =============================================================================

class TestStreakRoutes:
    def test_streak_from_saved_days(self, client, test_settings):
        days = [parse_day(d) for d in ("2024-01-01", "2024-01-02", "2024-01-04")]
        save_run_days(RunDays.from_days(days), test_settings.data_path(test_settings.RUN_DAYS_FILE))

        response = client.get("/api/streak", params={"start": "2024-01-01", "end": "2024-01-04"})

        assert response.status_code == 200
        body = response.json()
        assert body["missedDays"] == ["2024-01-03"]
        assert body["currentStreak"] == 1
        assert body["longestStreak"] == 2

    def test_streak_without_saved_days_is_404(self, client):
        response = client.get("/api/streak", params={"end": "2024-01-04"})
        assert response.status_code == 404

    def test_inverted_range_is_400(self, client):
        response = client.get("/api/streak", params={"start": "2024-02-01", "end": "2024-01-01"})
        assert response.status_code == 400

    def test_refresh_writes_run_files(self, client, test_settings):
        response = client.get("/api/refresh-strava")

        assert response.status_code == 200
        assert response.json() == {
            "success": True,
            "message": "Strava data refreshed successfully",
            "details": {"runs": 5, "days_with_runs": 4},
        }
        saved = json.loads(test_settings.data_path(test_settings.RUN_DAYS_FILE).read_text())
        assert saved["daysList"] == ["2024-01-01", "2024-01-02", "2024-01-04", "2024-01-05"]

    def test_refresh_failure(self, test_settings):
        response = failing_client(test_settings, api_status=500).get("/api/refresh-strava")

        assert response.status_code == 500
        assert response.json()["success"] is False
        assert not test_settings.data_path(test_settings.RUN_DAYS_FILE).exists()

    def test_refresh_without_credentials(self, test_settings):
        settings = test_settings.model_copy(update={"STRAVA_CLIENT_ID": ""})
        response = TestClient(create_app(settings)).get("/api/refresh-strava")

        assert response.status_code == 500
        assert "Missing required Strava API credentials" in response.json()["error"]


# =============================================================================
# Lazy client and OAuth
# =============================================================================

class TestLazyClient:
    def test_tokens_from_callback_are_used_by_later_calls(self, test_settings):
        fake = FakeStrava()
        settings = test_settings.model_copy(update={"STRAVA_REFRESH_TOKEN": ""})
        client = TestClient(create_app(settings, transport=fake.transport))

        state = client.get("/auth/strava/start").json()["state"]
        callback = client.get("/auth/strava/callback", params={"code": "the-code", "state": state})
        response = client.post("/tools/call", json={"name": "get_activity", "arguments": {"id": 3}})

        assert callback.status_code == 200
        assert response.status_code == 200
        assert fake.api_requests()[0].headers["Authorization"] == "Bearer access-1"
        assert fake.token_calls == 1

    def test_without_tokens_tool_call_is_401(self, test_settings):
        settings = test_settings.model_copy(update={"STRAVA_REFRESH_TOKEN": ""})
        client = TestClient(create_app(settings, transport=FakeStrava().transport))

        response = client.post("/tools/call", json={"name": "get_activity", "arguments": {"id": 3}})

        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_concurrent_first_calls_share_one_client(self, test_settings):
        fake = FakeStrava()
        app = create_app(test_settings, transport=fake.transport)

        async with httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://testserver") as http:
            responses = await asyncio.gather(*[
                http.post("/tools/call", json={"name": "get_activity", "arguments": {"id": n}}) for n in range(3)
            ])

        assert [r.status_code for r in responses] == [200, 200, 200]
        assert fake.token_calls == 1


# =============================================================================
# CORS
# =============================================================================

class TestCors:
    def test_allowed_origin(self, client):
        response = client.get("/", headers={"Origin": "http://localhost:5173"})
        assert response.headers["access-control-allow-origin"] == "http://localhost:5173"

    def test_configured_origin_preflight(self, test_settings, dispatcher):
        settings = test_settings.model_copy(update={"CORS_ORIGINS": "https://dashboard.example.com"})
        client = TestClient(create_app(settings, dispatcher))

        response = client.options("/api/refresh-strava", headers={
            "Origin": "https://dashboard.example.com",
            "Access-Control-Request-Method": "GET",
        })

        assert response.status_code == 200
        assert response.headers["access-control-allow-origin"] == "https://dashboard.example.com"

    def test_unknown_origin_gets_no_header(self, client):
        response = client.get("/", headers={"Origin": "https://evil.example.com"})
        assert "access-control-allow-origin" not in response.headers
