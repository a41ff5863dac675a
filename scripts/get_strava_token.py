"""
One-shot Strava authorization.

Usage: python scripts/get_strava_token.py CLIENT_ID CLIENT_SECRET

Opens the Strava consent page, waits for the redirect on
http://localhost:AUTH_PORT/callback and prints the resulting tokens.
"""

import sys
import threading
import webbrowser
from datetime import datetime
from pathlib import Path

import uvicorn
from fastapi import FastAPI

# Add the project root to sys.path so we can import run_streak
sys.path.append(str(Path(__file__).parent.parent))

from run_streak.auth import TokenCache, router as auth_router
from run_streak.config import configure_logging, settings

USAGE = """Usage: python scripts/get_strava_token.py CLIENT_ID CLIENT_SECRET

You need to create a Strava API application first:
1. Go to https://www.strava.com/settings/api
2. Create an application to get your Client ID and Client Secret
3. Set the Authorization Callback Domain to: localhost"""


def print_tokens(cache: TokenCache, client_id: str, client_secret: str):
    print("\n=== Strava API Tokens ===")
    print(f"Access Token: {cache.access_token}")
    print(f"Refresh Token: {cache.refresh_token}")
    print(f"Expires At: {datetime.fromtimestamp(cache.expires_at)}")
    print("\nAdd these values to your .env file:")
    print(f"STRAVA_CLIENT_ID={client_id}")
    print(f"STRAVA_CLIENT_SECRET={client_secret}")
    print(f"STRAVA_REFRESH_TOKEN={cache.refresh_token}")


def main() -> int:
    if len(sys.argv) < 3:
        print(USAGE, file=sys.stderr)
        return 1

    client_id, client_secret = sys.argv[1], sys.argv[2]
    configure_logging()

    auth_settings = settings.model_copy(update={"STRAVA_CLIENT_ID": client_id, "STRAVA_CLIENT_SECRET": client_secret})
    app = FastAPI(title="Strava Authorization")
    app.state.settings = auth_settings
    app.include_router(auth_router)

    server = uvicorn.Server(uvicorn.Config(app, host="localhost", port=auth_settings.AUTH_PORT, log_level="warning"))

    def on_tokens(cache: TokenCache):
        print_tokens(cache, client_id, client_secret)
        server.should_exit = True

    app.state.on_tokens = on_tokens

    login_url = f"http://localhost:{auth_settings.AUTH_PORT}/login"
    print(f"Server running at http://localhost:{auth_settings.AUTH_PORT}")
    print("Opening Strava authorization page...")
    print("Please log in to your Strava account and authorize the application.")
    threading.Timer(1.0, webbrowser.open, args=[login_url]).start()

    server.run()
    return 0


if __name__ == "__main__":
    sys.exit(main())
