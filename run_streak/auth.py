import asyncio
import json
import logging
import secrets
import time
from pathlib import Path
from typing import Any, Dict, Optional
from urllib.parse import urlencode

import httpx
from fastapi import APIRouter, Request
from fastapi.responses import HTMLResponse, RedirectResponse
from pydantic import BaseModel

from .config import Settings, settings as default_settings
from .exceptions import AuthenticationError

logger = logging.getLogger(__name__)

router = APIRouter()


class TokenCache(BaseModel):
    """Strava OAuth tokens plus the moment the access token stops being valid."""

    access_token: Optional[str] = None
    refresh_token: str
    expires_at: int = 0  # Unix timestamp

    def needs_refresh(self, now: Optional[float] = None, grace_seconds: int = 60) -> bool:
        if not self.access_token:
            return True
        now = time.time() if now is None else now
        return self.expires_at <= now + grace_seconds

    @classmethod
    def from_token_response(cls, data: Dict[str, Any], previous_refresh_token: str = "") -> "TokenCache":
        """Build a cache from a /oauth/token response (Strava may rotate the refresh token)."""
        return cls(
            access_token=data["access_token"],
            refresh_token=data.get("refresh_token") or previous_refresh_token,
            expires_at=int(data.get("expires_at", 0)),
        )

    @classmethod
    def load(cls, path: Path) -> "TokenCache":
        with open(path, 'r') as f:
            return cls(**json.load(f))

    def save(self, path: Path):
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, 'w') as f:
            json.dump(self.model_dump(), f, indent=2)


async def post_token_request(oauth_url: str, payload: Dict[str, Any], timeout: float = 10.0,
                             transport: Optional[httpx.AsyncBaseTransport] = None) -> Dict[str, Any]:
    """POST to Strava's /oauth/token endpoint and return the JSON body."""
    async with httpx.AsyncClient(timeout=timeout, transport=transport) as client:
        try:
            response = await client.post(f"{oauth_url}/token", data=payload)
        except httpx.RequestError as e:
            raise AuthenticationError(f"Strava token request failed: {e}") from e

    if response.status_code != 200:
        raise AuthenticationError(f"Strava token request rejected: {response.status_code} - {response.text}")
    return response.json()


class TokenManager:
    """
    Holds a TokenCache and refreshes it when the access token is about to expire.

    Refreshes are serialized with a lock so concurrent callers trigger at most
    one request to Strava.
    """

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        cache: TokenCache,
        oauth_url: str = "https://www.strava.com/oauth",
        grace_seconds: int = 60,
        cache_file: Optional[Path] = None,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.client_id = client_id
        self.client_secret = client_secret
        self.cache = cache
        self.oauth_url = oauth_url
        self.grace_seconds = grace_seconds
        self.cache_file = cache_file
        self.timeout = timeout
        self.transport = transport
        self._lock = asyncio.Lock()

    @classmethod
    def from_settings(cls, settings: Settings = default_settings,
                      transport: Optional[httpx.AsyncBaseTransport] = None,
                      cache: Optional[TokenCache] = None) -> "TokenManager":
        """Build a manager from `cache` if given, else the token file, else STRAVA_REFRESH_TOKEN."""
        cache_file = Path(settings.TOKEN_CACHE_FILE) if settings.TOKEN_CACHE_FILE else None

        if cache is None:
            if cache_file and cache_file.exists():
                cache = TokenCache.load(cache_file)
                logger.info(f"Loaded Strava tokens from {cache_file}")
            else:
                cache = TokenCache(refresh_token=settings.STRAVA_REFRESH_TOKEN)

        if not settings.STRAVA_CLIENT_ID or not settings.STRAVA_CLIENT_SECRET or not cache.refresh_token:
            raise AuthenticationError("Missing required Strava API credentials in environment variables")

        return cls(
            client_id=settings.STRAVA_CLIENT_ID,
            client_secret=settings.STRAVA_CLIENT_SECRET,
            cache=cache,
            oauth_url=settings.STRAVA_OAUTH_URL,
            grace_seconds=settings.TOKEN_REFRESH_GRACE_SECONDS,
            cache_file=cache_file,
            transport=transport,
        )

    async def get_access_token(self) -> str:
        async with self._lock:
            if not self.cache.needs_refresh(grace_seconds=self.grace_seconds):
                return self.cache.access_token

            self.cache = await self._refresh()
            return self.cache.access_token

    async def _refresh(self) -> TokenCache:
        try:
            data = await post_token_request(
                self.oauth_url,
                {
                    "client_id": self.client_id,
                    "client_secret": self.client_secret,
                    "refresh_token": self.cache.refresh_token,
                    "grant_type": "refresh_token",
                },
                timeout=self.timeout,
                transport=self.transport,
            )
        except AuthenticationError as e:
            logger.error(f"Error refreshing Strava access token: {e}")
            raise

        cache = TokenCache.from_token_response(data, self.cache.refresh_token)
        logger.info(f"Refreshed Strava access token, valid until {cache.expires_at}")
        if self.cache_file:
            cache.save(self.cache_file)
        return cache


# --- OAuth authorization-code flow ---

def build_authorize_url(oauth_url: str, client_id: str, redirect_uri: str, scope: str, state: str) -> str:
    params = {
        "client_id": client_id,
        "response_type": "code",
        "redirect_uri": redirect_uri,
        "approval_prompt": "force",
        "scope": scope,
        "state": state,
    }
    return f"{oauth_url}/authorize?{urlencode(params, safe=':/,')}"


async def exchange_code(code: str, settings: Settings,
                        transport: Optional[httpx.AsyncBaseTransport] = None) -> TokenCache:
    """Exchange an authorization code for access and refresh tokens."""
    data = await post_token_request(
        settings.STRAVA_OAUTH_URL,
        {
            "client_id": settings.STRAVA_CLIENT_ID,
            "client_secret": settings.STRAVA_CLIENT_SECRET,
            "code": code,
            "grant_type": "authorization_code",
        },
        transport=transport,
    )
    return TokenCache.from_token_response(data)


def _app_settings(request: Request) -> Settings:
    return getattr(request.app.state, "settings", default_settings)


def _pending_states(request: Request) -> set:
    if not hasattr(request.app.state, "oauth_states"):
        request.app.state.oauth_states = set()
    return request.app.state.oauth_states


@router.get("/start")
def start_strava_auth(request: Request):
    """
    Returns the Strava OAuth URL and its state token.
    The caller should send the user to this URL.
    """
    settings = _app_settings(request)
    if not settings.STRAVA_CLIENT_ID:
        return HTMLResponse("<h1>Error</h1><p>Missing STRAVA_CLIENT_ID</p>", status_code=500)

    state = secrets.token_hex(16)
    _pending_states(request).add(state)
    url = build_authorize_url(
        settings.STRAVA_OAUTH_URL,
        settings.STRAVA_CLIENT_ID,
        str(request.url_for("strava_callback")),
        settings.AUTH_SCOPE,
        state,
    )
    return {"url": url, "state": state}


@router.get("/login")
def login(request: Request):
    """Redirect straight to Strava's consent page."""
    started = start_strava_auth(request)
    if isinstance(started, HTMLResponse):
        return started
    return RedirectResponse(url=started["url"])


@router.get("/callback", name="strava_callback")
async def strava_callback(
    request: Request,
    code: Optional[str] = None,
    state: Optional[str] = None,
    error: Optional[str] = None,
):
    """Handle the Strava redirect: verify state, exchange the code, keep the tokens."""
    if error:
        logger.error(f"Strava authorization error: {error}")
        return HTMLResponse(f"<h1>Error</h1><p>{error}</p>", status_code=400)

    pending = _pending_states(request)
    if not state or state not in pending:
        logger.error("Strava authorization error: invalid state parameter")
        return HTMLResponse("<h1>Error</h1><p>Invalid state parameter</p>", status_code=400)
    pending.discard(state)

    if not code:
        return HTMLResponse("<h1>Error</h1><p>Missing code</p>", status_code=400)

    settings = _app_settings(request)
    try:
        cache = await exchange_code(code, settings, transport=getattr(request.app.state, "strava_transport", None))
    except AuthenticationError as e:
        logger.error(f"Failed to exchange authorization code: {e}")
        return HTMLResponse(
            "<h1>Error</h1><p>Failed to exchange authorization code for tokens</p>",
            status_code=400,
        )

    logger.info(f"Received Strava tokens: refresh_token={cache.refresh_token}, expires_at={cache.expires_at}")
    if settings.TOKEN_CACHE_FILE:
        cache.save(Path(settings.TOKEN_CACHE_FILE))
        logger.info(f"Saved Strava tokens to {settings.TOKEN_CACHE_FILE}")

    # Clients built after this point pick the tokens up from app.state
    request.app.state.token_cache = cache

    # A running server starts using the new tokens right away
    token_manager = getattr(request.app.state, "token_manager", None)
    if token_manager is not None:
        token_manager.cache = cache

    on_tokens = getattr(request.app.state, "on_tokens", None)
    if on_tokens is not None:
        on_tokens(cache)

    return HTMLResponse("<h1>Success!</h1><p>You can close this window and check the terminal for your tokens.</p>")
