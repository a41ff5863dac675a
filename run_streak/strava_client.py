"""
Async client for the Strava v3 API.

StravaClient is the activity provider for the streak pipeline: it pages
through /athlete/activities and forwards tool calls to fixed endpoints.
"""

import asyncio
import logging
from datetime import date
from typing import Any, AsyncIterator, Dict, List, Optional

import httpx

from .auth import TokenCache, TokenManager
from .config import Settings, settings as default_settings
from .dates import day_start_epoch
from .exceptions import AuthenticationError, UpstreamRequestError

logger = logging.getLogger(__name__)


class StravaClient:
    def __init__(
        self,
        token_manager: TokenManager,
        base_url: str = "https://www.strava.com/api/v3",
        timeout: float = 30.0,
        per_page: int = 100,
        page_delay: float = 0.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.token_manager = token_manager
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.per_page = per_page
        self.page_delay = page_delay
        self.transport = transport

    @classmethod
    def from_settings(cls, settings: Settings = default_settings,
                      transport: Optional[httpx.AsyncBaseTransport] = None,
                      token_cache: Optional[TokenCache] = None) -> "StravaClient":
        return cls(
            TokenManager.from_settings(settings, transport=transport, cache=token_cache),
            base_url=settings.STRAVA_API_BASE_URL,
            timeout=settings.REQUEST_TIMEOUT_SECONDS,
            per_page=settings.ACTIVITIES_PER_PAGE,
            page_delay=settings.PAGE_DELAY_SECONDS,
            transport=transport,
        )

    async def request(
        self,
        method: str,
        endpoint: str,
        params: Optional[Dict[str, Any]] = None,
        data: Optional[Dict[str, Any]] = None,
    ) -> Any:
        """
        Make an authenticated request to the Strava API and return the decoded JSON.
        None-valued params are left out of the query string.
        """
        access_token = await self.token_manager.get_access_token()
        headers = {"Authorization": f"Bearer {access_token}"}
        if params:
            params = {k: v for k, v in params.items() if v is not None}

        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            try:
                response = await client.request(
                    method=method.upper(),
                    url=f"{self.base_url}{endpoint}",
                    headers=headers,
                    params=params or None,
                    json=data,
                )
            except httpx.RequestError as e:
                logger.error(f"Strava API connection error: {str(e)}")
                raise UpstreamRequestError(f"Strava API request failed: {e}") from e

        if response.status_code == 401:
            raise AuthenticationError(f"Invalid or expired Strava token: {response.text}")

        if response.is_error:
            try:
                detail = response.json()
            except ValueError:
                detail = response.text
            logger.error(f"Strava API error on {method.upper()} {endpoint}: {response.status_code}")
            raise UpstreamRequestError(
                f"Strava API error: {response.status_code} - {detail}",
                status_code=response.status_code,
                detail=detail,
            )

        return response.json()

    async def iter_activity_pages(self, after: Optional[int] = None,
                                  per_page: Optional[int] = None) -> AsyncIterator[List[Dict[str, Any]]]:
        """
        Yield pages of /athlete/activities until Strava returns an empty page.
        Each call starts again from page 1.
        """
        per_page = per_page or self.per_page
        page = 1
        while True:
            activities = await self.request(
                "GET",
                "/athlete/activities",
                params={"after": after, "page": page, "per_page": per_page},
            )
            if not activities:
                return

            logger.info(f"Fetched page {page} ({len(activities)} activities)")
            yield activities
            page += 1

            if self.page_delay:
                await asyncio.sleep(self.page_delay)

    async def list_activities_since(self, day: date) -> List[Dict[str, Any]]:
        """Every activity that started on or after 00:00 UTC of `day`."""
        all_activities: List[Dict[str, Any]] = []
        async for page in self.iter_activity_pages(after=day_start_epoch(day)):
            all_activities.extend(page)
        return all_activities
