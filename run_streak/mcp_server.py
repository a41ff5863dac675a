#!/usr/bin/env python3
"""
Strava MCP server.
Exposes the Strava tool table over the Model Context Protocol on stdio.
"""

import json
import logging
from typing import Any, Optional

from mcp.server.fastmcp import FastMCP

from .config import Settings, configure_logging, settings as default_settings
from .strava_client import StravaClient
from .tools import STRAVA_TOOLS, ToolDispatcher

logger = logging.getLogger(__name__)

DESCRIPTIONS = {tool.name: tool.description for tool in STRAVA_TOOLS}


def create_mcp_server(dispatcher: Optional[ToolDispatcher] = None,
                      settings: Settings = default_settings) -> FastMCP:
    """Create the MCP server with one tool per entry of the tool table."""
    mcp = FastMCP(
        name="strava-mcp-server",
        instructions="Strava activity tools and running streak statistics",
    )
    state = {"dispatcher": dispatcher}

    def get_dispatcher() -> ToolDispatcher:
        # Credentials are only needed once a tool is actually called
        if state["dispatcher"] is None:
            state["dispatcher"] = ToolDispatcher(StravaClient.from_settings(settings), settings)
        return state["dispatcher"]

    async def call(name: str, **arguments: Any) -> str:
        arguments = {k: v for k, v in arguments.items() if v is not None}
        result = await get_dispatcher().call(name, arguments)
        return json.dumps(result, indent=2)

    @mcp.tool(description=DESCRIPTIONS["get_athlete_activities"])
    async def get_athlete_activities(
        page: Optional[int] = None,
        per_page: Optional[int] = None,
        before: Optional[str] = None,
        after: Optional[str] = None,
    ) -> str:
        return await call("get_athlete_activities", page=page, per_page=per_page, before=before, after=after)

    @mcp.tool(description=DESCRIPTIONS["get_activity"])
    async def get_activity(id: str, include_all_efforts: Optional[bool] = None) -> str:
        return await call("get_activity", id=id, include_all_efforts=include_all_efforts)

    @mcp.tool(description=DESCRIPTIONS["create_activity"])
    async def create_activity(
        name: str,
        sport_type: str,
        start_date_local: str,
        elapsed_time: int,
        type: Optional[str] = None,
        description: Optional[str] = None,
        distance: Optional[float] = None,
        trainer: Optional[int] = None,
        commute: Optional[int] = None,
    ) -> str:
        return await call(
            "create_activity",
            name=name,
            sport_type=sport_type,
            start_date_local=start_date_local,
            elapsed_time=elapsed_time,
            type=type,
            description=description,
            distance=distance,
            trainer=trainer,
            commute=commute,
        )

    @mcp.tool(description=DESCRIPTIONS["get_activity_kudoers"])
    async def get_activity_kudoers(id: str, page: Optional[int] = None, per_page: Optional[int] = None) -> str:
        return await call("get_activity_kudoers", id=id, page=page, per_page=per_page)

    @mcp.tool(description=DESCRIPTIONS["get_activity_laps"])
    async def get_activity_laps(id: str) -> str:
        return await call("get_activity_laps", id=id)

    @mcp.tool(description=DESCRIPTIONS["get_run_streak"])
    async def get_run_streak(
        start_date: Optional[str] = None,
        end_date: Optional[str] = None,
        refresh: bool = False,
    ) -> str:
        return await call("get_run_streak", start_date=start_date, end_date=end_date, refresh=refresh)

    return mcp


def main():
    configure_logging()
    server = create_mcp_server()
    logger.info("Strava MCP server running on stdio")
    server.run()


if __name__ == "__main__":
    main()
