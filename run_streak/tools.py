"""
Tool definitions for the Strava tool server.

Each tool maps a name to an argument model and a fixed Strava endpoint.
Arguments are validated against the model before anything is forwarded.
The same table backs both the HTTP server and the MCP stdio server.
"""

import json
import logging
from dataclasses import dataclass
from string import Formatter
from datetime import date
from typing import Any, Dict, List, Optional, Tuple, Type, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .activities import load_run_days, refresh_run_files
from .config import Settings, settings as default_settings
from .dates import parse_day
from .exceptions import InvalidToolArgumentsError, UnknownToolError
from .report import report_record
from .streaks import CalendarWindow, analyze
from .strava_client import StravaClient

logger = logging.getLogger(__name__)


class ToolArguments(BaseModel):
    model_config = ConfigDict(extra="forbid")


class GetAthleteActivitiesArgs(ToolArguments):
    page: Optional[int] = Field(None, ge=1, description="Page number (default: 1)")
    per_page: Optional[int] = Field(None, ge=1, le=100, description="Number of items per page (default: 30, max: 100)")
    before: Optional[Union[int, str]] = Field(
        None, description="An epoch timestamp to use for filtering activities that have taken place before a certain time"
    )
    after: Optional[Union[int, str]] = Field(
        None, description="An epoch timestamp to use for filtering activities that have taken place after a certain time"
    )


class GetActivityArgs(ToolArguments):
    id: Union[int, str] = Field(..., description="The identifier of the activity")
    include_all_efforts: Optional[bool] = Field(None, description="To include all segments efforts")


class CreateActivityArgs(ToolArguments):
    name: str = Field(..., min_length=1, description="The name of the activity")
    sport_type: str = Field(..., description="Sport type of activity (e.g., Run, MountainBikeRide, Ride)")
    start_date_local: str = Field(..., description="ISO 8601 formatted date time")
    elapsed_time: int = Field(..., ge=0, description="In seconds")
    type: Optional[str] = Field(None, description="Type of activity (e.g., Run, Ride)")
    description: Optional[str] = Field(None, description="Description of the activity")
    distance: Optional[float] = Field(None, ge=0, description="In meters")
    trainer: Optional[int] = Field(None, ge=0, le=1, description="Set to 1 to mark as a trainer activity")
    commute: Optional[int] = Field(None, ge=0, le=1, description="Set to 1 to mark as commute")


class GetActivityKudoersArgs(ToolArguments):
    id: Union[int, str] = Field(..., description="The identifier of the activity")
    page: Optional[int] = Field(None, ge=1, description="Page number (default: 1)")
    per_page: Optional[int] = Field(None, ge=1, description="Number of items per page (default: 30)")


class GetActivityLapsArgs(ToolArguments):
    id: Union[int, str] = Field(..., description="The identifier of the activity")


class GetRunStreakArgs(ToolArguments):
    start_date: Optional[date] = Field(None, description="First day of the window (YYYY-MM-DD, default: streak start date)")
    end_date: Optional[date] = Field(None, description="Last day of the window (YYYY-MM-DD, default: today)")
    refresh: bool = Field(False, description="Re-fetch activities from Strava before computing the streak")

    @field_validator("start_date", "end_date", mode="before")
    @classmethod
    def parse_dates(cls, value: Any) -> Optional[date]:
        if value is None or value == "":
            return None
        return parse_day(value)


@dataclass(frozen=True)
class ToolSpec:
    name: str
    description: str
    arguments: Type[ToolArguments]
    method: str = "GET"
    endpoint: Optional[str] = None  # None: handled locally, not forwarded to Strava
    body: bool = False  # send arguments as a JSON body instead of query params

    @property
    def path_params(self) -> Tuple[str, ...]:
        if not self.endpoint:
            return ()
        return tuple(field for _, field, _, _ in Formatter().parse(self.endpoint) if field)

    @property
    def input_schema(self) -> Dict[str, Any]:
        return self.arguments.model_json_schema()

    def definition(self) -> Dict[str, Any]:
        return {"name": self.name, "description": self.description, "inputSchema": self.input_schema}


STRAVA_TOOLS: Tuple[ToolSpec, ...] = (
    ToolSpec(
        name="get_athlete_activities",
        description="Get activities for the authenticated athlete",
        arguments=GetAthleteActivitiesArgs,
        endpoint="/athlete/activities",
    ),
    ToolSpec(
        name="get_activity",
        description="Get details of a specific activity",
        arguments=GetActivityArgs,
        endpoint="/activities/{id}",
    ),
    ToolSpec(
        name="create_activity",
        description="Create a manual activity",
        arguments=CreateActivityArgs,
        method="POST",
        endpoint="/activities",
        body=True,
    ),
    ToolSpec(
        name="get_activity_kudoers",
        description="Get the athletes who kudoed an activity",
        arguments=GetActivityKudoersArgs,
        endpoint="/activities/{id}/kudos",
    ),
    ToolSpec(
        name="get_activity_laps",
        description="Get the laps of an activity",
        arguments=GetActivityLapsArgs,
        endpoint="/activities/{id}/laps",
    ),
    ToolSpec(
        name="get_run_streak",
        description="Get the running streak report: missed days, longest and current streak",
        arguments=GetRunStreakArgs,
    ),
)


def list_tool_definitions() -> List[Dict[str, Any]]:
    """Return list of available tools."""
    return [tool.definition() for tool in STRAVA_TOOLS]


def text_content(result: Any) -> Dict[str, Any]:
    """Wrap a tool result the way tool protocols expect it."""
    return {"content": [{"type": "text", "text": json.dumps(result, indent=2)}]}


class ToolDispatcher:
    def __init__(self, client: StravaClient, settings: Settings = default_settings,
                 tools: Tuple[ToolSpec, ...] = STRAVA_TOOLS):
        self.client = client
        self.settings = settings
        self.tools: Dict[str, ToolSpec] = {tool.name: tool for tool in tools}
        self._local_handlers = {
            "get_run_streak": self._get_run_streak,
        }

    def list_tools(self) -> List[Dict[str, Any]]:
        return [tool.definition() for tool in self.tools.values()]

    def get(self, name: str) -> ToolSpec:
        tool = self.tools.get(name)
        if tool is None:
            raise UnknownToolError(name)
        return tool

    def validate(self, name: str, arguments: Optional[Dict[str, Any]] = None) -> Tuple[ToolSpec, ToolArguments]:
        tool = self.get(name)
        try:
            args = tool.arguments.model_validate(arguments or {})
        except ValidationError as e:
            raise InvalidToolArgumentsError(name, e.errors(include_url=False, include_context=False)) from e
        return tool, args

    async def call(self, name: str, arguments: Optional[Dict[str, Any]] = None) -> Any:
        tool, args = self.validate(name, arguments)
        logger.info(f"Calling tool {name}")

        if tool.endpoint is None:
            return await self._local_handlers[name](args)

        values = args.model_dump(exclude_none=True)
        path_values = {param: values.pop(param) for param in tool.path_params}
        endpoint = tool.endpoint.format(**path_values)

        if tool.body:
            return await self.client.request(tool.method, endpoint, data=values)
        return await self.client.request(tool.method, endpoint, params=values)

    async def _get_run_streak(self, args: GetRunStreakArgs) -> Dict[str, Any]:
        settings = self.settings
        configured_start = parse_day(settings.STREAK_START_DATE)
        start = args.start_date or configured_start
        window = CalendarWindow.since(start, args.end_date)

        days_path = settings.data_path(settings.RUN_DAYS_FILE)
        if args.refresh or not days_path.exists():
            _, days = await refresh_run_files(
                self.client,
                min(start, configured_start),
                settings.data_path(settings.RUN_ACTIVITIES_FILE),
                days_path,
                settings.RUN_TYPES,
            )
        else:
            days = load_run_days(days_path)

        return report_record(analyze(window, days.day_set()))
