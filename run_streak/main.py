"""
HTTP server for the Strava run streak tools.
Exposes the Strava tool table, the streak report and the OAuth flow over HTTP.
"""

import logging
import traceback
from typing import Any, Dict, Optional

import httpx
import uvicorn
from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from .activities import load_run_days, refresh_run_files
from .auth import router as auth_router
from .config import Settings, configure_logging, settings as default_settings
from .dates import parse_day
from .exceptions import (
    AuthenticationError,
    InvalidRangeError,
    InvalidToolArgumentsError,
    RunStreakError,
    UnknownToolError,
    UpstreamRequestError,
)
from .report import report_record
from .streaks import CalendarWindow, analyze
from .strava_client import StravaClient
from .tools import ToolDispatcher, list_tool_definitions, text_content

logger = logging.getLogger(__name__)


class ToolCallRequest(BaseModel):
    name: str = Field(..., min_length=1)
    arguments: Dict[str, Any] = Field(default_factory=dict)


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


async def get_dispatcher(request: Request) -> ToolDispatcher:
    """Build the Strava client on first use so the server starts without credentials."""
    state = request.app.state
    if state.dispatcher is None:
        client = StravaClient.from_settings(
            state.settings,
            transport=state.strava_transport,
            token_cache=getattr(state, "token_cache", None),
        )
        state.token_manager = client.token_manager
        state.dispatcher = ToolDispatcher(client, state.settings)
    return state.dispatcher


def register_exception_handlers(app: FastAPI):
    @app.exception_handler(UnknownToolError)
    async def unknown_tool_handler(request: Request, exc: UnknownToolError):
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @app.exception_handler(InvalidToolArgumentsError)
    async def invalid_arguments_handler(request: Request, exc: InvalidToolArgumentsError):
        return JSONResponse(status_code=422, content={"detail": str(exc), "errors": exc.errors})

    @app.exception_handler(InvalidRangeError)
    async def invalid_range_handler(request: Request, exc: InvalidRangeError):
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    @app.exception_handler(AuthenticationError)
    async def authentication_handler(request: Request, exc: AuthenticationError):
        return JSONResponse(status_code=401, content={"detail": str(exc)})

    @app.exception_handler(UpstreamRequestError)
    async def upstream_handler(request: Request, exc: UpstreamRequestError):
        return JSONResponse(
            status_code=502,
            content={"detail": str(exc), "upstream_status": exc.status_code, "upstream_detail": exc.detail},
        )

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        logger.error(f"Global Exception: {str(exc)}\n{traceback.format_exc()}")
        return JSONResponse(
            status_code=500,
            content={"detail": "Internal Server Error. Check logs for traceback."},
        )


def create_app(settings: Settings = default_settings, dispatcher: Optional[ToolDispatcher] = None,
               transport: Optional[httpx.AsyncBaseTransport] = None) -> FastAPI:
    app = FastAPI(
        title="Strava Run Streak Server",
        description="HTTP server for Strava tools and run streak statistics",
    )
    app.state.settings = settings
    app.state.dispatcher = dispatcher
    app.state.token_manager = dispatcher.client.token_manager if dispatcher else None
    app.state.strava_transport = transport

    # CORS configuration
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS.split(","),
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization"],
    )

    register_exception_handlers(app)
    app.include_router(auth_router, prefix="/auth/strava", tags=["auth"])

    @app.get("/")
    def read_root():
        return {"message": "Strava Run Streak server is running"}

    @app.get("/tools")
    def list_tools() -> Dict[str, Any]:
        return {"tools": list_tool_definitions()}

    @app.post("/tools/call")
    async def call_tool(call: ToolCallRequest, dispatcher: ToolDispatcher = Depends(get_dispatcher)) -> Dict[str, Any]:
        result = await dispatcher.call(call.name, call.arguments)
        return text_content(result)

    @app.get("/api/streak")
    def get_streak(
        start: Optional[str] = None,
        end: Optional[str] = None,
        settings: Settings = Depends(get_settings),
    ) -> Dict[str, Any]:
        """Streak report computed from the last saved run-days file."""
        try:
            window = CalendarWindow.since(parse_day(start or settings.STREAK_START_DATE), parse_day(end) if end else None)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))

        try:
            days = load_run_days(settings.data_path(settings.RUN_DAYS_FILE))
        except FileNotFoundError as e:
            raise HTTPException(status_code=404, detail=str(e))

        return report_record(analyze(window, days.day_set()))

    @app.get("/api/refresh-strava")
    async def refresh_strava(request: Request, settings: Settings = Depends(get_settings)):
        """Re-fetch every run since the streak start date and rewrite the run files."""
        logger.info("Refreshing Strava data...")
        try:
            dispatcher = await get_dispatcher(request)
            runs, days = await refresh_run_files(
                dispatcher.client,
                parse_day(settings.STREAK_START_DATE),
                settings.data_path(settings.RUN_ACTIVITIES_FILE),
                settings.data_path(settings.RUN_DAYS_FILE),
                settings.RUN_TYPES,
            )
        except RunStreakError as e:
            logger.error(f"Error refreshing Strava data: {e}")
            return JSONResponse(status_code=500, content={"success": False, "error": str(e)})

        return {
            "success": True,
            "message": "Strava data refreshed successfully",
            "details": {"runs": len(runs), "days_with_runs": days.total_days},
        }

    return app


app = create_app()


def main():
    configure_logging()
    uvicorn.run(app, host="0.0.0.0", port=default_settings.SERVER_PORT)


if __name__ == "__main__":
    main()
