from typing import Any, Optional


class RunStreakError(Exception):
    """Base class for errors raised by run_streak."""


class InvalidRangeError(RunStreakError, ValueError):
    """Calendar window whose start falls after its end."""

    def __init__(self, start, end):
        self.start = start
        self.end = end
        super().__init__(f"Invalid calendar window: start {start} is after end {end}")


class AuthenticationError(RunStreakError):
    """Missing credentials, or Strava refused a token exchange."""


class UpstreamRequestError(RunStreakError):
    """A Strava API call failed or returned a non-2xx status."""

    def __init__(self, message: str, status_code: Optional[int] = None, detail: Any = None):
        self.status_code = status_code
        self.detail = detail
        super().__init__(message)


class UnknownToolError(RunStreakError, LookupError):
    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Unknown tool: {name}")


class InvalidToolArgumentsError(RunStreakError):
    """Tool arguments rejected by the tool's argument model."""

    def __init__(self, name: str, errors: list):
        self.name = name
        self.errors = errors
        super().__init__(f"Invalid arguments for tool {name}: {errors}")
