"""Strava running streak statistics and a thin Strava tool server."""

__version__ = "0.1.0"
