"""API routers for all endpoints."""

from ecowidgets.routers import analytics, system, timewindow

__all__ = [
    "analytics",
    "timewindow",
    "system",
]
