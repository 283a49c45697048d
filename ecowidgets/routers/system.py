"""
System health and configuration router.

Wired to:
- SelectorRegistry for active selector sessions
- Settings for configuration
"""

import time

from fastapi import APIRouter, Request

from ecowidgets import __version__
from ecowidgets.config import get_settings
from ecowidgets.utils.logging import get_logger

logger = get_logger(__name__)
router = APIRouter()


@router.get("/health")
async def system_health(request: Request):
    """
    Get system health status.
    Reports uptime and the number of live selector sessions.
    """
    state = request.app.state
    uptime = time.time() - state.started_at

    return {
        "success": True,
        "data": {
            "status": "healthy",
            "version": __version__,
            "uptime_seconds": round(uptime, 1),
            "selectors": len(state.registry),
        },
    }


@router.get("/config")
async def get_system_config():
    """
    Get widget defaults (non-sensitive values only).
    """
    settings = get_settings()

    logger.info("config_request")

    return {
        "success": True,
        "data": {
            "log_level": settings.log_level,
            "dev_mode": settings.dev_mode,
            "default_selector_mode": settings.default_selector_mode,
            "default_aggregation_type": settings.default_aggregation_type,
            "default_max_data_points": settings.default_max_data_points,
        },
    }
