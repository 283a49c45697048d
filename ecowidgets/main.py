"""
ECO Widgets API application factory.

One application owns one SelectorRegistry (app.state.registry); selector
sessions live for the lifetime of the process and are dropped on shutdown.
"""

import time
import uuid
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ecowidgets import __version__
from ecowidgets.config import Settings, get_settings
from ecowidgets.engine.selector import SelectorRegistry
from ecowidgets.routers import analytics, system, timewindow
from ecowidgets.utils.logging import configure_logging, get_logger

configure_logging()
logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    settings = get_settings()
    logger.info(
        "application_startup",
        version=app.version,
        dev_mode=settings.dev_mode,
        default_selector_mode=settings.default_selector_mode,
        default_aggregation_type=settings.default_aggregation_type,
    )

    yield

    dropped = app.state.registry.clear()
    logger.info("application_shutdown", selectors_dropped=dropped)


def _error_response(status_code: int, error: str, request_id: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "error": error, "request_id": request_id},
        headers={REQUEST_ID_HEADER: request_id},
    )


def _install_middleware(app: FastAPI, settings: Settings) -> None:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=[REQUEST_ID_HEADER],
    )

    @app.middleware("http")
    async def trace_requests(request: Request, call_next):
        """Bind a request id to the log context and time the request."""
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        started = time.perf_counter()

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id, path=request.url.path)

        try:
            response = await call_next(request)
        except Exception as e:
            logger.error("request_failed", method=request.method, error=str(e), exc_info=True)
            return _error_response(500, "Internal server error", request_id)

        response.headers[REQUEST_ID_HEADER] = request_id
        logger.info(
            "request_completed",
            method=request.method,
            status_code=response.status_code,
            duration_ms=round((time.perf_counter() - started) * 1000, 2),
        )
        return response


def create_app(registry: Optional[SelectorRegistry] = None) -> FastAPI:
    """
    Build the API.

    Args:
        registry: Selector registry to serve; a fresh one on the wall clock
            when omitted

    Routes:
        /health                     liveness
        /api/v1/analytics/...       statistics, outliers, smoothing, series
        /api/v1/timewindow/...      calendar ranges and selector sessions
        /api/v1/system/...          health details and widget defaults
    """
    settings = get_settings()

    app = FastAPI(
        title="ECO Widgets API",
        description="Series analytics and timewindow selector sessions for energy dashboard widgets",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.registry = registry if registry is not None else SelectorRegistry()
    app.state.started_at = time.time()

    _install_middleware(app, settings)

    @app.exception_handler(ValueError)
    async def engine_value_error(request: Request, exc: ValueError):
        """Engine input errors that escape a router are client errors."""
        logger.warning("engine_value_error", error=str(exc))
        request_id = structlog.contextvars.get_contextvars().get("request_id", "")
        return _error_response(422, str(exc), request_id)

    @app.get("/health", tags=["System"])
    async def health_check():
        return {"status": "healthy", "version": app.version}

    app.include_router(analytics.router, prefix="/api/v1/analytics", tags=["Analytics"])
    app.include_router(timewindow.router, prefix="/api/v1/timewindow", tags=["Timewindow"])
    app.include_router(system.router, prefix="/api/v1/system", tags=["System"])

    logger.info("application_configured", routes=len(app.routes))
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "ecowidgets.main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug,
        log_level=settings.log_level.lower(),
    )
