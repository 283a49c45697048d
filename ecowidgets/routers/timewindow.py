"""
Timewindow router: calendar ranges and selector sessions.

A selector session stands in for one widget container. The HTTP client is
the host: every timewindow a selector pushes is returned in the response,
together with the host callback (dashboard or widget) that received it.

Wired to:
- calculate_range for calendar periods
- SelectorRegistry (app.state.registry) for selector sessions
"""

from datetime import datetime
from typing import Any, Literal, Optional

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, Field

from ecowidgets.engine.formatting import format_period_label
from ecowidgets.engine.selector import SelectorRegistry, TimewindowSelector
from ecowidgets.engine.timerange import calculate_range, to_local
from ecowidgets.models import (
    DataContext,
    HostBridge,
    SelectorMode,
    Timewindow,
    WidgetSettings,
    resolve_widget_settings,
)
from ecowidgets.utils.logging import get_logger

logger = get_logger(__name__)
router = APIRouter()


class RangeRequest(BaseModel):
    """Calendar period around a reference date (default: now)."""

    mode: SelectorMode
    reference_date: Optional[datetime] = None


class SelectorInitRequest(BaseModel):
    """
    Widget initialization in a container.

    Attributes:
        settings: Widget settings bag (camelCase keys)
        context: Data context for ${attributeName} expressions
        use_dashboard_timewindow: Push to the dashboard (true) or widget
        dashboard_callback: Whether the host offers a dashboard callback
        widget_callback: Whether the host offers a widget callback
    """

    settings: dict[str, Any] = Field(default_factory=dict)
    context: DataContext = Field(default_factory=DataContext)
    use_dashboard_timewindow: bool = True
    dashboard_callback: bool = True
    widget_callback: bool = True


class ModeRequest(BaseModel):
    mode: SelectorMode


class NavigateRequest(BaseModel):
    direction: Literal[-1, 1]


class CustomRangeRequest(BaseModel):
    start: datetime
    end: datetime


def _record_push(container_id: str, target: str):
    push_logger = get_logger(__name__, container_id=container_id, target=target)

    def callback(timewindow: Timewindow) -> None:
        push_logger.info(
            "timewindow_pushed",
            start_ms=timewindow.start_ms,
            end_ms=timewindow.end_ms,
        )

    return callback


def _http_host(container_id: str, request: SelectorInitRequest) -> HostBridge:
    return HostBridge(
        update_dashboard_timewindow=(
            _record_push(container_id, "dashboard") if request.dashboard_callback else None
        ),
        update_widget_timewindow=(
            _record_push(container_id, "widget") if request.widget_callback else None
        ),
        use_dashboard_timewindow=request.use_dashboard_timewindow,
    )


def _registry(request: Request) -> SelectorRegistry:
    return request.app.state.registry


def _get_selector(request: Request, container_id: str) -> TimewindowSelector:
    selector = _registry(request).get(container_id)
    if selector is None:
        raise HTTPException(status_code=404, detail=f"Selector not found: {container_id}")
    return selector


def _selector_response(
    container_id: str,
    selector: TimewindowSelector,
    pushed: Optional[Timewindow] = None,
) -> dict:
    return {
        "success": True,
        "data": {
            "container_id": container_id,
            "view": selector.render().model_dump(mode="json"),
            "state": selector.snapshot().model_dump(mode="json"),
            "timewindow": pushed.model_dump(mode="json", by_alias=True) if pushed else None,
            "target": selector.last_target.value if pushed and selector.last_target else None,
        },
    }


@router.post("/range")
async def calendar_range(request: RangeRequest):
    """
    Calendar period (day, week or month) containing the reference date.
    """
    reference = to_local(request.reference_date) if request.reference_date else datetime.now()
    try:
        time_range = calculate_range(request.mode, reference)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))

    return {
        "success": True,
        "data": {
            "range": time_range.model_dump(mode="json"),
            "label": format_period_label(request.mode, reference, WidgetSettings()),
        },
    }


@router.post("/selectors/{container_id}")
async def init_selector(container_id: str, body: SelectorInitRequest, request: Request):
    """
    Initialize (or re-initialize) the selector of a widget container.
    A container that already has a selector keeps it, with its state.
    """
    try:
        settings = resolve_widget_settings(body.settings)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))

    registry = _registry(request)
    existed = container_id in registry
    selector = registry.get_or_create(
        container_id,
        settings,
        host=_http_host(container_id, body),
        context=body.context,
    )

    logger.info(
        "selector_init",
        container_id=container_id,
        reused=existed,
        mode=selector.state.mode.value,
    )

    return _selector_response(container_id, selector)


@router.get("/selectors/{container_id}")
async def get_selector(container_id: str, request: Request):
    """Current view and state of a container's selector."""
    selector = _get_selector(request, container_id)
    return _selector_response(container_id, selector)


@router.delete("/selectors/{container_id}")
async def destroy_selector(container_id: str, request: Request):
    """Drop a container's selector."""
    if not _registry(request).destroy(container_id):
        raise HTTPException(status_code=404, detail=f"Selector not found: {container_id}")
    return {"success": True, "data": {"container_id": container_id, "destroyed": True}}


@router.post("/selectors/{container_id}/mode")
async def select_mode(container_id: str, body: ModeRequest, request: Request):
    """Switch the selector mode and push the resulting timewindow."""
    selector = _get_selector(request, container_id)
    pushed = selector.select_mode(body.mode)
    return _selector_response(container_id, selector, pushed)


@router.post("/selectors/{container_id}/navigate")
async def navigate(container_id: str, body: NavigateRequest, request: Request):
    """Step to the previous or next period (ignored in custom mode)."""
    selector = _get_selector(request, container_id)
    pushed = selector.navigate(body.direction)
    return _selector_response(container_id, selector, pushed)


@router.post("/selectors/{container_id}/custom-range")
async def apply_custom_range(container_id: str, body: CustomRangeRequest, request: Request):
    """Apply a user-picked range; the selector switches to custom mode."""
    selector = _get_selector(request, container_id)
    pushed = selector.apply_custom_range(body.start, body.end)
    return _selector_response(container_id, selector, pushed)
