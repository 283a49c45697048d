"""
Zoom synchronization between chart widgets on the same dashboard.

A widget that zooms broadcasts its zoom window (start/end in percent of the
data range); every other subscribed widget is notified so the charts stay
aligned.
"""

from typing import Callable, Optional

import structlog
from pydantic import BaseModel, Field

ZoomListener = Callable[[float, float], None]


class ZoomWindow(BaseModel):
    start: float = Field(default=0.0, ge=0, le=100)
    end: float = Field(default=100.0, ge=0, le=100)


class ZoomSyncBus:
    """
    Zoom broadcast hub keyed by widget id.

    Example:
        >>> bus = ZoomSyncBus()
        >>> seen = []
        >>> bus.subscribe("b", lambda s, e: seen.append((s, e)))
        >>> bus.broadcast("a", 20, 60)
        >>> seen
        [(20, 60)]
    """

    def __init__(self):
        self._listeners: dict[str, ZoomListener] = {}
        self.zoom = ZoomWindow()
        self.broadcaster_id: Optional[str] = None
        self.logger = structlog.get_logger()

    def subscribe(self, widget_id: str, callback: ZoomListener) -> None:
        """Register a widget's listener, replacing any previous one."""
        self._listeners[widget_id] = callback

    def unsubscribe(self, widget_id: str) -> None:
        self._listeners.pop(widget_id, None)

    def broadcast(self, widget_id: str, start: float, end: float) -> None:
        """
        Record a zoom change and notify every listener except the broadcaster.

        A listener that raises is logged and skipped; the remaining listeners
        are still notified.
        """
        self.zoom = ZoomWindow(start=start, end=end)
        self.broadcaster_id = widget_id

        for listener_id, callback in list(self._listeners.items()):
            if listener_id == widget_id:
                continue
            try:
                callback(start, end)
            except Exception as e:
                self.logger.error(
                    "zoom_listener_failed",
                    listener_id=listener_id,
                    broadcaster_id=widget_id,
                    error=str(e),
                    exc_info=True,
                )

    def get_zoom(self) -> ZoomWindow:
        return self.zoom

    def reset(self) -> None:
        """Zoom back out to the full range."""
        self.zoom = ZoomWindow()
        self.broadcaster_id = None

    def __len__(self) -> int:
        return len(self._listeners)
