"""
Host-facing interfaces: the data context used for attribute resolution and
the bridge through which resolved timewindows reach the host dashboard.

Every optional piece of the host context is modelled as an Optional field,
and lookups perform explicit presence checks, returning None when a value is
not available instead of raising.
"""

import math
from typing import Any, Callable, Optional

import structlog
from pydantic import BaseModel, Field

from .enums import PushTarget
from .timewindow import Timewindow

logger = structlog.get_logger()

TimewindowCallback = Callable[[Timewindow], Any]


def _as_number(value: Any) -> Optional[float]:
    """Convert an attribute value to a finite float, or None."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(number):
        return None
    return number


class EntityInfo(BaseModel):
    """Entity behind a datasource with its attribute scopes."""

    name: Optional[str] = None
    attributes: Optional[dict[str, Any]] = None
    shared_attributes: Optional[dict[str, Any]] = None


class DatasourceInfo(BaseModel):
    name: Optional[str] = None
    entity: Optional[EntityInfo] = None


class DataKeyInfo(BaseModel):
    """A data key plotted by the widget."""

    name: str
    label: Optional[str] = None
    color: Optional[str] = None


class LatestSeries(BaseModel):
    """Latest telemetry for one key: (timestamp ms, value) samples."""

    key_name: str
    data: list[tuple[int, Any]] = Field(default_factory=list)


class DataContext(BaseModel):
    """
    Data available to a widget for resolving ${attributeName} references.

    Attributes:
        datasources: Widget datasources; the first one is the resolution scope
        latest_data: Latest telemetry series keyed by key name
        data_keys: Plotted data keys in display order
    """

    datasources: list[DatasourceInfo] = Field(default_factory=list)
    latest_data: list[LatestSeries] = Field(default_factory=list)
    data_keys: list[DataKeyInfo] = Field(default_factory=list)

    def primary_color(self) -> Optional[str]:
        """Color of the first data key, if the host assigned one."""
        if self.data_keys and self.data_keys[0].color:
            return self.data_keys[0].color
        return None

    def resolve_attribute(self, name: str) -> Optional[float]:
        """
        Resolve a numeric attribute by name.

        Lookup order: entity attributes, entity shared attributes, then the
        last sample of the latest-telemetry series with that key name.

        Args:
            name: Attribute or telemetry key name

        Returns:
            Numeric value, or None when no scope provides a usable number
        """
        entity = self.datasources[0].entity if self.datasources else None
        if entity is not None:
            if entity.attributes is not None and name in entity.attributes:
                return _as_number(entity.attributes[name])
            if entity.shared_attributes is not None and name in entity.shared_attributes:
                return _as_number(entity.shared_attributes[name])

        for series in self.latest_data:
            if series.key_name == name and series.data:
                return _as_number(series.data[-1][1])

        logger.debug("attribute_not_resolved", attribute=name)
        return None


class HostBridge:
    """
    Callbacks through which a selector updates the host's time window.

    Exactly one callback receives each pushed timewindow: the dashboard-wide
    callback when use_dashboard_timewindow is true, the widget-local one
    otherwise. A missing callback makes the push a no-op.

    Attributes:
        update_dashboard_timewindow: Shared dashboard time-window update
        update_widget_timewindow: Per-widget time-window update
        use_dashboard_timewindow: Host configuration flag selecting the target
    """

    def __init__(
        self,
        update_dashboard_timewindow: Optional[TimewindowCallback] = None,
        update_widget_timewindow: Optional[TimewindowCallback] = None,
        use_dashboard_timewindow: bool = True,
    ):
        self.update_dashboard_timewindow = update_dashboard_timewindow
        self.update_widget_timewindow = update_widget_timewindow
        self.use_dashboard_timewindow = use_dashboard_timewindow

    @property
    def target(self) -> PushTarget:
        return PushTarget.DASHBOARD if self.use_dashboard_timewindow else PushTarget.WIDGET

    def push(self, timewindow: Timewindow) -> Optional[PushTarget]:
        """
        Hand a timewindow to the configured host callback.

        Returns:
            The target that received it, or None when the host offers no
            callback for that target
        """
        target = self.target
        callback = (
            self.update_dashboard_timewindow
            if target is PushTarget.DASHBOARD
            else self.update_widget_timewindow
        )
        if callback is None:
            logger.debug("host_callback_unavailable", target=target.value)
            return None
        callback(timewindow)
        return target
