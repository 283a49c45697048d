"""
Pydantic v2 data models for the ECO widgets engine.

Model Organization:
    - enums: Enumeration types (selector modes, outlier methods, aggregation)
    - statistics: Statistics results, outlier options and series models
    - timewindow: Time ranges, host timewindow descriptors, selector state
    - settings: Resolved widget configuration
    - context: Host data context and host callback bridge

Usage:
    >>> from ecowidgets.models import resolve_widget_settings, SelectorMode
    >>> settings = resolve_widget_settings({"twDefaultMode": "week"})
    >>> settings.default_mode is SelectorMode.WEEK
    True
"""

# Enumerations
from .enums import (
    AggregationType,
    DataType,
    OutlierMethod,
    PushTarget,
    SelectorMode,
    SeriesStatus,
)

# Statistics and series models
from .statistics import (
    LoadThresholds,
    OutlierOptions,
    OutlierResult,
    ProcessedSeries,
    RawSeries,
    StatisticsResult,
)

# Timewindow models
from .timewindow import SelectorState, SelectorView, TimeRange, Timewindow

# Configuration
from .settings import WidgetSettings, resolve_widget_settings

# Host interfaces
from .context import DataContext, DataKeyInfo, DatasourceInfo, EntityInfo, HostBridge, LatestSeries

__all__ = [
    "AggregationType",
    "DataType",
    "OutlierMethod",
    "PushTarget",
    "SelectorMode",
    "SeriesStatus",
    "LoadThresholds",
    "OutlierOptions",
    "OutlierResult",
    "ProcessedSeries",
    "RawSeries",
    "StatisticsResult",
    "SelectorState",
    "SelectorView",
    "TimeRange",
    "Timewindow",
    "WidgetSettings",
    "resolve_widget_settings",
    "DataContext",
    "DataKeyInfo",
    "DatasourceInfo",
    "EntityInfo",
    "HostBridge",
    "LatestSeries",
]
