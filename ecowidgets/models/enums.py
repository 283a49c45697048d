"""
Enumeration types for the ECO widgets engine.

This module defines all enum types used across the system for type safety
and consistent validation. All enums inherit from str to ensure JSON
serialization compatibility with the host dashboard's settings bag.
"""

from enum import Enum


class SelectorMode(str, Enum):
    """
    Selection modes of the timewindow selector.

    Day, week and month are calendar periods anchored at a reference date and
    can be navigated backwards and forwards. Custom ranges come from a user
    date-picker selection or from configured start/end expressions.
    """

    DAY = "day"
    WEEK = "week"
    MONTH = "month"
    CUSTOM = "custom"

    @property
    def is_calendar_period(self) -> bool:
        """True for the navigable modes (day, week, month)."""
        return self is not SelectorMode.CUSTOM


class OutlierMethod(str, Enum):
    """
    Outlier removal strategies.

    Exactly one strategy applies per run; IQR fencing is the default.
    """

    IQR = "iqr"
    ZSCORE = "zscore"
    MANUAL = "manual"


class AggregationType(str, Enum):
    """Aggregation directives understood by the host's telemetry query."""

    NONE = "NONE"
    AVG = "AVG"
    MIN = "MIN"
    MAX = "MAX"
    SUM = "SUM"
    COUNT = "COUNT"


class DataType(str, Enum):
    """Physical nature of a load series."""

    POWER = "power"
    ENERGY = "energy"


class PushTarget(str, Enum):
    """Which host callback received a pushed timewindow."""

    DASHBOARD = "dashboard"
    WIDGET = "widget"


class SeriesStatus(str, Enum):
    """
    Outcome of processing a single series.

    Non-ok statuses carry the message a widget shows in place of a chart.
    """

    OK = "ok"
    NO_DATA = "no_data"
    NO_VALID_POINTS = "no_valid_points"
    ALL_OUTLIERS = "all_outliers"

    @property
    def message(self) -> str:
        return {
            SeriesStatus.OK: "",
            SeriesStatus.NO_DATA: "No data available",
            SeriesStatus.NO_VALID_POINTS: "No valid data points",
            SeriesStatus.ALL_OUTLIERS: "All data points removed as outliers",
        }[self]
