"""
Series Processor — per-datasource flow from raw host samples to chart data.

Pipeline (each step optional per WidgetSettings):
    1. Drop null / NaN samples                 -> no_valid_points if none left
    2. Energy to power conversion              (data_type=energy, energy_to_power)
    3. Outlier removal                         -> all_outliers if none left
    4. Centered moving-average smoothing       (minutes-based or sample window)
    5. Statistics with current value and last timestamp
    6. Duration curve and base/peak load thresholds
"""

import math
import re
from typing import Optional, Sequence

import structlog

from ecowidgets.engine.formatting import format_timestamp, format_value
from ecowidgets.engine.processing import (
    duration_curve,
    energy_to_power,
    load_thresholds,
    moving_average,
    remove_outliers,
    window_size_from_minutes,
)
from ecowidgets.engine.statistics import compute_statistics
from ecowidgets.models.enums import DataType, SeriesStatus
from ecowidgets.models.settings import WidgetSettings
from ecowidgets.models.statistics import LoadThresholds, ProcessedSeries, RawSeries, Timestamp

DEFAULT_PALETTE = [
    "#2196F3",
    "#4CAF50",
    "#FF9800",
    "#E91E63",
    "#9C27B0",
    "#00BCD4",
    "#795548",
    "#607D8B",
]

DEFAULT_DECIMALS = 2
POWER_LABEL_SUFFIX = " (Power)"

# Legend keys and the statistics field each one shows
LEGEND_FIELDS = {
    "current": "current",
    "min": "min",
    "max": "max",
    "avg": "mean",
    "median": "median",
    "sum": "sum",
    "count": "count",
}

_ENERGY_UNIT = re.compile("wh", re.IGNORECASE)


def palette_color(index: int) -> str:
    """Default color for the index-th series, cycling through the palette."""
    return DEFAULT_PALETTE[index % len(DEFAULT_PALETTE)]


def _is_valid(value: Optional[float]) -> bool:
    return value is not None and not math.isnan(value)


class SeriesProcessor:
    """
    Runs the processing pipeline configured by one widget's settings.

    Example:
        >>> processor = SeriesProcessor(WidgetSettings(removeOutliers=True))
        >>> result = processor.process(RawSeries(data=[(1, 10.0), (2, None), (3, 12.0)]))
        >>> result.status, result.values
        (<SeriesStatus.OK: 'ok'>, [10.0, 12.0])
    """

    def __init__(self, settings: WidgetSettings):
        self.settings = settings
        self.logger = structlog.get_logger()

    def process(self, raw: RawSeries, color: Optional[str] = None) -> ProcessedSeries:
        """
        Process one series.

        Args:
            raw: Samples and display metadata from the host
            color: Fallback color when the series carries none

        Returns:
            ProcessedSeries; a non-ok status carries no values
        """
        label = raw.display_label
        units = raw.units
        base = {
            "label": label,
            "units": units,
            "decimals": raw.decimals if raw.decimals is not None else DEFAULT_DECIMALS,
            "color": raw.color or color or DEFAULT_PALETTE[0],
        }

        if not raw.data:
            return ProcessedSeries(status=SeriesStatus.NO_DATA, **base)

        timestamps = [ts for ts, value in raw.data if _is_valid(value)]
        values = [float(value) for _, value in raw.data if _is_valid(value)]
        if not values:
            return ProcessedSeries(status=SeriesStatus.NO_VALID_POINTS, **base)

        settings = self.settings
        if settings.energy_to_power and settings.data_type == DataType.ENERGY and len(values) > 1:
            values = energy_to_power(values, timestamps)
            base["units"] = _ENERGY_UNIT.sub("W", units, count=1)
            base["label"] = label + POWER_LABEL_SUFFIX

        outliers_removed = 0
        outlier_method = None
        if settings.remove_outliers:
            outliers = remove_outliers(values, timestamps, settings.outlier_options)
            values, timestamps = outliers.values, outliers.timestamps
            outliers_removed = outliers.removed
            outlier_method = outliers.method
            if not values:
                self.logger.info(
                    "series_all_outliers",
                    series=label,
                    removed=outliers_removed,
                    method=outlier_method.value,
                )
                return ProcessedSeries(
                    status=SeriesStatus.ALL_OUTLIERS,
                    outliers_removed=outliers_removed,
                    outlier_method=outlier_method,
                    **base,
                )

        smoothing_window = None
        if settings.smoothing_enabled:
            smoothing_window = self.smoothing_window(timestamps)
            if smoothing_window > 1:
                values = moving_average(values, smoothing_window)

        stats = compute_statistics(values).with_latest(values[-1], timestamps[-1])

        thresholds = None
        if settings.show_thresholds:
            thresholds = self.thresholds(values)

        return ProcessedSeries(
            status=SeriesStatus.OK,
            timestamps=timestamps,
            values=values,
            stats=stats,
            outliers_removed=outliers_removed,
            outlier_method=outlier_method,
            smoothing_window=smoothing_window,
            duration_curve=duration_curve(values),
            thresholds=thresholds,
            **base,
        )

    def process_all(self, series: Sequence[RawSeries]) -> list[ProcessedSeries]:
        """Process several series, giving uncolored ones palette colors by position."""
        processed = [self.process(raw, color=palette_color(i)) for i, raw in enumerate(series)]
        self.logger.debug(
            "series_processed",
            count=len(processed),
            ok=sum(1 for s in processed if s.status == SeriesStatus.OK),
        )
        return processed

    def smoothing_window(self, timestamps: Sequence[Timestamp]) -> int:
        minutes = self.settings.smoothing_window_minutes
        if minutes is not None and minutes > 0:
            return window_size_from_minutes(timestamps, minutes)
        return self.settings.smoothing_window

    def thresholds(self, values: Sequence[float]) -> LoadThresholds:
        settings = self.settings
        if settings.auto_detect_thresholds:
            return load_thresholds(
                values,
                settings.base_load_percentile,
                settings.peak_load_percentile,
            )
        return LoadThresholds(
            base_load=settings.manual_base_load,
            peak_load=settings.manual_peak_load,
        )

    def legend(self, series: ProcessedSeries) -> dict[str, str]:
        """
        Formatted legend values for a processed series.

        Keys follow settings.legend_values (unknown keys are skipped) plus
        "timestamp" for the last sample, formatted with timestamp_format.
        """
        if series.status != SeriesStatus.OK:
            return {}

        entries: dict[str, str] = {}
        for key in self.settings.legend_values:
            field = LEGEND_FIELDS.get(key)
            if field is None:
                continue
            value = getattr(series.stats, field)
            if field == "count":
                entries[key] = str(value)
            else:
                entries[key] = format_value(value, series.decimals)

        if series.stats.last_timestamp is not None:
            entries["timestamp"] = format_timestamp(
                series.stats.last_timestamp, self.settings.timestamp_format
            )
        return entries
