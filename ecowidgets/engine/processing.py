"""
Data Processing Pipeline for widget series.

Cleans and shapes raw (timestamp, value) samples before statistics and
rendering:

    1. Outlier removal (one strategy per run)
         iqr     Tukey fences Q1 - k*IQR .. Q3 + k*IQR (default k = 1.5)
         zscore  |v - mean| / std <= threshold (default 3.0)
         manual  min_value <= v <= max_value
    2. Smoothing with a centered moving average whose window is given in
       samples or derived from a duration in minutes.

Index alignment is the invariant of this module: whenever a value is
dropped, the timestamp at the same index is dropped with it, and the kept
samples stay in input order.

Degenerate inputs are redirected to defined fallbacks instead of failing:
    - zero standard deviation (constant series) short-circuits z-score
      removal and returns the input unchanged;
    - zero IQR falls back to a symmetric band around the median of
      half-width max(|median| * 0.5, 1).

The load-series helpers (energy-to-power conversion, duration curve, base
and peak load thresholds) serve load-duration widgets.
"""

import math
from typing import Optional, Sequence

import pandas as pd
import structlog

from ecowidgets.engine.statistics import compute_statistics, percentile, std_dev
from ecowidgets.models.enums import OutlierMethod
from ecowidgets.models.statistics import LoadThresholds, OutlierOptions, OutlierResult, Timestamp

logger = structlog.get_logger()

MS_PER_MINUTE = 60 * 1000
MS_PER_HOUR = 60 * MS_PER_MINUTE

# Minimum half-width of the fallback band used when IQR is zero
IQR_FALLBACK_MIN_HALF_WIDTH = 1.0
IQR_FALLBACK_MEDIAN_FRACTION = 0.5


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _filter_within(
    values: Sequence[float],
    timestamps: Sequence[Timestamp],
    lower: float,
    upper: float,
) -> tuple[list[float], list[Timestamp], int]:
    kept_values: list[float] = []
    kept_timestamps: list[Timestamp] = []
    removed = 0
    for value, ts in zip(values, timestamps):
        if lower <= value <= upper:
            kept_values.append(value)
            kept_timestamps.append(ts)
        else:
            removed += 1
    return kept_values, kept_timestamps, removed


def iqr_fences(values: Sequence[float], multiplier: float = 1.5) -> tuple[float, float]:
    """
    Compute IQR outlier fences.

    Args:
        values: Values in any order
        multiplier: Fence distance in interquartile ranges

    Returns:
        (lower_fence, upper_fence); for zero IQR, a symmetric band around the
        median of half-width max(|median| * 0.5, 1)
    """
    sorted_values = sorted(values)
    q1 = percentile(sorted_values, 25)
    q3 = percentile(sorted_values, 75)
    iqr = q3 - q1

    if iqr == 0:
        median = percentile(sorted_values, 50)
        half_width = max(abs(median) * IQR_FALLBACK_MEDIAN_FRACTION, IQR_FALLBACK_MIN_HALF_WIDTH)
        return median - half_width, median + half_width

    return q1 - multiplier * iqr, q3 + multiplier * iqr


def remove_outliers(
    values: Sequence[float],
    timestamps: Sequence[Timestamp],
    options: Optional[OutlierOptions] = None,
) -> OutlierResult:
    """
    Remove outliers from an index-aligned value/timestamp series.

    Args:
        values: Sample values
        timestamps: Sample timestamps, same length as values
        options: Strategy and parameters (default: IQR with k = 1.5)

    Returns:
        OutlierResult with the kept subsequence (input order preserved), the
        number of removed samples and the fences applied

    Raises:
        ValueError: If values and timestamps differ in length

    Example:
        >>> opts = OutlierOptions(method="manual", min_value=0, max_value=100)
        >>> remove_outliers([-5, 10, 50, 200], [1, 2, 3, 4], opts).values
        [10.0, 50.0]
    """
    if len(values) != len(timestamps):
        raise ValueError(
            f"values ({len(values)}) and timestamps ({len(timestamps)}) must be index-aligned"
        )

    options = options or OutlierOptions()
    method = options.method

    if method == OutlierMethod.MANUAL:
        lower, upper = options.lower_bound, options.upper_bound

    elif method == OutlierMethod.ZSCORE:
        mean = compute_statistics(values).mean
        sigma = std_dev(values, mean)
        if sigma == 0:
            logger.debug("zscore_skipped_zero_variance", count=len(values))
            return OutlierResult(
                values=list(values),
                timestamps=list(timestamps),
                removed=0,
                method=method,
            )
        kept_values: list[float] = []
        kept_timestamps: list[Timestamp] = []
        removed = 0
        for value, ts in zip(values, timestamps):
            if abs((value - mean) / sigma) <= options.zscore_threshold:
                kept_values.append(value)
                kept_timestamps.append(ts)
            else:
                removed += 1
        return OutlierResult(
            values=kept_values,
            timestamps=kept_timestamps,
            removed=removed,
            method=method,
            lower_fence=mean - options.zscore_threshold * sigma,
            upper_fence=mean + options.zscore_threshold * sigma,
        )

    else:
        lower, upper = iqr_fences(values, options.iqr_multiplier)

    kept_values, kept_timestamps, removed = _filter_within(values, timestamps, lower, upper)

    if removed:
        logger.debug(
            "outliers_removed",
            method=method.value,
            removed=removed,
            kept=len(kept_values),
        )

    return OutlierResult(
        values=kept_values,
        timestamps=kept_timestamps,
        removed=removed,
        method=method,
        lower_fence=lower if math.isfinite(lower) else None,
        upper_fence=upper if math.isfinite(upper) else None,
    )


def moving_average(values: Sequence[float], window_size: int) -> list[float]:
    """
    Centered moving average that keeps the series length.

    For index i the window is [max(0, i - half), min(n, i + half + 1)) with
    half = window_size // 2; edge windows shrink instead of padding.

    Args:
        values: Values to smooth
        window_size: Window size in samples; <= 1 leaves values unchanged

    Returns:
        Smoothed values, same length as the input

    Example:
        >>> moving_average([1, 2, 3, 4, 5], 3)
        [1.5, 2.0, 3.0, 4.0, 4.5]
    """
    half = max(0, int(window_size) // 2)
    # odd window of 2*half+1 centred on i; min_periods=1 shrinks it at the edges
    rolling = pd.Series(values, dtype=float).rolling(window=2 * half + 1, center=True, min_periods=1)
    return rolling.mean().tolist()


def window_size_from_minutes(timestamps: Sequence[Timestamp], minutes: float) -> int:
    """
    Convert a smoothing duration into a window size in samples.

    Uses the average sampling interval over the whole series,
    (last - first) / (n - 1).

    Args:
        timestamps: Sample timestamps (epoch ms)
        minutes: Smoothing duration in minutes

    Returns:
        Window size >= 1; 1 when fewer than two timestamps are given or the
        series spans no time
    """
    if len(timestamps) < 2:
        return 1

    total_ms = timestamps[-1] - timestamps[0]
    avg_interval_ms = total_ms / (len(timestamps) - 1)
    if avg_interval_ms <= 0:
        logger.debug("smoothing_window_degenerate_interval", span_ms=total_ms)
        return 1

    window_ms = minutes * MS_PER_MINUTE
    return max(1, _round_half_up(window_ms / avg_interval_ms))


def energy_to_power(energy_values: Sequence[float], timestamps: Sequence[Timestamp]) -> list[float]:
    """
    Convert a cumulative energy series (e.g. kWh) into power (e.g. kW).

    Power at i is (E[i] - E[i-1]) / hours between samples. A non-positive
    time step repeats the previous power. The first point, which has no
    predecessor, copies the second.

    Raises:
        ValueError: If energy_values and timestamps differ in length
    """
    if len(energy_values) != len(timestamps):
        raise ValueError("energy_values and timestamps must be index-aligned")

    power: list[float] = []
    for i, energy in enumerate(energy_values):
        if i == 0:
            power.append(0.0)
            continue
        delta_hours = (timestamps[i] - timestamps[i - 1]) / MS_PER_HOUR
        if delta_hours > 0:
            power.append((energy - energy_values[i - 1]) / delta_hours)
        else:
            power.append(power[i - 1])

    if len(power) > 1:
        power[0] = power[1]
    return power


def duration_curve(values: Sequence[float]) -> list[tuple[float, float]]:
    """
    Build a load duration curve.

    Returns:
        (exceedance percentage, value) pairs with values sorted descending;
        the percentage is j / (n - 1) * 100 rounded to one decimal, 0 for a
        single sample
    """
    ordered = sorted((float(v) for v in values), reverse=True)
    n = len(ordered)
    curve = []
    for j, value in enumerate(ordered):
        pct = (j / (n - 1)) * 100 if n > 1 else 0.0
        curve.append((_round_half_up(pct * 10) / 10, value))
    return curve


def load_thresholds(
    values: Sequence[float],
    base_percentile: float = 10.0,
    peak_percentile: float = 90.0,
) -> LoadThresholds:
    """
    Base and peak load as percentiles of the series.

    Base load is a low percentile (steady minimum demand), peak load a high
    one.
    """
    ordered = sorted(values)
    return LoadThresholds(
        base_load=percentile(ordered, base_percentile),
        peak_load=percentile(ordered, peak_percentile),
    )
