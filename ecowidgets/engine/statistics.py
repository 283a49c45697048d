"""
Descriptive statistics for widget series.

Pure functions over numeric sequences: percentile interpolation, summary
statistics and population standard deviation. Every function has a defined
zero-valued result for empty input and never raises on it.

Percentile Algorithm:
    For ascending values v[0..n-1] and percentile p:
        idx    = (p / 100) * (n - 1)
        lower  = floor(idx), upper = ceil(idx)
        weight = idx - lower
        result = v[lower] * (1 - weight) + v[upper] * weight
    This is linear interpolation between the bracketing order statistics,
    identical to numpy's default "linear" percentile method.
"""

import math
from typing import Sequence

import numpy as np

from ecowidgets.models.statistics import StatisticsResult


def percentile(sorted_values: Sequence[float], p: float) -> float:
    """
    Linearly interpolated percentile of pre-sorted values.

    The input must already be sorted ascending; this function does not sort.
    p is clamped into [0, 100].

    Args:
        sorted_values: Values sorted ascending
        p: Percentile in [0, 100]

    Returns:
        Interpolated value; 0.0 for empty input, the sole element for n == 1

    Example:
        >>> percentile([1.0, 2.0, 3.0, 4.0], 50)
        2.5
    """
    n = len(sorted_values)
    if n == 0:
        return 0.0
    if n == 1:
        return float(sorted_values[0])

    p = min(100.0, max(0.0, float(p)))
    index = (p / 100.0) * (n - 1)
    lower = math.floor(index)
    upper = math.ceil(index)
    weight = index - lower

    if upper >= n:
        return float(sorted_values[n - 1])
    return float(sorted_values[lower]) * (1 - weight) + float(sorted_values[upper]) * weight


def std_dev(values: Sequence[float], mean: float) -> float:
    """
    Population standard deviation around a given mean (divides by n).

    Returns:
        0.0 for empty input
    """
    if len(values) == 0:
        return 0.0
    arr = np.asarray(values, dtype=float)
    return float(np.sqrt(np.mean((arr - mean) ** 2)))


def compute_statistics(values: Sequence[float]) -> StatisticsResult:
    """
    Compute mean, median, min, max, sum and count.

    Args:
        values: Numeric values in any order

    Returns:
        StatisticsResult; all fields zero for empty input

    Example:
        >>> stats = compute_statistics([3.0, 1.0, 2.0])
        >>> (stats.min, stats.median, stats.max)
        (1.0, 2.0, 3.0)
    """
    if len(values) == 0:
        return StatisticsResult()

    arr = np.asarray(values, dtype=float)
    sorted_arr = np.sort(arr)
    total = float(arr.sum())
    count = int(arr.size)

    return StatisticsResult(
        mean=total / count,
        median=percentile(sorted_arr, 50),
        min=float(sorted_arr[0]),
        max=float(sorted_arr[-1]),
        sum=total,
        count=count,
    )
