"""
Property-based tests using Hypothesis for the ECO widgets engine.

These tests verify invariants and bounds of the statistics, processing,
time-range and selector components over generated inputs.
"""

import calendar
from datetime import datetime, timedelta

import hypothesis.strategies as st
from hypothesis import given, settings

from ecowidgets.engine.processing import duration_curve, moving_average, remove_outliers
from ecowidgets.engine.selector import TimewindowSelector
from ecowidgets.engine.statistics import compute_statistics, percentile
from ecowidgets.engine.timerange import calculate_range, shift_reference
from ecowidgets.models import OutlierMethod, OutlierOptions, SelectorMode
from tests.conftest import FixedClock, RecordingHost, make_widget_settings

finite_values = st.lists(
    st.floats(min_value=-1e6, max_value=1e6, allow_nan=False, allow_infinity=False),
    min_size=1,
    max_size=60,
)

reference_dates = st.datetimes(
    min_value=datetime(1980, 1, 1), max_value=datetime(2100, 12, 31)
).map(lambda d: d.replace(microsecond=0))

TOLERANCE = 1e-6


# =============================================================================
# Statistics Property Tests
# =============================================================================


@given(values=finite_values)
@settings(max_examples=100)
def test_prop_percentile_extremes(values: list[float]):
    """percentile(sorted, 0) is the minimum and percentile(sorted, 100) the maximum."""
    ordered = sorted(values)
    assert percentile(ordered, 0) == ordered[0]
    assert percentile(ordered, 100) == ordered[-1]


@given(
    values=finite_values,
    p=st.floats(min_value=0.0, max_value=100.0, allow_nan=False),
)
@settings(max_examples=100)
def test_prop_percentile_within_range(values: list[float], p: float):
    ordered = sorted(values)
    result = percentile(ordered, p)
    assert ordered[0] - TOLERANCE <= result <= ordered[-1] + TOLERANCE


@given(values=finite_values)
@settings(max_examples=100)
def test_prop_statistics_median_between_min_and_max(values: list[float]):
    stats = compute_statistics(values)
    assert stats.min <= stats.median <= stats.max
    assert stats.count == len(values)


# =============================================================================
# Processing Property Tests
# =============================================================================


@given(
    values=finite_values,
    method=st.sampled_from(list(OutlierMethod)),
)
@settings(max_examples=100)
def test_prop_outlier_removal_preserves_pairs(values: list[float], method: OutlierMethod):
    """Every kept value keeps its own timestamp, in input order."""
    timestamps = list(range(len(values)))
    options = OutlierOptions(method=method, min_value=-1000.0, max_value=1000.0)

    result = remove_outliers(values, timestamps, options)

    assert len(result.values) == len(result.timestamps)
    assert result.removed == len(values) - len(result.values)
    assert result.timestamps == sorted(result.timestamps)
    for value, ts in zip(result.values, result.timestamps):
        assert values[ts] == value


@given(
    values=finite_values,
    window=st.integers(min_value=1, max_value=30),
)
@settings(max_examples=100)
def test_prop_moving_average_length_and_bounds(values: list[float], window: int):
    smoothed = moving_average(values, window)
    assert len(smoothed) == len(values)
    low, high = min(values), max(values)
    slack = TOLERANCE * max(1.0, abs(low), abs(high))
    assert all(low - slack <= v <= high + slack for v in smoothed)


@given(values=finite_values)
@settings(max_examples=50)
def test_prop_duration_curve_monotone(values: list[float]):
    curve = duration_curve(values)
    pcts = [pct for pct, _ in curve]
    levels = [value for _, value in curve]
    assert pcts == sorted(pcts)
    assert levels == sorted(levels, reverse=True)
    assert pcts[0] == 0.0
    assert pcts[-1] == (100.0 if len(values) > 1 else 0.0)


# =============================================================================
# Time Range Property Tests
# =============================================================================


@given(reference=reference_dates)
@settings(max_examples=100)
def test_prop_week_range_is_monday_to_sunday(reference: datetime):
    r = calculate_range(SelectorMode.WEEK, reference)
    assert r.start.weekday() == 0
    assert r.start.time() == datetime.min.time()
    assert r.end.weekday() == 6
    assert r.end - r.start == timedelta(days=7) - timedelta(milliseconds=1)
    assert r.start <= reference <= r.end


@given(reference=reference_dates)
@settings(max_examples=100)
def test_prop_month_range_covers_whole_month(reference: datetime):
    r = calculate_range(SelectorMode.MONTH, reference)
    assert r.start.day == 1
    assert r.end.day == calendar.monthrange(reference.year, reference.month)[1]
    assert r.start <= reference <= r.end


@given(reference=reference_dates)
@settings(max_examples=100)
def test_prop_day_navigation_round_trips(reference: datetime):
    forward = shift_reference(SelectorMode.DAY, reference, 1)
    assert shift_reference(SelectorMode.DAY, forward, -1) == reference


@given(reference=reference_dates, direction=st.sampled_from([-1, 1]))
@settings(max_examples=100)
def test_prop_month_navigation_moves_one_month(reference: datetime, direction: int):
    shifted = shift_reference(SelectorMode.MONTH, reference, direction)
    months = (shifted.year * 12 + shifted.month) - (reference.year * 12 + reference.month)
    assert months == direction
    assert shifted.day <= reference.day


# =============================================================================
# Selector Property Tests
# =============================================================================

selector_actions = st.lists(
    st.one_of(
        st.tuples(st.just("mode"), st.sampled_from(list(SelectorMode))),
        st.tuples(st.just("navigate"), st.sampled_from([-1, 1])),
        st.tuples(st.just("custom"), st.integers(min_value=-30, max_value=30)),
    ),
    max_size=25,
)


@given(actions=selector_actions)
@settings(max_examples=75)
def test_prop_selector_custom_bounds_set_together(actions):
    """Custom bounds are set together, only in custom mode, and each push reaches the host once."""
    host = RecordingHost()
    selector = TimewindowSelector(make_widget_settings(), host, clock=FixedClock())
    pushed = 0

    for action, arg in actions:
        if action == "mode":
            result = selector.select_mode(arg)
        elif action == "navigate":
            result = selector.navigate(arg)
        else:
            start = datetime(2024, 3, 1)
            result = selector.apply_custom_range(start, start + timedelta(days=arg))
        pushed += result is not None

        state = selector.state
        assert (state.custom_start is None) == (state.custom_end is None)
        if state.has_custom_range:
            assert state.mode == SelectorMode.CUSTOM
            assert state.custom_start <= state.custom_end

    assert host.push_count == pushed
