"""
Unit tests for the timewindow selector state machine and its registry.

The selector runs on a FixedClock (Wednesday 2024-02-14 15:30) and pushes to a
RecordingHost, so every transition can be checked against exact ranges.
"""

from datetime import datetime

import pytest

from ecowidgets.engine.selector import SelectorRegistry, TimewindowSelector
from ecowidgets.engine.timerange import to_epoch_ms
from ecowidgets.models import AggregationType, DataContext, DataKeyInfo, PushTarget, SelectorMode
from tests.conftest import FixedClock, RecordingHost, make_context, make_widget_settings


def make_selector(host=None, context=None, clock=None, **settings) -> TimewindowSelector:
    return TimewindowSelector(
        make_widget_settings(**settings),
        host if host is not None else RecordingHost(),
        context,
        clock=clock or FixedClock(),
    )


class TestSelectorInit:
    """Test initial state and labels."""

    def test_selector_initial_mode_from_settings(self):
        selector = make_selector(twDefaultMode="week")
        assert selector.state.mode == SelectorMode.WEEK
        assert selector.state.reference_date == datetime(2024, 2, 14, 15, 30)

    def test_selector_initial_label(self):
        selector = make_selector()
        assert selector.label == "14 Feb 2024"

    def test_selector_init_does_not_push(self, host):
        make_selector(host=host)
        assert host.push_count == 0


class TestSelectMode:
    """Test mode switching."""

    def test_selector_select_week_pushes_week_range(self, host):
        selector = make_selector(host=host)
        timewindow = selector.select_mode(SelectorMode.WEEK)

        assert host.dashboard_pushes == [timewindow]
        assert timewindow.start_ms == to_epoch_ms(datetime(2024, 2, 12))
        assert timewindow.end_ms == to_epoch_ms(datetime(2024, 2, 18, 23, 59, 59, 999000))
        assert selector.last_target == PushTarget.DASHBOARD
        assert selector.label == "12-18 Feb"

    def test_selector_push_carries_aggregation(self, host):
        selector = make_selector(host=host, twAggregationType="AVG", twMaxDataPoints=500)
        timewindow = selector.select_mode(SelectorMode.DAY)
        dumped = timewindow.model_dump(by_alias=True, mode="json")
        assert dumped["aggregation"] == {"type": "AVG", "limit": 500}
        assert dumped["history"]["historyType"] == 0
        assert dumped["history"]["fixedTimewindow"]["startTimeMs"] == to_epoch_ms(datetime(2024, 2, 14))
        assert timewindow.aggregation.type == AggregationType.AVG

    def test_selector_push_to_widget_when_not_using_dashboard(self):
        host = RecordingHost(use_dashboard_timewindow=False)
        selector = make_selector(host=host)
        selector.select_mode(SelectorMode.MONTH)
        assert len(host.widget_pushes) == 1
        assert host.dashboard_pushes == []
        assert selector.last_target == PushTarget.WIDGET

    def test_selector_missing_callback_is_silent(self):
        host = RecordingHost(dashboard=False)
        selector = make_selector(host=host)
        timewindow = selector.select_mode(SelectorMode.MONTH)
        assert timewindow is not None
        assert host.push_count == 0
        assert selector.last_target is None
        assert selector.label == "Feb 2024"

    def test_selector_select_calendar_mode_resets_reference(self):
        clock = FixedClock()
        selector = make_selector(clock=clock)
        selector.navigate(-1)
        clock.now = datetime(2024, 5, 1, 9, 0)
        selector.select_mode(SelectorMode.DAY)
        assert selector.state.reference_date == datetime(2024, 5, 1, 9, 0)

    def test_selector_select_custom_keeps_reference(self):
        clock = FixedClock()
        selector = make_selector(clock=clock)
        selector.navigate(-1)
        clock.now = datetime(2024, 5, 1, 9, 0)
        selector.select_mode(SelectorMode.CUSTOM)
        assert selector.state.reference_date == datetime(2024, 2, 13, 15, 30)


class TestNavigate:
    """Test period navigation."""

    def test_selector_navigate_week_back(self, host):
        selector = make_selector(host=host, twDefaultMode="week")
        timewindow = selector.navigate(-1)
        assert timewindow.start_ms == to_epoch_ms(datetime(2024, 2, 5))
        assert selector.label == "5-11 Feb"

    def test_selector_day_week_navigate_leaves_custom_unset(self):
        selector = make_selector()
        selector.select_mode(SelectorMode.WEEK)
        selector.navigate(-1)
        assert selector.state.custom_start is None
        assert selector.state.custom_end is None

    def test_selector_navigate_month_clamps_day(self):
        selector = make_selector(twDefaultMode="month", clock=FixedClock(datetime(2024, 1, 31)))
        selector.navigate(1)
        assert selector.state.reference_date == datetime(2024, 2, 29)
        assert selector.label == "Feb 2024"

    def test_selector_navigate_ignored_in_custom(self, host):
        selector = make_selector(host=host, twDefaultMode="custom")
        assert selector.navigate(1) is None
        assert host.push_count == 0


class TestCustomRange:
    """Test user-picked and configured custom ranges."""

    def test_selector_apply_custom_range(self, host):
        selector = make_selector(host=host)
        start, end = datetime(2024, 3, 1, 8, 0), datetime(2024, 3, 5, 12, 0)

        timewindow = selector.apply_custom_range(start, end)

        assert selector.state.mode == SelectorMode.CUSTOM
        assert selector.state.custom_start == start
        assert selector.state.custom_end == end
        assert timewindow.start_ms == to_epoch_ms(start)
        assert host.push_count == 1
        assert selector.label == "1.3.24 - 5.3.24"

    def test_selector_apply_custom_range_swaps_reversed(self):
        selector = make_selector()
        selector.apply_custom_range(datetime(2024, 3, 5), datetime(2024, 3, 1))
        assert selector.state.custom_start == datetime(2024, 3, 1)
        assert selector.state.custom_end == datetime(2024, 3, 5)

    def test_selector_calendar_mode_clears_custom_pick(self):
        selector = make_selector()
        selector.apply_custom_range(datetime(2024, 3, 1), datetime(2024, 3, 5))
        selector.select_mode(SelectorMode.DAY)
        assert selector.state.custom_start is None
        assert selector.state.custom_end is None

    def test_selector_custom_without_range_does_not_push(self, host):
        selector = make_selector(host=host)
        assert selector.label == "14 Feb 2024"
        selector.state.mode = SelectorMode.CUSTOM

        assert selector.apply() is None
        assert host.push_count == 0
        assert selector.label == "Custom"

    def test_selector_custom_from_configured_attributes(self, host, context):
        selector = make_selector(
            host=host,
            context=context,
            twDefaultMode="custom",
            twCustomStartTime="${periodStart}",
            twCustomEndTime="${periodEnd}",
        )
        timewindow = selector.apply()
        assert timewindow.start_ms == 1709280000000
        assert timewindow.end_ms == 1709625600000
        assert host.push_count == 1

    def test_selector_user_pick_wins_over_configured(self, host):
        selector = make_selector(host=host, twCustomStartTime="2024-01-01 00:00")
        pick_start = datetime(2024, 3, 1)
        timewindow = selector.apply_custom_range(pick_start, datetime(2024, 3, 2))
        assert timewindow.start_ms == to_epoch_ms(pick_start)


class TestRender:
    """Test the view model."""

    def test_selector_render_calendar_mode(self):
        view = make_selector().render()
        assert view.mode == SelectorMode.DAY
        assert view.show_navigation is True
        assert view.available_modes == [SelectorMode.DAY, SelectorMode.WEEK, SelectorMode.MONTH]
        assert view.custom_range is None

    def test_selector_render_offers_custom_when_configured(self):
        view = make_selector(twCustomStartTime="2024-03-01").render()
        assert SelectorMode.CUSTOM in view.available_modes

    def test_selector_render_custom_mode(self):
        selector = make_selector()
        selector.apply_custom_range(datetime(2024, 3, 1), datetime(2024, 3, 5))
        view = selector.render()
        assert view.show_navigation is False
        assert SelectorMode.CUSTOM in view.available_modes
        assert view.custom_range.start == datetime(2024, 3, 1)
        assert view.label == "1.3.24 - 5.3.24"

    def test_selector_render_hidden_by_default(self):
        view = make_selector().render()
        assert view.visible is False
        assert view.accent_color == "#2196F3"
        assert view.position == "center"

    @pytest.mark.parametrize(
        "position, alignment",
        [("left", "flex-start"), ("center", "center"), ("right", "flex-end")],
    )
    def test_selector_render_position(self, position, alignment):
        view = make_selector(showTimewindowSelector=True, twSelectorPosition=position).render()
        assert view.visible is True
        assert view.position == alignment

    def test_selector_render_accent_color_from_settings(self):
        context = DataContext(data_keys=[DataKeyInfo(name="power", color="#FF9800")])
        view = make_selector(context=context, twSelectorColor="#123456").render()
        assert view.accent_color == "#123456"

    def test_selector_render_accent_color_from_first_data_key(self):
        context = DataContext(
            data_keys=[
                DataKeyInfo(name="power", color="#FF9800"),
                DataKeyInfo(name="energy", color="#4CAF50"),
            ]
        )
        view = make_selector(context=context).render()
        assert view.accent_color == "#FF9800"

    def test_selector_snapshot_is_detached(self):
        selector = make_selector()
        snapshot = selector.snapshot()
        snapshot.mode = SelectorMode.MONTH
        assert selector.state.mode == SelectorMode.DAY


class TestSelectorRegistry:
    """Test per-container selector ownership."""

    def test_registry_reinit_returns_same_instance(self):
        registry = SelectorRegistry(clock=FixedClock())
        first = registry.get_or_create("w1", make_widget_settings())
        second = registry.get_or_create("w1", make_widget_settings())
        assert first is second
        assert len(registry) == 1

    def test_registry_reinit_keeps_state_and_refreshes_settings(self):
        registry = SelectorRegistry(clock=FixedClock())
        selector = registry.get_or_create("w1", make_widget_settings())
        selector.select_mode(SelectorMode.WEEK)

        host = RecordingHost()
        registry.get_or_create(
            "w1",
            make_widget_settings(twSelectorWeekFormat="DD-DD MMM YYYY"),
            host=host,
            context=make_context(),
        )

        assert selector.state.mode == SelectorMode.WEEK
        assert selector.host is host
        assert selector.label == "12-18 Feb 2024"

    def test_registry_containers_are_independent(self):
        registry = SelectorRegistry(clock=FixedClock())
        a = registry.get_or_create("a", make_widget_settings())
        b = registry.get_or_create("b", make_widget_settings())
        a.select_mode(SelectorMode.MONTH)
        assert b.state.mode == SelectorMode.DAY

    def test_registry_get_and_destroy(self):
        registry = SelectorRegistry(clock=FixedClock())
        selector = registry.get_or_create("w1", make_widget_settings())
        assert registry.get("w1") is selector
        assert "w1" in registry
        assert registry.destroy("w1") is True
        assert registry.destroy("w1") is False
        assert registry.get("w1") is None
        assert "w1" not in registry

    def test_registry_clear_drops_all(self):
        registry = SelectorRegistry(clock=FixedClock())
        registry.get_or_create("a", make_widget_settings())
        registry.get_or_create("b", make_widget_settings())
        assert registry.clear() == 2
        assert len(registry) == 0

    @pytest.mark.parametrize("mode", ["day", "week", "month", "custom"])
    def test_registry_new_selector_uses_default_mode(self, mode):
        registry = SelectorRegistry(clock=FixedClock())
        selector = registry.get_or_create("w", make_widget_settings(twDefaultMode=mode))
        assert selector.state.mode == SelectorMode(mode)
