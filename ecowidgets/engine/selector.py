"""
Timewindow Selector — the day/week/month/custom period state machine.

Each widget container owns one TimewindowSelector. The selector holds the
active mode, a reference date for calendar periods and an optional
user-picked custom range, and turns every change into a Timewindow pushed to
the host through a HostBridge.

Transitions:
    select_mode(m)          mode := m; for calendar modes the reference date
                            resets to now and any custom pick is cleared;
                            apply(); full re-render
    navigate(+1 / -1)       calendar modes only; shift the reference date by
                            one period; apply(); label update
    apply_custom_range(s,e) mode := custom; store the pick; apply(); label
                            update

apply() resolves the active range:
    day/week/month  calendar period around the reference date
    custom          the user pick if present, else the configured custom
                    start/end expressions, else nothing (no push)

SelectorRegistry maps container ids to selectors so a widget that
re-initializes in the same container keeps its selector and state.
"""

from datetime import datetime
from typing import Optional

import structlog

from ecowidgets.engine.formatting import format_period_label
from ecowidgets.engine.timerange import (
    Clock,
    calculate_custom_range,
    calculate_range,
    shift_reference,
    to_local,
)
from ecowidgets.models.context import DataContext, HostBridge
from ecowidgets.models.enums import PushTarget, SelectorMode
from ecowidgets.models.settings import WidgetSettings
from ecowidgets.models.timewindow import SelectorState, SelectorView, TimeRange, Timewindow

CALENDAR_MODES = [SelectorMode.DAY, SelectorMode.WEEK, SelectorMode.MONTH]

DEFAULT_ACCENT_COLOR = "#2196F3"

# twSelectorPosition -> flex alignment of the controls
POSITION_ALIGNMENT = {"left": "flex-start", "center": "center", "right": "flex-end"}


class TimewindowSelector:
    """
    Period selector for one widget container.

    Args:
        settings: Resolved widget settings
        host: Bridge to the host's time-window callbacks
        context: Data context for ${attributeName} expressions
        clock: Source of "now" (default: datetime.now)

    Example:
        >>> selector = TimewindowSelector(WidgetSettings(twDefaultMode="day"), HostBridge())
        >>> _ = selector.select_mode(SelectorMode.WEEK)
        >>> selector.state.mode
        <SelectorMode.WEEK: 'week'>
    """

    def __init__(
        self,
        settings: WidgetSettings,
        host: Optional[HostBridge] = None,
        context: Optional[DataContext] = None,
        clock: Clock = datetime.now,
    ):
        self.settings = settings
        self.host = host or HostBridge()
        self.context = context or DataContext()
        self.clock = clock
        self.state = SelectorState(mode=settings.default_mode, reference_date=clock())
        self.last_timewindow: Optional[Timewindow] = None
        self.last_target: Optional[PushTarget] = None
        self.label = ""
        self.logger = structlog.get_logger()
        self.update_label()

    def configure(
        self,
        settings: WidgetSettings,
        host: Optional[HostBridge] = None,
        context: Optional[DataContext] = None,
    ) -> None:
        """Swap in fresh settings, host bridge and context; the state is kept."""
        self.settings = settings
        if host is not None:
            self.host = host
        if context is not None:
            self.context = context
        self.update_label()

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def select_mode(self, mode: SelectorMode) -> Optional[Timewindow]:
        """
        Switch the selection mode.

        Calendar modes restart from the current date and drop any custom
        pick; switching to custom keeps the reference date.

        Returns:
            The timewindow pushed to the host, or None when nothing was pushed
        """
        mode = SelectorMode(mode)
        self.state.mode = mode
        if mode.is_calendar_period:
            self.state.reference_date = self.clock()
            self.state.clear_custom_range()

        self.logger.info("selector_mode_selected", mode=mode.value)
        timewindow = self.apply()
        self.render()
        return timewindow

    def navigate(self, direction: int) -> Optional[Timewindow]:
        """
        Step to the previous (-1) or next (+1) period.

        Ignored in custom mode.
        """
        if not self.state.mode.is_calendar_period:
            self.logger.debug("selector_navigate_ignored", mode=self.state.mode.value)
            return None

        self.state.reference_date = shift_reference(
            self.state.mode, self.state.reference_date, direction
        )
        return self.apply()

    def apply_custom_range(self, start: datetime, end: datetime) -> Optional[Timewindow]:
        """
        Apply a range picked by the user.

        The selector switches to custom mode; reversed bounds are swapped.
        """
        start, end = to_local(start), to_local(end)
        if start > end:
            start, end = end, start

        self.state.mode = SelectorMode.CUSTOM
        self.state.set_custom_range(start, end)
        self.logger.info(
            "selector_custom_range_applied",
            start=start.isoformat(),
            end=end.isoformat(),
        )
        return self.apply()

    def apply(self) -> Optional[Timewindow]:
        """
        Resolve the active range and push it to the host.

        Returns:
            The pushed timewindow, or None in custom mode when neither a pick
            nor configured custom bounds exist
        """
        if self.state.mode.is_calendar_period:
            time_range = calculate_range(self.state.mode, self.state.reference_date)
        else:
            time_range = self.custom_range()

        if time_range is None:
            self.logger.debug("selector_apply_skipped", reason="no_custom_range")
            self.update_label()
            return None

        timewindow = Timewindow.from_range(
            time_range,
            aggregation_type=self.settings.aggregation_type,
            limit=self.settings.max_data_points,
        )
        self.last_target = self.host.push(timewindow)
        self.last_timewindow = timewindow

        self.logger.info(
            "timewindow_applied",
            mode=self.state.mode.value,
            start_ms=timewindow.start_ms,
            end_ms=timewindow.end_ms,
            target=self.last_target.value if self.last_target else None,
        )
        self.update_label(time_range)
        return timewindow

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    def custom_range(self) -> Optional[TimeRange]:
        """Range shown in custom mode: the user pick, else the configured bounds."""
        if self.state.has_custom_range:
            return TimeRange(start=self.state.custom_start, end=self.state.custom_end)
        if self.settings.has_custom_settings:
            return calculate_custom_range(self.settings, self.context, now=self.clock())
        return None

    def available_modes(self) -> list[SelectorMode]:
        modes = list(CALENDAR_MODES)
        if self.settings.has_custom_settings or self.state.mode == SelectorMode.CUSTOM:
            modes.append(SelectorMode.CUSTOM)
        return modes

    def update_label(self, custom_range: Optional[TimeRange] = None) -> str:
        """Recompute the period label; custom_range overrides the resolved custom range."""
        if self.state.mode == SelectorMode.CUSTOM and custom_range is None:
            custom_range = self.custom_range()
        self.label = format_period_label(
            self.state.mode,
            self.state.reference_date,
            self.settings,
            custom_range,
        )
        return self.label

    def render(self) -> SelectorView:
        """Build the view model of the selector controls."""
        is_custom = self.state.mode == SelectorMode.CUSTOM
        custom_range = self.custom_range() if is_custom else None
        self.label = format_period_label(
            self.state.mode,
            self.state.reference_date,
            self.settings,
            custom_range,
        )
        return SelectorView(
            mode=self.state.mode,
            label=self.label,
            show_navigation=not is_custom,
            available_modes=self.available_modes(),
            custom_range=custom_range,
            visible=self.settings.show_timewindow_selector,
            accent_color=self.accent_color(),
            position=POSITION_ALIGNMENT.get(self.settings.selector_position, "center"),
        )

    def accent_color(self) -> str:
        """Configured selector color, else the first data key's color, else the default."""
        return self.settings.selector_color or self.context.primary_color() or DEFAULT_ACCENT_COLOR

    def snapshot(self) -> SelectorState:
        """Copy of the current state; changing it does not affect the selector."""
        return self.state.model_copy()


class SelectorRegistry:
    """
    Selectors keyed by widget container id.

    Example:
        >>> registry = SelectorRegistry()
        >>> first = registry.get_or_create("w1", WidgetSettings())
        >>> registry.get_or_create("w1", WidgetSettings()) is first
        True
    """

    def __init__(self, clock: Clock = datetime.now):
        self.clock = clock
        self._selectors: dict[str, TimewindowSelector] = {}
        self.logger = structlog.get_logger()

    def get_or_create(
        self,
        container_id: str,
        settings: WidgetSettings,
        host: Optional[HostBridge] = None,
        context: Optional[DataContext] = None,
    ) -> TimewindowSelector:
        """
        Return the container's selector, creating it on first use.

        An existing selector is reconfigured with the given settings, host and
        context and keeps its state.
        """
        selector = self._selectors.get(container_id)
        if selector is not None:
            selector.configure(settings, host, context)
            self.logger.debug("selector_reused", container_id=container_id)
            return selector

        selector = TimewindowSelector(settings, host, context, clock=self.clock)
        self._selectors[container_id] = selector
        self.logger.info(
            "selector_created",
            container_id=container_id,
            mode=selector.state.mode.value,
        )
        return selector

    def get(self, container_id: str) -> Optional[TimewindowSelector]:
        return self._selectors.get(container_id)

    def destroy(self, container_id: str) -> bool:
        """Drop a container's selector. Returns False if there was none."""
        removed = self._selectors.pop(container_id, None)
        if removed is not None:
            self.logger.info("selector_destroyed", container_id=container_id)
        return removed is not None

    def clear(self) -> int:
        """Drop every selector. Returns how many there were."""
        count = len(self._selectors)
        self._selectors.clear()
        return count

    def __contains__(self, container_id: object) -> bool:
        return container_id in self._selectors

    def __len__(self) -> int:
        return len(self._selectors)
