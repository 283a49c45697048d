"""
Time Range Calculator — calendar arithmetic for the timewindow selector.

Computes the start/end instants of day, week and month periods anchored at a
reference date, and resolves custom ranges from configured expressions.

Calendar Rules (local calendar, end inclusive to the last millisecond):
    day    00:00:00.000 .. 23:59:59.999 of the reference day
    week   Monday 00:00:00.000 .. Sunday 23:59:59.999 (Monday-start weeks;
           a Sunday reference belongs to the week that began six days
           earlier)
    month  1st 00:00:00.000 .. last day 23:59:59.999 (leap years respected)

Custom Expressions:
    Each of custom start/end is independently one of
        ""                  unset
        "${attributeName}"  numeric attribute from the data context
                            (entity attributes, shared attributes, latest
                            telemetry, in that order)
        "1709251200000"     epoch milliseconds, must be > 0
        "2024-03-01 08:00"  date/time literal, parsed leniently
    Anything that cannot be resolved counts as unset, and so do relative
    keywords such as "now" or "today". An unset start means
    start of today; an unset end means now, not end of day, so a range with
    no configured end always reaches up to the present.
"""

import calendar
import re
from datetime import date, datetime, time, timedelta
from typing import Callable, Optional

import pandas as pd
import structlog

from ecowidgets.models.context import DataContext
from ecowidgets.models.enums import SelectorMode
from ecowidgets.models.settings import WidgetSettings
from ecowidgets.models.timewindow import TimeRange

logger = structlog.get_logger()

Clock = Callable[[], datetime]

END_OF_DAY = time(23, 59, 59, 999000)

_VARIABLE_PATTERN = re.compile(r"^\$\{(.+)\}$")

# Relative keywords pandas would resolve to the current instant
_RELATIVE_KEYWORDS = frozenset({"now", "today"})


def to_local(value: datetime) -> datetime:
    """Express an instant as a naive datetime in the local calendar."""
    if value.tzinfo is not None:
        return value.astimezone().replace(tzinfo=None)
    return value


def from_epoch_ms(ms: float) -> Optional[datetime]:
    """Local naive datetime for an epoch-millisecond value, or None if out of range."""
    try:
        return datetime.fromtimestamp(ms / 1000.0)
    except (OverflowError, OSError, ValueError):
        return None


def to_epoch_ms(value: datetime) -> int:
    return int(round(to_local(value).timestamp() * 1000))


def start_of_day(day: date) -> datetime:
    return datetime.combine(day, time.min)


def end_of_day(day: date) -> datetime:
    return datetime.combine(day, END_OF_DAY)


def calculate_range(mode: SelectorMode, reference_date: datetime) -> TimeRange:
    """
    Compute the calendar period containing a reference date.

    Args:
        mode: day, week or month
        reference_date: Anchor instant (aware values are converted to local)

    Returns:
        TimeRange from the first millisecond to the last millisecond of the
        period

    Raises:
        ValueError: If mode is custom (not a calendar period)

    Example:
        >>> r = calculate_range(SelectorMode.WEEK, datetime(2024, 2, 14, 15, 30))
        >>> r.start, r.end
        (datetime.datetime(2024, 2, 12, 0, 0), datetime.datetime(2024, 2, 18, 23, 59, 59, 999000))
    """
    mode = SelectorMode(mode)
    day = to_local(reference_date).date()

    if mode == SelectorMode.DAY:
        return TimeRange(start=start_of_day(day), end=end_of_day(day))

    if mode == SelectorMode.WEEK:
        monday = day - timedelta(days=day.weekday())
        sunday = monday + timedelta(days=6)
        return TimeRange(start=start_of_day(monday), end=end_of_day(sunday))

    if mode == SelectorMode.MONTH:
        last_day = calendar.monthrange(day.year, day.month)[1]
        return TimeRange(
            start=start_of_day(day.replace(day=1)),
            end=end_of_day(day.replace(day=last_day)),
        )

    raise ValueError("custom mode has no calendar range; use calculate_custom_range")


def add_months(value: datetime, months: int) -> datetime:
    """Shift by whole calendar months, clamping the day to the target month's length."""
    month_index = value.year * 12 + (value.month - 1) + months
    year, month = divmod(month_index, 12)
    month += 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def shift_reference(mode: SelectorMode, reference_date: datetime, direction: int) -> datetime:
    """
    Move a reference date by one period of the given mode.

    Args:
        mode: day (1 day), week (7 days) or month (1 calendar month)
        reference_date: Current anchor
        direction: Negative for backwards, positive for forwards

    Returns:
        The shifted anchor; unchanged for custom mode or a zero direction
    """
    step = (direction > 0) - (direction < 0)
    if step == 0:
        return reference_date

    if mode == SelectorMode.DAY:
        return reference_date + timedelta(days=step)
    if mode == SelectorMode.WEEK:
        return reference_date + timedelta(days=7 * step)
    if mode == SelectorMode.MONTH:
        return add_months(reference_date, step)
    return reference_date


def _parse_number(text: str) -> Optional[float]:
    try:
        return float(text)
    except ValueError:
        return None


def _parse_datetime(text: str) -> Optional[datetime]:
    if text.strip().lower() in _RELATIVE_KEYWORDS:
        return None
    try:
        parsed = pd.to_datetime(text, errors="coerce")
    except (ValueError, TypeError, OverflowError):
        return None
    if parsed is None or pd.isna(parsed):
        return None
    return to_local(parsed.to_pydatetime())


def resolve_time_value(expression: str, context: Optional[DataContext] = None) -> Optional[datetime]:
    """
    Resolve one custom start/end expression to an instant.

    Args:
        expression: Configured expression (see module docstring)
        context: Data context for ${attributeName} references

    Returns:
        Local naive datetime, or None when unset or unresolvable
    """
    if not expression:
        return None

    match = _VARIABLE_PATTERN.match(expression)
    if match:
        if context is None:
            return None
        value = context.resolve_attribute(match.group(1))
        return from_epoch_ms(value) if value is not None else None

    number = _parse_number(expression)
    if number is not None and number > 0:
        return from_epoch_ms(number)

    return _parse_datetime(expression)


def calculate_custom_range(
    settings: WidgetSettings,
    context: Optional[DataContext] = None,
    now: Optional[datetime] = None,
) -> TimeRange:
    """
    Resolve the configured custom range.

    Args:
        settings: Widget settings carrying custom_start_time/custom_end_time
        context: Data context for attribute references
        now: Current instant (default: datetime.now())

    Returns:
        TimeRange; an unresolved start defaults to today's local midnight, an
        unresolved end to now

    Example:
        >>> s = WidgetSettings(custom_start_time="2024-03-01 08:00")
        >>> calculate_custom_range(s, now=datetime(2024, 3, 5, 12, 0)).end
        datetime.datetime(2024, 3, 5, 12, 0)
    """
    current = to_local(now) if now is not None else datetime.now()

    start = resolve_time_value(settings.custom_start_time, context)
    end = resolve_time_value(settings.custom_end_time, context)

    if start is None:
        if settings.custom_start_time:
            logger.info("custom_start_unresolved", expression=settings.custom_start_time)
        start = start_of_day(current.date())
    if end is None:
        if settings.custom_end_time:
            logger.info("custom_end_unresolved", expression=settings.custom_end_time)
        end = current

    return TimeRange(start=start, end=end)
