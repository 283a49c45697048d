"""
Date, timestamp, value and period-label formatting.

Patterns are rendered by a small token formatter: an ordered list of
(token, resolver) pairs. Formatting scans the pattern left to right and, at
each position, tries the tokens longest first; a match emits the resolver's
output and skips past the token, anything else is copied literally. "MMM"
therefore always wins over "MM" and "M", and "DD-DD" over "D-D" and "DD",
regardless of the order the pairs are declared in.

Resolvers receive the range being formatted as (start, end). Single-date
tokens read start; range tokens such as "D-D" read both.
"""

from datetime import datetime
from typing import Callable, Iterable, Optional

from ecowidgets.engine.timerange import calculate_range, from_epoch_ms
from ecowidgets.models.enums import SelectorMode
from ecowidgets.models.settings import WidgetSettings
from ecowidgets.models.timewindow import TimeRange

Resolver = Callable[[datetime, datetime], str]

MONTH_ABBREVIATIONS = (
    "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
)

CUSTOM_LABEL_FORMAT = "D.M.YY"
CUSTOM_LABEL_FALLBACK = "Custom"
WEEK_FALLBACK_FORMAT = "D MMM"


class DateFormatter:
    """
    Pattern formatter built from (token, resolver) pairs.

    Example:
        >>> fmt = DateFormatter([("YYYY", lambda s, e: str(s.year))])
        >>> fmt.format("Year YYYY", datetime(2024, 5, 1))
        'Year 2024'
    """

    def __init__(self, tokens: Iterable[tuple[str, Resolver]]):
        self.tokens = sorted(tokens, key=lambda pair: len(pair[0]), reverse=True)

    def extend(self, tokens: Iterable[tuple[str, Resolver]]) -> "DateFormatter":
        return DateFormatter(list(self.tokens) + list(tokens))

    def has_token(self, pattern: str, token: str) -> bool:
        """Whether the pattern contains token at a position where it would be matched."""
        i = 0
        while i < len(pattern):
            matched = self._match(pattern, i)
            if matched is None:
                i += 1
                continue
            if matched[0] == token:
                return True
            i += len(matched[0])
        return False

    def format(self, pattern: str, start: datetime, end: Optional[datetime] = None) -> str:
        end = end if end is not None else start
        out: list[str] = []
        i = 0
        while i < len(pattern):
            matched = self._match(pattern, i)
            if matched is None:
                out.append(pattern[i])
                i += 1
                continue
            token, resolver = matched
            out.append(resolver(start, end))
            i += len(token)
        return "".join(out)

    def _match(self, pattern: str, position: int) -> Optional[tuple[str, Resolver]]:
        for token, resolver in self.tokens:
            if pattern.startswith(token, position):
                return token, resolver
        return None


DATE_FORMATTER = DateFormatter(
    [
        ("YYYY", lambda s, e: str(s.year)),
        ("YY", lambda s, e: str(s.year)[-2:]),
        ("MMM", lambda s, e: MONTH_ABBREVIATIONS[s.month - 1]),
        ("MM", lambda s, e: f"{s.month:02d}"),
        ("M", lambda s, e: str(s.month)),
        ("DD", lambda s, e: f"{s.day:02d}"),
        ("D", lambda s, e: str(s.day)),
    ]
)

WEEK_FORMATTER = DATE_FORMATTER.extend(
    [
        ("DD-DD", lambda s, e: f"{s.day:02d}-{e.day:02d}"),
        ("D-D", lambda s, e: f"{s.day}-{e.day}"),
    ]
)

TIMESTAMP_FORMATTER = DateFormatter(
    [
        ("YYYY", lambda s, e: str(s.year)),
        ("MM", lambda s, e: f"{s.month:02d}"),
        ("DD", lambda s, e: f"{s.day:02d}"),
        ("HH", lambda s, e: f"{s.hour:02d}"),
        ("mm", lambda s, e: f"{s.minute:02d}"),
        ("ss", lambda s, e: f"{s.second:02d}"),
    ]
)

DEFAULT_DATE_FORMAT = "D MMM YYYY"
DEFAULT_TIMESTAMP_FORMAT = "YYYY-MM-DD HH:mm:ss"


def format_date(value: datetime, pattern: Optional[str] = None) -> str:
    """Format a date with YYYY, YY, MMM, MM, M, DD and D tokens."""
    return DATE_FORMATTER.format(pattern or DEFAULT_DATE_FORMAT, value)


def format_timestamp(ts_ms: float, pattern: Optional[str] = None) -> str:
    """Format an epoch-millisecond timestamp (YYYY, MM, DD, HH, mm, ss)."""
    value = from_epoch_ms(ts_ms)
    if value is None:
        return "-"
    return TIMESTAMP_FORMATTER.format(pattern or DEFAULT_TIMESTAMP_FORMAT, value)


def format_value(value: Optional[float], decimals: Optional[int] = None) -> str:
    """
    Format a numeric value for display.

    Without explicit decimals the precision follows magnitude: 0 decimals
    from 1000, 1 from 100, otherwise 2.
    """
    if value is None:
        return "-"
    if decimals is None:
        magnitude = abs(value)
        if magnitude >= 1000:
            decimals = 0
        elif magnitude >= 100:
            decimals = 1
        else:
            decimals = 2
    return f"{value:.{decimals}f}"


def format_week_label(reference_date: datetime, pattern: str) -> str:
    week = calculate_range(SelectorMode.WEEK, reference_date)
    if WEEK_FORMATTER.has_token(pattern, "DD-DD") or WEEK_FORMATTER.has_token(pattern, "D-D"):
        return WEEK_FORMATTER.format(pattern, week.start, week.end)
    return (
        f"{format_date(week.start, WEEK_FALLBACK_FORMAT)} - "
        f"{format_date(week.end, WEEK_FALLBACK_FORMAT)}"
    )


def format_custom_label(custom_range: Optional[TimeRange]) -> str:
    if custom_range is None:
        return CUSTOM_LABEL_FALLBACK
    return (
        f"{format_date(custom_range.start, CUSTOM_LABEL_FORMAT)} - "
        f"{format_date(custom_range.end, CUSTOM_LABEL_FORMAT)}"
    )


def format_period_label(
    mode: SelectorMode,
    reference_date: datetime,
    settings: WidgetSettings,
    custom_range: Optional[TimeRange] = None,
) -> str:
    """
    Label shown next to the selector for the active period.

    Args:
        mode: Active selector mode
        reference_date: Anchor of day/week/month periods
        settings: Widget settings carrying the label formats
        custom_range: Range displayed in custom mode, None if there is none

    Returns:
        Label text, e.g. "14 Feb 2024", "12-18 Feb", "Feb 2024",
        "1.3.24 - 5.3.24" or "Custom"
    """
    mode = SelectorMode(mode)
    if mode == SelectorMode.DAY:
        return format_date(reference_date, settings.day_format)
    if mode == SelectorMode.WEEK:
        return format_week_label(reference_date, settings.week_format)
    if mode == SelectorMode.MONTH:
        return format_date(reference_date, settings.month_format)
    return format_custom_label(custom_range)
