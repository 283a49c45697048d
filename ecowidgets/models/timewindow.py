"""
Timewindow models: resolved ranges, host timewindow descriptors and the
selector state.

Instants are local naive datetimes (the host's calendar); epoch-millisecond
views are derived for the host descriptor.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field, model_validator

from .enums import AggregationType, SelectorMode


def _epoch_ms(value: datetime) -> int:
    return int(round(value.timestamp() * 1000))


class TimeRange(BaseModel):
    """
    A resolved time interval.

    Attributes:
        start: Inclusive start (local time)
        end: Inclusive end (local time); calendar periods end at .999
    """

    model_config = ConfigDict(frozen=True)

    start: datetime
    end: datetime

    @computed_field
    @property
    def start_ms(self) -> int:
        return _epoch_ms(self.start)

    @computed_field
    @property
    def end_ms(self) -> int:
        return _epoch_ms(self.end)


class FixedTimewindow(BaseModel):
    """Fixed history window in the host's wire naming."""

    model_config = ConfigDict(populate_by_name=True)

    start_time_ms: int = Field(alias="startTimeMs")
    end_time_ms: int = Field(alias="endTimeMs")


class HistoryWindow(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    fixed_timewindow: FixedTimewindow = Field(alias="fixedTimewindow")
    # 0 = fixed window in the host's history type enumeration
    history_type: int = Field(default=0, alias="historyType")


class AggregationSpec(BaseModel):
    type: AggregationType = AggregationType.NONE
    limit: int = Field(default=100000, ge=1)


class Timewindow(BaseModel):
    """
    Timewindow descriptor handed to the host dashboard.

    Serializes (by alias) to::

        {"history": {"fixedTimewindow": {"startTimeMs": ..., "endTimeMs": ...},
                     "historyType": 0},
         "aggregation": {"type": "NONE", "limit": 100000}}
    """

    model_config = ConfigDict(populate_by_name=True)

    history: HistoryWindow
    aggregation: AggregationSpec

    @classmethod
    def from_range(
        cls,
        time_range: TimeRange,
        aggregation_type: AggregationType = AggregationType.NONE,
        limit: int = 100000,
    ) -> "Timewindow":
        return cls(
            history=HistoryWindow(
                fixed_timewindow=FixedTimewindow(
                    start_time_ms=time_range.start_ms,
                    end_time_ms=time_range.end_ms,
                )
            ),
            aggregation=AggregationSpec(type=aggregation_type, limit=limit),
        )

    @property
    def start_ms(self) -> int:
        return self.history.fixed_timewindow.start_time_ms

    @property
    def end_ms(self) -> int:
        return self.history.fixed_timewindow.end_time_ms


class SelectorState(BaseModel):
    """
    State owned by one timewindow selector.

    The custom bounds are set together by an explicit date-picker selection
    and cleared together; use set_custom_range / clear_custom_range rather
    than assigning them individually.

    Attributes:
        mode: Current selection mode
        reference_date: Anchor for day/week/month ranges and navigation
        custom_start: User-picked range start, or None
        custom_end: User-picked range end, or None
    """

    mode: SelectorMode = SelectorMode.CUSTOM
    reference_date: datetime = Field(default_factory=datetime.now)
    custom_start: Optional[datetime] = None
    custom_end: Optional[datetime] = None

    @model_validator(mode="after")
    def validate_custom_pair(self) -> "SelectorState":
        """Custom bounds are either both set or both unset."""
        if (self.custom_start is None) != (self.custom_end is None):
            raise ValueError("custom_start and custom_end must be set together")
        return self

    @property
    def has_custom_range(self) -> bool:
        return self.custom_start is not None and self.custom_end is not None

    def set_custom_range(self, start: datetime, end: datetime) -> None:
        self.custom_start = start
        self.custom_end = end

    def clear_custom_range(self) -> None:
        self.custom_start = None
        self.custom_end = None


class SelectorView(BaseModel):
    """
    What the selector shows after a render.

    Attributes:
        mode: Active mode
        label: Period label for the active mode
        show_navigation: Whether previous/next buttons are shown
        available_modes: Mode buttons offered, in display order
        custom_range: Custom range shown in custom mode, if any
        visible: Whether the selector is shown at all
        accent_color: Background color of the controls
        position: Flex alignment of the controls (flex-start, center, flex-end)
    """

    mode: SelectorMode
    label: str
    show_navigation: bool
    available_modes: list[SelectorMode]
    custom_range: Optional[TimeRange] = None
    visible: bool = True
    accent_color: str = "#2196F3"
    position: str = "center"
