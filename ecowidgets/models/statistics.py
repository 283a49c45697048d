"""
Statistics and series models for the data-processing pipeline.

Results are immutable: a StatisticsResult is rebuilt from the current value
set on every data update, and caller-attached fields (current value, last
timestamp) are added through a copy rather than by mutation.
"""

import math
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .enums import OutlierMethod, SeriesStatus

# Epoch milliseconds; hosts may send fractional instants
Timestamp = Union[int, float]


class StatisticsResult(BaseModel):
    """
    Descriptive statistics for one series.

    Attributes:
        mean: Arithmetic mean
        median: 50th percentile (linear interpolation)
        min: Smallest value
        max: Largest value
        sum: Sum of all values
        count: Number of values
        current: Latest value, attached by the caller after processing
        last_timestamp: Timestamp (epoch ms) of the latest value
    """

    model_config = ConfigDict(frozen=True)

    mean: float = 0.0
    median: float = 0.0
    min: float = 0.0
    max: float = 0.0
    sum: float = 0.0
    count: int = Field(default=0, ge=0)
    current: Optional[float] = None
    last_timestamp: Optional[Timestamp] = None

    def with_latest(self, current: Optional[float], last_timestamp: Optional[Timestamp]) -> "StatisticsResult":
        """Return a copy carrying the latest value and its timestamp."""
        return self.model_copy(update={"current": current, "last_timestamp": last_timestamp})


class OutlierOptions(BaseModel):
    """
    Parameters for outlier removal.

    Attributes:
        method: Removal strategy (iqr, zscore, manual)
        iqr_multiplier: Fence distance in interquartile ranges (iqr)
        zscore_threshold: Maximum absolute z-score kept (zscore)
        min_value: Lower bound, unset means -inf (manual)
        max_value: Upper bound, unset means +inf (manual)
    """

    model_config = ConfigDict(frozen=True)

    method: OutlierMethod = OutlierMethod.IQR
    iqr_multiplier: float = Field(default=1.5, gt=0)
    zscore_threshold: float = Field(default=3.0, gt=0)
    min_value: Optional[float] = None
    max_value: Optional[float] = None

    @property
    def lower_bound(self) -> float:
        return self.min_value if self.min_value is not None else -math.inf

    @property
    def upper_bound(self) -> float:
        return self.max_value if self.max_value is not None else math.inf


class OutlierResult(BaseModel):
    """Kept samples after outlier removal, index-aligned with their timestamps."""

    values: list[float]
    timestamps: list[Timestamp]
    removed: int = Field(ge=0)
    method: OutlierMethod
    lower_fence: Optional[float] = None
    upper_fence: Optional[float] = None

    @model_validator(mode="after")
    def validate_alignment(self) -> "OutlierResult":
        """Every kept value must keep its paired timestamp."""
        if len(self.values) != len(self.timestamps):
            raise ValueError("values and timestamps must have the same length")
        return self


class LoadThresholds(BaseModel):
    """Base and peak load levels of a load series."""

    base_load: Optional[float] = None
    peak_load: Optional[float] = None


class RawSeries(BaseModel):
    """
    One datasource series as delivered by the host on a data refresh.

    Samples are (timestamp ms, value) pairs; values may be None or NaN and
    are dropped before processing.
    """

    data: list[tuple[Timestamp, Optional[float]]] = Field(default_factory=list)
    label: Optional[str] = None
    name: Optional[str] = None
    entity_name: Optional[str] = None
    units: str = ""
    decimals: Optional[int] = Field(default=None, ge=0, le=10)
    color: Optional[str] = None

    @field_validator("units", mode="before")
    @classmethod
    def default_units(cls, v):
        return v or ""

    @property
    def display_label(self) -> str:
        """Label preference: explicit label, entity name, key name."""
        return self.label or self.entity_name or self.name or "Value"


class ProcessedSeries(BaseModel):
    """
    A series after the processing pipeline, ready for chart rendering.

    Attributes:
        status: Processing outcome
        label: Display label (may carry a "(Power)" suffix)
        units: Display units
        decimals: Display precision
        color: Series color
        timestamps: Kept timestamps (epoch ms)
        values: Processed values, index-aligned with timestamps
        stats: Statistics over the processed values
        outliers_removed: Number of samples discarded as outliers
        outlier_method: Strategy used, None when removal is disabled
        smoothing_window: Window size applied, None when smoothing is disabled
        duration_curve: (exceedance %, value) pairs sorted descending
        thresholds: Base/peak load levels when enabled
    """

    status: SeriesStatus
    label: str
    units: str = ""
    decimals: int = 2
    color: Optional[str] = None
    timestamps: list[Timestamp] = Field(default_factory=list)
    values: list[float] = Field(default_factory=list)
    stats: StatisticsResult = Field(default_factory=StatisticsResult)
    outliers_removed: int = 0
    outlier_method: Optional[OutlierMethod] = None
    smoothing_window: Optional[int] = None
    duration_curve: list[tuple[float, float]] = Field(default_factory=list)
    thresholds: Optional[LoadThresholds] = None

    @property
    def message(self) -> str:
        return self.status.message
