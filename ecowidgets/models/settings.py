"""
Widget settings resolution.

Hosts deliver widget settings as a loose camelCase dictionary where any key
may be missing, empty or zero. This module validates that bag once into a
frozen, fully defaulted WidgetSettings consumed by every downstream engine
component, so default literals live in exactly one place.

Resolution rules:
    - Unknown keys are ignored.
    - Format strings, multipliers, thresholds, window sizes and aggregation
      fall back to their default when the host sends None, "" or 0, matching
      how widget controllers read them.
    - Unrecognized enum values, unparseable numbers and numbers outside a
      setting's range degrade to the default with a warning rather than
      failing the render.
"""

import math
from typing import Any, Callable, Optional

import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator

from ecowidgets.config import get_settings

from .enums import AggregationType, DataType, OutlierMethod, SelectorMode
from .statistics import OutlierOptions

logger = structlog.get_logger()

_FALSY_DEFAULTED_FORMATS = (
    "day_format",
    "week_format",
    "month_format",
    "timestamp_format",
)

_ENUM_FIELDS = ("default_mode", "aggregation_type", "outlier_method", "data_type")

# field -> (number type, accepted range, whether 0 means "use the default")
_NUMERIC_FIELDS: dict[str, tuple[type, Callable[[float], bool], bool]] = {
    "max_data_points": (int, lambda v: v >= 1, True),
    "outlier_iqr_multiplier": (float, lambda v: v > 0, True),
    "outlier_zscore_threshold": (float, lambda v: v > 0, True),
    "smoothing_window": (int, lambda v: v >= 1, True),
    "base_load_percentile": (float, lambda v: 0 <= v <= 100, False),
    "peak_load_percentile": (float, lambda v: 0 <= v <= 100, False),
}

_OPTIONAL_NUMBERS = (
    "outlier_min_value",
    "outlier_max_value",
    "manual_base_load",
    "manual_peak_load",
    "smoothing_window_minutes",
)

SELECTOR_POSITIONS = ("left", "center", "right")


def _to_number(value: Any) -> Optional[float]:
    """Finite float for a numeric setting value, or None if it is not one."""
    if isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


class WidgetSettings(BaseModel):
    """
    Fully resolved widget configuration.

    Field aliases are the host's settings keys; instances can also be built
    with the snake_case names.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    # Timewindow selector
    show_timewindow_selector: bool = Field(default=False, alias="showTimewindowSelector")
    selector_color: str = Field(default="", alias="twSelectorColor")
    selector_position: str = Field(default="center", alias="twSelectorPosition")
    default_mode: SelectorMode = Field(default=SelectorMode.CUSTOM, alias="twDefaultMode")
    day_format: str = Field(default="D MMM YYYY", alias="twSelectorDayFormat")
    week_format: str = Field(default="D-D MMM", alias="twSelectorWeekFormat")
    month_format: str = Field(default="MMM YYYY", alias="twSelectorMonthFormat")
    custom_start_time: str = Field(default="", alias="twCustomStartTime")
    custom_end_time: str = Field(default="", alias="twCustomEndTime")
    aggregation_type: AggregationType = Field(default=AggregationType.NONE, alias="twAggregationType")
    max_data_points: int = Field(default=100000, ge=1, alias="twMaxDataPoints")

    # Outlier removal
    remove_outliers: bool = Field(default=False, alias="removeOutliers")
    outlier_method: OutlierMethod = Field(default=OutlierMethod.IQR, alias="outlierMethod")
    outlier_iqr_multiplier: float = Field(default=1.5, gt=0, alias="outlierIqrMultiplier")
    outlier_zscore_threshold: float = Field(default=3.0, gt=0, alias="outlierZscoreThreshold")
    outlier_min_value: Optional[float] = Field(default=None, alias="outlierMinValue")
    outlier_max_value: Optional[float] = Field(default=None, alias="outlierMaxValue")

    # Smoothing
    smoothing_enabled: bool = Field(default=False, alias="smoothingEnabled")
    smoothing_window: int = Field(default=5, ge=1, alias="smoothingWindow")
    smoothing_window_minutes: Optional[float] = Field(default=None, alias="smoothingWindowMinutes")

    # Load series
    data_type: DataType = Field(default=DataType.POWER, alias="dataType")
    energy_to_power: bool = Field(default=False, alias="energyToPower")
    show_thresholds: bool = Field(default=False, alias="showThresholds")
    auto_detect_thresholds: bool = Field(default=True, alias="autoDetectThresholds")
    base_load_percentile: float = Field(default=10.0, ge=0, le=100, alias="baseLoadPercentile")
    peak_load_percentile: float = Field(default=90.0, ge=0, le=100, alias="peakLoadPercentile")
    manual_base_load: Optional[float] = Field(default=None, alias="manualBaseLoad")
    manual_peak_load: Optional[float] = Field(default=None, alias="manualPeakLoad")

    # Display
    legend_values: list[str] = Field(default_factory=lambda: ["current"], alias="legendValues")
    timestamp_format: str = Field(default="YYYY-MM-DD HH:mm:ss", alias="timestampFormat")

    @field_validator(*_FALSY_DEFAULTED_FORMATS, mode="before")
    @classmethod
    def default_when_falsy(cls, v: Any, info: ValidationInfo) -> Any:
        """Treat None and empty strings as 'use the default'."""
        if not v:
            return cls.model_fields[info.field_name].default
        return v

    @field_validator(*_ENUM_FIELDS, mode="before")
    @classmethod
    def degrade_unknown_enum(cls, v: Any, info: ValidationInfo) -> Any:
        """Fall back to the default for values the enum does not know."""
        field = cls.model_fields[info.field_name]
        enum_type = field.annotation
        if v is None or v == "" or v == 0:
            return field.default
        candidate = v.value if hasattr(v, "value") else v
        if isinstance(candidate, str) and enum_type is not AggregationType:
            candidate = candidate.strip().lower()
        elif isinstance(candidate, str):
            candidate = candidate.strip().upper()
        try:
            return enum_type(candidate)
        except ValueError:
            logger.warning(
                "unknown_setting_value",
                setting=info.field_name,
                value=v,
                fallback=field.default.value,
            )
            return field.default

    @field_validator(*_NUMERIC_FIELDS, mode="before")
    @classmethod
    def degrade_invalid_number(cls, v: Any, info: ValidationInfo) -> Any:
        """Fall back to the default for unparseable or out-of-range numbers."""
        default = cls.model_fields[info.field_name].default
        number_type, in_range, zero_is_default = _NUMERIC_FIELDS[info.field_name]
        if v is None or v == "" or (zero_is_default and v == 0 and not isinstance(v, bool)):
            return default

        number = _to_number(v)
        valid = number is not None and in_range(number)
        if valid and number_type is int:
            valid = number.is_integer()
        if not valid:
            logger.warning(
                "invalid_setting_value",
                setting=info.field_name,
                value=v,
                fallback=default,
            )
            return default
        return number_type(number)

    @field_validator(*_OPTIONAL_NUMBERS, mode="before")
    @classmethod
    def optional_number(cls, v: Any, info: ValidationInfo) -> Optional[float]:
        """Empty means unset; a value that is not a number is dropped with a warning."""
        if v is None or v == "":
            return None
        number = _to_number(v)
        if number is None:
            logger.warning("invalid_setting_value", setting=info.field_name, value=v, fallback=None)
        return number

    @field_validator("custom_start_time", "custom_end_time", "selector_color", mode="before")
    @classmethod
    def normalize_expression(cls, v: Any) -> str:
        if v is None:
            return ""
        return str(v).strip()

    @field_validator("selector_position", mode="before")
    @classmethod
    def known_position(cls, v: Any) -> str:
        position = str(v).strip().lower() if v else ""
        if position in SELECTOR_POSITIONS:
            return position
        if position:
            logger.warning("unknown_setting_value", setting="selector_position", value=v, fallback="center")
        return "center"

    @field_validator("legend_values", mode="before")
    @classmethod
    def legend_default(cls, v: Any) -> Any:
        if not v:
            return ["current"]
        return v

    @property
    def has_custom_settings(self) -> bool:
        """Whether a custom start or end expression is configured."""
        return bool(self.custom_start_time or self.custom_end_time)

    @property
    def outlier_options(self) -> OutlierOptions:
        return OutlierOptions(
            method=self.outlier_method,
            iqr_multiplier=self.outlier_iqr_multiplier,
            zscore_threshold=self.outlier_zscore_threshold,
            min_value=self.outlier_min_value,
            max_value=self.outlier_max_value,
        )


def _is_set(bag: dict[str, Any], field_name: str) -> bool:
    """Whether the bag sets a field under its alias or its field name."""
    alias = WidgetSettings.model_fields[field_name].alias
    return bool(bag.get(alias) or bag.get(field_name))


def resolve_widget_settings(raw: Optional[dict[str, Any]] = None) -> WidgetSettings:
    """
    Resolve a host settings bag into WidgetSettings.

    Application-level defaults (initial selector mode, aggregation) from the
    environment apply when the bag sets them under neither the host key nor
    the field name.

    Args:
        raw: Host settings dictionary (camelCase keys); None means empty

    Returns:
        Frozen, fully defaulted WidgetSettings

    Example:
        >>> settings = resolve_widget_settings({"twSelectorDayFormat": "DD.MM.YYYY"})
        >>> settings.day_format
        'DD.MM.YYYY'
    """
    app_settings = get_settings()
    bag = dict(raw or {})
    if "twDefaultMode" not in bag and "default_mode" not in bag:
        bag["twDefaultMode"] = app_settings.default_selector_mode
    if not _is_set(bag, "aggregation_type"):
        bag["twAggregationType"] = app_settings.default_aggregation_type
    if not _is_set(bag, "max_data_points"):
        bag["twMaxDataPoints"] = app_settings.default_max_data_points
    return WidgetSettings.model_validate(bag)
