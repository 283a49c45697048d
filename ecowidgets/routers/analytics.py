"""
Series analytics router.

Wired to:
- Statistics engine for summary statistics and percentiles
- Processing pipeline for outlier removal and smoothing
- SeriesProcessor for the full per-datasource widget flow
"""

from typing import Any, List, Optional

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

from ecowidgets.engine.processing import moving_average, remove_outliers, window_size_from_minutes
from ecowidgets.engine.series import SeriesProcessor
from ecowidgets.engine.statistics import compute_statistics, percentile
from ecowidgets.models import OutlierOptions, RawSeries, resolve_widget_settings
from ecowidgets.models.statistics import Timestamp
from ecowidgets.utils.logging import get_logger

logger = get_logger(__name__)
router = APIRouter()


class StatisticsRequest(BaseModel):
    """Values to summarize, with optional extra percentiles."""

    values: List[float]
    percentiles: List[float] = Field(default_factory=list)


class OutlierRequest(BaseModel):
    """Index-aligned series and the removal strategy."""

    values: List[float]
    timestamps: List[Timestamp]
    options: OutlierOptions = Field(default_factory=OutlierOptions)


class SmoothRequest(BaseModel):
    """
    Values to smooth.

    The window is window_size samples, or derived from window_minutes and the
    timestamps when those are given.
    """

    values: List[float]
    window_size: int = Field(default=5, ge=1)
    timestamps: Optional[List[Timestamp]] = None
    window_minutes: Optional[float] = Field(default=None, gt=0)


class SeriesRequest(BaseModel):
    """Widget settings bag (camelCase keys) and the datasource series."""

    settings: dict[str, Any] = Field(default_factory=dict)
    series: List[RawSeries]


@router.post("/statistics")
async def series_statistics(request: StatisticsRequest):
    """
    Summary statistics of a value list.
    Empty input yields zero-valued statistics.
    """
    stats = compute_statistics(request.values)
    ordered = sorted(request.values)

    return {
        "success": True,
        "data": {
            "statistics": stats.model_dump(mode="json"),
            "percentiles": {str(p): percentile(ordered, p) for p in request.percentiles},
        },
    }


@router.post("/outliers")
async def series_outliers(request: OutlierRequest):
    """
    Remove outliers from an index-aligned value/timestamp series.
    """
    try:
        result = remove_outliers(request.values, request.timestamps, request.options)
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))

    logger.info(
        "outliers_request",
        method=result.method.value,
        count=len(request.values),
        removed=result.removed,
    )

    return {"success": True, "data": result.model_dump(mode="json")}


@router.post("/smooth")
async def series_smooth(request: SmoothRequest):
    """
    Centered moving average over the values.
    """
    window_size = request.window_size
    if request.window_minutes is not None:
        if request.timestamps is None or len(request.timestamps) != len(request.values):
            raise HTTPException(
                status_code=422,
                detail="window_minutes requires timestamps aligned with values",
            )
        window_size = window_size_from_minutes(request.timestamps, request.window_minutes)

    return {
        "success": True,
        "data": {
            "window_size": window_size,
            "values": moving_average(request.values, window_size),
        },
    }


@router.post("/series")
async def process_series(request: SeriesRequest):
    """
    Run the widget processing pipeline over each series.
    Uses SeriesProcessor with the resolved widget settings.
    """
    try:
        settings = resolve_widget_settings(request.settings)
        processor = SeriesProcessor(settings)
        processed = processor.process_all(request.series)
    except ValueError as e:
        logger.error("series_processing_failed", error=str(e))
        raise HTTPException(status_code=422, detail=str(e))

    logger.info(
        "series_request",
        series_count=len(request.series),
        remove_outliers=settings.remove_outliers,
        smoothing=settings.smoothing_enabled,
    )

    return {
        "success": True,
        "data": [
            {
                **series.model_dump(mode="json"),
                "message": series.message,
                "legend": processor.legend(series),
            }
            for series in processed
        ],
    }
