"""
Pytest configuration and shared fixtures for the ECO widgets test suite.

Provides model factories, a recording host bridge, a fixed clock and an API
client reusable across unit, integration and property-based tests.
"""

import os
from datetime import datetime
from typing import Any, Optional

import pytest
from fastapi.testclient import TestClient

# Set testing environment BEFORE importing app
os.environ["TESTING"] = "true"
os.environ["LOG_FORMAT"] = "console"


# ---------------------------------------------------------------------------
# Pydantic model factories: reusable across all test suites
# ---------------------------------------------------------------------------

from ecowidgets.models import (
    DataContext,
    DatasourceInfo,
    EntityInfo,
    HostBridge,
    LatestSeries,
    RawSeries,
    Timewindow,
    WidgetSettings,
)

# Wednesday afternoon
FIXED_NOW = datetime(2024, 2, 14, 15, 30, 0)


def make_widget_settings(**overrides: Any) -> WidgetSettings:
    """Factory for WidgetSettings; keys may be camelCase aliases or field names."""
    defaults: dict[str, Any] = {"twDefaultMode": "day"}
    defaults.update(overrides)
    return WidgetSettings.model_validate(defaults)


def make_context(
    attributes: Optional[dict[str, Any]] = None,
    shared_attributes: Optional[dict[str, Any]] = None,
    latest: Optional[dict[str, list[tuple[int, Any]]]] = None,
) -> DataContext:
    """Factory for a DataContext with one datasource."""
    entity = EntityInfo(
        name="Meter 1",
        attributes=attributes,
        shared_attributes=shared_attributes,
    )
    return DataContext(
        datasources=[DatasourceInfo(name="Meter 1", entity=entity)],
        latest_data=[
            LatestSeries(key_name=key, data=data) for key, data in (latest or {}).items()
        ],
    )


def make_raw_series(
    values: list[Optional[float]],
    start_ms: int = 1_700_000_000_000,
    step_ms: int = 60_000,
    **overrides: Any,
) -> RawSeries:
    """Factory for RawSeries with evenly spaced timestamps."""
    data = [(start_ms + i * step_ms, v) for i, v in enumerate(values)]
    defaults: dict[str, Any] = dict(data=data, label="Load", units="kW")
    defaults.update(overrides)
    return RawSeries(**defaults)


class RecordingHost(HostBridge):
    """HostBridge that records every pushed timewindow per target."""

    def __init__(
        self,
        use_dashboard_timewindow: bool = True,
        dashboard: bool = True,
        widget: bool = True,
    ):
        self.dashboard_pushes: list[Timewindow] = []
        self.widget_pushes: list[Timewindow] = []
        super().__init__(
            update_dashboard_timewindow=self.dashboard_pushes.append if dashboard else None,
            update_widget_timewindow=self.widget_pushes.append if widget else None,
            use_dashboard_timewindow=use_dashboard_timewindow,
        )

    @property
    def push_count(self) -> int:
        return len(self.dashboard_pushes) + len(self.widget_pushes)


class FixedClock:
    """Settable clock returning the same instant until moved."""

    def __init__(self, now: datetime = FIXED_NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def host() -> RecordingHost:
    return RecordingHost()


@pytest.fixture
def context() -> DataContext:
    return make_context(
        attributes={"periodStart": 1709280000000},
        shared_attributes={"periodEnd": 1709625600000},
        latest={"lastReset": [(1, 1709200000000), (2, 1709366400000)]},
    )


@pytest.fixture
def client():
    """API client with a fresh selector registry on a fixed clock."""
    from ecowidgets.engine.selector import SelectorRegistry
    from ecowidgets.main import create_app

    app = create_app(SelectorRegistry(clock=FixedClock()))
    with TestClient(app) as test_client:
        yield test_client
