"""
ECO widgets engine components.

This package contains the computation behind the dashboard widgets:

- Statistics: percentiles, summary statistics, standard deviation
- Processing: outlier removal, smoothing, load-series helpers
- Time ranges: calendar periods and custom range resolution
- Formatting: period labels, timestamps and values
- Selector: the timewindow selector state machine and its registry
- Series: the per-datasource processing pipeline
- Zoom sync: zoom broadcast between chart widgets

All components are plain Python objects with injected dependencies (settings,
host bridge, data context, clock) so they can be driven without a browser.
"""

__all__ = [
    "SelectorRegistry",
    "SeriesProcessor",
    "TimewindowSelector",
    "ZoomSyncBus",
]

from ecowidgets.engine.selector import SelectorRegistry, TimewindowSelector
from ecowidgets.engine.series import SeriesProcessor
from ecowidgets.engine.zoom_sync import ZoomSyncBus
