"""ECO widgets engine: statistics, data processing and the timewindow selector."""

__version__ = "1.1.0"
