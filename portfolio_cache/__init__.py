"""Shared, time-stamped price cache for portfolio dashboards."""

__version__ = "0.1.0"
