"""Dual-mode authorization comparator and its statistics."""

from src.monitoring.comparison import (
    BackgroundComparisonDispatcher,
    KillSwitch,
    PermissionComparator,
    RecordStore,
)
from src.monitoring.stats import ComparisonMetricsPublisher, ComparisonStatsAggregator

__all__ = [
    "BackgroundComparisonDispatcher",
    "ComparisonMetricsPublisher",
    "ComparisonStatsAggregator",
    "KillSwitch",
    "PermissionComparator",
    "RecordStore",
]
