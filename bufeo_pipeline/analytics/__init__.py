"""
Analytics Layer
===============

Bounded Context: Summary statistics over the visible points.

Responsibilities:
- Fold filtered points into counters and histograms (mutable accumulator)
- Produce immutable statistics snapshots
"""

from bufeo_pipeline.analytics.aggregator import (
    UNKNOWN_CATEGORY,
    ChartMode,
    ObservationStats,
    StatsAccumulator,
    aggregate,
)

__all__ = [
    "UNKNOWN_CATEGORY",
    "ChartMode",
    "ObservationStats",
    "StatsAccumulator",
    "aggregate",
]
