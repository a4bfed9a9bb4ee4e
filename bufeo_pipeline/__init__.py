"""
Bufeo Observation Pipeline
==========================

Bounded Context: Filtering and aggregation of observation points.

Architecture:

    bufeo_pipeline/
    ├── filters.py         # FilterSelection + stateless filter stages
    ├── analytics/         # Aggregation (accumulator + immutable stats)
    │   └── aggregator.py
    ├── session.py         # Immutable session state + event dispatch
    └── view.py            # Presentation contract (markers, chart, options)

Control flow:

    store rows / push events -> dispatch() -> SessionState
    SessionState + FilterSelection -> filter_points() -> aggregate()
    -> build_view() -> map client

Usage:

    from bufeo_pipeline import FilterSelection, filter_points, aggregate

    selection = FilterSelection().with_user("u1").with_dates("2024-01-01", None)
    visible = filter_points(state.points, state.trips, selection)
    stats = aggregate(visible)
"""

from bufeo_pipeline.filters import (
    NO_RESTRICTION,
    FilterSelection,
    PointFilter,
    filter_points,
    filter_trips,
    parse_date,
    parse_point_types,
)
from bufeo_pipeline.analytics import (
    UNKNOWN_CATEGORY,
    ChartMode,
    ObservationStats,
    StatsAccumulator,
    aggregate,
)
from bufeo_pipeline.session import (
    AppendPoint,
    AppendTrip,
    AppendUser,
    CollectionLoaded,
    SessionState,
    append_event,
    dispatch,
    replay,
)
from bufeo_pipeline.view import (
    BaseMap,
    DashboardView,
    UIState,
    build_view,
    marker_color,
)

__all__ = [
    # Filters
    "NO_RESTRICTION",
    "FilterSelection",
    "PointFilter",
    "filter_points",
    "filter_trips",
    "parse_date",
    "parse_point_types",
    # Analytics
    "UNKNOWN_CATEGORY",
    "ChartMode",
    "ObservationStats",
    "StatsAccumulator",
    "aggregate",
    # Session
    "SessionState",
    "AppendUser",
    "AppendTrip",
    "AppendPoint",
    "CollectionLoaded",
    "append_event",
    "dispatch",
    "replay",
    # View
    "BaseMap",
    "DashboardView",
    "UIState",
    "build_view",
    "marker_color",
]
