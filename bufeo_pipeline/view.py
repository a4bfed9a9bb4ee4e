"""
Dashboard View Module
=====================

Presentation contract consumed by the map client.

Design:
- Stateless construction (build_view is a pure function of its inputs)
- No business logic: filtering and aggregation are delegated
- Marker colour derives only from the point type
- UI-only state (chart toggle, base map, fit trigger) lives in UIState

Dependencies:
- numpy (map bounds over plotted coordinates)
"""

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone, tzinfo
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

import numpy as np

from bufeo_store.schemas import ObservationPoint, PointType, Trip, UserProfile
from bufeo_pipeline.analytics import ChartMode, ObservationStats, aggregate
from bufeo_pipeline.filters import FilterSelection, filter_points, filter_trips
from bufeo_pipeline.session import SessionState

MARKER_COLORS = {
    PointType.START: '#43e97b',
    PointType.END: '#F44336',
    PointType.SIGHTING: '#4facfe',
    PointType.HAZARD: '#fd79a8',
}
DEFAULT_MARKER_COLOR = '#888'

CHART_PALETTE = ('#ff7eb3', '#4facfe', '#43e97b', '#fd79a8', '#00f2fe')
CHART_TITLES = {
    ChartMode.DANGER: 'Tipos de Peligro',
    ChartMode.HEALTH: 'Estado de Salud',
}

DEFAULT_CENTER = (-14.5, -65.0)
DEFAULT_ZOOM = 7
FIT_PADDING = 50
FIT_MAX_ZOOM = 16


class BaseMap(str, Enum):
    STREETS = "streets"
    SATELLITE = "satellite"


TILE_URLS = {
    BaseMap.STREETS: "https://{s}.tile.openstreetmap.org/{z}/{x}/{y}.png",
    BaseMap.SATELLITE: (
        "https://server.arcgisonline.com/ArcGIS/rest/services/"
        "World_Imagery/MapServer/tile/{z}/{y}/{x}"
    ),
}

PhotoResolver = Callable[[str], List[str]]
Bounds = Tuple[Tuple[float, float], Tuple[float, float]]


def format_local(value: Optional[datetime], fmt: str, tz: tzinfo = timezone.utc) -> str:
    """Render a timestamp in the display timezone, '' when absent or out of range."""
    if value is None:
        return ''
    try:
        return value.astimezone(tz).strftime(fmt)
    except (OverflowError, ValueError):
        return ''


def marker_color(point_type: Optional[PointType]) -> str:
    return MARKER_COLORS.get(point_type, DEFAULT_MARKER_COLOR)


def absolute_photo_only(photo_url: str) -> List[str]:
    """Default resolver: only absolute URLs can be shown without a store."""
    return [photo_url] if photo_url.startswith('http') else []


@dataclass(frozen=True)
class UIState:
    """Presentation state that never affects filtering or aggregation."""
    chart_mode: ChartMode = ChartMode.DANGER
    base_map: BaseMap = BaseMap.STREETS
    fit_trigger: int = 0

    def toggle_chart(self) -> 'UIState':
        mode = ChartMode.HEALTH if self.chart_mode == ChartMode.DANGER else ChartMode.DANGER
        return replace(self, chart_mode=mode)

    def with_base_map(self, base_map: Any) -> 'UIState':
        return replace(self, base_map=BaseMap(base_map))

    def request_fit(self) -> 'UIState':
        """Ask the map to re-fit its bounds to the visible markers."""
        return replace(self, fit_trigger=self.fit_trigger + 1)


@dataclass(frozen=True)
class Marker:
    id: str
    latitude: float
    longitude: float
    type: PointType
    color: str
    popup: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'latitude': self.latitude,
            'longitude': self.longitude,
            'type': self.type.value,
            'color': self.color,
            'popup': dict(self.popup),
        }


@dataclass(frozen=True)
class ChartData:
    mode: ChartMode
    title: str
    labels: Tuple[str, ...] = ()
    values: Tuple[int, ...] = ()
    colors: Tuple[str, ...] = ()

    @property
    def has_data(self) -> bool:
        return len(self.labels) > 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'mode': self.mode.value,
            'title': self.title,
            'labels': list(self.labels),
            'values': list(self.values),
            'colors': list(self.colors),
        }


@dataclass(frozen=True)
class Option:
    """Entry of a selection control."""
    value: str
    label: str

    def to_dict(self) -> Dict[str, str]:
        return {'value': self.value, 'label': self.label}


@dataclass(frozen=True)
class DashboardView:
    """Everything the map client renders for one recomputation."""
    selection: FilterSelection
    ui: UIState
    points: Tuple[ObservationPoint, ...]
    markers: Tuple[Marker, ...]
    stats: ObservationStats
    chart: ChartData
    user_options: Tuple[Option, ...]
    trip_options: Tuple[Option, ...]
    bounds: Optional[Bounds]

    @property
    def point_count(self) -> int:
        return len(self.points)

    @property
    def tile_url(self) -> str:
        return TILE_URLS[self.ui.base_map]

    def to_dict(self) -> Dict[str, Any]:
        return {
            'selection': self.selection.to_dict(),
            'point_count': self.point_count,
            'markers': [marker.to_dict() for marker in self.markers],
            'stats': self.stats.to_dict(),
            'chart': self.chart.to_dict(),
            'user_options': [option.to_dict() for option in self.user_options],
            'trip_options': [option.to_dict() for option in self.trip_options],
            'map': {
                'base_map': self.ui.base_map.value,
                'tile_url': self.tile_url,
                'bounds': [list(corner) for corner in self.bounds] if self.bounds else None,
                'center': list(DEFAULT_CENTER),
                'zoom': DEFAULT_ZOOM,
                'fit_trigger': self.ui.fit_trigger,
                'fit_padding': FIT_PADDING,
                'fit_max_zoom': FIT_MAX_ZOOM,
            },
        }


def build_popup(
    point: ObservationPoint,
    tz: tzinfo = timezone.utc,
    photo_resolver: PhotoResolver = absolute_photo_only
) -> Dict[str, Any]:
    """Popup fields; which ones appear depends on the point type."""
    popup: Dict[str, Any] = {
        'title': point.type.value if point.type else '',
        'created_at': format_local(point.created_at, '%d/%m/%Y %H:%M:%S', tz),
    }
    if point.type == PointType.SIGHTING:
        popup['adults'] = point.adults
        popup['calves'] = point.calves
    elif point.type == PointType.HAZARD:
        popup['danger_type'] = point.danger_type
        popup['health_status'] = point.health_status
        popup['photo_urls'] = photo_resolver(point.photo_url) if point.photo_url else []
    return popup


def build_markers(
    points: Sequence[ObservationPoint],
    tz: tzinfo = timezone.utc,
    photo_resolver: PhotoResolver = absolute_photo_only
) -> Tuple[Marker, ...]:
    """Markers for points that carry a finite coordinate; others are not plotted."""
    markers = []
    for point in points:
        if not point.has_coordinate or point.type is None:
            continue
        if not (np.isfinite(point.latitude) and np.isfinite(point.longitude)):
            continue
        markers.append(Marker(
            id=point.id,
            latitude=point.latitude,
            longitude=point.longitude,
            type=point.type,
            color=marker_color(point.type),
            popup=build_popup(point, tz, photo_resolver),
        ))
    return tuple(markers)


def map_bounds(markers: Sequence[Marker]) -> Optional[Bounds]:
    """South-west and north-east corners of the plotted markers."""
    if not markers:
        return None
    coords = np.array([[m.latitude, m.longitude] for m in markers], dtype=float)
    south_west = coords.min(axis=0)
    north_east = coords.max(axis=0)
    return (
        (float(south_west[0]), float(south_west[1])),
        (float(north_east[0]), float(north_east[1])),
    )


def build_chart(stats: ObservationStats, mode: ChartMode) -> ChartData:
    histogram = stats.histogram(mode)
    labels = tuple(histogram.keys())
    return ChartData(
        mode=ChartMode(mode),
        title=CHART_TITLES[ChartMode(mode)],
        labels=labels,
        values=tuple(histogram[label] for label in labels),
        colors=tuple(CHART_PALETTE[i % len(CHART_PALETTE)] for i in range(len(labels))),
    )


def trip_label(trip: Trip, tz: tzinfo = timezone.utc) -> str:
    return format_local(trip.start_time, '%d/%m/%Y %H:%M', tz) or trip.label


def user_options(users: Sequence[UserProfile]) -> Tuple[Option, ...]:
    return tuple(Option(value=user.id, label=user.label) for user in users)


def trip_options(
    trips: Sequence[Trip],
    user_id: Optional[str],
    tz: tzinfo = timezone.utc
) -> Tuple[Option, ...]:
    """Trip selector entries; the selector is only offered once a user is chosen."""
    if user_id is None:
        return ()
    return tuple(Option(value=trip.id, label=trip_label(trip, tz)) for trip in filter_trips(trips, user_id))


def build_view(
    state: SessionState,
    selection: FilterSelection,
    ui: UIState = UIState(),
    tz: tzinfo = timezone.utc,
    photo_resolver: PhotoResolver = absolute_photo_only
) -> DashboardView:
    """
    Recompute the full dashboard view.

    Filtering and aggregation run from scratch on every call.
    """
    points = filter_points(state.points, state.trips, selection, tz)
    stats = aggregate(points)
    markers = build_markers(points, tz, photo_resolver)
    return DashboardView(
        selection=selection,
        ui=ui,
        points=points,
        markers=markers,
        stats=stats,
        chart=build_chart(stats, ui.chart_mode),
        user_options=user_options(state.users),
        trip_options=trip_options(state.trips, selection.user_id, tz),
        bounds=map_bounds(markers),
    )
