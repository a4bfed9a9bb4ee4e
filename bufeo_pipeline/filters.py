"""
Point Filter Module
===================

Stateless filtering of observation points and trips.

Design:
- Pure functions (inputs are never mutated, new tuples are returned)
- Each stage is a standalone static method, composed in a fixed order by
  filter_points(): user -> date -> trip -> type
- Never raises on malformed records: a point without a parseable timestamp
  simply fails the date stage, a dangling trip reference fails the user stage
"""

from dataclasses import dataclass, field, replace
from datetime import date, datetime, time, timezone, tzinfo
from typing import Any, Dict, FrozenSet, Iterable, Optional, Tuple

from bufeo_store.schemas import ALL_POINT_TYPES, ObservationPoint, PointType, Trip

# Selector value meaning "no restriction"
NO_RESTRICTION = "all"


def normalize_restriction(value: Any) -> Optional[str]:
    """Map the "no restriction" spellings ('all', '', None) to None."""
    if value is None:
        return None
    text = str(value).strip()
    if text == '' or text.lower() == NO_RESTRICTION:
        return None
    return text


def parse_date(value: Any) -> Optional[date]:
    """
    Parse a date bound.

    Accepts date, datetime or 'YYYY-MM-DD'. Empty values mean "unset".

    Raises:
        ValueError: If a non-empty string is not an ISO date
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    text = str(value).strip()
    if not text:
        return None
    return date.fromisoformat(text[:10])


def parse_point_types(values: Iterable[Any]) -> FrozenSet[PointType]:
    """
    Parse point type names (enum values or member names, any case for names).

    Raises:
        ValueError: On an unknown type
    """
    types = set()
    for value in values:
        point_type = PointType.parse(value)
        if point_type is None and isinstance(value, str):
            point_type = PointType.__members__.get(value.strip().upper())
        if point_type is None:
            raise ValueError(
                f"Unknown point type: {value!r}. "
                f"Must be one of {[t.value for t in PointType]}"
            )
        types.add(point_type)
    return frozenset(types)


@dataclass(frozen=True)
class FilterSelection:
    """
    Active filter selection.

    None means "no restriction" for user_id, trip_id and each date bound.

    Example:
        >>> selection = FilterSelection().with_user("u1").with_trip("t9")
        >>> selection.with_user(None).trip_id is None
        True
    """
    user_id: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    trip_id: Optional[str] = None
    visible_types: FrozenSet[PointType] = field(default=ALL_POINT_TYPES)

    def __post_init__(self):
        # A reversed date range is allowed; it simply matches nothing
        object.__setattr__(self, 'visible_types', frozenset(self.visible_types))

    @property
    def date_filter_active(self) -> bool:
        return self.start_date is not None or self.end_date is not None

    def with_user(self, user_id: Optional[str]) -> 'FilterSelection':
        """Select a user. The trip restriction is cleared with it."""
        return replace(self, user_id=normalize_restriction(user_id), trip_id=None)

    def with_trip(self, trip_id: Optional[str]) -> 'FilterSelection':
        return replace(self, trip_id=normalize_restriction(trip_id))

    def with_dates(self, start: Any = None, end: Any = None) -> 'FilterSelection':
        return replace(self, start_date=parse_date(start), end_date=parse_date(end))

    def toggle_type(self, point_type: PointType) -> 'FilterSelection':
        """Enable a disabled layer or disable an enabled one."""
        return replace(self, visible_types=self.visible_types ^ {PointType(point_type)})

    def to_dict(self) -> Dict[str, Any]:
        return {
            'user_id': self.user_id,
            'start_date': self.start_date.isoformat() if self.start_date else None,
            'end_date': self.end_date.isoformat() if self.end_date else None,
            'trip_id': self.trip_id,
            'visible_types': {t.value: t in self.visible_types for t in PointType},
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'FilterSelection':
        """
        Build a selection from a command payload or CLI arguments.

        visible_types may be a list of type names or a {name: enabled} map.

        Raises:
            ValueError: On malformed dates or unknown types
        """
        types = data.get('visible_types')
        if types is None:
            visible_types = ALL_POINT_TYPES
        elif isinstance(types, dict):
            visible_types = parse_point_types(name for name, enabled in types.items() if enabled)
        else:
            visible_types = parse_point_types(types)

        return cls(
            user_id=normalize_restriction(data.get('user_id')),
            start_date=parse_date(data.get('start_date')),
            end_date=parse_date(data.get('end_date')),
            trip_id=normalize_restriction(data.get('trip_id')),
            visible_types=visible_types,
        )


class PointFilter:
    """
    Stateless filter stages for observation points.

    All methods are static and return new tuples in the original order.
    """

    @staticmethod
    def trip_ids_for_user(trips: Iterable[Trip], user_id: str) -> FrozenSet[str]:
        return frozenset(trip.id for trip in trips if trip.user_id == user_id)

    @staticmethod
    def by_user(
        points: Iterable[ObservationPoint],
        trips: Iterable[Trip],
        user_id: Optional[str]
    ) -> Tuple[ObservationPoint, ...]:
        """Keep points whose trip belongs to the user (no-op when unrestricted)."""
        if user_id is None:
            return tuple(points)
        trip_ids = PointFilter.trip_ids_for_user(trips, user_id)
        return tuple(p for p in points if p.trip_id is not None and p.trip_id in trip_ids)

    @staticmethod
    def day_bounds(
        start: Optional[date],
        end: Optional[date],
        tz: tzinfo = timezone.utc
    ) -> Tuple[Optional[datetime], Optional[datetime]]:
        """Start of the first day and end of the last day, in tz."""
        lower = datetime.combine(start, time.min, tzinfo=tz) if start else None
        upper = datetime.combine(end, time.max, tzinfo=tz) if end else None
        return lower, upper

    @staticmethod
    def by_date(
        points: Iterable[ObservationPoint],
        start: Optional[date],
        end: Optional[date],
        tz: tzinfo = timezone.utc
    ) -> Tuple[ObservationPoint, ...]:
        """
        Keep points created within [start-of-day(start), end-of-day(end)].

        An unset bound imposes nothing on its side. Once any bound is set,
        points without a timestamp are excluded.
        """
        if start is None and end is None:
            return tuple(points)

        lower, upper = PointFilter.day_bounds(start, end, tz)

        def inside(point: ObservationPoint) -> bool:
            if point.created_at is None:
                return False
            if lower is not None and point.created_at < lower:
                return False
            if upper is not None and point.created_at > upper:
                return False
            return True

        return tuple(p for p in points if inside(p))

    @staticmethod
    def by_trip(
        points: Iterable[ObservationPoint],
        trip_id: Optional[str]
    ) -> Tuple[ObservationPoint, ...]:
        if trip_id is None:
            return tuple(points)
        return tuple(p for p in points if p.trip_id == trip_id)

    @staticmethod
    def by_type(
        points: Iterable[ObservationPoint],
        visible_types: FrozenSet[PointType]
    ) -> Tuple[ObservationPoint, ...]:
        """Keep points whose type is known and enabled."""
        return tuple(p for p in points if p.type is not None and p.type in visible_types)


def filter_points(
    points: Iterable[ObservationPoint],
    trips: Iterable[Trip],
    selection: FilterSelection,
    tz: tzinfo = timezone.utc
) -> Tuple[ObservationPoint, ...]:
    """
    Points visible under the selection.

    Stages run in a fixed order: user, date, trip, type.

    Args:
        points: Full point collection
        trips: Full trip collection (for the user stage)
        selection: Active filter selection
        tz: Timezone in which date bounds are interpreted

    Returns:
        Tuple of points in original collection order
    """
    result = PointFilter.by_user(points, trips, selection.user_id)
    result = PointFilter.by_date(result, selection.start_date, selection.end_date, tz)
    result = PointFilter.by_trip(result, selection.trip_id)
    return PointFilter.by_type(result, selection.visible_types)


def filter_trips(trips: Iterable[Trip], user_id: Optional[str]) -> Tuple[Trip, ...]:
    """Trips selectable for the user: all of them when unrestricted."""
    if user_id is None:
        return tuple(trips)
    return tuple(trip for trip in trips if trip.user_id == user_id)
