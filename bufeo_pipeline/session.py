"""
Session State Module
====================

Bounded Context: Session-scoped collections and their transitions.

Design:
- SessionState is an immutable snapshot of the three collections
- The push channel and bulk loads produce typed events
- dispatch() is the single transition function: (state, event) -> state
- Inserts are deduplicated by identifier; a duplicate returns the same
  state object, so callers can detect it with `is`
- A bulk load replaces one collection wholesale (last writer wins)
"""

from dataclasses import dataclass, replace
from typing import Any, Iterable, Tuple, Union

from bufeo_store.schemas import EntityKind, ObservationPoint, Trip, UserProfile


@dataclass(frozen=True)
class SessionState:
    """
    Immutable snapshot of the session collections.

    Trips are ordered newest first; users and points keep arrival order.
    """
    users: Tuple[UserProfile, ...] = ()
    trips: Tuple[Trip, ...] = ()
    points: Tuple[ObservationPoint, ...] = ()

    def collection(self, kind: EntityKind) -> tuple:
        return {
            EntityKind.USERS: self.users,
            EntityKind.TRIPS: self.trips,
            EntityKind.POINTS: self.points,
        }[EntityKind(kind)]

    def contains(self, kind: EntityKind, identifier: str) -> bool:
        return any(entity.id == identifier for entity in self.collection(kind))

    def counts(self) -> dict:
        return {
            'users': len(self.users),
            'trips': len(self.trips),
            'points': len(self.points),
        }


@dataclass(frozen=True)
class AppendUser:
    user: UserProfile


@dataclass(frozen=True)
class AppendTrip:
    trip: Trip


@dataclass(frozen=True)
class AppendPoint:
    point: ObservationPoint


@dataclass(frozen=True)
class CollectionLoaded:
    """Result of a bulk fetch for one kind."""
    kind: EntityKind
    records: Tuple[Any, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, 'kind', EntityKind(self.kind))
        object.__setattr__(self, 'records', tuple(self.records))


SessionEvent = Union[AppendUser, AppendTrip, AppendPoint, CollectionLoaded]


def append_event(kind: EntityKind, entity: Any) -> SessionEvent:
    """Wrap an inserted entity in the append event for its kind."""
    kind = EntityKind(kind)
    if kind == EntityKind.USERS:
        return AppendUser(entity)
    if kind == EntityKind.TRIPS:
        return AppendTrip(entity)
    return AppendPoint(entity)


def dispatch(state: SessionState, event: SessionEvent) -> SessionState:
    """
    Apply one event to the session state.

    Raises:
        TypeError: If the event type is unknown
    """
    if isinstance(event, AppendPoint):
        if state.contains(EntityKind.POINTS, event.point.id):
            return state
        return replace(state, points=state.points + (event.point,))

    if isinstance(event, AppendTrip):
        if state.contains(EntityKind.TRIPS, event.trip.id):
            return state
        return replace(state, trips=(event.trip,) + state.trips)

    if isinstance(event, AppendUser):
        if state.contains(EntityKind.USERS, event.user.id):
            return state
        return replace(state, users=state.users + (event.user,))

    if isinstance(event, CollectionLoaded):
        field_name = {
            EntityKind.USERS: 'users',
            EntityKind.TRIPS: 'trips',
            EntityKind.POINTS: 'points',
        }[event.kind]
        return replace(state, **{field_name: event.records})

    raise TypeError(f"Unknown session event: {type(event).__name__}")


def replay(state: SessionState, events: Iterable[SessionEvent]) -> SessionState:
    """Apply events in arrival order."""
    for event in events:
        state = dispatch(state, event)
    return state
