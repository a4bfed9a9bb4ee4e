"""
Entity Schemas
==============

Bounded Context: Observation Data Structures

Immutable records for the three collections served by the data store:
user profiles, trips and observation points ("trip data").

Design:
- Frozen dataclasses (collections are append-only, records never mutate)
- from_dict() is lenient on optional fields and strict only on the identifier
- to_dict() returns the row shape used by the store

Message Flow:
    Store row / push payload -> from_dict() -> entity -> session state
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional

from .common import (
    EntityKind,
    format_timestamp,
    optional_float,
    optional_int,
    optional_str,
    parse_timestamp,
    short_id,
)


class PointType(str, Enum):
    """Observation point type. Values are the ones stored in the data store."""
    START = "Inicio"
    END = "Fin"
    SIGHTING = "Avistamiento"
    HAZARD = "Peligro"

    @classmethod
    def parse(cls, value: Any) -> Optional['PointType']:
        """Map a stored value to a PointType, None for anything outside the set."""
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError:
            return None


ALL_POINT_TYPES = frozenset(PointType)


def _require_id(data: Dict[str, Any], entity: str) -> str:
    try:
        identifier = data['id']
    except KeyError as e:
        raise ValueError(f"Missing required {entity} field: {e}")
    except TypeError as e:
        raise ValueError(f"Invalid {entity} data: {e}")
    if identifier is None or str(identifier) == '':
        raise ValueError(f"{entity} id cannot be empty")
    return str(identifier)


@dataclass(frozen=True)
class UserProfile:
    """
    User profile.

    Attributes:
        id: Profile identifier (UUID in the store)
        full_name: Display name, optional

    Example:
        >>> UserProfile.from_dict({'id': 'a1b2-c3', 'full_name': None}).label
        'a1b2'
    """
    id: str
    full_name: Optional[str] = None

    @property
    def label(self) -> str:
        """Name shown in the user selector."""
        return self.full_name or short_id(self.id)

    def to_dict(self) -> Dict[str, Any]:
        return {'id': self.id, 'full_name': self.full_name}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'UserProfile':
        """Deserialize from a store row.

        Raises:
            ValueError: If the identifier is missing
        """
        return cls(
            id=_require_id(data, 'UserProfile'),
            full_name=optional_str(data.get('full_name')) or None,
        )


@dataclass(frozen=True)
class Trip:
    """
    One outing by one user.

    Attributes:
        id: Trip identifier
        user_id: Owning user identifier
        start_time: Start of the trip, optional
    """
    id: str
    user_id: Optional[str] = None
    start_time: Optional[datetime] = None

    @property
    def label(self) -> str:
        """Name shown in the trip selector."""
        if self.start_time is not None:
            return self.start_time.strftime('%d/%m/%Y %H:%M')
        return f"Viaje {short_id(self.id)}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'user_id': self.user_id,
            'start_time': format_timestamp(self.start_time),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Trip':
        """Deserialize from a store row.

        Raises:
            ValueError: If the identifier is missing
        """
        return cls(
            id=_require_id(data, 'Trip'),
            user_id=optional_str(data.get('user_id')),
            start_time=parse_timestamp(data.get('start_time')),
        )


@dataclass(frozen=True)
class ObservationPoint:
    """
    Single geotagged event recorded during a trip.

    The type decides which optional fields are meaningful: adults/calves
    for sightings; danger_type, health_status and photo_url for hazards.

    Attributes:
        id: Point identifier
        trip_id: Parent trip (may dangle or be None)
        type: Point type, None when the stored value is outside the closed set
        latitude, longitude: Coordinate, None when absent or malformed
        created_at: Creation time, None when absent or unparseable
        adults, calves: Sighting counts
        danger_type: Hazard category
        health_status: Health status reported with a hazard
        photo_url: Absolute URL or storage object path

    Example:
        >>> p = ObservationPoint.from_dict({
        ...     'id': '1', 'trip_id': 't1', 'type': 'Avistamiento',
        ...     'latitude': -14.5, 'longitude': -65.0,
        ...     'created_at': '2024-01-01T10:00:00Z', 'adults': 2, 'calves': 1,
        ... })
        >>> p.type
        <PointType.SIGHTING: 'Avistamiento'>
    """
    id: str
    trip_id: Optional[str] = None
    type: Optional[PointType] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    created_at: Optional[datetime] = None
    adults: Optional[int] = None
    calves: Optional[int] = None
    danger_type: Optional[str] = None
    health_status: Optional[str] = None
    photo_url: Optional[str] = None

    @property
    def has_coordinate(self) -> bool:
        return self.latitude is not None and self.longitude is not None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'trip_id': self.trip_id,
            'type': self.type.value if self.type is not None else None,
            'latitude': self.latitude,
            'longitude': self.longitude,
            'created_at': format_timestamp(self.created_at),
            'adults': self.adults,
            'calves': self.calves,
            'danger_type': self.danger_type,
            'health_status': self.health_status,
            'photo_url': self.photo_url,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ObservationPoint':
        """Deserialize from a store row.

        Raises:
            ValueError: If the identifier is missing
        """
        return cls(
            id=_require_id(data, 'ObservationPoint'),
            trip_id=optional_str(data.get('trip_id')),
            type=PointType.parse(data.get('type')),
            latitude=optional_float(data.get('latitude')),
            longitude=optional_float(data.get('longitude')),
            created_at=parse_timestamp(data.get('created_at')),
            adults=optional_int(data.get('adults')),
            calves=optional_int(data.get('calves')),
            danger_type=optional_str(data.get('danger_type')),
            health_status=optional_str(data.get('health_status')),
            photo_url=optional_str(data.get('photo_url')) or None,
        )


ENTITY_TYPES = {
    EntityKind.USERS: UserProfile,
    EntityKind.TRIPS: Trip,
    EntityKind.POINTS: ObservationPoint,
}
