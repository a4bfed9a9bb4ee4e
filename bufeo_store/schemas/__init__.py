"""
Bufeo Store Schemas
===================

Bounded Context: Data Structures

Immutable, typed records for the rows served by the data store.

Design:
- Frozen dataclasses (immutability)
- from_dict() for deserialization (lenient on optional fields)
- to_dict() for JSON serialization

Public API
----------
Common Types:
    EntityKind: users / trips / points
    parse_timestamp: ISO 8601 parsing (UTC default)

Entity Types:
    PointType: Enum (START, END, SIGHTING, HAZARD)
    UserProfile, Trip, ObservationPoint

Example:
    >>> from bufeo_store.schemas import ObservationPoint, PointType
    >>> point = ObservationPoint(id="p1", trip_id="t1", type=PointType.HAZARD,
    ...                          danger_type="net")
"""

from .common import EntityKind, parse_timestamp, short_id
from .entities import (
    ALL_POINT_TYPES,
    ENTITY_TYPES,
    ObservationPoint,
    PointType,
    Trip,
    UserProfile,
)

__all__ = [
    # Common types
    'EntityKind',
    'parse_timestamp',
    'short_id',
    # Entity types
    'PointType',
    'ALL_POINT_TYPES',
    'ENTITY_TYPES',
    'UserProfile',
    'Trip',
    'ObservationPoint',
]
