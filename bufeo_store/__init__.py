"""
Bufeo Store Package
===================

Bounded Context: Remote data access for the observation dashboard

This package is the Data Store Client side of the dashboard: it loads users,
trips and observation points from the remote store, receives insert
notifications over the push channel, and publishes recomputed views.

Architecture:
- schemas/: Immutable entity records with lenient deserialization
- client.py: Bulk fetch (REST) + subscribe/unsubscribe handles
- subscriber.py: MQTT insert subscriber (push channel)
- publishers/: View publisher for the presentation layer
- logging/: Structured JSON logging

Public API
----------
Schemas:
    EntityKind, PointType, UserProfile, Trip, ObservationPoint

Client:
    DataStoreClient, SubscriptionHandle, FetchFailure, InsertSubscriber

Publishers:
    BasePublisher, ViewPublisher

Logging:
    LogEvent, StructuredLogger, create_logger

Example:
    >>> from bufeo_store import DataStoreClient, EntityKind, create_logger
    >>> logger = create_logger("store")
    >>> client = DataStoreClient(
    ...     rest_url="https://example.supabase.co",
    ...     api_key="anon-key",
    ...     tables={EntityKind.USERS: "profiles",
    ...             EntityKind.TRIPS: "trips",
    ...             EntityKind.POINTS: "trip_data"},
    ...     logger=logger,
    ... )
    >>> points = client.fetch_all(EntityKind.POINTS)
"""

__version__ = "1.0.0"

from .schemas import (
    ALL_POINT_TYPES,
    EntityKind,
    ObservationPoint,
    PointType,
    Trip,
    UserProfile,
)
from .client import DataStoreClient, FetchFailure, SubscriptionHandle
from .subscriber import InsertSubscriber
from .publishers import BasePublisher, ViewPublisher
from .logging import LogEvent, StructuredLogger, create_logger

__all__ = [
    '__version__',
    # Schemas
    'ALL_POINT_TYPES',
    'EntityKind',
    'PointType',
    'UserProfile',
    'Trip',
    'ObservationPoint',
    # Client
    'DataStoreClient',
    'FetchFailure',
    'SubscriptionHandle',
    'InsertSubscriber',
    # Publishers
    'BasePublisher',
    'ViewPublisher',
    # Logging
    'LogEvent',
    'StructuredLogger',
    'create_logger',
]
