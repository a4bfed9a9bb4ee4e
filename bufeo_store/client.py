"""
Data Store Client
=================

Bounded Context: Remote Data Access

Request/response access to the three collections plus the insert-only push
channel.

Responsibilities:
- fetch_all(kind): one bulk query per entity kind (PostgREST-style REST API)
- subscribe(kind, on_insert) / unsubscribe(handle): push channel over MQTT
- public_photo_url(path, bucket): storage URL for hazard photos

Error Policy:
- Any failure of a bulk fetch is a FetchFailure. It is caught at the fetch,
  logged, and the collection is returned empty. No retries.
- Rows that fail schema validation are logged and skipped.

Example:
    >>> client = DataStoreClient(store_config, subscriber, logger)
    >>> trips = client.fetch_all(EntityKind.TRIPS)
    >>> with client.subscription(EntityKind.POINTS, on_point):
    ...     run_session()
"""

import itertools
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence
from urllib.parse import quote

import requests

from .logging import StructuredLogger, LogEvent
from .schemas import ENTITY_TYPES, EntityKind
from .subscriber import InsertSubscriber


class FetchFailure(Exception):
    """Raised when a bulk load of one collection did not complete"""
    pass


@dataclass(frozen=True)
class SubscriptionHandle:
    """Opaque token returned by subscribe(); release it with unsubscribe()."""
    key: str
    kind: EntityKind


class DataStoreClient:
    """
    Client for the remote data store.

    Attributes:
        rest_url: Base URL of the store (REST endpoint under /rest/v1)
        tables: Mapping entity kind -> table name
        subscriber: Push channel (None disables subscriptions)
        logger: Structured logger instance

    Thread Safety:
        fetch_all() is stateless. Handle bookkeeping is protected by a lock.
    """

    def __init__(
        self,
        rest_url: str,
        api_key: str,
        tables: Dict[EntityKind, str],
        logger: StructuredLogger,
        subscriber: Optional[InsertSubscriber] = None,
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
    ):
        """
        Initialize data store client.

        Args:
            rest_url: Base URL of the store (e.g. https://xyz.supabase.co)
            api_key: API key sent as apikey and bearer token
            tables: Table name for each entity kind
            logger: Structured logger
            subscriber: Push channel for insert notifications
            timeout: HTTP timeout in seconds
            session: Optional requests session (connection reuse, tests)
        """
        self.rest_url = rest_url.rstrip('/')
        self.api_key = api_key
        self.tables = dict(tables)
        self.logger = logger
        self.subscriber = subscriber
        self.timeout = timeout
        self.session = session or requests.Session()

        self._handles: Dict[str, SubscriptionHandle] = {}
        self._handle_ids = itertools.count(1)
        self._lock = threading.Lock()

    # ===== Request / response =====

    def _headers(self) -> Dict[str, str]:
        return {
            'apikey': self.api_key,
            'Authorization': f"Bearer {self.api_key}",
            'Accept': 'application/json',
        }

    def _query_params(self, kind: EntityKind) -> Dict[str, str]:
        params = {'select': '*'}
        if kind == EntityKind.TRIPS:
            # Newest trips first, as shown in the trip selector
            params['order'] = 'start_time.desc'
        return params

    def _get_rows(self, kind: EntityKind) -> List[Dict[str, Any]]:
        """
        Run the bulk query for one kind.

        Raises:
            FetchFailure: On transport, HTTP status or payload errors
        """
        url = f"{self.rest_url}/rest/v1/{self.tables[kind]}"
        try:
            response = self.session.get(
                url,
                headers=self._headers(),
                params=self._query_params(kind),
                timeout=self.timeout,
            )
            response.raise_for_status()
            rows = response.json()
        except requests.exceptions.RequestException as e:
            raise FetchFailure(f"Request for '{kind.value}' failed: {e}") from e
        except ValueError as e:
            raise FetchFailure(f"Response for '{kind.value}' is not JSON: {e}") from e

        if not isinstance(rows, list):
            raise FetchFailure(
                f"Response for '{kind.value}' is not a list (got {type(rows).__name__})"
            )
        return rows

    def fetch_all(self, kind: EntityKind) -> list:
        """
        Fetch every record of one entity kind.

        Returns:
            List of typed entities; empty on FetchFailure
        """
        kind = EntityKind(kind)
        try:
            rows = self._get_rows(kind)
        except FetchFailure as e:
            self.logger.error(
                event=LogEvent.STORE_FETCH_FAILED,
                message="Bulk fetch failed, collection left empty",
                exc_info=e,
                metadata={'kind': kind.value, 'table': self.tables[kind]}
            )
            return []

        entity_type = ENTITY_TYPES[kind]
        entities = []
        for row in rows:
            try:
                entities.append(entity_type.from_dict(row))
            except ValueError as e:
                self.logger.warning(
                    event=LogEvent.STORE_RECORD_SKIPPED,
                    message="Skipping malformed row",
                    metadata={'kind': kind.value, 'error': str(e)}
                )

        self.logger.info(
            event=LogEvent.STORE_FETCH_SUCCESS,
            message=f"Fetched {kind.value}",
            metadata={'kind': kind.value, 'count': len(entities), 'skipped': len(rows) - len(entities)}
        )
        return entities

    # ===== Push channel =====

    def subscribe(self, kind: EntityKind, on_insert: Callable[[Any], None]) -> SubscriptionHandle:
        """
        Open an insert subscription for one entity kind.

        The returned handle must be passed to unsubscribe() exactly once.

        Raises:
            RuntimeError: If the client has no push channel
        """
        if self.subscriber is None:
            raise RuntimeError("DataStoreClient has no push channel configured")

        kind = EntityKind(kind)
        handle = SubscriptionHandle(key=f"{kind.value}-{next(self._handle_ids)}", kind=kind)
        self.subscriber.add_listener(handle.key, kind, on_insert)
        with self._lock:
            self._handles[handle.key] = handle
        return handle

    def unsubscribe(self, handle: SubscriptionHandle) -> None:
        """
        Release a subscription.

        Raises:
            ValueError: If the handle is unknown or already released
        """
        with self._lock:
            if self._handles.pop(handle.key, None) is None:
                raise ValueError(f"Subscription '{handle.key}' is not active")
        self.subscriber.remove_listener(handle.key)

    @contextmanager
    def subscription(self, kind: EntityKind, on_insert: Callable[[Any], None]) -> Iterator[SubscriptionHandle]:
        """Scoped subscription: released on exit, even on error."""
        handle = self.subscribe(kind, on_insert)
        try:
            yield handle
        finally:
            self.unsubscribe(handle)

    def active_subscriptions(self) -> List[SubscriptionHandle]:
        with self._lock:
            return list(self._handles.values())

    # ===== Storage =====

    def public_photo_url(self, path: str, bucket: str) -> str:
        """Public URL of an object in a storage bucket."""
        return f"{self.rest_url}/storage/v1/object/public/{bucket}/{quote(path.lstrip('/'))}"

    def photo_urls(self, path: str, buckets: Sequence[str]) -> List[str]:
        """
        Candidate URLs for a stored photo, in bucket order.

        Absolute URLs are returned as they are.

        Example:
            >>> client.photo_urls("trips/t2/p4.jpg", ["bufeo_photos", "photos"])[0]
            'https://xyz.supabase.co/storage/v1/object/public/bufeo_photos/trips/t2/p4.jpg'
        """
        if path.startswith('http'):
            return [path]
        return [self.public_photo_url(path, bucket) for bucket in buckets if bucket]
