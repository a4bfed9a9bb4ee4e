"""
Structured Log Event Types
==========================

Bounded Context: Observability Event Taxonomy

Typed event names for structured logging.

Event Naming Convention:
    <component>.<category>.<action>

    component: store, mqtt, session, view, error

Example Log Query (CloudWatch Insights):
    fields @timestamp, event, message, metadata.kind
    | filter event = "store.fetch.failed"
    | stats count() by bin(5m)
"""

from enum import Enum


class LogEvent(str, Enum):
    """
    Typed log event names for structured logging.

    Categories:
    - store.*: Bulk fetches against the data store
    - mqtt.*: Broker interactions (push channel, view publishing)
    - session.*: Session state transitions
    - view.*: Dashboard view recomputation
    - error.*: Error conditions
    """

    # ========== Store Events ==========
    STORE_FETCH_SUCCESS = "store.fetch.success"
    """Bulk fetch of one entity kind completed."""

    STORE_FETCH_FAILED = "store.fetch.failed"
    """Bulk fetch failed; collection treated as empty."""

    STORE_RECORD_SKIPPED = "store.record.skipped"
    """Fetched row could not be parsed and was skipped."""

    # ========== MQTT Events ==========
    MQTT_CONNECTED = "mqtt.connected"
    """MQTT broker connection established."""

    MQTT_DISCONNECTED = "mqtt.disconnected"
    """MQTT broker connection lost."""

    MQTT_SUBSCRIBED = "mqtt.subscribed"
    """Push channel subscription opened."""

    MQTT_UNSUBSCRIBED = "mqtt.unsubscribed"
    """Push channel subscription released."""

    MQTT_PUBLISH_SUCCESS = "mqtt.publish.success"
    """Message successfully published to broker."""

    MQTT_PUBLISH_FAILED = "mqtt.publish.failed"
    """Message publication failed."""

    # ========== Session Events ==========
    INSERT_RECEIVED = "session.insert.received"
    """Insert notification received on the push channel."""

    INSERT_DUPLICATE = "session.insert.duplicate"
    """Insert ignored because the identifier is already present."""

    COLLECTION_LOADED = "session.collection.loaded"
    """A collection was replaced by a bulk fetch."""

    # ========== View Events ==========
    VIEW_RECOMPUTED = "view.recomputed"
    """Filtered points and statistics recomputed."""

    VIEW_PUBLISHED = "view.published"
    """Dashboard view published for the presentation layer."""

    # ========== Error Events ==========
    SERIALIZATION_ERROR = "error.serialization"
    """Failed to serialize message to JSON."""

    DESERIALIZATION_ERROR = "error.deserialization"
    """Failed to deserialize message from JSON."""

    SCHEMA_VALIDATION_ERROR = "error.schema_validation"
    """Record failed schema validation."""

    MQTT_CONNECTION_ERROR = "error.mqtt_connection"
    """Failed to connect to MQTT broker."""

    MQTT_PUBLISH_ERROR = "error.mqtt_publish"
    """Error during message publication."""

