"""
Insert Subscriber
=================

Bounded Context: Push Channel Consumption

Receives insert notifications for users, trips and observation points from
the MQTT broker and hands typed entities to registered listeners.

Design:
- One topic per entity kind (routing by topic)
- Listener-based architecture (callbacks run in the MQTT thread)
- Automatic deserialization with error handling (malformed payloads are
  logged, never raised)
- Topics are (re)subscribed on every connect, so reconnects keep routing

Architecture:
    MQTT Broker -> InsertSubscriber -> listeners -> session queue

Payloads:
    Either the inserted row itself or a change envelope {"new": row, ...}.

Example:
    >>> subscriber = InsertSubscriber(
    ...     broker_host="localhost",
    ...     topics={EntityKind.POINTS: "bufeo/inserts/trip_data"},
    ...     logger=create_logger("subscriber"),
    ... )
    >>> subscriber.add_listener("h1", EntityKind.POINTS, print)
    >>> subscriber.connect()
    >>> # ... later
    >>> subscriber.stop()
"""

import json
import threading
from typing import Any, Callable, Dict, Optional, Tuple

import paho.mqtt.client as mqtt

from .logging import StructuredLogger, LogEvent
from .schemas import ENTITY_TYPES, EntityKind

Listener = Callable[[Any], None]


class InsertSubscriber:
    """
    MQTT subscriber for insert notifications.

    Attributes:
        broker_host: MQTT broker hostname
        broker_port: MQTT broker port
        topics: Mapping entity kind -> topic
        client_id: MQTT client identifier
        logger: Structured logger instance

    Thread Safety:
        Listener registration is protected by a lock; listeners are invoked
        in the paho-mqtt network thread and must stay fast.
    """

    def __init__(
        self,
        broker_host: str,
        topics: Dict[EntityKind, str],
        logger: StructuredLogger,
        broker_port: int = 1883,
        client_id: str = "bufeo_subscriber",
        username: Optional[str] = None,
        password: Optional[str] = None,
        qos: int = 1
    ):
        """
        Initialize MQTT subscriber.

        Args:
            broker_host: MQTT broker hostname
            topics: Topic for each entity kind
            logger: Structured logger instance
            broker_port: MQTT broker port (default: 1883)
            client_id: MQTT client ID
            username: MQTT auth username (optional)
            password: MQTT auth password (optional)
            qos: Quality of Service (default: 1, at-least-once)
        """
        self.broker_host = broker_host
        self.broker_port = broker_port
        self.topics = dict(topics)
        self.client_id = client_id
        self.logger = logger
        self.qos = qos

        self._kind_by_topic = {topic: kind for kind, topic in self.topics.items()}

        # MQTT client setup
        self.client = mqtt.Client(mqtt.CallbackAPIVersion.VERSION2, client_id=client_id)
        if username and password:
            self.client.username_pw_set(username, password)

        self.client.on_connect = self._on_connect
        self.client.on_disconnect = self._on_disconnect
        self.client.on_message = self._on_message

        # State
        self._connected = threading.Event()
        self._running = False
        self._lock = threading.Lock()
        self._listeners: Dict[str, Tuple[EntityKind, Listener]] = {}
        self._message_count = {kind.value: 0 for kind in EntityKind}

    # ===== Listener registration =====

    def add_listener(self, key: str, kind: EntityKind, listener: Listener) -> None:
        """
        Register a listener for inserts of one entity kind.

        Raises:
            ValueError: If the key is already registered or the kind has no topic
        """
        kind = EntityKind(kind)
        if kind not in self.topics:
            raise ValueError(f"No topic configured for entity kind '{kind.value}'")

        with self._lock:
            if key in self._listeners:
                raise ValueError(f"Listener '{key}' already registered")
            first_for_kind = not self._has_listener(kind)
            self._listeners[key] = (kind, listener)

        if first_for_kind and self._connected.is_set():
            self.client.subscribe(self.topics[kind], qos=self.qos)

        self.logger.info(
            event=LogEvent.MQTT_SUBSCRIBED,
            message="Listener registered",
            metadata={'kind': kind.value, 'topic': self.topics[kind], 'key': key}
        )

    def remove_listener(self, key: str) -> None:
        """
        Remove a listener.

        Raises:
            ValueError: If the key is not registered
        """
        with self._lock:
            if key not in self._listeners:
                raise ValueError(f"Listener '{key}' not registered")
            kind, _ = self._listeners.pop(key)
            last_for_kind = not self._has_listener(kind)

        if last_for_kind and self._connected.is_set():
            self.client.unsubscribe(self.topics[kind])

        self.logger.info(
            event=LogEvent.MQTT_UNSUBSCRIBED,
            message="Listener removed",
            metadata={'kind': kind.value, 'topic': self.topics[kind], 'key': key}
        )

    def listener_count(self) -> int:
        with self._lock:
            return len(self._listeners)

    def _has_listener(self, kind: EntityKind) -> bool:
        return any(k == kind for k, _ in self._listeners.values())

    # ===== MQTT Callbacks (run in MQTT thread) =====

    def _on_connect(self, client, userdata, flags, reason_code, properties) -> None:
        """Subscribe to the topic of every kind that has a listener."""
        if reason_code.is_failure:
            self.logger.error(
                event=LogEvent.MQTT_CONNECTION_ERROR,
                message=f"Failed to connect to broker (rc={reason_code})",
                metadata={'broker': f"{self.broker_host}:{self.broker_port}"}
            )
            return

        with self._lock:
            kinds = {kind for kind, _ in self._listeners.values()}
        for kind in kinds:
            client.subscribe(self.topics[kind], qos=self.qos)

        self._connected.set()
        self.logger.info(
            event=LogEvent.MQTT_CONNECTED,
            message="Connected to MQTT broker",
            metadata={
                'broker': f"{self.broker_host}:{self.broker_port}",
                'topics': sorted(self.topics[kind] for kind in kinds)
            }
        )

    def _on_disconnect(self, client, userdata, flags, reason_code, properties) -> None:
        self._connected.clear()
        self.logger.warning(
            event=LogEvent.MQTT_DISCONNECTED,
            message="Disconnected from MQTT broker",
            metadata={
                'broker': f"{self.broker_host}:{self.broker_port}",
                'reason_code': str(reason_code)
            }
        )

    def _on_message(self, client, userdata, msg: mqtt.MQTTMessage) -> None:
        """Decode JSON and route by topic."""
        try:
            data = json.loads(msg.payload.decode('utf-8'))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            self.logger.error(
                event=LogEvent.DESERIALIZATION_ERROR,
                message="Failed to decode JSON message",
                exc_info=e,
                metadata={'topic': msg.topic}
            )
            return

        kind = self._kind_by_topic.get(msg.topic)
        if kind is None:
            self.logger.warning(
                event=LogEvent.DESERIALIZATION_ERROR,
                message=f"Received message from unknown topic: {msg.topic}"
            )
            return

        self._handle_insert(kind, data)

    def _handle_insert(self, kind: EntityKind, data: Any) -> None:
        """
        Deserialize one insert notification and invoke the kind's listeners.

        Args:
            kind: Entity kind the topic belongs to
            data: Decoded JSON (row or {"new": row} envelope)
        """
        kind = EntityKind(kind)
        row = data.get('new') if isinstance(data, dict) and isinstance(data.get('new'), dict) else data

        try:
            entity = ENTITY_TYPES[kind].from_dict(row)
        except ValueError as e:
            self.logger.error(
                event=LogEvent.SCHEMA_VALIDATION_ERROR,
                message=f"Insert for '{kind.value}' failed schema validation",
                exc_info=e,
                metadata={'data': row}
            )
            return

        with self._lock:
            self._message_count[kind.value] += 1
            listeners = [listener for k, listener in self._listeners.values() if k == kind]

        self.logger.info(
            event=LogEvent.INSERT_RECEIVED,
            message="Received insert notification",
            metadata={'kind': kind.value, 'id': entity.id}
        )

        for listener in listeners:
            try:
                listener(entity)
            except Exception as e:
                self.logger.error(
                    event=LogEvent.DESERIALIZATION_ERROR,
                    message="Listener failed while handling insert",
                    exc_info=e,
                    metadata={'kind': kind.value, 'id': entity.id}
                )

    # ===== Lifecycle =====

    def connect(self, timeout: float = 10.0) -> bool:
        """
        Connect to the broker and start the network loop.

        Returns:
            True if connected within the timeout, False otherwise
        """
        try:
            self.client.connect(self.broker_host, self.broker_port)
            self.client.loop_start()
            self._running = True

            if self._connected.wait(timeout=timeout):
                return True
            self.logger.error(
                event=LogEvent.MQTT_CONNECTION_ERROR,
                message="Connection timeout",
                metadata={'timeout': timeout}
            )
            return False

        except Exception as e:
            self.logger.error(
                event=LogEvent.MQTT_CONNECTION_ERROR,
                message="Failed to connect to broker",
                exc_info=e,
                metadata={'broker': f"{self.broker_host}:{self.broker_port}"}
            )
            return False

    def stop(self) -> None:
        """Stop the network loop and disconnect."""
        if self._running:
            self.client.loop_stop()
            self.client.disconnect()
            self._running = False
        self._connected.clear()

        self.logger.info(
            event=LogEvent.MQTT_DISCONNECTED,
            message="Subscriber stopped",
            metadata=self.get_stats()
        )

    def is_connected(self) -> bool:
        return self._connected.is_set()

    def is_running(self) -> bool:
        return self._running

    def get_stats(self) -> dict:
        """
        Get subscriber statistics.

        Example:
            >>> subscriber.get_stats()['received']['points']
            12
        """
        with self._lock:
            return {
                'received': dict(self._message_count),
                'listeners': len(self._listeners),
                'connected': self._connected.is_set(),
                'running': self._running,
                'broker': f"{self.broker_host}:{self.broker_port}"
            }
