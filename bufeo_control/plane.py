"""
MQTTControlPlane - Control channel for the dashboard session

Bounded Context: Filter/UI command reception + status publishing
Responsibilities:
  - MQTT connection lifecycle (connect, disconnect)
  - Command reception (subscribe to command topic)
  - Status publishing (retained, on status topic)
  - Command delegation to CommandRegistry

Command payload:
  {"command": "set_user", "user_id": "..."}

QoS Policy:
  - Commands: QoS 1 (at-least-once delivery)
  - Status: QoS 1 + retained (last status persisted)

Threading:
  - paho-mqtt runs its own network thread (loop_start/loop_stop)
  - Command handlers run in that thread and must stay fast; the monitor
    service only enqueues there
"""

import json
import logging
from datetime import datetime, timezone
from threading import Event
from typing import Any, Dict, Optional

import paho.mqtt.client as mqtt

from .registry import CommandRegistry, CommandNotAvailableError

logger = logging.getLogger(__name__)


class MQTTControlPlane:
    """
    MQTT Control Plane for receiving commands and publishing status.

    Example:
        control_plane = MQTTControlPlane(
            broker_host="localhost",
            broker_port=1883,
            command_topic="bufeo/control/commands",
            status_topic="bufeo/control/status",
            client_id="bufeo_monitor"
        )
        control_plane.command_registry.register('refresh', service.refresh, "Reload data")
        if control_plane.connect(timeout=5.0):
            ...
        control_plane.disconnect()
    """

    def __init__(
        self,
        broker_host: str,
        broker_port: int,
        command_topic: str,
        status_topic: str,
        client_id: str,
        username: Optional[str] = None,
        password: Optional[str] = None,
    ):
        self.broker_host = broker_host
        self.broker_port = broker_port
        self.command_topic = command_topic
        self.status_topic = status_topic
        self.client_id = client_id

        self.client = mqtt.Client(
            mqtt.CallbackAPIVersion.VERSION2,
            client_id=client_id,
            protocol=mqtt.MQTTv311,
        )
        self.client.on_connect = self._on_connect
        self.client.on_message = self._on_message
        self.client.on_disconnect = self._on_disconnect

        if username and password:
            self.client.username_pw_set(username, password)

        self._connected = Event()
        self._running = False

        self.command_registry = CommandRegistry()

    def connect(self, timeout: float = 5.0) -> bool:
        """
        Connect to MQTT broker with timeout.

        Returns:
            True if connected successfully, False otherwise
        """
        try:
            logger.info(f"Connecting control plane to {self.broker_host}:{self.broker_port}")
            self.client.connect(self.broker_host, self.broker_port, keepalive=60)
            self.client.loop_start()
            self._running = True

            if self._connected.wait(timeout=timeout):
                logger.info("Control plane connected")
                return True
            logger.error(f"Control plane connection timeout after {timeout}s")
            return False

        except Exception as e:
            logger.error(f"Error connecting control plane: {e}")
            return False

    def disconnect(self) -> None:
        """Disconnect from MQTT broker. Safe to call multiple times."""
        if self._running:
            self.publish_status("disconnected")
            self.client.loop_stop()
            self.client.disconnect()
            self._running = False
            self._connected.clear()
            logger.info("Control plane disconnected")

    def publish_status(self, status: str, details: Optional[Dict[str, Any]] = None) -> None:
        """Publish a retained status message."""
        message = {
            "status": status,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "client_id": self.client_id,
        }
        if details:
            message["details"] = details

        try:
            self.client.publish(
                self.status_topic,
                json.dumps(message, default=str),
                qos=1,
                retain=True,
            )
            logger.debug(f"Status published: {status}")
        except Exception as e:
            logger.error(f"Error publishing status: {e}")

    # ===== MQTT Callbacks (run in MQTT thread) =====

    def _on_connect(self, client, userdata, flags, reason_code, properties):
        if reason_code.is_failure:
            logger.error(f"Control plane connection failed (rc={reason_code})")
            self._connected.clear()
            return

        client.subscribe(self.command_topic, qos=1)
        logger.info(f"Subscribed to commands on {self.command_topic}")
        self.publish_status("connected")
        self._connected.set()

    def _on_disconnect(self, client, userdata, flags, reason_code, properties):
        if reason_code.is_failure:
            logger.warning(f"Unexpected control plane disconnection (rc={reason_code})")
        self._connected.clear()

    def _on_message(self, client, userdata, msg):
        self.handle_payload(msg.payload)

    def handle_payload(self, payload: bytes) -> bool:
        """
        Decode one command message and execute it.

        Returns:
            True if a registered command ran without error
        """
        try:
            command_data = json.loads(payload.decode('utf-8'))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            logger.error(f"Error decoding command payload {payload!r}: {e}")
            return False

        if not isinstance(command_data, dict):
            logger.warning(f"Command payload must be a JSON object, got {command_data!r}")
            return False

        command = str(command_data.get('command', '')).strip().lower()
        if not command:
            logger.warning("Empty command received")
            return False

        try:
            self.command_registry.execute(command, command_data)
        except CommandNotAvailableError as e:
            logger.warning(str(e))
            return False
        except Exception as e:
            logger.error(f"Command '{command}' failed: {e}", exc_info=True)
            return False

        logger.debug(f"Command '{command}' executed")
        return True
