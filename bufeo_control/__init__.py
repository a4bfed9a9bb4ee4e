"""
bufeo_control - Control channel for the dashboard session

Filter edits and UI toggles reach the session as MQTT commands, so the map
client stays a thin presentation layer.

Components:
- MQTTControlPlane: connection, command reception, retained status
- CommandRegistry: explicit command registration
"""

from .plane import MQTTControlPlane
from .registry import CommandRegistry, CommandNotAvailableError

__all__ = [
    "MQTTControlPlane",
    "CommandRegistry",
    "CommandNotAvailableError",
]
