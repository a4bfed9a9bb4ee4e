"""
bufeo_monitor - Live dashboard session

Wires the data store client, the pipeline and the control plane into one
long-running session that republishes the dashboard view on every change.

Components:
- MonitorConfig: YAML configuration (store, MQTT, display)
- MonitorService: single-writer session loop
- create_store_client: DataStoreClient factory from configuration
"""

from .config import DisplayConfig, MonitorConfig, MQTTConfig, StoreConfig
from .service import ControlCommand, MonitorService, create_store_client

__all__ = [
    "MonitorConfig",
    "StoreConfig",
    "MQTTConfig",
    "DisplayConfig",
    "MonitorService",
    "ControlCommand",
    "create_store_client",
]
