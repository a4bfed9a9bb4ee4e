"""
Configuration schema for the monitor service.

This module defines the configuration of the dashboard session: where the
data store lives, which broker carries the push channel, control commands
and published views, and how dates are displayed and filtered.
"""

import os
from dataclasses import dataclass, field
from datetime import tzinfo
from pathlib import Path
from typing import Dict, Optional, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml

from bufeo_store.schemas import EntityKind
from bufeo_pipeline.analytics import ChartMode
from bufeo_pipeline.view import BaseMap

API_KEY_ENV = "BUFEO_API_KEY"


@dataclass(frozen=True)
class StoreConfig:
    """Remote data store (REST API + storage buckets)."""

    rest_url: str
    api_key: str = ""
    profiles_table: str = "profiles"
    trips_table: str = "trips"
    points_table: str = "trip_data"
    photo_bucket: str = "bufeo_photos"
    fallback_photo_bucket: Optional[str] = "photos"
    timeout: float = 10.0

    def __post_init__(self):
        """Validate store configuration."""
        if not self.rest_url:
            raise ValueError("store.rest_url cannot be empty")

        if not self.rest_url.startswith(("http://", "https://")):
            raise ValueError(
                f"store.rest_url must be an http(s) URL, got {self.rest_url}"
            )

        for name in ("profiles_table", "trips_table", "points_table", "photo_bucket"):
            if not getattr(self, name):
                raise ValueError(f"store.{name} cannot be empty")

        if self.timeout <= 0:
            raise ValueError(f"store.timeout must be > 0, got {self.timeout}")

    @property
    def tables(self) -> Dict[EntityKind, str]:
        return {
            EntityKind.USERS: self.profiles_table,
            EntityKind.TRIPS: self.trips_table,
            EntityKind.POINTS: self.points_table,
        }

    @property
    def photo_buckets(self) -> Tuple[str, ...]:
        """Buckets tried for a photo path, primary first."""
        return tuple(bucket for bucket in (self.photo_bucket, self.fallback_photo_bucket) if bucket)


@dataclass(frozen=True)
class MQTTConfig:
    """MQTT broker configuration (push channel, control, view)."""

    broker: str = "localhost"
    port: int = 1883
    username: Optional[str] = None
    password: Optional[str] = None
    qos: int = 1
    topic_prefix: str = "bufeo"

    def __post_init__(self):
        """Validate MQTT configuration."""
        if not self.broker:
            raise ValueError("mqtt.broker cannot be empty")

        if not 1 <= self.port <= 65535:
            raise ValueError(
                f"MQTT port must be in [1, 65535], got {self.port}"
            )

        if self.qos not in {0, 1, 2}:
            raise ValueError(
                f"MQTT QoS must be 0, 1, or 2, got {self.qos}"
            )

        if not self.topic_prefix or self.topic_prefix.endswith("/"):
            raise ValueError(
                f"mqtt.topic_prefix must be non-empty without trailing '/', got {self.topic_prefix!r}"
            )

    def insert_topic(self, table: str) -> str:
        return f"{self.topic_prefix}/inserts/{table}"

    @property
    def command_topic(self) -> str:
        return f"{self.topic_prefix}/control/commands"

    @property
    def status_topic(self) -> str:
        return f"{self.topic_prefix}/control/status"

    @property
    def view_topic(self) -> str:
        return f"{self.topic_prefix}/view"


@dataclass(frozen=True)
class DisplayConfig:
    """Timezone for day boundaries and labels, plus initial UI state."""

    timezone: str = "UTC"
    default_chart: str = "danger"
    default_base_map: str = "streets"

    def __post_init__(self):
        """Validate display configuration."""
        try:
            ZoneInfo(self.timezone)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"Unknown timezone: {self.timezone}") from e

        valid_charts = {mode.value for mode in ChartMode}
        if self.default_chart not in valid_charts:
            raise ValueError(
                f"Invalid default_chart: {self.default_chart}. "
                f"Must be one of {valid_charts}"
            )

        valid_maps = {base_map.value for base_map in BaseMap}
        if self.default_base_map not in valid_maps:
            raise ValueError(
                f"Invalid default_base_map: {self.default_base_map}. "
                f"Must be one of {valid_maps}"
            )

    @property
    def tzinfo(self) -> tzinfo:
        return ZoneInfo(self.timezone)


@dataclass(frozen=True)
class MonitorConfig:
    """
    Main configuration for the monitor service.

    Loaded from YAML and validated at startup; immutable afterwards.
    """

    store: StoreConfig
    session_id: str = "dashboard"
    mqtt: MQTTConfig = field(default_factory=MQTTConfig)
    display: DisplayConfig = field(default_factory=DisplayConfig)

    def __post_init__(self):
        if not self.session_id:
            raise ValueError("session_id cannot be empty")

    @classmethod
    def from_dict(cls, data: dict) -> "MonitorConfig":
        """
        Build configuration from a parsed YAML mapping.

        The store API key falls back to the BUFEO_API_KEY environment variable.
        """
        if not isinstance(data, dict):
            raise ValueError("Configuration must be a mapping")
        if "store" not in data:
            raise ValueError("Missing required section: store")

        store_data = dict(data["store"] or {})
        if not store_data.get("api_key"):
            store_data["api_key"] = os.environ.get(API_KEY_ENV, "")

        return cls(
            store=StoreConfig(**store_data),
            session_id=data.get("session_id", "dashboard"),
            mqtt=MQTTConfig(**(data.get("mqtt") or {})),
            display=DisplayConfig(**(data.get("display") or {})),
        )

    @classmethod
    def from_yaml(cls, yaml_path: Path) -> "MonitorConfig":
        """
        Load configuration from YAML file.

        Example YAML:
            session_id: "dashboard"

            store:
              rest_url: "https://example.supabase.co"
              api_key: null            # or BUFEO_API_KEY
              profiles_table: "profiles"
              trips_table: "trips"
              points_table: "trip_data"
              photo_bucket: "bufeo_photos"
              fallback_photo_bucket: "photos"

            mqtt:
              broker: "localhost"
              port: 1883
              topic_prefix: "bufeo"

            display:
              timezone: "America/La_Paz"
              default_chart: "danger"
              default_base_map: "streets"
        """
        with open(yaml_path) as f:
            data = yaml.safe_load(f)

        return cls.from_dict(data or {})
