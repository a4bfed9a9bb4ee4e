"""
Test Monitor Configuration
==========================

Usage:
    pytest test_config.py
"""

from pathlib import Path

import pytest

from bufeo_store import EntityKind
from bufeo_monitor import MonitorConfig, MQTTConfig, StoreConfig
from bufeo_monitor.config import API_KEY_ENV, DisplayConfig

EXAMPLE_CONFIG = Path(__file__).parent / "config" / "monitor_config.yaml"


def test_minimal_config_uses_defaults(monkeypatch):
    monkeypatch.delenv(API_KEY_ENV, raising=False)

    config = MonitorConfig.from_dict({'store': {'rest_url': 'https://store.example.org'}})

    assert config.session_id == "dashboard"
    assert config.store.api_key == ""
    assert config.store.tables == {
        EntityKind.USERS: "profiles",
        EntityKind.TRIPS: "trips",
        EntityKind.POINTS: "trip_data",
    }
    assert config.mqtt.broker == "localhost"
    assert config.display.timezone == "UTC"


def test_api_key_falls_back_to_environment(monkeypatch):
    monkeypatch.setenv(API_KEY_ENV, "env-key")

    from_env = MonitorConfig.from_dict({'store': {'rest_url': 'https://s.example.org', 'api_key': None}})
    explicit = MonitorConfig.from_dict({'store': {'rest_url': 'https://s.example.org', 'api_key': 'yaml-key'}})

    assert from_env.store.api_key == "env-key"
    assert explicit.store.api_key == "yaml-key"


def test_topics_derive_from_prefix():
    mqtt = MQTTConfig(topic_prefix="rivers")

    assert mqtt.insert_topic("trip_data") == "rivers/inserts/trip_data"
    assert mqtt.command_topic == "rivers/control/commands"
    assert mqtt.status_topic == "rivers/control/status"
    assert mqtt.view_topic == "rivers/view"


@pytest.mark.parametrize("data", [
    {},
    {'store': {'rest_url': ''}},
    {'store': {'rest_url': 'ftp://store'}},
    {'store': {'rest_url': 'https://s', 'timeout': 0}},
    {'store': {'rest_url': 'https://s', 'trips_table': ''}},
    {'store': {'rest_url': 'https://s'}, 'mqtt': {'port': 70000}},
    {'store': {'rest_url': 'https://s'}, 'mqtt': {'qos': 3}},
    {'store': {'rest_url': 'https://s'}, 'mqtt': {'topic_prefix': 'bufeo/'}},
    {'store': {'rest_url': 'https://s'}, 'display': {'timezone': 'Mars/Olympus'}},
    {'store': {'rest_url': 'https://s'}, 'display': {'default_chart': 'pie'}},
    {'store': {'rest_url': 'https://s'}, 'session_id': ''},
])
def test_invalid_config_fails_fast(data):
    with pytest.raises(ValueError):
        MonitorConfig.from_dict(data)


def test_from_yaml(tmp_path):
    path = tmp_path / "monitor.yaml"
    path.write_text(
        "session_id: field\n"
        "store:\n"
        "  rest_url: https://store.example.org\n"
        "  api_key: k\n"
        "  fallback_photo_bucket: null\n"
        "mqtt:\n"
        "  broker: broker.local\n"
        "  port: 8883\n"
        "display:\n"
        "  timezone: America/La_Paz\n"
        "  default_base_map: satellite\n"
    )

    config = MonitorConfig.from_yaml(path)

    assert config.session_id == "field"
    assert config.store.fallback_photo_bucket is None
    assert config.mqtt.port == 8883
    assert config.display.default_base_map == "satellite"
    assert config.display.tzinfo.key == "America/La_Paz"


def test_example_config_is_valid():
    config = MonitorConfig.from_yaml(EXAMPLE_CONFIG)

    assert isinstance(config.store, StoreConfig)
    assert config.mqtt.view_topic == "bufeo/view"


def test_display_defaults():
    display = DisplayConfig()

    assert display.default_chart == "danger"
    assert display.default_base_map == "streets"
