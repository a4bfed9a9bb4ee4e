"""
Test Monitor Service (Without Real Broker)
==========================================

Full session flow: subscribe, bulk load, inserts from the push channel,
control commands, recompute, publish and release.

Usage:
    pytest test_service.py
"""

import json
from datetime import date

import pytest
import requests

from bufeo_store import (
    DataStoreClient,
    EntityKind,
    InsertSubscriber,
    PointType,
    create_logger,
)
from bufeo_control import MQTTControlPlane
from bufeo_pipeline import BaseMap, ChartMode
from bufeo_monitor import MonitorConfig, MonitorService

from test_store_pubsub import FakeSession


ROWS = {
    'profiles': [
        {'id': 'u1', 'full_name': 'Ana'},
        {'id': 'u2', 'full_name': 'Luis'},
    ],
    'trips': [
        {'id': 't2', 'user_id': 'u2', 'start_time': '2024-02-01T08:00:00Z'},
        {'id': 't1', 'user_id': 'u1', 'start_time': '2024-01-01T08:00:00Z'},
    ],
    'trip_data': [
        {'id': 'p1', 'trip_id': 't1', 'type': 'Inicio', 'latitude': -14.0, 'longitude': -65.0,
         'created_at': '2024-01-01T08:00:00Z'},
        {'id': 'p2', 'trip_id': 't1', 'type': 'Avistamiento', 'latitude': -14.1, 'longitude': -65.1,
         'adults': 2, 'calves': 1, 'created_at': '2024-01-01T09:00:00Z'},
        {'id': 'p3', 'trip_id': 't1', 'type': 'Peligro', 'latitude': -14.2, 'longitude': -65.2,
         'danger_type': 'net', 'health_status': 'injured', 'created_at': '2024-01-01T10:00:00Z'},
        {'id': 'p4', 'trip_id': 't2', 'type': 'Peligro', 'latitude': -13.0, 'longitude': -64.0,
         'danger_type': 'net', 'photo_url': 'trips/t2/p4.jpg', 'created_at': '2024-02-01T09:00:00Z'},
    ],
}


class RecordingPublisher:
    """Stands in for ViewPublisher and keeps every published view."""

    def __init__(self):
        self.views = []
        self.connected = False

    def connect(self, timeout=10.0):
        self.connected = True
        return True

    def disconnect(self):
        self.connected = False

    def publish_view(self, view):
        self.views.append(view)
        return True


@pytest.fixture
def config():
    return MonitorConfig.from_dict({
        'store': {'rest_url': 'https://store.example.org', 'api_key': 'k'},
    })


@pytest.fixture
def subscriber(monkeypatch, config):
    subscriber = InsertSubscriber(
        broker_host="localhost",
        topics={kind: config.mqtt.insert_topic(table) for kind, table in config.store.tables.items()},
        logger=create_logger("test"),
    )
    monkeypatch.setattr(subscriber, "connect", lambda timeout=10.0: True)
    return subscriber


@pytest.fixture
def control_plane(monkeypatch):
    plane = MQTTControlPlane(
        broker_host="localhost",
        broker_port=1883,
        command_topic="bufeo/control/commands",
        status_topic="bufeo/control/status",
        client_id="test_monitor",
    )
    monkeypatch.setattr(plane, "connect", lambda timeout=5.0: True)
    return plane


def make_service(config, subscriber, control_plane=None, rows=ROWS):
    client = DataStoreClient(
        rest_url=config.store.rest_url,
        api_key=config.store.api_key,
        tables=config.store.tables,
        logger=create_logger("test"),
        subscriber=subscriber,
        session=FakeSession(rows),
    )
    service = MonitorService(config, client, control_plane=control_plane, view_publisher=RecordingPublisher())
    service.setup()
    return service


def send(control_plane, **command):
    assert control_plane.handle_payload(json.dumps(command).encode('utf-8'))


def test_start_loads_collections_and_publishes_first_view(config, subscriber):
    service = make_service(config, subscriber)

    with service:
        assert service.state.counts() == {'users': 2, 'trips': 2, 'points': 4}
        assert len(service.client.active_subscriptions()) == 3
        assert subscriber.listener_count() == 3

        views = service.view_publisher.views
        assert len(views) == 1
        assert views[0].point_count == 4
        assert views[0].stats.danger_count == 2

    assert service.client.active_subscriptions() == []
    assert subscriber.listener_count() == 0
    assert not service.view_publisher.connected


def test_inserts_are_applied_on_the_session_thread(config, subscriber):
    service = make_service(config, subscriber)

    with service:
        subscriber._handle_insert(EntityKind.POINTS, {
            'id': 'p5', 'trip_id': 't1', 'type': 'Avistamiento', 'adults': 3,
            'latitude': -14.3, 'longitude': -65.3, 'created_at': '2024-01-01T11:00:00Z',
        })
        subscriber._handle_insert(EntityKind.TRIPS, {'new': {'id': 't3', 'user_id': 'u1'}})

        # Nothing changes until the queue is drained
        assert service.state.counts()['points'] == 4

        assert service.process_pending() == 2
        assert service.state.counts() == {'users': 2, 'trips': 3, 'points': 5}
        assert service.state.trips[0].id == 't3'
        assert service.snapshot().stats.adults == 5
        assert len(service.view_publisher.views) == 2


def test_duplicate_insert_is_ignored(config, subscriber):
    service = make_service(config, subscriber)

    with service:
        before = service.state
        subscriber._handle_insert(EntityKind.POINTS, ROWS['trip_data'][0])

        assert service.process_pending() == 1
        assert service.state is before


def test_process_pending_with_empty_queue(config, subscriber):
    service = make_service(config, subscriber)

    with service:
        assert service.process_pending() == 0
        assert service.process_pending(timeout=0.01) == 0
        assert len(service.view_publisher.views) == 1


def test_filter_commands_recompute_view(config, subscriber, control_plane):
    service = make_service(config, subscriber, control_plane)

    with service:
        send(control_plane, command="set_user", user_id="u1")
        send(control_plane, command="toggle_layer", type="Inicio")
        service.process_pending()

        view = service.snapshot()
        assert service.selection.user_id == "u1"
        assert PointType.START not in service.selection.visible_types
        assert [p.id for p in view.points] == ['p2', 'p3']
        assert [o.value for o in view.trip_options] == ['t1']

        send(control_plane, command="set_trip", trip_id="t1")
        send(control_plane, command="set_user", user_id="all")
        service.process_pending()

        assert service.selection.user_id is None
        assert service.selection.trip_id is None
        assert service.snapshot().trip_options == ()


def test_date_commands(config, subscriber, control_plane):
    service = make_service(config, subscriber, control_plane)

    with service:
        send(control_plane, command="set_dates", start_date="2024-02-01", end_date="2024-02-01")
        service.process_pending()

        assert service.selection.start_date == date(2024, 2, 1)
        assert [p.id for p in service.snapshot().points] == ['p4']

        send(control_plane, command="set_filters", visible_types=["Peligro"], end_date="2024-01-31")
        service.process_pending()

        assert service.selection.start_date is None
        assert [p.id for p in service.snapshot().points] == ['p3']


def test_rejected_command_leaves_selection_unchanged(config, subscriber, control_plane):
    service = make_service(config, subscriber, control_plane)

    with service:
        send(control_plane, command="set_dates", start_date="not-a-date")
        send(control_plane, command="toggle_layer", type="whale")
        send(control_plane, command="set_base_map", base_map="watercolor")
        service.process_pending()

        assert service.selection.start_date is None
        assert len(service.selection.visible_types) == 4
        assert service.ui.base_map == BaseMap.STREETS


def test_ui_commands(config, subscriber, control_plane):
    service = make_service(config, subscriber, control_plane)

    with service:
        send(control_plane, command="toggle_chart")
        send(control_plane, command="set_base_map", base_map="satellite")
        send(control_plane, command="fit")
        service.process_pending()

        view = service.snapshot()
        assert view.chart.mode == ChartMode.HEALTH
        assert dict(zip(view.chart.labels, view.chart.values)) == {'injured': 1, 'Unknown': 1}
        assert view.ui.base_map == BaseMap.SATELLITE
        assert view.ui.fit_trigger == 1
        # UI changes never affect filtering
        assert view.point_count == 4


def test_refresh_replaces_collections(config, subscriber, control_plane):
    service = make_service(config, subscriber, control_plane)

    with service:
        service.client.session.rows_by_table = {**ROWS, 'trip_data': ROWS['trip_data'][:1]}
        send(control_plane, command="refresh")
        service.process_pending()

        assert service.state.counts()['points'] == 1


def test_fetch_failure_starts_with_empty_collections(config, subscriber):
    failing = {table: requests.exceptions.ConnectionError("down") for table in ROWS}
    service = make_service(config, subscriber, rows=failing)

    with service:
        assert service.state.counts() == {'users': 0, 'trips': 0, 'points': 0}
        assert service.snapshot().stats.danger_count == 0

        subscriber._handle_insert(EntityKind.USERS, {'id': 'u9'})
        service.process_pending()
        assert [u.id for u in service.state.users] == ['u9']


def test_status_reports_session(config, subscriber):
    service = make_service(config, subscriber)

    with service:
        status = service.status()

    assert status['session_id'] == "dashboard"
    assert status['collections'] == {'users': 2, 'trips': 2, 'points': 4}
    assert status['subscriptions'] == 3


def test_photo_urls_try_primary_then_fallback_bucket(config, subscriber):
    service = make_service(config, subscriber)

    assert service.photo_urls("https://cdn.example.org/p.jpg") == ["https://cdn.example.org/p.jpg"]
    assert service.photo_urls("trips/t2/p4.jpg") == [
        "https://store.example.org/storage/v1/object/public/bufeo_photos/trips/t2/p4.jpg",
        "https://store.example.org/storage/v1/object/public/photos/trips/t2/p4.jpg",
    ]


def test_hazard_popup_carries_photo_candidates(config, subscriber):
    service = make_service(config, subscriber)

    with service:
        marker = next(m for m in service.snapshot().markers if m.id == 'p4')

    assert len(marker.popup['photo_urls']) == 2


def test_stop_is_idempotent(config, subscriber):
    service = make_service(config, subscriber)
    service.start()

    service.stop()
    service.stop()

    assert not service.is_running()
    assert service.client.active_subscriptions() == []


def test_wait_returns_after_request_stop(config, subscriber):
    service = make_service(config, subscriber)

    with service:
        service.request_stop()
        service.wait(poll_interval=0.01)


def test_out_of_range_timestamp_does_not_stop_the_session(subscriber):
    la_paz = MonitorConfig.from_dict({
        'store': {'rest_url': 'https://store.example.org', 'api_key': 'k'},
        'display': {'timezone': 'America/La_Paz'},
    })
    service = make_service(la_paz, subscriber)

    with service:
        subscriber._handle_insert(EntityKind.POINTS, {
            'id': 'p0', 'trip_id': 't1', 'type': 'Avistamiento', 'adults': 1,
            'latitude': -14.0, 'longitude': -65.0, 'created_at': '0001-01-01T00:00:00',
        })

        assert service.process_pending() == 1
        marker = next(m for m in service.snapshot().markers if m.id == 'p0')
        assert marker.popup['created_at'] == ''
        assert len(service.view_publisher.views) == 2
