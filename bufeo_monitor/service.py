"""
Monitor Service - Session orchestrator for the observation dashboard.

This module provides the MonitorService class which owns one dashboard
session: it loads the three collections, keeps the push subscriptions open,
applies inserts and control commands, recomputes the view and publishes it.

Threading Model:
- paho-mqtt network threads (push channel, control plane) only enqueue
- One session thread (the caller of process_pending()/wait()) drains the
  inbox, applies items in arrival order and recomputes the view

There is exactly one writer of the session state, so no locking is needed
around filtering or aggregation.
"""

import logging
import queue
import threading
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from bufeo_store import (
    DataStoreClient,
    EntityKind,
    InsertSubscriber,
    LogEvent,
    SubscriptionHandle,
    ViewPublisher,
    create_logger,
)
from bufeo_pipeline import (
    BaseMap,
    ChartMode,
    CollectionLoaded,
    DashboardView,
    FilterSelection,
    SessionState,
    UIState,
    append_event,
    build_view,
    dispatch,
    parse_point_types,
)
from bufeo_monitor.config import MonitorConfig

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ControlCommand:
    """A control command waiting for the session thread."""
    name: str
    data: Dict[str, Any] = field(default_factory=dict)


def create_store_client(config: MonitorConfig, with_push_channel: bool = True) -> DataStoreClient:
    """
    Build the data store client described by the configuration.

    Args:
        config: Monitor configuration
        with_push_channel: Attach an MQTT insert subscriber
    """
    store_logger = create_logger("store")
    subscriber = None
    if with_push_channel:
        subscriber = InsertSubscriber(
            broker_host=config.mqtt.broker,
            broker_port=config.mqtt.port,
            topics={kind: config.mqtt.insert_topic(table) for kind, table in config.store.tables.items()},
            logger=create_logger("subscriber"),
            client_id=f"bufeo_inserts_{config.session_id}",
            username=config.mqtt.username,
            password=config.mqtt.password,
            qos=config.mqtt.qos,
        )

    return DataStoreClient(
        rest_url=config.store.rest_url,
        api_key=config.store.api_key,
        tables=config.store.tables,
        logger=store_logger,
        subscriber=subscriber,
        timeout=config.store.timeout,
    )


class MonitorService:
    """
    Dashboard session service.

    Lifecycle:
    1. setup(): register control commands
    2. start(): connect, open subscriptions, bulk load, publish first view
    3. wait() / process_pending(): apply inserts and commands
    4. stop(): release every subscription exactly once, disconnect

    Usage:
        config = MonitorConfig.from_yaml("config.yaml")
        service = MonitorService(config, create_store_client(config),
                                 control_plane=plane, view_publisher=publisher)
        service.setup()
        with service:
            service.wait()
    """

    def __init__(
        self,
        config: MonitorConfig,
        client: DataStoreClient,
        control_plane=None,  # MQTTControlPlane
        view_publisher: Optional[ViewPublisher] = None,
    ):
        """
        Initialize monitor service.

        Args:
            config: Monitor configuration
            client: Data store client (bulk fetch + push channel)
            control_plane: Optional control plane for filter/UI commands
            view_publisher: Optional publisher for recomputed views
        """
        self.config = config
        self.client = client
        self.control_plane = control_plane
        self.view_publisher = view_publisher
        self.events = create_logger("monitor")

        self.tz = config.display.tzinfo
        self.state = SessionState()
        self.selection = FilterSelection()
        self.ui = UIState(
            chart_mode=ChartMode(config.display.default_chart),
            base_map=BaseMap(config.display.default_base_map),
        )

        self.inbox: "queue.Queue[Any]" = queue.Queue()
        self._handles: List[SubscriptionHandle] = []
        self._view: Optional[DashboardView] = None
        self._running = False
        self._stop_event = threading.Event()
        self._commands: Dict[str, Callable[[Dict[str, Any]], None]] = {
            "set_user": self._set_user,
            "set_trip": self._set_trip,
            "set_dates": self._set_dates,
            "set_filters": self._set_filters,
            "toggle_layer": self._toggle_layer,
            "toggle_chart": self._toggle_chart,
            "set_base_map": self._set_base_map,
            "fit": self._fit,
            "refresh": self._refresh,
            "status": self._status,
        }

        logger.info(f"MonitorService initialized for session_id={config.session_id}")

    # ===== Setup =====

    def setup(self) -> None:
        """Register control commands with the control plane."""
        if self.control_plane is None:
            return

        descriptions = {
            "set_user": "Select a user ('all' clears); clears the trip",
            "set_trip": "Select a trip ('all' clears)",
            "set_dates": "Set start_date/end_date (YYYY-MM-DD, empty clears)",
            "set_filters": "Replace the whole filter selection",
            "toggle_layer": "Show or hide one point type",
            "toggle_chart": "Switch the chart between hazard types and health status",
            "set_base_map": "Choose streets or satellite tiles",
            "fit": "Re-fit the map to the visible markers",
            "refresh": "Reload all collections from the store",
            "status": "Publish session status",
        }
        registry = self.control_plane.command_registry
        for name, description in descriptions.items():
            registry.register(name, self._enqueue_command(name), description)

        logger.info("Control handlers registered")

    def _enqueue_command(self, name: str) -> Callable[[Dict[str, Any]], None]:
        def handler(data: Dict[str, Any]) -> None:
            self.inbox.put(ControlCommand(name=name, data=dict(data)))
        return handler

    def _insert_listener(self, kind: EntityKind) -> Callable[[Any], None]:
        def listener(entity: Any) -> None:
            self.inbox.put(append_event(kind, entity))
        return listener

    # ===== Lifecycle =====

    def start(self) -> None:
        """
        Start the session.

        Subscriptions open before the bulk load so no insert is missed;
        overlaps are dropped by identifier when applied.
        """
        if self._running:
            logger.warning("Service already running")
            return

        logger.info("Starting monitor service")
        self._stop_event.clear()

        if self.control_plane is not None and not self.control_plane.connect(timeout=5.0):
            raise RuntimeError("Failed to connect to MQTT broker (control plane)")

        if self.view_publisher is not None:
            self.view_publisher.connect()

        if self.client.subscriber is not None:
            if not self.client.subscriber.connect():
                logger.warning("Push channel unavailable; continuing without live updates")
            for kind in EntityKind:
                self._handles.append(self.client.subscribe(kind, self._insert_listener(kind)))

        self.load()
        self._running = True
        self.recompute()

        if self.control_plane is not None:
            self.control_plane.publish_status("running", self.status())
        logger.info("Monitor service started")

    def stop(self) -> None:
        """Release subscriptions and disconnect. Safe to call when stopped."""
        if not self._running:
            logger.warning("Service not running")
            return

        logger.info("Stopping monitor service")
        self._stop_event.set()

        while self._handles:
            handle = self._handles.pop()
            try:
                self.client.unsubscribe(handle)
            except ValueError as e:
                logger.error(f"Error releasing subscription {handle.key}: {e}")

        if self.client.subscriber is not None:
            self.client.subscriber.stop()

        if self.view_publisher is not None:
            self.view_publisher.disconnect()

        if self.control_plane is not None:
            self.control_plane.publish_status("stopped")
            self.control_plane.disconnect()

        self._running = False
        logger.info("Monitor service stopped")

    def __enter__(self) -> "MonitorService":
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()

    def request_stop(self) -> None:
        """Make wait() return (callable from any thread)."""
        self._stop_event.set()

    def is_running(self) -> bool:
        return self._running

    def wait(self, poll_interval: float = 0.5) -> None:
        """Apply queued items until request_stop() or stop() is called."""
        while not self._stop_event.is_set():
            self.process_pending(timeout=poll_interval)

    # ===== Session thread =====

    def load(self) -> None:
        """Bulk-load every collection, replacing what the session holds."""
        for kind in EntityKind:
            records = self.client.fetch_all(kind)
            self.state = dispatch(self.state, CollectionLoaded(kind, records))
            self.events.info(
                event=LogEvent.COLLECTION_LOADED,
                message=f"Loaded {kind.value}",
                metadata={'kind': kind.value, 'count': len(records)}
            )

    def process_pending(self, timeout: Optional[float] = None) -> int:
        """
        Apply every queued insert and command, then recompute once.

        Args:
            timeout: Seconds to wait for the first item (None: do not wait)

        Returns:
            Number of items applied
        """
        items = []
        try:
            if timeout is None:
                items.append(self.inbox.get_nowait())
            else:
                items.append(self.inbox.get(timeout=timeout))
            while True:
                items.append(self.inbox.get_nowait())
        except queue.Empty:
            pass

        for item in items:
            self._apply(item)

        if items:
            self.recompute()
        return len(items)

    def _apply(self, item: Any) -> None:
        if isinstance(item, ControlCommand):
            self._apply_command(item)
            return

        new_state = dispatch(self.state, item)
        if new_state is self.state:
            self.events.info(
                event=LogEvent.INSERT_DUPLICATE,
                message="Ignoring insert for an identifier already present",
                metadata={'event': type(item).__name__}
            )
        self.state = new_state

    def _apply_command(self, command: ControlCommand) -> None:
        handler = self._commands.get(command.name)
        if handler is None:
            logger.warning(f"Unknown command '{command.name}'")
            return
        try:
            handler(command.data)
        except (KeyError, ValueError) as e:
            logger.warning(f"Command '{command.name}' rejected: {e}")
            return
        logger.info(f"Applied command '{command.name}'")

    def recompute(self, publish: bool = True) -> DashboardView:
        """Recompute the view from scratch and publish it."""
        self._view = build_view(
            self.state,
            self.selection,
            self.ui,
            tz=self.tz,
            photo_resolver=self.photo_urls,
        )
        self.events.info(
            event=LogEvent.VIEW_RECOMPUTED,
            message="Recomputed dashboard view",
            metadata={
                'point_count': self._view.point_count,
                'marker_count': len(self._view.markers),
                'stats': str(self._view.stats),
            }
        )
        if publish and self.view_publisher is not None:
            self.view_publisher.publish_view(self._view)
        return self._view

    def snapshot(self) -> DashboardView:
        """Current view (computed on demand before the first recompute)."""
        if self._view is None:
            return self.recompute(publish=False)
        return self._view

    def photo_urls(self, photo_url: str) -> List[str]:
        """Candidate URLs for a hazard photo, primary bucket first."""
        return self.client.photo_urls(photo_url, self.config.store.photo_buckets)

    def status(self) -> Dict[str, Any]:
        view = self.snapshot()
        return {
            'session_id': self.config.session_id,
            'collections': self.state.counts(),
            'point_count': view.point_count,
            'selection': self.selection.to_dict(),
            'subscriptions': len(self._handles),
        }

    # ===== Command handlers (session thread) =====

    def _set_user(self, data: Dict[str, Any]) -> None:
        self.selection = self.selection.with_user(data.get("user_id"))

    def _set_trip(self, data: Dict[str, Any]) -> None:
        self.selection = self.selection.with_trip(data.get("trip_id"))

    def _set_dates(self, data: Dict[str, Any]) -> None:
        self.selection = self.selection.with_dates(data.get("start_date"), data.get("end_date"))

    def _set_filters(self, data: Dict[str, Any]) -> None:
        self.selection = FilterSelection.from_dict(data)

    def _toggle_layer(self, data: Dict[str, Any]) -> None:
        for point_type in parse_point_types([data["type"]]):
            self.selection = self.selection.toggle_type(point_type)

    def _toggle_chart(self, data: Dict[str, Any]) -> None:
        self.ui = self.ui.toggle_chart()

    def _set_base_map(self, data: Dict[str, Any]) -> None:
        self.ui = self.ui.with_base_map(data["base_map"])

    def _fit(self, data: Dict[str, Any]) -> None:
        self.ui = self.ui.request_fit()

    def _refresh(self, data: Dict[str, Any]) -> None:
        self.load()

    def _status(self, data: Dict[str, Any]) -> None:
        if self.control_plane is not None:
            self.control_plane.publish_status("running", self.status())
