"""
Dashboard View Publisher
========================

Bounded Context: View Message Production

Publishes the recomputed dashboard view (markers, statistics, chart,
selector options) for the presentation layer. Messages are retained so a
map client that connects late receives the current view immediately.

Message Flow:
    MonitorService -> DashboardView -> ViewPublisher -> MQTT Broker -> map client
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from .base import BasePublisher
from ..logging import StructuredLogger, LogEvent


class ViewPublisher(BasePublisher):
    """
    Publisher for dashboard views.

    Attributes:
        Same as BasePublisher, plus:
        schema_version: Schema version stamped on every message
    """

    def __init__(
        self,
        broker_host: str,
        topic: str,
        logger: StructuredLogger,
        broker_port: int = 1883,
        client_id: str = "bufeo_view_publisher",
        username: Optional[str] = None,
        password: Optional[str] = None,
        qos: int = 1,
        schema_version: str = "1.0"
    ):
        super().__init__(
            broker_host=broker_host,
            broker_port=broker_port,
            topic=topic,
            client_id=client_id,
            logger=logger,
            username=username,
            password=password,
            qos=qos
        )
        self.schema_version = schema_version

    def format_message(self, view) -> Dict[str, Any]:
        """
        Wrap a view in the published envelope.

        Args:
            view: Any object exposing to_dict() (DashboardView)
        """
        return {
            'schema_version': self.schema_version,
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'view': view.to_dict(),
        }

    def publish_view(self, view) -> bool:
        """Format and publish a view (retained)."""
        message = self.format_message(view)
        published = self.publish(message, retain=True)
        if published:
            self.logger.info(
                event=LogEvent.VIEW_PUBLISHED,
                message="Published dashboard view",
                metadata={'topic': self.topic, 'point_count': message['view'].get('point_count')}
            )
        return published
