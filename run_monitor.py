#!/usr/bin/env python3
"""
Bufeo Monitor Service - Entry Point
===================================

This script starts the live dashboard session, which:
- Loads users, trips and observation points from the data store
- Keeps insert subscriptions open on the push channel (MQTT)
- Applies filter/UI commands received via the MQTT control plane
- Recomputes and publishes the dashboard view on every change

Usage:
    python run_monitor.py --config config/monitor_config.yaml

Architecture:
    - MonitorService: Session orchestrator (bufeo_monitor)
    - DataStoreClient: Bulk fetch + push channel (bufeo_store)
    - MQTTControlPlane: Command handler (bufeo_control)
    - ViewPublisher: Publishes dashboard views (bufeo_store)

Lifecycle:
    1. Load configuration from YAML
    2. Setup logging (console + file)
    3. Create store client, control plane and view publisher
    4. Create MonitorService and register commands
    5. Start service (subscribe, load, first view)
    6. Apply inserts and commands until a stop signal arrives
    7. Graceful shutdown

Signals:
    - SIGTERM: Graceful shutdown
    - SIGINT (Ctrl+C): Graceful shutdown

Logs:
    - Console: INFO level
    - File: logs/monitor.log (INFO level)
"""

import argparse
import signal
import sys
import logging
from pathlib import Path
from typing import Optional

from bufeo_monitor import MonitorConfig, MonitorService, create_store_client
from bufeo_control import MQTTControlPlane
from bufeo_store import ViewPublisher, create_logger


# ─────────────────────────────────────────────────────────────────────────────
# Logging Setup
# ─────────────────────────────────────────────────────────────────────────────

def setup_logging(log_file: Optional[Path] = None) -> logging.Logger:
    """
    Setup logging for the monitor service.

    Args:
        log_file: Optional path to log file (default: logs/monitor.log)

    Returns:
        Logger instance for the entry point
    """
    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)

    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler(sys.stdout),
            *(
                [logging.FileHandler(log_file)]
                if log_file
                else []
            )
        ]
    )

    return logging.getLogger(__name__)


# ─────────────────────────────────────────────────────────────────────────────
# Main Service
# ─────────────────────────────────────────────────────────────────────────────

class MonitorApp:
    """
    Main application wrapper for MonitorService.

    Handles:
    - Configuration loading
    - Component initialization (store client, control plane, publisher)
    - Signal handling (SIGTERM, SIGINT)
    - Graceful shutdown
    """

    def __init__(self, config_path: Path, log_file: Optional[Path] = None):
        self.config_path = config_path
        self.log_file = log_file
        self.logger = setup_logging(log_file)

        # Components (initialized in setup())
        self.config: Optional[MonitorConfig] = None
        self.control_plane: Optional[MQTTControlPlane] = None
        self.view_publisher: Optional[ViewPublisher] = None
        self.service: Optional[MonitorService] = None

        self._shutdown_requested = False

    def setup(self):
        """
        Setup all components.

        Steps:
        1. Load configuration from YAML
        2. Create data store client (with push channel)
        3. Create control plane
        4. Create view publisher
        5. Create MonitorService and register commands
        """
        self.logger.info("=" * 80)
        self.logger.info("Bufeo Monitor - Starting")
        self.logger.info("=" * 80)

        self.logger.info(f"Loading configuration: {self.config_path}")
        self.config = MonitorConfig.from_yaml(self.config_path)
        self.logger.info(f"Configuration loaded (session_id={self.config.session_id})")

        mqtt_config = self.config.mqtt
        client = create_store_client(self.config)
        self.logger.info(f"Store client created for {self.config.store.rest_url}")

        self.control_plane = MQTTControlPlane(
            broker_host=mqtt_config.broker,
            broker_port=mqtt_config.port,
            command_topic=mqtt_config.command_topic,
            status_topic=mqtt_config.status_topic,
            client_id=f"bufeo_control_{self.config.session_id}",
            username=mqtt_config.username,
            password=mqtt_config.password,
        )

        self.view_publisher = ViewPublisher(
            broker_host=mqtt_config.broker,
            broker_port=mqtt_config.port,
            topic=mqtt_config.view_topic,
            logger=create_logger(component="view_publisher"),
            client_id=f"bufeo_view_{self.config.session_id}",
            username=mqtt_config.username,
            password=mqtt_config.password,
            qos=mqtt_config.qos,
        )
        self.logger.info(f"  - Command topic: {mqtt_config.command_topic}")
        self.logger.info(f"  - View topic: {mqtt_config.view_topic}")

        self.service = MonitorService(
            config=self.config,
            client=client,
            control_plane=self.control_plane,
            view_publisher=self.view_publisher,
        )
        self.service.setup()
        self.logger.info("Service created")
        self.logger.info("=" * 80)

    def run(self):
        """
        Run the monitor service.

        Blocks until shutdown is requested (via signal or exception).
        """
        if not self.service:
            raise RuntimeError("Service not initialized. Call setup() first.")

        signal.signal(signal.SIGTERM, self._signal_handler)
        signal.signal(signal.SIGINT, self._signal_handler)

        try:
            self.service.start()

            self.logger.info("Service started successfully")
            self.logger.info("Press Ctrl+C to stop")
            self.logger.info("=" * 80)

            # Session thread: returns once a stop is requested
            self.service.wait()
            self.shutdown()

        except Exception as e:
            self.logger.error(f"Service error: {e}", exc_info=True)
            self.shutdown()
            sys.exit(1)

    def shutdown(self):
        """Graceful shutdown: release subscriptions, disconnect everything."""
        if self._shutdown_requested:
            self.logger.warning("Shutdown already in progress")
            return

        self._shutdown_requested = True

        self.logger.info("=" * 80)
        self.logger.info("Shutting down monitor service")
        self.logger.info("=" * 80)

        if self.service and self.service.is_running():
            try:
                self.service.stop()
                self.logger.info("Service stopped")
            except Exception as e:
                self.logger.error(f"Error stopping service: {e}")

        if self.control_plane:
            self.control_plane.disconnect()

        self.logger.info("Shutdown complete")

    def _signal_handler(self, signum, frame):
        """Ask the session loop to stop; shutdown runs on the session thread."""
        signal_name = signal.Signals(signum).name
        self.logger.info(f"Received signal {signal_name} ({signum})")
        if self.service:
            self.service.request_stop()


# ─────────────────────────────────────────────────────────────────────────────
# CLI
# ─────────────────────────────────────────────────────────────────────────────

def parse_args():
    """
    Parse command-line arguments.

    Returns:
        argparse.Namespace with parsed arguments
    """
    parser = argparse.ArgumentParser(
        description="Bufeo Monitor - Live observation dashboard session",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Start with default config
  python run_monitor.py --config config/monitor_config.yaml

  # Start with custom log file
  python run_monitor.py --config config/monitor_config.yaml --log-file logs/custom.log

  # Start without file logging (console only)
  python run_monitor.py --config config/monitor_config.yaml --no-log-file
        """
    )

    parser.add_argument(
        '--config',
        type=Path,
        required=True,
        help='Path to monitor configuration YAML file'
    )

    parser.add_argument(
        '--log-file',
        type=Path,
        default=Path('logs/monitor.log'),
        help='Path to log file (default: logs/monitor.log)'
    )

    parser.add_argument(
        '--no-log-file',
        action='store_true',
        help='Disable file logging (console only)'
    )

    return parser.parse_args()


def main():
    """
    Main entry point.

    Workflow:
    1. Parse CLI arguments
    2. Create MonitorApp
    3. Setup components
    4. Run service (blocks until stopped)
    """
    args = parse_args()

    log_file = None if args.no_log_file else args.log_file

    if not args.config.exists():
        print(f"Error: Configuration file not found: {args.config}", file=sys.stderr)
        sys.exit(1)

    app = MonitorApp(
        config_path=args.config,
        log_file=log_file
    )

    try:
        app.setup()
        app.run()
    except Exception as e:
        print(f"Fatal error: {e}", file=sys.stderr)
        sys.exit(1)


if __name__ == '__main__':
    main()
