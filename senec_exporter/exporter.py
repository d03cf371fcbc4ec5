"""Prometheus metrics exporter module.

This module handles:
- Defining the SENEC gauges on an injectable registry
- Exposing the metrics HTTP server on a configurable port
- Closing the server again on shutdown
"""

import logging
import time
from typing import Dict, Optional

from prometheus_client import Gauge, REGISTRY, CollectorRegistry, generate_latest, start_http_server

# Configure module logger
logger = logging.getLogger(__name__)

DEFAULT_PORT = 9898

# Logical gauge name -> (metric name, help text)
GAUGES = {
    "battery_charging_power": ("senec_battery_charging_power", "Current Battery Charging Power"),
    "battery_level": ("senec_battery_level", "Current Battery Level (percentage)"),
    "house_consumption": ("senec_house_consumption", "Current House Consumption"),
    "grid_consumption": ("senec_grid_consumption", "Current Consumption from the Grid"),
    "solar_power": ("senec_solar_power", "Current Solar Production Power"),
    "wallbox_power": ("senec_wallbox_power", "Current Wallbox Consumption Power"),
    "wallbox_state": ("senec_wallbox_state", "Current Wallbox State"),
}


class SenecExporter:
    """Prometheus exporter for SENEC appliance readings.

    Exposes the seven value gauges from GAUGES plus operational metrics:
    - senec_scrape_success: Whether the last poll succeeded (1=success, 0=failure)
    - senec_scrape_timestamp: Unix timestamp of the last poll
    - senec_scrape_duration_seconds: Duration of the last poll

    Attributes:
        port: HTTP server port (default 9898)
        addr: Address the HTTP server binds to
    """

    def __init__(
        self,
        port: int = DEFAULT_PORT,
        addr: str = "0.0.0.0",
        registry: Optional[CollectorRegistry] = None
    ):
        """Initialize the exporter.

        Args:
            port: Port to run the HTTP server on (0 picks a free port)
            addr: Address to bind
            registry: Optional custom registry for testing. If None, uses default REGISTRY.
        """
        self.port = port
        self.addr = addr
        self._registry = registry if registry is not None else REGISTRY
        self._server = None
        self._thread = None

        self._gauges: Dict[str, Gauge] = {
            name: Gauge(metric, doc, registry=self._registry)
            for name, (metric, doc) in GAUGES.items()
        }

        self._scrape_success = Gauge(
            'senec_scrape_success',
            'Whether the last poll succeeded (1=success, 0=failure)',
            registry=self._registry
        )

        self._scrape_timestamp = Gauge(
            'senec_scrape_timestamp',
            'Unix timestamp of the last poll',
            registry=self._registry
        )

        self._scrape_duration = Gauge(
            'senec_scrape_duration_seconds',
            'Duration of the last poll in seconds',
            registry=self._registry
        )

    @property
    def running(self) -> bool:
        return self._server is not None

    def set_gauge(self, name: str, value: float) -> None:
        """Set a value gauge by its logical name.

        Raises:
            KeyError: If the name is not one of GAUGES
        """
        self._gauges[name].set(value)

    def set_scrape_success(self, success: bool, duration: float) -> None:
        """Update operational metrics after a poll attempt.

        Args:
            success: Whether the poll succeeded
            duration: How long the poll took in seconds
        """
        self._scrape_success.set(1 if success else 0)
        self._scrape_timestamp.set(time.time())
        self._scrape_duration.set(duration)

    def generate(self) -> bytes:
        """Render the registry in the text exposition format."""
        return generate_latest(self._registry)

    def start(self) -> None:
        """Start the HTTP server to expose metrics.

        The server runs in a daemon thread and exposes metrics at:
        http://{addr}:{port}/metrics

        Raises:
            OSError: If the port cannot be bound
        """
        if self._server is not None:
            logger.warning("Prometheus server already started")
            return

        logger.debug(f"Starting Prometheus HTTP server on {self.addr}:{self.port}")
        self._server, self._thread = start_http_server(self.port, addr=self.addr, registry=self._registry)
        self.port = self._server.server_port

    def stop(self) -> None:
        """Stop accepting connections and release the listening socket."""
        if self._server is None:
            return

        logger.debug("Stopping Prometheus HTTP server")
        self._server.shutdown()
        self._server.server_close()
        if self._thread is not None:
            self._thread.join(timeout=5)
        self._server = None
        self._thread = None
