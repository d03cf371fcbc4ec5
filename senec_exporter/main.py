"""Main entry point for SENEC Exporter.

This module handles:
- Loading configuration from .env, environment variables and command-line flags
- Starting the Prometheus HTTP server
- Scheduling periodic appliance polls with APScheduler
- Shutting down on SIGINT/SIGTERM
"""

import argparse
import logging
import os
import signal
import sys
import threading
from dataclasses import asdict, dataclass
from typing import List, Optional

from dotenv import load_dotenv

from senec_exporter import __version__
from senec_exporter.client import SenecClient
from senec_exporter.exporter import DEFAULT_PORT, SenecExporter
from senec_exporter.poller import SenecPoller
from senec_exporter.scheduler import PollScheduler

# Configure module logger
logger = logging.getLogger(__name__)

DEFAULT_INTERVAL = 60

_TRUE_VALUES = ("1", "true", "yes", "on")


class ConfigError(Exception):
    """Exception raised for invalid or missing configuration."""
    pass


@dataclass
class ExporterConfig:
    """Effective exporter configuration.

    Attributes:
        host: SENEC appliance host name or IP
        port: Prometheus HTTP port
        interval: Poll interval in seconds
        wallbox: Whether to poll wallbox readings
        debug: Whether to log every decoded value
        timeout: Appliance request timeout in seconds (None = no timeout)
    """
    host: str
    port: int = DEFAULT_PORT
    interval: int = DEFAULT_INTERVAL
    wallbox: bool = False
    debug: bool = False
    timeout: Optional[float] = None


def _env_flag(name: str) -> bool:
    return os.getenv(name, "").strip().lower() in _TRUE_VALUES


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser; defaults come from the environment."""
    parser = argparse.ArgumentParser(
        prog="senec-exporter",
        description="Prometheus exporter for SENEC home energy storage systems",
    )
    parser.add_argument(
        "-H", "--host",
        default=os.getenv("SENEC_HOST", ""),
        help="SENEC system host or IP (env: SENEC_HOST)",
    )
    parser.add_argument(
        "-p", "--port",
        default=os.getenv("EXPORTER_PORT", str(DEFAULT_PORT)),
        help=f"Prometheus HTTP port (env: EXPORTER_PORT, default: {DEFAULT_PORT})",
    )
    parser.add_argument(
        "-i", "--interval",
        default=os.getenv("SCRAPE_INTERVAL", str(DEFAULT_INTERVAL)),
        help=f"Polling interval in seconds (env: SCRAPE_INTERVAL, default: {DEFAULT_INTERVAL})",
    )
    parser.add_argument(
        "-w", "--wallbox",
        action="store_true",
        default=_env_flag("SENEC_WALLBOX"),
        help="Scrape wallbox readings (env: SENEC_WALLBOX)",
    )
    parser.add_argument(
        "-d", "--debug",
        action="store_true",
        default=_env_flag("SENEC_DEBUG"),
        help="Log configuration and every decoded value (env: SENEC_DEBUG)",
    )
    parser.add_argument(
        "--timeout",
        default=os.getenv("SENEC_TIMEOUT", ""),
        help="Appliance request timeout in seconds (env: SENEC_TIMEOUT, default: none)",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def load_config(argv: Optional[List[str]] = None) -> ExporterConfig:
    """Parse and validate configuration.

    Args:
        argv: Command-line arguments (default: sys.argv[1:])

    Returns:
        Validated ExporterConfig

    Raises:
        ConfigError: If a required value is missing or a value is invalid
    """
    args = build_parser().parse_args(argv)

    host = (args.host or "").strip()
    if not host:
        raise ConfigError("Missing SENEC host: pass --host or set SENEC_HOST")

    try:
        port = int(args.port)
    except ValueError:
        raise ConfigError(f"Invalid port: {args.port!r}")
    if not 0 <= port <= 65535:
        raise ConfigError(f"Port out of range: {port}")

    try:
        interval = int(args.interval)
    except ValueError:
        raise ConfigError(f"Invalid interval: {args.interval!r}")
    if interval < 1:
        raise ConfigError(f"Interval must be at least 1 second, got {interval}")

    timeout = None
    if str(args.timeout).strip():
        try:
            timeout = float(args.timeout)
        except ValueError:
            raise ConfigError(f"Invalid timeout: {args.timeout!r}")
        if timeout <= 0:
            raise ConfigError(f"Timeout must be positive, got {timeout}")

    return ExporterConfig(
        host=host,
        port=port,
        interval=interval,
        wallbox=args.wallbox,
        debug=args.debug,
        timeout=timeout,
    )


def configure_logging(debug: bool = False) -> None:
    """Configure root logging to stdout."""
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )
    if not debug:
        logging.getLogger("apscheduler").setLevel(logging.WARNING)
        logging.getLogger("urllib3").setLevel(logging.WARNING)


def install_signal_handlers(shutdown: threading.Event) -> None:
    """Set ``shutdown`` on SIGINT and SIGTERM."""
    def _handler(signum, frame):
        logger.info(f"Received {signal.Signals(signum).name}, shutting down")
        shutdown.set()

    for sig in (signal.SIGINT, signal.SIGTERM):
        signal.signal(sig, _handler)


def main(argv: Optional[List[str]] = None, shutdown: Optional[threading.Event] = None) -> int:
    """Main entry point.

    1. Load .env file with python-dotenv
    2. Load and validate configuration
    3. Start Prometheus HTTP server
    4. Start the poll scheduler (first poll runs immediately)
    5. Block until SIGINT/SIGTERM, then stop scheduler and server

    Args:
        argv: Command-line arguments (default: sys.argv[1:])
        shutdown: Optional event that ends the run when set, for tests

    Returns:
        Exit code (0 for clean shutdown, 1 for startup failure)
    """
    load_dotenv()

    try:
        config = load_config(argv)
    except ConfigError as e:
        configure_logging()
        logger.error(f"Configuration failed: {e}")
        return 1

    configure_logging(config.debug)
    logger.debug(f"Configuration: {asdict(config)}")

    exporter = SenecExporter(port=config.port)
    try:
        exporter.start()
    except OSError as e:
        logger.error(f"Could not start metrics server on port {config.port}: {e}")
        return 1

    client = SenecClient(host=config.host, timeout=config.timeout)
    poller = SenecPoller(client, exporter, wallbox=config.wallbox)

    def _close() -> None:
        exporter.stop()
        client.close()

    scheduler = PollScheduler(poller.poll, interval=config.interval, on_stop=_close)

    if shutdown is None:
        shutdown = threading.Event()
        install_signal_handlers(shutdown)

    logger.info(f"Exporter listening on port {exporter.port}... (press CTRL+C to interrupt)")
    try:
        scheduler.start()
        # Short waits keep the main thread responsive to signals on every platform
        while not shutdown.wait(1.0):
            pass
    finally:
        scheduler.stop()

    logger.info("Exiting...")
    return 0


if __name__ == "__main__":
    sys.exit(main())
