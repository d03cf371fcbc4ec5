"""Poll cycle module.

This module handles:
- Querying the appliance through SenecClient
- Decoding each tagged value on its own so one bad field does not spoil the rest
- Publishing decoded values into the exporter's gauges
"""

import logging
import time
from typing import Any, Optional

from senec_exporter.client import SenecClient, SenecResponse, SenecTransportError
from senec_exporter.decoder import SenecFormatError, decode, decode_float, decode_unsigned
from senec_exporter.exporter import SenecExporter

# Configure module logger
logger = logging.getLogger(__name__)

# ENERGY field -> gauge name, in publication order
ENERGY_GAUGES = (
    ("GUI_BAT_DATA_POWER", "battery_charging_power"),
    ("GUI_HOUSE_POW", "house_consumption"),
    ("GUI_GRID_POW", "grid_consumption"),
    ("GUI_INVERTER_POWER", "solar_power"),
    ("GUI_BAT_DATA_FUEL_CHARGE", "battery_level"),
)

WALLBOX_POWER_FIELD = "APPARENT_CHARGING_POWER"


class SenecPoller:
    """Runs one request/decode/publish round trip per call to poll().

    Attributes:
        client: Appliance client
        exporter: Metrics sink the decoded values are written to
        wallbox: Whether wallbox readings are requested and published
    """

    def __init__(
        self,
        client: SenecClient,
        exporter: SenecExporter,
        wallbox: bool = False,
    ):
        self.client = client
        self.exporter = exporter
        self.wallbox = wallbox

    def _publish(self, field: str, gauge: str, tagged: Optional[Any], decoder=decode) -> bool:
        if tagged is None:
            logger.warning(f"{field} missing from response, {gauge} not updated")
            return False

        try:
            value = decoder(tagged)
        except SenecFormatError as e:
            logger.warning(f"Could not decode {field}={tagged!r}: {e}")
            return False

        self.exporter.set_gauge(gauge, value)
        logger.debug(f"{gauge}: {value}")
        return True

    def publish(self, response: SenecResponse) -> int:
        """Decode and publish a validated response.

        Telemetry gauges are written first, then wallbox power and state.

        Returns:
            Number of gauges updated
        """
        updated = 0
        for field, gauge in ENERGY_GAUGES:
            if self._publish(field, gauge, getattr(response.energy, field)):
                updated += 1

        if self.wallbox and response.wallbox is not None:
            # Same slot read twice: power as float, state code as integer
            tagged = response.wallbox.first(WALLBOX_POWER_FIELD)
            if self._publish(WALLBOX_POWER_FIELD, "wallbox_power", tagged, decode_float):
                updated += 1
            if self._publish(WALLBOX_POWER_FIELD, "wallbox_state", tagged, decode_unsigned):
                updated += 1
        elif self.wallbox:
            logger.debug("Wallbox requested but not present in response")

        return updated

    def poll(self) -> bool:
        """Execute one poll cycle.

        Transport and structural failures are logged and leave every value
        gauge untouched for this cycle.

        Returns:
            True if the appliance answered, False otherwise
        """
        start_time = time.time()

        try:
            response = self.client.read_data(wallbox=self.wallbox)
            updated = self.publish(response)
            self.exporter.set_scrape_success(True, time.time() - start_time)
            logger.debug(f"Poll completed, {updated} gauges updated")
            return True

        except SenecTransportError as e:
            logger.error(f"Poll failed (transport error): {e}")
            self.exporter.set_scrape_success(False, time.time() - start_time)
            return False

        except Exception as e:
            logger.exception(f"Poll failed (unexpected error): {e}")
            self.exporter.set_scrape_success(False, time.time() - start_time)
            return False
