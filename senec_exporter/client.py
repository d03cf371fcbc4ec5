"""SENEC appliance HTTP client module.

This module handles:
- Building the request body that tells the appliance which fields to report
- POSTing it to the appliance's ``/lala.cgi`` endpoint
- Validating the JSON answer into typed per-group readings

The appliance answers with the same shape as the request: every requested
ENERGY field becomes a single tagged hex string and every WALLBOX field a
list of tagged hex strings (one entry per wallbox slot).
"""

import logging
from dataclasses import dataclass, fields
from typing import Any, Dict, Optional

import requests

# Configure module logger
logger = logging.getLogger(__name__)

ENDPOINT_PATH = "/lala.cgi"

ENERGY_GROUP = "ENERGY"
WALLBOX_GROUP = "WALLBOX"

ENERGY_FIELDS = (
    "GUI_BAT_DATA_POWER",
    "GUI_INVERTER_POWER",
    "GUI_HOUSE_POW",
    "GUI_GRID_POW",
    "GUI_BAT_DATA_FUEL_CHARGE",
)

WALLBOX_FIELDS = (
    "HW_TYPE",
    "APPARENT_CHARGING_POWER",
    "UTMP",
    "L1_CHARGING_CURRENT",
    "L2_CHARGING_CURRENT",
    "L3_CHARGING_CURRENT",
    "MAX_CHARGING_CURRENT_IC",
    "MAX_CHARGING_CURRENT_RATED",
    "MAX_CHARGING_CURRENT_DEFAULT",
    "MAX_CHARGING_CURRENT_ICMAX",
    "PROHIBIT_USAGE",
    "STATE",
)


class SenecError(Exception):
    """Base exception for SENEC client errors."""
    pass


class SenecTransportError(SenecError):
    """Exception raised when the appliance cannot be queried."""
    pass


class SenecResponseError(SenecTransportError):
    """Exception raised when the appliance answer has an unexpected shape."""
    pass


@dataclass
class EnergyReadings:
    """ENERGY group answer, one tagged value per field.

    A field the appliance left out is None; any other value is kept as sent
    and judged by the decoder, so one bad field only costs its own gauge.

    Attributes:
        GUI_BAT_DATA_POWER: Battery charge (+) / discharge (-) power
        GUI_INVERTER_POWER: Solar inverter output power
        GUI_HOUSE_POW: House consumption
        GUI_GRID_POW: Grid import (+) / export (-) power
        GUI_BAT_DATA_FUEL_CHARGE: Battery state of charge in percent
    """
    GUI_BAT_DATA_POWER: Optional[Any] = None
    GUI_INVERTER_POWER: Optional[Any] = None
    GUI_HOUSE_POW: Optional[Any] = None
    GUI_GRID_POW: Optional[Any] = None
    GUI_BAT_DATA_FUEL_CHARGE: Optional[Any] = None


@dataclass
class WallboxReadings:
    """WALLBOX group answer, a list of tagged values per field.

    The appliance batches readings per wallbox slot; only the first slot is
    read by this exporter. Fields are not checked here, firmware without a
    wallbox field answers with a plain string such as ``VARIABLE_NOT_FOUND``.
    """
    values: Dict[str, Any]

    def first(self, name: str) -> Optional[Any]:
        """Return the first slot's value for a field, or None if absent or not a list."""
        slots = self.values.get(name)
        if not isinstance(slots, list) or not slots:
            return None
        return slots[0]


@dataclass
class SenecResponse:
    """Validated appliance answer."""
    energy: EnergyReadings
    wallbox: Optional[WallboxReadings] = None


def build_request_payload(wallbox: bool = False) -> Dict[str, Dict[str, str]]:
    """Build the request body.

    An empty string asks the appliance to report that field.

    Args:
        wallbox: Whether to include the WALLBOX group

    Returns:
        Mapping of group name to {field name: ""}
    """
    payload = {ENERGY_GROUP: {name: "" for name in ENERGY_FIELDS}}
    if wallbox:
        payload[WALLBOX_GROUP] = {name: "" for name in WALLBOX_FIELDS}
    return payload


def _parse_energy(group: Any) -> EnergyReadings:
    if not isinstance(group, dict):
        raise SenecResponseError(f"{ENERGY_GROUP} must be an object, got {type(group).__name__}")
    return EnergyReadings(**{f.name: group.get(f.name) for f in fields(EnergyReadings)})


def _parse_wallbox(group: Any) -> Optional[WallboxReadings]:
    if not isinstance(group, dict):
        logger.warning(f"Ignoring {WALLBOX_GROUP}: expected an object, got {type(group).__name__}")
        return None
    return WallboxReadings(values=dict(group))


def parse_response(data: Any) -> SenecResponse:
    """Validate a decoded JSON answer.

    Only the group objects are checked here. Field values are decoded one by
    one later, so a bad WALLBOX group or field never costs the ENERGY gauges.

    Args:
        data: Decoded JSON body

    Returns:
        SenecResponse; ``wallbox`` is None when the group is absent or unusable

    Raises:
        SenecResponseError: If the body or the ENERGY group is not an object
    """
    if not isinstance(data, dict):
        raise SenecResponseError(f"Response must be a JSON object, got {type(data).__name__}")
    if ENERGY_GROUP not in data:
        raise SenecResponseError(f"Response is missing the {ENERGY_GROUP} group")

    energy = _parse_energy(data[ENERGY_GROUP])
    wallbox = None
    if data.get(WALLBOX_GROUP) is not None:
        wallbox = _parse_wallbox(data[WALLBOX_GROUP])
    return SenecResponse(energy=energy, wallbox=wallbox)


class SenecClient:
    """Client for the SENEC appliance's local JSON interface.

    Attributes:
        host: Appliance host name or IP address
        timeout: Request timeout in seconds; None leaves it to requests
    """

    def __init__(self, host: str, timeout: Optional[float] = None, session: Optional[requests.Session] = None):
        """Initialize the client.

        Args:
            host: Appliance host name or IP address
            timeout: Optional request timeout in seconds
            session: Optional session, mostly for tests
        """
        self.host = host
        self.timeout = timeout
        self.session = session if session is not None else requests.Session()
        self.session.headers.update({
            "Content-Type": "application/json",
            "Accept": "application/json",
        })

    @property
    def url(self) -> str:
        return f"http://{self.host}{ENDPOINT_PATH}"

    def read_data(self, wallbox: bool = False) -> SenecResponse:
        """Query the appliance once.

        Args:
            wallbox: Whether to request the WALLBOX group too

        Returns:
            Validated SenecResponse

        Raises:
            SenecTransportError: If the request fails or the body is not JSON
            SenecResponseError: If the JSON has an unexpected shape
        """
        payload = build_request_payload(wallbox)
        logger.debug(f"POST {self.url} groups={list(payload)}")

        try:
            response = self.session.post(self.url, json=payload, timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            raise SenecTransportError(f"Request to {self.url} failed: {e}") from e

        try:
            data = response.json()
        except ValueError as e:
            raise SenecTransportError(f"Appliance returned a non-JSON body: {e}") from e

        return parse_response(data)

    def close(self) -> None:
        """Close the underlying HTTP session."""
        self.session.close()
