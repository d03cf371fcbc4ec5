"""Shared fixtures for SENEC exporter tests."""

from unittest.mock import MagicMock

import pytest
from prometheus_client import CollectorRegistry

from senec_exporter.client import SenecClient, parse_response
from senec_exporter.exporter import SenecExporter

# Known binary32 encodings
HEX_445 = "fl_43DE8000"
HEX_1500 = "fl_44BB8000"
HEX_MINUS_250 = "fl_C37A0000"
HEX_3000 = "fl_453B8000"
HEX_57 = "fl_42640000"
HEX_100 = "fl_42C80000"


def energy_payload(**overrides):
    """Return a valid ENERGY group, optionally overriding fields."""
    group = {
        "GUI_BAT_DATA_POWER": HEX_445,
        "GUI_INVERTER_POWER": HEX_3000,
        "GUI_HOUSE_POW": HEX_1500,
        "GUI_GRID_POW": HEX_MINUS_250,
        "GUI_BAT_DATA_FUEL_CHARGE": HEX_57,
    }
    group.update(overrides)
    return group


@pytest.fixture
def registry():
    """Fresh registry so gauges do not collide between tests."""
    return CollectorRegistry()


@pytest.fixture
def exporter(registry):
    exporter = SenecExporter(port=0, addr="127.0.0.1", registry=registry)
    yield exporter
    exporter.stop()


@pytest.fixture
def sample_response():
    return parse_response({"ENERGY": energy_payload()})


@pytest.fixture
def wallbox_response():
    return parse_response({
        "ENERGY": energy_payload(),
        "WALLBOX": {
            "APPARENT_CHARGING_POWER": [HEX_445, "fl_00000000", "fl_00000000", "fl_00000000"],
            "STATE": ["u8_10", "u8_00", "u8_00", "u8_00"],
        },
    })


@pytest.fixture
def mock_client():
    return MagicMock(spec=SenecClient)
