from typing import Any, Dict, List

import pytest

from ladetarif.calculator import ChargingCalculator
from ladetarif.catalog_parser import parse_connector_taxonomy, parse_vehicles
from ladetarif.charging_curve import ChargingCurveModel
from ladetarif.tariff_catalog import TariffCatalog
from ladetarif.types import ConnectorTaxonomy, Vehicle


@pytest.fixture()
def raw_vehicles() -> Dict[str, Any]:
    return {
        "renault-5-e-tech-52kwh": {
            "name": "Renault 5 E-Tech 52 kWh",
            "batteryCapacity": 52,
            "maxChargingPower": 100,
            "connectorType": "CCS",
            "chargingCurves": {
                "400": {"14": 100.39, "15": 100.56, "20": 100.89, "30": 96.05, "40": 88.88, "50": 75.86,
                        "60": 65.65, "70": 59.69, "80": 41.85, "90": 32.03, "95": 18.64},
                "150": {"14": 75.0, "20": 75.0, "30": 72.0, "40": 66.0, "50": 57.0, "60": 49.0, "70": 45.0,
                        "80": 31.0, "90": 24.0, "95": 14.0},
                "22": {"14": 22.0, "20": 22.0, "50": 22.0, "95": 22.0},
            },
        },
        "generic": {"name": "Generic Vehicle", "batteryCapacity": 50, "chargingCurves": {}},
    }


@pytest.fixture()
def vehicles(raw_vehicles: Dict[str, Any]) -> Dict[str, Vehicle]:
    return parse_vehicles(raw_vehicles)


@pytest.fixture()
def raw_connectors() -> Dict[str, Any]:
    return {
        "connectors": [
            {"id": "TYPE_1", "name": "Type 1 (J1772)", "chargingType": "AC", "aliases": ["J1772"]},
            {"id": "TYPE_2", "name": "Type 2 (Mennekes)", "chargingType": "AC", "aliases": ["MENNEKES"]},
            {"id": "CCS_1", "name": "CCS 1", "chargingType": "DC", "aliases": []},
            {"id": "CCS_2", "name": "CCS 2", "chargingType": "DC", "aliases": ["IEC_62196_T2_COMBO"]},
            {"id": "CHAdeMO", "name": "CHAdeMO", "chargingType": "DC", "aliases": []},
            {"id": "TESLA", "name": "Tesla Supercharger", "chargingType": "DC", "aliases": []},
            {"id": "SCHUKO", "name": "Schuko", "chargingType": "AC", "aliases": []},
        ],
        "chargingTypeMapping": {
            "AC": ["TYPE_1", "TYPE_2", "SCHUKO"],
            "DC": ["CCS_1", "CCS_2", "CHAdeMO", "TESLA"],
        },
    }


@pytest.fixture()
def taxonomy(raw_connectors: Dict[str, Any]) -> ConnectorTaxonomy:
    return parse_connector_taxonomy(raw_connectors)


@pytest.fixture()
def qwello_blocking_fee() -> Dict[str, Any]:
    return {
        "description": "Max 3.60 EUR blocking fee from 21-7h",
        "pricePerMin": 0.02,
        "conditions": {
            "daytime": {
                "timeRanges": [
                    {"from": "21:00", "to": "07:00", "pricePerMin": 0.02, "maxPrice": 3.6, "maxBilledMinutes": 180},
                    {"from": "07:00", "to": "21:00", "pricePerMin": 0.02},
                ],
            },
            "whileCharging": True,
            "whileIdle": True,
        },
    }


@pytest.fixture()
def eon_blocking_fee() -> Dict[str, Any]:
    return {
        "conditions": {
            "providerSpecific": {
                "ionity": False,
                "eon-drive": {"pricePerMin": 0.1, "conditions": {"durationMinutes": {"from": 45}}},
                "eon-drive-infrastructure": {"pricePerMin": 0.15, "conditions": {"durationHours": {"from": 1}}},
            },
        },
    }


@pytest.fixture()
def raw_providers(qwello_blocking_fee: Dict[str, Any], eon_blocking_fee: Dict[str, Any]) -> List[Dict[str, Any]]:
    return [
        {"id": "aral-pulse", "name": "Aral Pulse", "type": "AC", "url": "https://aral.de", "connectors": ["TYPE_2"],
         "tariffs": [{"id": "aral-pulse-adac", "name": "Aral Pulse (ADAC)", "type": "AC", "pricePerKwh": 0.57,
                      "baseFee": 0, "blockingFee": False, "connectors": ["TYPE_2"]}]},
        {"id": "qwello", "name": "Qwello", "type": "AC", "connectors": ["TYPE_2"],
         "tariffs": [{"id": "qwello-nrw", "name": "Qwello NRW", "type": "AC", "pricePerKwh": 0.49, "baseFee": 0,
                      "blockingFee": qwello_blocking_fee, "connectors": ["TYPE_2"]}]},
        {"id": "mobility-plus", "name": "EnBW mobility+", "type": "DC",
         "tariffs": [{"id": "mobility-plus-fremd", "name": "Mobility+ Fremd", "type": "DC", "pricePerKwh": 0.84,
                      "blockingFee": {"pricePerMin": 0.1, "maxPerSession": 12.0},
                      "connectors": ["CCS_2", "CHAdeMO"]}]},
        {"id": "ionity", "name": "Ionity", "type": "DC",
         "tariffs": [{"id": "ionity-direct", "name": "Ionity Direct", "pricePerKwh": 0.79, "blockingFee": False,
                      "connectors": ["CCS_2"], "specialAttributes": {"plugAndCharge": True}}]},
        {"id": "eon", "name": "E.ON Drive", "type": "DC",
         "tariffs": [{"id": "eon-light-dc", "name": "E.ON Light DC", "type": "DC", "pricePerKwh": 0.61,
                      "blockingFee": eon_blocking_fee, "connectors": ["CCS_2"]}]},
    ]


@pytest.fixture()
def tariff_catalog(taxonomy: ConnectorTaxonomy, raw_providers: List[Dict[str, Any]]) -> TariffCatalog:
    catalog = TariffCatalog(taxonomy)
    catalog.load(raw_providers)
    return catalog


@pytest.fixture()
def calculator(vehicles: Dict[str, Vehicle], tariff_catalog: TariffCatalog) -> ChargingCalculator:
    return ChargingCalculator(ChargingCurveModel(vehicles), tariff_catalog)
