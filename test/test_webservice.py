from typing import Any, Dict

import pytest
import requests

from ladetarif.calculator import ChargingCalculator
from ladetarif.webservice import LadetarifService, parse_session, parse_timestamp

# Use any free port for web services
FREE_PORT = 0
HOST_ADDRESS = "127.0.0.1"  # This has to be an IPv4 address for webservice to not break


@pytest.fixture()
def dc_session() -> Dict[str, Any]:
    return dict(current_soc=20, target_soc=80, charger_power_kw=150, battery_capacity_kwh=52, charging_type="DC",
                start="2025-07-01T10:00:00+02:00", end="2025-07-01T11:00:00+02:00",
                vehicle_id="renault-5-e-tech-52kwh", station_provider_id="eon-drive")


def test_parse_timestamp() -> None:
    assert parse_timestamp(None) is None
    assert parse_timestamp("") is None
    assert parse_timestamp("2025-07-01T10:00:00+02:00").utcoffset().total_seconds() == 7200
    with pytest.raises(ValueError):
        parse_timestamp("2025-07-01T10:00:00")
    with pytest.raises(ValueError):
        parse_timestamp("22:00")


def test_parse_session(dc_session: Dict[str, Any]) -> None:
    session = parse_session(dc_session)
    assert session.start is not None
    assert session.end is not None
    assert session.station_provider_id == "eon-drive"

    # The session starts now unless a start is given
    del dc_session["start"]
    del dc_session["end"]
    session = parse_session(dc_session)
    assert session.start is not None
    assert session.start.tzinfo is not None
    assert session.end is None


def test_webservice_catalog_queries(calculator: ChargingCalculator) -> None:
    """
    Test that the vehicles, providers and connectors can be queried with HTTP GET
    """
    with LadetarifService(host=HOST_ADDRESS, port=FREE_PORT, calculator=calculator) as service:
        resp = requests.get(f"{service.endpoint}/vehicles")
        resp.raise_for_status()
        assert sorted(v["id"] for v in resp.json()) == ["generic", "renault-5-e-tech-52kwh"]

        resp = requests.get(f"{service.endpoint}/providers")
        resp.raise_for_status()
        providers = resp.json()
        assert [p["id"] for p in providers] == ["aral-pulse", "qwello", "mobility-plus", "ionity", "eon"]
        assert providers[1]["type"] == "AC"

        resp = requests.get(f"{service.endpoint}/connectors")
        resp.raise_for_status()
        connectors = resp.json()
        assert len(connectors["connectors"]) == 7
        assert connectors["charging_type_mapping"]["AC"] == ["TYPE_1", "TYPE_2", "SCHUKO"]

        resp = requests.get(f"{service.endpoint}/catalog")
        resp.raise_for_status()
        catalog = resp.json()
        assert catalog["provider_names"] == ["Aral Pulse", "Qwello", "EnBW mobility+", "Ionity", "E.ON Drive"]
        assert catalog["connectors"] == ["TYPE_2", "CCS_2", "CHAdeMO"]
        assert catalog["tariff_counts"] == {"AC": 2, "DC": 3}


def test_webservice_charging_time(calculator: ChargingCalculator) -> None:
    """
    Test that the "/charging_time" API endpoint can be called with HTTP POST and that it returns the simulated session
    """
    request_data = dict(vehicle_id="renault-5-e-tech-52kwh", current_soc=20, target_soc=80, charger_power_kw=11,
                        battery_capacity_kwh=52)
    with LadetarifService(host=HOST_ADDRESS, port=FREE_PORT, calculator=calculator) as service:
        resp = requests.post(f"{service.endpoint}/charging_time", json=request_data)
        resp.raise_for_status()
        result = resp.json()
        assert result["total_energy_kwh"] == pytest.approx(31.2)
        assert result["total_time_minutes"] == pytest.approx(31.2 / 11 * 60)
        assert result["charging_possible"] is True
        assert result["total_time"] == "2:50 h"
        assert len(result["samples"]) == 60

        del request_data["current_soc"]
        resp = requests.post(f"{service.endpoint}/charging_time", json=request_data)
        assert resp.status_code == 400


def test_webservice_tariffs(calculator: ChargingCalculator, dc_session: Dict[str, Any]) -> None:
    """
    Test that the "/tariffs" API endpoint ranks the tariffs matching the filter, cheapest first
    """
    with LadetarifService(host=HOST_ADDRESS, port=FREE_PORT, calculator=calculator) as service:
        url = f"{service.endpoint}/tariffs"
        resp = requests.post(url, json=dict(filter=dict(charging_types=["DC"]), session=dc_session))
        resp.raise_for_status()
        quotes = resp.json()
        assert [q["tariff_id"] for q in quotes] == ["eon-light-dc", "ionity-direct", "mobility-plus-fremd"]
        assert quotes[0]["blocking_fee"] == pytest.approx(1.5)
        assert quotes[1]["special_attributes"]["plug_and_charge"] is True
        assert quotes[2]["blocking_fee_description"] == "0.10 €/min, max 12.00 €"

        # The Qwello night cap needs the session times, which default to now
        resp = requests.post(url, json=dict(filter=dict(connectors=["mennekes"]),
                                            session=dict(current_soc=20, target_soc=80, charger_power_kw=11,
                                                         battery_capacity_kwh=52)))
        resp.raise_for_status()
        assert sorted(q["tariff_id"] for q in resp.json()) == ["aral-pulse-adac", "qwello-nrw"]


def test_webservice_tariffs_invalid_times(calculator: ChargingCalculator, dc_session: Dict[str, Any]) -> None:
    """
    Test that sessions with malformed start or end times are rejected
    """
    with LadetarifService(host=HOST_ADDRESS, port=FREE_PORT, calculator=calculator) as service:
        url = f"{service.endpoint}/tariffs"
        naive_session = dict(dc_session, start="2025-07-01T10:00:00")
        resp = requests.post(url, json=dict(session=naive_session))
        assert resp.status_code == 400

        reversed_session = dict(dc_session, end="2025-07-01T09:00:00+02:00")
        resp = requests.post(url, json=dict(session=reversed_session))
        assert resp.status_code == 400
        assert "Invalid session times" in resp.text


def test_webservice_custom_tariff(calculator: ChargingCalculator, dc_session: Dict[str, Any]) -> None:
    """
    Test that the "/custom_tariff" API endpoint prices a session with a user-defined tariff
    """
    with LadetarifService(host=HOST_ADDRESS, port=FREE_PORT, calculator=calculator) as service:
        url = f"{service.endpoint}/custom_tariff"
        resp = requests.post(url, json=dict(session=dc_session, price_per_kwh=0.5, blocking_price_per_min=0.1))
        resp.raise_for_status()
        quote = resp.json()
        assert quote["tariff_id"] == "custom"
        assert quote["total_cost"] == pytest.approx(21.6)

        resp = requests.post(url, json=dict(session=dc_session))
        assert resp.status_code == 400
