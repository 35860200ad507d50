import math
import threading
from typing import Any, Dict, Mapping, Optional

import datetime as dt
from flask import Flask, jsonify, Response, request
import waitress
from flask_cors import CORS

from ladetarif.billing_rules import MalformedTimeInputError
from ladetarif.calculator import ChargingCalculator
from ladetarif.catalog_parser import parse_charging_type
from ladetarif.logging import log
from ladetarif.tariffs import TariffQuote
from ladetarif.time_helpers import format_duration
from ladetarif.types import ChargingResult, ChargingSession, ChargingType, FilterCriteria
from dataclasses import asdict


def parse_timestamp(value: Optional[str]) -> Optional[dt.datetime]:
    if value is None or value == "":
        return None
    timestamp = dt.datetime.fromisoformat(value)
    if timestamp.tzinfo is None:
        raise ValueError(f"Timestamp '{value}' must have timezone information")
    return timestamp


def parse_session(data: Mapping[str, Any]) -> ChargingSession:
    """
    Convert a JSON session description to a charging session. The session starts now unless a start is given.
    """
    start = parse_timestamp(data.get("start")) or dt.datetime.now().astimezone()
    return ChargingSession(current_soc=float(data["current_soc"]), target_soc=float(data["target_soc"]),
                           charger_power_kw=float(data["charger_power_kw"]),
                           battery_capacity_kwh=float(data["battery_capacity_kwh"]),
                           charging_type=parse_charging_type(data.get("charging_type", "AC")),
                           start=start, end=parse_timestamp(data.get("end")), vehicle_id=data.get("vehicle_id"),
                           station_provider_id=data.get("station_provider_id"))


def parse_filter_criteria(data: Mapping[str, Any]) -> FilterCriteria:
    return FilterCriteria(providers=tuple(data.get("providers", [])), connectors=tuple(data.get("connectors", [])),
                          charging_types=tuple(parse_charging_type(t) for t in data.get("charging_types", [])))


def charging_result_to_json(result: ChargingResult) -> Dict[str, Any]:
    # JSON has no infinity, so an impossible charging session has no total time
    combined = asdict(result)
    if math.isinf(result.total_time_minutes):
        combined["total_time_minutes"] = None
        combined["total_time"] = None
    else:
        combined["total_time"] = format_duration(result.total_time_minutes)
    return combined


def quote_to_json(quote: TariffQuote) -> Dict[str, Any]:
    tariff = quote.tariff
    return dict(
        tariff_id=tariff.id,
        name=tariff.name,
        charging_type=tariff.charging_type.value,
        provider_id=tariff.provider_id,
        provider_name=tariff.provider_name,
        provider_url=tariff.provider_url,
        connectors=list(tariff.connectors),
        max_power_kw=tariff.max_power_kw,
        price_per_kwh=tariff.price_per_kwh,
        special_attributes=asdict(tariff.special_attributes),
        energy_cost=quote.energy_cost,
        base_fee=quote.base_fee,
        blocking_fee=quote.blocking_fee,
        blocking_fee_description=quote.blocking_fee_description,
        total_cost=quote.total_cost,
        effective_price_per_kwh=quote.effective_price_per_kwh,
    )


class LadetarifService:
    def __init__(self, host: str, port: int, calculator: ChargingCalculator) -> None:
        self._calculator = calculator

        # Create Flask application
        self._service = Flask("ladetarif")

        # Enable cross-site requests
        CORS(self._service)

        # Add API endpoints
        self._service.add_url_rule("/vehicles", "vehicles", self.vehicles, methods=["GET"])
        self._service.add_url_rule("/providers", "providers", self.providers, methods=["GET"])
        self._service.add_url_rule("/connectors", "connectors", self.connectors, methods=["GET"])
        self._service.add_url_rule("/catalog", "catalog", self.catalog, methods=["GET"])
        self._service.add_url_rule("/charging_time", "charging_time", self.charging_time, methods=["POST"])
        self._service.add_url_rule("/tariffs", "tariffs", self.tariffs, methods=["POST"])
        self._service.add_url_rule("/custom_tariff", "custom_tariff", self.custom_tariff, methods=["POST"])
        self._server = waitress.create_server(self._service, host=host, port=port, threads=1)
        self._server_thread = threading.Thread(target=self._server.run, name="server_thread", daemon=True)

    @property
    def endpoint(self) -> str:
        return f"http://{self._server.effective_host}:{self._server.effective_port}"

    def start(self) -> None:
        self._server_thread.start()
        log.info(f"Started webservice at {self.endpoint}")

    def stop(self) -> None:
        self._server.close()

    def join(self) -> None:
        self._server_thread.join()

    def __enter__(self) -> "LadetarifService":
        self.start()
        return self

    def __exit__(self, *args) -> None:
        self.stop()

    def vehicles(self) -> Response:
        return jsonify([asdict(v) for v in self._calculator.available_vehicles()])

    def providers(self) -> Response:
        return jsonify([dict(id=p.id, name=p.name, url=p.url, type=None if p.type is None else p.type.value,
                             connectors=list(p.connectors), tariff_count=len(p.tariffs))
                        for p in self._calculator.tariff_catalog.providers])

    def connectors(self) -> Response:
        taxonomy = self._calculator.tariff_catalog.connector_taxonomy
        return jsonify(dict(
            connectors=[dict(asdict(c), charging_type=c.charging_type.value) for c in taxonomy.connectors],
            charging_type_mapping={t: list(ids) for t, ids in taxonomy.charging_type_mapping.items()},
        ))

    def catalog(self) -> Response:
        """
        API endpoint with the choices offered by the tariff filters
        """
        tariff_catalog = self._calculator.tariff_catalog
        return jsonify(dict(
            provider_names=tariff_catalog.unique_provider_names(),
            connectors=tariff_catalog.unique_connectors(),
            tariff_counts={t.value: len(tariff_catalog.tariffs_by_type(t)) for t in ChargingType},
        ))

    def charging_time(self) -> Response:
        """
        API endpoint to estimate the duration and energy of charging a vehicle
        """
        try:
            data = request.json
            result = self._calculator.simulate_charging(data.get("vehicle_id"), float(data["current_soc"]),
                                                        float(data["target_soc"]), float(data["charger_power_kw"]),
                                                        float(data["battery_capacity_kwh"]))
        except (KeyError, TypeError, ValueError) as e:
            log.warning(f"Rejected charging time request: '{e}'")
            return Response(f"Unable to parse request parameters: '{e}'", 400)
        return jsonify(charging_result_to_json(result))

    def tariffs(self) -> Response:
        """
        API endpoint to compare the cost of a charging session across tariffs, cheapest first
        """
        try:
            data = request.json
            criteria = parse_filter_criteria(data.get("filter", {}))
            session = parse_session(data["session"])
            quotes = self._calculator.rank_tariffs(criteria, session)
        except MalformedTimeInputError as e:
            log.warning(f"Rejected tariff request: '{e}'")
            return Response(f"Invalid session times: '{e}'", 400)
        except (KeyError, TypeError, ValueError, RuntimeError) as e:
            log.warning(f"Rejected tariff request: '{e}'")
            return Response(f"Unable to parse request parameters: '{e}'", 400)
        return jsonify([quote_to_json(q) for q in quotes])

    def custom_tariff(self) -> Response:
        """
        API endpoint to price a charging session with a tariff entered by the user
        """
        try:
            data = request.json
            session = parse_session(data["session"])
            quote = self._calculator.quote_custom_tariff(session, float(data["price_per_kwh"]),
                                                         float(data.get("blocking_price_per_min", 0.0)))
        except (KeyError, TypeError, ValueError, RuntimeError) as e:
            log.warning(f"Rejected custom tariff request: '{e}'")
            return Response(f"Unable to parse request parameters: '{e}'", 400)
        return jsonify(None if quote is None else quote_to_json(quote))
