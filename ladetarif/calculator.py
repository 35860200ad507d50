from typing import List, NamedTuple, Optional, Tuple
import datetime as dt

from ladetarif.billing_rules import FlatRule, require_absolute_times
from ladetarif.charging_curve import ChargingCurveModel
from ladetarif.logging import log
from ladetarif.tariff_catalog import TariffCatalog
from ladetarif.tariffs import Tariff, TariffQuote
from ladetarif.time_helpers import minutes_between
from ladetarif.types import ChargingResult, ChargingSession, FilterCriteria, VehicleSummary

CUSTOM_TARIFF_ID = "custom"


class SessionTiming(NamedTuple):
    start: Optional[dt.datetime]
    end: Optional[dt.datetime]
    charging_minutes: float
    blocking_minutes: float


def is_valid_session(session: ChargingSession) -> bool:
    return session.battery_capacity_kwh > 0 and session.charger_power_kw > 0 and \
        session.target_soc > session.current_soc


def session_timing(session: ChargingSession, result: ChargingResult) -> SessionTiming:
    """
    Determine when a session ends and how long it blocks the charging point. Without an explicit end the session
    ends when charging is done.

    :param session: The charging session
    :param result: The simulated charging of the session
    :return: The start, end, charging minutes and blocking minutes of the session
    """
    start = session.start
    end = session.end
    if start is None:
        return SessionTiming(start=None, end=end, charging_minutes=result.total_time_minutes,
                             blocking_minutes=result.total_time_minutes)
    if end is None:
        end = start + dt.timedelta(minutes=result.total_time_minutes)
    else:
        start, end = require_absolute_times(start, end)
    return SessionTiming(start=start, end=end, charging_minutes=result.total_time_minutes,
                         blocking_minutes=max(0, minutes_between(start, end)))


class ChargingCalculator:
    def __init__(self, curve_model: ChargingCurveModel, tariff_catalog: TariffCatalog) -> None:
        self._curve_model = curve_model
        self._tariff_catalog = tariff_catalog

    @property
    def tariff_catalog(self) -> TariffCatalog:
        return self._tariff_catalog

    def available_vehicles(self) -> List[VehicleSummary]:
        return self._curve_model.available_vehicles()

    def simulate_charging(self, vehicle_id: Optional[str], current_soc: float, target_soc: float,
                          charger_power_kw: float, battery_capacity_kwh: float) -> ChargingResult:
        return self._curve_model.simulate(vehicle_id, current_soc, target_soc, charger_power_kw,
                                          battery_capacity_kwh)

    def _simulate_session(self, session: ChargingSession) -> ChargingResult:
        return self.simulate_charging(session.vehicle_id, session.current_soc, session.target_soc,
                                      session.charger_power_kw, session.battery_capacity_kwh)

    def _price_session(self, session: ChargingSession) -> Optional[Tuple[ChargingResult, SessionTiming]]:
        result = self._simulate_session(session)
        # Without both timestamps the blocking time of a session that never finishes charging is unbounded
        if not result.charging_possible and (session.start is None or session.end is None):
            log.warning("Vehicle cannot be charged with the given charger, no tariffs can be compared")
            return None
        return result, session_timing(session, result)

    def rank_tariffs(self, filter_criteria: Optional[FilterCriteria],
                     session: ChargingSession) -> List[TariffQuote]:
        """
        Compare the cost of a charging session across all tariffs matching the filter criteria

        :param filter_criteria: The providers, connectors and charging types to consider
        :param session: The charging session to price
        :return: The quotes ordered by total cost, cheapest first. Invalid sessions give zero-cost quotes in catalog
                 order and sessions in which the vehicle cannot charge give no quotes.
        """
        tariffs = self._tariff_catalog.filter(filter_criteria)
        if not is_valid_session(session):
            return [t.zero_quote() for t in tariffs]

        priced = self._price_session(session)
        if priced is None:
            return []
        result, timing = priced
        return self._tariff_catalog.rank(tariffs, result.total_energy_kwh, timing.charging_minutes,
                                         timing.blocking_minutes, timing.start, timing.end,
                                         session.station_provider_id)

    def quote_custom_tariff(self, session: ChargingSession, price_per_kwh: float,
                            blocking_price_per_min: float = 0.0) -> Optional[TariffQuote]:
        """
        Price a session with a tariff entered by the user: a price per kWh and a flat blocking fee per minute

        :param session: The charging session to price
        :param price_per_kwh: The energy price
        :param blocking_price_per_min: The blocking fee per minute of occupying the charging point
        :return: The quote, or None if the vehicle cannot charge
        """
        tariff = Tariff(id=CUSTOM_TARIFF_ID, name="Custom tariff", charging_type=session.charging_type,
                        price_per_kwh=price_per_kwh, provider_id=CUSTOM_TARIFF_ID, provider_name="Custom",
                        billing_rule=FlatRule(blocking_price_per_min) if blocking_price_per_min > 0 else None)
        if not is_valid_session(session):
            return tariff.zero_quote()

        priced = self._price_session(session)
        if priced is None:
            return None
        result, timing = priced
        return tariff.quote(result.total_energy_kwh, timing.charging_minutes, timing.blocking_minutes,
                            timing.start, timing.end, session.station_provider_id)
