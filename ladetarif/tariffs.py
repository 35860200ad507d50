from typing import Iterable, Mapping, Optional, Sequence, Tuple
import dataclasses
import datetime as dt

from ladetarif.billing_rules import BillingRule, describe_billing_rule
from ladetarif.constants import AC_DEFAULT_MAX_POWER_KW, DEFAULT_CHARGING_TYPE_MAPPING
from ladetarif.types import ChargingType, SpecialAttributes


@dataclasses.dataclass(frozen=True)
class Tariff:
    id: str
    name: str
    charging_type: ChargingType
    price_per_kwh: float
    provider_id: str
    provider_name: str
    base_fee: float = 0.0
    connectors: Tuple[str, ...] = ()  # Empty means the connector family of the charging type
    billing_rule: Optional[BillingRule] = None  # Blocking fee rule (None if there is no blocking fee)
    max_power_kw: float = AC_DEFAULT_MAX_POWER_KW
    description: str = ""
    special_attributes: SpecialAttributes = dataclasses.field(default_factory=SpecialAttributes)
    provider_type: Optional[ChargingType] = None
    provider_url: str = ""
    provider_connectors: Tuple[str, ...] = ()

    def energy_cost(self, energy_kwh: float) -> float:
        return energy_kwh * self.price_per_kwh

    def blocking_fee(self, blocking_minutes: float, charging_minutes: float = 0.0,
                     start: Optional[dt.datetime] = None, end: Optional[dt.datetime] = None,
                     provider_id: Optional[str] = None) -> float:
        if self.billing_rule is None:
            return 0.0
        return self.billing_rule.fee(blocking_minutes, charging_minutes, start, end, provider_id)

    def total_cost(self, energy_kwh: float, charging_minutes: float, blocking_minutes: float = 0.0,
                   start: Optional[dt.datetime] = None, end: Optional[dt.datetime] = None,
                   provider_id: Optional[str] = None) -> float:
        """
        Calculate the total cost of a charging session with this tariff

        :param energy_kwh: The energy charged
        :param charging_minutes: The time spent charging
        :param blocking_minutes: The time the charging point was occupied
        :param start: The start of the session (required by time-dependent blocking fees)
        :param end: The end of the session (required by time-dependent blocking fees)
        :param provider_id: The operator of the charging station (used by provider-dependent blocking fees)
        :return: The sum of energy cost, base fee and blocking fee
        """
        return self.energy_cost(energy_kwh) + self.base_fee + \
            self.blocking_fee(blocking_minutes, charging_minutes, start, end, provider_id)

    def effective_price_per_kwh(self, energy_kwh: float, charging_minutes: float, blocking_minutes: float = 0.0,
                                start: Optional[dt.datetime] = None, end: Optional[dt.datetime] = None,
                                provider_id: Optional[str] = None) -> float:
        if energy_kwh <= 0:
            return 0.0
        return self.total_cost(energy_kwh, charging_minutes, blocking_minutes, start, end, provider_id) / energy_kwh

    def is_compatible(self, connector_types: Iterable[str],
                      type_mapping: Mapping[str, Sequence[str]] = DEFAULT_CHARGING_TYPE_MAPPING) -> bool:
        """
        Check whether the tariff can be used with any of the given connectors. Tariffs without explicit connectors
        are compatible with the connector family of their charging type.

        :param connector_types: The connector ids to check
        :param type_mapping: Charging type -> connector family to use for tariffs without explicit connectors
        :return: True if at least one connector is supported
        """
        supported = self.connectors if len(self.connectors) > 0 else type_mapping.get(self.charging_type.value, ())
        return any(connector in supported for connector in connector_types)

    def quote(self, energy_kwh: float, charging_minutes: float, blocking_minutes: float = 0.0,
              start: Optional[dt.datetime] = None, end: Optional[dt.datetime] = None,
              provider_id: Optional[str] = None) -> "TariffQuote":
        energy_cost = self.energy_cost(energy_kwh)
        blocking_fee = self.blocking_fee(blocking_minutes, charging_minutes, start, end, provider_id)
        total_cost = energy_cost + self.base_fee + blocking_fee
        return TariffQuote(tariff=self, energy_cost=energy_cost, base_fee=self.base_fee, blocking_fee=blocking_fee,
                           total_cost=total_cost,
                           effective_price_per_kwh=total_cost / energy_kwh if energy_kwh > 0 else 0.0,
                           blocking_fee_description=describe_billing_rule(self.billing_rule))

    def zero_quote(self) -> "TariffQuote":
        return TariffQuote(tariff=self, energy_cost=0.0, base_fee=0.0, blocking_fee=0.0, total_cost=0.0,
                           effective_price_per_kwh=0.0,
                           blocking_fee_description=describe_billing_rule(self.billing_rule))


@dataclasses.dataclass(frozen=True)
class TariffQuote:
    tariff: Tariff
    energy_cost: float
    base_fee: float
    blocking_fee: float
    total_cost: float
    effective_price_per_kwh: float
    blocking_fee_description: str


@dataclasses.dataclass(frozen=True)
class Provider:
    id: str
    name: str
    url: str = ""
    type: Optional[ChargingType] = None
    connectors: Tuple[str, ...] = ()
    tariffs: Tuple[Tariff, ...] = ()

    def tariffs_by_type(self, charging_type: ChargingType) -> Tuple[Tariff, ...]:
        return tuple(t for t in self.tariffs if t.charging_type == charging_type)

    def compatible_tariffs(self, connector_types: Sequence[str],
                           type_mapping: Mapping[str, Sequence[str]] = DEFAULT_CHARGING_TYPE_MAPPING) \
            -> Tuple[Tariff, ...]:
        return tuple(t for t in self.tariffs if t.is_compatible(connector_types, type_mapping))
