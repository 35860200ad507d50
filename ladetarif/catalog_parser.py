from typing import Any, Dict, List, Mapping, Optional, Tuple
import datetime as dt

from ladetarif.billing_rules import BillingRule, DurationThresholdRule, FlatRule, ProviderSpecificRule, TimeRange, \
    TimeWindowedRule
from ladetarif.constants import AC_DEFAULT_MAX_POWER_KW, DC_DEFAULT_MAX_POWER_KW, DEFAULT_CHARGING_TYPE_MAPPING
from ladetarif.tariffs import Provider, Tariff
from ladetarif.types import ChargingType, Connector, ConnectorTaxonomy, SpecialAttributes, Vehicle

DEFAULT_MAX_POWER_KW = {
    ChargingType.AC: AC_DEFAULT_MAX_POWER_KW,
    ChargingType.DC: DC_DEFAULT_MAX_POWER_KW,
}


def _non_negative(value: Any, what: str) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise RuntimeError(f"{what} has to be a number, was '{value}'")
    if number < 0:
        raise RuntimeError(f"{what} cannot be negative, was '{value}'")
    return number


def _optional_non_negative(value: Any, what: str) -> Optional[float]:
    # Configuration uses null, false and 0 interchangeably for "no limit"
    if value is None or value is False or value == 0:
        return None
    return _non_negative(value, what)


def parse_charging_type(value: Any) -> ChargingType:
    try:
        return ChargingType(str(value).upper())
    except ValueError:
        raise RuntimeError(f"Charging type has to be one of {[t.value for t in ChargingType]}, was '{value}'")


def parse_time_of_day(value: str) -> dt.time:
    """
    Parse a time of day in the format "HH:MM"

    :param value: The time of day, e.g. "21:00"
    :return: The parsed time
    """
    try:
        hours, minutes = str(value).split(":")
        return dt.time(hour=int(hours), minute=int(minutes))
    except ValueError:
        raise RuntimeError(f"Time of day has to be in the format 'HH:MM', was '{value}'")


def parse_time_range(record: Mapping[str, Any], base_price_per_min: float) -> TimeRange:
    price_per_min = record.get("pricePerMin")
    return TimeRange(window_start=parse_time_of_day(record.get("from", "00:00")),
                     window_end=parse_time_of_day(record.get("to", "23:59")),
                     price_per_min=base_price_per_min if price_per_min is None else
                     _non_negative(price_per_min, "Time range price per minute"),
                     max_price=_optional_non_negative(record.get("maxPrice"), "Time range max price"),
                     max_billed_minutes=_optional_non_negative(record.get("maxBilledMinutes"),
                                                               "Time range max billed minutes"))


def parse_billing_rule(raw: Any) -> Optional[BillingRule]:
    """
    Decide the blocking fee rule of a tariff from its raw "blockingFee" configuration value

    :param raw: False/None for no blocking fee, a number for a flat price per minute or an object with conditions
    :return: The blocking fee rule, or None if the tariff has no blocking fee
    """
    if raw is None or raw is False:
        return None
    if isinstance(raw, (int, float)) and not isinstance(raw, bool):
        price_per_min = _non_negative(raw, "Blocking fee")
        return FlatRule(price_per_min=price_per_min) if price_per_min > 0 else None
    if not isinstance(raw, Mapping):
        raise RuntimeError(f"Blocking fee has to be false, a number or an object, was '{raw}'")

    price_per_min = _non_negative(raw.get("pricePerMin", 0), "Blocking fee price per minute")
    conditions = raw.get("conditions") or {}
    max_per_session = None
    for cap in (raw.get("maxPerSession"), raw.get("maxPricePerSession"), conditions.get("maxPricePerSession")):
        cap_value = _optional_non_negative(cap, "Blocking fee max per session")
        if cap_value is not None:
            max_per_session = cap_value if max_per_session is None else min(max_per_session, cap_value)

    if conditions.get("providerSpecific"):
        per_provider: Dict[str, Optional[BillingRule]] = {}
        for provider_id, provider_raw in conditions["providerSpecific"].items():
            # An explicit false means that sessions at this provider's stations are free of charge
            per_provider[provider_id] = None if provider_raw is False else parse_billing_rule(provider_raw)
        return ProviderSpecificRule(per_provider=per_provider, price_per_min=price_per_min,
                                    max_per_session=max_per_session)

    daytime = conditions.get("daytime")
    if daytime and daytime.get("timeRanges"):
        time_ranges = tuple(parse_time_range(r, price_per_min) for r in daytime["timeRanges"])
        return TimeWindowedRule(time_ranges=time_ranges, price_per_min=price_per_min, max_per_session=max_per_session)

    for key, minutes_per_unit in (("durationHours", 60.0), ("durationMinutes", 1.0)):
        duration = conditions.get(key)
        if duration:
            threshold = _non_negative(duration.get("from", 0), "Blocking fee duration threshold") * minutes_per_unit
            return DurationThresholdRule(threshold_minutes=threshold, price_per_min=price_per_min,
                                         max_price=_optional_non_negative(duration.get("maxPrice"),
                                                                          "Blocking fee duration max price"),
                                         max_per_session=max_per_session)

    if price_per_min <= 0:
        return None
    return FlatRule(price_per_min=price_per_min, max_per_session=max_per_session)


def parse_special_attributes(record: Optional[Mapping[str, Any]]) -> SpecialAttributes:
    record = record or {}
    return SpecialAttributes(plug_and_charge=bool(record.get("plugAndCharge", False)),
                             registration_required=bool(record.get("registrationRequired", False)),
                             membership_required=bool(record.get("membershipRequired", False)))


def parse_connector_taxonomy(record: Mapping[str, Any]) -> ConnectorTaxonomy:
    connectors = tuple(Connector(id=c["id"], name=c.get("name", c["id"]),
                                 charging_type=parse_charging_type(c["chargingType"]),
                                 description=c.get("description", ""), aliases=tuple(c.get("aliases", [])))
                       for c in record.get("connectors", []))
    raw_mapping = record.get("chargingTypeMapping") or DEFAULT_CHARGING_TYPE_MAPPING
    mapping = {parse_charging_type(t).value: tuple(ids) for t, ids in raw_mapping.items()}
    return ConnectorTaxonomy(connectors=connectors, charging_type_mapping=mapping)


def _charging_types(record: Mapping[str, Any], provider_type: Optional[ChargingType]) -> List[ChargingType]:
    if record.get("types"):
        return [parse_charging_type(t) for t in record["types"]]
    if record.get("type"):
        return [parse_charging_type(record["type"])]
    return [provider_type or ChargingType.AC]


def parse_tariffs(record: Mapping[str, Any], provider_id: str, provider_name: str, provider_url: str,
                  provider_type: Optional[ChargingType], provider_connectors: Tuple[str, ...],
                  taxonomy: ConnectorTaxonomy) -> List[Tariff]:
    """
    Parse a raw tariff entry into one tariff per charging type that it declares

    :param record: The raw tariff entry
    :param provider_id: The id of the provider offering the tariff
    :param provider_name: The name of the provider offering the tariff
    :param provider_url: The web page of the provider
    :param provider_type: The charging type of the provider, used for entries without a type
    :param provider_connectors: The connectors declared by the provider
    :param taxonomy: The connector taxonomy
    :return: The parsed tariffs
    """
    tariff_id = record.get("id")
    if not tariff_id:
        raise RuntimeError(f"Tariff of provider '{provider_id}' has no id")

    charging_types = _charging_types(record, provider_type)
    explicit_connectors = tuple(taxonomy.canonical(c) for c in record.get("connectors", []))
    billing_rule = parse_billing_rule(record.get("blockingFee"))
    price_per_kwh = _non_negative(record.get("pricePerKwh", 0), f"Price per kWh of tariff '{tariff_id}'")
    base_fee = _non_negative(record.get("baseFee") or 0, f"Base fee of tariff '{tariff_id}'")

    tariffs = []
    for charging_type in charging_types:
        connectors = explicit_connectors
        if len(charging_types) > 1:
            # A tariff covering several charging types only keeps the connectors of each type's family
            family = taxonomy.family(charging_type)
            connectors = tuple(c for c in explicit_connectors if c in family)
        tariffs.append(Tariff(
            id=tariff_id if len(charging_types) == 1 else f"{tariff_id}-{charging_type.value.lower()}",
            name=record.get("name") or provider_name,
            charging_type=charging_type,
            price_per_kwh=price_per_kwh,
            provider_id=provider_id,
            provider_name=provider_name,
            base_fee=base_fee,
            connectors=connectors,
            billing_rule=billing_rule,
            max_power_kw=_non_negative(record.get("maxPowerKw", DEFAULT_MAX_POWER_KW[charging_type]),
                                       f"Max power of tariff '{tariff_id}'"),
            description=record.get("description", ""),
            special_attributes=parse_special_attributes(record.get("specialAttributes")),
            provider_type=provider_type,
            provider_url=provider_url,
            provider_connectors=provider_connectors,
        ))
    return tariffs


def parse_provider(record: Mapping[str, Any], taxonomy: ConnectorTaxonomy) -> Provider:
    provider_id = record.get("id")
    if not provider_id:
        raise RuntimeError(f"Provider '{record.get('name')}' has no id")
    name = record.get("name", provider_id)
    url = record.get("url", "")
    provider_type = parse_charging_type(record["type"]) if record.get("type") else None
    connectors = tuple(taxonomy.canonical(c) for c in record.get("connectors", []))

    tariffs: List[Tariff] = []
    for tariff_record in record.get("tariffs", []):
        tariffs.extend(parse_tariffs(tariff_record, provider_id, name, url, provider_type, connectors, taxonomy))
    return Provider(id=provider_id, name=name, url=url, type=provider_type, connectors=connectors,
                    tariffs=tuple(tariffs))


def parse_vehicle(vehicle_id: str, record: Mapping[str, Any]) -> Vehicle:
    """
    Parse a raw vehicle record, converting the JSON string keys of the charging curves to numbers

    :param vehicle_id: The id of the vehicle
    :param record: The raw vehicle record
    :return: The parsed vehicle
    """
    capacity = record.get("batteryCapacityKwh", record.get("batteryCapacity"))
    curves: Dict[float, Dict[int, float]] = {}
    for rated_power, curve in (record.get("chargingCurves") or {}).items():
        if not curve:
            raise RuntimeError(f"Charging curve '{rated_power}' of vehicle '{vehicle_id}' has no samples")
        try:
            curves[float(rated_power)] = {int(level): _non_negative(power, f"Charging power of '{vehicle_id}'")
                                          for level, power in curve.items()}
        except ValueError:
            raise RuntimeError(f"Charging curve '{rated_power}' of vehicle '{vehicle_id}' has non-numeric keys")
    max_power = record.get("maxChargingPower")
    return Vehicle(id=vehicle_id, name=record.get("name", vehicle_id),
                   battery_capacity_kwh=_non_negative(capacity, f"Battery capacity of '{vehicle_id}'"),
                   charging_curves=curves,
                   max_charging_power_kw=None if max_power is None else float(max_power),
                   connector_type=record.get("connectorType"))


def parse_vehicles(raw: Any) -> Dict[str, Vehicle]:
    """
    Parse the vehicle catalog, given either as a list of records with an "id" or as a mapping from id to record

    :param raw: The raw vehicle catalog
    :return: The vehicles by id
    """
    if isinstance(raw, Mapping):
        items = list(raw.items())
    else:
        items = [(record["id"], record) for record in raw]
    return {vehicle_id: parse_vehicle(vehicle_id, record) for vehicle_id, record in items}
