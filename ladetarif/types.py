import dataclasses
import datetime as dt
import enum
from typing import List, Mapping, Optional, Sequence, Tuple


class ChargingType(str, enum.Enum):
    AC = "AC"
    DC = "DC"


@dataclasses.dataclass(frozen=True)
class Vehicle:
    id: str
    name: str
    battery_capacity_kwh: float
    # Rated charger power (kW) -> state of charge (%) -> achievable charging power (kW)
    charging_curves: Mapping[float, Mapping[int, float]]
    max_charging_power_kw: Optional[float] = None
    connector_type: Optional[str] = None


@dataclasses.dataclass(frozen=True)
class PowerSample:
    elapsed_minutes: float  # Minutes since the start of charging
    power_kw: float  # Charging power held from this point until the next sample


@dataclasses.dataclass
class ChargingResult:
    total_time_minutes: float  # Infinite if charging is impossible
    total_energy_kwh: float
    samples: List[PowerSample]
    final_battery_level: float
    average_power_kw: float
    charging_possible: bool = True


@dataclasses.dataclass
class ChargingSession:
    current_soc: float  # Battery level at plug-in, in the range [0, 100]
    target_soc: float  # Battery level to charge to, in the range [0, 100]
    charger_power_kw: float
    battery_capacity_kwh: float
    charging_type: ChargingType = ChargingType.AC
    start: Optional[dt.datetime] = None  # Plug-in time
    end: Optional[dt.datetime] = None  # Unplug time (None if the session ends when charging is done)
    vehicle_id: Optional[str] = None
    station_provider_id: Optional[str] = None  # Operator of the charging station


@dataclasses.dataclass(frozen=True)
class SpecialAttributes:
    plug_and_charge: bool = False
    registration_required: bool = False
    membership_required: bool = False


@dataclasses.dataclass(frozen=True)
class Connector:
    id: str
    name: str
    charging_type: ChargingType
    description: str = ""
    aliases: Tuple[str, ...] = ()


@dataclasses.dataclass(frozen=True)
class ConnectorTaxonomy:
    connectors: Tuple[Connector, ...]
    # Charging type ("AC"/"DC") -> connector ids of that family
    charging_type_mapping: Mapping[str, Tuple[str, ...]]

    def canonical(self, connector_id: str) -> str:
        """
        Resolve a connector id or one of its aliases (case-insensitive) to the canonical connector id. Unknown ids
        are returned unchanged.

        :param connector_id: A connector id or alias, e.g. "MENNEKES"
        :return: The canonical connector id, e.g. "TYPE_2"
        """
        wanted = connector_id.upper()
        for connector in self.connectors:
            if connector.id.upper() == wanted or wanted in (alias.upper() for alias in connector.aliases):
                return connector.id
        return connector_id

    def family(self, charging_type: ChargingType) -> Tuple[str, ...]:
        return tuple(self.charging_type_mapping.get(charging_type.value, ()))


@dataclasses.dataclass(frozen=True)
class FilterCriteria:
    providers: Sequence[str] = ()  # Provider ids or names (empty matches all)
    connectors: Sequence[str] = ()  # Connector ids or aliases (empty matches all)
    charging_types: Sequence[ChargingType] = ()  # Empty matches all


@dataclasses.dataclass(frozen=True)
class VehicleSummary:
    id: str
    name: str
    battery_capacity_kwh: float
    max_charging_power_kw: Optional[float]
    connector_type: Optional[str]
