from typing import Dict, List, Mapping, Optional, Sequence
import math

from ladetarif.constants import GENERIC_CURVE_POINTS, SOC_STEP_PERCENT
from ladetarif.logging import log
from ladetarif.types import ChargingResult, PowerSample, Vehicle, VehicleSummary


def find_closest_charger(requested_power_kw: float, available_chargers: Sequence[float]) -> Optional[float]:
    """
    Find the charging curve to use for a charger: the smallest rated power that is at least the requested power, or
    the highest rated power if the requested power exceeds all of them.

    :param requested_power_kw: The power of the charger in use
    :param available_chargers: The rated charger powers that the vehicle has curves for
    :return: The selected rated power, or None if no curves are available
    """
    if len(available_chargers) == 0:
        return None
    suitable_chargers = [power for power in available_chargers if power >= requested_power_kw]
    if len(suitable_chargers) == 0:
        return max(available_chargers)
    return min(suitable_chargers)


def find_closest_level(battery_level: float, available_levels: Sequence[int], direction: str) -> int:
    """
    Find the closest sampled battery level below or above a battery level. Falls back to the first (or last) level
    when no level exists in the requested direction.

    :param battery_level: The battery level to look around
    :param available_levels: The sampled battery levels, sorted ascending
    :param direction: Either "lower" or "upper"
    :return: The closest sampled level in the given direction
    """
    if direction == "lower":
        lower_levels = [level for level in available_levels if level <= battery_level]
        return max(lower_levels) if len(lower_levels) > 0 else available_levels[0]
    if direction == "upper":
        upper_levels = [level for level in available_levels if level >= battery_level]
        return min(upper_levels) if len(upper_levels) > 0 else available_levels[-1]
    raise RuntimeError(f"Direction has to be 'lower' or 'upper', was '{direction}'")


def generic_charging_power(battery_level: float, charger_power_kw: float) -> float:
    """
    Approximate the charging power of an unknown vehicle: a ramp from 30% to 70% of the charger power up to 20% SoC,
    a rise to full power at 80% SoC and a taper down to 40% at 100% SoC.

    :param battery_level: The battery level in the range [0, 100]
    :param charger_power_kw: The power of the charger in use
    :return: The estimated charging power, never above the charger power
    """
    level = min(max(battery_level, 0.0), 100.0)
    power_factor = GENERIC_CURVE_POINTS[-1][1]
    for (lower_level, lower_factor), (upper_level, upper_factor) in zip(GENERIC_CURVE_POINTS,
                                                                         GENERIC_CURVE_POINTS[1:]):
        if level < upper_level:
            ratio = (level - lower_level) / (upper_level - lower_level)
            power_factor = lower_factor + (upper_factor - lower_factor) * ratio
            break
    return min(charger_power_kw * power_factor, charger_power_kw)


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def curve_power(curve: Mapping[int, float], battery_level: float) -> float:
    """
    Look up the charging power in a single curve. Uses the sample at the rounded battery level if one exists and
    interpolates linearly between the closest samples otherwise. Outside the sampled range the closest sample is used.

    :param curve: A mapping from battery level (%) to charging power (kW)
    :param battery_level: The battery level to look up
    :return: The charging power in kW
    """
    rounded_level = _round_half_up(battery_level)
    if rounded_level in curve:
        return curve[rounded_level]

    levels = sorted(curve.keys())
    lower_level = find_closest_level(battery_level, levels, "lower")
    upper_level = find_closest_level(battery_level, levels, "upper")
    if lower_level == upper_level:
        return curve[lower_level]

    ratio = (battery_level - lower_level) / (upper_level - lower_level)
    return curve[lower_level] + (curve[upper_level] - curve[lower_level]) * ratio


def power_at(vehicle: Optional[Vehicle], battery_level: float, charger_power_kw: float) -> float:
    """
    Get the charging power of a vehicle at a battery level when connected to a charger of the given power

    :param vehicle: The vehicle, or None for an unknown vehicle
    :param battery_level: The battery level in the range [0, 100]
    :param charger_power_kw: The power of the charger in use
    :return: The charging power the vehicle accepts in kW
    """
    if vehicle is None:
        return generic_charging_power(battery_level, charger_power_kw)

    selected_charger = find_closest_charger(charger_power_kw, sorted(vehicle.charging_curves.keys()))
    if selected_charger is None:
        return generic_charging_power(battery_level, charger_power_kw)
    return curve_power(vehicle.charging_curves[selected_charger], battery_level)


def zero_charging_result(battery_level: float) -> ChargingResult:
    return ChargingResult(total_time_minutes=0.0, total_energy_kwh=0.0, samples=[],
                          final_battery_level=battery_level, average_power_kw=0.0)


def simulate_charging(vehicle: Optional[Vehicle], current_soc: float, target_soc: float, charger_power_kw: float,
                      battery_capacity_kwh: float) -> ChargingResult:
    """
    Simulate a charging session in steps of one percentage point of battery level

    :param vehicle: The vehicle to charge, or None for an unknown vehicle
    :param current_soc: The battery level at the start of charging in the range [0, 100]
    :param target_soc: The battery level to charge to in the range [0, 100]
    :param charger_power_kw: The power of the charger in use
    :param battery_capacity_kwh: The usable battery capacity
    :return: The result of the simulation. A zero result is returned for sessions that need no charging or have
             invalid inputs. If the vehicle cannot draw any power the result is marked as not possible and has an
             infinite duration.
    """
    if target_soc <= current_soc or charger_power_kw <= 0 or battery_capacity_kwh <= 0:
        return zero_charging_result(current_soc)

    samples: List[PowerSample] = []
    battery_level = current_soc
    total_time = 0.0
    total_energy = 0.0
    while battery_level < target_soc:
        actual_power = min(power_at(vehicle, battery_level, charger_power_kw), charger_power_kw)
        if actual_power <= 0:
            log.warning(f"Vehicle cannot charge at {battery_level:.0f}% with a {charger_power_kw} kW charger")
            return ChargingResult(total_time_minutes=math.inf, total_energy_kwh=total_energy, samples=samples,
                                  final_battery_level=battery_level, average_power_kw=0.0, charging_possible=False)

        # The last step is shortened if the target is not a whole number of steps away
        step = min(SOC_STEP_PERCENT, target_soc - battery_level)
        energy_for_step = battery_capacity_kwh * step / 100.0
        samples.append(PowerSample(elapsed_minutes=total_time, power_kw=actual_power))
        total_time += energy_for_step / actual_power * 60.0
        total_energy += energy_for_step
        battery_level += step

    return ChargingResult(total_time_minutes=total_time, total_energy_kwh=total_energy, samples=samples,
                          final_battery_level=min(battery_level, target_soc),
                          average_power_kw=total_energy / (total_time / 60.0))


class ChargingCurveModel:
    def __init__(self, vehicles: Mapping[str, Vehicle]) -> None:
        self._vehicles: Dict[str, Vehicle] = dict(vehicles)

    def vehicle(self, vehicle_id: Optional[str]) -> Optional[Vehicle]:
        if vehicle_id is None:
            return None
        vehicle = self._vehicles.get(vehicle_id)
        if vehicle is None:
            log.info(f"Unknown vehicle '{vehicle_id}', using generic charging curve")
        return vehicle

    def power_at(self, vehicle_id: Optional[str], battery_level: float, charger_power_kw: float) -> float:
        return power_at(self.vehicle(vehicle_id), battery_level, charger_power_kw)

    def simulate(self, vehicle_id: Optional[str], current_soc: float, target_soc: float, charger_power_kw: float,
                 battery_capacity_kwh: float) -> ChargingResult:
        return simulate_charging(self.vehicle(vehicle_id), current_soc, target_soc, charger_power_kw,
                                 battery_capacity_kwh)

    def available_vehicles(self) -> List[VehicleSummary]:
        return [VehicleSummary(id=vehicle.id, name=vehicle.name, battery_capacity_kwh=vehicle.battery_capacity_kwh,
                               max_charging_power_kw=vehicle.max_charging_power_kw,
                               connector_type=vehicle.connector_type)
                for vehicle in self._vehicles.values()]
