from typing import List, Mapping, Optional, Tuple, Union
import dataclasses
import datetime as dt

from ladetarif.constants import CURRENCY_SYMBOL
from ladetarif.time_helpers import exact_minutes_between


class MalformedTimeInputError(ValueError):
    """
    Raised when a time-dependent rule is evaluated without absolute start and end timestamps
    """


def apply_cap(fee: float, cap: Optional[float]) -> float:
    return fee if cap is None else min(fee, cap)


def _format_price(price: float) -> str:
    return f"{price:.2f} {CURRENCY_SYMBOL}"


def _format_time_of_day(time_of_day: dt.time) -> str:
    if time_of_day.minute == 0:
        return f"{time_of_day.hour:02d}"
    return f"{time_of_day.hour:02d}:{time_of_day.minute:02d}"


def _with_session_cap(description: str, max_per_session: Optional[float]) -> str:
    if max_per_session is None:
        return description
    return f"{description}, max {_format_price(max_per_session)}"


def require_absolute_times(start: object, end: object) -> Tuple[dt.datetime, dt.datetime]:
    """
    Check that start and end are datetimes (not clock-only values) in chronological order

    :param start: The start of the session
    :param end: The end of the session
    :return: The start and end, with end expressed in the time zone of start
    """
    if not isinstance(start, dt.datetime) or not isinstance(end, dt.datetime):
        raise MalformedTimeInputError(f"Start and end have to be absolute datetimes, got '{start!r}' and '{end!r}'")
    if (start.tzinfo is None) != (end.tzinfo is None):
        raise MalformedTimeInputError("Start and end have to be either both time zone aware or both naive")
    if start.tzinfo is not None:
        end = end.astimezone(start.tzinfo)
    if exact_minutes_between(start, end) < 0:
        raise MalformedTimeInputError(f"End '{end.isoformat()}' is before start '{start.isoformat()}'")
    return start, end


@dataclasses.dataclass(frozen=True)
class TimeRange:
    window_start: dt.time
    window_end: dt.time  # A window end before its start means the window crosses midnight
    price_per_min: float
    max_price: Optional[float] = None
    max_billed_minutes: Optional[float] = None

    @property
    def crosses_midnight(self) -> bool:
        return self.window_end < self.window_start

    def overlap_minutes(self, start: dt.datetime, end: dt.datetime) -> float:
        """
        Calculate the minutes that a session spends inside this daily recurring window. Every daily occurrence of the
        window that intersects the session counts, including one that started the day before the session.

        :param start: The start of the session
        :param end: The end of the session, in the time zone of start
        :return: The minutes inside the window
        """
        span = exact_minutes_between(start, end)
        overlap = 0.0
        day = start.date() - dt.timedelta(days=1)
        while day <= end.date():
            window_start = dt.datetime.combine(day, self.window_start, tzinfo=start.tzinfo)
            window_end = dt.datetime.combine(day, self.window_end, tzinfo=start.tzinfo)
            if self.crosses_midnight:
                window_end += dt.timedelta(days=1)
            # Minutes relative to the start of the session
            from_minute = max(0.0, exact_minutes_between(start, window_start))
            to_minute = min(span, exact_minutes_between(start, window_end))
            overlap += max(0.0, to_minute - from_minute)
            day += dt.timedelta(days=1)
        return overlap

    def fee_for_overlap(self, overlap_minutes: float) -> float:
        billable_minutes = apply_cap(overlap_minutes, self.max_billed_minutes)
        return apply_cap(billable_minutes * self.price_per_min, self.max_price)

    def describe(self, base_price_per_min: float) -> Optional[str]:
        details: List[str] = []
        if self.price_per_min != base_price_per_min:
            details.append(f"{_format_price(self.price_per_min)}/min")
        if self.max_price is not None:
            details.append(f"max {_format_price(self.max_price)}")
        if self.max_billed_minutes is not None:
            details.append(f"max {self.max_billed_minutes:g} min")
        if len(details) == 0:
            return None
        window = f"{_format_time_of_day(self.window_start)}-{_format_time_of_day(self.window_end)}h"
        return f"{window}: {', '.join(details)}"


@dataclasses.dataclass(frozen=True)
class FlatRule:
    price_per_min: float
    max_per_session: Optional[float] = None

    def fee(self, blocking_minutes: float, charging_minutes: float = 0.0, start: Optional[dt.datetime] = None,
            end: Optional[dt.datetime] = None, provider_id: Optional[str] = None) -> float:
        return apply_cap(max(0.0, blocking_minutes) * self.price_per_min, self.max_per_session)

    def describe(self) -> str:
        return _with_session_cap(f"{_format_price(self.price_per_min)}/min", self.max_per_session)


@dataclasses.dataclass(frozen=True)
class TimeWindowedRule:
    time_ranges: Tuple[TimeRange, ...]
    price_per_min: float = 0.0  # Rate for blocking minutes outside every window
    max_per_session: Optional[float] = None

    def fee(self, blocking_minutes: float, charging_minutes: float = 0.0, start: Optional[dt.datetime] = None,
            end: Optional[dt.datetime] = None, provider_id: Optional[str] = None) -> float:
        """
        Bill the blocking time at the base rate, except for the minutes spent inside a window, which are billed at the
        window's rate and limits instead. A window's minutes beyond its max billed minutes are not billed at all.
        """
        start, end = require_absolute_times(start, end)
        fee = max(0.0, blocking_minutes) * self.price_per_min
        for time_range in self.time_ranges:
            overlap = time_range.overlap_minutes(start, end)
            fee += time_range.fee_for_overlap(overlap) - overlap * self.price_per_min
        return apply_cap(max(0.0, fee), self.max_per_session)

    def describe(self) -> str:
        range_descriptions = [d for d in (r.describe(self.price_per_min) for r in self.time_ranges) if d is not None]
        description = f"{_format_price(self.price_per_min)}/min"
        if len(range_descriptions) > 0:
            description += f" ({'; '.join(range_descriptions)})"
        return _with_session_cap(description, self.max_per_session)


@dataclasses.dataclass(frozen=True)
class DurationThresholdRule:
    threshold_minutes: float  # Blocking time that is free of charge
    price_per_min: float
    max_price: Optional[float] = None
    max_per_session: Optional[float] = None

    def fee(self, blocking_minutes: float, charging_minutes: float = 0.0, start: Optional[dt.datetime] = None,
            end: Optional[dt.datetime] = None, provider_id: Optional[str] = None) -> float:
        billable_minutes = max(0.0, blocking_minutes - self.threshold_minutes)
        fee = apply_cap(billable_minutes * self.price_per_min, self.max_price)
        return apply_cap(fee, self.max_per_session)

    def describe(self) -> str:
        description = f">{self.threshold_minutes:g} min: {_format_price(self.price_per_min)}/min"
        if self.max_price is not None:
            description += f", max {_format_price(self.max_price)}"
        return _with_session_cap(description, self.max_per_session)


@dataclasses.dataclass(frozen=True)
class ProviderSpecificRule:
    # Station operator id -> rule for sessions at that operator's stations (None means free of charge)
    per_provider: Mapping[str, Optional["BillingRule"]]
    price_per_min: float = 0.0  # Rate for operators without an entry
    max_per_session: Optional[float] = None

    def fee(self, blocking_minutes: float, charging_minutes: float = 0.0, start: Optional[dt.datetime] = None,
            end: Optional[dt.datetime] = None, provider_id: Optional[str] = None) -> float:
        if provider_id is not None and provider_id in self.per_provider:
            provider_rule = self.per_provider[provider_id]
            if provider_rule is None:
                return 0.0
            fee = provider_rule.fee(blocking_minutes, charging_minutes, start, end, provider_id)
        else:
            fee = max(0.0, blocking_minutes) * self.price_per_min
        return apply_cap(fee, self.max_per_session)

    def describe(self) -> str:
        free_providers = [p for p, rule in self.per_provider.items() if rule is None]
        paid_providers = [f"{p}: {rule.describe()}" for p, rule in self.per_provider.items() if rule is not None]
        details = paid_providers
        if len(free_providers) > 0:
            details = details + [f"free: {', '.join(free_providers)}"]
        return _with_session_cap(f"depends on provider ({'; '.join(details)})", self.max_per_session)


# Blocking fee rules are created once when the catalog is loaded. Their fee() only depends on its arguments.
BillingRule = Union[FlatRule, TimeWindowedRule, DurationThresholdRule, ProviderSpecificRule]


def describe_billing_rule(rule: Optional[BillingRule]) -> str:
    return "-" if rule is None else rule.describe()
