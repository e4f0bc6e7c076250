"""
Fare Engine  (Strategy Pattern)
===============================

Formula
-------
Fare = Base_Fare + quantize(max(0, Distance - Base_Distance) x Rate / Unit_Distance)

* **Base_Fare** / **Rate** come from the day or night ``Tariff``; night
  applies when the trip's local hour falls in the operator's night window.
* The incremental charge is quantized to cents with the policy rounding
  mode (floor by default) *before* the base fare is added.

Example (day, 10 605 m): 20 + floor(8 605 x 5 / 200) = 20 + 215.12 = 235.12

Complexity: O(k) in the number of legs.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from decimal import ROUND_FLOOR, ROUND_HALF_UP, Decimal
from typing import Iterable
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .entities import Fare

CENT = Decimal("0.01")

ROUNDING_MODES = {
    "floor": ROUND_FLOOR,
    "half_up": ROUND_HALF_UP,
}


@dataclass(frozen=True)
class Tariff:
    base_fare: Decimal
    per_unit_rate: Decimal


@dataclass(frozen=True)
class FarePolicy:
    """Operator pricing policy; every number here is configuration."""

    base_fare_day: Decimal = Decimal("20.00")
    base_fare_night: Decimal = Decimal("30.00")
    per_unit_rate_day: Decimal = Decimal("5")
    per_unit_rate_night: Decimal = Decimal("8")
    night_window_start: int = 0  # hour of day, inclusive
    night_window_end: int = 12  # hour of day, exclusive
    base_distance_m: int = 2000
    unit_distance_m: int = 200
    currency: str = "HKD"
    timezone: str = "Asia/Hong_Kong"
    rounding: str = "floor"

    def __post_init__(self):
        if self.rounding not in ROUNDING_MODES:
            raise ValueError(f"Unknown rounding mode: {self.rounding!r}")
        if self.unit_distance_m <= 0:
            raise ValueError("unit_distance_m must be positive")
        for hour in (self.night_window_start, self.night_window_end):
            if not 0 <= hour <= 24:
                raise ValueError(f"Night window hour out of range: {hour}")
        try:
            ZoneInfo(self.timezone)
        except (ZoneInfoNotFoundError, ValueError) as exc:
            raise ValueError(f"Unknown operator timezone: {self.timezone!r}") from exc

    @classmethod
    def from_settings(cls, settings) -> FarePolicy:
        return cls(
            base_fare_day=settings.base_fare_day,
            base_fare_night=settings.base_fare_night,
            per_unit_rate_day=settings.per_unit_rate_day,
            per_unit_rate_night=settings.per_unit_rate_night,
            night_window_start=settings.night_window_start_hour,
            night_window_end=settings.night_window_end_hour,
            base_distance_m=settings.fare_base_distance_m,
            unit_distance_m=settings.fare_unit_distance_m,
            currency=settings.currency,
            timezone=settings.operator_timezone,
            rounding=settings.fare_rounding,
        )

    @property
    def day(self) -> Tariff:
        return Tariff(self.base_fare_day, self.per_unit_rate_day)

    @property
    def night(self) -> Tariff:
        return Tariff(self.base_fare_night, self.per_unit_rate_night)

    def local_time(self, when: datetime) -> datetime:
        """Naive datetimes are taken to be operator-local already."""
        tz = ZoneInfo(self.timezone)
        if when.tzinfo is None:
            return when.replace(tzinfo=tz)
        return when.astimezone(tz)

    def is_night(self, when: datetime) -> bool:
        hour = self.local_time(when).hour
        start, end = self.night_window_start, self.night_window_end
        if start == end:
            return False
        if start < end:
            return start <= hour < end
        # window wraps midnight, e.g. 21 -> 5
        return hour >= start or hour < end


# ── Strategy hierarchy ────────────────────────────────────────────────


class FareStrategy(ABC):
    @abstractmethod
    def calculate(self, total_distance_m: int, tariff: Tariff) -> Decimal: ...


class DistanceBandPricing(FareStrategy):
    """Flat base fare up to ``base_distance_m``, then a per-unit charge."""

    def __init__(self, base_distance_m: int, unit_distance_m: int, rounding: str):
        self.base_distance_m = base_distance_m
        self.unit_distance_m = unit_distance_m
        self.rounding = ROUNDING_MODES[rounding]

    def incremental_charge(self, total_distance_m: int, rate: Decimal) -> Decimal:
        extra = max(0, total_distance_m - self.base_distance_m)
        raw = Decimal(extra) * rate / Decimal(self.unit_distance_m)
        return raw.quantize(CENT, rounding=self.rounding)

    def calculate(self, total_distance_m: int, tariff: Tariff) -> Decimal:
        charge = self.incremental_charge(total_distance_m, tariff.per_unit_rate)
        return (tariff.base_fare + charge).quantize(CENT)


# ── Engine facade ─────────────────────────────────────────────────────


class FareEngine:
    """High-level API used by the order lifecycle controller."""

    def __init__(self, policy: FarePolicy | None = None):
        self.policy = policy or FarePolicy()
        self.strategy = DistanceBandPricing(
            self.policy.base_distance_m,
            self.policy.unit_distance_m,
            self.policy.rounding,
        )

    def tariff_for(self, trip_time: datetime) -> Tariff:
        return self.policy.night if self.policy.is_night(trip_time) else self.policy.day

    def calculate(self, leg_distances_m: Iterable[int], trip_time: datetime) -> Fare:
        total = sum(leg_distances_m)
        if total < 0:
            raise ValueError("Leg distances must be non-negative")
        amount = self.strategy.calculate(total, self.tariff_for(trip_time))
        return Fare(amount=amount, currency=self.policy.currency)


def compute_fare(
    leg_distances_m: Iterable[int],
    trip_time: datetime,
    policy: FarePolicy | None = None,
) -> Fare:
    """Pure function form of ``FareEngine.calculate``."""
    return FareEngine(policy).calculate(leg_distances_m, trip_time)
