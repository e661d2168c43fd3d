from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class RateUnit(str, Enum):
    PERCENT = "percent"  # 0-100 scale, e.g. 150 for time and a half
    FRACTION = "fraction"  # 0-1 scale, e.g. 0.11 for 11%
    PER_BASE = "per_base"  # amount per `base` dollars, e.g. 1.5 per $100


@dataclass(frozen=True)
class Rate:
    """A rate value that carries its own unit.

    Every consumer calls :meth:`as_fraction`, so a percentage can never be
    applied as if it were already a fraction (or the other way round).
    """

    value: float
    unit: RateUnit = RateUnit.FRACTION
    base: float = 100.0

    def __post_init__(self) -> None:
        if self.value < 0:
            raise ValueError(f"Rate cannot be negative: {self.value}")
        if self.unit == RateUnit.PER_BASE and self.base <= 0:
            raise ValueError(f"Rate base must be positive: {self.base}")

    @classmethod
    def percent(cls, value: float) -> "Rate":
        return cls(value=float(value), unit=RateUnit.PERCENT)

    @classmethod
    def fraction(cls, value: float) -> "Rate":
        return cls(value=float(value), unit=RateUnit.FRACTION)

    @classmethod
    def per(cls, value: float, base: float = 100.0) -> "Rate":
        return cls(value=float(value), unit=RateUnit.PER_BASE, base=float(base))

    @classmethod
    def parse(cls, payload: dict) -> "Rate":
        unit = RateUnit(payload.get("unit", RateUnit.FRACTION.value))
        return cls(value=float(payload["value"]), unit=unit, base=float(payload.get("base", 100.0)))

    def as_fraction(self) -> float:
        if self.unit == RateUnit.PERCENT:
            return self.value / 100
        if self.unit == RateUnit.PER_BASE:
            return self.value / self.base
        return self.value

    def as_percent(self) -> float:
        return self.as_fraction() * 100

    def apply(self, amount: float) -> float:
        return amount * self.as_fraction()

    def __str__(self) -> str:
        if self.unit == RateUnit.PER_BASE:
            return f"{self.value:g} per {self.base:g}"
        return f"{self.as_percent():g}%"
