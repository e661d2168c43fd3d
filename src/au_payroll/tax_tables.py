from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import List, Optional, Tuple

from .errors import PayrollValidationError, TaxTableNotFoundError
from .models import PayFrequency, Residency
from .rates import Rate, RateUnit

DEFAULT_TAX_TABLE_DIR = Path(__file__).resolve().parent / "data" / "tax_tables"

# Published base-tax figures are rounded to whole dollars.
_CONTINUITY_TOLERANCE = 1.0


@dataclass(frozen=True)
class TaxThreshold:
    lower: float
    upper: Optional[float]
    base_tax: float
    rate: Rate

    def contains(self, amount: float) -> bool:
        return amount >= self.lower and (self.upper is None or amount < self.upper)

    def tax_for(self, annual_income: float) -> float:
        return self.base_tax + self.rate.apply(annual_income - self.lower)


@dataclass(frozen=True)
class TaxTable:
    financial_year: str
    pay_frequency: PayFrequency
    residency: Residency
    thresholds: Tuple[TaxThreshold, ...]

    def __post_init__(self) -> None:
        if not self.thresholds:
            raise PayrollValidationError(f"Tax table {self.financial_year} has no thresholds")
        if self.thresholds[0].lower != 0:
            raise PayrollValidationError(f"Tax table {self.financial_year} must start at 0")
        for current, following in zip(self.thresholds, self.thresholds[1:]):
            if current.upper is None or current.upper != following.lower:
                raise PayrollValidationError(
                    f"Tax table {self.financial_year} thresholds are not contiguous at {current.upper}"
                )
            if current.upper <= current.lower:
                raise PayrollValidationError(
                    f"Tax table {self.financial_year} thresholds are not ascending at {current.lower}"
                )
            if abs(current.tax_for(current.upper) - following.base_tax) > _CONTINUITY_TOLERANCE:
                raise PayrollValidationError(
                    f"Tax table {self.financial_year} base tax jumps at {following.lower}"
                )
        if self.thresholds[-1].upper is not None:
            raise PayrollValidationError(f"Tax table {self.financial_year} final threshold must be unbounded")

    def threshold_for(self, annual_income: float) -> TaxThreshold:
        for threshold in self.thresholds:
            if threshold.contains(annual_income):
                return threshold
        return self.thresholds[0]

    def annual_tax(self, annual_income: float) -> float:
        if annual_income <= 0:
            return 0.0
        return self.threshold_for(annual_income).tax_for(annual_income)


def withhold(taxable_income_for_period: float, pay_frequency: PayFrequency, table: TaxTable) -> float:
    """PAYG withholding for one pay period.

    The period income is annualised, taxed with the annual scale and the result
    spread back over the periods of the year.
    """
    periods = pay_frequency.periods_per_year
    annual_income = taxable_income_for_period * periods
    if annual_income <= 0:
        return 0.0
    return round(table.annual_tax(annual_income) / periods, 2)


def financial_year(on: date) -> str:
    """Australian financial year label, e.g. "2024-25" for 1 July 2024 to 30 June 2025."""
    start_year = on.year if on.month >= 7 else on.year - 1
    return f"{start_year}-{(start_year + 1) % 100:02d}"


def parse_thresholds(rows: List[dict]) -> Tuple[TaxThreshold, ...]:
    thresholds = []
    for row in rows:
        if "rate" in row and isinstance(row["rate"], dict):
            rate = Rate.parse(row["rate"])
        else:
            rate = Rate(value=float(row["rate_percent"]), unit=RateUnit.PERCENT)
        thresholds.append(
            TaxThreshold(
                lower=float(row["from"]),
                upper=float(row["to"]) if row.get("to") is not None else None,
                base_tax=float(row.get("base_tax", 0)),
                rate=rate,
            )
        )
    return tuple(thresholds)


class TaxTableRepository:
    def __init__(self, base_path: Path = DEFAULT_TAX_TABLE_DIR):
        self.base_path = Path(base_path)

    def available_versions(self) -> List[str]:
        return sorted([p.stem for p in self.base_path.glob("*.json")])

    def load(self, financial_year: str, pay_frequency: PayFrequency, residency: Residency = Residency.RESIDENT) -> TaxTable:
        file_path = self.base_path / f"{financial_year}.json"
        if not file_path.exists():
            raise TaxTableNotFoundError(
                f"Tax table for {financial_year} not found at {file_path}", financial_year=financial_year
            )
        with file_path.open("r", encoding="utf-8") as handle:
            data = json.load(handle)
        rows = data.get("residency", {}).get(residency.value)
        if not rows:
            raise TaxTableNotFoundError(
                f"Tax table {financial_year} has no {residency.value} scale", financial_year=financial_year
            )
        return TaxTable(
            financial_year=data.get("financial_year", financial_year),
            pay_frequency=pay_frequency,
            residency=residency,
            thresholds=parse_thresholds(rows),
        )
