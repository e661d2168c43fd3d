from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import AbstractSet, Iterable, List, Optional, Set, Tuple

from .award_rules import applicable_minutes, is_applicable
from .errors import CalculationError
from .models import (
    Allowance,
    AllowanceMethod,
    AllowanceRule,
    AwardRule,
    EmploymentType,
    LoadingMethod,
    OvertimeRule,
    PenaltyBasePolicy,
    PenaltyRate,
    PenaltyRateRule,
    ShiftLoading,
    ShiftLoadingRule,
    TimesheetEntry,
)


def calculate_penalty(
    rule: PenaltyRateRule,
    entry: TimesheetEntry,
    base_rate: float,
    minutes: int,
    policy: PenaltyBasePolicy = PenaltyBasePolicy.ADDITIVE,
) -> Optional[PenaltyRate]:
    multiplier = rule.percentage.as_fraction()
    if policy == PenaltyBasePolicy.INCREMENT_ONLY:
        multiplier -= 1
    hours = minutes / 60
    hourly = base_rate * multiplier
    amount = round(hourly * hours, 2)
    if amount <= 0:
        return None
    return PenaltyRate(
        id=f"{rule.id}:{entry.id}",
        rule_id=rule.id,
        timesheet_entry_id=entry.id,
        description=rule.name,
        percentage=rule.percentage,
        applicable_hours=round(hours, 4),
        penalty_rate=round(hourly, 4),
        amount=amount,
        calculation_method=policy.value,
    )


def calculate_allowance(
    rule: AllowanceRule,
    entry: TimesheetEntry,
    minutes: int,
    paid_days: Optional[Set[Tuple[str, date]]] = None,
) -> Optional[Allowance]:
    hours = minutes / 60
    if rule.method == AllowanceMethod.FIXED:
        amount = rule.amount
        line_id = f"{rule.id}:{entry.id}"
        hours = entry.hours
    elif rule.method == AllowanceMethod.HOURLY:
        amount = rule.amount * hours
        line_id = f"{rule.id}:{entry.id}"
    elif rule.method == AllowanceMethod.DAILY:
        day_key = (rule.id, entry.work_date)
        if minutes <= 0 or (paid_days is not None and day_key in paid_days):
            return None
        if paid_days is not None:
            paid_days.add(day_key)
        amount = rule.amount
        line_id = f"{rule.id}:{entry.work_date.isoformat()}"
    else:
        raise CalculationError(f"Unsupported allowance method {rule.method!r}", rule_id=rule.id)

    amount = round(amount, 2)
    if amount <= 0:
        return None
    return Allowance(
        id=line_id,
        rule_id=rule.id,
        timesheet_entry_id=entry.id,
        description=rule.name,
        allowance_type=rule.allowance_type,
        amount=amount,
        applicable_hours=round(hours, 4),
        calculation_method=rule.method,
        tax_treatment=rule.tax_treatment,
    )


def calculate_shift_loading(
    rule: ShiftLoadingRule,
    entry: TimesheetEntry,
    base_rate: float,
    minutes: int,
) -> Optional[ShiftLoading]:
    if rule.method == LoadingMethod.PERCENTAGE:
        if rule.percentage is None:
            raise CalculationError(f"Shift loading {rule.id} has no percentage", rule_id=rule.id)
        loading_rate = base_rate * rule.percentage.as_fraction()
    elif rule.method == LoadingMethod.FIXED:
        loading_rate = rule.fixed_rate
    else:
        raise CalculationError(f"Unsupported shift loading method {rule.method!r}", rule_id=rule.id)

    hours = minutes / 60
    amount = round(loading_rate * hours, 2)
    if amount <= 0:
        return None
    return ShiftLoading(
        id=f"{rule.id}:{entry.id}",
        rule_id=rule.id,
        timesheet_entry_id=entry.id,
        description=rule.name,
        shift_type=rule.shift_type,
        loading_percentage=rule.percentage if rule.method == LoadingMethod.PERCENTAGE else None,
        applicable_hours=round(hours, 4),
        loading_rate=round(loading_rate, 4),
        amount=amount,
        calculation_method=rule.method,
    )


@dataclass
class LoadingLines:
    penalty_rates: List[PenaltyRate] = field(default_factory=list)
    allowances: List[Allowance] = field(default_factory=list)
    shift_loadings: List[ShiftLoading] = field(default_factory=list)


class LoadingCalculator:
    """Applies penalty, allowance and shift-loading rules to timesheet entries.

    Every rule is evaluated on its own against every entry and the results are
    added together. Overtime rules are left to :class:`OvertimeAggregator`.
    """

    def __init__(
        self,
        policy: PenaltyBasePolicy = PenaltyBasePolicy.ADDITIVE,
        fallback_rate: float = 0.0,
    ) -> None:
        self.policy = policy
        self.fallback_rate = fallback_rate

    def calculate(
        self,
        rules: Iterable[AwardRule],
        entries: Iterable[TimesheetEntry],
        classification: Optional[str],
        as_of: date,
        employment_type: Optional[EmploymentType] = None,
        public_holidays: AbstractSet[date] = frozenset(),
    ) -> LoadingLines:
        rules = list(rules)
        lines = LoadingLines()
        paid_days: Set[Tuple[str, date]] = set()

        for entry in sorted(entries, key=lambda e: (e.start, e.id)):
            base_rate = entry.hourly_rate or self.fallback_rate
            for rule in rules:
                if isinstance(rule, OvertimeRule):
                    continue
                if not is_applicable(rule, classification, entry, as_of, employment_type, public_holidays):
                    continue
                minutes = applicable_minutes(rule, entry)
                if isinstance(rule, PenaltyRateRule):
                    line = calculate_penalty(rule, entry, base_rate, minutes, self.policy)
                    target = lines.penalty_rates
                elif isinstance(rule, AllowanceRule):
                    line = calculate_allowance(rule, entry, minutes, paid_days)
                    target = lines.allowances
                elif isinstance(rule, ShiftLoadingRule):
                    line = calculate_shift_loading(rule, entry, base_rate, minutes)
                    target = lines.shift_loadings
                else:
                    raise CalculationError(f"Unknown award rule type {type(rule).__name__}")
                if line is not None:
                    target.append(line)
        return lines
