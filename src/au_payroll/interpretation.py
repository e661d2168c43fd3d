from __future__ import annotations

from datetime import date
from typing import Iterable, List, Optional

from .loadings import LoadingCalculator
from .models import (
    Award,
    AwardInterpretationResult,
    EmploymentType,
    PenaltyBasePolicy,
    TimesheetEntry,
)
from .overtime import OvertimeAggregator, daily_hours
from .ruleset import RuleSet


def compliance_breaches(
    entries: Iterable[TimesheetEntry],
    max_daily_hours: float = 12.0,
    meal_break_after_hours: float = 5.0,
) -> List[str]:
    entries = sorted(entries, key=lambda e: (e.start, e.id))
    notes = []
    for day, hours in daily_hours(entries).items():
        if hours > max_daily_hours:
            notes.append(f"{day.isoformat()}: {hours:.2f} hours worked exceeds the daily maximum of {max_daily_hours:g}")
    for entry in entries:
        if entry.hours > meal_break_after_hours:
            notes.append(
                f"Entry {entry.id}: {entry.hours:.2f} continuous hours without a recorded meal break"
            )
    return notes


def compliance_notes(
    award: Award,
    entries: Iterable[TimesheetEntry],
    max_daily_hours: float = 12.0,
    meal_break_after_hours: float = 5.0,
) -> List[str]:
    notes = compliance_breaches(entries, max_daily_hours, meal_break_after_hours)
    notes.append(f"Interpreted under {award.name} ({award.code})")
    return notes


class AwardInterpreter:
    """Turns approved timesheet entries into award line items for one employee."""

    def __init__(
        self,
        ruleset: RuleSet,
        daily_overtime_threshold: float = 8.0,
        weekly_overtime_threshold: float = 38.0,
        penalty_base_policy: PenaltyBasePolicy = PenaltyBasePolicy.ADDITIVE,
        max_daily_hours: float = 12.0,
        meal_break_after_hours: float = 5.0,
    ):
        self.ruleset = ruleset
        self.daily_overtime_threshold = daily_overtime_threshold
        self.weekly_overtime_threshold = weekly_overtime_threshold
        self.penalty_base_policy = penalty_base_policy
        self.max_daily_hours = max_daily_hours
        self.meal_break_after_hours = meal_break_after_hours

    def interpret(
        self,
        employee_id: str,
        award_id: str,
        classification: Optional[str],
        entries: Iterable[TimesheetEntry],
        as_of: date,
        employment_type: Optional[EmploymentType] = None,
        fallback_rate: float = 0.0,
    ) -> AwardInterpretationResult:
        award = self.ruleset.award(award_id)
        rules = self.ruleset.rules_for(award_id)
        entries = list(entries)

        loadings = LoadingCalculator(self.penalty_base_policy, fallback_rate).calculate(
            rules,
            entries,
            classification,
            as_of,
            employment_type=employment_type,
            public_holidays=self.ruleset.public_holidays,
        )
        overtime = OvertimeAggregator(
            self.daily_overtime_threshold, self.weekly_overtime_threshold, fallback_rate
        ).aggregate(rules, entries, classification, as_of, employment_type)

        notes = compliance_notes(award, entries, self.max_daily_hours, self.meal_break_after_hours) if entries else []

        return AwardInterpretationResult(
            employee_id=employee_id,
            award_id=award_id,
            classification=classification,
            employment_type=employment_type,
            penalty_rates=tuple(loadings.penalty_rates),
            allowances=tuple(loadings.allowances),
            shift_loadings=tuple(loadings.shift_loadings),
            overtime=tuple(overtime),
            total_penalty_amount=round(sum(p.amount for p in loadings.penalty_rates), 2),
            total_allowance_amount=round(sum(a.amount for a in loadings.allowances), 2),
            total_shift_loading_amount=round(sum(s.amount for s in loadings.shift_loadings), 2),
            total_overtime_amount=round(sum(o.amount for o in overtime), 2),
            interpretation_date=as_of,
            compliance_notes=tuple(notes),
        )


def interpret_timesheet(
    ruleset: RuleSet,
    employee_id: str,
    award_id: str,
    classification: Optional[str],
    entries: Iterable[TimesheetEntry],
    as_of: date,
    employment_type: Optional[EmploymentType] = None,
) -> AwardInterpretationResult:
    return AwardInterpreter(ruleset).interpret(employee_id, award_id, classification, entries, as_of, employment_type)
