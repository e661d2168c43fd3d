from __future__ import annotations

from collections import defaultdict
from datetime import date
from typing import Dict, Iterable, List, Optional, Tuple

from .award_rules import rule_in_force
from .errors import CalculationError
from .models import (
    AwardRule,
    EmploymentType,
    OvertimeBasis,
    OvertimeEntry,
    OvertimeMethod,
    OvertimeRule,
    TimesheetEntry,
)


def daily_hours(entries: Iterable[TimesheetEntry]) -> Dict[date, float]:
    # Group by entry start date
    minutes: Dict[date, int] = defaultdict(int)
    for entry in entries:
        minutes[entry.work_date] += entry.minutes
    return {day: total / 60 for day, total in sorted(minutes.items())}


def daily_overtime_hours(entries: Iterable[TimesheetEntry], threshold: float = 8.0) -> Dict[date, float]:
    return {day: max(0.0, hours - threshold) for day, hours in daily_hours(entries).items()}


def weekly_overtime_hours(entries: Iterable[TimesheetEntry], threshold: float = 38.0) -> float:
    total_minutes = sum(entry.minutes for entry in entries)
    return max(0.0, total_minutes / 60 - threshold)


def week_key(anchor: date) -> str:
    year, week, _ = anchor.isocalendar()
    return f"{year}-W{week:02d}"


def overtime_rate(rule: OvertimeRule, base_rate: float) -> float:
    if rule.method == OvertimeMethod.MULTIPLIER:
        return base_rate * rule.multiplier.as_fraction()
    if rule.method == OvertimeMethod.FIXED:
        return rule.fixed_rate
    raise CalculationError(f"Unsupported overtime method {rule.method!r}", rule_id=rule.id)


class OvertimeAggregator:
    """Charges hours beyond the daily and weekly thresholds.

    The daily pass and the weekly pass both run over the same entries and their
    lines are summed, so one hour can attract both daily and weekly overtime.
    """

    def __init__(self, daily_threshold: float = 8.0, weekly_threshold: float = 38.0, fallback_rate: float = 0.0):
        self.daily_threshold = daily_threshold
        self.weekly_threshold = weekly_threshold
        self.fallback_rate = fallback_rate

    def select_rules(
        self,
        rules: Iterable[AwardRule],
        classification: Optional[str],
        as_of: date,
        employment_type: Optional[EmploymentType] = None,
    ) -> Tuple[Optional[OvertimeRule], Optional[OvertimeRule]]:
        daily_rule = weekly_rule = None
        candidates = [
            rule
            for rule in rules
            if isinstance(rule, OvertimeRule) and rule_in_force(rule, classification, as_of, employment_type)
        ]
        for rule in sorted(candidates, key=lambda r: -r.priority):
            if rule.basis == OvertimeBasis.DAILY and daily_rule is None:
                daily_rule = rule
            elif rule.basis == OvertimeBasis.WEEKLY and weekly_rule is None:
                weekly_rule = rule
        return daily_rule, weekly_rule

    def aggregate(
        self,
        rules: Iterable[AwardRule],
        entries: Iterable[TimesheetEntry],
        classification: Optional[str],
        as_of: date,
        employment_type: Optional[EmploymentType] = None,
    ) -> List[OvertimeEntry]:
        entries = sorted(entries, key=lambda e: (e.start, e.id))
        if not entries:
            return []
        daily_rule, weekly_rule = self.select_rules(rules, classification, as_of, employment_type)
        base_rate = entries[0].hourly_rate or self.fallback_rate
        lines: List[OvertimeEntry] = []

        if daily_rule is not None:
            # each day is charged at the rate of its own first entry
            first_rate: Dict[date, float] = {}
            for entry in entries:
                first_rate.setdefault(entry.work_date, entry.hourly_rate or self.fallback_rate)
            for day, hours in daily_overtime_hours(entries, self.daily_threshold).items():
                line = self._line(daily_rule, day.isoformat(), hours, overtime_rate(daily_rule, first_rate[day]))
                if line is not None:
                    lines.append(line)

        if weekly_rule is not None:
            hours = weekly_overtime_hours(entries, self.weekly_threshold)
            line = self._line(weekly_rule, week_key(entries[0].work_date), hours, overtime_rate(weekly_rule, base_rate))
            if line is not None:
                lines.append(line)
        return lines

    @staticmethod
    def _line(rule: OvertimeRule, key: str, hours: float, rate: float) -> Optional[OvertimeEntry]:
        amount = round(hours * rate, 2)
        if hours <= 0 or amount <= 0:
            return None
        return OvertimeEntry(
            id=f"{rule.id}:{key}",
            rule_id=rule.id,
            basis=rule.basis,
            key=key,
            hours=round(hours, 4),
            rate=round(rate, 4),
            amount=amount,
            calculation_method=rule.method,
        )
