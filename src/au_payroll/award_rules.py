from __future__ import annotations

from datetime import date, datetime, time, timedelta
from typing import AbstractSet, Optional

from .models import AwardRule, EmploymentType, TimesheetEntry

_ONE_DAY = timedelta(days=1)


def rule_in_force(
    rule: AwardRule,
    classification: Optional[str],
    as_of: date,
    employment_type: Optional[EmploymentType] = None,
) -> bool:
    """Entry-independent checks: classification, employment type and effective window."""
    conditions = rule.conditions
    if conditions.classification and conditions.classification != classification:
        return False
    if conditions.employment_type and conditions.employment_type != employment_type:
        return False
    if conditions.effective_from and as_of < conditions.effective_from:
        return False
    if conditions.effective_to and as_of > conditions.effective_to:
        return False
    return True


def is_applicable(
    rule: AwardRule,
    classification: Optional[str],
    entry: TimesheetEntry,
    as_of: date,
    employment_type: Optional[EmploymentType] = None,
    public_holidays: AbstractSet[date] = frozenset(),
) -> bool:
    if not rule_in_force(rule, classification, as_of, employment_type):
        return False

    conditions = rule.conditions
    if conditions.days is not None and entry.start.weekday() not in conditions.days:
        return False
    if conditions.has_time_window and applicable_minutes(rule, entry) <= 0:
        return False
    if conditions.public_holiday_only and entry.work_date not in public_holidays:
        return False
    return True


def applicable_minutes(rule: AwardRule, entry: TimesheetEntry) -> int:
    """Whole minutes of ``entry`` that fall inside the rule's time-of-day window.

    The window is anchored on the entry start date. A window whose end is at or
    before its start runs past midnight, in which case the window opened the
    previous evening is counted too.
    """
    conditions = rule.conditions
    if not conditions.has_time_window:
        return entry.minutes

    time_from = conditions.time_from or time(0, 0)
    anchor = entry.start.date()
    minutes = _overlap_minutes(entry, *_window(anchor, time_from, conditions.time_to))
    if conditions.time_to is not None and conditions.time_to <= time_from:
        minutes += _overlap_minutes(entry, *_window(anchor - _ONE_DAY, time_from, conditions.time_to))
    return minutes


def _window(anchor: date, time_from: time, time_to: Optional[time]):
    start = datetime.combine(anchor, time_from)
    if time_to is None:
        return start, datetime.combine(anchor + _ONE_DAY, time(0, 0))
    end = datetime.combine(anchor, time_to)
    if end <= start:
        end += _ONE_DAY
    return start, end


def _overlap_minutes(entry: TimesheetEntry, window_start: datetime, window_end: datetime) -> int:
    start = max(entry.start, window_start)
    end = min(entry.end, window_end)
    if end <= start:
        return 0
    return int((end - start).total_seconds() // 60)
