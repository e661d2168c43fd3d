from datetime import date

from au_payroll.models import OvertimeBasis, OvertimeMethod, OvertimeRule, RuleConditions
from au_payroll.overtime import (
    OvertimeAggregator,
    daily_hours,
    daily_overtime_hours,
    week_key,
    weekly_overtime_hours,
)
from au_payroll.rates import Rate

from conftest import make_entry

AS_OF = date(2024, 6, 14)

DAILY = OvertimeRule(id="daily-ot", award_id="retail", name="Daily overtime", basis=OvertimeBasis.DAILY)
WEEKLY = OvertimeRule(id="weekly-ot", award_id="retail", name="Weekly overtime", basis=OvertimeBasis.WEEKLY)


def long_week():
    # Monday to Thursday, 10 hours a day
    return [
        make_entry(f"T{day}", f"2024-06-{day:02d}T08:00:00", f"2024-06-{day:02d}T18:00:00")
        for day in range(3, 7)
    ]


def test_daily_hours_group_by_start_date():
    entries = [
        make_entry("T1", "2024-06-03T08:00:00", "2024-06-03T12:00:00"),
        make_entry("T2", "2024-06-03T13:00:00", "2024-06-03T19:00:00"),
        make_entry("T3", "2024-06-04T22:00:00", "2024-06-05T04:00:00"),
    ]

    assert daily_hours(entries) == {date(2024, 6, 3): 10.0, date(2024, 6, 4): 6.0}
    assert daily_overtime_hours(entries) == {date(2024, 6, 3): 2.0, date(2024, 6, 4): 0.0}


def test_weekly_overtime_hours_beyond_threshold():
    assert weekly_overtime_hours(long_week()) == 2.0
    assert weekly_overtime_hours(long_week(), threshold=40) == 0.0


def test_week_key_is_iso_week():
    assert week_key(date(2024, 6, 3)) == "2024-W23"
    assert week_key(date(2024, 12, 30)) == "2025-W01"


def test_daily_and_weekly_overtime_are_both_charged():
    lines = OvertimeAggregator().aggregate([DAILY, WEEKLY], long_week(), None, AS_OF)

    daily = [line for line in lines if line.basis == OvertimeBasis.DAILY]
    weekly = [line for line in lines if line.basis == OvertimeBasis.WEEKLY]
    assert [line.hours for line in daily] == [2.0, 2.0, 2.0, 2.0]
    assert all(line.amount == 75.0 for line in daily)
    assert len(weekly) == 1
    assert weekly[0].key == "2024-W23"
    assert weekly[0].amount == 75.0


def test_highest_priority_rule_of_each_basis_wins():
    double = OvertimeRule(
        id="daily-double",
        award_id="retail",
        name="Double time",
        basis=OvertimeBasis.DAILY,
        multiplier=Rate.percent(200),
        priority=50,
    )

    lines = OvertimeAggregator().aggregate([DAILY, double], long_week()[:1], None, AS_OF)

    assert len(lines) == 1
    assert lines[0].rule_id == "daily-double"
    assert lines[0].amount == 100.0


def test_fixed_rate_overtime():
    fixed = OvertimeRule(
        id="flat", award_id="retail", name="Flat overtime", basis=OvertimeBasis.DAILY, method=OvertimeMethod.FIXED, fixed_rate=40
    )

    lines = OvertimeAggregator().aggregate([fixed], long_week()[:1], None, AS_OF)

    assert lines[0].amount == 80.0


def test_out_of_window_overtime_rule_contributes_nothing():
    expired = OvertimeRule(
        id="old",
        award_id="retail",
        name="Old overtime",
        basis=OvertimeBasis.DAILY,
        conditions=RuleConditions(effective_to=date(2024, 5, 31)),
    )

    assert OvertimeAggregator().aggregate([expired], long_week(), None, AS_OF) == []


def test_no_entries_no_overtime():
    assert OvertimeAggregator().aggregate([DAILY, WEEKLY], [], None, AS_OF) == []


def test_daily_overtime_uses_each_days_own_rate():
    entries = [
        make_entry("T1", "2024-06-03T08:00:00", "2024-06-03T18:00:00", rate=25.0),
        make_entry("T2", "2024-06-04T08:00:00", "2024-06-04T18:00:00", rate=40.0),
    ]

    lines = OvertimeAggregator().aggregate([DAILY], entries, None, AS_OF)

    assert {line.key: line.amount for line in lines} == {"2024-06-03": 75.0, "2024-06-04": 120.0}
