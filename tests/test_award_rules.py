from datetime import date, time

from au_payroll.award_rules import applicable_minutes, is_applicable, rule_in_force
from au_payroll.models import (
    EmploymentType,
    LoadingMethod,
    PenaltyRateRule,
    RuleConditions,
    ShiftLoadingRule,
    days_for,
)
from au_payroll.rates import Rate

from conftest import make_entry

AS_OF = date(2024, 6, 14)


def saturday_rule(**conditions) -> PenaltyRateRule:
    return PenaltyRateRule(
        id="sat",
        award_id="retail",
        name="Saturday penalty",
        percentage=Rate.percent(150),
        conditions=RuleConditions(days=days_for("saturday"), **conditions),
    )


def night_rule() -> ShiftLoadingRule:
    return ShiftLoadingRule(
        id="night",
        award_id="retail",
        name="Night loading",
        method=LoadingMethod.PERCENTAGE,
        percentage=Rate.percent(15),
        conditions=RuleConditions(time_from=time(22, 0), time_to=time(6, 0)),
    )


def test_day_condition_matches_entry_start_day():
    saturday = make_entry("T1", "2024-06-08T09:00:00", "2024-06-08T17:00:00")
    monday = make_entry("T2", "2024-06-10T09:00:00", "2024-06-10T17:00:00")

    assert is_applicable(saturday_rule(), None, saturday, AS_OF)
    assert not is_applicable(saturday_rule(), None, monday, AS_OF)


def test_rule_outside_effective_window_never_applies():
    rule = saturday_rule(effective_from=date(2024, 7, 1))
    saturday = make_entry("T1", "2024-06-08T09:00:00", "2024-06-08T17:00:00")

    assert not rule_in_force(rule, None, AS_OF)
    assert not is_applicable(rule, None, saturday, AS_OF)
    assert is_applicable(rule, None, saturday, date(2024, 7, 1))


def test_classification_and_employment_type_must_match_when_set():
    rule = saturday_rule(classification="Level 1", employment_type=EmploymentType.CASUAL)
    saturday = make_entry("T1", "2024-06-08T09:00:00", "2024-06-08T17:00:00")

    assert is_applicable(rule, "Level 1", saturday, AS_OF, EmploymentType.CASUAL)
    assert not is_applicable(rule, "Level 2", saturday, AS_OF, EmploymentType.CASUAL)
    assert not is_applicable(rule, "Level 1", saturday, AS_OF, EmploymentType.FULL_TIME)


def test_public_holiday_only_rule():
    rule = PenaltyRateRule(
        id="ph",
        award_id="retail",
        name="Public holiday",
        percentage=Rate.percent(250),
        conditions=RuleConditions(public_holiday_only=True),
    )
    entry = make_entry("T1", "2024-06-10T09:00:00", "2024-06-10T17:00:00")

    assert is_applicable(rule, None, entry, AS_OF, public_holidays={date(2024, 6, 10)})
    assert not is_applicable(rule, None, entry, AS_OF)


def test_overnight_window_counts_minutes_across_midnight():
    overnight = make_entry("T1", "2024-06-12T22:00:00", "2024-06-13T06:00:00")
    early = make_entry("T2", "2024-06-13T00:00:00", "2024-06-13T07:00:00")
    day = make_entry("T3", "2024-06-13T09:00:00", "2024-06-13T17:00:00")

    assert applicable_minutes(night_rule(), overnight) == 480
    assert applicable_minutes(night_rule(), early) == 360
    assert applicable_minutes(night_rule(), day) == 0
    assert not is_applicable(night_rule(), None, day, AS_OF)


def test_rule_without_time_window_covers_whole_entry():
    entry = make_entry("T1", "2024-06-08T09:00:00", "2024-06-08T13:30:00")

    assert applicable_minutes(saturday_rule(), entry) == 270
