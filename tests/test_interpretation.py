from datetime import date

import pytest

from au_payroll.errors import AwardNotFoundError, DataError
from au_payroll.interpretation import AwardInterpreter, compliance_breaches, interpret_timesheet
from au_payroll.models import Award, EmploymentType
from au_payroll.ruleset import RuleSet
from au_payroll.runs import PayrollRunProcessor

from conftest import make_entry

AS_OF = date(2024, 6, 14)


@pytest.fixture
def ruleset(store, june_fortnight):
    return PayrollRunProcessor(store).load_snapshot(june_fortnight)


def sample_entries(store, june_fortnight):
    return store.load_timesheet_entries("E002", june_fortnight.start, june_fortnight.end)


def test_sample_fortnight_interpretation(ruleset, store, june_fortnight):
    result = interpret_timesheet(
        ruleset,
        "E002",
        "retail",
        "Retail Employee Level 1",
        sample_entries(store, june_fortnight),
        AS_OF,
        EmploymentType.CASUAL,
    )

    # Saturday 8h at 150% plus public holiday 10h at 250%
    assert result.total_penalty_amount == 925.0
    assert result.total_shift_loading_amount == 30.0
    assert result.total_allowance_amount == 21.49
    # two hours past 8 on the public holiday
    assert result.total_overtime_amount == 75.0
    assert result.total_award_amount == 1051.49
    assert result.interpretation_date == AS_OF
    assert result.compliance_notes[-1] == "Interpreted under General Retail Industry Award 2020 (MA000004)"


def test_same_rules_and_timesheet_give_identical_totals(ruleset, store, june_fortnight):
    entries = sample_entries(store, june_fortnight)
    interpreter = AwardInterpreter(ruleset)

    first = interpreter.interpret("E002", "retail", None, entries, AS_OF)
    second = interpreter.interpret("E002", "retail", None, list(reversed(entries)), AS_OF)

    assert first == second


def test_empty_timesheet_gives_zero_totals_and_no_notes(ruleset):
    result = AwardInterpreter(ruleset).interpret("E002", "retail", None, [], AS_OF)

    assert result.total_award_amount == 0
    assert result.penalty_rates == () and result.overtime == ()
    assert result.compliance_notes == ()


def test_unknown_and_inactive_awards(ruleset):
    with pytest.raises(AwardNotFoundError, match="Award with ID missing not found"):
        AwardInterpreter(ruleset).interpret("E002", "missing", None, [], AS_OF)

    inactive = RuleSet.build(awards=[Award(id="old", code="MA1", name="Old award", is_active=False)])
    with pytest.raises(DataError):
        AwardInterpreter(inactive).interpret("E002", "old", None, [], AS_OF)


def test_compliance_breaches_flag_long_days_and_missing_breaks():
    entries = [
        make_entry("T1", "2024-06-03T06:00:00", "2024-06-03T13:00:00"),
        make_entry("T2", "2024-06-03T13:30:00", "2024-06-03T20:00:00"),
        make_entry("T3", "2024-06-04T09:00:00", "2024-06-04T13:00:00"),
    ]

    notes = compliance_breaches(entries)

    assert notes[0].startswith("2024-06-03: 13.50 hours worked exceeds the daily maximum")
    assert any(note.startswith("Entry T1: 7.00 continuous hours") for note in notes)
    assert any(note.startswith("Entry T2: 6.50 continuous hours") for note in notes)
    assert not any("T3" in note for note in notes)
