import json
from datetime import date

import pytest

from au_payroll.errors import EmployeeNotFoundError, PayrollValidationError
from au_payroll.models import ContributionType, OvertimeRule, PenaltyRateRule, ShiftLoadingRule
from au_payroll.providers import JsonDataStore
from au_payroll.rates import RateUnit
from au_payroll.serialization import parse_rule, parse_statutory_rate

from conftest import make_entry


def test_bundled_store_loads_awards_rules_and_employees(store):
    awards, rules = store.load_awards_and_rules()

    assert [a.code for a in awards] == ["MA000004"]
    assert len(rules) == 7
    assert store.list_employee_ids() == ["E001", "E002", "E003"]
    assert store.employer_monthly_wages("acme", "NSW", date(2024, 6, 14)) == 150000.0
    assert store.employer_monthly_wages("acme", "VIC", date(2024, 6, 14)) == 0.0


def test_timesheet_entries_filtered_to_period_and_approved(store):
    store.add_timesheet_entry(make_entry("T9", "2024-06-05T09:00:00", "2024-06-05T12:00:00", status="Pending"))

    entries = store.load_timesheet_entries("E002", date(2024, 6, 4), date(2024, 6, 10))

    assert [e.id for e in entries] == ["T2", "T3"]


def test_statutory_rates_filtered_by_date_and_state(store):
    nsw = store.load_statutory_rates(date(2024, 6, 14), "NSW", "acme")
    vic_next_year = store.load_statutory_rates(date(2024, 7, 1), "VIC", "acme")

    assert {r.id for r in nsw if r.contribution_type == ContributionType.SUPERANNUATION_GUARANTEE} == {"sg-2023-24"}
    assert "payroll-tax-vic" not in {r.id for r in nsw}
    assert {r.id for r in vic_next_year if r.contribution_type == ContributionType.SUPERANNUATION_GUARANTEE} == {
        "sg-2024-25"
    }
    assert "payroll-tax-vic" in {r.id for r in vic_next_year}


def test_unknown_employee_raises(store):
    with pytest.raises(EmployeeNotFoundError):
        store.load_employee_profile("nobody")


def test_missing_store_file_starts_empty(tmp_path):
    store = JsonDataStore(tmp_path / "missing.json")

    assert store.list_employee_ids() == []
    assert store.load_awards_and_rules() == ([], [])


def test_store_from_custom_document(tmp_path):
    path = tmp_path / "store.json"
    path.write_text(
        json.dumps(
            {
                "employees": [
                    {"employee_id": "X1", "employment_type": "Casual", "pay_frequency": "Weekly", "hourly_rate": 30}
                ],
                "statutory_rates": [
                    {
                        "id": "company-wc",
                        "contribution_type": "workers-compensation",
                        "rate": 0.02,
                        "effective_from": "2024-01-01",
                    }
                ],
            }
        )
    )

    store = JsonDataStore(path)

    assert store.load_employee_profile("X1").hourly_rate == 30.0
    assert "company-wc" in {r.id for r in store.load_statutory_rates(date(2024, 6, 1), "NSW", "")}


def test_parse_rule_variants_and_rate_units():
    penalty = parse_rule({"id": "p", "award_id": "a", "kind": "penalty_rate", "percentage": 150})
    loading = parse_rule(
        {"id": "s", "award_id": "a", "kind": "shift_loading", "percentage": 15, "conditions": {"time_from": "22:00"}}
    )
    overtime = parse_rule({"id": "o", "award_id": "a", "kind": "overtime", "basis": "weekly"})

    assert isinstance(penalty, PenaltyRateRule) and penalty.percentage.unit == RateUnit.PERCENT
    assert isinstance(loading, ShiftLoadingRule) and loading.conditions.has_time_window
    assert isinstance(overtime, OvertimeRule) and overtime.multiplier.as_fraction() == 1.5
    with pytest.raises(PayrollValidationError):
        parse_rule({"id": "x", "award_id": "a", "kind": "bonus"})


def test_bare_statutory_rate_is_a_fraction():
    rate = parse_statutory_rate(
        {"id": "sg", "contribution_type": "superannuation-guarantee", "rate": 0.115, "effective_from": "2024-07-01"}
    )

    assert rate.rate.as_percent() == pytest.approx(11.5)
