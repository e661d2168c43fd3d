import json

from au_payroll.calculator import PayrollCalculator
from au_payroll.runs import PayrollRunProcessor
from au_payroll.serialization import payslip, to_jsonable


def test_payslip_summarises_components_and_is_json_ready(store, june_fortnight):
    profile = store.load_employee_profile("E002")
    ruleset = PayrollRunProcessor(store).load_snapshot(june_fortnight, [profile])
    result = PayrollCalculator(ruleset).calculate_employee(
        profile,
        june_fortnight,
        store.load_timesheet_entries("E002", june_fortnight.start, june_fortnight.end),
        employer_monthly_wages=150000,
    )

    document = payslip(result)

    assert document["employee_id"] == "E002"
    assert document["period_start"] == "2024-06-01"
    assert document["totals"]["gross_pay"] == 1969.49
    assert document["summary"]["earnings"]["Penalty"] == 925.0
    assert document["summary"]["earnings"]["Allowance"] == 21.49
    assert document["summary"]["statutory"]["superannuation-guarantee"] == 206.03
    assert document["is_valid"] is True
    json.dumps(document)


def test_to_jsonable_handles_rates_and_enums(store):
    awards, rules = store.load_awards_and_rules()

    payload = to_jsonable(rules[0])

    assert payload["conditions"]["days"] == [5]
    assert payload["percentage"] == {"value": 150.0, "unit": "percent", "base": 100.0}
    assert to_jsonable(awards[0])["effective_from"] == "2023-07-01"
