from dataclasses import replace
from datetime import date

import pytest

from au_payroll.calculator import PayrollCalculator
from au_payroll.errors import ErrorCategory
from au_payroll.models import (
    AdjustmentType,
    ComponentType,
    ContributionType,
    Deduction,
    EmployeeProfile,
    EmploymentType,
    PayFrequency,
    PayPeriod,
    PenaltyBasePolicy,
    SalaryAdjustment,
    TaxTreatment,
)
from au_payroll.ruleset import RuleSet
from au_payroll.runs import PayrollRunProcessor


@pytest.fixture
def snapshot(store, june_fortnight):
    profiles = [store.load_employee_profile(e) for e in store.list_employee_ids()]
    return PayrollRunProcessor(store).load_snapshot(june_fortnight, profiles)


def calculate(store, period, snapshot, employee_id, calculator=None, **kwargs):
    calculator = calculator or PayrollCalculator(snapshot)
    profile = kwargs.pop("profile", None) or store.load_employee_profile(employee_id)
    entries = kwargs.pop("entries", None)
    if entries is None:
        entries = store.load_timesheet_entries(employee_id, period.start, period.end)
    return calculator.calculate_employee(
        profile,
        period,
        entries,
        employer_monthly_wages=store.employer_monthly_wages(profile.company_id, profile.state, period.end),
        **kwargs,
    )


def statutory(result, contribution_type):
    return [c for c in result.statutory_contributions if c.contribution_type == contribution_type]


def test_salaried_employee_gross_to_net(store, june_fortnight, snapshot):
    result = calculate(store, june_fortnight, snapshot, "E001")

    totals = result.totals
    assert totals.gross_pay == 3000.0
    assert totals.pre_tax_deductions == 150.0
    assert totals.taxable_income == 2850.0
    assert totals.tax_withheld == 559.6
    assert totals.total_deductions == 25.0
    assert totals.net_pay == 2265.4
    assert totals.super_contributions == 330.0
    assert result.is_valid
    assert result.warnings == ()
    assert [d.description for d in result.deductions] == ["Salary sacrifice", "Union fees"]
    assert statutory(result, ContributionType.PAYROLL_TAX)[0].employer_amount == 163.5
    assert statutory(result, ContributionType.WORKERS_COMPENSATION)[0].employer_amount == 45.0
    assert statutory(result, ContributionType.MEDICARE_LEVY)[0].employee_amount == 57.0
    assert statutory(result, ContributionType.PAYG_WITHHOLDING)[0].employee_amount == 559.6


def test_award_employee_earnings_components(store, june_fortnight, snapshot):
    result = calculate(store, june_fortnight, snapshot, "E002")

    by_type = {}
    for component in result.earnings:
        by_type[component.component_type] = round(by_type.get(component.component_type, 0) + component.amount, 2)
    assert by_type == {
        ComponentType.ORDINARY_HOURS: 850.0,
        ComponentType.PENALTY: 925.0,
        ComponentType.SHIFT_LOADING: 30.0,
        ComponentType.ALLOWANCE: 21.49,
        ComponentType.OVERTIME: 75.0,
        ComponentType.BONUS: 68.0,
    }
    totals = result.totals
    assert totals.gross_pay == 1969.49
    # the meal allowance is non-taxable but still paid
    assert totals.taxable_income == 1948.0
    assert totals.tax_withheld == 266.45
    assert totals.net_pay == 1703.04
    # overtime and the non-taxable allowance are not ordinary time earnings
    assert result.super_contributions[0].calculation_base == 1873.0
    assert totals.super_contributions == 206.03
    assert result.award_interpretation.total_award_amount == 1051.49
    assert "Superannuation contributions below minimum guarantee rate" in result.warnings
    assert result.is_valid


def test_stp_categories_on_award_components(store, june_fortnight, snapshot):
    result = calculate(store, june_fortnight, snapshot, "E002")

    categories = {c.component_type: c.stp_category for c in result.earnings}
    assert categories[ComponentType.OVERTIME] == "OVT"
    assert categories[ComponentType.ALLOWANCE] == "ALW"
    assert categories[ComponentType.BONUS] == "BON"
    assert categories[ComponentType.PENALTY] == "SAW"


def test_increment_only_policy_reduces_penalty_lines(store, june_fortnight, snapshot):
    calculator = PayrollCalculator(snapshot, penalty_base_policy=PenaltyBasePolicy.INCREMENT_ONLY)

    result = calculate(store, june_fortnight, snapshot, "E002", calculator=calculator)

    penalties = [c.amount for c in result.earnings if c.component_type == ComponentType.PENALTY]
    assert sorted(penalties) == [100.0, 375.0]


def test_empty_timesheet_gives_zero_totals_and_no_lines(store, june_fortnight, snapshot):
    result = calculate(store, june_fortnight, snapshot, "E002", entries=[])

    assert result.earnings == ()
    assert result.deductions == ()
    assert result.super_contributions == ()
    assert result.totals.gross_pay == 0
    assert result.totals.net_pay == 0
    assert result.is_valid
    assert result.warnings == ()


def test_missing_super_fund_fails_employee_but_returns_partial_result(store, june_fortnight, snapshot):
    result = calculate(store, june_fortnight, snapshot, "E003")

    assert not result.is_valid
    assert result.validation_errors[0] == "Error calculating payroll: Employee E003 has no superannuation fund configured"
    assert result.failure.code == "MISSING_SUPER_FUND"
    assert result.failure.category == ErrorCategory.COMPLIANCE
    assert result.totals.gross_pay == 2000.0
    assert result.totals.tax_withheld > 0


def test_missing_tax_table_is_a_data_failure(store, june_fortnight, snapshot):
    empty = RuleSet.build(awards=snapshot.awards.values(), statutory_rates=snapshot.statutory_rates)

    result = calculate(store, june_fortnight, empty, "E001")

    assert result.failure.code == "TAX_TABLE_NOT_FOUND"
    assert result.failure.category == ErrorCategory.DATA


def test_negative_net_is_a_validation_error(store, june_fortnight, snapshot):
    garnishee = Deduction(priority=1, name="Garnishee order", amount=5000, applies_pre_tax=False)

    result = calculate(store, june_fortnight, snapshot, "E001", deductions=[garnishee])

    assert result.totals.net_pay < 0
    assert "Net pay cannot be negative" in result.validation_errors
    assert result.failure is None


def test_employee_levies_withheld_when_configured(store, june_fortnight, snapshot):
    calculator = PayrollCalculator(snapshot, withhold_employee_levies=True)

    result = calculate(store, june_fortnight, snapshot, "E001", calculator=calculator)

    assert result.totals.tax_withheld == 616.6


def test_gross_super_base(store, june_fortnight, snapshot):
    calculator = PayrollCalculator(snapshot, super_base="gross")

    result = calculate(store, june_fortnight, snapshot, "E002", calculator=calculator)

    assert result.super_contributions[0].calculation_base == 1969.49
    assert "Superannuation contributions below minimum guarantee rate" not in result.warnings


def test_adjustments_and_minimum_wage_warning(store, june_fortnight, snapshot):
    profile = replace(store.load_employee_profile("E002"), hourly_rate=20.0, award_id=None, adjustments=())
    timesheet = store.load_timesheet_entries("E002", june_fortnight.start, june_fortnight.end)
    entries = [replace(e, hourly_rate=20.0) for e in timesheet]
    adjustments = [
        SalaryAdjustment(id="A1", adjustment_type=AdjustmentType.BACK_PAY, reason="Back pay", amount=120),
        SalaryAdjustment(
            id="A2",
            adjustment_type=AdjustmentType.ALLOWANCE,
            reason="Laundry",
            amount=15,
            tax_treatment=TaxTreatment.NON_TAXABLE,
            is_ote=False,
        ),
    ]

    result = calculate(
        store, june_fortnight, snapshot, "E002", profile=profile, entries=entries, adjustments=adjustments
    )

    assert result.totals.gross_pay == 34 * 20 + 120 + 15
    assert result.totals.taxable_income == 34 * 20 + 120
    assert "Hourly rate 20.00 is below the minimum wage of 24.10" in result.warnings


def test_contractor_has_no_super(store, june_fortnight, snapshot):
    contractor = EmployeeProfile(
        employee_id="C1",
        employment_type=EmploymentType.CONTRACTOR,
        pay_frequency=PayFrequency.FORTNIGHTLY,
        hourly_rate=90,
        company_id="acme",
    )
    timesheet = store.load_timesheet_entries("E002", june_fortnight.start, june_fortnight.end)
    entries = [replace(e, employee_id="C1", hourly_rate=0) for e in timesheet]

    result = calculate(store, june_fortnight, snapshot, "C1", profile=contractor, entries=entries)

    assert result.totals.gross_pay == 3060.0
    assert result.super_contributions == ()
    assert result.is_valid


def test_entries_for_another_employee_are_ignored_with_a_warning(store, june_fortnight, snapshot):
    timesheet = store.load_timesheet_entries("E002", june_fortnight.start, june_fortnight.end)
    stray = replace(timesheet[0], id="stray", employee_id="E001")

    result = calculate(store, june_fortnight, snapshot, "E002", entries=list(timesheet) + [stray])
    clean = calculate(store, june_fortnight, snapshot, "E002", entries=timesheet)

    assert result.totals.gross_pay == clean.totals.gross_pay
    assert "Ignored 1 timesheet entries recorded for another employee" in result.warnings


def test_period_frequency_differing_from_employee_is_warned(store, snapshot):
    monthly = PayPeriod(start=date(2024, 6, 1), end=date(2024, 6, 30), frequency=PayFrequency.MONTHLY)

    result = calculate(store, monthly, snapshot, "E001")

    assert any(w.startswith("Pay period is Monthly but the employee is paid Fortnightly") for w in result.warnings)
