from datetime import timezone

from au_payroll.models import Deduction, EmployeeProfile, EmploymentType, PayFrequency
from au_payroll.runs import EmployeeOutcome, PayrollRunProcessor, RunStatus, derive_status
from au_payroll.tax_tables import TaxTableRepository


class RecordingSink:
    def __init__(self):
        self.runs = []

    def save_run(self, outcome):
        self.runs.append(outcome)


def test_run_records_failures_per_employee_and_continues(store, june_fortnight):
    sink = RecordingSink()

    outcome = PayrollRunProcessor(store, sink=sink).process(june_fortnight, run_id="run-1")

    assert outcome.status == RunStatus.COMPLETED_WITH_ERRORS
    assert [o.employee_id for o in outcome.outcomes] == ["E001", "E002", "E003"]
    assert [r.employee_id for r in outcome.results] == ["E001", "E002"]
    assert len(outcome.errors) == 1
    error = outcome.errors[0]
    assert (error.employee_id, error.code, error.run_id) == ("E003", "MISSING_SUPER_FUND", "run-1")
    assert sink.runs == [outcome]


def test_run_totals_cover_successful_results_only(store, june_fortnight):
    outcome = PayrollRunProcessor(store).process(june_fortnight)

    totals = outcome.totals
    assert totals.employee_count == 2
    assert totals.gross_pay == 4969.49
    assert totals.tax_withheld == 826.05
    assert totals.total_deductions == 175.0
    assert totals.net_pay == 3968.44
    assert totals.super_contributions == 536.03


def test_parallel_run_matches_sequential(store, june_fortnight):
    sequential = PayrollRunProcessor(store).process(june_fortnight)
    parallel = PayrollRunProcessor(store, max_workers=4).process(june_fortnight)

    assert parallel.totals == sequential.totals
    assert [o.employee_id for o in parallel.outcomes] == [o.employee_id for o in sequential.outcomes]


def test_unknown_employee_is_reported_not_raised(store, june_fortnight):
    outcome = PayrollRunProcessor(store).process(june_fortnight, ["E001", "E999"])

    assert outcome.status == RunStatus.COMPLETED_WITH_ERRORS
    assert outcome.errors[0].code == "EMPLOYEE_NOT_FOUND"
    assert outcome.errors[0].message == "Employee E999 not found"


def test_result_with_validation_errors_is_not_a_success(store, june_fortnight):
    store.add_employee(
        EmployeeProfile(
            employee_id="E004",
            employment_type=EmploymentType.FULL_TIME,
            pay_frequency=PayFrequency.FORTNIGHTLY,
            base_salary=52000,
            super_fund_id="AUSSUPER",
            company_id="acme",
            deductions=(Deduction(priority=1, name="Garnishee order", amount=10000, applies_pre_tax=False),),
        )
    )

    outcome = PayrollRunProcessor(store).process(june_fortnight, ["E004"])

    assert outcome.status == RunStatus.FAILED
    assert outcome.errors[0].code == "RESULT_INVALID"
    assert "Net pay cannot be negative" in outcome.errors[0].message
    assert outcome.results == []


def test_missing_tax_tables_fail_every_employee(store, june_fortnight, tmp_path):
    store.tax_tables = TaxTableRepository(tmp_path)

    outcome = PayrollRunProcessor(store).process(june_fortnight, ["E001", "E002"])

    assert outcome.status == RunStatus.FAILED
    assert {e.code for e in outcome.errors} == {"TAX_TABLE_NOT_FOUND"}


def test_empty_run_is_completed(store, june_fortnight):
    outcome = PayrollRunProcessor(store).process(june_fortnight, [])

    assert outcome.status == RunStatus.COMPLETED
    assert outcome.totals.employee_count == 0


def test_derive_status():
    no_result = EmployeeOutcome("E1", result=None)

    assert derive_status([]) == RunStatus.COMPLETED
    assert derive_status([no_result]) == RunStatus.FAILED


def test_run_timestamps_are_utc(store, june_fortnight):
    outcome = PayrollRunProcessor(store).process(june_fortnight, ["E001"])

    assert outcome.started_at.tzinfo == timezone.utc
    assert outcome.completed_at >= outcome.started_at
