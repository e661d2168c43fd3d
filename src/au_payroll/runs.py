from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple
from uuid import uuid4

from .calculator import PayrollCalculator
from .core.logging import get_logger
from .core.monitoring import capture_employee_failure
from .core.observability import employees_processed, record_run, tracer
from .errors import PayrollErrorRecord, TaxTableNotFoundError
from .models import EmployeeProfile, PayPeriod, PayrollCalculationResult, TimesheetEntry
from .providers import PayrollDataProvider, ResultSink
from .ruleset import RuleSet
from .tax_tables import TaxTable, financial_year

logger = get_logger(__name__)


class RunStatus(str, Enum):
    COMPLETED = "Completed"
    COMPLETED_WITH_ERRORS = "CompletedWithErrors"
    FAILED = "Failed"


@dataclass(frozen=True)
class EmployeeOutcome:
    employee_id: str
    result: Optional[PayrollCalculationResult] = None
    error: Optional[PayrollErrorRecord] = None

    @property
    def succeeded(self) -> bool:
        return self.error is None and self.result is not None and self.result.is_valid


@dataclass(frozen=True)
class RunTotals:
    employee_count: int = 0
    gross_pay: float = 0.0
    tax_withheld: float = 0.0
    total_deductions: float = 0.0
    net_pay: float = 0.0
    super_contributions: float = 0.0


@dataclass(frozen=True)
class PayrollRunOutcome:
    run_id: str
    period: PayPeriod
    status: RunStatus
    outcomes: Tuple[EmployeeOutcome, ...]
    totals: RunTotals
    ruleset_version: str
    started_at: datetime
    completed_at: datetime

    @property
    def results(self) -> List[PayrollCalculationResult]:
        return [o.result for o in self.outcomes if o.succeeded]

    @property
    def errors(self) -> List[PayrollErrorRecord]:
        return [o.error for o in self.outcomes if o.error is not None]


def derive_status(outcomes: Sequence[EmployeeOutcome]) -> RunStatus:
    failed = sum(1 for o in outcomes if not o.succeeded)
    if failed == 0:
        return RunStatus.COMPLETED
    if failed == len(outcomes):
        return RunStatus.FAILED
    return RunStatus.COMPLETED_WITH_ERRORS


def run_totals(outcomes: Iterable[EmployeeOutcome]) -> RunTotals:
    results = [o.result for o in outcomes if o.succeeded]
    return RunTotals(
        employee_count=len(results),
        gross_pay=round(sum(r.totals.gross_pay for r in results), 2),
        tax_withheld=round(sum(r.totals.tax_withheld for r in results), 2),
        total_deductions=round(sum(r.totals.total_deductions + r.totals.pre_tax_deductions for r in results), 2),
        net_pay=round(sum(r.totals.net_pay for r in results), 2),
        super_contributions=round(sum(r.totals.super_contributions for r in results), 2),
    )


@dataclass(frozen=True)
class _WorkItem:
    profile: EmployeeProfile
    entries: Tuple[TimesheetEntry, ...]
    employer_monthly_wages: float


class PayrollRunProcessor:
    """Calculates a pay period for many employees against one rule snapshot.

    Everything the calculation reads is fetched before the first employee is
    calculated; the snapshot is shared read-only, so employees can be
    calculated in parallel. A failing employee is recorded and the run moves on.
    """

    def __init__(
        self,
        provider: PayrollDataProvider,
        calculator_factory: Callable[[RuleSet], PayrollCalculator] = PayrollCalculator,
        sink: Optional[ResultSink] = None,
        max_workers: int = 1,
    ):
        self.provider = provider
        self.calculator_factory = calculator_factory
        self.sink = sink
        self.max_workers = max_workers

    def load_snapshot(self, period: PayPeriod, profiles: Iterable[EmployeeProfile] = ()) -> RuleSet:
        profiles = list(profiles)
        awards, rules = self.provider.load_awards_and_rules()
        fiscal_year = financial_year(period.end)

        tables: List[TaxTable] = []
        for frequency, residency in sorted({(p.pay_frequency, p.residency) for p in profiles}):
            try:
                tables.append(self.provider.load_tax_table(fiscal_year, frequency, residency))
            except TaxTableNotFoundError as exc:
                # employees on this scale fail individually at withholding
                logger.warning("tax_table_missing", financial_year=fiscal_year, residency=residency.value, error=str(exc))

        statutory_rates = []
        for state, company_id in sorted({(p.state, p.company_id) for p in profiles}):
            statutory_rates.extend(self.provider.load_statutory_rates(period.end, state, company_id))

        return RuleSet.build(
            awards=awards,
            rules=rules,
            tax_tables=tables,
            statutory_rates=statutory_rates,
            public_holidays=self.provider.load_public_holidays(period.start, period.end),
            version=f"{fiscal_year}:{datetime.now(timezone.utc).isoformat()}",
        )

    def process(
        self,
        period: PayPeriod,
        employee_ids: Optional[Sequence[str]] = None,
        run_id: Optional[str] = None,
    ) -> PayrollRunOutcome:
        run_id = run_id or uuid4().hex
        started_at = datetime.now(timezone.utc)
        employee_ids = list(employee_ids) if employee_ids is not None else self.provider.list_employee_ids()
        log = logger.bind(run_id=run_id, period_start=period.start.isoformat(), period_end=period.end.isoformat())
        log.info("payroll_run_started", employees=len(employee_ids))

        with tracer.start_as_current_span("payroll.run") as span:
            span.set_attribute("payroll.run_id", run_id)
            span.set_attribute("payroll.employee_count", len(employee_ids))

            outcomes: Dict[str, EmployeeOutcome] = {}
            work: List[_WorkItem] = []
            profiles = []
            for employee_id in employee_ids:
                try:
                    profiles.append(self.provider.load_employee_profile(employee_id))
                except Exception as exc:
                    outcomes[employee_id] = self._failed(employee_id, exc, run_id)

            ruleset = self.load_snapshot(period, profiles)
            calculator = self.calculator_factory(ruleset)
            wages: Dict[Tuple[str, str], float] = {}
            for profile in profiles:
                try:
                    key = (profile.company_id, profile.state)
                    if key not in wages:
                        wages[key] = self.provider.employer_monthly_wages(profile.company_id, profile.state, period.end)
                    entries = self.provider.load_timesheet_entries(profile.employee_id, period.start, period.end)
                except Exception as exc:
                    outcomes[profile.employee_id] = self._failed(profile.employee_id, exc, run_id)
                    continue
                work.append(_WorkItem(profile, tuple(entries), wages[key]))

            def calculate(item: _WorkItem) -> EmployeeOutcome:
                return self._calculate_one(calculator, item, period, run_id)

            if self.max_workers > 1 and len(work) > 1:
                with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
                    calculated = list(pool.map(calculate, work))
            else:
                calculated = [calculate(item) for item in work]
            for outcome in calculated:
                outcomes[outcome.employee_id] = outcome

            ordered = tuple(outcomes[employee_id] for employee_id in employee_ids if employee_id in outcomes)
            status = derive_status(ordered)
            span.set_attribute("payroll.status", status.value)

        outcome = PayrollRunOutcome(
            run_id=run_id,
            period=period,
            status=status,
            outcomes=ordered,
            totals=run_totals(ordered),
            ruleset_version=ruleset.version,
            started_at=started_at,
            completed_at=datetime.now(timezone.utc),
        )
        if self.sink is not None:
            self.sink.save_run(outcome)
        record_run(
            status.value,
            (outcome.completed_at - started_at).total_seconds(),
            outcome.totals.gross_pay,
            outcome.totals.net_pay,
        )
        log.info(
            "payroll_run_completed",
            status=status.value,
            succeeded=outcome.totals.employee_count,
            failed=len(outcome.errors),
            gross_pay=outcome.totals.gross_pay,
            net_pay=outcome.totals.net_pay,
        )
        return outcome

    def _calculate_one(
        self, calculator: PayrollCalculator, item: _WorkItem, period: PayPeriod, run_id: str
    ) -> EmployeeOutcome:
        employee_id = item.profile.employee_id
        with tracer.start_as_current_span("payroll.employee") as span:
            span.set_attribute("payroll.employee_id", employee_id)
            result = calculator.calculate_employee(
                item.profile,
                period,
                item.entries,
                employer_monthly_wages=item.employer_monthly_wages,
                run_id=run_id,
            )
            error = result.failure
            if error is None and result.validation_errors:
                error = PayrollErrorRecord.from_validation_errors(employee_id, result.validation_errors, run_id)
            status = "failed" if error else "succeeded"
            span.set_attribute("payroll.status", status)
        employees_processed.add(1, {"status": status})
        if error is not None:
            capture_employee_failure(error)
            logger.warning(
                "employee_calculation_failed",
                run_id=run_id,
                employee_id=employee_id,
                error_code=error.code,
                error=error.message,
            )
        return EmployeeOutcome(employee_id=employee_id, result=result, error=error)

    @staticmethod
    def _failed(employee_id: str, exc: Exception, run_id: str) -> EmployeeOutcome:
        error = PayrollErrorRecord.from_exception(employee_id, exc, run_id)
        employees_processed.add(1, {"status": "failed"})
        capture_employee_failure(error)
        logger.warning(
            "employee_calculation_failed", run_id=run_id, employee_id=employee_id, error_code=error.code, error=str(exc)
        )
        return EmployeeOutcome(employee_id=employee_id, error=error)
