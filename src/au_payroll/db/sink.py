from typing import Callable

from sqlalchemy.orm import Session

from au_payroll.core.logging import get_logger
from au_payroll.db.models import (
    PayComponentRow,
    PayrollRun,
    PayrollRunError,
    Payslip,
    StatutoryContributionRow,
    SuperContributionRow,
)
from au_payroll.db.session import SessionLocal
from au_payroll.models import PayComponent, PayrollCalculationResult
from au_payroll.runs import PayrollRunOutcome

logger = get_logger(__name__)


def _component_row(component: PayComponent) -> PayComponentRow:
    return PayComponentRow(
        component_type=component.component_type.value,
        description=component.description,
        units=component.units,
        rate=component.rate,
        amount=component.amount,
        tax_treatment=component.tax_treatment.value,
        stp_category=component.stp_category,
        is_ote=component.is_ote,
        is_deduction=component.is_deduction,
        source_id=component.source_id,
    )


def payslip_row(result: PayrollCalculationResult) -> Payslip:
    totals = result.totals
    payslip = Payslip(
        employee_id=result.employee_id,
        period_start=result.period_start,
        period_end=result.period_end,
        gross_pay=totals.gross_pay,
        taxable_income=totals.taxable_income,
        pre_tax_deductions=totals.pre_tax_deductions,
        total_deductions=totals.total_deductions,
        tax_withheld=totals.tax_withheld,
        net_pay=totals.net_pay,
        super_contributions=totals.super_contributions,
        warnings="\n".join(result.warnings),
    )
    payslip.components = [_component_row(c) for c in result.earnings + result.deductions]
    payslip.super_rows = [
        SuperContributionRow(
            fund_id=c.fund_id,
            contribution_type=c.contribution_type,
            calculation_base=c.calculation_base,
            rate_percent=round(c.rate.as_percent(), 4),
            amount=c.amount,
            capped=c.capped,
            payment_date=c.payment_date,
        )
        for c in result.super_contributions
    ]
    payslip.statutory_rows = [
        StatutoryContributionRow(
            contribution_type=c.contribution_type.value,
            name=c.name,
            employer_amount=c.employer_amount,
            employee_amount=c.employee_amount,
            calculation_base=c.calculation_base,
            rate_applied=str(c.rate_applied) if c.rate_applied is not None else None,
            payment_due_date=c.payment_due_date,
            stp_category=c.stp_category,
        )
        for c in result.statutory_contributions
    ]
    return payslip


class SqlAlchemyResultSink:
    """Persists a finished run: the run row, one payslip per clean result, and the error rows.

    Results carrying hard errors are never written as payslips.
    """

    def __init__(self, session_factory: Callable[[], Session] = SessionLocal):
        self.session_factory = session_factory

    def save_run(self, outcome: PayrollRunOutcome) -> None:
        totals = outcome.totals
        run = PayrollRun(
            id=outcome.run_id,
            period_start=outcome.period.start,
            period_end=outcome.period.end,
            payment_date=outcome.period.paid_on,
            status=outcome.status.value,
            ruleset_version=outcome.ruleset_version,
            employee_count=totals.employee_count,
            total_gross=totals.gross_pay,
            total_tax=totals.tax_withheld,
            total_deductions=totals.total_deductions,
            total_net=totals.net_pay,
            total_super=totals.super_contributions,
            started_at=outcome.started_at,
            completed_at=outcome.completed_at,
        )
        run.payslips = [payslip_row(result) for result in outcome.results]
        run.errors = [
            PayrollRunError(
                employee_id=error.employee_id,
                category=error.category.value,
                code=error.code,
                severity=error.severity.value,
                message=error.message,
            )
            for error in outcome.errors
        ]

        payslip_count, error_count = len(run.payslips), len(run.errors)
        session = self.session_factory()
        try:
            session.add(run)
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()
        logger.info(
            "payroll_run_persisted", run_id=outcome.run_id, payslips=payslip_count, errors=error_count
        )
