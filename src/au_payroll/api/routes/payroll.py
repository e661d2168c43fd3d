from datetime import date, datetime
from typing import Literal

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from au_payroll.api.deps import calculator_for, get_store
from au_payroll.api.schemas import PeriodIn, TimesheetEntryIn
from au_payroll.core.config import settings
from au_payroll.db.models import PayrollRun, Payslip
from au_payroll.db.session import get_session
from au_payroll.db.sink import SqlAlchemyResultSink
from au_payroll.errors import PayrollValidationError
from au_payroll.providers import JsonDataStore
from au_payroll.runs import PayrollRunProcessor
from au_payroll.serialization import (
    parse_adjustment,
    parse_deduction,
    parse_employee,
    parse_entry,
    parse_period,
    payslip,
)

router = APIRouter(prefix="/payroll", tags=["payroll"])


class DeductionIn(BaseModel):
    priority: int = 0
    name: str
    amount: float = Field(default=0, ge=0)
    percentage: float | None = Field(default=None, ge=0, description="Percent on a 0-100 scale")
    applies_pre_tax: bool = True
    limit: float | None = None
    id: str | None = None
    category: str = "Other"


class AdjustmentIn(BaseModel):
    id: str
    adjustment_type: Literal["Bonus", "Commission", "BackPay", "Allowance", "Other"] = "Other"
    reason: str = ""
    amount: float = 0
    formula: str | None = None
    tax_treatment: Literal["Taxable", "NonTaxable"] = "Taxable"
    is_ote: bool = True


class EmployeeIn(BaseModel):
    employee_id: str
    employment_type: Literal["FullTime", "PartTime", "Casual", "Contractor"]
    pay_frequency: Literal["Weekly", "Fortnightly", "Monthly", "Quarterly"] = "Fortnightly"
    base_salary: float = Field(default=0, ge=0)
    hourly_rate: float = Field(default=0, ge=0)
    residency: Literal["Resident", "NonResident", "WorkingHoliday"] = "Resident"
    award_id: str | None = None
    award_classification: str | None = None
    super_fund_id: str | None = None
    company_id: str = ""
    state: str = "NSW"
    industry_code: str | None = None
    has_help_debt: bool = False
    has_sfss_debt: bool = False
    has_private_health_insurance: bool = False
    is_exempt_from_payroll_tax: bool = False
    custom_inputs: dict[str, float] = {}


class CalculateRequest(BaseModel):
    employee: EmployeeIn
    period: PeriodIn
    timesheet_entries: list[TimesheetEntryIn] = []
    adjustments: list[AdjustmentIn] = []
    deductions: list[DeductionIn] = []
    employer_monthly_wages: float = 0


class RunRequest(BaseModel):
    period: PeriodIn
    employee_ids: list[str] | None = None


class RunErrorOut(BaseModel):
    employee_id: str
    category: str
    code: str
    severity: str
    message: str


class PayrollRunOut(BaseModel):
    id: str
    period_start: date
    period_end: date
    payment_date: date
    status: str
    employee_count: int
    total_gross: float
    total_tax: float
    total_net: float
    total_super: float
    completed_at: datetime
    errors: list[RunErrorOut] = []


class PayslipOut(BaseModel):
    employee_id: str
    gross_pay: float
    taxable_income: float
    tax_withheld: float
    total_deductions: float
    net_pay: float
    super_contributions: float


def _run_out(row: PayrollRun) -> PayrollRunOut:
    return PayrollRunOut(
        id=row.id,
        period_start=row.period_start,
        period_end=row.period_end,
        payment_date=row.payment_date,
        status=row.status,
        employee_count=row.employee_count,
        total_gross=float(row.total_gross),
        total_tax=float(row.total_tax),
        total_net=float(row.total_net),
        total_super=float(row.total_super),
        completed_at=row.completed_at,
        errors=[
            RunErrorOut(
                employee_id=e.employee_id, category=e.category, code=e.code, severity=e.severity, message=e.message
            )
            for e in row.errors
        ],
    )


@router.post("/calculate")
def calculate(payload: CalculateRequest, store: JsonDataStore = Depends(get_store)) -> dict:
    try:
        profile = parse_employee(payload.employee.model_dump())
        period = parse_period(payload.period.model_dump())
        entries = [parse_entry(e.model_dump()) for e in payload.timesheet_entries]
        foreign = sorted({e.employee_id for e in entries if e.employee_id != profile.employee_id})
        if foreign:
            raise PayrollValidationError(
                f"Timesheet entries belong to {', '.join(foreign)}, not {profile.employee_id}"
            )
        adjustments = [parse_adjustment(a.model_dump()) for a in payload.adjustments]
        deductions = [parse_deduction(d.model_dump()) for d in payload.deductions]
    except PayrollValidationError as exc:
        raise HTTPException(status_code=422, detail=exc.message) from exc

    ruleset = PayrollRunProcessor(store).load_snapshot(period, [profile])
    result = calculator_for(ruleset).calculate_employee(
        profile,
        period,
        entries,
        adjustments=adjustments,
        deductions=deductions,
        employer_monthly_wages=payload.employer_monthly_wages,
    )
    return payslip(result)


@router.post("/runs", response_model=PayrollRunOut, status_code=201)
def create_run(
    payload: RunRequest,
    db: Session = Depends(get_session),
    store: JsonDataStore = Depends(get_store),
) -> PayrollRunOut:
    period = parse_period(payload.period.model_dump())
    processor = PayrollRunProcessor(
        store,
        calculator_factory=calculator_for,
        sink=SqlAlchemyResultSink(lambda: db),
        max_workers=settings.max_workers,
    )
    outcome = processor.process(period, payload.employee_ids)
    row = db.query(PayrollRun).filter(PayrollRun.id == outcome.run_id).one()
    return _run_out(row)


@router.get("/runs", response_model=list[PayrollRunOut])
def list_runs(db: Session = Depends(get_session)) -> list[PayrollRunOut]:
    rows = db.query(PayrollRun).order_by(PayrollRun.period_start.desc(), PayrollRun.started_at.desc()).all()
    return [_run_out(row) for row in rows]


@router.get("/runs/{run_id}/payslips", response_model=list[PayslipOut])
def list_payslips(run_id: str, db: Session = Depends(get_session)) -> list[PayslipOut]:
    run = db.query(PayrollRun).filter(PayrollRun.id == run_id).one_or_none()
    if not run:
        raise HTTPException(status_code=404, detail="Payroll run not found")
    rows = db.query(Payslip).filter(Payslip.run_id == run_id).order_by(Payslip.employee_id.asc()).all()
    return [
        PayslipOut(
            employee_id=r.employee_id,
            gross_pay=float(r.gross_pay),
            taxable_income=float(r.taxable_income),
            tax_withheld=float(r.tax_withheld),
            total_deductions=float(r.total_deductions),
            net_pay=float(r.net_pay),
            super_contributions=float(r.super_contributions),
        )
        for r in rows
    ]
