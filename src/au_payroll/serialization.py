"""Conversion between plain JSON payloads and the domain dataclasses."""

from __future__ import annotations

from collections import defaultdict
from dataclasses import fields, is_dataclass
from datetime import date, datetime, time
from enum import Enum
from typing import Any, Dict, Iterable, Optional

from .errors import PayrollValidationError
from .models import (
    AdjustmentType,
    AllowanceMethod,
    AllowanceRule,
    Award,
    AwardRule,
    ContributionType,
    Deduction,
    EmployeeProfile,
    EmploymentType,
    LoadingMethod,
    OvertimeBasis,
    OvertimeMethod,
    OvertimeRule,
    PayFrequency,
    PayPeriod,
    PayrollCalculationResult,
    PenaltyRateRule,
    RepaymentBand,
    Residency,
    RuleConditions,
    RuleKind,
    SalaryAdjustment,
    ShiftLoadingRule,
    StatutoryRate,
    TaxTreatment,
    TimesheetEntry,
    days_for,
)
from .rates import Rate, RateUnit


def to_jsonable(value: Any) -> Any:
    if is_dataclass(value) and not isinstance(value, type):
        return {f.name: to_jsonable(getattr(value, f.name)) for f in fields(value)}
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, (set, frozenset)):
        return sorted(to_jsonable(v) for v in value)
    if isinstance(value, (list, tuple)):
        return [to_jsonable(v) for v in value]
    if isinstance(value, dict):
        return {str(k): to_jsonable(v) for k, v in value.items()}
    return value


def payslip(result: PayrollCalculationResult) -> Dict[str, Any]:
    """Canonical payslip view: totals, summary by component type, and the rows."""
    earnings_by_type: Dict[str, float] = defaultdict(float)
    for component in result.earnings:
        earnings_by_type[component.component_type.value] += component.amount
    statutory_by_type: Dict[str, float] = defaultdict(float)
    for contribution in result.statutory_contributions:
        statutory_by_type[contribution.contribution_type.value] += contribution.amount

    return {
        "employee_id": result.employee_id,
        "period_start": result.period_start.isoformat(),
        "period_end": result.period_end.isoformat(),
        "totals": to_jsonable(result.totals),
        "summary": {
            "earnings": {k: round(v, 2) for k, v in sorted(earnings_by_type.items())},
            "statutory": {k: round(v, 2) for k, v in sorted(statutory_by_type.items())},
        },
        "earnings": to_jsonable(result.earnings),
        "deductions": to_jsonable(result.deductions),
        "super_contributions": to_jsonable(result.super_contributions),
        "statutory_contributions": to_jsonable(result.statutory_contributions),
        "validation_errors": list(result.validation_errors),
        "warnings": list(result.warnings),
        "is_valid": result.is_valid,
    }


def _parse_date(value: Optional[str]) -> Optional[date]:
    if value is None or isinstance(value, date):
        return value
    return date.fromisoformat(value)


def _parse_datetime(value) -> datetime:
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value)


def _parse_time(value: Optional[str]) -> Optional[time]:
    if value is None or isinstance(value, time):
        return value
    return time.fromisoformat(value)


def parse_rate(value: Any, default_unit: RateUnit = RateUnit.PERCENT) -> Optional[Rate]:
    """A bare number is read in ``default_unit``; a mapping names its own unit."""
    if value is None:
        return None
    if isinstance(value, Rate):
        return value
    if isinstance(value, dict):
        return Rate.parse(value)
    return Rate(value=float(value), unit=default_unit)


def parse_conditions(payload: Optional[Dict[str, Any]]) -> RuleConditions:
    payload = payload or {}
    days = payload.get("days")
    employment_type = payload.get("employment_type")
    return RuleConditions(
        days=days_for(*days) if days is not None else None,
        time_from=_parse_time(payload.get("time_from")),
        time_to=_parse_time(payload.get("time_to")),
        classification=payload.get("classification"),
        employment_type=EmploymentType(employment_type) if employment_type else None,
        public_holiday_only=bool(payload.get("public_holiday_only", False)),
        effective_from=_parse_date(payload.get("effective_from")),
        effective_to=_parse_date(payload.get("effective_to")),
    )


def parse_rule(payload: Dict[str, Any]) -> AwardRule:
    try:
        kind = RuleKind(payload["kind"])
    except (KeyError, ValueError):
        raise PayrollValidationError(f"Unknown award rule kind {payload.get('kind')!r}", rule_id=payload.get("id")) from None

    common = {
        "id": payload["id"],
        "award_id": payload["award_id"],
        "name": payload.get("name", payload["id"]),
        "conditions": parse_conditions(payload.get("conditions")),
        "priority": int(payload.get("priority", 0)),
        "description": payload.get("description", ""),
    }
    if kind == RuleKind.PENALTY_RATE:
        return PenaltyRateRule(percentage=parse_rate(payload["percentage"]), **common)
    if kind == RuleKind.ALLOWANCE:
        return AllowanceRule(
            method=AllowanceMethod(payload.get("method", AllowanceMethod.FIXED.value)),
            amount=float(payload["amount"]),
            allowance_type=payload.get("allowance_type", "other"),
            tax_treatment=TaxTreatment(payload.get("tax_treatment", TaxTreatment.TAXABLE.value)),
            **common,
        )
    if kind == RuleKind.SHIFT_LOADING:
        return ShiftLoadingRule(
            method=LoadingMethod(payload.get("method", LoadingMethod.PERCENTAGE.value)),
            percentage=parse_rate(payload.get("percentage")),
            fixed_rate=float(payload.get("fixed_rate", 0.0)),
            shift_type=payload.get("shift_type", "afternoon"),
            **common,
        )
    return OvertimeRule(
        basis=OvertimeBasis(payload["basis"]),
        method=OvertimeMethod(payload.get("method", OvertimeMethod.MULTIPLIER.value)),
        multiplier=parse_rate(payload.get("multiplier", 150)),
        fixed_rate=float(payload.get("fixed_rate", 0.0)),
        **common,
    )


def parse_award(payload: Dict[str, Any]) -> Award:
    return Award(
        id=payload["id"],
        code=payload["code"],
        name=payload["name"],
        industry=payload.get("industry", ""),
        version=int(payload.get("version", 1)),
        effective_from=_parse_date(payload.get("effective_from")),
        effective_to=_parse_date(payload.get("effective_to")),
        is_active=bool(payload.get("is_active", True)),
    )


def parse_deduction(payload: Dict[str, Any]) -> Deduction:
    return Deduction(
        priority=int(payload.get("priority", 0)),
        name=payload["name"],
        amount=float(payload.get("amount", 0.0)),
        percentage=parse_rate(payload.get("percentage")),
        applies_pre_tax=bool(payload.get("applies_pre_tax", True)),
        limit=float(payload["limit"]) if payload.get("limit") is not None else None,
        id=payload.get("id"),
        category=payload.get("category", "Other"),
    )


def parse_adjustment(payload: Dict[str, Any]) -> SalaryAdjustment:
    return SalaryAdjustment(
        id=payload["id"],
        adjustment_type=AdjustmentType(payload.get("adjustment_type", AdjustmentType.OTHER.value)),
        reason=payload.get("reason", ""),
        amount=float(payload.get("amount", 0.0)),
        formula=payload.get("formula"),
        tax_treatment=TaxTreatment(payload.get("tax_treatment", TaxTreatment.TAXABLE.value)),
        is_ote=bool(payload.get("is_ote", True)),
    )


def parse_employee(payload: Dict[str, Any]) -> EmployeeProfile:
    return EmployeeProfile(
        employee_id=payload["employee_id"],
        employment_type=EmploymentType(payload["employment_type"]),
        pay_frequency=PayFrequency(payload["pay_frequency"]),
        base_salary=float(payload.get("base_salary", 0.0)),
        hourly_rate=float(payload.get("hourly_rate", 0.0)),
        residency=Residency(payload.get("residency", Residency.RESIDENT.value)),
        award_id=payload.get("award_id"),
        award_classification=payload.get("award_classification"),
        super_fund_id=payload.get("super_fund_id"),
        super_member_number=payload.get("super_member_number"),
        company_id=payload.get("company_id", ""),
        state=payload.get("state", "NSW"),
        industry_code=payload.get("industry_code"),
        has_help_debt=bool(payload.get("has_help_debt", False)),
        has_sfss_debt=bool(payload.get("has_sfss_debt", False)),
        has_private_health_insurance=bool(payload.get("has_private_health_insurance", False)),
        is_exempt_from_payroll_tax=bool(payload.get("is_exempt_from_payroll_tax", False)),
        job_classification=payload.get("job_classification"),
        deductions=tuple(parse_deduction(d) for d in payload.get("deductions", [])),
        adjustments=tuple(parse_adjustment(a) for a in payload.get("adjustments", [])),
        custom_inputs={k: float(v) for k, v in payload.get("custom_inputs", {}).items()},
    )


def parse_entry(payload: Dict[str, Any]) -> TimesheetEntry:
    return TimesheetEntry(
        id=payload["id"],
        employee_id=payload["employee_id"],
        start=_parse_datetime(payload["start"]),
        end=_parse_datetime(payload["end"]),
        hourly_rate=float(payload.get("hourly_rate", 0.0)),
        status=payload.get("status", "Approved"),
    )


def _optional_set(values: Optional[Iterable[Any]], convert=str):
    if values is None:
        return None
    return frozenset(convert(v) for v in values)


def parse_statutory_rate(payload: Dict[str, Any]) -> StatutoryRate:
    return StatutoryRate(
        id=payload["id"],
        contribution_type=ContributionType(payload["contribution_type"]),
        name=payload.get("name", payload["id"]),
        rate=parse_rate(payload["rate"], default_unit=RateUnit.FRACTION),
        effective_from=_parse_date(payload["effective_from"]),
        effective_to=_parse_date(payload.get("effective_to")),
        threshold=float(payload["threshold"]) if payload.get("threshold") is not None else None,
        maximum_base=float(payload["maximum_base"]) if payload.get("maximum_base") is not None else None,
        applicable_states=_optional_set(payload.get("states")),
        applicable_industries=_optional_set(payload.get("industries")),
        applicable_employment_types=_optional_set(payload.get("employment_types"), EmploymentType),
        bands=tuple(
            RepaymentBand(float(band["threshold"]), parse_rate(band["rate"])) for band in payload.get("bands", [])
        ),
        is_active=bool(payload.get("is_active", True)),
    )


def parse_period(payload: Dict[str, Any]) -> PayPeriod:
    return PayPeriod(
        start=_parse_date(payload["start"]),
        end=_parse_date(payload["end"]),
        frequency=PayFrequency(payload.get("frequency", PayFrequency.FORTNIGHTLY.value)),
        payment_date=_parse_date(payload.get("payment_date")),
    )
