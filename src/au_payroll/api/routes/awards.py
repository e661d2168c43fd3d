from datetime import date

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from au_payroll.api.deps import get_store
from au_payroll.api.schemas import PeriodIn, TimesheetEntryIn
from au_payroll.core.config import settings
from au_payroll.errors import DataError, PayrollValidationError
from au_payroll.interpretation import AwardInterpreter
from au_payroll.models import EmploymentType
from au_payroll.providers import JsonDataStore
from au_payroll.runs import PayrollRunProcessor
from au_payroll.serialization import parse_entry, parse_period, to_jsonable

router = APIRouter(prefix="/awards", tags=["awards"])


class AwardOut(BaseModel):
    id: str
    code: str
    name: str
    industry: str
    version: int
    effective_from: date | None = None
    effective_to: date | None = None
    is_active: bool
    rule_count: int


class InterpretRequest(BaseModel):
    employee_id: str
    classification: str | None = None
    employment_type: EmploymentType | None = None
    period: PeriodIn
    timesheet_entries: list[TimesheetEntryIn] = []


@router.get("", response_model=list[AwardOut])
def list_awards(store: JsonDataStore = Depends(get_store)) -> list[AwardOut]:
    awards, rules = store.load_awards_and_rules()
    return [
        AwardOut(
            id=award.id,
            code=award.code,
            name=award.name,
            industry=award.industry,
            version=award.version,
            effective_from=award.effective_from,
            effective_to=award.effective_to,
            is_active=award.is_active,
            rule_count=sum(1 for rule in rules if rule.award_id == award.id),
        )
        for award in sorted(awards, key=lambda a: a.code)
    ]


@router.post("/{award_id}/interpret")
def interpret(award_id: str, payload: InterpretRequest, store: JsonDataStore = Depends(get_store)) -> dict:
    try:
        period = parse_period(payload.period.model_dump())
        entries = [parse_entry(e.model_dump()) for e in payload.timesheet_entries]
    except PayrollValidationError as exc:
        raise HTTPException(status_code=422, detail=exc.message) from exc

    ruleset = PayrollRunProcessor(store).load_snapshot(period)
    interpreter = AwardInterpreter(
        ruleset,
        daily_overtime_threshold=settings.daily_overtime_threshold,
        weekly_overtime_threshold=settings.weekly_overtime_threshold,
        penalty_base_policy=settings.penalty_base_policy,
        max_daily_hours=settings.max_daily_hours,
        meal_break_after_hours=settings.meal_break_after_hours,
    )
    try:
        result = interpreter.interpret(
            payload.employee_id,
            award_id,
            payload.classification,
            entries,
            as_of=period.end,
            employment_type=payload.employment_type,
        )
    except DataError as exc:
        raise HTTPException(status_code=404, detail=exc.message) from exc
    return to_jsonable(result)
