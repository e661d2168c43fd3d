from datetime import date, datetime
from typing import Literal

from pydantic import BaseModel, Field


class TimesheetEntryIn(BaseModel):
    id: str
    employee_id: str
    start: datetime
    end: datetime
    hourly_rate: float = Field(default=0, ge=0)
    status: str = "Approved"


class PeriodIn(BaseModel):
    start: date
    end: date
    frequency: Literal["Weekly", "Fortnightly", "Monthly", "Quarterly"] = "Fortnightly"
    payment_date: date | None = None
