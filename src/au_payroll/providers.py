from __future__ import annotations

import json
from datetime import date
from pathlib import Path
from typing import TYPE_CHECKING, Dict, List, Optional, Protocol, Tuple

from .core.logging import get_logger
from .errors import EmployeeNotFoundError
from .models import Award, AwardRule, EmployeeProfile, PayFrequency, Residency, StatutoryRate, TimesheetEntry
from .serialization import parse_award, parse_employee, parse_entry, parse_rule, parse_statutory_rate
from .tax_tables import TaxTable, TaxTableRepository

if TYPE_CHECKING:
    from .runs import PayrollRunOutcome

logger = get_logger(__name__)

DEFAULT_STATUTORY_RATES = Path(__file__).resolve().parent / "data" / "statutory_rates.json"


class PayrollDataProvider(Protocol):
    def load_awards_and_rules(self) -> Tuple[List[Award], List[AwardRule]]: ...

    def load_tax_table(self, financial_year: str, pay_frequency: PayFrequency, residency: Residency) -> TaxTable: ...

    def load_statutory_rates(self, effective_date: date, state: str, company_id: str) -> List[StatutoryRate]: ...

    def load_employee_profile(self, employee_id: str) -> EmployeeProfile: ...

    def load_timesheet_entries(self, employee_id: str, period_start: date, period_end: date) -> List[TimesheetEntry]: ...

    def load_public_holidays(self, period_start: date, period_end: date) -> List[date]: ...

    def employer_monthly_wages(self, company_id: str, state: str, as_of: date) -> float: ...

    def list_employee_ids(self) -> List[str]: ...


class ResultSink(Protocol):
    def save_run(self, outcome: "PayrollRunOutcome") -> None: ...


class JsonDataStore:
    """File-backed provider: one JSON document holding awards, rules, employees and timesheets.

    Tax tables come from a :class:`TaxTableRepository` and statutory rates from
    a separate JSON file, both defaulting to the copies bundled with the package.
    """

    def __init__(
        self,
        path: Path,
        tax_tables: Optional[TaxTableRepository] = None,
        statutory_rates_path: Path = DEFAULT_STATUTORY_RATES,
    ) -> None:
        self.path = Path(path)
        self.tax_tables = tax_tables or TaxTableRepository()
        self.statutory_rates_path = Path(statutory_rates_path)
        self.awards: Dict[str, Award] = {}
        self.rules: List[AwardRule] = []
        self.employees: Dict[str, EmployeeProfile] = {}
        self.entries: List[TimesheetEntry] = []
        self.public_holidays: List[date] = []
        self.employer_wages: Dict[Tuple[str, str], float] = {}
        self.statutory_rates: List[StatutoryRate] = []
        if self.path.exists():
            self.load()
        if self.statutory_rates_path.exists():
            self.load_statutory_rate_file(self.statutory_rates_path)

    def load(self) -> None:
        content = json.loads(self.path.read_text(encoding="utf-8"))
        self.awards = {a["id"]: parse_award(a) for a in content.get("awards", [])}
        self.rules = [parse_rule(r) for r in content.get("award_rules", [])]
        self.employees = {e["employee_id"]: parse_employee(e) for e in content.get("employees", [])}
        self.entries = [parse_entry(t) for t in content.get("timesheet_entries", [])]
        self.public_holidays = [date.fromisoformat(d) for d in content.get("public_holidays", [])]
        self.employer_wages = {
            (w["company_id"], w.get("state", "")): float(w["monthly_wages"]) for w in content.get("employer_wages", [])
        }
        self.statutory_rates.extend(parse_statutory_rate(r) for r in content.get("statutory_rates", []))
        logger.info(
            "store_loaded",
            path=str(self.path),
            awards=len(self.awards),
            rules=len(self.rules),
            employees=len(self.employees),
            timesheet_entries=len(self.entries),
        )

    def load_statutory_rate_file(self, path: Path) -> None:
        content = json.loads(Path(path).read_text(encoding="utf-8"))
        self.statutory_rates.extend(parse_statutory_rate(r) for r in content.get("statutory_rates", []))

    def add_employee(self, profile: EmployeeProfile) -> None:
        self.employees[profile.employee_id] = profile

    def add_timesheet_entry(self, entry: TimesheetEntry) -> None:
        self.entries.append(entry)

    def load_awards_and_rules(self) -> Tuple[List[Award], List[AwardRule]]:
        return list(self.awards.values()), list(self.rules)

    def load_tax_table(self, financial_year: str, pay_frequency: PayFrequency, residency: Residency) -> TaxTable:
        return self.tax_tables.load(financial_year, pay_frequency, residency)

    def load_statutory_rates(self, effective_date: date, state: str, company_id: str = "") -> List[StatutoryRate]:
        # company_id is part of the provider contract; this store keeps no company-specific rates
        return [
            rate
            for rate in self.statutory_rates
            if rate.in_force(effective_date) and (rate.applicable_states is None or state in rate.applicable_states)
        ]

    def load_employee_profile(self, employee_id: str) -> EmployeeProfile:
        try:
            return self.employees[employee_id]
        except KeyError:
            raise EmployeeNotFoundError(employee_id) from None

    def load_timesheet_entries(self, employee_id: str, period_start: date, period_end: date) -> List[TimesheetEntry]:
        entries = [
            e
            for e in self.entries
            if e.employee_id == employee_id and e.status == "Approved" and period_start <= e.work_date <= period_end
        ]
        return sorted(entries, key=lambda e: (e.start, e.id))

    def load_public_holidays(self, period_start: date, period_end: date) -> List[date]:
        return [d for d in self.public_holidays if period_start <= d <= period_end]

    def employer_monthly_wages(self, company_id: str, state: str, as_of: date) -> float:
        return self.employer_wages.get((company_id, state), 0.0)

    def list_employee_ids(self) -> List[str]:
        return sorted(self.employees)
