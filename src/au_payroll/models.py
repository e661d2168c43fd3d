from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, time
from enum import Enum
from typing import ClassVar, Dict, FrozenSet, Optional, Tuple, Union

from .errors import PayrollErrorRecord, PayrollValidationError
from .rates import Rate


class PayFrequency(str, Enum):
    WEEKLY = "Weekly"
    FORTNIGHTLY = "Fortnightly"
    MONTHLY = "Monthly"
    QUARTERLY = "Quarterly"

    @property
    def periods_per_year(self) -> int:
        return _PERIODS_PER_YEAR[self]


_PERIODS_PER_YEAR = {
    PayFrequency.WEEKLY: 52,
    PayFrequency.FORTNIGHTLY: 26,
    PayFrequency.MONTHLY: 12,
    PayFrequency.QUARTERLY: 4,
}


class EmploymentType(str, Enum):
    FULL_TIME = "FullTime"
    PART_TIME = "PartTime"
    CASUAL = "Casual"
    CONTRACTOR = "Contractor"


class Residency(str, Enum):
    RESIDENT = "Resident"
    NON_RESIDENT = "NonResident"
    WORKING_HOLIDAY = "WorkingHoliday"


class RuleKind(str, Enum):
    PENALTY_RATE = "penalty_rate"
    ALLOWANCE = "allowance"
    SHIFT_LOADING = "shift_loading"
    OVERTIME = "overtime"


class AllowanceMethod(str, Enum):
    FIXED = "fixed"
    HOURLY = "hourly"
    DAILY = "daily"


class LoadingMethod(str, Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"


class OvertimeBasis(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"


class OvertimeMethod(str, Enum):
    MULTIPLIER = "percentage"
    FIXED = "fixed"


class TaxTreatment(str, Enum):
    TAXABLE = "Taxable"
    NON_TAXABLE = "NonTaxable"


class ComponentType(str, Enum):
    BASE_SALARY = "BaseSalary"
    ORDINARY_HOURS = "OrdinaryHours"
    PENALTY = "Penalty"
    ALLOWANCE = "Allowance"
    SHIFT_LOADING = "ShiftLoading"
    OVERTIME = "Overtime"
    BONUS = "Bonus"
    COMMISSION = "Commission"
    BACK_PAY = "BackPay"
    ADJUSTMENT = "Adjustment"
    DEDUCTION = "Deduction"


class AdjustmentType(str, Enum):
    BONUS = "Bonus"
    COMMISSION = "Commission"
    BACK_PAY = "BackPay"
    ALLOWANCE = "Allowance"
    OTHER = "Other"


class PenaltyBasePolicy(str, Enum):
    """How penalty-rate lines relate to the base pay for the same hours.

    ADDITIVE keeps the penalty line at the full multiplier (150% of base for
    150%) alongside base pay for those hours. INCREMENT_ONLY reduces each
    penalty line to the part above 100%, so base plus penalty equals the
    multiplier.
    """

    ADDITIVE = "additive"
    INCREMENT_ONLY = "increment_only"


class ContributionType(str, Enum):
    PAYG_WITHHOLDING = "payg-withholding"
    SUPERANNUATION_GUARANTEE = "superannuation-guarantee"
    PAYROLL_TAX = "payroll-tax"
    WORKERS_COMPENSATION = "workers-compensation"
    HELP_DEBT = "help-debt"
    SFSS_DEBT = "sfss-debt"
    MEDICARE_LEVY = "medicare-levy"
    MEDICARE_LEVY_SURCHARGE = "medicare-levy-surcharge"


DAY_TYPES: Dict[str, FrozenSet[int]] = {
    "weekday": frozenset({0, 1, 2, 3, 4}),
    "weekend": frozenset({5, 6}),
    "monday": frozenset({0}),
    "tuesday": frozenset({1}),
    "wednesday": frozenset({2}),
    "thursday": frozenset({3}),
    "friday": frozenset({4}),
    "saturday": frozenset({5}),
    "sunday": frozenset({6}),
}


def days_for(*day_types: str) -> FrozenSet[int]:
    """Weekday numbers (Monday=0) for names like "weekday" or "saturday"."""
    days: FrozenSet[int] = frozenset()
    for day_type in day_types:
        try:
            days = days | DAY_TYPES[day_type.lower()]
        except KeyError:
            raise PayrollValidationError(f"Unknown day type {day_type!r}") from None
    return days


@dataclass(frozen=True)
class Award:
    id: str
    code: str
    name: str
    industry: str = ""
    version: int = 1
    effective_from: Optional[date] = None
    effective_to: Optional[date] = None
    is_active: bool = True


@dataclass(frozen=True)
class RuleConditions:
    days: Optional[FrozenSet[int]] = None
    time_from: Optional[time] = None
    time_to: Optional[time] = None
    classification: Optional[str] = None
    employment_type: Optional[EmploymentType] = None
    public_holiday_only: bool = False
    effective_from: Optional[date] = None
    effective_to: Optional[date] = None

    def __post_init__(self) -> None:
        if self.effective_from and self.effective_to and self.effective_from > self.effective_to:
            raise PayrollValidationError(
                f"Rule effective window starts after it ends ({self.effective_from} > {self.effective_to})"
            )

    @property
    def has_time_window(self) -> bool:
        return self.time_from is not None or self.time_to is not None


@dataclass(frozen=True)
class PenaltyRateRule:
    kind: ClassVar[RuleKind] = RuleKind.PENALTY_RATE

    id: str
    award_id: str
    name: str
    percentage: Rate
    conditions: RuleConditions = field(default_factory=RuleConditions)
    priority: int = 0
    description: str = ""


@dataclass(frozen=True)
class AllowanceRule:
    kind: ClassVar[RuleKind] = RuleKind.ALLOWANCE

    id: str
    award_id: str
    name: str
    method: AllowanceMethod
    amount: float  # flat amount for fixed/daily, hourly rate for hourly
    allowance_type: str = "other"
    tax_treatment: TaxTreatment = TaxTreatment.TAXABLE
    conditions: RuleConditions = field(default_factory=RuleConditions)
    priority: int = 0
    description: str = ""


@dataclass(frozen=True)
class ShiftLoadingRule:
    kind: ClassVar[RuleKind] = RuleKind.SHIFT_LOADING

    id: str
    award_id: str
    name: str
    method: LoadingMethod
    percentage: Optional[Rate] = None
    fixed_rate: float = 0.0
    shift_type: str = "afternoon"
    conditions: RuleConditions = field(default_factory=RuleConditions)
    priority: int = 0
    description: str = ""


@dataclass(frozen=True)
class OvertimeRule:
    kind: ClassVar[RuleKind] = RuleKind.OVERTIME

    id: str
    award_id: str
    name: str
    basis: OvertimeBasis
    method: OvertimeMethod = OvertimeMethod.MULTIPLIER
    multiplier: Rate = field(default_factory=lambda: Rate.percent(150))
    fixed_rate: float = 0.0
    conditions: RuleConditions = field(default_factory=RuleConditions)
    priority: int = 0
    description: str = ""


AwardRule = Union[PenaltyRateRule, AllowanceRule, ShiftLoadingRule, OvertimeRule]


@dataclass(frozen=True)
class TimesheetEntry:
    id: str
    employee_id: str
    start: datetime
    end: datetime
    hourly_rate: float = 0.0
    status: str = "Approved"

    def __post_init__(self) -> None:
        if self.end <= self.start:
            raise PayrollValidationError(
                f"Timesheet entry {self.id} ends before it starts", entry_id=self.id
            )
        if self.hourly_rate < 0:
            raise PayrollValidationError(f"Timesheet entry {self.id} has a negative hourly rate", entry_id=self.id)

    @property
    def minutes(self) -> int:
        return int((self.end - self.start).total_seconds() // 60)

    @property
    def hours(self) -> float:
        return self.minutes / 60

    @property
    def work_date(self) -> date:
        return self.start.date()


@dataclass(frozen=True)
class PenaltyRate:
    id: str
    rule_id: str
    timesheet_entry_id: str
    description: str
    percentage: Rate
    applicable_hours: float
    penalty_rate: float
    amount: float
    calculation_method: str = "percentage"


@dataclass(frozen=True)
class Allowance:
    id: str
    rule_id: str
    timesheet_entry_id: str
    description: str
    allowance_type: str
    amount: float
    applicable_hours: float
    calculation_method: AllowanceMethod
    tax_treatment: TaxTreatment = TaxTreatment.TAXABLE


@dataclass(frozen=True)
class ShiftLoading:
    id: str
    rule_id: str
    timesheet_entry_id: str
    description: str
    shift_type: str
    loading_percentage: Optional[Rate]
    applicable_hours: float
    loading_rate: float
    amount: float
    calculation_method: LoadingMethod


@dataclass(frozen=True)
class OvertimeEntry:
    id: str
    rule_id: str
    basis: OvertimeBasis
    key: str  # ISO date for daily overtime, ISO week ("2024-W23") for weekly
    hours: float
    rate: float
    amount: float
    calculation_method: OvertimeMethod


@dataclass(frozen=True)
class AwardInterpretationResult:
    employee_id: str
    award_id: str
    classification: Optional[str]
    employment_type: Optional[EmploymentType]
    penalty_rates: Tuple[PenaltyRate, ...]
    allowances: Tuple[Allowance, ...]
    shift_loadings: Tuple[ShiftLoading, ...]
    overtime: Tuple[OvertimeEntry, ...]
    total_penalty_amount: float
    total_allowance_amount: float
    total_shift_loading_amount: float
    total_overtime_amount: float
    interpretation_date: date
    compliance_notes: Tuple[str, ...] = ()

    @property
    def total_award_amount(self) -> float:
        return round(
            self.total_penalty_amount
            + self.total_allowance_amount
            + self.total_shift_loading_amount
            + self.total_overtime_amount,
            2,
        )


@dataclass(frozen=True, order=True)
class Deduction:
    priority: int
    name: str
    amount: float = field(default=0.0, compare=False)
    percentage: Optional[Rate] = field(default=None, compare=False)
    applies_pre_tax: bool = field(default=True, compare=False)
    limit: Optional[float] = field(default=None, compare=False)
    id: Optional[str] = field(default=None, compare=False)
    category: str = field(default="Other", compare=False)

    def compute_value(self, basis: float) -> float:
        if self.percentage is not None:
            raw = self.percentage.apply(basis)
        else:
            raw = self.amount
        value = min(raw, self.limit) if self.limit is not None else raw
        return round(max(value, 0.0), 2)


@dataclass(frozen=True)
class SalaryAdjustment:
    id: str
    adjustment_type: AdjustmentType
    reason: str
    amount: float = 0.0
    formula: Optional[str] = None
    tax_treatment: TaxTreatment = TaxTreatment.TAXABLE
    is_ote: bool = True


@dataclass(frozen=True)
class EmployeeProfile:
    employee_id: str
    employment_type: EmploymentType
    pay_frequency: PayFrequency
    base_salary: float = 0.0
    hourly_rate: float = 0.0
    residency: Residency = Residency.RESIDENT
    award_id: Optional[str] = None
    award_classification: Optional[str] = None
    super_fund_id: Optional[str] = None
    super_member_number: Optional[str] = None
    company_id: str = ""
    state: str = "NSW"
    industry_code: Optional[str] = None
    has_help_debt: bool = False
    has_sfss_debt: bool = False
    has_private_health_insurance: bool = False
    is_exempt_from_payroll_tax: bool = False
    job_classification: Optional[str] = None
    deductions: Tuple[Deduction, ...] = ()
    adjustments: Tuple[SalaryAdjustment, ...] = ()
    custom_inputs: Dict[str, float] = field(default_factory=dict, compare=False)

    def __post_init__(self) -> None:
        if self.base_salary < 0:
            raise PayrollValidationError(
                f"Employee {self.employee_id} has a negative base salary", employee_id=self.employee_id
            )
        if self.hourly_rate < 0:
            raise PayrollValidationError(
                f"Employee {self.employee_id} has a negative hourly rate", employee_id=self.employee_id
            )

    @property
    def is_salaried(self) -> bool:
        return self.employment_type in (EmploymentType.FULL_TIME, EmploymentType.PART_TIME) and self.base_salary > 0

    @property
    def requires_super(self) -> bool:
        return self.employment_type != EmploymentType.CONTRACTOR

    def effective_hourly_rate(self) -> float:
        if self.hourly_rate > 0:
            return self.hourly_rate
        # 38 ordinary hours a week
        return self.base_salary / 52 / 38


@dataclass(frozen=True)
class PayPeriod:
    start: date
    end: date
    frequency: PayFrequency
    payment_date: Optional[date] = None

    def __post_init__(self) -> None:
        if self.end < self.start:
            raise PayrollValidationError(f"Pay period ends before it starts ({self.start} > {self.end})")

    @property
    def paid_on(self) -> date:
        return self.payment_date or self.end


@dataclass(frozen=True)
class PayComponent:
    component_type: ComponentType
    description: str
    units: float
    rate: float
    amount: float
    tax_treatment: TaxTreatment = TaxTreatment.TAXABLE
    stp_category: str = "SAW"
    is_ote: bool = True
    source_id: Optional[str] = None

    def __post_init__(self) -> None:
        if self.amount < 0:
            raise PayrollValidationError(
                f"Pay component {self.description!r} has a negative amount {self.amount}"
            )

    @property
    def is_deduction(self) -> bool:
        return self.component_type == ComponentType.DEDUCTION


@dataclass(frozen=True)
class RepaymentBand:
    threshold: float  # applies when annual income exceeds this
    rate: Rate


@dataclass(frozen=True)
class StatutoryRate:
    id: str
    contribution_type: ContributionType
    name: str
    rate: Rate
    effective_from: date
    effective_to: Optional[date] = None
    threshold: Optional[float] = None
    maximum_base: Optional[float] = None
    applicable_states: Optional[FrozenSet[str]] = None
    applicable_industries: Optional[FrozenSet[str]] = None
    applicable_employment_types: Optional[FrozenSet[EmploymentType]] = None
    bands: Tuple[RepaymentBand, ...] = ()
    is_active: bool = True

    def in_force(self, on: date) -> bool:
        if not self.is_active or on < self.effective_from:
            return False
        return self.effective_to is None or on <= self.effective_to

    def applies_to(
        self,
        state: Optional[str] = None,
        industry: Optional[str] = None,
        employment_type: Optional[EmploymentType] = None,
    ) -> bool:
        if self.applicable_states is not None and state not in self.applicable_states:
            return False
        if self.applicable_industries is not None and industry not in self.applicable_industries:
            return False
        if self.applicable_employment_types is not None and employment_type not in self.applicable_employment_types:
            return False
        return True


@dataclass(frozen=True)
class StatutoryContribution:
    contribution_type: ContributionType
    name: str
    employer_amount: float
    employee_amount: float
    calculation_base: float
    rate_applied: Optional[Rate]
    period_start: date
    period_end: date
    payment_due_date: date
    stp_category: str
    details: Dict[str, float] = field(default_factory=dict, compare=False)

    @property
    def amount(self) -> float:
        return round(self.employer_amount + self.employee_amount, 2)


@dataclass(frozen=True)
class SuperContribution:
    employee_id: str
    fund_id: str
    amount: float
    period_start: date
    period_end: date
    payment_date: date
    calculation_base: float
    rate: Rate
    capped: bool = False
    contribution_type: str = "SuperGuarantee"


@dataclass(frozen=True)
class PayrollTotals:
    gross_pay: float = 0.0
    taxable_income: float = 0.0
    pre_tax_deductions: float = 0.0
    total_deductions: float = 0.0
    tax_withheld: float = 0.0
    net_pay: float = 0.0
    super_contributions: float = 0.0


@dataclass(frozen=True)
class PayrollCalculationResult:
    employee_id: str
    period_start: date
    period_end: date
    earnings: Tuple[PayComponent, ...] = ()
    deductions: Tuple[PayComponent, ...] = ()
    super_contributions: Tuple[SuperContribution, ...] = ()
    statutory_contributions: Tuple[StatutoryContribution, ...] = ()
    totals: PayrollTotals = field(default_factory=PayrollTotals)
    validation_errors: Tuple[str, ...] = ()
    warnings: Tuple[str, ...] = ()
    award_interpretation: Optional[AwardInterpretationResult] = None
    failure: Optional[PayrollErrorRecord] = None

    @property
    def is_valid(self) -> bool:
        return not self.validation_errors
