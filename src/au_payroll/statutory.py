from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import List, Optional, Sequence

from .errors import MissingStatutoryRateError, MissingSuperFundError
from .models import (
    ContributionType,
    EmployeeProfile,
    PayFrequency,
    PayPeriod,
    RepaymentBand,
    StatutoryContribution,
    StatutoryRate,
    SuperContribution,
)
from .rates import Rate
from .ruleset import RuleSet

DEFAULT_MEDICARE_THRESHOLD = 23226.0
DEFAULT_MEDICARE_RATE = Rate.percent(2)
DEFAULT_SURCHARGE_THRESHOLD = 90000.0
DEFAULT_SURCHARGE_RATE = Rate.percent(1)

# 2023-24 repayment schedules, used when no rate record supplies bands
DEFAULT_HELP_BANDS = tuple(
    RepaymentBand(threshold, Rate.percent(percent))
    for threshold, percent in (
        (51550, 1),
        (59421, 2),
        (64420, 2.5),
        (70455, 3),
        (76050, 3.5),
        (82434, 4),
        (88547, 4.5),
        (96377, 5),
        (105438, 5.5),
        (114694, 6),
        (123966, 6.5),
        (133264, 7),
        (142583, 7.5),
        (151947, 8),
        (161311, 8.5),
        (170677, 9),
        (180044, 9.5),
        (189414, 10),
    )
)
DEFAULT_SFSS_BANDS = tuple(
    RepaymentBand(threshold, Rate.percent(percent))
    for threshold, percent in ((51550, 2), (64420, 3), (70455, 4), (82434, 5))
)

STP_CATEGORIES = {
    ContributionType.PAYG_WITHHOLDING: "PAYG",
    ContributionType.SUPERANNUATION_GUARANTEE: "Superannuation",
    ContributionType.PAYROLL_TAX: "PayrollTax",
    ContributionType.WORKERS_COMPENSATION: "WorkersCompensation",
    ContributionType.HELP_DEBT: "HELP",
    ContributionType.SFSS_DEBT: "SFSS",
    ContributionType.MEDICARE_LEVY: "Medicare",
    ContributionType.MEDICARE_LEVY_SURCHARGE: "MedicareSurcharge",
}

_DUE_DAY_NEXT_MONTH = {
    ContributionType.PAYG_WITHHOLDING: 21,
    ContributionType.SUPERANNUATION_GUARANTEE: 28,
    ContributionType.PAYROLL_TAX: 7,
}


def _next_month(day: date, day_of_month: int) -> date:
    year, month = (day.year + 1, 1) if day.month == 12 else (day.year, day.month + 1)
    return date(year, month, day_of_month)


def payment_due_date(contribution_type: ContributionType, period_end: date) -> date:
    if contribution_type == ContributionType.WORKERS_COMPENSATION:
        # annual premium
        try:
            return period_end.replace(year=period_end.year + 1)
        except ValueError:
            return period_end.replace(year=period_end.year + 1, day=28)
    return _next_month(period_end, _DUE_DAY_NEXT_MONTH.get(contribution_type, 21))


def period_contribution_cap(quarterly_maximum_base: float, frequency: PayFrequency) -> float:
    """Apportion the quarterly maximum contribution base to one pay period."""
    return quarterly_maximum_base * 4 / frequency.periods_per_year


def band_rate(bands: Sequence[RepaymentBand], annual_income: float) -> Optional[Rate]:
    """Rate of the highest band whose threshold the annual income exceeds."""
    selected = None
    for band in sorted(bands, key=lambda b: b.threshold):
        if annual_income > band.threshold:
            selected = band.rate
    return selected


def _contribution(
    contribution_type: ContributionType,
    name: str,
    period: PayPeriod,
    base: float,
    rate: Optional[Rate],
    employer_amount: float = 0.0,
    employee_amount: float = 0.0,
    **details: float,
) -> StatutoryContribution:
    return StatutoryContribution(
        contribution_type=contribution_type,
        name=name,
        employer_amount=round(employer_amount, 2),
        employee_amount=round(employee_amount, 2),
        calculation_base=round(base, 2),
        rate_applied=rate,
        period_start=period.start,
        period_end=period.end,
        payment_due_date=payment_due_date(contribution_type, period.end),
        stp_category=STP_CATEGORIES[contribution_type],
        details=details,
    )


def calculate_super_guarantee(
    profile: EmployeeProfile,
    calculation_base: float,
    period: PayPeriod,
    rate_record: Optional[StatutoryRate],
) -> Optional[SuperContribution]:
    if not profile.requires_super:
        return None
    if rate_record is None:
        raise MissingStatutoryRateError(ContributionType.SUPERANNUATION_GUARANTEE.value)
    if not profile.super_fund_id:
        raise MissingSuperFundError(profile.employee_id)

    base = max(calculation_base, 0.0)
    capped = False
    if rate_record.maximum_base is not None:
        cap = period_contribution_cap(rate_record.maximum_base, profile.pay_frequency)
        if base > cap:
            base, capped = cap, True
    return SuperContribution(
        employee_id=profile.employee_id,
        fund_id=profile.super_fund_id,
        amount=round(rate_record.rate.apply(base), 2),
        period_start=period.start,
        period_end=period.end,
        payment_date=payment_due_date(ContributionType.SUPERANNUATION_GUARANTEE, period.end),
        calculation_base=round(base, 2),
        rate=rate_record.rate,
        capped=capped,
    )


def calculate_payroll_tax(
    taxable_wages: float,
    employer_monthly_wages: float,
    period: PayPeriod,
    rate_record: Optional[StatutoryRate],
    exempt: bool = False,
) -> Optional[StatutoryContribution]:
    if exempt or rate_record is None:
        return None
    if rate_record.threshold is not None and employer_monthly_wages <= rate_record.threshold:
        return None
    return _contribution(
        ContributionType.PAYROLL_TAX,
        rate_record.name,
        period,
        taxable_wages,
        rate_record.rate,
        employer_amount=rate_record.rate.apply(taxable_wages),
        employer_monthly_wages=employer_monthly_wages,
    )


def calculate_workers_compensation(
    gross: float,
    period: PayPeriod,
    rate_record: Optional[StatutoryRate],
) -> Optional[StatutoryContribution]:
    if rate_record is None or gross <= 0:
        return None
    return _contribution(
        ContributionType.WORKERS_COMPENSATION,
        rate_record.name,
        period,
        gross,
        rate_record.rate,
        employer_amount=rate_record.rate.apply(gross),
    )


def calculate_medicare_levy(
    taxable_income: float,
    frequency: PayFrequency,
    period: PayPeriod,
    rate_record: Optional[StatutoryRate] = None,
) -> Optional[StatutoryContribution]:
    threshold = DEFAULT_MEDICARE_THRESHOLD
    rate = DEFAULT_MEDICARE_RATE
    name = "Medicare levy"
    if rate_record is not None:
        threshold = rate_record.threshold if rate_record.threshold is not None else threshold
        rate, name = rate_record.rate, rate_record.name

    annual_income = taxable_income * frequency.periods_per_year
    if annual_income <= threshold:
        return None
    return _contribution(
        ContributionType.MEDICARE_LEVY,
        name,
        period,
        taxable_income,
        rate,
        employee_amount=rate.apply(taxable_income),
        annual_income=round(annual_income, 2),
    )


def calculate_medicare_levy_surcharge(
    taxable_income: float,
    frequency: PayFrequency,
    period: PayPeriod,
    has_private_cover: bool,
    rate_record: Optional[StatutoryRate] = None,
) -> Optional[StatutoryContribution]:
    if has_private_cover:
        return None
    threshold = DEFAULT_SURCHARGE_THRESHOLD
    rate = DEFAULT_SURCHARGE_RATE
    name = "Medicare levy surcharge"
    if rate_record is not None:
        threshold = rate_record.threshold if rate_record.threshold is not None else threshold
        rate, name = rate_record.rate, rate_record.name

    annual_income = taxable_income * frequency.periods_per_year
    if annual_income <= threshold:
        return None
    return _contribution(
        ContributionType.MEDICARE_LEVY_SURCHARGE,
        name,
        period,
        taxable_income,
        rate,
        employee_amount=rate.apply(taxable_income),
        annual_income=round(annual_income, 2),
    )


def calculate_debt_repayment(
    contribution_type: ContributionType,
    taxable_income: float,
    frequency: PayFrequency,
    period: PayPeriod,
    rate_record: Optional[StatutoryRate] = None,
) -> Optional[StatutoryContribution]:
    """HELP or SFSS repayment: one band rate chosen on annual income, applied to the period."""
    if contribution_type == ContributionType.HELP_DEBT:
        bands, name = DEFAULT_HELP_BANDS, "HELP debt repayment"
    else:
        bands, name = DEFAULT_SFSS_BANDS, "SFSS debt repayment"
    if rate_record is not None and rate_record.bands:
        bands, name = rate_record.bands, rate_record.name

    annual_income = taxable_income * frequency.periods_per_year
    rate = band_rate(bands, annual_income)
    if rate is None:
        return None
    return _contribution(
        contribution_type,
        name,
        period,
        taxable_income,
        rate,
        employee_amount=rate.apply(taxable_income),
        annual_income=round(annual_income, 2),
    )


def super_guarantee_record(contribution: SuperContribution, period: PayPeriod) -> StatutoryContribution:
    return _contribution(
        ContributionType.SUPERANNUATION_GUARANTEE,
        "Superannuation guarantee",
        period,
        contribution.calculation_base,
        contribution.rate,
        employer_amount=contribution.amount,
    )


def payg_withholding(tax_withheld: float, taxable_income: float, period: PayPeriod) -> StatutoryContribution:
    return _contribution(
        ContributionType.PAYG_WITHHOLDING,
        "PAYG withholding",
        period,
        taxable_income,
        None,
        employee_amount=tax_withheld,
    )


@dataclass
class StatutoryOutcome:
    super_contribution: Optional[SuperContribution] = None
    contributions: List[StatutoryContribution] = field(default_factory=list)

    @property
    def employee_levies(self) -> float:
        return round(sum(c.employee_amount for c in self.contributions), 2)


class StatutoryCalculator:
    """Selects the statutory rates in force for an employee and applies them.

    Every method is a pure function of the employee, the pay figures, the
    period and the rate records held by the snapshot.
    """

    def __init__(self, ruleset: RuleSet):
        self.ruleset = ruleset

    def _rate(self, contribution_type: ContributionType, profile: EmployeeProfile, period: PayPeriod):
        return self.ruleset.statutory_rate(
            contribution_type,
            period.end,
            state=profile.state,
            industry=profile.industry_code,
            employment_type=profile.employment_type,
        )

    def employee_levies(
        self, profile: EmployeeProfile, period: PayPeriod, taxable_income: float
    ) -> List[StatutoryContribution]:
        frequency = profile.pay_frequency
        levies = [
            calculate_medicare_levy(
                taxable_income, frequency, period, self._rate(ContributionType.MEDICARE_LEVY, profile, period)
            ),
            calculate_medicare_levy_surcharge(
                taxable_income,
                frequency,
                period,
                profile.has_private_health_insurance,
                self._rate(ContributionType.MEDICARE_LEVY_SURCHARGE, profile, period),
            ),
        ]
        if profile.has_help_debt:
            levies.append(
                calculate_debt_repayment(
                    ContributionType.HELP_DEBT,
                    taxable_income,
                    frequency,
                    period,
                    self._rate(ContributionType.HELP_DEBT, profile, period),
                )
            )
        if profile.has_sfss_debt:
            levies.append(
                calculate_debt_repayment(
                    ContributionType.SFSS_DEBT,
                    taxable_income,
                    frequency,
                    period,
                    self._rate(ContributionType.SFSS_DEBT, profile, period),
                )
            )
        return [levy for levy in levies if levy is not None and levy.amount > 0]

    def superannuation(
        self, profile: EmployeeProfile, period: PayPeriod, calculation_base: float
    ) -> Optional[SuperContribution]:
        if not profile.requires_super:
            return None
        rate_record = self._rate(ContributionType.SUPERANNUATION_GUARANTEE, profile, period)
        return calculate_super_guarantee(profile, calculation_base, period, rate_record)

    def employer_contributions(
        self,
        profile: EmployeeProfile,
        period: PayPeriod,
        gross: float,
        employer_monthly_wages: float = 0.0,
    ) -> List[StatutoryContribution]:
        contributions = [
            calculate_payroll_tax(
                gross,
                employer_monthly_wages,
                period,
                self._rate(ContributionType.PAYROLL_TAX, profile, period),
                exempt=profile.is_exempt_from_payroll_tax,
            ),
            calculate_workers_compensation(
                gross, period, self._rate(ContributionType.WORKERS_COMPENSATION, profile, period)
            ),
        ]
        return [c for c in contributions if c is not None and c.amount > 0]

    def minimum_super_rate(self, profile: EmployeeProfile, period: PayPeriod) -> Optional[Rate]:
        rate_record = self._rate(ContributionType.SUPERANNUATION_GUARANTEE, profile, period)
        return rate_record.rate if rate_record is not None else None
