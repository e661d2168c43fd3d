from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, List, Optional, Sequence

from .core.logging import get_logger
from .errors import PayrollErrorRecord
from .formula import evaluate, formula_variables
from .interpretation import AwardInterpreter, compliance_breaches
from .models import (
    AdjustmentType,
    AwardInterpretationResult,
    ComponentType,
    Deduction,
    EmployeeProfile,
    EmploymentType,
    PayComponent,
    PayPeriod,
    PayrollCalculationResult,
    PayrollTotals,
    PenaltyBasePolicy,
    SalaryAdjustment,
    StatutoryContribution,
    SuperContribution,
    TaxTreatment,
    TimesheetEntry,
)
from .rates import Rate
from .ruleset import RuleSet
from .statutory import StatutoryCalculator, payg_withholding, super_guarantee_record
from .tax_tables import financial_year, withhold

logger = get_logger(__name__)

ADJUSTMENT_COMPONENTS = {
    AdjustmentType.BONUS: (ComponentType.BONUS, "BON"),
    AdjustmentType.COMMISSION: (ComponentType.COMMISSION, "SAW"),
    AdjustmentType.BACK_PAY: (ComponentType.BACK_PAY, "SAW"),
    AdjustmentType.ALLOWANCE: (ComponentType.ALLOWANCE, "ALW"),
    AdjustmentType.OTHER: (ComponentType.ADJUSTMENT, "SAW"),
}


@dataclass
class PayrollWorksheet:
    """Scratch state for one employee calculation, frozen into a result at the end."""

    employee_id: str
    period: PayPeriod
    earnings: List[PayComponent] = field(default_factory=list)
    deductions: List[PayComponent] = field(default_factory=list)
    super_contributions: List[SuperContribution] = field(default_factory=list)
    statutory_contributions: List[StatutoryContribution] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    gross_pay: float = 0.0
    taxable_earnings: float = 0.0
    non_taxable_earnings: float = 0.0
    ordinary_time_earnings: float = 0.0
    pre_tax_deductions: float = 0.0
    taxable_income: float = 0.0
    tax_withheld: float = 0.0
    total_deductions: float = 0.0
    net_pay: float = 0.0
    award_interpretation: Optional[AwardInterpretationResult] = None
    failure: Optional[PayrollErrorRecord] = None

    @property
    def super_total(self) -> float:
        return round(sum(c.amount for c in self.super_contributions), 2)

    def to_result(self) -> PayrollCalculationResult:
        return PayrollCalculationResult(
            employee_id=self.employee_id,
            period_start=self.period.start,
            period_end=self.period.end,
            earnings=tuple(self.earnings),
            deductions=tuple(self.deductions),
            super_contributions=tuple(self.super_contributions),
            statutory_contributions=tuple(self.statutory_contributions),
            totals=PayrollTotals(
                gross_pay=self.gross_pay,
                taxable_income=self.taxable_income,
                pre_tax_deductions=self.pre_tax_deductions,
                total_deductions=self.total_deductions,
                tax_withheld=self.tax_withheld,
                net_pay=self.net_pay,
                super_contributions=self.super_total,
            ),
            validation_errors=tuple(self.errors),
            warnings=tuple(self.warnings),
            award_interpretation=self.award_interpretation,
            failure=self.failure,
        )


class PayrollCalculator:
    """Gross-to-net calculation for one employee and one pay period.

    Stages run in a fixed order: base pay, award earnings, salary
    adjustments, gross, pre-tax deductions, taxable income, withholding,
    superannuation, post-tax deductions, employer contributions, net.
    A stage that raises stops the calculation; the error is recorded on the
    result and whatever was computed so far is returned with it.
    """

    def __init__(
        self,
        ruleset: RuleSet,
        daily_overtime_threshold: float = 8.0,
        weekly_overtime_threshold: float = 38.0,
        penalty_base_policy: PenaltyBasePolicy = PenaltyBasePolicy.ADDITIVE,
        super_base: str = "ote",
        withhold_employee_levies: bool = False,
        minimum_hourly_wage: float = 24.10,
        default_super_rate: Rate = Rate.percent(11.5),
        max_daily_hours: float = 12.0,
        meal_break_after_hours: float = 5.0,
    ):
        self.ruleset = ruleset
        self.super_base = super_base
        self.withhold_employee_levies = withhold_employee_levies
        self.minimum_hourly_wage = minimum_hourly_wage
        self.default_super_rate = default_super_rate
        self.max_daily_hours = max_daily_hours
        self.meal_break_after_hours = meal_break_after_hours
        self.interpreter = AwardInterpreter(
            ruleset,
            daily_overtime_threshold=daily_overtime_threshold,
            weekly_overtime_threshold=weekly_overtime_threshold,
            penalty_base_policy=penalty_base_policy,
            max_daily_hours=max_daily_hours,
            meal_break_after_hours=meal_break_after_hours,
        )
        self.statutory = StatutoryCalculator(ruleset)

    @classmethod
    def from_settings(cls, ruleset: RuleSet, settings) -> "PayrollCalculator":
        return cls(
            ruleset,
            daily_overtime_threshold=settings.daily_overtime_threshold,
            weekly_overtime_threshold=settings.weekly_overtime_threshold,
            penalty_base_policy=settings.penalty_base_policy,
            super_base=settings.super_base,
            withhold_employee_levies=settings.withhold_employee_levies,
            minimum_hourly_wage=settings.minimum_hourly_wage,
            default_super_rate=Rate.percent(settings.default_super_rate_percent),
            max_daily_hours=settings.max_daily_hours,
            meal_break_after_hours=settings.meal_break_after_hours,
        )

    def calculate_employee(
        self,
        profile: EmployeeProfile,
        period: PayPeriod,
        entries: Iterable[TimesheetEntry] = (),
        adjustments: Sequence[SalaryAdjustment] = (),
        deductions: Optional[Sequence[Deduction]] = None,
        employer_monthly_wages: float = 0.0,
        run_id: Optional[str] = None,
    ) -> PayrollCalculationResult:
        sheet = PayrollWorksheet(employee_id=profile.employee_id, period=period)
        entries = list(entries)
        foreign = [e.id for e in entries if e.employee_id != profile.employee_id]
        if foreign:
            sheet.warnings.append(f"Ignored {len(foreign)} timesheet entries recorded for another employee")
            logger.warning("foreign_timesheet_entries_ignored", employee_id=profile.employee_id, entry_ids=foreign)
        entries = sorted(
            (e for e in entries if e.employee_id == profile.employee_id), key=lambda e: (e.start, e.id)
        )
        if period.frequency != profile.pay_frequency:
            sheet.warnings.append(
                f"Pay period is {period.frequency.value} but the employee is paid {profile.pay_frequency.value}; "
                f"withholding annualised on the employee's frequency"
            )
        all_adjustments = list(profile.adjustments) + list(adjustments)
        all_deductions = sorted(profile.deductions if deductions is None else deductions)

        try:
            self._base_pay(profile, entries, sheet)
            self._award_earnings(profile, period, entries, sheet)
            self._adjustments(profile, entries, all_adjustments, sheet)
            self._gross(sheet)
            self._pre_tax_deductions(all_deductions, sheet)
            self._withholding(profile, period, sheet)
            self._superannuation(profile, period, sheet)
            self._post_tax_deductions(all_deductions, sheet)
            sheet.statutory_contributions.extend(
                self.statutory.employer_contributions(profile, period, sheet.gross_pay, employer_monthly_wages)
            )
            sheet.net_pay = round(
                sheet.taxable_income + sheet.non_taxable_earnings - sheet.tax_withheld - sheet.total_deductions, 2
            )
            self._validate(profile, period, sheet)
        except Exception as exc:
            sheet.errors.append(f"Error calculating payroll: {exc}")
            sheet.failure = PayrollErrorRecord.from_exception(profile.employee_id, exc, run_id)
            logger.warning(
                "payroll_calculation_failed",
                employee_id=profile.employee_id,
                error_code=sheet.failure.code,
                error=str(exc),
            )

        result = sheet.to_result()
        logger.info(
            "payroll_calculated",
            employee_id=profile.employee_id,
            period_start=period.start.isoformat(),
            period_end=period.end.isoformat(),
            gross_pay=result.totals.gross_pay,
            net_pay=result.totals.net_pay,
            errors=len(result.validation_errors),
            warnings=len(result.warnings),
        )
        return result

    def _base_pay(self, profile: EmployeeProfile, entries: List[TimesheetEntry], sheet: PayrollWorksheet) -> None:
        hourly_rate = profile.effective_hourly_rate()
        if profile.employment_type != EmploymentType.CONTRACTOR:
            rates = [e.hourly_rate for e in entries if e.hourly_rate > 0] or [hourly_rate]
            lowest = min(rates)
            if 0 < lowest < self.minimum_hourly_wage:
                sheet.warnings.append(
                    f"Hourly rate {lowest:.2f} is below the minimum wage of {self.minimum_hourly_wage:.2f}"
                )

        if profile.is_salaried:
            amount = round(profile.base_salary / profile.pay_frequency.periods_per_year, 2)
            sheet.earnings.append(
                PayComponent(ComponentType.BASE_SALARY, "Base salary", units=1, rate=amount, amount=amount)
            )
            return

        hours = sum(e.hours for e in entries)
        if hours <= 0:
            return
        amount = round(sum(e.hours * (e.hourly_rate or hourly_rate) for e in entries), 2)
        sheet.earnings.append(
            PayComponent(
                ComponentType.ORDINARY_HOURS,
                "Ordinary hours",
                units=round(hours, 4),
                rate=round(amount / hours, 4),
                amount=amount,
            )
        )

    def _award_earnings(
        self, profile: EmployeeProfile, period: PayPeriod, entries: List[TimesheetEntry], sheet: PayrollWorksheet
    ) -> None:
        if not profile.award_id:
            return
        interpretation = self.interpreter.interpret(
            profile.employee_id,
            profile.award_id,
            profile.award_classification,
            entries,
            as_of=period.end,
            employment_type=profile.employment_type,
            fallback_rate=profile.effective_hourly_rate(),
        )
        sheet.award_interpretation = interpretation
        sheet.warnings.extend(compliance_breaches(entries, self.max_daily_hours, self.meal_break_after_hours))

        for line in interpretation.penalty_rates:
            sheet.earnings.append(
                PayComponent(
                    ComponentType.PENALTY,
                    line.description,
                    units=line.applicable_hours,
                    rate=line.penalty_rate,
                    amount=line.amount,
                    source_id=line.id,
                )
            )
        for line in interpretation.allowances:
            sheet.earnings.append(
                PayComponent(
                    ComponentType.ALLOWANCE,
                    line.description,
                    units=line.applicable_hours,
                    rate=round(line.amount / line.applicable_hours, 4) if line.applicable_hours else line.amount,
                    amount=line.amount,
                    tax_treatment=line.tax_treatment,
                    stp_category="ALW",
                    is_ote=line.tax_treatment == TaxTreatment.TAXABLE,
                    source_id=line.id,
                )
            )
        for line in interpretation.shift_loadings:
            sheet.earnings.append(
                PayComponent(
                    ComponentType.SHIFT_LOADING,
                    line.description,
                    units=line.applicable_hours,
                    rate=line.loading_rate,
                    amount=line.amount,
                    source_id=line.id,
                )
            )
        for line in interpretation.overtime:
            sheet.earnings.append(
                PayComponent(
                    ComponentType.OVERTIME,
                    f"Overtime {line.key}",
                    units=line.hours,
                    rate=line.rate,
                    amount=line.amount,
                    stp_category="OVT",
                    is_ote=False,
                    source_id=line.id,
                )
            )

    def _adjustments(
        self,
        profile: EmployeeProfile,
        entries: List[TimesheetEntry],
        adjustments: List[SalaryAdjustment],
        sheet: PayrollWorksheet,
    ) -> None:
        if not adjustments:
            return
        variables = formula_variables(
            base_salary=profile.base_salary,
            hours_worked=round(sum(e.hours for e in entries), 4),
            days_worked=len({e.work_date for e in entries}),
            base_hourly_rate=profile.effective_hourly_rate(),
            custom_inputs=profile.custom_inputs,
        )
        for adjustment in adjustments:
            amount = evaluate(adjustment.formula, variables) if adjustment.formula else adjustment.amount
            amount = round(amount, 2)
            if amount == 0:
                continue
            component_type, stp_category = ADJUSTMENT_COMPONENTS[adjustment.adjustment_type]
            sheet.earnings.append(
                PayComponent(
                    component_type,
                    adjustment.reason,
                    units=1,
                    rate=amount,
                    amount=amount,
                    tax_treatment=adjustment.tax_treatment,
                    stp_category=stp_category,
                    is_ote=adjustment.is_ote,
                    source_id=adjustment.id,
                )
            )

    @staticmethod
    def _gross(sheet: PayrollWorksheet) -> None:
        sheet.gross_pay = round(sum(e.amount for e in sheet.earnings), 2)
        sheet.taxable_earnings = round(
            sum(e.amount for e in sheet.earnings if e.tax_treatment == TaxTreatment.TAXABLE), 2
        )
        sheet.ordinary_time_earnings = round(sum(e.amount for e in sheet.earnings if e.is_ote), 2)
        sheet.non_taxable_earnings = round(sheet.gross_pay - sheet.taxable_earnings, 2)

    @staticmethod
    def _deduction_component(deduction: Deduction, value: float) -> PayComponent:
        return PayComponent(
            ComponentType.DEDUCTION,
            deduction.name,
            units=1,
            rate=value,
            amount=value,
            stp_category=deduction.category,
            is_ote=False,
            source_id=deduction.id,
        )

    def _pre_tax_deductions(self, deductions: List[Deduction], sheet: PayrollWorksheet) -> None:
        total = 0.0
        for deduction in deductions:
            if not deduction.applies_pre_tax:
                continue
            value = deduction.compute_value(sheet.gross_pay)
            if value > 0:
                sheet.deductions.append(self._deduction_component(deduction, value))
                total += value
        sheet.pre_tax_deductions = round(total, 2)
        sheet.taxable_income = round(sheet.taxable_earnings - total, 2)

    def _withholding(self, profile: EmployeeProfile, period: PayPeriod, sheet: PayrollWorksheet) -> None:
        table = self.ruleset.tax_table(financial_year(period.end), profile.pay_frequency, profile.residency)
        tax = withhold(sheet.taxable_income, profile.pay_frequency, table)

        levies = self.statutory.employee_levies(profile, period, sheet.taxable_income) if sheet.taxable_income > 0 else []
        if self.withhold_employee_levies:
            tax += sum(levy.employee_amount for levy in levies)
        sheet.tax_withheld = round(tax, 2)
        if sheet.taxable_income > 0:
            sheet.statutory_contributions.append(payg_withholding(sheet.tax_withheld, sheet.taxable_income, period))
        sheet.statutory_contributions.extend(levies)

    def _superannuation(self, profile: EmployeeProfile, period: PayPeriod, sheet: PayrollWorksheet) -> None:
        base = sheet.gross_pay if self.super_base == "gross" else sheet.ordinary_time_earnings
        if base <= 0:
            return
        contribution = self.statutory.superannuation(profile, period, base)
        if contribution is not None:
            sheet.super_contributions.append(contribution)
            sheet.statutory_contributions.append(super_guarantee_record(contribution, period))

    def _post_tax_deductions(self, deductions: List[Deduction], sheet: PayrollWorksheet) -> None:
        basis = max(sheet.taxable_income - sheet.tax_withheld, 0.0)
        total = 0.0
        for deduction in deductions:
            if deduction.applies_pre_tax:
                continue
            value = deduction.compute_value(basis)
            if value > 0:
                sheet.deductions.append(self._deduction_component(deduction, value))
                total += value
        sheet.total_deductions = round(total, 2)

    def _validate(self, profile: EmployeeProfile, period: PayPeriod, sheet: PayrollWorksheet) -> None:
        if sheet.gross_pay < 0:
            sheet.errors.append("Gross pay cannot be negative")
        if sheet.tax_withheld < 0:
            sheet.errors.append("Tax withheld cannot be negative")
        if sheet.net_pay < 0:
            sheet.errors.append("Net pay cannot be negative")

        if profile.requires_super and sheet.gross_pay > 0:
            rate = self.statutory.minimum_super_rate(profile, period) or self.default_super_rate
            if sheet.super_total < round(rate.apply(sheet.gross_pay), 2):
                sheet.warnings.append("Superannuation contributions below minimum guarantee rate")
