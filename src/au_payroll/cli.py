from __future__ import annotations

import argparse
import json
from datetime import date
from pathlib import Path

from .calculator import PayrollCalculator
from .core.config import settings
from .core.logging import configure_logging
from .db.session import init_db
from .db.sink import SqlAlchemyResultSink
from .interpretation import AwardInterpreter
from .models import PayFrequency, PayPeriod, Residency
from .providers import JsonDataStore
from .runs import PayrollRunProcessor
from .serialization import payslip, to_jsonable
from .tax_tables import TaxTableRepository, financial_year, withhold

DEFAULT_DATA_PATH = settings.store_path


def store_from_args(args: argparse.Namespace) -> JsonDataStore:
    path = Path(args.store) if getattr(args, "store", None) else DEFAULT_DATA_PATH
    return JsonDataStore(
        path,
        tax_tables=TaxTableRepository(settings.tax_table_dir),
        statutory_rates_path=settings.statutory_rates_path,
    )


def parse_date(value: str) -> date:
    return date.fromisoformat(value)


def period_from_args(args: argparse.Namespace) -> PayPeriod:
    return PayPeriod(start=parse_date(args.start), end=parse_date(args.end), frequency=PayFrequency(args.frequency))


def calculator_for(ruleset) -> PayrollCalculator:
    return PayrollCalculator.from_settings(ruleset, settings)


def emit(payload) -> None:
    print(json.dumps(payload, indent=2, sort_keys=True))


def cmd_calculate(args: argparse.Namespace) -> None:
    store = store_from_args(args)
    period = period_from_args(args)
    profile = store.load_employee_profile(args.employee)
    processor = PayrollRunProcessor(store, calculator_factory=calculator_for)
    calculator = calculator_for(processor.load_snapshot(period, [profile]))
    result = calculator.calculate_employee(
        profile,
        period,
        store.load_timesheet_entries(profile.employee_id, period.start, period.end),
        employer_monthly_wages=store.employer_monthly_wages(profile.company_id, profile.state, period.end),
    )
    emit(payslip(result))


def cmd_run(args: argparse.Namespace) -> None:
    store = store_from_args(args)
    sink = None
    if args.persist:
        init_db()
        sink = SqlAlchemyResultSink()
    processor = PayrollRunProcessor(
        store,
        calculator_factory=calculator_for,
        sink=sink,
        max_workers=args.workers or settings.max_workers,
    )
    outcome = processor.process(period_from_args(args), args.employee or None)
    emit(
        {
            "run_id": outcome.run_id,
            "status": outcome.status.value,
            "totals": to_jsonable(outcome.totals),
            "errors": to_jsonable(outcome.errors),
            "payslips": [payslip(result) for result in outcome.results],
        }
    )


def cmd_interpret(args: argparse.Namespace) -> None:
    store = store_from_args(args)
    period = period_from_args(args)
    profile = store.load_employee_profile(args.employee)
    award_id = args.award or profile.award_id
    if not award_id:
        raise SystemExit(f"Employee {profile.employee_id} is not covered by an award; pass --award")
    ruleset = PayrollRunProcessor(store).load_snapshot(period, [profile])
    interpreter = AwardInterpreter(
        ruleset,
        daily_overtime_threshold=settings.daily_overtime_threshold,
        weekly_overtime_threshold=settings.weekly_overtime_threshold,
        penalty_base_policy=settings.penalty_base_policy,
        max_daily_hours=settings.max_daily_hours,
        meal_break_after_hours=settings.meal_break_after_hours,
    )
    result = interpreter.interpret(
        profile.employee_id,
        award_id,
        profile.award_classification,
        store.load_timesheet_entries(profile.employee_id, period.start, period.end),
        as_of=period.end,
        employment_type=profile.employment_type,
        fallback_rate=profile.effective_hourly_rate(),
    )
    emit(to_jsonable(result))


def cmd_withhold(args: argparse.Namespace) -> None:
    frequency = PayFrequency(args.frequency)
    year = args.year or financial_year(date.today())
    table = TaxTableRepository(settings.tax_table_dir).load(year, frequency, Residency(args.residency))
    emit({"financial_year": year, "pay_frequency": frequency.value, "tax": withhold(args.amount, frequency, table)})


def cmd_tax_tables(args: argparse.Namespace) -> None:
    for version in TaxTableRepository(settings.tax_table_dir).available_versions():
        print(version)


def _add_period_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("start", help="Period start date (YYYY-MM-DD)")
    parser.add_argument("end", help="Period end date (YYYY-MM-DD)")
    parser.add_argument("--frequency", default="Fortnightly", choices=[f.value for f in PayFrequency])
    parser.add_argument("--store", help="Path to the JSON data store")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Australian payroll calculation CLI")
    sub = parser.add_subparsers(dest="command", required=True)

    calculate = sub.add_parser("calculate", help="Calculate one employee's pay for a period")
    calculate.add_argument("employee")
    _add_period_arguments(calculate)
    calculate.set_defaults(func=cmd_calculate)

    run = sub.add_parser("run", help="Process a payroll run over the store")
    _add_period_arguments(run)
    run.add_argument("--employee", action="append", help="Limit the run to these employees (repeatable)")
    run.add_argument("--workers", type=int, help="Calculate employees in parallel")
    run.add_argument("--persist", action="store_true", help="Write the run to the configured database")
    run.set_defaults(func=cmd_run)

    interpret = sub.add_parser("interpret", help="Show award interpretation for an employee's timesheets")
    interpret.add_argument("employee")
    _add_period_arguments(interpret)
    interpret.add_argument("--award", help="Award id, defaults to the employee's award")
    interpret.set_defaults(func=cmd_interpret)

    withhold_cmd = sub.add_parser("withhold", help="PAYG withholding for a period amount")
    withhold_cmd.add_argument("amount", type=float)
    withhold_cmd.add_argument("--frequency", default="Fortnightly", choices=[f.value for f in PayFrequency])
    withhold_cmd.add_argument("--year", help="Financial year, e.g. 2024-25")
    withhold_cmd.add_argument("--residency", default="Resident", choices=[r.value for r in Residency])
    withhold_cmd.set_defaults(func=cmd_withhold)

    tables = sub.add_parser("tax-tables", help="List bundled tax table years")
    tables.set_defaults(func=cmd_tax_tables)

    return parser


def main(argv: list[str] | None = None) -> None:
    configure_logging(settings.log_level)
    parser = build_parser()
    args = parser.parse_args(argv)
    args.func(args)


if __name__ == "__main__":
    main()
