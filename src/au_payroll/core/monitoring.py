import sentry_sdk

from au_payroll.core.config import settings
from au_payroll.errors import PayrollErrorRecord


def configure_error_monitoring() -> None:
    if settings.sentry_dsn:
        sentry_sdk.init(dsn=settings.sentry_dsn, environment=settings.env, traces_sample_rate=0.2)


def capture_employee_failure(record: PayrollErrorRecord) -> None:
    """Report one employee's failed calculation without interrupting the run."""
    tags = {"employee_id": record.employee_id, "error_code": record.code, "category": record.category.value}
    if record.run_id:
        tags["payroll_run_id"] = record.run_id
    sentry_sdk.capture_message(record.message, level="error", tags=tags)
