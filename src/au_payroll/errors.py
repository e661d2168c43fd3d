"""Typed payroll errors.

Every error carries a machine-readable ``code`` and a ``category`` so the
run processor can report failures per employee without parsing messages.

    PayrollError
    +-- PayrollValidationError      malformed or out-of-range input
    +-- CalculationError            formula or arithmetic failure
    +-- DataError                   missing referenced entity
    |   +-- AwardNotFoundError
    |   +-- EmployeeNotFoundError
    |   +-- TaxTableNotFoundError
    +-- ComplianceError             business rule breach / missing statutory setup
    |   +-- MissingSuperFundError
    |   +-- MissingStatutoryRateError
    +-- PayrollSystemError          infrastructure or transient failure
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional


class ErrorCategory(str, Enum):
    VALIDATION = "Validation"
    CALCULATION = "Calculation"
    DATA = "Data"
    COMPLIANCE = "Compliance"
    SYSTEM = "System"


class Severity(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"
    CRITICAL = "Critical"


_SEVERITY_BY_CATEGORY = {
    ErrorCategory.SYSTEM: Severity.CRITICAL,
    ErrorCategory.CALCULATION: Severity.HIGH,
    ErrorCategory.COMPLIANCE: Severity.HIGH,
    ErrorCategory.VALIDATION: Severity.MEDIUM,
    ErrorCategory.DATA: Severity.MEDIUM,
}


def severity_for(category: ErrorCategory) -> Severity:
    return _SEVERITY_BY_CATEGORY.get(category, Severity.LOW)


class PayrollError(Exception):
    code: str = "PAYROLL_ERROR"
    category: ErrorCategory = ErrorCategory.SYSTEM

    def __init__(self, message: str, **details: Any) -> None:
        super().__init__(message)
        self.message = message
        self.details: Dict[str, Any] = details

    @property
    def severity(self) -> Severity:
        return severity_for(self.category)


class PayrollValidationError(PayrollError):
    code = "VALIDATION_ERROR"
    category = ErrorCategory.VALIDATION


class CalculationError(PayrollError):
    code = "CALCULATION_ERROR"
    category = ErrorCategory.CALCULATION


class DataError(PayrollError):
    code = "DATA_ERROR"
    category = ErrorCategory.DATA


class AwardNotFoundError(DataError):
    code = "AWARD_NOT_FOUND"

    def __init__(self, award_id: str) -> None:
        super().__init__(f"Award with ID {award_id} not found", award_id=award_id)
        self.award_id = award_id


class EmployeeNotFoundError(DataError):
    code = "EMPLOYEE_NOT_FOUND"

    def __init__(self, employee_id: str) -> None:
        super().__init__(f"Employee {employee_id} not found", employee_id=employee_id)
        self.employee_id = employee_id


class TaxTableNotFoundError(DataError):
    code = "TAX_TABLE_NOT_FOUND"


class ComplianceError(PayrollError):
    code = "COMPLIANCE_ERROR"
    category = ErrorCategory.COMPLIANCE


class MissingSuperFundError(ComplianceError):
    code = "MISSING_SUPER_FUND"

    def __init__(self, employee_id: str) -> None:
        super().__init__(
            f"Employee {employee_id} has no superannuation fund configured",
            employee_id=employee_id,
        )
        self.employee_id = employee_id


class MissingStatutoryRateError(ComplianceError):
    code = "MISSING_STATUTORY_RATE"

    def __init__(self, contribution_type: str) -> None:
        super().__init__(
            f"No {contribution_type} rate in force for this period",
            contribution_type=contribution_type,
        )
        self.contribution_type = contribution_type


class PayrollSystemError(PayrollError):
    code = "SYSTEM_ERROR"
    category = ErrorCategory.SYSTEM


def classify_exception(exc: BaseException) -> ErrorCategory:
    if isinstance(exc, PayrollError):
        return exc.category
    if isinstance(exc, ArithmeticError):
        return ErrorCategory.CALCULATION
    if isinstance(exc, LookupError):
        return ErrorCategory.DATA
    if isinstance(exc, (ValueError, TypeError)):
        return ErrorCategory.VALIDATION
    return ErrorCategory.SYSTEM


def error_code(exc: BaseException) -> str:
    if isinstance(exc, PayrollError):
        return exc.code
    return f"{classify_exception(exc).value.upper()}_ERROR"


@dataclass(frozen=True)
class PayrollErrorRecord:
    """One per-employee failure captured by a payroll run."""

    employee_id: str
    category: ErrorCategory
    code: str
    message: str
    severity: Severity
    run_id: Optional[str] = None

    @classmethod
    def from_exception(cls, employee_id: str, exc: BaseException, run_id: Optional[str] = None) -> "PayrollErrorRecord":
        category = classify_exception(exc)
        return cls(
            employee_id=employee_id,
            category=category,
            code=error_code(exc),
            message=str(exc),
            severity=severity_for(category),
            run_id=run_id,
        )

    @classmethod
    def from_validation_errors(cls, employee_id: str, messages, run_id: Optional[str] = None) -> "PayrollErrorRecord":
        return cls(
            employee_id=employee_id,
            category=ErrorCategory.VALIDATION,
            code="RESULT_INVALID",
            message="; ".join(messages),
            severity=severity_for(ErrorCategory.VALIDATION),
            run_id=run_id,
        )
