from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, Date, DateTime, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import relationship

from au_payroll.db.session import Base


class PayrollRun(Base):
    __tablename__ = "payroll_runs"

    id = Column(String(64), primary_key=True)
    period_start = Column(Date, nullable=False)
    period_end = Column(Date, nullable=False)
    payment_date = Column(Date, nullable=False)
    status = Column(String(50), nullable=False)
    ruleset_version = Column(String(100), nullable=False)
    employee_count = Column(Integer, nullable=False, default=0)
    total_gross = Column(Numeric(scale=2), nullable=False, default=0)
    total_tax = Column(Numeric(scale=2), nullable=False, default=0)
    total_deductions = Column(Numeric(scale=2), nullable=False, default=0)
    total_net = Column(Numeric(scale=2), nullable=False, default=0)
    total_super = Column(Numeric(scale=2), nullable=False, default=0)
    started_at = Column(DateTime(timezone=True), nullable=False)
    completed_at = Column(DateTime(timezone=True), nullable=False)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    payslips = relationship("Payslip", back_populates="run", cascade="all, delete-orphan")
    errors = relationship("PayrollRunError", back_populates="run", cascade="all, delete-orphan")


class Payslip(Base):
    __tablename__ = "payslips"

    id = Column(Integer, primary_key=True, index=True)
    run_id = Column(String(64), ForeignKey("payroll_runs.id"), nullable=False, index=True)
    employee_id = Column(String(64), nullable=False, index=True)
    period_start = Column(Date, nullable=False)
    period_end = Column(Date, nullable=False)
    gross_pay = Column(Numeric(scale=2), nullable=False)
    taxable_income = Column(Numeric(scale=2), nullable=False)
    pre_tax_deductions = Column(Numeric(scale=2), nullable=False, default=0)
    total_deductions = Column(Numeric(scale=2), nullable=False)
    tax_withheld = Column(Numeric(scale=2), nullable=False)
    net_pay = Column(Numeric(scale=2), nullable=False)
    super_contributions = Column(Numeric(scale=2), nullable=False)
    warnings = Column(Text, nullable=False, default="")

    run = relationship("PayrollRun", back_populates="payslips")
    components = relationship("PayComponentRow", back_populates="payslip", cascade="all, delete-orphan")
    super_rows = relationship("SuperContributionRow", back_populates="payslip", cascade="all, delete-orphan")
    statutory_rows = relationship("StatutoryContributionRow", back_populates="payslip", cascade="all, delete-orphan")


class PayComponentRow(Base):
    __tablename__ = "pay_components"

    id = Column(Integer, primary_key=True, index=True)
    payslip_id = Column(Integer, ForeignKey("payslips.id"), nullable=False, index=True)
    component_type = Column(String(50), nullable=False)
    description = Column(String(255), nullable=False)
    units = Column(Numeric(scale=4), nullable=False)
    rate = Column(Numeric(scale=4), nullable=False)
    amount = Column(Numeric(scale=2), nullable=False)
    tax_treatment = Column(String(20), nullable=False)
    stp_category = Column(String(50), nullable=False)
    is_ote = Column(Boolean, nullable=False, default=True)
    is_deduction = Column(Boolean, nullable=False, default=False)
    source_id = Column(String(128))

    payslip = relationship("Payslip", back_populates="components")


class SuperContributionRow(Base):
    __tablename__ = "super_contributions"

    id = Column(Integer, primary_key=True, index=True)
    payslip_id = Column(Integer, ForeignKey("payslips.id"), nullable=False, index=True)
    fund_id = Column(String(64), nullable=False)
    contribution_type = Column(String(50), nullable=False)
    calculation_base = Column(Numeric(scale=2), nullable=False)
    rate_percent = Column(Numeric(scale=4), nullable=False)
    amount = Column(Numeric(scale=2), nullable=False)
    capped = Column(Boolean, nullable=False, default=False)
    payment_date = Column(Date, nullable=False)

    payslip = relationship("Payslip", back_populates="super_rows")


class StatutoryContributionRow(Base):
    __tablename__ = "statutory_contributions"

    id = Column(Integer, primary_key=True, index=True)
    payslip_id = Column(Integer, ForeignKey("payslips.id"), nullable=False, index=True)
    contribution_type = Column(String(50), nullable=False)
    name = Column(String(255), nullable=False)
    employer_amount = Column(Numeric(scale=2), nullable=False)
    employee_amount = Column(Numeric(scale=2), nullable=False)
    calculation_base = Column(Numeric(scale=2), nullable=False)
    rate_applied = Column(String(50))
    payment_due_date = Column(Date, nullable=False)
    stp_category = Column(String(50), nullable=False)

    payslip = relationship("Payslip", back_populates="statutory_rows")


class PayrollRunError(Base):
    __tablename__ = "payroll_run_errors"

    id = Column(Integer, primary_key=True, index=True)
    run_id = Column(String(64), ForeignKey("payroll_runs.id"), nullable=False, index=True)
    employee_id = Column(String(64), nullable=False)
    category = Column(String(50), nullable=False)
    code = Column(String(64), nullable=False)
    severity = Column(String(20), nullable=False)
    message = Column(Text, nullable=False)

    run = relationship("PayrollRun", back_populates="errors")
