"""Payroll record model."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Any
from uuid import UUID, uuid4

from sqlalchemy import (
    CheckConstraint,
    Date,
    ForeignKey,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column

from hr_payroll.models.base import Base, TimestampMixin


def _money() -> Any:
    return mapped_column(Numeric(12, 2), nullable=False, default=Decimal("0"))


class PayrollRecord(Base, TimestampMixin):
    """Payroll for one (employment, funding allocation, pay period).

    Totals are stored for reporting; net_salary is always re-derivable from the
    components via expected_net().
    """

    __tablename__ = "payroll_record"

    payroll_record_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid4,
    )
    employment_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("employment.employment_id", ondelete="RESTRICT"),
        nullable=False,
    )
    employee_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("employee.employee_id", ondelete="RESTRICT"),
        nullable=False,
    )
    funding_allocation_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("funding_allocation.funding_allocation_id", ondelete="RESTRICT"),
        nullable=False,
    )
    pay_period: Mapped[str] = mapped_column(String(7), nullable=False)
    pay_period_date: Mapped[date] = mapped_column(Date, nullable=False)
    fte: Mapped[Decimal] = mapped_column(Numeric(5, 4), nullable=False)

    # Income
    gross_salary: Mapped[Decimal] = _money()
    gross_salary_by_fte: Mapped[Decimal] = _money()
    compensation_refund: Mapped[Decimal] = _money()
    thirteenth_month_salary: Mapped[Decimal] = _money()
    salary_bonus: Mapped[Decimal] = _money()

    # Employee deductions
    pvd: Mapped[Decimal] = _money()
    saving_fund: Mapped[Decimal] = _money()
    employee_social_security: Mapped[Decimal] = _money()
    employee_health_welfare: Mapped[Decimal] = _money()
    income_tax: Mapped[Decimal] = _money()

    # Employer contributions
    employer_social_security: Mapped[Decimal] = _money()
    employer_health_welfare: Mapped[Decimal] = _money()

    # Totals
    total_income: Mapped[Decimal] = _money()
    total_deduction: Mapped[Decimal] = _money()
    net_salary: Mapped[Decimal] = _money()
    employer_contribution: Mapped[Decimal] = _money()
    total_salary: Mapped[Decimal] = _money()

    # Traceability
    calculation_id: Mapped[UUID] = mapped_column(Uuid(as_uuid=True), nullable=False)
    inputs_fingerprint: Mapped[str] = mapped_column(String(64), nullable=False)
    engine_version: Mapped[str] = mapped_column(String, nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    __table_args__ = (
        UniqueConstraint(
            "employment_id",
            "funding_allocation_id",
            "pay_period",
            name="payroll_record_allocation_period_unique",
        ),
        CheckConstraint("net_salary >= 0", name="payroll_record_net_nonnegative_check"),
    )

    def expected_total_income(self) -> Decimal:
        return (
            self.gross_salary_by_fte
            + self.compensation_refund
            + self.thirteenth_month_salary
            + self.salary_bonus
        )

    def expected_total_deduction(self) -> Decimal:
        return (
            self.pvd
            + self.saving_fund
            + self.employee_social_security
            + self.employee_health_welfare
            + self.income_tax
        )

    def expected_net(self) -> Decimal:
        """Net salary recomputed from the stored components."""
        return self.expected_total_income() - self.expected_total_deduction()
