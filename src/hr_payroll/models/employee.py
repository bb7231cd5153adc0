"""Employee and employment models."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    ForeignKey,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from hr_payroll.models.base import Base, TimestampMixin
from hr_payroll.models.enums import MaritalStatus, ResidencyStatus, sql_in

if TYPE_CHECKING:
    from hr_payroll.models.funding import FundingAllocation
    from hr_payroll.models.probation import ProbationRecord


class Employee(Base, TimestampMixin):
    """Employee record with the personal circumstances used for tax."""

    __tablename__ = "employee"

    employee_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid4,
    )
    staff_id: Mapped[str] = mapped_column(String, nullable=False)
    first_name: Mapped[str] = mapped_column(String, nullable=False)
    last_name: Mapped[str] = mapped_column(String, nullable=False)
    organization: Mapped[str | None] = mapped_column(String, nullable=True)
    marital_status: Mapped[str] = mapped_column(
        String, nullable=False, default=MaritalStatus.SINGLE.value
    )
    children_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    eligible_parents_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    residency_status: Mapped[str] = mapped_column(
        String, nullable=False, default=ResidencyStatus.LOCAL_ID.value
    )

    __table_args__ = (
        UniqueConstraint("staff_id", name="employee_staff_id_unique"),
        CheckConstraint(
            f"marital_status IN ({sql_in(MaritalStatus)})",
            name="employee_marital_status_check",
        ),
        CheckConstraint(
            f"residency_status IN ({sql_in(ResidencyStatus)})",
            name="employee_residency_status_check",
        ),
        CheckConstraint("children_count >= 0", name="employee_children_count_check"),
        CheckConstraint(
            "eligible_parents_count >= 0 AND eligible_parents_count <= 4",
            name="employee_parents_count_check",
        ),
    )

    # Relationships
    employments: Mapped[list[Employment]] = relationship(back_populates="employee")

    @property
    def full_name(self) -> str:
        """Get full name."""
        return f"{self.first_name} {self.last_name}"

    @property
    def has_spouse(self) -> bool:
        return self.marital_status == MaritalStatus.MARRIED.value


class Employment(Base, TimestampMixin):
    """Employment terms: dates, the two salary tiers and benefit enrollments.

    A null probation_end_date means the employment has no probation.
    """

    __tablename__ = "employment"

    employment_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid4,
    )
    employee_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("employee.employee_id", ondelete="CASCADE"),
        nullable=False,
    )
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    probation_end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    probation_salary: Mapped[Decimal | None] = mapped_column(Numeric(12, 2), nullable=True)
    post_probation_salary: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    position_title: Mapped[str | None] = mapped_column(String, nullable=True)
    department: Mapped[str | None] = mapped_column(String, nullable=True)
    pvd_enrolled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    saving_fund_enrolled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    health_welfare_enrolled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    employer_pays_health_welfare: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False
    )

    __table_args__ = (
        CheckConstraint("post_probation_salary > 0", name="employment_salary_positive_check"),
        CheckConstraint(
            "probation_salary IS NULL OR probation_salary > 0",
            name="employment_probation_salary_check",
        ),
        CheckConstraint(
            "end_date IS NULL OR end_date >= start_date",
            name="employment_dates_check",
        ),
        CheckConstraint(
            "probation_end_date IS NULL OR probation_end_date > start_date",
            name="employment_probation_date_check",
        ),
    )

    # Relationships
    employee: Mapped[Employee] = relationship(back_populates="employments")
    probation_records: Mapped[list[ProbationRecord]] = relationship(
        back_populates="employment",
        order_by="ProbationRecord.created_at",
    )
    funding_allocations: Mapped[list[FundingAllocation]] = relationship(
        back_populates="employment"
    )

    @property
    def has_probation(self) -> bool:
        return self.probation_end_date is not None

    def is_active_on(self, as_of_date: date) -> bool:
        """Check if employment is active on a given date."""
        if self.start_date > as_of_date:
            return False
        if self.end_date is not None and self.end_date < as_of_date:
            return False
        return True

    def is_in_probation_on(self, as_of_date: date) -> bool:
        """True before the probation-completion date."""
        return self.probation_end_date is not None and as_of_date < self.probation_end_date
