"""Funding sources and the allocation ledger."""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from hr_payroll.models.base import Base, TimestampMixin
from hr_payroll.models.enums import AllocationStatus, AllocationType, SalaryTier, sql_in

if TYPE_CHECKING:
    from hr_payroll.models.employee import Employment


# ===== Funding Sources =====


class FundingSource(Base, TimestampMixin):
    """A grant budget line that allocations draw FTE against.

    fte_capacity of None means the line is not capacity limited. version_id is
    bumped whenever an allocation is written against the line, so concurrent
    writers holding a stale copy fail on flush instead of over-committing.
    """

    __tablename__ = "funding_source"

    funding_source_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid4,
    )
    code: Mapped[str] = mapped_column(String, nullable=False)
    name: Mapped[str] = mapped_column(String, nullable=False)
    grant_code: Mapped[str | None] = mapped_column(String, nullable=True)
    budget_line_code: Mapped[str | None] = mapped_column(String, nullable=True)
    fte_capacity: Mapped[Decimal | None] = mapped_column(Numeric(7, 4), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    last_allocated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    version_id: Mapped[int] = mapped_column(Integer, nullable=False)

    __table_args__ = (
        UniqueConstraint("code", name="funding_source_code_unique"),
        CheckConstraint(
            "fte_capacity IS NULL OR fte_capacity >= 0",
            name="funding_source_capacity_check",
        ),
    )
    __mapper_args__ = {"version_id_col": version_id}

    # Relationships
    allocations: Mapped[list[FundingAllocation]] = relationship(back_populates="funding_source")


# ===== Allocations =====


class FundingAllocation(Base, TimestampMixin):
    """One FTE share of an employment's salary, valid over a date interval.

    A null funding_source_id with allocation_type 'org_funded' means the share
    is paid from the organization's own budget.
    """

    __tablename__ = "funding_allocation"

    funding_allocation_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid4,
    )
    employee_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("employee.employee_id", ondelete="CASCADE"),
        nullable=False,
    )
    employment_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("employment.employment_id", ondelete="CASCADE"),
        nullable=False,
    )
    funding_source_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("funding_source.funding_source_id", ondelete="RESTRICT"),
        nullable=True,
    )
    allocation_type: Mapped[str] = mapped_column(String, nullable=False)
    fte: Mapped[Decimal] = mapped_column(Numeric(5, 4), nullable=False)
    allocated_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    amount_overridden: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    salary_tier: Mapped[str] = mapped_column(String, nullable=False)
    status: Mapped[str] = mapped_column(
        String, nullable=False, default=AllocationStatus.ACTIVE.value
    )
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    supersedes_allocation_id: Mapped[UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("funding_allocation.funding_allocation_id"),
        nullable=True,
    )

    __table_args__ = (
        CheckConstraint("fte > 0 AND fte <= 1", name="funding_allocation_fte_check"),
        CheckConstraint("allocated_amount >= 0", name="funding_allocation_amount_check"),
        CheckConstraint(
            "end_date IS NULL OR end_date >= start_date",
            name="funding_allocation_interval_check",
        ),
        CheckConstraint(
            f"status IN ({sql_in(AllocationStatus)})",
            name="funding_allocation_status_check",
        ),
        CheckConstraint(
            f"salary_tier IN ({sql_in(SalaryTier)})",
            name="funding_allocation_salary_tier_check",
        ),
        CheckConstraint(
            "(allocation_type = 'grant' AND funding_source_id IS NOT NULL) OR "
            "(allocation_type = 'org_funded' AND funding_source_id IS NULL)",
            name="funding_allocation_source_check",
        ),
    )

    # Relationships
    employment: Mapped[Employment] = relationship(back_populates="funding_allocations")
    funding_source: Mapped[FundingSource | None] = relationship(back_populates="allocations")

    @property
    def is_active(self) -> bool:
        return self.status == AllocationStatus.ACTIVE.value

    @property
    def is_org_funded(self) -> bool:
        return self.allocation_type == AllocationType.ORG_FUNDED.value

    def is_valid_on(self, day: date) -> bool:
        """Check whether day falls inside the validity interval."""
        return self.start_date <= day and (self.end_date is None or self.end_date >= day)

    def overlaps(self, start: date, end: date) -> bool:
        """Check whether the validity interval intersects [start, end]."""
        if self.start_date > end:
            return False
        if self.end_date is not None and self.end_date < start:
            return False
        return True
