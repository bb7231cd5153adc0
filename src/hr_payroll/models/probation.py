"""Probation event log model."""

from __future__ import annotations

from datetime import date
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Date,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Uuid,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from hr_payroll.models.base import Base, TimestampMixin
from hr_payroll.models.enums import ProbationEvent, sql_in

if TYPE_CHECKING:
    from hr_payroll.models.employee import Employment


class ProbationRecord(Base, TimestampMixin):
    """One immutable probation event.

    Rows are appended, never deleted. The only column ever updated after insert
    is is_current, which is cleared when a successor record is written.
    """

    __tablename__ = "probation_record"

    probation_record_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid4,
    )
    employment_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("employment.employment_id", ondelete="CASCADE"),
        nullable=False,
    )
    employee_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("employee.employee_id", ondelete="CASCADE"),
        nullable=False,
    )
    event_type: Mapped[str] = mapped_column(String, nullable=False)
    event_date: Mapped[date] = mapped_column(Date, nullable=False)
    decision_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    probation_start_date: Mapped[date] = mapped_column(Date, nullable=False)
    probation_end_date: Mapped[date] = mapped_column(Date, nullable=False)
    previous_end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    extension_number: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    decision_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    evaluation_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    approved_by: Mapped[str | None] = mapped_column(String, nullable=True)
    is_current: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    __table_args__ = (
        CheckConstraint(
            f"event_type IN ({sql_in(ProbationEvent)})",
            name="probation_record_event_type_check",
        ),
        CheckConstraint(
            "probation_end_date >= probation_start_date",
            name="probation_record_dates_check",
        ),
        CheckConstraint("extension_number >= 0", name="probation_record_extension_check"),
        Index(
            "probation_record_one_current",
            "employment_id",
            unique=True,
            sqlite_where=text("is_current"),
            postgresql_where=text("is_current"),
        ),
    )

    # Relationships
    employment: Mapped[Employment] = relationship(back_populates="probation_records")

    @property
    def event(self) -> ProbationEvent:
        return ProbationEvent(self.event_type)

    @property
    def is_terminal(self) -> bool:
        return self.event.is_terminal
