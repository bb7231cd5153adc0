"""Year-scoped tax reference data."""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column

from hr_payroll.models.base import Base, TimestampMixin
from hr_payroll.models.enums import SettingType, sql_in


class TaxBracket(Base, TimestampMixin):
    """Progressive bracket. tax_rate is a percentage (5.00 means 5%)."""

    __tablename__ = "tax_bracket"

    tax_bracket_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid4,
    )
    effective_year: Mapped[int] = mapped_column(Integer, nullable=False)
    bracket_order: Mapped[int] = mapped_column(Integer, nullable=False)
    min_income: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    max_income: Mapped[Decimal | None] = mapped_column(Numeric(14, 2), nullable=True)
    tax_rate: Mapped[Decimal] = mapped_column(Numeric(5, 2), nullable=False)
    description: Mapped[str | None] = mapped_column(String, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    __table_args__ = (
        UniqueConstraint("effective_year", "bracket_order", name="tax_bracket_year_order_unique"),
        CheckConstraint("min_income >= 0", name="tax_bracket_min_check"),
        CheckConstraint(
            "max_income IS NULL OR max_income > min_income",
            name="tax_bracket_range_check",
        ),
        CheckConstraint("tax_rate >= 0 AND tax_rate <= 100", name="tax_bracket_rate_check"),
    )


class TaxSetting(Base, TimestampMixin):
    """Named deduction amount, rate (percentage) or cap for one tax year."""

    __tablename__ = "tax_setting"

    tax_setting_id: Mapped[UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid4,
    )
    effective_year: Mapped[int] = mapped_column(Integer, nullable=False)
    setting_key: Mapped[str] = mapped_column(String, nullable=False)
    setting_value: Mapped[Decimal] = mapped_column(Numeric(14, 4), nullable=False)
    setting_type: Mapped[str] = mapped_column(String, nullable=False)
    description: Mapped[str | None] = mapped_column(String, nullable=True)
    is_selected: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    __table_args__ = (
        UniqueConstraint("effective_year", "setting_key", name="tax_setting_year_key_unique"),
        CheckConstraint(
            f"setting_type IN ({sql_in(SettingType)})",
            name="tax_setting_type_check",
        ),
    )
