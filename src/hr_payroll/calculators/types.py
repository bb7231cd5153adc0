"""Type definitions for the calculation pipeline."""

from __future__ import annotations

import calendar
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any
from uuid import UUID

from hr_payroll.models.enums import SalaryTier

ZERO = Decimal("0")


@dataclass(frozen=True)
class PayPeriod:
    """A calendar-month pay period."""

    year: int
    month: int

    @classmethod
    def parse(cls, label: str) -> PayPeriod:
        """Parse a 'YYYY-MM' label."""
        try:
            year_str, month_str = label.split("-")
            period = cls(int(year_str), int(month_str))
        except ValueError:
            raise ValueError(f"Invalid pay period '{label}', expected YYYY-MM") from None
        if not 1 <= period.month <= 12:
            raise ValueError(f"Invalid pay period '{label}', month out of range")
        return period

    @classmethod
    def containing(cls, day: date) -> PayPeriod:
        return cls(day.year, day.month)

    @property
    def start(self) -> date:
        return date(self.year, self.month, 1)

    @property
    def end(self) -> date:
        return date(self.year, self.month, self.days_in_month)

    @property
    def days_in_month(self) -> int:
        return calendar.monthrange(self.year, self.month)[1]

    @property
    def label(self) -> str:
        return f"{self.year:04d}-{self.month:02d}"

    def __str__(self) -> str:
        return self.label


@dataclass(frozen=True)
class SalarySegment:
    """Part of a pay period paid at a single salary tier."""

    tier: SalaryTier
    start: date
    end: date
    actual_days: int
    standard_days: int
    monthly_salary: Decimal
    amount: Decimal

    def to_dict(self) -> dict[str, Any]:
        return {
            "tier": self.tier.value,
            "start": self.start.isoformat(),
            "end": self.end.isoformat(),
            "actual_days": self.actual_days,
            "standard_days": self.standard_days,
            "monthly_salary": str(self.monthly_salary),
            "amount": str(self.amount),
        }


@dataclass(frozen=True)
class ResolvedSalary:
    """Salary owed for a date range, with its per-tier breakdown."""

    period_start: date
    period_end: date
    total: Decimal
    segments: tuple[SalarySegment, ...]

    @property
    def is_blended(self) -> bool:
        return len(self.segments) > 1

    @property
    def standard_days(self) -> int:
        return sum(s.standard_days for s in self.segments)

    @property
    def tier(self) -> SalaryTier | None:
        """Tier in force at the end of the range."""
        return self.segments[-1].tier if self.segments else None


@dataclass(frozen=True)
class BracketRule:
    """Tax bracket for progressive taxation."""

    min_amount: Decimal
    max_amount: Decimal | None  # None = no upper limit
    rate: Decimal  # Percentage, e.g. 5.00 for 5%
    order: int = 0

    @property
    def rate_fraction(self) -> Decimal:
        return self.rate / Decimal("100")


@dataclass(frozen=True)
class TaxRules:
    """Immutable snapshot of one year's brackets and selected settings."""

    year: int
    brackets: tuple[BracketRule, ...]
    settings: dict[str, Decimal] = field(default_factory=dict)

    def get(self, key: str, default: Decimal = ZERO) -> Decimal:
        return self.settings.get(key, default)

    def has(self, key: str) -> bool:
        return key in self.settings


@dataclass(frozen=True)
class BracketTax:
    """Tax attributable to one bracket."""

    bracket: BracketRule
    taxable_amount: Decimal
    tax: Decimal


@dataclass(frozen=True)
class ProgressiveTax:
    """Annual and monthly tax with per-bracket breakdown."""

    taxable_income: Decimal
    annual_tax: Decimal
    monthly_tax: Decimal
    breakdown: tuple[BracketTax, ...] = ()

    @property
    def effective_rate(self) -> Decimal:
        if self.taxable_income <= 0:
            return ZERO
        return (self.annual_tax / self.taxable_income * 100).quantize(Decimal("0.01"))


@dataclass(frozen=True)
class SalaryComponents:
    """Annual contributions already withheld from salary, used as tax deductions."""

    social_security: Decimal = ZERO
    provident_fund: Decimal = ZERO
    saving_fund: Decimal = ZERO


@dataclass(frozen=True)
class DeductionBreakdown:
    """Deduction stack applied to gross annual income."""

    gross_annual_income: Decimal
    employment_deduction: Decimal
    personal_allowance: Decimal
    spouse_allowance: Decimal
    child_allowance: Decimal
    parent_allowance: Decimal
    social_security: Decimal
    provident_fund: Decimal
    saving_fund: Decimal

    @property
    def total(self) -> Decimal:
        return (
            self.employment_deduction
            + self.personal_allowance
            + self.spouse_allowance
            + self.child_allowance
            + self.parent_allowance
            + self.social_security
            + self.provident_fund
            + self.saving_fund
        )

    @property
    def taxable_income(self) -> Decimal:
        return max(ZERO, self.gross_annual_income - self.total)


@dataclass(frozen=True)
class SocialSecurityContribution:
    """Monthly social-security shares."""

    employee: Decimal
    employer: Decimal

    @property
    def total(self) -> Decimal:
        return self.employee + self.employer


@dataclass(frozen=True)
class EmployeeTaxProfile:
    """Personal circumstances that drive allowances."""

    has_spouse: bool = False
    children: int = 0
    eligible_parents: int = 0


@dataclass(frozen=True)
class IncomeTaxResult:
    """Whole-employment income tax for one month."""

    monthly_gross: Decimal
    months_worked: int
    deductions: DeductionBreakdown
    tax: ProgressiveTax

    @property
    def monthly_tax(self) -> Decimal:
        return self.tax.monthly_tax


@dataclass
class PayrollComponents:
    """All money amounts for one allocation's payroll record."""

    gross_salary: Decimal = ZERO
    gross_salary_by_fte: Decimal = ZERO
    compensation_refund: Decimal = ZERO
    thirteenth_month_salary: Decimal = ZERO
    salary_bonus: Decimal = ZERO
    pvd: Decimal = ZERO
    saving_fund: Decimal = ZERO
    employee_social_security: Decimal = ZERO
    employee_health_welfare: Decimal = ZERO
    income_tax: Decimal = ZERO
    employer_social_security: Decimal = ZERO
    employer_health_welfare: Decimal = ZERO

    @property
    def total_income(self) -> Decimal:
        return (
            self.gross_salary_by_fte
            + self.compensation_refund
            + self.thirteenth_month_salary
            + self.salary_bonus
        )

    @property
    def total_deduction(self) -> Decimal:
        return (
            self.pvd
            + self.saving_fund
            + self.employee_social_security
            + self.employee_health_welfare
            + self.income_tax
        )

    @property
    def net_salary(self) -> Decimal:
        return self.total_income - self.total_deduction

    @property
    def employer_contribution(self) -> Decimal:
        return self.employer_social_security + self.employer_health_welfare

    @property
    def total_salary(self) -> Decimal:
        return self.total_income + self.employer_contribution

    def to_canonical_dict(self) -> dict[str, str]:
        """Return canonical dict for hashing (deterministic ordering)."""
        return {
            "gross_salary": str(self.gross_salary),
            "gross_salary_by_fte": str(self.gross_salary_by_fte),
            "compensation_refund": str(self.compensation_refund),
            "thirteenth_month_salary": str(self.thirteenth_month_salary),
            "salary_bonus": str(self.salary_bonus),
            "pvd": str(self.pvd),
            "saving_fund": str(self.saving_fund),
            "employee_social_security": str(self.employee_social_security),
            "employee_health_welfare": str(self.employee_health_welfare),
            "income_tax": str(self.income_tax),
            "employer_social_security": str(self.employer_social_security),
            "employer_health_welfare": str(self.employer_health_welfare),
        }


@dataclass
class AllocationPayroll:
    """Calculated payroll for one funding allocation."""

    funding_allocation_id: UUID
    funding_source_id: UUID | None
    fte: Decimal
    components: PayrollComponents

