"""Payroll component builders: rounding, benefits and apportionment.

Rounding:
- Money is rounded to 2 decimals (ROUND_HALF_UP) once per component
- Amounts split across allocations are apportioned so the parts sum exactly
  to the whole; the rounding remainder goes to the largest shares first
"""

from __future__ import annotations

from datetime import date
from decimal import ROUND_DOWN, ROUND_HALF_UP, Decimal
from typing import Sequence

from hr_payroll.calculators.types import ZERO, PayrollComponents
from hr_payroll.models.enums import ResidencyStatus

# (exclusive lower bound of monthly salary, monthly contribution), checked in order
HEALTH_WELFARE_TIERS: tuple[tuple[Decimal, Decimal], ...] = (
    (Decimal("15000"), Decimal("150")),
    (Decimal("5000"), Decimal("100")),
    (Decimal("-1"), Decimal("60")),
)

# Staff categories whose health-welfare contribution the employer may match
EMPLOYER_HEALTH_WELFARE_STATUSES = frozenset(
    {ResidencyStatus.NON_LOCAL_ID.value, ResidencyStatus.EXPAT.value}
)

THIRTEENTH_MONTH_MIN_SERVICE_MONTHS = 6


class ComponentBuilder:
    """Stateless helpers for the money amounts on a payroll record."""

    OUTPUT_PRECISION = Decimal("0.01")

    @staticmethod
    def round_to_cents(amount: Decimal) -> Decimal:
        """Round amount to 2 decimal places (cents)."""
        return amount.quantize(ComponentBuilder.OUTPUT_PRECISION, rounding=ROUND_HALF_UP)

    @staticmethod
    def percent_of(amount: Decimal, rate_percent: Decimal) -> Decimal:
        return ComponentBuilder.round_to_cents(amount * rate_percent / Decimal("100"))

    @staticmethod
    def apportion(total: Decimal, weights: Sequence[Decimal]) -> list[Decimal]:
        """Split a cent amount across weights so the parts sum exactly to total.

        Each part is floored to the cent, then leftover cents are handed out
        one at a time by descending fractional remainder (ties keep input
        order), which makes the split deterministic.
        """
        if not weights:
            return []
        weight_sum = sum(weights, ZERO)
        if weight_sum <= 0:
            raise ValueError("apportion weights must sum to a positive amount")

        cent = ComponentBuilder.OUTPUT_PRECISION
        exact = [total * w / weight_sum for w in weights]
        parts = [e.quantize(cent, rounding=ROUND_DOWN) for e in exact]
        leftover = int(((total - sum(parts, ZERO)) / cent).to_integral_value())
        order = sorted(range(len(exact)), key=lambda i: (-(exact[i] - parts[i]), i))
        for i in order[:leftover]:
            parts[i] += cent
        return parts

    @staticmethod
    def health_welfare_employee(monthly_salary: Decimal) -> Decimal:
        """Tiered monthly health-welfare contribution for a salary level."""
        for threshold, amount in HEALTH_WELFARE_TIERS:
            if monthly_salary > threshold:
                return amount
        return ZERO

    @staticmethod
    def health_welfare_employer(
        employee_amount: Decimal, residency_status: str, employer_pays: bool
    ) -> Decimal:
        """Employer matches the employee amount for eligible staff categories."""
        if employer_pays and residency_status in EMPLOYER_HEALTH_WELFARE_STATUSES:
            return employee_amount
        return ZERO

    @staticmethod
    def service_months(start_date: date, as_of: date) -> int:
        """Whole months of service completed by a date."""
        months = (as_of.year - start_date.year) * 12 + (as_of.month - start_date.month)
        if as_of.day < start_date.day:
            months -= 1
        return max(0, months)

    @staticmethod
    def thirteenth_month_accrual(gross_share: Decimal, start_date: date, as_of: date) -> Decimal:
        """One twelfth of the share once six months of service are complete."""
        if ComponentBuilder.service_months(start_date, as_of) < THIRTEENTH_MONTH_MIN_SERVICE_MONTHS:
            return ZERO
        return ComponentBuilder.round_to_cents(gross_share / Decimal("12"))

    @staticmethod
    def months_worked_in_year(start_date: date, year: int, end_date: date | None = None) -> int:
        """Months of the tax year the employment covers, counting start and end months."""
        if start_date.year > year or (end_date is not None and end_date.year < year):
            return 0
        first = 1 if start_date.year < year else start_date.month
        last = end_date.month if end_date is not None and end_date.year == year else 12
        return max(0, last - first + 1)

    @staticmethod
    def validate_components(components: PayrollComponents) -> list[str]:
        """Return reasons the components are not a valid payroll; empty if valid."""
        errors: list[str] = []
        for name, value in components.to_canonical_dict().items():
            if Decimal(value) < 0:
                errors.append(f"{name} is negative ({value})")
        if components.net_salary < 0:
            errors.append(f"net salary is negative ({components.net_salary})")
        return errors
