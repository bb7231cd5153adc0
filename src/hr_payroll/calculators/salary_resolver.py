"""Salary resolution and pro-rating over a standardized month."""

from __future__ import annotations

import calendar
from datetime import date, timedelta
from decimal import ROUND_HALF_UP, Decimal
from typing import TYPE_CHECKING

from hr_payroll.calculators.types import ResolvedSalary, SalarySegment
from hr_payroll.models.enums import SalaryTier

if TYPE_CHECKING:
    from hr_payroll.models import Employment

CENTS = Decimal("0.01")
PROBATION_MONTHS = 3


def default_probation_end(start_date: date, months: int = PROBATION_MONTHS) -> date:
    """Probation-completion date a number of calendar months after the start.

    The day is clamped to the target month's length (Nov 30 + 3 months is Feb 28/29).
    """
    month_index = start_date.month - 1 + months
    year = start_date.year + month_index // 12
    month = month_index % 12 + 1
    day = min(start_date.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


class SalaryResolver:
    """Determines which salary applies on a date and how much is owed for a range.

    Amounts for part of a month are weighted against a fixed standardized month
    (30 days by default) rather than the calendar month's length. Each day of
    the month occupies one standardized slot, the 31st shares the 30th's slot,
    and the last day of a short month absorbs the remaining slots. A full
    calendar month is therefore always exactly one monthly salary.
    """

    def __init__(self, standard_month_days: int = 30):
        if standard_month_days < 28:
            raise ValueError("standard_month_days must be at least 28")
        self.standard_month_days = standard_month_days

    def current_tier(self, employment: Employment, on_date: date) -> SalaryTier:
        """Salary tier in force on a date."""
        if employment.probation_salary is not None and employment.is_in_probation_on(on_date):
            return SalaryTier.PROBATION
        return SalaryTier.POST_PROBATION

    def current_salary(self, employment: Employment, on_date: date) -> Decimal:
        """Nominal monthly salary in force on a date."""
        return self.salary_for_tier(employment, self.current_tier(employment, on_date))

    @staticmethod
    def salary_for_tier(employment: Employment, tier: SalaryTier) -> Decimal:
        if tier == SalaryTier.PROBATION and employment.probation_salary is not None:
            return Decimal(employment.probation_salary)
        return Decimal(employment.post_probation_salary)

    def resolve_for_period(
        self,
        employment: Employment,
        period_start: date,
        period_end: date,
    ) -> ResolvedSalary:
        """Compute the salary owed for [period_start, period_end].

        The range is clipped to the employment's own start and end dates, so a
        mid-month joiner or leaver is pro-rated too. When the probation
        completion date falls strictly inside the clipped range, the range is
        split into a probation segment and a post-probation segment and each
        is paid for its standardized days.

        Args:
            employment: Employment carrying both salary tiers and dates
            period_start: First day of the range (inclusive)
            period_end: Last day of the range (inclusive)

        Returns:
            ResolvedSalary with the total and one segment per tier and month

        Raises:
            ValueError: If period_end is before period_start
        """
        if period_end < period_start:
            raise ValueError(f"Period end {period_end} is before start {period_start}")

        start = max(period_start, employment.start_date)
        end = period_end
        if employment.end_date is not None:
            end = min(end, employment.end_date)

        segments: list[SalarySegment] = []
        if start <= end:
            for month_start, month_end in self._month_chunks(start, end):
                segments.extend(self._segments_for_month(employment, month_start, month_end))

        total = sum((s.amount for s in segments), Decimal("0"))
        return ResolvedSalary(
            period_start=period_start,
            period_end=period_end,
            total=total,
            segments=tuple(segments),
        )

    def _segments_for_month(
        self, employment: Employment, start: date, end: date
    ) -> list[SalarySegment]:
        """Split one month's chunk at the probation-completion date."""
        completion = employment.probation_end_date
        if employment.probation_salary is None or completion is None or completion <= start:
            return [self._segment(employment, SalaryTier.POST_PROBATION, start, end)]
        if completion > end:
            return [self._segment(employment, SalaryTier.PROBATION, start, end)]
        return [
            self._segment(employment, SalaryTier.PROBATION, start, completion - timedelta(days=1)),
            self._segment(employment, SalaryTier.POST_PROBATION, completion, end),
        ]

    def _segment(
        self, employment: Employment, tier: SalaryTier, start: date, end: date
    ) -> SalarySegment:
        salary = self.salary_for_tier(employment, tier)
        standard_days = self.standard_days(start, end)
        amount = (salary * standard_days / self.standard_month_days).quantize(
            CENTS, rounding=ROUND_HALF_UP
        )
        return SalarySegment(
            tier=tier,
            start=start,
            end=end,
            actual_days=(end - start).days + 1,
            standard_days=standard_days,
            monthly_salary=salary,
            amount=amount,
        )

    def standard_days(self, start: date, end: date) -> int:
        """Standardized days covered by [start, end] within one calendar month."""
        if (start.year, start.month) != (end.year, end.month):
            raise ValueError("standard_days expects a range inside one calendar month")
        return self._boundary_after(end) - self._boundary_before(start)

    def _boundary_before(self, day: date) -> int:
        return min(day.day - 1, self.standard_month_days)

    def _boundary_after(self, day: date) -> int:
        if day.day == calendar.monthrange(day.year, day.month)[1]:
            return self.standard_month_days
        return min(day.day, self.standard_month_days)

    @staticmethod
    def _month_chunks(start: date, end: date) -> list[tuple[date, date]]:
        chunks: list[tuple[date, date]] = []
        cursor = start
        while cursor <= end:
            last_day = date(cursor.year, cursor.month, calendar.monthrange(cursor.year, cursor.month)[1])
            chunk_end = min(last_day, end)
            chunks.append((cursor, chunk_end))
            cursor = chunk_end + timedelta(days=1)
        return chunks
