"""Tests for salary tier resolution and standardized-month pro-rating."""

from datetime import date, timedelta
from decimal import Decimal

import pytest

from hr_payroll.calculators.salary_resolver import SalaryResolver
from hr_payroll.calculators.types import PayPeriod
from hr_payroll.models import Employment, SalaryTier


def make_employment(**overrides) -> Employment:
    values = {
        "start_date": date(2025, 6, 1),
        "probation_end_date": date(2025, 8, 15),
        "probation_salary": Decimal("8000"),
        "post_probation_salary": Decimal("18000"),
    }
    values.update(overrides)
    return Employment(**values)


def resolve(employment: Employment, label: str):
    period = PayPeriod.parse(label)
    return SalaryResolver().resolve_for_period(employment, period.start, period.end)


class TestCurrentTier:
    """Which salary applies on a given day."""

    def test_probation_before_completion_date(self):
        employment = make_employment()
        resolver = SalaryResolver()

        assert resolver.current_tier(employment, date(2025, 8, 14)) == SalaryTier.PROBATION
        assert resolver.current_salary(employment, date(2025, 8, 14)) == Decimal("8000")

    def test_post_probation_from_completion_date(self):
        employment = make_employment()
        resolver = SalaryResolver()

        assert resolver.current_tier(employment, date(2025, 8, 15)) == SalaryTier.POST_PROBATION
        assert resolver.current_salary(employment, date(2025, 8, 15)) == Decimal("18000")

    def test_no_probation_salary_always_post_probation(self):
        employment = make_employment(probation_salary=None)

        assert SalaryResolver().current_tier(employment, date(2025, 6, 1)) == SalaryTier.POST_PROBATION

    def test_no_probation_date_always_post_probation(self):
        employment = make_employment(probation_end_date=None)

        assert SalaryResolver().current_salary(employment, date(2025, 6, 1)) == Decimal("18000")


class TestResolveForPeriod:
    """Salary owed for a calendar month."""

    def test_blended_month_at_probation_completion(self):
        """14 standardized days at 8,000 and 16 at 18,000."""
        resolved = resolve(make_employment(), "2025-08")

        assert resolved.is_blended
        assert resolved.total == Decimal("13333.33")
        probation, post = resolved.segments
        assert probation.tier == SalaryTier.PROBATION
        assert probation.end == date(2025, 8, 14)
        assert probation.standard_days == 14
        assert probation.amount == Decimal("3733.33")
        assert post.tier == SalaryTier.POST_PROBATION
        assert post.start == date(2025, 8, 15)
        assert post.standard_days == 16
        assert post.amount == Decimal("9600.00")
        assert resolved.tier == SalaryTier.POST_PROBATION

    def test_full_probation_month(self):
        resolved = resolve(make_employment(), "2025-07")

        assert not resolved.is_blended
        assert resolved.total == Decimal("8000.00")

    def test_full_post_probation_month(self):
        resolved = resolve(make_employment(), "2025-09")

        assert resolved.total == Decimal("18000.00")

    def test_completion_on_first_of_month_is_not_blended(self):
        employment = make_employment(probation_end_date=date(2025, 9, 1))

        resolved = resolve(employment, "2025-09")

        assert not resolved.is_blended
        assert resolved.total == Decimal("18000.00")

    @pytest.mark.parametrize("label", ["2025-02", "2024-02", "2025-07", "2025-09"])
    def test_full_month_is_one_monthly_salary(self, label):
        """Short and long months both pay exactly one month."""
        employment = make_employment(
            start_date=date(2024, 1, 1), probation_end_date=None, probation_salary=None
        )

        resolved = resolve(employment, label)

        assert resolved.total == Decimal("18000.00")
        assert resolved.standard_days == 30

    def test_mid_month_start_is_pro_rated(self):
        """Joining on the 16th of a 30-day month pays 15 standardized days."""
        employment = make_employment(start_date=date(2025, 6, 16))

        resolved = resolve(employment, "2025-06")

        assert resolved.standard_days == 15
        assert resolved.total == Decimal("4000.00")

    def test_mid_month_end_is_pro_rated(self):
        employment = make_employment(
            probation_end_date=None, probation_salary=None, end_date=date(2025, 9, 10)
        )

        resolved = resolve(employment, "2025-09")

        assert resolved.standard_days == 10
        assert resolved.total == Decimal("6000.00")

    def test_last_day_of_february_absorbs_remaining_days(self):
        employment = make_employment(
            start_date=date(2025, 2, 15), probation_end_date=None, probation_salary=None
        )

        resolved = resolve(employment, "2025-02")

        assert resolved.standard_days == 16
        assert resolved.total == Decimal("9600.00")

    def test_period_before_start_is_zero(self):
        resolved = resolve(make_employment(), "2025-05")

        assert resolved.total == Decimal("0")
        assert resolved.segments == ()

    def test_split_segments_cover_the_whole_month(self):
        """Continuity: the two tiers add up to one standardized month."""
        for completion_day in (2, 10, 15, 28, 31):
            employment = make_employment(
                start_date=date(2025, 1, 1), probation_end_date=date(2025, 7, completion_day)
            )
            resolved = resolve(employment, "2025-07")
            assert resolved.standard_days == 30

    def test_end_before_start_raises(self):
        with pytest.raises(ValueError):
            SalaryResolver().resolve_for_period(
                make_employment(), date(2025, 8, 31), date(2025, 8, 1)
            )


AUGUST_COMPLETION_DATES = [date(2025, 7, 31) + timedelta(days=n) for n in range(33)]

# One standardized day moved from the post-probation to the probation rate,
# plus a cent of rounding on each of the two segments
MAX_DAILY_STEP = (Decimal("18000") - Decimal("8000")) / 30 + Decimal("0.02")


class TestCompletionDateContinuity:
    """Moving the completion date by one day moves August's salary by one day's worth."""

    @pytest.mark.parametrize(
        "completion", AUGUST_COMPLETION_DATES[1:], ids=lambda d: d.isoformat()
    )
    def test_one_day_later_changes_total_by_at_most_one_day(self, completion):
        earlier = resolve(make_employment(probation_end_date=completion - timedelta(days=1)), "2025-08")
        later = resolve(make_employment(probation_end_date=completion), "2025-08")

        assert later.total <= earlier.total
        assert earlier.total - later.total <= MAX_DAILY_STEP

    @pytest.mark.parametrize("completion", [date(2025, 7, 31), date(2025, 8, 1)])
    def test_completed_by_first_day_pays_post_probation_salary(self, completion):
        resolved = resolve(make_employment(probation_end_date=completion), "2025-08")

        assert resolved.total == Decimal("18000.00")
        assert not resolved.is_blended

    @pytest.mark.parametrize("completion", [date(2025, 8, 31), date(2025, 9, 1)])
    def test_completed_after_last_day_pays_probation_salary(self, completion):
        assert resolve(make_employment(probation_end_date=completion), "2025-08").total == Decimal(
            "8000.00"
        )

    def test_sweep_covers_both_pure_months(self):
        totals = [
            resolve(make_employment(probation_end_date=d), "2025-08").total
            for d in AUGUST_COMPLETION_DATES
        ]

        assert totals[0] == Decimal("18000.00")
        assert totals[-1] == Decimal("8000.00")
        assert totals == sorted(totals, reverse=True)


class TestStandardDays:
    def test_thirty_first_shares_thirtieth_slot(self):
        resolver = SalaryResolver()

        assert resolver.standard_days(date(2025, 7, 31), date(2025, 7, 31)) == 0
        assert resolver.standard_days(date(2025, 7, 30), date(2025, 7, 31)) == 1

    def test_range_across_months_rejected(self):
        with pytest.raises(ValueError):
            SalaryResolver().standard_days(date(2025, 7, 20), date(2025, 8, 5))

    def test_standard_month_must_cover_a_short_month(self):
        with pytest.raises(ValueError):
            SalaryResolver(standard_month_days=27)
