"""Tests for payroll component helpers."""

from datetime import date
from decimal import Decimal

import pytest

from hr_payroll.calculators.components import ComponentBuilder
from hr_payroll.calculators.types import PayrollComponents


class TestRounding:
    def test_round_half_up(self):
        assert ComponentBuilder.round_to_cents(Decimal("10.005")) == Decimal("10.01")
        assert ComponentBuilder.round_to_cents(Decimal("10.004")) == Decimal("10.00")

    def test_percent_of(self):
        assert ComponentBuilder.percent_of(Decimal("10800"), Decimal("7.5")) == Decimal("810.00")


class TestApportion:
    """Splitting an amount across weights without losing a cent."""

    def test_equal_thirds(self):
        parts = ComponentBuilder.apportion(Decimal("100.00"), [Decimal("1")] * 3)

        assert parts == [Decimal("33.34"), Decimal("33.33"), Decimal("33.33")]

    def test_largest_remainder_gets_the_cent(self):
        parts = ComponentBuilder.apportion(Decimal("13333.33"), [Decimal("0.6"), Decimal("0.4")])

        assert parts == [Decimal("8000.00"), Decimal("5333.33")]

    @pytest.mark.parametrize(
        "total,weights",
        [
            ("3541.67", ["0.6", "0.4"]),
            ("0.05", ["0.25", "0.25", "0.25", "0.25"]),
            ("1716.67", ["0.3333", "0.3333", "0.3334"]),
            ("9999.99", ["7", "11", "13"]),
        ],
    )
    def test_parts_sum_to_total(self, total, weights):
        parts = ComponentBuilder.apportion(Decimal(total), [Decimal(w) for w in weights])

        assert sum(parts) == Decimal(total)
        assert all(p >= 0 for p in parts)

    def test_empty_weights(self):
        assert ComponentBuilder.apportion(Decimal("10"), []) == []

    def test_zero_weights_rejected(self):
        with pytest.raises(ValueError):
            ComponentBuilder.apportion(Decimal("10"), [Decimal("0"), Decimal("0")])


class TestHealthWelfare:
    @pytest.mark.parametrize(
        "salary,expected",
        [
            ("4000", "60"),
            ("5000", "60"),
            ("5000.01", "100"),
            ("15000", "100"),
            ("18000", "150"),
        ],
    )
    def test_employee_tiers(self, salary, expected):
        assert ComponentBuilder.health_welfare_employee(Decimal(salary)) == Decimal(expected)

    def test_employer_matches_for_eligible_category(self):
        amount = ComponentBuilder.health_welfare_employer(Decimal("150"), "expat", employer_pays=True)

        assert amount == Decimal("150")

    def test_employer_does_not_match_local_staff(self):
        amount = ComponentBuilder.health_welfare_employer(
            Decimal("150"), "local_id", employer_pays=True
        )

        assert amount == Decimal("0")

    def test_employer_flag_required(self):
        amount = ComponentBuilder.health_welfare_employer(
            Decimal("150"), "non_local_id", employer_pays=False
        )

        assert amount == Decimal("0")


class TestServiceAndAccruals:
    def test_service_months(self):
        assert ComponentBuilder.service_months(date(2025, 1, 15), date(2025, 7, 14)) == 5
        assert ComponentBuilder.service_months(date(2025, 1, 15), date(2025, 7, 15)) == 6
        assert ComponentBuilder.service_months(date(2025, 8, 1), date(2025, 7, 31)) == 0

    def test_thirteenth_month_needs_six_months(self):
        assert ComponentBuilder.thirteenth_month_accrual(
            Decimal("12000"), date(2025, 6, 1), date(2025, 8, 31)
        ) == Decimal("0")
        assert ComponentBuilder.thirteenth_month_accrual(
            Decimal("12000"), date(2025, 1, 1), date(2025, 8, 31)
        ) == Decimal("1000.00")

    def test_months_worked_in_year(self):
        assert ComponentBuilder.months_worked_in_year(date(2024, 3, 1), 2025) == 12
        assert ComponentBuilder.months_worked_in_year(date(2025, 6, 20), 2025) == 7
        assert ComponentBuilder.months_worked_in_year(date(2026, 1, 1), 2025) == 0

    @pytest.mark.parametrize(
        "start, end, expected",
        [
            (date(2025, 6, 1), date(2025, 7, 10), 2),
            (date(2024, 3, 1), date(2025, 4, 30), 4),
            (date(2024, 3, 1), date(2024, 12, 31), 0),
            (date(2025, 6, 1), date(2026, 2, 28), 7),
            (date(2025, 9, 30), date(2025, 9, 30), 1),
        ],
    )
    def test_months_worked_stops_at_end_date(self, start, end, expected):
        assert ComponentBuilder.months_worked_in_year(start, 2025, end) == expected


class TestValidateComponents:
    def test_valid_components(self):
        components = PayrollComponents(
            gross_salary=Decimal("8000"),
            gross_salary_by_fte=Decimal("8000"),
            employee_social_security=Decimal("400"),
        )

        assert ComponentBuilder.validate_components(components) == []

    def test_negative_net_reported(self):
        components = PayrollComponents(
            gross_salary_by_fte=Decimal("100"),
            income_tax=Decimal("150"),
        )

        errors = ComponentBuilder.validate_components(components)

        assert any("net salary" in e for e in errors)

    def test_negative_amount_reported(self):
        components = PayrollComponents(salary_bonus=Decimal("-1"))

        errors = ComponentBuilder.validate_components(components)

        assert any("salary_bonus" in e for e in errors)
