"""Tests for the per-employment payroll engine."""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from hr_payroll.calculators.engine import PayrollEngine
from hr_payroll.calculators.types import PayPeriod
from hr_payroll.errors import FteSumError, NoActiveAllocationError
from hr_payroll.models import Employee, Employment, FundingAllocation


def make_employee(**overrides) -> Employee:
    values = {
        "employee_id": uuid4(),
        "staff_id": "STF-0100",
        "first_name": "Vanna",
        "last_name": "Chea",
        "marital_status": "single",
        "residency_status": "local_id",
        "children_count": 0,
        "eligible_parents_count": 0,
    }
    values.update(overrides)
    return Employee(**values)


def make_employment(employee: Employee, **overrides) -> Employment:
    values = {
        "employment_id": uuid4(),
        "employee_id": employee.employee_id,
        "start_date": date(2025, 6, 1),
        "probation_end_date": date(2025, 8, 15),
        "probation_salary": Decimal("8000"),
        "post_probation_salary": Decimal("18000"),
        "pvd_enrolled": False,
        "saving_fund_enrolled": False,
        "health_welfare_enrolled": False,
        "employer_pays_health_welfare": False,
    }
    values.update(overrides)
    return Employment(**values)


def make_allocation(employment: Employment, fte: str, **overrides) -> FundingAllocation:
    values = {
        "funding_allocation_id": uuid4(),
        "employee_id": employment.employee_id,
        "employment_id": employment.employment_id,
        "funding_source_id": uuid4(),
        "allocation_type": "grant",
        "fte": Decimal(fte),
        "allocated_amount": Decimal("0"),
        "amount_overridden": False,
        "salary_tier": "post_probation",
        "status": "active",
        "start_date": date(2025, 8, 15),
    }
    values.update(overrides)
    return FundingAllocation(**values)


@pytest.fixture
def engine(tax_rules) -> PayrollEngine:
    return PayrollEngine(tax_rules, engine_version="test")


class TestSplitAllocations:
    """Blended month across a 60/40 split."""

    def test_gross_shares(self, engine):
        employee = make_employee()
        employment = make_employment(employee)
        allocations = [make_allocation(employment, "0.6"), make_allocation(employment, "0.4")]

        payroll = engine.calculate(employee, employment, allocations, PayPeriod(2025, 8))

        assert payroll.resolved.total == Decimal("13333.33")
        assert [a.components.gross_salary_by_fte for a in payroll.allocations] == [
            Decimal("8000.00"),
            Decimal("5333.33"),
        ]
        assert payroll.total_gross == Decimal("13333.33")
        assert all(a.components.gross_salary == Decimal("13333.33") for a in payroll.allocations)

    def test_income_tax_apportioned_exactly(self, engine):
        employee = make_employee()
        employment = make_employment(employee, start_date=date(2024, 1, 1), probation_end_date=None,
                                     probation_salary=None, post_probation_salary=Decimal("50000"))
        allocations = [
            make_allocation(employment, "0.6", start_date=date(2024, 1, 1)),
            make_allocation(employment, "0.4", start_date=date(2024, 1, 1)),
        ]

        payroll = engine.calculate(employee, employment, allocations, PayPeriod(2025, 3))

        assert payroll.income_tax.monthly_tax == Decimal("1716.67")
        assert payroll.total_income_tax == payroll.income_tax.monthly_tax
        assert [a.components.income_tax for a in payroll.allocations] == [
            Decimal("1030.00"),
            Decimal("686.67"),
        ]

    def test_split_does_not_change_total_tax(self, engine):
        """Tax is computed on the whole employment, not per allocation."""
        employee = make_employee()
        employment = make_employment(employee)
        whole = engine.calculate(
            employee, employment, [make_allocation(employment, "1")], PayPeriod(2025, 9)
        )
        split = engine.calculate(
            employee,
            employment,
            [make_allocation(employment, "0.3"), make_allocation(employment, "0.7")],
            PayPeriod(2025, 9),
        )

        assert split.total_income_tax == whole.total_income_tax
        assert split.total_net == whole.total_net

    def test_social_security_capped_across_allocations(self, engine):
        employee = make_employee()
        employment = make_employment(employee, probation_end_date=None, probation_salary=None,
                                     post_probation_salary=Decimal("40000"))
        allocations = [
            make_allocation(employment, "0.5", start_date=date(2025, 6, 1)),
            make_allocation(employment, "0.5", start_date=date(2025, 6, 1)),
        ]

        payroll = engine.calculate(employee, employment, allocations, PayPeriod(2025, 7))

        total = sum(a.components.employee_social_security for a in payroll.allocations)
        assert total == Decimal("750.00")

    def test_net_identity(self, engine):
        employee = make_employee()
        employment = make_employment(employee, health_welfare_enrolled=True)
        allocations = [make_allocation(employment, "0.6"), make_allocation(employment, "0.4")]

        payroll = engine.calculate(
            employee, employment, allocations, PayPeriod(2025, 8), bonus=Decimal("1000")
        )

        for item in payroll.allocations:
            c = item.components
            assert c.net_salary == c.total_income - c.total_deduction
            assert c.net_salary >= 0
        assert sum(a.components.salary_bonus for a in payroll.allocations) == Decimal("1000.00")
        assert sum(a.components.employee_health_welfare for a in payroll.allocations) == Decimal("100")


class TestFunds:
    """Provident and saving funds start once probation has completed."""

    def test_no_provident_fund_during_probation(self, engine):
        employee = make_employee()
        employment = make_employment(employee, pvd_enrolled=True)
        allocations = [make_allocation(employment, "1", start_date=date(2025, 6, 1), salary_tier="probation")]

        payroll = engine.calculate(employee, employment, allocations, PayPeriod(2025, 7))

        assert payroll.allocations[0].components.pvd == Decimal("0")

    def test_provident_fund_after_probation(self, engine):
        employee = make_employee()
        employment = make_employment(employee, pvd_enrolled=True)
        allocations = [make_allocation(employment, "1")]

        payroll = engine.calculate(employee, employment, allocations, PayPeriod(2025, 9))

        assert payroll.allocations[0].components.pvd == Decimal("1350.00")
        assert payroll.allocations[0].components.saving_fund == Decimal("0")

    def test_saving_fund_for_local_non_id(self, engine):
        employee = make_employee(residency_status="local_non_id")
        employment = make_employment(employee, saving_fund_enrolled=True, pvd_enrolled=True)
        allocations = [make_allocation(employment, "1")]

        payroll = engine.calculate(employee, employment, allocations, PayPeriod(2025, 9))

        assert payroll.allocations[0].components.saving_fund == Decimal("1350.00")
        assert payroll.allocations[0].components.pvd == Decimal("0")


class TestPreconditions:
    def test_fte_must_sum_to_one(self, engine):
        employee = make_employee()
        employment = make_employment(employee)
        allocations = [make_allocation(employment, "0.6"), make_allocation(employment, "0.3")]

        with pytest.raises(FteSumError) as exc_info:
            engine.calculate(employee, employment, allocations, PayPeriod(2025, 9))

        assert exc_info.value.actual == Decimal("0.9")

    def test_allocation_closed_before_period(self, engine):
        employee = make_employee()
        employment = make_employment(employee)
        allocations = [
            make_allocation(employment, "1", status="historical", end_date=date(2025, 8, 31))
        ]

        with pytest.raises(NoActiveAllocationError):
            engine.calculate(employee, employment, allocations, PayPeriod(2025, 9))

    def test_employment_ended_before_period(self, engine):
        employee = make_employee()
        employment = make_employment(employee, end_date=date(2025, 8, 20))
        allocations = [make_allocation(employment, "1", status="terminated", end_date=date(2025, 8, 20))]

        with pytest.raises(NoActiveAllocationError):
            engine.calculate(employee, employment, allocations, PayPeriod(2025, 9))

    def test_allocation_starting_after_period(self, engine):
        employee = make_employee()
        employment = make_employment(employee)
        allocations = [make_allocation(employment, "1", start_date=date(2025, 10, 1))]

        with pytest.raises(NoActiveAllocationError):
            engine.calculate(employee, employment, allocations, PayPeriod(2025, 9))


class TestDeterminism:
    def test_same_inputs_same_calculation_id(self, engine):
        employee = make_employee()
        employment = make_employment(employee)
        allocations = [make_allocation(employment, "0.6"), make_allocation(employment, "0.4")]

        first = engine.calculate(employee, employment, allocations, PayPeriod(2025, 8))
        second = engine.calculate(employee, employment, allocations, PayPeriod(2025, 8))

        assert first.calculation_id == second.calculation_id
        assert first.inputs_fingerprint == second.inputs_fingerprint

    def test_changed_inputs_change_calculation_id(self, engine):
        employee = make_employee()
        employment = make_employment(employee)
        allocations = [make_allocation(employment, "1")]

        base = engine.calculate(employee, employment, allocations, PayPeriod(2025, 9))
        with_bonus = engine.calculate(
            employee, employment, allocations, PayPeriod(2025, 9), bonus=Decimal("500")
        )
        employee.children_count = 2
        with_children = engine.calculate(employee, employment, allocations, PayPeriod(2025, 9))

        assert len({base.calculation_id, with_bonus.calculation_id, with_children.calculation_id}) == 3

    def test_engine_version_is_part_of_identity(self, tax_rules):
        employee = make_employee()
        employment = make_employment(employee)
        allocations = [make_allocation(employment, "1")]

        v1 = PayrollEngine(tax_rules, "1.0.0").calculate(employee, employment, allocations, PayPeriod(2025, 9))
        v2 = PayrollEngine(tax_rules, "1.1.0").calculate(employee, employment, allocations, PayPeriod(2025, 9))

        assert v1.inputs_fingerprint == v2.inputs_fingerprint
        assert v1.calculation_id != v2.calculation_id


class TestAllocationsInForce:
    """Which allocation rows pay a month, by validity interval rather than status."""

    def probation_and_successors(self, employment):
        probation = [
            make_allocation(
                employment,
                fte,
                status="historical",
                salary_tier="probation",
                start_date=date(2025, 6, 1),
                end_date=date(2025, 8, 14),
            )
            for fte in ("0.6", "0.4")
        ]
        successors = [
            make_allocation(
                employment,
                old.fte,
                funding_source_id=old.funding_source_id,
                start_date=date(2025, 8, 15),
            )
            for old in probation
        ]
        return probation, successors

    def test_month_before_transition_paid_from_historical_rows(self, engine):
        employee = make_employee()
        employment = make_employment(employee)
        probation, successors = self.probation_and_successors(employment)

        payroll = engine.calculate(employee, employment, probation + successors, PayPeriod(2025, 7))

        assert {a.funding_allocation_id for a in payroll.allocations} == {
            a.funding_allocation_id for a in probation
        }
        assert payroll.resolved.total == Decimal("8000.00")
        assert payroll.total_gross == Decimal("8000.00")

    def test_transition_month_counts_one_generation(self, engine):
        employee = make_employee()
        employment = make_employment(employee)
        probation, successors = self.probation_and_successors(employment)

        payroll = engine.calculate(employee, employment, probation + successors, PayPeriod(2025, 8))

        assert {a.funding_allocation_id for a in payroll.allocations} == {
            a.funding_allocation_id for a in successors
        }
        assert payroll.total_gross == Decimal("13333.33")

    def test_leaver_last_month_paid_from_terminated_rows(self, engine):
        employee = make_employee()
        employment = make_employment(employee, end_date=date(2025, 7, 10))
        allocations = [
            make_allocation(
                employment,
                fte,
                status="terminated",
                salary_tier="probation",
                start_date=date(2025, 6, 1),
                end_date=date(2025, 7, 10),
            )
            for fte in ("0.6", "0.4")
        ]

        payroll = engine.calculate(employee, employment, allocations, PayPeriod(2025, 7))

        # 10 of 30 standardized days at the probation salary
        assert payroll.resolved.total == Decimal("2666.67")
        assert len(payroll.allocations) == 2
        assert payroll.income_tax.months_worked == 2
