"""Payroll calculation engine - per-employment orchestrator."""

from __future__ import annotations

import hashlib
import json
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import TYPE_CHECKING, Any, Sequence
from uuid import UUID

from hr_payroll.calculators.components import ComponentBuilder
from hr_payroll.calculators.salary_resolver import SalaryResolver
from hr_payroll.calculators.tax_calculator import TaxCalculator, TaxSettingKey
from hr_payroll.calculators.types import (
    ZERO,
    AllocationPayroll,
    EmployeeTaxProfile,
    IncomeTaxResult,
    PayPeriod,
    PayrollComponents,
    ResolvedSalary,
    SalaryComponents,
    TaxRules,
)
from hr_payroll.errors import FteSumError, InvariantViolationError, NoActiveAllocationError
from hr_payroll.models.enums import ResidencyStatus

if TYPE_CHECKING:
    from hr_payroll.models import Employee, Employment, FundingAllocation

logger = logging.getLogger(__name__)


@dataclass
class EmploymentPayroll:
    """Result of calculating one employment for one pay period."""

    employment_id: UUID
    employee_id: UUID
    period: PayPeriod
    resolved: ResolvedSalary
    income_tax: IncomeTaxResult
    allocations: list[AllocationPayroll]
    inputs_fingerprint: str
    calculation_id: UUID

    @property
    def total_gross(self) -> Decimal:
        return sum((a.components.gross_salary_by_fte for a in self.allocations), ZERO)

    @property
    def total_net(self) -> Decimal:
        return sum((a.components.net_salary for a in self.allocations), ZERO)

    @property
    def total_income_tax(self) -> Decimal:
        return sum((a.components.income_tax for a in self.allocations), ZERO)


class PayrollEngine:
    """Calculates payroll for one employment and one calendar month.

    Calculation pipeline (stable order):
    1) Select the allocation generation in force and verify its FTE sums to 1.0
    2) Resolve the (possibly blended) salary for the period
    3) Split the salary into per-allocation gross shares
    4) Per share: 13th-month accrual, bonus, provident/saving fund,
       social security, health welfare
    5) Compute income tax once for the whole employment
    6) Apportion the tax across shares by gross
    7) Validate every record (no negative amounts, net = income - deductions)

    The engine touches no database; the caller loads inputs and persists output.
    """

    def __init__(
        self,
        tax_rules: TaxRules,
        engine_version: str,
        standard_month_days: int = 30,
        fte_tolerance: Decimal = Decimal("0.0001"),
    ):
        self.tax_rules = tax_rules
        self.engine_version = engine_version
        self.fte_tolerance = fte_tolerance
        self.salary_resolver = SalaryResolver(standard_month_days)
        self.tax_calculator = TaxCalculator(tax_rules)

    def calculate(
        self,
        employee: Employee,
        employment: Employment,
        allocations: Sequence[FundingAllocation],
        period: PayPeriod,
        bonus: Decimal = ZERO,
    ) -> EmploymentPayroll:
        """Calculate one payroll record per allocation in force for the period.

        Raises:
            NoActiveAllocationError: No allocation covers a paid day of the period
            FteSumError: The allocations in force do not sum to one FTE
            InvariantViolationError: A computed record has negative amounts
        """
        # 1) Allocation generation in force for the period
        in_period = self.allocations_in_force(employment, allocations, period)
        if not in_period:
            raise NoActiveAllocationError(employment.employment_id, period.label)
        self.verify_fte_sum(employment.employment_id, in_period)

        # 2) Salary for the period
        resolved = self.salary_resolver.resolve_for_period(employment, period.start, period.end)

        # 3) Gross share per allocation
        shares = self._gross_shares(resolved, in_period)
        employment_gross = sum(shares, ZERO)

        # 4) Per-share components
        bonus_shares = self._split(ComponentBuilder.round_to_cents(bonus), shares)
        hw_employee_total = ZERO
        if employment.health_welfare_enrolled and employment_gross > 0:
            hw_employee_total = ComponentBuilder.health_welfare_employee(employment_gross)
        hw_employer_total = ComponentBuilder.health_welfare_employer(
            hw_employee_total,
            employee.residency_status,
            employment.employer_pays_health_welfare,
        )
        hw_employee_shares = self._split(hw_employee_total, shares)
        hw_employer_shares = self._split(hw_employer_total, shares)

        fund_key, fund_field = self._fund_for(employee, employment, period)
        results: list[AllocationPayroll] = []
        for index, allocation in enumerate(in_period):
            share = shares[index]
            components = PayrollComponents(
                gross_salary=resolved.total,
                gross_salary_by_fte=share,
                thirteenth_month_salary=ComponentBuilder.thirteenth_month_accrual(
                    share, employment.start_date, period.end
                ),
                salary_bonus=bonus_shares[index],
                employee_health_welfare=hw_employee_shares[index],
                employer_health_welfare=hw_employer_shares[index],
            )
            if fund_key is not None:
                setattr(
                    components,
                    fund_field,
                    ComponentBuilder.percent_of(share, self.tax_rules.get(fund_key)),
                )
            cap_share = share / employment_gross if employment_gross > 0 else Decimal("1")
            social_security = self.tax_calculator.compute_social_security(share, cap_share)
            components.employee_social_security = social_security.employee
            components.employer_social_security = social_security.employer
            results.append(
                AllocationPayroll(
                    funding_allocation_id=allocation.funding_allocation_id,
                    funding_source_id=allocation.funding_source_id,
                    fte=Decimal(allocation.fte),
                    components=components,
                )
            )

        # 5) Whole-employment income tax
        profile = EmployeeTaxProfile(
            has_spouse=employee.has_spouse,
            children=employee.children_count,
            eligible_parents=employee.eligible_parents_count,
        )
        income_tax = self.tax_calculator.compute_income_tax(
            profile,
            monthly_gross=employment_gross,
            months_worked=ComponentBuilder.months_worked_in_year(
                employment.start_date, period.year, employment.end_date
            ),
            monthly_components=SalaryComponents(
                social_security=sum((r.components.employee_social_security for r in results), ZERO),
                provident_fund=sum((r.components.pvd for r in results), ZERO),
                saving_fund=sum((r.components.saving_fund for r in results), ZERO),
            ),
        )

        # 6) Apportion tax by gross share
        for result, tax_share in zip(results, self._split(income_tax.monthly_tax, shares)):
            result.components.income_tax = tax_share

        # 7) Validate
        for result in results:
            errors = ComponentBuilder.validate_components(result.components)
            if errors:
                context = {
                    "employment_id": str(employment.employment_id),
                    "funding_allocation_id": str(result.funding_allocation_id),
                    "period": period.label,
                    "components": result.components.to_canonical_dict(),
                }
                logger.error(
                    "Invalid payroll for employment %s in %s: %s",
                    employment.employment_id,
                    period.label,
                    "; ".join(errors),
                    extra={"context": context},
                )
                raise InvariantViolationError("; ".join(errors), context)

        fingerprint = self._compute_inputs_fingerprint(employee, employment, in_period, period, bonus)
        return EmploymentPayroll(
            employment_id=employment.employment_id,
            employee_id=employment.employee_id,
            period=period,
            resolved=resolved,
            income_tax=income_tax,
            allocations=results,
            inputs_fingerprint=fingerprint,
            calculation_id=self._generate_calculation_id(employment.employment_id, period, fingerprint),
        )

    @staticmethod
    def allocations_in_force(
        employment: Employment,
        allocations: Sequence[FundingAllocation],
        period: PayPeriod,
    ) -> list[FundingAllocation]:
        """The one allocation generation that pays the period, whatever its status now.

        Rows are picked by validity interval, not status: a month before a
        transition is paid from the historical rows, a leaver's last month from
        the terminated ones. The generation is the set of rows valid on the last
        paid day of the period; if none is, the latest-starting rows that overlap
        the period.
        """
        last_paid = period.end
        if employment.end_date is not None and employment.end_date < last_paid:
            last_paid = employment.end_date
        if last_paid < period.start:
            return []

        overlapping = sorted(
            (
                a
                for a in allocations
                if a.employment_id == employment.employment_id
                and a.overlaps(period.start, last_paid)
            ),
            key=lambda a: (a.start_date, str(a.funding_allocation_id)),
        )
        in_force = [a for a in overlapping if a.is_valid_on(last_paid)]
        if in_force or not overlapping:
            return in_force
        latest_start = overlapping[-1].start_date
        return [a for a in overlapping if a.start_date == latest_start]

    def verify_fte_sum(
        self, employment_id: UUID, active: Sequence[FundingAllocation]
    ) -> Decimal:
        """Raise FteSumError unless the FTE of one allocation generation is 1.0 within tolerance."""
        total = sum((Decimal(a.fte) for a in active), ZERO)
        if abs(total - Decimal("1")) > self.fte_tolerance:
            context = {"allocations": {str(a.funding_allocation_id): str(a.fte) for a in active}}
            logger.error(
                "FTE sum %s for employment %s is not 1.0",
                total,
                employment_id,
                extra={"context": context},
            )
            raise FteSumError(employment_id, total, context=context)
        return total

    def _gross_shares(
        self, resolved: ResolvedSalary, allocations: Sequence[FundingAllocation]
    ) -> list[Decimal]:
        """Salary share per allocation, in allocation order.

        Allocations without an explicit amount split the resolved salary by FTE.
        An explicit amount is a monthly figure, scaled by the standardized days
        the period actually covers.
        """
        standard = Decimal(self.salary_resolver.standard_month_days)
        coverage = Decimal(resolved.standard_days) / standard

        shares: list[Decimal] = [ZERO] * len(allocations)
        derived = [i for i, a in enumerate(allocations) if not a.amount_overridden]
        if derived:
            pool_fte = sum((Decimal(allocations[i].fte) for i in derived), ZERO)
            pool = ComponentBuilder.round_to_cents(resolved.total * pool_fte)
            parts = self._split(pool, [Decimal(allocations[i].fte) for i in derived])
            for i, part in zip(derived, parts):
                shares[i] = part
        for i, allocation in enumerate(allocations):
            if allocation.amount_overridden:
                shares[i] = ComponentBuilder.round_to_cents(
                    Decimal(allocation.allocated_amount) * coverage
                )
        return shares

    def _fund_for(
        self, employee: Employee, employment: Employment, period: PayPeriod
    ) -> tuple[str | None, str]:
        """Which savings fund applies, if any: (rate setting key, component field)."""
        passed = employment.probation_end_date is None or employment.probation_end_date <= period.end
        if not passed:
            return None, ""
        if employee.residency_status == ResidencyStatus.LOCAL_ID.value and employment.pvd_enrolled:
            return TaxSettingKey.PVD_FUND_RATE, "pvd"
        if (
            employee.residency_status == ResidencyStatus.LOCAL_NON_ID.value
            and employment.saving_fund_enrolled
        ):
            return TaxSettingKey.SAVING_FUND_RATE, "saving_fund"
        return None, ""

    @staticmethod
    def _split(total: Decimal, weights: Sequence[Decimal]) -> list[Decimal]:
        if total == 0 or sum(weights, ZERO) <= 0:
            return [ZERO] * len(weights)
        return ComponentBuilder.apportion(total, weights)

    def _compute_inputs_fingerprint(
        self,
        employee: Employee,
        employment: Employment,
        allocations: Sequence[FundingAllocation],
        period: PayPeriod,
        bonus: Decimal,
    ) -> str:
        """Compute a stable hash of everything the calculation depends on."""
        data: dict[str, Any] = {
            "period": period.label,
            "bonus": str(bonus),
            "employee": {
                "marital_status": employee.marital_status,
                "children": employee.children_count,
                "parents": employee.eligible_parents_count,
                "residency_status": employee.residency_status,
            },
            "employment": {
                "start_date": employment.start_date.isoformat(),
                "end_date": employment.end_date.isoformat() if employment.end_date else None,
                "probation_end_date": (
                    employment.probation_end_date.isoformat()
                    if employment.probation_end_date
                    else None
                ),
                "probation_salary": (
                    str(employment.probation_salary) if employment.probation_salary is not None else None
                ),
                "post_probation_salary": str(employment.post_probation_salary),
                "pvd": employment.pvd_enrolled,
                "saving_fund": employment.saving_fund_enrolled,
                "health_welfare": employment.health_welfare_enrolled,
                "employer_health_welfare": employment.employer_pays_health_welfare,
            },
            "allocations": [
                {
                    "id": str(a.funding_allocation_id),
                    "fte": str(a.fte),
                    "amount": str(a.allocated_amount),
                    "overridden": a.amount_overridden,
                }
                for a in allocations
            ],
            "tax_rules": {
                "year": self.tax_rules.year,
                "brackets": [
                    [str(b.min_amount), str(b.max_amount), str(b.rate)] for b in self.tax_rules.brackets
                ],
                "settings": {k: str(v) for k, v in sorted(self.tax_rules.settings.items())},
            },
        }
        json_str = json.dumps(data, sort_keys=True)
        return hashlib.sha256(json_str.encode()).hexdigest()

    def _generate_calculation_id(
        self, employment_id: UUID, period: PayPeriod, inputs_fingerprint: str
    ) -> UUID:
        """Generate deterministic calculation ID."""
        data = {
            "employment_id": str(employment_id),
            "period": period.label,
            "engine_version": self.engine_version,
            "inputs_fingerprint": inputs_fingerprint,
        }
        json_str = json.dumps(data, sort_keys=True)
        hash_bytes = hashlib.sha256(json_str.encode()).digest()
        return UUID(bytes=hash_bytes[:16])
