"""Income tax and statutory contribution calculation.

All methods are pure functions of their inputs and a TaxRules snapshot; the
snapshot is loaded once per tax year by TaxRulesStore.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import Iterable

from hr_payroll.calculators.types import (
    ZERO,
    BracketRule,
    BracketTax,
    DeductionBreakdown,
    EmployeeTaxProfile,
    IncomeTaxResult,
    ProgressiveTax,
    SalaryComponents,
    SocialSecurityContribution,
    TaxRules,
)

CENTS = Decimal("0.01")
HUNDRED = Decimal("100")
MONTHS_PER_YEAR = 12


class TaxSettingKey:
    """Setting keys read from the year's tax settings."""

    EMPLOYMENT_DEDUCTION_RATE = "EMPLOYMENT_DEDUCTION_RATE"
    EMPLOYMENT_DEDUCTION_MAX = "EMPLOYMENT_DEDUCTION_MAX"
    PERSONAL_ALLOWANCE = "PERSONAL_ALLOWANCE"
    SPOUSE_ALLOWANCE = "SPOUSE_ALLOWANCE"
    CHILD_ALLOWANCE = "CHILD_ALLOWANCE"
    PARENT_ALLOWANCE = "PARENT_ALLOWANCE"
    SSF_RATE = "SSF_RATE"
    SSF_EMPLOYER_RATE = "SSF_EMPLOYER_RATE"
    SSF_MAX_MONTHLY = "SSF_MAX_MONTHLY"
    SSF_MAX_ANNUAL_DEDUCTION = "SSF_MAX_ANNUAL_DEDUCTION"
    PVD_FUND_RATE = "PVD_FUND_RATE"
    PVD_FUND_MAX = "PVD_FUND_MAX"
    SAVING_FUND_RATE = "SAVING_FUND_RATE"
    SAVING_FUND_MAX = "SAVING_FUND_MAX"


def _cents(amount: Decimal) -> Decimal:
    return amount.quantize(CENTS, rounding=ROUND_HALF_UP)


def _capped(amount: Decimal, cap: Decimal | None) -> Decimal:
    if cap is None:
        return amount
    return min(amount, cap)


class TaxCalculator:
    """Applies the deduction stack and progressive brackets for one tax year."""

    def __init__(self, rules: TaxRules):
        self.rules = rules

    def _setting(self, key: str) -> Decimal | None:
        return self.rules.settings.get(key)

    def compute_deductions(
        self,
        profile: EmployeeTaxProfile,
        gross_annual_income: Decimal,
        salary_components: SalaryComponents,
    ) -> DeductionBreakdown:
        """Apply the deduction stack to gross annual income.

        Order: employment-expense deduction (rate x income, capped), personal
        allowance, spouse allowance, per-child allowance, per-parent allowance,
        then contributions already withheld up to their caps.
        """
        income = max(ZERO, gross_annual_income)
        rate = self._setting(TaxSettingKey.EMPLOYMENT_DEDUCTION_RATE) or ZERO
        employment_deduction = _capped(
            income * rate / HUNDRED,
            self._setting(TaxSettingKey.EMPLOYMENT_DEDUCTION_MAX),
        )

        personal = self._setting(TaxSettingKey.PERSONAL_ALLOWANCE) or ZERO
        spouse = (self._setting(TaxSettingKey.SPOUSE_ALLOWANCE) or ZERO) if profile.has_spouse else ZERO
        child = (self._setting(TaxSettingKey.CHILD_ALLOWANCE) or ZERO) * max(0, profile.children)
        parent = (self._setting(TaxSettingKey.PARENT_ALLOWANCE) or ZERO) * max(
            0, profile.eligible_parents
        )

        ss_cap = self._setting(TaxSettingKey.SSF_MAX_ANNUAL_DEDUCTION)
        if ss_cap is None and self.rules.has(TaxSettingKey.SSF_MAX_MONTHLY):
            ss_cap = self.rules.get(TaxSettingKey.SSF_MAX_MONTHLY) * MONTHS_PER_YEAR

        return DeductionBreakdown(
            gross_annual_income=_cents(income),
            employment_deduction=_cents(employment_deduction),
            personal_allowance=_cents(personal),
            spouse_allowance=_cents(spouse),
            child_allowance=_cents(child),
            parent_allowance=_cents(parent),
            social_security=_cents(_capped(salary_components.social_security, ss_cap)),
            provident_fund=_cents(
                _capped(salary_components.provident_fund, self._setting(TaxSettingKey.PVD_FUND_MAX))
            ),
            saving_fund=_cents(
                _capped(salary_components.saving_fund, self._setting(TaxSettingKey.SAVING_FUND_MAX))
            ),
        )

    @staticmethod
    def compute_progressive_tax(
        taxable_annual_income: Decimal,
        brackets: Iterable[BracketRule],
    ) -> ProgressiveTax:
        """Tax each slice of income at its bracket's rate.

        Brackets are consumed in ascending order of their minimum; the slice of
        income between a bracket's min and max (or above min for the open top
        bracket) is taxed at that bracket's rate. The result is continuous and
        non-decreasing in income.
        """
        ordered = sorted(brackets, key=lambda b: (b.min_amount, b.order))
        if not ordered:
            raise ValueError("At least one tax bracket is required")

        income = max(ZERO, taxable_annual_income)
        annual = ZERO
        breakdown: list[BracketTax] = []

        for bracket in ordered:
            if income <= bracket.min_amount:
                break
            upper = income if bracket.max_amount is None else min(income, bracket.max_amount)
            portion = upper - bracket.min_amount
            if portion <= 0:
                continue
            tax = portion * bracket.rate_fraction
            annual += tax
            breakdown.append(BracketTax(bracket=bracket, taxable_amount=portion, tax=_cents(tax)))

        annual_tax = _cents(annual)
        return ProgressiveTax(
            taxable_income=income,
            annual_tax=annual_tax,
            monthly_tax=_cents(annual_tax / MONTHS_PER_YEAR),
            breakdown=tuple(breakdown),
        )

    def compute_social_security(
        self,
        gross_monthly_salary: Decimal,
        cap_share: Decimal = Decimal("1"),
    ) -> SocialSecurityContribution:
        """Employee and employer contributions, each capped at the monthly maximum.

        cap_share scales the cap when the salary passed in is only part of an
        employment's pay, so the parts of a split salary never exceed the cap
        the whole salary would have.
        """
        employee_rate = self._setting(TaxSettingKey.SSF_RATE)
        if employee_rate is None:
            return SocialSecurityContribution(employee=ZERO, employer=ZERO)
        employer_rate = self._setting(TaxSettingKey.SSF_EMPLOYER_RATE)
        if employer_rate is None:
            employer_rate = employee_rate

        cap = self._setting(TaxSettingKey.SSF_MAX_MONTHLY)
        if cap is not None:
            cap = cap * cap_share

        salary = max(ZERO, gross_monthly_salary)
        return SocialSecurityContribution(
            employee=_cents(_capped(salary * employee_rate / HUNDRED, cap)),
            employer=_cents(_capped(salary * employer_rate / HUNDRED, cap)),
        )

    def compute_income_tax(
        self,
        profile: EmployeeTaxProfile,
        monthly_gross: Decimal,
        months_worked: int,
        monthly_components: SalaryComponents,
    ) -> IncomeTaxResult:
        """Monthly withholding for a whole employment.

        Income and withheld contributions are annualized over the months the
        employment covers in the tax year, taxed, and the annual figure is
        spread over twelve months.
        """
        months = Decimal(max(0, min(MONTHS_PER_YEAR, months_worked)))
        annual_components = SalaryComponents(
            social_security=monthly_components.social_security * months,
            provident_fund=monthly_components.provident_fund * months,
            saving_fund=monthly_components.saving_fund * months,
        )
        deductions = self.compute_deductions(profile, monthly_gross * months, annual_components)
        tax = self.compute_progressive_tax(deductions.taxable_income, self.rules.brackets)
        return IncomeTaxResult(
            monthly_gross=monthly_gross,
            months_worked=int(months),
            deductions=deductions,
            tax=tax,
        )
