"""Payroll calculation: salary resolution, tax and per-allocation components."""

from hr_payroll.calculators.components import ComponentBuilder
from hr_payroll.calculators.engine import EmploymentPayroll, PayrollEngine
from hr_payroll.calculators.salary_resolver import SalaryResolver, default_probation_end
from hr_payroll.calculators.tax_calculator import TaxCalculator, TaxSettingKey
from hr_payroll.calculators.types import PayPeriod, TaxRules

__all__ = [
    "ComponentBuilder",
    "EmploymentPayroll",
    "PayrollEngine",
    "SalaryResolver",
    "default_probation_end",
    "TaxCalculator",
    "TaxSettingKey",
    "PayPeriod",
    "TaxRules",
]
