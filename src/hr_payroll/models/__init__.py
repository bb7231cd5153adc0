"""SQLAlchemy ORM models."""

from hr_payroll.models.base import Base, TimestampMixin
from hr_payroll.models.employee import Employee, Employment
from hr_payroll.models.enums import (
    AllocationStatus,
    AllocationType,
    MaritalStatus,
    ProbationEvent,
    ResidencyStatus,
    SalaryTier,
    SettingType,
)
from hr_payroll.models.funding import FundingAllocation, FundingSource
from hr_payroll.models.payroll import PayrollRecord
from hr_payroll.models.probation import ProbationRecord
from hr_payroll.models.tax import TaxBracket, TaxSetting

__all__ = [
    "Base",
    "TimestampMixin",
    "Employee",
    "Employment",
    "FundingAllocation",
    "FundingSource",
    "PayrollRecord",
    "ProbationRecord",
    "TaxBracket",
    "TaxSetting",
    "AllocationStatus",
    "AllocationType",
    "MaritalStatus",
    "ProbationEvent",
    "ResidencyStatus",
    "SalaryTier",
    "SettingType",
]
