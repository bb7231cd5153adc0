"""Error kinds raised by the payroll and probation core.

Four families, each handled differently by callers:

- PreconditionError: the caller asked for something the current state does
  not allow. Reported synchronously, never retried.
- InvariantViolationError: stored data breaks a rule the core relies on.
  The operation is aborted and logged with its inputs, never patched up.
- CapacityConflictError: a funding source would be over-committed. Retried a
  bounded number of times under optimistic concurrency, then rejected.
- ReferenceDataMissingError: required configuration (tax tables) is absent.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any
from uuid import UUID


class PayrollCoreError(Exception):
    """Base class for all errors raised by this package."""

    code = "PAYROLL_CORE_ERROR"

    def __init__(self, message: str, context: dict[str, Any] | None = None):
        self.context = context or {}
        super().__init__(message)


# ===== Precondition violations =====


class PreconditionError(PayrollCoreError):
    """Operation is not allowed in the current state."""

    code = "PRECONDITION_FAILED"


class EmploymentNotFoundError(PreconditionError):
    """Referenced employment does not exist."""

    code = "EMPLOYMENT_NOT_FOUND"

    def __init__(self, employment_id: UUID):
        self.employment_id = employment_id
        super().__init__(
            f"Employment {employment_id} not found",
            {"employment_id": str(employment_id)},
        )


class ProbationRecordMissingError(PreconditionError):
    """No current probation record exists for the employment."""

    code = "PROBATION_RECORD_MISSING"

    def __init__(self, employment_id: UUID, action: str):
        self.employment_id = employment_id
        self.action = action
        super().__init__(
            f"Cannot {action}: employment {employment_id} has no current probation record",
            {"employment_id": str(employment_id), "action": action},
        )


class NoActiveAllocationError(PreconditionError):
    """No funding allocation was in force on any paid day of the pay period."""

    code = "NO_ACTIVE_ALLOCATION"

    def __init__(self, employment_id: UUID, period: str):
        self.employment_id = employment_id
        self.period = period
        super().__init__(
            f"Employment {employment_id} has no funding allocation in force for {period}",
            {"employment_id": str(employment_id), "period": period},
        )


class PayrollAlreadyGeneratedError(PreconditionError):
    """Payroll for the period exists and was calculated from different inputs."""

    code = "PAYROLL_ALREADY_GENERATED"

    def __init__(self, employment_id: UUID, period: str, existing_calc_id: UUID, new_calc_id: UUID):
        self.employment_id = employment_id
        self.period = period
        self.existing_calc_id = existing_calc_id
        self.new_calc_id = new_calc_id
        super().__init__(
            f"Payroll for employment {employment_id} in {period} exists with calculation_id "
            f"{existing_calc_id}, but inputs now produce {new_calc_id}. "
            "Requires explicit recalculation.",
            {
                "employment_id": str(employment_id),
                "period": period,
                "existing_calc_id": str(existing_calc_id),
                "new_calc_id": str(new_calc_id),
            },
        )


# ===== Invariant violations =====


class InvariantViolationError(PayrollCoreError):
    """Stored data violates an invariant; the operation was aborted."""

    code = "INVARIANT_VIOLATION"


class FteSumError(InvariantViolationError):
    """Active allocations for an employment do not sum to one full FTE."""

    code = "FTE_SUM_VIOLATION"

    def __init__(
        self,
        employment_id: UUID,
        actual: Decimal,
        expected: Decimal = Decimal("1"),
        context: dict[str, Any] | None = None,
    ):
        self.employment_id = employment_id
        self.actual = actual
        self.expected = expected
        ctx = {"employment_id": str(employment_id), "actual": str(actual), "expected": str(expected)}
        ctx.update(context or {})
        super().__init__(
            f"FTE across active allocations for employment {employment_id} "
            f"sums to {actual}, expected {expected}",
            ctx,
        )


# ===== Capacity conflicts =====


class CapacityConflictError(PayrollCoreError):
    """A funding source could not take the requested allocation."""

    code = "CAPACITY_CONFLICT"


class CapacityExceededError(CapacityConflictError):
    """Committed FTE plus the proposed FTE exceeds the source's capacity."""

    code = "CAPACITY_EXCEEDED"

    def __init__(
        self,
        funding_source_id: UUID,
        capacity: Decimal,
        committed: Decimal,
        proposed: Decimal,
    ):
        self.funding_source_id = funding_source_id
        self.capacity = capacity
        self.committed = committed
        self.proposed = proposed
        super().__init__(
            f"Funding source {funding_source_id} has capacity {capacity} FTE, "
            f"{committed} committed; cannot add {proposed}",
            {
                "funding_source_id": str(funding_source_id),
                "capacity": str(capacity),
                "committed": str(committed),
                "proposed": str(proposed),
            },
        )


# ===== Reference data =====


class ReferenceDataMissingError(PayrollCoreError):
    """Required reference data is not configured."""

    code = "REFERENCE_DATA_MISSING"


class TaxRulesNotFoundError(ReferenceDataMissingError):
    """No tax brackets (or a required setting) exist for the target year."""

    code = "TAX_RULES_NOT_FOUND"

    def __init__(self, year: int, what: str = "tax brackets"):
        self.year = year
        self.what = what
        super().__init__(f"No {what} defined for tax year {year}", {"year": year, "what": what})
