"""Pydantic schemas for API request/response models."""

from datetime import date
from decimal import Decimal
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

# ============================================================================
# Probation schemas
# ============================================================================


class ProbationRecordResponse(BaseModel):
    """One entry of an employment's probation log."""

    model_config = ConfigDict(from_attributes=True)

    probation_record_id: UUID
    employment_id: UUID
    event_type: str
    event_date: date
    decision_date: date | None = None
    probation_start_date: date
    probation_end_date: date
    previous_end_date: date | None = None
    extension_number: int
    decision_reason: str | None = None
    evaluation_notes: str | None = None
    approved_by: str | None = None
    is_current: bool


class ProbationHistoryResponse(BaseModel):
    """Probation log with derived summary."""

    employment_id: UUID
    current_status: str | None
    total_extensions: int
    original_end_date: date | None
    current_end_date: date | None
    is_terminal: bool
    can_extend: bool
    records: list[ProbationRecordResponse]


class ProbationPassRequest(BaseModel):
    """Manual probation pass."""

    on_date: date | None = None
    notes: str | None = None
    approved_by: str | None = None


class ProbationFailRequest(BaseModel):
    """Manual probation failure."""

    reason: str = Field(min_length=1)
    on_date: date | None = None
    notes: str | None = None
    approved_by: str | None = None


class ProbationExtendRequest(BaseModel):
    """Manual probation extension."""

    new_end_date: date
    reason: str = Field(min_length=1)
    on_date: date | None = None
    notes: str | None = None
    approved_by: str | None = None


# ============================================================================
# Funding allocation schemas
# ============================================================================


class FundingAllocationResponse(BaseModel):
    """Funding allocation row."""

    model_config = ConfigDict(from_attributes=True)

    funding_allocation_id: UUID
    employment_id: UUID
    funding_source_id: UUID | None = None
    allocation_type: str
    fte: Decimal
    allocated_amount: Decimal
    amount_overridden: bool
    salary_tier: str
    status: str
    start_date: date
    end_date: date | None = None
    supersedes_allocation_id: UUID | None = None


class AllocationListResponse(BaseModel):
    """Allocations of an employment."""

    items: list[FundingAllocationResponse]
    total: int
    total_active_fte: Decimal


class FundingSourceAllocationsResponse(BaseModel):
    """Allocations drawing on a funding source, with capacity figures."""

    funding_source_id: UUID
    code: str
    fte_capacity: Decimal | None
    committed_fte: Decimal
    remaining_fte: Decimal | None
    items: list[FundingAllocationResponse]


class AllocationSplitRequest(BaseModel):
    """One requested split; no funding source means organization-funded."""

    funding_source_id: UUID | None = None
    fte: Decimal = Field(gt=0, le=1)
    amount: Decimal | None = Field(default=None, ge=0)


class AllocationCreateRequest(BaseModel):
    """Schema for creating a generation of allocations."""

    splits: list[AllocationSplitRequest] = Field(min_length=1)
    effective_date: date
    replace_existing: bool = False


# ============================================================================
# Payroll schemas
# ============================================================================


class PayrollGenerateRequest(BaseModel):
    """Schema for generating payroll for one month."""

    period: str = Field(pattern=r"^\d{4}-(0[1-9]|1[0-2])$", examples=["2025-08"])
    bonus: Decimal = Field(default=Decimal("0"), ge=0)
    recalculate: bool = False


class PayrollRecordResponse(BaseModel):
    """Stored payroll record for one allocation."""

    model_config = ConfigDict(from_attributes=True)

    payroll_record_id: UUID
    employment_id: UUID
    funding_allocation_id: UUID
    pay_period: str
    fte: Decimal
    gross_salary: Decimal
    gross_salary_by_fte: Decimal
    compensation_refund: Decimal
    thirteenth_month_salary: Decimal
    salary_bonus: Decimal
    pvd: Decimal
    saving_fund: Decimal
    employee_social_security: Decimal
    employee_health_welfare: Decimal
    income_tax: Decimal
    employer_social_security: Decimal
    employer_health_welfare: Decimal
    total_income: Decimal
    total_deduction: Decimal
    net_salary: Decimal
    employer_contribution: Decimal
    total_salary: Decimal
    calculation_id: UUID
    engine_version: str


class PayrollGenerateResponse(BaseModel):
    """Result of a payroll generation request."""

    employment_id: UUID
    pay_period: str
    calculation_id: UUID
    created: bool
    recalculated: bool
    total_net: Decimal
    records: list[PayrollRecordResponse]


class PayrollRunRequest(BaseModel):
    """One month's payroll for a list of employments."""

    period: str = Field(pattern=r"^\d{4}-(0[1-9]|1[0-2])$", examples=["2025-08"])
    employment_ids: list[UUID] = Field(min_length=1)
    recalculate: bool = False


class PayrollRunOutcomeResponse(BaseModel):
    """Outcome for one employment in a payroll run."""

    employment_id: UUID
    status: str
    message: str | None = None
    calculation_id: UUID | None = None
    record_count: int = 0
    total_net: Decimal = Decimal("0")
    recalculated: bool = False


class PayrollRunSummaryResponse(BaseModel):
    """Completion summary of a payroll run."""

    pay_period: str
    requested: int
    created: int
    unchanged: int
    failed: int
    total_net: Decimal
    errors: list[str]
    details: list[PayrollRunOutcomeResponse]


# ============================================================================
# Transition schemas
# ============================================================================


class TransitionRunRequest(BaseModel):
    """Trigger for the daily probation transition batch."""

    as_of: date | None = None
    dry_run: bool = False
    employment_ids: list[UUID] | None = None


class TransitionOutcomeResponse(BaseModel):
    """Outcome for one employment."""

    employment_id: UUID
    status: str
    message: str | None = None
    new_allocation_ids: list[UUID] = []


class TransitionSummaryResponse(BaseModel):
    """Batch completion summary."""

    as_of: date
    dry_run: bool
    found: int
    processed: int
    failed: int
    skipped: int
    cancelled: bool
    errors: list[str]
    details: list[TransitionOutcomeResponse]


# ============================================================================
# Error schemas
# ============================================================================


class ErrorResponse(BaseModel):
    """Schema for error response."""

    detail: str
    code: str | None = None
    context: dict[str, Any] | None = None

