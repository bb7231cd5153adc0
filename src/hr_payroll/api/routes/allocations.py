"""Funding allocation queries and creation."""

from decimal import Decimal
from typing import Annotated, Literal
from uuid import UUID

from fastapi import APIRouter, HTTPException, Path, Query, status

from hr_payroll.api.dependencies import AppSettings, DbSession, Emitter, SessionFactory
from hr_payroll.api.schemas import (
    AllocationCreateRequest,
    AllocationListResponse,
    ErrorResponse,
    FundingAllocationResponse,
    FundingSourceAllocationsResponse,
)
from hr_payroll.errors import EmploymentNotFoundError
from hr_payroll.events import AllocationsCreated, EventMetadata
from hr_payroll.models import AllocationStatus, Employment, FundingSource
from hr_payroll.services.allocation_service import (
    AllocationSplit,
    FundingAllocationLedger,
    create_allocations_with_retry,
)

router = APIRouter(tags=["allocations"])

StatusFilter = Literal["active", "historical", "terminated", "all"]


def _status(value: StatusFilter) -> AllocationStatus | None:
    return None if value == "all" else AllocationStatus(value)


@router.get(
    "/employments/{employment_id}/allocations",
    response_model=AllocationListResponse,
    responses={404: {"model": ErrorResponse}},
)
async def list_employment_allocations(
    db: DbSession,
    employment_id: Annotated[UUID, Path()],
    status_filter: Annotated[StatusFilter, Query(alias="status")] = "active",
) -> AllocationListResponse:
    """Allocations of an employment, filtered by status."""
    if await db.get(Employment, employment_id) is None:
        raise EmploymentNotFoundError(employment_id)

    allocations = await FundingAllocationLedger(db).get_allocations(
        employment_id, _status(status_filter)
    )
    return AllocationListResponse(
        items=[FundingAllocationResponse.model_validate(a) for a in allocations],
        total=len(allocations),
        total_active_fte=sum((Decimal(a.fte) for a in allocations if a.is_active), Decimal("0")),
    )


@router.get(
    "/funding-sources/{funding_source_id}/allocations",
    response_model=FundingSourceAllocationsResponse,
    responses={404: {"model": ErrorResponse}},
)
async def list_funding_source_allocations(
    db: DbSession,
    funding_source_id: Annotated[UUID, Path()],
    status_filter: Annotated[StatusFilter, Query(alias="status")] = "active",
) -> FundingSourceAllocationsResponse:
    """Allocations drawing on a funding source, with committed and remaining FTE."""
    source = await db.get(FundingSource, funding_source_id)
    if source is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Funding source not found",
        )

    ledger = FundingAllocationLedger(db)
    allocations = await ledger.get_allocations_for_source(funding_source_id, _status(status_filter))
    committed = await ledger.committed_fte(funding_source_id)
    capacity = Decimal(source.fte_capacity) if source.fte_capacity is not None else None
    return FundingSourceAllocationsResponse(
        funding_source_id=funding_source_id,
        code=source.code,
        fte_capacity=capacity,
        committed_fte=committed,
        remaining_fte=capacity - committed if capacity is not None else None,
        items=[FundingAllocationResponse.model_validate(a) for a in allocations],
    )


@router.post(
    "/employments/{employment_id}/allocations",
    response_model=AllocationListResponse,
    status_code=status.HTTP_201_CREATED,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def create_allocations(
    factory: SessionFactory,
    settings: AppSettings,
    emitter: Emitter,
    employment_id: Annotated[UUID, Path()],
    payload: AllocationCreateRequest,
) -> AllocationListResponse:
    """Create a generation of allocations, retrying once if a funding source changes underneath."""
    allocations = await create_allocations_with_retry(
        factory,
        employment_id,
        [AllocationSplit(s.funding_source_id, s.fte, s.amount) for s in payload.splits],
        effective_date=payload.effective_date,
        replace_existing=payload.replace_existing,
        retry_limit=settings.capacity_retry_limit,
        fte_tolerance=settings.fte_tolerance,
        standard_month_days=settings.standard_month_days,
    )
    emitter.emit(
        AllocationsCreated(
            metadata=EventMetadata.create(actor_type="user"),
            employment_id=employment_id,
            effective_date=payload.effective_date,
            allocation_ids=tuple(a.funding_allocation_id for a in allocations),
        )
    )
    return AllocationListResponse(
        items=[FundingAllocationResponse.model_validate(a) for a in allocations],
        total=len(allocations),
        total_active_fte=sum((Decimal(a.fte) for a in allocations), Decimal("0")),
    )
