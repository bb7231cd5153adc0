"""Funding allocation ledger: FTE splits of an employment's salary."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from typing import Sequence
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from hr_payroll.calculators.components import ComponentBuilder
from hr_payroll.calculators.salary_resolver import SalaryResolver
from hr_payroll.database import lock_funding_source
from hr_payroll.errors import (
    CapacityConflictError,
    CapacityExceededError,
    EmploymentNotFoundError,
    FteSumError,
    PreconditionError,
)
from hr_payroll.models import (
    AllocationStatus,
    AllocationType,
    Employment,
    FundingAllocation,
    SalaryTier,
)
from hr_payroll.models.base import utcnow

logger = logging.getLogger(__name__)

ONE = Decimal("1")


@dataclass(frozen=True)
class AllocationSplit:
    """Requested share of salary. funding_source_id None means organization-funded."""

    funding_source_id: UUID | None
    fte: Decimal
    amount: Decimal | None = None


class FundingAllocationLedger:
    """Service owning the allocation rows of employments.

    Rows move only from active to historical or terminated; a closed row is
    never reopened and its stored amount is never rewritten. Repricing always
    writes a new generation of rows.
    """

    def __init__(
        self,
        session: AsyncSession,
        fte_tolerance: Decimal = Decimal("0.0001"),
        salary_resolver: SalaryResolver | None = None,
    ):
        self.session = session
        self.fte_tolerance = fte_tolerance
        self.salary_resolver = salary_resolver or SalaryResolver()

    # ===== Queries =====

    async def get_allocations(
        self,
        employment_id: UUID,
        status: AllocationStatus | None = AllocationStatus.ACTIVE,
    ) -> list[FundingAllocation]:
        """Allocations of an employment; status None returns every generation."""
        query = select(FundingAllocation).where(FundingAllocation.employment_id == employment_id)
        if status is not None:
            query = query.where(FundingAllocation.status == status.value)
        query = query.order_by(FundingAllocation.start_date, FundingAllocation.funding_allocation_id)
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def get_allocations_for_source(
        self,
        funding_source_id: UUID,
        status: AllocationStatus | None = AllocationStatus.ACTIVE,
    ) -> list[FundingAllocation]:
        """Allocations drawing on a funding source, for capacity reporting."""
        query = select(FundingAllocation).where(
            FundingAllocation.funding_source_id == funding_source_id
        )
        if status is not None:
            query = query.where(FundingAllocation.status == status.value)
        query = query.order_by(FundingAllocation.start_date, FundingAllocation.funding_allocation_id)
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def committed_fte(
        self, funding_source_id: UUID, exclude_employment_id: UUID | None = None
    ) -> Decimal:
        """FTE currently committed against a funding source by active allocations."""
        query = select(func.coalesce(func.sum(FundingAllocation.fte), 0)).where(
            FundingAllocation.funding_source_id == funding_source_id,
            FundingAllocation.status == AllocationStatus.ACTIVE.value,
        )
        if exclude_employment_id is not None:
            query = query.where(FundingAllocation.employment_id != exclude_employment_id)
        total = await self.session.scalar(query)
        return Decimal(str(total or 0))

    async def verify_fte_sum(self, employment_id: UUID) -> Decimal:
        """Raise FteSumError unless active allocations sum to 1.0 within tolerance."""
        active = await self.get_allocations(employment_id)
        return self._check_total(employment_id, [a.fte for a in active])

    # ===== Commands =====

    async def create(
        self,
        employment: Employment,
        splits: Sequence[AllocationSplit],
        *,
        effective_date: date,
        replace_existing: bool = False,
    ) -> list[FundingAllocation]:
        """Create one active allocation per split, starting on effective_date.

        The splits must sum to one FTE. If the employment already has active
        allocations they must be replaced explicitly (they are closed as
        historical the day before effective_date); otherwise the combined FTE
        would exceed one and the request is rejected.

        Raises:
            PreconditionError: Empty request, an FTE outside (0, 1], or a
                replacement of rows that start on or after effective_date
            FteSumError: Splits (plus existing active rows) do not sum to 1.0
            CapacityExceededError: A grant line lacks the FTE capacity
        """
        if not splits:
            raise PreconditionError("At least one allocation split is required")
        for split in splits:
            if not Decimal("0") < split.fte <= ONE:
                raise PreconditionError(
                    f"FTE {split.fte} must be greater than 0 and at most 1",
                    {"funding_source_id": str(split.funding_source_id)},
                )
            if split.amount is not None and split.amount < 0:
                raise PreconditionError(f"Allocated amount {split.amount} cannot be negative")

        existing = await self.get_allocations(employment.employment_id)
        if existing and not replace_existing:
            self._check_total(
                employment.employment_id,
                [a.fte for a in existing] + [s.fte for s in splits],
                context={"existing_active": len(existing)},
            )
        self._check_total(employment.employment_id, [s.fte for s in splits])
        if replace_existing:
            not_started = [a for a in existing if a.start_date >= effective_date]
            if not_started:
                raise PreconditionError(
                    f"Cannot replace allocations starting on or after {effective_date}; "
                    "the replacement must take effect after the rows it closes",
                    {
                        "employment_id": str(employment.employment_id),
                        "allocation_ids": [str(a.funding_allocation_id) for a in not_started],
                    },
                )

        for old in existing:
            self._close(old, AllocationStatus.HISTORICAL, effective_date - timedelta(days=1))
        if existing:
            await self.session.flush()

        tier = self.salary_resolver.current_tier(employment, effective_date)
        salary = self.salary_resolver.salary_for_tier(employment, tier)

        created: list[FundingAllocation] = []
        for split in splits:
            if split.funding_source_id is not None:
                await self.capacity_check(split.funding_source_id, split.fte)
            amount = split.amount
            if amount is None:
                amount = ComponentBuilder.round_to_cents(salary * split.fte)
            allocation = self._new_allocation(
                employment,
                funding_source_id=split.funding_source_id,
                fte=split.fte,
                tier=tier,
                amount=amount,
                overridden=split.amount is not None,
                start_date=effective_date,
            )
            # Flushed one at a time so a later split on the same source sees this one.
            self.session.add(allocation)
            await self.session.flush()
            created.append(allocation)
        return created

    async def capacity_check(
        self,
        funding_source_id: UUID,
        proposed_fte: Decimal,
        exclude_employment_id: UUID | None = None,
    ) -> Decimal | None:
        """Reject the allocation if the source's FTE capacity would be exceeded.

        The source row is read with a row lock and its version is bumped, so a
        concurrent creation against the same source either waits for this
        transaction or fails on flush with a stale version.

        Returns:
            Remaining FTE capacity after the proposed FTE, or None when the
            source has no capacity limit

        Raises:
            PreconditionError: Unknown or inactive funding source
            CapacityExceededError: committed + proposed exceeds capacity
        """
        source = await lock_funding_source(self.session, funding_source_id)
        if source is None or not source.is_active:
            raise PreconditionError(
                f"Funding source {funding_source_id} not found or inactive",
                {"funding_source_id": str(funding_source_id)},
            )

        committed = await self.committed_fte(funding_source_id, exclude_employment_id)
        remaining: Decimal | None = None
        if source.fte_capacity is not None:
            capacity = Decimal(source.fte_capacity)
            if committed + proposed_fte > capacity + self.fte_tolerance:
                raise CapacityExceededError(funding_source_id, capacity, committed, proposed_fte)
            remaining = capacity - committed - proposed_fte

        source.last_allocated_at = utcnow()
        await self.session.flush()
        return remaining

    async def transition_after_probation(
        self, employment: Employment, transition_date: date
    ) -> list[FundingAllocation]:
        """Reprice active allocations at the post-probation salary.

        Each active row is closed as historical the day before transition_date
        and succeeded by a row with the same source and FTE, starting on
        transition_date. Rows starting on or after transition_date are already
        post-probation and stay as they are; only new rows are returned.

        Raises:
            FteSumError: The active generation (before or after) is not one FTE
            PreconditionError: A probation-tier row starts on or after transition_date
        """
        active = await self.get_allocations(employment.employment_id)
        if not active:
            return []
        self._check_total(employment.employment_id, [a.fte for a in active])

        salary = self.salary_resolver.salary_for_tier(employment, SalaryTier.POST_PROBATION)
        kept: list[FundingAllocation] = []
        successors: list[FundingAllocation] = []
        for old in active:
            if old.start_date >= transition_date:
                # Nothing of it falls in the probation period to close
                if old.salary_tier != SalaryTier.POST_PROBATION.value:
                    raise PreconditionError(
                        f"Allocation {old.funding_allocation_id} starts on {old.start_date}, "
                        f"not before the transition on {transition_date}, at the probation tier",
                        {"employment_id": str(employment.employment_id)},
                    )
                kept.append(old)
                continue
            self._close(old, AllocationStatus.HISTORICAL, transition_date - timedelta(days=1))
            successors.append(
                self._new_allocation(
                    employment,
                    funding_source_id=old.funding_source_id,
                    fte=Decimal(old.fte),
                    tier=SalaryTier.POST_PROBATION,
                    amount=ComponentBuilder.round_to_cents(salary * Decimal(old.fte)),
                    overridden=False,
                    start_date=transition_date,
                    supersedes=old.funding_allocation_id,
                )
            )
        await self.session.flush()
        self._check_total(employment.employment_id, [a.fte for a in successors + kept])

        self.session.add_all(successors)
        await self.session.flush()
        return successors

    async def terminate(
        self, employment: Employment, termination_date: date
    ) -> list[FundingAllocation]:
        """Terminate every active allocation; amounts and tiers are kept as they were.

        A row that would only have started after termination_date is closed on
        its own start date.
        """
        active = await self.get_allocations(employment.employment_id)
        for allocation in active:
            self._close(
                allocation,
                AllocationStatus.TERMINATED,
                max(termination_date, allocation.start_date),
            )
        await self.session.flush()
        return active

    # ===== Helpers =====

    def _check_total(
        self,
        employment_id: UUID,
        ftes: Sequence[Decimal],
        context: dict | None = None,
    ) -> Decimal:
        total = sum((Decimal(f) for f in ftes), Decimal("0"))
        if abs(total - ONE) > self.fte_tolerance:
            raise FteSumError(employment_id, total, context=context)
        return total

    @staticmethod
    def _close(allocation: FundingAllocation, status: AllocationStatus, end_date: date) -> None:
        allocation.status = status.value
        allocation.end_date = end_date

    @staticmethod
    def _new_allocation(
        employment: Employment,
        *,
        funding_source_id: UUID | None,
        fte: Decimal,
        tier: SalaryTier,
        amount: Decimal,
        overridden: bool,
        start_date: date,
        supersedes: UUID | None = None,
    ) -> FundingAllocation:
        return FundingAllocation(
            employee_id=employment.employee_id,
            employment_id=employment.employment_id,
            funding_source_id=funding_source_id,
            allocation_type=(
                AllocationType.GRANT.value
                if funding_source_id is not None
                else AllocationType.ORG_FUNDED.value
            ),
            fte=fte,
            allocated_amount=amount,
            amount_overridden=overridden,
            salary_tier=tier.value,
            status=AllocationStatus.ACTIVE.value,
            start_date=start_date,
            supersedes_allocation_id=supersedes,
        )


async def create_allocations_with_retry(
    session_factory: async_sessionmaker[AsyncSession],
    employment_id: UUID,
    splits: Sequence[AllocationSplit],
    *,
    effective_date: date,
    replace_existing: bool = False,
    retry_limit: int = 1,
    fte_tolerance: Decimal = Decimal("0.0001"),
    standard_month_days: int = 30,
) -> list[FundingAllocation]:
    """Create allocations in their own transaction, retrying on a stale funding source.

    Each attempt re-reads capacity from scratch. After retry_limit retries the
    conflict is surfaced as CapacityConflictError.
    """
    last_error: StaleDataError | None = None
    for attempt in range(retry_limit + 1):
        try:
            async with session_factory() as session:
                async with session.begin():
                    employment = await session.get(Employment, employment_id)
                    if employment is None:
                        raise EmploymentNotFoundError(employment_id)
                    ledger = FundingAllocationLedger(
                        session,
                        fte_tolerance=fte_tolerance,
                        salary_resolver=SalaryResolver(standard_month_days),
                    )
                    return await ledger.create(
                        employment,
                        splits,
                        effective_date=effective_date,
                        replace_existing=replace_existing,
                    )
        except StaleDataError as exc:
            last_error = exc
            logger.warning(
                "Funding source changed concurrently while allocating employment %s "
                "(attempt %d of %d)",
                employment_id,
                attempt + 1,
                retry_limit + 1,
            )

    raise CapacityConflictError(
        f"Funding source capacity for employment {employment_id} changed concurrently; "
        f"gave up after {retry_limit + 1} attempts",
        {"employment_id": str(employment_id), "attempts": retry_limit + 1},
    ) from last_error
