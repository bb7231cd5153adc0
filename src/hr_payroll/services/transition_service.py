"""Probation transitions: daily batch processor and manual decisions."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Iterable
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from hr_payroll.calculators.salary_resolver import SalaryResolver
from hr_payroll.config import Settings, get_settings
from hr_payroll.errors import EmploymentNotFoundError
from hr_payroll.events import (
    AllocationsTransitioned,
    DomainEvent,
    EventBatch,
    EventEmitter,
    EventMetadata,
    ProbationExtended,
    ProbationFailed,
    ProbationPassed,
    TransitionBatchCompleted,
)
from hr_payroll.models import Employment, ProbationEvent, ProbationRecord
from hr_payroll.services.allocation_service import FundingAllocationLedger
from hr_payroll.services.probation_service import ProbationTracker
from hr_payroll.services.probation_state import ProbationStateMachine

logger = logging.getLogger(__name__)


async def load_employment_for_update(session: AsyncSession, employment_id: UUID) -> Employment:
    """Load an employment with a row lock held until the transaction ends.

    Raises:
        EmploymentNotFoundError: Unknown employment
    """
    result = await session.execute(
        select(Employment)
        .where(Employment.employment_id == employment_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    employment = result.scalar_one_or_none()
    if employment is None:
        raise EmploymentNotFoundError(employment_id)
    return employment


class ProbationCommands:
    """Probation decisions for one employment inside the caller's transaction.

    Each command keeps the probation log and the funding allocations in step:
    passing reprices allocations, failing terminates them and ends the
    employment. Events are added to the given batch so they are published only
    after the caller commits; without a batch they are emitted immediately.
    """

    def __init__(
        self,
        session: AsyncSession,
        settings: Settings | None = None,
        emitter: EventEmitter | None = None,
    ):
        self.session = session
        self.settings = settings or get_settings()
        self.emitter = emitter or EventEmitter()
        self.tracker = ProbationTracker(session)
        self.ledger = FundingAllocationLedger(
            session,
            fte_tolerance=self.settings.fte_tolerance,
            salary_resolver=SalaryResolver(self.settings.standard_month_days),
        )

    async def pass_probation(
        self,
        employment: Employment,
        on_date: date,
        notes: str | None = None,
        approved_by: str | None = None,
        events: EventBatch | None = None,
    ) -> ProbationRecord:
        """Mark probation passed and move allocations to the post-probation tier.

        An employment without any probation record (created before records
        were kept) gets its initial record first.
        """
        current = await self.tracker.get_current_record(employment.employment_id)
        if current is None:
            current = await self.tracker.create_initial_record(employment, approved_by=approved_by)
            logger.info("Backfilled initial probation record for employment %s", employment.employment_id)
        # Reject a decided probation before any allocation is touched
        ProbationStateMachine.validate_transition(current.event_type, ProbationEvent.PASSED)

        closed = await self.ledger.get_allocations(employment.employment_id)
        successors = await self.ledger.transition_after_probation(employment, on_date)
        record = await self.tracker.mark_passed(employment, notes, approved_by, on_date=on_date)

        metadata = EventMetadata.create(actor=approved_by)
        if successors:
            self._publish(
                AllocationsTransitioned(
                    metadata=metadata,
                    employment_id=employment.employment_id,
                    transition_date=on_date,
                    closed_allocation_ids=tuple(
                        a.funding_allocation_id for a in closed if not a.is_active
                    ),
                    new_allocation_ids=tuple(a.funding_allocation_id for a in successors),
                ),
                events,
            )
        self._publish(
            ProbationPassed(
                metadata=metadata,
                employment_id=employment.employment_id,
                employee_id=employment.employee_id,
                probation_record_id=record.probation_record_id,
                decision_date=on_date,
                transitioned_allocations=len(successors),
            ),
            events,
        )
        return record

    async def fail_probation(
        self,
        employment: Employment,
        on_date: date,
        reason: str,
        notes: str | None = None,
        approved_by: str | None = None,
        events: EventBatch | None = None,
    ) -> ProbationRecord:
        """Mark probation failed, terminate allocations and end the employment."""
        record = await self.tracker.mark_failed(
            employment, reason, notes, approved_by, on_date=on_date
        )
        terminated = await self.ledger.terminate(employment, on_date)
        employment.end_date = on_date
        await self.session.flush()

        self._publish(
            ProbationFailed(
                metadata=EventMetadata.create(actor=approved_by),
                employment_id=employment.employment_id,
                employee_id=employment.employee_id,
                probation_record_id=record.probation_record_id,
                decision_date=on_date,
                reason=reason,
                terminated_allocations=len(terminated),
            ),
            events,
        )
        return record

    async def extend_probation(
        self,
        employment: Employment,
        new_end_date: date,
        reason: str,
        on_date: date,
        notes: str | None = None,
        approved_by: str | None = None,
        events: EventBatch | None = None,
    ) -> ProbationRecord:
        """Extend probation; allocations stay at the probation tier."""
        record = await self.tracker.extend(
            employment, new_end_date, reason, notes, approved_by, on_date=on_date
        )
        self._publish(
            ProbationExtended(
                metadata=EventMetadata.create(actor=approved_by),
                employment_id=employment.employment_id,
                employee_id=employment.employee_id,
                probation_record_id=record.probation_record_id,
                previous_end_date=record.previous_end_date,
                new_end_date=new_end_date,
                extension_number=record.extension_number,
            ),
            events,
        )
        return record

    def _publish(self, event: DomainEvent, events: EventBatch | None) -> None:
        if events is not None:
            events.add(event)
        else:
            self.emitter.emit(event)


@dataclass
class TransitionOutcome:
    """What happened to one employment in a batch."""

    employment_id: UUID
    status: str  # transitioned, skipped, failed, candidate
    message: str | None = None
    new_allocation_ids: list[UUID] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "employment_id": str(self.employment_id),
            "status": self.status,
            "message": self.message,
            "new_allocation_ids": [str(a) for a in self.new_allocation_ids],
        }


@dataclass
class TransitionSummary:
    """Completion summary of a batch, handed to the notifier."""

    as_of: date
    dry_run: bool = False
    found: int = 0
    processed: int = 0
    failed: int = 0
    skipped: int = 0
    cancelled: bool = False
    errors: list[str] = field(default_factory=list)
    details: list[TransitionOutcome] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.failed == 0

    def record(self, outcome: TransitionOutcome) -> None:
        self.details.append(outcome)
        if outcome.status == "transitioned":
            self.processed += 1
        elif outcome.status == "failed":
            self.failed += 1
            self.errors.append(f"{outcome.employment_id}: {outcome.message}")
        elif outcome.status == "skipped":
            self.skipped += 1

    def to_dict(self) -> dict[str, Any]:
        return {
            "as_of": self.as_of.isoformat(),
            "dry_run": self.dry_run,
            "found": self.found,
            "processed": self.processed,
            "failed": self.failed,
            "skipped": self.skipped,
            "cancelled": self.cancelled,
            "errors": list(self.errors),
            "details": [d.to_dict() for d in self.details],
        }


class TransitionProcessor:
    """Daily batch that passes every employment whose probation completes today.

    Employments are independent units: each runs in its own session and
    transaction, at most `concurrency` at a time. A failure is recorded in the
    summary and the batch moves on. Running the batch again for the same day
    finds nothing, since passed employments are no longer ready.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        settings: Settings | None = None,
        emitter: EventEmitter | None = None,
        concurrency: int | None = None,
    ):
        self.session_factory = session_factory
        self.settings = settings or get_settings()
        self.emitter = emitter or EventEmitter()
        self.concurrency = max(1, concurrency or self.settings.transition_concurrency)
        self._cancelled = asyncio.Event()

    def cancel(self) -> None:
        """Stop scheduling new employments; units already running finish or roll back."""
        self._cancelled.set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    async def find_candidates(
        self, as_of: date, employment_ids: Iterable[UUID] | None = None
    ) -> list[UUID]:
        """Employments ready for transition on as_of, optionally restricted to given ids."""
        async with self.session_factory() as session:
            ready = await ProbationTracker(session).find_ready_for_transition(as_of)
        if employment_ids is not None:
            wanted = set(employment_ids)
            ready = [eid for eid in ready if eid in wanted]
        return ready

    async def process_transitions(
        self,
        as_of: date,
        employment_ids: Iterable[UUID] | None = None,
        dry_run: bool = False,
    ) -> TransitionSummary:
        """Run the batch for as_of and return its summary."""
        candidates = await self.find_candidates(as_of, employment_ids)
        summary = TransitionSummary(as_of=as_of, dry_run=dry_run, found=len(candidates))
        logger.info(
            "Probation transition batch for %s: %d ready employment(s)%s",
            as_of,
            len(candidates),
            " (dry run)" if dry_run else "",
        )

        if dry_run:
            for employment_id in candidates:
                summary.record(TransitionOutcome(employment_id, "candidate"))
        else:
            semaphore = asyncio.Semaphore(self.concurrency)

            async def run(employment_id: UUID) -> TransitionOutcome:
                async with semaphore:
                    if self._cancelled.is_set():
                        return TransitionOutcome(employment_id, "skipped", "batch cancelled")
                    return await self.process_employment(employment_id, as_of)

            outcomes = await asyncio.gather(*(run(eid) for eid in candidates))
            for outcome in outcomes:
                summary.record(outcome)

        summary.cancelled = self._cancelled.is_set()
        if summary.cancelled:
            logger.warning(
                "Probation transition batch for %s cancelled; %d employment(s) not started",
                as_of,
                summary.skipped,
            )
        logger.info(
            "Probation transition batch for %s finished: processed=%d failed=%d skipped=%d",
            as_of,
            summary.processed,
            summary.failed,
            summary.skipped,
        )
        self.emitter.emit(
            TransitionBatchCompleted(
                metadata=EventMetadata.create(actor_type="scheduler"),
                as_of=as_of,
                found=summary.found,
                processed=summary.processed,
                failed=summary.failed,
                skipped=summary.skipped,
                dry_run=dry_run,
            )
        )
        return summary

    async def process_employment(self, employment_id: UUID, as_of: date) -> TransitionOutcome:
        """Pass one employment in its own transaction.

        Readiness is checked again under the employment's row lock, so a
        concurrent run or manual decision cannot pass it twice.
        """
        try:
            with self.emitter.batch() as events:
                async with self.session_factory() as session:
                    async with session.begin():
                        employment = await load_employment_for_update(session, employment_id)
                        tracker = ProbationTracker(session)
                        if not await tracker.is_ready_for_transition(employment, as_of):
                            return TransitionOutcome(employment_id, "skipped", "no longer ready")
                        commands = ProbationCommands(session, self.settings, self.emitter)
                        await commands.pass_probation(employment, as_of, events=events)
                        new_allocations = await commands.ledger.get_allocations(employment_id)
        except Exception as exc:
            logger.exception("Probation transition failed for employment %s", employment_id)
            return TransitionOutcome(employment_id, "failed", str(exc))

        logger.info(
            "Employment %s passed probation on %s; %d allocation(s) repriced",
            employment_id,
            as_of,
            len(new_allocations),
        )
        return TransitionOutcome(
            employment_id,
            "transitioned",
            new_allocation_ids=[a.funding_allocation_id for a in new_allocations],
        )
