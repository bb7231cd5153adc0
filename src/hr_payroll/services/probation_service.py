"""Probation tracker: append-only probation log per employment."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from uuid import UUID

from sqlalchemy import and_, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from hr_payroll.errors import InvariantViolationError, PreconditionError, ProbationRecordMissingError
from hr_payroll.models import Employment, ProbationEvent, ProbationRecord
from hr_payroll.services.probation_state import ProbationStateMachine

TERMINAL_EVENTS = (ProbationEvent.PASSED.value, ProbationEvent.FAILED.value)


@dataclass
class ProbationHistory:
    """Probation log with a derived summary."""

    employment_id: UUID
    records: list[ProbationRecord]
    current: ProbationRecord | None

    @property
    def current_status(self) -> str | None:
        return self.current.event_type if self.current else None

    @property
    def total_extensions(self) -> int:
        return sum(1 for r in self.records if r.event_type == ProbationEvent.EXTENSION.value)

    @property
    def original_end_date(self) -> date | None:
        initial = next(
            (r for r in self.records if r.event_type == ProbationEvent.INITIAL.value), None
        )
        return initial.probation_end_date if initial else None

    @property
    def current_end_date(self) -> date | None:
        return self.current.probation_end_date if self.current else None

    @property
    def is_terminal(self) -> bool:
        return ProbationStateMachine.is_terminal(self.current_status)

    @property
    def can_extend(self) -> bool:
        return self.current is not None and ProbationStateMachine.can_extend(self.current_status)


def _history_order(record: ProbationRecord) -> tuple:
    # Terminal records share the extension number of the record they close.
    return (record.extension_number, 1 if record.is_terminal else 0, record.event_date)


class ProbationTracker:
    """Service for the probation lifecycle of an employment.

    Operations:
    - create_initial_record: open the log when an employment with probation starts
    - extend: push the completion date out, keeping the interval start
    - mark_passed / mark_failed: write the terminal decision
    - is_ready_for_transition / find_ready_for_transition: daily candidate selection

    Every mutation clears is_current on the previous record and flushes before
    inserting the successor, inside the caller's transaction. Nothing is
    committed here.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_current_record(self, employment_id: UUID) -> ProbationRecord | None:
        result = await self.session.execute(
            select(ProbationRecord).where(
                ProbationRecord.employment_id == employment_id,
                ProbationRecord.is_current.is_(True),
            )
        )
        records = list(result.scalars().all())
        if len(records) > 1:
            raise InvariantViolationError(
                f"Employment {employment_id} has {len(records)} current probation records",
                {"employment_id": str(employment_id)},
            )
        return records[0] if records else None

    async def get_records(self, employment_id: UUID) -> list[ProbationRecord]:
        """All probation records for an employment, oldest first."""
        result = await self.session.execute(
            select(ProbationRecord).where(ProbationRecord.employment_id == employment_id)
        )
        return sorted(result.scalars().all(), key=_history_order)

    async def get_history(self, employment_id: UUID) -> ProbationHistory:
        """Full probation history with summary."""
        records = await self.get_records(employment_id)
        current = next((r for r in records if r.is_current), None)
        return ProbationHistory(employment_id=employment_id, records=records, current=current)

    async def create_initial_record(
        self,
        employment: Employment,
        created_on: date | None = None,
        approved_by: str | None = None,
    ) -> ProbationRecord:
        """Open the probation log for an employment.

        Raises:
            PreconditionError: If the employment has no probation date or
                already has probation records
        """
        if employment.probation_end_date is None:
            raise PreconditionError(
                f"Employment {employment.employment_id} has no probation-completion date",
                {"employment_id": str(employment.employment_id)},
            )
        existing = await self.get_records(employment.employment_id)
        if existing:
            raise PreconditionError(
                f"Employment {employment.employment_id} already has probation records",
                {"employment_id": str(employment.employment_id), "records": len(existing)},
            )
        ProbationStateMachine.validate_transition(None, ProbationEvent.INITIAL)

        record = ProbationRecord(
            employment_id=employment.employment_id,
            employee_id=employment.employee_id,
            event_type=ProbationEvent.INITIAL.value,
            event_date=created_on or employment.start_date,
            probation_start_date=employment.start_date,
            probation_end_date=employment.probation_end_date,
            extension_number=0,
            approved_by=approved_by,
            is_current=True,
        )
        self.session.add(record)
        await self.session.flush()
        return record

    async def extend(
        self,
        employment: Employment,
        new_end_date: date,
        reason: str,
        notes: str | None = None,
        approved_by: str | None = None,
        *,
        on_date: date,
    ) -> ProbationRecord:
        """Extend probation to new_end_date.

        Raises:
            ProbationRecordMissingError: If there is no current record
            InvalidProbationTransitionError: If probation was already decided
            PreconditionError: If new_end_date is not after the current end
        """
        current = await self._require_current(employment, "extend probation")
        ProbationStateMachine.validate_transition(current.event_type, ProbationEvent.EXTENSION)
        if new_end_date <= current.probation_end_date:
            raise PreconditionError(
                f"New probation end {new_end_date} must be after current end "
                f"{current.probation_end_date}",
                {
                    "employment_id": str(employment.employment_id),
                    "current_end_date": current.probation_end_date.isoformat(),
                    "new_end_date": new_end_date.isoformat(),
                },
            )

        record = await self._append(
            current,
            ProbationRecord(
                employment_id=employment.employment_id,
                employee_id=employment.employee_id,
                event_type=ProbationEvent.EXTENSION.value,
                event_date=on_date,
                decision_date=on_date,
                probation_start_date=current.probation_start_date,
                probation_end_date=new_end_date,
                previous_end_date=current.probation_end_date,
                extension_number=current.extension_number + 1,
                decision_reason=reason,
                evaluation_notes=notes,
                approved_by=approved_by,
                is_current=True,
            ),
        )
        employment.probation_end_date = new_end_date
        await self.session.flush()
        return record

    async def mark_passed(
        self,
        employment: Employment,
        notes: str | None = None,
        approved_by: str | None = None,
        *,
        on_date: date,
    ) -> ProbationRecord:
        """Record that probation was passed. Allocations are not touched here."""
        return await self._decide(
            employment, ProbationEvent.PASSED, None, notes, approved_by, on_date
        )

    async def mark_failed(
        self,
        employment: Employment,
        reason: str,
        notes: str | None = None,
        approved_by: str | None = None,
        *,
        on_date: date,
    ) -> ProbationRecord:
        """Record that probation was failed.

        Callers also terminate active allocations and end the employment.
        """
        return await self._decide(
            employment, ProbationEvent.FAILED, reason, notes, approved_by, on_date
        )

    async def is_ready_for_transition(self, employment: Employment, today: date) -> bool:
        """True if probation completes today and has not been decided yet."""
        if employment.probation_end_date != today or employment.end_date is not None:
            return False
        current = await self.get_current_record(employment.employment_id)
        return current is None or not current.is_terminal

    async def find_ready_for_transition(self, today: date) -> list[UUID]:
        """Employment ids whose probation completes today and is still undecided."""
        result = await self.session.execute(
            select(Employment.employment_id)
            .outerjoin(
                ProbationRecord,
                and_(
                    ProbationRecord.employment_id == Employment.employment_id,
                    ProbationRecord.is_current.is_(True),
                ),
            )
            .where(
                Employment.probation_end_date == today,
                Employment.end_date.is_(None),
                or_(
                    ProbationRecord.probation_record_id.is_(None),
                    ProbationRecord.event_type.not_in(TERMINAL_EVENTS),
                ),
            )
            .order_by(Employment.start_date, Employment.employment_id)
        )
        return list(result.scalars().all())

    async def _decide(
        self,
        employment: Employment,
        event: ProbationEvent,
        reason: str | None,
        notes: str | None,
        approved_by: str | None,
        on_date: date,
    ) -> ProbationRecord:
        current = await self._require_current(employment, f"mark probation {event.value}")
        ProbationStateMachine.validate_transition(current.event_type, event)
        return await self._append(
            current,
            ProbationRecord(
                employment_id=employment.employment_id,
                employee_id=employment.employee_id,
                event_type=event.value,
                event_date=on_date,
                decision_date=on_date,
                probation_start_date=current.probation_start_date,
                probation_end_date=current.probation_end_date,
                extension_number=current.extension_number,
                decision_reason=reason,
                evaluation_notes=notes,
                approved_by=approved_by,
                is_current=True,
            ),
        )

    async def _require_current(self, employment: Employment, action: str) -> ProbationRecord:
        current = await self.get_current_record(employment.employment_id)
        if current is None:
            raise ProbationRecordMissingError(employment.employment_id, action)
        return current

    async def _append(self, current: ProbationRecord, successor: ProbationRecord) -> ProbationRecord:
        # The partial unique index allows one current row, so clear before insert.
        current.is_current = False
        await self.session.flush()
        self.session.add(successor)
        await self.session.flush()
        return successor
