"""Payroll generator: load inputs, calculate, persist idempotently."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Iterable
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

from hr_payroll.calculators.engine import EmploymentPayroll, PayrollEngine
from hr_payroll.calculators.types import ZERO, AllocationPayroll, PayPeriod
from hr_payroll.config import Settings, get_settings
from hr_payroll.errors import EmploymentNotFoundError, PayrollAlreadyGeneratedError
from hr_payroll.events import (
    EventBatch,
    EventEmitter,
    EventMetadata,
    PayrollBatchCompleted,
    PayrollGenerated,
)
from hr_payroll.models import Employment, PayrollRecord
from hr_payroll.services.tax_rules import TaxRulesStore

logger = logging.getLogger(__name__)


@dataclass
class PayrollGenerationResult:
    """Records for an employment and period, and whether this call wrote them."""

    employment_id: UUID
    period: PayPeriod
    calculation_id: UUID
    records: list[PayrollRecord]
    created: bool
    recalculated: bool = False

    @property
    def total_net(self) -> Decimal:
        return sum((Decimal(r.net_salary) for r in self.records), ZERO)


class PayrollService:
    """Service for generating payroll records.

    Key invariants:
    1. One payroll record per (employment, allocation, pay period)
    2. Calculations are deterministic: same inputs produce the same calculation_id
    3. Retries are safe - identical inputs return the stored records untouched
    4. Stored records with a different calculation_id are only replaced on
       explicit recalculation
    """

    def __init__(
        self,
        session: AsyncSession,
        settings: Settings | None = None,
        emitter: EventEmitter | None = None,
        tax_rules: TaxRulesStore | None = None,
    ):
        self.session = session
        self.settings = settings or get_settings()
        self.emitter = emitter or EventEmitter()
        self.tax_rules = tax_rules or TaxRulesStore(session)

    async def calculate(
        self, employment_id: UUID, period: PayPeriod, bonus: Decimal = ZERO
    ) -> EmploymentPayroll:
        """Calculate without persisting anything."""
        employment = await self._load_employment(employment_id)
        rules = await self.tax_rules.load(period.year)
        engine = PayrollEngine(
            rules,
            engine_version=self.settings.engine_version,
            standard_month_days=self.settings.standard_month_days,
            fte_tolerance=self.settings.fte_tolerance,
        )
        return engine.calculate(
            employment.employee,
            employment,
            employment.funding_allocations,
            period,
            bonus=bonus,
        )

    async def generate_payroll(
        self,
        employment_id: UUID,
        period: PayPeriod,
        bonus: Decimal = ZERO,
        recalculate: bool = False,
        events: EventBatch | None = None,
    ) -> PayrollGenerationResult:
        """Generate and store payroll records for one employment and month.

        The PayrollGenerated event goes into events when given, so it is
        published only once the caller's transaction commits; otherwise it is
        emitted immediately.

        Raises:
            EmploymentNotFoundError: Unknown employment
            NoActiveAllocationError: No active allocation covers the period
            FteSumError: Active allocations do not sum to one FTE
            TaxRulesNotFoundError: No brackets for the period's year
            PayrollAlreadyGeneratedError: Records exist from different inputs
                and recalculate is False
        """
        payroll = await self.calculate(employment_id, period, bonus)
        existing = await self.list_records(employment_id, period)

        replaced = False
        if existing:
            existing_ids = {r.calculation_id for r in existing}
            if existing_ids == {payroll.calculation_id}:
                return PayrollGenerationResult(
                    employment_id=employment_id,
                    period=period,
                    calculation_id=payroll.calculation_id,
                    records=existing,
                    created=False,
                )
            if not recalculate:
                raise PayrollAlreadyGeneratedError(
                    employment_id, period.label, existing[0].calculation_id, payroll.calculation_id
                )
            await self.session.execute(
                delete(PayrollRecord).where(
                    PayrollRecord.employment_id == employment_id,
                    PayrollRecord.pay_period == period.label,
                )
            )
            await self.session.flush()
            replaced = True
            logger.info(
                "Replacing %d payroll records for employment %s in %s",
                len(existing),
                employment_id,
                period.label,
            )

        records = [self._to_record(payroll, item) for item in payroll.allocations]
        self.session.add_all(records)
        await self.session.flush()

        result = PayrollGenerationResult(
            employment_id=employment_id,
            period=period,
            calculation_id=payroll.calculation_id,
            records=records,
            created=True,
            recalculated=replaced,
        )
        event = PayrollGenerated(
            metadata=EventMetadata.create(),
            employment_id=employment_id,
            pay_period=period.label,
            calculation_id=payroll.calculation_id,
            record_count=len(records),
            total_net=result.total_net,
            recalculated=replaced,
        )
        if events is not None:
            events.add(event)
        else:
            self.emitter.emit(event)
        return result

    async def list_records(
        self, employment_id: UUID, period: PayPeriod | None = None
    ) -> list[PayrollRecord]:
        """Stored payroll records for an employment, optionally one period only."""
        query = select(PayrollRecord).where(PayrollRecord.employment_id == employment_id)
        if period is not None:
            query = query.where(PayrollRecord.pay_period == period.label)
        query = query.order_by(PayrollRecord.pay_period, PayrollRecord.funding_allocation_id)
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def _load_employment(self, employment_id: UUID) -> Employment:
        result = await self.session.execute(
            select(Employment)
            .where(Employment.employment_id == employment_id)
            .options(
                selectinload(Employment.employee),
                selectinload(Employment.funding_allocations),
            )
            .execution_options(populate_existing=True)
        )
        employment = result.scalar_one_or_none()
        if employment is None:
            raise EmploymentNotFoundError(employment_id)
        return employment

    def _to_record(
        self, payroll: EmploymentPayroll, allocation_payroll: AllocationPayroll
    ) -> PayrollRecord:
        c = allocation_payroll.components
        return PayrollRecord(
            employment_id=payroll.employment_id,
            employee_id=payroll.employee_id,
            funding_allocation_id=allocation_payroll.funding_allocation_id,
            pay_period=payroll.period.label,
            pay_period_date=payroll.period.end,
            fte=allocation_payroll.fte,
            gross_salary=c.gross_salary,
            gross_salary_by_fte=c.gross_salary_by_fte,
            compensation_refund=c.compensation_refund,
            thirteenth_month_salary=c.thirteenth_month_salary,
            salary_bonus=c.salary_bonus,
            pvd=c.pvd,
            saving_fund=c.saving_fund,
            employee_social_security=c.employee_social_security,
            employee_health_welfare=c.employee_health_welfare,
            income_tax=c.income_tax,
            employer_social_security=c.employer_social_security,
            employer_health_welfare=c.employer_health_welfare,
            total_income=c.total_income,
            total_deduction=c.total_deduction,
            net_salary=c.net_salary,
            employer_contribution=c.employer_contribution,
            total_salary=c.total_salary,
            calculation_id=payroll.calculation_id,
            inputs_fingerprint=payroll.inputs_fingerprint,
            engine_version=self.settings.engine_version,
        )


@dataclass
class PayrollRunOutcome:
    """What a bulk run did for one employment."""

    employment_id: UUID
    status: str  # created, unchanged, failed
    message: str | None = None
    calculation_id: UUID | None = None
    record_count: int = 0
    total_net: Decimal = ZERO
    recalculated: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "employment_id": str(self.employment_id),
            "status": self.status,
            "message": self.message,
            "calculation_id": str(self.calculation_id) if self.calculation_id else None,
            "record_count": self.record_count,
            "total_net": str(self.total_net),
            "recalculated": self.recalculated,
        }


@dataclass
class PayrollRunSummary:
    """Completion summary of a bulk payroll run for one pay period."""

    period: PayPeriod
    requested: int = 0
    created: int = 0
    unchanged: int = 0
    failed: int = 0
    errors: list[str] = field(default_factory=list)
    details: list[PayrollRunOutcome] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.failed == 0

    @property
    def total_net(self) -> Decimal:
        return sum((d.total_net for d in self.details if d.status != "failed"), ZERO)

    def record(self, outcome: PayrollRunOutcome) -> None:
        self.details.append(outcome)
        if outcome.status == "created":
            self.created += 1
        elif outcome.status == "unchanged":
            self.unchanged += 1
        elif outcome.status == "failed":
            self.failed += 1
            self.errors.append(f"{outcome.employment_id}: {outcome.message}")

    def to_dict(self) -> dict[str, Any]:
        return {
            "pay_period": self.period.label,
            "requested": self.requested,
            "created": self.created,
            "unchanged": self.unchanged,
            "failed": self.failed,
            "total_net": str(self.total_net),
            "errors": list(self.errors),
            "details": [d.to_dict() for d in self.details],
        }


class BulkPayrollRunner:
    """Generates one pay period's payroll for many employments.

    Each employment is its own unit of work with its own session and
    transaction, at most `concurrency` at a time. A failing employment is
    rolled back and listed in the summary; the others are still paid.
    Re-running a period is safe: unchanged inputs come back as "unchanged".
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
        self.concurrency = max(1, concurrency or self.settings.payroll_concurrency)

    async def generate_bulk(
        self,
        employment_ids: Iterable[UUID],
        period: PayPeriod,
        recalculate: bool = False,
    ) -> PayrollRunSummary:
        # Order kept, duplicates dropped
        wanted = list(dict.fromkeys(employment_ids))
        summary = PayrollRunSummary(period=period, requested=len(wanted))
        logger.info("Bulk payroll for %s: %d employment(s)", period.label, len(wanted))

        semaphore = asyncio.Semaphore(self.concurrency)

        async def run(employment_id: UUID) -> PayrollRunOutcome:
            async with semaphore:
                return await self.generate_one(employment_id, period, recalculate)

        for outcome in await asyncio.gather(*(run(eid) for eid in wanted)):
            summary.record(outcome)

        logger.info(
            "Bulk payroll for %s finished: created=%d unchanged=%d failed=%d",
            period.label,
            summary.created,
            summary.unchanged,
            summary.failed,
        )
        self.emitter.emit(
            PayrollBatchCompleted(
                metadata=EventMetadata.create(),
                pay_period=period.label,
                requested=summary.requested,
                created=summary.created,
                unchanged=summary.unchanged,
                failed=summary.failed,
            )
        )
        return summary

    async def generate_one(
        self, employment_id: UUID, period: PayPeriod, recalculate: bool = False
    ) -> PayrollRunOutcome:
        """Generate one employment's payroll in its own transaction."""
        try:
            with self.emitter.batch() as events:
                async with self.session_factory() as session:
                    async with session.begin():
                        service = PayrollService(session, self.settings, self.emitter)
                        result = await service.generate_payroll(
                            employment_id, period, recalculate=recalculate, events=events
                        )
        except Exception as exc:
            logger.exception(
                "Payroll generation failed for employment %s in %s", employment_id, period.label
            )
            return PayrollRunOutcome(employment_id, "failed", str(exc))

        return PayrollRunOutcome(
            employment_id,
            "created" if result.created else "unchanged",
            calculation_id=result.calculation_id,
            record_count=len(result.records),
            total_net=result.total_net,
            recalculated=result.recalculated,
        )
