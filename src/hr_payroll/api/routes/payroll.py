"""Payroll generation endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path, Query, status

from hr_payroll.api.dependencies import AppSettings, DbSession, Emitter, SessionFactory
from hr_payroll.api.schemas import (
    ErrorResponse,
    PayrollGenerateRequest,
    PayrollGenerateResponse,
    PayrollRecordResponse,
    PayrollRunRequest,
    PayrollRunSummaryResponse,
)
from hr_payroll.calculators.types import PayPeriod
from hr_payroll.services.payroll_service import BulkPayrollRunner, PayrollService

router = APIRouter(prefix="/employments", tags=["payroll"])
run_router = APIRouter(prefix="/payroll", tags=["payroll"])


@router.post(
    "/{employment_id}/payroll",
    response_model=PayrollGenerateResponse,
    status_code=status.HTTP_200_OK,
    responses={
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
    },
)
async def generate_payroll(
    db: DbSession,
    settings: AppSettings,
    emitter: Emitter,
    employment_id: Annotated[UUID, Path()],
    payload: PayrollGenerateRequest,
) -> PayrollGenerateResponse:
    """Generate payroll for one month. Idempotent for unchanged inputs."""
    period = PayPeriod.parse(payload.period)
    service = PayrollService(db, settings, emitter)
    with emitter.batch() as events:
        result = await service.generate_payroll(
            employment_id,
            period,
            bonus=payload.bonus,
            recalculate=payload.recalculate,
            events=events,
        )
        await db.commit()

    return PayrollGenerateResponse(
        employment_id=employment_id,
        pay_period=period.label,
        calculation_id=result.calculation_id,
        created=result.created,
        recalculated=result.recalculated,
        total_net=result.total_net,
        records=[PayrollRecordResponse.model_validate(r) for r in result.records],
    )


@router.get(
    "/{employment_id}/payroll",
    response_model=list[PayrollRecordResponse],
)
async def list_payroll_records(
    db: DbSession,
    employment_id: Annotated[UUID, Path()],
    period: Annotated[str | None, Query(pattern=r"^\d{4}-(0[1-9]|1[0-2])$")] = None,
) -> list[PayrollRecordResponse]:
    """Stored payroll records for an employment."""
    records = await PayrollService(db).list_records(
        employment_id, PayPeriod.parse(period) if period else None
    )
    return [PayrollRecordResponse.model_validate(r) for r in records]


@run_router.post("/run", response_model=PayrollRunSummaryResponse)
async def run_payroll(
    factory: SessionFactory,
    settings: AppSettings,
    emitter: Emitter,
    payload: PayrollRunRequest,
) -> PayrollRunSummaryResponse:
    """Generate one month's payroll for several employments.

    Each employment commits or rolls back on its own; failures are listed in
    the summary rather than failing the request.
    """
    runner = BulkPayrollRunner(factory, settings, emitter)
    summary = await runner.generate_bulk(
        payload.employment_ids,
        PayPeriod.parse(payload.period),
        recalculate=payload.recalculate,
    )
    return PayrollRunSummaryResponse.model_validate(summary.to_dict())
