"""Probation history and manual decision endpoints."""

from datetime import date
from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Path

from hr_payroll.api.dependencies import AppSettings, DbSession, Emitter
from hr_payroll.api.schemas import (
    ErrorResponse,
    ProbationExtendRequest,
    ProbationFailRequest,
    ProbationHistoryResponse,
    ProbationPassRequest,
    ProbationRecordResponse,
)
from hr_payroll.errors import EmploymentNotFoundError
from hr_payroll.models import Employment
from hr_payroll.services.probation_service import ProbationTracker
from hr_payroll.services.transition_service import (
    ProbationCommands,
    load_employment_for_update,
)

router = APIRouter(prefix="/employments", tags=["probation"])

DECISION_RESPONSES = {404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}}


@router.get(
    "/{employment_id}/probation",
    response_model=ProbationHistoryResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_probation_history(
    db: DbSession,
    employment_id: Annotated[UUID, Path()],
) -> ProbationHistoryResponse:
    """Full probation log, oldest first, with summary."""
    if await db.get(Employment, employment_id) is None:
        raise EmploymentNotFoundError(employment_id)

    history = await ProbationTracker(db).get_history(employment_id)
    return ProbationHistoryResponse(
        employment_id=employment_id,
        current_status=history.current_status,
        total_extensions=history.total_extensions,
        original_end_date=history.original_end_date,
        current_end_date=history.current_end_date,
        is_terminal=history.is_terminal,
        can_extend=history.can_extend,
        records=[ProbationRecordResponse.model_validate(r) for r in history.records],
    )


@router.post(
    "/{employment_id}/probation/pass",
    response_model=ProbationRecordResponse,
    responses=DECISION_RESPONSES,
)
async def pass_probation(
    db: DbSession,
    settings: AppSettings,
    emitter: Emitter,
    employment_id: Annotated[UUID, Path()],
    payload: ProbationPassRequest,
) -> ProbationRecordResponse:
    """Pass probation and reprice allocations at the post-probation salary."""
    with emitter.batch() as events:
        employment = await load_employment_for_update(db, employment_id)
        commands = ProbationCommands(db, settings, emitter)
        record = await commands.pass_probation(
            employment,
            payload.on_date or date.today(),
            notes=payload.notes,
            approved_by=payload.approved_by,
            events=events,
        )
        await db.commit()
    return ProbationRecordResponse.model_validate(record)


@router.post(
    "/{employment_id}/probation/fail",
    response_model=ProbationRecordResponse,
    responses=DECISION_RESPONSES,
)
async def fail_probation(
    db: DbSession,
    settings: AppSettings,
    emitter: Emitter,
    employment_id: Annotated[UUID, Path()],
    payload: ProbationFailRequest,
) -> ProbationRecordResponse:
    """Fail probation, terminate allocations and end the employment."""
    with emitter.batch() as events:
        employment = await load_employment_for_update(db, employment_id)
        commands = ProbationCommands(db, settings, emitter)
        record = await commands.fail_probation(
            employment,
            payload.on_date or date.today(),
            payload.reason,
            notes=payload.notes,
            approved_by=payload.approved_by,
            events=events,
        )
        await db.commit()
    return ProbationRecordResponse.model_validate(record)


@router.post(
    "/{employment_id}/probation/extend",
    response_model=ProbationRecordResponse,
    responses=DECISION_RESPONSES,
)
async def extend_probation(
    db: DbSession,
    settings: AppSettings,
    emitter: Emitter,
    employment_id: Annotated[UUID, Path()],
    payload: ProbationExtendRequest,
) -> ProbationRecordResponse:
    """Extend probation to a later completion date."""
    with emitter.batch() as events:
        employment = await load_employment_for_update(db, employment_id)
        commands = ProbationCommands(db, settings, emitter)
        record = await commands.extend_probation(
            employment,
            payload.new_end_date,
            payload.reason,
            on_date=payload.on_date or date.today(),
            notes=payload.notes,
            approved_by=payload.approved_by,
            events=events,
        )
        await db.commit()
    return ProbationRecordResponse.model_validate(record)
