"""Probation transition batch trigger."""

from datetime import date

from fastapi import APIRouter

from hr_payroll.api.dependencies import AppSettings, Emitter, SessionFactory
from hr_payroll.api.schemas import TransitionRunRequest, TransitionSummaryResponse
from hr_payroll.services.transition_service import TransitionProcessor

router = APIRouter(prefix="/transitions", tags=["transitions"])


@router.post("/run", response_model=TransitionSummaryResponse)
async def run_transitions(
    factory: SessionFactory,
    settings: AppSettings,
    emitter: Emitter,
    payload: TransitionRunRequest,
) -> TransitionSummaryResponse:
    """Run the daily transition batch. Safe to call more than once per day."""
    processor = TransitionProcessor(factory, settings, emitter)
    summary = await processor.process_transitions(
        payload.as_of or date.today(),
        employment_ids=payload.employment_ids,
        dry_run=payload.dry_run,
    )
    return TransitionSummaryResponse.model_validate(summary.to_dict())
