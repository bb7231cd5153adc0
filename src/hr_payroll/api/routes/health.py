"""Liveness, readiness and database health checks."""

import logging
from datetime import date, datetime, timezone

from fastapi import APIRouter, status
from pydantic import BaseModel
from sqlalchemy import func, select, text
from sqlalchemy.exc import SQLAlchemyError

from hr_payroll.api.dependencies import AppSettings, DbSession
from hr_payroll.models import TaxBracket

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    status: str
    timestamp: datetime
    database: str
    engine_version: str


class ReadinessResponse(BaseModel):
    """Readiness plus whether this year's tax brackets are loaded.

    Missing brackets do not make the service unready; payroll generation for
    the year reports them when asked.
    """

    status: str
    tax_year: int
    tax_brackets: int


@router.get("/health", response_model=HealthResponse)
async def health_check(db: DbSession, settings: AppSettings) -> HealthResponse:
    """Report API and database health. A failing database degrades, never errors."""
    database = "healthy"
    try:
        await db.execute(text("SELECT 1"))
    except SQLAlchemyError:
        logger.warning("Database health check failed", exc_info=True)
        database = "unhealthy"

    return HealthResponse(
        status="healthy" if database == "healthy" else "degraded",
        timestamp=datetime.now(timezone.utc),
        database=database,
        engine_version=settings.engine_version,
    )


@router.get("/ready", response_model=ReadinessResponse)
async def readiness_check(db: DbSession) -> ReadinessResponse:
    year = date.today().year
    brackets = await db.scalar(
        select(func.count())
        .select_from(TaxBracket)
        .where(TaxBracket.effective_year == year, TaxBracket.is_active.is_(True))
    )
    if not brackets:
        logger.warning("No active tax brackets loaded for %d", year)
    return ReadinessResponse(status="ready", tax_year=year, tax_brackets=brackets or 0)


@router.get("/live", status_code=status.HTTP_200_OK)
async def liveness_check() -> dict[str, str]:
    return {"status": "alive"}
