"""FastAPI application factory."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from hr_payroll import __version__
from hr_payroll.api.routes import (
    allocations_router,
    health_router,
    payroll_router,
    payroll_run_router,
    probation_router,
    transitions_router,
)
from hr_payroll.database import dispose_db, init_db
from hr_payroll.errors import (
    CapacityConflictError,
    EmploymentNotFoundError,
    InvariantViolationError,
    PayrollCoreError,
    PreconditionError,
    ReferenceDataMissingError,
)
from hr_payroll.events import EventEmitter, LoggingEventHandler

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    init_db()
    yield
    await dispose_db()


def _error_response(status_code: int, exc: PayrollCoreError, code: str | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "detail": str(exc),
            "code": code or exc.code,
            "context": exc.context,
        },
    )


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="HR Payroll Engine API",
        description="Probation transitions, funding allocations and monthly payroll",
        version=__version__,
        lifespan=lifespan,
    )

    emitter = EventEmitter()
    emitter.on_all(LoggingEventHandler())
    app.state.emitter = emitter

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Exception handlers (resolved by the exception's class hierarchy)
    @app.exception_handler(EmploymentNotFoundError)
    async def not_found_handler(request: Request, exc: EmploymentNotFoundError) -> JSONResponse:
        return _error_response(status.HTTP_404_NOT_FOUND, exc)

    @app.exception_handler(PreconditionError)
    async def precondition_handler(request: Request, exc: PreconditionError) -> JSONResponse:
        return _error_response(status.HTTP_409_CONFLICT, exc)

    @app.exception_handler(CapacityConflictError)
    async def capacity_handler(request: Request, exc: CapacityConflictError) -> JSONResponse:
        return _error_response(status.HTTP_409_CONFLICT, exc)

    @app.exception_handler(ReferenceDataMissingError)
    async def reference_data_handler(
        request: Request, exc: ReferenceDataMissingError
    ) -> JSONResponse:
        return _error_response(status.HTTP_422_UNPROCESSABLE_ENTITY, exc)

    @app.exception_handler(InvariantViolationError)
    async def invariant_handler(request: Request, exc: InvariantViolationError) -> JSONResponse:
        logger.error("Invariant violation on %s %s: %s", request.method, request.url.path, exc)
        return _error_response(
            status.HTTP_500_INTERNAL_SERVER_ERROR, exc, code="INVARIANT_VIOLATION"
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Handle unexpected exceptions."""
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "detail": "An unexpected error occurred",
                "code": "INTERNAL_ERROR",
            },
        )

    # Include routers
    app.include_router(health_router)
    app.include_router(probation_router, prefix="/api/v1")
    app.include_router(allocations_router, prefix="/api/v1")
    app.include_router(payroll_router, prefix="/api/v1")
    app.include_router(payroll_run_router, prefix="/api/v1")
    app.include_router(transitions_router, prefix="/api/v1")

    return app


# Default app instance for uvicorn
app = create_app()
