"""FastAPI application factory."""

import logging
from contextlib import asynccontextmanager
from collections.abc import AsyncGenerator

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ph_payroll import __version__
from ph_payroll.api.routes import annualization_router, health_router, runs_router
from ph_payroll.calculators.engine import StatutoryVersionNotFoundError
from ph_payroll.calculators.rate_resolver import RateNotFoundError
from ph_payroll.calculators.runners import MissingStatutoryTableError, RunCancelledError
from ph_payroll.calculators.types import InvalidRunRequestError, UnknownEmployeeError
from ph_payroll.database import create_schema, dispose_db, init_db

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan handler."""
    # Startup
    init_db()
    await create_schema()
    yield
    # Shutdown
    await dispose_db()


def _error(status_code: int, detail: str, code: str, context: dict | None = None) -> JSONResponse:
    content: dict = {"detail": detail, "code": code}
    if context:
        content["context"] = context
    return JSONResponse(status_code=status_code, content=content)


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="PH Payroll Engine API",
        description="Philippine payroll computation: contributions, withholding tax and annualization",
        version=__version__,
        lifespan=lifespan,
    )

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Exception handlers
    @app.exception_handler(StatutoryVersionNotFoundError)
    async def version_not_found_handler(request: Request, exc: StatutoryVersionNotFoundError) -> JSONResponse:
        return _error(
            status.HTTP_404_NOT_FOUND,
            str(exc),
            "STATUTORY_VERSION_NOT_FOUND",
            {"as_of_date": exc.as_of_date.isoformat(), "reason": exc.reason},
        )

    @app.exception_handler(MissingStatutoryTableError)
    async def missing_table_handler(request: Request, exc: MissingStatutoryTableError) -> JSONResponse:
        return _error(
            status.HTTP_422_UNPROCESSABLE_ENTITY,
            str(exc),
            "MISSING_STATUTORY_TABLE",
            {"table": exc.table, "version_id": exc.version_id},
        )

    @app.exception_handler(UnknownEmployeeError)
    async def unknown_employee_handler(request: Request, exc: UnknownEmployeeError) -> JSONResponse:
        return _error(
            status.HTTP_422_UNPROCESSABLE_ENTITY,
            str(exc),
            "UNKNOWN_EMPLOYEE",
            {"employee_code": exc.employee_code},
        )

    @app.exception_handler(RateNotFoundError)
    async def rate_not_found_handler(request: Request, exc: RateNotFoundError) -> JSONResponse:
        return _error(
            status.HTTP_422_UNPROCESSABLE_ENTITY,
            str(exc),
            "RATE_NOT_FOUND",
            {"employee_code": exc.employee_code},
        )

    @app.exception_handler(InvalidRunRequestError)
    async def invalid_request_handler(request: Request, exc: InvalidRunRequestError) -> JSONResponse:
        return _error(status.HTTP_422_UNPROCESSABLE_ENTITY, str(exc), "INVALID_RUN_REQUEST")

    @app.exception_handler(RunCancelledError)
    async def cancelled_handler(request: Request, exc: RunCancelledError) -> JSONResponse:
        return _error(status.HTTP_409_CONFLICT, str(exc), "RUN_CANCELLED")

    @app.exception_handler(ValueError)
    async def value_error_handler(request: Request, exc: ValueError) -> JSONResponse:
        return _error(status.HTTP_422_UNPROCESSABLE_ENTITY, str(exc), "INVALID_INPUT")

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        """Handle unexpected exceptions."""
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "An unexpected error occurred", "INTERNAL_ERROR")

    # Include routers
    app.include_router(health_router)
    app.include_router(runs_router, prefix="/api/v1")
    app.include_router(annualization_router, prefix="/api/v1")

    return app


# Default app instance for uvicorn
app = create_app()
