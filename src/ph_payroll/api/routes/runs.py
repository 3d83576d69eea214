"""Run computation endpoints."""

from fastapi import APIRouter, status

from ph_payroll.api.dependencies import DbSession
from ph_payroll.api.schemas import ComputeRunPayload, ErrorResponse, RunResponse
from ph_payroll.services.payroll_service import PayrollService

router = APIRouter(prefix="/runs", tags=["runs"])


@router.post(
    "/compute",
    response_model=RunResponse,
    status_code=status.HTTP_200_OK,
    responses={404: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
async def compute_run(db: DbSession, payload: ComputeRunPayload) -> RunResponse:
    """Compute one run. Deterministic: the same inputs give the same row hashes."""
    service = PayrollService(payload.config.to_config(), db)
    result = await service.compute_run(
        payload.run.to_domain(),
        [e.to_domain() for e in payload.employees],
        [a.to_domain() for a in payload.adjustments],
        tables=payload.statutory.to_domain() if payload.statutory else None,
        history=[r.to_domain() for r in payload.history] if payload.history is not None else None,
        recurring=[r.to_domain() for r in payload.recurring],
        attendance=[a.to_domain() for a in payload.attendance],
        post=payload.post,
    )
    return RunResponse.from_result(result)
