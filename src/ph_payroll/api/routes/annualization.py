"""Annualization and final pay endpoints."""

from fastapi import APIRouter, status

from ph_payroll.api.dependencies import DbSession
from ph_payroll.api.schemas import (
    AnnualizationPayload,
    AnnualSummaryResponse,
    ErrorResponse,
    FinalPayPayload,
    FinalPayResponse,
    PreAnnualizationPayload,
    PreAnnualizationResponse,
    RowResponse,
)
from ph_payroll.services.payroll_service import PayrollService

router = APIRouter(tags=["annualization"])

_ERRORS = {404: {"model": ErrorResponse}, 422: {"model": ErrorResponse}}


@router.post(
    "/annualization/final",
    response_model=list[AnnualSummaryResponse],
    status_code=status.HTTP_200_OK,
    responses=_ERRORS,
)
async def annualize(db: DbSession, payload: AnnualizationPayload) -> list[AnnualSummaryResponse]:
    """Year-end annualization: tax due against cumulative withholding."""
    service = PayrollService(payload.config.to_config(), db)
    summaries = await service.annualize(
        payload.year,
        [e.to_domain() for e in payload.employees],
        history=[r.to_domain() for r in payload.history] if payload.history is not None else None,
        tables=payload.statutory.to_domain() if payload.statutory else None,
        previous={code: p.to_domain() for code, p in payload.previous_employers.items()},
    )
    return [AnnualSummaryResponse.model_validate(s) for s in summaries]


@router.post(
    "/annualization/pre",
    response_model=list[PreAnnualizationResponse],
    status_code=status.HTTP_200_OK,
    responses=_ERRORS,
)
async def pre_annualize(db: DbSession, payload: PreAnnualizationPayload) -> list[PreAnnualizationResponse]:
    """Projected annual tax and the per-cutoff amount still to withhold."""
    service = PayrollService(payload.config.to_config(), db)
    projections = await service.pre_annualize(
        payload.as_of,
        [e.to_domain() for e in payload.employees],
        history=[r.to_domain() for r in payload.history] if payload.history is not None else None,
        tables=payload.statutory.to_domain() if payload.statutory else None,
        recurring_extras=payload.recurring_extras,
    )
    return [PreAnnualizationResponse.model_validate(p) for p in projections]


@router.post(
    "/final-pay",
    response_model=FinalPayResponse,
    status_code=status.HTTP_200_OK,
    responses=_ERRORS,
)
async def final_pay(db: DbSession, payload: FinalPayPayload) -> FinalPayResponse:
    """Final pay at separation with the annual tax settlement folded in."""
    service = PayrollService(payload.config.to_config(), db)
    result = await service.final_pay(
        payload.employee.to_domain(),
        payload.separation_date,
        payload.adjustments(),
        history=[r.to_domain() for r in payload.history] if payload.history is not None else None,
        tables=payload.statutory.to_domain() if payload.statutory else None,
        previous=payload.previous_employer.to_domain() if payload.previous_employer else None,
        post=payload.post,
    )
    return FinalPayResponse(
        row=RowResponse.from_row(result.row),
        annual=AnnualSummaryResponse.model_validate(result.annual),
        settlement=result.settlement,
    )
