"""Payroll period reconciliation endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, HTTPException, Path, Query, status

from period_reconciler.api.dependencies import CompanyId, OptionalCompanyId, Reconciliation
from period_reconciler.api.schemas import (
    ConflictResolutionResponse,
    DetectionResponse,
    DiagnosticResponse,
    ErrorResponse,
    PeriodCreate,
    PeriodCreationResponse,
    PeriodResponse,
    PostClosureResponse,
    RootCorrectionResponse,
    TransitionRequest,
)
from period_reconciler.calculators.types import DateRange, Periodicity

router = APIRouter(prefix="/periods", tags=["periods"])


# ============================================================================
# Diagnostics and corrections
# ============================================================================


@router.get(
    "/diagnostic",
    response_model=DiagnosticResponse,
    responses={400: {"model": ErrorResponse}},
)
async def run_diagnostic(
    service: Reconciliation,
    company_id: CompanyId,
    periodicity: Annotated[Periodicity | None, Query()] = None,
) -> DiagnosticResponse:
    """Diagnose the company's period ledger without changing it."""
    report = await service.run_diagnostic(company_id, periodicity)
    return DiagnosticResponse.model_validate(report)


@router.post(
    "/auto-corrections",
    response_model=ConflictResolutionResponse,
    responses={400: {"model": ErrorResponse}},
)
async def apply_auto_corrections(
    service: Reconciliation,
    company_id: CompanyId,
    periodicity: Annotated[Periodicity | None, Query()] = None,
) -> ConflictResolutionResponse:
    """Remove duplicates, ensure the cycle baseline, renumber and rename."""
    result = await service.apply_auto_corrections(company_id, periodicity)
    return ConflictResolutionResponse.model_validate(result)


@router.post(
    "/root-correction",
    response_model=RootCorrectionResponse,
    responses={400: {"model": ErrorResponse}},
)
async def apply_root_correction(
    service: Reconciliation,
    company_id: CompanyId,
    periodicity: Annotated[Periodicity | None, Query()] = None,
) -> RootCorrectionResponse:
    """Run the six-phase root correction of the numbering."""
    result = await service.apply_root_correction(company_id, periodicity)
    return RootCorrectionResponse.model_validate(result)


# ============================================================================
# Detection and creation
# ============================================================================


@router.get("/detection", response_model=DetectionResponse)
async def detect_current_period(
    service: Reconciliation,
    company_id: OptionalCompanyId,
) -> DetectionResponse:
    """Decide whether to resume, create or diagnose the current period."""
    result = await service.detect_current_period_status(company_id)
    return DetectionResponse.model_validate(result)


@router.post(
    "",
    response_model=PeriodCreationResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def create_period(
    service: Reconciliation,
    company_id: CompanyId,
    payload: PeriodCreate,
) -> PeriodCreationResponse:
    """Create a draft period for a suggested range."""
    result = await service.create_period_from_suggestion(
        company_id,
        DateRange(payload.start_date, payload.end_date),
        payload.periodicity,
    )
    if not result.success:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail=result.message,
        )
    return PeriodCreationResponse.model_validate(result)


# ============================================================================
# Lifecycle
# ============================================================================


@router.post(
    "/{period_id}/verify-closure",
    response_model=PostClosureResponse,
    responses={400: {"model": ErrorResponse}},
)
async def verify_closure(
    service: Reconciliation,
    company_id: CompanyId,
    period_id: Annotated[UUID, Path()],
) -> PostClosureResponse:
    """Confirm the period is closed and suggest the next one."""
    result = await service.verify_closure_and_detect_next(period_id, company_id)
    return PostClosureResponse.model_validate(result)


@router.post(
    "/{period_id}/transition",
    response_model=PeriodResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def transition_period(
    service: Reconciliation,
    company_id: CompanyId,
    period_id: Annotated[UUID, Path()],
    payload: TransitionRequest,
) -> PeriodResponse:
    """Move a period to a new state.

    Invalid transitions surface as 409 through the application handler.
    """
    try:
        period = await service.transition(period_id, payload.to_state, company_id)
    except LookupError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Period not found",
        )
    return PeriodResponse.model_validate(period)
