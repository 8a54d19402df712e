"""Pydantic schemas for API request/response models."""

from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator

from period_reconciler.calculators.types import PeriodState, Periodicity
from period_reconciler.services.period_detection import DetectionAction


class ResultBase(BaseModel):
    """Fields every operation result carries."""

    model_config = ConfigDict(from_attributes=True)

    success: bool
    message: str
    errors: list[str] = Field(default_factory=list)


# ============================================================================
# Period schemas
# ============================================================================


class PeriodResponse(BaseModel):
    """Schema for a stored period."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    company_id: UUID
    periodicity: str
    start_date: date
    end_date: date
    sequence_number: int | None = None
    display_name: str
    state: str
    employee_count: int = 0
    gross_total: Decimal = Decimal("0")
    deductions_total: Decimal = Decimal("0")
    net_total: Decimal = Decimal("0")
    created_at: datetime | None = None
    updated_at: datetime | None = None


class SuggestedRangeResponse(BaseModel):
    """Schema for a suggested next interval."""

    model_config = ConfigDict(from_attributes=True)

    start_date: date
    end_date: date
    periodicity: Periodicity
    display_name: str
    sequence_number: int | None = None


class PeriodCreate(BaseModel):
    """Schema for creating a period from a suggested range."""

    start_date: date
    end_date: date
    periodicity: Periodicity | None = None

    @model_validator(mode="after")
    def check_range(self) -> "PeriodCreate":
        if self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


class TransitionRequest(BaseModel):
    """Schema for a period state change."""

    to_state: PeriodState


# ============================================================================
# Diagnostic schemas
# ============================================================================


class PeriodCheckResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    period: PeriodResponse
    canonical_number: int
    canonical_name: str
    warning: str | None = None
    is_correct: bool
    recommended_action: str


class NumberConflictResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    cycle_year: int
    number: int
    periods: list[PeriodResponse]
    correct_period: PeriodResponse | None = None


class StateInconsistencyResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    period: PeriodResponse
    record_count: int


class SelfTestCaseResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    start_date: date
    expected: int
    calculated: int
    description: str
    passed: bool


class DiagnosticResponse(ResultBase):
    """Schema for a diagnostic report."""

    company_id: UUID
    periodicity: str | None = None
    total_periods: int
    issues: list[str]
    recommendations: list[str]
    state_distribution: dict[str, int]
    duplicates: list[list[PeriodResponse]]
    conflicts: list[NumberConflictResponse]
    period_checks: list[PeriodCheckResponse]
    state_inconsistencies: list[StateInconsistencyResponse]
    self_test: list[SelfTestCaseResponse]
    self_test_passed: bool


# ============================================================================
# Correction schemas
# ============================================================================


class ConflictResolutionResponse(ResultBase):
    """Schema for an automatic correction pass."""

    duplicates_removed: int
    periods_created: int
    periods_updated: int
    conflicts_resolved: int
    details: list[str] = Field(default_factory=list)


class RootCorrectionResponse(ResultBase):
    """Schema for a root correction pass."""

    conflicts_resolved: int
    periods_deleted: int
    periods_updated: int
    periods_created: int
    detailed_log: list[str] = Field(default_factory=list)
    issues: list[str] = Field(default_factory=list)


# ============================================================================
# Detection schemas
# ============================================================================


class AutoHealResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    success: bool
    healed: list[PeriodResponse]
    errors: list[str]


class DetectionResponse(ResultBase):
    """Schema for current-period detection."""

    action: DetectionAction
    period: PeriodResponse | None = None
    suggested_range: SuggestedRangeResponse | None = None
    diagnostic: DiagnosticResponse | None = None
    heal: AutoHealResponse | None = None


class PeriodCreationResponse(ResultBase):
    """Schema for period creation from a suggestion."""

    period: PeriodResponse | None = None


class PostClosureResponse(ResultBase):
    """Schema for closure verification."""

    closed_period: PeriodResponse | None = None
    next_period_suggestion: SuggestedRangeResponse | None = None
    error: str | None = None


# ============================================================================
# Error schemas
# ============================================================================


class ErrorResponse(BaseModel):
    """Schema for error response."""

    detail: str
    code: str | None = None
    context: dict[str, Any] | None = None
