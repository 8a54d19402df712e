"""Decide what payroll period a company should work on next.

diagnose() is a pure read, auto_heal() closes already-processed drafts
and detect_current_period_status() composes both before choosing one of
resume / create / diagnose / emergency.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from uuid import UUID

from period_reconciler.calculators.intervals import first_range, next_range, suggest
from period_reconciler.calculators.naming import NameCache, NameNormalizer
from period_reconciler.calculators.sequence import SequenceCalculator
from period_reconciler.calculators.types import (
    DateRange,
    Period,
    Periodicity,
    SuggestedRange,
)
from period_reconciler.services.auto_heal import AutoHealResult, PeriodAutoHealer
from period_reconciler.services.diagnostics import DiagnosticAnalyzer, DiagnosticReport
from period_reconciler.services.state_machine import PeriodStateMachine
from period_reconciler.services.store import PeriodStore

logger = logging.getLogger(__name__)


class DetectionAction(str, Enum):
    """What the caller should do with the company's ledger."""

    RESUME = "resume"
    CREATE = "create"
    DIAGNOSE = "diagnose"
    EMERGENCY = "emergency"


@dataclass
class PeriodDetectionResult:
    """Outcome of current-period detection."""

    action: DetectionAction
    message: str
    period: Period | None = None
    suggested_range: SuggestedRange | None = None
    diagnostic: DiagnosticReport | None = None
    heal: AutoHealResult | None = None
    errors: list[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.action != DetectionAction.EMERGENCY

    @property
    def has_active_period(self) -> bool:
        return self.action == DetectionAction.RESUME


@dataclass
class PeriodCreationResult:
    """Outcome of creating a period from a suggested range."""

    message: str = ""
    period: Period | None = None
    errors: list[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.period is not None and len(self.errors) == 0


class PeriodDetectionService:
    """Current-period detection for one company."""

    def __init__(
        self,
        store: PeriodStore,
        company_id: UUID | None,
        analyzer: DiagnosticAnalyzer | None = None,
        healer: PeriodAutoHealer | None = None,
        normalizer: NameNormalizer | None = None,
        today: date | None = None,
    ):
        self.store = store
        self.company_id = company_id
        self.normalizer = normalizer or NameNormalizer(NameCache())
        self.analyzer = analyzer or DiagnosticAnalyzer(store, self.normalizer)
        self.healer = healer or PeriodAutoHealer(store)
        self.today = today

    async def diagnose(self, periodicity: Periodicity | str | None = None) -> DiagnosticReport:
        """Read-only diagnostic of the company's ledger."""
        return await self.analyzer.run_diagnostic(self.company_id, periodicity)

    async def auto_heal(self) -> AutoHealResult:
        """Close draft periods whose payroll is already processed."""
        return await self.healer.heal(self.company_id)

    async def detect_current_period_status(self) -> PeriodDetectionResult:
        """Pick the action for the company's current period. Never raises."""
        if self.company_id is None:
            return PeriodDetectionResult(
                action=DetectionAction.EMERGENCY,
                message="Critical error: no company could be determined",
                errors=["Missing company id"],
            )

        try:
            return await self._detect()
        except Exception as e:
            logger.exception("Period detection failed for company %s", self.company_id)
            return PeriodDetectionResult(
                action=DetectionAction.EMERGENCY,
                message=f"Critical error: {e}",
                errors=[str(e)],
            )

    async def _detect(self) -> PeriodDetectionResult:
        periodicity = Periodicity(await self.store.get_company_periodicity(self.company_id))
        diagnostic = await self.diagnose(periodicity)
        heal = await self.auto_heal()
        errors = [*diagnostic.errors, *heal.errors]

        periods = await self.store.list_periods(self.company_id, periodicity)
        active = [p for p in periods if PeriodStateMachine.is_active(p.state)]
        closed = [p for p in periods if PeriodStateMachine.is_closed(p.state)]

        if len(active) == 1:
            period = active[0]
            return PeriodDetectionResult(
                action=DetectionAction.RESUME,
                message=f"Resume active period: {period.display_name}",
                period=period,
                diagnostic=diagnostic,
                heal=heal,
                errors=errors,
            )

        if len(active) > 1:
            return PeriodDetectionResult(
                action=DetectionAction.DIAGNOSE,
                message=f"{len(active)} active periods found, review required",
                diagnostic=diagnostic,
                heal=heal,
                errors=errors,
            )

        if closed:
            last = max(closed, key=lambda p: p.end_date)
            suggestion = suggest(
                next_range(last.end_date, periodicity), periodicity, self.normalizer
            )
        elif not periods:
            today = self.today or date.today()
            suggestion = suggest(first_range(today, periodicity), periodicity, self.normalizer)
        else:
            return PeriodDetectionResult(
                action=DetectionAction.DIAGNOSE,
                message="No active or closed periods found, review required",
                diagnostic=diagnostic,
                heal=heal,
                errors=errors,
            )

        return PeriodDetectionResult(
            action=DetectionAction.CREATE,
            message=f"Create new period: {suggestion.display_name}",
            suggested_range=suggestion,
            diagnostic=diagnostic,
            heal=heal,
            errors=errors,
        )

    async def create_period_from_suggestion(
        self,
        suggestion: SuggestedRange | DateRange,
        periodicity: Periodicity | str | None = None,
    ) -> PeriodCreationResult:
        """Create a draft period for a suggested range. Never raises.

        Number and name are recomputed canonically; a range that is
        already stored is refused.
        """
        result = PeriodCreationResult()
        if self.company_id is None:
            result.errors.append("Missing company id")
            result.message = "Cannot create a period without a company"
            return result

        if isinstance(suggestion, SuggestedRange):
            periodicity = periodicity or suggestion.periodicity
            date_range = suggestion.date_range
        else:
            date_range = suggestion

        if date_range.end < date_range.start:
            result.errors.append(f"End date {date_range.end} is before start {date_range.start}")
            result.message = "Invalid period range"
            return result

        try:
            if periodicity is None:
                periodicity = await self.store.get_company_periodicity(self.company_id)
            periodicity = Periodicity(periodicity)

            existing = await self.store.find_period_by_range(
                self.company_id, date_range.start, date_range.end, periodicity
            )
            if existing is not None:
                result.errors.append(f"Period {existing.display_name} already exists")
                result.message = f"Period {existing.display_name} already exists"
                return result

            name = self.normalizer.name(date_range.start, date_range.end, periodicity)
            result.period = await self.store.create_period(
                company_id=self.company_id,
                periodicity=periodicity,
                start_date=date_range.start,
                end_date=date_range.end,
                sequence_number=SequenceCalculator.number(date_range.start, periodicity),
                display_name=name,
            )
        except Exception as e:
            logger.exception("Could not create period %s for %s", date_range, self.company_id)
            result.errors.append(f"Error creating period: {e}")
            result.message = "Period creation failed"
            return result

        result.message = f"Period {result.period.display_name} created"
        logger.info("Created period %s for company %s", result.period.display_name, self.company_id)
        return result
