"""Reconciliation facade - one entry point per public operation."""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from datetime import date
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from period_reconciler.calculators.naming import NameCache, NameNormalizer
from period_reconciler.calculators.types import (
    DateRange,
    Period,
    PeriodState,
    Periodicity,
    SuggestedRange,
)
from period_reconciler.config import Settings, get_settings
from period_reconciler.services.conflict_resolver import (
    ConflictResolutionResult,
    ConflictResolver,
)
from period_reconciler.services.diagnostics import DiagnosticAnalyzer, DiagnosticReport
from period_reconciler.services.lifecycle import PeriodLifecycleService
from period_reconciler.services.period_detection import (
    PeriodCreationResult,
    PeriodDetectionResult,
    PeriodDetectionService,
)
from period_reconciler.services.post_closure import (
    ClosureVerificationConfig,
    PostClosureDetectionService,
    PostClosureResult,
)
from period_reconciler.services.root_resolver import (
    RootConflictResolutionResult,
    RootConflictResolver,
)
from period_reconciler.services.store import PeriodStore, SqlPeriodStore


class PeriodReconciliationService:
    """Groups the reconciliation operations for one datastore session.

    All services share a single name cache for the lifetime of the
    facade. Every operation except transition() returns a result object
    and never raises.
    """

    def __init__(
        self,
        store: PeriodStore,
        settings: Settings | None = None,
        today: date | None = None,
        sleep: Callable[[float], Awaitable[object]] = asyncio.sleep,
    ):
        self.store = store
        self.settings = settings or get_settings()
        self.today = today
        self.name_cache = NameCache()
        self.normalizer = NameNormalizer(self.name_cache)

        self.analyzer = DiagnosticAnalyzer(store, self.normalizer)
        self.conflict_resolver = ConflictResolver(store, self.normalizer, today)
        self.root_resolver = RootConflictResolver(store, self.normalizer, today)
        self.post_closure = PostClosureDetectionService(
            store,
            ClosureVerificationConfig.from_settings(self.settings),
            self.normalizer,
            sleep=sleep,
        )
        self.lifecycle = PeriodLifecycleService(store)

    @classmethod
    def for_session(cls, session: AsyncSession, **kwargs) -> PeriodReconciliationService:
        """Build the facade over a SQLAlchemy session."""
        settings = kwargs.get("settings") or get_settings()
        store = SqlPeriodStore(session, settings.default_periodicity)
        return cls(store, **kwargs)

    def detection(self, company_id: UUID | None) -> PeriodDetectionService:
        return PeriodDetectionService(
            self.store,
            company_id,
            analyzer=self.analyzer,
            normalizer=self.normalizer,
            today=self.today,
        )

    async def run_diagnostic(
        self, company_id: UUID, periodicity: Periodicity | str | None = None
    ) -> DiagnosticReport:
        return await self.analyzer.run_diagnostic(company_id, periodicity)

    async def apply_auto_corrections(
        self, company_id: UUID, periodicity: Periodicity | str | None = None
    ) -> ConflictResolutionResult:
        return await self.conflict_resolver.resolve_all_conflicts(company_id, periodicity)

    async def apply_root_correction(
        self, company_id: UUID, periodicity: Periodicity | str | None = None
    ) -> RootConflictResolutionResult:
        return await self.root_resolver.execute_root_correction(company_id, periodicity)

    async def detect_current_period_status(
        self, company_id: UUID | None
    ) -> PeriodDetectionResult:
        return await self.detection(company_id).detect_current_period_status()

    async def create_period_from_suggestion(
        self,
        company_id: UUID | None,
        suggestion: SuggestedRange | DateRange,
        periodicity: Periodicity | str | None = None,
    ) -> PeriodCreationResult:
        return await self.detection(company_id).create_period_from_suggestion(
            suggestion, periodicity
        )

    async def verify_closure_and_detect_next(
        self, period_id: UUID, company_id: UUID
    ) -> PostClosureResult:
        return await self.post_closure.verify_closure_and_detect_next(period_id, company_id)

    async def transition(
        self,
        period_id: UUID,
        to_state: PeriodState | str,
        company_id: UUID | None = None,
    ) -> Period:
        """Apply a validated state transition (raises on invalid input)."""
        return await self.lifecycle.transition(period_id, to_state, company_id)
