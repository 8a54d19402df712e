"""Corrective pipeline plumbing shared by the resolvers.

A correction pass is an ordered list of CorrectionStep units. Each step
reloads the ledger, applies its writes through the store and reports a
StepResult. CorrectionPipeline runs the steps strictly in order; a step
that blows up is recorded as failed and the pass moves on.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import date
from uuid import UUID

from period_reconciler.calculators.naming import NameCache, NameNormalizer
from period_reconciler.calculators.sequence import SequenceCalculator
from period_reconciler.calculators.types import Period, Periodicity
from period_reconciler.services.diagnostics import NumberConflict
from period_reconciler.services.store import PeriodStore

logger = logging.getLogger(__name__)


@dataclass
class StepResult:
    """Counters and messages produced by one correction step."""

    name: str
    created: int = 0
    updated: int = 0
    deleted: int = 0
    resolved: int = 0
    errors: list[str] = field(default_factory=list)
    log: list[str] = field(default_factory=list)
    issues: list[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return len(self.errors) == 0

    @property
    def changed(self) -> bool:
        return bool(self.created or self.updated or self.deleted)


@dataclass
class ReconciliationState:
    """Context passed from step to step during one correction pass."""

    company_id: UUID
    periodicity: Periodicity
    store: PeriodStore
    normalizer: NameNormalizer = field(default_factory=lambda: NameNormalizer(NameCache()))
    today: date = field(default_factory=date.today)
    periods: list[Period] = field(default_factory=list)
    conflicts: list[NumberConflict] = field(default_factory=list)
    mismatches: list[Period] = field(default_factory=list)

    async def refresh(self) -> list[Period]:
        """Reload the company's periods for this periodicity."""
        self.periods = await self.store.list_periods(self.company_id, self.periodicity)
        return self.periods

    def cycle_year(self, period: Period) -> int:
        return SequenceCalculator.cycle_year(period.start_date, self.periodicity)

    def canonical_number(self, period: Period) -> int:
        return SequenceCalculator.number(period.start_date, self.periodicity)

    def canonical_name(self, period: Period) -> str:
        return self.normalizer.name(period.start_date, period.end_date, self.periodicity)

    @property
    def target_cycle_year(self) -> int:
        """Cycle the pass creates missing periods for.

        The cycle of the most recent period start, or the current one for
        an empty ledger.
        """
        if not self.periods:
            return SequenceCalculator.cycle_year(self.today, self.periodicity)
        latest = max(self.periods, key=lambda p: p.start_date)
        return self.cycle_year(latest)


class CorrectionStep(ABC):
    """One idempotent unit of a correction pass."""

    name: str = "step"

    @abstractmethod
    async def apply(self, state: ReconciliationState) -> StepResult:
        """Apply the step's corrections and report what changed."""


class CorrectionPipeline:
    """Runs correction steps in order, isolating step failures."""

    def __init__(self, steps: Sequence[CorrectionStep]):
        self.steps = list(steps)

    async def run(self, state: ReconciliationState) -> list[StepResult]:
        results = []
        for step in self.steps:
            try:
                result = await step.apply(state)
            except Exception as e:
                logger.warning(
                    "Correction step %s failed for company %s: %s",
                    step.name,
                    state.company_id,
                    e,
                )
                result = StepResult(name=step.name, errors=[f"{step.name}: {e}"])
            results.append(result)
        return results
