"""Routine automatic corrections of the period ledger.

Four steps run in order: duplicate cleanup, cycle baseline, canonical
renumbering and canonical renaming. A re-run on a corrected ledger
changes nothing.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from uuid import UUID

from period_reconciler.calculators.naming import NameCache, NameNormalizer
from period_reconciler.calculators.sequence import SequenceCalculator
from period_reconciler.calculators.types import Periodicity
from period_reconciler.services.correction import (
    CorrectionPipeline,
    CorrectionStep,
    ReconciliationState,
    StepResult,
)
from period_reconciler.services.diagnostics import group_by_dates, rank_for_cleanup
from period_reconciler.services.store import PeriodStore

logger = logging.getLogger(__name__)


@dataclass
class ConflictResolutionResult:
    """Result of an automatic correction pass."""

    company_id: UUID
    duplicates_removed: int = 0
    periods_created: int = 0
    periods_updated: int = 0
    conflicts_resolved: int = 0
    errors: list[str] = field(default_factory=list)
    details: list[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        """Whether every correction was applied."""
        return len(self.errors) == 0

    @property
    def message(self) -> str:
        if not self.success:
            return f"Corrections applied with {len(self.errors)} error(s)"
        if not (self.duplicates_removed or self.periods_created or self.periods_updated):
            return "No corrections needed"
        return (
            f"Corrections applied: {self.duplicates_removed} duplicate(s) removed, "
            f"{self.periods_created} period(s) created, "
            f"{self.periods_updated} period(s) updated"
        )


class CleanupDuplicatesStep(CorrectionStep):
    """Keep the best-ranked period of every duplicated interval."""

    name = "cleanup_duplicates"

    async def apply(self, state: ReconciliationState) -> StepResult:
        result = StepResult(self.name)
        periods = await state.refresh()

        for group in group_by_dates(periods):
            keep, *extras = rank_for_cleanup(group)
            for period in extras:
                try:
                    await state.store.delete_period(period.id)
                except Exception as e:
                    logger.warning("Could not delete duplicate %s: %s", period.id, e)
                    result.errors.append(f"Error deleting duplicate {period.display_name}: {e}")
                    continue
                result.deleted += 1
                result.log.append(
                    f"Removed duplicate {period.display_name} ({period.state}), "
                    f"kept {keep.id} ({keep.state})"
                )
                logger.info(
                    "Removed duplicate period %s (%s), kept %s",
                    period.id,
                    period.state,
                    keep.id,
                )
        return result


class EnsureBaselineStep(CorrectionStep):
    """Create the first period of the target cycle when it is missing."""

    name = "ensure_baseline"

    async def apply(self, state: ReconciliationState) -> StepResult:
        result = StepResult(self.name)
        periods = await state.refresh()
        year = state.target_cycle_year

        for period in periods:
            if state.cycle_year(period) != year:
                continue
            if period.sequence_number == 1 or state.canonical_number(period) == 1:
                return result

        first = SequenceCalculator.range_for_number(1, state.periodicity, year)
        name = state.normalizer.name(first.start, first.end, state.periodicity)
        try:
            await state.store.create_period(
                company_id=state.company_id,
                periodicity=state.periodicity,
                start_date=first.start,
                end_date=first.end,
                sequence_number=1,
                display_name=name,
            )
        except Exception as e:
            logger.warning("Could not create baseline period %s: %s", first, e)
            result.errors.append(f"Error creating baseline period {name}: {e}")
            return result

        result.created += 1
        result.log.append(f"Created baseline period {name}")
        logger.info("Created baseline period %s for company %s", name, state.company_id)
        return result


class RenumberStep(CorrectionStep):
    """Persist the canonical sequence number of every period."""

    name = "renumber"

    async def apply(self, state: ReconciliationState) -> StepResult:
        result = StepResult(self.name)
        for period in await state.refresh():
            canonical = state.canonical_number(period)
            if period.sequence_number == canonical:
                continue
            try:
                await state.store.update_period(period.id, sequence_number=canonical)
            except Exception as e:
                logger.warning("Could not renumber %s: %s", period.id, e)
                result.errors.append(f"Error renumbering {period.display_name}: {e}")
                continue

            result.updated += 1
            if period.sequence_number is not None:
                result.resolved += 1
            result.log.append(
                f"Renumbered {period.display_name}: {period.sequence_number} → {canonical}"
            )
            logger.info(
                "Renumbered period %s from %s to %d",
                period.id,
                period.sequence_number,
                canonical,
            )
        return result


class RenameStep(CorrectionStep):
    """Persist the canonical display name of every period."""

    name = "rename"

    async def apply(self, state: ReconciliationState) -> StepResult:
        result = StepResult(self.name)
        for period in await state.refresh():
            canonical = state.canonical_name(period)
            if period.display_name == canonical:
                continue
            try:
                await state.store.update_period(period.id, display_name=canonical)
            except Exception as e:
                logger.warning("Could not rename %s: %s", period.id, e)
                result.errors.append(f"Error renaming {period.display_name}: {e}")
                continue

            result.updated += 1
            result.log.append(f"Renamed '{period.display_name}' → '{canonical}'")
            logger.info("Renamed period %s to %s", period.id, canonical)
        return result


class ConflictResolver:
    """Applies the routine automatic corrections for a company."""

    STEPS: tuple[type[CorrectionStep], ...] = (
        CleanupDuplicatesStep,
        EnsureBaselineStep,
        RenumberStep,
        RenameStep,
    )

    def __init__(
        self,
        store: PeriodStore,
        normalizer: NameNormalizer | None = None,
        today: date | None = None,
    ):
        self.store = store
        self.normalizer = normalizer or NameNormalizer(NameCache())
        self.today = today
        self.pipeline = CorrectionPipeline([step() for step in self.STEPS])

    async def resolve_all_conflicts(
        self,
        company_id: UUID,
        periodicity: Periodicity | str | None = None,
    ) -> ConflictResolutionResult:
        """Run every correction step; never raises."""
        result = ConflictResolutionResult(company_id=company_id)

        try:
            if periodicity is None:
                periodicity = await self.store.get_company_periodicity(company_id)
            state = ReconciliationState(
                company_id=company_id,
                periodicity=Periodicity(periodicity),
                store=self.store,
                normalizer=self.normalizer,
                today=self.today or date.today(),
            )
            step_results = await self.pipeline.run(state)
        except Exception as e:
            logger.exception("Automatic corrections failed for company %s", company_id)
            result.errors.append(f"Error applying corrections: {e}")
            return result

        for step in step_results:
            result.errors.extend(step.errors)
            result.details.extend(step.log)
            result.periods_created += step.created
            result.periods_updated += step.updated
            result.conflicts_resolved += step.resolved
            if step.name == CleanupDuplicatesStep.name:
                result.duplicates_removed += step.deleted

        logger.info("Company %s: %s", company_id, result.message)
        return result
