"""Root correction of the period numbering.

A heavier pass than the routine corrections: it deletes canceled and
malformed periods, forces every survivor onto its canonical slot,
fills the gaps of the target cycle and validates the outcome. Phases
commit independently and the pass is idempotent.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date
from uuid import UUID

from period_reconciler.calculators.intervals import is_anomalous_range
from period_reconciler.calculators.naming import NameCache, NameNormalizer
from period_reconciler.calculators.sequence import SequenceCalculator
from period_reconciler.calculators.types import Period, PeriodState, Periodicity
from period_reconciler.services.correction import (
    CorrectionPipeline,
    CorrectionStep,
    ReconciliationState,
    StepResult,
)
from period_reconciler.services.diagnostics import (
    group_by_dates,
    group_by_number,
    select_correct_member,
)
from period_reconciler.services.store import PeriodStore

logger = logging.getLogger(__name__)


@dataclass
class RootConflictResolutionResult:
    """Result of a root correction pass."""

    company_id: UUID
    conflicts_resolved: int = 0
    periods_deleted: int = 0
    periods_updated: int = 0
    periods_created: int = 0
    errors: list[str] = field(default_factory=list)
    detailed_log: list[str] = field(default_factory=list)
    issues: list[str] = field(default_factory=list)
    validated: bool = False

    @property
    def success(self) -> bool:
        """Whether the final validation ran and found nothing left to fix."""
        return self.validated and len(self.issues) == 0

    @property
    def message(self) -> str:
        if self.success:
            return (
                f"Root correction completed: {self.conflicts_resolved} conflict(s) resolved, "
                f"{self.periods_deleted} deleted, {self.periods_updated} updated, "
                f"{self.periods_created} created"
            )
        if not self.validated:
            return "Root correction failed before final validation"
        return f"Partial correction: {len(self.issues)} problem(s) remain"


class DetectConflictsStep(CorrectionStep):
    """Phase 1: stored numbers shared inside a cycle, with their owner."""

    name = "detect_conflicts"

    async def apply(self, state: ReconciliationState) -> StepResult:
        result = StepResult(self.name)
        periods = await state.refresh()
        state.conflicts = group_by_number(periods, state.periodicity)

        result.log.append(f"Numbering conflicts found: {len(state.conflicts)}")
        for conflict in state.conflicts:
            owner = conflict.correct_period
            result.log.append(
                f"Number {conflict.number}/{conflict.cycle_year} claimed by "
                f"{len(conflict.periods)} periods, owner "
                f"{owner.display_name if owner else 'none'}"
            )
        return result


class ValidateDatesStep(CorrectionStep):
    """Phase 2: periods whose stored number disagrees with their start date."""

    name = "validate_dates"

    async def apply(self, state: ReconciliationState) -> StepResult:
        result = StepResult(self.name)
        state.mismatches = []
        for period in await state.refresh():
            if period.sequence_number is None:
                continue
            canonical = state.canonical_number(period)
            if period.sequence_number != canonical:
                state.mismatches.append(period)
                result.log.append(
                    f"{period.display_name} numbered {period.sequence_number}, "
                    f"dates say {canonical}"
                )
        result.log.append(f"Periods with mismatched dates: {len(state.mismatches)}")
        return result


class MassiveCleanupStep(CorrectionStep):
    """Phase 3: delete canceled periods and malformed intervals."""

    name = "massive_cleanup"

    async def apply(self, state: ReconciliationState) -> StepResult:
        result = StepResult(self.name)
        for period in await state.refresh():
            if period.state == PeriodState.CANCELED.value:
                reason = "canceled"
            elif is_anomalous_range(period.start_date, period.end_date, state.periodicity):
                reason = "anomalous interval"
            else:
                continue

            try:
                await state.store.delete_period(period.id)
            except Exception as e:
                logger.warning("Could not delete period %s: %s", period.id, e)
                result.errors.append(f"Error deleting {period.display_name}: {e}")
                continue

            result.deleted += 1
            result.log.append(f"Deleted {period.display_name} ({reason})")
            logger.info("Deleted period %s (%s)", period.id, reason)

        result.log.append(f"Periods deleted: {result.deleted}")
        return result


class IntelligentResolutionStep(CorrectionStep):
    """Phase 4: move conflicting, mismatched and unnumbered periods to their slot.

    When several survivors land on the same slot only the owner picked by
    select_correct_member is kept.
    """

    name = "intelligent_resolution"

    async def apply(self, state: ReconciliationState) -> StepResult:
        result = StepResult(self.name)
        periods = await state.refresh()

        conflict_ids = {p.id for conflict in state.conflicts for p in conflict.periods}
        candidate_ids = (
            conflict_ids
            | {p.id for p in state.mismatches}
            | {p.id for p in periods if p.sequence_number is None}
        )

        slots: dict[tuple[int, int], list[Period]] = defaultdict(list)
        for period in periods:
            slots[(state.cycle_year(period), state.canonical_number(period))].append(period)

        for (_, number), group in sorted(slots.items()):
            keep = group[0]
            if len(group) > 1:
                keep = select_correct_member(number, group, state.periodicity)
                await self._drop_claimants(state, result, keep, group, number)

            if keep.id not in candidate_ids or keep.sequence_number == number:
                continue
            try:
                await state.store.update_period(keep.id, sequence_number=number)
            except Exception as e:
                logger.warning("Could not renumber %s: %s", keep.id, e)
                result.errors.append(f"Error renumbering {keep.display_name}: {e}")
                continue

            result.updated += 1
            if keep.id in conflict_ids:
                result.resolved += 1
            result.log.append(f"{keep.display_name}: {keep.sequence_number} → {number}")
            logger.info(
                "Renumbered period %s from %s to %d", keep.id, keep.sequence_number, number
            )

        result.log.append(f"Conflicts resolved: {result.resolved}")
        result.log.append(f"Periods updated: {result.updated}")
        return result

    @staticmethod
    async def _drop_claimants(
        state: ReconciliationState,
        result: StepResult,
        keep: Period,
        group: list[Period],
        number: int,
    ) -> None:
        for period in group:
            if period.id == keep.id:
                continue
            try:
                await state.store.delete_period(period.id)
            except Exception as e:
                logger.warning("Could not delete period %s: %s", period.id, e)
                result.errors.append(f"Error deleting {period.display_name}: {e}")
                continue
            result.deleted += 1
            result.resolved += 1
            result.log.append(
                f"Deleted {period.display_name}: slot {number} belongs to {keep.display_name}"
            )
            logger.info("Deleted period %s competing for slot %d", period.id, number)


class GenerateMissingStep(CorrectionStep):
    """Phase 5: create the missing slots of the target cycle as drafts."""

    name = "generate_missing"

    async def apply(self, state: ReconciliationState) -> StepResult:
        result = StepResult(self.name)
        periods = await state.refresh()

        if state.periodicity == Periodicity.WEEKLY:
            result.log.append("Weekly cycles are not generated")
            return result

        year = state.target_cycle_year
        present = {
            p.sequence_number
            for p in periods
            if p.sequence_number is not None and state.cycle_year(p) == year
        }
        existing_ranges = {p.date_key for p in periods}

        for number in range(1, SequenceCalculator.cycle_length(state.periodicity, year) + 1):
            if number in present:
                continue
            slot = SequenceCalculator.range_for_number(number, state.periodicity, year)
            if (slot.start, slot.end) in existing_ranges:
                continue

            name = state.normalizer.name(slot.start, slot.end, state.periodicity)
            try:
                await state.store.create_period(
                    company_id=state.company_id,
                    periodicity=state.periodicity,
                    start_date=slot.start,
                    end_date=slot.end,
                    sequence_number=number,
                    display_name=name,
                )
            except Exception as e:
                logger.warning("Could not create period %s: %s", name, e)
                result.errors.append(f"Error creating {name}: {e}")
                continue

            result.created += 1
            result.log.append(f"Created {name} (#{number})")
            logger.info("Created missing period %s for company %s", name, state.company_id)

        result.log.append(f"Periods created: {result.created}")
        return result


class FinalValidationStep(CorrectionStep):
    """Phase 6: reload and list whatever is still wrong."""

    name = "final_validation"

    async def apply(self, state: ReconciliationState) -> StepResult:
        result = StepResult(self.name)
        periods = await state.refresh()
        result.issues.extend(find_numbering_issues(periods, state.periodicity))
        result.log.append(
            "Final validation: " + ("passed" if not result.issues else "failed")
        )
        return result


def find_numbering_issues(periods: list[Period], periodicity: Periodicity) -> list[str]:
    """Numbering problems left in a ledger, empty when it is fully canonical."""
    issues = []
    for conflict in group_by_number(periods, periodicity):
        issues.append(
            f"Duplicate number {conflict.number} in {conflict.cycle_year}: "
            + ", ".join(p.display_name for p in conflict.periods)
        )

    for period in periods:
        if period.sequence_number is None:
            issues.append(f"{period.display_name} has no sequence number")
            continue
        year = SequenceCalculator.cycle_year(period.start_date, periodicity)
        length = SequenceCalculator.cycle_length(periodicity, year)
        if not 1 <= period.sequence_number <= length:
            issues.append(
                f"{period.display_name} numbered {period.sequence_number} outside 1..{length}"
            )
        canonical = SequenceCalculator.number(period.start_date, periodicity)
        if period.sequence_number != canonical:
            issues.append(
                f"{period.display_name} numbered {period.sequence_number}, expected {canonical}"
            )

    for group in group_by_dates(periods):
        issues.append(
            f"Interval {group[0].start_date.isoformat()}..{group[0].end_date.isoformat()} "
            f"stored {len(group)} times"
        )
    return issues


class RootConflictResolver:
    """Runs the six-phase root correction for a company."""

    STEPS: tuple[type[CorrectionStep], ...] = (
        DetectConflictsStep,
        ValidateDatesStep,
        MassiveCleanupStep,
        IntelligentResolutionStep,
        GenerateMissingStep,
        FinalValidationStep,
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

    async def execute_root_correction(
        self,
        company_id: UUID,
        periodicity: Periodicity | str | None = None,
    ) -> RootConflictResolutionResult:
        """Run all phases; never raises."""
        result = RootConflictResolutionResult(company_id=company_id)

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
            logger.exception("Root correction failed for company %s", company_id)
            result.errors.append(f"Critical error: {e}")
            return result

        for phase, step in enumerate(step_results, start=1):
            result.detailed_log.append(f"PHASE {phase}: {step.name}")
            result.detailed_log.extend(step.log)
            result.errors.extend(step.errors)
            result.issues.extend(step.issues)
            result.periods_deleted += step.deleted
            result.periods_updated += step.updated
            result.periods_created += step.created
            result.conflicts_resolved += step.resolved
            if step.name == FinalValidationStep.name:
                result.validated = step.success

        if result.success:
            logger.info("Company %s: %s", company_id, result.message)
        else:
            logger.warning("Company %s: %s", company_id, result.message)
        return result
