"""Read-only diagnostic of a company's payroll period ledger.

Compares every stored period against its canonical number and name,
finds duplicate intervals and numbering conflicts, self-tests the
sequence calculator and cross-checks period states against their
payroll records. The grouping helpers here are shared with the
resolvers so detection and correction agree on what a duplicate or a
conflict is.
"""

from __future__ import annotations

import logging
from collections import Counter, defaultdict
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date
from uuid import UUID

from period_reconciler.calculators.naming import NameNormalizer
from period_reconciler.calculators.sequence import SelfTestCase, SequenceCalculator
from period_reconciler.calculators.types import (
    PayrollRecord,
    Period,
    PeriodState,
    Periodicity,
)
from period_reconciler.services.state_machine import PeriodStateMachine
from period_reconciler.services.store import PeriodStore

logger = logging.getLogger(__name__)


# =============================================================================
# Grouping helpers
# =============================================================================


@dataclass
class NumberConflict:
    """Several periods of one cycle stored with the same sequence number."""

    cycle_year: int
    number: int
    periods: list[Period]
    correct_period: Period | None = None

    @property
    def conflict_periods(self) -> list[Period]:
        keep_id = self.correct_period.id if self.correct_period else None
        return [p for p in self.periods if p.id != keep_id]


def recency_key(period: Period) -> float:
    """Sort key placing recently created periods last."""
    if period.created_at is None:
        return float("-inf")
    return period.created_at.timestamp()


def group_by_dates(periods: Iterable[Period]) -> list[list[Period]]:
    """Groups of periods sharing an identical (start, end) interval."""
    groups: dict[tuple[date, date], list[Period]] = defaultdict(list)
    for period in periods:
        groups[period.date_key].append(period)
    return [group for group in groups.values() if len(group) > 1]


def rank_for_cleanup(group: Iterable[Period]) -> list[Period]:
    """Order duplicates best-first.

    closed > in_progress > draft > canceled, ties broken by most recently
    created.
    """
    by_recency = sorted(group, key=recency_key, reverse=True)
    return sorted(by_recency, key=lambda p: PeriodStateMachine.duplicate_priority(p.state))


def occupies_canonical_range(
    period: Period, number: int, periodicity: Periodicity | str
) -> bool:
    """Whether the period spans exactly the canonical interval of its slot."""
    year = SequenceCalculator.cycle_year(period.start_date, periodicity)
    try:
        slot = SequenceCalculator.range_for_number(number, periodicity, year)
    except ValueError:
        return False
    return period.date_key == (slot.start, slot.end)


def select_correct_member(
    number: int, periods: list[Period], periodicity: Periodicity | str
) -> Period | None:
    """Pick the period that legitimately owns a sequence number.

    Tiers, first non-empty wins:
    1. periods spanning exactly the canonical interval of the number
    2. periods whose start date maps to the number
    3. every member

    Inside a tier the closed member wins, then the most recent.
    """
    if not periods:
        return None
    pool = (
        [p for p in periods if occupies_canonical_range(p, number, periodicity)]
        or [
            p
            for p in periods
            if SequenceCalculator.number(p.start_date, periodicity) == number
        ]
        or list(periods)
    )
    closed = [p for p in pool if p.state == PeriodState.CLOSED.value]
    return max(closed or pool, key=recency_key)


def group_by_number(
    periods: Iterable[Period], periodicity: Periodicity | str
) -> list[NumberConflict]:
    """Numbering conflicts: stored numbers shared within a cycle year."""
    groups: dict[tuple[int, int], list[Period]] = defaultdict(list)
    for period in periods:
        if period.sequence_number is None:
            continue
        year = SequenceCalculator.cycle_year(period.start_date, periodicity)
        groups[(year, period.sequence_number)].append(period)

    conflicts = []
    for (year, number), group in sorted(groups.items()):
        if len(group) > 1:
            conflicts.append(
                NumberConflict(
                    cycle_year=year,
                    number=number,
                    periods=group,
                    correct_period=select_correct_member(number, group, periodicity),
                )
            )
    return conflicts


# =============================================================================
# Report types
# =============================================================================


@dataclass
class PeriodCheck:
    """Stored vs canonical values of one period."""

    period: Period
    canonical_number: int
    canonical_name: str
    warning: str | None = None

    @property
    def number_ok(self) -> bool:
        return self.period.sequence_number == self.canonical_number

    @property
    def name_ok(self) -> bool:
        return self.period.display_name == self.canonical_name

    @property
    def is_correct(self) -> bool:
        return self.number_ok and self.name_ok

    @property
    def recommended_action(self) -> str:
        if self.period.sequence_number is None:
            return f"Assign number {self.canonical_number}"
        if not self.number_ok:
            return f"Correct number {self.period.sequence_number} to {self.canonical_number}"
        if not self.name_ok:
            return f"Rename to '{self.canonical_name}'"
        return "No action needed"


@dataclass
class StateInconsistency:
    """A draft period whose payroll records have all moved past draft."""

    period: Period
    record_count: int


@dataclass
class DiagnosticReport:
    """Result of a diagnostic run."""

    company_id: UUID
    periodicity: str | None = None
    total_periods: int = 0
    issues: list[str] = field(default_factory=list)
    recommendations: list[str] = field(default_factory=list)
    state_distribution: dict[str, int] = field(default_factory=dict)
    duplicates: list[list[Period]] = field(default_factory=list)
    conflicts: list[NumberConflict] = field(default_factory=list)
    period_checks: list[PeriodCheck] = field(default_factory=list)
    state_inconsistencies: list[StateInconsistency] = field(default_factory=list)
    self_test: list[SelfTestCase] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        """Whether the diagnostic could read everything it needed."""
        return len(self.errors) == 0

    @property
    def self_test_passed(self) -> bool:
        return all(case.passed for case in self.self_test)

    @property
    def incorrect_periods(self) -> list[PeriodCheck]:
        return [check for check in self.period_checks if not check.is_correct]

    @property
    def is_healthy(self) -> bool:
        return self.success and not self.issues

    @property
    def message(self) -> str:
        if not self.success:
            return f"Diagnostic incomplete: {len(self.errors)} error(s) reading the ledger"
        if not self.issues:
            return "Diagnostic completed: no issues found"
        return f"Diagnostic completed: {len(self.issues)} issue(s) found"


# =============================================================================
# Analyzer
# =============================================================================


class DiagnosticAnalyzer:
    """Builds a DiagnosticReport without writing anything."""

    def __init__(self, store: PeriodStore, normalizer: NameNormalizer | None = None):
        self.store = store
        self.normalizer = normalizer or NameNormalizer()

    async def run_diagnostic(
        self,
        company_id: UUID,
        periodicity: Periodicity | str | None = None,
    ) -> DiagnosticReport:
        """Diagnose a company's ledger for one periodicity.

        Never raises: datastore failures are reported as issues and the
        report carries whatever could be analyzed.
        """
        report = DiagnosticReport(company_id=company_id)

        try:
            if periodicity is None:
                periodicity = await self.store.get_company_periodicity(company_id)
            periodicity = Periodicity(periodicity)
            report.periodicity = periodicity.value
        except Exception as e:
            logger.warning("Could not resolve periodicity for %s: %s", company_id, e)
            self._record_error(report, f"Error resolving periodicity: {e}")
            return self._finish(report)

        try:
            periods = await self.store.list_periods(company_id, periodicity)
        except Exception as e:
            logger.warning("Could not load periods for %s: %s", company_id, e)
            self._record_error(report, f"Error loading periods: {e}")
            return self._finish(report)

        report.total_periods = len(periods)
        report.state_distribution = dict(Counter(p.state for p in periods))

        records: list[PayrollRecord] = []
        try:
            records = await self.store.list_records([p.id for p in periods])
        except Exception as e:
            logger.warning("Could not load payroll records for %s: %s", company_id, e)
            self._record_error(report, f"Error loading payroll records: {e}")

        self._check_periods(report, periods, periodicity)
        report.duplicates = group_by_dates(periods)
        report.conflicts = group_by_number(periods, periodicity)
        report.self_test = SequenceCalculator.run_self_test()
        report.state_inconsistencies = find_state_inconsistencies(periods, records)

        self._collect_issues(report, periods)
        return self._finish(report)

    def _check_periods(
        self, report: DiagnosticReport, periods: list[Period], periodicity: Periodicity
    ) -> None:
        for period in periods:
            try:
                result = SequenceCalculator.calculate(period.start_date, periodicity)
                name = self.normalizer.name(period.start_date, period.end_date, periodicity)
            except ValueError as e:
                report.issues.append(f"Period {period.display_name}: {e}")
                continue
            warning = result.warning or SequenceCalculator.check_coherence(
                period.start_date, period.end_date, periodicity
            )
            report.period_checks.append(PeriodCheck(period, result.number, name, warning))

    def _collect_issues(self, report: DiagnosticReport, periods: list[Period]) -> None:
        issues = report.issues

        if not periods and report.success:
            issues.append("No periods found")

        wrong_numbers = [c for c in report.period_checks if not c.number_ok]
        if wrong_numbers:
            issues.append(
                f"{len(wrong_numbers)} period(s) with incorrect numbering: "
                + ", ".join(
                    f"{c.period.display_name} (#{c.period.sequence_number} → "
                    f"#{c.canonical_number})"
                    for c in wrong_numbers
                )
            )

        wrong_names = [c for c in report.period_checks if not c.name_ok]
        if wrong_names:
            issues.append(
                f"{len(wrong_names)} period(s) with non-canonical names: "
                + ", ".join(f"'{c.period.display_name}'" for c in wrong_names)
            )

        atypical = [c for c in report.period_checks if c.warning]
        for check in atypical:
            issues.append(f"Period {check.period.display_name}: {check.warning}")

        if report.duplicates:
            issues.append(
                f"{len(report.duplicates)} duplicated interval(s): "
                + ", ".join(
                    f"{group[0].start_date.isoformat()}..{group[0].end_date.isoformat()} "
                    f"x{len(group)}"
                    for group in report.duplicates
                )
            )

        if report.conflicts:
            issues.append(
                f"{len(report.conflicts)} numbering conflict(s): "
                + ", ".join(
                    f"#{c.number}/{c.cycle_year} x{len(c.periods)}" for c in report.conflicts
                )
            )

        if not report.self_test_passed:
            failed = [c.description for c in report.self_test if not c.passed]
            issues.append(f"Sequence calculator self-test failed: {', '.join(failed)}")

        for inconsistency in report.state_inconsistencies:
            issues.append(
                f"Period {inconsistency.period.display_name} is draft but all "
                f"{inconsistency.record_count} payroll record(s) are processed"
            )

        unknown = sorted({p.state for p in periods if not PeriodStateMachine.is_known(p.state)})
        if unknown:
            issues.append(f"Unrecognized states found: {', '.join(unknown)}")

        active = [p for p in periods if PeriodStateMachine.is_active(p.state)]
        if len(active) > 1:
            issues.append(
                "Multiple active periods found: " + ", ".join(p.display_name for p in active)
            )

    def _finish(self, report: DiagnosticReport) -> DiagnosticReport:
        report.recommendations = build_recommendations(report)
        logger.info(
            "Diagnostic for company %s: %d period(s), %d issue(s)",
            report.company_id,
            report.total_periods,
            len(report.issues),
        )
        return report

    @staticmethod
    def _record_error(report: DiagnosticReport, message: str) -> None:
        report.errors.append(message)
        report.issues.append(message)


def find_state_inconsistencies(
    periods: Iterable[Period], records: Iterable[PayrollRecord]
) -> list[StateInconsistency]:
    """Draft periods whose records have all advanced past draft."""
    by_period: dict[UUID, list[PayrollRecord]] = defaultdict(list)
    for record in records:
        by_period[record.period_id].append(record)

    inconsistencies = []
    for period in periods:
        if period.state != PeriodState.DRAFT.value:
            continue
        children = by_period.get(period.id, [])
        if children and all(r.is_beyond_draft for r in children):
            inconsistencies.append(StateInconsistency(period, len(children)))
    return inconsistencies


def build_recommendations(report: DiagnosticReport) -> list[str]:
    """Turn the findings of a report into operator recommendations."""
    recommendations = []

    if not report.success:
        recommendations.append("Check datastore connectivity and re-run the diagnostic")

    if report.success and report.total_periods == 0:
        recommendations.append("Create an initial period")

    incorrect = [c for c in report.period_checks if not c.number_ok]
    if incorrect:
        recommendations.append(f"Correct numbering of {len(incorrect)} period(s)")

    if report.duplicates:
        extra = sum(len(group) - 1 for group in report.duplicates)
        recommendations.append(f"Remove {extra} duplicated period(s)")

    if report.conflicts:
        recommendations.append(f"Resolve {len(report.conflicts)} numbering conflict(s)")

    if [c for c in report.period_checks if not c.name_ok]:
        recommendations.append("Normalize period names")

    if report.self_test and not report.self_test_passed:
        recommendations.append("Verify the sequence calculation logic")

    if report.state_inconsistencies:
        recommendations.append(
            f"Close {len(report.state_inconsistencies)} draft period(s) whose payroll "
            "records are already processed"
        )

    active = sum(
        count
        for state, count in report.state_distribution.items()
        if PeriodStateMachine.is_active(state)
    )
    if active > 1:
        recommendations.append("Close or consolidate the additional active periods")

    if not recommendations:
        recommendations.append("Ledger is consistent, no action needed")

    return recommendations
