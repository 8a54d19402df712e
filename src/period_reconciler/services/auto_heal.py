"""Self-heal of draft periods whose payroll has already been processed."""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from decimal import Decimal
from uuid import UUID

from period_reconciler.calculators.types import PayrollRecord, Period, PeriodState
from period_reconciler.services.state_machine import PeriodStateMachine
from period_reconciler.services.store import PeriodStore

logger = logging.getLogger(__name__)


@dataclass
class AutoHealResult:
    """Periods closed by a self-heal pass."""

    healed: list[Period] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return len(self.errors) == 0

    @property
    def healed_count(self) -> int:
        return len(self.healed)

    @property
    def message(self) -> str:
        if not self.healed and self.success:
            return "No periods needed healing"
        msg = f"{len(self.healed)} period(s) closed from processed payroll"
        if self.errors:
            msg += f", {len(self.errors)} error(s)"
        return msg


class PeriodAutoHealer:
    """Closes draft periods whose payroll records are all processed.

    Aggregates are recomputed from the records: employee_count is the
    number of records and the totals are their sums. A draft period
    without records is left alone.
    """

    def __init__(self, store: PeriodStore):
        self.store = store

    async def heal(self, company_id: UUID) -> AutoHealResult:
        result = AutoHealResult()

        try:
            periods = await self.store.list_periods(company_id)
            drafts = [p for p in periods if p.state == PeriodState.DRAFT.value]
            records = await self.store.list_records([p.id for p in drafts])
        except Exception as e:
            logger.warning("Could not load drafts for company %s: %s", company_id, e)
            result.errors.append(f"Error loading draft periods: {e}")
            return result

        by_period: dict[UUID, list[PayrollRecord]] = defaultdict(list)
        for record in records:
            by_period[record.period_id].append(record)

        for period in drafts:
            children = by_period.get(period.id, [])
            if not children or not all(r.is_beyond_draft for r in children):
                continue
            if not PeriodStateMachine.can_correct(period.state, PeriodState.CLOSED.value):
                continue

            changes = {
                "state": PeriodState.CLOSED.value,
                "employee_count": len(children),
                "gross_total": sum((r.gross_pay for r in children), Decimal("0")),
                "deductions_total": sum((r.deductions for r in children), Decimal("0")),
                "net_total": sum((r.net_pay for r in children), Decimal("0")),
            }
            try:
                await self.store.update_period(period.id, **changes)
                healed = await self.store.get_period(period.id)
            except Exception as e:
                logger.warning("Could not heal period %s: %s", period.id, e)
                result.errors.append(f"Error closing {period.display_name}: {e}")
                continue

            result.healed.append(healed or period)
            logger.info(
                "Closed period %s from %d processed payroll record(s)",
                period.display_name,
                len(children),
            )

        return result
