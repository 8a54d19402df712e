"""Period lifecycle service - validated state transitions."""

from __future__ import annotations

import logging
from uuid import UUID

from period_reconciler.calculators.types import Period, PeriodState
from period_reconciler.services.state_machine import PeriodStateMachine
from period_reconciler.services.store import PeriodStore

logger = logging.getLogger(__name__)


class PeriodLifecycleService:
    """Service for moving periods through their lifecycle.

    Operations:
    - transition: validated state change (draft → in_progress → closed ...)
    - close_period: shortcut for in_progress / reopened → closed
    """

    def __init__(self, store: PeriodStore):
        self.store = store

    async def get_period(self, period_id: UUID, company_id: UUID | None = None) -> Period:
        """Load a period, scoped to a company when one is given.

        Raises:
            LookupError: If the period does not exist for that company
        """
        period = await self.store.get_period(period_id)
        if period is None or (company_id is not None and period.company_id != company_id):
            raise LookupError(f"Period {period_id} not found")
        return period

    async def transition(
        self,
        period_id: UUID,
        to_state: PeriodState | str,
        company_id: UUID | None = None,
    ) -> Period:
        """Transition a period to a new state.

        Raises InvalidTransitionError if the transition is not allowed and
        LookupError if the period does not exist.
        """
        to_state = PeriodState(to_state).value
        period = await self.get_period(period_id, company_id)
        from_state = period.state

        PeriodStateMachine.validate_transition(from_state, to_state)

        await self.store.update_period(period_id, state=to_state)
        if PeriodStateMachine.is_reopen(from_state, to_state):
            logger.warning("Period %s reopened after closure", period.display_name)
        else:
            logger.info(
                "Period %s transitioned %s → %s", period.display_name, from_state, to_state
            )
        return await self.get_period(period_id)

    async def close_period(self, period_id: UUID, company_id: UUID | None = None) -> Period:
        return await self.transition(period_id, PeriodState.CLOSED, company_id)
