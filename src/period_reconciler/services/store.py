"""Datastore access for payroll periods and their payroll records.

Reconciliation services talk to the datastore through the PeriodStore
protocol and receive immutable snapshots (Period, PayrollRecord), never
live ORM instances. Reads use populate_existing so a snapshot never
comes from a stale identity map. Every write commits on its own:
corrective passes have no transaction spanning their phases, so a
failure leaves the already-committed units in place and the pass can
simply be re-run.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Iterable
from contextlib import asynccontextmanager
from datetime import date
from decimal import Decimal
from typing import Any, Protocol, runtime_checkable
from uuid import UUID

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from period_reconciler.calculators.types import (
    PayrollRecord,
    Period,
    PeriodState,
    Periodicity,
)
from period_reconciler.config import get_settings
from period_reconciler.models import CompanySettings, Payroll, PayrollPeriod
from period_reconciler.models.base import utcnow

logger = logging.getLogger(__name__)

# Period attributes callers may change through update_period
UPDATABLE_FIELDS = frozenset(
    {
        "sequence_number",
        "display_name",
        "state",
        "employee_count",
        "gross_total",
        "deductions_total",
        "net_total",
    }
)


@runtime_checkable
class PeriodStore(Protocol):
    """Protocol for the period ledger datastore."""

    async def list_periods(
        self, company_id: UUID, periodicity: Periodicity | str | None = None
    ) -> list[Period]:
        """All periods of a company, optionally of one periodicity."""
        ...

    async def get_period(self, period_id: UUID) -> Period | None:
        ...

    async def find_period_by_range(
        self,
        company_id: UUID,
        start_date: date,
        end_date: date,
        periodicity: Periodicity | str | None = None,
    ) -> Period | None:
        ...

    async def list_records(self, period_ids: Iterable[UUID]) -> list[PayrollRecord]:
        ...

    async def create_period(
        self,
        *,
        company_id: UUID,
        periodicity: Periodicity | str,
        start_date: date,
        end_date: date,
        sequence_number: int | None,
        display_name: str,
    ) -> Period:
        """Insert a draft period with zero aggregates."""
        ...

    async def update_period(self, period_id: UUID, **changes: Any) -> None:
        ...

    async def delete_period(self, period_id: UUID) -> None:
        ...

    async def get_company_periodicity(self, company_id: UUID) -> Periodicity:
        ...


def period_from_row(row: PayrollPeriod) -> Period:
    """Snapshot an ORM period."""
    return Period(
        id=row.id,
        company_id=row.company_id,
        periodicity=row.periodicity,
        start_date=row.start_date,
        end_date=row.end_date,
        sequence_number=row.sequence_number,
        display_name=row.display_name,
        state=row.state,
        employee_count=row.employee_count or 0,
        gross_total=Decimal(row.gross_total or 0),
        deductions_total=Decimal(row.deductions_total or 0),
        net_total=Decimal(row.net_total or 0),
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def record_from_row(row: Payroll) -> PayrollRecord:
    """Snapshot an ORM payroll record."""
    return PayrollRecord(
        id=row.id,
        period_id=row.period_id,
        employee_id=row.employee_id,
        state=row.state,
        gross_pay=Decimal(row.gross_pay or 0),
        deductions=Decimal(row.deductions or 0),
        net_pay=Decimal(row.net_pay or 0),
    )


def _periodicity_value(periodicity: Periodicity | str) -> str:
    return periodicity.value if isinstance(periodicity, Periodicity) else str(periodicity)


class SqlPeriodStore:
    """PeriodStore backed by an async SQLAlchemy session."""

    def __init__(self, session: AsyncSession, default_periodicity: str | None = None):
        self.session = session
        self.default_periodicity = Periodicity(
            default_periodicity or get_settings().default_periodicity
        )

    @asynccontextmanager
    async def _unit_of_work(self) -> AsyncIterator[None]:
        """Commit one write, rolling it back alone if it fails."""
        try:
            yield
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise

    async def list_periods(
        self, company_id: UUID, periodicity: Periodicity | str | None = None
    ) -> list[Period]:
        query = select(PayrollPeriod).where(PayrollPeriod.company_id == company_id)
        if periodicity is not None:
            query = query.where(PayrollPeriod.periodicity == _periodicity_value(periodicity))
        query = query.order_by(PayrollPeriod.start_date, PayrollPeriod.created_at)
        query = query.execution_options(populate_existing=True)

        result = await self.session.execute(query)
        return [period_from_row(row) for row in result.scalars().all()]

    async def get_period(self, period_id: UUID) -> Period | None:
        result = await self.session.execute(
            select(PayrollPeriod)
            .where(PayrollPeriod.id == period_id)
            .execution_options(populate_existing=True)
        )
        row = result.scalar_one_or_none()
        return period_from_row(row) if row is not None else None

    async def find_period_by_range(
        self,
        company_id: UUID,
        start_date: date,
        end_date: date,
        periodicity: Periodicity | str | None = None,
    ) -> Period | None:
        query = select(PayrollPeriod).where(
            PayrollPeriod.company_id == company_id,
            PayrollPeriod.start_date == start_date,
            PayrollPeriod.end_date == end_date,
        )
        if periodicity is not None:
            query = query.where(PayrollPeriod.periodicity == _periodicity_value(periodicity))

        result = await self.session.execute(
            query.limit(1).execution_options(populate_existing=True)
        )
        row = result.scalars().first()
        return period_from_row(row) if row is not None else None

    async def list_records(self, period_ids: Iterable[UUID]) -> list[PayrollRecord]:
        ids = list(period_ids)
        if not ids:
            return []
        result = await self.session.execute(
            select(Payroll)
            .where(Payroll.period_id.in_(ids))
            .execution_options(populate_existing=True)
        )
        return [record_from_row(row) for row in result.scalars().all()]

    async def create_period(
        self,
        *,
        company_id: UUID,
        periodicity: Periodicity | str,
        start_date: date,
        end_date: date,
        sequence_number: int | None,
        display_name: str,
    ) -> Period:
        row = PayrollPeriod(
            company_id=company_id,
            periodicity=_periodicity_value(periodicity),
            start_date=start_date,
            end_date=end_date,
            sequence_number=sequence_number,
            display_name=display_name,
            state=PeriodState.DRAFT.value,
            employee_count=0,
            gross_total=Decimal("0"),
            deductions_total=Decimal("0"),
            net_total=Decimal("0"),
        )
        async with self._unit_of_work():
            self.session.add(row)
            await self.session.flush()
            snapshot = period_from_row(row)
        return snapshot

    async def update_period(self, period_id: UUID, **changes: Any) -> None:
        unknown = set(changes) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update period fields: {sorted(unknown)}")
        values = {
            key: (value.value if isinstance(value, PeriodState) else value)
            for key, value in changes.items()
        }
        values["updated_at"] = utcnow()

        async with self._unit_of_work():
            result = await self.session.execute(
                update(PayrollPeriod)
                .where(PayrollPeriod.id == period_id)
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                raise LookupError(f"Period {period_id} not found")

    async def delete_period(self, period_id: UUID) -> None:
        async with self._unit_of_work():
            result = await self.session.execute(
                delete(PayrollPeriod)
                .where(PayrollPeriod.id == period_id)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                raise LookupError(f"Period {period_id} not found")

    async def get_company_periodicity(self, company_id: UUID) -> Periodicity:
        settings = await self.session.get(CompanySettings, company_id)
        if settings is None:
            logger.info(
                "No settings for company %s, using default periodicity %s",
                company_id,
                self.default_periodicity.value,
            )
            return self.default_periodicity
        return Periodicity(settings.periodicity)
