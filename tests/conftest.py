"""Pytest fixtures for period reconciliation tests."""

from __future__ import annotations

from collections.abc import AsyncGenerator
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from uuid import UUID, uuid4

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from period_reconciler.calculators.types import Periodicity
from period_reconciler.models import Base, CompanySettings, Payroll, PayrollPeriod
from period_reconciler.services.store import SqlPeriodStore
from tests.fakes import InMemoryPeriodStore

# Use in-memory SQLite for tests (with async support)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture
async def engine():
    """Create a fresh test database per test."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
async def session(engine) -> AsyncGenerator[AsyncSession, None]:
    """Create a database session for each test."""
    session_factory = async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )

    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def company_id() -> UUID:
    return uuid4()


@pytest.fixture
def store(session: AsyncSession) -> SqlPeriodStore:
    return SqlPeriodStore(session, default_periodicity="biweekly")


@pytest.fixture
def fake_store() -> InMemoryPeriodStore:
    return InMemoryPeriodStore(Periodicity.BIWEEKLY)


@pytest.fixture
def make_period(session: AsyncSession, company_id: UUID):
    """Factory inserting a period row with a controlled creation time."""
    counter = {"n": 0}

    async def _make(
        start: date,
        end: date,
        *,
        number: int | None = None,
        name: str | None = None,
        state: str = "draft",
        periodicity: str = "biweekly",
        company: UUID | None = None,
    ) -> PayrollPeriod:
        counter["n"] += 1
        created = datetime(2025, 1, 1, tzinfo=timezone.utc) + timedelta(minutes=counter["n"])
        row = PayrollPeriod(
            company_id=company or company_id,
            start_date=start,
            end_date=end,
            periodicity=periodicity,
            sequence_number=number,
            display_name=name or f"{start.isoformat()} - {end.isoformat()}",
            state=state,
            created_at=created,
            updated_at=created,
        )
        session.add(row)
        await session.commit()
        return row

    return _make


@pytest.fixture
def make_record(session: AsyncSession):
    """Factory inserting a payroll record for a period."""

    async def _make(
        period: PayrollPeriod,
        state: str,
        gross: str = "0",
        deductions: str = "0",
        net: str = "0",
    ) -> Payroll:
        row = Payroll(
            period_id=period.id,
            employee_id=uuid4(),
            state=state,
            gross_pay=Decimal(gross),
            deductions=Decimal(deductions),
            net_pay=Decimal(net),
        )
        session.add(row)
        await session.commit()
        return row

    return _make


@pytest.fixture
def set_periodicity(session: AsyncSession):
    """Store a company's configured periodicity."""

    async def _set(company: UUID, periodicity: str) -> None:
        session.add(CompanySettings(company_id=company, periodicity=periodicity))
        await session.commit()

    return _set
