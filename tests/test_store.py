"""Tests for the SQLAlchemy-backed period store."""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from period_reconciler.calculators.types import Periodicity
from period_reconciler.services.store import PeriodStore, SqlPeriodStore


async def test_store_satisfies_protocol(store):
    assert isinstance(store, PeriodStore)


async def test_create_and_list(store, company_id):
    created = await store.create_period(
        company_id=company_id,
        periodicity=Periodicity.BIWEEKLY,
        start_date=date(2025, 1, 1),
        end_date=date(2025, 1, 15),
        sequence_number=1,
        display_name="1 - 15 Enero 2025",
    )

    assert created.state == "draft"
    assert created.gross_total == Decimal("0")

    periods = await store.list_periods(company_id, "biweekly")
    assert [p.id for p in periods] == [created.id]
    assert await store.list_periods(company_id, Periodicity.MONTHLY) == []
    assert await store.list_periods(uuid4()) == []


async def test_list_orders_by_start_date(store, make_period, company_id):
    late = await make_period(date(2025, 2, 1), date(2025, 2, 15))
    early = await make_period(date(2025, 1, 1), date(2025, 1, 15))

    periods = await store.list_periods(company_id)

    assert [p.id for p in periods] == [early.id, late.id]


async def test_update_period(store, make_period):
    row = await make_period(date(2025, 1, 1), date(2025, 1, 15), number=7)

    await store.update_period(row.id, sequence_number=1, display_name="1 - 15 Enero 2025")

    period = await store.get_period(row.id)
    assert period.sequence_number == 1
    assert period.display_name == "1 - 15 Enero 2025"


async def test_update_rejects_unknown_fields(store, make_period):
    row = await make_period(date(2025, 1, 1), date(2025, 1, 15))
    with pytest.raises(ValueError):
        await store.update_period(row.id, company_id=uuid4())


async def test_update_and_delete_missing_period(store):
    with pytest.raises(LookupError):
        await store.update_period(uuid4(), sequence_number=1)
    with pytest.raises(LookupError):
        await store.delete_period(uuid4())


async def test_delete_period(store, make_period, company_id):
    row = await make_period(date(2025, 1, 1), date(2025, 1, 15))

    await store.delete_period(row.id)

    assert await store.get_period(row.id) is None
    assert await store.list_periods(company_id) == []


async def test_find_period_by_range(store, make_period, company_id):
    row = await make_period(date(2025, 1, 16), date(2025, 1, 31))

    found = await store.find_period_by_range(company_id, date(2025, 1, 16), date(2025, 1, 31))
    assert found.id == row.id
    assert await store.find_period_by_range(company_id, date(2025, 1, 16), date(2025, 1, 30)) is None


async def test_list_records(store, make_period, make_record):
    row = await make_period(date(2025, 1, 1), date(2025, 1, 15))
    await make_record(row, "processed", gross="100.50")

    records = await store.list_records([row.id])

    assert len(records) == 1
    assert records[0].gross_pay == Decimal("100.50")
    assert records[0].is_beyond_draft
    assert await store.list_records([]) == []


async def test_company_periodicity(session, set_periodicity, company_id):
    store = SqlPeriodStore(session, default_periodicity="monthly")
    assert await store.get_company_periodicity(company_id) == Periodicity.MONTHLY

    await set_periodicity(company_id, "biweekly")
    assert await store.get_company_periodicity(company_id) == Periodicity.BIWEEKLY
