"""Tests for the self-heal of processed draft periods."""

from datetime import date
from decimal import Decimal
from uuid import uuid4

from period_reconciler.services.auto_heal import PeriodAutoHealer


async def test_closes_draft_with_processed_records(fake_store):
    company = uuid4()
    period = fake_store.add_period(company, date(2025, 1, 1), date(2025, 1, 15), number=1)
    fake_store.add_record(period, "processed", gross="1000.00", deductions="80.00", net="920.00")
    fake_store.add_record(period, "closed", gross="1500.00", deductions="120.00", net="1380.00")
    fake_store.add_record(period, "paid", gross="500.50", deductions="40.04", net="460.46")

    result = await PeriodAutoHealer(fake_store).heal(company)

    assert result.success
    assert result.healed_count == 1
    healed = fake_store.periods[period.id]
    assert healed.state == "closed"
    assert healed.employee_count == 3
    assert healed.gross_total == Decimal("3000.50")
    assert healed.deductions_total == Decimal("240.04")
    assert healed.net_total == Decimal("2760.46")
    assert result.healed[0].state == "closed"


async def test_leaves_drafts_without_records(fake_store):
    company = uuid4()
    period = fake_store.add_period(company, date(2025, 1, 1), date(2025, 1, 15))

    result = await PeriodAutoHealer(fake_store).heal(company)

    assert result.healed == []
    assert fake_store.periods[period.id].state == "draft"
    assert result.message == "No periods needed healing"


async def test_leaves_drafts_with_draft_records(fake_store):
    company = uuid4()
    period = fake_store.add_period(company, date(2025, 1, 1), date(2025, 1, 15))
    fake_store.add_record(period, "processed")
    fake_store.add_record(period, "draft")

    result = await PeriodAutoHealer(fake_store).heal(company)

    assert result.healed == []
    assert fake_store.periods[period.id].state == "draft"


async def test_ignores_non_draft_periods(fake_store):
    company = uuid4()
    period = fake_store.add_period(
        company, date(2025, 1, 1), date(2025, 1, 15), state="in_progress"
    )
    fake_store.add_record(period, "processed")

    result = await PeriodAutoHealer(fake_store).heal(company)

    assert result.healed == []
    assert fake_store.periods[period.id].state == "in_progress"


async def test_failure_on_one_period_does_not_stop_others(fake_store):
    company = uuid4()
    broken = fake_store.add_period(company, date(2025, 1, 1), date(2025, 1, 15))
    fine = fake_store.add_period(company, date(2025, 1, 16), date(2025, 1, 31))
    fake_store.add_record(broken, "processed")
    fake_store.add_record(fine, "processed")
    fake_store.fail_on["update_period"] = {broken.id}

    result = await PeriodAutoHealer(fake_store).heal(company)

    assert not result.success
    assert [p.id for p in result.healed] == [fine.id]
    assert len(result.errors) == 1
    assert fake_store.periods[broken.id].state == "draft"


async def test_load_failure_is_reported(fake_store):
    fake_store.fail_on["list_records"] = True

    result = await PeriodAutoHealer(fake_store).heal(uuid4())

    assert not result.success
    assert result.errors == ["Error loading draft periods: list_records failed"]


async def test_store_backed_heal(store, make_period, make_record, company_id):
    row = await make_period(date(2025, 1, 1), date(2025, 1, 15), number=1)
    await make_record(row, "processed", gross="100.00", deductions="10.00", net="90.00")
    await make_record(row, "processed", gross="200.00", deductions="20.00", net="180.00")

    result = await PeriodAutoHealer(store).heal(company_id)

    assert result.healed_count == 1
    period = await store.get_period(row.id)
    assert period.state == "closed"
    assert period.employee_count == 2
    assert period.net_total == Decimal("270.00")
