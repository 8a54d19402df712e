"""Tests for post-closure verification."""

import asyncio
from dataclasses import replace
from datetime import date
from uuid import uuid4

import pytest

from period_reconciler.calculators.types import DateRange, Periodicity
from period_reconciler.config import Settings
from period_reconciler.services.post_closure import (
    ClosureVerificationConfig,
    PostClosureDetectionService,
)


class RecordingSleep:
    """Sleep stand-in recording delays and running a hook on each call."""

    def __init__(self, on_sleep=None):
        self.delays = []
        self.on_sleep = on_sleep

    async def __call__(self, delay):
        self.delays.append(delay)
        if self.on_sleep is not None:
            self.on_sleep(len(self.delays))


def service(store, sleep, **config):
    return PostClosureDetectionService(store, ClosureVerificationConfig(**config), sleep=sleep)


class TestClosureVerification:
    async def test_closed_period_yields_next_suggestion(self, fake_store):
        company = uuid4()
        period = fake_store.add_period(company, date(2025, 1, 1), date(2025, 1, 15), state="closed")
        sleep = RecordingSleep()

        result = await service(fake_store, sleep).verify_closure_and_detect_next(period.id, company)

        assert result.success
        assert result.closed_period.id == period.id
        assert result.next_period_suggestion.date_range == DateRange(
            date(2025, 1, 16), date(2025, 1, 31)
        )
        assert result.next_period_suggestion.sequence_number == 2
        assert sleep.delays == []

    async def test_waits_for_late_closure_with_linear_backoff(self, fake_store):
        company = uuid4()
        period = fake_store.add_period(
            company, date(2025, 1, 1), date(2025, 1, 15), state="in_progress"
        )

        def close_on_second_sleep(calls):
            if calls == 2:
                fake_store.periods[period.id] = replace(fake_store.periods[period.id], state="closed")

        sleep = RecordingSleep(close_on_second_sleep)

        result = await service(fake_store, sleep).verify_closure_and_detect_next(period.id, company)

        assert result.success
        assert sleep.delays == [1.0, 2.0]

    async def test_never_closed_gives_up_after_max_retries(self, fake_store):
        company = uuid4()
        period = fake_store.add_period(company, date(2025, 1, 1), date(2025, 1, 15))
        sleep = RecordingSleep()

        result = await service(fake_store, sleep).verify_closure_and_detect_next(period.id, company)

        assert not result.success
        assert sleep.delays == [1.0, 2.0, 3.0, 4.0]
        assert result.error == "Period in state 'draft', expected 'closed'"
        assert result.errors == [result.error]
        assert fake_store.calls.count("get_period") == 5

    async def test_missing_period_fails_without_retrying(self, fake_store):
        sleep = RecordingSleep()
        missing = uuid4()

        result = await service(fake_store, sleep).verify_closure_and_detect_next(missing, uuid4())

        assert not result.success
        assert result.error == f"Period {missing} not found"
        assert sleep.delays == []

    async def test_other_company_period_is_not_found(self, fake_store):
        period = fake_store.add_period(uuid4(), date(2025, 1, 1), date(2025, 1, 15), state="closed")
        sleep = RecordingSleep()
        caller = uuid4()

        result = await service(fake_store, sleep).verify_closure_and_detect_next(period.id, caller)

        assert not result.success
        assert result.error == f"Period {period.id} not found"
        assert result.closed_period is None
        assert result.next_period_suggestion is None
        assert sleep.delays == []

    async def test_read_errors_are_retried(self, fake_store):
        company = uuid4()
        period = fake_store.add_period(company, date(2025, 1, 1), date(2025, 1, 15), state="closed")
        fake_store.fail_on["get_period"] = {period.id}

        def heal_store(calls):
            if calls == 1:
                fake_store.fail_on.pop("get_period")

        sleep = RecordingSleep(heal_store)

        result = await service(fake_store, sleep).verify_closure_and_detect_next(period.id, company)

        assert result.success
        assert sleep.delays == [1.0]

    async def test_persistent_read_errors_fail(self, fake_store):
        fake_store.fail_on["get_period"] = True
        sleep = RecordingSleep()

        result = await service(fake_store, sleep, max_retries=3).verify_closure_and_detect_next(
            uuid4(), uuid4()
        )

        assert not result.success
        assert result.error == "get_period failed"
        assert sleep.delays == [1.0, 2.0]

    async def test_timeout_becomes_structured_failure(self, fake_store):
        company = uuid4()
        period = fake_store.add_period(company, date(2025, 1, 1), date(2025, 1, 15))

        result = await PostClosureDetectionService(
            fake_store,
            ClosureVerificationConfig(backoff_seconds=1.0, timeout_seconds=0.05),
            sleep=asyncio.sleep,
        ).verify_closure_and_detect_next(period.id, company)

        assert not result.success
        assert "timed out" in result.error


class TestNextRangeSearch:
    async def test_skips_existing_ranges(self, fake_store):
        company = uuid4()
        period = fake_store.add_period(company, date(2025, 1, 1), date(2025, 1, 15), state="closed")
        fake_store.add_period(company, date(2025, 1, 16), date(2025, 1, 31))

        result = await service(fake_store, RecordingSleep()).verify_closure_and_detect_next(
            period.id, company
        )

        assert result.success
        assert result.next_period_suggestion.date_range == DateRange(
            date(2025, 2, 1), date(2025, 2, 15)
        )

    async def test_monthly_next_range(self, fake_store):
        company = uuid4()
        fake_store.periodicities[company] = Periodicity.MONTHLY
        period = fake_store.add_period(
            company, date(2025, 1, 1), date(2025, 1, 31), state="closed", periodicity="monthly"
        )

        result = await service(fake_store, RecordingSleep()).verify_closure_and_detect_next(
            period.id, company
        )

        assert result.next_period_suggestion.date_range == DateRange(
            date(2025, 2, 1), date(2025, 2, 28)
        )
        assert result.next_period_suggestion.display_name == "1 - 28 Febrero 2025"

    async def test_search_failure_is_reported(self, fake_store):
        company = uuid4()
        period = fake_store.add_period(company, date(2025, 1, 1), date(2025, 1, 15), state="closed")
        fake_store.fail_on["find_period_by_range"] = True

        result = await service(fake_store, RecordingSleep()).verify_closure_and_detect_next(
            period.id, company
        )

        assert not result.success
        assert result.closed_period is not None
        assert result.error == "find_period_by_range failed"


class TestClosureVerificationConfig:
    def test_defaults(self):
        config = ClosureVerificationConfig()
        assert (config.max_retries, config.backoff_seconds, config.timeout_seconds) == (5, 1.0, 10.0)

    @pytest.mark.parametrize(
        "kwargs",
        [{"max_retries": 0}, {"backoff_seconds": -1}, {"timeout_seconds": 0}],
    )
    def test_invalid_values_raise(self, kwargs):
        with pytest.raises(ValueError):
            ClosureVerificationConfig(**kwargs)

    def test_from_settings(self):
        settings = Settings(
            database_url="sqlite+aiosqlite:///:memory:",
            engine_version="test",
            host="127.0.0.1",
            port=8000,
            debug=False,
            log_level="INFO",
            default_periodicity="monthly",
            closure_max_retries=2,
            closure_backoff_seconds=0.5,
            closure_timeout_seconds=3.0,
        )
        config = ClosureVerificationConfig.from_settings(settings)
        assert (config.max_retries, config.backoff_seconds, config.timeout_seconds) == (2, 0.5, 3.0)
