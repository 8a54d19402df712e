"""Tests for current-period detection."""

from dataclasses import replace
from datetime import date
from uuid import uuid4

from period_reconciler.calculators.types import DateRange, Periodicity
from period_reconciler.services.period_detection import (
    DetectionAction,
    PeriodDetectionService,
)
from period_reconciler.services.root_resolver import RootConflictResolver

TODAY = date(2025, 6, 10)


def detector(store, company):
    return PeriodDetectionService(store, company, today=TODAY)


class TestDetectCurrentPeriodStatus:
    async def test_missing_company_is_emergency(self, fake_store):
        result = await detector(fake_store, None).detect_current_period_status()

        assert result.action == DetectionAction.EMERGENCY
        assert not result.success
        assert fake_store.calls == []

    async def test_single_active_period_resumes(self, fake_store):
        company = uuid4()
        fake_store.add_period(company, date(2025, 1, 1), date(2025, 1, 15), state="closed")
        active = fake_store.add_period(
            company, date(2025, 1, 16), date(2025, 1, 31), state="in_progress"
        )

        result = await detector(fake_store, company).detect_current_period_status()

        assert result.action == DetectionAction.RESUME
        assert result.period.id == active.id
        assert result.has_active_period
        assert result.diagnostic is not None

    async def test_several_active_periods_need_diagnosis(self, fake_store):
        company = uuid4()
        fake_store.add_period(company, date(2025, 1, 1), date(2025, 1, 15))
        fake_store.add_period(company, date(2025, 1, 16), date(2025, 1, 31))

        result = await detector(fake_store, company).detect_current_period_status()

        assert result.action == DetectionAction.DIAGNOSE
        assert result.success

    async def test_after_closed_period_suggests_next(self, fake_store):
        company = uuid4()
        fake_store.add_period(company, date(2025, 1, 1), date(2025, 1, 15), state="closed")

        result = await detector(fake_store, company).detect_current_period_status()

        assert result.action == DetectionAction.CREATE
        suggestion = result.suggested_range
        assert (suggestion.start_date, suggestion.end_date) == (date(2025, 1, 16), date(2025, 1, 31))
        assert suggestion.sequence_number == 2
        assert suggestion.display_name == "16 - 31 Enero 2025"

    async def test_uses_latest_closed_period(self, fake_store):
        company = uuid4()
        fake_store.periodicities[company] = Periodicity.MONTHLY
        fake_store.add_period(
            company, date(2025, 2, 1), date(2025, 2, 28), state="approved", periodicity="monthly"
        )
        fake_store.add_period(
            company, date(2025, 1, 1), date(2025, 1, 31), state="paid", periodicity="monthly"
        )

        result = await detector(fake_store, company).detect_current_period_status()

        assert result.action == DetectionAction.CREATE
        assert result.suggested_range.date_range == DateRange(date(2025, 3, 1), date(2025, 3, 31))

    async def test_empty_monthly_ledger_anchors_on_today(self, fake_store):
        company = uuid4()
        fake_store.periodicities[company] = Periodicity.MONTHLY

        result = await detector(fake_store, company).detect_current_period_status()

        assert result.action == DetectionAction.CREATE
        suggestion = result.suggested_range
        assert (suggestion.start_date, suggestion.end_date) == (date(2025, 6, 1), date(2025, 6, 30))
        assert suggestion.sequence_number == 6

    async def test_only_canceled_periods_need_diagnosis(self, fake_store):
        company = uuid4()
        fake_store.add_period(company, date(2025, 1, 1), date(2025, 1, 15), state="canceled")

        result = await detector(fake_store, company).detect_current_period_status()

        assert result.action == DetectionAction.DIAGNOSE

    async def test_auto_heal_runs_before_partitioning(self, fake_store):
        company = uuid4()
        period = fake_store.add_period(company, date(2025, 1, 1), date(2025, 1, 15), number=1)
        fake_store.add_record(period, "processed", gross="10", net="10")

        result = await detector(fake_store, company).detect_current_period_status()

        assert result.heal.healed_count == 1
        assert fake_store.periods[period.id].state == "closed"
        assert result.action == DetectionAction.CREATE
        assert result.suggested_range.start_date == date(2025, 1, 16)
        # the diagnostic ran before the heal and saw the inconsistency
        assert len(result.diagnostic.state_inconsistencies) == 1

    async def test_diagnose_is_read_only(self, fake_store):
        company = uuid4()
        period = fake_store.add_period(company, date(2025, 1, 1), date(2025, 1, 15))
        fake_store.add_record(period, "processed")

        report = await detector(fake_store, company).diagnose()

        assert len(report.state_inconsistencies) == 1
        assert fake_store.periods[period.id].state == "draft"

    async def test_unexpected_failure_is_emergency(self, fake_store):
        fake_store.fail_on["get_company_periodicity"] = True

        result = await detector(fake_store, uuid4()).detect_current_period_status()

        assert result.action == DetectionAction.EMERGENCY
        assert "get_company_periodicity failed" in result.message


class TestCreatePeriodFromSuggestion:
    async def test_creates_canonical_draft(self, fake_store):
        company = uuid4()
        service = detector(fake_store, company)
        detection = await service.detect_current_period_status()

        result = await service.create_period_from_suggestion(detection.suggested_range)

        assert result.success
        assert result.period.state == "draft"
        assert result.period.sequence_number == 11
        assert result.period.display_name == "1 - 15 Junio 2025"

    async def test_refuses_existing_range(self, fake_store):
        company = uuid4()
        fake_store.add_period(company, date(2025, 6, 1), date(2025, 6, 15))

        result = await detector(fake_store, company).create_period_from_suggestion(
            DateRange(date(2025, 6, 1), date(2025, 6, 15))
        )

        assert not result.success
        assert "already exists" in result.message
        assert len(fake_store.company_periods(company)) == 1

    async def test_refuses_inverted_range(self, fake_store):
        result = await detector(fake_store, uuid4()).create_period_from_suggestion(
            DateRange(date(2025, 6, 15), date(2025, 6, 1))
        )

        assert not result.success
        assert result.message == "Invalid period range"

    async def test_store_failure_is_reported(self, fake_store):
        fake_store.fail_on["create_period"] = True

        result = await detector(fake_store, uuid4()).create_period_from_suggestion(
            DateRange(date(2025, 6, 1), date(2025, 6, 15))
        )

        assert not result.success
        assert result.errors == ["Error creating period: create_period failed"]

    async def test_store_backed_creation(self, store, company_id):
        service = PeriodDetectionService(store, company_id, today=TODAY)

        result = await service.create_period_from_suggestion(
            DateRange(date(2025, 6, 16), date(2025, 6, 30))
        )

        assert result.success
        stored = await store.get_period(result.period.id)
        assert stored.sequence_number == 12
        assert stored.display_name == "16 - 30 Junio 2025"

    async def test_chained_biweekly_suggestions_stay_canonical(self, fake_store):
        company = uuid4()
        fake_store.add_period(
            company, date(2025, 1, 1), date(2025, 1, 15), number=1, state="closed"
        )
        service = detector(fake_store, company)

        created = []
        for _ in range(2):
            detection = await service.detect_current_period_status()
            assert detection.action == DetectionAction.CREATE
            result = await service.create_period_from_suggestion(detection.suggested_range)
            assert result.success
            created.append(result.period)
            fake_store.periods[result.period.id] = replace(result.period, state="closed")

        assert [(p.start_date, p.end_date, p.sequence_number) for p in created] == [
            (date(2025, 1, 16), date(2025, 1, 31), 2),
            (date(2025, 2, 1), date(2025, 2, 15), 3),
        ]
        assert created[1].display_name == "1 - 15 Febrero 2025"

        root = await RootConflictResolver(fake_store, today=TODAY).execute_root_correction(company)

        assert root.success
        assert root.periods_deleted == 0
        assert all(p.id in fake_store.periods for p in created)
