"""Tests for canonical period names."""

from datetime import date

from period_reconciler.calculators.naming import NameCache, NameNormalizer, month_name
from period_reconciler.calculators.types import Periodicity


class TestCompose:
    def test_first_half(self):
        assert NameNormalizer().name("2025-01-01", "2025-01-15", "biweekly") == "1 - 15 Enero 2025"

    def test_second_half_uses_end_day(self):
        assert NameNormalizer().name("2025-02-16", "2025-02-28", "biweekly") == "16 - 28 Febrero 2025"
        assert NameNormalizer().name("2025-09-16", "2025-09-30", "biweekly") == "16 - 30 Septiembre 2025"

    def test_other_intervals(self):
        normalizer = NameNormalizer()
        assert normalizer.name("2025-06-01", "2025-06-30", "monthly") == "1 - 30 Junio 2025"
        assert normalizer.name("2025-01-06", "2025-01-12", "weekly") == "6 - 12 Enero 2025"

    def test_month_and_year_come_from_start(self):
        name = NameNormalizer().name(date(2024, 12, 30), date(2025, 1, 5), Periodicity.WEEKLY)
        assert name == "30 - 5 Diciembre 2024"

    def test_month_name(self):
        assert month_name(1) == "Enero"
        assert month_name(12) == "Diciembre"


class TestNameCache:
    def test_normalizer_without_cache(self):
        normalizer = NameNormalizer()
        assert normalizer.cache is None
        assert normalizer.name("2025-03-01", "2025-03-15", "biweekly") == "1 - 15 Marzo 2025"

    def test_hits_and_misses(self):
        cache = NameCache()
        normalizer = NameNormalizer(cache)

        normalizer.name("2025-03-01", "2025-03-15", "biweekly")
        normalizer.name("2025-03-01", "2025-03-15", "biweekly")
        normalizer.name(date(2025, 3, 16), date(2025, 3, 31), Periodicity.BIWEEKLY)

        assert cache.misses == 2
        assert cache.hits == 1
        assert len(cache) == 2

    def test_key_includes_periodicity(self):
        cache = NameCache()
        normalizer = NameNormalizer(cache)
        normalizer.name("2025-03-01", "2025-03-15", "biweekly")
        normalizer.name("2025-03-01", "2025-03-15", "monthly")
        assert len(cache) == 2

    def test_invalidate(self):
        cache = NameCache()
        normalizer = NameNormalizer(cache)
        normalizer.name("2025-03-01", "2025-03-15", "biweekly")
        normalizer.name("2025-03-01", "2025-03-15", "biweekly")

        cache.invalidate()

        assert len(cache) == 0
        assert cache.hits == 0
        assert cache.misses == 0
        assert normalizer.name("2025-03-01", "2025-03-15", "biweekly") == "1 - 15 Marzo 2025"
        assert cache.misses == 1
