"""Canonical display names for payroll periods."""

from __future__ import annotations

from datetime import date

from period_reconciler.calculators.sequence import parse_date, parse_periodicity
from period_reconciler.calculators.types import Periodicity

# Product locale month names, indexed by month - 1
MONTH_NAMES: tuple[str, ...] = (
    "Enero",
    "Febrero",
    "Marzo",
    "Abril",
    "Mayo",
    "Junio",
    "Julio",
    "Agosto",
    "Septiembre",
    "Octubre",
    "Noviembre",
    "Diciembre",
)


def month_name(month: int) -> str:
    return MONTH_NAMES[month - 1]


class NameCache:
    """Memo of computed names for one reconciliation session.

    Owned by whoever drives the session and passed into the
    NameNormalizer; call invalidate() when the session ends or the
    locale changes.
    """

    def __init__(self) -> None:
        self._names: dict[tuple[date, date, str], str] = {}
        self.hits = 0
        self.misses = 0

    def get(self, key: tuple[date, date, str]) -> str | None:
        name = self._names.get(key)
        if name is None:
            self.misses += 1
        else:
            self.hits += 1
        return name

    def put(self, key: tuple[date, date, str], name: str) -> None:
        self._names[key] = name

    def invalidate(self) -> None:
        """Drop every cached name and reset counters."""
        self._names.clear()
        self.hits = 0
        self.misses = 0

    def __len__(self) -> int:
        return len(self._names)


class NameNormalizer:
    """Computes the canonical display name of a period.

    Rules:
    - 1 to 15: "1 - 15 {Month} {Year}"
    - starting on 16: "16 - {endDay} {Month} {Year}"
    - anything else: "{startDay} - {endDay} {Month} {Year}"

    Month and year come from the start date.
    """

    def __init__(self, cache: NameCache | None = None):
        self.cache = cache

    def name(
        self,
        start_date: date | str,
        end_date: date | str,
        periodicity: Periodicity | str,
    ) -> str:
        start = parse_date(start_date)
        end = parse_date(end_date)
        periodicity = parse_periodicity(periodicity)

        key = (start, end, periodicity.value)
        if self.cache is not None:
            cached = self.cache.get(key)
            if cached is not None:
                return cached

        name = self.compose(start, end)
        if self.cache is not None:
            self.cache.put(key, name)
        return name

    @staticmethod
    def compose(start: date, end: date) -> str:
        suffix = f"{month_name(start.month)} {start.year}"
        if start.day == 1 and end.day == 15:
            return f"1 - 15 {suffix}"
        if start.day == 16:
            return f"16 - {end.day} {suffix}"
        return f"{start.day} - {end.day} {suffix}"
