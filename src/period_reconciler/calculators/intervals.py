"""Interval arithmetic for payroll periods."""

from __future__ import annotations

import calendar
from datetime import date, timedelta

from period_reconciler.calculators.naming import NameNormalizer
from period_reconciler.calculators.sequence import SequenceCalculator, parse_periodicity
from period_reconciler.calculators.types import DateRange, Periodicity, SuggestedRange


def end_of_month(day: date) -> date:
    return date(day.year, day.month, calendar.monthrange(day.year, day.month)[1])


def half_month_of(day: date) -> DateRange:
    """Calendar half of the month holding day: 1-15 or 16-end of month."""
    if day.day <= 15:
        return DateRange(day.replace(day=1), day.replace(day=15))
    return DateRange(day.replace(day=16), end_of_month(day))


def first_range(today: date, periodicity: Periodicity | str) -> DateRange:
    """First interval for a company with no periods, anchored on today.

    - monthly: the current calendar month
    - biweekly: 1-15 or 16-end of the current month depending on the day
    - weekly: Monday to Sunday of the current week
    """
    periodicity = parse_periodicity(periodicity)
    if periodicity == Periodicity.BIWEEKLY:
        return half_month_of(today)
    if periodicity == Periodicity.WEEKLY:
        monday = today - timedelta(days=today.weekday())
        return DateRange(monday, monday + timedelta(days=6))
    return DateRange(today.replace(day=1), end_of_month(today))


def next_range(last_end: date, periodicity: Periodicity | str) -> DateRange:
    """Interval following a period that ended on last_end.

    The next period starts the day after. Biweekly ranges snap to the
    calendar half holding that day (1-15 or 16-end of month), weekly
    spans 7 days (start + 6) and monthly runs to the end of the month it
    starts in.
    """
    periodicity = parse_periodicity(periodicity)
    start = last_end + timedelta(days=1)
    if periodicity == Periodicity.BIWEEKLY:
        return half_month_of(start)
    if periodicity == Periodicity.WEEKLY:
        return DateRange(start, start + timedelta(days=6))
    if start.day == 1:
        return DateRange(start, end_of_month(start))
    # Off-calendar monthly periods keep their day of month
    month = start.month % 12 + 1
    year = start.year + (1 if start.month == 12 else 0)
    day = min(start.day, calendar.monthrange(year, month)[1])
    return DateRange(start, date(year, month, day) - timedelta(days=1))


def crosses_month(start: date, end: date) -> bool:
    return (start.year, start.month) != (end.year, end.month)


def is_following_month(start: date, end: date) -> bool:
    if start.month == 12:
        return end.year == start.year + 1 and end.month == 1
    return end.year == start.year and end.month == start.month + 1


def is_anomalous_range(start: date, end: date, periodicity: Periodicity | str) -> bool:
    """Whether a stored interval has a shape the periodicity never produces.

    Biweekly intervals may only cross into the following month when they
    are a second half starting on day 16. Monthly intervals never cross a
    month. Weekly intervals cross months naturally.
    """
    if end < start:
        return True
    periodicity = parse_periodicity(periodicity)
    if not crosses_month(start, end):
        return False
    if periodicity == Periodicity.BIWEEKLY:
        return not (start.day == 16 and is_following_month(start, end))
    return periodicity == Periodicity.MONTHLY


def suggest(
    date_range: DateRange,
    periodicity: Periodicity | str,
    normalizer: NameNormalizer | None = None,
) -> SuggestedRange:
    """Wrap an interval with its canonical number and name."""
    periodicity = parse_periodicity(periodicity)
    normalizer = normalizer or NameNormalizer()
    return SuggestedRange(
        start_date=date_range.start,
        end_date=date_range.end,
        periodicity=periodicity,
        display_name=normalizer.name(date_range.start, date_range.end, periodicity),
        sequence_number=SequenceCalculator.number(date_range.start, periodicity),
    )
