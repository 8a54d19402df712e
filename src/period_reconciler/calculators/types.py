"""Type definitions for period reconciliation."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID


class Periodicity(str, Enum):
    """Cadence of a company's payroll periods."""

    WEEKLY = "weekly"
    BIWEEKLY = "biweekly"
    MONTHLY = "monthly"


class PeriodState(str, Enum):
    """Payroll period lifecycle states."""

    DRAFT = "draft"
    IN_PROGRESS = "in_progress"
    CLOSED = "closed"
    APPROVED = "approved"
    REOPENED = "reopened"
    CANCELED = "canceled"


class RecordState(str, Enum):
    """Payroll record (child of a period) states."""

    DRAFT = "draft"
    PROCESSED = "processed"
    CLOSED = "closed"
    PAID = "paid"


class InvalidDateFormat(ValueError):
    """Raised when a date value cannot be parsed."""

    def __init__(self, value: object):
        self.value = value
        super().__init__(f"Invalid date value {value!r}, expected YYYY-MM-DD")


@dataclass(frozen=True)
class DateRange:
    """An inclusive date interval."""

    start: date
    end: date

    @property
    def days(self) -> int:
        return (self.end - self.start).days + 1

    def __str__(self) -> str:
        return f"{self.start.isoformat()}..{self.end.isoformat()}"


@dataclass(frozen=True)
class SuggestedRange:
    """A period interval proposed to the caller for creation."""

    start_date: date
    end_date: date
    periodicity: Periodicity
    display_name: str
    sequence_number: int | None = None

    @property
    def date_range(self) -> DateRange:
        return DateRange(self.start_date, self.end_date)


@dataclass(frozen=True)
class Period:
    """Snapshot of a stored payroll period.

    State is kept as the raw stored string so legacy values survive a
    round trip; compare against PeriodState members.
    """

    id: UUID
    company_id: UUID
    periodicity: str
    start_date: date
    end_date: date
    sequence_number: int | None
    display_name: str
    state: str
    employee_count: int = 0
    gross_total: Decimal = Decimal("0")
    deductions_total: Decimal = Decimal("0")
    net_total: Decimal = Decimal("0")
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def date_key(self) -> tuple[date, date]:
        return (self.start_date, self.end_date)

    @property
    def date_range(self) -> DateRange:
        return DateRange(self.start_date, self.end_date)


@dataclass(frozen=True)
class PayrollRecord:
    """Snapshot of a payroll record belonging to a period."""

    id: UUID
    period_id: UUID
    employee_id: UUID
    state: str
    gross_pay: Decimal = Decimal("0")
    deductions: Decimal = Decimal("0")
    net_pay: Decimal = Decimal("0")

    @property
    def is_beyond_draft(self) -> bool:
        return self.state != RecordState.DRAFT
