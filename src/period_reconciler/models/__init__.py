"""ORM models."""

from period_reconciler.models.base import Base, TimestampMixin
from period_reconciler.models.period import CompanySettings, Payroll, PayrollPeriod

__all__ = [
    "Base",
    "CompanySettings",
    "Payroll",
    "PayrollPeriod",
    "TimestampMixin",
]
