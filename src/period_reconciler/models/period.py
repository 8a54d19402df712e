"""Payroll period, payroll record and company settings models.

Column names follow the hosted schema shared with the rest of the
product; attribute names are English.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import (
    CheckConstraint,
    Date,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from period_reconciler.models.base import Base, TimestampMixin

PERIODICITY_CHECK = "tipo_periodo IN ('weekly', 'biweekly', 'monthly')"


class PayrollPeriod(Base, TimestampMixin):
    """Payroll period of a company.

    No uniqueness constraints on dates or sequence numbers: the
    reconciliation engine has to load and repair ledgers that already
    contain duplicates.
    """

    __tablename__ = "payroll_periods_real"

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    company_id: Mapped[UUID] = mapped_column(nullable=False)
    start_date: Mapped[date] = mapped_column("fecha_inicio", Date, nullable=False)
    end_date: Mapped[date] = mapped_column("fecha_fin", Date, nullable=False)
    periodicity: Mapped[str] = mapped_column("tipo_periodo", String, nullable=False)
    sequence_number: Mapped[int | None] = mapped_column(
        "numero_periodo_anual", Integer, nullable=True
    )
    display_name: Mapped[str] = mapped_column("periodo", String, nullable=False)
    state: Mapped[str] = mapped_column("estado", String, nullable=False, default="draft")
    employee_count: Mapped[int] = mapped_column(
        "empleados_count", Integer, nullable=False, default=0
    )
    gross_total: Mapped[Decimal] = mapped_column(
        "total_devengado", Numeric(14, 2), nullable=False, default=Decimal("0")
    )
    deductions_total: Mapped[Decimal] = mapped_column(
        "total_deducciones", Numeric(14, 2), nullable=False, default=Decimal("0")
    )
    net_total: Mapped[Decimal] = mapped_column(
        "total_neto", Numeric(14, 2), nullable=False, default=Decimal("0")
    )

    __table_args__ = (
        CheckConstraint(PERIODICITY_CHECK, name="payroll_period_periodicity_check"),
        Index("ix_payroll_period_company_type", "company_id", "tipo_periodo"),
    )

    # Relationships
    records: Mapped[list[Payroll]] = relationship(
        back_populates="period",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class Payroll(Base):
    """Per-employee payroll record of a period.

    Owned by the liquidation workflow; the reconciliation engine only reads
    states and amounts.
    """

    __tablename__ = "payrolls"

    id: Mapped[UUID] = mapped_column(primary_key=True, default=uuid4)
    period_id: Mapped[UUID] = mapped_column(
        ForeignKey("payroll_periods_real.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    employee_id: Mapped[UUID] = mapped_column(nullable=False)
    state: Mapped[str] = mapped_column("estado", String, nullable=False, default="draft")
    gross_pay: Mapped[Decimal] = mapped_column(
        "total_devengado", Numeric(14, 2), nullable=False, default=Decimal("0")
    )
    deductions: Mapped[Decimal] = mapped_column(
        "total_deducciones", Numeric(14, 2), nullable=False, default=Decimal("0")
    )
    net_pay: Mapped[Decimal] = mapped_column(
        "neto_pagado", Numeric(14, 2), nullable=False, default=Decimal("0")
    )

    # Relationships
    period: Mapped[PayrollPeriod] = relationship(back_populates="records")


class CompanySettings(Base, TimestampMixin):
    """Company-level payroll configuration."""

    __tablename__ = "company_settings"

    company_id: Mapped[UUID] = mapped_column(primary_key=True)
    periodicity: Mapped[str] = mapped_column(String, nullable=False, default="monthly")

    __table_args__ = (
        CheckConstraint(
            "periodicity IN ('weekly', 'biweekly', 'monthly')",
            name="company_settings_periodicity_check",
        ),
    )
