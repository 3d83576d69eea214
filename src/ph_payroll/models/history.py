"""Posted payroll history: one row per employee per period label."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Any

from sqlalchemy import JSON, Date, Integer, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from ph_payroll.models.base import Base, TimestampMixin


class PayrollHistoryRow(Base, TimestampMixin):
    """A finalized output row.

    ``columns`` holds every numeric column of the row (earnings, deductions,
    statutory and totals) as strings of fixed-point decimals; ``meta`` holds the
    text columns. Re-posting the same period label replaces the row.
    """

    __tablename__ = "payroll_history"

    payroll_history_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    employee_code: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    employee_name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    period_label: Mapped[str] = mapped_column(String(64), nullable=False)
    part: Mapped[str] = mapped_column(String(1), nullable=False)
    payroll_month: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    date_from: Mapped[date] = mapped_column(Date, nullable=False)
    date_to: Mapped[date] = mapped_column(Date, nullable=False)
    gross_pay: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    net_pay: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    columns: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    meta: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    row_hash: Mapped[str] = mapped_column(String(64), nullable=False)

    __table_args__ = (
        UniqueConstraint("employee_code", "period_label", name="payroll_history_employee_period_unique"),
    )

    def numeric_columns(self) -> dict[str, Decimal]:
        return {name: Decimal(str(value)) for name, value in (self.columns or {}).items()}
