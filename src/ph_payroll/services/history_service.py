"""Posting of computed rows into payroll history."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import date
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ph_payroll.calculators import helpers as h
from ph_payroll.calculators.types import OutputRow, RunResult, UnknownEmployeeError
from ph_payroll.models import PayrollHistoryRow

logger = logging.getLogger(__name__)


def part_of_label(period_label: str) -> str:
    """Part code from a period label: "2025-01-A" -> "A", "2025-01-S-BONUS" -> "S", "-FP" -> "F"."""
    segments = period_label.split("-")
    if len(segments) < 3 or not segments[2]:
        raise ValueError(f"Malformed period label: {period_label}")
    return segments[2][0].upper()


def split_columns(row: OutputRow) -> tuple[dict[str, str], dict[str, str]]:
    """Numeric and text columns of a row, numeric ones as decimal strings."""
    numeric: dict[str, str] = {}
    text: dict[str, str] = {}
    for name, value in row.to_columns().items():
        if isinstance(value, Decimal):
            numeric[name] = str(h.r2(value))
        else:
            text[name] = str(value)
    return numeric, text


def label_month(period_label: str) -> date:
    """First day of the month a period label belongs to."""
    year, month = period_label.split("-")[:2]
    return date(int(year), int(month), 1)


class HistoryRecorder:
    """Persists finalized rows; re-posting a period label replaces the row."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def record(self, result: RunResult, known_codes: Iterable[str] | None = None) -> int:
        """Upsert every row of a run.

        Raises:
            UnknownEmployeeError: If a row belongs to an employee outside ``known_codes``
        """
        return await self.record_rows(result.rows, known_codes)

    async def record_rows(self, rows: list[OutputRow], known_codes: Iterable[str] | None = None) -> int:
        if known_codes is not None:
            known = set(known_codes)
            for row in rows:
                if row.employee_code not in known:
                    raise UnknownEmployeeError(row.employee_code)

        for row in rows:
            existing = await self.session.execute(
                select(PayrollHistoryRow).where(
                    PayrollHistoryRow.employee_code == row.employee_code,
                    PayrollHistoryRow.period_label == row.period_label,
                )
            )
            record = existing.scalar_one_or_none()
            if record is None:
                record = PayrollHistoryRow(employee_code=row.employee_code, period_label=row.period_label)
                self.session.add(record)
            numeric, text = split_columns(row)
            record.employee_name = row.employee_name
            record.part = part_of_label(row.period_label)
            record.payroll_month = label_month(row.period_label)
            record.date_from = row.date_from
            record.date_to = row.date_to
            record.gross_pay = row.gross_pay
            record.net_pay = row.net_pay
            record.columns = numeric
            record.meta = text
            record.row_hash = row.row_hash

        await self.session.flush()
        logger.info("Posted %d history rows", len(rows))
        return len(rows)
