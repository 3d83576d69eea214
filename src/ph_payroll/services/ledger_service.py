"""Prior-taken ledger and year-to-date figures built from payroll history."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import date
from decimal import Decimal, InvalidOperation

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ph_payroll.annualization.rollup import rollup_history
from ph_payroll.calculators import helpers as h
from ph_payroll.calculators.component_map import ComponentClassifier
from ph_payroll.calculators.types import ZERO, HistoryRow, PeriodPart, PriorTakenLedger, YtdTotals
from ph_payroll.models import PayrollHistoryRow

logger = logging.getLogger(__name__)

_REGULAR_PARTS = (PeriodPart.A.value, PeriodPart.B.value, PeriodPart.MONTHLY.value)


def normalize_columns(columns: dict[str, object]) -> dict[str, Decimal]:
    """Numeric, non-meta columns under normalized names; duplicates are summed."""
    normalized: dict[str, Decimal] = {}
    for name, value in columns.items():
        if h.is_history_meta_column(name) or value is None or isinstance(value, bool):
            continue
        try:
            amount = Decimal(str(value).replace(",", "").strip())
        except InvalidOperation:
            continue
        key = h.norm_header(name)
        normalized[key] = normalized.get(key, ZERO) + amount
    return normalized


def to_history_row(record: PayrollHistoryRow) -> HistoryRow:
    """Engine view of a stored row."""
    columns = normalize_columns(record.numeric_columns())
    return HistoryRow(
        employee_code=record.employee_code,
        period_label=record.period_label,
        part=record.part,
        month=record.payroll_month,
        columns=columns,
        date_to=record.date_to,
    )


def ledger_part(row: HistoryRow) -> str:
    """Half a row counts against; off-cycle rows fall in the half their date lands in."""
    if row.part in _REGULAR_PARTS:
        return row.part
    day = (row.date_to or row.month).day
    return PeriodPart.A.value if day <= 15 else PeriodPart.B.value


def build_ledger(rows: Iterable[HistoryRow]) -> PriorTakenLedger:
    """Fold history rows of one month into month-to-date and per-half totals."""
    ledger = PriorTakenLedger()
    for row in rows:
        month = ledger.month_to_date.setdefault(row.employee_code, {})
        part = ledger.by_part.setdefault(ledger_part(row), {}).setdefault(row.employee_code, {})
        for name, value in row.columns.items():
            month[name] = month.get(name, ZERO) + value
            part[name] = part.get(name, ZERO) + value
    return ledger


class LedgerBuilder:
    """Reads payroll history for the engine.

    The ledger excludes the run's own period label so a recomputation never
    counts itself as already taken.
    """

    def __init__(self, session: AsyncSession, classifier: ComponentClassifier | None = None):
        self.session = session
        self.classifier = classifier or ComponentClassifier()

    async def _records(self, *criteria) -> list[PayrollHistoryRow]:
        result = await self.session.execute(
            select(PayrollHistoryRow)
            .where(*criteria)
            .order_by(PayrollHistoryRow.payroll_month, PayrollHistoryRow.period_label)
        )
        return list(result.scalars().all())

    async def build(
        self,
        employee_codes: Iterable[str],
        month: date,
        exclude_label: str | None = None,
    ) -> PriorTakenLedger:
        """Prior-taken ledger for the calendar month containing ``month``."""
        codes = list(employee_codes)
        criteria = [
            PayrollHistoryRow.employee_code.in_(codes),
            PayrollHistoryRow.payroll_month == date(month.year, month.month, 1),
        ]
        if exclude_label:
            criteria.append(PayrollHistoryRow.period_label != exclude_label)
        records = await self._records(*criteria)
        ledger = build_ledger(to_history_row(r) for r in records)
        logger.debug("Ledger for %s-%02d built from %d rows", month.year, month.month, len(records))
        return ledger

    async def history_rows(
        self,
        year: int,
        employee_codes: Iterable[str] | None = None,
        exclude_label: str | None = None,
    ) -> list[HistoryRow]:
        criteria = [
            PayrollHistoryRow.payroll_month >= date(year, 1, 1),
            PayrollHistoryRow.payroll_month <= date(year, 12, 1),
        ]
        if employee_codes is not None:
            criteria.append(PayrollHistoryRow.employee_code.in_(list(employee_codes)))
        if exclude_label:
            criteria.append(PayrollHistoryRow.period_label != exclude_label)
        return [to_history_row(r) for r in await self._records(*criteria)]

    async def build_ytd(
        self,
        employee_codes: Iterable[str],
        before: date,
        exclude_label: str | None = None,
    ) -> dict[str, YtdTotals]:
        """Year-to-date totals from rows in months before or equal to ``before``."""
        codes = list(employee_codes)
        rows = await self.history_rows(before.year, codes, exclude_label)
        return ytd_totals(rows, self.classifier, codes, through=before)


def ytd_totals(
    rows: list[HistoryRow],
    classifier: ComponentClassifier,
    employee_codes: Iterable[str],
    through: date | None = None,
) -> dict[str, YtdTotals]:
    """Regular taxable income, other benefits and completed cutoffs per employee."""
    totals: dict[str, YtdTotals] = {}
    taxable_key = h.norm_header(h.TAXABLE_INCOME)
    for code in employee_codes:
        own = [
            r for r in rows
            if r.employee_code == code
            and (through is None or (r.month.year, r.month.month) <= (through.year, through.month))
        ]
        regular = [r for r in own if r.part in _REGULAR_PARTS]
        rollup = rollup_history(own, classifier)
        totals[code] = YtdTotals(
            taxable_income=sum((r.columns.get(taxable_key, ZERO) for r in regular), ZERO),
            other_benefits=rollup.other_benefits,
            completed_cutoffs=len(regular),
        )
    return totals
