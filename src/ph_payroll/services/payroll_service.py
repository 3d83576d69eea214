"""Orchestration shared by the API and the CLI.

Inputs arrive as engine types; statutory tables and history may be supplied
inline or, when a session is available, read from the database.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import TYPE_CHECKING

from sqlalchemy.ext.asyncio import AsyncSession

from ph_payroll.annualization import (
    AnnualSummary,
    Annualizer,
    FinalPayCalculator,
    FinalPayResult,
    PreAnnualization,
    PreAnnualizer,
    PreviousEmployerBreakdown,
)
from ph_payroll.calculators import helpers as h
from ph_payroll.calculators.adjustments import (
    AttendanceRecord,
    RecurringAdjustment,
    attendance_adjustments,
    expand_recurring,
)
from ph_payroll.calculators.component_map import ComponentClassifier
from ph_payroll.calculators.engine import PayrollEngine, StatutoryVersionNotFoundError
from ph_payroll.calculators.rate_resolver import RateResolver
from ph_payroll.calculators.runners import CancelCheck, ProgressCallback
from ph_payroll.calculators.types import (
    Adjustment,
    EmployeeRecord,
    HistoryRow,
    PeriodPart,
    RunRequest,
    RunResult,
    StatutoryTables,
)
from ph_payroll.services.history_service import HistoryRecorder
from ph_payroll.services.ledger_service import LedgerBuilder, build_ledger, ytd_totals
from ph_payroll.services.statutory_versions import StatutoryVersionResolver

if TYPE_CHECKING:
    from decimal import Decimal

    from ph_payroll.config import PayrollConfig

logger = logging.getLogger(__name__)


class PayrollService:
    """Runs, annualizations and final pay against inline or stored data."""

    def __init__(self, config: PayrollConfig, session: AsyncSession | None = None):
        self.config = config
        self.session = session
        self.classifier = ComponentClassifier(config.category_table())

    async def tables_for(self, as_of: date, tables: StatutoryTables | None = None) -> StatutoryTables:
        """Inline tables win; otherwise the published version effective on ``as_of``."""
        if tables is not None:
            return tables
        if self.session is None:
            raise StatutoryVersionNotFoundError(as_of, "no statutory tables supplied")
        return await StatutoryVersionResolver(self.session).resolve(as_of)

    async def history_for(
        self,
        year: int,
        employee_codes: list[str],
        history: list[HistoryRow] | None,
        exclude_label: str | None = None,
    ) -> list[HistoryRow]:
        if history is not None:
            return [
                r for r in history
                if r.month.year == year
                and r.employee_code in employee_codes
                and r.period_label != exclude_label
            ]
        if self.session is None:
            return []
        builder = LedgerBuilder(self.session, self.classifier)
        return await builder.history_rows(year, employee_codes, exclude_label)

    def expand_adjustments(
        self,
        request: RunRequest,
        employees: list[EmployeeRecord],
        adjustments: list[Adjustment],
        recurring: list[RecurringAdjustment] | None = None,
        attendance: list[AttendanceRecord] | None = None,
    ) -> list[Adjustment]:
        """Explicit adjustments, then attendance lines, then recurring templates."""
        expanded = list(adjustments)
        if attendance:
            by_code = {e.employee_code: e for e in employees}
            expanded.extend(attendance_adjustments(attendance, by_code, RateResolver(self.config)))
        if recurring and request.part != PeriodPart.SPECIAL:
            expanded.extend(expand_recurring(recurring, request.part, expanded))
        return expanded

    async def compute_run(
        self,
        request: RunRequest,
        employees: list[EmployeeRecord],
        adjustments: list[Adjustment],
        tables: StatutoryTables | None = None,
        history: list[HistoryRow] | None = None,
        recurring: list[RecurringAdjustment] | None = None,
        attendance: list[AttendanceRecord] | None = None,
        post: bool = False,
        progress: ProgressCallback | None = None,
        should_cancel: CancelCheck | None = None,
    ) -> RunResult:
        """Compute a run, optionally posting its rows to history.

        Raises:
            StatutoryVersionNotFoundError: No usable statutory version
            MissingStatutoryTableError: The version lacks a needed table
            UnknownEmployeeError: An adjustment names an unknown employee
            RunCancelledError: ``should_cancel`` returned True mid-run
        """
        anchor = h.anchor_date(request.date_from, request.date_to, request.part)
        label = h.period_label(request.date_from, request.date_to, request.part, request.run_code)
        resolved = await self.tables_for(anchor, tables)

        codes = [e.employee_code for e in employees]
        year_rows = await self.history_for(anchor.year, codes, history, exclude_label=label)
        month_rows = [r for r in year_rows if r.month.month == anchor.month]
        ledger = build_ledger(month_rows)
        ytd = ytd_totals(year_rows, self.classifier, codes, through=anchor)

        engine = PayrollEngine(self.config, self.classifier)
        result = engine.run(
            request,
            employees,
            self.expand_adjustments(request, employees, adjustments, recurring, attendance),
            resolved,
            ledger=ledger,
            ytd=ytd,
            progress=progress,
            should_cancel=should_cancel,
        )
        if post:
            await self.post(result, codes)
        return result

    async def post(self, result: RunResult, known_codes: list[str]) -> int:
        if self.session is None:
            raise RuntimeError("Posting history requires a database session")
        return await HistoryRecorder(self.session).record(result, known_codes)

    async def annualize(
        self,
        year: int,
        employees: list[EmployeeRecord],
        history: list[HistoryRow] | None = None,
        tables: StatutoryTables | None = None,
        previous: dict[str, PreviousEmployerBreakdown] | None = None,
    ) -> list[AnnualSummary]:
        """Year-end annualization for every employee with history this year."""
        resolved = await self.tables_for(date(year, 12, 31), tables)
        codes = [e.employee_code for e in employees]
        rows = await self.history_for(year, codes, history)
        annualizer = Annualizer(self.config, resolved.tax_brackets, self.classifier)
        previous = previous or {}
        return [
            annualizer.annualize_history(e, rows, year, previous.get(e.employee_code))
            for e in employees
        ]

    async def pre_annualize(
        self,
        as_of: date,
        employees: list[EmployeeRecord],
        history: list[HistoryRow] | None = None,
        tables: StatutoryTables | None = None,
        recurring_extras: dict[str, dict[str, Decimal]] | None = None,
    ) -> list[PreAnnualization]:
        resolved = await self.tables_for(as_of, tables)
        codes = [e.employee_code for e in employees]
        rows = await self.history_for(as_of.year, codes, history)
        projector = PreAnnualizer(self.config, resolved.tax_brackets, self.classifier)
        return projector.project_all(employees, rows, as_of, recurring_extras)

    async def final_pay(
        self,
        employee: EmployeeRecord,
        separation_date: date,
        items: list[Adjustment],
        history: list[HistoryRow] | None = None,
        tables: StatutoryTables | None = None,
        previous: PreviousEmployerBreakdown | None = None,
        post: bool = False,
    ) -> FinalPayResult:
        resolved = await self.tables_for(separation_date, tables)
        label = h.final_pay_label(separation_date)
        rows = await self.history_for(separation_date.year, [employee.employee_code], history, exclude_label=label)
        calculator = FinalPayCalculator(self.config, resolved.tax_brackets)
        result = calculator.compute(employee, separation_date, items, rows, previous)
        if post:
            if self.session is None:
                raise RuntimeError("Posting history requires a database session")
            await HistoryRecorder(self.session).record_rows([result.row], [employee.employee_code])
        return result
