"""Payroll calculation engine - main orchestrator."""

from __future__ import annotations

import logging
from datetime import date
from typing import TYPE_CHECKING

from ph_payroll.calculators.component_map import ComponentClassifier
from ph_payroll.calculators.helpers import anchor_date
from ph_payroll.calculators.runners import (
    BaseRunner,
    CancelCheck,
    MonthlyRunner,
    ProgressCallback,
    SemiMonthlyRunner,
    SpecialRunner,
)
from ph_payroll.calculators.types import (
    Adjustment,
    EmployeeRecord,
    PeriodPart,
    PriorTakenLedger,
    RunRequest,
    RunResult,
    StatutoryTables,
    YtdTotals,
)

if TYPE_CHECKING:
    from ph_payroll.config import PayrollConfig

logger = logging.getLogger(__name__)


class StatutoryVersionNotFoundError(Exception):
    """Raised when no published statutory version covers the run date."""

    def __init__(self, as_of_date: date, reason: str = "no published version"):
        self.as_of_date = as_of_date
        self.reason = reason
        super().__init__(f"No statutory tables effective {as_of_date}: {reason}")


class PayrollEngine:
    """Main payroll calculation engine.

    The engine is a pure batch transformation: employees, adjustments,
    statutory tables and the prior-taken ledger are supplied up front and
    the result is returned in memory. It never mutates its inputs.

    Run pipeline:
    1) Validate the statutory version (published, covering the anchor date)
    2) Pick the runner for the period part
    3) Compute one row per eligible employee
    """

    def __init__(self, config: PayrollConfig, classifier: ComponentClassifier | None = None):
        self.config = config
        self.classifier = classifier or ComponentClassifier(config.category_table())

    def runner_for(self, part: PeriodPart, tables: StatutoryTables) -> BaseRunner:
        if part in (PeriodPart.A, PeriodPart.B):
            return SemiMonthlyRunner(self.config, tables, part, self.classifier)
        if part == PeriodPart.MONTHLY:
            return MonthlyRunner(self.config, tables, self.classifier)
        return SpecialRunner(self.config, tables, self.classifier)

    def validate_tables(self, request: RunRequest, tables: StatutoryTables | None) -> None:
        """Abort when no published version covers the run.

        Raises:
            StatutoryVersionNotFoundError: If tables are absent, unpublished or out of range
        """
        anchor = anchor_date(request.date_from, request.date_to, request.part)
        if tables is None:
            reason = "no statutory version supplied"
        elif not tables.is_published:
            reason = f"version {tables.version_id} is {tables.status}"
        elif not tables.covers(anchor):
            reason = f"version {tables.version_id} is not effective on {anchor}"
        else:
            return
        logger.error("Aborting run for %s: %s", anchor, reason)
        raise StatutoryVersionNotFoundError(anchor, reason)

    def run(
        self,
        request: RunRequest,
        employees: list[EmployeeRecord],
        adjustments: list[Adjustment],
        tables: StatutoryTables | None,
        ledger: PriorTakenLedger | None = None,
        ytd: dict[str, YtdTotals] | None = None,
        progress: ProgressCallback | None = None,
        should_cancel: CancelCheck | None = None,
    ) -> RunResult:
        """Compute a run.

        Returns:
            RunResult with one row per eligible employee and run totals

        Raises:
            StatutoryVersionNotFoundError: No published statutory version covers the run
            MissingStatutoryTableError: The version lacks a table the run needs
            UnknownEmployeeError: Input references an unknown employee
        """
        self.validate_tables(request, tables)
        runner = self.runner_for(request.part, tables)
        result = runner.run(
            request,
            employees,
            adjustments,
            ledger=ledger,
            ytd=ytd,
            progress=progress,
            should_cancel=should_cancel,
        )
        logger.info(
            "Run %s computed %d employees (gross %s, net %s, %d warnings)",
            result.period_label,
            result.total_employees,
            result.total_gross,
            result.total_net,
            len(result.warnings),
        )
        return result
