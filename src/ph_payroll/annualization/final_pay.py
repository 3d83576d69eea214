"""Final pay at separation: one-time items plus a single annual tax true-up."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING

from ph_payroll.annualization.final import AnnualSummary, Annualizer, PreviousEmployerBreakdown
from ph_payroll.annualization.rollup import rollup_history
from ph_payroll.calculators import helpers as h
from ph_payroll.calculators.component_map import ComponentClassifier
from ph_payroll.calculators.helpers import r2
from ph_payroll.calculators.row_builder import RowBuilder
from ph_payroll.calculators.statutory import add_system_adjustments
from ph_payroll.calculators.types import (
    ZERO,
    Adjustment,
    ComponentCategory,
    EmployeeRecord,
    HistoryRow,
    OutputRow,
    StatutoryResult,
    TaxBracket,
)

if TYPE_CHECKING:
    from ph_payroll.config import PayrollConfig

logger = logging.getLogger(__name__)

FINAL_PAY_CATEGORIES = {
    "UNPAID SALARY": ComponentCategory.BASIC_PAY_RELATED,
    "PRO-RATED 13TH MONTH": ComponentCategory.OTHER_BENEFITS,
    "LEAVE CONVERSION": ComponentCategory.TAXABLE_EARNING,
    "SEPARATION PAY": ComponentCategory.NON_TAXABLE_OTHER,
}
_TAXABLE_CATEGORIES = (ComponentCategory.BASIC_PAY_RELATED, ComponentCategory.TAXABLE_EARNING)


@dataclass
class FinalPayResult:
    """Final pay row and the annual reconciliation behind its tax line."""

    row: OutputRow
    annual: AnnualSummary
    settlement: Decimal


class FinalPayCalculator:
    """Computes the separation payment.

    The employee's YTD history and the final items are annualized together;
    the signed difference (due - withheld) becomes the final withholding line
    ``Withholding Tax = -settlement``. Gross and net cover the final items only.
    """

    def __init__(
        self,
        config: PayrollConfig,
        brackets: list[TaxBracket] | None,
        classifier: ComponentClassifier | None = None,
    ):
        table = dict(FINAL_PAY_CATEGORIES)
        table.update(config.category_table())
        self.classifier = classifier or ComponentClassifier(table)
        self.annualizer = Annualizer(config, brackets, self.classifier)

    def compute(
        self,
        employee: EmployeeRecord,
        separation_date: date,
        items: list[Adjustment],
        history: list[HistoryRow],
        previous: PreviousEmployerBreakdown | None = None,
    ) -> FinalPayResult:
        row = OutputRow(
            employee_code=employee.employee_code,
            employee_name=employee.name,
            period_label=h.final_pay_label(separation_date),
            payroll_month=h.payroll_month_label(separation_date),
            date_from=date(separation_date.year, separation_date.month, 1),
            date_to=separation_date,
            meta={"PAYROLL GROUP": employee.payroll_group or ""},
        )
        system: dict[str, Decimal] = {}
        for item in items:
            system_name = h.canonical_system_name(item.component)
            if system_name in h.CONTRIBUTION_NAMES:
                system[system_name] = system.get(system_name, ZERO) + Decimal(item.amount)
                continue
            if system_name is not None:
                logger.warning("Final pay item %s ignored for %s", item.component, employee.employee_code)
                continue
            name = h.norm_header(item.component)
            category = self.classifier.classify(name, item.category).category or ComponentCategory.TAXABLE_EARNING
            amount = Decimal(item.amount)
            if category == ComponentCategory.DEDUCTION and amount > 0:
                amount = -amount
            row.components[name] = r2(row.components.get(name, ZERO) + amount)
            row.categories[name] = category

        statutory = StatutoryResult()
        add_system_adjustments(statutory, system)
        row.statutory = statutory

        year = separation_date.year
        own = [r for r in history if r.employee_code == employee.employee_code]
        rollup = rollup_history(own, self.annualizer.classifier, year=year)
        final_columns = dict(row.components)
        final_columns.update(row.canonical_columns())
        rollup.add_columns(final_columns, self.annualizer.classifier)

        annual = self.annualizer.annualize(employee, rollup, year, previous)
        settlement = annual.tax_difference
        row.withholding_tax = ZERO - settlement
        taxable_earnings = sum(
            (v for n, v in row.components.items() if row.categories[n] in _TAXABLE_CATEGORIES), ZERO
        )
        row.taxable_income = max(ZERO, r2(taxable_earnings - statutory.total_ee))
        RowBuilder.finalize(row)

        logger.info(
            "Final pay for %s: gross %s, settlement %s, net %s",
            employee.employee_code, row.gross_pay, settlement, row.net_pay,
        )
        return FinalPayResult(row=row, annual=annual, settlement=settlement)
