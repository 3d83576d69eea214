"""Year-end annualization: annual tax due against cumulative withholding."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import TYPE_CHECKING

from ph_payroll.annualization.rollup import YtdRollup, rollup_history
from ph_payroll.calculators.component_map import ComponentClassifier
from ph_payroll.calculators.helpers import r2
from ph_payroll.calculators.tax_calculator import TaxCalculator
from ph_payroll.calculators.types import ZERO, EmployeeRecord, HistoryRow, TaxBracket

if TYPE_CHECKING:
    from ph_payroll.config import PayrollConfig

logger = logging.getLogger(__name__)


@dataclass
class PreviousEmployerBreakdown:
    """Compensation and tax carried over from an earlier employer this year."""

    tin: str = ""
    registered_name: str = ""
    address: str = ""
    zip_code: str = ""
    taxable_compensation: Decimal = ZERO
    taxes_withheld: Decimal = ZERO
    non_tax_13th_month: Decimal = ZERO
    non_tax_de_minimis: Decimal = ZERO
    non_tax_contributions: Decimal = ZERO
    non_tax_salaries: Decimal = ZERO
    taxable_basic_salary: Decimal = ZERO
    taxable_13th_month: Decimal = ZERO
    taxable_salaries: Decimal = ZERO

    @property
    def non_taxable_total(self) -> Decimal:
        return (
            self.non_tax_13th_month
            + self.non_tax_de_minimis
            + self.non_tax_contributions
            + self.non_tax_salaries
        )


@dataclass
class AnnualSummary:
    """One employee's annual reconciliation.

    tax_difference = annual_tax_due - total_withheld; positive means the
    employee owes more tax, negative means a refund is due.
    """

    employee_code: str
    year: int
    gross_compensation: Decimal = ZERO
    non_taxable_compensation: Decimal = ZERO
    mwe_non_taxable_basic: Decimal = ZERO
    mwe_non_taxable_overtime: Decimal = ZERO
    non_taxable_13th_month: Decimal = ZERO
    taxable_13th_month: Decimal = ZERO
    ee_contributions: Decimal = ZERO
    taxable_present: Decimal = ZERO
    taxable_previous: Decimal = ZERO
    total_taxable: Decimal = ZERO
    annual_tax_due: Decimal = ZERO
    withheld_present: Decimal = ZERO
    withheld_previous: Decimal = ZERO
    total_withheld: Decimal = ZERO
    tax_difference: Decimal = ZERO
    previous_employer: PreviousEmployerBreakdown | None = None
    rollup: YtdRollup = field(default_factory=YtdRollup)

    @property
    def is_refund(self) -> bool:
        return self.tax_difference < 0


class Annualizer:
    """Computes annual tax due from a YTD rollup.

    Steps:
    1) Gross compensation from every earning bucket
    2) Non-taxable: de minimis, other non-taxable, 13th month up to the
       ceiling, EE contributions, and for MWEs basic pay and overtime
    3) Taxable = gross - non-taxable, plus previous-employer taxable
    4) Annual tax via the annual bracket scale (zero for MWEs)
    5) Difference against present and previous withholding
    """

    def __init__(
        self,
        config: PayrollConfig,
        brackets: list[TaxBracket] | None,
        classifier: ComponentClassifier | None = None,
    ):
        self.config = config
        self.tax = TaxCalculator(config, brackets)
        self.classifier = classifier or ComponentClassifier(config.category_table())

    def annualize(
        self,
        employee: EmployeeRecord,
        rollup: YtdRollup,
        year: int,
        previous: PreviousEmployerBreakdown | None = None,
    ) -> AnnualSummary:
        previous = previous or PreviousEmployerBreakdown()
        ee = r2(rollup.ee_contributions)

        mwe_basic = ZERO
        mwe_overtime = ZERO
        if employee.is_mwe:
            mwe_basic = max(ZERO, r2(rollup.basic - ee))
            mwe_overtime = r2(rollup.overtime)

        ceiling = max(ZERO, self.config.other_benefits_ceiling - previous.non_tax_13th_month)
        non_tax_13th = min(max(ZERO, rollup.other_benefits), ceiling)
        taxable_13th = max(ZERO, rollup.other_benefits - non_tax_13th)

        gross = r2(
            rollup.basic
            + rollup.overtime
            + rollup.taxable
            + rollup.other_benefits
            + rollup.deminimis
            + rollup.nontax_other
        )
        non_taxable = r2(
            rollup.deminimis + rollup.nontax_other + non_tax_13th + ee + mwe_basic + mwe_overtime
        )
        taxable_present = max(ZERO, r2(gross - non_taxable))
        total_taxable = r2(taxable_present + previous.taxable_compensation)

        due = ZERO if employee.is_mwe else self.tax.annual_tax(total_taxable)
        withheld_present = r2(rollup.withholding)
        total_withheld = r2(withheld_present + previous.taxes_withheld)

        summary = AnnualSummary(
            employee_code=employee.employee_code,
            year=year,
            gross_compensation=gross,
            non_taxable_compensation=non_taxable,
            mwe_non_taxable_basic=mwe_basic,
            mwe_non_taxable_overtime=mwe_overtime,
            non_taxable_13th_month=r2(non_tax_13th),
            taxable_13th_month=r2(taxable_13th),
            ee_contributions=ee,
            taxable_present=taxable_present,
            taxable_previous=r2(previous.taxable_compensation),
            total_taxable=total_taxable,
            annual_tax_due=due,
            withheld_present=withheld_present,
            withheld_previous=r2(previous.taxes_withheld),
            total_withheld=total_withheld,
            tax_difference=r2(due - total_withheld),
            previous_employer=previous if previous.tin or previous.taxable_compensation else None,
            rollup=rollup,
        )
        logger.debug(
            "Annualized %s for %d: due %s, withheld %s, difference %s",
            employee.employee_code, year, due, total_withheld, summary.tax_difference,
        )
        return summary

    def annualize_history(
        self,
        employee: EmployeeRecord,
        rows: list[HistoryRow],
        year: int,
        previous: PreviousEmployerBreakdown | None = None,
    ) -> AnnualSummary:
        """Final annualization over an employee's posted rows for a year."""
        own_rows = [r for r in rows if r.employee_code == employee.employee_code]
        rollup = rollup_history(own_rows, self.classifier, year=year)
        return self.annualize(employee, rollup, year, previous)
