"""Withholding tax calculation using progressive bracket tables."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING

from ph_payroll.calculators.helpers import r2
from ph_payroll.calculators.types import (
    ZERO,
    BracketScale,
    EmployeeRecord,
    PayFrequency,
    PeriodPart,
    RunWarning,
    TaxBracket,
    YtdTotals,
)

if TYPE_CHECKING:
    from ph_payroll.config import PayrollConfig

logger = logging.getLogger(__name__)

SEMI_MONTHLY = "semi_monthly"
MONTHLY = "monthly"
ANNUAL = "annual"


@dataclass
class WithholdingResult:
    """Signed withholding (negative = deduction) plus the lump-sum breakdown."""

    tax: Decimal = ZERO
    taxable_other_benefits: Decimal = ZERO
    marginal_rate: Decimal = ZERO
    warnings: list[RunWarning] = field(default_factory=list)


class TaxCalculator:
    """Calculates withholding tax from a three-scale bracket table.

    Each bracket row carries (threshold, cap, fixed, rate) at the
    semi-monthly, monthly and annual scales:

        tax = fixed + (taxable - threshold) * rate

    for the first row whose [threshold, cap] contains the taxable amount.
    Zero or negative income, or an empty table, gives zero tax.
    """

    def __init__(self, config: PayrollConfig, brackets: list[TaxBracket] | None):
        self.config = config
        self.brackets = list(brackets or [])

    def _scale_rows(self, scale: str) -> list[BracketScale]:
        return [getattr(b, scale) for b in self.brackets]

    def _find_row(self, amount: Decimal, scale: str) -> BracketScale | None:
        for row in self._scale_rows(scale):
            if row.contains(amount):
                return row
        return None

    def _calculate_progressive_tax(self, taxable: Decimal, scale: str) -> Decimal:
        """Bracket tax at one scale, rounded half-up to cents."""
        if taxable <= 0 or not self.brackets:
            return ZERO
        row = self._find_row(taxable, scale)
        if row is None:
            return ZERO
        return r2(row.fixed + (taxable - row.threshold) * row.rate)

    def semi_monthly_tax(self, taxable: Decimal) -> Decimal:
        return self._calculate_progressive_tax(taxable, SEMI_MONTHLY)

    def monthly_tax(self, taxable: Decimal) -> Decimal:
        return self._calculate_progressive_tax(taxable, MONTHLY)

    def annual_tax(self, taxable: Decimal) -> Decimal:
        return self._calculate_progressive_tax(taxable, ANNUAL)

    def annual_marginal_rate(self, taxable: Decimal) -> Decimal:
        """Marginal rate of the annual row containing the amount."""
        if taxable <= 0:
            return ZERO
        row = self._find_row(taxable, ANNUAL)
        return row.rate if row is not None else ZERO

    def periodic_tax(
        self,
        taxable: Decimal,
        part: PeriodPart,
        prior_a_taxable: Decimal = ZERO,
        prior_a_tax: Decimal = ZERO,
    ) -> Decimal:
        """Positive tax for one period by run variant.

        Half B trues up against the monthly scale on the combined income and
        never goes below zero.
        """
        if part == PeriodPart.B:
            combined = abs(prior_a_taxable) + taxable
            return max(ZERO, r2(self.monthly_tax(combined) - abs(prior_a_tax)))
        if self._periodic_scale(part) == SEMI_MONTHLY:
            return self.semi_monthly_tax(taxable)
        return self.monthly_tax(taxable)

    def _periodic_scale(self, part: PeriodPart) -> str:
        if part == PeriodPart.A:
            return SEMI_MONTHLY
        if part == PeriodPart.SPECIAL and self.config.pay_frequency == PayFrequency.SEMI_MONTHLY:
            return SEMI_MONTHLY
        return MONTHLY

    def _bracket_gap(
        self, taxable: Decimal, part: PeriodPart, prior_a_taxable: Decimal
    ) -> RunWarning | None:
        """Warning when positive income falls outside every row of the scale used."""
        scale = self._periodic_scale(part)
        amount = taxable
        if part == PeriodPart.B:
            amount = abs(prior_a_taxable) + taxable
        if amount <= 0 or self._find_row(amount, scale) is not None:
            return None
        logger.warning("Taxable %s matches no %s bracket row", amount, scale)
        return RunWarning(
            "bir_no_bracket",
            f"Taxable {amount} matches no {scale.replace('_', '-')} bracket row; withholding set to zero",
        )

    def taxable_other_benefits(self, run_amount: Decimal, ytd_amount: Decimal) -> Decimal:
        """Part of this run's 13th month and other benefits above the annual ceiling."""
        remaining = max(ZERO, self.config.other_benefits_ceiling - abs(ytd_amount))
        excess = max(ZERO, abs(run_amount) - remaining)
        return excess if run_amount >= 0 else -excess

    def estimate_annual_projected_taxable(
        self, period_taxable: Decimal, ytd: YtdTotals, anchor: date
    ) -> Decimal:
        """Project annual regular taxable income.

        With completed cutoffs this year, averages them with the current one;
        otherwise extrapolates the current period over the rest of the year.
        """
        per_year = self.config.cutoffs_per_year
        if ytd.completed_cutoffs > 0:
            average = (ytd.taxable_income + period_taxable) / (ytd.completed_cutoffs + 1)
            return r2(average * per_year)
        remaining = (12 - anchor.month + 1) * self.config.cutoffs_per_month
        return r2(ytd.taxable_income + period_taxable * remaining)

    def compute_withholding(
        self,
        employee: EmployeeRecord,
        taxable: Decimal,
        part: PeriodPart,
        anchor: date,
        other_benefits: Decimal = ZERO,
        ytd: YtdTotals | None = None,
        prior_a_taxable: Decimal = ZERO,
        prior_a_tax: Decimal = ZERO,
    ) -> WithholdingResult:
        """Withholding for one employee and period.

        Args:
            employee: Employee master record (consultant and MWE flags)
            taxable: Period taxable income, including any taxable lump-sum benefits
            part: Run variant
            anchor: Date the run is labelled by
            other_benefits: This run's 13th month and other benefits
            ytd: Year-to-date totals before this run
            prior_a_taxable: Taxable income recorded in Half A (Half B only)
            prior_a_tax: Tax withheld in Half A (Half B only)
        """
        ytd = ytd or YtdTotals()
        result = WithholdingResult()

        if employee.is_mwe:
            return result

        if employee.is_consultant:
            result.tax = ZERO - r2(max(ZERO, taxable * employee.consultant_tax_rate))
            return result

        if not self.brackets:
            if taxable > 0:
                result.warnings.append(
                    RunWarning("bir_table_empty", "BIR table has no rows; withholding set to zero")
                )
            return result

        taxable_ob = ZERO
        if other_benefits:
            taxable_ob = self.taxable_other_benefits(other_benefits, ytd.other_benefits)

        regular = taxable
        lump_sum_tax = ZERO
        if taxable_ob:
            projected = self.estimate_annual_projected_taxable(taxable - taxable_ob, ytd, anchor) + max(ZERO, taxable_ob)
            rate = self.annual_marginal_rate(projected)
            result.taxable_other_benefits = taxable_ob
            result.marginal_rate = rate
            if rate > 0:
                regular = taxable - taxable_ob
                lump_sum_tax = abs(taxable_ob) * rate
                logger.debug(
                    "Employee %s: lump-sum excess %s taxed at marginal rate %s",
                    employee.employee_code, taxable_ob, rate,
                )

        gap = self._bracket_gap(regular, part, prior_a_taxable)
        if gap is not None:
            result.warnings.append(gap)
        periodic = self.periodic_tax(regular, part, prior_a_taxable, prior_a_tax)
        result.tax = ZERO - r2(periodic + lump_sum_tax)
        return result
