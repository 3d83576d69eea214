"""Mid-year pre-annualization: projected annual tax spread over remaining cutoffs."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING

from ph_payroll.annualization.final import PreviousEmployerBreakdown
from ph_payroll.annualization.rollup import Bucket, YtdRollup, bucket_for, rollup_history
from ph_payroll.calculators.component_map import ComponentClassifier
from ph_payroll.calculators.helpers import r2
from ph_payroll.calculators.tax_calculator import TaxCalculator
from ph_payroll.calculators.types import ZERO, EmployeeRecord, HistoryRow, PeriodPart, TaxBracket

if TYPE_CHECKING:
    from ph_payroll.config import PayrollConfig

logger = logging.getLogger(__name__)

_RESIGNED_RE = re.compile(r"RESIGN|SEPARAT|TERMINAT|INACTIVE", re.IGNORECASE)
_EMPLOYEE_CONTRACT_RE = re.compile(r"^\s*EMPLOYEE\s*$", re.IGNORECASE)


@dataclass
class PreAnnualization:
    """Projected annual position for one employee as of a month."""

    employee_code: str
    year: int
    as_of: date
    resigned: bool
    cutoffs_per_month: int
    months_seen: int
    cutoffs_seen: int
    remaining_months: int
    remaining_cutoffs: int
    projected_basic: Decimal
    projected_taxable: Decimal
    projected_other_benefits: Decimal
    taxable_other_benefits: Decimal
    projected_contributions: Decimal
    annual_taxable: Decimal
    annual_tax_due: Decimal
    ytd_withheld: Decimal
    assumed_remaining_withholding: Decimal
    remaining_tax: Decimal
    tax_per_cutoff: Decimal


class PreAnnualizer:
    """Projects annual figures by linear extrapolation of per-month averages.

    Projection per bucket: ytd + (ytd * scale / months_seen) * remaining_months,
    where scale corrects semi-monthly YTD when fewer cutoffs than expected
    were seen. Resigned employees project nothing beyond YTD.
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

    @staticmethod
    def is_eligible(employee: EmployeeRecord) -> bool:
        return bool(_EMPLOYEE_CONTRACT_RE.match(employee.contract_type or ""))

    @staticmethod
    def is_resigned(employee: EmployeeRecord, as_of: date) -> bool:
        if _RESIGNED_RE.search(employee.status or ""):
            return True
        return employee.separation_date is not None and employee.separation_date <= as_of

    def _cutoffs_per_month(self, rollup: YtdRollup) -> int:
        semi = rollup.part_counts.get(PeriodPart.A.value, 0) + rollup.part_counts.get(PeriodPart.B.value, 0)
        monthly = rollup.part_counts.get(PeriodPart.MONTHLY.value, 0)
        if semi or monthly:
            return 2 if semi >= monthly else 1
        return self.config.cutoffs_per_month

    def project(
        self,
        employee: EmployeeRecord,
        rows: list[HistoryRow],
        as_of: date,
        recurring_extras: dict[str, Decimal] | None = None,
        previous: PreviousEmployerBreakdown | None = None,
    ) -> PreAnnualization | None:
        """Project one employee; returns None for non-employee contracts."""
        if not self.is_eligible(employee):
            return None
        previous = previous or PreviousEmployerBreakdown()
        own = [r for r in rows if r.employee_code == employee.employee_code]
        rollup = rollup_history(own, self.classifier, year=as_of.year, through=as_of)

        resigned = self.is_resigned(employee, as_of)
        per_month = self._cutoffs_per_month(rollup)
        months_seen = rollup.months_seen
        cutoffs_seen = rollup.regular_cutoffs
        remaining_months = 0 if resigned else 12 - as_of.month

        scale = Decimal(1)
        if per_month == 2 and cutoffs_seen:
            expected = months_seen * 2
            if cutoffs_seen < expected:
                scale = Decimal(expected) / Decimal(cutoffs_seen)

        def project_amount(ytd_amount: Decimal) -> Decimal:
            if not months_seen or not remaining_months:
                return r2(ytd_amount)
            return r2(ytd_amount + ytd_amount * scale / months_seen * remaining_months)

        basic = project_amount(rollup.basic + rollup.overtime)
        taxable = project_amount(rollup.taxable)
        other_benefits = project_amount(rollup.other_benefits)
        contributions = project_amount(rollup.ee_contributions)

        for name, amount in (recurring_extras or {}).items():
            bucket = bucket_for(name, self.classifier)
            if bucket == Bucket.OTHER13:
                other_benefits += Decimal(amount)
            elif bucket == Bucket.BASIC:
                basic += Decimal(amount)
            elif bucket == Bucket.TAXABLE:
                taxable += Decimal(amount)

        ceiling = max(ZERO, self.config.other_benefits_ceiling - previous.non_tax_13th_month)
        taxable_13th = max(ZERO, r2(other_benefits - ceiling))
        annual_taxable = max(ZERO, r2(basic + taxable + taxable_13th - contributions))
        if employee.is_mwe:
            due = ZERO
        else:
            due = self.tax.annual_tax(r2(annual_taxable + previous.taxable_compensation))
        ytd_withheld = r2(rollup.withholding + previous.taxes_withheld)

        current_month_seen = rollup.cutoffs_by_month.get((as_of.year, as_of.month), 0)
        full_months_remaining = 13 - as_of.month
        current_month_remaining = max(0, per_month - current_month_seen)
        remaining_cutoffs = 0
        if not resigned:
            remaining_cutoffs = max(1, (full_months_remaining - 1) * per_month + current_month_remaining)

        assumed = ZERO
        if remaining_months and not employee.is_mwe:
            assumed = r2(self.tax.monthly_tax(r2(annual_taxable / 12)) * remaining_months)

        remaining_tax = max(ZERO, r2(due - (ytd_withheld + assumed)))
        per_cutoff = r2(remaining_tax / remaining_cutoffs) if remaining_cutoffs else ZERO

        logger.debug(
            "Pre-annualized %s as of %s: due %s, withheld %s, remaining %s over %d cutoffs",
            employee.employee_code, as_of, due, ytd_withheld, remaining_tax, remaining_cutoffs,
        )
        return PreAnnualization(
            employee_code=employee.employee_code,
            year=as_of.year,
            as_of=as_of,
            resigned=resigned,
            cutoffs_per_month=per_month,
            months_seen=months_seen,
            cutoffs_seen=cutoffs_seen,
            remaining_months=remaining_months,
            remaining_cutoffs=remaining_cutoffs,
            projected_basic=basic,
            projected_taxable=taxable,
            projected_other_benefits=r2(other_benefits),
            taxable_other_benefits=taxable_13th,
            projected_contributions=contributions,
            annual_taxable=annual_taxable,
            annual_tax_due=due,
            ytd_withheld=ytd_withheld,
            assumed_remaining_withholding=assumed,
            remaining_tax=remaining_tax,
            tax_per_cutoff=per_cutoff,
        )

    def project_all(
        self,
        employees: list[EmployeeRecord],
        rows: list[HistoryRow],
        as_of: date,
        recurring_extras: dict[str, dict[str, Decimal]] | None = None,
    ) -> list[PreAnnualization]:
        results = []
        for employee in employees:
            extras = (recurring_extras or {}).get(employee.employee_code)
            projection = self.project(employee, rows, as_of, extras)
            if projection is not None:
                results.append(projection)
        return results
