"""Year-to-date rollup of posted history rows by tax bucket."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum

from ph_payroll.calculators import helpers as h
from ph_payroll.calculators.component_map import ComponentClassifier
from ph_payroll.calculators.types import ZERO, ComponentCategory, HistoryRow, PeriodPart


class Bucket(str, Enum):
    """Annualization bucket for one history column."""

    BASIC = "BASIC"
    TAXABLE = "TAXABLE"
    DEMINIMIS = "DEMINIMIS"
    NONTAX_OTHER = "NONTAX_OTHER"
    OTHER13 = "OTHER13"
    SKIP = "SKIP"


_CATEGORY_BUCKETS = {
    ComponentCategory.BASIC_PAY_RELATED: Bucket.BASIC,
    ComponentCategory.TAXABLE_EARNING: Bucket.TAXABLE,
    ComponentCategory.NON_TAXABLE_DE_MINIMIS: Bucket.DEMINIMIS,
    ComponentCategory.NON_TAXABLE_EARNING: Bucket.NONTAX_OTHER,
    ComponentCategory.NON_TAXABLE_OTHER: Bucket.NONTAX_OTHER,
    ComponentCategory.OTHER_BENEFITS: Bucket.OTHER13,
    ComponentCategory.DEDUCTION: Bucket.SKIP,
    ComponentCategory.ADDITION: Bucket.SKIP,
}


def bucket_for(name: str, classifier: ComponentClassifier) -> Bucket:
    """Bucket for an earning column; system, meta and employer columns are skipped."""
    if (
        h.is_history_meta_column(name)
        or h.is_derived_total_column(name)
        or h.is_employer_contribution_column(name)
        or h.canonical_system_name(name) is not None
    ):
        return Bucket.SKIP
    category = classifier.category_of(name)
    if category is None:
        return Bucket.SKIP if h.looks_like_deduction(name) else Bucket.TAXABLE
    return _CATEGORY_BUCKETS[category]


@dataclass
class YtdRollup:
    """Cumulative figures for one employee and tax year.

    EE contributions are positive amounts deducted; withholding is the
    positive amount withheld (history stores it negative).
    """

    basic: Decimal = ZERO
    overtime: Decimal = ZERO
    taxable: Decimal = ZERO
    deminimis: Decimal = ZERO
    nontax_other: Decimal = ZERO
    other_benefits: Decimal = ZERO
    sss_ee: Decimal = ZERO
    ph_ee: Decimal = ZERO
    pi_ee: Decimal = ZERO
    withholding: Decimal = ZERO
    part_counts: dict[str, int] = field(default_factory=dict)
    months: set[tuple[int, int]] = field(default_factory=set)
    cutoffs_by_month: dict[tuple[int, int], int] = field(default_factory=dict)

    @property
    def ee_contributions(self) -> Decimal:
        return self.sss_ee + self.ph_ee + self.pi_ee

    @property
    def months_seen(self) -> int:
        return len(self.months)

    @property
    def regular_cutoffs(self) -> int:
        return sum(self.part_counts.get(p.value, 0) for p in (PeriodPart.A, PeriodPart.B, PeriodPart.MONTHLY))

    def add_columns(self, columns: dict[str, Decimal], classifier: ComponentClassifier) -> None:
        """Fold one row's numeric columns into the totals."""
        normalized = {h.norm_header(k): Decimal(v) for k, v in columns.items()}

        mc = normalized.get(h.norm_header(h.SSS_EE_MC), ZERO)
        mpf = normalized.get(h.norm_header(h.SSS_EE_MPF), ZERO)
        self.sss_ee += (mc + mpf) if (mc or mpf) else normalized.get("SSS EE", ZERO)
        self.ph_ee += normalized.get(h.norm_header(h.PHILHEALTH_EE), ZERO)
        self.pi_ee += normalized.get(h.norm_header(h.PAGIBIG_EE), ZERO)
        self.withholding -= normalized.get(h.norm_header(h.WITHHOLDING_TAX), ZERO)

        for name, value in normalized.items():
            bucket = bucket_for(name, classifier)
            if bucket == Bucket.BASIC:
                if h.is_overtime_header(name):
                    self.overtime += value
                else:
                    self.basic += value
            elif bucket == Bucket.TAXABLE:
                self.taxable += value
            elif bucket == Bucket.DEMINIMIS:
                self.deminimis += value
            elif bucket == Bucket.NONTAX_OTHER:
                self.nontax_other += value
            elif bucket == Bucket.OTHER13:
                self.other_benefits += value

    def add_row(self, row: HistoryRow, classifier: ComponentClassifier) -> None:
        self.add_columns(row.columns, classifier)
        self.part_counts[row.part] = self.part_counts.get(row.part, 0) + 1
        key = (row.month.year, row.month.month)
        self.months.add(key)
        if row.part in (PeriodPart.A.value, PeriodPart.B.value, PeriodPart.MONTHLY.value):
            self.cutoffs_by_month[key] = self.cutoffs_by_month.get(key, 0) + 1


def rollup_history(
    rows: list[HistoryRow],
    classifier: ComponentClassifier,
    year: int | None = None,
    through: date | None = None,
) -> YtdRollup:
    """Roll up history rows, optionally limited to one year and up to a month."""
    rollup = YtdRollup()
    for row in rows:
        if year is not None and row.month.year != year:
            continue
        if through is not None and (row.month.year, row.month.month) > (through.year, through.month):
            continue
        rollup.add_row(row, classifier)
    return rollup
