"""Type definitions for the computation pipeline."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any

ZERO = Decimal("0")

_CONSULTANT_RE = re.compile(r"freelance|contractor|consultant", re.IGNORECASE)
_ACTIVE_STATUSES = {"ACTIVE", ""}


class InvalidRunRequestError(Exception):
    """Raised when a run request is structurally invalid."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Invalid run request: {reason}")


class UnknownEmployeeError(Exception):
    """Raised when a computed row cannot be mapped to a known employee."""

    def __init__(self, employee_code: str):
        self.employee_code = employee_code
        super().__init__(f"Employee '{employee_code}' is not a known employee")


class ComponentCategory(str, Enum):
    """Semantic buckets for named pay components."""

    BASIC_PAY_RELATED = "Basic Pay Related"
    TAXABLE_EARNING = "Taxable Earning"
    NON_TAXABLE_EARNING = "Non-Taxable Earning"
    NON_TAXABLE_DE_MINIMIS = "Non-Taxable Earning - De Minimis"
    NON_TAXABLE_OTHER = "Non-Taxable Earning - Other"
    OTHER_BENEFITS = "13th Month Pay and Other Benefits"
    DEDUCTION = "Deduction"
    ADDITION = "Addition"

    @property
    def is_non_taxable(self) -> bool:
        return self in (
            ComponentCategory.NON_TAXABLE_EARNING,
            ComponentCategory.NON_TAXABLE_DE_MINIMIS,
            ComponentCategory.NON_TAXABLE_OTHER,
        )

    @property
    def is_earning(self) -> bool:
        return self not in (ComponentCategory.DEDUCTION, ComponentCategory.ADDITION)

    @classmethod
    def parse(cls, value: str | ComponentCategory | None) -> ComponentCategory | None:
        """Parse a category label case-insensitively; unknown labels give None."""
        if value is None or isinstance(value, ComponentCategory):
            return value
        wanted = " ".join(str(value).split()).lower()
        for member in cls:
            if member.value.lower() == wanted:
                return member
        return None


class PayBasis(str, Enum):
    """How an employee's base pay is quoted."""

    DAILY = "Daily"
    MONTHLY = "Monthly"


class PeriodPart(str, Enum):
    """Run variants: the two semi-monthly halves, full month, and ad-hoc runs."""

    A = "A"
    B = "B"
    MONTHLY = "M"
    SPECIAL = "S"


class ComponentMode(str, Enum):
    """How a monthly component is apportioned across the two halves."""

    SPLIT = "split"
    FIRST = "first"
    SECOND = "second"
    FULL = "full"


class PayFrequency(str, Enum):
    """Tenant pay frequency."""

    SEMI_MONTHLY = "Semi-Monthly"
    MONTHLY = "Monthly"


@dataclass
class EmployeeRecord:
    """Master data for one worker, read-only to the engine."""

    employee_code: str
    name: str
    status: str = "Active"
    contract_type: str = "Employee"
    pay_basis: PayBasis = PayBasis.MONTHLY
    base_pay: Decimal = ZERO
    computed_basic_pay: Decimal | None = None
    working_days_per_year: int | None = None
    is_pwd: bool = False
    is_mwe: bool = False
    applied_for_retirement: bool = False
    nationality: str = "Filipino"
    consultant_tax_rate: Decimal = ZERO
    hire_date: date | None = None
    separation_date: date | None = None
    payroll_group: str | None = None
    tracking: dict[str, str] = field(default_factory=dict)
    # Tenant-specific recurring components (monthly amounts)
    dynamic_fields: dict[str, Decimal] = field(default_factory=dict)

    @property
    def is_consultant(self) -> bool:
        return bool(_CONSULTANT_RE.search(self.contract_type or ""))

    @property
    def is_active(self) -> bool:
        return (self.status or "").strip().upper() in _ACTIVE_STATUSES

    @property
    def is_filipino(self) -> bool:
        return "FILIPINO" in (self.nationality or "").upper()

    @property
    def has_identity(self) -> bool:
        return bool((self.employee_code or "").strip()) and bool((self.name or "").strip())

    def employed_during(self, start: date, end: date) -> bool:
        """True when the hire/separation window overlaps [start, end]."""
        if self.hire_date is not None and self.hire_date > end:
            return False
        if self.separation_date is not None and self.separation_date < start:
            return False
        return True


@dataclass
class Adjustment:
    """A named amount an employee receives or owes for one period."""

    employee_code: str
    component: str
    amount: Decimal
    category: ComponentCategory | None = None


@dataclass(frozen=True)
class BracketScale:
    """One bracket row at one time scale: fixed + rate * (amount - threshold)."""

    threshold: Decimal
    cap: Decimal | None
    fixed: Decimal
    rate: Decimal

    def contains(self, amount: Decimal) -> bool:
        if amount < self.threshold:
            return False
        return self.cap is None or amount <= self.cap


@dataclass(frozen=True)
class TaxBracket:
    """A progressive income-tax row duplicated across three scales."""

    semi_monthly: BracketScale
    monthly: BracketScale
    annual: BracketScale


@dataclass(frozen=True)
class SssBracket:
    """Compensation range and the contributions it maps to."""

    comp_min: Decimal
    comp_max: Decimal | None
    ee_mc: Decimal
    ee_mpf: Decimal
    er_mc: Decimal
    er_mpf: Decimal
    ec: Decimal

    def contains(self, base: Decimal) -> bool:
        if base < self.comp_min:
            return False
        return self.comp_max is None or base <= self.comp_max


@dataclass
class StatutoryTables:
    """A resolved statutory version: bracket tables plus their validity window.

    A table set to None is absent from the version; an empty list is present
    but has no rows.
    """

    version_id: str
    status: str = "PUBLISHED"
    effective_from: date | None = None
    effective_to: date | None = None
    tax_brackets: list[TaxBracket] | None = field(default_factory=list)
    sss_brackets: list[SssBracket] | None = field(default_factory=list)

    @property
    def is_published(self) -> bool:
        return (self.status or "").upper() == "PUBLISHED"

    def covers(self, day: date) -> bool:
        if self.effective_from is not None and day < self.effective_from:
            return False
        return self.effective_to is None or day <= self.effective_to


@dataclass
class PriorTakenLedger:
    """Amounts already disbursed this month, keyed by normalized component name.

    month_to_date: employee_code -> component -> amount
    by_part: part ("A", "B", "M") -> employee_code -> component -> amount
    """

    month_to_date: dict[str, dict[str, Decimal]] = field(default_factory=dict)
    by_part: dict[str, dict[str, dict[str, Decimal]]] = field(default_factory=dict)

    def month_total(self, employee_code: str, component: str) -> Decimal:
        return self.month_to_date.get(employee_code, {}).get(component, ZERO)

    def part_total(self, employee_code: str, part: str, component: str) -> Decimal:
        return self.by_part.get(part, {}).get(employee_code, {}).get(component, ZERO)

    def part_components(self, employee_code: str, part: str) -> dict[str, Decimal]:
        return self.by_part.get(part, {}).get(employee_code, {})

    def has_part(self, employee_code: str, part: str) -> bool:
        return bool(self.part_components(employee_code, part))


@dataclass
class YtdTotals:
    """Year-to-date figures used by the lump-sum benefit tax path."""

    taxable_income: Decimal = ZERO
    other_benefits: Decimal = ZERO
    completed_cutoffs: int = 0


@dataclass
class RunRequest:
    """Parameters of one payroll run."""

    date_from: date
    date_to: date
    part: PeriodPart
    run_code: str | None = None
    payroll_groups: list[str] = field(default_factory=lambda: ["ALL"])
    crediting_date: date | None = None
    compute_tax: bool = True
    compute_contributions: bool = True
    # Days worked this period for daily-paid employees
    attendance_days: dict[str, Decimal] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.date_to < self.date_from:
            raise InvalidRunRequestError("date_to is before date_from")
        if not isinstance(self.part, PeriodPart):
            try:
                self.part = PeriodPart(str(self.part).upper())
            except ValueError:
                raise InvalidRunRequestError(f"unknown period part '{self.part}'")
        if self.part == PeriodPart.SPECIAL and not (self.run_code or "").strip():
            raise InvalidRunRequestError("special runs require a run_code")

    def includes_group(self, group: str | None) -> bool:
        wanted = {g.strip().upper() for g in self.payroll_groups}
        if not wanted or "ALL" in wanted:
            return True
        return (group or "").strip().upper() in wanted


@dataclass(frozen=True)
class RunWarning:
    """A degraded-but-continue condition surfaced for auditability."""

    code: str
    message: str
    employee_code: str | None = None


@dataclass
class StatutoryResult:
    """Contributions for one period; EE amounts are positive deductions."""

    sss_ee_mc: Decimal = ZERO
    sss_ee_mpf: Decimal = ZERO
    sss_er_mc: Decimal = ZERO
    sss_er_mpf: Decimal = ZERO
    sss_ec: Decimal = ZERO
    ph_ee: Decimal = ZERO
    ph_er: Decimal = ZERO
    pi_ee: Decimal = ZERO
    pi_er: Decimal = ZERO
    warnings: list[RunWarning] = field(default_factory=list)

    @property
    def sss_ee(self) -> Decimal:
        return self.sss_ee_mc + self.sss_ee_mpf

    @property
    def sss_er(self) -> Decimal:
        return self.sss_er_mc + self.sss_er_mpf

    @property
    def total_ee(self) -> Decimal:
        return self.sss_ee + self.ph_ee + self.pi_ee


@dataclass
class OutputRow:
    """One employee's computed result for a run.

    Canonical columns are named fields; tenant-specific earning, deduction and
    addition columns live in the ordered ``components`` mapping.
    """

    employee_code: str
    employee_name: str
    period_label: str
    payroll_month: str
    date_from: date
    date_to: date
    gross_pay: Decimal = ZERO
    taxable_income: Decimal = ZERO
    withholding_tax: Decimal = ZERO
    net_pay: Decimal = ZERO
    statutory: StatutoryResult = field(default_factory=StatutoryResult)
    components: dict[str, Decimal] = field(default_factory=dict)
    categories: dict[str, ComponentCategory] = field(default_factory=dict)
    meta: dict[str, str] = field(default_factory=dict)
    row_hash: str = ""

    def canonical_columns(self) -> dict[str, Decimal]:
        s = self.statutory
        return {
            "Gross Pay": self.gross_pay,
            "SSS EE MC": s.sss_ee_mc,
            "SSS EE MPF": s.sss_ee_mpf,
            "SSS EE": s.sss_ee,
            "PhilHealth EE": s.ph_ee,
            "Pag-IBIG EE": s.pi_ee,
            "Taxable Income": self.taxable_income,
            "Withholding Tax": self.withholding_tax,
            "Net Pay": self.net_pay,
            "SSS ER MC": s.sss_er_mc,
            "SSS ER MPF": s.sss_er_mpf,
            "SSS ER": s.sss_er,
            "SSS EC": s.sss_ec,
            "PhilHealth ER": s.ph_er,
            "Pag-IBIG ER": s.pi_er,
        }

    def to_columns(self) -> dict[str, Any]:
        """Flatten into the history-row column mapping."""
        columns: dict[str, Any] = {
            "EMPLOYEE ID": self.employee_code,
            "EMPLOYEE NAME": self.employee_name,
            "PERIOD": self.period_label,
            "FROM": self.date_from.isoformat(),
            "TO": self.date_to.isoformat(),
            "PAYROLL MONTH": self.payroll_month,
        }
        columns.update(self.meta)
        columns.update(self.components)
        columns.update(self.canonical_columns())
        return columns


@dataclass
class RunResult:
    """Result of one run across all eligible employees."""

    period_label: str
    payroll_month: str
    rows: list[OutputRow] = field(default_factory=list)
    headers: list[str] = field(default_factory=list)
    total_gross: Decimal = ZERO
    total_net: Decimal = ZERO
    warnings: list[RunWarning] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)

    @property
    def total_employees(self) -> int:
        return len(self.rows)


@dataclass
class EmployeeContext:
    """Per-employee working state during one run."""

    employee: EmployeeRecord
    request: RunRequest
    period_label: str
    payroll_month: str
    warnings: list[RunWarning] = field(default_factory=list)

    @property
    def employee_code(self) -> str:
        return self.employee.employee_code

    def warn(self, code: str, message: str) -> None:
        self.warnings.append(RunWarning(code=code, message=message, employee_code=self.employee_code))


@dataclass
class HistoryRow:
    """A previously posted output row, as consumed by ledgers and annualization."""

    employee_code: str
    period_label: str
    part: str
    month: date
    columns: dict[str, Decimal] = field(default_factory=dict)
    date_to: date | None = None
