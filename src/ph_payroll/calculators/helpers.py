"""Rounding, header normalization, period labels and name predicates."""

from __future__ import annotations

import re
from datetime import date
from decimal import ROUND_HALF_UP, Decimal

from ph_payroll.calculators.types import ComponentCategory, ComponentMode, PeriodPart

CENTS = Decimal("0.01")
ZERO = Decimal("0")

# System line items, keyed by their normalized (upper-case) header
SSS_EE_MC = "SSS EE MC"
SSS_EE_MPF = "SSS EE MPF"
PHILHEALTH_EE = "PhilHealth EE"
PAGIBIG_EE = "Pag-IBIG EE"
SSS_ER_MC = "SSS ER MC"
SSS_ER_MPF = "SSS ER MPF"
SSS_EC = "SSS EC"
PHILHEALTH_ER = "PhilHealth ER"
PAGIBIG_ER = "Pag-IBIG ER"
WITHHOLDING_TAX = "Withholding Tax"
GROSS_PAY = "Gross Pay"
TAXABLE_INCOME = "Taxable Income"
NET_PAY = "Net Pay"
BASIC_PAY = "BASIC PAY"

STATUTORY_NAMES = (
    SSS_EE_MC,
    SSS_EE_MPF,
    PHILHEALTH_EE,
    PAGIBIG_EE,
    SSS_ER_MC,
    SSS_ER_MPF,
    SSS_EC,
    PHILHEALTH_ER,
    PAGIBIG_ER,
    WITHHOLDING_TAX,
)
CONTRIBUTION_NAMES = STATUTORY_NAMES[:-1]
SYSTEM_NAMES = STATUTORY_NAMES + (GROSS_PAY, TAXABLE_INCOME, NET_PAY)

_SYSTEM_ALIASES = {
    "SSS EE": SSS_EE_MC,
    "SSS EE MC": SSS_EE_MC,
    "SSS EE MPF": SSS_EE_MPF,
    "SSS ER": SSS_ER_MC,
    "SSS ER MC": SSS_ER_MC,
    "SSS ER MPF": SSS_ER_MPF,
    "SSS EC": SSS_EC,
    "PHILHEALTH EE": PHILHEALTH_EE,
    "PHIC EE": PHILHEALTH_EE,
    "PHILHEALTH ER": PHILHEALTH_ER,
    "PHIC ER": PHILHEALTH_ER,
    "PAG-IBIG EE": PAGIBIG_EE,
    "PAGIBIG EE": PAGIBIG_EE,
    "HDMF EE": PAGIBIG_EE,
    "PAG-IBIG ER": PAGIBIG_ER,
    "PAGIBIG ER": PAGIBIG_ER,
    "HDMF ER": PAGIBIG_ER,
    "WITHHOLDING TAX": WITHHOLDING_TAX,
    "WTAX": WITHHOLDING_TAX,
    "W/TAX": WITHHOLDING_TAX,
    "GROSS PAY": GROSS_PAY,
    "TAXABLE INCOME": TAXABLE_INCOME,
    "NET PAY": NET_PAY,
}

HISTORY_META_COLUMNS = frozenset({
    "EMPLOYEE ID",
    "EMPLOYEE NAME",
    "TRACKING CATEGORY",
    "PAYROLL GROUP",
    "PERIOD",
    "FROM",
    "TO",
    "CREDITING DATE",
    "PAYROLL MONTH",
})
DERIVED_TOTAL_COLUMNS = frozenset({"GROSS PAY", "NET PAY", "TAXABLE INCOME"})

_UNWORKED_TIME_RE = re.compile(r"ABSENCE|LATES?|TARDIN", re.IGNORECASE)
_SALARY_ADJUSTMENT_RE = re.compile(r"SALARY\s*ADJ", re.IGNORECASE)
_DEDUCTION_NAME_RE = re.compile(
    r"LOAN|DEDUCTION|DEDUK|CALAMITY|CHARGE|ADVANCE|HMO|RECOVERY", re.IGNORECASE
)
_OVERTIME_RE = re.compile(
    r"OT\s*PAY|OVERTIME|REG(?:ULAR)?\s*OT|SPECIAL\s*OT|REST\s*DAY\s*OT|NIGHT\s*OT",
    re.IGNORECASE,
)
_EMPLOYER_COLUMN_RE = re.compile(
    r"^SSS\s*ER|^PHILHEALTH\s*ER|^PAG-?IBIG\s*ER|^HDMF\s*ER|^SSS\s*EC$", re.IGNORECASE
)
_RUN_CODE_RE = re.compile(r"[^A-Z0-9_-]")

MONTH_NAMES = (
    "January", "February", "March", "April", "May", "June",
    "July", "August", "September", "October", "November", "December",
)


def r2(value: Decimal | int | str) -> Decimal:
    """Round to cents, half-up."""
    return Decimal(value).quantize(CENTS, rounding=ROUND_HALF_UP)


def norm_header(name: str) -> str:
    """Collapse whitespace, trim and upper-case a column name."""
    return " ".join(str(name or "").split()).upper()


def canonical_system_name(name: str) -> str | None:
    """Map a header to its canonical system line item, or None."""
    return _SYSTEM_ALIASES.get(norm_header(name))


def is_unworked_time(name: str) -> bool:
    return bool(_UNWORKED_TIME_RE.search(name or ""))


def is_salary_adjustment(name: str) -> bool:
    return bool(_SALARY_ADJUSTMENT_RE.search(name or ""))


def looks_like_deduction(name: str) -> bool:
    return bool(_DEDUCTION_NAME_RE.search(name or ""))


def is_overtime_header(name: str) -> bool:
    return bool(_OVERTIME_RE.search(name or ""))


def is_employer_contribution_column(name: str) -> bool:
    return bool(_EMPLOYER_COLUMN_RE.search(norm_header(name)))


def is_history_meta_column(name: str) -> bool:
    header = norm_header(name)
    return header in HISTORY_META_COLUMNS or header.startswith("TRACKING:")


def is_derived_total_column(name: str) -> bool:
    return norm_header(name) in DERIVED_TOTAL_COLUMNS


def is_sss_base_component(name: str, category: ComponentCategory | None) -> bool:
    """Components that feed the social-insurance compensation base."""
    return category == ComponentCategory.BASIC_PAY_RELATED or is_salary_adjustment(name)


def is_philhealth_base_component(name: str, category: ComponentCategory | None) -> bool:
    """Same as the SSS base, minus unworked-time deductions."""
    return is_sss_base_component(name, category) and not is_unworked_time(name)


def period_portion(monthly: Decimal, mode: ComponentMode, part: PeriodPart) -> Decimal:
    """Portion of a monthly amount that belongs to this run.

    Split mode gives Half B the remainder of Half A's rounded half so the two
    halves always sum to the monthly amount.
    """
    if part in (PeriodPart.MONTHLY, PeriodPart.SPECIAL) or mode == ComponentMode.FULL:
        return r2(monthly)
    half = r2(monthly / 2)
    if part == PeriodPart.A:
        if mode == ComponentMode.SPLIT:
            return half
        return r2(monthly) if mode == ComponentMode.FIRST else ZERO
    if mode == ComponentMode.SPLIT:
        return r2(monthly) - half
    return r2(monthly) if mode == ComponentMode.SECOND else ZERO


def signed_for_period(portion: Decimal, prior_taken: Decimal) -> Decimal:
    return r2(portion - prior_taken)


def sanitize_run_code(code: str) -> str:
    return _RUN_CODE_RE.sub("", (code or "").upper())


def anchor_date(date_from: date, date_to: date, part: PeriodPart) -> date:
    """Date whose month labels the run.

    A Half B range crossing a month boundary belongs to the start month.
    """
    if part == PeriodPart.B and (date_from.year, date_from.month) != (date_to.year, date_to.month):
        return date_from
    return date_to


def period_label(date_from: date, date_to: date, part: PeriodPart, run_code: str | None = None) -> str:
    anchor = anchor_date(date_from, date_to, part)
    prefix = f"{anchor.year:04d}-{anchor.month:02d}"
    if part == PeriodPart.SPECIAL:
        return f"{prefix}-S-{sanitize_run_code(run_code or '')}"
    return f"{prefix}-{part.value}"


def final_pay_label(separation: date) -> str:
    return f"{separation.year:04d}-{separation.month:02d}-FP"


def payroll_month_label(day: date) -> str:
    return f"{MONTH_NAMES[day.month - 1]} {day.year}"
