"""Output row assembly: totals, column ordering and row hashing."""

from __future__ import annotations

import hashlib
import json
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from ph_payroll.calculators.helpers import is_salary_adjustment, is_unworked_time
from ph_payroll.calculators.types import ComponentCategory, OutputRow

PRE_COLUMNS = (
    "EMPLOYEE ID",
    "EMPLOYEE NAME",
    "PAYROLL GROUP",
    "PERIOD",
    "FROM",
    "TO",
    "CREDITING DATE",
    "PAYROLL MONTH",
)
BASE_EARNING_COLUMNS = (
    "BASIC PAY",
    "NON-TAXABLE ALLOWANCE",
    "DEMINIMIS ALLOWANCE",
    "MONTHLY TAXABLE ALLOWANCE",
    "ALLOWANCE",
    "REGULAR OT PAY",
    "NIGHT DIFFERENTIAL",
    "HOLIDAY PAY",
    "REST DAY PAY",
    "ABSENCES",
    "LATES",
)
CORE_COLUMNS = (
    "Gross Pay",
    "SSS EE MC",
    "SSS EE MPF",
    "SSS EE",
    "PhilHealth EE",
    "Pag-IBIG EE",
    "Taxable Income",
    "Withholding Tax",
)
FIXED_DEDUCTION_COLUMNS = (
    "SSS LOAN",
    "SSS CALAMITY LOAN",
    "HDMF LOAN",
    "HDMF CALAMITY LOAN",
    "HMO DEDUCTION",
    "OTHER DEDUCTIONS",
)
POST_COLUMNS = (
    "Net Pay",
    "SSS ER MC",
    "SSS ER MPF",
    "SSS ER",
    "SSS EC",
    "PhilHealth ER",
    "Pag-IBIG ER",
)


class RowBuilder:
    """Helpers for building output rows with consistent sign conventions.

    Sign conventions:
    - Earnings: positive (unworked time and salary corrections may be negative)
    - EE contributions: positive amounts deducted from net (negative = refund)
    - Withholding tax: negative
    - Deductions: negative
    - Additions: positive, net only
    - ER contributions: positive, excluded from net
    """

    @staticmethod
    def round_to_cents(amount: Decimal) -> Decimal:
        """Round amount to 2 decimal places, half-up."""
        return amount.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)

    @staticmethod
    def calculate_gross(row: OutputRow) -> Decimal:
        """Gross pay from earning columns.

        Taxable and non-taxable earnings count with their sign. Other earning
        columns count only when positive, except unworked time and salary
        adjustments which count even when negative.
        """
        gross = Decimal("0")
        for name, value in row.components.items():
            category = row.categories.get(name)
            if category is not None and not category.is_earning:
                continue
            if category == ComponentCategory.TAXABLE_EARNING or (category is not None and category.is_non_taxable):
                gross += value
            elif value > 0 or is_unworked_time(name) or is_salary_adjustment(name):
                gross += value
        return RowBuilder.round_to_cents(gross)

    @staticmethod
    def total_deductions(row: OutputRow) -> Decimal:
        """Manual deductions as a positive amount."""
        total = Decimal("0")
        for name, value in row.components.items():
            if row.categories.get(name) == ComponentCategory.DEDUCTION:
                total -= value
        return RowBuilder.round_to_cents(total)

    @staticmethod
    def total_additions(row: OutputRow) -> Decimal:
        total = Decimal("0")
        for name, value in row.components.items():
            if row.categories.get(name) == ComponentCategory.ADDITION:
                total += value
        return RowBuilder.round_to_cents(total)

    @staticmethod
    def calculate_net(row: OutputRow) -> Decimal:
        """Net = Gross - EE contributions - withholding - deductions + additions.

        Withholding is stored negative, so it is added.
        """
        net = (
            row.gross_pay
            - row.statutory.total_ee
            + row.withholding_tax
            - RowBuilder.total_deductions(row)
            + RowBuilder.total_additions(row)
        )
        return RowBuilder.round_to_cents(net)

    @staticmethod
    def finalize(row: OutputRow) -> OutputRow:
        """Compute gross, net and the row hash in place."""
        row.gross_pay = RowBuilder.calculate_gross(row)
        row.net_pay = RowBuilder.calculate_net(row)
        row.row_hash = RowBuilder.compute_row_hash(row)
        return row

    @staticmethod
    def compute_row_hash(row: OutputRow) -> str:
        """SHA-256 of the row's canonical JSON.

        Two runs over identical inputs and ledger give identical hashes.
        """
        canonical = _canonical(row.to_columns())
        payload = json.dumps(canonical, sort_keys=True, separators=(",", ":"))
        return hashlib.sha256(payload.encode()).hexdigest()

    @staticmethod
    def validate_signs(row: OutputRow) -> list[str]:
        """Return sign-convention violations (empty if all valid)."""
        errors: list[str] = []
        if row.withholding_tax > 0:
            errors.append(f"Withholding Tax is positive ({row.withholding_tax}), expected <= 0")
        for name, value in row.components.items():
            category = row.categories.get(name)
            if category == ComponentCategory.DEDUCTION and value > 0:
                errors.append(f"Deduction {name} is positive ({value}), expected <= 0")
            elif category == ComponentCategory.ADDITION and value < 0:
                errors.append(f"Addition {name} is negative ({value}), expected >= 0")
        s = row.statutory
        for label, value in (
            ("SSS ER MC", s.sss_er_mc),
            ("SSS ER MPF", s.sss_er_mpf),
            ("SSS EC", s.sss_ec),
            ("PhilHealth ER", s.ph_er),
            ("Pag-IBIG ER", s.pi_er),
        ):
            if value < 0:
                errors.append(f"{label} is negative ({value}), expected >= 0")
        return errors

    @staticmethod
    def build_headers(rows: list[OutputRow]) -> list[str]:
        """Ordered output columns for a run.

        Pre columns, base earnings, other earnings, core statutory and tax
        columns, additions, fixed deductions, other deductions, post columns.
        """
        tracking: list[str] = []
        earnings: list[str] = []
        additions: list[str] = []
        deductions: list[str] = []
        for row in rows:
            for key in row.meta:
                if key.startswith("Tracking:") and key not in tracking:
                    tracking.append(key)
            for name in row.components:
                category = row.categories.get(name)
                if category == ComponentCategory.DEDUCTION:
                    bucket = deductions
                elif category == ComponentCategory.ADDITION:
                    bucket = additions
                else:
                    bucket = earnings
                if name not in bucket:
                    bucket.append(name)

        headers = list(PRE_COLUMNS) + sorted(tracking)
        headers += list(BASE_EARNING_COLUMNS)
        headers += [n for n in earnings if n not in BASE_EARNING_COLUMNS]
        headers += list(CORE_COLUMNS)
        headers += additions
        headers += list(FIXED_DEDUCTION_COLUMNS)
        headers += [n for n in deductions if n not in FIXED_DEDUCTION_COLUMNS]
        headers += list(POST_COLUMNS)
        return headers


def _canonical(value: Any) -> Any:
    if isinstance(value, Decimal):
        return str(RowBuilder.round_to_cents(value))
    if isinstance(value, dict):
        return {str(k): _canonical(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_canonical(v) for v in value]
    return value
