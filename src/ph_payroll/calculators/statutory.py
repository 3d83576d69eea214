"""Statutory contribution calculation: SSS, PhilHealth and Pag-IBIG."""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import TYPE_CHECKING

from ph_payroll.calculators import helpers as h
from ph_payroll.calculators.helpers import r2
from ph_payroll.calculators.types import (
    ZERO,
    EmployeeRecord,
    PeriodPart,
    RunWarning,
    SssBracket,
    StatutoryResult,
)

if TYPE_CHECKING:
    from ph_payroll.config import PayrollConfig

logger = logging.getLogger(__name__)

_EE_FIELDS = (
    ("sss_ee_mc", h.SSS_EE_MC),
    ("sss_ee_mpf", h.SSS_EE_MPF),
    ("ph_ee", h.PHILHEALTH_EE),
    ("pi_ee", h.PAGIBIG_EE),
)
_ER_FIELDS = (
    ("sss_er_mc", h.SSS_ER_MC),
    ("sss_er_mpf", h.SSS_ER_MPF),
    ("sss_ec", h.SSS_EC),
    ("ph_er", h.PHILHEALTH_ER),
    ("pi_er", h.PAGIBIG_ER),
)
FIELD_BY_NAME = dict((name, attr) for attr, name in _EE_FIELDS + _ER_FIELDS)


class StatutoryCalculator:
    """Computes employee and employer contributions for one period.

    Calculators never raise for business edge cases: a missing or empty
    bracket table, or a base outside every bracket, degrades to zero or to
    the ceiling row and is reported as a warning.
    """

    def __init__(self, config: PayrollConfig, sss_brackets: list[SssBracket] | None):
        self.config = config
        self.sss_brackets = sorted(sss_brackets or [], key=lambda b: b.comp_min)

    def lookup_sss(self, base: Decimal) -> tuple[SssBracket | None, list[RunWarning]]:
        """Find the bracket for a monthly compensation base."""
        base = max(ZERO, Decimal(base))
        if not self.sss_brackets:
            if base > 0:
                return None, [RunWarning("sss_table_empty", "SSS table has no rows; contributions set to zero")]
            return None, []

        for bracket in self.sss_brackets:
            if bracket.contains(base):
                return bracket, []

        if base < self.sss_brackets[0].comp_min:
            if base == 0:
                return None, []
            logger.warning("SSS base %s is below the lowest bracket; contributing zero", base)
            return None, [
                RunWarning(
                    "sss_below_minimum",
                    f"Compensation {base} is below the lowest SSS bracket; no contribution taken",
                )
            ]

        # Above the top row, or in a gap between rows: nearest row below
        fallback = [b for b in self.sss_brackets if b.comp_min <= base][-1]
        logger.warning("SSS base %s matched no bracket; using row starting at %s", base, fallback.comp_min)
        return fallback, [
            RunWarning(
                "sss_ceiling_fallback",
                f"Compensation {base} matched no SSS bracket; row starting at {fallback.comp_min} applied",
            )
        ]

    def philhealth(self, base: Decimal) -> tuple[Decimal, Decimal]:
        """Premium on the clamped base, split evenly; EE takes the rounded half."""
        if base <= 0:
            return ZERO, ZERO
        clamped = min(max(Decimal(base), self.config.philhealth_min_base), self.config.philhealth_max_base)
        total = r2(clamped * self.config.philhealth_rate)
        ee = r2(total / 2)
        return ee, total - ee

    def pagibig(self, base: Decimal) -> tuple[Decimal, Decimal]:
        if base <= 0:
            return ZERO, ZERO
        capped = min(Decimal(base), self.config.pagibig_cap_base)
        return r2(capped * self.config.pagibig_ee_rate), r2(capped * self.config.pagibig_er_rate)

    def monthly_amounts(self, sss_base: Decimal, ph_base: Decimal) -> StatutoryResult:
        """Full-month contributions before any period apportionment."""
        bracket, warnings = self.lookup_sss(sss_base)
        ph_ee, ph_er = self.philhealth(ph_base)
        pi_ee, pi_er = self.pagibig(sss_base)
        result = StatutoryResult(ph_ee=ph_ee, ph_er=ph_er, pi_ee=pi_ee, pi_er=pi_er, warnings=warnings)
        if bracket is not None:
            result.sss_ee_mc = bracket.ee_mc
            result.sss_ee_mpf = bracket.ee_mpf
            result.sss_er_mc = bracket.er_mc
            result.sss_er_mpf = bracket.er_mpf
            result.sss_ec = bracket.ec
        return result

    def compute(
        self,
        sss_base: Decimal,
        ph_base: Decimal,
        part: PeriodPart,
        prior_month: dict[str, Decimal] | None = None,
        daily_basis: bool = False,
    ) -> StatutoryResult:
        """Contributions for this period.

        Args:
            sss_base: Monthly compensation base for SSS and Pag-IBIG
            ph_base: Monthly compensation base for PhilHealth
            part: Run variant
            prior_month: Month-to-date amounts already taken, by raw header
            daily_basis: True for daily-paid employees

        Half B is a true-up: EE amounts are the monthly amount minus what the
        month already took, and may be negative (a refund).
        """
        full = self.monthly_amounts(sss_base, ph_base)

        if part == PeriodPart.MONTHLY:
            return full

        if part == PeriodPart.B:
            taken = self.prior_statutory(prior_month or {}, full)
            result = StatutoryResult(warnings=full.warnings)
            for attr, name in _EE_FIELDS:
                setattr(result, attr, r2(getattr(full, attr) - taken[name]))
            for attr, name in _ER_FIELDS:
                setattr(result, attr, getattr(full, attr) if taken[name] == 0 else ZERO)
            return result

        if part == PeriodPart.A and daily_basis:
            pi_half = r2(full.pi_ee / 2)
            if full.pi_ee > 0 and pi_half * 2 < self.config.pagibig_monthly_floor:
                pi_half = r2(self.config.pagibig_monthly_floor / 2)
            full.pi_ee = pi_half
            full.pi_er = ZERO
            return full

        # Half A on a standard basis, and special runs: employees pay half, employer share deferred
        result = StatutoryResult(warnings=full.warnings)
        for attr, _ in _EE_FIELDS:
            setattr(result, attr, r2(getattr(full, attr) / 2))
        return result

    @staticmethod
    def prior_statutory(prior: dict[str, Decimal], full: StatutoryResult) -> dict[str, Decimal]:
        """Absolute month-to-date statutory amounts by canonical name.

        Rows that only carry the legacy "SSS EE"/"SSS ER" totals are allocated
        to MC first (up to the bracket amount) and MPF for the remainder.
        """
        normalized = {h.norm_header(k): Decimal(v) for k, v in prior.items()}
        taken = {name: abs(normalized.get(h.norm_header(name), ZERO)) for name in FIELD_BY_NAME}

        for legacy, mc_name, mpf_name, mc_cap in (
            ("SSS EE", h.SSS_EE_MC, h.SSS_EE_MPF, full.sss_ee_mc),
            ("SSS ER", h.SSS_ER_MC, h.SSS_ER_MPF, full.sss_er_mc),
        ):
            total = abs(normalized.get(legacy, ZERO))
            if total and not taken[mc_name] and not taken[mpf_name]:
                taken[mc_name] = min(total, mc_cap)
                taken[mpf_name] = total - taken[mc_name]
        return taken


def add_system_adjustments(result: StatutoryResult, system: dict[str, Decimal]) -> None:
    """Fold explicit statutory adjustment lines into the computed amounts."""
    for name, amount in system.items():
        attr = FIELD_BY_NAME.get(name)
        if attr is not None:
            setattr(result, attr, r2(getattr(result, attr) + amount))


def apply_exemptions(result: StatutoryResult, employee: EmployeeRecord) -> None:
    """Zero out contributions the employee is exempt from."""
    if employee.is_consultant or employee.applied_for_retirement:
        for attr in FIELD_BY_NAME.values():
            setattr(result, attr, ZERO)
        return
    if employee.is_pwd:
        result.ph_ee = ZERO
        result.ph_er = ZERO
    if not employee.is_filipino:
        result.pi_ee = ZERO
        result.pi_er = ZERO
