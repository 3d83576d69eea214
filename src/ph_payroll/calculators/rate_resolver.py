"""Pay rate resolution: daily, hourly and minute rates plus overtime multipliers."""

from __future__ import annotations

import re
from dataclasses import dataclass
from decimal import Decimal
from typing import TYPE_CHECKING

from ph_payroll.calculators.helpers import norm_header, r2
from ph_payroll.calculators.types import ZERO, EmployeeRecord, PayBasis

if TYPE_CHECKING:
    from ph_payroll.config import PayrollConfig

DEFAULT_OT_MULTIPLIER = Decimal("1.25")
NIGHT_DIFFERENTIAL_RATE = Decimal("0.10")
REGULAR_HOLIDAY_MULTIPLIER = Decimal("2.00")
SPECIAL_HOLIDAY_MULTIPLIER = Decimal("1.30")
REST_DAY_MULTIPLIER = Decimal("1.30")

# Fallbacks for overtime names missing from the tenant table, most specific first
_OT_NAME_RULES: tuple[tuple[re.Pattern[str], Decimal], ...] = (
    (re.compile(r"REST\s*DAY.*REG(ULAR)?\s*HOLIDAY", re.IGNORECASE), Decimal("2.60")),
    (re.compile(r"REST\s*DAY.*SPECIAL\s*HOLIDAY", re.IGNORECASE), Decimal("1.50")),
    (re.compile(r"REG(ULAR)?\s*HOLIDAY", re.IGNORECASE), Decimal("2.00")),
    (re.compile(r"SPECIAL\s*HOLIDAY", re.IGNORECASE), Decimal("1.30")),
    (re.compile(r"REST\s*DAY", re.IGNORECASE), Decimal("1.30")),
    (re.compile(r"NIGHT", re.IGNORECASE), Decimal("0.10")),
)


class RateNotFoundError(Exception):
    """Raised when an employee has no usable base pay."""

    def __init__(self, employee_code: str, pay_basis: PayBasis):
        self.employee_code = employee_code
        self.pay_basis = pay_basis
        super().__init__(
            f"No usable {pay_basis.value.lower()} base pay for employee {employee_code}"
        )


@dataclass(frozen=True)
class RateLookup:
    """Derived rates, each rounded half-up from the previous step."""

    daily: Decimal
    monthly: Decimal
    hourly: Decimal
    minute: Decimal


class RateResolver:
    """Resolves per-unit rates from base pay and pay basis.

    Conversion:
    - Daily basis: daily = base, monthly = base * working_days / 12
    - Monthly basis: monthly = base, daily = base * 12 / working_days
    - hourly = daily / hours_per_day, minute = hourly / 60
    Every step is rounded to cents before the next one uses it.
    """

    def __init__(self, config: PayrollConfig):
        self.config = config

    def resolve(
        self,
        base_pay: Decimal,
        pay_basis: PayBasis,
        working_days_per_year: int | None = None,
    ) -> RateLookup:
        working_days = Decimal(working_days_per_year or self.config.working_days_per_year)
        base = Decimal(base_pay)

        if pay_basis == PayBasis.DAILY:
            daily = r2(base)
            monthly = r2(base * working_days / 12)
        else:
            monthly = r2(base)
            daily = r2(base * 12 / working_days)

        hourly = r2(daily / self.config.hours_per_day)
        minute = r2(hourly / 60)
        return RateLookup(daily=daily, monthly=monthly, hourly=hourly, minute=minute)

    def resolve_for_employee(self, employee: EmployeeRecord) -> RateLookup:
        """Resolve rates for an employee.

        Raises:
            RateNotFoundError: If the employee's base pay is negative
        """
        if employee.base_pay < 0:
            raise RateNotFoundError(employee.employee_code, employee.pay_basis)
        return self.resolve(employee.base_pay, employee.pay_basis, employee.working_days_per_year)

    def overtime_multiplier(self, ot_type: str) -> Decimal:
        """Multiplier for an overtime type: tenant table, name rules, then 1.25."""
        wanted = norm_header(ot_type)
        for name, multiplier in self.config.overtime_multipliers.items():
            if norm_header(name) == wanted:
                return Decimal(multiplier)
        for pattern, multiplier in _OT_NAME_RULES:
            if pattern.search(wanted):
                return multiplier
        return DEFAULT_OT_MULTIPLIER

    # Unit conversions. Earnings are positive, unworked time is negative.

    def overtime_pay(self, rates: RateLookup, ot_type: str, hours: Decimal) -> Decimal:
        return r2(rates.hourly * self.overtime_multiplier(ot_type) * Decimal(hours))

    def absence_deduction(self, rates: RateLookup, days: Decimal) -> Decimal:
        return ZERO - r2(rates.daily * Decimal(days))

    def tardiness_deduction(self, rates: RateLookup, minutes: Decimal) -> Decimal:
        return ZERO - r2(rates.minute * Decimal(minutes))

    def night_differential_pay(self, rates: RateLookup, hours: Decimal) -> Decimal:
        return r2(rates.hourly * NIGHT_DIFFERENTIAL_RATE * Decimal(hours))

    def holiday_pay(
        self, rates: RateLookup, regular_days: Decimal, special_days: Decimal
    ) -> Decimal:
        return r2(
            rates.daily * REGULAR_HOLIDAY_MULTIPLIER * Decimal(regular_days)
            + rates.daily * SPECIAL_HOLIDAY_MULTIPLIER * Decimal(special_days)
        )

    def rest_day_pay(self, rates: RateLookup, days: Decimal) -> Decimal:
        return r2(rates.daily * REST_DAY_MULTIPLIER * Decimal(days))
