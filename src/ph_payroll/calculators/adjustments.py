"""Adjustment sources: recurring templates and attendance conversion."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal

from ph_payroll.calculators.helpers import norm_header, r2
from ph_payroll.calculators.rate_resolver import RateResolver
from ph_payroll.calculators.types import (
    ZERO,
    Adjustment,
    ComponentCategory,
    EmployeeRecord,
    PeriodPart,
)

logger = logging.getLogger(__name__)

RECURRING_MODES = ("SPLIT", "1ST", "2ND")


@dataclass
class RecurringAdjustment:
    """A standing monthly adjustment applied on every regular run.

    Attributes:
        mode: SPLIT (half per half-period), 1ST or 2ND (full in that half)
        max_amount: Optional lifetime cap, e.g. a loan balance
        paid_to_date: Amount already applied against the cap
    """

    employee_code: str
    component: str
    amount: Decimal
    mode: str = "SPLIT"
    max_amount: Decimal | None = None
    paid_to_date: Decimal = ZERO
    category: ComponentCategory | None = None
    active: bool = True

    def __post_init__(self) -> None:
        self.mode = self.mode.strip().upper()
        if self.mode not in RECURRING_MODES:
            raise ValueError(f"mode must be one of {RECURRING_MODES}")

    def amount_for(self, part: PeriodPart) -> Decimal:
        if part in (PeriodPart.MONTHLY, PeriodPart.SPECIAL):
            return r2(self.amount)
        if self.mode == "SPLIT":
            half = r2(self.amount / 2)
            return half if part == PeriodPart.A else r2(self.amount) - half
        if (self.mode == "1ST") == (part == PeriodPart.A):
            return r2(self.amount)
        return ZERO


def expand_recurring(
    templates: list[RecurringAdjustment],
    part: PeriodPart,
    existing: list[Adjustment],
) -> list[Adjustment]:
    """Materialize recurring templates into this run's adjustments.

    A template is skipped when the employee already has an adjustment with
    the same component name, when its cap is exhausted, or when its amount
    for this half is zero.
    """
    present = {(a.employee_code, norm_header(a.component)) for a in existing}
    created: list[Adjustment] = []

    for template in templates:
        if not template.active:
            continue
        key = (template.employee_code, norm_header(template.component))
        if key in present:
            logger.debug("Recurring %s for %s already present; skipping", template.component, template.employee_code)
            continue

        amount = template.amount_for(part)
        if template.max_amount is not None:
            remaining = r2(template.max_amount - template.paid_to_date)
            if remaining <= 0:
                continue
            if abs(amount) > remaining:
                amount = remaining if amount > 0 else -remaining
        if amount == 0:
            continue

        created.append(
            Adjustment(
                employee_code=template.employee_code,
                component=template.component,
                amount=amount,
                category=template.category,
            )
        )
        present.add(key)
    return created


@dataclass
class AttendanceRecord:
    """Time and attendance figures for one employee and period."""

    employee_code: str
    absence_days: Decimal = ZERO
    late_minutes: Decimal = ZERO
    overtime_hours: dict[str, Decimal] = field(default_factory=dict)
    night_differential_hours: Decimal = ZERO
    regular_holiday_days: Decimal = ZERO
    special_holiday_days: Decimal = ZERO
    rest_day_days: Decimal = ZERO


def _overtime_column(ot_type: str) -> str:
    name = norm_header(ot_type)
    return name if name.endswith("PAY") else f"{name} PAY"


def attendance_adjustments(
    records: list[AttendanceRecord],
    employees: dict[str, EmployeeRecord],
    resolver: RateResolver,
) -> list[Adjustment]:
    """Convert attendance into signed basic-pay-related adjustments.

    Records for unknown employees are ignored.
    """
    basic = ComponentCategory.BASIC_PAY_RELATED
    adjustments: list[Adjustment] = []

    for record in records:
        employee = employees.get(record.employee_code)
        if employee is None:
            logger.debug("Attendance for unknown employee %s ignored", record.employee_code)
            continue
        rates = resolver.resolve_for_employee(employee)
        code = record.employee_code
        lines: list[tuple[str, Decimal]] = []

        if record.absence_days:
            lines.append(("ABSENCES", resolver.absence_deduction(rates, record.absence_days)))
        if record.late_minutes:
            lines.append(("LATES", resolver.tardiness_deduction(rates, record.late_minutes)))
        for ot_type, hours in record.overtime_hours.items():
            if hours:
                lines.append((_overtime_column(ot_type), resolver.overtime_pay(rates, ot_type, hours)))
        if record.night_differential_hours:
            lines.append(
                ("NIGHT DIFFERENTIAL", resolver.night_differential_pay(rates, record.night_differential_hours))
            )
        if record.regular_holiday_days or record.special_holiday_days:
            lines.append((
                "HOLIDAY PAY",
                resolver.holiday_pay(rates, record.regular_holiday_days, record.special_holiday_days),
            ))
        if record.rest_day_days:
            lines.append(("REST DAY PAY", resolver.rest_day_pay(rates, record.rest_day_days)))

        for component, amount in lines:
            if amount:
                adjustments.append(Adjustment(code, component, amount, basic))
    return adjustments
