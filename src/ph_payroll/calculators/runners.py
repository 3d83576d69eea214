"""Period runners: regular semi-monthly, full-month and special runs.

All three share one per-employee pipeline (stable order):
1) Eligibility filter
2) Basic pay for the period
3) Masterfile recurring components
4) This-period adjustments, netted against the prior-taken ledger
5) Statutory compensation bases
6) Contributions and taxable income
7) Withholding tax
8) Gross and net pay
"""

from __future__ import annotations

import logging
from collections import OrderedDict
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING, Callable

from ph_payroll.calculators import helpers as h
from ph_payroll.calculators.component_map import ComponentClassifier
from ph_payroll.calculators.helpers import r2
from ph_payroll.calculators.rate_resolver import RateResolver
from ph_payroll.calculators.row_builder import RowBuilder
from ph_payroll.calculators.statutory import (
    StatutoryCalculator,
    add_system_adjustments,
    apply_exemptions,
)
from ph_payroll.calculators.tax_calculator import TaxCalculator
from ph_payroll.calculators.types import (
    ZERO,
    Adjustment,
    ComponentCategory,
    ComponentMode,
    EmployeeContext,
    EmployeeRecord,
    OutputRow,
    PayBasis,
    PeriodPart,
    PriorTakenLedger,
    RunRequest,
    RunResult,
    RunWarning,
    StatutoryResult,
    StatutoryTables,
    UnknownEmployeeError,
    YtdTotals,
)

if TYPE_CHECKING:
    from ph_payroll.config import PayrollConfig

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, str], None]
CancelCheck = Callable[[], bool]

PROGRESS_EVERY = 5


class MissingStatutoryTableError(Exception):
    """Raised when a run needs a bracket table the statutory version lacks."""

    def __init__(self, table: str, version_id: str):
        self.table = table
        self.version_id = version_id
        super().__init__(f"Statutory version {version_id} has no {table} table")


class RunCancelledError(Exception):
    """Raised when the caller cancels a run between employees."""

    def __init__(self, processed: int, total: int):
        self.processed = processed
        self.total = total
        super().__init__(f"Run cancelled after {processed} of {total} employees")


@dataclass
class _Accumulator:
    """Running sums for one employee."""

    taxable_earnings: Decimal = ZERO
    other_benefits: Decimal = ZERO
    sss_items: Decimal = ZERO
    ph_items: Decimal = ZERO
    basic_pay: Decimal = ZERO
    system: dict[str, Decimal] = field(default_factory=dict)


class BaseRunner:
    """Shared per-employee algorithm; subclasses supply period semantics."""

    part: PeriodPart = PeriodPart.MONTHLY
    uses_masterfile = True

    def __init__(
        self,
        config: PayrollConfig,
        tables: StatutoryTables,
        classifier: ComponentClassifier | None = None,
    ):
        self.config = config
        self.tables = tables
        self.classifier = classifier or ComponentClassifier(config.category_table())
        self.rates = RateResolver(config)
        self.statutory = StatutoryCalculator(config, tables.sss_brackets)
        self.tax = TaxCalculator(config, tables.tax_brackets)

    # ------------------------------------------------------------------
    # Run orchestration
    # ------------------------------------------------------------------

    def run(
        self,
        request: RunRequest,
        employees: list[EmployeeRecord],
        adjustments: list[Adjustment],
        ledger: PriorTakenLedger | None = None,
        ytd: dict[str, YtdTotals] | None = None,
        progress: ProgressCallback | None = None,
        should_cancel: CancelCheck | None = None,
    ) -> RunResult:
        """Compute one output row per eligible employee.

        Raises:
            MissingStatutoryTableError: A needed table is absent from the version
            UnknownEmployeeError: An adjustment references an unknown employee
            RunCancelledError: should_cancel returned True between employees
        """
        self._check_tables(request)
        ledger = ledger or PriorTakenLedger()
        ytd = ytd or {}

        label = h.period_label(request.date_from, request.date_to, self.part, request.run_code)
        anchor = h.anchor_date(request.date_from, request.date_to, self.part)
        month = h.payroll_month_label(anchor)
        result = RunResult(period_label=label, payroll_month=month)

        by_code = {e.employee_code: e for e in employees}
        grouped: dict[str, list[Adjustment]] = OrderedDict()
        for adj in adjustments:
            if adj.employee_code not in by_code:
                logger.error("Adjustment %s references unknown employee %s", adj.component, adj.employee_code)
                raise UnknownEmployeeError(adj.employee_code)
            grouped.setdefault(adj.employee_code, []).append(adj)

        candidates = self.select_employees(employees, grouped)
        total = len(candidates)
        self._report(progress, 0, f"Computing {label} for {total} employees")

        for index, employee in enumerate(candidates, start=1):
            if should_cancel is not None and should_cancel():
                raise RunCancelledError(index - 1, total)

            ctx = EmployeeContext(employee=employee, request=request, period_label=label, payroll_month=month)
            if not self.is_eligible(ctx):
                logger.debug("Skipping ineligible employee %s", employee.employee_code)
                result.skipped.append(employee.employee_code)
            else:
                row = self.compute_employee(
                    ctx,
                    grouped.get(employee.employee_code, []),
                    ledger,
                    ytd.get(employee.employee_code, YtdTotals()),
                    anchor,
                )
                result.rows.append(row)
                result.total_gross += row.gross_pay
                result.total_net += row.net_pay
            for warning in ctx.warnings:
                logger.warning("%s [%s]: %s", warning.employee_code, warning.code, warning.message)
            result.warnings.extend(ctx.warnings)

            if index % PROGRESS_EVERY == 0 and index < total:
                self._report(progress, int(index * 100 / total), f"Processed {index} of {total} employees")

        result.total_gross = r2(result.total_gross)
        result.total_net = r2(result.total_net)
        result.headers = RowBuilder.build_headers(result.rows)
        self._report(progress, 100, f"Completed {label}: {result.total_employees} employees")
        return result

    def _check_tables(self, request: RunRequest) -> None:
        if request.compute_tax and self.tables.tax_brackets is None:
            raise MissingStatutoryTableError("BIR", self.tables.version_id)
        if request.compute_contributions and self.tables.sss_brackets is None:
            raise MissingStatutoryTableError("SSS", self.tables.version_id)

    @staticmethod
    def _report(progress: ProgressCallback | None, percent: int, message: str) -> None:
        if progress is None:
            return
        try:
            progress(percent, message)
        except Exception:
            logger.exception("Progress callback failed: %s", message)

    def select_employees(
        self, employees: list[EmployeeRecord], grouped: dict[str, list[Adjustment]]
    ) -> list[EmployeeRecord]:
        return list(employees)

    def is_eligible(self, ctx: EmployeeContext) -> bool:
        employee = ctx.employee
        request = ctx.request
        if not employee.has_identity or not employee.is_active:
            return False
        if not request.includes_group(employee.payroll_group):
            return False
        return employee.employed_during(request.date_from, request.date_to)

    # ------------------------------------------------------------------
    # Per-employee pipeline
    # ------------------------------------------------------------------

    def compute_employee(
        self,
        ctx: EmployeeContext,
        adjustments: list[Adjustment],
        ledger: PriorTakenLedger,
        ytd: YtdTotals,
        anchor: date,
    ) -> OutputRow:
        employee = ctx.employee
        request = ctx.request
        row = OutputRow(
            employee_code=employee.employee_code,
            employee_name=employee.name,
            period_label=ctx.period_label,
            payroll_month=ctx.payroll_month,
            date_from=request.date_from,
            date_to=request.date_to,
            meta=self._row_meta(employee, request),
        )
        acc = _Accumulator()

        monthly_salary = ZERO
        if self.uses_masterfile:
            basic, monthly_salary = self.resolve_basic_pay(ctx, ledger)
            self._add_component(row, acc, h.BASIC_PAY, basic, ComponentCategory.BASIC_PAY_RELATED)
            self._apply_masterfile_fields(ctx, row, acc, ledger)
        else:
            monthly_salary = self.rates.resolve_for_employee(employee).monthly

        self._apply_adjustments(ctx, row, acc, adjustments, ledger)

        sss_base, ph_base = self.statutory_bases(ctx, acc, monthly_salary, ledger)
        statutory = self.compute_statutory(ctx, sss_base, ph_base, ledger, acc)
        add_system_adjustments(statutory, acc.system)
        apply_exemptions(statutory, employee)
        ctx.warnings.extend(_tag(statutory.warnings, employee.employee_code))
        statutory.warnings = []
        row.statutory = statutory

        taxable_ob = ZERO
        if acc.other_benefits:
            taxable_ob = self.tax.taxable_other_benefits(acc.other_benefits, ytd.other_benefits)
        taxable = max(ZERO, r2(acc.taxable_earnings + taxable_ob - statutory.total_ee))
        row.taxable_income = taxable

        withholding = ZERO
        if request.compute_tax:
            prior_a_taxable, prior_a_tax = self.prior_half_a_tax(employee.employee_code, ledger)
            outcome = self.tax.compute_withholding(
                employee,
                taxable,
                self.part,
                anchor,
                other_benefits=acc.other_benefits,
                ytd=ytd,
                prior_a_taxable=prior_a_taxable,
                prior_a_tax=prior_a_tax,
            )
            withholding = outcome.tax
            ctx.warnings.extend(_tag(outcome.warnings, employee.employee_code))
        row.withholding_tax = r2(withholding + acc.system.get(h.WITHHOLDING_TAX, ZERO))

        RowBuilder.finalize(row)
        for message in RowBuilder.validate_signs(row):
            ctx.warn("sign_violation", message)
        return row

    def _row_meta(self, employee: EmployeeRecord, request: RunRequest) -> dict[str, str]:
        meta = {
            "PAYROLL GROUP": employee.payroll_group or "",
            "CREDITING DATE": request.crediting_date.isoformat() if request.crediting_date else "",
        }
        for kind, value in sorted(employee.tracking.items()):
            meta[f"Tracking: {kind}"] = value
        return meta

    def prior_for(self, ledger: PriorTakenLedger, employee_code: str, component: str) -> Decimal:
        """Prior-taken amount for a non-statutory component."""
        return ledger.month_total(employee_code, h.norm_header(component))

    def mode_for(self, employee_code: str, component: str) -> ComponentMode:
        return ComponentMode.FULL

    def resolve_basic_pay(self, ctx: EmployeeContext, ledger: PriorTakenLedger) -> tuple[Decimal, Decimal]:
        """Basic pay for this run and the monthly salary used as statutory base.

        Priority: fixed computed-basic override, daily rate x attendance days,
        then the monthly rate apportioned by component mode. Each is net of
        what the ledger already recorded.
        """
        employee = ctx.employee
        code = employee.employee_code
        rates = self.rates.resolve_for_employee(employee)
        prior = self.prior_for(ledger, code, h.BASIC_PAY)

        if employee.computed_basic_pay is not None:
            basic = h.signed_for_period(employee.computed_basic_pay, prior)
            if rates.monthly > 0:
                return basic, rates.monthly
            per_month = 1 if self.part in (PeriodPart.MONTHLY, PeriodPart.SPECIAL) else self.config.cutoffs_per_month
            return basic, r2(employee.computed_basic_pay * per_month)

        if employee.pay_basis == PayBasis.DAILY:
            days = ctx.request.attendance_days.get(code)
            if days is not None:
                basic = h.signed_for_period(r2(rates.daily * Decimal(days)), prior)
                month_to_date = ledger.month_total(code, h.BASIC_PAY)
                return basic, r2(month_to_date + basic)
            ctx.warn("attendance_missing", "No attendance days for daily-paid employee; monthly equivalent used")

        mode = self.mode_for(code, h.BASIC_PAY)
        portion = h.period_portion(rates.monthly, mode, self.part)
        return h.signed_for_period(portion, prior), rates.monthly

    def _apply_masterfile_fields(
        self, ctx: EmployeeContext, row: OutputRow, acc: _Accumulator, ledger: PriorTakenLedger
    ) -> None:
        code = ctx.employee_code
        for name, monthly in ctx.employee.dynamic_fields.items():
            monthly = Decimal(monthly)
            if not monthly:
                continue
            category = self._resolve_category(ctx, name, None)
            portion = h.period_portion(monthly, self.mode_for(code, name), self.part)
            if category == ComponentCategory.DEDUCTION and portion > 0:
                portion = -portion
            amount = h.signed_for_period(portion, self.prior_for(ledger, code, name))
            self._add_component(row, acc, h.norm_header(name), amount, category)

    def _apply_adjustments(
        self,
        ctx: EmployeeContext,
        row: OutputRow,
        acc: _Accumulator,
        adjustments: list[Adjustment],
        ledger: PriorTakenLedger,
    ) -> None:
        totals: dict[str, Decimal] = OrderedDict()
        categories: dict[str, ComponentCategory] = {}

        for adj in adjustments:
            system_name = h.canonical_system_name(adj.component)
            if system_name in h.STATUTORY_NAMES:
                acc.system[system_name] = acc.system.get(system_name, ZERO) + Decimal(adj.amount)
                continue
            if system_name is not None:
                ctx.warn("derived_total_adjustment", f"Adjustment to derived column {adj.component} ignored")
                continue

            name = h.norm_header(adj.component)
            category = categories.get(name) or self._resolve_category(ctx, adj.component, adj.category)
            categories[name] = category
            amount = Decimal(adj.amount)
            if category == ComponentCategory.DEDUCTION and amount > 0:
                amount = -amount
            totals[name] = totals.get(name, ZERO) + amount

        for name, amount in totals.items():
            net = h.signed_for_period(amount, self.prior_for(ledger, ctx.employee_code, name))
            self._add_component(row, acc, name, net, categories[name])

    def _resolve_category(
        self, ctx: EmployeeContext, name: str, explicit: ComponentCategory | str | None
    ) -> ComponentCategory:
        outcome = self.classifier.classify(name, explicit)
        if outcome.category is None:
            ctx.warn("unclassified_component", f"{name} matched no category; treated as taxable earning")
            return ComponentCategory.TAXABLE_EARNING
        if outcome.source == "heuristic":
            ctx.warn("heuristic_classification", f"{name} classified by name as {outcome.category.value}")
        return outcome.category

    @staticmethod
    def _add_component(
        row: OutputRow, acc: _Accumulator, name: str, amount: Decimal, category: ComponentCategory
    ) -> None:
        row.components[name] = r2(row.components.get(name, ZERO) + amount)
        row.categories[name] = category

        if category in (ComponentCategory.BASIC_PAY_RELATED, ComponentCategory.TAXABLE_EARNING):
            acc.taxable_earnings += amount
        elif category == ComponentCategory.OTHER_BENEFITS:
            acc.other_benefits += amount

        if name == h.BASIC_PAY:
            acc.basic_pay += amount
            return
        if h.is_sss_base_component(name, category):
            acc.sss_items += amount
        if h.is_philhealth_base_component(name, category):
            acc.ph_items += amount

    def statutory_bases(
        self,
        ctx: EmployeeContext,
        acc: _Accumulator,
        monthly_salary: Decimal,
        ledger: PriorTakenLedger,
    ) -> tuple[Decimal, Decimal]:
        """Monthly compensation bases: salary plus basic-pay-related items."""
        return r2(monthly_salary + acc.sss_items), r2(monthly_salary + acc.ph_items)

    def compute_statutory(
        self,
        ctx: EmployeeContext,
        sss_base: Decimal,
        ph_base: Decimal,
        ledger: PriorTakenLedger,
        acc: _Accumulator,
    ) -> StatutoryResult:
        employee = ctx.employee
        if not ctx.request.compute_contributions:
            return StatutoryResult()
        if employee.is_consultant or employee.applied_for_retirement:
            return StatutoryResult()
        return self.statutory.compute(
            sss_base,
            ph_base,
            self.part,
            prior_month=ledger.month_to_date.get(employee.employee_code, {}),
            daily_basis=employee.pay_basis == PayBasis.DAILY,
        )

    def prior_half_a_tax(self, employee_code: str, ledger: PriorTakenLedger) -> tuple[Decimal, Decimal]:
        return ZERO, ZERO


class SemiMonthlyRunner(BaseRunner):
    """Regular runs for Half A or Half B of a semi-monthly cycle."""

    def __init__(
        self,
        config: PayrollConfig,
        tables: StatutoryTables,
        part: PeriodPart,
        classifier: ComponentClassifier | None = None,
    ):
        if part not in (PeriodPart.A, PeriodPart.B):
            raise ValueError(f"SemiMonthlyRunner handles parts A and B, not {part.value}")
        super().__init__(config, tables, classifier)
        self.part = part

    def prior_for(self, ledger: PriorTakenLedger, employee_code: str, component: str) -> Decimal:
        return ledger.part_total(employee_code, self.part.value, h.norm_header(component))

    def mode_for(self, employee_code: str, component: str) -> ComponentMode:
        return self.config.mode_for(employee_code, component)

    def statutory_bases(
        self,
        ctx: EmployeeContext,
        acc: _Accumulator,
        monthly_salary: Decimal,
        ledger: PriorTakenLedger,
    ) -> tuple[Decimal, Decimal]:
        """Half B rebuilds the PhilHealth base from both halves.

        Half A's recorded basic pay and PhilHealth-base items are combined
        with this half's, so a mid-month change lands in the monthly base.
        """
        sss_base, ph_base = super().statutory_bases(ctx, acc, monthly_salary, ledger)
        code = ctx.employee_code
        if (
            self.part != PeriodPart.B
            or ctx.employee.computed_basic_pay is not None
            or not ledger.has_part(code, PeriodPart.A.value)
        ):
            return sss_base, ph_base

        half_a = ledger.part_components(code, PeriodPart.A.value)
        a_basic = half_a.get(h.BASIC_PAY, ZERO)
        a_items = ZERO
        for name, value in half_a.items():
            if name == h.BASIC_PAY or h.canonical_system_name(name) or h.is_history_meta_column(name):
                continue
            if h.is_philhealth_base_component(name, self.classifier.category_of(name)):
                a_items += value
        return sss_base, r2(a_basic + a_items + acc.basic_pay + acc.ph_items)

    def prior_half_a_tax(self, employee_code: str, ledger: PriorTakenLedger) -> tuple[Decimal, Decimal]:
        if self.part != PeriodPart.B:
            return ZERO, ZERO
        return (
            ledger.part_total(employee_code, PeriodPart.A.value, h.norm_header(h.TAXABLE_INCOME)),
            ledger.part_total(employee_code, PeriodPart.A.value, h.norm_header(h.WITHHOLDING_TAX)),
        )


class MonthlyRunner(BaseRunner):
    """Full-month runs: no split, components net of the whole month's ledger."""

    part = PeriodPart.MONTHLY


class SpecialRunner(BaseRunner):
    """Ad-hoc runs (bonuses, 13th month, corrections).

    Adjustments are the only earnings source. An employee with explicit
    statutory lines gets exactly those; otherwise, when contributions are
    requested, half the bracket amounts are taken as in Half A.
    """

    part = PeriodPart.SPECIAL
    uses_masterfile = False

    def select_employees(
        self, employees: list[EmployeeRecord], grouped: dict[str, list[Adjustment]]
    ) -> list[EmployeeRecord]:
        return [e for e in employees if grouped.get(e.employee_code)]

    def prior_for(self, ledger: PriorTakenLedger, employee_code: str, component: str) -> Decimal:
        return ZERO

    def compute_statutory(
        self,
        ctx: EmployeeContext,
        sss_base: Decimal,
        ph_base: Decimal,
        ledger: PriorTakenLedger,
        acc: _Accumulator,
    ) -> StatutoryResult:
        if any(name in h.CONTRIBUTION_NAMES for name in acc.system):
            return StatutoryResult()
        return super().compute_statutory(ctx, sss_base, ph_base, ledger, acc)


def _tag(warnings: list[RunWarning], employee_code: str) -> list[RunWarning]:
    """Attach the employee code to calculator warnings."""
    return [RunWarning(w.code, w.message, w.employee_code or employee_code) for w in warnings]
