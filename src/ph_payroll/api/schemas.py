"""Pydantic schemas for API request/response models.

The CLI reads the same request documents, so every request schema converts
itself into engine types.
"""

from datetime import date
from decimal import Decimal
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from ph_payroll.annualization import PreviousEmployerBreakdown
from ph_payroll.calculators.adjustments import AttendanceRecord, RecurringAdjustment
from ph_payroll.calculators.types import (
    Adjustment,
    BracketScale,
    ComponentCategory,
    ComponentMode,
    EmployeeRecord,
    HistoryRow,
    OutputRow,
    PayBasis,
    PayFrequency,
    RunRequest,
    RunResult,
    RunWarning,
    SssBracket,
    StatutoryTables,
    TaxBracket,
)
from ph_payroll.config import PayrollConfig
from ph_payroll.services.history_service import label_month, part_of_label
from ph_payroll.services.ledger_service import normalize_columns


# ============================================================================
# Configuration and master data
# ============================================================================


class PayrollConfigSchema(BaseModel):
    """Tenant configuration; omitted fields take the engine defaults."""

    philhealth_rate: Decimal | None = None
    philhealth_min_base: Decimal | None = None
    philhealth_max_base: Decimal | None = None
    pagibig_ee_rate: Decimal | None = None
    pagibig_er_rate: Decimal | None = None
    pagibig_cap_base: Decimal | None = None
    pagibig_monthly_floor: Decimal | None = None
    working_days_per_year: int | None = None
    hours_per_day: int | None = None
    pay_frequency: PayFrequency | None = None
    other_benefits_ceiling: Decimal | None = None
    component_modes: dict[str, ComponentMode] | None = None
    employee_mode_overrides: dict[str, ComponentMode] | None = None
    component_categories: dict[str, ComponentCategory] | None = None
    overtime_multipliers: dict[str, Decimal] | None = None

    def to_config(self) -> PayrollConfig:
        return PayrollConfig(**self.model_dump(exclude_none=True))


class EmployeeSchema(BaseModel):
    """Employee master record."""

    employee_code: str
    name: str
    status: str = "Active"
    contract_type: str = "Employee"
    pay_basis: str = "Monthly"
    base_pay: Decimal = Decimal("0")
    computed_basic_pay: Decimal | None = None
    working_days_per_year: int | None = None
    is_pwd: bool = False
    is_mwe: bool = False
    applied_for_retirement: bool = False
    nationality: str = "Filipino"
    consultant_tax_rate: Decimal = Decimal("0")
    hire_date: date | None = None
    separation_date: date | None = None
    payroll_group: str | None = None
    tracking: dict[str, str] = Field(default_factory=dict)
    dynamic_fields: dict[str, Decimal] = Field(default_factory=dict)

    def to_domain(self) -> EmployeeRecord:
        data = self.model_dump()
        data["pay_basis"] = PayBasis.DAILY if "DAILY" in self.pay_basis.upper() else PayBasis.MONTHLY
        return EmployeeRecord(**data)


class AdjustmentSchema(BaseModel):
    """One adjustment line; ``category`` is optional and matched loosely."""

    employee_code: str
    component: str
    amount: Decimal
    category: str | None = None

    def to_domain(self) -> Adjustment:
        return Adjustment(
            employee_code=self.employee_code,
            component=self.component,
            amount=self.amount,
            category=ComponentCategory.parse(self.category),
        )


class RecurringAdjustmentSchema(BaseModel):
    """Standing monthly adjustment template."""

    employee_code: str
    component: str
    amount: Decimal
    mode: str = "SPLIT"
    max_amount: Decimal | None = None
    paid_to_date: Decimal = Decimal("0")
    category: str | None = None
    active: bool = True

    def to_domain(self) -> RecurringAdjustment:
        return RecurringAdjustment(
            employee_code=self.employee_code,
            component=self.component,
            amount=self.amount,
            mode=self.mode,
            max_amount=self.max_amount,
            paid_to_date=self.paid_to_date,
            category=ComponentCategory.parse(self.category),
            active=self.active,
        )


class AttendanceSchema(BaseModel):
    """Time and attendance figures for one employee."""

    employee_code: str
    absence_days: Decimal = Decimal("0")
    late_minutes: Decimal = Decimal("0")
    overtime_hours: dict[str, Decimal] = Field(default_factory=dict)
    night_differential_hours: Decimal = Decimal("0")
    regular_holiday_days: Decimal = Decimal("0")
    special_holiday_days: Decimal = Decimal("0")
    rest_day_days: Decimal = Decimal("0")

    def to_domain(self) -> AttendanceRecord:
        return AttendanceRecord(**self.model_dump())


# ============================================================================
# Statutory tables and history
# ============================================================================


class BracketScaleSchema(BaseModel):
    threshold: Decimal
    cap: Decimal | None = None
    fixed: Decimal = Decimal("0")
    rate: Decimal = Decimal("0")


class TaxBracketSchema(BaseModel):
    """One withholding-tax bracket at all three scales."""

    semi_monthly: BracketScaleSchema
    monthly: BracketScaleSchema
    annual: BracketScaleSchema

    def to_domain(self) -> TaxBracket:
        return TaxBracket(
            semi_monthly=BracketScale(**self.semi_monthly.model_dump()),
            monthly=BracketScale(**self.monthly.model_dump()),
            annual=BracketScale(**self.annual.model_dump()),
        )


class SssBracketSchema(BaseModel):
    comp_min: Decimal
    comp_max: Decimal | None = None
    ee_mc: Decimal
    ee_mpf: Decimal = Decimal("0")
    er_mc: Decimal
    er_mpf: Decimal = Decimal("0")
    ec: Decimal = Decimal("0")

    def to_domain(self) -> SssBracket:
        return SssBracket(**self.model_dump())


class StatutoryTablesSchema(BaseModel):
    """Inline statutory version; a null table means the version lacks it."""

    version_id: str
    status: str = "PUBLISHED"
    effective_from: date | None = None
    effective_to: date | None = None
    tax_brackets: list[TaxBracketSchema] | None = Field(default_factory=list)
    sss_brackets: list[SssBracketSchema] | None = Field(default_factory=list)

    def to_domain(self) -> StatutoryTables:
        return StatutoryTables(
            version_id=self.version_id,
            status=self.status,
            effective_from=self.effective_from,
            effective_to=self.effective_to,
            tax_brackets=None if self.tax_brackets is None else [b.to_domain() for b in self.tax_brackets],
            sss_brackets=None if self.sss_brackets is None else [b.to_domain() for b in self.sss_brackets],
        )


class HistoryRowSchema(BaseModel):
    """A previously posted row, keyed by its period label."""

    employee_code: str
    period_label: str
    date_to: date | None = None
    columns: dict[str, Any] = Field(default_factory=dict)

    def to_domain(self) -> HistoryRow:
        return HistoryRow(
            employee_code=self.employee_code,
            period_label=self.period_label,
            part=part_of_label(self.period_label),
            month=label_month(self.period_label),
            columns=normalize_columns(self.columns),
            date_to=self.date_to,
        )


class PreviousEmployerSchema(BaseModel):
    tin: str = ""
    registered_name: str = ""
    address: str = ""
    zip_code: str = ""
    taxable_compensation: Decimal = Decimal("0")
    taxes_withheld: Decimal = Decimal("0")
    non_tax_13th_month: Decimal = Decimal("0")
    non_tax_de_minimis: Decimal = Decimal("0")
    non_tax_contributions: Decimal = Decimal("0")
    non_tax_salaries: Decimal = Decimal("0")
    taxable_basic_salary: Decimal = Decimal("0")
    taxable_13th_month: Decimal = Decimal("0")
    taxable_salaries: Decimal = Decimal("0")

    def to_domain(self) -> PreviousEmployerBreakdown:
        return PreviousEmployerBreakdown(**self.model_dump())


# ============================================================================
# Run schemas
# ============================================================================


class RunRequestSchema(BaseModel):
    """Run parameters; ``part`` is A, B, M or S."""

    date_from: date
    date_to: date
    part: str
    run_code: str | None = None
    payroll_groups: list[str] = Field(default_factory=lambda: ["ALL"])
    crediting_date: date | None = None
    compute_tax: bool = True
    compute_contributions: bool = True
    attendance_days: dict[str, Decimal] = Field(default_factory=dict)

    def to_domain(self) -> RunRequest:
        return RunRequest(**self.model_dump())


class ComputeRunPayload(BaseModel):
    """Schema for computing a run.

    ``statutory`` and ``history`` fall back to the database when omitted.
    """

    run: RunRequestSchema
    employees: list[EmployeeSchema]
    adjustments: list[AdjustmentSchema] = Field(default_factory=list)
    recurring: list[RecurringAdjustmentSchema] = Field(default_factory=list)
    attendance: list[AttendanceSchema] = Field(default_factory=list)
    statutory: StatutoryTablesSchema | None = None
    history: list[HistoryRowSchema] | None = None
    config: PayrollConfigSchema = Field(default_factory=PayrollConfigSchema)
    post: bool = False


class WarningResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    code: str
    message: str
    employee_code: str | None = None


class RowResponse(BaseModel):
    """One computed row in column form."""

    employee_code: str
    employee_name: str
    period_label: str
    payroll_month: str
    columns: dict[str, Any]
    row_hash: str

    @classmethod
    def from_row(cls, row: OutputRow) -> "RowResponse":
        return cls(
            employee_code=row.employee_code,
            employee_name=row.employee_name,
            period_label=row.period_label,
            payroll_month=row.payroll_month,
            columns=row.to_columns(),
            row_hash=row.row_hash,
        )


class RunResponse(BaseModel):
    """Schema for run results."""

    period_label: str
    payroll_month: str
    headers: list[str]
    rows: list[RowResponse]
    total_employees: int
    total_gross: Decimal
    total_net: Decimal
    warnings: list[WarningResponse]
    skipped: list[str]

    @classmethod
    def from_result(cls, result: RunResult) -> "RunResponse":
        return cls(
            period_label=result.period_label,
            payroll_month=result.payroll_month,
            headers=result.headers,
            rows=[RowResponse.from_row(r) for r in result.rows],
            total_employees=result.total_employees,
            total_gross=result.total_gross,
            total_net=result.total_net,
            warnings=[_warning(w) for w in result.warnings],
            skipped=result.skipped,
        )


def _warning(warning: RunWarning) -> WarningResponse:
    return WarningResponse.model_validate(warning)


# ============================================================================
# Annualization schemas
# ============================================================================


class AnnualizationPayload(BaseModel):
    year: int
    employees: list[EmployeeSchema]
    history: list[HistoryRowSchema] | None = None
    statutory: StatutoryTablesSchema | None = None
    previous_employers: dict[str, PreviousEmployerSchema] = Field(default_factory=dict)
    config: PayrollConfigSchema = Field(default_factory=PayrollConfigSchema)


class AnnualSummaryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    employee_code: str
    year: int
    gross_compensation: Decimal
    non_taxable_compensation: Decimal
    mwe_non_taxable_basic: Decimal
    mwe_non_taxable_overtime: Decimal
    non_taxable_13th_month: Decimal
    taxable_13th_month: Decimal
    ee_contributions: Decimal
    taxable_present: Decimal
    taxable_previous: Decimal
    total_taxable: Decimal
    annual_tax_due: Decimal
    withheld_present: Decimal
    withheld_previous: Decimal
    total_withheld: Decimal
    tax_difference: Decimal
    is_refund: bool


class PreAnnualizationPayload(BaseModel):
    as_of: date
    employees: list[EmployeeSchema]
    history: list[HistoryRowSchema] | None = None
    statutory: StatutoryTablesSchema | None = None
    recurring_extras: dict[str, dict[str, Decimal]] = Field(default_factory=dict)
    config: PayrollConfigSchema = Field(default_factory=PayrollConfigSchema)


class PreAnnualizationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

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


class FinalPayItemSchema(BaseModel):
    component: str
    amount: Decimal
    category: str | None = None


class FinalPayPayload(BaseModel):
    employee: EmployeeSchema
    separation_date: date
    items: list[FinalPayItemSchema] = Field(default_factory=list)
    history: list[HistoryRowSchema] | None = None
    statutory: StatutoryTablesSchema | None = None
    previous_employer: PreviousEmployerSchema | None = None
    config: PayrollConfigSchema = Field(default_factory=PayrollConfigSchema)
    post: bool = False

    def adjustments(self) -> list[Adjustment]:
        return [
            Adjustment(
                employee_code=self.employee.employee_code,
                component=item.component,
                amount=item.amount,
                category=ComponentCategory.parse(item.category),
            )
            for item in self.items
        ]


class FinalPayResponse(BaseModel):
    row: RowResponse
    annual: AnnualSummaryResponse
    settlement: Decimal


class ErrorResponse(BaseModel):
    """Schema for error response."""

    detail: str
    code: str | None = None
    context: dict[str, Any] | None = None
