"""Unit tests for the period runners, driven through PayrollEngine."""

from datetime import date
from decimal import Decimal

import pytest

from ph_payroll.calculators.engine import PayrollEngine
from ph_payroll.calculators.types import (
    Adjustment,
    ComponentCategory,
    HistoryRow,
    InvalidRunRequestError,
    PayBasis,
    PeriodPart,
    PriorTakenLedger,
    RunRequest,
    UnknownEmployeeError,
)
from ph_payroll.services.ledger_service import build_ledger, normalize_columns

HALF_A = RunRequest(date_from=date(2025, 1, 1), date_to=date(2025, 1, 15), part=PeriodPart.A)
HALF_B = RunRequest(date_from=date(2025, 1, 16), date_to=date(2025, 1, 31), part=PeriodPart.B)
MONTH = RunRequest(date_from=date(2025, 3, 1), date_to=date(2025, 3, 31), part=PeriodPart.MONTHLY)


def posted(row, part: str) -> HistoryRow:
    """History view of a computed row, as the ledger would read it back."""
    return HistoryRow(
        employee_code=row.employee_code,
        period_label=row.period_label,
        part=part,
        month=date(row.date_to.year, row.date_to.month, 1),
        columns=normalize_columns(row.to_columns()),
        date_to=row.date_to,
    )


class TestSemiMonthlyCycle:
    """A 30,000 monthly employee across both halves of January."""

    @pytest.fixture
    def engine(self, sss_only_config):
        return PayrollEngine(sss_only_config)

    def test_half_a(self, engine, tables, make_employee):
        result = engine.run(HALF_A, [make_employee()], [], tables)
        row = result.rows[0]

        assert result.period_label == "2025-01-A"
        assert result.payroll_month == "January 2025"
        assert row.components["BASIC PAY"] == Decimal("15000.00")
        assert row.statutory.sss_ee_mc == Decimal("450.00")
        assert row.statutory.sss_er_mc == Decimal("0")
        assert row.taxable_income == Decimal("14550.00")
        assert row.withholding_tax == Decimal("-619.95")
        assert row.net_pay == Decimal("13930.05")

    def test_half_b_trues_up_against_half_a(self, engine, tables, make_employee):
        """Half B completes the month's contributions and tax."""
        employee = make_employee()
        half_a = engine.run(HALF_A, [employee], [], tables).rows[0]
        ledger = build_ledger([posted(half_a, "A")])

        row = engine.run(HALF_B, [employee], [], tables, ledger=ledger).rows[0]

        assert row.period_label == "2025-01-B"
        assert row.components["BASIC PAY"] == Decimal("15000.00")
        assert row.statutory.sss_ee_mc == Decimal("450.00")
        assert row.statutory.sss_er_mc == Decimal("1800")
        assert row.statutory.sss_ec == Decimal("30")
        assert row.taxable_income == Decimal("14550.00")
        assert row.withholding_tax == Decimal("-620.10")
        assert row.net_pay == Decimal("13929.90")
        assert half_a.statutory.sss_ee_mc + row.statutory.sss_ee_mc == Decimal("900")

    def test_halves_sum_to_monthly_salary(self, engine, tables, make_employee):
        employee = make_employee(base_pay="30000.01")
        half_a = engine.run(HALF_A, [employee], [], tables).rows[0]
        ledger = build_ledger([posted(half_a, "A")])
        half_b = engine.run(HALF_B, [employee], [], tables, ledger=ledger).rows[0]

        assert half_a.components["BASIC PAY"] == Decimal("15000.01")
        assert half_b.components["BASIC PAY"] == Decimal("15000.00")

    def test_recompute_is_deterministic(self, engine, tables, make_employee):
        first = engine.run(HALF_A, [make_employee()], [], tables).rows[0]
        second = engine.run(HALF_A, [make_employee()], [], tables).rows[0]
        assert first.row_hash == second.row_hash
        assert len(first.row_hash) == 64

    def test_already_taken_component_nets_to_zero(self, engine, tables, make_employee):
        """A rerun of Half A against a ledger holding Half A takes nothing more."""
        employee = make_employee()
        half_a = engine.run(HALF_A, [employee], [], tables).rows[0]
        ledger = build_ledger([posted(half_a, "A")])
        rerun = engine.run(HALF_A, [employee], [], tables, ledger=ledger).rows[0]
        assert rerun.components["BASIC PAY"] == Decimal("0")

    def test_half_b_crossing_month_labels_start_month(self, engine, tables, make_employee):
        request = RunRequest(date_from=date(2025, 1, 26), date_to=date(2025, 2, 10), part=PeriodPart.B)
        result = engine.run(request, [make_employee()], [], tables)
        assert result.period_label == "2025-01-B"

class TestPhilHealthBaseRebuild:
    """Half B premiums use the month's actual basic pay across both halves."""

    def test_mid_month_raise(self, config, tables, make_employee):
        """30,000 in Half A then 40,000 from Half B: monthly base is 15,000 + 20,000."""
        engine = PayrollEngine(config)
        half_a = engine.run(HALF_A, [make_employee(base_pay="30000")], [], tables).rows[0]
        ledger = build_ledger([posted(half_a, "A")])

        half_b = engine.run(HALF_B, [make_employee(base_pay="40000")], [], tables, ledger=ledger).rows[0]

        assert half_a.statutory.ph_ee == Decimal("375.00")
        assert half_b.components["BASIC PAY"] == Decimal("20000.00")
        assert half_b.statutory.ph_ee == Decimal("500.00")
        assert half_a.statutory.ph_ee + half_b.statutory.ph_ee == Decimal("875.00")

    def test_half_a_uses_monthly_salary(self, config, tables, make_employee):
        row = PayrollEngine(config).run(HALF_A, [make_employee(base_pay="40000")], [], tables).rows[0]
        assert row.statutory.ph_ee == Decimal("500.00")


class TestAdjustmentsInRuns:
    """Signs and categories of adjustment lines."""

    @pytest.fixture
    def engine(self, sss_only_config):
        return PayrollEngine(sss_only_config)

    def test_deduction_is_negative_and_reduces_net(self, engine, tables, make_employee):
        adjustments = [Adjustment("E001", "SSS Loan", Decimal("500"))]
        result = engine.run(HALF_A, [make_employee()], adjustments, tables)
        row = result.rows[0]

        assert row.components["SSS LOAN"] == Decimal("-500.00")
        assert row.gross_pay == Decimal("15000.00")
        assert row.net_pay == Decimal("13430.05")
        assert "heuristic_classification" in [w.code for w in result.warnings]

    def test_addition_affects_net_only(self, engine, tables, make_employee):
        adjustments = [Adjustment("E001", "Reimbursement", Decimal("1000"), ComponentCategory.ADDITION)]
        row = engine.run(HALF_A, [make_employee()], adjustments, tables).rows[0]

        assert row.gross_pay == Decimal("15000.00")
        assert row.taxable_income == Decimal("14550.00")
        assert row.net_pay == Decimal("14930.05")

    def test_unclassified_component_is_taxable(self, engine, tables, make_employee):
        adjustments = [Adjustment("E001", "Mystery Item", Decimal("100"))]
        result = engine.run(HALF_A, [make_employee()], adjustments, tables)
        row = result.rows[0]

        assert row.categories["MYSTERY ITEM"] == ComponentCategory.TAXABLE_EARNING
        assert row.taxable_income == Decimal("14650.00")
        assert [w.code for w in result.warnings] == ["unclassified_component"]

    def test_non_taxable_earning_excluded_from_taxable(self, engine, tables, make_employee):
        adjustments = [
            Adjustment("E001", "Rice Subsidy", Decimal("2000"), ComponentCategory.NON_TAXABLE_DE_MINIMIS)
        ]
        row = engine.run(HALF_A, [make_employee()], adjustments, tables).rows[0]
        assert row.gross_pay == Decimal("17000.00")
        assert row.taxable_income == Decimal("14550.00")

    def test_duplicate_component_lines_are_summed(self, engine, tables, make_employee):
        adjustments = [
            Adjustment("E001", "Allowance", Decimal("300")),
            Adjustment("E001", " allowance ", Decimal("200")),
        ]
        row = engine.run(HALF_A, [make_employee()], adjustments, tables).rows[0]
        assert row.components["ALLOWANCE"] == Decimal("500.00")

    def test_explicit_withholding_line_added(self, engine, tables, make_employee):
        adjustments = [Adjustment("E001", "WTAX", Decimal("-100"))]
        row = engine.run(HALF_A, [make_employee()], adjustments, tables).rows[0]
        assert row.withholding_tax == Decimal("-719.95")

    def test_positive_withholding_is_flagged(self, engine, tables, make_employee):
        adjustments = [Adjustment("E001", "WTAX", Decimal("1000"))]
        result = engine.run(HALF_A, [make_employee()], adjustments, tables)

        assert result.rows[0].withholding_tax == Decimal("380.05")
        flagged = [w for w in result.warnings if w.code == "sign_violation"]
        assert len(flagged) == 1
        assert flagged[0].employee_code == "E001"
        assert "Withholding Tax is positive" in flagged[0].message

    def test_unknown_employee_aborts(self, engine, tables, make_employee):
        adjustments = [Adjustment("X999", "Allowance", Decimal("100"))]
        with pytest.raises(UnknownEmployeeError) as exc_info:
            engine.run(HALF_A, [make_employee()], adjustments, tables)
        assert exc_info.value.employee_code == "X999"


class TestEligibility:
    """Employees filtered out of a run."""

    def test_inactive_and_out_of_window_employees_skipped(self, config, tables, make_employee):
        employees = [
            make_employee("E001"),
            make_employee("E002", status="Resigned"),
            make_employee("E003", hire_date=date(2025, 2, 1)),
            make_employee("E004", separation_date=date(2024, 12, 31)),
        ]
        result = PayrollEngine(config).run(HALF_A, employees, [], tables)

        assert [r.employee_code for r in result.rows] == ["E001"]
        assert result.skipped == ["E002", "E003", "E004"]

    def test_payroll_group_filter(self, config, tables, make_employee):
        request = RunRequest(
            date_from=date(2025, 1, 1),
            date_to=date(2025, 1, 15),
            part=PeriodPart.A,
            payroll_groups=["Manila"],
        )
        employees = [make_employee("E001", payroll_group="manila"), make_employee("E002", payroll_group="Cebu")]
        result = PayrollEngine(config).run(request, employees, [], tables)
        assert [r.employee_code for r in result.rows] == ["E001"]

    def test_run_totals(self, config, tables, make_employee):
        result = PayrollEngine(config).run(HALF_A, [make_employee("E001"), make_employee("E002")], [], tables)
        assert result.total_employees == 2
        assert result.total_gross == Decimal("30000.00")
        assert result.total_net == sum(r.net_pay for r in result.rows)


class TestDailyBasis:
    """Daily-paid employees."""

    def test_attendance_days_drive_basic_pay(self, config, tables, make_employee):
        employee = make_employee(pay_basis=PayBasis.DAILY, base_pay=Decimal("600"))
        request = RunRequest(
            date_from=date(2025, 1, 1),
            date_to=date(2025, 1, 15),
            part=PeriodPart.A,
            attendance_days={"E001": Decimal("10")},
        )
        row = PayrollEngine(config).run(request, [employee], [], tables).rows[0]
        assert row.components["BASIC PAY"] == Decimal("6000.00")

    def test_missing_attendance_uses_monthly_equivalent(self, config, tables, make_employee):
        employee = make_employee(pay_basis=PayBasis.DAILY, base_pay=Decimal("600"))
        result = PayrollEngine(config).run(HALF_A, [employee], [], tables)

        assert result.rows[0].components["BASIC PAY"] == Decimal("6525.00")
        assert "attendance_missing" in [w.code for w in result.warnings]


class TestMonthlyRunner:
    """Full-month runs take every contribution at once."""

    def test_full_month(self, config, tables, make_employee):
        row = PayrollEngine(config).run(MONTH, [make_employee()], [], tables).rows[0]

        assert row.period_label == "2025-03-M"
        assert row.components["BASIC PAY"] == Decimal("30000.00")
        assert row.statutory.total_ee == Decimal("1850.00")
        assert row.statutory.sss_er_mc == Decimal("1800")
        assert row.statutory.ph_er == Decimal("750.00")
        assert row.statutory.pi_er == Decimal("200.00")
        assert row.taxable_income == Decimal("28150.00")
        assert row.withholding_tax == Decimal("-1097.55")
        assert row.net_pay == Decimal("27052.45")

    def test_nets_against_month_to_date(self, config, tables, make_employee):
        ledger = PriorTakenLedger(month_to_date={"E001": {"BASIC PAY": Decimal("10000")}})
        row = PayrollEngine(config).run(MONTH, [make_employee()], [], tables, ledger=ledger).rows[0]
        assert row.components["BASIC PAY"] == Decimal("20000.00")


class TestSpecialRunner:
    """Ad-hoc runs carry only their adjustment lines."""

    REQUEST = RunRequest(
        date_from=date(2025, 12, 1),
        date_to=date(2025, 12, 20),
        part=PeriodPart.SPECIAL,
        run_code="bonus",
    )

    def test_only_employees_with_lines_are_computed(self, sss_only_config, tables, make_employee):
        adjustments = [
            Adjustment("E001", "Performance Bonus", Decimal("5000"), ComponentCategory.TAXABLE_EARNING)
        ]
        result = PayrollEngine(sss_only_config).run(
            self.REQUEST, [make_employee("E001"), make_employee("E002")], adjustments, tables
        )
        row = result.rows[0]

        assert result.period_label == "2025-12-S-BONUS"
        assert [r.employee_code for r in result.rows] == ["E001"]
        assert "BASIC PAY" not in row.components
        assert row.gross_pay == Decimal("5000.00")
        assert row.statutory.sss_ee_mc == Decimal("450.00")
        assert row.taxable_income == Decimal("4550.00")

    def test_explicit_contribution_lines_replace_computed(self, sss_only_config, tables, make_employee):
        adjustments = [
            Adjustment("E001", "Performance Bonus", Decimal("5000"), ComponentCategory.TAXABLE_EARNING),
            Adjustment("E001", "SSS EE", Decimal("200")),
        ]
        row = PayrollEngine(sss_only_config).run(self.REQUEST, [make_employee()], adjustments, tables).rows[0]

        assert row.statutory.sss_ee_mc == Decimal("200.00")
        assert row.statutory.sss_er_mc == Decimal("0")
        assert row.taxable_income == Decimal("4800.00")
        assert row.net_pay == Decimal("4800.00")

    def test_explicit_lines_only_affect_their_employee(self, sss_only_config, tables, make_employee):
        bonus = ComponentCategory.TAXABLE_EARNING
        adjustments = [
            Adjustment("E001", "SSS EE", Decimal("100")),
            Adjustment("E001", "Performance Bonus", Decimal("5000"), bonus),
            Adjustment("E002", "Performance Bonus", Decimal("5000"), bonus),
        ]
        engine = PayrollEngine(sss_only_config)
        joint = engine.run(self.REQUEST, [make_employee("E001"), make_employee("E002")], adjustments, tables)
        alone = engine.run(self.REQUEST, [make_employee("E002")], adjustments[2:], tables)

        rows = {r.employee_code: r for r in joint.rows}
        assert rows["E001"].statutory.sss_ee_mc == Decimal("100.00")
        assert rows["E002"].statutory.sss_ee_mc == Decimal("450.00")
        assert rows["E002"].row_hash == alone.rows[0].row_hash


class TestRunRequest:
    """Structural validation of run requests."""

    def test_reversed_dates(self):
        with pytest.raises(InvalidRunRequestError):
            RunRequest(date_from=date(2025, 1, 15), date_to=date(2025, 1, 1), part=PeriodPart.A)

    def test_special_run_needs_code(self):
        with pytest.raises(InvalidRunRequestError):
            RunRequest(date_from=date(2025, 1, 1), date_to=date(2025, 1, 15), part=PeriodPart.SPECIAL)

    def test_part_parsed_from_string(self):
        request = RunRequest(date_from=date(2025, 1, 1), date_to=date(2025, 1, 15), part="a")
        assert request.part == PeriodPart.A

    def test_unknown_part(self):
        with pytest.raises(InvalidRunRequestError):
            RunRequest(date_from=date(2025, 1, 1), date_to=date(2025, 1, 15), part="Z")
