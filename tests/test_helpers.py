"""Unit tests for rounding, labels and apportionment helpers."""

from datetime import date
from decimal import Decimal

import pytest

from ph_payroll.calculators import helpers as h
from ph_payroll.calculators.types import ComponentMode, PeriodPart


class TestRounding:
    """Half-up rounding to cents."""

    def test_half_up(self):
        assert h.r2(Decimal("0.005")) == Decimal("0.01")
        assert h.r2(Decimal("2.345")) == Decimal("2.35")
        assert h.r2(Decimal("-2.345")) == Decimal("-2.35")


class TestPeriodLabels:
    """Period labels and anchor months."""

    def test_half_labels(self):
        assert h.period_label(date(2025, 1, 1), date(2025, 1, 15), PeriodPart.A) == "2025-01-A"
        assert h.period_label(date(2025, 1, 16), date(2025, 1, 31), PeriodPart.B) == "2025-01-B"
        assert h.period_label(date(2025, 3, 1), date(2025, 3, 31), PeriodPart.MONTHLY) == "2025-03-M"

    def test_half_b_crossing_month_uses_start_month(self):
        label = h.period_label(date(2025, 1, 26), date(2025, 2, 10), PeriodPart.B)
        assert label == "2025-01-B"

    def test_special_label_sanitizes_run_code(self):
        label = h.period_label(date(2025, 12, 1), date(2025, 12, 20), PeriodPart.SPECIAL, "13th month!")
        assert label == "2025-12-S-13THMONTH"

    def test_final_pay_and_month_labels(self):
        assert h.final_pay_label(date(2025, 6, 20)) == "2025-06-FP"
        assert h.payroll_month_label(date(2025, 6, 20)) == "June 2025"


class TestPeriodPortion:
    """Apportionment of monthly amounts across halves."""

    @pytest.mark.parametrize("monthly", ["30000", "1000.01", "0.03", "12345.67"])
    def test_split_halves_sum_to_monthly(self, monthly):
        amount = Decimal(monthly)
        a = h.period_portion(amount, ComponentMode.SPLIT, PeriodPart.A)
        b = h.period_portion(amount, ComponentMode.SPLIT, PeriodPart.B)
        assert a + b == h.r2(amount)

    def test_split_half_a_rounds_half_up(self):
        assert h.period_portion(Decimal("1000.01"), ComponentMode.SPLIT, PeriodPart.A) == Decimal("500.01")
        assert h.period_portion(Decimal("1000.01"), ComponentMode.SPLIT, PeriodPart.B) == Decimal("500.00")

    def test_first_and_second_modes(self):
        assert h.period_portion(Decimal("800"), ComponentMode.FIRST, PeriodPart.A) == Decimal("800.00")
        assert h.period_portion(Decimal("800"), ComponentMode.FIRST, PeriodPart.B) == Decimal("0")
        assert h.period_portion(Decimal("800"), ComponentMode.SECOND, PeriodPart.A) == Decimal("0")
        assert h.period_portion(Decimal("800"), ComponentMode.SECOND, PeriodPart.B) == Decimal("800.00")

    def test_monthly_and_special_take_full_amount(self):
        assert h.period_portion(Decimal("800"), ComponentMode.SPLIT, PeriodPart.MONTHLY) == Decimal("800.00")
        assert h.period_portion(Decimal("800"), ComponentMode.SPLIT, PeriodPart.SPECIAL) == Decimal("800.00")

    def test_signed_for_period_nets_prior(self):
        assert h.signed_for_period(Decimal("15000"), Decimal("15000")) == Decimal("0")
        assert h.signed_for_period(Decimal("15000"), Decimal("16000")) == Decimal("-1000.00")


class TestNamePredicates:
    """System aliases and column predicates."""

    def test_system_aliases(self):
        assert h.canonical_system_name("sss ee") == h.SSS_EE_MC
        assert h.canonical_system_name("  HDMF   EE ") == h.PAGIBIG_EE
        assert h.canonical_system_name("WTAX") == h.WITHHOLDING_TAX
        assert h.canonical_system_name("Rice Allowance") is None

    def test_philhealth_base_excludes_unworked_time(self):
        from ph_payroll.calculators.types import ComponentCategory

        basic = ComponentCategory.BASIC_PAY_RELATED
        assert h.is_sss_base_component("ABSENCES", basic)
        assert not h.is_philhealth_base_component("ABSENCES", basic)
        assert h.is_philhealth_base_component("SALARY ADJUSTMENT", None)

    def test_meta_and_employer_columns(self):
        assert h.is_history_meta_column("Tracking: Department")
        assert h.is_history_meta_column("employee id")
        assert h.is_employer_contribution_column("SSS ER MC")
        assert h.is_employer_contribution_column("SSS EC")
        assert not h.is_employer_contribution_column("SSS EE MC")
