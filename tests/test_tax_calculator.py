"""Unit tests for TaxCalculator against the TRAIN withholding table."""

from datetime import date
from decimal import Decimal

import pytest

from ph_payroll.calculators.tax_calculator import TaxCalculator
from ph_payroll.calculators.types import PayFrequency, PeriodPart, YtdTotals
from ph_payroll.config import PayrollConfig


@pytest.fixture
def calculator(config, tax_brackets):
    return TaxCalculator(config, tax_brackets)


class TestBracketLookup:
    """Progressive tax at each scale."""

    def test_semi_monthly(self, calculator):
        assert calculator.semi_monthly_tax(Decimal("20000")) == Decimal("1604.10")

    def test_monthly(self, calculator):
        assert calculator.monthly_tax(Decimal("30000")) == Decimal("1375.05")

    def test_annual(self, calculator):
        assert calculator.annual_tax(Decimal("500000")) == Decimal("42500.00")

    def test_exempt_bracket(self, calculator):
        assert calculator.semi_monthly_tax(Decimal("10000")) == Decimal("0.00")

    def test_zero_and_negative_income(self, calculator):
        assert calculator.monthly_tax(Decimal("0")) == Decimal("0")
        assert calculator.monthly_tax(Decimal("-100")) == Decimal("0")

    def test_top_bracket_has_no_cap(self, calculator):
        assert calculator.annual_tax(Decimal("9000000")) == Decimal("2552500.00")

    def test_marginal_rate(self, calculator):
        assert calculator.annual_marginal_rate(Decimal("730000")) == Decimal("0.20")
        assert calculator.annual_marginal_rate(Decimal("0")) == Decimal("0")


class TestPeriodicTax:
    """Half A, Half B true-up and full-month withholding."""

    def test_half_a_uses_semi_monthly_scale(self, calculator):
        assert calculator.periodic_tax(Decimal("20000"), PeriodPart.A) == Decimal("1604.10")

    def test_half_b_trues_up_on_monthly_scale(self, calculator):
        tax = calculator.periodic_tax(
            Decimal("20000"), PeriodPart.B, prior_a_taxable=Decimal("20000"), prior_a_tax=Decimal("-1604.10")
        )
        assert tax == Decimal("1604.30")

    def test_half_b_never_negative(self, calculator):
        """Half A overwithholding is not refunded by Half B."""
        tax = calculator.periodic_tax(
            Decimal("1000"), PeriodPart.B, prior_a_taxable=Decimal("20000"), prior_a_tax=Decimal("5000")
        )
        assert tax == Decimal("0")

    def test_monthly_part(self, calculator):
        assert calculator.periodic_tax(Decimal("30000"), PeriodPart.MONTHLY) == Decimal("1375.05")

    def test_special_run_follows_pay_frequency(self, tax_brackets):
        semi = TaxCalculator(PayrollConfig(), tax_brackets)
        monthly = TaxCalculator(PayrollConfig(pay_frequency=PayFrequency.MONTHLY), tax_brackets)
        assert semi.periodic_tax(Decimal("20000"), PeriodPart.SPECIAL) == Decimal("1604.10")
        assert monthly.periodic_tax(Decimal("30000"), PeriodPart.SPECIAL) == Decimal("1375.05")


class TestWithholding:
    """Employee-level withholding, including the lump-sum benefit path."""

    def test_regular_withholding_is_negative(self, calculator, make_employee):
        result = calculator.compute_withholding(
            make_employee(), Decimal("30000"), PeriodPart.MONTHLY, date(2025, 3, 31)
        )
        assert result.tax == Decimal("-1375.05")

    def test_minimum_wage_earner_pays_nothing(self, calculator, make_employee):
        result = calculator.compute_withholding(
            make_employee(is_mwe=True), Decimal("30000"), PeriodPart.MONTHLY, date(2025, 3, 31)
        )
        assert result.tax == Decimal("0")

    def test_consultant_flat_rate(self, calculator, make_employee):
        employee = make_employee(contract_type="Freelance Consultant", consultant_tax_rate=Decimal("0.10"))
        result = calculator.compute_withholding(employee, Decimal("10000"), PeriodPart.A, date(2025, 1, 15))
        assert result.tax == Decimal("-1000.00")

    def test_empty_table_warns(self, config, make_employee):
        result = TaxCalculator(config, []).compute_withholding(
            make_employee(), Decimal("30000"), PeriodPart.MONTHLY, date(2025, 3, 31)
        )
        assert result.tax == Decimal("0")
        assert [w.code for w in result.warnings] == ["bir_table_empty"]

    def test_income_above_capped_table_warns(self, config, tax_brackets, make_employee):
        calculator = TaxCalculator(config, tax_brackets[:-1])
        result = calculator.compute_withholding(
            make_employee(), Decimal("700000"), PeriodPart.MONTHLY, date(2025, 3, 31)
        )
        assert result.tax == Decimal("0")
        assert [w.code for w in result.warnings] == ["bir_no_bracket"]

    def test_half_b_checks_combined_income(self, config, tax_brackets, make_employee):
        calculator = TaxCalculator(config, tax_brackets[:-1])
        result = calculator.compute_withholding(
            make_employee(),
            Decimal("400000"),
            PeriodPart.B,
            date(2025, 1, 31),
            prior_a_taxable=Decimal("300000"),
            prior_a_tax=Decimal("80770.80"),
        )
        assert result.tax == Decimal("0")
        assert [w.code for w in result.warnings] == ["bir_no_bracket"]

    def test_income_inside_table_has_no_warning(self, calculator, make_employee):
        result = calculator.compute_withholding(
            make_employee(), Decimal("30000"), PeriodPart.MONTHLY, date(2025, 3, 31)
        )
        assert result.warnings == []

    def test_taxable_other_benefits_above_ceiling(self, calculator):
        assert calculator.taxable_other_benefits(Decimal("20000"), Decimal("80000")) == Decimal("10000")
        assert calculator.taxable_other_benefits(Decimal("5000"), Decimal("0")) == Decimal("0")
        assert calculator.taxable_other_benefits(Decimal("-20000"), Decimal("80000")) == Decimal("-10000")

    def test_projection_without_history(self, calculator):
        projected = calculator.estimate_annual_projected_taxable(Decimal("15000"), YtdTotals(), date(2025, 7, 15))
        assert projected == Decimal("180000.00")

    def test_projection_averages_completed_cutoffs(self, calculator):
        ytd = YtdTotals(taxable_income=Decimal("30000"), completed_cutoffs=2)
        projected = calculator.estimate_annual_projected_taxable(Decimal("15000"), ytd, date(2025, 2, 15))
        assert projected == Decimal("360000.00")

    def test_lump_sum_excess_taxed_at_marginal_rate(self, calculator, make_employee):
        """Excess over the 13th-month ceiling is taxed at the projected annual marginal rate."""
        result = calculator.compute_withholding(
            make_employee(),
            Decimal("40000"),
            PeriodPart.MONTHLY,
            date(2025, 1, 31),
            other_benefits=Decimal("100000"),
        )
        assert result.taxable_other_benefits == Decimal("10000")
        assert result.marginal_rate == Decimal("0.20")
        assert result.tax == Decimal("-3375.05")
