"""Property-based tests for period splitting and withholding invariants.

Hypothesis generates cent amounts across the whole bracket table and checks
that the split, true-up, benefit ceiling and minimum wage rules hold for every
one of them, not only the worked examples in the unit tests.
"""

from datetime import date
from decimal import Decimal

from hypothesis import given, settings, strategies as st

from ph_payroll.calculators import helpers as h
from ph_payroll.calculators.tax_calculator import TaxCalculator
from ph_payroll.calculators.types import ComponentMode, EmployeeRecord, PayBasis, PeriodPart, YtdTotals
from ph_payroll.config import PayrollConfig

from tests.conftest import train_brackets

CONFIG = PayrollConfig()
CALCULATOR = TaxCalculator(CONFIG, train_brackets())
CEILING = CONFIG.other_benefits_ceiling


def cents(min_value: str = "0", max_value: str = "1000000"):
    return st.decimals(
        min_value=Decimal(min_value),
        max_value=Decimal(max_value),
        places=2,
        allow_nan=False,
        allow_infinity=False,
    )


def employee(**overrides) -> EmployeeRecord:
    values = {
        "employee_code": "E001",
        "name": "Employee E001",
        "pay_basis": PayBasis.MONTHLY,
        "base_pay": Decimal("30000"),
    }
    values.update(overrides)
    return EmployeeRecord(**values)


class TestSplitConservation:
    """Half A and Half B portions of a split component."""

    @given(monthly=cents())
    @settings(max_examples=200)
    def test_halves_sum_to_monthly_amount(self, monthly: Decimal):
        half_a = h.period_portion(monthly, ComponentMode.SPLIT, PeriodPart.A)
        half_b = h.period_portion(monthly, ComponentMode.SPLIT, PeriodPart.B)
        assert half_a + half_b == monthly

    @given(monthly=cents())
    @settings(max_examples=100)
    def test_halves_differ_by_at_most_a_cent(self, monthly: Decimal):
        half_a = h.period_portion(monthly, ComponentMode.SPLIT, PeriodPart.A)
        half_b = h.period_portion(monthly, ComponentMode.SPLIT, PeriodPart.B)
        assert abs(half_a - half_b) <= Decimal("0.01")


class TestHalfBTrueUp:
    """Half B withholding against the monthly scale."""

    @given(a=cents(max_value="500000"), b=cents(max_value="500000"))
    @settings(max_examples=200)
    def test_half_b_never_negative(self, a: Decimal, b: Decimal):
        tax_a = CALCULATOR.periodic_tax(a, PeriodPart.A)
        tax_b = CALCULATOR.periodic_tax(b, PeriodPart.B, prior_a_taxable=a, prior_a_tax=tax_a)
        assert tax_b >= 0

    @given(a=cents(max_value="500000"), b=cents(max_value="500000"))
    @settings(max_examples=200)
    def test_halves_sum_to_monthly_bracket_tax(self, a: Decimal, b: Decimal):
        tax_a = CALCULATOR.periodic_tax(a, PeriodPart.A)
        tax_b = CALCULATOR.periodic_tax(b, PeriodPart.B, prior_a_taxable=a, prior_a_tax=tax_a)
        monthly = CALCULATOR.monthly_tax(a + b)
        if tax_a <= monthly:
            assert tax_a + tax_b == monthly
        else:
            assert tax_b == 0

    @given(a=cents(max_value="500000"), b=cents(max_value="500000"))
    @settings(max_examples=100)
    def test_signed_withholding_matches_periodic_tax(self, a: Decimal, b: Decimal):
        tax_a = CALCULATOR.periodic_tax(a, PeriodPart.A)
        result = CALCULATOR.compute_withholding(
            employee(), b, PeriodPart.B, date(2025, 1, 31), prior_a_taxable=a, prior_a_tax=tax_a
        )
        assert result.tax == 0 - CALCULATOR.periodic_tax(b, PeriodPart.B, a, tax_a)
        assert result.tax <= 0


class TestOtherBenefitsCeiling:
    """Taxable part of 13th month and other benefits."""

    @given(ytd=cents(max_value=str(CEILING - Decimal("0.01"))), payment=cents(max_value="500000"))
    @settings(max_examples=200)
    def test_excess_over_ceiling_is_taxable(self, ytd: Decimal, payment: Decimal):
        taxable = CALCULATOR.taxable_other_benefits(payment, ytd)
        assert taxable == max(Decimal("0"), ytd + payment - CEILING)

    @given(ytd=cents(min_value=str(CEILING), max_value="1000000"), payment=cents(max_value="500000"))
    @settings(max_examples=100)
    def test_whole_payment_taxable_once_ceiling_reached(self, ytd: Decimal, payment: Decimal):
        assert CALCULATOR.taxable_other_benefits(payment, ytd) == payment


class TestMinimumWageExemption:
    """Minimum wage earners never have tax withheld."""

    @given(
        taxable=cents(max_value="10000000"),
        part=st.sampled_from([PeriodPart.A, PeriodPart.B, PeriodPart.MONTHLY, PeriodPart.SPECIAL]),
        other_benefits=cents(max_value="500000"),
    )
    @settings(max_examples=200)
    def test_tax_is_zero(self, taxable: Decimal, part: PeriodPart, other_benefits: Decimal):
        result = CALCULATOR.compute_withholding(
            employee(is_mwe=True),
            taxable,
            part,
            date(2025, 6, 30),
            other_benefits=other_benefits,
            ytd=YtdTotals(other_benefits=Decimal("80000")),
        )
        assert result.tax == 0
        assert result.warnings == []
