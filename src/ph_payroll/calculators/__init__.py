"""Payroll computation engine."""

from ph_payroll.calculators.component_map import ComponentClassifier
from ph_payroll.calculators.engine import PayrollEngine, StatutoryVersionNotFoundError
from ph_payroll.calculators.rate_resolver import RateResolver
from ph_payroll.calculators.row_builder import RowBuilder
from ph_payroll.calculators.runners import MissingStatutoryTableError, RunCancelledError
from ph_payroll.calculators.statutory import StatutoryCalculator
from ph_payroll.calculators.tax_calculator import TaxCalculator

__all__ = [
    "ComponentClassifier",
    "MissingStatutoryTableError",
    "PayrollEngine",
    "RateResolver",
    "RowBuilder",
    "RunCancelledError",
    "StatutoryCalculator",
    "StatutoryVersionNotFoundError",
    "TaxCalculator",
]
