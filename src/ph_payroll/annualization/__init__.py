"""Annual tax reconciliation, mid-year projection and final pay."""

from ph_payroll.annualization.final import AnnualSummary, Annualizer, PreviousEmployerBreakdown
from ph_payroll.annualization.final_pay import FinalPayCalculator, FinalPayResult
from ph_payroll.annualization.projection import PreAnnualization, PreAnnualizer
from ph_payroll.annualization.rollup import YtdRollup, rollup_history

__all__ = [
    "AnnualSummary",
    "Annualizer",
    "FinalPayCalculator",
    "FinalPayResult",
    "PreAnnualization",
    "PreAnnualizer",
    "PreviousEmployerBreakdown",
    "YtdRollup",
    "rollup_history",
]
