"""Persistence-backed services around the engine."""

from ph_payroll.services.history_service import HistoryRecorder
from ph_payroll.services.ledger_service import LedgerBuilder
from ph_payroll.services.payroll_service import PayrollService
from ph_payroll.services.statutory_versions import StatutoryVersionResolver

__all__ = [
    "HistoryRecorder",
    "LedgerBuilder",
    "PayrollService",
    "StatutoryVersionResolver",
]
