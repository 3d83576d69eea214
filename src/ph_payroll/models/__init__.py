"""SQLAlchemy ORM models."""

from ph_payroll.models.base import Base, TimestampMixin
from ph_payroll.models.history import PayrollHistoryRow
from ph_payroll.models.statutory import OPEN_CAP, BirBracketRow, SssBracketRow, StatutoryVersion

__all__ = [
    "Base",
    "TimestampMixin",
    "OPEN_CAP",
    "BirBracketRow",
    "PayrollHistoryRow",
    "SssBracketRow",
    "StatutoryVersion",
]
