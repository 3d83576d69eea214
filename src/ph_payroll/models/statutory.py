"""Versioned statutory tables: withholding tax brackets and SSS brackets."""

from __future__ import annotations

from datetime import date
from decimal import Decimal

from sqlalchemy import Boolean, Date, ForeignKey, Integer, Numeric, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ph_payroll.calculators.types import BracketScale, SssBracket, TaxBracket
from ph_payroll.models.base import Base, TimestampMixin

# Stored caps at or above this value mean "no upper bound"
OPEN_CAP = Decimal("900000000000")


def _cap(value: Decimal | None) -> Decimal | None:
    if value is None or value >= OPEN_CAP:
        return None
    return value


class StatutoryVersion(Base, TimestampMixin):
    """One published (or draft) set of statutory tables and its validity window."""

    __tablename__ = "statutory_version"

    version_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="DRAFT")
    effective_from: Mapped[date] = mapped_column(Date, nullable=False)
    effective_to: Mapped[date | None] = mapped_column(Date, nullable=True)
    has_tax_table: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    has_sss_table: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    tax_rows: Mapped[list[BirBracketRow]] = relationship(
        back_populates="version",
        cascade="all, delete-orphan",
        order_by="BirBracketRow.row_order",
    )
    sss_rows: Mapped[list[SssBracketRow]] = relationship(
        back_populates="version",
        cascade="all, delete-orphan",
        order_by="SssBracketRow.comp_min",
    )


class BirBracketRow(Base):
    """One withholding-tax bracket at semi-monthly, monthly and annual scale."""

    __tablename__ = "bir_bracket"

    bir_bracket_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    version_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("statutory_version.version_id", ondelete="CASCADE"),
        nullable=False,
    )
    row_order: Mapped[int] = mapped_column(Integer, nullable=False)

    semi_threshold: Mapped[Decimal] = mapped_column(Numeric(18, 4), nullable=False)
    semi_cap: Mapped[Decimal | None] = mapped_column(Numeric(18, 4), nullable=True)
    semi_fixed: Mapped[Decimal] = mapped_column(Numeric(18, 4), nullable=False)
    semi_rate: Mapped[Decimal] = mapped_column(Numeric(7, 4), nullable=False)
    monthly_threshold: Mapped[Decimal] = mapped_column(Numeric(18, 4), nullable=False)
    monthly_cap: Mapped[Decimal | None] = mapped_column(Numeric(18, 4), nullable=True)
    monthly_fixed: Mapped[Decimal] = mapped_column(Numeric(18, 4), nullable=False)
    monthly_rate: Mapped[Decimal] = mapped_column(Numeric(7, 4), nullable=False)
    annual_threshold: Mapped[Decimal] = mapped_column(Numeric(18, 4), nullable=False)
    annual_cap: Mapped[Decimal | None] = mapped_column(Numeric(18, 4), nullable=True)
    annual_fixed: Mapped[Decimal] = mapped_column(Numeric(18, 4), nullable=False)
    annual_rate: Mapped[Decimal] = mapped_column(Numeric(7, 4), nullable=False)

    __table_args__ = (
        UniqueConstraint("version_id", "row_order", name="bir_bracket_version_order_unique"),
    )

    version: Mapped[StatutoryVersion] = relationship(back_populates="tax_rows")

    def to_bracket(self) -> TaxBracket:
        return TaxBracket(
            semi_monthly=BracketScale(
                Decimal(self.semi_threshold), _cap(self.semi_cap), Decimal(self.semi_fixed), Decimal(self.semi_rate)
            ),
            monthly=BracketScale(
                Decimal(self.monthly_threshold),
                _cap(self.monthly_cap),
                Decimal(self.monthly_fixed),
                Decimal(self.monthly_rate),
            ),
            annual=BracketScale(
                Decimal(self.annual_threshold),
                _cap(self.annual_cap),
                Decimal(self.annual_fixed),
                Decimal(self.annual_rate),
            ),
        )

    @classmethod
    def from_bracket(cls, bracket: TaxBracket, row_order: int) -> BirBracketRow:
        return cls(
            row_order=row_order,
            semi_threshold=bracket.semi_monthly.threshold,
            semi_cap=bracket.semi_monthly.cap,
            semi_fixed=bracket.semi_monthly.fixed,
            semi_rate=bracket.semi_monthly.rate,
            monthly_threshold=bracket.monthly.threshold,
            monthly_cap=bracket.monthly.cap,
            monthly_fixed=bracket.monthly.fixed,
            monthly_rate=bracket.monthly.rate,
            annual_threshold=bracket.annual.threshold,
            annual_cap=bracket.annual.cap,
            annual_fixed=bracket.annual.fixed,
            annual_rate=bracket.annual.rate,
        )


class SssBracketRow(Base):
    """One SSS compensation range and the contributions it maps to."""

    __tablename__ = "sss_bracket"

    sss_bracket_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    version_id: Mapped[str] = mapped_column(
        String(64),
        ForeignKey("statutory_version.version_id", ondelete="CASCADE"),
        nullable=False,
    )
    comp_min: Mapped[Decimal] = mapped_column(Numeric(18, 4), nullable=False)
    comp_max: Mapped[Decimal | None] = mapped_column(Numeric(18, 4), nullable=True)
    ee_mc: Mapped[Decimal] = mapped_column(Numeric(12, 4), nullable=False)
    ee_mpf: Mapped[Decimal] = mapped_column(Numeric(12, 4), nullable=False, default=Decimal("0"))
    er_mc: Mapped[Decimal] = mapped_column(Numeric(12, 4), nullable=False)
    er_mpf: Mapped[Decimal] = mapped_column(Numeric(12, 4), nullable=False, default=Decimal("0"))
    ec: Mapped[Decimal] = mapped_column(Numeric(12, 4), nullable=False, default=Decimal("0"))

    version: Mapped[StatutoryVersion] = relationship(back_populates="sss_rows")

    def to_bracket(self) -> SssBracket:
        return SssBracket(
            comp_min=Decimal(self.comp_min),
            comp_max=_cap(self.comp_max),
            ee_mc=Decimal(self.ee_mc),
            ee_mpf=Decimal(self.ee_mpf),
            er_mc=Decimal(self.er_mc),
            er_mpf=Decimal(self.er_mpf),
            ec=Decimal(self.ec),
        )

    @classmethod
    def from_bracket(cls, bracket: SssBracket) -> SssBracketRow:
        return cls(
            comp_min=bracket.comp_min,
            comp_max=bracket.comp_max,
            ee_mc=bracket.ee_mc,
            ee_mpf=bracket.ee_mpf,
            er_mc=bracket.er_mc,
            er_mpf=bracket.er_mpf,
            ec=bracket.ec,
        )
