"""Pytest fixtures for payroll engine tests."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import AsyncGenerator, Callable

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from ph_payroll.calculators.types import (
    BracketScale,
    EmployeeRecord,
    PayBasis,
    SssBracket,
    StatutoryTables,
    TaxBracket,
)
from ph_payroll.config import PayrollConfig
from ph_payroll.models import Base

# In-memory SQLite shared by every connection of one engine
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


def D(value: str | int) -> Decimal:
    return Decimal(str(value))


def _row(threshold: str, cap: str | None, fixed: str, rate: str) -> BracketScale:
    return BracketScale(D(threshold), D(cap) if cap is not None else None, D(fixed), D(rate))


def train_brackets() -> list[TaxBracket]:
    """Withholding table effective 2023 at the three scales."""
    semi = [
        ("0", "10417", "0", "0"),
        ("10417", "16667", "0", "0.15"),
        ("16667", "33333", "937.50", "0.20"),
        ("33333", "83333", "4270.70", "0.25"),
        ("83333", "333333", "16770.70", "0.30"),
        ("333333", None, "91770.70", "0.35"),
    ]
    monthly = [
        ("0", "20833", "0", "0"),
        ("20833", "33333", "0", "0.15"),
        ("33333", "66667", "1875", "0.20"),
        ("66667", "166667", "8541.80", "0.25"),
        ("166667", "666667", "33541.80", "0.30"),
        ("666667", None, "183541.80", "0.35"),
    ]
    annual = [
        ("0", "250000", "0", "0"),
        ("250000", "400000", "0", "0.15"),
        ("400000", "800000", "22500", "0.20"),
        ("800000", "2000000", "102500", "0.25"),
        ("2000000", "8000000", "402500", "0.30"),
        ("8000000", None, "2202500", "0.35"),
    ]
    return [
        TaxBracket(_row(*s), _row(*m), _row(*a))
        for s, m, a in zip(semi, monthly, annual)
    ]


def sss_brackets() -> list[SssBracket]:
    """A sparse SSS table: one low row and one row around 30,000."""
    return [
        SssBracket(D("4000"), D("4249.99"), D("180"), D("0"), D("380"), D("0"), D("10")),
        SssBracket(D("29750"), D("30249.99"), D("900"), D("0"), D("1800"), D("0"), D("30")),
    ]


@pytest.fixture
def config() -> PayrollConfig:
    """Default tenant configuration."""
    return PayrollConfig()


@pytest.fixture
def sss_only_config() -> PayrollConfig:
    """Configuration with PhilHealth and Pag-IBIG switched off."""
    return PayrollConfig(philhealth_rate=D("0"), pagibig_ee_rate=D("0"), pagibig_er_rate=D("0"))


@pytest.fixture
def tax_brackets() -> list[TaxBracket]:
    return train_brackets()


@pytest.fixture
def tables() -> StatutoryTables:
    """Published version covering 2025 with both tables."""
    return StatutoryTables(
        version_id="PH-2025",
        status="PUBLISHED",
        effective_from=date(2025, 1, 1),
        effective_to=date(2025, 12, 31),
        tax_brackets=train_brackets(),
        sss_brackets=sss_brackets(),
    )


@pytest.fixture
def make_employee() -> Callable[..., EmployeeRecord]:
    """Factory for monthly-paid active employees."""

    def factory(code: str = "E001", base_pay: str = "30000", **overrides) -> EmployeeRecord:
        values = {
            "employee_code": code,
            "name": f"Employee {code}",
            "pay_basis": PayBasis.MONTHLY,
            "base_pay": D(base_pay),
        }
        values.update(overrides)
        return EmployeeRecord(**values)

    return factory


@pytest_asyncio.fixture
async def db_engine():
    """Fresh in-memory database per test."""
    engine = create_async_engine(TEST_DATABASE_URL, echo=False, poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def session(db_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create a database session for each test."""
    session_factory = async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )
    async with session_factory() as session:
        yield session
        await session.rollback()
