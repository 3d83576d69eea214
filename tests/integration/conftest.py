"""Integration test fixtures: API client over an in-memory database."""

import dataclasses
import json
from collections.abc import AsyncGenerator
from typing import Any

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ph_payroll.api.app import create_app
from ph_payroll.api.dependencies import get_db_session


def to_json(value: Any) -> Any:
    """Plain JSON view of an engine dataclass, decimals and dates as strings."""
    return json.loads(json.dumps(dataclasses.asdict(value), default=str))


@pytest.fixture
def tables_json(tables) -> dict[str, Any]:
    return to_json(tables)


@pytest.fixture
def employee_json() -> dict[str, Any]:
    return {"employee_code": "E001", "name": "Juan Dela Cruz", "base_pay": "30000"}


@pytest.fixture
def sss_only_json() -> dict[str, str]:
    """Config payload with PhilHealth and Pag-IBIG switched off."""
    return {"philhealth_rate": "0", "pagibig_ee_rate": "0", "pagibig_er_rate": "0"}


@pytest_asyncio.fixture
async def client(db_engine) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client whose requests use the test database."""
    factory = async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)

    async def override_session() -> AsyncGenerator[AsyncSession, None]:
        async with factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app = create_app()
    app.dependency_overrides[get_db_session] = override_session
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac
