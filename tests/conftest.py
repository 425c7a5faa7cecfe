"""Pytest configuration and fixtures for ghgcalc tests.

Provides common fixtures for testing.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from uuid import uuid4

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from ghgcalc.config import reset_config
from ghgcalc.db.models import Base
from ghgcalc.models import (
    ActivityEntry,
    EmissionFactor,
    FleetActivity,
    FootprintScopeBreakdown,
    FootprintStatus,
    ProductFootprint,
    ProductionLog,
    Scope,
)


@pytest.fixture
def test_org_id() -> str:
    """Test organization ID."""
    return "test-org"


@pytest.fixture
def grid_factor() -> EmissionFactor:
    return EmissionFactor(
        factor_id="defra-2024-electricity",
        activity_type="electricity_grid",
        value=Decimal("0.207"),
        unit="kWh",
        scope=Scope.SCOPE_2,
        source="DEFRA 2024",
    )


@pytest.fixture
def gas_factor() -> EmissionFactor:
    """Natural gas factor expressed per kWh (gross CV)."""
    return EmissionFactor(
        factor_id="defra-2024-natural-gas",
        activity_type="natural_gas",
        value=Decimal("0.18"),
        unit="kWh",
        scope=Scope.SCOPE_1,
        source="DEFRA 2024",
    )


@pytest.fixture
def make_entry(test_org_id: str):
    """Factory for activity entries inside calendar year 2024."""

    def _make(
        activity_type: str = "natural_gas",
        quantity: str = "100",
        unit: str = "kWh",
        scope: Scope = Scope.SCOPE_1,
    ) -> ActivityEntry:
        return ActivityEntry(
            org_id=test_org_id,
            activity_type=activity_type,
            quantity=Decimal(quantity),
            unit=unit,
            reporting_period_start=date(2024, 1, 1),
            reporting_period_end=date(2024, 3, 31),
            scope=scope,
        )

    return _make


@pytest.fixture
def make_fleet(test_org_id: str):
    def _make(tonnes: str, scope: Scope = Scope.SCOPE_1) -> FleetActivity:
        return FleetActivity(
            org_id=test_org_id,
            emissions_tco2e=Decimal(tonnes),
            scope=scope,
            activity_date=date(2024, 6, 1),
            reporting_period_start=date(2024, 6, 1),
            reporting_period_end=date(2024, 6, 30),
        )

    return _make


@pytest.fixture
def product_footprint(test_org_id: str) -> ProductFootprint:
    """Completed footprint: 15 kg per unit of which 10 kg is Scope 3."""
    return ProductFootprint(
        org_id=test_org_id,
        product_id=uuid4(),
        status=FootprintStatus.COMPLETED,
        total_ghg_emissions=Decimal("15"),
        breakdown=FootprintScopeBreakdown(
            scope1=Decimal("2"), scope2=Decimal("3"), scope3=Decimal("10")
        ),
        reference_year=2024,
        updated_at=datetime(2024, 5, 1, 12, 0),
    )


@pytest.fixture
def make_log(test_org_id: str):
    def _make(product_id, units: int | None, production_date: date = date(2024, 7, 1)):
        return ProductionLog(
            org_id=test_org_id,
            product_id=product_id,
            production_date=production_date,
            units_produced=units,
        )

    return _make


@pytest_asyncio.fixture()
async def session_factory(tmp_path) -> async_sessionmaker[AsyncSession]:
    """File-backed SQLite database shared by concurrent sessions."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'ghgcalc.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    try:
        yield factory
    finally:
        await engine.dispose()


@pytest_asyncio.fixture()
async def db_session(session_factory) -> AsyncSession:
    session = session_factory()
    try:
        yield session
    finally:
        await session.close()


@pytest.fixture(autouse=True)
def setup_test_env(monkeypatch):
    """Set up test environment variables."""
    monkeypatch.setenv("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
    monkeypatch.setenv("DEFAULT_ORG_ID", "test-org")
    monkeypatch.setenv("LOG_LEVEL", "DEBUG")
    reset_config()
    yield
    reset_config()
