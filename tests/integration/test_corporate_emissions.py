"""Integration tests for corporate emissions over a SQLite database.

Seeds source tables, then runs the full calculator: concurrent source reads,
aggregation and composition.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from ghgcalc.config import AccountingConfig
from ghgcalc.db.models import (
    ActivityEntryModel,
    CorporateOverheadModel,
    CorporateReportModel,
    EmissionFactorModel,
    FacilityModel,
    FleetActivityModel,
    ProductFootprintModel,
    ProductionLogModel,
)
from ghgcalc.errors import SourceUnavailableError
from ghgcalc.models import SCOPE3_BUCKETS
from ghgcalc.reporting.composer import CorporateEmissionsCalculator, calculate_corporate_emissions

ORG = "acme-brewing"


async def _seed_facility_entry(session: AsyncSession, quantity: str = "100") -> None:
    facility = FacilityModel(id=uuid4(), org_id=ORG, name="Brewhouse")
    session.add(facility)
    session.add(
        EmissionFactorModel(
            factor_id="boiler-gas",
            activity_type="natural_gas",
            value=Decimal("2.5"),
            unit="kWh",
            scope="Scope 1",
        )
    )
    await session.flush()
    session.add(
        ActivityEntryModel(
            org_id=ORG,
            facility_id=facility.id,
            activity_type="natural_gas",
            quantity=Decimal(quantity),
            unit="kWh",
            scope="Scope 1",
            reporting_period_start=date(2024, 1, 1),
            reporting_period_end=date(2024, 1, 31),
        )
    )
    await session.commit()


def _fleet(tonnes: str, scope: str = "Scope 1", start: date = date(2024, 2, 1)) -> FleetActivityModel:
    return FleetActivityModel(
        org_id=ORG,
        emissions_tco2e=Decimal(tonnes),
        scope=scope,
        activity_date=start,
        reporting_period_start=start,
        reporting_period_end=start,
    )


@pytest.mark.asyncio
async def test_empty_organization(session_factory):
    result = await calculate_corporate_emissions(session_factory, "nobody", 2024)

    assert result.total == Decimal("0")
    assert result.has_data is False
    dumped = result.scope3.model_dump()
    for key in SCOPE3_BUCKETS + ("waste", "logistics", "marketing", "total"):
        assert dumped[key] == Decimal("0")


@pytest.mark.asyncio
async def test_facility_then_fleet(session_factory, db_session):
    await _seed_facility_entry(db_session)

    result = await calculate_corporate_emissions(session_factory, ORG, 2024)
    assert result.scope1 == Decimal("250")

    db_session.add(_fleet("5"))
    await db_session.commit()

    result = await calculate_corporate_emissions(session_factory, ORG, 2024)
    assert result.scope1 == Decimal("5250")
    assert result.has_data is True


@pytest.mark.asyncio
async def test_records_outside_window_ignored(session_factory, db_session):
    await _seed_facility_entry(db_session)
    db_session.add(_fleet("5", start=date(2023, 12, 31)))
    db_session.add(_fleet("7", start=date(2025, 1, 1)))
    await db_session.commit()

    result = await calculate_corporate_emissions(session_factory, ORG, 2024)

    assert result.scope1 == Decimal("250")


@pytest.mark.asyncio
async def test_other_organizations_ignored(session_factory, db_session):
    await _seed_facility_entry(db_session)
    other = _fleet("3")
    other.org_id = "someone-else"
    db_session.add(other)
    await db_session.commit()

    result = await calculate_corporate_emissions(session_factory, ORG, 2024)

    assert result.scope1 == Decimal("250")


@pytest.mark.asyncio
async def test_fiscal_year_window(session_factory, db_session):
    db_session.add(_fleet("1", start=date(2024, 2, 1)))
    db_session.add(_fleet("2", start=date(2024, 5, 1)))
    await db_session.commit()

    calculator = CorporateEmissionsCalculator(
        session_factory, AccountingConfig(fiscal_year_start_month=4)
    )
    result = await calculator.calculate(ORG, 2024)

    assert result.scope1 == Decimal("2000")


@pytest.mark.asyncio
async def test_scope3_from_products_overheads_and_grey_fleet(session_factory, db_session):
    product_id = uuid4()
    db_session.add_all(
        [
            ProductFootprintModel(
                org_id=ORG,
                product_id=product_id,
                status="completed",
                total_ghg_emissions=Decimal("15"),
                aggregated_impacts={
                    "breakdown": {"by_scope": {"scope1": 2, "scope2": 3, "scope3": 10}}
                },
                reference_year=2024,
                updated_at=datetime(2024, 3, 1),
            ),
            ProductFootprintModel(
                org_id=ORG,
                product_id=product_id,
                status="draft",
                total_ghg_emissions=Decimal("99"),
                aggregated_impacts={"breakdown": {"by_scope": {"scope3": 99}}},
                reference_year=2024,
                updated_at=datetime(2024, 9, 1),
            ),
            ProductionLogModel(
                org_id=ORG, product_id=product_id, production_date=date(2024, 4, 2), units_produced=1
            ),
            ProductionLogModel(
                org_id=ORG, product_id=product_id, production_date=date(2024, 4, 3), units_produced=0
            ),
            _fleet("0.25", scope="Scope 3 Cat 6"),
        ]
    )
    report = CorporateReportModel(id=uuid4(), org_id=ORG, year=2024)
    db_session.add(report)
    await db_session.flush()
    db_session.add_all(
        [
            CorporateOverheadModel(
                report_id=report.id, category="business_travel", computed_co2e=Decimal("100")
            ),
            CorporateOverheadModel(
                report_id=report.id,
                category="purchased_services",
                material_type="brochures",
                computed_co2e=Decimal("12"),
            ),
        ]
    )
    await db_session.commit()

    result = await calculate_corporate_emissions(session_factory, ORG, 2024)

    assert result.scope3.products == Decimal("10")
    assert result.scope3.business_travel == Decimal("350")
    assert result.scope3.business_travel_grey_fleet == Decimal("250")
    assert result.scope3.marketing == Decimal("12")
    assert result.scope3.total == Decimal("372")
    assert result.total == Decimal("372")


@pytest.mark.asyncio
async def test_repeat_calculation_is_byte_identical(session_factory, db_session):
    await _seed_facility_entry(db_session, quantity="33.333")
    db_session.add(_fleet("1.234567"))
    await db_session.commit()

    first = await calculate_corporate_emissions(session_factory, ORG, 2024)
    second = await calculate_corporate_emissions(session_factory, ORG, 2024)

    assert first.to_json() == second.to_json()


@pytest.mark.asyncio
async def test_invalid_year(session_factory):
    with pytest.raises(ValueError, match="year must be between"):
        await calculate_corporate_emissions(session_factory, ORG, 1850)


@pytest.mark.asyncio
async def test_unreadable_store_raises(tmp_path):
    # Tables never created, so every query fails
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'empty.db'}")
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    try:
        with pytest.raises(SourceUnavailableError) as exc_info:
            await calculate_corporate_emissions(factory, ORG, 2024)
    finally:
        await engine.dispose()

    assert isinstance(exc_info.value.__cause__, OperationalError)
    assert exc_info.value.org_id == ORG


@pytest.mark.asyncio
async def test_non_finite_footprint_values_contribute_zero(session_factory, db_session):
    readable, nan_product, inf_product = uuid4(), uuid4(), uuid4()
    for product_id, scope3 in ((readable, 10), (nan_product, "NaN"), (inf_product, "Infinity")):
        db_session.add_all(
            [
                ProductFootprintModel(
                    org_id=ORG,
                    product_id=product_id,
                    status="completed",
                    total_ghg_emissions=Decimal("15"),
                    aggregated_impacts={"breakdown": {"by_scope": {"scope3": scope3}}},
                    reference_year=2024,
                    updated_at=datetime(2024, 3, 1),
                ),
                ProductionLogModel(
                    org_id=ORG, product_id=product_id, production_date=date(2024, 4, 2), units_produced=2
                ),
            ]
        )
    await db_session.commit()

    result = await calculate_corporate_emissions(session_factory, ORG, 2024)

    assert result.scope3.products == Decimal("20")
    assert result.total == Decimal("20")
    assert result.total.is_finite()
