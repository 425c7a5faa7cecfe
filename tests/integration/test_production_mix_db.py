"""Integration tests for production-mix allocation writes."""

from __future__ import annotations

import asyncio
from decimal import Decimal
from uuid import uuid4

import pytest
import pytest_asyncio
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ghgcalc.allocation.production_mix import ProductionMixAllocator
from ghgcalc.db.models import FacilityModel, ProductFootprintModel, ProductionMixModel
from ghgcalc.errors import AllocationError
from ghgcalc.models import DataSourceType


@pytest_asyncio.fixture()
async def footprint_with_facilities(db_session: AsyncSession):
    footprint = ProductFootprintModel(
        id=uuid4(), org_id="test-org", product_id=uuid4(), status="completed", reference_year=2024
    )
    facilities = [
        FacilityModel(id=uuid4(), org_id="test-org", name=f"Site {i}") for i in range(3)
    ]
    db_session.add(footprint)
    db_session.add_all(facilities)
    await db_session.commit()
    return footprint.id, [f.id for f in facilities]


@pytest.mark.asyncio
async def test_exact_full_share_accepted(db_session, footprint_with_facilities):
    footprint_id, (a, b, _) = footprint_with_facilities
    allocator = ProductionMixAllocator(db_session)

    await allocator.allocate(footprint_id, a, Decimal("0.6"), Decimal("10"), DataSourceType.PRIMARY)
    await allocator.allocate(footprint_id, b, Decimal("0.4"), Decimal("20"))
    await db_session.commit()

    summary = await allocator.completeness(footprint_id)
    assert summary.is_complete
    assert summary.total_share == Decimal("1.0")
    assert summary.weighted_average_intensity == Decimal("14")


@pytest.mark.asyncio
async def test_within_tolerance_accepted(db_session, footprint_with_facilities):
    footprint_id, (a, b, _) = footprint_with_facilities
    allocator = ProductionMixAllocator(db_session)

    await allocator.allocate(footprint_id, a, Decimal("0.5"))
    await allocator.allocate(footprint_id, b, Decimal("0.50005"))
    await db_session.commit()

    assert (await allocator.completeness(footprint_id)).total_share == Decimal("1.00005")


@pytest.mark.asyncio
async def test_over_tolerance_rejected(db_session, footprint_with_facilities):
    footprint_id, (a, b, _) = footprint_with_facilities
    allocator = ProductionMixAllocator(db_session)

    await allocator.allocate(footprint_id, a, Decimal("0.5"))
    with pytest.raises(AllocationError) as exc_info:
        await allocator.allocate(footprint_id, b, Decimal("0.5002"))

    assert exc_info.value.prospective_total == Decimal("1.0002")
    rows = (await db_session.execute(select(ProductionMixModel))).scalars().all()
    assert len(rows) == 1


@pytest.mark.asyncio
async def test_update_replaces_facility_share(db_session, footprint_with_facilities):
    footprint_id, (a, b, _) = footprint_with_facilities
    allocator = ProductionMixAllocator(db_session)

    await allocator.allocate(footprint_id, a, Decimal("0.7"))
    await allocator.allocate(footprint_id, b, Decimal("0.3"))
    # 0.9 + 0.3 would exceed, but a's 0.7 is replaced
    await allocator.allocate(footprint_id, a, Decimal("0.6"), notes="revised")
    await db_session.commit()

    allocations = await allocator.allocations(footprint_id)
    shares = {row.facility_id: row.production_share for row in allocations}
    assert shares == {a: Decimal("0.6"), b: Decimal("0.3")}
    assert not (await allocator.completeness(footprint_id)).is_complete


@pytest.mark.asyncio
async def test_remove_allocation(db_session, footprint_with_facilities):
    footprint_id, (a, b, c) = footprint_with_facilities
    allocator = ProductionMixAllocator(db_session)

    await allocator.allocate(footprint_id, a, Decimal("1"))
    assert await allocator.remove(footprint_id, a) is True
    assert await allocator.remove(footprint_id, c) is False

    await allocator.allocate(footprint_id, b, Decimal("1"))
    await db_session.commit()
    assert (await allocator.completeness(footprint_id)).facility_count == 1


@pytest.mark.asyncio
async def test_unknown_footprint(db_session, footprint_with_facilities):
    _, (a, _, _) = footprint_with_facilities
    allocator = ProductionMixAllocator(db_session)

    with pytest.raises(LookupError):
        await allocator.allocate(uuid4(), a, Decimal("0.5"))


@pytest.mark.asyncio
async def test_concurrent_allocations_cannot_jointly_exceed_full_share(
    session_factory, footprint_with_facilities
):
    footprint_id, (a, b, _) = footprint_with_facilities

    async def allocate(facility_id):
        async with session_factory() as session:
            try:
                await ProductionMixAllocator(session).allocate(
                    footprint_id, facility_id, Decimal("0.6")
                )
                await session.commit()
                return "ok"
            except AllocationError:
                await session.rollback()
                return "rejected"

    outcomes = await asyncio.gather(allocate(a), allocate(b))

    assert sorted(outcomes) == ["ok", "rejected"]
    async with session_factory() as session:
        summary = await ProductionMixAllocator(session).completeness(footprint_id)
    assert summary.facility_count == 1
    assert summary.total_share == Decimal("0.6")


@pytest.mark.asyncio
async def test_allocation_leaves_footprint_unchanged(db_session, footprint_with_facilities):
    footprint_id, (a, _, _) = footprint_with_facilities
    before = await db_session.get(ProductFootprintModel, footprint_id)
    stamp = before.updated_at

    await ProductionMixAllocator(db_session).allocate(footprint_id, a, Decimal("0.5"))
    await db_session.commit()

    await db_session.refresh(before)
    assert before.updated_at == stamp
    assert before.status == "completed"
