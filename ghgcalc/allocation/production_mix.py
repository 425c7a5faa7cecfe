"""Production-mix allocation for multi-facility products (ISO 14044).

A footprint's production is split across facilities by `production_share`.
Shares for one footprint must sum to 1.0; writes that would push the sum past
1.0 + SHARE_TOLERANCE are rejected, and a mix is complete when the sum lies
within SHARE_TOLERANCE of 1.0.
"""

from __future__ import annotations

from collections.abc import Iterable
from decimal import Decimal
from uuid import UUID

import structlog
from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ghgcalc.db.models import ProductFootprintModel, ProductionMixModel
from ghgcalc.errors import AllocationError
from ghgcalc.models import DataSourceType, MixCompleteness, ProductionMixAllocation

logger = structlog.get_logger(__name__)

# Accounting precision policy: 0.0001 = 0.01% of production
SHARE_TOLERANCE = Decimal("0.0001")
FULL_SHARE = Decimal("1")


def total_share(allocations: Iterable[ProductionMixAllocation]) -> Decimal:
    return sum((a.production_share for a in allocations), Decimal("0"))


def prospective_total(
    existing: Iterable[ProductionMixAllocation],
    facility_id: UUID,
    production_share: Decimal,
) -> Decimal:
    """Sum of shares if `facility_id` were written with `production_share`.

    The facility's current row, if any, is replaced rather than added to.
    """
    others = [a for a in existing if a.facility_id != facility_id]
    return total_share(others) + production_share


def exceeds_full_share(total: Decimal, tolerance: Decimal = SHARE_TOLERANCE) -> bool:
    return total > FULL_SHARE + tolerance


def is_complete(total: Decimal, tolerance: Decimal = SHARE_TOLERANCE) -> bool:
    """True iff total lies in [1 - tolerance, 1 + tolerance]."""
    return FULL_SHARE - tolerance <= total <= FULL_SHARE + tolerance


def weighted_average_intensity(allocations: Iterable[ProductionMixAllocation]) -> Decimal:
    """Production-weighted facility intensity: sum(intensity x share).

    Allocations without a cached intensity contribute zero.
    """
    return sum(
        ((a.facility_intensity or Decimal("0")) * a.production_share for a in allocations),
        Decimal("0"),
    )


def distribute(
    amount: Decimal, allocations: Iterable[ProductionMixAllocation]
) -> dict[UUID, Decimal]:
    """Split a footprint amount across facilities by production share."""
    shares: dict[UUID, Decimal] = {}
    for allocation in sorted(allocations, key=lambda a: str(a.facility_id)):
        shares[allocation.facility_id] = amount * allocation.production_share
    return shares


def summarize(
    footprint_id: UUID,
    allocations: Iterable[ProductionMixAllocation],
    tolerance: Decimal = SHARE_TOLERANCE,
) -> MixCompleteness:
    rows = list(allocations)
    total = total_share(rows)
    return MixCompleteness(
        footprint_id=footprint_id,
        total_share=total,
        is_complete=is_complete(total, tolerance),
        weighted_average_intensity=weighted_average_intensity(rows),
        facility_count=len(rows),
    )


class ProductionMixAllocator:
    """Validated reads and writes of production-mix allocations.

    Writes lock the footprint row before reading the current shares, so two
    concurrent inserts cannot jointly exceed 100%. The caller owns the
    transaction (commit/rollback).
    """

    def __init__(self, session: AsyncSession, tolerance: Decimal = SHARE_TOLERANCE):
        """Initialize allocator with database session.

        Args:
            session: SQLAlchemy async session
            tolerance: Allowed deviation of the share sum from 1.0
        """
        self.session = session
        self.tolerance = tolerance

    async def allocate(
        self,
        footprint_id: UUID,
        facility_id: UUID,
        production_share: Decimal,
        facility_intensity: Decimal | None = None,
        data_source_type: DataSourceType | None = None,
        notes: str | None = None,
    ) -> ProductionMixAllocation:
        """Insert or update the share of one facility in a footprint's mix.

        Raises:
            LookupError: If the footprint does not exist
            AllocationError: If the resulting share sum would exceed 100%
            pydantic.ValidationError: If the share is outside 0..1
        """
        candidate = ProductionMixAllocation(
            footprint_id=footprint_id,
            facility_id=facility_id,
            production_share=production_share,
            facility_intensity=facility_intensity,
            data_source_type=data_source_type,
            notes=notes,
        )

        await self._lock_footprint(footprint_id)

        rows = await self._load_rows(footprint_id)
        existing = [_to_domain(row) for row in rows]
        total = prospective_total(existing, facility_id, candidate.production_share)

        if exceeds_full_share(total, self.tolerance):
            logger.warning(
                "allocation_rejected",
                footprint_id=str(footprint_id),
                facility_id=str(facility_id),
                prospective_total=str(total),
            )
            raise AllocationError(footprint_id, total)

        current = next((row for row in rows if row.facility_id == facility_id), None)
        if current is None:
            current = ProductionMixModel(
                id=candidate.id,
                footprint_id=footprint_id,
                facility_id=facility_id,
            )
            self.session.add(current)

        current.production_share = candidate.production_share
        current.facility_intensity = candidate.facility_intensity
        current.data_source_type = (
            candidate.data_source_type.value if candidate.data_source_type else None
        )
        current.notes = candidate.notes

        await self.session.flush()

        logger.info(
            "allocation_written",
            footprint_id=str(footprint_id),
            facility_id=str(facility_id),
            production_share=str(candidate.production_share),
            total_share=str(total),
        )
        return _to_domain(current)

    async def remove(self, footprint_id: UUID, facility_id: UUID) -> bool:
        """Delete one facility's allocation. Returns True if a row was removed."""
        stmt = delete(ProductionMixModel).where(
            ProductionMixModel.footprint_id == footprint_id,
            ProductionMixModel.facility_id == facility_id,
        )
        result = await self.session.execute(stmt)
        return (result.rowcount or 0) > 0

    async def allocations(self, footprint_id: UUID) -> list[ProductionMixAllocation]:
        return [_to_domain(row) for row in await self._load_rows(footprint_id)]

    async def completeness(self, footprint_id: UUID) -> MixCompleteness:
        """Summed share, completeness flag and weighted intensity of a mix."""
        return summarize(footprint_id, await self.allocations(footprint_id), self.tolerance)

    async def weighted_average_intensity(self, footprint_id: UUID) -> Decimal:
        return weighted_average_intensity(await self.allocations(footprint_id))

    async def _lock_footprint(self, footprint_id: UUID) -> None:
        """Hold the footprint row until the transaction ends.

        Concurrent allocations for one footprint run one at a time, so each
        sees the shares the previous one committed.
        """
        if self.session.get_bind().dialect.name == "sqlite":
            # No FOR UPDATE on SQLite; a self-assignment takes the write lock
            stmt = (
                update(ProductFootprintModel)
                .where(ProductFootprintModel.id == footprint_id)
                .values(updated_at=ProductFootprintModel.updated_at)
                .execution_options(synchronize_session=False)
            )
            result = await self.session.execute(stmt)
            found = result.rowcount == 1
        else:
            stmt = (
                select(ProductFootprintModel.id)
                .where(ProductFootprintModel.id == footprint_id)
                .with_for_update()
            )
            result = await self.session.execute(stmt)
            found = result.scalar_one_or_none() is not None
        if not found:
            raise LookupError(f"Product footprint {footprint_id} not found")

    async def _load_rows(self, footprint_id: UUID) -> list[ProductionMixModel]:
        stmt = (
            select(ProductionMixModel)
            .where(ProductionMixModel.footprint_id == footprint_id)
            .order_by(ProductionMixModel.facility_id)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())


def _to_domain(row: ProductionMixModel) -> ProductionMixAllocation:
    return ProductionMixAllocation(
        id=row.id,
        footprint_id=row.footprint_id,
        facility_id=row.facility_id,
        production_share=Decimal(str(row.production_share)),
        facility_intensity=(
            Decimal(str(row.facility_intensity)) if row.facility_intensity is not None else None
        ),
        data_source_type=DataSourceType(row.data_source_type) if row.data_source_type else None,
        notes=row.notes,
    )
