"""Source-record queries for one (organization, reporting window).

Each fetch function reads one source table and returns domain models sorted
by id, so aggregation over the same rows is always performed in the same
order. `load_snapshot` runs the fetches concurrently, one session each.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import TypeVar

import structlog
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ghgcalc.db.models import (
    ActivityEntryModel,
    CorporateOverheadModel,
    CorporateReportModel,
    EmissionFactorModel,
    FleetActivityModel,
    ProductFootprintModel,
    ProductionLogModel,
)
from ghgcalc.errors import SourceUnavailableError
from ghgcalc.footprints.resolver import breakdown_from_impacts
from ghgcalc.models import (
    ActivityEntry,
    CorporateOverheadEntry,
    EmissionFactor,
    FleetActivity,
    FootprintStatus,
    ProductFootprint,
    ProductionLog,
    Scope,
)
from ghgcalc.sources.periods import reporting_window

logger = structlog.get_logger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class SourceSnapshot:
    """Point-in-time source records for one organization and year."""

    org_id: str
    year: int
    window_start: date
    window_end: date
    activity_entries: list[ActivityEntry]
    fleet_activities: list[FleetActivity]
    production_logs: list[ProductionLog]
    footprints: list[ProductFootprint]
    overheads: list[CorporateOverheadEntry]
    emission_factors: list[EmissionFactor]


async def fetch_activity_entries(
    session: AsyncSession, org_id: str, window_start: date, window_end: date
) -> list[ActivityEntry]:
    """Facility activity whose reporting period lies inside the window."""
    stmt = (
        select(ActivityEntryModel)
        .where(
            ActivityEntryModel.org_id == org_id,
            ActivityEntryModel.reporting_period_start >= window_start,
            ActivityEntryModel.reporting_period_end <= window_end,
        )
        .order_by(ActivityEntryModel.id)
    )
    result = await session.execute(stmt)
    return [
        ActivityEntry(
            id=row.id,
            org_id=row.org_id,
            facility_id=row.facility_id,
            activity_type=row.activity_type,
            quantity=_decimal(row.quantity),
            unit=row.unit,
            reporting_period_start=row.reporting_period_start,
            reporting_period_end=row.reporting_period_end,
            scope=Scope(row.scope),
        )
        for row in result.scalars().all()
    ]


async def fetch_fleet_activities(
    session: AsyncSession, org_id: str, window_start: date, window_end: date
) -> list[FleetActivity]:
    """Fleet activity of all scope classifications inside the window."""
    stmt = (
        select(FleetActivityModel)
        .where(
            FleetActivityModel.org_id == org_id,
            FleetActivityModel.reporting_period_start >= window_start,
            FleetActivityModel.reporting_period_end <= window_end,
        )
        .order_by(FleetActivityModel.id)
    )
    result = await session.execute(stmt)

    activities: list[FleetActivity] = []
    for row in result.scalars().all():
        try:
            scope = Scope(row.scope)
        except ValueError:
            logger.warning("fleet_scope_unknown", fleet_id=str(row.id), scope=row.scope)
            continue
        activities.append(
            FleetActivity(
                id=row.id,
                org_id=row.org_id,
                emissions_tco2e=_decimal(row.emissions_tco2e),
                scope=scope,
                activity_date=row.activity_date,
                reporting_period_start=row.reporting_period_start,
                reporting_period_end=row.reporting_period_end,
            )
        )
    return activities


async def fetch_production_logs(
    session: AsyncSession, org_id: str, window_start: date, window_end: date
) -> list[ProductionLog]:
    stmt = (
        select(ProductionLogModel)
        .where(
            ProductionLogModel.org_id == org_id,
            ProductionLogModel.production_date >= window_start,
            ProductionLogModel.production_date <= window_end,
        )
        .order_by(ProductionLogModel.id)
    )
    result = await session.execute(stmt)
    return [
        ProductionLog(
            id=row.id,
            org_id=row.org_id,
            product_id=row.product_id,
            facility_id=row.facility_id,
            production_date=row.production_date,
            units_produced=row.units_produced,
            volume=_decimal(row.volume),
            unit=row.unit,
        )
        for row in result.scalars().all()
    ]


async def fetch_completed_footprints(
    session: AsyncSession, org_id: str, window_start: date, window_end: date
) -> list[ProductFootprint]:
    """Completed footprints of every product produced inside the window.

    All completed versions are returned; FootprintIndex picks the latest.
    """
    produced = (
        select(ProductionLogModel.product_id)
        .where(
            ProductionLogModel.org_id == org_id,
            ProductionLogModel.production_date >= window_start,
            ProductionLogModel.production_date <= window_end,
        )
        .distinct()
    )
    stmt = (
        select(ProductFootprintModel)
        .where(
            ProductFootprintModel.product_id.in_(produced),
            ProductFootprintModel.status == FootprintStatus.COMPLETED.value,
        )
        .order_by(ProductFootprintModel.id)
    )
    result = await session.execute(stmt)

    footprints: list[ProductFootprint] = []
    for row in result.scalars().all():
        try:
            footprints.append(
                ProductFootprint(
                    id=row.id,
                    org_id=row.org_id,
                    product_id=row.product_id,
                    status=FootprintStatus(row.status),
                    total_ghg_emissions=_decimal(row.total_ghg_emissions),
                    breakdown=breakdown_from_impacts(row.aggregated_impacts),
                    reference_year=row.reference_year,
                    updated_at=row.updated_at,
                )
            )
        except ValueError:
            logger.warning("footprint_invalid", footprint_id=str(row.id))
    return footprints


async def fetch_report_overheads(
    session: AsyncSession, org_id: str, year: int
) -> list[CorporateOverheadEntry]:
    """Overhead entries of the (organization, year) report; empty if no report yet."""
    stmt = (
        select(CorporateOverheadModel)
        .join(CorporateReportModel, CorporateReportModel.id == CorporateOverheadModel.report_id)
        .where(
            CorporateReportModel.org_id == org_id,
            CorporateReportModel.year == year,
        )
        .order_by(CorporateOverheadModel.id)
    )
    result = await session.execute(stmt)
    return [
        CorporateOverheadEntry(
            id=row.id,
            report_id=row.report_id,
            category=row.category,
            material_type=row.material_type,
            computed_co2e=_decimal(row.computed_co2e),
        )
        for row in result.scalars().all()
    ]


async def fetch_emission_factors(session: AsyncSession) -> list[EmissionFactor]:
    stmt = select(EmissionFactorModel).order_by(EmissionFactorModel.factor_id)
    result = await session.execute(stmt)

    factors: list[EmissionFactor] = []
    for row in result.scalars().all():
        try:
            factors.append(
                EmissionFactor(
                    factor_id=row.factor_id,
                    activity_type=row.activity_type,
                    value=_decimal(row.value),
                    unit=row.unit,
                    scope=Scope(row.scope),
                    source=row.source,
                )
            )
        except ValueError:
            logger.warning("emission_factor_invalid", factor_id=row.factor_id)
    return factors


async def load_snapshot(
    session_factory: async_sessionmaker[AsyncSession],
    org_id: str,
    year: int,
    fiscal_year_start_month: int = 1,
) -> SourceSnapshot:
    """Read every source for (org_id, year) concurrently.

    Raises:
        ValueError: If year is out of range
        SourceUnavailableError: If any read fails; no partial snapshot is returned
    """
    window_start, window_end = reporting_window(year, fiscal_year_start_month)

    async def run(source: str, fetch: Callable[[AsyncSession], Awaitable[T]]) -> T:
        try:
            async with session_factory() as session:
                return await fetch(session)
        except SQLAlchemyError as exc:
            logger.error("source_read_failed", source=source, error=str(exc))
            raise SourceUnavailableError(source, org_id, year) from exc

    results = await asyncio.gather(
        run(
            "facility_activity_data",
            lambda s: fetch_activity_entries(s, org_id, window_start, window_end),
        ),
        run(
            "fleet_activities",
            lambda s: fetch_fleet_activities(s, org_id, window_start, window_end),
        ),
        run(
            "production_logs",
            lambda s: fetch_production_logs(s, org_id, window_start, window_end),
        ),
        run(
            "product_footprints",
            lambda s: fetch_completed_footprints(s, org_id, window_start, window_end),
        ),
        run("corporate_overheads", lambda s: fetch_report_overheads(s, org_id, year)),
        run("emission_factors", fetch_emission_factors),
        return_exceptions=True,
    )
    # Every read has finished before the first failure is raised
    for outcome in results:
        if isinstance(outcome, BaseException):
            raise outcome
    (
        activity_entries,
        fleet_activities,
        production_logs,
        footprints,
        overheads,
        emission_factors,
    ) = results

    logger.debug(
        "snapshot_loaded",
        activity_entries=len(activity_entries),
        fleet_activities=len(fleet_activities),
        production_logs=len(production_logs),
        footprints=len(footprints),
        overheads=len(overheads),
        emission_factors=len(emission_factors),
    )

    return SourceSnapshot(
        org_id=org_id,
        year=year,
        window_start=window_start,
        window_end=window_end,
        activity_entries=activity_entries,
        fleet_activities=fleet_activities,
        production_logs=production_logs,
        footprints=footprints,
        overheads=overheads,
        emission_factors=emission_factors,
    )


def _decimal(value: object) -> Decimal | None:
    if value is None:
        return None
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))
