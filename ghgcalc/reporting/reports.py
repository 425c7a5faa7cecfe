"""Corporate report cache.

A report row per (organization, year) caches the last computed breakdown.
It is always regenerable from the source tables: every save overwrites the
previous numbers (last writer wins). Functions flush but never commit; the
caller owns the transaction.
"""

from __future__ import annotations

from datetime import datetime, timezone
from uuid import uuid4

import structlog
from sqlalchemy import insert, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from ghgcalc.db.models import CorporateReportModel
from ghgcalc.models import CorporateEmissionsResult, ReportStatus
from ghgcalc.sources.periods import validate_year

logger = structlog.get_logger(__name__)


async def get_report(
    session: AsyncSession, org_id: str, year: int
) -> CorporateReportModel | None:
    stmt = select(CorporateReportModel).where(
        CorporateReportModel.org_id == org_id,
        CorporateReportModel.year == year,
    )
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


async def get_or_create_report(
    session: AsyncSession, org_id: str, year: int
) -> CorporateReportModel:
    """Report for (org_id, year), created as an empty Draft on first use.

    Creation is an insert that yields to an existing row, so concurrent
    first saves for the same key both land on the one stored report.
    """
    validate_year(year)

    report = await get_report(session, org_id, year)
    if report is not None:
        return report

    stmt = _insert_for(session).values(
        id=uuid4(),
        org_id=org_id,
        year=year,
        status=ReportStatus.DRAFT.value,
        total_emissions=0,
        breakdown_json={},
    )
    if hasattr(stmt, "on_conflict_do_nothing"):
        stmt = stmt.on_conflict_do_nothing(index_elements=["org_id", "year"])
    result = await session.execute(stmt)
    if result.rowcount == 1:
        logger.info("corporate_report_created", org_id=org_id, year=year)
    else:
        logger.debug("corporate_report_exists", org_id=org_id, year=year)

    report = await get_report(session, org_id, year)
    if report is None:
        raise LookupError(f"No corporate report for org={org_id} year={year}")
    return report


def _insert_for(session: AsyncSession):
    dialect = session.get_bind().dialect.name
    if dialect == "postgresql":
        return pg_insert(CorporateReportModel)
    if dialect == "sqlite":
        return sqlite_insert(CorporateReportModel)
    return insert(CorporateReportModel)


async def save_breakdown(
    session: AsyncSession, org_id: str, result: CorporateEmissionsResult
) -> CorporateReportModel:
    """Overwrite the cached total and breakdown with a fresh calculation.

    A finalized report keeps its status; only the numbers are replaced.
    """
    report = await get_or_create_report(session, org_id, result.year)

    report.total_emissions = result.total
    report.breakdown_json = result.model_dump(mode="json")
    await session.flush()

    logger.info(
        "corporate_report_saved",
        org_id=org_id,
        year=result.year,
        status=report.status,
        total_kg=str(result.total),
    )
    return report


async def finalize_report(
    session: AsyncSession, org_id: str, year: int
) -> CorporateReportModel:
    """Mark the report Finalized. Finalizing again refreshes finalized_at.

    Raises:
        LookupError: If no report exists for (org_id, year)
    """
    report = await get_report(session, org_id, year)
    if report is None:
        raise LookupError(f"No corporate report for org={org_id} year={year}")

    report.status = ReportStatus.FINALIZED.value
    report.finalized_at = datetime.now(timezone.utc)
    await session.flush()

    logger.info("corporate_report_finalized", org_id=org_id, year=year)
    return report
