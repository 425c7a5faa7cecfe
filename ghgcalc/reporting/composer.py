"""Corporate footprint calculation for one organization and year.

Pipeline:
1. Load the source snapshot (concurrent reads, one session per source)
2. Scope 1 and Scope 2: facility activity x factors + owned fleet
3. Scope 3: product footprints (Scope 3 slice only), overheads, grey fleet
4. Compose totals
"""

from __future__ import annotations

from decimal import Decimal

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ghgcalc.aggregation.scope12 import aggregate_scope
from ghgcalc.aggregation.scope3 import aggregate_scope3
from ghgcalc.config import AccountingConfig, get_config
from ghgcalc.core.logging import bind_calculation_context
from ghgcalc.factors.resolver import EmissionFactorResolver
from ghgcalc.footprints.resolver import FootprintIndex
from ghgcalc.models import CorporateEmissionsResult, Scope, Scope3Breakdown
from ghgcalc.sources.periods import validate_year
from ghgcalc.sources.repository import SourceSnapshot, load_snapshot

logger = structlog.get_logger(__name__)


def compose(
    year: int, scope1: Decimal, scope2: Decimal, scope3: Scope3Breakdown
) -> CorporateEmissionsResult:
    """Combine scope totals into the corporate result."""
    total = scope1 + scope2 + scope3.total
    return CorporateEmissionsResult(
        year=year,
        scope1=scope1,
        scope2=scope2,
        scope3=scope3,
        total=total,
        has_data=total > 0,
    )


def calculate_from_snapshot(
    snapshot: SourceSnapshot, accounting: AccountingConfig | None = None
) -> CorporateEmissionsResult:
    """Aggregate an already-loaded snapshot. No I/O."""
    accounting = accounting or AccountingConfig()
    resolver = EmissionFactorResolver(
        snapshot.emission_factors, gas_kwh_per_m3=accounting.natural_gas_kwh_per_m3
    )

    scope1 = aggregate_scope(
        Scope.SCOPE_1, snapshot.activity_entries, snapshot.fleet_activities, resolver
    )
    scope2 = aggregate_scope(
        Scope.SCOPE_2, snapshot.activity_entries, snapshot.fleet_activities, resolver
    )
    scope3 = aggregate_scope3(
        snapshot.production_logs,
        FootprintIndex(snapshot.footprints),
        snapshot.overheads,
        snapshot.fleet_activities,
    )
    return compose(snapshot.year, scope1, scope2, scope3)


class CorporateEmissionsCalculator:
    """Derives the corporate footprint from source records on every call."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        accounting: AccountingConfig | None = None,
    ):
        """Initialize calculator.

        Args:
            session_factory: Opens one session per concurrent source read
            accounting: Conversion constants; defaults to the app config
        """
        self.session_factory = session_factory
        self.accounting = accounting or get_config().accounting

    async def calculate(self, org_id: str, year: int) -> CorporateEmissionsResult:
        """Scope 1, 2 and 3 totals for (org_id, year) in kg CO2e.

        Raises:
            ValueError: If year is outside the supported range
            SourceUnavailableError: If any source cannot be read
        """
        validate_year(year)

        with bind_calculation_context(org_id, year):
            snapshot = await load_snapshot(
                self.session_factory,
                org_id,
                year,
                self.accounting.fiscal_year_start_month,
            )
            result = calculate_from_snapshot(snapshot, self.accounting)

            logger.info(
                "corporate_emissions_calculated",
                scope1_kg=str(result.scope1),
                scope2_kg=str(result.scope2),
                scope3_kg=str(result.scope3.total),
                total_kg=str(result.total),
                has_data=result.has_data,
            )
        return result


async def calculate_corporate_emissions(
    session_factory: async_sessionmaker[AsyncSession],
    org_id: str,
    year: int,
    accounting: AccountingConfig | None = None,
) -> CorporateEmissionsResult:
    """Convenience wrapper around CorporateEmissionsCalculator."""
    calculator = CorporateEmissionsCalculator(session_factory, accounting)
    return await calculator.calculate(org_id, year)
