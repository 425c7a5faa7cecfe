"""Scope 3 aggregation with full category breakdown.

Categories:
- Cat 1: Purchased goods (products) - Scope 3 slice of product footprints only
- Cat 2: Capital goods
- Cat 4: Upstream transportation
- Cat 5: Waste generated in operations
- Cat 6: Business travel, including grey fleet
- Cat 7: Employee commuting
- Cat 8/1: Purchased services, with marketing materials split out
- Cat 9: Downstream transportation and logistics
- Cat 11: Use of sold products

All values are kg CO2e.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable
from decimal import Decimal
from typing import Optional

import structlog

from ghgcalc.footprints.resolver import FootprintIndex, units_for
from ghgcalc.models import (
    CorporateOverheadEntry,
    FleetActivity,
    OverheadBucket,
    OverheadCategory,
    ProductionLog,
    Scope,
    Scope3Breakdown,
)

logger = structlog.get_logger(__name__)

_CATEGORY_BUCKETS: dict[OverheadCategory, OverheadBucket] = {
    OverheadCategory.BUSINESS_TRAVEL: OverheadBucket.BUSINESS_TRAVEL,
    OverheadCategory.EMPLOYEE_COMMUTING: OverheadBucket.EMPLOYEE_COMMUTING,
    OverheadCategory.CAPITAL_GOODS: OverheadBucket.CAPITAL_GOODS,
    OverheadCategory.OPERATIONAL_WASTE: OverheadBucket.OPERATIONAL_WASTE,
    OverheadCategory.DOWNSTREAM_LOGISTICS: OverheadBucket.DOWNSTREAM_LOGISTICS,
    OverheadCategory.UPSTREAM_TRANSPORT: OverheadBucket.UPSTREAM_TRANSPORT,
    OverheadCategory.DOWNSTREAM_TRANSPORT: OverheadBucket.DOWNSTREAM_TRANSPORT,
    OverheadCategory.USE_PHASE: OverheadBucket.USE_PHASE,
}


def classify_overhead(category: Optional[str], material_type: Optional[str]) -> OverheadBucket:
    """Map an overhead entry to exactly one Scope 3 bucket.

    Purchased services with a material type are marketing materials.
    Unrecognized categories fall back to purchased services.
    """
    try:
        parsed = OverheadCategory((category or "").strip().lower())
    except ValueError:
        logger.warning("overhead_category_unknown", category=category)
        return OverheadBucket.PURCHASED_SERVICES

    if parsed is OverheadCategory.PURCHASED_SERVICES:
        if material_type and material_type.strip():
            return OverheadBucket.MARKETING_MATERIALS
        return OverheadBucket.PURCHASED_SERVICES
    return _CATEGORY_BUCKETS[parsed]


def product_emissions(
    production_logs: Iterable[ProductionLog],
    footprints: FootprintIndex,
) -> Decimal:
    """Cat 1 products: footprint Scope 3 slice x units produced.

    Using the Scope 3 slice instead of the footprint total keeps owned facility
    Scope 1/2, already in the corporate inventory, out of Scope 3.
    """
    total = Decimal("0")
    for log in production_logs:
        units = units_for(log)
        if units == 0:
            continue

        footprint = footprints.resolve(log.product_id)
        if footprint is None:
            logger.debug("footprint_missing", product_id=str(log.product_id))
            continue

        scope3_per_unit = footprint.scope3_per_unit
        if scope3_per_unit <= 0:
            continue
        total += scope3_per_unit * units
    return total


def overhead_emissions(overheads: Iterable[CorporateOverheadEntry]) -> dict[OverheadBucket, Decimal]:
    """Sum overhead entries per bucket."""
    buckets: dict[OverheadBucket, Decimal] = defaultdict(lambda: Decimal("0"))
    for entry in overheads:
        bucket = classify_overhead(entry.category, entry.material_type)
        buckets[bucket] += entry.computed_co2e or Decimal("0")
    return dict(buckets)


def grey_fleet_emissions(fleet: Iterable[FleetActivity]) -> Decimal:
    """Scope 3 Cat 6 fleet (employee-owned vehicles) in kg."""
    total = Decimal("0")
    for activity in fleet:
        if activity.scope == Scope.SCOPE_3_CAT_6:
            total += activity.emissions_kg
    return total


def aggregate_scope3(
    production_logs: Iterable[ProductionLog],
    footprints: FootprintIndex,
    overheads: Iterable[CorporateOverheadEntry],
    fleet: Iterable[FleetActivity],
) -> Scope3Breakdown:
    """Scope 3 breakdown for one reporting window.

    Every category key is present even when the inputs are empty.
    """
    products = product_emissions(production_logs, footprints)
    by_bucket = overhead_emissions(overheads)
    grey_fleet = grey_fleet_emissions(fleet)

    def bucket(name: OverheadBucket) -> Decimal:
        return by_bucket.get(name, Decimal("0"))

    travel_overheads = bucket(OverheadBucket.BUSINESS_TRAVEL)

    breakdown = Scope3Breakdown(
        products=products,
        business_travel=travel_overheads + grey_fleet,
        purchased_services=bucket(OverheadBucket.PURCHASED_SERVICES),
        employee_commuting=bucket(OverheadBucket.EMPLOYEE_COMMUTING),
        capital_goods=bucket(OverheadBucket.CAPITAL_GOODS),
        operational_waste=bucket(OverheadBucket.OPERATIONAL_WASTE),
        downstream_logistics=bucket(OverheadBucket.DOWNSTREAM_LOGISTICS),
        marketing_materials=bucket(OverheadBucket.MARKETING_MATERIALS),
        upstream_transport=bucket(OverheadBucket.UPSTREAM_TRANSPORT),
        downstream_transport=bucket(OverheadBucket.DOWNSTREAM_TRANSPORT),
        use_phase=bucket(OverheadBucket.USE_PHASE),
        business_travel_overheads=travel_overheads,
        business_travel_grey_fleet=grey_fleet,
    )

    logger.info(
        "scope3_aggregated",
        products_kg=str(products),
        grey_fleet_kg=str(grey_fleet),
        total_kg=str(breakdown.total),
    )
    return breakdown
