"""Product footprint resolution.

For each product only the most recent completed footprint is authoritative.
Footprints are per functional unit, so production is always counted in
`units_produced`; the bulk `volume` of a run is never used here.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Optional
from uuid import UUID

import structlog

from ghgcalc.models import (
    FootprintScopeBreakdown,
    FootprintStatus,
    ProductFootprint,
    ProductionLog,
)

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class ResolvedFootprint:
    """Authoritative per-unit footprint of one product."""

    product_id: UUID
    footprint_id: UUID
    breakdown: FootprintScopeBreakdown | None

    @property
    def scope3_per_unit(self) -> Decimal:
        """Scope 3 slice per unit; zero when the footprint has no scope split.

        Scope 1/2 slices are facility emissions already in the corporate
        inventory and must never be added to corporate Scope 3.
        """
        if self.breakdown is None:
            return Decimal("0")
        return self.breakdown.scope3


def select_authoritative(footprints: Iterable[ProductFootprint]) -> ProductFootprint | None:
    """Most recently updated completed footprint, or None."""
    completed = [fp for fp in footprints if fp.status == FootprintStatus.COMPLETED]
    if not completed:
        return None
    # id breaks ties between identical timestamps
    return max(completed, key=lambda fp: (_as_utc(fp.updated_at), str(fp.id)))


class FootprintIndex:
    """Authoritative footprint per product for one calculation."""

    def __init__(self, footprints: Iterable[ProductFootprint]):
        by_product: dict[UUID, list[ProductFootprint]] = defaultdict(list)
        for footprint in footprints:
            by_product[footprint.product_id].append(footprint)

        self._resolved: dict[UUID, ResolvedFootprint] = {}
        for product_id, candidates in by_product.items():
            resolved = _to_resolved(select_authoritative(candidates))
            if resolved is not None:
                self._resolved[product_id] = resolved

    def __contains__(self, product_id: UUID) -> bool:
        return product_id in self._resolved

    def resolve(self, product_id: UUID) -> ResolvedFootprint | None:
        """Footprint for a product, or None when there is no usable data."""
        return self._resolved.get(product_id)


def _to_resolved(footprint: ProductFootprint | None) -> ResolvedFootprint | None:
    if footprint is None:
        return None
    total = footprint.total_ghg_emissions
    if total is None or total == 0:
        logger.debug(
            "footprint_without_total",
            product_id=str(footprint.product_id),
            footprint_id=str(footprint.id),
        )
        return None
    return ResolvedFootprint(
        product_id=footprint.product_id,
        footprint_id=footprint.id,
        breakdown=footprint.breakdown,
    )


def units_for(log: ProductionLog) -> int:
    """Discrete units of a production run; zero for missing or non-positive counts."""
    if log.units_produced is None or log.units_produced <= 0:
        return 0
    return log.units_produced


def breakdown_from_impacts(aggregated_impacts: Any) -> FootprintScopeBreakdown | None:
    """Read `breakdown.by_scope` out of a stored impacts document.

    Returns None when the substructure is missing or unreadable.
    """
    if not isinstance(aggregated_impacts, Mapping):
        return None
    breakdown = aggregated_impacts.get("breakdown")
    if not isinstance(breakdown, Mapping):
        return None
    by_scope = breakdown.get("by_scope")
    if not isinstance(by_scope, Mapping):
        return None

    return FootprintScopeBreakdown(
        scope1=_to_decimal(by_scope.get("scope1")) or Decimal("0"),
        scope2=_to_decimal(by_scope.get("scope2")) or Decimal("0"),
        scope3=_to_decimal(by_scope.get("scope3")) or Decimal("0"),
    )


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive timestamps; they are stored as UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _to_decimal(value: Any) -> Optional[Decimal]:
    if value is None:
        return None
    try:
        parsed = Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        return None
    # NaN and Infinity are unreadable, not huge
    if not parsed.is_finite():
        return None
    return parsed
