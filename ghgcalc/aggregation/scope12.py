"""Scope 1 and Scope 2 aggregation.

Scope 1: stationary/mobile/process/fugitive facility emissions plus owned
combustion fleet. Scope 2: purchased electricity, heat and steam plus owned
electric fleet. Results are kg CO2e.
"""

from __future__ import annotations

from collections.abc import Iterable
from decimal import Decimal

import structlog

from ghgcalc.factors.resolver import EmissionFactorResolver
from ghgcalc.models import ActivityEntry, FleetActivity, Scope

logger = structlog.get_logger(__name__)

DIRECT_SCOPES = (Scope.SCOPE_1, Scope.SCOPE_2)


def facility_emissions(
    scope: Scope,
    entries: Iterable[ActivityEntry],
    resolver: EmissionFactorResolver,
) -> Decimal:
    """Sum quantity x factor over the facility entries tagged with `scope`."""
    total = Decimal("0")
    for entry in entries:
        if entry.scope != scope:
            continue
        if entry.quantity is None or entry.quantity <= 0:
            logger.debug("activity_entry_skipped", entry_id=str(entry.id), reason="quantity")
            continue

        emissions = resolver.emissions_for(entry)
        if emissions is None:
            continue
        total += emissions
    return total


def fleet_emissions(scope: Scope, fleet: Iterable[FleetActivity]) -> Decimal:
    """Fleet rows tagged with `scope`, converted from tonnes to kg."""
    total = Decimal("0")
    for activity in fleet:
        if activity.scope != scope:
            continue
        total += activity.emissions_kg
    return total


def aggregate_scope(
    scope: Scope,
    entries: Iterable[ActivityEntry],
    fleet: Iterable[FleetActivity],
    resolver: EmissionFactorResolver,
) -> Decimal:
    """Total Scope 1 or Scope 2 emissions in kg CO2e.

    Args:
        scope: Scope.SCOPE_1 or Scope.SCOPE_2
        entries: Facility activity entries of the reporting window
        fleet: Fleet activities of the reporting window
        resolver: Factor lookup; a missing factor zeroes only that entry

    Returns:
        Non-negative Decimal

    Raises:
        ValueError: If scope is not a direct (1/2) scope
    """
    if scope not in DIRECT_SCOPES:
        raise ValueError(f"aggregate_scope handles Scope 1 and Scope 2, not {scope.value}")

    facility_total = facility_emissions(scope, entries, resolver)
    fleet_total = fleet_emissions(scope, fleet)
    total = facility_total + fleet_total

    logger.info(
        "scope_aggregated",
        scope=scope.value,
        facility_kg=str(facility_total),
        fleet_kg=str(fleet_total),
        total_kg=str(total),
    )
    return max(total, Decimal("0"))
