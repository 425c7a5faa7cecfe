"""Emission factor resolution for facility activity data.

Pure lookup over an immutable factor table. The resolver never guesses: no
matching factor, or a unit that cannot be reconciled with the factor's unit,
means the activity contributes zero and the caller carries on.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

import structlog

from ghgcalc.factors.units import NATURAL_GAS_KWH_PER_M3, convert, normalize_unit
from ghgcalc.models import ActivityEntry, EmissionFactor, Scope

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class ResolvedFactor:
    """Factor applicable to one activity type."""

    factor_id: str
    value: Decimal  # kg CO2e per unit
    unit: str
    scope: Scope


class EmissionFactorResolver:
    """Lookup of emission factors keyed by activity type and unit."""

    def __init__(
        self,
        factors: Iterable[EmissionFactor],
        gas_kwh_per_m3: Decimal = NATURAL_GAS_KWH_PER_M3,
    ):
        self.gas_kwh_per_m3 = gas_kwh_per_m3
        self._by_activity: dict[str, list[ResolvedFactor]] = defaultdict(list)

        # Sorted so that fallback choice does not depend on load order
        for factor in sorted(factors, key=lambda f: f.factor_id):
            self._by_activity[_activity_key(factor.activity_type)].append(
                ResolvedFactor(
                    factor_id=factor.factor_id,
                    value=factor.value,
                    unit=factor.unit,
                    scope=factor.scope,
                )
            )

    def __len__(self) -> int:
        return sum(len(v) for v in self._by_activity.values())

    def resolve(self, activity_type: str, unit: Optional[str]) -> ResolvedFactor | None:
        """Find the factor for an activity type and unit.

        Exact unit match wins; otherwise the first factor (by factor_id) whose
        unit the quantity can be converted into.

        Returns:
            ResolvedFactor, or None if nothing applies
        """
        candidates = self._by_activity.get(_activity_key(activity_type), [])
        if not candidates:
            return None

        wanted = normalize_unit(unit)
        for factor in candidates:
            if normalize_unit(factor.unit) == wanted:
                return factor

        for factor in candidates:
            converted = convert(
                Decimal("1"),
                unit,
                factor.unit,
                activity_type=activity_type,
                gas_kwh_per_m3=self.gas_kwh_per_m3,
            )
            if converted is not None:
                return factor

        return None

    def emissions_for(self, entry: ActivityEntry) -> Decimal | None:
        """kg CO2e for one activity entry, or None when it cannot be computed."""
        factor = self.resolve(entry.activity_type, entry.unit)
        if factor is None:
            logger.warning(
                "emission_factor_missing",
                activity_type=entry.activity_type,
                unit=entry.unit,
                entry_id=str(entry.id),
            )
            return None

        quantity = convert(
            entry.quantity,
            entry.unit,
            factor.unit,
            activity_type=entry.activity_type,
            gas_kwh_per_m3=self.gas_kwh_per_m3,
        )
        if quantity is None:
            logger.warning(
                "unit_unconvertible",
                activity_type=entry.activity_type,
                unit=entry.unit,
                factor_unit=factor.unit,
                entry_id=str(entry.id),
            )
            return None

        return quantity * factor.value


def _activity_key(activity_type: Optional[str]) -> str:
    return (activity_type or "").strip().lower()
