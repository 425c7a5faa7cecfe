"""Unit conversion applied before activity quantities meet emission factors.

Within a dimension (energy, volume, mass, distance) conversion is a scaling to
the dimension's base unit. The only cross-dimension step is natural gas
volume to energy, via NATURAL_GAS_KWH_PER_M3.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Optional

# Gross calorific value of natural gas, DEFRA conversion factors
NATURAL_GAS_KWH_PER_M3 = Decimal("10.55")

GAS_ACTIVITY_TYPES = frozenset({"natural_gas", "natural_gas_grid", "mains_gas"})

# unit -> (dimension, multiplier to the dimension's base unit)
_UNITS: dict[str, tuple[str, Decimal]] = {
    # energy, base kWh
    "kwh": ("energy", Decimal("1")),
    "mwh": ("energy", Decimal("1000")),
    "gwh": ("energy", Decimal("1000000")),
    "gj": ("energy", Decimal("277.7777777777777777777777778")),
    "therm": ("energy", Decimal("29.3071")),
    # volume, base m3
    "m3": ("volume", Decimal("1")),
    "l": ("volume", Decimal("0.001")),
    "hl": ("volume", Decimal("0.1")),
    # mass, base kg
    "kg": ("mass", Decimal("1")),
    "g": ("mass", Decimal("0.001")),
    "t": ("mass", Decimal("1000")),
    # distance, base km
    "km": ("distance", Decimal("1")),
    "mi": ("distance", Decimal("1.609344")),
}

_ALIASES = {
    "m³": "m3",
    "cubic_metre": "m3",
    "cubic_metres": "m3",
    "cubic_meter": "m3",
    "cubic_meters": "m3",
    "litre": "l",
    "litres": "l",
    "liter": "l",
    "liters": "l",
    "hectolitre": "hl",
    "hectolitres": "hl",
    "tonne": "t",
    "tonnes": "t",
    "kilogram": "kg",
    "kilograms": "kg",
    "therms": "therm",
    "mile": "mi",
    "miles": "mi",
}


def normalize_unit(unit: Optional[str]) -> Optional[str]:
    """Canonical lower-case unit symbol, or None for blank input."""
    if unit is None:
        return None
    text = str(unit).strip().lower().replace(" ", "_")
    if not text:
        return None
    return _ALIASES.get(text, text)


def units_match(a: Optional[str], b: Optional[str]) -> bool:
    return normalize_unit(a) is not None and normalize_unit(a) == normalize_unit(b)


def convert(
    quantity: Decimal,
    from_unit: Optional[str],
    to_unit: Optional[str],
    activity_type: Optional[str] = None,
    gas_kwh_per_m3: Decimal = NATURAL_GAS_KWH_PER_M3,
) -> Optional[Decimal]:
    """Convert a quantity between units.

    Args:
        quantity: Amount expressed in from_unit
        from_unit: Unit of the activity record
        to_unit: Unit the emission factor is expressed per
        activity_type: Enables the gas volume -> energy step for gas activities
        gas_kwh_per_m3: Calorific value used for that step

    Returns:
        Quantity in to_unit, or None when the units cannot be reconciled
    """
    source = normalize_unit(from_unit)
    target = normalize_unit(to_unit)
    if source is None or target is None:
        return None
    if source == target:
        return quantity

    source_spec = _UNITS.get(source)
    target_spec = _UNITS.get(target)
    if source_spec is None or target_spec is None:
        return None

    source_dim, source_mult = source_spec
    target_dim, target_mult = target_spec
    base = quantity * source_mult

    if source_dim == target_dim:
        return base / target_mult

    if (activity_type or "").strip().lower() in GAS_ACTIVITY_TYPES:
        if source_dim == "volume" and target_dim == "energy":
            return base * gas_kwh_per_m3 / target_mult
        if source_dim == "energy" and target_dim == "volume":
            return base / gas_kwh_per_m3 / target_mult

    return None
