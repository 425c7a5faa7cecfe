"""GHG Protocol scope aggregation."""

from ghgcalc.aggregation.scope3 import aggregate_scope3, classify_overhead
from ghgcalc.aggregation.scope12 import aggregate_scope

__all__ = ["aggregate_scope", "aggregate_scope3", "classify_overhead"]
