"""ghgcalc - GHG Protocol corporate emissions engine."""

__version__ = "0.1.0"
