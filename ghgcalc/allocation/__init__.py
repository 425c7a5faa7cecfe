from ghgcalc.allocation.production_mix import SHARE_TOLERANCE, ProductionMixAllocator

__all__ = ["SHARE_TOLERANCE", "ProductionMixAllocator"]
