"""Corporate reporting for ghgcalc.

Derives the corporate footprint from source records and caches it per
(organization, year).
"""

from ghgcalc.reporting.composer import (
    CorporateEmissionsCalculator,
    calculate_corporate_emissions,
    compose,
)
from ghgcalc.reporting.reports import finalize_report, get_or_create_report, save_breakdown

__all__ = [
    "CorporateEmissionsCalculator",
    "calculate_corporate_emissions",
    "compose",
    "finalize_report",
    "get_or_create_report",
    "save_breakdown",
]
