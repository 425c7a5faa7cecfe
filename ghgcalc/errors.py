"""Exceptions raised by the ghgcalc engine.

Missing reference data and malformed rows never raise: they degrade to a zero
contribution. Only integrity violations and systemic failures surface here.
"""

from __future__ import annotations

from decimal import Decimal
from uuid import UUID


class AllocationError(ValueError):
    """Production shares for a footprint would exceed 100%."""

    def __init__(self, footprint_id: UUID, prospective_total: Decimal):
        self.footprint_id = footprint_id
        self.prospective_total = prospective_total
        super().__init__(
            "Production mix allocation cannot exceed 100%. "
            f"Current total would be: {prospective_total * 100}% "
            f"(footprint {footprint_id})"
        )


class SourceUnavailableError(RuntimeError):
    """The external store could not be read; no partial result is returned."""

    def __init__(self, source: str, org_id: str, year: int):
        self.source = source
        self.org_id = org_id
        self.year = year
        super().__init__(
            f"Failed to read {source} for org={org_id} year={year}; "
            "calculation aborted"
        )
