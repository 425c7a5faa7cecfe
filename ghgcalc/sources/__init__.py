"""Source-record access for one organization and reporting year."""

from ghgcalc.sources.periods import reporting_window, validate_year
from ghgcalc.sources.repository import SourceSnapshot, load_snapshot

__all__ = ["SourceSnapshot", "load_snapshot", "reporting_window", "validate_year"]
